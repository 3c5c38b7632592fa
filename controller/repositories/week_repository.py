"""Week repository for database operations."""

import json
import sqlite3
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from common.logging_config import get_logger
from common.types import WeekAsset
from controller.utils import utc_now
from storage.backend import StorageBackend
from storage.exceptions import DuplicateError, NotFoundError

logger = get_logger(__name__)

_COLUMNS = "week_id, week_number, summary, photos, report_file_id, created_at, updated_at"


def _row_to_week(row: sqlite3.Row) -> WeekAsset:
    return WeekAsset(
        week_id=row["week_id"],
        week_number=row["week_number"],
        summary=row["summary"],
        photo_file_ids=tuple(json.loads(row["photos"]) if row["photos"] else ()),
        report_file_id=row["report_file_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class WeekRepository:
    """
    Rows of the weeks table. Every mutation touches a single row inside one
    immediate transaction, so concurrent updates to the same week serialize.
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    def insert(self, week: WeekAsset) -> WeekAsset:
        """
        Insert a new week.

        Raises:
            DuplicateError: If the week number (or week id) already exists
        """
        try:
            with self.backend.connection() as conn:
                conn.execute(
                    f"INSERT INTO weeks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        week.week_id,
                        week.week_number,
                        week.summary,
                        json.dumps(list(week.photo_file_ids)),
                        week.report_file_id,
                        week.created_at.isoformat(),
                        week.updated_at.isoformat(),
                    )
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateError(f"Week {week.week_number} already exists") from e

        logger.debug(f"Inserted week {week.week_number} [week_id={week.week_id}]")
        return week

    def get_by_number(self, week_number: int) -> Optional[WeekAsset]:
        with self.backend.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM weeks WHERE week_number = ?",
                (week_number,)
            ).fetchone()
        return _row_to_week(row) if row is not None else None

    def get_by_id(self, week_id: str) -> Optional[WeekAsset]:
        with self.backend.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM weeks WHERE week_id = ?",
                (week_id,)
            ).fetchone()
        return _row_to_week(row) if row is not None else None

    def exists(self, week_number: int) -> bool:
        with self.backend.connection() as conn:
            row = conn.execute("SELECT 1 FROM weeks WHERE week_number = ?", (week_number,)).fetchone()
        return row is not None

    def list_all(self, descending: bool = False) -> List[WeekAsset]:
        order = "DESC" if descending else "ASC"
        with self.backend.connection() as conn:
            rows = conn.execute(f"SELECT {_COLUMNS} FROM weeks ORDER BY week_number {order}").fetchall()
        return [_row_to_week(row) for row in rows]

    def count(self) -> int:
        with self.backend.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM weeks").fetchone()[0]

    def find_owner(self, file_id: str) -> Optional[WeekAsset]:
        """
        Return the week that references file_id, if any.
        """
        for week in self.list_all():
            if week.references(file_id):
                return week
        return None

    def delete(self, week_id: str) -> Optional[WeekAsset]:
        """
        Delete a week by id and return the row as it was, or None if absent.
        """
        with self.backend.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(f"SELECT {_COLUMNS} FROM weeks WHERE week_id = ?", (week_id,)).fetchone()
            if row is None:
                conn.rollback()
                return None
            conn.execute("DELETE FROM weeks WHERE week_id = ?", (week_id,))
            conn.commit()

        week = _row_to_week(row)
        logger.debug(f"Deleted week {week.week_number} [week_id={week_id}]")
        return week

    def _mutate(self, week_number: int, change: Callable[[WeekAsset], WeekAsset]) -> WeekAsset:
        with self.backend.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    f"SELECT {_COLUMNS} FROM weeks WHERE week_number = ?",
                    (week_number,)
                ).fetchone()
                if row is None:
                    raise NotFoundError(f"Week {week_number} not found")

                updated = change(_row_to_week(row))
                conn.execute(
                    """
                    UPDATE weeks SET summary = ?, photos = ?, report_file_id = ?, updated_at = ?
                    WHERE week_id = ?
                    """,
                    (
                        updated.summary,
                        json.dumps(list(updated.photo_file_ids)),
                        updated.report_file_id,
                        updated.updated_at.isoformat(),
                        updated.week_id,
                    )
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return updated

    def append_photos(
        self,
        week_number: int,
        file_ids: Iterable[str],
        check: Optional[Callable[[WeekAsset], None]] = None,
    ) -> WeekAsset:
        """
        Append photo references to a week.

        Args:
            week_number: Week to update
            file_ids: Photo file-ids in display order
            check: Optional validation run on the current row before the
                update; raising from it aborts the transaction
        """
        new_ids = tuple(file_ids)

        def change(week: WeekAsset) -> WeekAsset:
            if check is not None:
                check(week)
            return WeekAsset(
                week_id=week.week_id,
                week_number=week.week_number,
                summary=week.summary,
                photo_file_ids=week.photo_file_ids + new_ids,
                report_file_id=week.report_file_id,
                created_at=week.created_at,
                updated_at=utc_now(),
            )

        return self._mutate(week_number, change)

    def set_report(
        self,
        week_number: int,
        file_id: Optional[str],
        check: Optional[Callable[[WeekAsset], None]] = None,
    ) -> Tuple[WeekAsset, Optional[str]]:
        """
        Point a week at a new report file.

        Returns:
            Tuple of (updated week, previous report file-id or None)
        """
        previous: List[Optional[str]] = []

        def change(week: WeekAsset) -> WeekAsset:
            if check is not None:
                check(week)
            previous.append(week.report_file_id)
            return WeekAsset(
                week_id=week.week_id,
                week_number=week.week_number,
                summary=week.summary,
                photo_file_ids=week.photo_file_ids,
                report_file_id=file_id,
                created_at=week.created_at,
                updated_at=utc_now(),
            )

        updated = self._mutate(week_number, change)
        return updated, previous[0]

    def remove_references(self, week_number: int, file_ids: Iterable[str]) -> WeekAsset:
        """
        Drop the given file-ids from a week's photos and report.

        Raises:
            NotFoundError: If the week does not exist or references none of file_ids
        """
        targets = set(file_ids)

        def change(week: WeekAsset) -> WeekAsset:
            if not any(week.references(file_id) for file_id in targets):
                raise NotFoundError(
                    f"Week {week_number} does not reference {', '.join(sorted(targets))}"
                )
            return WeekAsset(
                week_id=week.week_id,
                week_number=week.week_number,
                summary=week.summary,
                photo_file_ids=tuple(fid for fid in week.photo_file_ids if fid not in targets),
                report_file_id=None if week.report_file_id in targets else week.report_file_id,
                created_at=week.created_at,
                updated_at=utc_now(),
            )

        return self._mutate(week_number, change)

    def update_summary(self, week_number: int, summary: str) -> WeekAsset:
        def change(week: WeekAsset) -> WeekAsset:
            return WeekAsset(
                week_id=week.week_id,
                week_number=week.week_number,
                summary=summary,
                photo_file_ids=week.photo_file_ids,
                report_file_id=week.report_file_id,
                created_at=week.created_at,
                updated_at=utc_now(),
            )

        return self._mutate(week_number, change)

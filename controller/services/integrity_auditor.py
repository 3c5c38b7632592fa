"""Integrity auditor: cross-checks week references, file records and chunk sets."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from common.constants import FILE_TYPE_CAREER_GUIDANCE
from common.logging_config import get_logger
from common.types import IntegrityWarning
from controller.repositories.week_repository import WeekRepository
from controller.utils import utc_now
from storage.chunk_store import ChunkStore
from storage.exceptions import NotFoundError, StorageException
from storage.file_catalog import FileCatalog

logger = get_logger(__name__)


@dataclass
class AuditReport:
    """
    Findings of one audit run, plus the repair actions taken (if any).
    """
    generated_at: datetime
    total_files: int = 0
    valid_files: int = 0
    incomplete_files: List[str] = field(default_factory=list)
    stray_chunk_sets: List[str] = field(default_factory=list)
    orphaned_files: List[str] = field(default_factory=list)
    dangling_references: Dict[int, List[str]] = field(default_factory=dict)
    total_weeks: int = 0
    valid_weeks: int = 0
    invalid_weeks: List[int] = field(default_factory=list)
    warnings: List[IntegrityWarning] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)

    @property
    def health_score(self) -> int:
        """
        Percentage of valid files and valid weeks over all files and weeks.
        An empty store scores 100.
        """
        total_checks = self.total_files + self.total_weeks
        if total_checks == 0:
            return 100
        return round((self.valid_files + self.valid_weeks) / total_checks * 100)

    @property
    def dangling_count(self) -> int:
        return sum(len(file_ids) for file_ids in self.dangling_references.values())

    @property
    def healthy(self) -> bool:
        return not self.warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "health_score": self.health_score,
            "stats": {
                "total_files": self.total_files,
                "valid_files": self.valid_files,
                "incomplete_files": len(self.incomplete_files),
                "stray_chunk_sets": len(self.stray_chunk_sets),
                "orphaned_files": len(self.orphaned_files),
                "dangling_references": self.dangling_count,
                "total_weeks": self.total_weeks,
                "valid_weeks": self.valid_weeks,
                "invalid_weeks": len(self.invalid_weeks),
            },
            "incomplete_files": list(self.incomplete_files),
            "stray_chunk_sets": list(self.stray_chunk_sets),
            "orphaned_files": list(self.orphaned_files),
            "dangling_references": {str(n): list(ids) for n, ids in self.dangling_references.items()},
            "invalid_weeks": list(self.invalid_weeks),
            "warnings": [warning.to_dict() for warning in self.warnings],
            "actions": list(self.actions),
        }


class IntegrityAuditor:
    """
    Detects inconsistencies between weeks, file records and chunks.

    audit() only reads. repair() performs exactly the actions it is asked for.
    """

    def __init__(self, chunk_store: ChunkStore, catalog: FileCatalog, weeks: WeekRepository):
        self.chunk_store = chunk_store
        self.catalog = catalog
        self.weeks = weeks

    def audit(self) -> AuditReport:
        """
        Run every check and return the findings without changing anything.
        """
        report = AuditReport(generated_at=utc_now())

        records = list(self.catalog.iter_all())
        record_ids = {record.file_id for record in records}
        report.total_files = len(records)

        incomplete = set()
        for record in records:
            layout = self.chunk_store.layout(record.file_id)
            if layout.is_contiguous and layout.total_length == record.length:
                report.valid_files += 1
                continue

            incomplete.add(record.file_id)
            report.incomplete_files.append(record.file_id)
            report.warnings.append(IntegrityWarning(
                kind="incomplete-file",
                message=f"File {record.file_id} ({record.filename}) has an incomplete chunk set",
                details={
                    "file_id": record.file_id,
                    "declared_length": record.length,
                    "stored_length": layout.total_length,
                    "chunk_count": layout.chunk_count,
                    "missing_chunks": layout.missing_indexes(),
                },
            ))

        for file_id in self.chunk_store.list_file_ids():
            if file_id not in record_ids:
                report.stray_chunk_sets.append(file_id)
                report.warnings.append(IntegrityWarning(
                    kind="stray-chunks",
                    message=f"Chunks stored for {file_id} without a file record",
                    details={"file_id": file_id, "chunk_count": self.chunk_store.count_chunks(file_id)},
                ))

        referenced = set()
        weeks = self.weeks.list_all()
        report.total_weeks = len(weeks)
        for week in weeks:
            referenced.update(week.file_ids)
            missing = [file_id for file_id in week.file_ids if file_id not in record_ids]
            broken = [file_id for file_id in week.file_ids if file_id in incomplete]

            if missing:
                report.dangling_references[week.week_number] = missing
                for file_id in missing:
                    report.warnings.append(IntegrityWarning(
                        kind="dangling-reference",
                        message=f"Week {week.week_number} references missing {week.role_of(file_id)} {file_id}",
                        details={"week_number": week.week_number, "file_id": file_id, "role": week.role_of(file_id)},
                    ))

            if missing or broken:
                report.invalid_weeks.append(week.week_number)
            else:
                report.valid_weeks += 1

        for record in records:
            if record.file_id in referenced:
                continue
            if record.metadata.get("fileType") == FILE_TYPE_CAREER_GUIDANCE:
                continue
            report.orphaned_files.append(record.file_id)
            report.warnings.append(IntegrityWarning(
                kind="orphaned-file",
                message=f"File {record.filename} is not referenced by any week",
                details={"file_id": record.file_id, "filename": record.filename},
            ))

        logger.info(
            f"Integrity audit: {report.valid_files}/{report.total_files} files valid, "
            f"{report.valid_weeks}/{report.total_weeks} weeks valid, "
            f"{len(report.orphaned_files)} orphaned, {len(report.stray_chunk_sets)} stray, "
            f"{report.dangling_count} dangling, health={report.health_score}%"
        )
        return report

    def repair(
        self,
        strip_dangling: bool = False,
        delete_orphans: bool = False,
        caller: Optional[str] = None,
    ) -> AuditReport:
        """
        Audit, then apply the requested repairs.

        Args:
            strip_dangling: Remove references to missing files from weeks
            delete_orphans: Delete unreferenced files and stray chunk sets
            caller: Caller identity, used for audit logging only

        Returns:
            The audit findings with the actions taken listed in ``actions``
        """
        report = self.audit()
        who = caller or "anonymous"

        if strip_dangling:
            for week_number, file_ids in report.dangling_references.items():
                try:
                    self.weeks.remove_references(week_number, file_ids)
                except NotFoundError as e:
                    logger.warning(f"Skipped stripping week {week_number}: {e}")
                    continue
                action = f"stripped {len(file_ids)} dangling references from week {week_number}"
                report.actions.append(action)
                logger.info(f"Repair: {action} [caller={who}]")

        if delete_orphans:
            for file_id in report.orphaned_files:
                try:
                    self.catalog.remove(file_id)
                    removed = self.chunk_store.delete_all(file_id)
                except StorageException as e:
                    logger.error(f"Repair: failed to delete orphaned file {file_id}: {e}", exc_info=True)
                    continue
                action = f"deleted orphaned file {file_id} ({removed} chunks)"
                report.actions.append(action)
                logger.info(f"Repair: {action} [caller={who}]")

            for file_id in report.stray_chunk_sets:
                try:
                    removed = self.chunk_store.delete_all(file_id)
                except StorageException as e:
                    logger.error(f"Repair: failed to delete stray chunks of {file_id}: {e}", exc_info=True)
                    continue
                action = f"deleted {removed} stray chunks of {file_id}"
                report.actions.append(action)
                logger.info(f"Repair: {action} [caller={who}]")

        if not report.actions:
            logger.info(f"Repair requested but nothing to do [caller={who}]")
        return report

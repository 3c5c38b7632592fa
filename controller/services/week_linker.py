"""Week asset service: creates, mutates and deletes weeks together with their files."""

import asyncio
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from common.constants import (
    CAREER_GUIDANCE_WEEK,
    DEFAULT_MAX_PHOTOS,
    DEFAULT_MAX_UPLOAD_BYTES,
    FILE_TYPE_CAREER_GUIDANCE,
    FILE_TYPE_PHOTO,
    FILE_TYPE_REPORT,
    REPORT_CONTENT_TYPES,
)
from common.logging_config import get_logger
from common.types import AssetUpload, DeletionReport, FileCleanup, FileRecord, IntegrityWarning, WeekAsset
from controller.repositories.week_repository import WeekRepository
from controller.utils import generate_uuid, utc_now
from storage.chunk_store import ChunkStore, iter_source
from storage.exceptions import (
    DuplicateError,
    InvalidRequestError,
    NotFoundError,
    StorageException,
    UploadTooLargeError,
)
from storage.file_catalog import FileCatalog

logger = get_logger(__name__)


class WeekAssetLinker:
    """
    The only component that creates or removes references between weeks and
    stored files. Upload failures roll back every file committed by the call.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        catalog: FileCatalog,
        weeks: WeekRepository,
        max_photos: int = DEFAULT_MAX_PHOTOS,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        self.chunk_store = chunk_store
        self.catalog = catalog
        self.weeks = weeks
        self.max_photos = max_photos
        self.max_upload_bytes = max_upload_bytes

    # Validation

    @staticmethod
    def _validate_week_number(week_number: int) -> int:
        if isinstance(week_number, bool) or not isinstance(week_number, int) or week_number < 0:
            raise InvalidRequestError(f"Week number must be a non-negative integer, got {week_number!r}")
        return week_number

    @staticmethod
    def _validate_summary(summary: str) -> str:
        if summary is None or not str(summary).strip():
            raise InvalidRequestError("Summary is required")
        return str(summary).strip()

    def _validate_upload(self, upload: AssetUpload, role: str) -> None:
        if not upload.filename:
            raise InvalidRequestError(f"A {role} upload is missing its filename")

        content_type = (upload.content_type or "").lower()
        if role == FILE_TYPE_PHOTO and not content_type.startswith("image/"):
            raise InvalidRequestError(
                f"Photo {upload.filename!r} must be an image, got {upload.content_type!r}"
            )
        if role == FILE_TYPE_REPORT and content_type not in REPORT_CONTENT_TYPES:
            raise InvalidRequestError(
                f"Report {upload.filename!r} must be a PDF or presentation, got {upload.content_type!r}"
            )

        if upload.size_hint is not None and upload.size_hint > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"{upload.filename!r} is {upload.size_hint} bytes, limit is {self.max_upload_bytes}"
            )

    def _check_photo_limit(self, existing: int, adding: int) -> None:
        if existing + adding > self.max_photos:
            raise InvalidRequestError(
                f"A week can hold at most {self.max_photos} photos ({existing} present, {adding} added)"
            )

    # Uploads

    async def _bounded(self, upload: AssetUpload) -> AsyncIterator[bytes]:
        seen = 0
        async for piece in iter_source(upload.source, self.chunk_store.chunk_size):
            seen += len(piece)
            if seen > self.max_upload_bytes:
                raise UploadTooLargeError(
                    f"{upload.filename!r} exceeds the upload limit of {self.max_upload_bytes} bytes"
                )
            yield piece

    async def _upload(
        self,
        upload: AssetUpload,
        week_number: int,
        role: str,
        deadline: Optional[float],
    ) -> FileRecord:
        """
        Store the bytes of one upload and register its metadata record.

        Chunks are removed again if registration fails.
        """
        file_id = generate_uuid()
        length = await self.chunk_store.store(file_id, self._bounded(upload), deadline=deadline)

        file_type = FILE_TYPE_CAREER_GUIDANCE if week_number == CAREER_GUIDANCE_WEEK else role
        try:
            record = self.catalog.register(
                file_id=file_id,
                filename=upload.filename,
                content_type=upload.content_type,
                length=length,
                metadata={"weekNumber": week_number, "fileType": file_type, "role": role},
                chunk_size=self.chunk_store.chunk_size,
            )
        except (Exception, asyncio.CancelledError):
            self._discard_files([file_id], f"registration of {upload.filename!r} failed")
            raise

        logger.info(f"Stored {role} {upload.filename!r} for week {week_number} [file_id={file_id}, bytes={length}]")
        return record

    async def _upload_all(
        self,
        uploads: Sequence[Tuple[AssetUpload, str]],
        week_number: int,
        committed: List[str],
        deadline: Optional[float],
    ) -> List[FileRecord]:
        records = []
        for upload, role in uploads:
            record = await self._upload(upload, week_number, role, deadline)
            committed.append(record.file_id)
            records.append(record)
        return records

    def _discard_files(self, file_ids: Sequence[str], reason: str) -> None:
        """
        Remove files committed by a failed operation. Errors are logged, not raised.
        """
        for file_id in file_ids:
            try:
                self.catalog.remove(file_id)
                self.chunk_store.delete_all(file_id)
                logger.info(f"Rolled back file {file_id} ({reason})")
            except StorageException as e:
                logger.error(f"Rollback of file {file_id} failed ({reason}): {e}", exc_info=True)

    # Reads

    def get_week(self, week_number: int) -> WeekAsset:
        week = self.weeks.get_by_number(week_number)
        if week is None:
            raise NotFoundError(f"Week {week_number} not found")
        return week

    def get_week_by_id(self, week_id: str) -> WeekAsset:
        week = self.weeks.get_by_id(week_id)
        if week is None:
            raise NotFoundError(f"Week not found: {week_id}")
        return week

    def list_weeks(self, descending: bool = False) -> List[WeekAsset]:
        return self.weeks.list_all(descending=descending)

    def resolve_file_for_week(self, week_number: int, file_id: str) -> FileRecord:
        """
        Look up a file through the week that references it.

        Raises:
            NotFoundError: If the week does not exist, does not reference
                file_id, or references it but the record is gone
        """
        week = self.get_week(week_number)
        if not week.references(file_id):
            raise NotFoundError(f"File {file_id} is not part of week {week_number}")

        record = self.catalog.find(file_id)
        if record is None:
            logger.warning(
                f"Dangling reference: week {week_number} lists {week.role_of(file_id)} {file_id} "
                f"but no file record exists"
            )
            raise NotFoundError(f"File not found: {file_id}")
        return record

    # Mutations

    async def create_week(
        self,
        week_number: int,
        summary: str,
        photos: Sequence[AssetUpload] = (),
        report: Optional[AssetUpload] = None,
        caller: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> WeekAsset:
        """
        Upload a week's files and create the week record.

        Args:
            week_number: Unique, non-negative week number (0 is career guidance)
            summary: Non-empty description of the week
            photos: Photo uploads in display order
            report: Optional PDF or presentation
            caller: Caller identity, used for audit logging only
            deadline: Absolute time.monotonic() deadline for the uploads

        Returns:
            The created WeekAsset

        Raises:
            DuplicateError: If the week already exists
            InvalidRequestError: If the week data or an upload is invalid
            UploadTooLargeError: If an upload exceeds the size limit
        """
        self._validate_week_number(week_number)
        summary = self._validate_summary(summary)
        self._check_photo_limit(0, len(photos))
        for upload in photos:
            self._validate_upload(upload, FILE_TYPE_PHOTO)
        if report is not None:
            self._validate_upload(report, FILE_TYPE_REPORT)

        if self.weeks.exists(week_number):
            raise DuplicateError(f"Week {week_number} already exists")

        uploads = [(upload, FILE_TYPE_PHOTO) for upload in photos]
        if report is not None:
            uploads.append((report, FILE_TYPE_REPORT))

        committed: List[str] = []
        try:
            records = await self._upload_all(uploads, week_number, committed, deadline)
            photo_ids = tuple(record.file_id for record in records[:len(photos)])
            report_id = records[len(photos)].file_id if report is not None else None

            now = utc_now()
            week = self.weeks.insert(WeekAsset(
                week_id=generate_uuid(),
                week_number=week_number,
                summary=summary,
                photo_file_ids=photo_ids,
                report_file_id=report_id,
                created_at=now,
                updated_at=now,
            ))
        except (Exception, asyncio.CancelledError) as e:
            logger.warning(
                f"Creating week {week_number} failed, rolling back {len(committed)} files: "
                f"{type(e).__name__}: {e} [caller={caller or 'anonymous'}]"
            )
            self._discard_files(committed, f"week {week_number} creation failed")
            raise

        logger.info(
            f"Created week {week_number} with {len(week.photo_file_ids)} photos"
            f"{' and a report' if week.report_file_id else ''} "
            f"[week_id={week.week_id}] [caller={caller or 'anonymous'}]"
        )
        return week

    async def add_photos(
        self,
        week_number: int,
        photos: Sequence[AssetUpload],
        caller: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> WeekAsset:
        """
        Upload more photos and append them to an existing week.
        """
        if not photos:
            raise InvalidRequestError("At least one photo is required")
        for upload in photos:
            self._validate_upload(upload, FILE_TYPE_PHOTO)

        current = self.get_week(week_number)
        self._check_photo_limit(len(current.photo_file_ids), len(photos))

        committed: List[str] = []
        try:
            records = await self._upload_all(
                [(upload, FILE_TYPE_PHOTO) for upload in photos], week_number, committed, deadline
            )
            week = self.weeks.append_photos(
                week_number,
                [record.file_id for record in records],
                check=lambda w: self._check_photo_limit(len(w.photo_file_ids), len(records)),
            )
        except (Exception, asyncio.CancelledError):
            self._discard_files(committed, f"adding photos to week {week_number} failed")
            raise

        logger.info(
            f"Added {len(photos)} photos to week {week_number} [caller={caller or 'anonymous'}]"
        )
        return week

    async def replace_report(
        self,
        week_number: int,
        report: AssetUpload,
        caller: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> Tuple[WeekAsset, Optional[FileCleanup]]:
        """
        Upload a new report, point the week at it, then remove the old one.

        Returns:
            Tuple of (updated week, cleanup outcome for the previous report or None)
        """
        self._validate_upload(report, FILE_TYPE_REPORT)
        self.get_week(week_number)

        committed: List[str] = []
        try:
            records = await self._upload_all([(report, FILE_TYPE_REPORT)], week_number, committed, deadline)
            week, previous = self.weeks.set_report(week_number, records[0].file_id)
        except (Exception, asyncio.CancelledError):
            self._discard_files(committed, f"replacing the report of week {week_number} failed")
            raise

        cleanup = None
        if previous:
            cleanup, warning = self._remove_file(previous, FILE_TYPE_REPORT)
            if warning is not None:
                logger.warning(f"Previous report of week {week_number} not cleaned up: {warning.message}")

        logger.info(
            f"Replaced report of week {week_number} with {week.report_file_id} "
            f"[caller={caller or 'anonymous'}]"
        )
        return week, cleanup

    def update_summary(self, week_number: int, summary: str, caller: Optional[str] = None) -> WeekAsset:
        summary = self._validate_summary(summary)
        week = self.weeks.update_summary(week_number, summary)
        logger.info(f"Updated summary of week {week_number} [caller={caller or 'anonymous'}]")
        return week

    def attach_file(
        self,
        week_number: int,
        file_id: str,
        role: str,
        caller: Optional[str] = None,
    ) -> WeekAsset:
        """
        Link a file that is already stored to a week.

        Raises:
            NotFoundError: If the week or the file does not exist
            DuplicateError: If the file is already referenced by a week
            InvalidRequestError: If the role, content type or photo limit is violated
        """
        if role not in (FILE_TYPE_PHOTO, FILE_TYPE_REPORT):
            raise InvalidRequestError(f"Role must be '{FILE_TYPE_PHOTO}' or '{FILE_TYPE_REPORT}', got {role!r}")

        self.get_week(week_number)
        record = self.catalog.lookup(file_id)
        if self.chunk_store.layout(file_id).total_length != record.length:
            raise InvalidRequestError(f"File {file_id} is incomplete and cannot be attached")

        owner = self.weeks.find_owner(file_id)
        if owner is not None:
            raise DuplicateError(f"File {file_id} is already part of week {owner.week_number}")

        self._validate_upload(
            AssetUpload(filename=record.filename, content_type=record.content_type, source=b""),
            role,
        )

        if role == FILE_TYPE_PHOTO:
            week = self.weeks.append_photos(
                week_number,
                [file_id],
                check=lambda w: self._check_photo_limit(len(w.photo_file_ids), 1),
            )
        else:
            def no_report(w: WeekAsset) -> None:
                if w.report_file_id:
                    raise InvalidRequestError(f"Week {week_number} already has a report")

            week, _ = self.weeks.set_report(week_number, file_id, check=no_report)

        logger.info(f"Attached {role} {file_id} to week {week_number} [caller={caller or 'anonymous'}]")
        return week

    def _remove_file(self, file_id: str, role: str) -> Tuple[FileCleanup, Optional[IntegrityWarning]]:
        """
        Remove one file's record and chunks, reporting rather than raising.
        """
        try:
            had_record = self.catalog.remove(file_id)
            self.chunk_store.delete_all(file_id)
        except StorageException as e:
            logger.error(f"Failed to delete {role} {file_id}: {e}", exc_info=True)
            return (
                FileCleanup(file_id=file_id, role=role, removed=False, error=str(e)),
                IntegrityWarning(
                    kind="cleanup-failed",
                    message=f"Could not delete {role} {file_id}: {e}",
                    details={"file_id": file_id, "role": role},
                ),
            )

        if not had_record:
            logger.warning(f"Referenced {role} {file_id} had no file record")
            return (
                FileCleanup(file_id=file_id, role=role, removed=False, error="file record not found"),
                IntegrityWarning(
                    kind="missing-file",
                    message=f"Referenced {role} {file_id} was already missing",
                    details={"file_id": file_id, "role": role},
                ),
            )

        return FileCleanup(file_id=file_id, role=role, removed=True), None

    def _cleanup_week_files(self, week: WeekAsset, file_ids: Sequence[str]) -> DeletionReport:
        report = DeletionReport(week_id=week.week_id, week_number=week.week_number, summary=week.summary)
        for file_id in file_ids:
            cleanup, warning = self._remove_file(file_id, week.role_of(file_id) or FILE_TYPE_PHOTO)
            if cleanup.removed:
                report.removed.append(cleanup)
            else:
                report.failed.append(cleanup)
            if warning is not None:
                report.warnings.append(warning)
        return report

    def remove_file(self, week_number: int, file_id: str, caller: Optional[str] = None) -> DeletionReport:
        """
        Detach one file from a week and delete it.
        """
        before = self.get_week(week_number)
        if not before.references(file_id):
            raise NotFoundError(f"File {file_id} is not part of week {week_number}")

        self.weeks.remove_references(week_number, [file_id])
        report = self._cleanup_week_files(before, [file_id])

        logger.info(
            f"Removed {before.role_of(file_id)} {file_id} from week {week_number} "
            f"(complete={report.complete}) [caller={caller or 'anonymous'}]"
        )
        return report

    def delete_week(self, week_number: int, caller: Optional[str] = None) -> DeletionReport:
        """
        Delete a week record, then every file it references.

        The week record is removed even if some of its files cannot be;
        those are listed as failures in the returned report.
        """
        return self._delete(self.get_week(week_number), caller)

    def delete_week_by_id(self, week_id: str, caller: Optional[str] = None) -> DeletionReport:
        return self._delete(self.get_week_by_id(week_id), caller)

    def _delete(self, week: WeekAsset, caller: Optional[str]) -> DeletionReport:
        deleted = self.weeks.delete(week.week_id)
        if deleted is None:
            raise NotFoundError(f"Week {week.week_number} not found")

        report = self._cleanup_week_files(deleted, deleted.file_ids)

        if report.failed:
            logger.warning(
                f"Deleted week {deleted.week_number} with {len(report.failed)} cleanup failures: "
                f"{[item.file_id for item in report.failed]} [caller={caller or 'anonymous'}]"
            )
        else:
            logger.info(
                f"Deleted week {deleted.week_number} and {len(report.removed)} files "
                f"[caller={caller or 'anonymous'}]"
            )
        return report

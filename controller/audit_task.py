"""Background task that periodically audits storage integrity."""

import asyncio
from typing import Optional

from common.constants import DEFAULT_AUDIT_INTERVAL_SECONDS
from common.logging_config import get_logger
from controller.services.integrity_auditor import AuditReport, IntegrityAuditor

logger = get_logger(__name__)


class IntegritySweepTask:
    """
    Background task that runs a read-only integrity audit on an interval.

    It only logs findings; repairs are always requested explicitly.
    """

    def __init__(self, auditor: IntegrityAuditor, interval_seconds: int = DEFAULT_AUDIT_INTERVAL_SECONDS):
        """
        Initialize sweep task.

        Args:
            auditor: Auditor to run
            interval_seconds: Time between audits (default 6 hours)
        """
        self.auditor = auditor
        self.interval_seconds = interval_seconds
        self.last_report: Optional[AuditReport] = None
        self._running = False
        self._task = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background sweep."""
        if self._running:
            logger.warning("Integrity sweep already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started integrity sweep (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background sweep."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped integrity sweep")

    async def _run(self) -> None:
        """Main loop for the sweep."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.sweep_once()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in integrity sweep: {e}", exc_info=True)

    async def sweep_once(self) -> AuditReport:
        """Run one audit off the event loop and log its summary."""
        loop = asyncio.get_running_loop()
        report = await loop.run_in_executor(None, self.auditor.audit)
        self.last_report = report

        if report.healthy:
            logger.info(f"Integrity sweep clean: health={report.health_score}%")
        else:
            logger.warning(
                f"Integrity sweep found {len(report.warnings)} issues: health={report.health_score}%, "
                f"dangling={report.dangling_count}, orphaned={len(report.orphaned_files)}, "
                f"incomplete={len(report.incomplete_files)}, stray={len(report.stray_chunk_sets)}"
            )
        return report

"""Integrity audit and repair API routes."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends

from controller.auth import get_caller
from controller.dependencies import get_auditor
from controller.schemas.admin import AuditResponse, RepairRequest
from controller.services.integrity_auditor import IntegrityAuditor

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/audit", response_model=AuditResponse)
async def run_audit(auditor: IntegrityAuditor = Depends(get_auditor)):
    """
    Run a read-only integrity audit.

    Returns:
        - health_score, stats, and the lists of inconsistent files and weeks
    """
    loop = asyncio.get_running_loop()
    report = await loop.run_in_executor(None, auditor.audit)
    return report.to_dict()


@router.post("/repair", response_model=AuditResponse)
async def run_repair(
    request: RepairRequest,
    auditor: IntegrityAuditor = Depends(get_auditor),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Audit, then apply the requested repairs.

    Parameters:
        - strip_dangling: Remove week references to missing files
        - delete_orphans: Delete unreferenced files and stray chunk sets

    Returns:
        - The audit findings and the list of actions taken
    """
    loop = asyncio.get_running_loop()
    report = await loop.run_in_executor(
        None,
        lambda: auditor.repair(
            strip_dangling=request.strip_dangling,
            delete_orphans=request.delete_orphans,
            caller=caller,
        ),
    )
    return report.to_dict()

from fastapi import APIRouter, Depends, Body, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional
import logging

from ....core.database import get_async_db
from ....api.deps import get_current_active_user
from ....models.user import User
from ....schemas.cheating_log import CheatingLogReport, MissingIdentityError, serialize_cheating_log
from ....services.cheating_log_service import ViolationAggregator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
@router.post("/", include_in_schema=False)
async def save_cheating_log(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Merge a violation report (count deltas plus evidence) into the exam/student log"""
    try:
        report = CheatingLogReport.from_payload(payload)
    except MissingIdentityError as e:
        logger.info(f"Rejected cheating log report from user={current_user.id}: {e}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": str(e)}
        )

    aggregator = ViolationAggregator(db)
    log = await aggregator.record_report(report)
    return {"success": True, "data": serialize_cheating_log(log)}


@router.get("/detailed/{exam_id}")
async def get_detailed_cheating_logs(
    exam_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Logs for an exam plus totals across all students"""
    aggregator = ViolationAggregator(db)
    detailed = await aggregator.detailed(exam_id.strip())
    return {
        "success": True,
        "data": {
            "logs": [serialize_cheating_log(log) for log in detailed["logs"]],
            "analytics": detailed["analytics"],
        }
    }


@router.get("/{exam_id}")
async def get_cheating_logs_by_exam(
    exam_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """All logs for an exam, most recently updated first"""
    aggregator = ViolationAggregator(db)
    logs = await aggregator.list_by_exam(exam_id.strip())
    return {
        "success": True,
        "count": len(logs),
        "data": [serialize_cheating_log(log) for log in logs],
    }

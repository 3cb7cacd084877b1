"""
Monitoring Router

質問の生成元・フォールバック・直近のエラーを確認する。
"""

from fastapi import APIRouter

from interview_api.utils import telemetry

router = APIRouter(prefix="/api/monitoring", tags=["monitoring"])


@router.get("/stats")
async def get_stats():
    return telemetry.snapshot()


@router.get("/errors")
async def get_errors(limit: int = telemetry.MAX_RECENT_ERRORS):
    errors = telemetry.recent_errors(limit)
    return {"errors": errors, "count": len(errors)}


@router.delete("/errors")
async def clear_errors():
    return {"cleared": telemetry.clear_errors()}

from fastapi import APIRouter

from interview_api.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check():
    # キー未設定でもルールベースの質問で動作するので ready のまま
    return {
        "status": "ready",
        "llm_configured": bool(settings.gemini_api_key),
        "cache_configured": bool(settings.redis_url),
    }

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from interview_api.config import settings
from interview_api.limiter import limiter
from interview_api.routers import essay, health, interview, monitoring, ocr, session, speech
from interview_api.utils.llm import close_clients
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # 音声入力のためマイクは自サイトのみ許可
        response.headers["Permissions-Policy"] = "camera=(), microphone=(self), geolocation=()"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response


app = FastAPI(
    title=settings.app_name,
    description="明和高校附属中学校 面接練習のバックエンドAPI",
    version="0.1.0",
)

# Rate limiter state (default_limits are applied by SlowAPIMiddleware)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.on_event("startup")
async def startup_event():
    """Log security-critical configuration on startup."""
    logger.info(f"[Security] CORS allowed origins: {settings.cors_origins}")
    logger.info(f"[Security] Frontend URL: {settings.frontend_url}")
    if not settings.gemini_api_key:
        logger.warning("[LLM] GEMINI_API_KEY が未設定のため、質問はルールベースで生成されます")
    if not settings.redis_url:
        logger.info("[Cache] REDIS_URL 未設定: 質問キャッシュ無効、セッションはプロセス内のみ")


@app.on_event("shutdown")
async def shutdown_event():
    await close_clients()


# Include routers
app.include_router(health.router, tags=["health"])
# /api/interview/session を /api/interview より先に登録する
app.include_router(session.router)
app.include_router(interview.router)
app.include_router(essay.router)
app.include_router(ocr.router)
app.include_router(speech.router)
app.include_router(monitoring.router)


@app.get("/")
async def root():
    return {"message": settings.app_name, "version": "0.1.0"}

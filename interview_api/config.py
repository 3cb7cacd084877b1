from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, model_validator, field_validator
from functools import lru_cache
from pathlib import Path


class Settings(BaseSettings):
    """
    明和中面接練習 API 設定

    全ての設定は環境変数から読み込まれます。
    環境変数が設定されていない場合はデフォルト値が使用されます。

    設定方法:
      1. .env.local (推奨) または .env ファイルに設定を記述
      2. 環境変数として直接設定
    """

    # ===== アプリケーション =====
    app_name: str = "明和中面接練習 API"
    debug: bool = False

    # ===== CORS =====
    # Override via CORS_ORIGINS env var (JSON array string or comma-separated)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        validation_alias=AliasChoices("CORS_ORIGINS"),
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """
        Support multiple formats for CORS_ORIGINS:
          - JSON array string: '["https://a.com","https://b.com"]'
          - Comma-separated: "https://a.com,https://b.com"
        """
        if v is None:
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                return v
            return [item.strip() for item in s.split(",") if item.strip()]
        return v

    # ===== フロントエンド =====
    frontend_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("FRONTEND_URL", "NEXT_PUBLIC_APP_URL"),
    )

    # ===== API キー =====
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"),
    )
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # ===== キャッシュ =====
    # 環境変数: REDIS_URL（未設定ならキャッシュ・セッション永続化は無効）
    redis_url: str = ""

    # ===== LLM モデル設定 =====
    # Gemini モデル（面接質問生成のメイン）
    # 環境変数: GEMINI_MODEL
    gemini_model: str = "gemini-2.5-flash"

    # Gemini 高精度モデル（最終評価・OCRに使用）
    # 環境変数: GEMINI_PRO_MODEL
    gemini_pro_model: str = "gemini-2.5-pro"

    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # 面接質問は短文のため出力トークンを絞る
    gemini_max_output_tokens: int = 150
    gemini_temperature: float = 0.3

    # 503(過負荷)時は gemini_overload_delay_seconds 待機、
    # それ以外は (試行回数) * gemini_retry_delay_seconds 待機
    gemini_max_retries: int = 3
    gemini_retry_delay_seconds: float = 2.0
    gemini_overload_delay_seconds: float = 5.0

    # フォールバック用
    # 環境変数: CLAUDE_MODEL / OPENAI_MODEL
    claude_model: str = "claude-haiku-4-5-20251001"
    openai_model: str = "gpt-4o-mini"

    # ===== 機能別モデル設定 =====
    # 各機能で使用するLLMモデルティア（gemini-flash / gemini-pro / openai / claude）
    model_interview: str = "gemini-flash"           # MODEL_INTERVIEW - 面接質問生成
    model_evaluation: str = "gemini-flash"          # MODEL_EVALUATION - 回答・最終評価
    model_essay: str = "gemini-flash"               # MODEL_ESSAY - 志願理由書分析
    model_ocr: str = "gemini-flash"                 # MODEL_OCR - 手書き文字認識
    model_speech_correction: str = "openai"         # MODEL_SPEECH_CORRECTION - 音声認識補正

    # LLM タイムアウト（秒）
    # 環境変数: LLM_TIMEOUT_SECONDS
    llm_timeout_seconds: int = 30

    # ===== 面接設定 =====
    # 環境変数: INTERVIEW_DURATION_SECONDS（15分）
    interview_duration_seconds: int = 900
    # 環境変数: INTERVIEW_QUESTION_COUNT
    interview_question_count: int = 10
    # セッションのRedis保持期間（秒）
    session_ttl_seconds: int = 86400
    # 生成質問のキャッシュ期間（秒）
    question_cache_ttl_seconds: int = 3600

    # ===== レート制限 =====
    # 環境変数: API_RATE_LIMIT_PER_HOUR / API_RATE_LIMIT_PER_DAY
    rate_limit_per_hour: int = Field(
        default=100,
        validation_alias=AliasChoices("API_RATE_LIMIT_PER_HOUR", "RATE_LIMIT_PER_HOUR"),
    )
    rate_limit_per_day: int = Field(
        default=300,
        validation_alias=AliasChoices("API_RATE_LIMIT_PER_DAY", "RATE_LIMIT_PER_DAY"),
    )
    # 環境変数: RATE_LIMIT_ENABLED（テストでは false）
    rate_limit_enabled: bool = True

    # ===== OCR =====
    ocr_max_file_bytes: int = 10 * 1024 * 1024
    ocr_confidence_threshold: float = 0.8

    @model_validator(mode="after")
    def validate_cors_origins(self):
        """Validate that CORS origins do not contain wildcard '*'."""
        if "*" in self.cors_origins:
            raise ValueError(
                "CORS wildcard '*' is not allowed. "
                "Please specify explicit origins in CORS_ORIGINS environment variable."
            )
        return self

    model_config = SettingsConfigDict(
        env_file=(
            Path(__file__).parent.parent / ".env.local",
            Path(__file__).parent.parent / ".env",
            ".env",
        ),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

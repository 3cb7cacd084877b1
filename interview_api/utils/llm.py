"""
LLMユーティリティモジュール

複数のLLMプロバイダーを統一的に呼び出すインターフェースを提供:
- Gemini（面接質問生成・評価・OCRのメイン、REST API を httpx で直接呼び出し）
- OpenAI / Claude（Gemini 障害時のフォールバック、音声認識補正）

機能ごとの自動モデル選択、プロバイダー間フォールバック、
サーキットブレーカー、JSON応答の頑健な解析をサポート。
"""

import asyncio
import json
import re
from anthropic import AsyncAnthropic, APIError as AnthropicAPIError
import httpx
import openai
from openai import APIError as OpenAIAPIError
from interview_api.config import settings
from interview_api.utils import telemetry
from interview_api.utils.secure_logger import get_logger, redact_sensitive
from typing import AsyncGenerator, Callable, Literal, Optional
from dataclasses import dataclass, field
from datetime import datetime, timedelta

logger = get_logger(__name__)

# Global clients for connection pooling
_gemini_client: Optional[httpx.AsyncClient] = None
_anthropic_client: Optional[AsyncAnthropic] = None
_openai_client: Optional[openai.AsyncOpenAI] = None

# Lock for client initialization
_client_lock = asyncio.Lock()


@dataclass
class CircuitBreaker:
    """Circuit breaker to prevent cascading failures."""

    failures: int = 0
    last_failure: Optional[datetime] = None
    threshold: int = 3
    reset_timeout: timedelta = field(default_factory=lambda: timedelta(minutes=5))

    def is_open(self) -> bool:
        """Check if circuit is open (should skip this provider)."""
        if self.failures < self.threshold:
            return False
        if (
            self.last_failure
            and datetime.now() - self.last_failure > self.reset_timeout
        ):
            self.reset()
            return False
        return True

    def record_failure(self):
        self.failures += 1
        self.last_failure = datetime.now()

    def record_success(self):
        self.reset()

    def reset(self):
        self.failures = 0
        self.last_failure = None


Provider = Literal["gemini", "openai", "anthropic"]

# Circuit breakers for each provider
_circuits: dict[str, CircuitBreaker] = {
    "gemini": CircuitBreaker(),
    "openai": CircuitBreaker(),
    "anthropic": CircuitBreaker(),
}

# フォールバック順
PROVIDER_ORDER: tuple[Provider, ...] = ("gemini", "openai", "anthropic")


class GeminiAPIError(Exception):
    """Gemini REST API のエラー（HTTPステータス付き）。"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


async def get_gemini_client() -> httpx.AsyncClient:
    """Gemini用httpxクライアントを取得または作成。"""
    global _gemini_client
    async with _client_lock:
        if _gemini_client is None:
            _gemini_client = httpx.AsyncClient(
                base_url=settings.gemini_base_url,
                timeout=settings.llm_timeout_seconds,
            )
        return _gemini_client


async def get_anthropic_client() -> AsyncAnthropic:
    global _anthropic_client
    async with _client_lock:
        if _anthropic_client is None:
            _anthropic_client = AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_timeout_seconds,
            )
        return _anthropic_client


async def get_openai_client() -> openai.AsyncOpenAI:
    global _openai_client
    async with _client_lock:
        if _openai_client is None:
            _openai_client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.llm_timeout_seconds,
            )
        return _openai_client


async def close_clients() -> None:
    """アプリ終了時にコネクションを閉じる。"""
    global _gemini_client, _anthropic_client, _openai_client
    async with _client_lock:
        if _gemini_client is not None:
            await _gemini_client.aclose()
            _gemini_client = None
        if _openai_client is not None:
            await _openai_client.close()
            _openai_client = None
        if _anthropic_client is not None:
            await _anthropic_client.close()
            _anthropic_client = None


LLMModel = Literal["gemini-flash", "gemini-pro", "openai", "claude"]
ResponseFormat = Literal["json_object", "text"]


def _build_model_config() -> dict[str, LLMModel]:
    """Build MODEL_CONFIG from environment-configurable settings."""
    return {
        "interview": settings.model_interview,
        "evaluation": settings.model_evaluation,
        "essay": settings.model_essay,
        "ocr": settings.model_ocr,
        "speech_correction": settings.model_speech_correction,
    }


_model_config: dict[str, LLMModel] | None = None


def get_model_config() -> dict[str, LLMModel]:
    """Get MODEL_CONFIG (lazy-init on first access)."""
    global _model_config
    if _model_config is None:
        _model_config = _build_model_config()
    return _model_config


FEATURE_NAMES = {
    "interview": "面接質問生成",
    "evaluation": "面接評価",
    "essay": "志願理由書分析",
    "ocr": "手書き文字認識",
    "speech_correction": "音声認識補正",
}

PROVIDER_NAMES = {
    "gemini": "Gemini (Google)",
    "openai": "OpenAI",
    "anthropic": "Claude (Anthropic)",
}

# Log markers
SUCCESS = "✅"
WARNING = "⚠️"
ERROR = "❌"
INFO = "ℹ️"


def get_model_display_name(model: str) -> str:
    """モデルIDを読みやすい表示名に変換。"""
    model_lower = model.lower()
    if "gemini" in model_lower:
        if "flash" in model_lower:
            return "Gemini Flash"
        if "pro" in model_lower:
            return "Gemini Pro"
        return f"Gemini ({model})"
    if "claude" in model_lower:
        if "haiku" in model_lower:
            return "Claude Haiku"
        if "sonnet" in model_lower:
            return "Claude Sonnet"
        return f"Claude ({model})"
    if "gpt" in model_lower:
        if "mini" in model_lower:
            return "GPT Mini"
        return f"GPT ({model})"
    return model


def _log(feature: str, message: str, marker: str = ""):
    """機能名プレフィックス付きでログを出力。"""
    feature_ja = FEATURE_NAMES.get(feature, feature)
    if marker:
        logger.info(f"[{feature_ja}] {marker} {message}")
    else:
        logger.info(f"[{feature_ja}] {message}")


def _log_debug(feature: str, message: str) -> None:
    """Debugログ（settings.debug=Trueの時のみ出力）。"""
    if settings.debug:
        _log(feature, message, INFO)


def _provider_for(model: str) -> Provider:
    if model.startswith("gemini"):
        return "gemini"
    if model.startswith("claude"):
        return "anthropic"
    return "openai"


def _has_api_key(provider: str) -> bool:
    return bool(
        {
            "gemini": settings.gemini_api_key,
            "openai": settings.openai_api_key,
            "anthropic": settings.anthropic_api_key,
        }.get(provider)
    )


def _resolve_model_name(provider: str, model: str | None) -> str:
    """モデルティアを実際のモデルIDに変換。別プロバイダー指定時は既定値を使う。"""
    if provider == "gemini":
        if model == "gemini-pro":
            return settings.gemini_pro_model
        if model and model.startswith("gemini-") and model not in ("gemini-flash",):
            return model
        return settings.gemini_model
    if provider == "anthropic":
        if model and model.startswith("claude-"):
            return model
        return settings.claude_model
    if model and model not in ("openai",) and _provider_for(model) == "openai":
        return model
    return settings.openai_model


def _provider_chain(primary: Provider, disable_fallback: bool) -> list[Provider]:
    if disable_fallback:
        return [primary]
    return [primary] + [p for p in PROVIDER_ORDER if p != primary]


@dataclass
class LLMError:
    """LLMエラーの詳細情報。"""

    error_type: str  # "no_api_key", "billing", "rate_limit", "overloaded", "invalid_key", "network", "parse", "unknown"
    message: str  # ユーザー向けメッセージ（日本語）
    detail: str  # ログ用の技術的詳細
    provider: str  # "gemini" / "openai" / "anthropic"
    feature: str

    def to_dict(self) -> dict:
        return {
            "error_type": self.error_type,
            "message": self.message,
            "detail": self.detail,
            "provider": self.provider,
            "feature": self.feature,
        }


@dataclass
class LLMResult:
    """LLM呼び出しの結果。"""

    success: bool
    data: dict | None = None
    error: LLMError | None = None


def _create_error(
    error_type: str, provider: str, feature: str, detail: str = ""
) -> LLMError:
    """ユーザーフレンドリーなメッセージ付きの詳細エラーを作成。"""
    feature_name = FEATURE_NAMES.get(feature, feature)
    provider_name = PROVIDER_NAMES.get(provider, provider)

    messages = {
        "no_api_key": "APIキーが設定されていません。GEMINI_API_KEY を.env.localファイルに設定してください。",
        "billing": f"{provider_name}の利用上限に達しました。APIダッシュボードでクォータを確認してください。",
        "rate_limit": f"{provider_name}のレート制限に達しました。しばらく待ってから再度お試しください。",
        "overloaded": f"{provider_name}が混雑しています。少し時間をおいて再度お試しください。",
        "invalid_key": f"{provider_name}のAPIキーが無効です。正しいAPIキーを設定してください。",
        "network": f"{provider_name}への接続に失敗しました。ネットワーク接続を確認してください。",
        "parse": "AIからの応答を解析できませんでした。もう一度お試しください。",
        "unknown": f"{feature_name}の処理中にエラーが発生しました。しばらくしてから再度お試しください。",
    }

    return LLMError(
        error_type=error_type,
        message=messages.get(error_type, messages["unknown"]),
        detail=redact_sensitive(detail),
        provider=provider,
        feature=feature,
    )


def _classify_gemini_error(error: Exception) -> tuple[str, str]:
    """Gemini APIエラーを分類し、(error_type, detail)を返す。"""
    if isinstance(error, httpx.RequestError):
        return "network", f"ネットワークエラー: {error}"
    status = getattr(error, "status_code", None)
    error_str = str(error).lower()

    if status == 429 or "quota" in error_str or "resource_exhausted" in error_str:
        return "rate_limit", "Geminiのクォータ/レート制限を超えました"
    if status == 503 or "overloaded" in error_str or "unavailable" in error_str:
        return "overloaded", "Geminiが過負荷状態です"
    if status in (401, 403) or "api key not valid" in error_str:
        return "invalid_key", "GeminiのAPIキーが無効です"
    if "timeout" in error_str or "connection" in error_str:
        return "network", f"ネットワークエラー: {error}"
    return "unknown", str(error)


def _classify_anthropic_error(error: Exception) -> tuple[str, str]:
    """Anthropic APIエラーを分類し、(error_type, detail)を返す。"""
    error_str = str(error).lower()

    if "credit balance is too low" in error_str or "billing" in error_str:
        return "billing", "Anthropicのクレジット残高が不足しています"
    elif "overloaded" in error_str or "529" in error_str:
        return "overloaded", "Anthropicが過負荷状態です"
    elif "rate limit" in error_str or "429" in error_str:
        return "rate_limit", "Anthropicのレート制限を超えました"
    elif (
        "invalid api key" in error_str
        or "authentication" in error_str
        or "401" in error_str
    ):
        return "invalid_key", "AnthropicのAPIキーが無効です"
    elif "connection" in error_str or "timeout" in error_str or "network" in error_str:
        return "network", f"ネットワークエラー: {error}"
    else:
        return "unknown", str(error)


def _classify_openai_error(error: Exception) -> tuple[str, str]:
    """OpenAI APIエラーを分類し、(error_type, detail)を返す。"""
    error_str = str(error).lower()

    if "insufficient_quota" in error_str or "exceeded your current quota" in error_str:
        return "billing", "OpenAIのクォータを超えました"
    elif "rate limit" in error_str or "429" in error_str:
        return "rate_limit", "OpenAIのレート制限を超えました"
    elif (
        "invalid api key" in error_str
        or "authentication" in error_str
        or "401" in error_str
    ):
        return "invalid_key", "OpenAIのAPIキーが無効です"
    elif "connection" in error_str or "timeout" in error_str or "network" in error_str:
        return "network", f"ネットワークエラー: {error}"
    else:
        return "unknown", str(error)


def _classify_error(provider: str, error: Exception) -> tuple[str, str]:
    if provider == "gemini":
        return _classify_gemini_error(error)
    if provider == "anthropic":
        return _classify_anthropic_error(error)
    return _classify_openai_error(error)


JSON_RETRY_NOTE = (
    "必ず有効なJSONのみを出力してください。説明文やコードブロックは禁止です。"
    "文字列内の改行は\\nでエスケープしてください。"
)


async def call_llm_with_error(
    system_prompt: str,
    user_message: str,
    messages: list[dict] | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
    model: LLMModel | str | None = None,
    feature: str | None = None,
    response_format: ResponseFormat = "json_object",
    retry_on_parse: bool = False,
    disable_fallback: bool = False,
) -> LLMResult:
    """
    プロバイダー自動選択と詳細なエラーハンドリング付きでLLMを呼び出す。

    Args:
        system_prompt: LLMへのシステムプロンプト
        user_message: ユーザーメッセージ（messagesがNoneの場合に使用）
        messages: 会話履歴（role は user / assistant）
        max_tokens: 最大出力トークン数（未指定なら gemini_max_output_tokens）
        temperature: サンプリング温度（未指定なら gemini_temperature）
        model: 明示的なモデル選択（"gemini-flash" / "gemini-pro" / "openai" / "claude" / モデルID）
        feature: 自動モデル選択用の機能名
        response_format: "json_object" ならJSON解析、"text" なら {"text": ...} を返す
        retry_on_parse: JSON解析失敗時に同一プロバイダーで厳格な指示付き再試行
        disable_fallback: Trueの場合、別プロバイダーへのフォールバックを無効化

    Returns:
        LLMResult: 成功ステータス、データ、オプションのエラー詳細を含む
    """
    feature = feature or "unknown"
    max_tokens = max_tokens or settings.gemini_max_output_tokens
    temperature = settings.gemini_temperature if temperature is None else temperature

    # モデル選択: 明示的指定 > 機能設定 > デフォルト
    if model is None:
        model = get_model_config().get(feature, "gemini-flash")

    primary = _provider_for(model)
    chain = [p for p in _provider_chain(primary, disable_fallback) if _has_api_key(p)]

    if not chain:
        _log(feature, "APIキーが設定されていません", ERROR)
        return LLMResult(
            success=False,
            error=_create_error(
                "no_api_key",
                primary,
                feature,
                "利用可能なプロバイダーのAPIキーが未設定です",
            ),
        )
    if chain[0] != primary:
        _log(feature, f"{PROVIDER_NAMES[primary]} APIキー未設定、{PROVIDER_NAMES[chain[0]]} を使用", WARNING)

    last_error: LLMError | None = None

    for provider in chain:
        circuit = _circuits[provider]
        if circuit.is_open():
            _log(feature, f"{PROVIDER_NAMES[provider]} はサーキットオープン中のためスキップ", WARNING)
            continue

        actual_model = _resolve_model_name(provider, model if provider == primary else None)
        model_display = get_model_display_name(actual_model)
        _log(feature, f"{model_display} を呼び出し中...")
        _log_debug(
            feature,
            "LLM input size: "
            f"system={len(system_prompt)} chars, "
            f"user={len(user_message or '')} chars, "
            f"messages={len(messages or [])}, "
            f"max_tokens={max_tokens}, temperature={temperature}",
        )

        try:
            raw_response = await _call_provider_raw(
                provider,
                system_prompt,
                user_message,
                messages,
                max_tokens,
                temperature,
                actual_model,
                response_format=response_format,
            )
        except (AnthropicAPIError, OpenAIAPIError, GeminiAPIError, httpx.HTTPError) as e:
            error_type, detail = _classify_error(provider, e)
            circuit.record_failure()
            telemetry.record_provider_failure(provider, error_type)
            last_error = _create_error(error_type, provider, feature, detail)
            _log(feature, f"{PROVIDER_NAMES[provider]} APIエラー: {detail}", ERROR)
            continue
        except Exception as e:
            circuit.record_failure()
            telemetry.record_provider_failure(provider, "unknown")
            last_error = _create_error("unknown", provider, feature, str(e))
            _log(feature, f"{PROVIDER_NAMES[provider]} 予期しないエラー: {e}", ERROR)
            continue

        circuit.record_success()

        if response_format == "text":
            text = (raw_response or "").strip()
            if text:
                _log(feature, f"{model_display} で成功", SUCCESS)
                return LLMResult(success=True, data={"text": text})
            last_error = _create_error("parse", provider, feature, "空のレスポンス")
            _log(feature, f"{model_display} が空の応答を返しました", WARNING)
            continue

        _log_debug(
            feature,
            f"LLM raw response: chars={len(raw_response or '')}, "
            f"truncation_suspected={_detect_truncation(raw_response or '')}",
        )
        result = _parse_json_response(raw_response)
        if result is not None:
            _log(feature, f"{model_display} で成功", SUCCESS)
            return LLMResult(success=True, data=result)

        telemetry.record_parse_failure(feature, (raw_response or "")[:120])

        if retry_on_parse:
            _log(feature, "JSON解析失敗、同一プロバイダーで再試行します", WARNING)
            try:
                raw_retry = await _call_provider_raw(
                    provider,
                    f"{system_prompt}\n\n# JSON出力の厳守\n{JSON_RETRY_NOTE}",
                    user_message,
                    messages,
                    max_tokens,
                    temperature,
                    actual_model,
                    response_format=response_format,
                )
                retry_result = _parse_json_response(raw_retry)
                if retry_result is not None:
                    _log(feature, f"{model_display} でリトライ成功", SUCCESS)
                    return LLMResult(success=True, data=retry_result)
            except Exception as retry_err:
                _log(feature, f"リトライ失敗: {retry_err}", WARNING)

        last_error = _create_error(
            "parse", provider, feature, "空または解析不能なレスポンス"
        )
        _log(feature, "応答の解析に失敗しました", ERROR)

    if last_error is None:
        last_error = _create_error(
            "unknown", primary, feature, "全プロバイダーがサーキットオープン中です"
        )
    return LLMResult(success=False, error=last_error)


async def _call_provider_raw(
    provider: str,
    system_prompt: str,
    user_message: str,
    messages: list[dict] | None,
    max_tokens: int,
    temperature: float,
    model: str,
    response_format: ResponseFormat = "json_object",
) -> str:
    if provider == "gemini":
        return await _call_gemini_raw(
            system_prompt,
            user_message,
            messages,
            max_tokens,
            temperature,
            model,
            response_format=response_format,
        )
    if provider == "anthropic":
        return await _call_claude_raw(
            system_prompt, user_message, messages, max_tokens, temperature, model
        )
    return await _call_openai_raw(
        system_prompt,
        user_message,
        messages,
        max_tokens,
        temperature,
        model,
        response_format=response_format,
    )


def _build_gemini_payload(
    system_prompt: str,
    user_message: str,
    messages: list[dict] | None,
    max_tokens: int,
    temperature: float,
    response_format: ResponseFormat = "json_object",
    extra_parts: list[dict] | None = None,
) -> dict:
    """Gemini generateContent のリクエストボディを組み立てる。"""
    if messages is None:
        contents = [{"role": "user", "parts": [{"text": user_message}]}]
    else:
        contents = [
            {
                "role": "model" if m.get("role") in ("assistant", "model") else "user",
                "parts": [{"text": str(m.get("content", ""))}],
            }
            for m in messages
        ]
    if extra_parts:
        contents[-1]["parts"].extend(extra_parts)

    generation_config: dict = {
        "maxOutputTokens": max_tokens,
        "temperature": temperature,
    }
    if response_format == "json_object":
        generation_config["responseMimeType"] = "application/json"

    payload: dict = {"contents": contents, "generationConfig": generation_config}
    if system_prompt:
        payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
    return payload


def _extract_gemini_text(data: dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise GeminiAPIError(f"Gemini blocked the prompt: {block_reason}", 400)
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def _retry_delay(status_code: int | None, attempt: int) -> float:
    """503 は固定待機、それ以外は試行回数に比例して待機。"""
    if status_code == 503:
        return settings.gemini_overload_delay_seconds
    return attempt * settings.gemini_retry_delay_seconds


def _is_retryable(status_code: int | None) -> bool:
    # 429（クォータ）と4xxは再試行しても回復しない
    return status_code is None or status_code >= 500


async def _post_gemini(model: str, payload: dict) -> dict:
    """generateContent を呼び出し、再試行ポリシーに従ってJSONを返す。"""
    client = await get_gemini_client()
    max_attempts = max(settings.gemini_max_retries, 1)
    last_exc: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        status_code: int | None = None
        try:
            response = await client.post(
                f"/models/{model}:generateContent",
                headers={"x-goog-api-key": settings.gemini_api_key},
                json=payload,
            )
            if response.status_code >= 400:
                status_code = response.status_code
                raise GeminiAPIError(
                    f"Gemini API error {response.status_code}: {response.text[:300]}",
                    response.status_code,
                )
            return response.json()
        except GeminiAPIError as e:
            last_exc = e
            status_code = e.status_code
        except httpx.RequestError as e:
            last_exc = e

        if attempt >= max_attempts or not _is_retryable(status_code):
            break
        delay = _retry_delay(status_code, attempt)
        logger.warning(
            f"[Gemini] ⚠️ 試行 {attempt}/{max_attempts} 失敗 ({last_exc})、{delay:.1f}秒後に再試行"
        )
        await asyncio.sleep(delay)

    if last_exc is None:
        raise GeminiAPIError(f"Gemini API was not called (max_attempts={max_attempts})")
    raise last_exc


async def _call_gemini_raw(
    system_prompt: str,
    user_message: str,
    messages: list[dict] | None,
    max_tokens: int,
    temperature: float,
    model: str,
    response_format: ResponseFormat = "json_object",
) -> str:
    """Gemini APIを呼び出し、生のテキストを返す。"""
    payload = _build_gemini_payload(
        system_prompt,
        user_message,
        messages,
        max_tokens,
        temperature,
        response_format=response_format,
    )
    data = await _post_gemini(model, payload)
    text = _extract_gemini_text(data)
    if not text:
        logger.warning("[Gemini] 空のレスポンスを受信")
    return text


async def call_gemini_vision(
    prompt: str,
    image_base64: str,
    mime_type: str,
    feature: str = "ocr",
    max_tokens: int = 4096,
    temperature: float = 0.1,
    model: str | None = None,
) -> LLMResult:
    """
    画像（またはPDF）を Gemini Vision で読み取り、{"text": ...} を返す。

    OCRは Gemini のみ対応のため、他プロバイダーへのフォールバックはしない。
    """
    if not settings.gemini_api_key:
        _log(feature, "Gemini APIキーが設定されていません", ERROR)
        return LLMResult(
            success=False,
            error=_create_error("no_api_key", "gemini", feature, "GEMINI_API_KEY未設定"),
        )

    circuit = _circuits["gemini"]
    if circuit.is_open():
        return LLMResult(
            success=False,
            error=_create_error("overloaded", "gemini", feature, "サーキットオープン中"),
        )

    actual_model = _resolve_model_name(
        "gemini", model or get_model_config().get(feature, "gemini-flash")
    )
    payload = _build_gemini_payload(
        "",
        prompt,
        None,
        max_tokens,
        temperature,
        response_format="text",
        extra_parts=[{"inline_data": {"mime_type": mime_type, "data": image_base64}}],
    )
    _log(feature, f"{get_model_display_name(actual_model)} で画像を解析中...")

    try:
        data = await _post_gemini(actual_model, payload)
        text = _extract_gemini_text(data)
    except (GeminiAPIError, httpx.HTTPError) as e:
        error_type, detail = _classify_gemini_error(e)
        circuit.record_failure()
        telemetry.record_provider_failure("gemini", error_type)
        _log(feature, f"Gemini Vision エラー: {detail}", ERROR)
        return LLMResult(
            success=False, error=_create_error(error_type, "gemini", feature, detail)
        )

    circuit.record_success()
    if not text.strip():
        return LLMResult(
            success=False,
            error=_create_error("parse", "gemini", feature, "画像から文字を抽出できませんでした"),
        )
    _log(feature, "画像解析に成功", SUCCESS)
    return LLMResult(success=True, data={"text": text})


async def _call_gemini_raw_stream(
    system_prompt: str,
    user_message: str,
    max_tokens: int,
    temperature: float,
    model: str,
    response_format: ResponseFormat = "json_object",
) -> AsyncGenerator[str, None]:
    """Gemini streamGenerateContent (SSE) を呼び出し、テキストチャンクを逐次返す。"""
    client = await get_gemini_client()
    payload = _build_gemini_payload(
        system_prompt,
        user_message,
        None,
        max_tokens,
        temperature,
        response_format=response_format,
    )
    async with client.stream(
        "POST",
        f"/models/{model}:streamGenerateContent",
        params={"alt": "sse"},
        headers={"x-goog-api-key": settings.gemini_api_key},
        json=payload,
    ) as response:
        if response.status_code >= 400:
            body = await response.aread()
            raise GeminiAPIError(
                f"Gemini API error {response.status_code}: {body[:300]!r}",
                response.status_code,
            )
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            chunk = line[len("data:"):].strip()
            if not chunk:
                continue
            try:
                text = _extract_gemini_text(json.loads(chunk))
            except json.JSONDecodeError:
                continue
            if text:
                yield text


async def call_llm_streaming(
    system_prompt: str,
    user_message: str,
    max_tokens: int | None = None,
    temperature: float | None = None,
    model: LLMModel | None = None,
    feature: str | None = None,
    response_format: ResponseFormat = "json_object",
    on_chunk: Optional[Callable[[str, int], None]] = None,
) -> LLMResult:
    """
    ストリーミングでLLMを呼び出し、チャンクごとにon_chunkコールバックを実行。

    Args:
        on_chunk: コールバック(chunk_text, accumulated_length)
    """
    feature = feature or "unknown"
    max_tokens = max_tokens or settings.gemini_max_output_tokens
    temperature = settings.gemini_temperature if temperature is None else temperature

    if model is None:
        model = get_model_config().get(feature, "gemini-flash")

    # ストリーミングは Gemini のみ対応
    if (
        _provider_for(model) != "gemini"
        or not settings.gemini_api_key
        or _circuits["gemini"].is_open()
    ):
        return await call_llm_with_error(
            system_prompt=system_prompt,
            user_message=user_message,
            max_tokens=max_tokens,
            temperature=temperature,
            model=model,
            feature=feature,
            response_format=response_format,
        )

    actual_model = _resolve_model_name("gemini", model)
    model_display = get_model_display_name(actual_model)
    _log(feature, f"{model_display} をストリーミング呼び出し中...")

    try:
        accumulated = ""
        async for chunk in _call_gemini_raw_stream(
            system_prompt,
            user_message,
            max_tokens,
            temperature,
            actual_model,
            response_format=response_format,
        ):
            accumulated += chunk
            if on_chunk:
                on_chunk(chunk, len(accumulated))
    except (GeminiAPIError, httpx.HTTPError) as e:
        error_type, detail = _classify_gemini_error(e)
        _circuits["gemini"].record_failure()
        telemetry.record_provider_failure("gemini", error_type)
        _log(feature, f"Gemini ストリーミングエラー: {detail}、通常呼び出しにフォールバック", WARNING)
        return await call_llm_with_error(
            system_prompt=system_prompt,
            user_message=user_message,
            max_tokens=max_tokens,
            temperature=temperature,
            model=model,
            feature=feature,
            response_format=response_format,
        )

    _circuits["gemini"].record_success()

    if not accumulated.strip():
        return LLMResult(
            success=False,
            error=_create_error("parse", "gemini", feature, "空のストリーミングレスポンス"),
        )

    if response_format == "text":
        _log(feature, f"{model_display} ストリーミング成功", SUCCESS)
        return LLMResult(success=True, data={"text": accumulated.strip()})

    result = _parse_json_response(accumulated)
    if result is not None:
        _log(feature, f"{model_display} ストリーミング成功", SUCCESS)
        return LLMResult(success=True, data=result)

    telemetry.record_parse_failure(feature, "stream")
    return LLMResult(
        success=False,
        error=_create_error("parse", "gemini", feature, "ストリーミング応答の解析に失敗"),
    )


async def _call_claude_raw(
    system_prompt: str,
    user_message: str,
    messages: list[dict] | None,
    max_tokens: int,
    temperature: float,
    model: str,
) -> str:
    """Claude APIを呼び出し、生のテキストを返す。"""
    client = await get_anthropic_client()

    if messages is None:
        messages = [{"role": "user", "content": user_message}]

    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system_prompt,
        messages=messages,
    )

    if not response.content:
        logger.warning("[Claude] 空のレスポンスを受信")
        return ""

    return response.content[0].text or ""


def _openai_supports_temperature(model: str) -> bool:
    """temperature設定を拒否するOpenAIモデル（例: GPT-5）の場合はFalseを返す。"""
    return not (model or "").lower().startswith("gpt-5")


def _openai_uses_max_completion_tokens(model: str) -> bool:
    return (model or "").lower().startswith("gpt-5")


async def _call_openai_raw(
    system_prompt: str,
    user_message: str,
    messages: list[dict] | None,
    max_tokens: int,
    temperature: float,
    model: str,
    response_format: ResponseFormat = "json_object",
) -> str:
    """OpenAI Chat Completions APIを呼び出し、生のテキストを返す。"""
    client = await get_openai_client()

    if messages is None:
        api_messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]
    else:
        api_messages = [{"role": "system", "content": system_prompt}] + messages

    request_kwargs: dict = {"model": model, "messages": api_messages}
    if _openai_uses_max_completion_tokens(model):
        request_kwargs["max_completion_tokens"] = max_tokens
    else:
        request_kwargs["max_tokens"] = max_tokens
    if _openai_supports_temperature(model):
        request_kwargs["temperature"] = temperature
    if response_format == "json_object":
        request_kwargs["response_format"] = {"type": "json_object"}

    response = await client.chat.completions.create(**request_kwargs)

    content = response.choices[0].message.content
    if not content:
        logger.warning("[OpenAI] 空のレスポンスを受信")
        return ""
    return content


def _detect_truncation(content: str) -> bool:
    """レスポンスが切り詰められた可能性を検出。"""
    if not content:
        return False

    if content.rstrip().endswith(("...", "…")):
        return True

    if content.count("{") > content.count("}") or content.count("[") > content.count("]"):
        return True

    # 文字列途中で終わっている（引用符が奇数）
    quote_count = content.count('"') - content.count('\\"')
    return quote_count % 2 != 0


def _scan_json(raw: str):
    """文字列リテラルを考慮して (index, char, depth_before) を順に返す。"""
    in_string = False
    escape_next = False
    depth = 0
    for idx, ch in enumerate(raw):
        if escape_next:
            escape_next = False
            continue
        if ch == "\\":
            if in_string:
                escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
            yield idx, ch, depth
        elif ch == "}":
            depth -= 1
            yield idx, ch, depth
    if in_string:
        yield -1, '"', depth


def _first_balanced_object(raw: str) -> str | None:
    start = raw.find("{")
    if start == -1:
        return None
    for idx, ch, depth in _scan_json(raw[start:]):
        if ch == "}" and depth == 0:
            return raw[start : start + idx + 1]
    return None


def _close_unbalanced_object(raw: str) -> str | None:
    """切り詰められたJSONの閉じ括弧を補う。文字列途中で切れていたら諦める。"""
    stripped = raw.strip()
    if not stripped.startswith("{"):
        return None
    depth = 0
    for idx, ch, d in _scan_json(stripped):
        if idx == -1:
            return None
        depth = max(d, 0)
    if depth <= 0:
        return stripped
    return stripped + ("}" * depth)


def _escape_control_chars(raw: str) -> str:
    """JSON文字列リテラル内のエスケープされていない改行/タブをエスケープ。"""
    result = []
    in_string = False
    escape_next = False
    replacements = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}
    for ch in raw:
        if escape_next:
            escape_next = False
        elif ch == "\\":
            escape_next = True
        elif ch == '"':
            in_string = not in_string
        elif in_string and ch in replacements:
            result.append(replacements[ch])
            continue
        result.append(ch)
    return "".join(result)


def _strip_trailing_commas(raw: str) -> str:
    return re.sub(r",\s*([}\]])", r"\1", raw)


def _parse_json_response(content: str | None) -> dict | None:
    """
    JSONレスポンスを解析（コードブロック、前後の説明文、末尾カンマ、
    文字列内の生改行、切り詰めに対応）。オブジェクト以外は None。
    """
    if not content:
        logger.debug("[JSON解析] 空のコンテンツ")
        return None

    if _detect_truncation(content):
        logger.warning(f"[JSON解析] ⚠️ 切り詰められたレスポンスの可能性 (長さ: {len(content)}文字)")

    candidates: list[str] = [content.strip()]

    fence = re.search(r"```(?:json)?\s*([\s\S]*?)(?:```|$)", content)
    if fence:
        candidates.append(fence.group(1).strip())

    greedy = re.search(r"\{[\s\S]*\}", content)
    if greedy:
        candidates.append(greedy.group())

    balanced = _first_balanced_object(content)
    if balanced:
        candidates.append(_strip_trailing_commas(balanced))

    for source in (fence.group(1) if fence else None, content):
        if source:
            repaired = _close_unbalanced_object(source)
            if repaired:
                candidates.append(_strip_trailing_commas(repaired))

    for candidate in candidates:
        for attempt in (candidate, _escape_control_chars(candidate)):
            try:
                parsed = json.loads(attempt)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed

    logger.warning(f"[JSON解析] ⚠️ 解析失敗（{len(content)}文字）: {content[:100]}...")
    return None


def reset_circuits() -> None:
    for circuit in _circuits.values():
        circuit.reset()

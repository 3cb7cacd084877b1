"""
Logging helpers that keep secrets and student identifiers out of the logs.

- APIキー（Gemini / OpenAI / Anthropic）・Bearerトークン・URLの key= を伏せる
- 受検番号・電話番号など受検生の個人情報を伏せる
- log_error の内容は /api/monitoring/errors のエラーバッファにも残す
"""

import logging
import os
import re
from typing import Any

from interview_api.utils import telemetry

REDACTED = "[REDACTED]"

# (pattern, replacement)
_SECRET_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"sk-ant-[a-zA-Z0-9\-]{20,}"), REDACTED),
    (re.compile(r"sk-[a-zA-Z0-9\-_]{20,}"), REDACTED),
    (re.compile(r"AIza[0-9A-Za-z\-_]{35}"), REDACTED),
    (re.compile(r"Bearer\s+[a-zA-Z0-9._\-]{20,}"), f"Bearer {REDACTED}"),
    (re.compile(r"([?&]key=)[^&\s]+"), rf"\1{REDACTED}"),
    (re.compile(r"eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+"), REDACTED),
]

# 面接の最初の回答に受検番号が含まれる
_PERSONAL_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"(受検番号)\s*[0-9０-９]+\s*番?"), r"\1[番号省略]"),
    (re.compile(r"0\d{1,4}-\d{1,4}-\d{3,4}"), "[電話番号省略]"),
]

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"


def redact_sensitive(text: str) -> str:
    """Replace secrets and student identifiers with placeholders."""
    for pattern, replacement in (*_SECRET_RULES, *_PERSONAL_RULES):
        text = pattern.sub(replacement, text)
    return text


class _RedactingFormatter(logging.Formatter):
    # トレースバックを含めた整形後の文字列全体を伏せる
    def format(self, record: logging.LogRecord) -> str:
        return redact_sensitive(super().format(record))


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger whose output passes through redact_sensitive.

    Usage:
        from interview_api.utils.secure_logger import get_logger
        logger = get_logger(__name__)
        logger.info("[面接質問生成] ステージ遷移")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(_RedactingFormatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if _IS_PRODUCTION else logging.DEBUG)
    logger.propagate = False
    return logger


def log_error(context: str, error: Exception, extra: dict[str, Any] | None = None) -> None:
    """
    Log an error under `context` and push it to the recent-error buffer.

    Stack traces are attached outside production only.
    """
    safe_extra = {
        key: redact_sensitive(value) if isinstance(value, str) else value
        for key, value in (extra or {}).items()
    }
    message = redact_sensitive(f"{type(error).__name__}: {error}")
    telemetry.record_error(context, message, safe_extra)

    suffix = f" | {safe_extra}" if safe_extra else ""
    get_logger(context).error(
        f"{message}{suffix}",
        exc_info=None if _IS_PRODUCTION else error,
    )

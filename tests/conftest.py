"""
Backend Tests - Shared Fixtures and Utilities

pytest conftest.py with shared fixtures for all test files.
"""

import fnmatch
import os
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

# Add backend to path for imports (before other local imports)
sys.path.insert(0, str(Path(__file__).parent.parent))

# テストではネットワーク・APIキー・レート制限を使わない（.env.local より環境変数が優先）
os.environ["RATE_LIMIT_ENABLED"] = "false"
for _key in (
    "GEMINI_API_KEY",
    "GOOGLE_GENERATIVE_AI_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "REDIS_URL",
):
    os.environ[_key] = ""

from interview_api.utils import telemetry  # noqa: E402
from interview_api.utils.llm import LLMError, LLMResult, reset_circuits  # noqa: E402

# call_llm_with_error を名前で import しているモジュール
LLM_CALLERS = (
    "interview_api.routers.interview",
    "interview_api.utils.evaluation",
    "interview_api.utils.essay_processor",
    "interview_api.utils.speech_correction",
    "interview_api.utils.deep_dive",
)


# =============================================================================
# Utility Functions
# =============================================================================


def llm_ok(data: dict) -> LLMResult:
    return LLMResult(success=True, data=data)


def llm_text(text: str) -> LLMResult:
    return LLMResult(success=True, data={"text": text})


def llm_error(error_type: str = "unknown", provider: str = "gemini") -> LLMResult:
    return LLMResult(
        success=False,
        error=LLMError(
            error_type=error_type,
            message="テスト用エラー",
            detail=f"test {error_type}",
            provider=provider,
            feature="test",
        ),
    )


def conversation(*turns: tuple[str, str]) -> list[dict]:
    """(面接官, 受検生) のペアから会話履歴を作る"""
    history = []
    for question, answer in turns:
        history.append({"role": "interviewer", "content": question})
        history.append({"role": "student", "content": answer})
    return history


class InMemoryRedis:
    """redis.asyncio.Redis のうち使用するメソッドだけを持つ差し替え"""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)

    async def scan_iter(self, match="*"):
        for key in list(self.data):
            if fnmatch.fnmatch(key, match):
                yield key


def with_memory_redis(cache_cls):
    """redis をメモリ上の差し替えにしたキャッシュを作る"""
    cache = cache_cls("")
    cache._enabled = True
    cache._redis = InMemoryRedis()
    return cache


class FakeLLM:
    """call_llm_with_error の差し替え。呼び出しを記録し、responder の結果を返す。"""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.responder: Callable[[dict[str, Any]], LLMResult] = lambda _: llm_error("no_api_key")

    def respond_with(self, result: LLMResult) -> None:
        self.responder = lambda _: result

    async def __call__(self, system_prompt: str, user_message: str, **kwargs: Any) -> LLMResult:
        call = {"system_prompt": system_prompt, "user_message": user_message, **kwargs}
        self.calls.append(call)
        return self.responder(call)

    @property
    def last(self) -> Optional[dict[str, Any]]:
        return self.calls[-1] if self.calls else None


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_state():
    """テレメトリ・サーキット・セッションをテストごとに初期化"""
    from interview_api.utils.deep_dive import template_selector
    from interview_api.utils.session_store import get_session_store

    telemetry.reset()
    reset_circuits()
    template_selector.clear()
    get_session_store().clear()
    yield
    telemetry.reset()
    reset_circuits()


@pytest.fixture
def fake_llm(monkeypatch) -> FakeLLM:
    """全モジュールの call_llm_with_error を FakeLLM に差し替える（既定は no_api_key）"""
    import importlib

    fake = FakeLLM()
    for module_name in LLM_CALLERS:
        module = importlib.import_module(module_name)
        monkeypatch.setattr(module, "call_llm_with_error", fake)
    return fake


@pytest.fixture
def client(fake_llm):
    from fastapi.testclient import TestClient

    from interview_api.main import app

    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Pytest Markers and Hooks
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that make real API calls"
    )

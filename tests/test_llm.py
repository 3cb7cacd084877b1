"""
LLM Utility Tests

JSON応答の解析と、Gemini REST 呼び出し（httpx.MockTransport で応答を差し替え）の
再試行・エラー分類・サーキットブレーカーのテスト。
"""

import json

import httpx
import pytest

from interview_api.config import settings
from interview_api.utils import llm, telemetry
from interview_api.utils.llm import (
    JSON_RETRY_NOTE,
    _parse_json_response,
    call_gemini_vision,
    call_llm_streaming,
    call_llm_with_error,
)


def gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class FakeGemini:
    """generateContent の応答を順に返す。リストを使い切ったら最後の応答を繰り返す。"""

    def __init__(self) -> None:
        self.responses: list[httpx.Response] = [httpx.Response(200, json=gemini_body("{}"))]
        self.requests: list[httpx.Request] = []

    def queue(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
def gemini(monkeypatch) -> FakeGemini:
    server = FakeGemini()
    monkeypatch.setattr(settings, "gemini_api_key", "test-gemini-key")
    monkeypatch.setattr(settings, "gemini_retry_delay_seconds", 0)
    monkeypatch.setattr(settings, "gemini_overload_delay_seconds", 0)
    client = httpx.AsyncClient(
        base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(server)
    )
    monkeypatch.setattr(llm, "_gemini_client", client)
    return server


class TestParseJsonResponse:
    """AI応答のJSON解析"""

    def test_plain_object(self):
        assert _parse_json_response('{"score": 4}') == {"score": 4}

    def test_code_fence_with_trailing_comma(self):
        assert _parse_json_response('```json\n{"a": 1, "b": [1, 2,],}\n```') == {"a": 1, "b": [1, 2]}

    def test_surrounding_text(self):
        content = '評価結果です。\n{"question": "どのように工夫しましたか？"}\n以上です。'
        assert _parse_json_response(content) == {"question": "どのように工夫しましたか？"}

    def test_raw_newline_in_string(self):
        assert _parse_json_response('{"text": "一行目\n二行目"}') == {"text": "一行目\n二行目"}

    def test_truncated_object(self):
        parsed = _parse_json_response('{"question": "メダカ", "tags": {"x": 1')
        assert parsed == {"question": "メダカ", "tags": {"x": 1}}

    def test_non_object(self):
        assert _parse_json_response("[1, 2]") is None
        assert _parse_json_response("質問は以上です") is None
        assert _parse_json_response("") is None


class TestWithoutApiKey:
    """APIキー未設定"""

    @pytest.mark.asyncio
    async def test_no_api_key(self):
        result = await call_llm_with_error("system", "user", feature="interview")
        assert result.success is False
        assert result.error.error_type == "no_api_key"
        assert result.error.provider == "gemini"
        assert result.error.feature == "interview"

    @pytest.mark.asyncio
    async def test_speech_correction_prefers_openai(self):
        result = await call_llm_with_error("system", "user", feature="speech_correction")
        assert result.error.provider == "openai"

    @pytest.mark.asyncio
    async def test_vision_without_key(self):
        result = await call_gemini_vision(prompt="読み取って", image_base64="AAAA", mime_type="image/png")
        assert result.error.error_type == "no_api_key"


class TestGeminiCalls:
    """Gemini REST API の呼び出し"""

    @pytest.mark.asyncio
    async def test_json_response(self, gemini):
        gemini.queue(httpx.Response(200, json=gemini_body('{"score": 4, "points": []}')))
        result = await call_llm_with_error("評価してください", "回答です", feature="evaluation", max_tokens=800)

        assert result.success is True
        assert result.data == {"score": 4, "points": []}
        request = gemini.requests[0]
        assert request.url.path.endswith(f"/models/{settings.gemini_model}:generateContent")
        assert request.headers["x-goog-api-key"] == "test-gemini-key"
        payload = gemini.payload()
        assert payload["generationConfig"]["responseMimeType"] == "application/json"
        assert payload["generationConfig"]["maxOutputTokens"] == 800
        assert payload["systemInstruction"]["parts"][0]["text"] == "評価してください"

    @pytest.mark.asyncio
    async def test_text_response(self, gemini):
        gemini.queue(httpx.Response(200, json=gemini_body("  どのように工夫しましたか？\n")))
        result = await call_llm_with_error("system", "user", feature="interview", response_format="text")

        assert result.data == {"text": "どのように工夫しましたか？"}
        payload = gemini.payload()
        assert "responseMimeType" not in payload["generationConfig"]
        assert payload["generationConfig"]["maxOutputTokens"] == settings.gemini_max_output_tokens

    @pytest.mark.asyncio
    async def test_conversation_messages(self, gemini):
        gemini.queue(httpx.Response(200, json=gemini_body('{"ok": true}')))
        messages = [
            {"role": "user", "content": "こんにちは"},
            {"role": "assistant", "content": "面接を始めます"},
        ]
        await call_llm_with_error("system", "", messages=messages, feature="interview")
        assert [c["role"] for c in gemini.payload()["contents"]] == ["user", "model"]

    @pytest.mark.asyncio
    async def test_retries_server_error(self, gemini):
        gemini.queue(
            httpx.Response(500, text="internal"),
            httpx.Response(200, json=gemini_body('{"ok": true}')),
        )
        result = await call_llm_with_error("system", "user", feature="interview")
        assert result.data == {"ok": True}
        assert len(gemini.requests) == 2

    @pytest.mark.asyncio
    async def test_quota_is_not_retried(self, gemini):
        gemini.queue(httpx.Response(429, text="RESOURCE_EXHAUSTED"))
        result = await call_llm_with_error("system", "user", feature="interview")

        assert result.error.error_type == "rate_limit"
        assert len(gemini.requests) == 1
        assert telemetry.snapshot()["provider_failures"] == {"gemini:rate_limit": 1}

    @pytest.mark.asyncio
    async def test_overloaded_after_retries(self, gemini):
        gemini.queue(httpx.Response(503, text="overloaded"))
        result = await call_llm_with_error("system", "user", feature="interview")

        assert result.error.error_type == "overloaded"
        assert len(gemini.requests) == settings.gemini_max_retries

    @pytest.mark.asyncio
    async def test_zero_retries_still_calls_once(self, gemini, monkeypatch):
        monkeypatch.setattr(settings, "gemini_max_retries", 0)
        gemini.queue(httpx.Response(500, text="internal"))
        result = await call_llm_with_error("system", "user", feature="interview")

        assert result.success is False
        assert result.error.error_type == "unknown"
        assert len(gemini.requests) == 1

    @pytest.mark.asyncio
    async def test_network_error(self, gemini, monkeypatch):
        monkeypatch.setattr(settings, "gemini_max_retries", 1)

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(
            base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(refuse)
        )
        monkeypatch.setattr(llm, "_gemini_client", client)
        result = await call_llm_with_error("system", "user", feature="interview")
        assert result.error.error_type == "network"

    @pytest.mark.asyncio
    async def test_parse_retry_adds_strict_note(self, gemini):
        gemini.queue(
            httpx.Response(200, json=gemini_body("JSONではありません")),
            httpx.Response(200, json=gemini_body('{"ok": true}')),
        )
        result = await call_llm_with_error("system", "user", feature="essay", retry_on_parse=True)

        assert result.data == {"ok": True}
        assert JSON_RETRY_NOTE in gemini.payload(1)["systemInstruction"]["parts"][0]["text"]
        assert telemetry.snapshot()["counters"]["parse_failure_total"] == 1

    @pytest.mark.asyncio
    async def test_parse_failure(self, gemini):
        gemini.queue(httpx.Response(200, json=gemini_body("JSONではありません")))
        result = await call_llm_with_error("system", "user", feature="essay")
        assert result.error.error_type == "parse"
        assert len(gemini.requests) == 1

    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_failures(self, gemini):
        gemini.queue(httpx.Response(401, text="API key not valid"))
        for _ in range(3):
            result = await call_llm_with_error("system", "user", feature="interview")
            assert result.error.error_type == "invalid_key"

        result = await call_llm_with_error("system", "user", feature="interview")
        assert result.error.error_type == "unknown"
        assert len(gemini.requests) == 3


def sse_body(*texts: str) -> str:
    return "".join(f"data: {json.dumps(gemini_body(t), ensure_ascii=False)}\n\n" for t in texts)


class TestStreaming:
    """streamGenerateContent"""

    @pytest.mark.asyncio
    async def test_chunks_are_accumulated(self, gemini):
        gemini.queue(httpx.Response(200, text=sse_body('{"score"', ': 4}')))
        chunks = []
        result = await call_llm_streaming(
            "system", "user", feature="evaluation", on_chunk=lambda c, n: chunks.append((c, n))
        )

        assert result.data == {"score": 4}
        assert chunks == [('{"score"', 8), (": 4}", 12)]
        request = gemini.requests[0]
        assert request.url.path.endswith(":streamGenerateContent")
        assert request.url.params["alt"] == "sse"

    @pytest.mark.asyncio
    async def test_text_format(self, gemini):
        gemini.queue(httpx.Response(200, text=sse_body("どのように", "工夫しましたか？")))
        result = await call_llm_streaming("system", "user", feature="interview", response_format="text")
        assert result.data == {"text": "どのように工夫しましたか？"}

    @pytest.mark.asyncio
    async def test_stream_error_falls_back_to_regular_call(self, gemini):
        gemini.queue(
            httpx.Response(500, text="internal"),
            httpx.Response(200, json=gemini_body('{"ok": true}')),
        )
        result = await call_llm_streaming("system", "user", feature="interview")
        assert result.data == {"ok": True}
        assert gemini.requests[1].url.path.endswith(":generateContent")

    @pytest.mark.asyncio
    async def test_non_gemini_model_uses_regular_call(self):
        result = await call_llm_streaming("system", "user", feature="speech_correction")
        assert result.error.error_type == "no_api_key"
        assert result.error.provider == "openai"


class TestGeminiVision:
    """画像の読み取り"""

    @pytest.mark.asyncio
    async def test_inline_image(self, gemini):
        gemini.queue(httpx.Response(200, json=gemini_body("志望動機\n明和中に入りたい")))
        result = await call_gemini_vision(prompt="読み取って", image_base64="AAAA", mime_type="image/png")

        assert result.data == {"text": "志望動機\n明和中に入りたい"}
        parts = gemini.payload()["contents"][0]["parts"]
        assert parts[0] == {"text": "読み取って"}
        assert parts[1] == {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}

    @pytest.mark.asyncio
    async def test_empty_text(self, gemini):
        gemini.queue(httpx.Response(200, json=gemini_body("   ")))
        result = await call_gemini_vision(prompt="読み取って", image_base64="AAAA", mime_type="image/png")
        assert result.error.error_type == "parse"

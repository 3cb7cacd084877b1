"""
Session Store & Cache Tests

面接セッションの進行・保存・復元と、redis キャッシュ層のテスト。
redis はメモリ上の差し替えで代用する。
"""

from datetime import datetime, timedelta, timezone

import pytest

from interview_api.config import settings
from interview_api.utils.cache import QuestionCache, SessionCache, build_cache_key, question_signature
from interview_api.utils.interview_stages import (
    STAGE_COMPLETED,
    STAGE_EXPLORATION,
    STAGE_METACOGNITION,
    STAGE_OPENING,
)
from interview_api.utils.session_store import InterviewSession, SessionStore, SessionTurn
from tests.conftest import with_memory_redis

START = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)


def _session(**kwargs) -> InterviewSession:
    return InterviewSession(research_topic="メダカの水質", started_at=START.isoformat(), **kwargs)


class TestInterviewSession:
    """セッションの進行"""

    def test_add_turn_advances_stage(self):
        session = _session()
        assert session.add_turn("名前は？", "山田です") is None
        session.add_turn("何で来ましたか？", "電車です")
        assert session.add_turn("どれくらい？", "30分です") == STAGE_EXPLORATION
        assert session.depth == 3
        assert session.current_stage == STAGE_EXPLORATION

    def test_catches_up_when_depth_is_ahead(self):
        session = _session()
        session.turns = [SessionTurn(f"質問{i}", f"回答{i}") for i in range(9)]
        assert session.add_turn("質問9", "回答9") == STAGE_METACOGNITION
        assert session.current_stage == STAGE_METACOGNITION

    def test_exploration_continues_until_deep_dive_ends(self):
        session = _session()
        for i in range(9):
            session.add_turn(f"質問{i}", f"回答{i}")
        assert session.current_stage == STAGE_EXPLORATION
        assert session.add_turn("質問9", "回答9") == STAGE_METACOGNITION

    def test_completes_after_fifteen_answers(self):
        session = _session()
        for i in range(15):
            session.add_turn(f"質問{i}", f"回答{i}")
        assert session.current_stage == STAGE_COMPLETED
        assert session.status == "completed"

    def test_blank_answers_do_not_count(self):
        session = _session()
        session.add_turn("名前は？", "  ")
        assert session.depth == 0
        assert session.current_stage == STAGE_OPENING

    def test_progress(self):
        session = _session(duration_seconds=900)
        progress = session.progress(now=START + timedelta(seconds=450))
        assert progress["elapsed"] == 450
        assert progress["time_remaining"] == 450
        assert progress["progress_percentage"] == 50.0
        assert progress["is_time_up"] is False

    def test_time_up(self):
        session = _session(duration_seconds=60)
        assert session.is_time_up(now=START + timedelta(seconds=61)) is True
        assert session.progress(now=START + timedelta(seconds=120))["progress_percentage"] == 100.0

    def test_finish(self):
        session = _session()
        session.finish(datetime(2026, 2, 1, 9, 12, 30))
        assert session.actual_duration == 750
        assert session.status == "completed"
        assert session.elapsed(now=START + timedelta(hours=5)) == 750

    def test_round_trip_dict(self):
        session = _session()
        session.add_turn("名前は？", "山田です", "basic_confirmation")
        restored = InterviewSession.from_dict(session.to_dict())
        assert restored == session


class TestSessionStore:
    """プロセス内保持と redis への書き出し"""

    @pytest.mark.asyncio
    async def test_without_cache(self):
        store = SessionStore()
        session = await store.create(research_topic="ダンス")
        assert await store.get(session.id) is session
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_restores_from_cache(self):
        cache = with_memory_redis(SessionCache)
        store = SessionStore(cache)
        session = await store.create(research_topic="ダンス")
        session.add_turn("名前は？", "山田です")
        await store.save(session)

        store.clear()
        restored = await store.get(session.id)
        assert restored is not None
        assert restored.depth == 1
        assert restored.turns[0].answer == "山田です"

    @pytest.mark.asyncio
    async def test_list_recent_is_newest_first(self):
        store = SessionStore()
        older = await store.create(research_topic="古い", started_at=START.isoformat())
        newer = await store.create(research_topic="新しい", started_at=(START + timedelta(days=1)).isoformat())
        sessions = await store.list_recent()
        assert [s.id for s in sessions] == [newer.id, older.id]
        assert len(await store.list_recent(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_expired_sessions_are_evicted(self, monkeypatch):
        monkeypatch.setattr(settings, "session_ttl_seconds", 3600)
        store = SessionStore()
        stale = await store.create(research_topic="古い")
        fresh = await store.create(research_topic="新しい")
        store._last_saved[stale.id] = datetime.now(timezone.utc) - timedelta(hours=2)

        sessions = await store.list_recent()
        assert [s.id for s in sessions] == [fresh.id]
        assert await store.get(stale.id) is None

    @pytest.mark.asyncio
    async def test_saving_keeps_session_alive(self, monkeypatch):
        monkeypatch.setattr(settings, "session_ttl_seconds", 3600)
        store = SessionStore()
        session = await store.create(research_topic="ダンス")
        store._last_saved[session.id] = datetime.now(timezone.utc) - timedelta(hours=2)
        await store.save(session)

        await store.create(research_topic="別のセッション")
        assert await store.get(session.id) is session


class TestCache:
    """質問キャッシュとキー"""

    def test_signature_ignores_keyword_order(self):
        assert question_signature("exploration", "artistic", 3, ["ダンス", "友達"]) == question_signature(
            "exploration", "artistic", 3, ["友達", "ダンス", "友達"]
        )
        assert build_cache_key("a", "b") != build_cache_key("ab", "")

    @pytest.mark.asyncio
    async def test_disabled_cache_is_noop(self):
        cache = QuestionCache("")
        assert cache.enabled() is False
        await cache.set_question("sig", "質問ですか？")
        assert await cache.get_question("sig") is None

    @pytest.mark.asyncio
    async def test_question_hit_count(self):
        cache = with_memory_redis(QuestionCache)
        await cache.set_question("sig", "どのように工夫しましたか？", {"stage": "exploration"})
        first = await cache.get_question("sig")
        second = await cache.get_question("sig")
        assert first["question"] == "どのように工夫しましたか？"
        assert first["hit_count"] == 1
        assert second["hit_count"] == 2
        assert second["stage"] == "exploration"

    @pytest.mark.asyncio
    async def test_list_sessions(self):
        cache = with_memory_redis(SessionCache)
        await cache.set_session("a", {"id": "a"})
        await cache.set_session("b", {"id": "b"})
        await cache._redis.setex("interview:question:x", 10, '{"question": "q"}')
        assert sorted(s["id"] for s in await cache.list_sessions()) == ["a", "b"]

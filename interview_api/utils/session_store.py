"""
面接セッションの保持

プロセス内の辞書に保持し、REDIS_URL が設定されていれば redis にも書き出す。
プロセス内に無いセッションは redis から復元する。
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional

from interview_api.config import settings
from interview_api.utils.cache import SessionCache, get_session_cache
from interview_api.utils.interview_stages import (
    STAGE_COMPLETED,
    STAGE_OPENING,
    ConversationPair,
    check_stage_transition,
    count_answered,
)
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)

SessionType = Literal["practice", "mock_exam", "final_prep"]
SessionStatus = Literal["preparing", "in_progress", "completed"]

RECENT_SESSIONS_LIMIT = 20


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class SessionTurn:
    question: str
    answer: str
    question_type: Optional[str] = None
    created_at: str = field(default_factory=lambda: _now().isoformat())


@dataclass
class InterviewSession:
    research_topic: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    essay_id: Optional[str] = None
    session_type: SessionType = "practice"
    status: SessionStatus = "in_progress"
    current_stage: str = STAGE_OPENING
    depth: int = 0
    started_at: str = field(default_factory=lambda: _now().isoformat())
    ended_at: Optional[str] = None
    duration_seconds: int = field(default_factory=lambda: settings.interview_duration_seconds)
    question_count: int = field(default_factory=lambda: settings.interview_question_count)
    actual_duration: Optional[int] = None
    turns: list[SessionTurn] = field(default_factory=list)
    final_evaluation: Optional[dict[str, Any]] = None
    overall_score: Optional[float] = None

    def elapsed(self, now: Optional[datetime] = None) -> int:
        end = _parse_time(self.ended_at) or now or _now()
        return max(0, int((end - _parse_time(self.started_at)).total_seconds()))

    def time_remaining(self, now: Optional[datetime] = None) -> int:
        return max(0, self.duration_seconds - self.elapsed(now))

    def is_time_up(self, now: Optional[datetime] = None) -> bool:
        return self.time_remaining(now) == 0

    def pairs(self) -> list[ConversationPair]:
        return [ConversationPair(t.question, t.answer) for t in self.turns]

    def add_turn(self, question: str, answer: str, question_type: Optional[str] = None) -> Optional[str]:
        """回答を記録して深度とステージを進める。遷移したら新しいステージ名を返す。"""
        self.turns.append(SessionTurn(question, answer, question_type))
        pairs = self.pairs()
        self.depth = count_answered(pairs)

        transitioned = None
        # 復元直後などで深度がステージより先行していれば追いつくまで進める
        next_stage = check_stage_transition(self.current_stage, pairs)
        while next_stage is not None:
            self.current_stage = next_stage
            transitioned = next_stage
            next_stage = check_stage_transition(self.current_stage, pairs)
        if self.current_stage == STAGE_COMPLETED:
            self.status = "completed"
        return transitioned

    def finish(self, end_time: datetime) -> None:
        if end_time.tzinfo is None:
            end_time = end_time.replace(tzinfo=timezone.utc)
        self.ended_at = end_time.isoformat()
        self.actual_duration = max(0, int((end_time - _parse_time(self.started_at)).total_seconds()))
        self.status = "completed"

    def progress(self, now: Optional[datetime] = None) -> dict[str, Any]:
        elapsed = self.elapsed(now)
        percentage = min(100.0, elapsed / self.duration_seconds * 100) if self.duration_seconds else 100.0
        return {
            "session_id": self.id,
            "status": self.status,
            "current_stage": self.current_stage,
            "depth": self.depth,
            "elapsed": elapsed,
            "time_remaining": self.time_remaining(now),
            "progress_percentage": round(percentage, 1),
            "answered_count": count_answered(self.pairs()),
            "question_count": self.question_count,
            "is_time_up": self.is_time_up(now),
        }

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InterviewSession":
        data = dict(data)
        data["turns"] = [SessionTurn(**t) for t in data.get("turns") or []]
        return cls(**data)


class SessionStore:
    def __init__(self, cache: Optional[SessionCache] = None):
        self._sessions: dict[str, InterviewSession] = {}
        self._last_saved: dict[str, datetime] = {}
        self._cache = cache
        self._lock = asyncio.Lock()

    def _evict_expired(self) -> None:
        """redis の TTL と同じく、最後の保存から session_ttl_seconds 経ったセッションを外す。"""
        cutoff = _now() - timedelta(seconds=settings.session_ttl_seconds)
        expired = [sid for sid, saved in self._last_saved.items() if saved < cutoff]
        for session_id in expired:
            self._sessions.pop(session_id, None)
            del self._last_saved[session_id]
        if expired:
            logger.info(f"[Session] 期限切れのセッションを破棄: {len(expired)}件")

    async def create(self, **kwargs: Any) -> InterviewSession:
        session = InterviewSession(**kwargs)
        async with self._lock:
            self._evict_expired()
            self._sessions[session.id] = session
        await self.save(session)
        return session

    async def get(self, session_id: str) -> Optional[InterviewSession]:
        session = self._sessions.get(session_id)
        if session is not None or self._cache is None:
            return session
        payload = await self._cache.get_session(session_id)
        if payload is None:
            return None
        try:
            session = InterviewSession.from_dict(payload)
        except (TypeError, ValueError) as e:
            logger.warning(f"[Session] ⚠️ 復元失敗 {session_id}: {e}")
            return None
        async with self._lock:
            self._sessions[session.id] = session
            self._last_saved[session.id] = _now()
        return session

    async def save(self, session: InterviewSession) -> None:
        self._last_saved[session.id] = _now()
        if self._cache is not None:
            await self._cache.set_session(session.id, session.to_dict())

    async def list_recent(self, limit: int = RECENT_SESSIONS_LIMIT) -> list[InterviewSession]:
        async with self._lock:
            self._evict_expired()
            sessions = dict(self._sessions)
        if self._cache is not None:
            for payload in await self._cache.list_sessions():
                try:
                    restored = InterviewSession.from_dict(payload)
                except (TypeError, ValueError):
                    continue
                sessions.setdefault(restored.id, restored)
        ordered = sorted(sessions.values(), key=lambda s: s.started_at, reverse=True)
        return ordered[:limit]

    def clear(self) -> None:
        self._sessions.clear()
        self._last_saved.clear()


_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    global _store
    if _store is None:
        _store = SessionStore(get_session_cache())
    return _store

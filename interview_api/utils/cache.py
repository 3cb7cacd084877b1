"""
Cache utilities for generated interview questions and session snapshots.
"""

from __future__ import annotations

import hashlib
import json
from functools import lru_cache
from typing import Any, Iterable, Optional

import redis.asyncio as redis

from interview_api.config import settings
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)


def build_cache_key(*parts: str) -> str:
    """Build a stable hash key from arbitrary string parts."""
    payload = "||".join([p or "" for p in parts])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def question_signature(stage: str, activity_type: str, depth: int, keywords: Iterable[str]) -> str:
    """同じ文脈の質問を見分けるための署名（キーワードは順不同）。"""
    return f"{stage}_{activity_type}_{depth}_{'_'.join(sorted(set(keywords)))}"


class BaseCache:
    """Base cache wrapper with JSON helpers."""

    def __init__(self, redis_url: str):
        self._enabled = bool(redis_url)
        self._redis = (
            redis.from_url(redis_url, decode_responses=True) if self._enabled else None
        )

    def enabled(self) -> bool:
        return self._enabled and self._redis is not None

    async def get_json(self, key: str) -> Optional[Any]:
        if not self.enabled():
            return None
        try:
            value = await self._redis.get(key)
        except Exception as e:
            logger.warning(f"[Cache] ⚠️ get失敗: {e}")
            return None
        if not value:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None

    async def set_json(self, key: str, value: Any, ttl: int) -> None:
        if not self.enabled():
            return
        try:
            await self._redis.setex(key, ttl, json.dumps(value, ensure_ascii=False))
        except Exception as e:
            logger.warning(f"[Cache] ⚠️ set失敗: {e}")

    async def delete(self, key: str) -> None:
        if not self.enabled():
            return
        try:
            await self._redis.delete(key)
        except Exception as e:
            logger.warning(f"[Cache] ⚠️ delete失敗: {e}")

    async def scan_json(self, pattern: str, limit: int = 100) -> list[Any]:
        if not self.enabled():
            return []
        values: list[Any] = []
        try:
            async for key in self._redis.scan_iter(match=pattern):
                value = await self.get_json(key)
                if value is not None:
                    values.append(value)
                if len(values) >= limit:
                    break
        except Exception as e:
            logger.warning(f"[Cache] ⚠️ scan失敗: {e}")
        return values


class QuestionCache(BaseCache):
    """AI生成した面接質問のキャッシュ。"""

    def _question_key(self, signature: str) -> str:
        return f"interview:question:{build_cache_key(signature)}"

    async def get_question(self, signature: str) -> Optional[dict]:
        cached = await self.get_json(self._question_key(signature))
        if cached is None:
            return None
        cached["hit_count"] = int(cached.get("hit_count", 0)) + 1
        await self.set_json(
            self._question_key(signature), cached, settings.question_cache_ttl_seconds
        )
        return cached

    async def set_question(self, signature: str, question: str, meta: dict | None = None) -> None:
        await self.set_json(
            self._question_key(signature),
            {"question": question, "hit_count": 0, **(meta or {})},
            settings.question_cache_ttl_seconds,
        )


class SessionCache(BaseCache):
    """面接セッションのスナップショット。"""

    def _session_key(self, session_id: str) -> str:
        return f"interview:session:{session_id}"

    async def get_session(self, session_id: str) -> Optional[dict]:
        return await self.get_json(self._session_key(session_id))

    async def set_session(self, session_id: str, payload: dict) -> None:
        await self.set_json(
            self._session_key(session_id), payload, settings.session_ttl_seconds
        )

    async def list_sessions(self, limit: int = 100) -> list[dict]:
        return await self.scan_json("interview:session:*", limit=limit)


@lru_cache()
def get_question_cache() -> Optional[QuestionCache]:
    if not settings.redis_url:
        return None
    return QuestionCache(settings.redis_url)


@lru_cache()
def get_session_cache() -> Optional[SessionCache]:
    if not settings.redis_url:
        return None
    return SessionCache(settings.redis_url)

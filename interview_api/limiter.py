"""
Global rate limiter instance (slowapi).

Separated from main.py to avoid circular imports when used in routers.
Limits follow the per-user quota of the practice app (100/hour, 300/day).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from interview_api.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[
        f"{settings.rate_limit_per_hour}/hour",
        f"{settings.rate_limit_per_day}/day",
    ],
    enabled=settings.rate_limit_enabled,
)

"""One-time codes that link a web session to an in-game Minecraft account.

A player asks the API for a code, then types ``/link <code>`` in game; the
server plugin redeems it. Codes live in Redis with a TTL so they survive
restarts and are shared across API replicas; redemption uses GETDEL so a code
can be consumed at most once.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone

from redis.asyncio import Redis

from mcquest.config import get_settings
from mcquest.errors import LinkCodeNotFoundError

LINK_CODE_CHARSET = string.digits + "ABCDEF"
_KEY_PREFIX = "auth:link:"


def generate_link_code(length: int | None = None) -> str:
    """Generate an uppercase hexadecimal code (6 characters by default)."""
    length = length or get_settings().link_code_length
    return "".join(secrets.choice(LINK_CODE_CHARSET) for _ in range(length))


def normalize_link_code(code: str) -> str:
    """Codes are case-insensitive; store and look them up uppercase."""
    return code.strip().upper()


def _key(code: str) -> str:
    return f"{_KEY_PREFIX}{normalize_link_code(code)}"


async def create_link_code(redis: Redis) -> tuple[str, int]:
    """Store a fresh code. Returns (code, ttl_seconds)."""
    settings = get_settings()
    created_at = datetime.now(timezone.utc).isoformat()
    for _ in range(10):
        code = generate_link_code()
        stored = await redis.set(_key(code), created_at, ex=settings.link_code_ttl_seconds, nx=True)
        if stored:
            return code, settings.link_code_ttl_seconds
    raise RuntimeError("Failed to generate unique link code after 10 attempts")


async def get_link_code_ttl(redis: Redis, code: str) -> int | None:
    """Remaining lifetime in seconds, or None when the code is unknown or expired."""
    ttl = await redis.ttl(_key(code))
    if ttl is None or ttl < 0:
        return None
    return int(ttl)


async def consume_link_code(redis: Redis, code: str) -> None:
    """Redeem a code exactly once. Raises LinkCodeNotFoundError when absent or expired."""
    if await redis.getdel(_key(code)) is None:
        raise LinkCodeNotFoundError

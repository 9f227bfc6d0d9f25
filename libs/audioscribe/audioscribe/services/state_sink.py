"""Session snapshot persistence (text state only).

Snapshots let an interrupted session be restored. A snapshot older than
`max_age_s` is ignored on load.
"""

from __future__ import annotations

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from redis.asyncio import Redis

from audioscribe.config import Settings
from audioscribe.exceptions import ConfigurationError
from audioscribe.models.segment import Segment
from audioscribe.models.serializers import deserialize_segments, serialize_segments

logger = logging.getLogger(__name__)

_SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class SessionSnapshot:
    timestamp: float
    segments: tuple[Segment, ...]
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": _SNAPSHOT_VERSION,
            "timestamp": float(self.timestamp),
            "source": self.source,
            "segments": serialize_segments(self.segments),
        }

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> "SessionSnapshot":
        return cls(
            timestamp=float(obj.get("timestamp") or 0.0),
            segments=tuple(deserialize_segments(list(obj.get("segments") or []))),
            source=(str(obj.get("source")) if obj.get("source") else None),
        )

    def is_expired(self, max_age_s: float, *, now: float | None = None) -> bool:
        now_ts = time.time() if now is None else float(now)
        return (now_ts - self.timestamp) > float(max_age_s)


def _decode(raw: str | bytes | None, *, max_age_s: float) -> SessionSnapshot | None:
    if not raw:
        return None
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("state snapshot is not valid JSON; ignoring")
        return None
    if not isinstance(obj, dict):
        return None
    try:
        snapshot = SessionSnapshot.from_dict(obj)
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("state snapshot is malformed; ignoring (error=%s)", exc)
        return None
    if snapshot.is_expired(max_age_s):
        logger.info("state snapshot expired (age_s=%.0f)", time.time() - snapshot.timestamp)
        return None
    return snapshot


class StateSink(ABC):
    @abstractmethod
    async def save(self, snapshot: SessionSnapshot) -> None:
        """Persist the snapshot, replacing any previous one."""

    @abstractmethod
    async def load(self) -> SessionSnapshot | None:
        """Return the latest non-expired snapshot, if any."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop any stored snapshot."""

    async def close(self) -> None:
        return None


class NullStateSink(StateSink):
    async def save(self, snapshot: SessionSnapshot) -> None:
        return None

    async def load(self) -> SessionSnapshot | None:
        return None

    async def clear(self) -> None:
        return None


class LocalFileStateSink(StateSink):
    """JSON file on local disk, replaced atomically on every save."""

    def __init__(self, path: str | Path, *, max_age_s: float = 24 * 60 * 60) -> None:
        self.path = Path(path)
        self.max_age_s = float(max_age_s)

    async def save(self, snapshot: SessionSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(snapshot.to_dict(), ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    async def load(self) -> SessionSnapshot | None:
        if not self.path.exists():
            return None
        return _decode(self.path.read_text(encoding="utf-8"), max_age_s=self.max_age_s)

    async def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class RedisStateSink(StateSink):
    """Single Redis key with a TTL of `max_age_s`."""

    def __init__(self, redis: Redis, *, key: str = "audioscribe:state", max_age_s: float = 24 * 60 * 60) -> None:
        self._redis = redis
        self.key = str(key or "audioscribe:state")
        self.max_age_s = float(max_age_s)

    async def save(self, snapshot: SessionSnapshot) -> None:
        payload = json.dumps(snapshot.to_dict(), ensure_ascii=False)
        await self._redis.set(self.key, payload, ex=int(self.max_age_s))

    async def load(self) -> SessionSnapshot | None:
        return _decode(await self._redis.get(self.key), max_age_s=self.max_age_s)

    async def clear(self) -> None:
        await self._redis.delete(self.key)

    async def close(self) -> None:
        await self._redis.aclose()


def get_state_sink(settings: Settings) -> StateSink:
    cfg = settings.state
    backend = str(cfg.backend or "").strip().lower()
    match backend:
        case "" | "none" | "null":
            return NullStateSink()
        case "local" | "file":
            return LocalFileStateSink(settings.state_path, max_age_s=cfg.max_age_s)
        case "redis":
            redis = Redis.from_url(cfg.redis_url, decode_responses=True)
            return RedisStateSink(redis, key=cfg.key, max_age_s=cfg.max_age_s)
        case _:
            raise ConfigurationError(f"Unknown state backend: {cfg.backend!r} (expected: none/local/redis)")

from __future__ import annotations

import json
import os
import logging
from typing import Optional

import redis

from .schema import EventEnvelope


STREAM_EVENTS = os.getenv("EVENTS_STREAM", "paperwallet.events")
STREAM_DLQ = os.getenv("EVENTS_DLQ", "paperwallet.dlq")

log = logging.getLogger("paperwallet.events")


def _get_redis(url: str):
    return redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=0.5)


def to_line(env: EventEnvelope) -> str:
    return json.dumps({
        "schema_version": env.schema_version,
        "correlation_id": env.correlation_id,
        "sequence": env.sequence,
        "event": env.event.model_dump(),
    }, separators=(",", ":"))


class EventPublisher:
    """Publish wallet events as one JSON log line, plus a Redis stream entry
    when `redis_url` is set.

    Safe: Redis failures never reach the caller.
    """

    def __init__(self, redis_url: Optional[str] = None, stream: str = STREAM_EVENTS, dlq: str = STREAM_DLQ):
        self.redis_url = redis_url or None
        self.stream = stream
        self.dlq = dlq
        self._client = None

    def _redis(self):
        if self._client is None:
            self._client = _get_redis(self.redis_url)
        return self._client

    def __call__(self, env: EventEnvelope) -> None:
        self.publish(env)

    def publish(self, env: EventEnvelope) -> None:
        line = to_line(env)
        # Always log for log-based ingestion
        log.info(line)
        if not self.redis_url:
            return
        try:
            self._redis().xadd(self.stream, {"json": line})
        except Exception as e:
            try:
                # best-effort DLQ
                self._redis().xadd(self.dlq, {"json": line})
            except Exception:
                log.debug(f"event dropped ({env.event.event_type}): {e}")

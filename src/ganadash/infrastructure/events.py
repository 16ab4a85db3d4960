from __future__ import annotations

"""Best-effort domain event fan-out over Redis pub/sub.

Publishing never fails a request: without ``REDIS_URL`` the publisher is
disabled, and a broken connection is dropped and retried on the next event.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import redis
from redis.exceptions import RedisError


logger = logging.getLogger("ganadash.events")

CHANNEL_PREFIX = "ganadash.events"


class _RedisPublisher:
    def __init__(self, url: str) -> None:
        self._url = url
        self._client: Optional[redis.Redis] = None
        self._connect()

    def _connect(self) -> None:
        try:
            client = redis.Redis.from_url(self._url, socket_timeout=0.5)
            client.ping()
        except RedisError as exc:
            logger.warning("Redis unavailable at %s: %s", self._url, exc)
            self._client = None
            return
        self._client = client

    def publish(self, channel: str, payload: Dict[str, Any]) -> bool:
        if not self._client:
            self._connect()
        if not self._client:
            return False
        try:
            self._client.publish(channel, json.dumps(payload, default=str))
        except RedisError as exc:
            logger.warning("Dropping event on %s: %s", channel, exc)
            self._client = None
            return False
        return True


_publisher: Optional[_RedisPublisher] = None


def _get_publisher() -> Optional[_RedisPublisher]:
    global _publisher
    if _publisher is not None:
        return _publisher
    url = os.getenv("REDIS_URL")
    if not url:
        return None
    _publisher = _RedisPublisher(url)
    return _publisher


def publish_event(event_type: str, payload: Dict[str, Any]) -> bool:
    publisher = _get_publisher()
    if not publisher:
        return False
    return publisher.publish(f"{CHANNEL_PREFIX}.{event_type}", payload)


def reset_publisher() -> None:
    global _publisher
    _publisher = None

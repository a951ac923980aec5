"""Dedup ledger for due-soon reminders.

A key is ``(follow_up_id, threshold_minutes)``. Once marked, the detector never
alerts for that pair again within the ledger's lifetime.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import NamedTuple

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class NotificationKey(NamedTuple):
    follow_up_id: uuid.UUID
    threshold_minutes: int

    def __str__(self) -> str:
        return f"{self.follow_up_id}-{self.threshold_minutes}"


class NotificationLedger(ABC):
    @abstractmethod
    async def has_fired(self, key: NotificationKey) -> bool:
        ...

    @abstractmethod
    async def mark_fired(self, key: NotificationKey) -> bool:
        """Record the key. Returns True only for the caller that marked it first."""

    @abstractmethod
    async def release(self, key: NotificationKey) -> None:
        """Forget a key whose notifications were never saved."""


class InMemoryNotificationLedger(NotificationLedger):
    """Session-local ledger. Lost on restart, so a reload may repeat an alert."""

    def __init__(self) -> None:
        self._fired: set[NotificationKey] = set()

    async def has_fired(self, key: NotificationKey) -> bool:
        return key in self._fired

    async def mark_fired(self, key: NotificationKey) -> bool:
        # No await between check and add: interleaved ticks cannot both win
        if key in self._fired:
            return False
        self._fired.add(key)
        return True

    async def release(self, key: NotificationKey) -> None:
        self._fired.discard(key)

    def __len__(self) -> int:
        return len(self._fired)


class RedisNotificationLedger(NotificationLedger):
    """Ledger shared by worker processes, backed by ``SET NX`` keys with a TTL."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int, prefix: str = "followups:notified") -> None:
        self._redis = redis
        self._ttl = ttl_seconds
        self._prefix = prefix

    def _key(self, key: NotificationKey) -> str:
        return f"{self._prefix}:{key}"

    async def has_fired(self, key: NotificationKey) -> bool:
        return bool(await self._redis.exists(self._key(key)))

    async def mark_fired(self, key: NotificationKey) -> bool:
        created = await self._redis.set(self._key(key), "1", nx=True, ex=self._ttl)
        if not created:
            logger.debug("Ledger key %s already present", key)
        return bool(created)

    async def release(self, key: NotificationKey) -> None:
        await self._redis.delete(self._key(key))

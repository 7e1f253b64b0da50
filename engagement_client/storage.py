"""
Shared key-value medium observed by every view of one client

A StorageArea is one view's handle on the medium. Writes made through a
handle raise a StorageEvent in every *other* handle on the same medium,
never in the writer itself. Two media are provided: LocalStorage for views
living in one process, and Redis for views running in separate processes.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from uuid import uuid4

import redis.asyncio as redis

from .config import settings

logger = logging.getLogger(__name__)


@dataclass
class StorageEvent:
    """A key was written or removed by another view"""
    key: str
    old_value: Optional[str]
    new_value: Optional[str]


StorageListener = Callable[[StorageEvent], None]


class StorageArea(ABC):
    """One view's handle on the shared medium"""

    def __init__(self):
        self._listeners: List[StorageListener] = []

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Read a key"""
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str):
        """Write a key and notify the other views"""
        pass

    @abstractmethod
    async def remove_item(self, key: str):
        """Remove a key and notify the other views"""
        pass

    def add_listener(self, listener: StorageListener) -> Callable[[], None]:
        """Observe writes made by other views; returns the unsubscribe function"""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _dispatch(self, event: StorageEvent):
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Storage listener failed for key {event.key}")


class LocalStorage:
    """In-process medium shared by several LocalStorageArea handles"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._areas: List["LocalStorageArea"] = []

    def area(self) -> "LocalStorageArea":
        """Open a handle for a new view"""
        area = LocalStorageArea(self)
        self._areas.append(area)
        return area

    def detach(self, area: "LocalStorageArea"):
        if area in self._areas:
            self._areas.remove(area)

    def _write(self, writer: "LocalStorageArea", key: str, value: Optional[str]):
        old_value = self._data.get(key)
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        event = StorageEvent(key=key, old_value=old_value, new_value=value)
        for area in list(self._areas):
            if area is not writer:
                area._dispatch(event)


class LocalStorageArea(StorageArea):
    """Handle on a LocalStorage medium"""

    def __init__(self, storage: LocalStorage):
        super().__init__()
        self.storage = storage

    async def get_item(self, key: str) -> Optional[str]:
        return self.storage._data.get(key)

    async def set_item(self, key: str, value: str):
        self.storage._write(self, key, value)

    async def remove_item(self, key: str):
        self.storage._write(self, key, None)

    def close(self):
        """Detach from the medium; no further events are delivered"""
        self.storage.detach(self)


class RedisStorageArea(StorageArea):
    """
    Handle on a Redis-backed medium

    Values live under `key_prefix`; every write is announced on a pub/sub
    channel tagged with this handle's origin so the writer can skip its own
    announcements.
    """

    def __init__(
        self,
        url: str = settings.REDIS_URL,
        channel: str = settings.STORAGE_CHANNEL,
        key_prefix: str = "engagement:storage:",
    ):
        super().__init__()
        self.url = url
        self.channel = channel
        self.key_prefix = key_prefix
        self.origin = uuid4().hex
        self.redis: Optional[redis.Redis] = None
        self._pubsub = None
        self._listener_task: Optional[asyncio.Task] = None

    async def connect(self):
        """Connect to Redis and start receiving other views' writes"""
        self.redis = redis.from_url(self.url, encoding="utf-8", decode_responses=True)
        await self.redis.ping()
        self._pubsub = self.redis.pubsub()
        await self._pubsub.subscribe(self.channel)
        self._listener_task = asyncio.create_task(self._listen())
        logger.info(f"Shared storage connected on channel {self.channel}")

    async def disconnect(self):
        """Stop receiving events and close the connection"""
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self._pubsub:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.close()
            self._pubsub = None
        if self.redis:
            await self.redis.close()
            self.redis = None
            logger.info("Shared storage disconnected")

    async def _listen(self):
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                data = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed shared storage announcement")
                continue
            if data.get("origin") == self.origin:
                continue
            self._dispatch(
                StorageEvent(
                    key=data.get("key", ""),
                    old_value=data.get("old_value"),
                    new_value=data.get("new_value"),
                )
            )

    async def _announce(self, key: str, old_value: Optional[str], new_value: Optional[str]):
        payload = {
            "origin": self.origin,
            "key": key,
            "old_value": old_value,
            "new_value": new_value,
        }
        await self.redis.publish(self.channel, json.dumps(payload))

    async def get_item(self, key: str) -> Optional[str]:
        return await self.redis.get(self.key_prefix + key)

    async def set_item(self, key: str, value: str):
        old_value = await self.redis.set(self.key_prefix + key, value, get=True)
        await self._announce(key, old_value, value)

    async def remove_item(self, key: str):
        old_value = await self.redis.getdel(self.key_prefix + key)
        await self._announce(key, old_value, None)

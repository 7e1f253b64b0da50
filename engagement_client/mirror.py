"""
Durable warm-start mirror

Keeps the last confirmed state of a view in the shared medium so a new view
can render something before the server read returns. Entries carry an
explicit expiry and are never treated as authoritative.
"""
import json
import logging
import time
from typing import Any, Callable, Optional

from .config import settings
from .storage import StorageArea

logger = logging.getLogger(__name__)


class LocalMirror:
    """Keyed, TTL-bound durable copy of client state"""

    def __init__(
        self,
        storage: StorageArea,
        ttl: float = settings.MIRROR_TTL,
        clock: Callable[[], float] = time.time,
        prefix: str = "mirror:",
    ):
        self.storage = storage
        self.ttl = ttl
        self.prefix = prefix
        self._clock = clock

    async def save(self, key: str, value: Any, ttl: Optional[float] = None):
        """Store a JSON-serializable value"""
        ttl = self.ttl if ttl is None else ttl
        payload = {"value": value, "expires_at": self._clock() + ttl}
        await self.storage.set_item(self.prefix + key, json.dumps(payload))

    async def load(self, key: str) -> Optional[Any]:
        """Get a stored value, or None if absent, expired or unreadable"""
        raw = await self.storage.get_item(self.prefix + key)
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
            expires_at = float(payload["expires_at"])
            value = payload["value"]
        except (ValueError, KeyError, TypeError):
            logger.warning(f"Discarding unreadable mirror entry {key}")
            await self.storage.remove_item(self.prefix + key)
            return None

        if self._clock() >= expires_at:
            await self.storage.remove_item(self.prefix + key)
            return None
        return value

    async def delete(self, key: str):
        """Remove a stored value"""
        await self.storage.remove_item(self.prefix + key)

"""
Cross-view broadcast bus

Propagates confirmed engagement state to every other component and view of
the same client. Two channels are combined:

- an in-document EventDispatcher for components rendered in the same view
- a well-known key on the shared StorageArea for other views; the payload is
  written and immediately removed, and observers react to the write only

Every incoming payload is validated into EngagementChanged and filtered by
kind and by the session's actor before any handler sees it.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from .messages import EngagementChanged, EngagementKind
from .session import ClientSession
from .storage import StorageArea, StorageEvent

logger = logging.getLogger(__name__)

MessageHandler = Callable[[EngagementChanged], None]


class EventDispatcher:
    """Synchronous in-document event dispatcher"""

    def __init__(self):
        self._handlers: Dict[str, List[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Register a handler; returns the unsubscribe function"""
        self._handlers[event].append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Callable[[Any], None]):
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any):
        """Call every handler registered for `event`, in registration order"""
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception(f"Handler for {event} failed")


class BroadcastBus:
    """Broadcast channel pair for one engagement kind"""

    def __init__(
        self,
        kind: EngagementKind,
        session: ClientSession,
        dispatcher: EventDispatcher,
        storage: StorageArea,
    ):
        self.kind = kind
        self.session = session
        self.dispatcher = dispatcher
        self.storage = storage

    @property
    def sync_key(self) -> str:
        """Shared storage key other views observe"""
        return f"{self.kind.value}_sync"

    @property
    def event_name(self) -> str:
        """In-document event name"""
        return f"engagement.{self.kind.value}.changed"

    async def publish(self, message: EngagementChanged):
        """
        Send confirmed state to every other component and view

        Raises:
            ValueError: if the message is for another kind or another actor
        """
        if message.kind != self.kind:
            raise ValueError(f"Cannot publish {message.kind.value} on the {self.kind.value} bus")
        if message.actor_id != self.session.actor_id:
            raise ValueError("Cannot publish engagement state for another actor")

        self.dispatcher.emit(self.event_name, message)

        await self.storage.set_item(self.sync_key, message.model_dump_json())
        await self.storage.remove_item(self.sync_key)

    def subscribe(
        self, handler: MessageHandler, source: Optional[str] = None
    ) -> Callable[[], None]:
        """
        Receive validated messages for this kind and this session's actor

        Args:
            handler: Called once per accepted message
            source: Messages published with this source are not delivered
                back to the subscriber

        Returns:
            Function removing the subscription from both channels
        """

        def deliver(message: EngagementChanged):
            if not self._accepts(message):
                return
            if source is not None and message.source == source:
                return
            handler(message)

        def on_local(payload: Any):
            message = self._coerce(payload)
            if message is not None:
                deliver(message)

        def on_storage(event: StorageEvent):
            if event.key != self.sync_key or event.new_value is None:
                return
            message = self._parse(event.new_value)
            if message is not None:
                deliver(message)

        remove_local = self.dispatcher.on(self.event_name, on_local)
        remove_storage = self.storage.add_listener(on_storage)

        def unsubscribe():
            remove_local()
            remove_storage()

        return unsubscribe

    def _accepts(self, message: EngagementChanged) -> bool:
        if message.kind != self.kind:
            return False
        if self.session.actor_id is None or message.actor_id != self.session.actor_id:
            logger.debug(f"Dropping {self.kind.value} message for another actor")
            return False
        return True

    def _coerce(self, payload: Any) -> Optional[EngagementChanged]:
        if isinstance(payload, EngagementChanged):
            return payload
        try:
            return EngagementChanged.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Dropping malformed {self.kind.value} event: {e}")
            return None

    def _parse(self, raw: str) -> Optional[EngagementChanged]:
        try:
            return EngagementChanged.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Dropping malformed {self.kind.value} sync payload: {e}")
            return None

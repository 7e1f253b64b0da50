"""
Wiring for one rendered view of a client

A view owns one in-document dispatcher and one handle on the shared storage
medium. Each component rendered in the view (a feed list, a detail panel)
gets its own pair of stores, one per engagement kind, all connected through
the same per-kind buses.
"""
import logging
from typing import Dict, List, Optional
from uuid import uuid4

from .api import EngagementAPI
from .bus import BroadcastBus, EventDispatcher
from .exceptions import TransientNetworkError
from .messages import EngagementKind
from .mirror import LocalMirror
from .session import ClientSession
from .storage import StorageArea
from .store import CountStore, OptimisticToggleStore

logger = logging.getLogger(__name__)


class EngagementComponent:
    """Like and comment-count stores of one rendered component"""

    def __init__(self, name: str, likes: OptimisticToggleStore, comments: CountStore):
        self.name = name
        self.likes = likes
        self.comments = comments

    def start(self):
        self.likes.start()
        self.comments.start()

    def close(self):
        self.likes.close()
        self.comments.close()


class EngagementView:
    """
    One view of a client: its buses, mirror and components

    Store sources are prefixed with the view id, so two views rendering a
    component of the same name still receive each other's messages.
    """

    def __init__(
        self,
        session: ClientSession,
        storage: StorageArea,
        api: EngagementAPI,
        mirror: Optional[LocalMirror] = None,
    ):
        self.id = uuid4().hex
        self.session = session
        self.storage = storage
        self.api = api
        self.dispatcher = EventDispatcher()
        self.mirror = mirror or LocalMirror(storage)
        self.buses: Dict[EngagementKind, BroadcastBus] = {
            kind: BroadcastBus(kind, session, self.dispatcher, storage)
            for kind in EngagementKind
        }
        self.components: List[EngagementComponent] = []

    def component(self, name: str) -> EngagementComponent:
        """Create and start the stores for a new component of this view"""
        component = EngagementComponent(
            name,
            likes=OptimisticToggleStore(
                EngagementKind.LIKE,
                self.session,
                self.buses[EngagementKind.LIKE],
                self.api,
                mirror=self.mirror,
                source=f"{self.id}:{name}:like",
            ),
            comments=CountStore(
                EngagementKind.COMMENT,
                self.session,
                self.buses[EngagementKind.COMMENT],
                mirror=self.mirror,
                source=f"{self.id}:{name}:comment",
            ),
        )
        component.start()
        self.components.append(component)
        return component

    async def load(self, target_ids: List[str]) -> bool:
        """
        Seed every component for the given posts

        Components are warm-started from the mirror first, then replaced by
        the server snapshot. Returns False when the snapshot could not be
        fetched and the mirror state was kept.
        """
        for component in self.components:
            await component.likes.warm_start()
            await component.comments.warm_start()

        try:
            snapshot = await self.api.get_snapshot(target_ids)
        except TransientNetworkError as e:
            logger.warning(f"Could not load engagement snapshot, using mirrored state: {e}")
            return False

        like_counts = {tid: c.like_count for tid, c in snapshot.counts.items()}
        comment_counts = {tid: c.comment_count for tid, c in snapshot.counts.items()}

        for component in self.components:
            component.likes.seed(like_counts, snapshot.engaged_target_ids)
            component.comments.seed(comment_counts)

        if self.components:
            await self.components[0].likes.persist()
            await self.components[0].comments.persist()

        logger.info(
            f"Loaded engagement state for {len(snapshot.counts)} posts, "
            f"{len(snapshot.engaged_target_ids)} liked"
        )
        return True

    def close(self):
        """Close every component"""
        for component in self.components:
            component.close()
        self.components.clear()

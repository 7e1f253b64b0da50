"""
Per-view engagement state with optimistic updates

A store holds one view's projection of engagement state for one kind: the
set of posts the actor engaged with and a count per post. Server responses
and bus messages always replace local values; local predictions are only
ever placeholders until the next authoritative value arrives.
"""
import asyncio
import logging
from typing import Dict, Iterable, Mapping, Optional, Set
from uuid import uuid4

from .api import EngagementAPI
from .bus import BroadcastBus
from .messages import EngagementChanged, EngagementKind
from .mirror import LocalMirror
from .schemas import ToggleResult
from .session import ClientSession

logger = logging.getLogger(__name__)


class EngagementStore:
    """Engaged set and count map of one view, kept in sync through the bus"""

    def __init__(
        self,
        kind: EngagementKind,
        session: ClientSession,
        bus: BroadcastBus,
        mirror: Optional[LocalMirror] = None,
        source: Optional[str] = None,
    ):
        self.kind = kind
        self.session = session
        self.bus = bus
        self.mirror = mirror
        self.source = source or f"{kind.value}-{uuid4().hex[:8]}"
        self.engaged: Set[str] = set()
        self.counts: Dict[str, int] = {}
        # Bumped whenever an authoritative value lands for a post
        self._versions: Dict[str, int] = {}
        self._unsubscribe = None

    def start(self):
        """Begin applying confirmed state published by other components and views"""
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(self._on_message, source=self.source)

    def close(self):
        """Stop listening to the bus"""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def is_engaged(self, target_id: str) -> bool:
        return target_id in self.engaged

    def count(self, target_id: str) -> int:
        return self.counts.get(target_id, 0)

    def _set_membership(self, target_id: str, engaged: bool):
        if engaged:
            self.engaged.add(target_id)
        else:
            self.engaged.discard(target_id)

    def _bump(self, target_id: str):
        self._versions[target_id] = self._versions.get(target_id, 0) + 1

    def reconcile(self, target_id: str, count: int, engaged: Optional[bool] = None):
        """Replace local state of one post with an authoritative value"""
        if engaged is not None and self.kind.tracks_membership:
            self._set_membership(target_id, engaged)
        self.counts[target_id] = max(0, count)
        self._bump(target_id)

    def seed(
        self,
        counts: Mapping[str, int],
        engaged_ids: Optional[Iterable[str]] = None,
        authoritative: bool = True,
    ):
        """
        Load state from a server read or the warm-start mirror

        A non-authoritative seed (mirror) never counts as confirmation, so an
        in-flight intent can still roll back over it.
        """
        if engaged_ids is not None and self.kind.tracks_membership:
            self.engaged = set(engaged_ids)
        for target_id, count in counts.items():
            self.counts[target_id] = max(0, count)
            if authoritative:
                self._bump(target_id)

    def _on_message(self, message: EngagementChanged):
        self.reconcile(message.target_id, message.count, message.engaged)

    @property
    def mirror_key(self) -> str:
        return f"{self.kind.value}_state_{self.session.actor_id}"

    async def warm_start(self) -> bool:
        """Seed from the durable mirror; returns True if anything was loaded"""
        if self.mirror is None or self.session.actor_id is None:
            return False
        state = await self.mirror.load(self.mirror_key)
        if not state:
            return False
        self.seed(
            state.get("counts", {}),
            state.get("engaged") if self.kind.tracks_membership else None,
            authoritative=False,
        )
        logger.info(f"Warm-started {self.kind.value} state from mirror")
        return True

    async def persist(self):
        """Write the current state to the durable mirror"""
        if self.mirror is None or self.session.actor_id is None:
            return
        state = {"counts": dict(self.counts)}
        if self.kind.tracks_membership:
            state["engaged"] = sorted(self.engaged)
        await self.mirror.save(self.mirror_key, state)

    async def _confirm(
        self, actor_id: int, target_id: str, count: int, engaged: Optional[bool]
    ):
        """
        Apply server truth, mirror it and broadcast it to sibling views

        Returns False without touching local state when the session now
        belongs to a different actor than the one the value was fetched for.
        """
        if self.session.actor_id != actor_id:
            logger.info(f"Session changed while {self.kind.value} request was in flight, discarding response")
            return False

        self.reconcile(target_id, count, engaged)
        await self.persist()
        await self.bus.publish(
            EngagementChanged(
                kind=self.kind,
                target_id=target_id,
                actor_id=actor_id,
                engaged=engaged if self.kind.tracks_membership else None,
                count=count,
                source=self.source,
            )
        )
        return True


class OptimisticToggleStore(EngagementStore):
    """Store for toggle-style engagement (likes) with optimistic intents"""

    def __init__(
        self,
        kind: EngagementKind,
        session: ClientSession,
        bus: BroadcastBus,
        api: EngagementAPI,
        mirror: Optional[LocalMirror] = None,
        source: Optional[str] = None,
    ):
        if not kind.tracks_membership:
            raise ValueError(f"{kind.value} engagement cannot be toggled")
        super().__init__(kind, session, bus, mirror=mirror, source=source)
        self.api = api

    async def apply_intent(self, target_id: str) -> ToggleResult:
        """
        Flip the actor's engagement with a post

        Local state flips before the request is sent. The response replaces
        it; any failure restores the exact pre-intent state and is re-raised.
        A second intent while one is in flight sends a second request.

        Raises:
            AuthenticationRequiredError: no actor (nothing is changed) or the
                service rejected the session (rolled back)
            TargetNotFoundError: the post does not exist (rolled back)
            TransientNetworkError: retryable failure (rolled back)
        """
        actor_id = self.session.require_actor()

        was_engaged = target_id in self.engaged
        had_count = target_id in self.counts
        prior_count = self.counts.get(target_id, 0)
        version = self._versions.get(target_id, 0)

        self._set_membership(target_id, not was_engaged)
        self.counts[target_id] = max(0, prior_count + (-1 if was_engaged else 1))

        try:
            result = await self.api.toggle_like(target_id)
        except asyncio.CancelledError:
            # Cancelled by a caller-side timeout
            self._rollback(target_id, was_engaged, had_count, prior_count, version)
            logger.warning(f"Toggling {self.kind.value} on post {target_id} was cancelled")
            raise
        except Exception as e:
            self._rollback(target_id, was_engaged, had_count, prior_count, version)
            logger.warning(f"Toggling {self.kind.value} on post {target_id} failed: {e}")
            raise

        if not await self._confirm(actor_id, target_id, result.count, result.engaged):
            self._rollback(target_id, was_engaged, had_count, prior_count, version)
        return result

    def _rollback(
        self,
        target_id: str,
        was_engaged: bool,
        had_count: bool,
        prior_count: int,
        version: int,
    ):
        if self._versions.get(target_id, 0) != version:
            # A confirmed value arrived after this intent; keep it
            return
        self._set_membership(target_id, was_engaged)
        if had_count:
            self.counts[target_id] = prior_count
        else:
            self.counts.pop(target_id, None)


class CountStore(EngagementStore):
    """Store for count-only engagement (comment counts)"""

    async def record_count(self, target_id: str, count: int):
        """
        Apply a count reported by the owning collaborator and broadcast it

        Raises:
            AuthenticationRequiredError: no authenticated actor
        """
        actor_id = self.session.require_actor()
        await self._confirm(actor_id, target_id, count, None)

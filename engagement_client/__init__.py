"""
Engagement client - optimistic, cross-view synchronized engagement state
"""
from .api import EngagementAPI
from .bus import BroadcastBus, EventDispatcher
from .cache import ReadThroughCache
from .exceptions import (
    EngagementClientError,
    AuthenticationRequiredError,
    TargetNotFoundError,
    TransientNetworkError,
    ServiceResponseError,
)
from .messages import EngagementChanged, EngagementKind
from .mirror import LocalMirror
from .session import ClientSession
from .storage import LocalStorage, LocalStorageArea, RedisStorageArea, StorageArea
from .store import CountStore, EngagementStore, OptimisticToggleStore
from .view import EngagementComponent, EngagementView

__all__ = [
    "EngagementAPI",
    "BroadcastBus",
    "EventDispatcher",
    "ReadThroughCache",
    "EngagementClientError",
    "AuthenticationRequiredError",
    "TargetNotFoundError",
    "TransientNetworkError",
    "ServiceResponseError",
    "EngagementChanged",
    "EngagementKind",
    "LocalMirror",
    "ClientSession",
    "LocalStorage",
    "LocalStorageArea",
    "RedisStorageArea",
    "StorageArea",
    "CountStore",
    "EngagementStore",
    "OptimisticToggleStore",
    "EngagementComponent",
    "EngagementView",
]

"""
HTTP client for the Engagement Service
"""
import httpx
from typing import Optional, List, Dict, Any
import logging

from .cache import ReadThroughCache
from .config import settings
from .exceptions import (
    AuthenticationRequiredError,
    ServiceResponseError,
    TargetNotFoundError,
    TransientNetworkError,
)
from .schemas import ToggleResult, LikeStatus, LikedPostsPage, EngagementSnapshot
from .session import ClientSession

logger = logging.getLogger(__name__)


class EngagementAPI:
    """
    Async client for the Engagement Service endpoints

    Failures are raised as typed errors rather than swallowed, because the
    calling store decides how to roll back and what to tell the user.
    """

    def __init__(
        self,
        session: ClientSession,
        base_url: str = settings.SERVICE_URL,
        cache: Optional[ReadThroughCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.cache = cache or ReadThroughCache()
        self.timeout = httpx.Timeout(settings.REQUEST_TIMEOUT, connect=settings.CONNECT_TIMEOUT)
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )
        logger.info("Engagement API client initialized")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Engagement API client closed")

    def _headers(self) -> Dict[str, str]:
        if not self.session.token:
            return {}
        return {"Authorization": f"Bearer {self.session.token}"}

    async def _request(
        self,
        method: str,
        url: str,
        target_id: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Make an HTTP request and map failures to client errors"""
        if not self.client:
            await self.start()

        try:
            response = await self.client.request(
                method, url, headers=self._headers(), **kwargs
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Request to {url} timed out: {e}")
            raise TransientNetworkError(f"Request to {url} timed out") from e
        except httpx.TransportError as e:
            logger.warning(f"Request to {url} failed: {e}")
            raise TransientNetworkError(f"Request to {url} failed") from e

        if response.status_code == 401:
            raise AuthenticationRequiredError("Session is not authenticated")
        if response.status_code == 404:
            raise TargetNotFoundError(target_id or url)
        if response.status_code >= 500:
            logger.error(f"HTTP error {response.status_code} for {url}")
            raise TransientNetworkError(f"Engagement Service returned {response.status_code}")
        if response.status_code >= 400:
            raise ServiceResponseError(response.status_code, response.text)

        return response.json()

    async def toggle_like(self, target_id: str) -> ToggleResult:
        """Toggle the session's like on a post"""
        data = await self._request(
            "POST", f"/api/v1/posts/{target_id}/like", target_id=target_id
        )
        self.invalidate_liked_posts()
        return ToggleResult(**data)

    async def get_like_status(self, target_id: str) -> LikeStatus:
        """Get like state of one post"""
        data = await self._request(
            "GET", f"/api/v1/posts/{target_id}/like-status", target_id=target_id
        )
        return LikeStatus(**data)

    async def get_snapshot(self, target_ids: List[str]) -> EngagementSnapshot:
        """Get the session's liked set plus counters of the given posts"""
        data = await self._request(
            "GET", "/api/v1/engagement/snapshot", params={"target_ids": target_ids}
        )
        return EngagementSnapshot(**data)

    async def get_liked_posts_page(self, page: int = 1, page_size: int = 100) -> LikedPostsPage:
        """Get one page of liked post IDs through the read-through cache"""
        actor_id = self.session.require_actor()

        async def fetch() -> LikedPostsPage:
            data = await self._request(
                "GET",
                "/api/v1/posts/user/liked-posts",
                params={"page": page, "page_size": page_size},
            )
            return LikedPostsPage(**data)

        return await self.cache.get_or_fetch(f"liked_{actor_id}_{page}_{page_size}", fetch)

    async def get_liked_target_ids(self, page_size: int = 100) -> List[str]:
        """Get every post ID the session has liked"""
        target_ids: List[str] = []
        page = 1
        has_more = True

        while has_more:
            result = await self.get_liked_posts_page(page, page_size)
            target_ids.extend(result.target_ids)
            has_more = result.has_more
            page += 1

        logger.info(f"Fetched {len(target_ids)} liked post IDs")
        return target_ids

    def invalidate_liked_posts(self):
        """Drop cached liked-post listings of the session's actor"""
        if self.session.actor_id is None:
            return
        self.cache.invalidate_pattern(rf"^liked_{self.session.actor_id}_")

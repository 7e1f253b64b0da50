"""
FastAPI application for Engagement Service
"""
from fastapi import FastAPI, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import List
import logging

from .config import settings
from .database import db, get_db
from .cache import cache, get_cache, RedisCache
from .kafka_producer import kafka_producer, get_kafka_producer, KafkaProducerManager
from .dependencies import get_current_user
from .domain.repositories import IEngagementRepository
from .service import EngagementService
from .schemas import (
    User,
    ToggleResponse,
    LikeStatusResponse,
    LikedPostsResponse,
    EngagementSnapshotResponse,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Engagement Service...")

    await db.connect()
    await db.init_schema()
    logger.info("Database connected")

    await cache.connect()
    logger.info("Redis cache initialized")

    await kafka_producer.start()
    logger.info("Kafka producer started")

    logger.info(f"Engagement Service started successfully on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down Engagement Service...")

    await kafka_producer.stop()
    await cache.disconnect()
    await db.disconnect()

    logger.info("Engagement Service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Engagement Service - race-safe likes and engagement counters",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_engagement_service(
    repo: IEngagementRepository = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
    kafka: KafkaProducerManager = Depends(get_kafka_producer),
) -> EngagementService:
    """Get EngagementService instance with dependencies"""
    return EngagementService(repo, cache, kafka)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": settings.APP_NAME}


# Like endpoints
@app.post(
    "/api/v1/posts/{post_id}/like",
    response_model=ToggleResponse,
    tags=["Likes"],
    summary="Toggle like on a post",
)
async def toggle_like(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    """
    Toggle the caller's like on a post

    - Likes the post if the caller has not liked it, unlikes it otherwise
    - Always returns the authoritative state and like count
    - Duplicate or concurrent requests never fail; they report the true state
    """
    return await service.toggle_like(current_user.id, post_id)


@app.get(
    "/api/v1/posts/{post_id}/like-status",
    response_model=LikeStatusResponse,
    tags=["Likes"],
    summary="Get like status for a post",
)
async def get_like_status(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    """Get whether the caller likes the post and its like count"""
    return await service.get_like_status(current_user.id, post_id)


@app.get(
    "/api/v1/posts/user/liked-posts",
    response_model=LikedPostsResponse,
    tags=["Likes"],
    summary="Get posts liked by current user",
)
async def get_liked_posts(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(
        settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"
    ),
    current_user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    """Get a paginated list of post IDs the caller has liked, newest first"""
    return await service.get_liked_posts(current_user.id, page, page_size)


# Snapshot endpoint
@app.get(
    "/api/v1/engagement/snapshot",
    response_model=EngagementSnapshotResponse,
    tags=["Snapshot"],
    summary="Get engagement state to seed a client view",
)
async def get_snapshot(
    target_ids: List[str] = Query(default=[], description="Posts to return counters for"),
    current_user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    """
    Get engagement state for a client view

    Returns:
    - engaged_target_ids: every post the caller has liked
    - counts: like and comment counts for each requested post
    """
    return await service.get_snapshot(current_user.id, target_ids)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "engagement_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )

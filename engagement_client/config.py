"""
Configuration settings for the engagement client
"""
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client settings, read from ENGAGEMENT_CLIENT_* variables"""

    # Engagement Service
    SERVICE_URL: str = "http://localhost:8004"
    REQUEST_TIMEOUT: float = 10.0
    CONNECT_TIMEOUT: float = 5.0

    # Read-through cache (seconds)
    LIST_CACHE_TTL: float = 180.0  # 3 minutes
    CACHE_SWEEP_INTERVAL: float = 600.0  # 10 minutes

    # Warm-start mirror (seconds)
    MIRROR_TTL: float = 86400.0  # 1 day

    # Shared storage for views running in separate processes
    REDIS_URL: str = "redis://localhost:6379/1"
    STORAGE_CHANNEL: str = "engagement:storage-events"

    class Config:
        env_file = ".env"
        env_prefix = "ENGAGEMENT_CLIENT_"
        case_sensitive = True


settings = ClientSettings()

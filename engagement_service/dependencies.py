"""
FastAPI dependencies for authentication
"""
import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError
from typing import Optional
import logging

from .config import settings
from .schemas import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def verify_token_with_auth_service(
    token: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Optional[dict]:
    """
    Resolve a bearer token to the calling user through the Auth Service

    Returns the `/auth/me` payload, or None when the Auth Service rejects the
    token. Raises 503 when the Auth Service cannot be reached.
    """
    try:
        async with httpx.AsyncClient(timeout=settings.AUTH_TIMEOUT, transport=transport) as client:
            response = await client.get(
                f"{settings.AUTH_SERVICE_URL}/api/v1/auth/me",
                headers={"Authorization": f"Bearer {token}"},
            )
    except httpx.TimeoutException:
        logger.error("Auth service timed out resolving caller")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service is temporarily unavailable",
        )
    except httpx.TransportError as e:
        logger.error(f"Auth service unreachable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service is unavailable",
        )

    if response.status_code != 200:
        logger.warning(f"Auth service rejected caller token: {response.status_code}")
        return None
    return response.json()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """
    Get current authenticated user

    Dependency that verifies the bearer token and returns the acting user.
    Missing or invalid credentials are rejected with 401.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_data = await verify_token_with_auth_service(credentials.credentials)

    if not user_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = User(**user_data)
    except ValidationError as e:
        logger.error(f"Error parsing user data: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user data",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return user

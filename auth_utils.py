"""
Authentication utilities: session token verification for HTTP and WebSocket requests

Sessions are issued by the auth layer as a signed JWT in the auth_token cookie.
This service only verifies them.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from crud.user import UserRepository
from database import get_db

logger = logging.getLogger(__name__)

# JWT configuration
ALGORITHM = "HS256"
AUTH_COOKIE = "auth_token"


def create_jwt(user_id, expires_in: timedelta = timedelta(days=7)) -> str:
    """Create a JWT token for a user"""
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create JWT token.")

    payload = {
        "sub": str(user_id),
        "exp": datetime.utcnow() + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def create_expired_jwt(user_id, expired_seconds_ago: int = 1) -> str:
    """
    Create an expired JWT token for testing purposes.

    Args:
        user_id: User ID to include in token
        expired_seconds_ago: How many seconds ago the token should have expired (default: 1)

    Returns:
        Expired JWT token string
    """
    return create_jwt(user_id, expires_in=timedelta(seconds=-expired_seconds_ago))


def decode_jwt(token: str):
    """Decode a JWT token. Returns None if invalid."""
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot decode JWT token.")

    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def _user_id_from_token(token: Optional[str]) -> Optional[int]:
    if not token:
        return None
    try:
        payload = decode_jwt(token)
    except ValueError as e:
        logger.error(str(e))
        return None
    if not payload:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


async def _load_user(db: AsyncSession, token: Optional[str]):
    user_id = _user_id_from_token(token)
    if user_id is None:
        return None
    return await UserRepository(db).get_user_by_id(user_id)


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)):
    """FastAPI dependency: the signed-in user, or 401."""
    token = request.cookies.get(AUTH_COOKIE) or _bearer_token(request.headers.get("authorization"))
    user = await _load_user(db, token)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


async def authenticate_websocket(websocket: WebSocket, db: AsyncSession):
    """The user owning a WebSocket handshake, or None when the session is missing or invalid."""
    token = websocket.cookies.get(AUTH_COOKIE) or _bearer_token(websocket.headers.get("authorization"))
    return await _load_user(db, token)

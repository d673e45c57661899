"""
JWT token creation and request authentication
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import settings
from database import get_db_cursor

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed access token carrying the given claims"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Decode a token; returns None if it is invalid or expired"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None


def load_account(user_id: int) -> Optional[dict]:
    """Current role, locale and active flag for a user; None if the row is gone"""
    with get_db_cursor() as cursor:
        cursor.execute(
            """SELECT id, email, username, role, language, country, is_active
               FROM users WHERE id = %s""",
            (user_id,)
        )
        return cursor.fetchone()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """Resolve the calling user from the bearer token and their users row"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = int(payload["sub"])
    try:
        account = load_account(user_id)
    except Exception as e:
        logger.error(f"Account lookup error for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify account")

    # Role and status come from the database so admin changes apply to live tokens
    if not account:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not account["is_active"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    return {
        "user_id": user_id,
        "email": account["email"],
        "username": account["username"],
        "role": account["role"] or "student",
        "language": account["language"] or settings.DEFAULT_LANGUAGE,
        "country": account["country"] or settings.DEFAULT_COUNTRY,
    }


async def get_admin_user(current_user: dict = Depends(get_current_user)) -> dict:
    """Require the admin role"""
    if current_user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user

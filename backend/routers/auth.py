"""
Authentication Router - registration, login and logout
"""
from fastapi import APIRouter, HTTPException, Depends
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, InvalidHashError
from datetime import datetime
import logging

from models.activity import ActivityType
from models.user import UserCreate, UserLogin, UserResponse, TokenResponse
from utils.jwt_handler import create_access_token, get_current_user
from utils.validators import validate_email, validate_password, validate_username, validate_language, validate_country
from database import get_db_cursor
from dependencies import get_telemetry
from services.stores import TelemetrySink, best_effort

router = APIRouter()
logger = logging.getLogger(__name__)

# Password hashing with Argon2
ph = PasswordHasher()


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return ph.verify(hashed_password, plain_password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def _user_response(user: dict) -> UserResponse:
    return UserResponse(
        id=user["id"],
        email=user["email"],
        username=user["username"],
        role=user["role"],
        language=user["language"],
        country=user["country"],
        created_at=user["created_at"].isoformat() if user["created_at"] else ""
    )


def _token_for(user: dict) -> str:
    return create_access_token({
        "sub": str(user["id"]),
        "email": user["email"],
        "role": user["role"],
        "language": user["language"],
        "country": user["country"]
    })


@router.post("/register", response_model=TokenResponse)
async def register(user_data: UserCreate):
    """Register a new learner account"""
    for is_valid, error in (validate_email(user_data.email),
                            validate_password(user_data.password),
                            validate_username(user_data.username)):
        if not is_valid:
            raise HTTPException(status_code=400, detail=error)
    if not validate_language(user_data.language):
        raise HTTPException(status_code=400, detail="Unsupported language")
    if not validate_country(user_data.country):
        raise HTTPException(status_code=400, detail="Invalid country code")

    try:
        with get_db_cursor() as cursor:
            cursor.execute(
                "SELECT id FROM users WHERE email = %s OR username = %s",
                (user_data.email.lower(), user_data.username)
            )
            if cursor.fetchone():
                raise HTTPException(
                    status_code=400,
                    detail="Email or username already registered"
                )

            now = datetime.now()
            user = {
                "email": user_data.email.lower(),
                "username": user_data.username,
                "role": "student",
                "language": user_data.language.lower(),
                "country": user_data.country.upper(),
                "created_at": now,
            }
            cursor.execute(
                """INSERT INTO users (email, username, password_hash, role, language, country, created_at)
                   VALUES (%s, %s, %s, %s, %s, %s, %s)""",
                (user["email"], user["username"], hash_password(user_data.password),
                 user["role"], user["language"], user["country"], now)
            )
            user["id"] = cursor.lastrowid

            return TokenResponse(access_token=_token_for(user), user=_user_response(user))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise HTTPException(status_code=500, detail="Registration failed")


@router.post("/login", response_model=TokenResponse)
async def login(credentials: UserLogin, telemetry: TelemetrySink = Depends(get_telemetry)):
    """User login with email/password"""
    try:
        with get_db_cursor() as cursor:
            cursor.execute(
                """SELECT id, email, username, password_hash, role, language,
                          country, is_active, created_at
                   FROM users WHERE email = %s""",
                (credentials.email.lower(),)
            )
            user = cursor.fetchone()

            if not user or not verify_password(credentials.password, user["password_hash"]):
                raise HTTPException(
                    status_code=401,
                    detail="Invalid email or password"
                )
            if not user["is_active"]:
                raise HTTPException(status_code=403, detail="Account is disabled")

            cursor.execute(
                "UPDATE users SET last_active = %s WHERE id = %s",
                (datetime.now(), user["id"])
            )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(status_code=500, detail="Login failed")

    await best_effort("Login activity", telemetry.record(user["id"], ActivityType.LOGIN, {}))
    return TokenResponse(access_token=_token_for(user), user=_user_response(user))


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get current authenticated user information"""
    try:
        with get_db_cursor() as cursor:
            cursor.execute(
                """SELECT id, email, username, role, language, country, created_at
                   FROM users WHERE id = %s""",
                (current_user["user_id"],)
            )
            user = cursor.fetchone()

            if not user:
                raise HTTPException(status_code=404, detail="User not found")

            return _user_response(user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Get user error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get user info")


@router.post("/logout")
async def logout(current_user: dict = Depends(get_current_user),
                 telemetry: TelemetrySink = Depends(get_telemetry)):
    """
    Logout user (client should discard token)
    """
    await best_effort("Logout activity",
                      telemetry.record(current_user["user_id"], ActivityType.LOGOUT, {}))
    return {"message": "Logged out successfully"}

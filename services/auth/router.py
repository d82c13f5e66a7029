"""
services/auth/router.py
Password authentication endpoints.
Implements: Register → Login → JWT issue → Me → Logout
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from config.settings import settings
from shared.middleware.auth import TokenData, get_current_user, get_token_data
from shared.models.models import User, UserRole
from shared.schemas.schemas import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from shared.utils.security import (
    create_access_token,
    get_token_remaining_ttl,
    hash_password,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ── Helper ────────────────────────────────────────────────────

def _issue_token(user: User) -> TokenResponse:
    access_token, _ = create_access_token(
        user_id=user.id,
        role=UserRole(user.role).value,
        email=user.email,
    )
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


# ── Endpoints ─────────────────────────────────────────────────

@router.get("/health", response_model=MessageResponse, summary="Auth service health")
async def auth_health():
    return MessageResponse(message="Authentication service is healthy")


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=201,
    summary="Register a rider or driver",
)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Admins are never created here; any role other than driver registers a rider."""
    existing = await db.scalar(
        select(User.id).where(or_(User.email == body.email, User.phone == body.phone))
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User with that email or phone already exists",
        )

    user = User(
        name=body.name.strip(),
        email=body.email,
        phone=body.phone,
        password_hash=hash_password(body.password),
        role=UserRole.DRIVER if body.role == UserRole.DRIVER.value else UserRole.RIDER,
    )
    db.add(user)
    await db.commit()
    return _issue_token(user)


@router.post("/login", response_model=TokenResponse, summary="Login with email or phone")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    if not body.email and not body.phone:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide email or phone",
        )

    if body.email:
        query = select(User).where(User.email == body.email.lower())
    else:
        query = select(User).where(User.phone == body.phone)
    user = await db.scalar(query)

    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if user.is_blocked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been blocked. Please contact admin.",
        )
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    return _issue_token(user)


@router.post("/logout", response_model=MessageResponse, summary="Logout user")
async def logout(
    token_data: TokenData = Depends(get_token_data),
    redis=Depends(get_redis),
):
    """Add the current access token's JTI to the Redis deny-list until it expires."""
    ttl = get_token_remaining_ttl(token_data.payload)
    if token_data.jti and ttl > 0:
        await RedisCache(redis).revoke_token(token_data.jti, ttl)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse, summary="Get current user")
async def get_me(current_user: User = Depends(get_current_user)):
    """Returns the authenticated user's profile."""
    return UserResponse.model_validate(current_user)

"""
Account endpoints:
  POST /auth/register          — create an account, returns a bearer token
  POST /auth/login             — exchange credentials for a bearer token
  GET  /auth/me                — the caller's profile
  PUT  /auth/profile           — partial profile update
  GET  /auth/profile/{user_id} — public profile, no auth required
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showcase.database import get_db
from showcase.models import User
from showcase.schemas import (
    AuthResponse,
    LoginRequest,
    ProfileUpdate,
    PublicProfile,
    RegisterRequest,
    UserResponse,
)
from showcase.security import (
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        **UserResponse.model_validate(user).model_dump(),
        token=create_access_token(user.user_id),
    )


async def _email_taken(db: AsyncSession, email: str) -> bool:
    existing = await db.execute(select(User.user_id).where(User.email == email))
    return existing.scalar_one_or_none() is not None


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("register"):
        if await _email_taken(db, body.email):
            raise HTTPException(status_code=400, detail="User already exists")

        user = User(
            name=body.name,
            email=body.email,
            password_hash=hash_password(body.password),
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info("Registered user %s (id=%s)", user.email, user.user_id)
        return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("login"):
        rows = await db.execute(select(User).where(User.email == body.email))
        user = rows.scalar_one_or_none()
        # Same answer for unknown email and wrong password
        if not user or not verify_password(user.password_hash, body.password):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        return _auth_response(user)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("update_profile") as span:
        span.set_attribute("user.id", user.user_id)
        changes = body.model_dump(exclude_unset=True)

        email = changes.get("email")
        if email is not None:
            email = email.lower()
            if email != user.email and await _email_taken(db, email):
                raise HTTPException(status_code=400, detail="Email already in use")
            changes["email"] = email

        for field, value in changes.items():
            # name/email are required columns; an explicit null leaves them as-is
            if value is None and field in ("name", "email", "profile_setup_complete"):
                continue
            if value is None and field in ("interests", "skills"):
                value = []
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        logger.info("Updated profile for %s: %s", user.user_id, sorted(changes))
        return user


@router.get("/profile/{user_id}", response_model=PublicProfile)
async def public_profile(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

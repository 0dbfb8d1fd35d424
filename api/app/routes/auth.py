"""Authentication routes: register, login, token refresh, current user, password reset, email verification."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    REFRESH,
    create_access_token,
    create_email_verification_token,
    create_password_reset_token,
    create_refresh_token,
    hash_password,
    password_fingerprint,
    token_user_id,
    verify_email_verification_token,
    verify_password,
    verify_password_reset_token,
)
from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.models.member import User
from app.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageOut,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserWithOrgsOut,
    VerifyEmailRequest,
)
from app.services.email import send_password_reset_email, send_quietly, send_verification_email
from app.services.memberships import list_organization_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _tokens(user_id: int) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(str(user_id)),
        refresh_token=create_refresh_token(str(user_id)),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    email = body.email.lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        email=email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
    )
    db.add(user)
    await db.commit()

    token = create_email_verification_token(user.id, user.email)
    await send_quietly(send_verification_email(user.email, token), user.email)
    return _tokens(user.id)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not user.hashed_password or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    return _tokens(user.id)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    try:
        user_id = token_user_id(body.refresh_token, REFRESH)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token") from None

    result = await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    if not result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return _tokens(user_id)


@router.get("/me", response_model=UserWithOrgsOut)
async def me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    org_ids = await list_organization_ids(db, user.id)
    return UserWithOrgsOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        user_type=user.user_type,
        email_verified=user.email_verified,
        organization_ids=org_ids,
    )


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(body: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    """Request a password reset email. Always returns 200 to prevent user enumeration.

    Imported accounts have no password yet; this is how they set their first one.
    """
    result = await db.execute(select(User).where(User.email == body.email.lower(), User.is_active.is_(True)))
    user = result.scalar_one_or_none()

    if user:
        token = create_password_reset_token(user.id, user.hashed_password)
        await send_quietly(send_password_reset_email(user.email, token), user.email)

    return MessageOut(message="If an account exists with that email, a reset link has been sent")


@router.post("/reset-password", response_model=MessageOut)
async def reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    """Reset password using a token from the forgot-password email."""
    try:
        token_data = verify_password_reset_token(body.token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token") from None

    result = await db.execute(select(User).where(User.id == token_data["user_id"], User.is_active.is_(True)))
    user = result.scalar_one_or_none()
    if not user or password_fingerprint(user.hashed_password) != token_data["fingerprint"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    user.hashed_password = hash_password(body.new_password)
    # The link arrived at this address
    user.email_verified = True
    logger.info("Password reset for user=%s", user.id)

    return MessageOut(message="Password reset successfully")


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


@router.post("/verify-email", response_model=MessageOut)
async def verify_email(body: VerifyEmailRequest, db: AsyncSession = Depends(get_db)):
    try:
        token_data = verify_email_verification_token(body.token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification link"
        ) from None

    user = await db.get(User, token_data["user_id"])
    if user is None or user.email != token_data["email"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification link")

    user.email_verified = True
    logger.info("Email verified for user=%s", user.id)
    return MessageOut(message="Email address verified")


@router.post("/resend-verification", response_model=MessageOut)
async def resend_verification(user: User = Depends(get_current_user)):
    if user.email_verified:
        return MessageOut(message="Email address already verified")

    token = create_email_verification_token(user.id, user.email)
    await send_quietly(send_verification_email(user.email, token), user.email)
    return MessageOut(message="Verification email sent")

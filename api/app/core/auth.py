"""Authentication utilities: password hashing and JWT token management."""

import hashlib
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"
PASSWORD_RESET = "password_reset"
EMAIL_VERIFICATION = "email_verification"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(subject: str, token_type: str, lifetime: timedelta, extra: dict | None = None) -> str:
    payload = {"sub": subject, "exp": datetime.now(UTC) + lifetime, "type": token_type}
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(subject: str, extra: dict | None = None) -> str:
    return _encode(subject, ACCESS, timedelta(minutes=settings.access_token_expire_minutes), extra)


def create_refresh_token(subject: str) -> str:
    return _encode(subject, REFRESH, timedelta(days=settings.refresh_token_expire_days))


def decode_token(token: str, expected_type: str | None = None) -> dict:
    """Decode and validate a JWT. Raises JWTError on failure or a type mismatch."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    if expected_type is not None and payload.get("type") != expected_type:
        raise JWTError("Invalid token type")
    return payload


def token_user_id(token: str, expected_type: str) -> int:
    """Return the integer user id carried in a token of the given type."""
    payload = decode_token(token, expected_type)
    try:
        return int(payload["sub"])
    except (KeyError, ValueError) as exc:
        raise JWTError("Invalid subject") from exc


# ---------------------------------------------------------------------------
# Password reset and email verification tokens
# ---------------------------------------------------------------------------


def password_fingerprint(hashed_password: str | None) -> str:
    """First 8 chars of SHA-256 of the stored hash ("" for accounts without a password).

    Binds reset tokens to the current password: once the password changes, the
    fingerprint no longer matches and outstanding tokens stop working.
    """
    return hashlib.sha256((hashed_password or "").encode()).hexdigest()[:8]


def create_password_reset_token(user_id: int, hashed_password: str | None) -> str:
    return _encode(
        str(user_id),
        PASSWORD_RESET,
        timedelta(minutes=settings.password_reset_expire_minutes),
        {"fingerprint": password_fingerprint(hashed_password)},
    )


def verify_password_reset_token(token: str) -> dict:
    """Returns {"user_id": int, "fingerprint": str}. Raises JWTError on a bad token."""
    payload = decode_token(token, PASSWORD_RESET)
    try:
        return {"user_id": int(payload["sub"]), "fingerprint": payload["fingerprint"]}
    except (KeyError, ValueError) as exc:
        raise JWTError("Malformed reset token") from exc


def create_email_verification_token(user_id: int, email: str) -> str:
    return _encode(
        str(user_id),
        EMAIL_VERIFICATION,
        timedelta(hours=settings.email_verification_expire_hours),
        {"email": email},
    )


def verify_email_verification_token(token: str) -> dict:
    """Returns {"user_id": int, "email": str}. Raises JWTError on a bad token."""
    payload = decode_token(token, EMAIL_VERIFICATION)
    try:
        return {"user_id": int(payload["sub"]), "email": payload["email"]}
    except (KeyError, ValueError) as exc:
        raise JWTError("Malformed verification token") from exc

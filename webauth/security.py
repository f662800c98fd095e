"""
Security utilities: password hashing, JWT tokens, and reset-token hashing.

This module centralizes all cryptographic operations so they're easy to
audit and update:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - passlib's CryptContext handles hashing and verification

2. JWT TOKENS
   - After login the client receives a signed JWT containing the user ID
     ("sub") and the issue time ("iat")
   - "iat" lets the server reject tokens issued before a password change
   - Tokens expire after JWT_EXPIRES_IN_DAYS

3. RESET TOKENS
   - A random token is emailed to the user; only its SHA-256 digest is
     stored, so a database leak does not expose usable reset links
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from webauth.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

# deprecated="auto" lets passlib re-hash with the active scheme if it ever changes.
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored Argon2 hash."""
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# 2. JWT Tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    The token payload contains:
      - "sub": The subject (user ID as string)
      - "iat": Issue time, compared against the user's password change time
      - "exp": Expiration timestamp

    Args:
        data: Dictionary of claims to encode (must include "sub").
        expires_delta: Optional custom expiration time. Defaults to
                       JWT_EXPIRES_IN_DAYS from settings.

    Returns:
        An encoded JWT string.
    """
    to_encode = data.copy()

    issued_at = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(days=settings.JWT_EXPIRES_IN_DAYS)

    to_encode.update({"iat": issued_at, "exp": issued_at + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        jose.ExpiredSignatureError: If the token is past its "exp".
        jose.JWTError: If the token is tampered with or malformed.

    Returns:
        The decoded payload dictionary (contains "sub", "iat", "exp").
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# 3. Reset Tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a random, URL-safe hex token (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_reset_token(raw_token: str) -> str:
    """SHA-256 hex digest of a reset token, as stored in the database."""
    return hashlib.sha256(raw_token.encode()).hexdigest()

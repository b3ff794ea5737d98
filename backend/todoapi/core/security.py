"""Security utilities - JWT access tokens, refresh tokens, password hashing"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

import bcrypt
from jose import JWTError, jwt

from todoapi.config import settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"

# Verified against when the email is unknown so that both login failures
# pay for one bcrypt check.
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=4)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def burn_password_check(plain_password: str) -> None:
    """Spend a password verification without a real user record."""
    verify_password(plain_password, _DUMMY_PASSWORD_HASH)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


@dataclass(frozen=True)
class AccessTokenClaims:
    """Identity carried by a verified access token."""

    subject: str
    email: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class InvalidToken:
    """Verification failure. ``reason`` is one of malformed, signature, expired, wrong_type."""

    reason: str


class AccessTokenCodec:
    """Issues and verifies short-lived signed access tokens.

    Stateless: nothing is stored per token. Expiry is judged against the
    injected clock rather than the JWT library's own clock so callers (and
    tests) control time.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        algorithm: str = "HS256",
        access_ttl_seconds: int = 900,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must be a non-empty string")
        if access_ttl_seconds < 1:
            raise ValueError("access_ttl_seconds must be >= 1")

        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_ttl = access_ttl_seconds
        self._clock = clock

    @property
    def access_ttl_seconds(self) -> int:
        return self._access_ttl

    def issue(self, subject_id: str, email: str) -> str:
        """Create a signed access token for the given subject."""
        now = int(self._clock())
        claims = {
            "sub": str(subject_id),
            "email": email,
            "iat": now,
            "exp": now + self._access_ttl,
            "typ": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: Optional[str]) -> Union[AccessTokenClaims, InvalidToken]:
        """Verify a token and return its claims, or an InvalidToken describing why not.

        Never raises for bad input.
        """
        if not token or not isinstance(token, str):
            return InvalidToken("malformed")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            reason = "signature" if "signature" in str(exc).lower() else "malformed"
            logger.debug("Access token rejected: %s", reason)
            return InvalidToken(reason)

        if payload.get("typ") != ACCESS_TOKEN_TYPE:
            return InvalidToken("wrong_type")

        subject = payload.get("sub")
        email = payload.get("email")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not subject or not isinstance(email, str) or not isinstance(expires_at, int):
            return InvalidToken("malformed")

        if self._clock() >= expires_at:
            return InvalidToken("expired")

        return AccessTokenClaims(
            subject=subject,
            email=email,
            issued_at=int(issued_at or 0),
            expires_at=expires_at,
        )


class RefreshTokenIssuer:
    """Generates opaque refresh tokens: 256 random bits, hex encoded."""

    def __init__(self, num_bytes: int = 32) -> None:
        if num_bytes < 32:
            raise ValueError("refresh tokens need at least 32 random bytes")
        self._num_bytes = num_bytes

    def issue(self) -> str:
        return secrets.token_hex(self._num_bytes)


def build_access_token_codec(clock: Callable[[], float] = time.time) -> AccessTokenCodec:
    """Codec configured from application settings."""
    return AccessTokenCodec(
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        access_ttl_seconds=settings.access_token_ttl_seconds,
        clock=clock,
    )


access_token_codec = build_access_token_codec()
refresh_token_issuer = RefreshTokenIssuer()

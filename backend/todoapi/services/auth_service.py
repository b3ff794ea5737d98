"""Login, refresh-token rotation and logout."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from todoapi.config import settings
from todoapi.core.exceptions import (
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    ResourceNotFoundError,
)
from todoapi.core.metrics import AUTH_EVENTS
from todoapi.core.security import (
    AccessTokenCodec,
    RefreshTokenIssuer,
    access_token_codec,
    burn_password_check,
    refresh_token_issuer,
    verify_password,
)
from todoapi.models.user import User
from todoapi.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    """Token pair handed to the client after login or refresh."""

    access_token: str
    refresh_token: str
    expires_in: int


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthSessionService:
    """Token lifecycle over the user record.

    Holds no session state of its own; the current refresh token lives on the
    user row, so concurrency safety comes from the store's conditional update.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        codec: AccessTokenCodec = access_token_codec,
        refresh_issuer: RefreshTokenIssuer = refresh_token_issuer,
        refresh_ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.codec = codec
        self.refresh_issuer = refresh_issuer
        self.refresh_ttl_seconds = (
            refresh_ttl_seconds
            if refresh_ttl_seconds is not None
            else settings.refresh_token_ttl_seconds
        )
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _issue_pair(self, user: User) -> SessionTokens:
        return SessionTokens(
            access_token=self.codec.issue(user.id, user.email),
            refresh_token=self.refresh_issuer.issue(),
            expires_in=self.codec.access_ttl_seconds,
        )

    def login(self, email: str, password: str) -> SessionTokens:
        """
        Authenticate by email and password and start a new session

        Any refresh token from an earlier login is overwritten.

        Raises:
            InvalidCredentialsError: unknown email or wrong password
        """
        user = self.store.find_by_email(normalize_email(email))
        if not user:
            burn_password_check(password)
            AUTH_EVENTS.labels("login", "rejected").inc()
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            AUTH_EVENTS.labels("login", "rejected").inc()
            raise InvalidCredentialsError()

        tokens = self._issue_pair(user)
        expires_at_ms = self._now_ms() + self.refresh_ttl_seconds * 1000
        self.store.save_refresh_token(user, tokens.refresh_token, expires_at_ms)

        AUTH_EVENTS.labels("login", "success").inc()
        logger.info(f"User logged in: {user.id}")
        return tokens

    def refresh(self, presented_token: Optional[str]) -> SessionTokens:
        """
        Exchange a refresh token for a new access/refresh pair

        The presented token is single-use: a successful call replaces it.

        Raises:
            InvalidRefreshTokenError: missing, unknown, already rotated or expired
        """
        if presented_token is None or not presented_token.strip():
            AUTH_EVENTS.labels("refresh", "rejected").inc()
            raise InvalidRefreshTokenError()

        user = self.store.find_by_refresh_token(presented_token)
        if not user:
            AUTH_EVENTS.labels("refresh", "rejected").inc()
            raise InvalidRefreshTokenError()

        now_ms = self._now_ms()
        expires_at = user.refresh_token_expires_at
        if expires_at is None or now_ms > expires_at:
            self._discard_expired(user, presented_token)
            AUTH_EVENTS.labels("refresh", "expired").inc()
            raise InvalidRefreshTokenError()

        tokens = self._issue_pair(user)
        rotated = self.store.replace_refresh_token(
            user.id,
            expected_token=presented_token,
            new_token=tokens.refresh_token,
            new_expires_at_ms=now_ms + self.refresh_ttl_seconds * 1000,
        )
        if not rotated:
            logger.warning(f"Refresh token for user {user.id} was rotated concurrently")
            AUTH_EVENTS.labels("refresh", "conflict").inc()
            raise InvalidRefreshTokenError()

        AUTH_EVENTS.labels("refresh", "success").inc()
        logger.info(f"Access token refreshed for user: {user.id}")
        return tokens

    def _discard_expired(self, user: User, presented_token: str) -> None:
        try:
            cleared = self.store.clear_refresh_token_if_current(user.id, presented_token)
            if cleared:
                logger.info(f"Cleared expired refresh token for user: {user.id}")
        except SQLAlchemyError as exc:
            self.store.rollback()
            logger.warning(f"Could not clear expired refresh token for user {user.id}: {exc}")

    def logout(self, user_id: str) -> None:
        """
        End the user's session by clearing the stored refresh token

        Outstanding access tokens stay valid until they expire.

        Raises:
            ResourceNotFoundError: user does not exist
        """
        user = self.store.find_by_id(user_id)
        if not user:
            raise ResourceNotFoundError("User")

        self.store.clear_refresh_token(user)
        AUTH_EVENTS.labels("logout", "success").inc()
        logger.info(f"User logged out: {user.id}")

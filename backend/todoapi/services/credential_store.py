"""Refresh-token persistence on the user record"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from todoapi.models.user import User


class CredentialStore:
    """Reads and writes a user's credentials and current refresh token.

    The refresh token and its expiry are always written together.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def find_by_refresh_token(self, refresh_token: str) -> Optional[User]:
        return self.db.query(User).filter(User.refresh_token == refresh_token).first()

    def save_refresh_token(self, user: User, refresh_token: str, expires_at_ms: int) -> None:
        """Overwrite the user's session with a new refresh token."""
        user.refresh_token = refresh_token
        user.refresh_token_expires_at = expires_at_ms
        self.db.commit()

    def clear_refresh_token(self, user: User) -> None:
        user.refresh_token = None
        user.refresh_token_expires_at = None
        self.db.commit()

    def clear_refresh_token_if_current(self, user_id: str, expected_token: str) -> bool:
        """
        Clear the refresh token only if it still equals ``expected_token``.

        Returns:
            bool: False when a newer session replaced it first
        """
        updated = (
            self.db.query(User)
            .filter(User.id == user_id, User.refresh_token == expected_token)
            .update(
                {
                    User.refresh_token: None,
                    User.refresh_token_expires_at: None,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def replace_refresh_token(
        self,
        user_id: str,
        *,
        expected_token: str,
        new_token: str,
        new_expires_at_ms: int,
    ) -> bool:
        """
        Swap the refresh token only if it still equals ``expected_token``.

        Returns:
            bool: False when another request rotated or cleared it first
        """
        updated = (
            self.db.query(User)
            .filter(User.id == user_id, User.refresh_token == expected_token)
            .update(
                {
                    User.refresh_token: new_token,
                    User.refresh_token_expires_at: new_expires_at_ms,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def rollback(self) -> None:
        self.db.rollback()

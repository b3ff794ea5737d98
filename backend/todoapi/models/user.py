"""User model"""

import uuid

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, String
from sqlalchemy.sql import func
from todoapi.core.database import Base


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """User account and its current refresh-token session"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    name = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # At most one live refresh token per user; both columns move together.
    refresh_token = Column(String(128), unique=True, nullable=True, index=True)
    refresh_token_expires_at = Column(BigInteger, nullable=True)  # epoch milliseconds

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "(refresh_token IS NULL AND refresh_token_expires_at IS NULL) OR "
            "(refresh_token IS NOT NULL AND refresh_token_expires_at IS NOT NULL)",
            name="chk_refresh_token_pair",
        ),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"

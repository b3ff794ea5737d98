"""User service - registration and profile management"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
from todoapi.models.user import User
from todoapi.schemas.user import UserCreate, UserResponse, UserUpdate
from todoapi.core.security import get_password_hash
from todoapi.core.exceptions import (
    DuplicateEmailError,
    ResourceNotFoundError,
    ValidationFailedError,
)
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for user management"""

    @staticmethod
    def create_user(db: Session, user_data: UserCreate) -> UserResponse:
        """
        Register a new user

        Args:
            db: Database session
            user_data: Registration data, email already normalised

        Returns:
            Created user

        Raises:
            DuplicateEmailError: email is taken, including when a concurrent
                registration commits first
        """
        existing = db.query(User).filter(User.email == user_data.email).first()
        if existing:
            raise DuplicateEmailError()

        user = User(
            name=user_data.name,
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
        )

        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost the race against another registration for the same email
            db.rollback()
            raise DuplicateEmailError()
        db.refresh(user)

        logger.info(f"Registered user: {user.id}")
        return UserResponse.model_validate(user)

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_profile(db: Session, user_id: str) -> UserResponse:
        user = UserService.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")
        return UserResponse.model_validate(user)

    @staticmethod
    def update_user(db: Session, user_id: str, update: UserUpdate) -> UserResponse:
        """
        Apply a partial update to a user

        Args:
            db: Database session
            user_id: User ID
            update: Fields to change; blank or missing fields are skipped

        Returns:
            Updated user
        """
        if not update.has_any_field():
            raise ValidationFailedError("At least one of name, email or password is required")

        user = UserService.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")

        if update.name and update.name.strip():
            user.name = update.name.strip()

        if update.email and update.email != user.email:
            taken = (
                db.query(User)
                .filter(User.email == update.email, User.id != user_id)
                .first()
            )
            if taken:
                raise DuplicateEmailError()
            user.email = update.email

        if update.password and update.password.strip():
            user.password_hash = get_password_hash(update.password)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateEmailError()
        db.refresh(user)

        logger.info(f"Updated user: {user.id}")
        return UserResponse.model_validate(user)


# Singleton instance
user_service = UserService()

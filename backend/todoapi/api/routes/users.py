"""User account routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from todoapi.api.deps import AuthenticatedUser, get_current_principal
from todoapi.core.database import get_db
from todoapi.schemas.user import UserCreate, UserResponse, UserUpdate
from todoapi.services.user_service import user_service

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    db: Session = Depends(get_db)
):
    """
    Register a new account

    Args:
        user_data: Name, email and password
        db: Database session

    Returns:
        Created user
    """
    return user_service.create_user(db, user_data)


@router.get("/current", response_model=UserResponse)
def get_current_user(
    current_user: AuthenticatedUser = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Profile of the caller identified by the access token"""
    return user_service.get_profile(db, current_user.user_id)


@router.patch("/current", response_model=UserResponse)
def update_current_user(
    update: UserUpdate,
    current_user: AuthenticatedUser = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """
    Update name, email or password of the caller

    Args:
        update: Fields to change; at least one is required
        current_user: Caller from the access token
        db: Database session

    Returns:
        Updated user
    """
    return user_service.update_user(db, current_user.user_id, update)

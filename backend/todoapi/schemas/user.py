"""User schemas"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional

from todoapi.schemas.auth import EMAIL_PATTERN

# bcrypt only hashes the first 72 bytes and newer releases reject anything longer
MAX_PASSWORD_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class UserCreate(BaseModel):
    """User registration schema"""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=150, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=100)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Name must not be blank')
        return v.strip()

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        return _check_password_bytes(v)


class UserUpdate(BaseModel):
    """Partial update of the current user; omitted fields are left alone"""
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=150, pattern=EMAIL_PATTERN)
    password: Optional[str] = Field(None, min_length=6, max_length=100)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if v is not None else v

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        return _check_password_bytes(v) if v is not None else v

    def has_any_field(self) -> bool:
        return any(
            value is not None and value.strip()
            for value in (self.name, self.email, self.password)
        )


class UserResponse(BaseModel):
    """User response schema"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str

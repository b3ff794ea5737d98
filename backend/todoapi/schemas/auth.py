"""Authentication schemas"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ClientType(str, Enum):
    """How the client wants to receive its refresh token"""
    WEB = "web"
    MOBILE = "mobile"

    @classmethod
    def from_header(cls, value: Optional[str]) -> "ClientType":
        """Parse X-Client-Type; anything other than web means mobile."""
        if value and value.strip().lower() == cls.WEB.value:
            return cls.WEB
        return cls.MOBILE


class LoginRequest(BaseModel):
    """Login credentials"""
    email: str = Field(..., max_length=150, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=100)


class RefreshTokenRequest(BaseModel):
    """Refresh request body for mobile clients"""
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class TokenResponse(BaseModel):
    """Issued token pair; refreshToken is null for web clients"""
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")
    token_type: str = Field("Bearer", alias="tokenType")
    access_token_expires_in: int = Field(..., alias="accessTokenExpiresIn")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")

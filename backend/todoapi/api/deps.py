"""API dependencies - authentication and per-request context"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from todoapi.core.database import get_db
from todoapi.core.exceptions import TokenInvalidError
from todoapi.core.security import AccessTokenCodec, InvalidToken, access_token_codec
from todoapi.schemas.auth import ClientType
from todoapi.services.auth_service import AuthSessionService
from todoapi.services.credential_store import CredentialStore

# HTTP Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity taken from a verified access token"""

    user_id: str
    email: str


def get_access_token_codec() -> AccessTokenCodec:
    return access_token_codec


def get_auth_service(
    db: Session = Depends(get_db),
    codec: AccessTokenCodec = Depends(get_access_token_codec),
) -> AuthSessionService:
    """Auth service bound to this request's database session"""
    return AuthSessionService(CredentialStore(db), codec=codec)


def get_client_type(
    x_client_type: Optional[str] = Header(None, alias="X-Client-Type"),
) -> ClientType:
    """Client type from X-Client-Type; defaults to mobile"""
    return ClientType.from_header(x_client_type)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    codec: AccessTokenCodec = Depends(get_access_token_codec),
) -> AuthenticatedUser:
    """
    Get the caller from the bearer access token

    The token is verified on its own; no database lookup happens here, so a
    token stays usable until it expires even after logout.

    Raises:
        TokenInvalidError: If the token is missing, invalid or expired
    """
    if not credentials or not credentials.credentials:
        raise TokenInvalidError()

    result = codec.verify(credentials.credentials)
    if isinstance(result, InvalidToken):
        raise TokenInvalidError()

    return AuthenticatedUser(user_id=result.subject, email=result.email)

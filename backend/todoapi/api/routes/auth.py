"""Authentication routes

Refresh tokens reach the client one of two ways, chosen by X-Client-Type:
web clients get an HttpOnly cookie scoped to the auth path, mobile clients
(the default) get the token in the JSON body.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from todoapi.api.deps import (
    AuthenticatedUser,
    get_auth_service,
    get_client_type,
    get_current_principal,
)
from todoapi.config import settings
from todoapi.schemas.auth import ClientType, LoginRequest, RefreshTokenRequest, TokenResponse
from todoapi.schemas.response import MessageResponse
from todoapi.services.auth_service import AuthSessionService, SessionTokens

router = APIRouter()


def _write_refresh_cookie(response: Response, value: str, max_age: int) -> None:
    """The only place the refresh cookie header is produced (set and clear)."""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=value,
        max_age=max_age,
        path=settings.REFRESH_COOKIE_PATH,
        httponly=True,
        samesite="strict",
        secure=settings.refresh_cookie_secure,
    )


def _deliver(tokens: SessionTokens, client_type: ClientType, response: Response) -> TokenResponse:
    if client_type is ClientType.WEB:
        _write_refresh_cookie(response, tokens.refresh_token, settings.refresh_token_ttl_seconds)
        body_refresh_token = None
    else:
        body_refresh_token = tokens.refresh_token

    return TokenResponse(
        access_token=tokens.access_token,
        token_type="Bearer",
        access_token_expires_in=tokens.expires_in,
        refresh_token=body_refresh_token,
    )


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    response: Response,
    client_type: ClientType = Depends(get_client_type),
    auth_service: AuthSessionService = Depends(get_auth_service),
):
    """
    Login endpoint - authenticate user and start a session

    Args:
        credentials: Email and password
        client_type: web (cookie) or mobile (body)

    Returns:
        Access token, its lifetime, and the refresh token for mobile clients
    """
    tokens = auth_service.login(credentials.email, credentials.password)
    return _deliver(tokens, client_type, response)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    client_type: ClientType = Depends(get_client_type),
    auth_service: AuthSessionService = Depends(get_auth_service),
):
    """
    Exchange a refresh token for a new token pair

    Web clients present the cookie, mobile clients send {"refreshToken": ...}.
    The presented token is rotated and cannot be used again.
    """
    if client_type is ClientType.WEB:
        presented = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    else:
        presented = body.refresh_token if body else None

    tokens = auth_service.refresh(presented)
    return _deliver(tokens, client_type, response)


@router.post("/logout", response_model=MessageResponse, status_code=status.HTTP_200_OK)
def logout(
    response: Response,
    current_user: AuthenticatedUser = Depends(get_current_principal),
    client_type: ClientType = Depends(get_client_type),
    auth_service: AuthSessionService = Depends(get_auth_service),
):
    """
    Logout endpoint - invalidate the refresh token server-side

    The access token used for this call remains valid until it expires.
    """
    auth_service.logout(current_user.user_id)

    if client_type is ClientType.WEB:
        _write_refresh_cookie(response, "", 0)

    return MessageResponse(message="Logged out successfully")

"""Authentication endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Cookie, status

from app.config import settings
from app.core.exceptions import TokenInvalidException, UnauthorizedException
from app.core.firebase import profile_from_firebase_claims, verify_firebase_token
from app.core.google_people import ProfileExtras, fetch_profile_extras
from app.dependencies import (
    AdminClaims,
    AuthServiceDep,
    ClientContextDep,
    CurrentClaims,
    DatabaseSession,
)
from app.schemas.auth import (
    AuthResponse,
    CheckEmailRequest,
    EmailStatusResponse,
    FirebaseAuthRequest,
    LocalLogin,
    LocalRegistration,
    RevokedSessionsResponse,
    Token,
    TokenRefresh,
)
from app.schemas.users import UserResponse
from app.services.auth_service import AuthResult

router = APIRouter()

RefreshCookie = Annotated[str | None, Cookie(alias="refreshToken")]
RefreshBody = Annotated[TokenRefresh | None, Body()]


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user=UserResponse.from_row(result.user),
    )


def _presented_refresh_token(payload: TokenRefresh | None, cookie: str | None) -> str | None:
    if payload is not None and payload.refresh_token:
        return payload.refresh_token
    return cookie


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register with email and password",
)
async def register(
    registration: LocalRegistration,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    context: ClientContextDep,
) -> AuthResponse:
    """
    Create a local account and return a token pair.

    Raises:
        ConflictException: If a user with this email already exists
    """
    result = await auth_service.register(db, registration, context)
    return _auth_response(result)


@router.post(
    "/login",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in with email and password",
)
async def login(
    credentials: LocalLogin,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    context: ClientContextDep,
) -> AuthResponse:
    """
    Authenticate with email and password.

    Previously issued refresh tokens of the user are revoked.
    """
    result = await auth_service.login(db, credentials, context)
    return _auth_response(result)


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Rotate refresh token",
)
async def refresh_token(
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    context: ClientContextDep,
    payload: RefreshBody = None,
    refresh_cookie: RefreshCookie = None,
) -> Token:
    """
    Exchange a refresh token for a new access token and refresh token.

    The presented refresh token is consumed and can never be used again.
    """
    presented = _presented_refresh_token(payload, refresh_cookie)
    if not presented:
        raise TokenInvalidException("Refresh token is required")

    return await auth_service.refresh(db, presented, context)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout and revoke refresh token",
)
async def logout(
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    payload: RefreshBody = None,
    refresh_cookie: RefreshCookie = None,
) -> None:
    """Revoke the presented refresh token. Unknown or missing tokens are ignored."""
    await auth_service.logout(db, _presented_refresh_token(payload, refresh_cookie))


@router.post(
    "/logout-all",
    response_model=RevokedSessionsResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign out everywhere",
)
async def logout_all(
    claims: CurrentClaims,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> RevokedSessionsResponse:
    """Revoke every refresh token of the authenticated user."""
    revoked = await auth_service.logout_all(db, UUID(claims.sub))
    return RevokedSessionsResponse(revoked=revoked)


@router.post(
    "/firebase/verify",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Firebase ID token verification",
)
async def firebase_verify(
    request: FirebaseAuthRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    context: ClientContextDep,
) -> AuthResponse:
    """
    Verify a Firebase ID token and return a token pair.

    The verified identity is matched by external id, linked to an existing
    account with the same email, or created. When a Google access token is
    supplied, birthday and gender are read from the People API.

    Raises:
        UnauthorizedException: If the ID token cannot be verified
    """
    try:
        claims = await verify_firebase_token(request.id_token)
    except ValueError as e:
        raise UnauthorizedException(str(e))

    extras = ProfileExtras()
    if request.google_access_token:
        extras = await fetch_profile_extras(
            request.google_access_token, settings.google_people_api_url
        )

    try:
        profile = profile_from_firebase_claims(
            claims, gender=extras.gender, date_of_birth=extras.date_of_birth
        )
    except ValueError as e:
        raise UnauthorizedException(f"Unusable external profile: {e!s}")

    result = await auth_service.complete_external_login(db, profile, context)
    return _auth_response(result)


@router.post(
    "/check-email",
    response_model=EmailStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Check which sign-in methods an email has",
)
async def check_email(
    request: CheckEmailRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> EmailStatusResponse:
    """Report whether the email is registered and how it can sign in."""
    return await auth_service.check_email(db, request.email)


@router.get(
    "/profile",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Current user profile",
)
async def get_profile(
    claims: CurrentClaims,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> UserResponse:
    """Return the user identified by the bearer access token."""
    user = await auth_service.get_profile(db, UUID(claims.sub))
    return UserResponse.from_row(user)


@router.post(
    "/users/{user_id}/revoke-sessions",
    response_model=RevokedSessionsResponse,
    status_code=status.HTTP_200_OK,
    summary="Revoke all sessions of a user (admin)",
)
async def revoke_user_sessions(
    user_id: UUID,
    admin: AdminClaims,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> RevokedSessionsResponse:
    """Revoke every refresh token of the given user."""
    revoked = await auth_service.logout_all(db, user_id)
    return RevokedSessionsResponse(revoked=revoked)

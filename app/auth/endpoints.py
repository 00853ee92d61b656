"""
Authentication Endpoints
------------------------
FastAPI endpoints for the authentication protocol:
login, signup, current-user lookup, refresh-token rotation, logout and
Google sign-in.

Login and signup return a bearer credential plus an opaque refresh token.
Every credential failure is reported as a uniform 401.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from app.auth.dependencies import get_current_user, get_optional_user
from app.auth.google_oauth import GoogleOAuthClient, GoogleOAuthError, get_google_client
from app.auth.jwt_utils import create_access_token
from app.auth.models import (
    AuthLoginRequest,
    AuthLogoutRequest,
    AuthRefreshRequest,
    AuthSignupRequest,
    AuthTokenPayload,
)
from app.core.config_manager import settings
from app.core.exceptions import Forbidden, NotFound, PlatformError, ValidationFailed
from app.models.response_models import ApplicationSummary, UserProfile, success_response
from app.psql_db_services.expert_applications_service import ExpertApplicationsService
from app.psql_db_services.refresh_tokens_service import RefreshTokensService
from app.psql_db_services.system_config_service import SystemConfigService
from app.psql_db_services.users_service import UsersService

# ============================================================================
# ROUTER INITIALIZATION
# ============================================================================

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


async def _issue_session(user: dict) -> dict:
    """Credential pair plus public profile for a freshly authenticated user."""
    refresh_token = await RefreshTokensService().issue(user["id"])
    return {
        "token": create_access_token(user),
        "refreshToken": refresh_token,
        "user": UserProfile.from_row(user).dump(),
    }


# ============================================================================
# EMAIL / PASSWORD
# ============================================================================


@router.post(
    "/login",
    summary="Authenticate with email and password",
    description="""
    Verify credentials and return a bearer credential (7 days) and a
    refresh token (24 hours).

    Unknown emails and wrong passwords fail with the same message.
    Accounts pending verification are activated on first login.
    """,
)
async def login(request: AuthLoginRequest):
    """
    Raises:
        Unauthenticated 401: Invalid email or password
        Forbidden 403: Account inactive or suspended
    """
    logger.info(f"Login attempt for {request.email}")
    try:
        user = await UsersService().authenticate(request.email, request.password)
        data = await _issue_session(user)
        logger.info(f"User {user['id']} logged in")
        return success_response(data, "Login successful")
    except PlatformError:
        raise
    except Exception as e:
        logger.exception(f"Login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed",
        )


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    summary="Register a new customer account",
)
async def signup(request: AuthSignupRequest):
    """
    Create an ACTIVE customer and return credentials immediately.

    Raises:
        Forbidden 403: Registration is closed
        Conflict 409: Email already registered
    """
    try:
        if not await SystemConfigService().is_enabled("registration_open"):
            raise Forbidden("Registration is currently closed", error_code="REGISTRATION_CLOSED")
        user = await UsersService().register_user(
            request.email, request.password, request.name, request.phone
        )
        data = await _issue_session(user)
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=success_response(data, "Signup successful"),
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        logger.exception(f"Signup error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Signup failed",
        )


@router.get("/me", summary="Current user with expert application state")
async def me(current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        user = await UsersService().get_user_by_id(current_user.user_id)
        if not user:
            raise NotFound("User not found")
        summary = await ExpertApplicationsService().summary_for_user(current_user.user_id)
        return success_response(
            {
                "user": UserProfile.from_row(user).dump(),
                "expertApplication": ApplicationSummary(**summary).dump(),
            }
        )
    except PlatformError:
        raise
    except Exception as e:
        logger.exception(f"Error fetching current user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch user",
        )


# ============================================================================
# REFRESH / LOGOUT
# ============================================================================


@router.post("/refresh", summary="Rotate a refresh token")
async def refresh(request: AuthRefreshRequest):
    """
    Consume the refresh token and issue a new access/refresh pair.

    Raises:
        Unauthenticated 401: Unknown, revoked or expired refresh token
    """
    try:
        rotated = await RefreshTokensService().rotate(request.refresh_token)
        return success_response(
            {
                "accessToken": create_access_token(rotated["user"]),
                "refreshToken": rotated["refresh_token"],
                "expiresIn": settings.access_token_expire_seconds,
            }
        )
    except PlatformError:
        raise
    except Exception as e:
        logger.exception(f"Refresh error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Token refresh failed",
        )


@router.post("/logout", summary="Revoke refresh tokens")
async def logout(
    request: Optional[AuthLogoutRequest] = None,
    current_user: Optional[AuthTokenPayload] = Depends(get_optional_user),
):
    """
    Revoke one refresh token, or every token of the caller with ``revokeAll``.
    Always succeeds.
    """
    request = request or AuthLogoutRequest()
    tokens = RefreshTokensService()
    try:
        if request.revoke_all and current_user:
            revoked = await tokens.revoke_all(current_user.user_id)
            return success_response({"revoked": revoked}, "All tokens revoked")
        if request.refresh_token:
            await tokens.revoke(
                request.refresh_token,
                requester_id=current_user.user_id if current_user else None,
            )
        return success_response(message="Logged out successfully")
    except Exception as e:
        logger.exception(f"Logout error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Logout failed",
        )


# ============================================================================
# GOOGLE OAUTH
# ============================================================================


def _error_redirect(code: str) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.frontend_url}/auth/error?{urlencode({'error': code})}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/google", summary="Redirect to Google consent screen")
async def google_login(client: GoogleOAuthClient = Depends(get_google_client)):
    if not client.is_configured:
        logger.warning("Google sign-in requested but OAuth is not configured")
        return _error_redirect("not_configured")
    return RedirectResponse(client.build_consent_url(), status_code=status.HTTP_302_FOUND)


@router.get("/google/callback", summary="Google OAuth callback")
async def google_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    client: GoogleOAuthClient = Depends(get_google_client),
):
    """
    Complete Google sign-in and redirect to the frontend.

    Success: ``{frontend_url}/auth/success?token&email&name&role``
    Failure: ``{frontend_url}/auth/error?error=<code>``
    """
    if error:
        logger.info(f"Google consent not granted: {error}")
        return _error_redirect("access_denied")
    if not code:
        return _error_redirect("missing_code")
    if not client.is_configured:
        return _error_redirect("not_configured")

    try:
        access_token = await client.exchange_code(code)
        profile = await client.fetch_userinfo(access_token)
        user = await UsersService().upsert_google_user(
            google_id=str(profile["id"]),
            email=profile["email"],
            name=profile.get("name") or "",
            email_verified=bool(profile.get("verified_email")),
        )
    except Forbidden:
        return _error_redirect("account_disabled")
    except (GoogleOAuthError, PlatformError, ValueError) as e:
        logger.warning(f"Google sign-in failed: {e}")
        return _error_redirect("oauth_failed")

    query = urlencode(
        {
            "token": create_access_token(user),
            "email": user["email"],
            "name": user["name"],
            "role": str(user["role"]).upper(),
        }
    )
    logger.info(f"Google sign-in completed for {user['id']}")
    return RedirectResponse(
        f"{settings.frontend_url}/auth/success?{query}", status_code=status.HTTP_302_FOUND
    )

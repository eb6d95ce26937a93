"""Authentication endpoints: login, logout, password change, current identity"""
from fastapi import APIRouter, Depends, Request, Response

from cmsportal.api.deps import (
    IdentityContext,
    get_authenticator,
    get_identity_context,
    get_identity_resolver,
)
from cmsportal.config import settings
from cmsportal.errors import InvalidCredentials, NotAuthenticated, NotFound, RateLimited
from cmsportal.middleware.monitoring import record_login
from cmsportal.middleware.rate_limit import get_rate_limit, limiter
from cmsportal.schemas.account import LoginRequest, LoginResponse, LogoutResponse, PasswordChangeRequest
from cmsportal.schemas.identity import IdentityResponse
from cmsportal.services.accounts import PasswordAuthenticator
from cmsportal.services.identity import IdentityResolver

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit(get_rate_limit("login"))
def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    authenticator: PasswordAuthenticator = Depends(get_authenticator),
):
    """
    Exchange username/password for a session token.

    The token is returned in the body and set as an httpOnly cookie.
    Failed logins all return the same generic error.
    """
    if settings.AUTH_MODE.lower() != "local":
        raise NotFound("Local login is disabled")

    client_id = request.client.host if request.client else "unknown"
    try:
        result = authenticator.login(data.username, data.password, client_id)
    except RateLimited:
        record_login("rate_limited")
        raise
    except InvalidCredentials:
        record_login("invalid_credentials")
        raise

    record_login("success")
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=result.session.token,
        max_age=result.session.expires_in,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return LoginResponse(
        access_token=result.session.token,
        expires_in=result.session.expires_in,
        account=result.account,
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(
    response: Response,
    ctx: IdentityContext = Depends(get_identity_context),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    authenticator: PasswordAuthenticator = Depends(get_authenticator),
):
    """
    End the session.

    Local sessions are revoked server-side; in both modes the auth cookie is
    cleared and the caller is told where to go next.
    """
    if ctx.identity is not None and ctx.scheme == "local":
        authenticator.logout(ctx.identity.custom.get("jti"), ctx.identity.custom.get("exp"))

    resolver.clear_cookies(response)
    return LogoutResponse(logged_out=True, redirect_to=resolver.logout_url())


@router.post("/password")
def change_password(
    data: PasswordChangeRequest,
    ctx: IdentityContext = Depends(get_identity_context),
    authenticator: PasswordAuthenticator = Depends(get_authenticator),
):
    """Change the password of the logged-in local account"""
    account_id = ctx.identity.subject if ctx.identity is not None and ctx.scheme == "local" else None
    authenticator.change_password(account_id, data.current_password, data.new_password)
    return {"success": True}


@router.get("/me", response_model=IdentityResponse)
def current_identity(ctx: IdentityContext = Depends(get_identity_context)):
    """Resolved identity and role of the caller"""
    if ctx.identity is None:
        raise NotAuthenticated(login_url=ctx.login_url)

    identity = ctx.identity
    return IdentityResponse(
        subject=identity.subject,
        email=identity.email,
        name=identity.name,
        groups=identity.groups,
        customer_id=identity.customer_id,
        is_demo=identity.is_demo,
        role=ctx.role,
        auth_mode=ctx.scheme,
    )


@router.get("/login-url")
def login_url(resolver: IdentityResolver = Depends(get_identity_resolver)):
    """Where to send a user to sign in or out"""
    return {
        "auth_mode": resolver.mode,
        "login_url": resolver.login_url(),
        "logout_url": resolver.logout_url(),
    }

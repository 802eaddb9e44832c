"""Authentication API - login, logout, session, profile, password reset, Google."""
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.models.base import get_db
from storefront.models.user import User
from storefront.services.auth_service import ResolvedSession, SessionManager
from storefront.services.errors import (
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from storefront.services.google_oauth_service import (
    CALLBACK_PATH,
    STATE_COOKIE_NAME,
    STATE_MAX_AGE_SECONDS,
    GoogleAuthError,
    GoogleOAuthClient,
    build_authorization_url,
    new_state,
    upsert_google_user,
)
from storefront.services.password_reset_service import (
    PasswordResetService,
    ResetMailer,
    get_reset_mailer,
)
from storefront.services.token_codec import AUTH_COOKIE_NAME, get_token_codec
from storefront.utils.helpers import isoformat_or_none, normalize_email, utcnow
from storefront.utils.logger import log

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Dependencies ─────────────────────────────────────────

def get_session_manager(db: Session = Depends(get_db)) -> SessionManager:
    return SessionManager(db, get_token_codec())


def get_reset_service(
    db: Session = Depends(get_db),
    mailer: ResetMailer = Depends(get_reset_mailer),
) -> PasswordResetService:
    return PasswordResetService(db, mailer)


def get_google_client() -> GoogleOAuthClient:
    settings = get_settings()
    return GoogleOAuthClient(settings.google_client_id, settings.google_client_secret)


def _require_session(
    request: Request,
    manager: SessionManager = Depends(get_session_manager),
) -> ResolvedSession:
    """Dependency: raise 401 unless the cookie resolves to a live session."""
    resolved = manager.resolve(request.cookies.get(AUTH_COOKIE_NAME))
    if resolved is None:
        raise AuthenticationError("Unauthorized")
    return resolved


# ── Schemas ──────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    avatarPublicId: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


def _user_out(u: User) -> dict:
    return {
        "id": str(u.id),
        "name": u.name or "",
        "email": u.email,
        "phone": u.phone or "",
        "bio": u.bio or "",
        "avatar": u.avatar or "",
        "avatarPublicId": u.avatar_public_id or "",
        "role": u.role or "customer",
        "isAdmin": u.is_admin or 0,
        "isActive": bool(u.is_active),
        "emailVerified": bool(u.email_verified),
        "lastLogin": isoformat_or_none(u.last_login),
        "createdAt": isoformat_or_none(u.created_at),
        "updatedAt": isoformat_or_none(u.updated_at),
    }


def _public_origin(request: Request) -> str:
    return get_settings().app_base_url or str(request.base_url)


def _set_auth_cookie(response, value: str, max_age: int) -> None:
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=get_settings().is_production,
        samesite="lax",
        max_age=max_age,
        path="/",
    )


def _set_state_cookie(response, value: str, max_age: int) -> None:
    response.set_cookie(
        key=STATE_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=get_settings().is_production,
        samesite="lax",
        max_age=max_age,
        path="/",
    )


# ── Session endpoints ────────────────────────────────────

@router.post("/login")
async def login(body: LoginRequest, manager: SessionManager = Depends(get_session_manager)):
    """Authenticate and set the session cookie."""
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")

    result = manager.login(body.email, body.password)
    response = JSONResponse(content={
        "message": "Login successful",
        "user": _user_out(result.user),
        "session": {
            "token": result.session.token,
            "expiresAt": result.session.expires_at.isoformat(),
        },
    })
    _set_auth_cookie(response, result.auth_token, int(manager.codec.ttl.total_seconds()))
    return response


@router.post("/logout")
async def logout(request: Request, manager: SessionManager = Depends(get_session_manager)):
    """Delete the session (if any) and clear the cookie."""
    manager.logout(request.cookies.get(AUTH_COOKIE_NAME))
    response = JSONResponse(content={"success": True})
    _set_auth_cookie(response, "", 0)
    return response


@router.get("/session")
async def session(current: ResolvedSession = Depends(_require_session)):
    """Return the current user and session metadata."""
    issued_at = current.claims.issued_at
    return {
        "user": _user_out(current.user),
        "session": {
            "token": current.session.token,
            "expiresAt": isoformat_or_none(current.session.expires_at),
            "issuedAt": issued_at.isoformat() if issued_at else None,
        },
    }


# ── Profile ──────────────────────────────────────────────

@router.get("/profile")
async def get_profile(current: ResolvedSession = Depends(_require_session)):
    return {"user": _user_out(current.user)}


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    current: ResolvedSession = Depends(_require_session),
    db: Session = Depends(get_db),
):
    """Apply a partial profile update for the current user."""
    user = current.user

    updates = {}
    if body.name is not None and len(body.name.strip()) >= 2:
        updates["name"] = body.name.strip()
    if body.phone is not None:
        updates["phone"] = body.phone.strip()
    if body.bio is not None:
        updates["bio"] = body.bio.strip()
    if body.avatar is not None:
        updates["avatar"] = body.avatar
    if body.avatarPublicId is not None:
        updates["avatar_public_id"] = body.avatarPublicId

    if body.email is not None and body.email.strip():
        new_email = normalize_email(body.email)
        if new_email != user.email:
            duplicate = (
                db.query(User)
                .filter(User.id != user.id, User.email == new_email)
                .first()
            )
            if duplicate:
                raise ConflictError("Another account already uses that email")
            updates["email"] = new_email
            updates["email_verified"] = False

    if not updates:
        raise ValidationError("No changes provided")

    for field, value in updates.items():
        setattr(user, field, value)
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return {"user": _user_out(user)}


# ── Password reset ───────────────────────────────────────

@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    service: PasswordResetService = Depends(get_reset_service),
):
    """Email a one-time reset link."""
    service.request_reset(body.email, _public_origin(request))
    return {"message": "Reset link sent"}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    service: PasswordResetService = Depends(get_reset_service),
):
    """Set a new password with a reset token."""
    service.consume_reset(body.token, body.password)
    return {"message": "Password updated successfully"}


# ── Google sign-in ───────────────────────────────────────

def _callback_uri(request: Request) -> str:
    return _public_origin(request).rstrip("/") + CALLBACK_PATH


def _login_redirect(request: Request, error: str) -> RedirectResponse:
    target = _public_origin(request).rstrip("/") + "/login"
    response = RedirectResponse(url=f"{target}?{urlencode({'error': error})}", status_code=302)
    _set_state_cookie(response, "", 0)
    return response


@router.get("/google/redirect")
async def google_redirect(
    request: Request,
    client: GoogleOAuthClient = Depends(get_google_client),
):
    """Send the browser to Google's consent screen."""
    if not client.configured:
        return JSONResponse(status_code=500, content={"error": "Google OAuth is not configured"})

    state = new_state()
    url = build_authorization_url(client.client_id, _callback_uri(request), state)
    response = RedirectResponse(url=url, status_code=302)
    _set_state_cookie(response, state, STATE_MAX_AGE_SECONDS)
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    client: GoogleOAuthClient = Depends(get_google_client),
    manager: SessionManager = Depends(get_session_manager),
):
    """Finish Google sign-in and set the session cookie."""
    if not client.configured:
        return _login_redirect(request, "Google auth disabled")

    stored_state = request.cookies.get(STATE_COOKIE_NAME)
    if not code or not state or not stored_state or state != stored_state:
        return _login_redirect(request, "Invalid Google response")

    try:
        token_data = await client.exchange_code(code, _callback_uri(request))
        profile = await client.fetch_profile(token_data["access_token"])
        user = upsert_google_user(manager.db, profile)
        result = manager.open_session(user)
    except GoogleAuthError as exc:
        return _login_redirect(request, exc.message)
    except Exception as exc:
        log.error(f"Google callback failed: {exc}")
        return _login_redirect(request, "Google login failed")

    home = _public_origin(request).rstrip("/") + "/"
    response = RedirectResponse(url=home, status_code=302)
    _set_auth_cookie(response, result.auth_token, int(manager.codec.ttl.total_seconds()))
    _set_state_cookie(response, "", 0)
    return response

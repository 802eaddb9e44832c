"""Google sign-in: authorization redirect, code exchange, user upsert."""
import secrets
from typing import Dict, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from storefront.models.user import User
from storefront.services.errors import AuthError
from storefront.utils.helpers import normalize_email, utcnow
from storefront.utils.logger import log

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
GOOGLE_SCOPE = "openid email profile"

STATE_COOKIE_NAME = "google_oauth_state"
STATE_MAX_AGE_SECONDS = 600
CALLBACK_PATH = "/auth/google/callback"


class GoogleAuthError(AuthError):
    """Google sign-in failed; ``message`` is shown on the login page."""


def new_state() -> str:
    return secrets.token_hex(16)


def build_authorization_url(client_id: str, redirect_uri: str, state: str) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": GOOGLE_SCOPE,
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


class GoogleOAuthClient:
    def __init__(self, client_id: str, client_secret: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def exchange_code(self, code: str, redirect_uri: str) -> Dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                },
            )
        if response.status_code != 200:
            log.error(f"Google token exchange failed: {response.text}")
            raise GoogleAuthError("Unable to complete Google login")
        return response.json()

    async def fetch_profile(self, access_token: str) -> Dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        if response.status_code != 200:
            log.error(f"Failed to fetch Google profile: {response.text}")
            raise GoogleAuthError("Unable to fetch Google profile")
        return response.json()


def upsert_google_user(db: Session, profile: Dict) -> User:
    """Find or create the account for a Google profile.

    New accounts are active, non-admin customers without a password.
    Existing accounts get their avatar and verification status refreshed.
    """
    email: Optional[str] = profile.get("email")
    if not email:
        raise GoogleAuthError("Google account has no email")

    normalized = normalize_email(email)
    now = utcnow()
    avatar = profile.get("picture") or ""
    verified = bool(profile.get("email_verified"))

    user = db.query(User).filter(User.email == normalized).first()
    if user is not None and not user.is_active:
        raise GoogleAuthError("Account is deactivated")

    if user is None:
        user = User(
            email=normalized,
            name=profile.get("name") or "Google User",
            password_hash=None,
            role="customer",
            is_admin=0,
            is_active=True,
            email_verified=verified,
            avatar=avatar,
            created_at=now,
            updated_at=now,
            last_login=now,
        )
        db.add(user)
        log.info(f"Created account for Google user {normalized}")
    else:
        user.avatar = avatar or user.avatar or ""
        user.email_verified = bool(user.email_verified) or verified
        user.updated_at = now
        user.last_login = now

    db.commit()
    db.refresh(user)
    return user

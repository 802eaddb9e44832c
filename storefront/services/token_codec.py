"""Signed authorization token carried in the ``rbs_session`` cookie.

The token wraps the user's public claims plus a pointer to a server-side
session row. A valid signature is necessary but not sufficient: handlers
that need the live user must still resolve the embedded session token
through ``SessionManager.resolve``.

Token claims:
    - sub: user id
    - email, name, role, is_admin: public user claims
    - sid: session token (``user_sessions.token``)
    - iat / exp: issued-at and expiry, ``exp = iat + TTL``
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from storefront.config import get_settings
from storefront.services.errors import ConfigurationError
from storefront.utils.logger import log

AUTH_COOKIE_NAME = "rbs_session"
ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(days=7)


@dataclass(frozen=True)
class AuthClaims:
    user_id: str
    email: str
    name: str
    session_token: str
    role: str = "customer"
    is_admin: int = 0
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def has_admin_access(self) -> bool:
        if (self.role or "").lower() == "admin":
            return True
        return bool(self.is_admin)


class TokenCodec:
    """Mint and verify HS256 authorization tokens.

    Both operations are pure CPU work, so they are plain ``def`` methods.
    """

    def __init__(self, secret: str, ttl: timedelta = DEFAULT_TOKEN_TTL):
        self.secret = secret
        self.ttl = ttl

    def mint(self, claims: AuthClaims) -> str:
        """Sign ``claims`` with a fresh issued-at and ``exp = iat + ttl``.

        Raises:
            ConfigurationError: the signing secret is not configured.
        """
        if not self.secret:
            raise ConfigurationError("AUTH_SECRET is not configured")

        issued_at = int(datetime.now(timezone.utc).timestamp())
        payload = {
            "sub": claims.user_id,
            "email": claims.email,
            "name": claims.name,
            "sid": claims.session_token,
            "role": claims.role,
            "is_admin": 1 if claims.is_admin else 0,
            "iat": issued_at,
            "exp": issued_at + int(self.ttl.total_seconds()),
        }
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Optional[AuthClaims]:
        """Return the claims of a valid token, or None.

        Bad signatures, malformed tokens, missing claims and expired tokens
        are ordinary traffic (stale or tampered cookies); they are logged at
        warning level and never raised.
        """
        if not self.secret:
            log.warning("AUTH_SECRET is missing; skipping token verification")
            return None

        try:
            payload = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except JWTError as exc:
            log.warning(f"Failed to verify auth token: {exc}")
            return None

        try:
            return AuthClaims(
                user_id=str(payload["sub"]),
                email=payload["email"],
                name=payload.get("name") or "",
                session_token=payload["sid"],
                role=payload.get("role") or "customer",
                is_admin=int(payload.get("is_admin") or 0),
                issued_at=_from_timestamp(payload.get("iat")),
                expires_at=_from_timestamp(payload.get("exp")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            log.warning(f"Auth token is missing required claims: {exc}")
            return None


def _from_timestamp(value) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def get_token_codec() -> TokenCodec:
    """Codec configured from settings"""
    settings = get_settings()
    return TokenCodec(settings.auth_secret, timedelta(days=settings.session_ttl_days))

"""Authorization gate - route-level access control before any handler runs.

The gate trusts the signed ``rbs_session`` cookie alone and never reads the
session table. A token whose session was revoked elsewhere therefore keeps
passing here until the token itself expires (up to the session TTL).
Handlers that need the live user go through ``SessionManager.resolve``.
"""
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Tuple
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from storefront.services.token_codec import AUTH_COOKIE_NAME, AuthClaims, TokenCodec, get_token_codec
from storefront.utils.logger import log

LOGIN_PATH = "/login"
HOME_PATH = "/"

USER_ID_HEADER = b"x-user-id"
USER_EMAIL_HEADER = b"x-user-email"


class Access(str, Enum):
    """What a route class requires. Declaration order is evaluation order."""
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"
    GUEST = "guest"


@dataclass(frozen=True)
class RouteRule:
    prefix: str
    access: Access

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")


DEFAULT_RULES: Tuple[RouteRule, ...] = (
    RouteRule("/profile", Access.AUTHENTICATED),
    *(
        RouteRule(prefix, Access.ADMIN)
        for prefix in (
            "/dashboard",
            "/categories",
            "/users",
            "/collections",
            "/coupons",
            "/newsletter",
            "/offers",
            "/orders",
            "/seasonal-collection",
        )
    ),
    *(
        RouteRule(prefix, Access.GUEST)
        for prefix in ("/login", "/register", "/forgot-password", "/reset-password")
    ),
)

# Never gated: JSON API (resolves sessions itself) and static assets
EXCLUDED_PREFIXES = (
    "/auth/",
    "/static/",
    "/images/",
    "/sounds/",
    "/public/",
    "/favicon.ico",
    "/health",
)


class Redirect(str, Enum):
    LOGIN = "login"
    HOME = "home"


def _require_user(claims: Optional[AuthClaims]) -> Optional[Redirect]:
    return Redirect.LOGIN if claims is None else None


def _require_admin(claims: Optional[AuthClaims]) -> Optional[Redirect]:
    if claims is None:
        return Redirect.LOGIN
    return None if claims.has_admin_access else Redirect.HOME


def _require_guest(claims: Optional[AuthClaims]) -> Optional[Redirect]:
    return Redirect.HOME if claims is not None else None


ACCESS_CHECKS: Dict[Access, Callable[[Optional[AuthClaims]], Optional[Redirect]]] = {
    Access.AUTHENTICATED: _require_user,
    Access.ADMIN: _require_admin,
    Access.GUEST: _require_guest,
}


def normalize_path(path: str) -> str:
    return path.lower().rstrip("/") or "/"


def evaluate(
    path: str,
    claims: Optional[AuthClaims],
    rules: Iterable[RouteRule] = DEFAULT_RULES,
) -> Optional[Redirect]:
    """Return where to send the request, or None to let it through."""
    normalized = normalize_path(path)
    matched = {rule.access for rule in rules if rule.matches(normalized)}
    for access in Access:
        if access in matched:
            redirect = ACCESS_CHECKS[access](claims)
            if redirect is not None:
                return redirect
    return None


def redirect_url(request: Request, redirect: Redirect) -> str:
    if redirect is Redirect.LOGIN:
        query = urlencode({"redirect": request.url.path})
        return str(request.url.replace(path=LOGIN_PATH, query=query))
    return str(request.url.replace(path=HOME_PATH, query=""))


class AuthGateMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        rules: Iterable[RouteRule] = DEFAULT_RULES,
        excluded_prefixes: Iterable[str] = EXCLUDED_PREFIXES,
        codec_factory: Callable[[], TokenCodec] = get_token_codec,
    ):
        super().__init__(app)
        self.rules = tuple(rules)
        self.excluded_prefixes = tuple(excluded_prefixes)
        self.codec_factory = codec_factory

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if any(path.startswith(p) for p in self.excluded_prefixes):
            return await call_next(request)

        start = time.perf_counter()

        # Identity headers are only ever set by the gate
        headers = [
            (key, value)
            for key, value in request.scope["headers"]
            if key not in (USER_ID_HEADER, USER_EMAIL_HEADER)
        ]

        token = request.cookies.get(AUTH_COOKIE_NAME)
        claims = self.codec_factory().verify(token) if token else None

        redirect = evaluate(path, claims, self.rules)
        if redirect is not None:
            who = claims.user_id if claims else "anonymous"
            log.info(f"Gate: {path} redirected to {redirect.value} (user:{who})")
            return RedirectResponse(url=redirect_url(request, redirect), status_code=302)

        if claims is not None:
            headers.append((USER_ID_HEADER, claims.user_id.encode("utf-8")))
            headers.append((USER_EMAIL_HEADER, claims.email.encode("utf-8")))
            request.state.auth_claims = claims
        request.scope["headers"] = headers

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - start) * 1000
        log.info(
            f"Gate: {path} ({elapsed_ms:.0f}ms) - user:{claims.user_id if claims else 'anonymous'}"
        )
        return response

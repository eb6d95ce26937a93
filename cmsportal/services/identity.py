"""Identity resolution: one interface, two schemes selected by ``AUTH_MODE``.

``LocalSessionResolver``
    Session tokens issued by ``POST /auth/login`` for local admin accounts.

``AccessTokenResolver``
    Bearer tokens issued by an external Zero-Trust identity provider
    (Cloudflare Access). The signature is verified against the provider's
    JWKS before any claim is trusted; audience and expiry are enforced.

Both return ``None`` for "no identity" and never raise for a bad token: the
failure is logged and the caller degrades to the unauthenticated state.
"""
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import requests
from fastapi import Request, Response
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from cmsportal.errors import TokenInvalid
from cmsportal.schemas.identity import Identity
from cmsportal.services.state_store import StateStore
from cmsportal.utils.jwt_utils import decode_session_token
from cmsportal.utils.logger import logger

_ALLOWED_ALGS = {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512"}

JwksFetcher = Callable[[str, float], Dict[str, Any]]


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization")
    if header and header.lower().startswith("bearer "):
        token = header[7:].strip()
        return token or None
    return None


class IdentityResolver(ABC):
    """Recover a verified identity from a request"""

    mode: str = ""

    @abstractmethod
    def resolve(self, request: Request, store: StateStore) -> Optional[Identity]:
        ...

    @abstractmethod
    def login_url(self) -> str:
        ...

    @abstractmethod
    def logout_url(self) -> str:
        ...

    @abstractmethod
    def clear_cookies(self, response: Response) -> None:
        ...


# ---------------------------------------------------------------------------
# Local sessions
# ---------------------------------------------------------------------------

class LocalSessionResolver(IdentityResolver):
    mode = "local"

    def __init__(self, cookie_name: str = "cms_session"):
        self.cookie_name = cookie_name

    def resolve(self, request: Request, store: StateStore) -> Optional[Identity]:
        token = _bearer_token(request) or request.cookies.get(self.cookie_name)
        if not token:
            return None

        try:
            payload = decode_session_token(token)
        except TokenInvalid:
            logger.warning("Rejected session token", extra={"scheme": self.mode})
            return None

        if store.is_session_revoked(payload["jti"]):
            logger.warning("Rejected revoked session token", extra={"scheme": self.mode})
            return None

        account = next(
            (a for a in store.admin_accounts() if a.id == payload["sub"] and a.is_active),
            None,
        )
        if account is None:
            logger.warning("Session token for unknown or inactive account", extra={"user_id": payload["sub"]})
            return None

        return Identity(
            subject=account.id,
            email=account.email,
            name=account.username,
            custom={
                "role": "admin" if account.role == "admin" else "staff",
                "jti": payload["jti"],
                "exp": payload["exp"],
            },
        )

    def login_url(self) -> str:
        return "/auth/login"

    def logout_url(self) -> str:
        return "/auth/login"

    def clear_cookies(self, response: Response) -> None:
        response.delete_cookie(self.cookie_name, path="/")


# ---------------------------------------------------------------------------
# Zero-Trust access tokens
# ---------------------------------------------------------------------------

def fetch_jwks(url: str, timeout: float) -> Dict[str, Any]:
    """Fetch the provider's public key set"""
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.json()


class AccessTokenResolver(IdentityResolver):
    mode = "access"

    def __init__(
        self,
        team_domain: Optional[str],
        audience: Optional[str],
        certs_url: Optional[str] = None,
        cookie_name: str = "CF_Authorization",
        header_name: str = "Cf-Access-Jwt-Assertion",
        cache_seconds: float = 3600,
        min_refresh_seconds: float = 60,
        timeout: float = 5.0,
        dev_identity: Optional[Identity] = None,
        fetcher: JwksFetcher = fetch_jwks,
        clock: Callable[[], float] = time.time,
    ):
        self.team_domain = team_domain
        self.audience = audience
        self.certs_url = certs_url or (f"https://{team_domain}/cdn-cgi/access/certs" if team_domain else None)
        self.cookie_name = cookie_name
        self.header_name = header_name
        self.cache_seconds = cache_seconds
        self.min_refresh_seconds = min_refresh_seconds
        self.timeout = timeout
        self.dev_identity = dev_identity
        self._fetcher = fetcher
        self._clock = clock
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._fetched_at: Optional[float] = None
        self._last_attempt: Optional[float] = None
        self._lock = threading.Lock()

    # -- request handling ------------------------------------------------

    def resolve(self, request: Request, store: StateStore) -> Optional[Identity]:
        token = (
            request.headers.get(self.header_name)
            or request.cookies.get(self.cookie_name)
            or _bearer_token(request)
        )
        if not token:
            if self.dev_identity is not None:
                return self.dev_identity.model_copy(deep=True)
            return None
        return self.verify(token)

    def login_url(self) -> str:
        if not self.team_domain:
            return "/"
        return f"https://{self.team_domain}/cdn-cgi/access/login"

    def logout_url(self) -> str:
        if not self.team_domain:
            return "/"
        return f"https://{self.team_domain}/cdn-cgi/access/logout"

    def clear_cookies(self, response: Response) -> None:
        response.delete_cookie(self.cookie_name, path="/")

    # -- verification ----------------------------------------------------

    def verify(self, token: str) -> Optional[Identity]:
        """Verify ``token`` and map its claims to an Identity, or return None"""
        if not self.audience or not self.certs_url:
            logger.error("Access token received but ACCESS_AUD / ACCESS_TEAM_DOMAIN are not configured")
            return None

        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            return self._reject("malformed token header")

        kid = header.get("kid")
        alg = header.get("alg")
        if not kid:
            return self._reject("token missing key ID")
        if alg not in _ALLOWED_ALGS:
            return self._reject(f"unsupported algorithm {alg!r}")

        try:
            key = self._signing_key(kid)
        except (requests.RequestException, ValueError) as exc:
            return self._reject(f"public key fetch failed: {exc}")
        if key is None:
            return self._reject(f"no public key for key ID {kid}")

        try:
            claims = jwt.decode(token, key, algorithms=[alg], audience=self.audience)
        except ExpiredSignatureError:
            return self._reject("token expired")
        except JWTClaimsError as exc:
            return self._reject(f"claims rejected: {exc}")
        except JWTError as exc:
            return self._reject(f"signature verification failed: {exc}")

        if not _audience_matches(claims.get("aud"), self.audience):
            return self._reject("audience mismatch")

        return self._to_identity(claims)

    def _reject(self, reason: str) -> None:
        logger.warning(f"Access token rejected: {reason}", extra={"scheme": self.mode})
        return None

    def _signing_key(self, kid: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            now = self._clock()
            fresh = self._fetched_at is not None and (now - self._fetched_at) < self.cache_seconds
            if fresh:
                if kid in self._keys:
                    return self._keys[kid]
                # Unknown kid after key rotation: refetch at most once per min_refresh_seconds
                if self._last_attempt is not None and (now - self._last_attempt) < self.min_refresh_seconds:
                    return None
            self._last_attempt = now

        # Fetched outside the lock so a slow provider does not stall cached lookups
        jwks = self._fetcher(self.certs_url, self.timeout)
        keys = {k["kid"]: k for k in jwks.get("keys", []) if isinstance(k, dict) and k.get("kid")}
        with self._lock:
            self._keys = keys
            self._fetched_at = now
            return keys.get(kid)

    @staticmethod
    def _to_identity(claims: Dict[str, Any]) -> Optional[Identity]:
        email = claims.get("email")
        subject = claims.get("sub") or email
        if not subject:
            logger.warning("Access token has neither sub nor email")
            return None

        custom = claims.get("custom") if isinstance(claims.get("custom"), dict) else {}
        groups = claims.get("groups") if isinstance(claims.get("groups"), list) else []
        customer_id = custom.get("customer_id")

        return Identity(
            subject=str(subject),
            email=email,
            name=claims.get("name"),
            groups=[str(g) for g in groups],
            custom=custom,
            customer_id=str(customer_id) if customer_id else None,
        )


def _audience_matches(aud: Any, expected: str) -> bool:
    if isinstance(aud, str):
        return aud == expected
    if isinstance(aud, list):
        return expected in aud
    return False


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_identity_resolver(settings) -> IdentityResolver:
    """Select the identity scheme configured by ``AUTH_MODE``"""
    mode = settings.AUTH_MODE.lower()

    if mode == "local":
        return LocalSessionResolver(cookie_name=settings.SESSION_COOKIE_NAME)

    if mode == "access":
        dev_identity = None
        if not settings.is_production and settings.DEV_IDENTITY_EMAIL:
            dev_identity = Identity(
                subject=f"dev:{settings.DEV_IDENTITY_EMAIL}",
                email=settings.DEV_IDENTITY_EMAIL,
                name=settings.DEV_IDENTITY_NAME or settings.DEV_IDENTITY_EMAIL,
                groups=settings.dev_identity_groups_list,
                is_demo=True,
            )
            logger.warning(
                "Development identity substituted when no access token is present",
                extra={"user_id": dev_identity.subject},
            )
        return AccessTokenResolver(
            team_domain=settings.ACCESS_TEAM_DOMAIN,
            audience=settings.ACCESS_AUD,
            certs_url=settings.ACCESS_CERTS_URL,
            cookie_name=settings.ACCESS_COOKIE_NAME,
            header_name=settings.ACCESS_JWT_HEADER,
            cache_seconds=settings.JWKS_CACHE_SECONDS,
            min_refresh_seconds=settings.JWKS_MIN_REFRESH_SECONDS,
            timeout=settings.IDENTITY_TIMEOUT_SECONDS,
            dev_identity=dev_identity,
        )

    raise ValueError(f"Unknown AUTH_MODE '{settings.AUTH_MODE}' (expected 'local' or 'access')")

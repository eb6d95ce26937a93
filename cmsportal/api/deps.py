"""API dependencies for authentication and authorization.

Every protected route resolves the caller through the configured
:class:`~cmsportal.services.identity.IdentityResolver` (``AUTH_MODE``):

  - ``local``   session token from ``Authorization: Bearer`` or the session cookie
  - ``access``  Zero-Trust token from the ``Cf-Access-Jwt-Assertion`` header or
                the ``CF_Authorization`` cookie

RBAC
----
The resolved identity is mapped to a role by the role policy, then the session
gate decides. Use :func:`require_role` for role-gated endpoints and
:func:`require_permission` to gate by operation name.

Role hierarchy (higher level → more permissions):
    admin (3) > staff (2) > customer (1) > none (0)
"""
from typing import Callable, NamedTuple, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cmsportal.config import settings
from cmsportal.database import get_db
from cmsportal.errors import Forbidden, NotAuthenticated
from cmsportal.middleware.monitoring import record_auth_failure
from cmsportal.schemas.identity import Identity, Role
from cmsportal.services.accounts import PasswordAuthenticator
from cmsportal.services.content import ContentStore
from cmsportal.services.documents import Actor, DocumentStore
from cmsportal.services.gate import GateOutcome, SessionGate
from cmsportal.services.identity import IdentityResolver, build_identity_resolver
from cmsportal.services.object_storage import ObjectStorage, object_storage
from cmsportal.services.policy import RolePolicy, required_role_for
from cmsportal.services.rate_limiter import login_rate_limiter
from cmsportal.services.seeds import default_seeds
from cmsportal.services.state_store import StateStore

_resolver: Optional[IdentityResolver] = None
_policy: Optional[RolePolicy] = None


class IdentityContext(NamedTuple):
    """Resolved caller, populated by :func:`get_identity_context`."""
    identity: Optional[Identity]   # None = unauthenticated
    role: Role
    scheme: str                    # local | access
    login_url: str


# ---------------------------------------------------------------------------
# Singletons built from settings
# ---------------------------------------------------------------------------

def get_identity_resolver() -> IdentityResolver:
    global _resolver
    if _resolver is None:
        _resolver = build_identity_resolver(settings)
    return _resolver


def get_role_policy() -> RolePolicy:
    global _policy
    if _policy is None:
        _policy = RolePolicy.from_settings(settings)
    return _policy


def get_object_storage() -> ObjectStorage:
    return object_storage


# ---------------------------------------------------------------------------
# Per-request stores
# ---------------------------------------------------------------------------

def get_store(db: Session = Depends(get_db)) -> StateStore:
    return StateStore(db, default_seeds(settings))


def get_authenticator(store: StateStore = Depends(get_store)) -> PasswordAuthenticator:
    return PasswordAuthenticator(store, login_rate_limiter)


def get_content_store(store: StateStore = Depends(get_store)) -> ContentStore:
    return ContentStore(store, settings.AUTHOR_DELETE_POLICY)


def get_document_store(
    store: StateStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_object_storage),
) -> DocumentStore:
    return DocumentStore(
        store,
        storage,
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        access_log_retention=settings.ACCESS_LOG_RETENTION,
    )


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def get_identity_context(
    request: Request,
    store: StateStore = Depends(get_store),
    documents: DocumentStore = Depends(get_document_store),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    policy: RolePolicy = Depends(get_role_policy),
) -> IdentityContext:
    """Resolve the caller without enforcing anything.

    An identity with no ``customer_id`` claim is associated with the active
    customer whose email matches, if any.
    """
    identity = resolver.resolve(request, store)

    if identity is not None and identity.customer_id is None:
        customer = documents.find_customer_by_email(identity.email)
        if customer is not None:
            identity = identity.model_copy(update={"customer_id": customer.id})

    return IdentityContext(
        identity=identity,
        role=policy.resolve_role(identity),
        scheme=resolver.mode,
        login_url=resolver.login_url(),
    )


def require_role(min_role: Role) -> Callable:
    """Return a FastAPI dependency that enforces a minimum role.

    Usage::

        @router.post("/sensitive")
        def endpoint(ctx: IdentityContext = Depends(require_role(Role.ADMIN))):
            ...

    Raises :class:`NotAuthenticated` (401, with the login URL) when no
    identity resolved, :class:`Forbidden` (403) when the role is too low.
    """

    def _role_dep(ctx: IdentityContext = Depends(get_identity_context)) -> IdentityContext:
        decision = SessionGate(ctx.login_url).evaluate(
            is_loading=False,
            identity=ctx.identity,
            role=ctx.role,
            required_role=min_role,
        )
        if decision.outcome == GateOutcome.REDIRECT:
            record_auth_failure(ctx.scheme)
            raise NotAuthenticated(login_url=decision.redirect_to)
        if not decision.allowed:
            raise Forbidden(f"Role '{min_role.value}' or higher required (your role: '{ctx.role.value}')")
        return ctx

    # Give FastAPI a unique name so it doesn't collapse distinct dependencies
    _role_dep.__name__ = f"require_role_{min_role.value}"
    return _role_dep


def require_permission(operation: str) -> Callable:
    """Gate a route by operation name, e.g. ``require_permission("posts:write")``"""
    return require_role(required_role_for(operation))


def actor_from(ctx: IdentityContext) -> Actor:
    return Actor(identity=ctx.identity, role=ctx.role)

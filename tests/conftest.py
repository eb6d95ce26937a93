"""Pytest configuration and fixtures"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("AUTH_MODE", "local")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import time
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from cmsportal import models  # noqa: F401  register mappers
from cmsportal.api.deps import get_identity_resolver, get_object_storage, get_role_policy
from cmsportal.config import settings
from cmsportal.database import Base, get_db
from cmsportal.main import app
from cmsportal.middleware.rate_limit import limiter
from cmsportal.services.identity import AccessTokenResolver
from cmsportal.services.object_storage import MockObjectStorage
from cmsportal.services.policy import RolePolicy
from cmsportal.services.rate_limiter import login_rate_limiter
from cmsportal.services.seeds import default_seeds
from cmsportal.services.state_store import StateKey, StateStore
from cmsportal.utils.auth import hash_password

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_PASSWORD = "Admin-Passw0rd!23"
EDITOR_PASSWORD = "Editor-Passw0rd!45"

ACCESS_AUD = "test-audience-tag"
ACCESS_DOMAIN = "team.example.test"
ACCESS_KID = "test-key-1"


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(db: Session) -> StateStore:
    return StateStore(db, default_seeds(settings))


@pytest.fixture
def storage() -> MockObjectStorage:
    return MockObjectStorage()


@pytest.fixture(scope="function")
def client(db: Session, storage: MockObjectStorage) -> Generator[TestClient, None, None]:
    """Create test client with database session override"""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_storage] = lambda: storage
    limiter.reset()
    login_rate_limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Local accounts
# ---------------------------------------------------------------------------

def _account(account_id: str, username: str, email: str, password: str, role: str) -> Dict[str, Any]:
    return {
        "id": account_id,
        "username": username,
        "email": email,
        "password_hash": hash_password(password, rounds=4),
        "role": role,
        "is_active": True,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }


@pytest.fixture
def accounts(db: Session) -> List[Dict[str, Any]]:
    """An admin and an editor with known passwords"""
    records = [
        _account("acct_admin", "admin", "admin@example.com", ADMIN_PASSWORD, "admin"),
        _account("acct_editor", "editor", "editor@example.com", EDITOR_PASSWORD, "editor"),
    ]
    StateStore(db).write(StateKey.ADMIN_USERS, records)
    return records


def _login(client: TestClient, username: str, password: str) -> dict:
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    # Keep fixtures header-based; the session cookie would authenticate every later request
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client: TestClient, accounts) -> dict:
    """Bearer headers for the local admin account"""
    headers = _login(client, "admin", ADMIN_PASSWORD)
    login_rate_limiter.reset()
    return headers


@pytest.fixture
def editor_headers(client: TestClient, accounts) -> dict:
    """Bearer headers for the local editor account (staff role)"""
    headers = _login(client, "editor", EDITOR_PASSWORD)
    login_rate_limiter.reset()
    return headers


# ---------------------------------------------------------------------------
# Zero-Trust tokens
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def signing_key():
    """RSA private key standing in for the identity provider's"""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(signing_key) -> Dict[str, Any]:
    public_pem = signing_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    key = jwk.construct(public_pem, "RS256").to_dict()
    key["kid"] = ACCESS_KID
    key["use"] = "sig"
    return {"keys": [key]}


@pytest.fixture
def make_token(signing_key):
    """Sign a Zero-Trust style token; override a claim by keyword, drop it with None"""
    private_pem = signing_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    def _make(kid: str = ACCESS_KID, **claims: Any) -> str:
        now = int(time.time())
        payload = {
            "sub": "user-123",
            "email": "someone@example.org",
            "aud": [ACCESS_AUD],
            "iss": f"https://{ACCESS_DOMAIN}",
            "iat": now,
            "exp": now + 600,
        }
        payload.update(claims)
        payload = {k: v for k, v in payload.items() if v is not None}
        return jwt.encode(payload, private_pem, algorithm="RS256", headers={"kid": kid})

    return _make


class FakeFetcher:
    """JWKS fetcher stub that counts calls"""

    def __init__(self, jwks: Dict[str, Any]):
        self.jwks = jwks
        self.calls = 0

    def __call__(self, url: str, timeout: float) -> Dict[str, Any]:
        self.calls += 1
        return self.jwks


@pytest.fixture
def fetcher(jwks) -> FakeFetcher:
    return FakeFetcher(jwks)


@pytest.fixture
def access_resolver(fetcher: FakeFetcher) -> AccessTokenResolver:
    return AccessTokenResolver(team_domain=ACCESS_DOMAIN, audience=ACCESS_AUD, fetcher=fetcher)


@pytest.fixture
def access_client(client: TestClient, access_resolver: AccessTokenResolver) -> TestClient:
    """Client whose requests are authenticated by Zero-Trust tokens"""
    policy = RolePolicy.build(
        admin_emails=["boss@corp.test"],
        staff_domains=["corp.test"],
    )
    app.dependency_overrides[get_identity_resolver] = lambda: access_resolver
    app.dependency_overrides[get_role_policy] = lambda: policy
    return client


@pytest.fixture
def token_headers(make_token):
    """Build Zero-Trust request headers for the given claims"""

    def _headers(**claims: Any) -> dict:
        return {settings.ACCESS_JWT_HEADER: make_token(**claims)}

    return _headers

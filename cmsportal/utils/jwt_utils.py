"""Local session tokens: RS256 keypair management, signing and verification"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple

from jose import JWTError, jwt

from cmsportal.config import settings
from cmsportal.errors import TokenInvalid
from cmsportal.utils.logger import logger

SESSION_TOKEN_TYPE = "session"

# ---------------------------------------------------------------------------
# Keypair management
# ---------------------------------------------------------------------------

_private_key: Any = None   # cryptography RSAPrivateKey object
_public_key: Any = None    # cryptography RSAPublicKey object


def _load_keypair() -> None:
    """Load or auto-generate the RSA keypair used to sign session tokens.

    Reads JWT_PRIVATE_KEY from settings (PEM string). If absent, generates a
    fresh RSA-2048 keypair; sessions then do not survive a restart.
    """
    global _private_key, _public_key

    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    if settings.JWT_PRIVATE_KEY:
        pem = settings.JWT_PRIVATE_KEY.encode()
        _private_key = serialization.load_pem_private_key(pem, password=None)
        _public_key = _private_key.public_key()
        logger.info("Session signing key loaded from JWT_PRIVATE_KEY setting")
    else:
        _private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        _public_key = _private_key.public_key()
        logger.warning(
            "JWT_PRIVATE_KEY not set; auto-generated RSA-2048 keypair for this process. "
            "All sessions will be invalidated on restart."
        )


def get_private_key() -> Any:
    """Return the loaded private key, initialising on first call."""
    if _private_key is None:
        _load_keypair()
    return _private_key


def get_public_key() -> Any:
    """Return the loaded public key, initialising on first call."""
    if _public_key is None:
        _load_keypair()
    return _public_key


def _pem(key: Any, private: bool) -> str:
    from cryptography.hazmat.primitives import serialization

    if private:
        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()
    return key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


# ---------------------------------------------------------------------------
# Token creation
# ---------------------------------------------------------------------------

class IssuedToken(NamedTuple):
    token: str
    jti: str
    expires_at: int   # unix seconds
    expires_in: int   # seconds from issuance


def create_session_token(account_id: str) -> IssuedToken:
    """Sign a session token for a local admin account.

    The token encodes the account id (``sub``) and the issuance time
    (``iat``); ``jti`` lets logout revoke this one token.
    """
    now = int(datetime.now(timezone.utc).timestamp())
    expires_in = settings.SESSION_EXPIRE_SECONDS
    jti = str(uuid.uuid4())

    payload: Dict[str, Any] = {
        "sub": account_id,
        "jti": jti,
        "iat": now,
        "exp": now + expires_in,
        "type": SESSION_TOKEN_TYPE,
    }

    headers = {"kid": settings.JWT_KEY_ID} if settings.JWT_KEY_ID else None
    token = jwt.encode(
        payload,
        _pem(get_private_key(), private=True),
        algorithm=settings.JWT_ALGORITHM,
        headers=headers,
    )
    return IssuedToken(token=token, jti=jti, expires_at=now + expires_in, expires_in=expires_in)


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------

def decode_session_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry of a session token and return its payload.

    Revocation is checked by the caller against the revoked-session list.

    Raises:
        TokenInvalid: on any verification failure.
    """
    try:
        payload = jwt.decode(
            token,
            _pem(get_public_key(), private=False),
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as exc:
        logger.debug(f"Session token decode failed: {exc}")
        raise TokenInvalid()

    if payload.get("type") != SESSION_TOKEN_TYPE or not payload.get("jti") or not payload.get("sub"):
        raise TokenInvalid()

    return payload

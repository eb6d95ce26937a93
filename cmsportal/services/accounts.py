"""Local admin accounts: bootstrap, login, password change and account management"""
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cmsportal.errors import (
    InvalidCredentials,
    InvalidCurrentPassword,
    NotAuthenticated,
    RateLimited,
    WeakPassword,
)
from cmsportal.schemas.account import AccountCreate, AdminAccount, AdminAccountPublic
from cmsportal.services.rate_limiter import RateLimiter, login_rate_limiter
from cmsportal.services.state_store import StateStore
from cmsportal.utils.auth import (
    generate_id,
    generate_secure_password,
    hash_password,
    validate_password_strength,
    verify_password,
)
from cmsportal.utils.jwt_utils import IssuedToken, create_session_token
from cmsportal.utils.logger import logger
from cmsportal.utils.security import sanitize_text
from cmsportal.utils.time import utcnow

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@localhost"


class BootstrapConfigError(RuntimeError):
    """Production started without the admin bootstrap settings"""


def check_bootstrap_config(settings) -> None:
    if settings.is_production and not (
        settings.ADMIN_USERNAME and settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD_HASH
    ):
        raise BootstrapConfigError(
            "Production environment requires ADMIN_USERNAME, ADMIN_EMAIL, "
            "and ADMIN_PASSWORD_HASH environment variables"
        )


def bootstrap_admin_accounts(settings) -> List[Dict[str, Any]]:
    """Initial contents of the admin account list.

    Production takes the account from configuration and never sees a
    plaintext password. Development generates a strong password, stores its
    hash, and logs the plaintext exactly once.
    """
    check_bootstrap_config(settings)
    now = utcnow().isoformat()

    if settings.is_production:
        return [
            {
                "id": generate_id("acct_"),
                "username": settings.ADMIN_USERNAME,
                "email": settings.ADMIN_EMAIL,
                "password_hash": settings.ADMIN_PASSWORD_HASH,
                "role": "admin",
                "is_active": True,
                "created_at": now,
            }
        ]

    username = settings.ADMIN_USERNAME or DEFAULT_ADMIN_USERNAME
    password = generate_secure_password(16)
    logger.warning(
        f"Generated development admin credentials: username={username} password={password}. "
        "Change this password after first login."
    )
    return [
        {
            "id": generate_id("acct_"),
            "username": username,
            "email": settings.ADMIN_EMAIL or DEFAULT_ADMIN_EMAIL,
            "password_hash": hash_password(password),
            "role": "admin",
            "is_active": True,
            "created_at": now,
        }
    ]


def to_public(account: AdminAccount) -> AdminAccountPublic:
    return AdminAccountPublic.model_validate(account.model_dump(exclude={"password_hash"}))


@dataclass
class LoginResult:
    account: AdminAccountPublic
    session: IssuedToken


class PasswordAuthenticator:
    """Username/password authentication against the stored admin accounts"""

    def __init__(self, store: StateStore, rate_limiter: RateLimiter = login_rate_limiter):
        self.store = store
        self.rate_limiter = rate_limiter

    def login(self, username: str, password: str, client_id: str) -> LoginResult:
        """
        Verify credentials and issue a session token.

        The rate limiter is consulted before any credential check. Unknown
        user, inactive account and wrong password are indistinguishable to
        the caller.
        """
        if self.rate_limiter.is_rate_limited(client_id):
            remaining = self.rate_limiter.get_remaining_time(client_id)
            logger.warning("Login rate limited", extra={"action": "login"})
            raise RateLimited(remaining)

        username = sanitize_text(username)
        password = sanitize_text(password)

        accounts = self.store.admin_accounts()
        account = next((a for a in accounts if a.username == username and a.is_active), None)

        if account is None or not verify_password(password, account.password_hash):
            logger.warning("Failed login attempt", extra={"action": "login"})
            raise InvalidCredentials()

        account.last_login = utcnow()
        self.store.save_admin_accounts(accounts)

        session = create_session_token(account.id)
        logger.info("Admin logged in", extra={"user_id": account.id, "action": "login"})
        return LoginResult(account=to_public(account), session=session)

    def change_password(self, account_id: Optional[str], current_password: str, new_password: str) -> None:
        if not account_id:
            raise NotAuthenticated()

        accounts = self.store.admin_accounts()
        account = next((a for a in accounts if a.id == account_id and a.is_active), None)
        if account is None:
            raise NotAuthenticated()

        if not verify_password(sanitize_text(current_password), account.password_hash):
            logger.warning("Password change with wrong current password", extra={"user_id": account_id})
            raise InvalidCurrentPassword()

        new_password = sanitize_text(new_password)
        strength = validate_password_strength(new_password)
        if not strength.is_valid:
            raise WeakPassword(strength.errors)

        account.password_hash = hash_password(new_password)
        self.store.save_admin_accounts(accounts)
        logger.info("Password changed", extra={"user_id": account_id, "action": "password_change"})

    def logout(self, jti: Optional[str], expires_at: Optional[int]) -> None:
        """Revoke one session token; tokens without a jti have nothing to revoke"""
        if not jti:
            return
        now = int(time.time())
        self.store.revoke_session(jti, int(expires_at or now), now)
        logger.info("Session revoked", extra={"action": "logout"})

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    def list_accounts(self) -> List[AdminAccountPublic]:
        return [to_public(a) for a in self.store.admin_accounts()]

    def create_account(self, data: AccountCreate) -> AdminAccountPublic:
        accounts = self.store.admin_accounts()
        username = sanitize_text(data.username)

        if any(a.username == username and a.is_active for a in accounts):
            raise ValueError(f"Username '{username}' is already taken")

        password = sanitize_text(data.password)
        strength = validate_password_strength(password)
        if not strength.is_valid:
            raise WeakPassword(strength.errors)

        account = AdminAccount(
            id=generate_id("acct_"),
            username=username,
            email=sanitize_text(data.email),
            password_hash=hash_password(password),
            role=data.role,
            created_at=utcnow(),
        )
        accounts.append(account)
        self.store.save_admin_accounts(accounts)
        logger.info(f"Created account: {account.id}", extra={"user_id": account.id, "role": account.role})
        return to_public(account)

    def deactivate_account(self, account_id: str) -> bool:
        accounts = self.store.admin_accounts()
        account = next((a for a in accounts if a.id == account_id and a.is_active), None)
        if account is None:
            return False
        account.is_active = False
        self.store.save_admin_accounts(accounts)
        logger.info(f"Deactivated account: {account_id}", extra={"user_id": account_id})
        return True

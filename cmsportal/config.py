"""Application configuration"""
from typing import List, Optional
from pydantic_settings import BaseSettings


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./cmsportal.db"
    DATABASE_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour
    AUTO_CREATE_TABLES: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text
    ENVIRONMENT: str = "development"  # development or production

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Authentication mode: "local" (username/password) or "access" (Zero-Trust JWT)
    AUTH_MODE: str = "local"

    # Local sessions
    SESSION_COOKIE_NAME: str = "cms_session"
    SESSION_EXPIRE_SECONDS: int = 28800     # 8 hours
    JWT_PRIVATE_KEY: Optional[str] = None   # RSA-2048 PEM string; auto-generated on startup if absent
    JWT_ALGORITHM: str = "RS256"
    JWT_KEY_ID: Optional[str] = None
    BCRYPT_ROUNDS: int = 12
    MIN_PASSWORD_LENGTH: int = 12
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_WINDOW_SECONDS: int = 900         # 15 minutes

    # Production admin bootstrap
    ADMIN_USERNAME: Optional[str] = None
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD_HASH: Optional[str] = None   # bcrypt hash, never a plaintext password

    # Zero-Trust access tokens
    ACCESS_TEAM_DOMAIN: Optional[str] = None    # e.g. myteam.cloudflareaccess.com
    ACCESS_AUD: Optional[str] = None            # application audience tag
    ACCESS_CERTS_URL: Optional[str] = None      # defaults to https://{domain}/cdn-cgi/access/certs
    ACCESS_COOKIE_NAME: str = "CF_Authorization"
    ACCESS_JWT_HEADER: str = "Cf-Access-Jwt-Assertion"
    JWKS_CACHE_SECONDS: int = 3600
    JWKS_MIN_REFRESH_SECONDS: int = 60  # unknown key IDs refetch at most this often
    IDENTITY_TIMEOUT_SECONDS: float = 5.0

    # Development identity substituted when no access token is present
    DEV_IDENTITY_EMAIL: Optional[str] = None
    DEV_IDENTITY_NAME: Optional[str] = None
    DEV_IDENTITY_GROUPS: str = ""

    # Role policy allow-lists (comma separated)
    ADMIN_EMAILS: str = ""
    ADMIN_DOMAINS: str = ""
    STAFF_EMAILS: str = ""
    STAFF_DOMAINS: str = ""
    CUSTOMER_EMAILS: str = ""
    CUSTOMER_DOMAINS: str = ""

    # Content
    AUTHOR_DELETE_POLICY: str = "orphan"  # orphan, cascade or restrict

    # Documents
    MAX_UPLOAD_BYTES: int = 100 * 1024 * 1024  # 100MB
    ACCESS_LOG_RETENTION: int = 10000

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: List[str] = ["100/minute", "1000/hour"]
    RATE_LIMIT_STORAGE_URI: str = "memory://"  # Use redis:// for production

    # Monitoring
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list"""
        return _split(self.CORS_ORIGINS)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def admin_emails_list(self) -> List[str]:
        return _split(self.ADMIN_EMAILS)

    @property
    def admin_domains_list(self) -> List[str]:
        return _split(self.ADMIN_DOMAINS)

    @property
    def staff_emails_list(self) -> List[str]:
        return _split(self.STAFF_EMAILS)

    @property
    def staff_domains_list(self) -> List[str]:
        return _split(self.STAFF_DOMAINS)

    @property
    def customer_emails_list(self) -> List[str]:
        return _split(self.CUSTOMER_EMAILS)

    @property
    def customer_domains_list(self) -> List[str]:
        return _split(self.CUSTOMER_DOMAINS)

    @property
    def dev_identity_groups_list(self) -> List[str]:
        return _split(self.DEV_IDENTITY_GROUPS)


settings = Settings()

"""
Configuration for the Campus Desk Service
=========================================

Environment variables:
- DATABASE_URL: SQLAlchemy URL (default: sqlite:///./campus.db)
- JWT_SECRET_KEY: Secret used to sign access tokens
- JWT_ACCESS_TOKEN_EXPIRE_MINUTES: Token lifetime (default: 7 days)
- CORS_ALLOW_ORIGINS: Comma separated list of allowed origins
- STRICT_ISSUE_TRANSITIONS: Enforce the issue status transition table (default: false)
- BOOTSTRAP_ADMIN_EMAILS: Comma separated emails that register as admins
- LOG_LEVEL: Root log level (default: INFO)
"""

from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


def _split_csv(raw: str) -> List[str]:
    values: List[str] = []
    for item in raw.split(","):
        value = item.strip().strip('"').strip("'")
        if value:
            values.append(value)
    return values


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Database
    database_url: str = "sqlite:///./campus.db"
    sql_echo: bool = False

    # Auth
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24 * 7
    bootstrap_admin_emails: str = ""

    # HTTP
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    enforce_https: bool = False
    hsts_max_age: int = 31536000

    # Lifecycle rules
    strict_issue_transitions: bool = False

    # Service info
    log_level: str = "INFO"
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.rstrip("/") for origin in _split_csv(self.cors_allow_origins)]

    @property
    def admin_emails(self) -> List[str]:
        return [email.lower() for email in _split_csv(self.bootstrap_admin_emails)]

    def validate_security_config(self) -> List[str]:
        """Validate security-relevant configuration, return list of warnings"""
        warnings = []

        if self.jwt_secret_key == "dev-secret-key-change-in-production":
            warnings.append("JWT_SECRET_KEY is the development default")

        if self.strict_issue_transitions:
            warnings.append("STRICT_ISSUE_TRANSITIONS=true: admin status updates follow the transition table")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

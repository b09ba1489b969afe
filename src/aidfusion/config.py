from pydantic import field_validator
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    database_name: str = "aidfusion"
    database_timeout_ms: int = 5000  # Upper bound for any single MongoDB operation
    database_max_pool_size: int = 100
    read_retry_attempts: int = 3  # Retries for idempotent reads only
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    session_secret_key: str  # HS256 signing key for session tokens, no fallback
    session_max_age: int = 7 * 24 * 60 * 60
    cookie_secure: bool = True  # Disable only for local plain-HTTP development
    password_hash_timeout: float = 5.0  # Seconds allowed for a bcrypt hash/check
    password_hash_rounds: int = 12
    cors_origins: list[str] = []
    totp_issuer: str = "AidFusion"
    totp_window: int = 2  # Accepted clock skew in 30-second steps, each side
    backup_code_count: int = 8
    admin_email: str | None = None  # Bootstrap admin account created at startup (optional)
    admin_password: str | None = None

    model_config = {
        "env_file": [".env"],
        "env_prefix": "AIDFUSION_",
        "extra": "ignore",
    }

    @field_validator("session_secret_key")
    @classmethod
    def secret_key_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("session_secret_key must not be empty")
        return value

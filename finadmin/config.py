import logging
from dataclasses import dataclass
from typing import Any, ClassVar, FrozenSet, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from finadmin.utils.durations import parse_duration_seconds

_logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./finadmin.db"

    # Database pool (applies to client/server DBs like Postgres; SQLite uses NullPool)
    DB_POOL_PRE_PING: bool = True
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_POOL_RECYCLE_SECONDS: int = 1800

    # Access token (JWT)
    # NOTE: This default is intentionally insecure and must never be used outside dev/test.
    DEFAULT_JWT_SECRET: ClassVar[str] = "dev-secret-change-me-please-32chars!!"
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    # Duration expression: "30s", "15m", "1h", "1d".
    ACCESS_TOKEN_EXPIRES_IN: str = "15m"

    # Application
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # Environment
    # Used for guardrails. Suggested values: dev|staging|prod.
    ENV: str = "dev"

    # Admin bootstrap (scripts/seed_admin.py); skipped unless both are set
    ADMIN_SEED_EMAIL: Optional[str] = None
    ADMIN_SEED_PASSWORD: Optional[str] = None

    # Admin OTP challenge
    ADMIN_OTP_EXPIRES_IN: str = "5m"
    ADMIN_OTP_MAX_ATTEMPTS: int = 3
    ADMIN_OTP_RESEND_COOLDOWN_SECONDS: int = 45
    ADMIN_OTP_LOCK_MINUTES: int = 15
    # Rows past expiry are reaped by the recovery loop after this window.
    OTP_CHALLENGE_RETENTION_HOURS: int = 24

    # OTP delivery: "outbox" (in-process, dev/test) or "email" (HTTP e-mail API)
    OTP_DELIVERY: str = "outbox"
    EMAIL_API_URL: str = "https://api.brevo.com/v3/smtp/email"
    EMAIL_API_KEY: str = ""
    EMAIL_FROM: str = "no-reply@finadmin.local"
    EMAIL_FROM_NAME: str = "Finance Admin"
    EMAIL_TIMEOUT_SECONDS: float = 20.0

    # Cookies (transport contract for the OTP challenge token and access token)
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "lax"
    COOKIE_DOMAIN: Optional[str] = None
    COOKIE_PATH: str = "/"

    # Backups (simulated)
    BACKUP_TOTAL_DURATION_MS: int = 24000
    BACKUP_STORAGE_DIR: str = "./storage/backups"
    BACKUP_TARGET: str = "remote_cloud_storage_node_01"

    # Recovery (startup + periodic cleanup)
    RECOVERY_ENABLED: bool = True
    RECOVERY_INTERVAL_SECONDS: int = 300

    # Rate limiting (in-memory, best-effort)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_REQUESTS_PER_WINDOW: int = 120

    # Observability
    METRICS_ENABLED: bool = True

    # --- Guardrails ---
    # Fail-fast on obviously insecure secrets outside dev/test.
    _SAFE_ENVS: ClassVar[FrozenSet[str]] = frozenset({"dev", "development", "test", "testing"})
    _UNSAFE_PLACEHOLDERS: ClassVar[FrozenSet[str]] = frozenset(
        {
            "change-me-in-production",
            "change-me",
            "changeme",
        }
    )

    def model_post_init(self, __context: Any) -> None:
        # Runs on every Settings() instantiation (including module-level `settings = Settings()`).
        self._guardrail_default_secrets()
        self._guardrail_otp_delivery()

    def _guardrail_default_secrets(self) -> None:
        env = (self.ENV or "").strip().lower()
        if env in self._SAFE_ENVS:
            return

        jwt_secret = (self.JWT_SECRET or "").strip()
        vl = jwt_secret.lower()
        # An empty secret is allowed to boot: token issuance then fails per request
        # with a configuration error instead of taking the whole service down.
        if not jwt_secret:
            _logger.warning("config.jwt_secret_missing env=%s", self.ENV)
            return
        if jwt_secret == self.DEFAULT_JWT_SECRET or vl in self._UNSAFE_PLACEHOLDERS or "change-me" in vl:
            raise RuntimeError(
                "Refusing to start with insecure default/placeholder secrets outside dev/test: "
                "JWT_SECRET. "
                f"Got ENV={self.ENV!r}. "
                "Set a secure value via the JWT_SECRET environment variable, "
                "or run with ENV=dev/test."
            )

    def _guardrail_otp_delivery(self) -> None:
        # Outside dev/test codes must leave the process.
        env = (self.ENV or "").strip().lower()
        if env in self._SAFE_ENVS:
            return

        mode = (self.OTP_DELIVERY or "").strip().lower()
        if mode != "email":
            raise RuntimeError(
                "Refusing to start without a real OTP delivery channel outside dev/test: "
                f"OTP_DELIVERY={self.OTP_DELIVERY!r}. "
                "Set OTP_DELIVERY=email (with EMAIL_API_KEY), or run with ENV=dev/test."
            )


settings = Settings()


@dataclass(frozen=True)
class OtpAuthConfig:
    """Explicit configuration handed to the OTP engine and the token issuer."""

    otp_ttl_seconds: int = 300
    max_attempts: int = 3
    resend_cooldown_seconds: int = 45
    lock_duration_minutes: int = 15
    access_token_ttl_seconds: int = 900
    signing_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"

    @classmethod
    def from_settings(cls, s: Settings) -> "OtpAuthConfig":
        return cls(
            otp_ttl_seconds=parse_duration_seconds(s.ADMIN_OTP_EXPIRES_IN, 5 * 60),
            max_attempts=max(1, int(s.ADMIN_OTP_MAX_ATTEMPTS or 3)),
            resend_cooldown_seconds=max(0, int(s.ADMIN_OTP_RESEND_COOLDOWN_SECONDS)),
            lock_duration_minutes=max(0, int(s.ADMIN_OTP_LOCK_MINUTES)),
            access_token_ttl_seconds=parse_duration_seconds(s.ACCESS_TOKEN_EXPIRES_IN, 15 * 60),
            signing_secret=(s.JWT_SECRET or "").strip() or None,
            jwt_algorithm=s.JWT_ALGORITHM,
        )


@dataclass(frozen=True)
class BackupConfig:
    total_duration_ms: int = 24000
    storage_dir: str = "./storage/backups"
    target: str = "remote_cloud_storage_node_01"

    @classmethod
    def from_settings(cls, s: Settings) -> "BackupConfig":
        return cls(
            total_duration_ms=max(1, int(s.BACKUP_TOTAL_DURATION_MS)),
            storage_dir=s.BACKUP_STORAGE_DIR,
            target=s.BACKUP_TARGET,
        )

"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str = "sqlite:///./automation_engine.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Scheduled endpoints (/internal/scheduled/*), sent as "Authorization: Bearer <secret>"
    CRON_SECRET: str = ""

    # Mail delivery (Resend). Empty key logs messages instead of sending.
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Volunteer Portal <noreply@example.org>"
    MAIL_TIMEOUT_SECONDS: float = 10.0

    # Pipeline
    REVIEWER_ROLE: str = "founder"  # Audience for unassigned recruitment reviews
    PIPELINE_DEDUPE_AUTO_ACTIONS: bool = True  # Fire each stage auto-action once per entry

    # Reminders
    REMINDER_DISPATCH_BATCH_SIZE: int = 200
    REMINDER_CLAIM_TIMEOUT_MINUTES: int = 10  # Claims older than this are re-dispatched

    # Weekly summary recipients
    SUMMARY_AUDIENCE: str = "role:founder"

    # Logging / error tracking
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()

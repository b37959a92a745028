"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./decision_jar.db"
DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    app_name: str = "Decision Jar"
    frontend_url: str = "http://localhost:3000"
    environment: str = "development"
    secret_key: str = DEFAULT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    access_token_exp_minutes: int = 120
    access_token_cookie_name: str = "decision_jar_access_token"

    # Site administrators (may moderate any jar's ideas)
    admin_emails: set[str] = set()

    # Voting
    vote_default_tie_breaker: str = "RANDOM_PICK"
    vote_extend_minutes: int = 60
    vote_runoff_minutes: int = 60
    vote_expiry_sweep_enabled: bool = False
    vote_expiry_sweep_interval_seconds: int = 60

    # Jars and ideas
    jar_code_length: int = 6
    free_idea_limit: int = 25
    free_jar_limit: int = 3

    # Gamification
    xp_idea_added: int = 15
    xp_jar_spun: int = 5
    xp_vote_completed: int = 10

    # Idea generation
    openai_api_key: str = ""
    idea_generation_model: str = "gpt-5-nano"
    idea_generation_timeout: int = 60

    @field_validator("admin_emails", mode="before")
    @classmethod
    def parse_admin_emails(cls, value):
        """Parse comma-separated admin emails from environment variables."""
        if value is None:
            return set()
        if isinstance(value, str):
            items = [item.strip().lower() for item in value.split(",") if item.strip()]
        elif isinstance(value, (list, tuple, set)):
            items = [str(item).strip().lower() for item in value if str(item).strip()]
        else:
            raise TypeError("admin_emails must be provided as a string or sequence")
        return set(items)

    def is_admin_email(self, email: str | None) -> bool:
        """Determine if the provided email belongs to a site administrator."""
        if not email:
            return False
        return email.strip().lower() in self.admin_emails

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate security and voting configuration and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if self.environment == "production" and self.secret_key == DEFAULT_SECRET_KEY:
            raise ValueError("secret_key must be changed from default value in production")

        if self.jwt_algorithm not in ["HS256", "HS384", "HS512"]:
            raise ValueError(f"Unsupported JWT algorithm: {self.jwt_algorithm}. Use HS256, HS384, or HS512.")

        if self.access_token_exp_minutes < 1 or self.access_token_exp_minutes > 1440:
            raise ValueError("access_token_exp_minutes must be between 1 and 1440 (24 hours)")

        if self.vote_default_tie_breaker not in ("RANDOM_PICK", "RE_VOTE"):
            raise ValueError("vote_default_tie_breaker must be RANDOM_PICK or RE_VOTE")

        if self.vote_extend_minutes < 1 or self.vote_runoff_minutes < 1:
            raise ValueError("vote_extend_minutes and vote_runoff_minutes must be positive")

        if self.vote_expiry_sweep_interval_seconds < 1:
            raise ValueError("vote_expiry_sweep_interval_seconds must be at least 1 second")

        if self.jar_code_length < 4:
            raise ValueError("jar_code_length must be at least 4 characters")

        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:  # pragma: no cover
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logger.warning("Invalid DATABASE_URL; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {drivername} -> {parsed.drivername}")
        # render_as_string re-encodes special characters in the password
        self.database_url = parsed.render_as_string(hide_password=False)

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

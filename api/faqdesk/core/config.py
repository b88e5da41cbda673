import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_CACHE_EXPIRY_DAYS = 5


class Settings(BaseSettings):
    # API settings
    DEBUG: bool = False
    PROJECT_NAME: str = "FAQ Desk"
    PRODUCT_NAME: str = "FAQ Desk"  # Shown in welcome and tour cards

    # Environment settings
    ENVIRONMENT: str = "development"

    # Directory settings
    DATA_DIR: str = "api/data"

    # Tenant and team identity (supplied by the messaging platform)
    TENANT_ID: str = ""
    ENFORCE_TENANT_CHECK: bool | None = None  # None: enforced only in production
    SME_TEAM_ID: str = ""  # Conversation id of the expert team's General channel

    # Membership cache
    ACCESS_CACHE_EXPIRY_DAYS: int = DEFAULT_ACCESS_CACHE_EXPIRY_DAYS
    ACCESS_CACHE_NEGATIVE_TTL_SECONDS: int = (
        300  # How long a "not a member" result is remembered
    )
    ACCESS_CACHE_MAX_SIZE: int = 5000

    # Knowledge base service
    KNOWLEDGE_BASE_ID: str = ""
    QNA_MAKER_AUTHORING_URL: str = ""  # e.g. "https://<resource>.cognitiveservices.azure.com"
    QNA_MAKER_SUBSCRIPTION_KEY: str = ""
    QNA_MAKER_RUNTIME_URL: str = ""  # e.g. "https://<app>.azurewebsites.net"
    QNA_MAKER_ENDPOINT_KEY: str = ""
    SCORE_THRESHOLD: float = 50.0  # Minimum answer confidence (0-100)
    KNOWLEDGE_BASE_TIMEOUT: float = 15.0

    # Translation service
    TRANSLATOR_URL: str = "https://api.cognitive.microsofttranslator.com"
    TRANSLATOR_SUBSCRIPTION_KEY: str = ""
    TRANSLATOR_REGION: str = ""
    TRANSLATOR_TIMEOUT: float = 30.0
    DEFAULT_LANGUAGE_CODE: str = "en"  # Pivot language for batch translation
    TRANSLATION_LANGUAGES: str | list[str] = "en,es"  # Allow-listed language codes

    # Messaging connector
    BOT_ACCESS_TOKEN: str = ""  # Bearer token for outbound connector calls
    CONNECTOR_TIMEOUT: float = 30.0

    # Card content and links
    APP_BASE_URI: str = ""  # Base URL used for images and links in cards
    EDIT_FORM_URI: str = ""  # Optional web editor for rich Q&A pairs
    WELCOME_MESSAGE_TEXT: str = (
        "Hi! I'm the FAQ Desk. Ask me a question and I'll find the answer, "
        "or connect you with an expert."
    )

    # Batch processing
    BATCH_PROGRESS_INTERVAL: int = 100  # Rows between progress pings
    BATCH_RESULTS_PREFIX: str = "results/"  # Namespace for stored result files

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
    )

    # Path properties that return complete paths
    @property
    def TICKETS_DB_PATH(self) -> str:
        """Complete path to the ticket database file"""
        return os.path.join(self.DATA_DIR, "tickets.db")

    @property
    def ACTIVITY_INDEX_DB_PATH(self) -> str:
        """Complete path to the announcement activity index database file"""
        return os.path.join(self.DATA_DIR, "activities.db")

    @property
    def BATCH_RESULTS_DB_PATH(self) -> str:
        """Complete path to the batch result file store"""
        return os.path.join(self.DATA_DIR, "batch_results.db")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"

    @property
    def tenant_check_enabled(self) -> bool:
        """Whether inbound events are filtered by tenant id.

        An explicit ENFORCE_TENANT_CHECK wins; otherwise only production
        deployments enforce the check.
        """
        if self.ENFORCE_TENANT_CHECK is not None:
            return self.ENFORCE_TENANT_CHECK
        return self.is_production

    @field_validator("ACCESS_CACHE_EXPIRY_DAYS", mode="before")
    @classmethod
    def coerce_access_cache_expiry(cls, v) -> int:
        """Replace a missing or non-positive expiry with the default.

        Args:
            v: Configured number of days

        Returns:
            A positive number of days
        """
        try:
            days = int(v)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid ACCESS_CACHE_EXPIRY_DAYS %r, using %d",
                v,
                DEFAULT_ACCESS_CACHE_EXPIRY_DAYS,
            )
            return DEFAULT_ACCESS_CACHE_EXPIRY_DAYS
        if days <= 0:
            logger.warning(
                "ACCESS_CACHE_EXPIRY_DAYS must be positive (got %d), using %d",
                days,
                DEFAULT_ACCESS_CACHE_EXPIRY_DAYS,
            )
            return DEFAULT_ACCESS_CACHE_EXPIRY_DAYS
        return days

    @field_validator("DEFAULT_LANGUAGE_CODE")
    @classmethod
    def normalize_language_code(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("DEFAULT_LANGUAGE_CODE must not be empty")
        return v

    @field_validator("TRANSLATION_LANGUAGES", mode="before")
    @classmethod
    def parse_translation_languages(
        cls, v: str | list[str], info: ValidationInfo
    ) -> list[str]:
        """Normalize the language allow-list to lower-case codes.

        Accepts a comma-separated string or a list. The pivot language is
        always part of the allow-list.

        Args:
            v: Raw value from the environment
            info: Validation info containing other field values

        Returns:
            Ordered list of unique language codes
        """
        if isinstance(v, str):
            items = v.split(",")
        else:
            items = list(v)
        codes: list[str] = []
        for item in items:
            code = str(item).strip().lower()
            if code and code not in codes:
                codes.append(code)
        pivot = str(info.data.get("DEFAULT_LANGUAGE_CODE", "en")).strip().lower()
        if pivot and pivot not in codes:
            codes.insert(0, pivot)
        return codes

    @field_validator(
        "APP_BASE_URI",
        "EDIT_FORM_URI",
        "QNA_MAKER_AUTHORING_URL",
        "QNA_MAKER_RUNTIME_URL",
        "TRANSLATOR_URL",
    )
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("BATCH_PROGRESS_INTERVAL")
    @classmethod
    def validate_progress_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("BATCH_PROGRESS_INTERVAL must be positive")
        return v

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Make paths absolute
        self.DATA_DIR = os.path.abspath(self.DATA_DIR)

    def ensure_data_dirs(self) -> None:
        """Create the data directory if it doesn't exist.

        Called during application startup (lifespan) to avoid import-time
        side effects.
        """
        Path(self.DATA_DIR).mkdir(parents=True, exist_ok=True)


# Thread-safe lazy initialization using lru_cache
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings instance with lazy initialization.

    Settings are only created once on first access, then cached for subsequent calls.

    Returns:
        Settings: Application settings object
    """
    return Settings()


def reset_settings() -> None:
    """Reset the cached settings instance.

    Useful for testing when you need to reload settings with different values.
    """
    get_settings.cache_clear()

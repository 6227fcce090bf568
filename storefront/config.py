"""
Configuration management for the storefront bot
"""

import logging
import threading
from pathlib import Path
from urllib.parse import urlparse

import httpx
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront.utils.constants import (
    CacheSettings,
    CatalogSettings,
    ConfigValidation,
    ConversationSettings,
    RetrySettings,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Bot configuration
    bot_token: str = Field(description="Telegram bot token", min_length=1)
    admin_chat_id: int | None = Field(
        default=None, description="Chat that receives new-order notifications", gt=0
    )

    # Storefront API
    api_base_url: str = Field(
        default="http://localhost:3000/api", description="Base URL of the storefront REST API"
    )
    api_timeout_seconds: float = Field(
        default=RetrySettings.CONNECTION_TIMEOUT_SECONDS, description="Per-request timeout", gt=0
    )

    # Application settings
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(default="development", description="Application environment")

    # Webhook mode
    webhook_url: str | None = Field(default=None, description="Public URL for webhook mode")
    port: int = Field(default=8000, description="Port for the webhook server")

    # Presentation
    currency_symbol: str = Field(default="$", description="Symbol prefixed to prices")
    default_country: str = Field(
        default="United States", description="Country pre-filled in the shipping form"
    )
    products_page_size: int = Field(
        default=CatalogSettings.DEFAULT_PAGE_SIZE, description="Products per catalog page", gt=0
    )
    cache_ttl_seconds: int = Field(
        default=CacheSettings.DEFAULT_TTL_SECONDS, description="Query cache TTL", ge=0
    )
    checkout_timeout_minutes: int = Field(
        default=ConversationSettings.CHECKOUT_TIMEOUT_MINUTES,
        description="Idle minutes before a checkout draft is discarded",
        gt=0,
    )

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_config() -> Settings:
    """Get the global settings instance, ensuring thread safety."""
    global _settings_instance
    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = Settings()
    return _settings_instance


def reset_config() -> None:
    """Drop the cached settings so the next ``get_config`` re-reads the environment"""
    global _settings_instance
    with _settings_lock:
        _settings_instance = None


class ConfigValidator:
    """Validates configuration for production readiness"""

    def __init__(self):
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.config: Settings | None = None

    def validate_all(self) -> bool:
        """Run all validation checks and collect results"""
        try:
            self.config = get_config()
        except (ValueError, TypeError) as exc:
            self.errors.append(f"Failed to load configuration: {exc}")
            return False

        self._validate_bot_configuration()
        self._validate_api_configuration()
        self._validate_environment_settings()
        self._validate_catalog_settings()
        self._validate_file_permissions()
        self._validate_security_settings()

        self._log_validation_results()
        return not self.errors

    def get_validation_report(self) -> dict[str, object]:
        """Return detailed report after running `validate_all()`."""
        return {
            "valid": not self.errors,
            "errors": self.errors,
            "warnings": self.warnings,
            "config_summary": {
                "environment": self.config.environment if self.config else None,
                "api_base_url": self.config.api_base_url if self.config else None,
                "bot_configured": bool(self.config and self.config.bot_token),
                "admin_configured": bool(self.config and self.config.admin_chat_id),
                "webhook_mode": bool(self.config and self.config.webhook_url),
            },
        }

    def _validate_bot_configuration(self):
        if not self.config.bot_token:
            self.errors.append("BOT_TOKEN is required")
        elif len(self.config.bot_token) < ConfigValidation.MIN_BOT_TOKEN_LENGTH:
            self.errors.append("BOT_TOKEN appears too short")

        if not self.config.admin_chat_id:
            self.warnings.append("ADMIN_CHAT_ID not set - order notifications are disabled")

        # live token check only where a real token is expected
        if self.config.is_production and not self.errors:
            try:
                response = httpx.get(
                    f"https://api.telegram.org/bot{self.config.bot_token}/getMe",
                    timeout=self.config.api_timeout_seconds,
                )
                if response.status_code != 200:
                    self.warnings.append("Bot token verification failed (non-200 response)")
            except httpx.HTTPError as exc:
                self.warnings.append(f"Could not verify bot token: {exc}")

    def _validate_api_configuration(self):
        parsed = urlparse(self.config.api_base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            self.errors.append(f"API_BASE_URL is not a valid http(s) URL: {self.config.api_base_url}")
        elif self.config.is_production and parsed.scheme != "https":
            self.warnings.append("API_BASE_URL uses plain http in production")

        if self.config.webhook_url:
            webhook = urlparse(self.config.webhook_url)
            if webhook.scheme != "https":
                self.errors.append("WEBHOOK_URL must use https")

    def _validate_environment_settings(self):
        if self.config.environment not in ConfigValidation.VALID_ENVIRONMENTS:
            self.warnings.append(f"Unknown environment: {self.config.environment}")
        if self.config.log_level.upper() not in ConfigValidation.VALID_LOG_LEVELS:
            self.errors.append(f"Invalid LOG_LEVEL: {self.config.log_level}")
        if self.config.is_production:
            if self.config.log_level.upper() == "DEBUG":
                self.warnings.append("DEBUG logging in production may impact performance")
            if not self.config.webhook_url:
                self.warnings.append("Production without WEBHOOK_URL will fall back to polling")

    def _validate_catalog_settings(self):
        if self.config.products_page_size > ConfigValidation.MAX_PAGE_SIZE:
            self.errors.append(
                f"PRODUCTS_PAGE_SIZE must be at most {ConfigValidation.MAX_PAGE_SIZE}"
            )
        if self.config.cache_ttl_seconds == 0:
            self.warnings.append("CACHE_TTL_SECONDS is 0 - every read goes to the API")

    def _validate_file_permissions(self):
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)
        test_file = log_dir / "__test_write.tmp"
        try:
            test_file.write_text("test", encoding="utf-8")
            test_file.unlink()
        except OSError as exc:
            self.errors.append(f"No write permission for logs: {exc}")

    def _validate_security_settings(self):
        env_file = Path(".env")
        if env_file.exists():
            if env_file.stat().st_mode & ConfigValidation.SECURE_FILE_PERMISSIONS:
                self.warnings.append(".env file may have insecure permissions")

    def _log_validation_results(self):
        if self.errors:
            logger.error("Configuration validation failed", extra={"errors": self.errors, "warnings": self.warnings})
        elif self.warnings:
            logger.warning("Configuration validation passed with warnings", extra={"warnings": self.warnings})
        else:
            logger.info("Configuration validation passed successfully")


def validate_production_readiness() -> bool:
    """Validate production readiness and print summary to console."""
    validator = ConfigValidator()
    is_valid = validator.validate_all()
    report = validator.get_validation_report()

    if not is_valid:
        print("❌ Configuration validation FAILED:")
        for err in report["errors"]:
            print(f"  - {err}")
    elif report["warnings"]:
        print("⚠️  Configuration validation passed with warnings:")
        for warn in report["warnings"]:
            print(f"  - {warn}")
    else:
        print("✅ Configuration validation PASSED without warnings")
    return is_valid

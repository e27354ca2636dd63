"""Configuration management for the storefront client."""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StoreConfig(BaseSettings):
    """Configuration for the storefront client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Base URL of the REST catalog/auth backend",
    )

    request_timeout_sec: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Backend request timeout in seconds",
    )

    mock: bool = Field(
        default=False,
        description="Enable offline demo accounts for login (development only)",
    )

    storage_path: Path = Field(
        default_factory=lambda: Path.cwd() / ".funkos" / "storage.json",
        description="JSON file backing the local key/value storage",
    )

    cart_storage_key: str = Field(default="cart", description="Storage key for the cart")

    session_storage_key: str = Field(
        default="user", description="Storage key for the session record"
    )

    registered_users_key: str = Field(
        default="registeredUsers",
        description="Storage key for users registered on this device",
    )

    multimedia_prefix: str = Field(
        default="/multimedia",
        description="Path prefix under which product images are served",
    )

    default_image: Optional[str] = Field(
        default=None,
        description="Fallback image path (default: <multimedia_prefix>/funkos-banner.webp)",
    )

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"API_URL must start with http:// or https:// (got '{v}')")
        return v.rstrip("/")

    @field_validator("multimedia_prefix")
    @classmethod
    def validate_multimedia_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith("/"):
            v = f"/{v}"
        return v

    def get_default_image(self) -> str:
        """Resolve the banner image used when a product has no usable image."""
        return self.default_image or f"{self.multimedia_prefix}/funkos-banner.webp"

    def validate_config(self) -> None:
        """Validate configuration at startup. Raises ValueError if invalid."""
        errors = []

        keys = {
            "CART_STORAGE_KEY": self.cart_storage_key,
            "SESSION_STORAGE_KEY": self.session_storage_key,
            "REGISTERED_USERS_KEY": self.registered_users_key,
        }
        for name, value in keys.items():
            if not value or not value.strip():
                errors.append(f"{name} cannot be empty")

        if len(set(keys.values())) != len(keys):
            errors.append("Storage keys must be distinct")

        if self.storage_path.exists() and self.storage_path.is_dir():
            errors.append(f"STORAGE_PATH points to a directory: {self.storage_path}")

        if errors:
            raise ValueError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )


_config_instance = None


def get_config() -> StoreConfig:
    """Get or create global configuration instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = StoreConfig()
        _config_instance.validate_config()
        logger.info("Configuration validated successfully")
    return _config_instance


def reload_config() -> StoreConfig:
    """Reload configuration (useful for testing)."""
    global _config_instance
    _config_instance = StoreConfig()
    return _config_instance

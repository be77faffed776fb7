"""
Application settings and runtime configuration store.

Settings are loaded from environment variables (or `.env`) with
pydantic-settings; the ConfigStore layers runtime-tunable values with
validation and change notification on top of them.
"""

from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass
import logging

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

LOCAL_ORIGIN_MARKERS = ("localhost", "127.0.0.1")


class Settings(BaseSettings):
    # Upstream
    tourism_api_key: Optional[str] = Field(default=None, description="data.go.kr service key")
    tourism_api_base_url: str = "https://apis.data.go.kr/B551011/KorService2"

    # App Settings
    app_name: str = "TourismGateway"
    app_version: str = "2.0.0"
    environment: str = Field(default="development", pattern=r"^(development|production|test)$")
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Rate limit
    rate_limit: int = Field(default=100, ge=1, le=100000, description="Requests per window per client")
    rate_limit_window: int = Field(default=60, gt=0, le=3600, description="Rate limit window in seconds")

    # Cache
    max_cache_size: int = Field(default=5000, ge=1, le=1000000, description="Maximum cache entries")
    max_memory_size: int = Field(default=50 * 1024 * 1024, gt=0, description="Cache memory ceiling in bytes")
    cache_ttl: int = Field(default=1800, ge=10, description="Cache TTL in seconds")

    # Upstream HTTP
    api_timeout: float = Field(default=15.0, ge=1, le=300, description="Per-attempt timeout in seconds")
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay: float = Field(default=1.0, ge=0, description="Base retry delay in seconds")
    retry_jitter: bool = Field(default=False, description="Spread retry delays by up to 20%")
    max_concurrent: int = Field(default=10, ge=1, le=100)
    semaphore_timeout: float = Field(default=30.0, gt=0)

    # Batch
    max_batch_size: int = Field(default=5, ge=1, le=50)
    batch_delay: float = Field(default=0.1, ge=0)
    max_batch_operations: int = Field(default=50, ge=1, le=500)

    # i18n
    default_language: str = "ko"

    # Memory monitoring
    memory_check_interval: float = Field(default=30.0, gt=0)
    memory_threshold: float = Field(default=0.9, gt=0, le=1)

    # Security
    security_enabled: bool = True
    allowed_origins: str = Field(default="", description="Comma separated CORS allow list")
    allowed_api_keys: str = Field(default="", description="Comma separated client API keys")
    development_origins: str = "http://localhost:3000,http://localhost:8080"

    enable_metrics: bool = True

    @field_validator("tourism_api_key")
    @classmethod
    def strip_api_key(cls, v):
        """Normalize empty keys to None"""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def apply_environment_overrides(self):
        """환경별 기본값 덮어쓰기"""
        if self.environment == "production":
            origins = [o for o in split_csv(self.allowed_origins)
                       if not any(marker in o for marker in LOCAL_ORIGIN_MARKERS)]
            self.allowed_origins = ",".join(origins)
            self.enable_metrics = True
            self.log_level = "WARNING"
            self.security_enabled = True
            self.retry_attempts = 5
        elif self.environment == "development":
            self.log_level = "DEBUG"
            self.security_enabled = False
        elif self.environment == "test":
            self.log_level = "ERROR"
            self.rate_limit = 10000
            self.cache_ttl = 60
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def origin_list(self) -> List[str]:
        return split_csv(self.allowed_origins)

    @property
    def api_key_list(self) -> List[str]:
        return split_csv(self.allowed_api_keys)

    @property
    def development_origin_list(self) -> List[str]:
        return split_csv(self.development_origins)

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass(frozen=True)
class ConfigChangeEvent:
    """Payload delivered to config subscribers"""
    key: str
    old_value: Any
    new_value: Any


def _in_range(low: float, high: float) -> Callable[[Any], bool]:
    return lambda v: isinstance(v, (int, float)) and not isinstance(v, bool) and low <= v <= high


# Runtime validation rules for ConfigStore.set
CONFIG_VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "rate_limit": _in_range(1, 100000),
    "rate_limit_window": _in_range(1, 3600),
    "max_cache_size": _in_range(1, 1000000),
    "max_memory_size": _in_range(1, float("inf")),
    "api_timeout": _in_range(1, 300),
    "cache_ttl": _in_range(10, float("inf")),
    "max_concurrent": _in_range(1, 100),
    "retry_attempts": _in_range(1, 10),
    "retry_delay": _in_range(0, 60),
    "retry_jitter": lambda v: isinstance(v, bool),
    "max_batch_size": _in_range(1, 50),
    "memory_threshold": lambda v: isinstance(v, (int, float)) and 0 < v <= 1,
    "tourism_api_key": lambda v: v is None or (isinstance(v, str) and len(v) >= 20),
}

SECRET_KEYS = {"tourism_api_key", "allowed_api_keys"}


class ConfigStore:
    """
    Runtime configuration with change subscribers.

    Values start from Settings and can be changed at runtime through `set`,
    which validates the new value and notifies subscribers with a
    ConfigChangeEvent. Components read values on use instead of caching
    copies, so a change takes effect on the next call.
    """

    def __init__(self, settings: Optional[Settings] = None, **overrides: Any):
        self.settings = settings or Settings()
        self._values: Dict[str, Any] = self.settings.model_dump()
        self._subscribers: List[Callable[[ConfigChangeEvent], None]] = []
        for key, value in overrides.items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Validate and store a value, then notify subscribers"""
        rule = CONFIG_VALIDATORS.get(key)
        if rule is not None and not rule(value):
            from ..shared.exceptions import config_error
            raise config_error(key, value)

        old_value = self._values.get(key)
        self._values[key] = value
        if old_value == value:
            return

        event = ConfigChangeEvent(key=key, old_value=old_value, new_value=value)
        logger.debug(f"Config changed: {key}")
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Config subscriber failed for {key}: {e}", exc_info=True)

    def subscribe(self, callback: Callable[[ConfigChangeEvent], None]) -> Callable[[], None]:
        """Register a change callback; returns an unsubscribe function"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def has_valid_api_key(self) -> bool:
        key = self._values.get("tourism_api_key")
        return bool(key) and len(key) >= 20

    def validate(self) -> Dict[str, Any]:
        """Check the whole configuration and report errors and warnings"""
        errors: List[str] = []
        warnings: List[str] = []

        for key, rule in CONFIG_VALIDATORS.items():
            if key == "tourism_api_key":
                continue
            if not rule(self._values.get(key)):
                errors.append(f"Invalid value for {key}: {self._values.get(key)!r}")

        if not self.has_valid_api_key():
            errors.append("TOURISM_API_KEY is missing or too short")

        if self._values.get("environment") == "production":
            if not self._values.get("allowed_origins"):
                warnings.append("No CORS origins configured for production")
            if not self._values.get("security_enabled"):
                warnings.append("Security is disabled in production")

        return {"valid": not errors, "errors": errors, "warnings": warnings}

    def snapshot(self, mask_secrets: bool = True) -> Dict[str, Any]:
        data = dict(self._values)
        if mask_secrets:
            for key in SECRET_KEYS:
                if data.get(key):
                    data[key] = "***"
        return data

"""
Boundary security: CORS policy, client API-key allow list and hardening
headers applied to every response.
"""

import hmac
import logging
from typing import Dict, List, Optional

from .config import ConfigStore, split_csv
from ..shared.exceptions import cors_error, invalid_api_key_error

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization, X-API-Key, X-Request-ID, Accept-Language"
EXPOSED_HEADERS = "X-Request-ID, X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset, Retry-After"

BASE_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'",
}


class SecurityManager:
    """CORS and API-key checks driven by the config store"""

    def __init__(self, config: ConfigStore):
        self.config = config

    @property
    def enabled(self) -> bool:
        return bool(self.config.get("security_enabled"))

    def _allowed_origins(self) -> List[str]:
        origins = split_csv(self.config.get("allowed_origins"))
        if self.config.get("environment") == "development":
            origins += split_csv(self.config.get("development_origins"))
        return origins

    def _allowed_api_keys(self) -> List[str]:
        return split_csv(self.config.get("allowed_api_keys"))

    def security_headers(self) -> Dict[str, str]:
        headers = dict(BASE_SECURITY_HEADERS)
        if self.config.get("environment") == "production":
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return headers

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return True
        allowed = self._allowed_origins()
        if not allowed or "*" in allowed:
            return True
        return origin in allowed

    def cors_headers(self, origin: Optional[str]) -> Dict[str, str]:
        headers = {
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            "Access-Control-Expose-Headers": EXPOSED_HEADERS,
            "Access-Control-Max-Age": "86400",
        }
        allowed = self._allowed_origins()
        if not allowed or "*" in allowed:
            headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in allowed:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"
        return headers

    def check_origin(self, origin: Optional[str]) -> None:
        """Raise CORS error for a disallowed origin when security is on"""
        if self.enabled and not self.is_origin_allowed(origin):
            logger.warning(f"Blocked request from origin {origin}")
            raise cors_error(origin)

    def check_api_key(self, api_key: Optional[str]) -> None:
        """Raise INVALID_API_KEY when an allow list is configured and the key is not on it"""
        allowed = self._allowed_api_keys()
        if not self.enabled or not allowed:
            return
        if not api_key or not any(hmac.compare_digest(api_key, key) for key in allowed):
            logger.warning("Rejected request with unknown API key")
            raise invalid_api_key_error()

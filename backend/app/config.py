"""
Configuration management for the MariaDB converter.

Configuration priority (highest to lowest):
1. Environment variables (for Docker/container deployments)
2. config.json file (for local development)
3. Built-in defaults
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

from .services.conversion.base import DDL_CONTEXT_WINDOW, WIDE_VARCHAR_THRESHOLD, ConversionOptions

logger = logging.getLogger(__name__)

# Config file path at project root
CONFIG_FILE = Path(__file__).parent.parent.parent / "config.json"

# Default values (used when neither env var nor config.json specifies)
DEFAULT_MAX_UPLOAD_MB = 50
DEFAULT_CORS_ORIGINS = "*"


class Config:
    """
    Project-level configuration manager.

    Priority: ENV > config.json > defaults

    Environment variables for Docker:
      - MAX_UPLOAD_MB: Upload size ceiling in megabytes
      - DDL_CONTEXT_WINDOW: Lookback (characters) of the DDL context guard
      - WIDE_VARCHAR_THRESHOLD: Indexed VARCHAR width flagged under utf8mb4
      - CORS_ORIGINS: Comma-separated list of allowed origins
    """

    def __init__(self):
        self.data = self.load()

    def load(self) -> Dict[str, Any]:
        """Load configuration from file."""
        if CONFIG_FILE.exists():
            try:
                with open(CONFIG_FILE, 'r') as f:
                    return json.load(f)
            except Exception as e:
                logger.error(f"Failed to load config: {e}")
                return self._default_config()
        else:
            return self._default_config()

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "upload": {
                "max_upload_mb": DEFAULT_MAX_UPLOAD_MB
            },
            "conversion": {
                "ddl_context_window": DDL_CONTEXT_WINDOW,
                "wide_varchar_threshold": WIDE_VARCHAR_THRESHOLD
            }
        }

    def _get_int(self, env_name: str, section: str, key: str, default: int) -> int:
        """Resolve an integer setting (ENV > config.json > default)."""
        # Environment variable takes precedence
        raw = os.getenv(env_name)
        if raw is None:
            # Config file second
            raw = self.data.get(section, {}).get(key)
        if raw is None:
            return default
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid value for {env_name}: {raw!r}, using default {default}")
            return default
        if value <= 0:
            logger.warning(f"{env_name} must be positive, using default {default}")
            return default
        return value

    def get_max_upload_mb(self) -> int:
        """Get upload size ceiling in MB (MAX_UPLOAD_MB > config.json > default)."""
        return self._get_int("MAX_UPLOAD_MB", "upload", "max_upload_mb", DEFAULT_MAX_UPLOAD_MB)

    def get_max_upload_bytes(self) -> int:
        return self.get_max_upload_mb() * 1024 * 1024

    def get_ddl_context_window(self) -> int:
        return self._get_int("DDL_CONTEXT_WINDOW", "conversion", "ddl_context_window", DDL_CONTEXT_WINDOW)

    def get_wide_varchar_threshold(self) -> int:
        return self._get_int(
            "WIDE_VARCHAR_THRESHOLD", "conversion", "wide_varchar_threshold", WIDE_VARCHAR_THRESHOLD
        )

    def get_conversion_options(self) -> ConversionOptions:
        """Build engine options from the current configuration."""
        return ConversionOptions(
            ddl_context_window=self.get_ddl_context_window(),
            wide_varchar_threshold=self.get_wide_varchar_threshold(),
        )

    def get_cors_origins(self) -> List[str]:
        """Get allowed CORS origins (CORS_ORIGINS > config.json > default)."""
        raw = os.getenv('CORS_ORIGINS')
        if raw is None:
            raw = self.data.get('server', {}).get('cors_origins', DEFAULT_CORS_ORIGINS)
        if isinstance(raw, list):
            return [str(origin) for origin in raw]
        return [origin.strip() for origin in str(raw).split(",") if origin.strip()]


# Global config instance
config = Config()

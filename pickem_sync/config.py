"""
Configuration constants and shared utilities for the pick'em sync engine.

This module contains common configuration values and utility functions
derived from the ConfigManager so callers do not rebuild them by hand.
"""

import httpx
from typing import Any, Dict, Optional

from .config_manager import ConfigManager, get_config_manager


# Season type codes used by the upstream scoreboard
SEASON_TYPE_PRESEASON = 1
SEASON_TYPE_REGULAR = 2
SEASON_TYPE_POSTSEASON = 3

SEASON_TYPE_NAMES = {
    SEASON_TYPE_PRESEASON: "Preseason",
    SEASON_TYPE_REGULAR: "Regular Season",
    SEASON_TYPE_POSTSEASON: "Postseason",
}

# Cache classes
CACHE_SCOREBOARD = "scoreboard"
CACHE_SEASON = "season"
CACHE_SCHEDULE = "schedule"

WEEK_MIN = 1
WEEK_MAX = 22


def get_http_headers(config_manager: Optional[ConfigManager] = None) -> Dict[str, str]:
    """
    Get the fixed headers sent with every upstream request.

    Args:
        config_manager: Configuration source, defaults to the process default

    Returns:
        Dictionary with User-Agent and Accept headers
    """
    manager = config_manager or get_config_manager()
    return {
        "User-Agent": manager.get_user_agent(),
        "Accept": "application/json",
    }


def get_http_timeout(config_manager: Optional[ConfigManager] = None) -> httpx.Timeout:
    """Get the upstream request timeout."""
    manager = config_manager or get_config_manager()
    return httpx.Timeout(manager.config.http.timeout)


def get_http_limits(config_manager: Optional[ConfigManager] = None) -> httpx.Limits:
    """Get the connection pool limits for the upstream client."""
    http = (config_manager or get_config_manager()).config.http
    return httpx.Limits(
        max_connections=http.max_connections,
        max_keepalive_connections=http.max_keepalive_connections,
        keepalive_expiry=http.keepalive_expiry,
    )


def validate_numeric_input(value: Any, min_val: int = None, max_val: int = None,
                           default: int = None, required: bool = True) -> int:
    """
    Numeric validation with type checking and range validation.

    Args:
        value: The value to validate
        min_val: Minimum allowed value
        max_val: Maximum allowed value
        default: Default value if None
        required: Whether the input is required

    Returns:
        Validated integer value

    Raises:
        ValueError: If validation fails
    """
    if value is None:
        if default is not None:
            return default
        if not required:
            return 0
        raise ValueError("Required numeric input cannot be None")

    if isinstance(value, bool):
        raise ValueError(f"Cannot convert '{value}' to integer")

    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValueError(f"Cannot convert '{value}' to integer")

    if min_val is not None and int_value < min_val:
        raise ValueError(f"Value {int_value} is below minimum {min_val}")

    if max_val is not None and int_value > max_val:
        raise ValueError(f"Value {int_value} exceeds maximum {max_val}")

    return int_value


def validate_season_type(value: Any, default: int = SEASON_TYPE_REGULAR) -> int:
    """Validate a season type code, defaulting to the regular season."""
    season_type = validate_numeric_input(value, default=default)
    if season_type not in SEASON_TYPE_NAMES:
        raise ValueError(f"Unknown season type {season_type}; expected 1, 2 or 3")
    return season_type

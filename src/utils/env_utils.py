"""Environment variable utilities.

Helpers for reading typed settings from the environment with defaults.
"""

import json
import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)


def parse_bool_env(key: str, default: bool = True) -> bool:
    """Parse a boolean value from an environment variable.

    Args:
        key: The environment variable name.
        default: Default value if the environment variable is not set.

    Returns:
        True if the value is 'true', '1' or 'yes' (case-insensitive).
        Returns the default if the environment variable is not set.
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


def parse_int_env(key: str, default: int) -> int:
    """Parse an integer value, falling back to default when unset or invalid."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {key}={value!r}, using {default}")
        return default


def parse_str_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the variable's value, treating an empty string as unset."""
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def parse_list_env(key: str, default: Optional[List[str]] = None) -> List[str]:
    """Parse a list from a JSON array or a comma-separated string.

    Examples:
        CORS_ORIGINS='["http://localhost:3000"]'
        CORS_ORIGINS='http://a.example,http://b.example'
    """
    value = os.getenv(key)
    if not value:
        return list(default or [])

    value = value.strip()
    if value.startswith("["):
        try:
            parsed = json.loads(value)
            return [str(item) for item in parsed]
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON list for {key}, using default")
            return list(default or [])

    return [item.strip() for item in value.split(",") if item.strip()]

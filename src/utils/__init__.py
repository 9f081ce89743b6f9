"""Utility modules shared across the API and service layers."""

from .env_utils import (
    parse_bool_env,
    parse_int_env,
    parse_str_env,
    parse_list_env,
)
from .timer_utils import start_clock, elapsed_ms

__all__ = [
    # Environment parsing
    "parse_bool_env",
    "parse_int_env",
    "parse_str_env",
    "parse_list_env",
    # Timing
    "start_clock",
    "elapsed_ms",
]

"""Application-wide constants and configuration defaults.

This module centralizes magic values and defaults that are used across the
codebase.
"""

APP_VERSION = "1.0.0"

# =============================================================================
# Token Accounting
# =============================================================================
CHARS_PER_TOKEN = 4
NEAR_LIMIT_RATIO = 0.8

# =============================================================================
# Usage History Limits
# =============================================================================
REFACTOR_HISTORY_LIMIT = 50
BUG_DETECTION_HISTORY_LIMIT = 50
MULTI_FILE_HISTORY_LIMIT = 20
SUBSCRIPTION_RECENT_USAGE_LIMIT = 50
SUBSCRIPTION_STATS_WINDOW = 100

# =============================================================================
# Auth
# =============================================================================
AUTH_COOKIE_NAME = "auth-token"
DEFAULT_TOKEN_MAX_AGE_SECONDS = 3600
MIN_PASSWORD_LENGTH = 6
# bcrypt refuses longer passwords
MAX_PASSWORD_BYTES = 72

# =============================================================================
# Request Defaults
# =============================================================================
DEFAULT_LANGUAGE = "javascript"
IDEMPOTENCY_HEADER = "Idempotency-Key"
# A pending claim older than this is treated as abandoned
IDEMPOTENCY_CLAIM_TTL_SECONDS = 900

# =============================================================================
# Validation Bounds
# =============================================================================
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
MAX_COMPLETION_TOKENS = 32000
MAX_MULTI_FILE_COUNT = 20

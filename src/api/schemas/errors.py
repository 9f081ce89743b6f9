"""Shared error response definitions for OpenAPI documentation."""

from .common import ErrorResponse

BASE_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request parameters"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
    503: {"model": ErrorResponse, "description": "Database or auth configuration unavailable"},
}

AUTH_ERROR_RESPONSES = {
    **BASE_ERROR_RESPONSES,
    401: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
}

POST_ERROR_RESPONSES = {
    **AUTH_ERROR_RESPONSES,
    403: {"model": ErrorResponse, "description": "Only the author may change this post"},
    404: {"model": ErrorResponse, "description": "Post not found"},
}

BILLED_ERROR_RESPONSES = {
    **AUTH_ERROR_RESPONSES,
    403: {"model": ErrorResponse, "description": "No active subscription, or userId does not match the session"},
    409: {"model": ErrorResponse, "description": "Idempotency-Key already processed"},
    429: {"description": "Token limit exceeded; body carries tokensRemaining, tokensNeeded and an upgrade hint"},
    502: {"model": ErrorResponse, "description": "AI provider failed"},
}

SUBSCRIPTION_ERROR_RESPONSES = {
    **BASE_ERROR_RESPONSES,
    404: {"model": ErrorResponse, "description": "User or subscription not found"},
}

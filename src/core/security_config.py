"""Security configuration constants for the formatter API.

This module centralizes security-related configuration including:
- Sensitive keys that should be sanitized from logs
- Error handling security settings
"""

# Keys redacted from structured log entries. Matching is by substring, so
# "api_key" also covers "GEMINI_API_KEY" and "x-api-key".
SENSITIVE_KEYS: set[str] = {
    # Credentials for external services
    "password",
    "secret",
    "token",
    "authorization",
    "api_key",
    "apikey",
    "bearer",
    "credential",
    "connection_string",
    # Headers
    "set-cookie",
    "cookie",
    "x-api-key",
    "x-goog-api-key",
    # Personal data that may appear in document metadata
    "email",
    "phone",
}

# Production-only error response fields
# In production, error responses should only contain these fields to
# prevent information leakage
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Development error response fields (additional fields allowed in development)
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Get allowed error response fields based on environment."""
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)

"""What may leave the process: log field names and error-envelope fields."""

# Matched as substrings of lower-cased field names, so "key" also covers
# "api_key" and "x-api-key". Question text is only ever logged by length.
SENSITIVE_KEY_PARTS: frozenset[str] = frozenset(
    {
        "authorization",
        "bearer",
        "cookie",
        "key",
        "password",
        "secret",
        "session",
        "token",
    }
)

# Always present in an error envelope.
BASE_ERROR_FIELDS: frozenset[str] = frozenset({"correlation_id", "type"})

# Diagnostics shown only outside production.
DIAGNOSTIC_ERROR_FIELDS: frozenset[str] = frozenset(
    {"details", "traceback", "exception_type", "validation_errors"}
)


def get_allowed_error_fields(environment: str) -> frozenset[str]:
    if environment == "production":
        return BASE_ERROR_FIELDS
    return BASE_ERROR_FIELDS | DIAGNOSTIC_ERROR_FIELDS


def is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(part in key_lower for part in SENSITIVE_KEY_PARTS)

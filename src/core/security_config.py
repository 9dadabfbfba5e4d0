"""What the relay may write to logs and error bodies.

The only secret the relay holds is the upstream ``FAL_KEY``, sent as the
``Authorization`` header of every upstream call. Markers are matched as
lowercase substrings of a key, so ``FAL_KEY`` and ``x-api-key`` both hit
``key``.
"""

from collections.abc import Mapping
from typing import Any


REDACTED = "[REDACTED]"

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "bearer",
        "cookie",
        "credential",
        "key",
        "password",
        "secret",
        "token",
    }
)

# Attached to error ``details`` outside production only
DIAGNOSTIC_FIELDS: frozenset[str] = frozenset(
    {"traceback", "exception_type", "validation_errors"}
)


def get_allowed_diagnostic_fields(environment: str) -> frozenset[str]:
    """Production exposes no diagnostics; every other environment all of them."""
    if environment == "production":
        return frozenset()
    return DIAGNOSTIC_FIELDS


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def redact(value: Any) -> Any:
    """Copy ``value`` with sensitive mapping entries masked, at any depth."""
    if isinstance(value, Mapping):
        return {
            k: REDACTED if is_sensitive_key(str(k)) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list | tuple):
        return [redact(item) for item in value]
    return value


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Header mapping safe to log; credential-bearing values are masked."""
    return {
        name: REDACTED if is_sensitive_key(name) else value
        for name, value in headers.items()
    }

"""Rendering of domain exceptions for per-item batch results."""

from protean.exceptions import (
    InvalidOperationError,
    InvalidStateError,
    ObjectNotFoundError,
    ValidationError,
)

# Errors a batch collects per item instead of failing the whole call
ITEM_ERRORS = (ValidationError, ObjectNotFoundError, InvalidOperationError, InvalidStateError)


def error_message(exc: Exception) -> str:
    if isinstance(exc, ValidationError) and isinstance(exc.messages, dict):
        return "; ".join(
            f"{field}: {', '.join(str(m) for m in messages) if isinstance(messages, list) else messages}"
            for field, messages in exc.messages.items()
        )
    return str(exc.messages) if hasattr(exc, "messages") else str(exc)


def is_duplicate_key(exc: ValidationError) -> bool:
    """True for the uniqueness violation raised when a natural key already exists."""
    messages = exc.messages if isinstance(exc.messages, dict) else {}
    return any("is already present" in str(message) for values in messages.values() for message in values)

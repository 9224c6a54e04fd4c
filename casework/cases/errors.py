from __future__ import annotations


class OperationError(Exception):
    """Base class for failures raised by case operations."""

    retryable: bool = False


class TransientError(OperationError):
    """Backend hiccup; the caller may retry the same call."""

    retryable = True


class FatalError(OperationError):
    """Non-retryable failure; surface the message to the user and stop."""

    retryable = False

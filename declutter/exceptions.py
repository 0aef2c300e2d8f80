"""Custom exceptions for declutter.

All exceptions inherit from DeclutterError so callers can catch every
declutter failure in one place. The pruning pipeline itself never lets
these escape into the host's model request: the interceptor degrades to a
pass-through and the janitor logs and retries on the next idle event.

Example:
    from declutter import DeclutterConfig, ConfigurationError

    try:
        config = DeclutterConfig.from_env()
    except ConfigurationError as e:
        print(f"Configuration problem: {e}")
"""

from __future__ import annotations

from typing import Any


class DeclutterError(Exception):
    """Base exception for all declutter errors.

        try:
            await janitor.run_for_tool(session_id)
        except DeclutterError as e:
            print(e.details)
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(DeclutterError):
    """Raised when declutter is misconfigured.

    This includes:
    - Negative age windows or history limits
    - Environment variables that cannot be parsed

    Example:
        ConfigurationError(
            "age_window must be >= 0",
            details={"age_window": -1}
        )
    """

    pass


class FormatError(DeclutterError):
    """Raised when a request body cannot be handled by its format descriptor.

    Example:
        FormatError(
            "Unsupported request format",
            details={"keys": ["prompt", "model"]}
        )
    """

    pass


class StateError(DeclutterError):
    """Raised on invalid session state operations.

    This includes:
    - Empty session identifiers
    - Unknown tool statuses
    """

    pass


class OracleError(DeclutterError):
    """Raised when the pruning oracle fails.

    This includes:
    - Network or provider errors from the oracle model call
    - Structured output that does not match the expected schema

    Example:
        OracleError(
            "Oracle returned malformed output",
            details={"model": "openai/gpt-4o-mini", "preview": "..."}
        )
    """

    pass


class HistoryError(DeclutterError):
    """Raised when session history cannot be fetched from the host."""

    pass


class NotificationError(DeclutterError):
    """Raised when a notification cannot be delivered.

    Never rolls back pruning that was already committed.
    """

    pass

"""
Custom exceptions for crashpost.

Reporting failures are never raised from these classes: a failed POST
propagates the original transport error, and only in strict mode. These
exceptions cover misuse of the library itself.

Exception Hierarchy:
    CrashPostError (base)
    ├── ConfigurationError
    └── IntegrationError
"""

from __future__ import annotations


class CrashPostError(Exception):
    """
    Base exception for all crashpost errors.

    Attributes:
        message: Human-readable error description.
        cause: Optional underlying exception that caused this error.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ConfigurationError(CrashPostError):
    """
    Raised when a reporter is configured with invalid values.

    Example:
        reporter.add_wrapper_exceptions("ValueError")  # not a type
    """

    pass


class IntegrationError(CrashPostError):
    """
    Raised when framework hooks are installed or removed incorrectly.

    Example:
        attachment = attach(app_one)
        detach(app_two, attachment)  # token belongs to app_one
    """

    pass

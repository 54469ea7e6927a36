"""
Exception hierarchy for the reaction service.

Two families live here:
- ReactionError and subclasses: internal failures of the reaction engine.
  The engine's public methods log them and report a boolean outcome
  instead. Routes that reach past the engine (e.g. flow lookup) let them
  propagate to ``reaction_error_handler``.
- BaseAppException and subclasses: HTTP-facing errors raised by routes and
  rendered by the handlers in ``chatreact.core.error_handlers``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

# Reaction engine errors


class ReactionError(Exception):
    """Base class for reaction engine failures."""


class TransportFailure(ReactionError):
    """Raised when the messaging platform rejects or drops a reaction call."""

    def __init__(self, message_id: str, detail: str, status_code: Optional[int] = None):
        super().__init__(f"Reaction transport failed for {message_id}: {detail}")
        self.message_id = message_id
        self.detail = detail
        self.status_code = status_code


class PersistenceFailure(ReactionError):
    """Raised when the reaction store cannot complete an operation."""

    def __init__(self, operation: str, detail: str):
        super().__init__(f"Reaction store {operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class UnknownFlowError(ReactionError):
    """Raised when a reaction flow key has no definition."""

    def __init__(self, flow_key: str):
        super().__init__(f"Unknown reaction flow: {flow_key}")
        self.flow_key = flow_key


# HTTP exceptions


class BaseAppException(HTTPException):
    """Base exception for all application errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or self.__class__.__name__


class AuthenticationError(BaseAppException):
    """Raised when authentication fails."""

    def __init__(
        self, detail: str = "Authentication failed", error_code: Optional[str] = None
    ):
        super().__init__(
            detail, status.HTTP_401_UNAUTHORIZED, error_code=error_code or "AUTH_ERROR"
        )


class InvalidAPIKeyError(AuthenticationError):
    """Raised when API key is invalid."""

    def __init__(self):
        super().__init__("Invalid API key", error_code="INVALID_API_KEY")


class MissingAPIKeyError(AuthenticationError):
    """Raised when API key is missing."""

    def __init__(self):
        super().__init__(
            "API key is required for this operation", error_code="MISSING_API_KEY"
        )


class ServiceUnavailableError(BaseAppException):
    """Raised when a backing service has not been initialized."""

    def __init__(self, service: str):
        super().__init__(
            f"{service} is not available",
            status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="SERVICE_UNAVAILABLE",
        )

"""
JSON error rendering for the reaction service API.

Every error leaves the API as ``{"error": {"code", "message", "status_code"}}``.
HTTP-facing ``BaseAppException``s carry their own code and status; reaction
engine failures that reach a route are mapped by ``REACTION_ERROR_STATUS``.
"""

import logging
from typing import Dict, Tuple, Type

from chatreact.core.exceptions import (
    BaseAppException,
    PersistenceFailure,
    ReactionError,
    TransportFailure,
    UnknownFlowError,
)
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Most specific class first; the first isinstance match wins.
REACTION_ERROR_STATUS: Dict[Type[ReactionError], Tuple[int, str]] = {
    UnknownFlowError: (status.HTTP_404_NOT_FOUND, "RESOURCE_NOT_FOUND"),
    TransportFailure: (status.HTTP_502_BAD_GATEWAY, "REACTION_TRANSPORT_FAILED"),
    PersistenceFailure: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "REACTION_STORE_UNAVAILABLE",
    ),
}


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "status_code": status_code,
            }
        },
    )


async def base_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    """Render application HTTP exceptions (auth, not found, unavailable)."""
    logger.warning(
        f"{request.method} {request.url.path} failed: {exc.error_code} - {exc.detail}"
    )
    return error_response(exc.status_code, exc.error_code, str(exc.detail))


async def reaction_error_handler(request: Request, exc: ReactionError) -> JSONResponse:
    """Render a reaction engine failure raised inside a route.

    Args:
        request: The incoming request that caused the exception
        exc: The engine error

    Returns:
        JSON response; unmapped subclasses become a 500 ``REACTION_ERROR``
    """
    status_code, code = status.HTTP_500_INTERNAL_SERVER_ERROR, "REACTION_ERROR"
    for error_type, mapped in REACTION_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code, code = mapped
            break

    if status_code >= 500:
        logger.error(f"Reaction error on {request.url.path}: {exc}")
    else:
        logger.info(f"Reaction request rejected on {request.url.path}: {exc}")
    return error_response(status_code, code, str(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors without leaking details to the client."""
    logger.exception(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}"
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
    )

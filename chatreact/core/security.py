"""
Security utilities for the reaction admin API.
"""

import logging
import secrets
from typing import Optional

from chatreact.core.config import get_settings
from chatreact.core.exceptions import InvalidAPIKeyError, MissingAPIKeyError
from fastapi import Header, Request

# Minimum length for secure API keys
MIN_API_KEY_LENGTH = 24

logger = logging.getLogger(__name__)


def verify_admin_key(provided_key: str, admin_api_key: str) -> bool:
    """Constant-time comparison of the provided key against the configured one."""
    if len(admin_api_key) < MIN_API_KEY_LENGTH:
        logger.warning(
            f"ADMIN_API_KEY is configured with insecure length: {len(admin_api_key)} (min: {MIN_API_KEY_LENGTH})"
        )
    return secrets.compare_digest(provided_key, admin_api_key)


async def require_admin_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> None:
    """FastAPI dependency guarding mutating reaction endpoints.

    When ``ADMIN_API_KEY`` is empty the check is disabled (development).

    Raises:
        MissingAPIKeyError: If a key is configured but none was sent
        InvalidAPIKeyError: If the key does not match
    """
    admin_api_key = get_settings().ADMIN_API_KEY
    if not admin_api_key:
        return

    if not x_api_key:
        raise MissingAPIKeyError()

    if not verify_admin_key(x_api_key, admin_api_key):
        logger.warning(
            f"Invalid admin credentials from {request.client.host if request.client else 'unknown'}"
        )
        raise InvalidAPIKeyError()

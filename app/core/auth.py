"""Shared-secret authentication for the administrative endpoints.

The admin password lives in ADMIN_PASSWORD and is sent by the admin page in
the X-Admin-Password header. Comparison is constant-time. When no password
is configured every admin call is refused with a configuration error; the
endpoints never fall open.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from app.core.config import settings
from app.core.errors import AuthenticationAppError, ConfigurationAppError

logger = logging.getLogger(__name__)

ADMIN_PASSWORD_HEADER = "X-Admin-Password"


def validate_admin_password(provided: str | None) -> None:
    """Check provided against the configured admin password.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided: Value of the X-Admin-Password header, if any.

    Raises:
        ConfigurationAppError: If ADMIN_PASSWORD is not configured.
        AuthenticationAppError: If the header is missing or does not match.
    """
    expected = settings.admin.password

    if not expected:
        logger.error(
            "admin_auth.failed",
            extra={"reason": "admin_password_not_configured"},
        )
        raise ConfigurationAppError(
            code="admin_password_not_configured",
            message="Administrative access is disabled until ADMIN_PASSWORD is configured",
            details={"setting": "ADMIN_PASSWORD"},
        )

    if not provided:
        logger.warning("admin_auth.failed", extra={"reason": "missing_password"})
        raise AuthenticationAppError(
            code="missing_admin_password",
            message=f"Missing admin password. Provide the {ADMIN_PASSWORD_HEADER} header.",
        )

    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("admin_auth.failed", extra={"reason": "invalid_password"})
        raise AuthenticationAppError(
            code="invalid_admin_password",
            message="Unauthorized",
        )


async def verify_admin_password(
    x_admin_password: Annotated[str | None, Header(alias=ADMIN_PASSWORD_HEADER)] = None,
) -> None:
    """FastAPI dependency guarding admin routes.

    Usage:
        @router.get("/admin/...", dependencies=[Depends(verify_admin_password)])

    Raises:
        ConfigurationAppError: 500 when no password is configured.
        AuthenticationAppError: 401 on a missing or wrong password.
    """
    validate_admin_password(x_admin_password)
    logger.info("admin_auth.success")

"""Autenticación por API Key del rol administrador (único rol).

SECURITY: En producción, ADMIN_API_KEY debe estar configurado.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Header, HTTPException, Request

logger = logging.getLogger(__name__)


def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Valida la API key compartida del administrador.

    En modo desarrollo, sin ADMIN_API_KEY, permite acceso con warning.
    """
    settings = request.app.state.settings
    expected = settings.admin_api_key

    if not expected:
        if settings.is_production:
            logger.error("CRITICAL: ADMIN_API_KEY not configured in production!")
            raise HTTPException(
                status_code=500,
                detail="Server misconfiguration: API key not set"
            )
        logger.warning(
            "[SECURITY WARNING] ADMIN_API_KEY not set - "
            "allowing unauthenticated access (DEV ONLY)"
        )
        return

    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required")

    if not secrets.compare_digest(x_api_key, expected):
        logger.warning("Invalid API key attempt from request")
        raise HTTPException(status_code=401, detail="Invalid API key")

"""Módulo de autenticación del administrador."""

from .api_key import require_api_key

__all__ = ["require_api_key"]

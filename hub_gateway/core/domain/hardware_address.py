"""Direcciones MAC de hubs y sensores.

Forma canónica: mayúsculas separadas por ':' (AA:BB:CC:DD:EE:FF).
"""

from __future__ import annotations

import re
from typing import Any, Optional

MAC_RE = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")

DEFAULT_SENSOR_NAME_PREFIX = "TempSens-"


def normalize_mac(mac: str) -> str:
    return mac.strip().upper()


def is_valid_mac(value: Any) -> bool:
    return isinstance(value, str) and MAC_RE.match(value) is not None


def parse_mac(value: Any) -> Optional[str]:
    """Normaliza la MAC si tiene el formato esperado, None si no."""
    if not is_valid_mac(value):
        return None
    return normalize_mac(value)


def default_sensor_name(sensor_mac: str) -> str:
    """Nombre por defecto: prefijo + últimos 6 dígitos hex de la MAC."""
    digits = normalize_mac(sensor_mac).replace(":", "")
    return f"{DEFAULT_SENSOR_NAME_PREFIX}{digits[-6:]}"

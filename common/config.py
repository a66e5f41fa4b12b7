from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _default_env_file() -> str:
    # .env junto al repo; las variables reales del entorno siempre ganan.
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str

    mqtt_broker_host: str
    mqtt_broker_port: int
    mqtt_username: str | None
    mqtt_password: str | None
    mqtt_client_id: str
    mqtt_reconnect_seconds: int
    mqtt_enabled: bool

    admin_api_key: str | None
    admin_username: str

    hub_status_cache_size: int
    viewer_queue_size: int

    environment: str
    log_level: str
    host: str
    port: int

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("HUB_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    database_url = os.getenv("DATABASE_URL", "sqlite:///./hub_gateway.db")

    return Settings(
        database_url=database_url,
        mqtt_broker_host=os.getenv("MQTT_BROKER_HOST", "localhost"),
        mqtt_broker_port=int(os.getenv("MQTT_BROKER_PORT", "1883")),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        mqtt_client_id=os.getenv("MQTT_CLIENT_ID", "hub-gateway"),
        mqtt_reconnect_seconds=int(os.getenv("MQTT_RECONNECT_SECONDS", "5")),
        mqtt_enabled=_env_flag("FF_MQTT_ENABLED", "true"),
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
        admin_username=os.getenv("ADMIN_USERNAME", "admin"),
        hub_status_cache_size=int(os.getenv("HUB_STATUS_CACHE_SIZE", "1024")),
        viewer_queue_size=int(os.getenv("VIEWER_QUEUE_SIZE", "256")),
        environment=os.getenv("ENVIRONMENT", "development").strip().lower(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )

import os
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    gateway_url: str = "http://localhost:54321"
    gateway_api_key: str = ""
    gateway_timeout: float = 10.0
    config_dir: str = "/app/config"
    refresh_interval: int = 60  # seconds, 0 disables background reconciliation
    simulated_refresh_delay: float = 1.0
    ports_per_block: int = 16
    default_port_count: int = 49
    add_ports_step: int = 8
    session_cookie: str = "portmap_session"
    session_max_age: int = 7 * 24 * 3600
    log_level: str = "INFO"

    class Config:
        env_prefix = "PORTMAP_"


settings = Settings()


def get_config_path() -> Path:
    """Get the configuration directory path."""
    config_dir = os.environ.get("PORTMAP_CONFIG_DIR", settings.config_dir)
    return Path(config_dir)


def load_messages() -> dict[str, dict[str, str]]:
    """Load notification text overrides from messages.yaml.

    The file maps a message key to a ``title`` and/or ``description``
    template. Missing file or keys fall back to the built-in catalog.
    """
    config_path = get_config_path() / "messages.yaml"
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or "messages" not in data:
        return {}

    return {
        key: {k: str(v) for k, v in entry.items() if k in ("title", "description")}
        for key, entry in data["messages"].items()
        if isinstance(entry, dict)
    }

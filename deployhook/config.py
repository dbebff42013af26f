"""Process settings loaded from environment variables.

Per-repository deployment settings live in the YAML document named by
``config_path``; see ``deployhook.services.config_resolver``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Daemon settings with environment variable loading and sensible defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DEPLOYHOOK_",
        case_sensitive=False,
    )

    app_name: str = "deployhook"
    config_path: str = "deployhook.yml"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 5000

    # Seconds before a single external command is killed; None waits forever
    command_timeout: float | None = None
    # 0 keeps the dispatch queue unbounded
    dispatch_queue_size: int = 0
    history_size: int = 500


settings = Settings()

"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TEMP_PATH = "storage/temp"


def temp_dir_or_default(raw: str) -> Path:
    """Return *raw* as a path, or the default temp directory when blank."""
    return Path(raw.strip() or DEFAULT_TEMP_PATH)


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """taskloop configuration. All values come from environment variables."""

    # Temp files (empty -> DEFAULT_TEMP_PATH)
    temp_path: str = Field(default="")
    temp_create_missing: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def resolve_temp_dir(self) -> Path:
        """Return the configured temp directory, falling back to the default."""
        return temp_dir_or_default(self.temp_path)


settings = Settings()

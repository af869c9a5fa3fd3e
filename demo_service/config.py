from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    port: int = Field(default=3000, alias="PORT", ge=0, le=65535)
    log_dir: str = Field(default="logs", alias="LOG_DIR")

    @property
    def log_path(self) -> Path:
        return Path(self.log_dir) / "app.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

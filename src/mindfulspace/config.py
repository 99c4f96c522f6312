"""Runtime settings, read from the environment and an optional ``.env`` file."""

from functools import lru_cache
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MINDFULSPACE_", extra="ignore")

    app_name: str = "mindfulspace"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    storage_backend: Literal["memory", "file", "json", "sqlite"] = "json"
    storage_path: str = "db.json"
    storage_timeout: float = 5.0

    llm_provider: Literal["openai", "anthropic", "echo"] = "openai"
    llm_model: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_timeout: float = 30.0

    bcrypt_rounds: int = 12


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_LOCAL_DATA_DIR = BASE_DIR / "data"
DEFAULT_SERVERLESS_DATA_DIR = Path("/tmp/potd")


TRUTHY_VALUES = {"1", "true", "yes", "on"}


def _is_truthy(value: str | None) -> bool:
    return bool(value and value.strip().lower() in TRUTHY_VALUES)


def _running_serverless() -> bool:
    return bool(os.getenv("VERCEL") or os.getenv("VERCEL_ENV") or _is_truthy(os.getenv("POTD_SERVERLESS")))


def _default_data_dir() -> str:
    if _running_serverless():
        return str(DEFAULT_SERVERLESS_DATA_DIR)
    return str(DEFAULT_LOCAL_DATA_DIR)


class Settings(BaseSettings):
    """Runtime configuration for the D.PotD grading backend."""

    model_config = SettingsConfigDict(env_prefix="POTD_", extra="ignore")

    app_name: str = "D.PotD Grading API"
    data_dir: str = Field(
        default_factory=_default_data_dir,
        validation_alias=AliasChoices("POTD_DATA_DIR", "DATA_DIR"),
    )
    sqlite_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("POTD_SQLITE_PATH", "SQLITE_PATH"),
    )

    # CORS configuration
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("POTD_CORS_ALLOW_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )

    # Gemini generateContent configuration
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_timeout_seconds: float = 30.0
    gemini_temperature: float = 0.3
    gemini_max_output_tokens: int = 1024
    gemini_top_p: float = 0.8

    # Optional override for the grader persona line of the prompt
    grading_persona: str | None = None

    @model_validator(mode="after")
    def _set_sqlite_path(self) -> "Settings":
        if not self.sqlite_path:
            self.sqlite_path = str(Path(self.data_dir) / "potd.db")
        return self

    @property
    def sqlite_url(self) -> str:
        return f"sqlite:///{self.sqlite_path}"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_allow_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]

    @property
    def generation_config(self) -> dict[str, float | int]:
        return {
            "temperature": self.gemini_temperature,
            "maxOutputTokens": self.gemini_max_output_tokens,
            "topP": self.gemini_top_p,
        }


settings = Settings()

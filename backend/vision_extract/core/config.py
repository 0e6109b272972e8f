from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Comma-separated env values; split by ``_split_csv`` rather than JSON-decoded.
CsvList = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )

    app_name: str = "Vision Extract API"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    docs_enabled: bool = True
    openapi_enabled: bool = True
    expose_error_details: bool = False
    security_headers_enabled: bool = True

    # --- AI provider ---
    ai_provider: str = "gemini"
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    gemini_model: str = "gemini-2.0-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ai_timeout_seconds: float = 60.0
    ai_temperature: float = 0.2
    ai_max_tokens: int = 8192
    # Pull a JSON object out of prose-wrapped replies instead of returning them raw.
    ai_recover_embedded_json: bool = False

    # --- Model catalog ---
    catalog_cache_ttl_seconds: int = 0

    # --- Uploads ---
    max_file_size: int = 10 * 1024 * 1024
    allowed_file_types: CsvList = Field(
        default_factory=lambda: [
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/webp",
            "image/gif",
        ]
    )
    max_image_dimension: int = 2048
    image_quality: int = 85

    # --- Rate limiting ---
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 900
    rate_limit_api_per_window: int = 100
    rate_limit_analyze_window_seconds: int = 600
    rate_limit_analyze_per_window: int = 10

    cors_allow_origins: CsvList = Field(default_factory=lambda: ["http://localhost:3000"])
    cors_allow_methods: CsvList = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    cors_allow_headers: CsvList = Field(default_factory=lambda: ["Content-Type", "Authorization", "X-Api-Key"])

    @field_validator(
        "allowed_file_types",
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            if value.strip() == "":
                return []
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def has_server_api_key(self) -> bool:
        return bool(self.gemini_api_key.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""
Purpose:
- Centralized configuration using pydantic-settings.
- Reads from environment variables and optional .env file.
- Built once by the app factory and handed to the model gateway; nothing here
  is read as module-level state.
"""

from typing import Literal, Optional
from pathlib import Path
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Provider = Literal["openai", "gemini", "qwen", "stub"]

class Settings(BaseSettings):
    # Pydantic v2 config (env file + ignore unexpected env vars)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LISTING_LENS_",
        extra="ignore",
        populate_by_name=True,
    )

    # API host/port
    host: str = Field(default="0.0.0.0", description="Bind address for FastAPI/Uvicorn")
    port: int = Field(default=8000, description="Port for FastAPI/Uvicorn")
    log_level: str = Field(default="INFO")

    # CORS (front-end is served from a different origin)
    cors_allow_origins: list[str] = Field(
        default=["*"],
        description="Allowed origins for browser apps"
    )

    # ---- Model provider ----
    provider: Provider = Field(default="openai", description="openai | gemini | qwen | stub")

    # Credentials accept their conventional names as well as the prefixed ones
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LISTING_LENS_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = Field(default="gpt-4.1-mini")

    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LISTING_LENS_GEMINI_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    gemini_model: str = Field(default="gemini-2.5-flash")

    # Wall-clock budget for one gateway call
    request_timeout_s: float = Field(default=60.0, gt=0)

    # ---- Request limits ----
    max_images: int = Field(default=4, ge=1, description="Images accepted by the multi-image endpoint")
    max_image_chars: int = Field(default=12_000_000, description="Max base64 length per image")
    default_mime_type: str = Field(default="image/jpeg")
    raw_preview_chars: int = Field(default=2000, description="Raw model text echoed back on extraction failure")

    # ---- Qwen config (provider="qwen") ----
    qwen_model_id: str = Field(default="Qwen/Qwen2.5-VL-3B-Instruct")
    qwen_device: str = Field(default="auto")       # "auto" | "cuda" | "cpu"
    qwen_max_new_tokens: int = Field(default=768)
    qwen_temperature: float = Field(default=0.2)
    qwen_top_p: float = Field(default=0.9)

    # ---- Qwen memory/offload controls ----
    qwen_offload_folder: Path = Field(default=Path("./data/qwen_offload"))
    qwen_gpu_max_gb: float = Field(default=15.0)   # cap GPU usage; leave headroom
    qwen_cpu_max_gb: float = Field(default=80.0)
    qwen_attn_impl: str = Field(default="sdpa")    # "sdpa" | "flash_attention_2" | "eager"
    qwen_context_tokens: int = Field(default=32768)

    def credentials_present(self) -> dict[str, bool]:
        return {
            "OPENAI_API_KEY": bool(self.openai_api_key),
            "GEMINI_API_KEY": bool(self.gemini_api_key),
        }

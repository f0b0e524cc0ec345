# frameflow/core/config.py
from functools import lru_cache
import os, json
from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_list(v):
    """Accept JSON arrays or comma separated strings from .env."""
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return []
        try:
            parsed = json.loads(s)
            if isinstance(parsed, list):
                return parsed
        except Exception:
            return [x.strip() for x in s.split(",") if x.strip()]
    return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Frameflow Storyboard API"
    DEBUG: bool = False
    API_PREFIX: str = ""

    BASE_DIR: Path = Path(__file__).resolve().parents[2]
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")

    MAX_UPLOAD_SIZE_MB: int = 50

    # --- CORS ---
    CORS_ORIGINS: List[str] = ["*"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v):
        return _split_list(v)

    # --- Gemini / Veo ---
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL_TEXT: str = "gemini-3-flash-preview"
    GEMINI_MODEL_IMAGE: str = "gemini-3-pro-image-preview"
    GEMINI_MODEL_IMAGE_EDIT: str = "gemini-2.5-flash-image"
    GEMINI_MODEL_VIDEO: str = "veo-3.1-fast-generate-preview"

    IMAGE_ASPECT_RATIO: str = "16:9"
    IMAGE_SIZE: str = "1K"
    VIDEO_RESOLUTION: str = "720p"

    # Veo jobs are polled until done; the timeout bounds the wait
    ANIMATION_POLL_SEC: float = 8.0
    ANIMATION_TIMEOUT_SEC: float = 15 * 60

    # --- Continuity engine ---
    TRANSITION_PROGRESS: List[float] = [0.33, 0.66]
    PARALLEL_TRANSITIONS: bool = False

    @field_validator("TRANSITION_PROGRESS", mode="before")
    @classmethod
    def _parse_progress(cls, v):
        return _split_list(v)

    @field_validator("TRANSITION_PROGRESS")
    @classmethod
    def _check_progress(cls, v: List[float]) -> List[float]:
        if len(v) != 2:
            raise ValueError("TRANSITION_PROGRESS needs exactly two fractions")
        if not all(0.0 < p < 1.0 for p in v) or v[0] >= v[1]:
            raise ValueError("TRANSITION_PROGRESS must be increasing fractions in (0, 1)")
        return v

    # --- Document import ---
    EXTRACTION_LANGUAGE: str = "Chinese"
    SEED_DEMO_SHOTS: bool = False

    # ================= Helpers =================
    def has_api_key(self) -> bool:
        return bool((self.GEMINI_API_KEY or "").strip())

    def ensure_dirs(self) -> None:
        Path(self.LOG_DIR).mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    s = Settings()
    s.ensure_dirs()
    return s

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    # --- Scoring ---
    min_score: int = Field(default=35, ge=0)

    # --- Caches (seconds) ---
    scan_cache_ttl: float = Field(default=300.0, gt=0)
    tag_cache_ttl: float = Field(default=60.0, gt=0)

    # --- Cooperative scheduling ---
    yield_every: int = Field(default=50, ge=1)

    # CHARACTER_DEDUPE_MIN_SCORE=50 etc; unknown keys are ignored
    model_config = SettingsConfigDict(
        env_prefix="CHARACTER_DEDUPE_",
        env_file=".env",
        extra="ignore",
    )

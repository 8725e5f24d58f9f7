from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Sampling
    default_iterations: int = 100
    max_workers: int | None = None  # None lets the thread pool pick
    histogram_height: int = 20

    # Modifier caps
    reroll_limit: int = 100
    unique_limit: int = 100
    infinite_limit: int = 1000  # stands in for the "i" marker

    # Server
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "DICE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()

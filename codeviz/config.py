from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    # Where per-project artifacts (metadata.json, *-data.json) are cached
    PROJECTS_DIR: Path = Path("projects")

    LOG_LEVEL: str = "INFO"

    # ─── Parsing ────────────────────────────────────────
    # >1 runs per-file extraction on a thread pool
    PARSE_WORKERS: int = 1

    # Larger files are skipped (generated code, bundled data)
    MAX_FILE_BYTES: int = 2_000_000

    # Directory names pruned in addition to the per-language defaults
    EXCLUDE_DIRS: List[str] = []

    # Used when no language marker is found at the project root
    DEFAULT_LANGUAGE: str = "rust"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

@lru_cache
def get_settings():
    return Settings()

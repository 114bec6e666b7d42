from __future__ import annotations
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List

DEFAULT_FIELDS_FILE = Path(__file__).parent / "config" / "movies.yaml"


@dataclass(frozen=True)
class Settings:
    backend: str = "memory"
    fields_file: Path = DEFAULT_FIELDS_FILE
    entity: str = "movies"
    global_max_page_size: int = 1000
    default_page_size: int = 20
    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    sqlite_path: str = "catalog.db"

    @classmethod
    def from_env(cls) -> "Settings":
        origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "")
        return cls(
            backend=os.getenv("CATALOG_BACKEND", "memory").strip().lower(),
            fields_file=Path(os.getenv("CATALOG_FIELDS_FILE", str(DEFAULT_FIELDS_FILE))),
            entity=os.getenv("CATALOG_ENTITY", "movies"),
            global_max_page_size=int(os.getenv("GLOBAL_MAX_PAGE_SIZE", "1000")),
            default_page_size=int(os.getenv("DEFAULT_PAGE_SIZE", "20")),
            cors_origins=[o.strip() for o in origins_raw.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            sqlite_path=os.getenv("CATALOG_SQLITE_PATH", "catalog.db"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()

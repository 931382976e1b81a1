from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    db_path: Path
    log_level: str = "INFO"


def default_db_path() -> Path:
    # Fixed, repo-local database location (keeps paths stable across machines).
    return Path("db") / "lineperf.db"

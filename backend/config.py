# Server settings - environment variables, seeded from .streamlit/secrets.toml

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

BACKEND_DIR = Path(__file__).parent
PROJECT_DIR = BACKEND_DIR.parent
DEFAULT_BOOKMARKS_FILE = BACKEND_DIR / "data" / "bookmarks.json"
DEFAULT_CORS_ORIGINS = "http://localhost:8501,http://127.0.0.1:8501"

SECRET_KEYS = ("BOOKMARKS_FILE", "BOOKMARKS_CORS_ORIGINS", "BOOKMARKS_LOG_LEVEL")


def load_secrets(secrets_path: Path = PROJECT_DIR / ".streamlit" / "secrets.toml"):
    """Copy bookmark settings from secrets.toml into the environment (env wins)"""
    if not secrets_path.exists():
        return
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib
    with open(secrets_path, "rb") as f:
        secrets = tomllib.load(f)
    for key in SECRET_KEYS:
        if key in secrets:
            os.environ.setdefault(key, str(secrets[key]))


@dataclass(frozen=True)
class Settings:
    bookmarks_file: Path
    cors_origins: Tuple[str, ...]
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("BOOKMARKS_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
        return cls(
            bookmarks_file=Path(os.getenv("BOOKMARKS_FILE", str(DEFAULT_BOOKMARKS_FILE)).strip()),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            log_level=os.getenv("BOOKMARKS_LOG_LEVEL", "INFO").strip().upper(),
        )

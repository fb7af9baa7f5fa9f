import logging
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # Default to local SQLite, but allow override for a hosted Postgres
    database_url: str = "sqlite:///savevibe.db"
    storage_backend: str = "memory"  # 'memory' or 'database'
    secret_key: str = "dev-key-change-me"
    seed_demo_data: bool = True
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    plaid_client_id: str | None = None
    plaid_secret: str | None = None
    plaid_env: str = "sandbox"


def load_settings() -> Settings:
    """Build a settings snapshot from the environment (and ``.env``)."""
    cors = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///savevibe.db"),
        storage_backend=os.getenv("STORAGE_BACKEND", "memory").lower(),
        secret_key=os.getenv("SECRET_KEY", "dev-key-change-me"),
        seed_demo_data=_env_flag("SEED_DEMO_DATA", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=[o.strip() for o in cors.split(",") if o.strip()],
        plaid_client_id=os.getenv("PLAID_CLIENT_ID"),
        plaid_secret=os.getenv("PLAID_SECRET"),
        plaid_env=os.getenv("PLAID_ENV", "sandbox"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

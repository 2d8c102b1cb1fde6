"""
Central configuration loader.
Reads from environment variables (via .env) and validates numeric keys.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Load .env from repo root (if present)
# ---------------------------------------------------------------------------
_REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_REPO_ROOT / ".env")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _get(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    val = os.getenv(key, default)
    if required and not val:
        raise EnvironmentError(f"Missing required environment variable: {key}")
    return val


def _get_int(key: str, default: int) -> int:
    raw = _get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise EnvironmentError(f"Environment variable {key} must be an integer, got {raw!r}")


# ---------------------------------------------------------------------------
# Store config
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StoreConfig:
    db_path: Path
    slow_query_ms: int
    param_limit: int
    log_level: str


def get_store_config() -> StoreConfig:
    db_path = _get("SCOPEDSQL_DB_PATH")
    param_limit = _get_int("SCOPEDSQL_PARAM_LIMIT", 900)
    # the engine refuses statements with more than 999 bound parameters
    if not 0 < param_limit < 999:
        raise EnvironmentError(
            f"SCOPEDSQL_PARAM_LIMIT must be between 1 and 998, got {param_limit}"
        )
    return StoreConfig(
        db_path=Path(db_path) if db_path else get_db_path(),
        slow_query_ms=_get_int("SCOPEDSQL_SLOW_QUERY_MS", 300),
        param_limit=param_limit,
        log_level=(_get("SCOPEDSQL_LOG_LEVEL", default="INFO") or "INFO").upper(),
    )


# ---------------------------------------------------------------------------
# Server config
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    reload: bool


def get_server_config() -> ServerConfig:
    return ServerConfig(
        host=_get("SERVER_HOST", default="0.0.0.0"),  # type: ignore[arg-type]
        port=_get_int("SERVER_PORT", 8000),
        reload=_get("SERVER_RELOAD", default="false").lower() in ("1", "true", "yes"),  # type: ignore[union-attr]
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
def get_repo_root() -> Path:
    return _REPO_ROOT


def get_db_path() -> Path:
    return _REPO_ROOT / "data" / "store.db"

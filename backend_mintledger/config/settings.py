"""
Application settings.

Typed, immutable view of the environment for the pager, fetcher, cache,
verifier, API server and background runner. Built once and cached; tests
call reset_settings() after changing the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from backend_mintledger.config.env import (
    get_helius_api_key,
    get_helius_api_url,
    get_solana_network,
    get_solana_rpc_url,
    load_mintledger_env,
)

# Minting authority of the launchpad; every mint instruction is signed by it,
# so its signature history is the single feed the cache indexes.
DEFAULT_MINT_AUTHORITY = "Hq7Xh37tT4sesD6wA4DphYfxeMJRhhFWS3KVUSSGjqzc"
DEFAULT_DB_PATH = "mintledger.db"
DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "data" / "exclusion_rules.json"


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def _get_database_url() -> str:
    """DATABASE_URL if set (e.g. PostgreSQL); else SQLite from MINTLEDGER_DB_PATH or default."""
    url = (os.getenv("DATABASE_URL") or "").strip()
    if url:
        return url
    path = (os.getenv("MINTLEDGER_DB_PATH") or "").strip() or DEFAULT_DB_PATH
    return f"sqlite:///{path}"


@dataclass(frozen=True)
class Settings:
    network: str
    rpc_url: str
    helius_api_url: str
    helius_api_key: str
    mint_authority: str
    database_url: str
    exclusion_rules_path: Path
    rpc_timeout_sec: float = 30.0
    fetch_max_retries: int = 3
    fetch_batch_delay_sec: float = 0.1
    fetch_retry_backoff_sec: float = 1.0
    verify_max_age_sec: int = 300
    sync_interval_sec: float = 0.0
    api_host: str = "0.0.0.0"
    api_port: int = 8000


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the current application settings (built from env on first call)."""
    global _settings
    if _settings is None:
        load_mintledger_env()
        rules = (os.getenv("MINT_EXCLUSION_RULES_PATH") or "").strip()
        _settings = Settings(
            network=get_solana_network(),
            rpc_url=get_solana_rpc_url(),
            helius_api_url=get_helius_api_url(),
            helius_api_key=get_helius_api_key(),
            mint_authority=(os.getenv("MINT_AUTHORITY_ADDRESS") or "").strip() or DEFAULT_MINT_AUTHORITY,
            database_url=_get_database_url(),
            exclusion_rules_path=Path(rules) if rules else DEFAULT_RULES_PATH,
            rpc_timeout_sec=_env_float("RPC_TIMEOUT_SEC", 30.0),
            fetch_max_retries=_env_int("FETCH_MAX_RETRIES", 3),
            fetch_batch_delay_sec=_env_float("FETCH_BATCH_DELAY_SEC", 0.1),
            fetch_retry_backoff_sec=_env_float("FETCH_RETRY_BACKOFF_SEC", 1.0),
            verify_max_age_sec=_env_int("VERIFY_MAX_AGE_SEC", 300),
            sync_interval_sec=_env_float("SYNC_INTERVAL_SEC", 0.0),
            api_host=(os.getenv("API_HOST") or "0.0.0.0").strip(),
            api_port=_env_int("API_PORT", 8000),
        )
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None

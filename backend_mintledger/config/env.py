"""
Environment variable loading for MintLedger.

- SOLANA_NETWORK: devnet | mainnet (default: mainnet)
- SOLANA_RPC_URL: JSON-RPC endpoint (read from .env)
- HELIUS_API_KEY: Helius API key (RPC URL fallback and enhanced transactions API)
- HELIUS_API_URL: enhanced transactions API base URL
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_mintledger/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_DEVNET_URL_TEMPLATE = "https://devnet.helius-rpc.com/?api-key={key}"
HELIUS_API_URL = "https://api.helius.xyz"
HELIUS_DEVNET_API_URL = "https://api-devnet.helius.xyz"


def load_mintledger_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(_ENV_PATH, override=False)


def get_solana_network() -> str:
    """Return SOLANA_NETWORK from env: devnet | mainnet. Default: mainnet."""
    load_mintledger_env()
    raw = (os.getenv("SOLANA_NETWORK") or "mainnet").strip().lower()
    return "devnet" if raw == "devnet" else "mainnet"


def get_helius_api_key() -> str:
    load_mintledger_env()
    return (os.getenv("HELIUS_API_KEY") or "").strip()


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY (network-specific) > public devnet/mainnet endpoint.
    """
    load_mintledger_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    key = get_helius_api_key()
    network = get_solana_network()
    if key:
        if network == "devnet":
            return HELIUS_DEVNET_URL_TEMPLATE.format(key=key)
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return DEVNET_RPC_URL if network == "devnet" else MAINNET_RPC_URL


def get_helius_api_url() -> str:
    """Base URL of the enhanced transactions API (no trailing slash)."""
    load_mintledger_env()
    url = (os.getenv("HELIUS_API_URL") or "").strip()
    if url:
        return url.rstrip("/")
    return HELIUS_DEVNET_API_URL if get_solana_network() == "devnet" else HELIUS_API_URL


def mask_api_key(url: str) -> str:
    """Hide the api-key query value before logging a URL."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url

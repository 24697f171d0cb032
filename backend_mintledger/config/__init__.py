"""
Configuration management for Backend MintLedger.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for RPC endpoints, cache location and sync tuning.
"""

from backend_mintledger.config.settings import Settings, get_settings, reset_settings  # noqa: F401

__all__ = ["Settings", "get_settings", "reset_settings"]

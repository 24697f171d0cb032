"""
Structured logging for Backend MintLedger.

JSON logs with timestamp, event_type, and per-call fields (signature, token_address, ...).
Use get_logger() in every module.
"""

from backend_mintledger.mintledger_logging.logger import bind_token, get_logger

__all__ = ["bind_token", "get_logger"]

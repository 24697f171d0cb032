"""
Main entrypoint: FastAPI server with the periodic mint sync in a background thread.

Env: SOLANA_RPC_URL or HELIUS_API_KEY, DATABASE_URL, SYNC_INTERVAL_SEC, API_HOST, API_PORT, LOG_LEVEL.
The sync runner is started by the API lifespan when SYNC_INTERVAL_SEC > 0.

API only: uvicorn backend_mintledger.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_mintledger.mintledger_logging import get_logger

logger = get_logger("main")


def main() -> None:
    from backend_mintledger.config import get_settings
    from backend_mintledger.api_server.app import app
    import uvicorn

    settings = get_settings()
    if not settings.helius_api_key:
        logger.warning("main_config_warning", message="HELIUS_API_KEY not set; enhanced transactions API calls will fail")
    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        sync_interval_sec=settings.sync_interval_sec,
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()

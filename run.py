#!/usr/bin/env python3
"""
El Granito Credit Ledger Entry Point

Starts the FastAPI server on the configured host and port.
"""

import sys

from credit_ledger.api import run_server
from credit_ledger.config import get_config
from credit_ledger.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(level=config.log_level, format_type=config.log_format)

    print("Starting El Granito Credit Ledger...")
    print(f"Storage: {config.database_url}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down El Granito Credit Ledger...")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)

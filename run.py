#!/usr/bin/env python3
"""
Wallet Banking Entry Point

Starts the FastAPI server (port 8090 by default, see BANKING_API_PORT).
"""

import sys

from wallet_banking.api import run_server
from wallet_banking.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting Wallet Banking API...")
    print(f"💾 Storage: {config.database_url}")
    print("💰 All amounts use Decimal precision")
    print(f"🌐 API available at: http://localhost:{config.api_port}/api")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug="--reload" in sys.argv)
    except KeyboardInterrupt:
        print("\n👋 Shutting down Wallet Banking API...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)

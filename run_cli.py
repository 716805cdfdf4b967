"""
Run the Smart Recipe Generator admin CLI.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    init-db        Create or upgrade the database schema
    balance        Show a customer's credit balance
    grant          Add credits to a customer
    transactions   List payment transactions (--status, --anomalies)
    refresh        Re-check a PENDING transaction with its gateway

Examples:
    python run_cli.py balance alice@example.com
    python run_cli.py transactions --anomalies
"""

import logging
import os
import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv

from adapters.cli.main import app

if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())
    app()

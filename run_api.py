"""
Run the Smart Recipe Generator REST API.

Usage:
    python run_api.py

Environment variables (all optional, also read from .env):
    JWT_SECRET          Secret key for signing JWT tokens (change in production!)
    DB_PATH             SQLite database file path (default: recipes.db)
    GEMINI_API_KEY      Without it every chat turn answers with a fallback
    STRIPE_SECRET_KEY   Enables Stripe checkout (with STRIPE_WEBHOOK_SECRET)
    PHONEPE_MERCHANT_ID Enables PhonePe checkout (with PHONEPE_SALT_KEY)
    LOG_LEVEL           Logging level (default: INFO)
"""

import logging
import os
import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "adapters.rest.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )

"""Settings read from the environment (.env at the project root)."""

import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Shopify Storefront ---
SHOPIFY_STORE_DOMAIN: str = os.getenv("SHOPIFY_STORE_DOMAIN", "")
SHOPIFY_STOREFRONT_TOKEN: str = os.getenv("SHOPIFY_STOREFRONT_TOKEN", "")
STOREFRONT_API_VERSION: str = os.getenv("STOREFRONT_API_VERSION", "2024-01")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))  # seconds

# --- Modal focus ---
FOCUS_RETRY_ATTEMPTS = 5
FOCUS_RETRY_INTERVAL = 0.05  # seconds

# --- Add to bag ---
ADD_TO_BAG_DELAY_MIN = 0.8
ADD_TO_BAG_DELAY_MAX = 1.2
ADD_TO_BAG_RESET_SECONDS = 1.5

# --- Logging ---
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

"""
Configuration and shared helpers
"""

import os
import logging
from datetime import datetime, timezone, date
from pathlib import Path

import pytz
from dotenv import load_dotenv

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger("config")

# Storage
STORE_BACKEND = os.environ.get('STORE_BACKEND', 'mongo')  # mongo | memory
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'showroom_backoffice')

# Business timezone (the showrooms all run on local time)
APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'Asia/Kolkata')
APP_TZ = pytz.timezone(APP_TIMEZONE)

# Business rules
COMPLAINT_TITLE_MIN_LENGTH = int(os.environ.get('COMPLAINT_TITLE_MIN_LENGTH', '5'))
CUSTOMER_CACHE_TTL_SECONDS = int(os.environ.get('CUSTOMER_CACHE_TTL_SECONDS', '300'))

# Scheduler
SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
NOTIFICATION_SWEEP_MINUTES = int(os.environ.get('NOTIFICATION_SWEEP_MINUTES', '15'))

# HTTP
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')


# ==================== HELPERS ====================

def now_iso() -> str:
    """Current UTC datetime as ISO string"""
    return datetime.now(timezone.utc).isoformat()

def timestamp() -> int:
    """Current unix timestamp"""
    return int(datetime.now(timezone.utc).timestamp())

def now_local() -> datetime:
    """Current datetime in the business timezone"""
    return datetime.now(APP_TZ)

def today_local() -> date:
    """Current calendar day in the business timezone"""
    return now_local().date()


def build_store():
    """
    Build the tree store selected by STORE_BACKEND.

    mongo  -> MongoTreeStore over motor
    memory -> MemoryTreeStore (local dev, tests)
    """
    from services.store import MemoryTreeStore, MongoTreeStore

    if STORE_BACKEND == 'memory':
        logger.info("[CONFIG] Using in-memory tree store")
        return MemoryTreeStore()

    from motor.motor_asyncio import AsyncIOMotorClient

    client = AsyncIOMotorClient(MONGO_URL)
    logger.info(f"[CONFIG] Using database: {DB_NAME}")
    return MongoTreeStore(client[DB_NAME])

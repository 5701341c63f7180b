"""
Configuration and shared helpers

FSM Reports - environment settings, MongoDB handle and small helpers
shared by the services, routes and scripts.
"""

import os
import re
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'fsm_reports')

# Motor connects lazily, importing this module never touches the network
client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# WhatsApp provider (SAK gateway)
SAK_BASE_URL = os.environ.get('SAK_BASE_URL', 'http://wapi.saksolution.com')
SAK_API_KEY = os.environ.get('SAK_API_KEY', '')
SAK_SESSION_ID = os.environ.get('SAK_SESSION_ID', '')
WHATSAPP_MIN_INTERVAL_SECONDS = float(os.environ.get('WHATSAPP_MIN_INTERVAL_SECONDS', '2'))
WHATSAPP_TIMEOUT_SECONDS = float(os.environ.get('WHATSAPP_TIMEOUT_SECONDS', '10'))

# HTTP trigger
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
CRON_SECRET = os.environ.get('CRON_SECRET', '')

# Scheduling
ENABLE_SCHEDULER = os.environ.get('ENABLE_SCHEDULER', 'false').lower() == 'true'
DEFAULT_NOTIFICATION_TIME = os.environ.get('DEFAULT_NOTIFICATION_TIME', '19:00')

# Report layout
TOP_PERFORMERS_LIMIT = int(os.environ.get('TOP_PERFORMERS_LIMIT', '5'))
ALERTS_LIMIT = int(os.environ.get('ALERTS_LIMIT', '3'))

SERVICE_NAME = "FSM WhatsApp Summary Automation"
SERVICE_VERSION = "3.0.0"


# ==================== HELPERS ====================

def now_iso() -> str:
    """Current UTC time as an ISO string"""
    return datetime.now(timezone.utc).isoformat()


def normalize_whatsapp_phone(phone: str) -> str:
    """
    Strip '+' and whitespace so the gateway receives a bare dialable string.

    "+91 95376 53927" -> "919537653927". Returns "" for None/blank input,
    callers must refuse to dispatch in that case.
    """
    if not phone:
        return ""
    return re.sub(r"[+\s]", "", str(phone))


def parse_notification_time(value: str) -> tuple[int, int]:
    """
    Parse "HH:MM" (or "HH:MM:SS") into (hour, minute).
    Falls back to DEFAULT_NOTIFICATION_TIME when the value is malformed.
    """
    for candidate in (value, DEFAULT_NOTIFICATION_TIME, "19:00"):
        if not candidate:
            continue
        parts = str(candidate).strip().split(":")
        try:
            hour, minute = int(parts[0]), int(parts[1])
        except (ValueError, IndexError):
            continue
        if 0 <= hour <= 23 and 0 <= minute <= 59:
            return hour, minute
    return 19, 0

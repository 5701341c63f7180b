import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "fsm_reports_test")
os.environ.setdefault("WHATSAPP_MIN_INTERVAL_SECONDS", "0")

from services import clock  # noqa: E402


@pytest.fixture
def freeze_clock(monkeypatch):
    """freeze_clock("2025-12-05T13:30:00") pins clock.utcnow() to that UTC instant."""

    def _freeze(iso_utc: str) -> datetime:
        instant = datetime.fromisoformat(iso_utc).replace(tzinfo=timezone.utc)
        monkeypatch.setattr(clock, "utcnow", lambda: instant)
        return instant

    return _freeze

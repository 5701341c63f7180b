"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Tenant & Salesman                                             ║
║                                                                              ║
║  Read-only for the reporting core: tenants and salesmen are created by      ║
║  the onboarding flow and the admin UI.                                       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import normalize_whatsapp_phone


class NumberGrouping(str, Enum):
    """Thousands separator convention used when rendering amounts"""
    WESTERN = "western"    # 1,234,567
    INDIAN = "indian"      # 12,34,567


class Tenant(BaseModel):
    """
    Customer organization.
    weekend_days: 0=Sunday .. 6=Saturday
    """
    model_config = ConfigDict(extra="ignore")  # Ignore MongoDB's _id field

    id: str
    company_name: str
    timezone: str = "UTC"
    weekend_days: List[int] = Field(default_factory=list)
    currency_symbol: Optional[str] = None
    currency_code: Optional[str] = None
    number_grouping: NumberGrouping = NumberGrouping.WESTERN
    notification_time: Optional[str] = None  # "HH:MM" tenant-local
    is_active: bool = True

    @field_validator("weekend_days", mode="before")
    @classmethod
    def _clean_weekend_days(cls, value):
        if value is None:
            return []
        return sorted({int(day) for day in value if 0 <= int(day) <= 6})

    @field_validator("timezone", mode="before")
    @classmethod
    def _default_timezone(cls, value):
        return value or "UTC"


class Salesman(BaseModel):
    """Field agent (is_admin=False) or tenant admin (is_admin=True)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    tenant_id: str
    name: str
    phone: Optional[str] = None
    is_active: bool = True
    is_admin: bool = False
    deleted_at: Optional[str] = None

    @property
    def dialable_phone(self) -> str:
        return normalize_whatsapp_phone(self.phone)

"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FSM Reports - Visit & DailyStats                                            ║
║                                                                              ║
║  RULES:                                                                      ║
║  - visit_type = personal | telephone (separate statistics buckets)           ║
║  - order_value absent = 0, never an error                                    ║
║  - deleted_at set = excluded from every aggregate                            ║
║  - total_revenue = personal_revenue + telephone_revenue                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator


class VisitChannel(str, Enum):
    PERSONAL = "personal"
    TELEPHONE = "telephone"


class Visit(BaseModel):
    """One sales activity record (immutable once aggregated)"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    tenant_id: str
    salesman_id: Optional[str] = None
    salesman_name: Optional[str] = None
    visit_type: Optional[str] = None
    order_value: float = 0.0
    created_at: str = ""
    plant: Optional[str] = None
    customer_name: Optional[str] = None
    customer_status: Optional[str] = None  # new | repeat
    potential: Optional[str] = None        # high | medium | low
    deleted_at: Optional[str] = None

    @field_validator("order_value", mode="before")
    @classmethod
    def _missing_revenue_is_zero(cls, value):
        if value in (None, ""):
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @property
    def channel(self) -> Optional[VisitChannel]:
        try:
            return VisitChannel(str(self.visit_type or "").strip().lower())
        except ValueError:
            return None

    @property
    def is_deleted(self) -> bool:
        return bool(self.deleted_at)


class DailyStats(BaseModel):
    """
    Per-salesman statistics over a report window (one day or a period).
    Derived on every run, never persisted.
    """
    salesman_id: Optional[str] = None
    name: str
    personal_visits: int = 0
    telephone_calls: int = 0
    personal_revenue: float = 0.0
    telephone_revenue: float = 0.0
    new_customers: int = 0
    repeat_customers: int = 0
    high_potential_visits: int = 0
    plant: str = "HQ"

    @property
    def total_revenue(self) -> float:
        return self.personal_revenue + self.telephone_revenue

    @property
    def total_activities(self) -> int:
        return self.personal_visits + self.telephone_calls

    @property
    def personal_average(self) -> Optional[float]:
        if self.personal_visits <= 0:
            return None
        return self.personal_revenue / self.personal_visits

    @property
    def telephone_average(self) -> Optional[float]:
        if self.telephone_calls <= 0:
            return None
        return self.telephone_revenue / self.telephone_calls

    def to_dict(self) -> dict:
        data = self.model_dump()
        data["total_revenue"] = self.total_revenue
        data["total_activities"] = self.total_activities
        return data

"""
FSM Reports - MongoDB access for the reporting pipeline

Collections:
- tenants, salesmen, visits, plants  (read-only, owned by the FSM app)
- report_send_log                     (owned here, unique per tenant/date/type)

The store is constructed with an explicit database handle so tests and
scripts can inject their own.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from config import parse_notification_time
from models.report import ReportType, SendLogEntry
from models.tenant import Salesman, Tenant
from models.visit import Visit

logger = logging.getLogger("report_store")

SEND_LOG_INDEX = "uniq_tenant_date_type"


def _iso(instant: datetime) -> str:
    return instant.astimezone(timezone.utc).isoformat()


def _window(start: datetime, end: datetime) -> dict:
    return {"$gte": _iso(start), "$lt": _iso(end)}


class MongoReportStore:

    def __init__(self, db):
        self.db = db
        self.send_log_indexed = False

    async def _ensure_send_log_index(self):
        await self.db.report_send_log.create_index(
            [("tenant_id", 1), ("report_date", 1), ("report_type", 1)],
            unique=True,
            name=SEND_LOG_INDEX,
        )
        self.send_log_indexed = True

    async def ensure_indexes(self):
        await self._ensure_send_log_index()
        await self.db.report_send_log.create_index("created_at")
        await self.db.visits.create_index([("tenant_id", 1), ("created_at", 1)])
        await self.db.salesmen.create_index([("tenant_id", 1), ("is_admin", 1)])
        await self.db.tenants.create_index("timezone")
        logger.info("[STORE] indexes ensured")

    # ---- Tenants ----

    async def list_active_tenants(
        self,
        timezone_name: Optional[str] = None,
        tenant_ids: Optional[Iterable[str]] = None,
        name_like: Optional[str] = None,
        notification_time: Optional[str] = None,
    ) -> List[Tenant]:
        query: dict = {"is_active": True}
        if timezone_name:
            query["timezone"] = timezone_name
        if tenant_ids:
            query["id"] = {"$in": list(tenant_ids)}
        if name_like:
            query["company_name"] = {"$regex": re.escape(name_like), "$options": "i"}

        docs = await self.db.tenants.find(query, {"_id": 0}).sort("company_name", 1).to_list(1000)
        tenants = []
        for doc in docs:
            try:
                tenants.append(Tenant.model_validate(doc))
            except ValidationError as e:
                # one bad row must not stop the other tenants
                logger.error(
                    f"[STORE] skipping malformed tenant {doc.get('id') or '?'}: "
                    f"{e.error_count()} validation error(s)"
                )

        if notification_time:
            # tenants without their own time fall under the default slot
            wanted = parse_notification_time(notification_time)
            tenants = [t for t in tenants if parse_notification_time(t.notification_time) == wanted]
        return tenants

    async def schedule_slots(self) -> List[Tuple[str, str]]:
        """Distinct (timezone, "HH:MM") pairs of active tenants"""
        docs = await self.db.tenants.find(
            {"is_active": True},
            {"_id": 0, "timezone": 1, "notification_time": 1},
        ).to_list(1000)
        slots = set()
        for doc in docs:
            hour, minute = parse_notification_time(doc.get("notification_time"))
            slots.add((doc.get("timezone") or "UTC", f"{hour:02d}:{minute:02d}"))
        return sorted(slots)

    # ---- Salesmen / plants ----

    async def list_salesmen(self, tenant_id: str, is_admin: Optional[bool] = None) -> List[Salesman]:
        query: dict = {"tenant_id": tenant_id, "is_active": True, "deleted_at": None}
        if is_admin is True:
            query["is_admin"] = True
        elif is_admin is False:
            query["is_admin"] = {"$ne": True}
        docs = await self.db.salesmen.find(query, {"_id": 0}).sort("name", 1).to_list(1000)
        return [Salesman.model_validate(doc) for doc in docs]

    async def plant_names(self, tenant_id: str) -> Dict[str, str]:
        docs = await self.db.plants.find(
            {"tenant_id": tenant_id, "deleted_at": None},
            {"_id": 0, "id": 1, "plant_name": 1},
        ).to_list(1000)
        return {str(doc["id"]): doc.get("plant_name") or "" for doc in docs if doc.get("id")}

    # ---- Visits ----

    async def count_visits(self, tenant_id: str, start: datetime, end: datetime) -> int:
        return await self.db.visits.count_documents({
            "tenant_id": tenant_id,
            "deleted_at": None,
            "created_at": _window(start, end),
        })

    async def list_visits(self, tenant_id: str, start: datetime, end: datetime) -> List[Visit]:
        docs = await self.db.visits.find(
            {
                "tenant_id": tenant_id,
                "deleted_at": None,
                "visit_type": {"$ne": None},
                "created_at": _window(start, end),
            },
            {"_id": 0},
        ).to_list(50000)
        return [Visit.model_validate(doc) for doc in docs]

    # ---- Send log ----

    async def insert_send_log(self, entry: SendLogEntry) -> None:
        """
        Raises pymongo.errors.DuplicateKeyError when already logged.

        Without the unique index an insert can never collide, so the index
        is created first when missing. Its failure propagates and the gate
        fails closed.
        """
        if not self.send_log_indexed:
            await self._ensure_send_log_index()
        await self.db.report_send_log.insert_one(entry.to_document())

    async def find_send_log(self, tenant_id: str, report_date: str,
                            report_type: ReportType = ReportType.DAILY) -> Optional[dict]:
        return await self.db.report_send_log.find_one(
            {"tenant_id": tenant_id, "report_date": report_date, "report_type": report_type.value},
            {"_id": 0},
        )

    async def list_send_log(self, tenant_id: Optional[str] = None, limit: int = 50) -> List[dict]:
        query = {"tenant_id": tenant_id} if tenant_id else {}
        return await self.db.report_send_log.find(query, {"_id": 0}).sort(
            "created_at", -1
        ).to_list(limit)

"""
FSM Reports - Operator endpoints
- Send log history
- Manual period reports (weekly / monthly / custom range)
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from routes.cron import get_report_runner, verify_cron_caller
from services.report_runner import ReportRunner, TenantEnumerationError

router = APIRouter(prefix="/reports", tags=["Reports"], dependencies=[Depends(verify_cron_caller)])
logger = logging.getLogger("reports")


class PeriodReportRequest(BaseModel):
    start_date: date
    end_date: date
    tenant_ids: Optional[List[str]] = None
    name_like: Optional[str] = None
    recipients: Optional[List[str]] = Field(None, description="Send every message to these numbers instead")
    dry_run: bool = False


@router.get("/send-log")
async def send_log(
    tenant_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500, description="Number of entries to return"),
    runner: ReportRunner = Depends(get_report_runner),
):
    """Most recent send log entries, newest first"""
    entries = await runner.store.list_send_log(tenant_id=tenant_id, limit=limit)
    return {"entries": entries, "count": len(entries)}


@router.post("/period")
async def period_report(
    body: PeriodReportRequest,
    runner: ReportRunner = Depends(get_report_runner),
):
    """
    Period report for a date range, local dates inclusive.

    Not gated: no send lock, no weekend / no-visit checks. Use dry_run
    to preview, recipients to route everything to a test number.
    """
    if body.start_date > body.end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")

    logger.info(
        f"[REPORTS] period {body.start_date}..{body.end_date} "
        f"tenants={body.tenant_ids or body.name_like or '*'} dry_run={body.dry_run}"
    )
    try:
        result = await runner.run_period(
            start=body.start_date,
            end=body.end_date,
            tenant_ids=body.tenant_ids,
            name_like=body.name_like,
            recipients=body.recipients,
            dry_run=body.dry_run,
        )
    except TenantEnumerationError as e:
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    if body.dry_run:
        response = result.to_dry_run_response()
    else:
        response = result.to_response()
    response["period"] = {"start": body.start_date.isoformat(), "end": body.end_date.isoformat()}
    return response

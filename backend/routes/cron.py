"""
FSM Reports - Cron endpoints
- Daily summaries (called by the platform cron, one call per timezone slot)
- Dry run (same pipeline, nothing sent, nothing locked)
- Manual trigger
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

import config
from services.report_runner import ReportRunner, TenantEnumerationError

router = APIRouter(tags=["Cron"])
logger = logging.getLogger("cron")


def get_report_runner(request: Request) -> ReportRunner:
    runner = getattr(request.app.state, "runner", None)
    if runner is None:
        raise HTTPException(status_code=503, detail="Report runner not initialised")
    return runner


async def verify_cron_caller(
    x_cron_secret: Optional[str] = Header(None),
    x_appengine_cron: Optional[str] = Header(None),
):
    """
    Open when CRON_SECRET is unset. Otherwise the caller must send the
    secret in X-Cron-Secret, or be the App Engine cron service.
    """
    if not config.CRON_SECRET:
        return
    if x_appengine_cron == "true" or x_cron_secret == config.CRON_SECRET:
        return
    logger.warning("[CRON] rejected call without a valid cron secret")
    raise HTTPException(status_code=403, detail="Forbidden")


def _fatal(e: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": str(e)})


@router.get("/cron/send-daily-summaries", dependencies=[Depends(verify_cron_caller)])
async def send_daily_summaries(
    tz: Optional[str] = Query(None, description="Only tenants on this exact IANA timezone"),
    force: bool = Query(False, description="Bypass the send lock (weekend / no-visit checks still apply)"),
    runner: ReportRunner = Depends(get_report_runner),
):
    """
    Runs the daily pipeline for every eligible tenant and returns the tally.
    Skips (weekend, no visits, already sent, log unavailable) are part of a
    successful response; only a tenant listing failure is a 500.
    """
    logger.info(f"[CRON] send-daily-summaries tz={tz or '*'} force={force}")
    try:
        result = await runner.run_daily(tz=tz, force=force)
    except TenantEnumerationError as e:
        return _fatal(e)
    return result.to_response()


@router.post("/test/dry-run", dependencies=[Depends(verify_cron_caller)])
async def dry_run(
    tz: Optional[str] = Query(None),
    runner: ReportRunner = Depends(get_report_runner),
):
    """
    Same pipeline with the send lock read (never written) and every message
    logged and returned as a preview instead of being sent.
    """
    logger.info(f"[CRON] dry run tz={tz or '*'}")
    try:
        result = await runner.run_daily(tz=tz, dry_run=True)
    except TenantEnumerationError as e:
        return _fatal(e)
    return result.to_dry_run_response()


@router.post("/trigger-now", dependencies=[Depends(verify_cron_caller)])
async def trigger_now(
    tz: Optional[str] = Query(None),
    force: bool = Query(False),
    runner: ReportRunner = Depends(get_report_runner),
):
    """Manual trigger, same behaviour and response as the cron endpoint"""
    logger.info(f"[CRON] manual trigger tz={tz or '*'} force={force}")
    try:
        result = await runner.run_daily(tz=tz, force=force)
    except TenantEnumerationError as e:
        return _fatal(e)
    return {**result.to_response(), "message": "Daily summaries triggered manually"}

"""
Scheduler for the automatic FSM report runs
- One daily summary job per (timezone, notification time) slot of active tenants
- Slots refreshed every hour so new tenants / changed times are picked up
"""

import logging

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import parse_notification_time

logger = logging.getLogger("scheduler")

JOB_PREFIX = "daily_summary:"


class TaskScheduler:
    """Scheduled jobs manager"""

    def __init__(self, runner, store):
        self.runner = runner
        self.store = store
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    async def start(self):
        """Registers the tenant slots, the refresh job, and starts the scheduler"""
        await self.schedule_tenant_jobs()

        self.scheduler.add_job(
            self.schedule_tenant_jobs,
            CronTrigger(minute=5),
            id="refresh_tenant_jobs",
            name="Refresh tenant schedule",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info("[SCHEDULER] started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("[SCHEDULER] stopped")

    async def schedule_tenant_jobs(self):
        """
        (Re)registers one cron job per slot, each firing at the tenant-local
        time. Jobs for slots that no longer exist are removed.
        """
        try:
            slots = await self.store.schedule_slots()
        except Exception as e:
            logger.error(f"[SCHEDULER] could not load tenant slots: {e}")
            return

        wanted = set()
        for tz_name, notification_time in slots:
            try:
                tz = pytz.timezone(tz_name)
            except pytz.UnknownTimeZoneError:
                logger.warning(f"[SCHEDULER] unknown timezone {tz_name!r}, slot {notification_time} not scheduled")
                continue

            hour, minute = parse_notification_time(notification_time)
            job_id = f"{JOB_PREFIX}{tz_name}:{hour:02d}:{minute:02d}"
            wanted.add(job_id)
            self.scheduler.add_job(
                self.send_daily_summaries,
                CronTrigger(hour=hour, minute=minute, timezone=tz),
                args=[tz_name, f"{hour:02d}:{minute:02d}"],
                id=job_id,
                name=f"Daily summaries {tz_name} {hour:02d}:{minute:02d}",
                replace_existing=True
            )

        for job in self.scheduler.get_jobs():
            if job.id.startswith(JOB_PREFIX) and job.id not in wanted:
                job.remove()
                logger.info(f"[SCHEDULER] removed stale job {job.id}")

        logger.info(f"[SCHEDULER] {len(wanted)} daily summary slot(s) scheduled")

    # ==================== SCHEDULED TASKS ====================

    async def send_daily_summaries(self, tz_name: str, notification_time: str):
        try:
            result = await self.runner.run_daily(tz=tz_name, notification_time=notification_time)
            logger.info(
                f"[SCHEDULER] {tz_name} {notification_time}: "
                f"sent={result.sent} failed={result.failed} tenants={result.tenants}"
            )
        except Exception as e:
            logger.error(f"[SCHEDULER] daily summaries {tz_name} {notification_time} failed: {e}")

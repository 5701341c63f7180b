from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
import logging

import config
from config import client, db
from routes.cron import router as cron_router
from routes.reports import router as reports_router
from scheduler_service import TaskScheduler
from services.report_runner import ReportRunner
from services.report_store import MongoReportStore
from services.whatsapp_dispatcher import WhatsAppDispatcher

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title=config.SERVICE_NAME, version=config.SERVICE_VERSION)

app.include_router(cron_router)
app.include_router(reports_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {
        "status": "ok",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "features": [
            "Tenant-local dates and weekends",
            "At most one daily summary per tenant per day",
            "Tenant currency formatting",
            "Branch-aware salesman reports",
            "Admin team reports with top performers and alerts",
            "Period reports",
        ],
        "scheduler": config.ENABLE_SCHEDULER,
    }


@app.on_event("startup")
async def startup():
    store = MongoReportStore(db)
    try:
        await store.ensure_indexes()
    except Exception as e:
        # the store retries the unique index before every lock insert
        logger.error(f"[STARTUP] could not ensure indexes, daily sends fail closed until it exists: {e}")

    dispatcher = WhatsAppDispatcher.from_config()
    app.state.dispatcher = dispatcher
    app.state.runner = ReportRunner(store, dispatcher)

    if config.ENABLE_SCHEDULER:
        app.state.scheduler = TaskScheduler(app.state.runner, store)
        await app.state.scheduler.start()
    logger.info(f"[STARTUP] {config.SERVICE_NAME} v{config.SERVICE_VERSION} ready")


@app.on_event("shutdown")
async def shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler:
        scheduler.stop()
    dispatcher = getattr(app.state, "dispatcher", None)
    if dispatcher:
        await dispatcher.aclose()
    client.close()

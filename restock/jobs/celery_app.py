"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
sync_hours = int(os.environ.get("SYNC_INTERVAL_HOURS", "6"))

celery_app = Celery("restock", broker=broker_url, backend=backend_url, include=["restock.jobs.sync"])
celery_app.conf.timezone = "UTC"
celery_app.conf.beat_schedule = {
    "catalog-sync": {
        "task": "restock.jobs.sync.run_sync",
        "schedule": crontab(minute=0, hour=f"*/{sync_hours}"),
    },
    "order-history-prune": {
        "task": "restock.jobs.sync.run_prune",
        "schedule": crontab(minute=30, hour=3),
    },
}


@celery_app.task(name="restock.jobs.sync.run_sync")
def run_sync_task():  # pragma: no cover - executed by worker
    import asyncio

    from restock.jobs.sync import run_sync

    return asyncio.run(run_sync())


@celery_app.task(name="restock.jobs.sync.run_prune")
def run_prune_task():  # pragma: no cover - executed by worker
    from restock.jobs.sync import run_prune

    return run_prune()

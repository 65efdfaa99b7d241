"""Storage lifecycle Celery tasks."""

import time

from app.celery_app import celery_app
from app.db import SessionLocal
from app.logging import get_logger
from app.metrics import observe_job
from app.services.cost_monitoring import cost_monitor
from app.services.file_lifecycle import file_lifecycle

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.storage.run_lifecycle_sweep")
def run_lifecycle_sweep():
    """Run one lifecycle sweep over all eligible files.

    Returns:
        Sweep counters on success, or ``{"error": message}`` when the run
        could not complete. Files not reached are picked up by the next run.
    """
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = file_lifecycle.run_sweep(session)
        if result.cancelled:
            status = "cancelled"
        return result.model_dump()
    except Exception as exc:
        status = "error"
        session.rollback()
        logger.exception("file_lifecycle_sweep_failed")
        return {"error": str(exc)}
    finally:
        session.close()
        observe_job("file_lifecycle_sweep", status, time.monotonic() - start)


@celery_app.task(name="app.tasks.storage.check_user_storage_costs")
def check_user_storage_costs(user_id: str):
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = cost_monitor.check_user_costs(session, user_id)
        return result.model_dump(mode="json")
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("storage_cost_check_failed user_id=%s", user_id)
        raise
    finally:
        session.close()
        observe_job("storage_cost_check", status, time.monotonic() - start)

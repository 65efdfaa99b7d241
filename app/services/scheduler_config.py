import logging
import os
from datetime import timedelta

from app.config import settings

logger = logging.getLogger(__name__)

MIN_SWEEP_INTERVAL_SECONDS = 3600


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_int(name: str) -> int | None:
    raw = _env_value(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("scheduler_env_invalid name=%s value=%s", name, raw)
        return None


def get_celery_config() -> dict:
    broker = (
        settings.celery_broker_url
        or _env_value("REDIS_URL")
        or "redis://localhost:6379/0"
    )
    backend = (
        settings.celery_result_backend
        or _env_value("REDIS_URL")
        or "redis://localhost:6379/1"
    )
    config: dict[str, object] = {
        "broker_url": broker,
        "result_backend": backend,
        "timezone": settings.celery_timezone or "UTC",
        "task_acks_late": True,
        "worker_prefetch_multiplier": 1,
    }
    beat_max_loop_interval = _env_int("CELERY_BEAT_MAX_LOOP_INTERVAL")
    config["beat_max_loop_interval"] = (
        beat_max_loop_interval if beat_max_loop_interval is not None else 5
    )
    return config


def build_beat_schedule() -> dict:
    schedule: dict[str, dict] = {}
    if settings.lifecycle_sweep_enabled:
        interval_seconds = max(
            settings.lifecycle_sweep_interval_seconds, MIN_SWEEP_INTERVAL_SECONDS
        )
        schedule["file_lifecycle_sweep"] = {
            "task": "app.tasks.storage.run_lifecycle_sweep",
            "schedule": timedelta(seconds=interval_seconds),
        }
    else:
        logger.info("file_lifecycle_sweep_disabled")
    return schedule

from datetime import timedelta

from app.services import scheduler_config


def _with_settings(monkeypatch, **overrides):
    monkeypatch.setattr(
        scheduler_config, "settings", scheduler_config.settings.model_copy(update=overrides)
    )


def test_lifecycle_sweep_is_scheduled_daily_by_default(monkeypatch):
    _with_settings(monkeypatch, lifecycle_sweep_enabled=True, lifecycle_sweep_interval_seconds=86400)

    schedule = scheduler_config.build_beat_schedule()

    assert schedule["file_lifecycle_sweep"] == {
        "task": "app.tasks.storage.run_lifecycle_sweep",
        "schedule": timedelta(days=1),
    }


def test_sweep_interval_has_a_floor(monkeypatch):
    _with_settings(monkeypatch, lifecycle_sweep_enabled=True, lifecycle_sweep_interval_seconds=60)

    schedule = scheduler_config.build_beat_schedule()

    assert schedule["file_lifecycle_sweep"]["schedule"] == timedelta(hours=1)


def test_disabled_sweep_is_not_scheduled(monkeypatch):
    _with_settings(monkeypatch, lifecycle_sweep_enabled=False)

    assert scheduler_config.build_beat_schedule() == {}


def test_celery_config_falls_back_to_redis_url(monkeypatch):
    _with_settings(monkeypatch, celery_broker_url=None, celery_result_backend=None)
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
    monkeypatch.delenv("CELERY_BEAT_MAX_LOOP_INTERVAL", raising=False)

    config = scheduler_config.get_celery_config()

    assert config["broker_url"] == "redis://cache:6379/2"
    assert config["result_backend"] == "redis://cache:6379/2"
    assert config["beat_max_loop_interval"] == 5


def test_invalid_env_int_is_ignored(monkeypatch):
    monkeypatch.setenv("CELERY_BEAT_MAX_LOOP_INTERVAL", "soon")

    assert scheduler_config.get_celery_config()["beat_max_loop_interval"] == 5

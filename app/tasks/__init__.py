from app.tasks.storage import check_user_storage_costs, run_lifecycle_sweep

__all__ = [
    "run_lifecycle_sweep",
    "check_user_storage_costs",
]

"""Storage analytics, cost check and lifecycle trigger endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.storage import (
    CostCheckResponse,
    LifecycleRunAccepted,
    StorageAnalyticsResponse,
)
from app.services.common import parse_uuid_or_404
from app.services.cost_monitoring import cost_monitor
from app.services.file_lifecycle import file_lifecycle
from app.tasks.storage import run_lifecycle_sweep

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/users/{user_id}/analytics", response_model=StorageAnalyticsResponse)
def get_user_storage_analytics(user_id: str, db: Session = Depends(get_db)):
    user_uuid = parse_uuid_or_404(user_id, "User not found")
    return file_lifecycle.get_user_storage_analytics(db, user_uuid)


@router.get("/users/{user_id}/costs", response_model=CostCheckResponse)
def check_user_storage_costs(user_id: str, db: Session = Depends(get_db)):
    user_uuid = parse_uuid_or_404(user_id, "User not found")
    return cost_monitor.check_user_costs(db, user_uuid)


@router.post(
    "/lifecycle/run",
    response_model=LifecycleRunAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def trigger_lifecycle_sweep():
    result = run_lifecycle_sweep.delay()
    return LifecycleRunAccepted(task_id=str(result.id))

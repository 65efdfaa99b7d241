"""Per-user storage cost checks against the plan's monthly ceiling."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.metrics import COST_ALERTS
from app.schemas.storage import CostAlertRecord, CostCheckResponse, CostStatus, StorageCosts
from app.services import activity_log
from app.services.common import coerce_uuid
from app.services.file_lifecycle import FileLifecycleManager, file_lifecycle
from app.services.storage_costs import classify_cost_status, cost_percentage
from app.services.storage_policies import coerce_plan, cost_limit_for

logger = logging.getLogger(__name__)


class CostMonitor:
    def __init__(self, lifecycle: FileLifecycleManager | None = None) -> None:
        self.lifecycle = lifecycle or file_lifecycle

    def check_user_costs(
        self, db: Session, user_id, now: datetime | None = None
    ) -> CostCheckResponse:
        """Compare current monthly storage cost with the plan limit.

        A warning or critical result also writes a ``cost_alert`` activity
        entry; the check itself is read-only otherwise.
        """
        analytics = self.lifecycle.get_user_storage_analytics(db, user_id)
        plan = coerce_plan(analytics.quota.plan)
        limit = cost_limit_for(plan)
        percentage = cost_percentage(analytics.costs.total, limit)
        status = classify_cost_status(percentage)

        if status != CostStatus.ok:
            self.send_cost_alert(
                db,
                user_id=user_id,
                severity=status,
                costs=analytics.costs,
                limit=limit,
                percentage=percentage,
                now=now,
            )

        return CostCheckResponse(
            costs=analytics.costs,
            limit=limit,
            percentage=percentage,
            status=status,
        )

    def send_cost_alert(
        self,
        db: Session,
        *,
        user_id,
        severity: CostStatus,
        costs: StorageCosts,
        limit: Decimal,
        percentage: Decimal,
        now: datetime | None = None,
    ) -> CostAlertRecord:
        record = CostAlertRecord(
            user_id=coerce_uuid(user_id),
            severity=severity,
            current_cost=costs.total,
            cost_limit=limit,
            percentage=percentage,
            alert_time=now or datetime.now(UTC),
        )
        activity_log.record_activity(
            db,
            user_id=record.user_id,
            action=activity_log.ACTION_COST_ALERT,
            details=record.model_dump(exclude={"user_id"}),
        )
        COST_ALERTS.labels(severity=severity.value).inc()
        logger.warning(
            "storage_cost_alert user_id=%s severity=%s cost=%s limit=%s percentage=%.1f",
            record.user_id,
            severity.value,
            costs.total,
            limit,
            percentage,
        )
        return record


cost_monitor = CostMonitor()

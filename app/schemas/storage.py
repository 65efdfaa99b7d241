from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from app.services.common import round_gb, round_money


class CostStatus(enum.Enum):
    ok = "ok"
    warning = "warning"
    critical = "critical"


class TierUsage(BaseModel):
    count: int = 0
    size_gb: Decimal = Decimal("0")

    @field_serializer("size_gb")
    def _serialize_size(self, value: Decimal) -> Decimal:
        return round_gb(value)


class StorageAnalyticsSnapshot(BaseModel):
    hot: TierUsage = Field(default_factory=TierUsage)
    warm: TierUsage = Field(default_factory=TierUsage)
    archive: TierUsage = Field(default_factory=TierUsage)
    favorites: TierUsage = Field(default_factory=TierUsage)
    total: TierUsage = Field(default_factory=TierUsage)


class StorageCosts(BaseModel):
    hot: Decimal
    warm: Decimal
    archive: Decimal
    total: Decimal
    currency: str
    period: str = "monthly"

    @field_serializer("hot", "warm", "archive", "total")
    def _serialize_money(self, value: Decimal) -> Decimal:
        return round_money(value)


class OptimizationSuggestion(BaseModel):
    type: str
    potential_savings: Decimal
    description: str

    @field_serializer("potential_savings")
    def _serialize_savings(self, value: Decimal) -> Decimal:
        return round_money(value)


class StorageQuota(BaseModel):
    plan: str
    quota_gb: Decimal
    used_gb: Decimal
    utilization_percent: Decimal
    near_limit: bool
    over_limit: bool

    @field_serializer("used_gb")
    def _serialize_used(self, value: Decimal) -> Decimal:
        return round_gb(value)

    @field_serializer("utilization_percent")
    def _serialize_utilization(self, value: Decimal) -> Decimal:
        return round_money(value)


class StorageAnalyticsResponse(BaseModel):
    analytics: StorageAnalyticsSnapshot
    costs: StorageCosts
    suggestions: list[OptimizationSuggestion]
    total_files: int
    quota: StorageQuota


class CostCheckResponse(BaseModel):
    costs: StorageCosts
    limit: Decimal
    percentage: Decimal
    status: CostStatus

    @field_serializer("percentage")
    def _serialize_percentage(self, value: Decimal) -> Decimal:
        return round_money(value)


class CostAlertRecord(BaseModel):
    user_id: UUID
    severity: CostStatus
    current_cost: Decimal
    cost_limit: Decimal
    percentage: Decimal
    alert_time: datetime


class LifecycleSweepResponse(BaseModel):
    processed: int = 0
    transitioned: int = 0
    unchanged: int = 0
    conflicts: int = 0
    failed: int = 0
    deleted: int = 0
    cleanup_failed: int = 0
    users_refreshed: int = 0
    cancelled: bool = False


class LifecycleRunAccepted(BaseModel):
    task_id: str
    status: str = "queued"

"""Plan lifecycle policies, storage tiers and cost rates.

Everything here is immutable configuration: callers receive these values
explicitly instead of reading module globals inside the lifecycle logic.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from app.config import settings
from app.models.media_file import FileStatus
from app.models.subscription import SubscriptionPlan, SubscriptionStatus, UserSubscription
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


class PlanName(enum.Enum):
    freemium = "freemium"
    creator = "creator"
    pro = "pro"
    studio = "studio"


class StorageTier(enum.Enum):
    hot = "hot"
    warm = "warm"
    archive = "archive"
    cold = "cold"


class CompressionLevel(enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"
    none = "none"


class PolicyLookupError(LookupError):
    """Raised when a user has no resolvable subscription plan."""


@dataclass(frozen=True)
class LifecyclePolicy:
    archive_after_days: int
    delete_after_days: int | None
    storage_quota_gb: int
    compression_level: CompressionLevel

    def snapshot(self) -> dict:
        data = asdict(self)
        data["compression_level"] = self.compression_level.value
        return data


@dataclass(frozen=True)
class TransitionThresholds:
    """Plan-independent day thresholds used by the transition function."""

    warm_after_days: int = 30
    favorite_archive_after_days: int = 365


@dataclass(frozen=True)
class CostRateTable:
    hot: Decimal
    warm: Decimal
    archive: Decimal
    cold: Decimal
    currency: str = "THB"

    def rate_for(self, tier: StorageTier) -> Decimal:
        return getattr(self, tier.value)


LIFECYCLE_POLICIES: dict[PlanName, LifecyclePolicy] = {
    PlanName.freemium: LifecyclePolicy(
        archive_after_days=30,
        delete_after_days=90,
        storage_quota_gb=1,
        compression_level=CompressionLevel.high,
    ),
    PlanName.creator: LifecyclePolicy(
        archive_after_days=90,
        delete_after_days=365,
        storage_quota_gb=50,
        compression_level=CompressionLevel.medium,
    ),
    PlanName.pro: LifecyclePolicy(
        archive_after_days=180,
        delete_after_days=730,
        storage_quota_gb=500,
        compression_level=CompressionLevel.low,
    ),
    PlanName.studio: LifecyclePolicy(
        archive_after_days=365,
        delete_after_days=None,
        storage_quota_gb=2000,
        compression_level=CompressionLevel.none,
    ),
}

# Monthly storage cost ceiling per plan, in the rate table currency.
PLAN_COST_LIMITS: dict[PlanName, Decimal] = {
    PlanName.freemium: Decimal("50"),
    PlanName.creator: Decimal("200"),
    PlanName.pro: Decimal("800"),
    PlanName.studio: Decimal("3000"),
}

# Most restrictive plan; used whenever a plan cannot be resolved.
FALLBACK_PLAN = PlanName.freemium

DEFAULT_COST_RATES = CostRateTable(
    hot=Decimal("3.60"),
    warm=Decimal("2.16"),
    archive=Decimal("0.72"),
    cold=Decimal("0.36"),
)

# favorite_warm has no tier of its own and is billed as hot.
TIER_BY_STATUS: dict[FileStatus, StorageTier] = {
    FileStatus.uploaded: StorageTier.hot,
    FileStatus.ready: StorageTier.hot,
    FileStatus.warm_storage: StorageTier.warm,
    FileStatus.archived: StorageTier.archive,
    FileStatus.favorite_archive: StorageTier.archive,
    FileStatus.favorite_warm: StorageTier.hot,
    FileStatus.scheduled_deletion: StorageTier.hot,
    FileStatus.deleted: StorageTier.hot,
}

COMPRESSED_STATUSES = frozenset(
    {FileStatus.warm_storage, FileStatus.archived, FileStatus.favorite_archive}
)


def tier_of(status: FileStatus) -> StorageTier:
    return TIER_BY_STATUS[status]


def coerce_plan(value: str | PlanName | None) -> PlanName:
    """Map a stored plan name to a PlanName, raising PolicyLookupError if unknown."""
    if isinstance(value, PlanName):
        return value
    if not value:
        raise PolicyLookupError("Plan name is empty")
    try:
        return PlanName(str(value).strip().lower())
    except ValueError as exc:
        raise PolicyLookupError(f"Unknown plan: {value}") from exc


def resolve_policy(plan: PlanName) -> LifecyclePolicy:
    return LIFECYCLE_POLICIES[plan]


def cost_limit_for(plan: PlanName) -> Decimal:
    return PLAN_COST_LIMITS[plan]


def default_thresholds() -> TransitionThresholds:
    return TransitionThresholds(
        warm_after_days=settings.lifecycle_warm_after_days,
        favorite_archive_after_days=settings.lifecycle_favorite_archive_after_days,
    )


def default_cost_rates() -> CostRateTable:
    return CostRateTable(
        hot=Decimal(settings.storage_rate_hot),
        warm=Decimal(settings.storage_rate_warm),
        archive=Decimal(settings.storage_rate_archive),
        cold=Decimal(settings.storage_rate_cold),
        currency=settings.storage_cost_currency,
    )


def get_plan_for_user(db: Session, user_id) -> PlanName:
    """Return the plan of the user's active subscription.

    Raises:
        PolicyLookupError: no active subscription, or its plan is not in the catalog.
    """
    row = (
        db.query(SubscriptionPlan.name)
        .join(UserSubscription, UserSubscription.plan_id == SubscriptionPlan.id)
        .filter(UserSubscription.user_id == coerce_uuid(user_id))
        .filter(UserSubscription.status == SubscriptionStatus.active)
        .order_by(UserSubscription.created_at.desc())
        .first()
    )
    if row is None:
        raise PolicyLookupError(f"No active subscription for user {user_id}")
    return coerce_plan(row[0])


def resolve_user_plan(db: Session, user_id) -> PlanName:
    """Like get_plan_for_user, but falls back to the most restrictive plan."""
    try:
        return get_plan_for_user(db, user_id)
    except PolicyLookupError as exc:
        logger.warning(
            "storage_plan_fallback user_id=%s plan=%s reason=%s",
            user_id,
            FALLBACK_PLAN.value,
            exc,
        )
        return FALLBACK_PLAN

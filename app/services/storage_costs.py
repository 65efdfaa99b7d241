"""Storage usage aggregation, cost calculation and optimization advice.

All functions here are pure: they take file rows (or a snapshot) plus an
explicit rate table and never touch the database.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from app.models.media_file import FileStatus, MediaFile
from app.schemas.storage import (
    CostStatus,
    OptimizationSuggestion,
    StorageAnalyticsSnapshot,
    StorageCosts,
    StorageQuota,
    TierUsage,
)
from app.services.common import bytes_to_gb
from app.services.storage_policies import (
    CostRateTable,
    LifecyclePolicy,
    PlanName,
    StorageTier,
    tier_of,
)

BILLED_TIERS = (StorageTier.hot, StorageTier.warm, StorageTier.archive)

HOT_ARCHIVE_SUGGESTION_GB = Decimal("10")
CLEANUP_SUGGESTION_MIN_FILES = 1000
CLEANUP_SUGGESTION_FAVORITE_RATIO = Decimal("0.1")
AGGRESSIVE_ARCHIVE_MIN_WARM_GB = Decimal("5")

WARNING_PERCENT = Decimal("75")
CRITICAL_PERCENT = Decimal("90")
QUOTA_NEAR_LIMIT_PERCENT = Decimal("80")


def _add(usage: TierUsage, size_gb: Decimal) -> None:
    usage.count += 1
    usage.size_gb += size_gb


def calculate_storage_analytics(files: Iterable[MediaFile]) -> StorageAnalyticsSnapshot:
    snapshot = StorageAnalyticsSnapshot()
    for file in files:
        if file.status == FileStatus.deleted:
            continue
        size_gb = bytes_to_gb(file.file_size)
        _add(snapshot.total, size_gb)
        if file.is_favorite:
            _add(snapshot.favorites, size_gb)
        tier = tier_of(file.status)
        # cold is never assigned by a transition
        if tier in BILLED_TIERS:
            _add(getattr(snapshot, tier.value), size_gb)
    return snapshot


def tier_cost(size_gb: Decimal, tier: StorageTier, rates: CostRateTable) -> Decimal:
    return max(size_gb, Decimal("0")) * rates.rate_for(tier)


def calculate_storage_costs(
    snapshot: StorageAnalyticsSnapshot, rates: CostRateTable
) -> StorageCosts:
    costs = {
        tier.value: tier_cost(getattr(snapshot, tier.value).size_gb, tier, rates)
        for tier in BILLED_TIERS
    }
    return StorageCosts(
        **costs,
        total=sum(costs.values(), Decimal("0")),
        currency=rates.currency,
    )


def generate_optimization_suggestions(
    snapshot: StorageAnalyticsSnapshot, rates: CostRateTable
) -> list[OptimizationSuggestion]:
    suggestions: list[OptimizationSuggestion] = []
    hot_gb = snapshot.hot.size_gb
    warm_gb = snapshot.warm.size_gb

    if hot_gb > HOT_ARCHIVE_SUGGESTION_GB:
        suggestions.append(
            OptimizationSuggestion(
                type="archive_old_files",
                potential_savings=hot_gb * Decimal("0.5") * (rates.hot - rates.archive),
                description="Archive files older than 30 days to reduce costs by 75%",
            )
        )

    total_count = snapshot.total.count
    if (
        total_count > CLEANUP_SUGGESTION_MIN_FILES
        and Decimal(snapshot.favorites.count) / Decimal(total_count)
        < CLEANUP_SUGGESTION_FAVORITE_RATIO
    ):
        suggestions.append(
            OptimizationSuggestion(
                type="cleanup_unused",
                potential_savings=snapshot.total.size_gb * Decimal("0.3") * rates.hot,
                description="Clean up unused files to free up space and reduce costs",
            )
        )

    if warm_gb > snapshot.archive.size_gb and warm_gb > AGGRESSIVE_ARCHIVE_MIN_WARM_GB:
        suggestions.append(
            OptimizationSuggestion(
                type="aggressive_archiving",
                potential_savings=warm_gb * (rates.warm - rates.archive),
                description="Move warm storage files to archive for additional savings",
            )
        )

    return suggestions


def cost_percentage(cost: Decimal, limit: Decimal) -> Decimal:
    if limit <= 0:
        # No budget at all: any spend is over the ceiling.
        return Decimal("100") if cost > 0 else Decimal("0")
    return cost / limit * Decimal("100")


def classify_cost_status(percentage: Decimal) -> CostStatus:
    if percentage >= CRITICAL_PERCENT:
        return CostStatus.critical
    if percentage >= WARNING_PERCENT:
        return CostStatus.warning
    return CostStatus.ok


def storage_quota(
    snapshot: StorageAnalyticsSnapshot, plan: PlanName, policy: LifecyclePolicy
) -> StorageQuota:
    quota_gb = Decimal(policy.storage_quota_gb)
    used_gb = snapshot.total.size_gb
    utilization = used_gb / quota_gb * Decimal("100") if quota_gb > 0 else Decimal("0")
    return StorageQuota(
        plan=plan.value,
        quota_gb=quota_gb,
        used_gb=used_gb,
        utilization_percent=utilization,
        near_limit=utilization > QUOTA_NEAR_LIMIT_PERCENT,
        over_limit=quota_gb > 0 and used_gb >= quota_gb,
    )

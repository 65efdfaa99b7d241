import uuid
from decimal import Decimal

import pytest

from app.models.media_file import FileStatus
from app.models.subscription import SubscriptionStatus
from app.services import storage_policies
from app.services.storage_policies import (
    FALLBACK_PLAN,
    CompressionLevel,
    PlanName,
    PolicyLookupError,
    StorageTier,
)


class TestPolicyCatalog:
    def test_every_plan_has_policy_and_cost_limit(self):
        for plan in PlanName:
            assert storage_policies.resolve_policy(plan) is not None
            assert storage_policies.cost_limit_for(plan) > 0

    def test_deletion_days_follow_archive_days(self):
        for plan in PlanName:
            policy = storage_policies.resolve_policy(plan)
            if policy.delete_after_days is not None:
                assert policy.delete_after_days > policy.archive_after_days

    def test_studio_never_deletes(self):
        policy = storage_policies.resolve_policy(PlanName.studio)
        assert policy.delete_after_days is None
        assert policy.compression_level == CompressionLevel.none

    def test_policy_snapshot_is_json_friendly(self):
        snapshot = storage_policies.resolve_policy(PlanName.freemium).snapshot()
        assert snapshot == {
            "archive_after_days": 30,
            "delete_after_days": 90,
            "storage_quota_gb": 1,
            "compression_level": "high",
        }

    def test_tier_of_covers_every_status(self):
        for status in FileStatus:
            assert isinstance(storage_policies.tier_of(status), StorageTier)
        assert storage_policies.tier_of(FileStatus.favorite_warm) == StorageTier.hot
        assert storage_policies.tier_of(FileStatus.warm_storage) == StorageTier.warm
        assert storage_policies.tier_of(FileStatus.favorite_archive) == StorageTier.archive

    def test_default_cost_rates(self):
        rates = storage_policies.default_cost_rates()
        assert rates.rate_for(StorageTier.hot) == Decimal("3.60")
        assert rates.rate_for(StorageTier.archive) == Decimal("0.72")
        assert rates.currency == "THB"


class TestCoercePlan:
    def test_accepts_mixed_case(self):
        assert storage_policies.coerce_plan(" Creator ") == PlanName.creator

    def test_unknown_plan_raises(self):
        with pytest.raises(PolicyLookupError):
            storage_policies.coerce_plan("enterprise")

    def test_empty_plan_raises(self):
        with pytest.raises(PolicyLookupError):
            storage_policies.coerce_plan(None)


class TestUserPlanResolution:
    def test_active_subscription_plan(self, db_session, subscribe):
        subscription = subscribe("pro")
        assert storage_policies.get_plan_for_user(db_session, subscription.user_id) == PlanName.pro

    def test_missing_subscription_raises(self, db_session, plans):
        with pytest.raises(PolicyLookupError):
            storage_policies.get_plan_for_user(db_session, uuid.uuid4())

    def test_cancelled_subscription_is_ignored(self, db_session, subscribe):
        subscription = subscribe("studio", status=SubscriptionStatus.cancelled)
        with pytest.raises(PolicyLookupError):
            storage_policies.get_plan_for_user(db_session, subscription.user_id)

    def test_resolve_user_plan_falls_back_to_most_restrictive(self, db_session, plans):
        assert storage_policies.resolve_user_plan(db_session, uuid.uuid4()) == FALLBACK_PLAN
        assert FALLBACK_PLAN == PlanName.freemium

"""Storage lifecycle for uploaded media files.

A sweep moves files between cost tiers according to their owner's plan,
physically removes files whose deletion grace period has elapsed and
refreshes the owners' storage usage. Every write is a compare-and-set on the
file's current status, so an interrupted or overlapping sweep can simply be
run again.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.db import SessionLocal
from app.metrics import (
    CLEANUP_DELETIONS,
    CLEANUP_FAILURES,
    FILE_TRANSITION_FAILURES,
    FILE_TRANSITIONS,
)
from app.models.media_file import FileStatus, MediaFile
from app.models.subscription import SubscriptionStatus, UserSubscription
from app.schemas.storage import LifecycleSweepResponse, StorageAnalyticsResponse
from app.services import activity_log
from app.services.common import as_utc, bytes_to_gb, coerce_uuid, round_gb
from app.services.object_storage import (
    ObjectStorageError,
    StorageService,
    get_media_storage,
    get_thumbnail_storage,
)
from app.services.storage_costs import (
    calculate_storage_analytics,
    calculate_storage_costs,
    generate_optimization_suggestions,
    storage_quota,
)
from app.services.storage_policies import (
    COMPRESSED_STATUSES,
    CostRateTable,
    LifecyclePolicy,
    TransitionThresholds,
    default_cost_rates,
    default_thresholds,
    resolve_policy,
    resolve_user_plan,
    tier_of,
)

logger = logging.getLogger(__name__)

SWEEP_STATUSES = (FileStatus.ready, FileStatus.uploaded)
DELETION_REASON = "lifecycle_policy"


class LifecycleOutcome(enum.Enum):
    unchanged = "unchanged"
    transitioned = "transitioned"
    conflict = "conflict"
    failed = "failed"
    skipped = "skipped"
    cancelled = "cancelled"


def file_age_days(anchor: datetime, now: datetime) -> int:
    """Whole days elapsed since the anchor; never negative."""
    return max((now - as_utc(anchor)).days, 0)


def determine_next_status(
    current: FileStatus,
    age_days: int,
    policy: LifecyclePolicy,
    is_favorite: bool,
    thresholds: TransitionThresholds = TransitionThresholds(),
) -> FileStatus:
    """Target status for a file; depends on nothing but the arguments."""
    if current == FileStatus.deleted:
        return FileStatus.deleted

    if is_favorite:
        # Favorites never enter the deletion path.
        if age_days >= thresholds.favorite_archive_after_days:
            return FileStatus.favorite_archive
        if age_days >= policy.archive_after_days:
            return FileStatus.favorite_warm
        return FileStatus.ready

    if current == FileStatus.scheduled_deletion:
        return FileStatus.scheduled_deletion
    if policy.delete_after_days is not None and age_days >= policy.delete_after_days:
        return FileStatus.scheduled_deletion
    if age_days >= policy.archive_after_days:
        return FileStatus.archived
    if age_days >= thresholds.warm_after_days:
        return FileStatus.warm_storage
    return FileStatus.ready


@dataclass
class _SweepControl:
    cancel_event: threading.Event | None = None
    deadline: float | None = None

    @classmethod
    def start(
        cls, cancel_event: threading.Event | None, deadline_seconds: int | None
    ) -> _SweepControl:
        deadline = time.monotonic() + deadline_seconds if deadline_seconds else None
        return cls(cancel_event=cancel_event, deadline=deadline)

    def should_stop(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline


@dataclass
class CleanupResult:
    deleted: int = 0
    failed: int = 0
    owner_ids: set[uuid.UUID] = field(default_factory=set)


class FileLifecycleManager:
    """Tier transitions, expired-file cleanup and per-user storage statistics."""

    def __init__(
        self,
        storage: StorageService | None = None,
        thumbnail_storage: StorageService | None = None,
        session_factory=None,
        thresholds: TransitionThresholds | None = None,
        rates: CostRateTable | None = None,
        grace_period_days: int | None = None,
        min_idle_hours: int | None = None,
    ) -> None:
        self.storage = storage
        self.thumbnail_storage = thumbnail_storage
        self.session_factory = session_factory or SessionLocal
        self.thresholds = thresholds or default_thresholds()
        self.rates = rates or default_cost_rates()
        self.grace_period_days = (
            grace_period_days
            if grace_period_days is not None
            else settings.lifecycle_grace_period_days
        )
        self.min_idle_hours = (
            min_idle_hours if min_idle_hours is not None else settings.lifecycle_min_idle_hours
        )

    def _storage_client(self) -> StorageService:
        if self.storage is None:
            self.storage = get_media_storage()
        return self.storage

    def _thumbnail_client(self) -> StorageService:
        if self.thumbnail_storage is None:
            self.thumbnail_storage = get_thumbnail_storage()
        return self.thumbnail_storage

    # -- queries -----------------------------------------------------------

    def eligible_files(self, db: Session, now: datetime) -> list[MediaFile]:
        cutoff = now - timedelta(hours=self.min_idle_hours)
        return (
            db.query(MediaFile)
            .filter(
                or_(
                    MediaFile.status.in_(SWEEP_STATUSES),
                    # a favorite marked during its grace period gets rescued
                    and_(
                        MediaFile.status == FileStatus.scheduled_deletion,
                        MediaFile.is_favorite.is_(True),
                    ),
                )
            )
            .filter(MediaFile.last_transition_at < cutoff)
            .all()
        )

    def expired_files(self, db: Session, now: datetime) -> list[MediaFile]:
        cutoff = now - timedelta(days=self.grace_period_days)
        return (
            db.query(MediaFile)
            .filter(MediaFile.status == FileStatus.scheduled_deletion)
            .filter(MediaFile.is_favorite.is_(False))
            .filter(MediaFile.last_transition_at < cutoff)
            .all()
        )

    def active_files(self, db: Session, user_id) -> list[MediaFile]:
        return (
            db.query(MediaFile)
            .filter(MediaFile.owner_id == coerce_uuid(user_id))
            .filter(MediaFile.status != FileStatus.deleted)
            .all()
        )

    # -- transition executor ----------------------------------------------

    def process_file(
        self,
        db: Session,
        file: MediaFile,
        policy: LifecyclePolicy,
        now: datetime | None = None,
    ) -> LifecycleOutcome:
        """Apply the transition function to one file and persist the result."""
        now = now or datetime.now(UTC)
        current = file.status
        age_days = file_age_days(file.last_transition_at, now)
        next_status = determine_next_status(
            current, age_days, policy, file.is_favorite, self.thresholds
        )
        if next_status == current:
            return LifecycleOutcome.unchanged

        file_id = file.id
        owner_id = file.owner_id
        filename = file.filename
        file_size = file.file_size

        metadata = dict(file.lifecycle_metadata or {})
        metadata.update(
            {
                "lifecycle_updated_at": now.isoformat(),
                "previous_status": current.value,
                "policy_snapshot": policy.snapshot(),
                "cost_tier": tier_of(next_status).value,
            }
        )
        if next_status in COMPRESSED_STATUSES:
            metadata["compression_applied"] = policy.compression_level.value
            metadata["original_size"] = file_size

        updated = (
            db.query(MediaFile)
            .filter(MediaFile.id == file_id)
            .filter(MediaFile.status == current)
            .update(
                {
                    MediaFile.status: next_status,
                    MediaFile.last_transition_at: now,
                    MediaFile.lifecycle_metadata: metadata,
                },
                synchronize_session=False,
            )
        )
        if not updated:
            db.rollback()
            logger.info(
                "file_lifecycle_conflict file_id=%s expected_status=%s",
                file_id,
                current.value,
            )
            return LifecycleOutcome.conflict
        db.commit()
        FILE_TRANSITIONS.labels(to_status=next_status.value).inc()

        activity_log.record_activity(
            db,
            user_id=owner_id,
            action=activity_log.ACTION_LIFECYCLE_CHANGE,
            resource_type="file",
            resource_id=file_id,
            details={
                "filename": filename,
                "old_status": current.value,
                "new_status": next_status.value,
                "file_age_days": age_days,
                "file_size_gb": bytes_to_gb(file_size),
            },
        )
        logger.info(
            "file_lifecycle_transition file_id=%s from=%s to=%s age_days=%d",
            file_id,
            current.value,
            next_status.value,
            age_days,
        )
        return LifecycleOutcome.transitioned

    def _process_file_guarded(
        self, db: Session, file: MediaFile, policy: LifecyclePolicy, now: datetime
    ) -> LifecycleOutcome:
        file_id = file.id
        try:
            return self.process_file(db, file, policy, now)
        except Exception as exc:
            db.rollback()
            FILE_TRANSITION_FAILURES.inc()
            logger.warning(
                "file_lifecycle_transition_failed file_id=%s error=%s", file_id, exc
            )
            return LifecycleOutcome.failed

    def _process_file_in_worker(
        self,
        file_id: uuid.UUID,
        policy: LifecyclePolicy,
        now: datetime,
        control: _SweepControl,
    ) -> LifecycleOutcome:
        if control.should_stop():
            return LifecycleOutcome.cancelled
        session = self.session_factory()
        try:
            file = session.get(MediaFile, file_id)
            if file is None:
                return LifecycleOutcome.skipped
            return self._process_file_guarded(session, file, policy, now)
        except SQLAlchemyError as exc:
            FILE_TRANSITION_FAILURES.inc()
            logger.warning(
                "file_lifecycle_transition_failed file_id=%s error=%s", file_id, exc
            )
            return LifecycleOutcome.failed
        finally:
            session.close()

    # -- batch driver --------------------------------------------------------

    def run_sweep(
        self,
        db: Session,
        *,
        now: datetime | None = None,
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
        deadline_seconds: int | None = None,
    ) -> LifecycleSweepResponse:
        """Run one full lifecycle pass: transitions, cleanup, statistics.

        With more than one worker each file is processed on a pool thread with
        its own session; otherwise files are processed inline on ``db``.
        Once cancelled or past the deadline no new file is started, and the
        cleanup and statistics phases are skipped; a stop signal that arrives
        after every file was processed does not cancel the run. A failing
        cleanup phase is counted in ``cleanup_failed`` and statistics are still
        refreshed for the users whose files transitioned.
        """
        now = now or datetime.now(UTC)
        control = _SweepControl.start(
            cancel_event,
            deadline_seconds
            if deadline_seconds is not None
            else settings.lifecycle_sweep_deadline_seconds,
        )
        workers = max_workers if max_workers is not None else settings.lifecycle_max_workers

        files = self.eligible_files(db, now)
        jobs = [(file.id, file.owner_id) for file in files]
        policies = {
            owner_id: resolve_policy(resolve_user_plan(db, owner_id))
            for owner_id in {owner_id for _, owner_id in jobs}
        }
        logger.info(
            "file_lifecycle_sweep_started files=%d owners=%d workers=%d",
            len(jobs),
            len(policies),
            workers,
        )

        outcomes: list[tuple[uuid.UUID, LifecycleOutcome]] = []
        stopped_early = False
        if workers <= 1:
            for file, (_, owner_id) in zip(files, jobs):
                if control.should_stop():
                    stopped_early = True
                    break
                outcomes.append(
                    (owner_id, self._process_file_guarded(db, file, policies[owner_id], now))
                )
        else:
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="file-lifecycle"
            ) as executor:
                futures = [
                    (
                        owner_id,
                        executor.submit(
                            self._process_file_in_worker,
                            file_id,
                            policies[owner_id],
                            now,
                            control,
                        ),
                    )
                    for file_id, owner_id in jobs
                ]
                outcomes = [(owner_id, future.result()) for owner_id, future in futures]

        result = LifecycleSweepResponse()
        affected_users: set[uuid.UUID] = set()
        for owner_id, outcome in outcomes:
            if outcome == LifecycleOutcome.cancelled:
                stopped_early = True
                continue
            if outcome == LifecycleOutcome.skipped:
                continue
            result.processed += 1
            if outcome == LifecycleOutcome.transitioned:
                result.transitioned += 1
                affected_users.add(owner_id)
            elif outcome == LifecycleOutcome.unchanged:
                result.unchanged += 1
            elif outcome == LifecycleOutcome.conflict:
                result.conflicts += 1
            elif outcome == LifecycleOutcome.failed:
                result.failed += 1

        if stopped_early:
            result.cancelled = True
            logger.warning(
                "file_lifecycle_sweep_cancelled processed=%d remaining=%d",
                result.processed,
                len(jobs) - result.processed,
            )
            return result

        try:
            cleanup = self.cleanup_expired_files(db, now)
        except Exception:
            db.rollback()
            CLEANUP_FAILURES.labels(step="batch").inc()
            logger.exception("file_cleanup_batch_failed")
            result.cleanup_failed += 1
        else:
            result.deleted = cleanup.deleted
            result.cleanup_failed = cleanup.failed
            affected_users |= cleanup.owner_ids

        result.users_refreshed = self.update_storage_statistics(db, affected_users, now)
        logger.info(
            "file_lifecycle_sweep_completed processed=%d transitioned=%d failed=%d "
            "conflicts=%d deleted=%d cleanup_failed=%d users_refreshed=%d",
            result.processed,
            result.transitioned,
            result.failed,
            result.conflicts,
            result.deleted,
            result.cleanup_failed,
            result.users_refreshed,
        )
        return result

    # -- cleanup executor ----------------------------------------------------

    def delete_expired_file(
        self, db: Session, file: MediaFile, now: datetime | None = None
    ) -> LifecycleOutcome:
        """Remove one expired file: object, thumbnail, record, savings entry.

        The primary object delete is the only step that blocks the rest; a
        failed thumbnail delete is recorded on the file and cleanup proceeds.
        """
        now = now or datetime.now(UTC)
        file_id = file.id
        owner_id = file.owner_id
        filename = file.filename
        file_size = file.file_size
        storage_path = file.storage_path
        thumbnail_path = file.thumbnail_path
        metadata = dict(file.lifecycle_metadata or {})

        if storage_path:
            try:
                self._storage_client().delete(storage_path)
            except ObjectStorageError as exc:
                CLEANUP_FAILURES.labels(step="primary_object").inc()
                logger.warning(
                    "file_cleanup_object_delete_failed file_id=%s key=%s error=%s",
                    file_id,
                    storage_path,
                    exc,
                )
                return LifecycleOutcome.failed

        if thumbnail_path:
            try:
                self._thumbnail_client().delete(thumbnail_path)
            except ObjectStorageError as exc:
                CLEANUP_FAILURES.labels(step="thumbnail").inc()
                metadata["thumbnail_orphaned"] = thumbnail_path
                logger.warning(
                    "file_cleanup_thumbnail_delete_failed file_id=%s key=%s error=%s",
                    file_id,
                    thumbnail_path,
                    exc,
                )

        metadata.update(
            {
                "previous_status": FileStatus.scheduled_deletion.value,
                "deletion_reason": DELETION_REASON,
                "deleted_by": "system",
                "deleted_at": now.isoformat(),
            }
        )
        updated = (
            db.query(MediaFile)
            .filter(MediaFile.id == file_id)
            .filter(MediaFile.status == FileStatus.scheduled_deletion)
            .update(
                {
                    MediaFile.status: FileStatus.deleted,
                    MediaFile.deleted_at: now,
                    MediaFile.lifecycle_metadata: metadata,
                },
                synchronize_session=False,
            )
        )
        if not updated:
            db.rollback()
            logger.info("file_cleanup_conflict file_id=%s", file_id)
            return LifecycleOutcome.conflict
        db.commit()
        CLEANUP_DELETIONS.inc()

        size_gb = bytes_to_gb(file_size)
        activity_log.record_activity(
            db,
            user_id=owner_id,
            action=activity_log.ACTION_COST_OPTIMIZATION,
            resource_type="file",
            resource_id=file_id,
            details={
                "action_type": "file_deletion",
                "filename": filename,
                "file_size_mb": size_gb * 1024,
                "monthly_savings": size_gb * self.rates.hot,
                "currency": self.rates.currency,
                "deletion_reason": DELETION_REASON,
            },
        )
        logger.info("file_cleanup_deleted file_id=%s filename=%s", file_id, filename)
        return LifecycleOutcome.transitioned

    def cleanup_expired_files(self, db: Session, now: datetime | None = None) -> CleanupResult:
        now = now or datetime.now(UTC)
        files = self.expired_files(db, now)
        jobs = [(file.id, file.owner_id) for file in files]
        result = CleanupResult()
        for file, (file_id, owner_id) in zip(files, jobs):
            try:
                outcome = self.delete_expired_file(db, file, now)
            except SQLAlchemyError as exc:
                db.rollback()
                CLEANUP_FAILURES.labels(step="record").inc()
                logger.warning("file_cleanup_failed file_id=%s error=%s", file_id, exc)
                outcome = LifecycleOutcome.failed
            except Exception:
                db.rollback()
                CLEANUP_FAILURES.labels(step="unexpected").inc()
                logger.exception("file_cleanup_unexpected_error file_id=%s", file_id)
                outcome = LifecycleOutcome.failed
            if outcome == LifecycleOutcome.transitioned:
                result.deleted += 1
                result.owner_ids.add(owner_id)
            elif outcome == LifecycleOutcome.failed:
                result.failed += 1
        logger.info(
            "file_cleanup_completed candidates=%d deleted=%d failed=%d",
            len(jobs),
            result.deleted,
            result.failed,
        )
        return result

    # -- statistics ----------------------------------------------------------

    def update_storage_statistics(
        self, db: Session, user_ids, now: datetime | None = None
    ) -> int:
        """Persist current storage usage on each user's active subscription."""
        now = now or datetime.now(UTC)
        refreshed = 0
        for user_id in user_ids:
            try:
                snapshot = calculate_storage_analytics(self.active_files(db, user_id))
                updated = (
                    db.query(UserSubscription)
                    .filter(UserSubscription.user_id == coerce_uuid(user_id))
                    .filter(UserSubscription.status == SubscriptionStatus.active)
                    .update(
                        {
                            UserSubscription.storage_used_gb: round_gb(
                                snapshot.total.size_gb
                            ),
                            UserSubscription.updated_at: now,
                        },
                        synchronize_session=False,
                    )
                )
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.warning(
                    "storage_statistics_update_failed user_id=%s error=%s", user_id, exc
                )
                continue
            if updated:
                refreshed += 1
        return refreshed

    def get_user_storage_analytics(self, db: Session, user_id) -> StorageAnalyticsResponse:
        files = self.active_files(db, user_id)
        analytics = calculate_storage_analytics(files)
        plan = resolve_user_plan(db, user_id)
        return StorageAnalyticsResponse(
            analytics=analytics,
            costs=calculate_storage_costs(analytics, self.rates),
            suggestions=generate_optimization_suggestions(analytics, self.rates),
            total_files=len(files),
            quota=storage_quota(analytics, plan, resolve_policy(plan)),
        )


file_lifecycle = FileLifecycleManager()

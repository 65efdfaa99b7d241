import os
import sqlite3
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))


# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes  # noqa: E402

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


setattr(sqltypes.Uuid, "bind_processor", _sqlite_uuid_bind_processor)
setattr(sqltypes.Uuid, "result_processor", _sqlite_uuid_result_processor)

from app.models import (  # noqa: E402
    FileStatus,
    MediaFile,
    SubscriptionPlan,
    SubscriptionStatus,
    UserSubscription,
)
from app.services.object_storage import ObjectStorageError  # noqa: E402

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def now():
    return NOW


class FakeStorage:
    """In-memory stand-in for S3StorageService.delete."""

    def __init__(self, fail_keys: set[str] | None = None):
        self.deleted: list[str] = []
        self.fail_keys = fail_keys or set()

    def delete(self, key: str) -> None:
        if key in self.fail_keys:
            raise ObjectStorageError(f"Failed to delete object bucket/{key}")
        self.deleted.append(key)


@pytest.fixture()
def media_storage():
    return FakeStorage()


@pytest.fixture()
def thumbnail_storage():
    return FakeStorage()


@pytest.fixture()
def plans(db_session):
    rows = {}
    for name in ("freemium", "creator", "pro", "studio"):
        plan = SubscriptionPlan(name=name, display_name=name.title())
        db_session.add(plan)
        rows[name] = plan
    db_session.commit()
    return rows


@pytest.fixture()
def subscribe(db_session, plans):
    def _subscribe(plan_name: str, user_id: uuid.UUID | None = None, **kwargs):
        subscription = UserSubscription(
            user_id=user_id or uuid.uuid4(),
            plan_id=plans[plan_name].id,
            status=kwargs.pop("status", SubscriptionStatus.active),
            **kwargs,
        )
        db_session.add(subscription)
        db_session.commit()
        return subscription

    return _subscribe


@pytest.fixture()
def make_file(db_session):
    def _make_file(
        owner_id: uuid.UUID,
        *,
        age_days: float = 0,
        status: FileStatus = FileStatus.ready,
        size_gb: Decimal | int | str = "0.5",
        is_favorite: bool = False,
        thumbnail: bool = True,
        anchor: datetime = NOW,
        **kwargs,
    ):
        file_id = uuid.uuid4()
        media_file = MediaFile(
            id=file_id,
            owner_id=owner_id,
            filename=kwargs.pop("filename", f"{file_id.hex[:8]}.mp4"),
            storage_path=kwargs.pop("storage_path", f"media/{owner_id}/{file_id}.mp4"),
            thumbnail_path=f"thumbs/{owner_id}/{file_id}.jpg" if thumbnail else None,
            file_size=int(Decimal(str(size_gb)) * 1024**3),
            status=status,
            is_favorite=is_favorite,
            last_transition_at=anchor - timedelta(days=age_days),
            **kwargs,
        )
        db_session.add(media_file)
        db_session.commit()
        return media_file

    return _make_file

"""Common helper functions for the service layer.

This module provides reusable utilities for:
- UUID handling
- Timestamp normalization
- Monetary and size rounding
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException

BYTES_PER_GB = Decimal(1024**3)


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def parse_uuid_or_404(value: str, detail: str) -> uuid.UUID:
    """Parse a path identifier, treating malformed ids as missing resources."""
    try:
        return coerce_uuid(value)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=detail) from exc


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round monetary value to 2 decimal places, half up."""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def round_gb(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def bytes_to_gb(size_bytes: int | None) -> Decimal:
    return Decimal(int(size_bytes or 0)) / BYTES_PER_GB

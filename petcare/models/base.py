"""Shared metadata and portable column types."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, MetaData, TypeDecorator
from sqlalchemy.engine import Dialect

# Metadata for all tables
metadata = MetaData()


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp stored as UTC on every backend.

    PostgreSQL keeps TIMESTAMPTZ natively; SQLite has no timezone support, so
    values are normalized to UTC before binding and re-tagged as UTC on load.
    Exact-instant comparisons therefore behave identically on both.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> Any:
        """Normalize to UTC; naive values are taken to already be UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        """Return aware UTC datetimes."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

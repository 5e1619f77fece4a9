"""
SQLAlchemy ORM models (event log + analytics read models)
"""
from datetime import datetime

from sqlalchemy import (
    JSON, BigInteger, ForeignKey, Index, Integer, String, TIMESTAMP, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tacohut.infrastructure.db.session import Base


class EventLog(Base):
    """
    Event log - system of record for raw sales and expenses

    Events are immutable: a deletion is a new *_deleted event pointing at the
    recorded one.
    """
    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    payload_json: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )

    occurred_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        index=True
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


# ============================================================================
# Read Models (analytics buckets built from events)
# ============================================================================


class AnalyticsBucket(Base):
    """
    Read model: accumulated totals of one (period, bucket_start, bucket_end) bucket

    net_profit is derived (total_sales - total_expenses) and only written by
    the recalculator.
    """
    __tablename__ = "analytics_buckets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    period: Mapped[str] = mapped_column(String(16), nullable=False)
    bucket_start: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    bucket_end: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    total_sales: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    total_expenses: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    net_profit: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    last_updated: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    entries: Mapped[list["AnalyticsBucketEntry"]] = relationship(
        back_populates="bucket",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("period", "bucket_start", "bucket_end", name="uq_analytics_bucket_key"),
        Index("ix_analytics_buckets_period_start", "period", "bucket_start"),
    )


class AnalyticsBucketEntry(Base):
    """
    Read model: one key of a bucket map (items_sold / payment_totals / expense_categories)
    """
    __tablename__ = "analytics_bucket_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bucket_id: Mapped[int] = mapped_column(
        ForeignKey("analytics_buckets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    map_name: Mapped[str] = mapped_column(String(32), nullable=False)
    entry_key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")

    bucket: Mapped[AnalyticsBucket] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint("bucket_id", "map_name", "entry_key", name="uq_analytics_bucket_entry"),
    )

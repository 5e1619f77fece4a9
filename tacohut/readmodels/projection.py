"""
Projection of aggregate records into the external read model
"""
from datetime import datetime, timezone, tzinfo
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tacohut.domain.aggregate import AggregateRecord


class AggregateView(BaseModel):
    """External shape of one bucket; serialised with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    period: str
    bucket_start: str
    bucket_end: str
    items_sold: Dict[str, int]
    payment_totals: Dict[str, int]
    total_sales: int
    total_expenses: int
    net_profit: int
    transaction_count: int
    expense_categories: Dict[str, int]
    last_updated: Optional[str] = None


def format_timestamp(dt: Optional[datetime], tz: Optional[tzinfo] = None) -> Optional[str]:
    """ISO-8601 with offset, second precision; naive input is taken as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if tz is not None:
        dt = dt.astimezone(tz)
    return dt.isoformat(timespec="seconds")


def project(record: AggregateRecord, tz: Optional[tzinfo] = None) -> AggregateView:
    """
    Pure mapping AggregateRecord -> AggregateView

    Maps that were never populated come out as {} rather than missing.
    """
    return AggregateView(
        id="" if record.id is None else str(record.id),
        period=record.period.value,
        bucket_start=format_timestamp(record.bucket_start, tz),
        bucket_end=format_timestamp(record.bucket_end, tz),
        items_sold=dict(record.items_sold or {}),
        payment_totals=dict(record.payment_totals or {}),
        total_sales=record.total_sales,
        total_expenses=record.total_expenses,
        net_profit=record.net_profit,
        transaction_count=record.transaction_count,
        expense_categories=dict(record.expense_categories or {}),
        last_updated=format_timestamp(record.last_updated, tz),
    )

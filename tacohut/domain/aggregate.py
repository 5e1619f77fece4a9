"""
Aggregate record (one bucket) and the typed delta merged into it
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from tacohut.domain.errors import InvalidDelta
from tacohut.domain.events import EventKind
from tacohut.domain.period import Period

# Numeric fields an event may increment. net_profit is derived and never
# appears in a delta.
NUMERIC_FIELDS = frozenset({"total_sales", "total_expenses", "transaction_count"})
MAP_FIELDS = frozenset({"items_sold", "payment_totals", "expense_categories"})


@dataclass
class AggregateRecord:
    """
    Accumulated totals of one (period, bucket_start, bucket_end) bucket

    Identity fields are fixed for the bucket's lifetime, everything else is
    mutable. Totals are signed and never clamped.
    """
    period: Period
    bucket_start: datetime
    bucket_end: datetime
    id: Optional[int] = None
    items_sold: Dict[str, int] = field(default_factory=dict)
    payment_totals: Dict[str, int] = field(default_factory=dict)
    expense_categories: Dict[str, int] = field(default_factory=dict)
    total_sales: int = 0
    total_expenses: int = 0
    net_profit: int = 0
    transaction_count: int = 0
    last_updated: Optional[datetime] = None

    def expected_net_profit(self) -> int:
        return self.total_sales - self.total_expenses

    def is_consistent(self) -> bool:
        return self.net_profit == self.expected_net_profit()


@dataclass
class BucketDelta:
    """
    Signed increments for one bucket

    numeric: {field_name: delta} for NUMERIC_FIELDS
    maps: {map_name: {key: delta}} for MAP_FIELDS
    """
    numeric: Dict[str, int] = field(default_factory=dict)
    maps: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def add(self, field_name: str, amount: int) -> None:
        self.numeric[field_name] = self.numeric.get(field_name, 0) + amount

    def add_entry(self, map_name: str, key: str, amount: int) -> None:
        entries = self.maps.setdefault(map_name, {})
        entries[key] = entries.get(key, 0) + amount

    def validate(self) -> "BucketDelta":
        """
        Check the delta against the aggregate record schema

        Raises:
            InvalidDelta: unknown field/map, empty map key, or non-integer value
        """
        for name, value in self.numeric.items():
            if name not in NUMERIC_FIELDS:
                raise InvalidDelta(f"Unknown numeric field: {name!r}")
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidDelta(f"Delta for {name!r} must be an integer, got {value!r}")
        for map_name, entries in self.maps.items():
            if map_name not in MAP_FIELDS:
                raise InvalidDelta(f"Unknown map field: {map_name!r}")
            for key, value in entries.items():
                if not isinstance(key, str) or not key:
                    raise InvalidDelta(f"Map {map_name!r} keys must be non-empty strings, got {key!r}")
                if not isinstance(value, int) or isinstance(value, bool):
                    raise InvalidDelta(f"Delta for {map_name}[{key!r}] must be an integer, got {value!r}")
        return self


def delta_for(event, sign: int) -> BucketDelta:
    """
    Compute the bucket delta an event contributes.

    Args:
        event: SaleEvent or ExpenseEvent
        sign: +1 to apply, -1 to reverse

    Returns:
        Validated BucketDelta

    Sales count one transaction per payment method in payment_totals; the
    monetary total only goes to total_sales.
    """
    if sign not in (1, -1):
        raise InvalidDelta(f"sign must be +1 or -1, got {sign!r}")

    delta = BucketDelta()
    if event.kind is EventKind.SALE:
        delta.add("total_sales", sign * event.total)
        delta.add("transaction_count", sign)
        for item in event.items:
            delta.add_entry("items_sold", item.name, sign * item.quantity)
        if event.payment_method:
            delta.add_entry("payment_totals", event.payment_method, sign)
    else:
        delta.add("total_expenses", sign * event.amount)
        if event.category:
            delta.add_entry("expense_categories", event.category, sign * event.amount)
    return delta.validate()

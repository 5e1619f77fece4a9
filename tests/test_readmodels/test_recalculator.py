"""
Tests for DerivedMetricRecalculator
"""
import pytest
from datetime import datetime, timezone

from tacohut.domain.aggregate import AggregateRecord, BucketDelta
from tacohut.domain.errors import BucketNotFound
from tacohut.domain.period import Period
from tacohut.readmodels.recalculator import DerivedMetricRecalculator, compute_net_profit

UTC = timezone.utc
STAMP = datetime(2024, 3, 15, 20, 0, tzinfo=UTC)


@pytest.fixture
def recalculator(gateway):
    return DerivedMetricRecalculator(gateway, clock=lambda: STAMP)


def _bucket_with(gateway, sales=0, expenses=0, period=Period.DAILY):
    bucket_id = gateway.insert_bucket(AggregateRecord(
        period, datetime(2024, 3, 15, tzinfo=UTC), datetime(2024, 3, 16, tzinfo=UTC),
    ))
    gateway.apply_delta(bucket_id, BucketDelta(numeric={"total_sales": sales, "total_expenses": expenses}))
    return bucket_id


def test_compute_net_profit_can_be_negative():
    assert compute_net_profit(1000, 400) == 600
    assert compute_net_profit(0, 400) == -400


def test_recalculate_writes_net_profit_and_timestamp(recalculator, gateway):
    bucket_id = _bucket_with(gateway, sales=1000, expenses=400)

    assert recalculator.recalculate(bucket_id) == 600

    record = gateway.get_bucket(bucket_id)
    assert record.net_profit == 600
    assert record.last_updated == STAMP


def test_recalculate_missing_bucket(recalculator):
    with pytest.raises(BucketNotFound):
        recalculator.recalculate(404)


def test_repair_fixes_only_stale_buckets(recalculator, gateway):
    stale = _bucket_with(gateway, sales=500)
    _bucket_with(gateway, period=Period.WEEKLY)  # all zeros, already consistent

    assert recalculator.repair() == 1
    assert gateway.get_bucket(stale).net_profit == 500
    assert gateway.find_inconsistent() == []
    assert recalculator.repair() == 0

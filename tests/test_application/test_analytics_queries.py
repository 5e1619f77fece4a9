"""
Tests for AnalyticsQueryService and RepairAnalyticsUseCase
"""
import pytest
from datetime import date, datetime, timezone

from tacohut.application.analytics import AnalyticsQueryService, RepairAnalyticsUseCase, build_applier
from tacohut.config import Settings
from tacohut.domain.aggregate import BucketDelta
from tacohut.domain.errors import InvalidPeriod
from tacohut.domain.events import ExpenseEvent, LineItem, SaleEvent
from tacohut.readmodels.applier import APPLY

UTC = timezone.utc


@pytest.fixture
def seeded(db_session, settings):
    applier = build_applier(db_session, settings)
    applier.apply(SaleEvent(1000, "cash", datetime(2024, 3, 15, 10, tzinfo=UTC), [LineItem("taco", 3)]), APPLY)
    applier.apply(SaleEvent(500, "card", datetime(2024, 3, 16, 10, tzinfo=UTC), [LineItem("burrito", 1)]), APPLY)
    applier.apply(ExpenseEvent(400, "supplies", datetime(2024, 3, 15, 16, tzinfo=UTC)), APPLY)
    return AnalyticsQueryService(db_session, settings)


def test_get_aggregate_for_date(seeded):
    view = seeded.get_aggregate("daily", date(2024, 3, 15))

    assert view.bucket_start == "2024-03-15T00:00:00+00:00"
    assert view.total_sales == 1000
    assert view.net_profit == 600
    assert view.payment_totals == {"cash": 1}


def test_get_aggregate_week_covers_both_days(seeded):
    view = seeded.get_aggregate("weekly", date(2024, 3, 16))

    assert view.total_sales == 1500
    assert view.transaction_count == 2
    assert view.items_sold == {"taco": 3, "burrito": 1}


def test_get_aggregate_without_events_is_none(seeded):
    assert seeded.get_aggregate("daily", date(2024, 3, 20)) is None


def test_get_aggregate_invalid_period(seeded):
    with pytest.raises(InvalidPeriod):
        seeded.get_aggregate("fortnightly", date(2024, 3, 15))


def test_list_aggregates_newest_first(seeded):
    days = seeded.list_aggregates("daily")

    assert [v.bucket_start[:10] for v in days] == ["2024-03-16", "2024-03-15"]
    assert len(seeded.list_aggregates("daily", limit=1)) == 1


def test_overview_has_every_period(seeded):
    overview = seeded.overview()

    assert set(overview) == {"dailyAnalytics", "weeklyAnalytics", "monthlyAnalytics", "yearlyAnalytics"}
    assert len(overview["dailyAnalytics"]) == 2
    assert overview["yearlyAnalytics"][0].net_profit == 1100


def test_date_resolved_in_reference_zone(db_session):
    tokyo = Settings(DATABASE_URL="sqlite://", TIMEZONE="Asia/Tokyo")
    # 2024-03-15 20:00 UTC is 2024-03-16 in Tokyo
    build_applier(db_session, tokyo).apply(
        SaleEvent(700, "cash", datetime(2024, 3, 15, 20, tzinfo=UTC), [LineItem("taco", 1)]), APPLY,
    )
    service = AnalyticsQueryService(db_session, tokyo)

    assert service.get_aggregate("daily", date(2024, 3, 15)) is None
    view = service.get_aggregate("daily", date(2024, 3, 16))
    assert view.bucket_start == "2024-03-16T00:00:00+09:00"


def test_repair_use_case(seeded, gateway, db_session):
    bucket_id = seeded.list_aggregates("daily")[0].id
    gateway.apply_delta(int(bucket_id), BucketDelta(numeric={"total_sales": 50}))

    assert RepairAnalyticsUseCase(db_session).execute() == 1
    assert seeded.get_aggregate("daily", date(2024, 3, 16)).net_profit == 550

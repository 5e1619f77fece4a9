"""
Analytics query service and wiring of the aggregation core
"""
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from tacohut.config import Settings, get_settings
from tacohut.domain.period import PERIODS, Period, boundary
from tacohut.infrastructure.analytics.gateway import SqlAlchemyBucketGateway
from tacohut.readmodels.applier import EventApplier
from tacohut.readmodels.gateway import BucketReader
from tacohut.readmodels.projection import AggregateView, project
from tacohut.readmodels.recalculator import DerivedMetricRecalculator


def build_applier(db: Session, settings: Optional[Settings] = None) -> EventApplier:
    """EventApplier on the SQLAlchemy gateway, configured from settings"""
    settings = settings or get_settings()
    gateway = SqlAlchemyBucketGateway(db)
    return EventApplier(
        gateway,
        recalculator=DerivedMetricRecalculator(gateway),
        tz=settings.tz,
        primary=Period.parse(settings.PRIMARY_PERIOD),
    )


class AnalyticsQueryService:
    """Read side of the analytics buckets"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.tz = self.settings.tz
        self.gateway: BucketReader = SqlAlchemyBucketGateway(db)

    def resolve_as_of(self, as_of: date | datetime | None) -> datetime:
        """A calendar date means its local midnight; None means now"""
        if as_of is None:
            return datetime.now(self.tz)
        if isinstance(as_of, datetime):
            return as_of
        return datetime(as_of.year, as_of.month, as_of.day, tzinfo=self.tz)

    def get_aggregate(self, period, as_of: date | datetime | None = None) -> Optional[AggregateView]:
        """
        Bucket of `period` that contains `as_of`

        Raises:
            InvalidPeriod: unknown period token (before any store access)

        Returns:
            AggregateView, or None if no event has landed in that bucket yet
        """
        period = Period.parse(period)
        start, end = boundary(self.resolve_as_of(as_of), period, self.tz)
        record = self.gateway.find_bucket(period, start, end)
        if record is None:
            return None
        return project(record, self.tz)

    def list_aggregates(self, period, limit: Optional[int] = None) -> List[AggregateView]:
        """All buckets of a period, newest first"""
        period = Period.parse(period)
        return [project(r, self.tz) for r in self.gateway.list_buckets(period, limit=limit)]

    def overview(self, limit: Optional[int] = None) -> Dict[str, List[AggregateView]]:
        """
        Every period's buckets in one payload

        Returns:
            {"dailyAnalytics": [...], "weeklyAnalytics": [...],
             "monthlyAnalytics": [...], "yearlyAnalytics": [...]}
        """
        return {
            f"{period.value}Analytics": self.list_aggregates(period, limit=limit)
            for period in PERIODS
        }


class RepairAnalyticsUseCase:
    """Bring stale net_profit values back in line with their totals"""

    def __init__(self, db: Session):
        self.recalculator = DerivedMetricRecalculator(SqlAlchemyBucketGateway(db))

    def execute(self) -> int:
        return self.recalculator.repair()

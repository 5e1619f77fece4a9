"""
EventApplier - merges one sale/expense event into its daily, weekly, monthly
and yearly buckets.

For every period:
  1. bucket boundary from the event's own effective time
  2. find the bucket; create it if absent (apply only; a reversal never creates)
  3. apply the signed delta
  4. recalculate net_profit (a failure here leaves the period applied but stale)

Periods are independent: a failure on one is recorded and the others still
run. Nothing is rolled back across periods.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional

from tacohut.domain.aggregate import AggregateRecord, BucketDelta, delta_for
from tacohut.domain.errors import AggregationError, AggregationTimeout, BucketNotFound, DuplicateKey
from tacohut.domain.period import PERIODS, Period, boundary
from tacohut.readmodels.gateway import BucketGateway
from tacohut.readmodels.recalculator import DerivedMetricRecalculator

logger = logging.getLogger(__name__)

APPLY = 1
REVERSE = -1


@dataclass
class AggregationResult:
    """
    Outcome of one aggregation pass

    status:
        "ok"      - every period applied and net_profit recalculated
        "partial" - the primary period applied, but some other period failed
                    or some applied bucket was left with a stale net_profit
        "failed"  - the primary period was not applied (or, when the pass
                    did not include it, nothing applied)

    A period in `stale` is also in `applied`: its delta is committed and
    must not be applied again, only recalculated (see repair()).
    """
    primary: Period
    attempted: List[Period] = field(default_factory=list)
    applied: Dict[Period, int] = field(default_factory=dict)  # period -> bucket_id
    created: List[Period] = field(default_factory=list)
    failures: Dict[Period, AggregationError] = field(default_factory=dict)
    stale: Dict[Period, AggregationError] = field(default_factory=dict)

    @property
    def status(self) -> str:
        if self.primary in self.attempted:
            if self.primary not in self.applied:
                return "failed"
        elif not self.applied:
            return "failed"
        if self.failures or self.stale:
            return "partial"
        return "ok"

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def errors(self) -> Dict[str, str]:
        return {period.value: str(exc) for period, exc in self.failures.items()}

    def stale_errors(self) -> Dict[str, str]:
        return {period.value: str(exc) for period, exc in self.stale.items()}


class EventApplier:
    """
    Example:
        >>> applier = EventApplier(SqlAlchemyBucketGateway(db), tz=ZoneInfo("Europe/Madrid"))
        >>> result = applier.apply(sale, APPLY, timeout=15)
        >>> result.status
        'ok'
    """

    def __init__(
        self,
        gateway: BucketGateway,
        recalculator: Optional[DerivedMetricRecalculator] = None,
        tz: tzinfo = timezone.utc,
        primary: Period = Period.DAILY,
        periods: Iterable[Period] = PERIODS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.recalculator = recalculator or DerivedMetricRecalculator(gateway)
        self.tz = tz
        self.primary = Period.parse(primary)
        self.periods = tuple(Period.parse(p) for p in periods)
        self.monotonic = monotonic

    def apply(
        self,
        event,
        sign: int = APPLY,
        timeout: Optional[float] = None,
        periods: Optional[Iterable] = None,
    ) -> AggregationResult:
        """
        Merge (sign=+1) or retract (sign=-1) an event in every period

        Args:
            event: SaleEvent or ExpenseEvent
            sign: APPLY or REVERSE
            timeout: Seconds for the whole pass; periods not started by then
                fail with AggregationTimeout
            periods: Restrict the pass to these periods (default: all four)

        Returns:
            AggregationResult with per-period outcomes

        Raises:
            InvalidPeriod: unknown token in periods (before any store access)
            InvalidDelta: sign is not +1/-1
        """
        targets = self.periods if periods is None else tuple(Period.parse(p) for p in periods)
        delta = delta_for(event, sign)
        deadline = self.monotonic() + timeout if timeout is not None else None

        result = AggregationResult(primary=self.primary, attempted=list(targets))
        for period in targets:
            if deadline is not None and self.monotonic() >= deadline:
                result.failures[period] = AggregationTimeout(
                    f"{period.value} aggregation skipped: deadline of {timeout}s expired"
                )
                continue
            try:
                bucket_id, created = self.merge_into_period(event, delta, period, sign)
            except AggregationError as exc:
                logger.warning("Error updating %s analytics: %s", period.value, exc)
                result.failures[period] = exc
                continue
            result.applied[period] = bucket_id
            if created:
                result.created.append(period)

            try:
                self.recalculator.recalculate(bucket_id)
            except AggregationError as exc:
                # delta is committed; only net_profit lags until the next event or repair()
                logger.warning("net_profit of %s bucket #%d left stale: %s", period.value, bucket_id, exc)
                result.stale[period] = exc

        if (result.failures or result.stale) and result.applied:
            logger.warning(
                "Partial aggregation: applied %s, failed %s, stale %s",
                [p.value for p in result.applied],
                [p.value for p in result.failures],
                [p.value for p in result.stale],
            )
        return result

    def merge_into_period(self, event, delta: BucketDelta, period: Period, sign: int) -> tuple[int, bool]:
        """
        Apply a precomputed delta to one period's bucket (net_profit not yet recalculated)

        Returns:
            (bucket_id, created)
        """
        start, end = boundary(event.effective_time, period, self.tz)
        bucket_id, created = self._locate_bucket(period, start, end, create=sign > 0)
        self.gateway.apply_delta(bucket_id, delta)
        return bucket_id, created

    def _locate_bucket(self, period: Period, start, end, create: bool) -> tuple[int, bool]:
        record = self.gateway.find_bucket(period, start, end)
        if record is not None:
            return record.id, False

        if not create:
            raise BucketNotFound(
                f"cannot reverse into missing {period.value} bucket {start.isoformat()}"
            )

        try:
            bucket_id = self.gateway.insert_bucket(AggregateRecord(period, start, end))
        except DuplicateKey:
            # Lost the creation race: the winner's bucket must be there now
            logger.info("%s bucket %s created concurrently, retrying lookup", period.value, start.isoformat())
            record = self.gateway.find_bucket(period, start, end)
            if record is None:
                raise
            return record.id, False

        logger.info(
            "Created new %s analytics for period: %s to %s",
            period.value, start.date().isoformat(), end.date().isoformat(),
        )
        return bucket_id, True

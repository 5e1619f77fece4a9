"""
DerivedMetricRecalculator - keeps net_profit equal to total_sales - total_expenses.

Runs as a separate read-then-write step after every successful delta, so the
delta application and the derived recompute can be tested on their own.
"""
import logging
from datetime import datetime, timezone
from typing import Callable

from tacohut.domain.errors import BucketNotFound
from tacohut.readmodels.gateway import BucketGateway

logger = logging.getLogger(__name__)


def compute_net_profit(total_sales: int, total_expenses: int) -> int:
    return total_sales - total_expenses


class DerivedMetricRecalculator:

    def __init__(self, gateway: BucketGateway, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.gateway = gateway
        self.clock = clock

    def recalculate(self, bucket_id: int) -> int:
        """
        Re-read the bucket and overwrite its derived fields

        Args:
            bucket_id: Store-assigned bucket ID

        Returns:
            The new net_profit

        Raises:
            BucketNotFound: bucket vanished between the delta and the re-read
            StoreUnavailable: gateway I/O failure
        """
        record = self.gateway.get_bucket(bucket_id)
        if record is None:
            raise BucketNotFound(f"bucket #{bucket_id} not found")

        net_profit = compute_net_profit(record.total_sales, record.total_expenses)
        self.gateway.set_derived(bucket_id, net_profit, self.clock())
        return net_profit

    def repair(self) -> int:
        """
        Recalculate every bucket whose net_profit went stale

        A stale bucket is left behind when the delta committed but the
        recalculation after it failed.

        Returns:
            Number of buckets repaired
        """
        repaired = 0
        for bucket_id in self.gateway.find_inconsistent():
            self.recalculate(bucket_id)
            repaired += 1
        if repaired:
            logger.info("Repaired net_profit of %d bucket(s)", repaired)
        return repaired

"""
Aggregate store gateway - what the aggregation core needs from the backing store.

Any keyed store with per-field atomic increments satisfies it; the SQLAlchemy
implementation lives in tacohut.infrastructure.analytics.gateway.
"""
from datetime import datetime
from typing import List, Optional, Protocol

from tacohut.domain.aggregate import AggregateRecord, BucketDelta
from tacohut.domain.period import Period


class BucketGateway(Protocol):

    def find_bucket(self, period: Period, start: datetime, end: datetime) -> Optional[AggregateRecord]:
        """Bucket with this natural key, or None"""
        ...

    def get_bucket(self, bucket_id: int) -> Optional[AggregateRecord]:
        """Bucket by store-assigned ID, or None"""
        ...

    def insert_bucket(self, record: AggregateRecord) -> int:
        """
        Create the bucket, return its ID

        Raises:
            DuplicateKey: the natural key already exists
        """
        ...

    def apply_delta(self, bucket_id: int, delta: BucketDelta, updated_at: Optional[datetime] = None) -> None:
        """
        Atomically increment numeric fields and map entries by the signed delta

        Raises:
            BucketNotFound: the bucket no longer exists
        """
        ...

    def set_derived(self, bucket_id: int, net_profit: int, last_updated: datetime) -> None:
        """
        Atomically overwrite the derived fields

        Raises:
            BucketNotFound: the bucket no longer exists
        """
        ...


class BucketReader(BucketGateway, Protocol):
    """Read-side queries used by the query service and the repair pass"""

    def list_buckets(self, period: Period, limit: Optional[int] = None) -> List[AggregateRecord]:
        ...

    def find_inconsistent(self) -> List[int]:
        ...

"""
Aggregation error taxonomy
"""


class AggregationError(Exception):
    """Base class for every failure raised by the aggregation core"""


class InvalidPeriod(AggregationError, ValueError):
    """Unsupported granularity token; raised before any store access"""

    def __init__(self, value):
        super().__init__(f"Invalid period: {value!r}. Use: daily, weekly, monthly, yearly")
        self.value = value


class BucketNotFound(AggregationError):
    """The targeted bucket does not exist (reversal of a never-applied event, or a vanished bucket)"""


class DuplicateKey(AggregationError):
    """Another creator inserted the same (period, start, end) bucket first"""


class StoreUnavailable(AggregationError):
    """Any I/O failure from the store gateway; transient, not retried by the core"""


class AggregationTimeout(AggregationError):
    """The caller-supplied deadline expired before this granularity was attempted"""


class InvalidDelta(AggregationError, ValueError):
    """A delta names a field or map the aggregate record does not have"""


class TimestampOutOfRange(AggregationError, ValueError):
    """A bucket around the timestamp would start or end outside the datetime range"""

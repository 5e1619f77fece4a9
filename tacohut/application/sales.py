"""
Sale use cases - record, delete and list sales
"""
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from tacohut.application.recording import DeleteEventUseCase, EventFeedService, RecordEventUseCase
from tacohut.domain.errors import TimestampOutOfRange
from tacohut.domain.events import SALE_DELETED, SALE_RECORDED, LineItem, SaleEvent
from tacohut.domain.period import ensure_bucketable
from tacohut.readmodels.applier import AggregationResult


class SaleValidationError(ValueError):
    """Invalid sale"""
    pass


class _SaleEvents:
    recorded_type = SALE_RECORDED
    deleted_type = SALE_DELETED
    key_prefix = "sale"


class RecordSaleUseCase(_SaleEvents, RecordEventUseCase):
    """
    Use case: record a sale and add it to every analytics period
    """

    def execute(
        self,
        total: int,
        payment_method: str,
        items: Sequence[LineItem],
        recorded_at: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[int, AggregationResult]:
        """
        Record a sale

        Args:
            total: Transaction total (positive)
            payment_method: cash, card, ...
            items: Sold line items (positive quantities)
            recorded_at: Effective time (default: now in the reference zone)
            timeout: Aggregation deadline in seconds (default from settings)

        Returns:
            (event_id, aggregation result)
        """
        if total <= 0:
            raise SaleValidationError("Sale total must be greater than zero")
        if not payment_method or not payment_method.strip():
            raise SaleValidationError("Payment method is required")
        for item in items:
            if not item.name or not item.name.strip():
                raise SaleValidationError("Item name is required")
            if item.quantity <= 0:
                raise SaleValidationError(f"Quantity of {item.name!r} must be greater than zero")

        effective_time = recorded_at or datetime.now(self.settings.tz)
        try:
            ensure_bucketable(effective_time, self.settings.tz)
        except TimestampOutOfRange as e:
            raise SaleValidationError(f"Sale time out of range: {e}") from e

        event = SaleEvent(
            total=total,
            payment_method=payment_method.strip(),
            effective_time=effective_time,
            items=list(items),
        )
        return self._record(event, timeout)


class DeleteSaleUseCase(_SaleEvents, DeleteEventUseCase):
    """Use case: delete a recorded sale and reverse its analytics contribution"""


class SalesFeedService(_SaleEvents, EventFeedService):
    pass


def list_sales(db, limit: int = 200) -> List[dict]:
    return SalesFeedService(db).list(limit=limit)

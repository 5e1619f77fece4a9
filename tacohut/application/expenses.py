"""
Expense use cases - record, delete and list expenses
"""
from datetime import datetime
from typing import List, Optional, Tuple

from tacohut.application.recording import DeleteEventUseCase, EventFeedService, RecordEventUseCase
from tacohut.domain.errors import TimestampOutOfRange
from tacohut.domain.events import EXPENSE_DELETED, EXPENSE_RECORDED, ExpenseEvent
from tacohut.domain.period import ensure_bucketable
from tacohut.readmodels.applier import AggregationResult


class ExpenseValidationError(ValueError):
    """Invalid expense"""
    pass


def parse_amount(value) -> int:
    """
    Expense amounts arrive as integers or integer strings ("400")

    Raises:
        ExpenseValidationError: anything else
    """
    if isinstance(value, bool):
        raise ExpenseValidationError("invalid expense amount format")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ExpenseValidationError("invalid expense amount format")


class _ExpenseEvents:
    recorded_type = EXPENSE_RECORDED
    deleted_type = EXPENSE_DELETED
    key_prefix = "expense"


class RecordExpenseUseCase(_ExpenseEvents, RecordEventUseCase):
    """
    Use case: record an expense and add it to every analytics period
    """

    def execute(
        self,
        amount,
        category: str,
        description: str = "",
        payment_method: Optional[str] = None,
        time_added: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[int, AggregationResult]:
        amount = parse_amount(amount)
        if amount <= 0:
            raise ExpenseValidationError("Expense amount must be greater than zero")
        if not category or not category.strip():
            raise ExpenseValidationError("Expense category is required")

        effective_time = time_added or datetime.now(self.settings.tz)
        try:
            ensure_bucketable(effective_time, self.settings.tz)
        except TimestampOutOfRange as e:
            raise ExpenseValidationError(f"Expense time out of range: {e}") from e

        event = ExpenseEvent(
            amount=amount,
            category=category.strip(),
            effective_time=effective_time,
            description=description,
            payment_method=payment_method,
        )
        return self._record(event, timeout)


class DeleteExpenseUseCase(_ExpenseEvents, DeleteEventUseCase):
    """Use case: delete a recorded expense and reverse its analytics contribution"""


class ExpensesFeedService(_ExpenseEvents, EventFeedService):
    pass


def list_expenses(db, limit: int = 200) -> List[dict]:
    return ExpensesFeedService(db).list(limit=limit)

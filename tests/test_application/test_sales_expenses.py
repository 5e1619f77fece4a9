"""
Tests for recording and deleting sales and expenses
"""
import pytest
from datetime import datetime, timezone

from tacohut.application.expenses import (
    DeleteExpenseUseCase, ExpenseValidationError, RecordExpenseUseCase, list_expenses, parse_amount,
)
from tacohut.application.recording import EventAlreadyDeletedError, EventNotFoundError
from tacohut.application.sales import (
    DeleteSaleUseCase, RecordSaleUseCase, SaleValidationError, list_sales,
)
from tacohut.domain.events import EXPENSE_DELETED, SALE_RECORDED, LineItem
from tacohut.domain.period import Period, boundary
from tacohut.infrastructure.analytics.gateway import SqlAlchemyBucketGateway
from tacohut.infrastructure.db.models import EventLog

UTC = timezone.utc
WHEN = datetime(2024, 3, 15, 10, 0, tzinfo=UTC)


def _daily(db_session, when=WHEN):
    start, end = boundary(when, Period.DAILY)
    return SqlAlchemyBucketGateway(db_session).find_bucket(Period.DAILY, start, end)


def _record_sale(db_session, settings, total=1000, items=None, when=WHEN):
    return RecordSaleUseCase(db_session, settings=settings).execute(
        total=total,
        payment_method="cash",
        items=items or [LineItem("taco", 3)],
        recorded_at=when,
    )


class TestRecordSale:

    def test_appends_event_and_updates_analytics(self, db_session, settings):
        event_id, result = _record_sale(db_session, settings)

        assert result.status == "ok"
        stored = db_session.get(EventLog, event_id)
        assert stored.event_type == SALE_RECORDED
        assert stored.payload_json["total"] == 1000

        daily = _daily(db_session)
        assert daily.total_sales == 1000
        assert daily.items_sold == {"taco": 3}
        assert daily.net_profit == 1000

    @pytest.mark.parametrize("total, method, items", [
        (0, "cash", [LineItem("taco", 1)]),
        (-5, "cash", [LineItem("taco", 1)]),
        (100, " ", [LineItem("taco", 1)]),
        (100, "cash", [LineItem("", 1)]),
        (100, "cash", [LineItem("taco", 0)]),
    ])
    def test_validation(self, db_session, settings, total, method, items):
        with pytest.raises(SaleValidationError):
            RecordSaleUseCase(db_session, settings=settings).execute(
                total=total, payment_method=method, items=items, recorded_at=WHEN,
            )
        assert db_session.query(EventLog).count() == 0

    def test_sale_time_beyond_datetime_range_is_rejected(self, db_session, settings):
        with pytest.raises(SaleValidationError):
            _record_sale(db_session, settings, when=datetime(9999, 12, 31, 12, 0, tzinfo=UTC))
        assert db_session.query(EventLog).count() == 0


class TestDeleteSale:

    def test_delete_reverses_contribution(self, db_session, settings):
        keep_id, _ = _record_sale(db_session, settings, total=300, items=[LineItem("nachos", 1)])
        sale_id, _ = _record_sale(db_session, settings)

        result = DeleteSaleUseCase(db_session, settings=settings).execute(sale_id)

        assert result.status == "ok"
        daily = _daily(db_session)
        assert daily.total_sales == 300
        assert daily.items_sold == {"nachos": 1, "taco": 0}
        assert daily.transaction_count == 1
        assert daily.net_profit == 300
        assert [s["id"] for s in list_sales(db_session)] == [keep_id]

    def test_second_delete_is_rejected(self, db_session, settings):
        sale_id, _ = _record_sale(db_session, settings)
        use_case = DeleteSaleUseCase(db_session, settings=settings)
        use_case.execute(sale_id)

        with pytest.raises(EventAlreadyDeletedError):
            use_case.execute(sale_id)
        assert _daily(db_session).total_sales == 0

    def test_unknown_sale(self, db_session, settings):
        with pytest.raises(EventNotFoundError):
            DeleteSaleUseCase(db_session, settings=settings).execute(999)

    def test_expense_id_is_not_a_sale(self, db_session, settings):
        expense_id, _ = RecordExpenseUseCase(db_session, settings=settings).execute(
            amount=400, category="supplies", time_added=WHEN,
        )
        with pytest.raises(EventNotFoundError):
            DeleteSaleUseCase(db_session, settings=settings).execute(expense_id)

    def test_reversal_lands_in_original_period(self, db_session, settings):
        last_year = datetime(2023, 6, 1, 12, 0, tzinfo=UTC)
        sale_id, _ = _record_sale(db_session, settings, when=last_year)

        DeleteSaleUseCase(db_session, settings=settings).execute(sale_id)

        assert _daily(db_session, last_year).total_sales == 0
        assert _daily(db_session) is None


class TestExpenses:

    def test_string_amount_is_accepted(self, db_session, settings):
        _, result = RecordExpenseUseCase(db_session, settings=settings).execute(
            amount="400", category="supplies", description="tortillas", time_added=WHEN,
        )

        assert result.status == "ok"
        daily = _daily(db_session)
        assert daily.total_expenses == 400
        assert daily.expense_categories == {"supplies": 400}
        assert daily.net_profit == -400

    @pytest.mark.parametrize("amount", ["abc", "4.5", 4.5, True, None])
    def test_bad_amount_format(self, amount):
        with pytest.raises(ExpenseValidationError):
            parse_amount(amount)

    def test_non_positive_amount_and_missing_category(self, db_session, settings):
        use_case = RecordExpenseUseCase(db_session, settings=settings)
        with pytest.raises(ExpenseValidationError):
            use_case.execute(amount=0, category="supplies", time_added=WHEN)
        with pytest.raises(ExpenseValidationError):
            use_case.execute(amount=100, category="  ", time_added=WHEN)

    def test_delete_expense(self, db_session, settings):
        _record_sale(db_session, settings)
        expense_id, _ = RecordExpenseUseCase(db_session, settings=settings).execute(
            amount=400, category="supplies", time_added=WHEN,
        )

        result = DeleteExpenseUseCase(db_session, settings=settings).execute(expense_id)

        assert result.status == "ok"
        daily = _daily(db_session)
        assert daily.total_expenses == 0
        assert daily.net_profit == 1000
        assert list_expenses(db_session) == []
        deleted = db_session.query(EventLog).filter(EventLog.event_type == EXPENSE_DELETED).one()
        assert deleted.payload_json == {"recorded_event_id": expense_id}
        assert deleted.idempotency_key == f"expense-deleted-{expense_id}"

    def test_feed_newest_first(self, db_session, settings):
        use_case = RecordExpenseUseCase(db_session, settings=settings)
        first, _ = use_case.execute(amount=100, category="rent", time_added=WHEN)
        second, _ = use_case.execute(amount=200, category="gas", time_added=WHEN)

        feed = list_expenses(db_session)

        assert [e["id"] for e in feed] == [second, first]
        assert feed[0]["category"] == "gas"

    def test_expense_time_beyond_datetime_range_is_rejected(self, db_session, settings):
        with pytest.raises(ExpenseValidationError):
            RecordExpenseUseCase(db_session, settings=settings).execute(
                amount=100, category="rent", time_added=datetime(9999, 7, 1, tzinfo=UTC),
            )
        assert db_session.query(EventLog).count() == 0


class TestFeed:

    def test_deleted_sales_do_not_use_up_the_page(self, db_session, settings):
        ids = [_record_sale(db_session, settings)[0] for _ in range(4)]
        delete = DeleteSaleUseCase(db_session, settings=settings)
        delete.execute(ids[3])
        delete.execute(ids[2])

        assert [s["id"] for s in list_sales(db_session, limit=2)] == [ids[1], ids[0]]
        assert list_sales(db_session, limit=0) == []

    def test_expense_deletion_leaves_sales_feed_alone(self, db_session, settings):
        sale_id, _ = _record_sale(db_session, settings)
        expense_id, _ = RecordExpenseUseCase(db_session, settings=settings).execute(
            amount=100, category="rent", time_added=WHEN,
        )
        DeleteExpenseUseCase(db_session, settings=settings).execute(expense_id)

        assert [s["id"] for s in list_sales(db_session)] == [sale_id]
        assert list_expenses(db_session) == []

"""
Tests for event deltas and the aggregate record
"""
import pytest
from datetime import datetime

from tacohut.domain.aggregate import AggregateRecord, BucketDelta, delta_for
from tacohut.domain.errors import InvalidDelta
from tacohut.domain.events import ExpenseEvent, LineItem, SaleEvent, event_from_payload
from tacohut.domain.period import Period


def _sale(**overrides):
    data = dict(
        total=1000,
        payment_method="cash",
        effective_time=datetime(2024, 3, 15, 10, 0),
        items=[LineItem(name="taco", quantity=3, price=300, cost=100)],
    )
    data.update(overrides)
    return SaleEvent(**data)


def test_sale_delta_counts_items_payment_and_transaction():
    delta = delta_for(_sale(), +1)

    assert delta.numeric == {"total_sales": 1000, "transaction_count": 1}
    assert delta.maps == {"items_sold": {"taco": 3}, "payment_totals": {"cash": 1}}


def test_sale_delta_merges_repeated_items():
    sale = _sale(items=[LineItem("taco", 2), LineItem("burrito", 1), LineItem("taco", 1)])

    assert delta_for(sale, +1).maps["items_sold"] == {"taco": 3, "burrito": 1}


def test_reversal_delta_is_exact_negation():
    forward = delta_for(_sale(), +1)
    backward = delta_for(_sale(), -1)

    assert backward.numeric == {k: -v for k, v in forward.numeric.items()}
    for name, entries in forward.maps.items():
        assert backward.maps[name] == {k: -v for k, v in entries.items()}


def test_expense_delta_books_total_and_category():
    expense = ExpenseEvent(amount=400, category="supplies", effective_time=datetime(2024, 3, 15, 11))
    delta = delta_for(expense, +1)

    assert delta.numeric == {"total_expenses": 400}
    assert delta.maps == {"expense_categories": {"supplies": 400}}


def test_expense_without_category_only_touches_total():
    expense = ExpenseEvent(amount=50, category="", effective_time=datetime(2024, 3, 15, 11))

    assert delta_for(expense, -1).maps == {}
    assert delta_for(expense, -1).numeric == {"total_expenses": -50}


def test_delta_never_touches_net_profit():
    delta = delta_for(_sale(), +1)
    assert "net_profit" not in delta.numeric


@pytest.mark.parametrize("sign", [0, 2, -2, "1"])
def test_invalid_sign_is_rejected(sign):
    with pytest.raises(InvalidDelta):
        delta_for(_sale(), sign)


def test_validate_rejects_unknown_numeric_field():
    with pytest.raises(InvalidDelta):
        BucketDelta(numeric={"net_profit": 10}).validate()


def test_validate_rejects_unknown_map_and_bad_values():
    with pytest.raises(InvalidDelta):
        BucketDelta(maps={"tips": {"cash": 1}}).validate()
    with pytest.raises(InvalidDelta):
        BucketDelta(maps={"items_sold": {"": 1}}).validate()
    with pytest.raises(InvalidDelta):
        BucketDelta(numeric={"total_sales": 1.5}).validate()


def test_record_consistency_check():
    record = AggregateRecord(
        period=Period.DAILY,
        bucket_start=datetime(2024, 3, 15),
        bucket_end=datetime(2024, 3, 16),
        total_sales=1000,
        total_expenses=400,
        net_profit=1000,
    )
    assert not record.is_consistent()
    record.net_profit = record.expected_net_profit()
    assert record.is_consistent()


def test_stored_sale_payload_rebuilds_the_same_event():
    sale = _sale()
    assert event_from_payload(sale.to_payload()) == sale

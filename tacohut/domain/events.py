"""
Sale and expense events - the inbound shape the aggregation core consumes.

Events are not persisted as rows of their own: their payloads are appended to
event_log and the analytics buckets are built from them.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class EventKind(str, Enum):
    SALE = "sale"
    EXPENSE = "expense"


SALE_RECORDED = "sale_recorded"
SALE_DELETED = "sale_deleted"
EXPENSE_RECORDED = "expense_recorded"
EXPENSE_DELETED = "expense_deleted"


@dataclass(frozen=True)
class LineItem:
    """One menu item line of a sale"""
    name: str
    quantity: int
    price: int = 0
    cost: int = 0
    menu_item_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price,
            "cost": self.cost,
        }

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(
            name=data["name"],
            quantity=int(data["quantity"]),
            price=int(data.get("price", 0)),
            cost=int(data.get("cost", 0)),
            menu_item_id=data.get("menu_item_id"),
        )


@dataclass(frozen=True)
class SaleEvent:
    """
    A sales transaction

    total is the transaction's monetary total; payment_method identifies how
    it was paid (cash, card, ...).
    """
    total: int
    payment_method: str
    effective_time: datetime
    items: List[LineItem] = field(default_factory=list)

    kind = EventKind.SALE

    @property
    def amount(self) -> int:
        return self.total

    def to_payload(self) -> Dict[str, Any]:
        """Event payload for event_log (sale_recorded)"""
        return {
            "kind": self.kind.value,
            "total": self.total,
            "payment_method": self.payment_method,
            "items": [item.to_payload() for item in self.items],
            "effective_time": self.effective_time.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SaleEvent":
        return cls(
            total=int(payload["total"]),
            payment_method=payload["payment_method"],
            effective_time=datetime.fromisoformat(payload["effective_time"]),
            items=[LineItem.from_payload(i) for i in payload.get("items", [])],
        )


@dataclass(frozen=True)
class ExpenseEvent:
    """An expense entry, booked against a category"""
    amount: int
    category: str
    effective_time: datetime
    description: str = ""
    payment_method: Optional[str] = None

    kind = EventKind.EXPENSE

    def to_payload(self) -> Dict[str, Any]:
        """Event payload for event_log (expense_recorded)"""
        return {
            "kind": self.kind.value,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "payment_method": self.payment_method,
            "effective_time": self.effective_time.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ExpenseEvent":
        return cls(
            amount=int(payload["amount"]),
            category=payload.get("category") or "",
            effective_time=datetime.fromisoformat(payload["effective_time"]),
            description=payload.get("description", ""),
            payment_method=payload.get("payment_method"),
        )


def event_from_payload(payload: Dict[str, Any]):
    """Rebuild a SaleEvent or ExpenseEvent from a stored payload"""
    kind = EventKind(payload["kind"])
    if kind is EventKind.SALE:
        return SaleEvent.from_payload(payload)
    return ExpenseEvent.from_payload(payload)

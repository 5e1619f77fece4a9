"""
Sales API endpoints
"""
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tacohut.api.deps import get_db, get_settings
from tacohut.api.v1.schemas import AggregationStatus, DeletedResponse, RecordedResponse
from tacohut.application.recording import EventAlreadyDeletedError, EventNotFoundError
from tacohut.application.sales import (
    DeleteSaleUseCase, RecordSaleUseCase, SaleValidationError, list_sales,
)
from tacohut.config import Settings
from tacohut.domain.events import LineItem


router = APIRouter(prefix="/api/v1/sales", tags=["sales"])


# === Request models ===

class MenuItemRequest(BaseModel):
    menu_item_id: str | None = Field(default=None, alias="menuItemId")
    name: str
    quantity: int
    price: int = 0
    cost: int = 0


class CreateSaleRequest(BaseModel):
    items: List[MenuItemRequest] = []
    payment_method: str = Field(alias="paymentMethod")
    total: int
    recorded_at: datetime | None = Field(default=None, alias="recordedAt")


# === Endpoints ===

@router.post("", response_model=RecordedResponse)
def create_sale(
    req: CreateSaleRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Record a sale and update the analytics"""
    use_case = RecordSaleUseCase(db, settings=settings)
    try:
        event_id, result = use_case.execute(
            total=req.total,
            payment_method=req.payment_method,
            items=[
                LineItem(
                    name=i.name,
                    quantity=i.quantity,
                    price=i.price,
                    cost=i.cost,
                    menu_item_id=i.menu_item_id,
                )
                for i in req.items
            ],
            recorded_at=req.recorded_at,
        )
    except SaleValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return RecordedResponse(event_id=event_id, analytics=AggregationStatus.from_result(result))


@router.get("")
def get_sales(limit: int = 200, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Recorded sales, newest first"""
    return {"status": "success", "data": list_sales(db, limit=limit)}


@router.delete("/{event_id}", response_model=DeletedResponse)
def delete_sale(
    event_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Delete a sale and reverse it in the analytics"""
    use_case = DeleteSaleUseCase(db, settings=settings)
    try:
        result = use_case.execute(event_id)
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EventAlreadyDeletedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return DeletedResponse(event_id=event_id, analytics=AggregationStatus.from_result(result))

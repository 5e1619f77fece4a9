"""
Expenses API endpoints
"""
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tacohut.api.deps import get_db, get_settings
from tacohut.api.v1.schemas import AggregationStatus, DeletedResponse, RecordedResponse
from tacohut.application.expenses import (
    DeleteExpenseUseCase, ExpenseValidationError, RecordExpenseUseCase, list_expenses,
)
from tacohut.application.recording import EventAlreadyDeletedError, EventNotFoundError
from tacohut.config import Settings


router = APIRouter(prefix="/api/v1/expenses", tags=["expenses"])


class CreateExpenseRequest(BaseModel):
    amount: int | str  # integer or integer string, e.g. "400"
    category: str
    description: str = ""
    payment_method: str | None = Field(default=None, alias="paymentMethod")
    time_added: datetime | None = Field(default=None, alias="timeAdded")


@router.post("", response_model=RecordedResponse)
def create_expense(
    req: CreateExpenseRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Record an expense and update the analytics"""
    use_case = RecordExpenseUseCase(db, settings=settings)
    try:
        event_id, result = use_case.execute(
            amount=req.amount,
            category=req.category,
            description=req.description,
            payment_method=req.payment_method,
            time_added=req.time_added,
        )
    except ExpenseValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return RecordedResponse(event_id=event_id, analytics=AggregationStatus.from_result(result))


@router.get("")
def get_expenses(limit: int = 200, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Recorded expenses, newest first"""
    return {"status": "success", "data": list_expenses(db, limit=limit)}


@router.delete("/{event_id}", response_model=DeletedResponse)
def delete_expense(
    event_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Delete an expense and reverse it in the analytics"""
    use_case = DeleteExpenseUseCase(db, settings=settings)
    try:
        result = use_case.execute(event_id)
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EventAlreadyDeletedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return DeletedResponse(event_id=event_id, analytics=AggregationStatus.from_result(result))

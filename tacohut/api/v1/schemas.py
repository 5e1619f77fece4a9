"""
Shared response models
"""
from typing import Dict, List

from pydantic import BaseModel

from tacohut.readmodels.applier import AggregationResult


class AggregationStatus(BaseModel):
    status: str  # ok / partial / failed
    applied: List[str]
    created: List[str]
    errors: Dict[str, str]
    stale: Dict[str, str] = {}  # applied, net_profit not recalculated

    @classmethod
    def from_result(cls, result: AggregationResult) -> "AggregationStatus":
        return cls(
            status=result.status,
            applied=[p.value for p in result.applied],
            created=[p.value for p in result.created],
            errors=result.errors(),
            stale=result.stale_errors(),
        )


class RecordedResponse(BaseModel):
    event_id: int
    analytics: AggregationStatus


class DeletedResponse(BaseModel):
    event_id: int
    status: str = "deleted"
    analytics: AggregationStatus

"""
Event Log Repository - system of record for raw sales and expenses
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from tacohut.infrastructure.db.models import EventLog


class EventLogRepository:
    """
    Repository for event_log
    """

    def __init__(self, db: Session):
        self.db = db

    def append_event(
        self,
        event_type: str,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
    ) -> int:
        """
        Append an event to the log

        Args:
            event_type: Event type (e.g. "sale_recorded")
            payload: Event data (stored as JSON)
            occurred_at: When it happened (default: now, UTC)
            idempotency_key: Unique key guarding against double appends

        Returns:
            event_id: ID of the new event

        Raises:
            IntegrityError: if idempotency_key already exists (raised on flush)

        Example:
            >>> repo = EventLogRepository(db)
            >>> event_id = repo.append_event(
            ...     event_type="sale_deleted",
            ...     payload={"sale_event_id": 12},
            ...     idempotency_key="sale-deleted-12"
            ... )
        """
        if occurred_at is None:
            occurred_at = datetime.now(timezone.utc)

        event = EventLog(
            event_type=event_type,
            payload_json=payload,
            occurred_at=occurred_at,
            idempotency_key=idempotency_key,
        )

        self.db.add(event)
        self.db.flush()  # assign the ID without committing

        return event.id

    def get_event(self, event_id: int) -> Optional[EventLog]:
        """
        Get an event by ID

        Returns:
            EventLog or None if not found
        """
        return self.db.query(EventLog).filter(EventLog.id == event_id).first()

    def has_key(self, idempotency_key: str) -> bool:
        return (
            self.db.query(EventLog.id)
            .filter(EventLog.idempotency_key == idempotency_key)
            .first()
        ) is not None

    def list_events(
        self,
        event_types: List[str],
        limit: int = 200,
        offset: int = 0,
        deleted_type: Optional[str] = None,
    ) -> List[EventLog]:
        """
        Events of the given types, newest first

        Args:
            deleted_type: When given, skip events that a later event of this
                type retracted (its payload names them in "recorded_event_id")
        """
        query = self.db.query(EventLog).filter(EventLog.event_type.in_(event_types))
        if deleted_type is not None:
            deletion = aliased(EventLog)
            retracted_ids = select(
                deletion.payload_json["recorded_event_id"].as_integer()
            ).where(deletion.event_type == deleted_type)
            query = query.filter(EventLog.id.not_in(retracted_ids))

        return (
            query
            .order_by(EventLog.occurred_at.desc(), EventLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )


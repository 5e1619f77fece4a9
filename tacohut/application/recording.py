"""
Shared flow for recording and deleting raw events.

Recording appends the raw event to event_log, commits it, then fans it out
into the analytics buckets. Deleting appends a *_deleted event (its
idempotency key makes a second delete fail) and reverses the original
contribution at the original effective time.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tacohut.application.analytics import build_applier
from tacohut.config import Settings, get_settings
from tacohut.domain.events import event_from_payload
from tacohut.infrastructure.eventlog.repository import EventLogRepository
from tacohut.readmodels.applier import APPLY, REVERSE, AggregationResult, EventApplier

logger = logging.getLogger(__name__)


class EventNotFoundError(LookupError):
    """No recorded event with this ID"""


class EventAlreadyDeletedError(ValueError):
    """The recorded event was deleted before"""


class _EventUseCase:
    recorded_type: str
    deleted_type: str
    key_prefix: str

    def __init__(
        self,
        db: Session,
        applier: Optional[EventApplier] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.event_repo = EventLogRepository(db)
        self.applier = applier or build_applier(db, self.settings)

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.settings.AGGREGATION_TIMEOUT_SECONDS if timeout is None else timeout

    def _deleted_key(self, event_id: int) -> str:
        return f"{self.key_prefix}-deleted-{event_id}"


class RecordEventUseCase(_EventUseCase):

    def _record(self, event, timeout: Optional[float]) -> Tuple[int, AggregationResult]:
        event_id = self.event_repo.append_event(
            event_type=self.recorded_type,
            payload=event.to_payload(),
            occurred_at=event.effective_time,
        )
        self.db.commit()
        logger.info("Recorded %s #%d", self.recorded_type, event_id)

        result = self.applier.apply(event, APPLY, timeout=self._timeout(timeout))
        if not result.ok:
            logger.error("Analytics update failed for %s #%d: %s", self.recorded_type, event_id, result.errors())
        elif result.stale:
            logger.warning("Stale net profit after %s #%d: %s", self.recorded_type, event_id, result.stale_errors())
        return event_id, result


class DeleteEventUseCase(_EventUseCase):

    def execute(self, event_id: int, timeout: Optional[float] = None) -> AggregationResult:
        """
        Delete a recorded event and retract it from the analytics

        Raises:
            EventNotFoundError: no recorded event of this kind with this ID
            EventAlreadyDeletedError: deleted before
        """
        recorded = self.event_repo.get_event(event_id)
        if recorded is None or recorded.event_type != self.recorded_type:
            raise EventNotFoundError(f"{self.recorded_type} #{event_id} not found")

        key = self._deleted_key(event_id)
        if self.event_repo.has_key(key):
            raise EventAlreadyDeletedError(f"{self.recorded_type} #{event_id} already deleted")

        try:
            self.event_repo.append_event(
                event_type=self.deleted_type,
                payload={"recorded_event_id": event_id},
                idempotency_key=key,
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise EventAlreadyDeletedError(f"{self.recorded_type} #{event_id} already deleted") from exc

        event = event_from_payload(recorded.payload_json)
        result = self.applier.apply(event, REVERSE, timeout=self._timeout(timeout))
        if not result.ok:
            logger.error("Analytics reversal failed for %s #%d: %s", self.recorded_type, event_id, result.errors())
        elif result.stale:
            logger.warning("Stale net profit after deleting %s #%d: %s", self.recorded_type, event_id, result.stale_errors())
        return result


class EventFeedService(_EventUseCase):
    """Recorded events of one kind that were not deleted, newest first"""

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def list(self, limit: int = 200, offset: int = 0) -> List[Dict[str, Any]]:
        events = self.event_repo.list_events(
            [self.recorded_type], limit=limit, offset=offset, deleted_type=self.deleted_type,
        )
        return [{"id": event.id, **event.payload_json} for event in events]

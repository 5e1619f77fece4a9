"""
SQLAlchemy implementation of the aggregate store gateway.

Each operation is one short transaction on the caller's session:
- totals are incremented server-side (UPDATE ... SET col = col + :delta),
- map keys are upserted (INSERT ... ON CONFLICT DO UPDATE SET value = value + excluded.value),
- bucket creation is INSERT ... ON CONFLICT DO NOTHING RETURNING id.
Nothing is read, modified in Python and written back.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tacohut.domain.aggregate import AggregateRecord, BucketDelta, MAP_FIELDS
from tacohut.domain.errors import BucketNotFound, DuplicateKey, StoreUnavailable
from tacohut.domain.period import Period
from tacohut.infrastructure.db.models import AnalyticsBucket, AnalyticsBucketEntry

logger = logging.getLogger(__name__)

_buckets = AnalyticsBucket.__table__
_entries = AnalyticsBucketEntry.__table__

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _utc(dt: datetime) -> datetime:
    """Stored form: aware UTC (SQLite keeps the UTC wall clock)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SqlAlchemyBucketGateway:
    """
    Bucket gateway on top of a SQLAlchemy session (PostgreSQL or SQLite)

    Example:
        >>> gateway = SqlAlchemyBucketGateway(db)
        >>> bucket_id = gateway.insert_bucket(AggregateRecord(Period.DAILY, start, end))
        >>> gateway.apply_delta(bucket_id, BucketDelta(numeric={"total_sales": 1000}))
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = _utc_now):
        self.db = db
        self.clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_bucket(self, period: Period, start: datetime, end: datetime) -> Optional[AggregateRecord]:
        period = Period.parse(period)
        row = self._run(
            lambda: self.db.query(AnalyticsBucket)
            .filter(
                AnalyticsBucket.period == period.value,
                AnalyticsBucket.bucket_start == _utc(start),
                AnalyticsBucket.bucket_end == _utc(end),
            )
            .populate_existing()
            .first()
        )
        return self._to_record(row) if row else None

    def get_bucket(self, bucket_id: int) -> Optional[AggregateRecord]:
        row = self._run(
            lambda: self.db.query(AnalyticsBucket)
            .filter(AnalyticsBucket.id == bucket_id)
            .populate_existing()
            .first()
        )
        return self._to_record(row) if row else None

    def list_buckets(self, period: Period, limit: Optional[int] = None) -> List[AggregateRecord]:
        """Buckets of one period, newest bucket first"""
        period = Period.parse(period)

        def query():
            q = (
                self.db.query(AnalyticsBucket)
                .filter(AnalyticsBucket.period == period.value)
                .order_by(AnalyticsBucket.bucket_start.desc())
                .populate_existing()
            )
            if limit is not None:
                q = q.limit(limit)
            return q.all()

        return [self._to_record(row) for row in self._run(query)]

    def find_inconsistent(self) -> List[int]:
        """IDs of buckets whose net_profit drifted from total_sales - total_expenses"""
        stmt = select(_buckets.c.id).where(
            _buckets.c.net_profit != _buckets.c.total_sales - _buckets.c.total_expenses
        ).order_by(_buckets.c.id)
        return list(self._run(lambda: self.db.execute(stmt).scalars().all()))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_bucket(self, record: AggregateRecord) -> int:
        insert = self._insert()
        now = record.last_updated or self.clock()
        stmt = (
            insert(_buckets)
            .values(
                period=Period.parse(record.period).value,
                bucket_start=_utc(record.bucket_start),
                bucket_end=_utc(record.bucket_end),
                total_sales=record.total_sales,
                total_expenses=record.total_expenses,
                net_profit=record.net_profit,
                transaction_count=record.transaction_count,
                last_updated=_utc(now),
            )
            .on_conflict_do_nothing(index_elements=["period", "bucket_start", "bucket_end"])
            .returning(_buckets.c.id)
        )
        try:
            bucket_id = self.db.execute(stmt).scalar_one_or_none()
            if bucket_id is None:
                self.db.rollback()
                raise DuplicateKey(
                    f"{record.period.value} bucket {record.bucket_start.isoformat()} already exists"
                )
            for map_name in sorted(MAP_FIELDS):
                for key, value in getattr(record, map_name).items():
                    self._upsert_entry(insert, bucket_id, map_name, key, value)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateKey(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable(f"error creating bucket: {exc}") from exc

        return bucket_id

    def apply_delta(self, bucket_id: int, delta: BucketDelta, updated_at: Optional[datetime] = None) -> None:
        delta.validate()
        insert = self._insert()
        values = {
            name: _buckets.c[name] + amount
            for name, amount in delta.numeric.items()
        }
        values["last_updated"] = _utc(updated_at or self.clock())

        try:
            result = self.db.execute(
                update(_buckets).where(_buckets.c.id == bucket_id).values(**values)
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise BucketNotFound(f"bucket #{bucket_id} not found")
            for map_name, entries in delta.maps.items():
                for key, amount in entries.items():
                    self._upsert_entry(insert, bucket_id, map_name, key, amount)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable(f"error applying delta to bucket #{bucket_id}: {exc}") from exc

    def set_derived(self, bucket_id: int, net_profit: int, last_updated: datetime) -> None:
        try:
            result = self.db.execute(
                update(_buckets)
                .where(_buckets.c.id == bucket_id)
                .values(net_profit=net_profit, last_updated=_utc(last_updated))
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise BucketNotFound(f"bucket #{bucket_id} not found")
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable(f"error updating derived fields of bucket #{bucket_id}: {exc}") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERTS[dialect]
        except KeyError:
            raise StoreUnavailable(f"unsupported database dialect: {dialect}") from None

    def _upsert_entry(self, insert, bucket_id: int, map_name: str, key: str, amount: int) -> None:
        stmt = insert(_entries).values(
            bucket_id=bucket_id,
            map_name=map_name,
            entry_key=key,
            value=amount,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["bucket_id", "map_name", "entry_key"],
            set_={"value": _entries.c.value + stmt.excluded.value},
        )
        self.db.execute(stmt)

    def _run(self, fn):
        try:
            return fn()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable(f"error reading analytics: {exc}") from exc

    @staticmethod
    def _to_record(row: AnalyticsBucket) -> AggregateRecord:
        maps: Dict[str, Dict[str, int]] = {name: {} for name in MAP_FIELDS}
        for entry in row.entries:
            maps.setdefault(entry.map_name, {})[entry.entry_key] = entry.value

        return AggregateRecord(
            id=row.id,
            period=Period(row.period),
            bucket_start=_utc(row.bucket_start),
            bucket_end=_utc(row.bucket_end),
            items_sold=maps["items_sold"],
            payment_totals=maps["payment_totals"],
            expense_categories=maps["expense_categories"],
            total_sales=row.total_sales,
            total_expenses=row.total_expenses,
            net_profit=row.net_profit,
            transaction_count=row.transaction_count,
            last_updated=_utc(row.last_updated),
        )

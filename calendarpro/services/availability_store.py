"""Persistence for per-day availability.

Callers always submit the complete desired state for a date. The store
replaces the day's rows as one transaction, so an empty selection clears the
day and a half-applied delete is never visible.
"""

import logging
import zlib
from collections.abc import Iterable
from datetime import date, time
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendarpro.core.errors import StorageUnavailable, ValidationError
from calendarpro.core.time_slots import AvailabilityDay, Slot, parse_slot_start, slot_end
from calendarpro.models.availability import UserAvailability

logger = logging.getLogger(__name__)


class AvailabilityStore(Protocol):
    def list_availability(self, user_id: str, start_date: date, end_date: date) -> AvailabilityDay:
        ...

    def replace_availability(self, user_id: str, day: date, starts: Iterable[time | str]) -> tuple[Slot, ...]:
        ...


def _lock_key(user_id: str, day: date) -> int:
    # Stable across processes, fits a signed bigint.
    return zlib.crc32(f'{user_id}:{day.isoformat()}'.encode('utf-8'))


class SqlAlchemyAvailabilityStore:
    def __init__(self, db: Session):
        self.db = db

    def list_availability(self, user_id: str, start_date: date, end_date: date) -> AvailabilityDay:
        if start_date > end_date:
            raise ValidationError('start_date must be on or before end_date.')

        try:
            rows = self.db.query(UserAvailability.date, UserAvailability.start_time).filter(
                UserAvailability.user_id == user_id,
                UserAvailability.date >= start_date,
                UserAvailability.date <= end_date,
                UserAvailability.is_available.is_(True),
            ).all()
        except SQLAlchemyError as exc:
            logger.exception('Availability lookup failed for user %s', user_id)
            raise StorageUnavailable('Failed to fetch availability.') from exc

        grouped: dict[date, set[Slot]] = {}
        for row_date, row_start in rows:
            try:
                start = parse_slot_start(row_start)
            except ValidationError:
                logger.warning('Skipping out-of-catalog slot %s on %s for user %s', row_start, row_date, user_id)
                continue
            grouped.setdefault(row_date, set()).add(Slot(date=row_date, start=start))

        return {day: tuple(sorted(slots)) for day, slots in sorted(grouped.items())}

    def replace_availability(self, user_id: str, day: date, starts: Iterable[time | str]) -> tuple[Slot, ...]:
        normalized = sorted({parse_slot_start(start) for start in starts})

        try:
            self._serialize_day(user_id, day)
            self.db.query(UserAvailability).filter(
                UserAvailability.user_id == user_id,
                UserAvailability.date == day,
            ).delete(synchronize_session=False)

            self.db.add_all(
                UserAvailability(
                    user_id=user_id,
                    date=day,
                    start_time=start,
                    end_time=slot_end(start),
                    is_available=True,
                )
                for start in normalized
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Availability save failed for user %s on %s', user_id, day)
            raise StorageUnavailable('Failed to save availability.') from exc

        logger.info('Saved %d slot(s) for user %s on %s', len(normalized), user_id, day)
        return tuple(Slot(date=day, start=start) for start in normalized)

    def _serialize_day(self, user_id: str, day: date) -> None:
        # SQLite serializes writers on its own; Postgres needs an explicit lock
        # so overlapping replaces for the same day cannot interleave.
        if self.db.get_bind().dialect.name != 'postgresql':
            return
        self.db.execute(text('SELECT pg_advisory_xact_lock(:key)'), {'key': _lock_key(user_id, day)})

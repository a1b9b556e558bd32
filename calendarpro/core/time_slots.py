"""Hourly availability slots and the in-memory selection for one user and day.

The catalog is fixed: sixteen one-hour slots starting 06:00 through 21:00.
Every start accepted anywhere in the service must be a member of it.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from calendarpro.core.errors import ValidationError

FIRST_SLOT_HOUR = 6
LAST_SLOT_HOUR = 21
SLOT_DURATION = timedelta(hours=1)

_CATALOG: tuple[time, ...] = tuple(time(hour, 0) for hour in range(FIRST_SLOT_HOUR, LAST_SLOT_HOUR + 1))
_CATALOG_SET = frozenset(_CATALOG)


def all_slots() -> tuple[time, ...]:
    return _CATALOG


def slot_end(start: time) -> time:
    end = datetime.combine(date.min, start) + SLOT_DURATION
    return end.time()


def parse_slot_start(value: time | str) -> time:
    """Return the catalog start for ``value`` or raise ``ValidationError``.

    Strings may be ``HH:MM`` or ``HH:MM:SS`` as stored by Postgres ``TIME`` columns.
    """
    if isinstance(value, time):
        candidate = value.replace(tzinfo=None)
    elif isinstance(value, str):
        try:
            candidate = time.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f'Invalid time slot: {value!r}.') from exc
    else:
        raise ValidationError(f'Invalid time slot: {value!r}.')

    if candidate not in _CATALOG_SET:
        raise ValidationError(f'{candidate.strftime("%H:%M")} is not a bookable time slot.')
    return candidate


def format_slot(start: time) -> str:
    return start.strftime('%H:%M')


@dataclass(frozen=True, order=True)
class Slot:
    date: date
    start: time

    @property
    def end(self) -> time:
        return slot_end(self.start)


AvailabilityDay = dict[date, tuple[Slot, ...]]


class AvailabilitySet:
    """Selected slot starts for one (user, date) before they are saved."""

    def __init__(self, starts: Iterable[time | str] = ()):
        self._starts: set[time] = {parse_slot_start(start) for start in starts}

    @classmethod
    def from_slots(cls, slots: Iterable[Slot]) -> 'AvailabilitySet':
        return cls(slot.start for slot in slots)

    @property
    def starts(self) -> tuple[time, ...]:
        return tuple(sorted(self._starts))

    def toggle(self, start: time | str) -> None:
        start = parse_slot_start(start)
        if start in self._starts:
            self._starts.remove(start)
        else:
            self._starts.add(start)

    def select_all(self) -> None:
        self._starts = set(_CATALOG)

    def clear_all(self) -> None:
        self._starts = set()

    def diff_against(self, prior: 'AvailabilitySet') -> tuple[frozenset[time], frozenset[time]]:
        current = frozenset(self._starts)
        previous = frozenset(prior._starts)
        return current - previous, previous - current

    def to_slots(self, day: date) -> tuple[Slot, ...]:
        return tuple(Slot(date=day, start=start) for start in self.starts)

    def copy(self) -> 'AvailabilitySet':
        return AvailabilitySet(self._starts)

    def __contains__(self, start: object) -> bool:
        return start in self._starts

    def __len__(self) -> int:
        return len(self._starts)

    def __iter__(self):
        return iter(self.starts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AvailabilitySet):
            return NotImplemented
        return self._starts == other._starts

    def __repr__(self) -> str:
        return f'AvailabilitySet({[format_slot(start) for start in self.starts]!r})'

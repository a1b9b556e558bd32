from datetime import date, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from calendarpro.auth.dependencies import Identity, get_current_identity
from calendarpro.core.errors import Forbidden, ValidationError
from calendarpro.core.time_slots import AvailabilityDay, AvailabilitySet, Slot, all_slots, format_slot, slot_end
from calendarpro.database import get_db
from calendarpro.routes.common import ensure_database_ready
from calendarpro.services.access import can_view_availability
from calendarpro.services.availability_store import AvailabilityStore, SqlAlchemyAvailabilityStore

router = APIRouter(tags=['availability'])

MAX_RANGE_DAYS = 62


class SlotResponse(BaseModel):
    start: str
    end: str

    @classmethod
    def from_slot(cls, slot: Slot) -> 'SlotResponse':
        return cls(start=format_slot(slot.start), end=format_slot(slot.end))


class SaveAvailabilityRequest(BaseModel):
    time_slots: list[str]

    @field_validator('time_slots')
    @classmethod
    def strip_time_slots(cls, value: list[str]) -> list[str]:
        return [slot.strip() for slot in value]


class SaveAvailabilityResponse(BaseModel):
    date: date
    time_slots: list[SlotResponse]
    added: list[str]
    removed: list[str]


class MemberAvailabilityRequest(BaseModel):
    member_id: str
    start_date: date
    end_date: date

    @field_validator('member_id')
    @classmethod
    def validate_member_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Member ID is required.')
        return normalized


def get_availability_store(db: Session = Depends(get_db)) -> AvailabilityStore:
    ensure_database_ready(db)
    return SqlAlchemyAvailabilityStore(db)


def serialize_days(days: AvailabilityDay) -> dict[str, list[SlotResponse]]:
    return {day.isoformat(): [SlotResponse.from_slot(slot) for slot in slots] for day, slots in days.items()}


def validate_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValidationError('start_date must be on or before end_date.')
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        raise ValidationError(f'Date range cannot exceed {MAX_RANGE_DAYS} days.')


def _sorted_labels(starts: frozenset[time]) -> list[str]:
    return [format_slot(start) for start in sorted(starts)]


@router.get('/time-slots', response_model=list[SlotResponse])
def list_time_slots():
    return [SlotResponse(start=format_slot(start), end=format_slot(slot_end(start))) for start in all_slots()]


@router.get('', response_model=dict[str, list[SlotResponse]])
def list_my_availability(
    start_date: date = Query(...),
    end_date: date = Query(...),
    identity: Identity = Depends(get_current_identity),
    store: AvailabilityStore = Depends(get_availability_store),
):
    validate_range(start_date, end_date)
    return serialize_days(store.list_availability(identity.id, start_date, end_date))


@router.put('/{day}', response_model=SaveAvailabilityResponse)
def save_day_availability(
    day: date,
    data: SaveAvailabilityRequest,
    identity: Identity = Depends(get_current_identity),
    store: AvailabilityStore = Depends(get_availability_store),
):
    selection = AvailabilitySet(data.time_slots)
    prior = AvailabilitySet.from_slots(store.list_availability(identity.id, day, day).get(day, ()))
    to_add, to_remove = selection.diff_against(prior)

    saved = store.replace_availability(identity.id, day, selection.starts)

    return SaveAvailabilityResponse(
        date=day,
        time_slots=[SlotResponse.from_slot(slot) for slot in saved],
        added=_sorted_labels(to_add),
        removed=_sorted_labels(to_remove),
    )


@router.post('/member', response_model=dict[str, list[SlotResponse]], status_code=status.HTTP_200_OK)
def get_member_availability(
    data: MemberAvailabilityRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    store: AvailabilityStore = Depends(get_availability_store),
):
    validate_range(data.start_date, data.end_date)

    if not can_view_availability(db, identity.id, data.member_id):
        raise Forbidden('Permission denied')

    return serialize_days(store.list_availability(data.member_id, data.start_date, data.end_date))

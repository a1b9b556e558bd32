from datetime import date, datetime, time, timedelta

import pytest

from calendarpro.core.errors import ValidationError
from calendarpro.core.time_slots import AvailabilitySet, Slot, all_slots, parse_slot_start, slot_end


def test_catalog_has_sixteen_hourly_slots_from_six_to_twenty_two() -> None:
    slots = all_slots()

    assert len(slots) == 16
    assert slots[0] == time(6, 0)
    assert slots[-1] == time(21, 0)
    assert slot_end(slots[-1]) == time(22, 0)
    assert list(slots) == sorted(slots)


def test_every_slot_ends_one_hour_after_it_starts() -> None:
    for start in all_slots():
        start_dt = datetime.combine(date(2025, 3, 10), start)
        end_dt = datetime.combine(date(2025, 3, 10), slot_end(start))
        assert end_dt - start_dt == timedelta(hours=1)


def test_slot_end_is_derived_from_start() -> None:
    slot = Slot(date=date(2025, 3, 10), start=time(14, 0))

    assert slot.end == time(15, 0)


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('09:00', time(9, 0)),
        (' 21:00 ', time(21, 0)),
        ('06:00:00', time(6, 0)),
        (time(12, 0), time(12, 0)),
    ],
)
def test_parse_slot_start_accepts_catalog_values(value, expected) -> None:
    assert parse_slot_start(value) == expected


@pytest.mark.parametrize('value', ['05:00', '22:00', '09:30', 'noon', '', time(23, 0), 9])
def test_parse_slot_start_rejects_values_outside_catalog(value) -> None:
    with pytest.raises(ValidationError):
        parse_slot_start(value)


def test_toggle_keeps_starts_sorted() -> None:
    selection = AvailabilitySet()

    selection.toggle('14:00')
    selection.toggle('09:00')
    selection.toggle('21:00')

    assert selection.starts == (time(9, 0), time(14, 0), time(21, 0))


def test_toggle_rejects_out_of_catalog_start() -> None:
    selection = AvailabilitySet(['09:00'])

    with pytest.raises(ValidationError):
        selection.toggle('22:00')

    assert selection.starts == (time(9, 0),)


@pytest.mark.parametrize('start', all_slots())
def test_toggle_twice_restores_original_set(start: time) -> None:
    selection = AvailabilitySet(['06:00', '10:00', '15:00'])
    original = selection.copy()

    selection.toggle(start)
    selection.toggle(start)

    assert selection == original


def test_select_all_then_clear_all_yields_empty_set() -> None:
    selection = AvailabilitySet(['08:00'])

    selection.select_all()
    selection.clear_all()

    assert len(selection) == 0
    assert selection.starts == ()


def test_clear_all_then_select_all_yields_full_catalog() -> None:
    selection = AvailabilitySet(['08:00', '19:00'])

    selection.clear_all()
    selection.select_all()

    assert selection.starts == all_slots()


def test_diff_against_reports_additions_and_removals() -> None:
    prior = AvailabilitySet(['09:00', '10:00', '11:00'])
    current = AvailabilitySet(['10:00', '14:00'])

    to_add, to_remove = current.diff_against(prior)

    assert to_add == {time(14, 0)}
    assert to_remove == {time(9, 0), time(11, 0)}


def test_applying_diff_to_prior_reproduces_current() -> None:
    prior = AvailabilitySet(['06:00', '07:00', '12:00', '20:00'])
    current = AvailabilitySet(['07:00', '08:00', '12:00', '21:00'])

    to_add, to_remove = current.diff_against(prior)
    rebuilt = (set(prior.starts) - to_remove) | to_add

    assert AvailabilitySet(rebuilt) == current


def test_diff_against_is_pure() -> None:
    prior = AvailabilitySet(['09:00'])
    current = AvailabilitySet(['10:00'])

    current.diff_against(prior)

    assert prior.starts == (time(9, 0),)
    assert current.starts == (time(10, 0),)


def test_to_slots_orders_slots_by_start() -> None:
    selection = AvailabilitySet(['14:00', '09:00'])

    slots = selection.to_slots(date(2025, 3, 10))

    assert [(slot.start, slot.end) for slot in slots] == [(time(9, 0), time(10, 0)), (time(14, 0), time(15, 0))]

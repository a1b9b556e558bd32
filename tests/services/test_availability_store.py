import threading
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from calendarpro.core.errors import StorageUnavailable, ValidationError
from calendarpro.core.time_slots import AvailabilitySet, Slot, format_slot
from calendarpro.database import Base
from calendarpro.models.availability import UserAvailability
from calendarpro.services.availability_store import SqlAlchemyAvailabilityStore, _lock_key

DAY = date(2025, 3, 10)


def test_toggle_save_then_list_returns_ordered_slots(db) -> None:
    store = SqlAlchemyAvailabilityStore(db)
    selection = AvailabilitySet()
    selection.toggle('14:00')
    selection.toggle('09:00')

    store.replace_availability('user-a', DAY, selection.starts)
    availability = store.list_availability('user-a', date(2025, 3, 1), date(2025, 3, 31))

    assert availability == {
        DAY: (Slot(DAY, time(9, 0)), Slot(DAY, time(14, 0))),
    }
    assert [(slot.start, slot.end) for slot in availability[DAY]] == [
        (time(9, 0), time(10, 0)),
        (time(14, 0), time(15, 0)),
    ]


def test_replace_with_empty_set_clears_the_day(db) -> None:
    store = SqlAlchemyAvailabilityStore(db)
    store.replace_availability('user-a', DAY, ['09:00', '10:00'])

    store.replace_availability('user-a', DAY, [])

    assert store.list_availability('user-a', DAY, DAY) == {}
    assert db.query(UserAvailability).count() == 0


def test_replace_supersedes_previous_slots_for_the_same_day_only(db) -> None:
    store = SqlAlchemyAvailabilityStore(db)
    other_day = date(2025, 3, 11)
    store.replace_availability('user-a', DAY, ['09:00', '10:00'])
    store.replace_availability('user-a', other_day, ['16:00'])

    store.replace_availability('user-a', DAY, ['11:00'])

    availability = store.list_availability('user-a', DAY, other_day)
    assert [slot.start for slot in availability[DAY]] == [time(11, 0)]
    assert [slot.start for slot in availability[other_day]] == [time(16, 0)]


def test_replace_writes_end_time_one_hour_after_start(db) -> None:
    SqlAlchemyAvailabilityStore(db).replace_availability('user-a', DAY, ['21:00'])

    row = db.query(UserAvailability).one()
    assert row.start_time == time(21, 0)
    assert row.end_time == time(22, 0)
    assert row.is_available is True


def test_replace_rejects_out_of_catalog_slot_before_writing(db) -> None:
    store = SqlAlchemyAvailabilityStore(db)
    store.replace_availability('user-a', DAY, ['09:00'])

    with pytest.raises(ValidationError):
        store.replace_availability('user-a', DAY, ['10:00', '22:00'])

    assert [slot.start for slot in store.list_availability('user-a', DAY, DAY)[DAY]] == [time(9, 0)]


def test_list_is_scoped_to_user_range_and_available_rows(db) -> None:
    store = SqlAlchemyAvailabilityStore(db)
    store.replace_availability('user-a', DAY, ['09:00'])
    store.replace_availability('user-b', DAY, ['10:00'])
    store.replace_availability('user-a', date(2025, 4, 1), ['11:00'])
    db.add(UserAvailability(user_id='user-a', date=DAY, start_time=time(12, 0), end_time=time(13, 0), is_available=False))
    db.commit()

    availability = store.list_availability('user-a', date(2025, 3, 10), date(2025, 3, 31))

    assert availability == {DAY: (Slot(DAY, time(9, 0)),)}


def test_list_range_is_inclusive(db) -> None:
    store = SqlAlchemyAvailabilityStore(db)
    store.replace_availability('user-a', date(2025, 3, 1), ['06:00'])
    store.replace_availability('user-a', date(2025, 3, 31), ['21:00'])

    availability = store.list_availability('user-a', date(2025, 3, 1), date(2025, 3, 31))

    assert list(availability) == [date(2025, 3, 1), date(2025, 3, 31)]


def test_list_rejects_inverted_range(db) -> None:
    with pytest.raises(ValidationError):
        SqlAlchemyAvailabilityStore(db).list_availability('user-a', date(2025, 3, 2), date(2025, 3, 1))


def test_list_skips_rows_outside_catalog(db) -> None:
    db.add(UserAvailability(user_id='user-a', date=DAY, start_time=time(9, 30), end_time=time(10, 30), is_available=True))
    db.add(UserAvailability(user_id='user-a', date=DAY, start_time=time(8, 0), end_time=time(9, 0), is_available=True))
    db.commit()

    availability = SqlAlchemyAvailabilityStore(db).list_availability('user-a', DAY, DAY)

    assert availability == {DAY: (Slot(DAY, time(8, 0)),)}


def test_failed_insert_rolls_back_the_delete(db, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SqlAlchemyAvailabilityStore(db)
    store.replace_availability('user-a', DAY, ['09:00', '10:00'])

    def failing_commit():
        raise OperationalError('COMMIT', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'commit', failing_commit)

    with pytest.raises(StorageUnavailable):
        store.replace_availability('user-a', DAY, ['15:00'])

    monkeypatch.undo()
    starts = [slot.start for slot in store.list_availability('user-a', DAY, DAY)[DAY]]
    assert starts == [time(9, 0), time(10, 0)]


def test_list_surfaces_storage_failures(db, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_query(*args, **kwargs):
        raise OperationalError('SELECT', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'query', failing_query)

    with pytest.raises(StorageUnavailable):
        SqlAlchemyAvailabilityStore(db).list_availability('user-a', DAY, DAY)


def test_lock_key_is_stable_per_user_and_day() -> None:
    assert _lock_key('user-a', DAY) == _lock_key('user-a', DAY)
    assert _lock_key('user-a', DAY) != _lock_key('user-a', date(2025, 3, 11))
    assert _lock_key('user-a', DAY) != _lock_key('user-b', DAY)


def test_concurrent_replaces_for_one_day_never_mix(tmp_path) -> None:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'availability.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    submitted = [
        ('06:00', '21:00'),
        ('09:00', '10:00', '11:00'),
        ('14:00',),
        tuple(f'{hour:02d}:00' for hour in range(6, 22)),
    ]
    errors: list[BaseException] = []

    def save_repeatedly(starts: tuple[str, ...]) -> None:
        session = Session()
        try:
            store = SqlAlchemyAvailabilityStore(session)
            for _ in range(15):
                store.replace_availability('user-a', DAY, starts)
        except BaseException as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=save_repeatedly, args=(starts,)) for starts in submitted]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        with Session() as session:
            final = SqlAlchemyAvailabilityStore(session).list_availability('user-a', DAY, DAY)[DAY]
            row_count = session.query(UserAvailability).filter(UserAvailability.user_id == 'user-a').count()

        final_starts = tuple(format_slot(slot.start) for slot in final)
        assert final_starts in submitted
        assert row_count == len(final_starts)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()

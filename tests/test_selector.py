from conftest import make_day, make_schedule

from cultbook.models import Schedule, SlotState
from cultbook.selector import booking_day, select_slot

FALLBACKS = ('16', '15', '17', '14')


def test_target_slot_wins_when_available():
    schedule = make_schedule(
        make_day('2026-10-22', [('15', 'AVAILABLE', '19:00')]),
        make_day('2026-10-23', [
            ('14', 'AVAILABLE', '18:00'),
            ('16', 'AVAILABLE', '20:00'),
            ('15', 'AVAILABLE', '19:00'),
        ]),
    )

    for fallbacks in (FALLBACKS, ('14', '16'), ()):
        slot = select_slot(schedule, '15', fallbacks)
        assert slot.id == '15'
        assert slot.date == '2026-10-23'


def test_first_fallback_in_priority_order_beats_server_order():
    schedule = make_schedule(make_day('2026-10-23', [
        ('9', 'AVAILABLE', '14:00'),
        ('14', 'AVAILABLE', '18:00'),
        ('15', 'BOOKED', '19:00'),
        ('17', 'AVAILABLE', '21:00'),
        ('16', 'AVAILABLE', '20:00'),
    ]))

    slot = select_slot(schedule, '15', FALLBACKS)

    assert slot.id == '16'


def test_any_available_slot_when_no_fallback_is_open():
    schedule = make_schedule(make_day('2026-10-23', [
        ('8', 'FULL', '13:00'),
        ('9', 'AVAILABLE', '14:00'),
        ('10', 'AVAILABLE', '15:00'),
        ('16', 'WAITLIST_AVAILABLE', '20:00'),
    ]))

    assert select_slot(schedule, '15', FALLBACKS).id == '9'


def test_none_when_nothing_available_on_last_day():
    schedule = make_schedule(
        make_day('2026-10-22', [('15', 'AVAILABLE', '19:00')]),
        make_day('2026-10-23', [('15', 'BOOKED', '19:00'), ('16', 'FULL', '20:00')]),
    )

    assert select_slot(schedule, '15', FALLBACKS) is None


def test_none_for_empty_schedule():
    assert select_slot(Schedule(), '15', FALLBACKS) is None


def test_only_last_day_is_considered():
    schedule = make_schedule(
        make_day('2026-10-22', [('15', 'AVAILABLE', '19:00')]),
        make_day('2026-10-23', [('3', 'AVAILABLE', '08:00')]),
    )

    slot = select_slot(schedule, '15', FALLBACKS)

    assert (slot.id, slot.date) == ('3', '2026-10-23')


def test_target_date_located_by_equality():
    schedule = make_schedule(
        make_day('2026-10-22', [('15', 'AVAILABLE', '19:00')]),
        make_day('2026-10-23', [('15', 'BOOKED', '19:00')]),
    )

    slot = select_slot(schedule, '15', FALLBACKS, target_date='2026-10-22')

    assert slot.date == '2026-10-22'


def test_missing_target_date_falls_back_to_furthest_day():
    schedule = make_schedule(
        make_day('2026-10-21', [('15', 'AVAILABLE', '19:00')]),
        make_day('2026-10-22', [('16', 'AVAILABLE', '20:00')]),
    )

    slot = select_slot(schedule, '15', FALLBACKS, target_date='2026-10-23')

    assert (slot.id, slot.date) == ('16', '2026-10-22')


def test_out_of_order_days_use_furthest_date(caplog):
    schedule = make_schedule(
        make_day('2026-10-23', [('16', 'AVAILABLE', '20:00')]),
        make_day('2026-10-21', [('15', 'AVAILABLE', '19:00')]),
    )

    assert booking_day(schedule).id == '2026-10-23'
    assert 'not chronological' in caplog.text


def test_unknown_state_is_not_bookable():
    schedule = make_schedule(make_day('2026-10-23', [('15', 'SOMETHING_NEW', '19:00')]))

    assert schedule.last_day.slots[0].state is SlotState.UNKNOWN
    assert select_slot(schedule, '15', FALLBACKS) is None

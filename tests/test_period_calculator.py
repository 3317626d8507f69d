from datetime import date, timedelta

import pytest

from payouts_api.services.period_calculator import (
    build_period_context,
    get_week_number,
    period_for_date,
    period_from_key,
    period_key_for,
    periods_between,
)


def _days(start, end):
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


@pytest.mark.parametrize("payment_type,payment_day", [
    ("daily", None), ("weekly", None), ("biweekly", None),
    ("monthly", None), ("monthly", 15), ("monthly", 31),
])
def test_current_period_always_contains_reference_date(payment_type, payment_day):
    for ref in _days(date(2024, 1, 1), date(2025, 12, 31)):
        ctx = build_period_context(payment_type, payment_day, ref)
        assert ctx.current.start <= ref <= ctx.current.end
        assert ctx.current.contains(ref)
        assert ctx.interval_days == ctx.current.days
        # next is the contiguous successor
        assert ctx.next.start == ctx.current.end + timedelta(days=1)


def test_iso_week_of_new_year():
    assert get_week_number(date(2025, 1, 1)) == 1
    p = period_for_date("weekly", None, date(2025, 1, 1))
    assert p.period_key == "2025-W01"
    assert p.start == date(2024, 12, 30) and p.end == date(2025, 1, 5)


def test_biweekly_split_in_february():
    assert period_key_for("biweekly", None, date(2025, 2, 15)) == "2025-02-Q1"
    assert period_key_for("biweekly", None, date(2025, 2, 16)) == "2025-02-Q2"
    q2 = period_for_date("biweekly", None, date(2025, 2, 28))
    assert q2.period_key == "2025-02-Q2"
    assert q2.end == date(2025, 2, 28)


def test_monthly_payment_day_moves_cutoff():
    p = period_for_date("monthly", 15, date(2025, 10, 10))
    assert p.period_key == "2025-09"
    assert (p.start, p.end) == (date(2025, 9, 15), date(2025, 10, 14))
    # day 31 clamps to the month length
    feb = period_for_date("monthly", 31, date(2025, 2, 28))
    assert feb.start == date(2025, 2, 28)


def test_monthly_default_is_calendar_month():
    p = period_for_date("monthly", None, date(2025, 10, 20))
    assert (p.period_key, p.start, p.end, p.label) == ("2025-10", date(2025, 10, 1), date(2025, 10, 31), "October 2025")


def test_unknown_type_falls_back_to_monthly():
    assert period_key_for("fortnightly", None, date(2025, 10, 20)) == "2025-10"


def test_period_from_key_reverses_encoding():
    assert period_from_key("weekly", "2025-W43").start == date(2025, 10, 20)
    assert period_from_key("biweekly", "2025-10-Q2").start == date(2025, 10, 16)
    assert period_from_key("daily", "2025-10-20").end == date(2025, 10, 20)
    assert period_from_key("monthly", "2025-09", 15).end == date(2025, 10, 14)


@pytest.mark.parametrize("payment_type,key", [
    ("monthly", "2025-13"),
    ("weekly", "2025-W54"),
    ("weekly", "2025-10"),
    ("biweekly", "2025-10-Q3"),
    ("daily", "2025-02-30"),
])
def test_period_from_key_rejects_foreign_keys(payment_type, key):
    assert period_from_key(payment_type, key) is None


def test_context_future_start():
    ref = date(2025, 9, 28)
    ctx = build_period_context("monthly", 1, ref)
    assert ctx.current.period_key == "2025-09"
    assert ctx.next_cycle_start == date(2025, 10, 1)
    assert ctx.next_cycle_end == date(2025, 10, 31)
    assert ctx.interval_days == 30

    held = build_period_context("monthly", 1, ref, cycle_start=date(2025, 10, 1))
    assert held.current.period_key == "2025-09"
    moved = build_period_context("monthly", 1, ref, allow_future_start=True, cycle_start=date(2025, 10, 1))
    assert moved.current.period_key == "2025-10"
    assert moved.next.period_key == "2025-11"


def test_context_without_payment_type():
    assert build_period_context(None, 1, date(2025, 9, 28)) is None


def test_periods_between_covers_range():
    weeks = periods_between("weekly", None, date(2025, 10, 1), date(2025, 10, 31))
    assert [p.period_key for p in weeks] == ["2025-W40", "2025-W41", "2025-W42", "2025-W43", "2025-W44"]
    assert periods_between("monthly", 1, date(2025, 12, 1), date(2025, 1, 1)) == []

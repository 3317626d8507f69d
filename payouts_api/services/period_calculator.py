# payouts_api/services/period_calculator.py
"""
Pay-period arithmetic. No I/O, no app context.

Period keys per payment type:

  monthly   "YYYY-MM"       month in which the period starts (day 1 unless paymentDay moves the cutoff)
  weekly    "YYYY-Www"      ISO-8601 week, Monday..Sunday, ISO year
  biweekly  "YYYY-MM-Q1"    days 1..15
            "YYYY-MM-Q2"    day 16..last day of the month
  daily     "YYYY-MM-DD"

All boundaries are inclusive calendar dates.
"""
from __future__ import annotations

import calendar as _calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional

DAILY = "daily"
WEEKLY = "weekly"
BIWEEKLY = "biweekly"
MONTHLY = "monthly"
PAYMENT_TYPES = (DAILY, WEEKLY, BIWEEKLY, MONTHLY)
DEFAULT_PAYMENT_TYPE = MONTHLY

_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")
_WEEK_KEY = re.compile(r"^(\d{4})-W(\d{2})$")
_HALF_KEY = re.compile(r"^(\d{4})-(\d{2})-Q([12])$")
_DAY_KEY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class Period:
    period_key: str
    label: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return interval_days(self.start, self.end)

    def contains(self, value) -> bool:
        return is_date_in_period(value, self)


@dataclass(frozen=True)
class PeriodContext:
    payment_type: str
    payment_day: Optional[int]
    current: Period
    next: Period
    interval_days: int
    next_cycle_start: date
    next_cycle_end: date


# ---------- date helpers ----------
def to_date(value) -> Optional[date]:
    """date / datetime / ISO string → date (time of day dropped). None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def iso(value) -> Optional[str]:
    d = to_date(value)
    return d.isoformat() if d else None


def interval_days(start: date, end: date) -> int:
    """Inclusive day count, never below 1."""
    return max(1, (end - start).days + 1)


def is_date_in_period(value, period: Period) -> bool:
    d = to_date(value)
    return d is not None and period.start <= d <= period.end


def get_week_number(value) -> int:
    """ISO-8601 week number (week 1 holds the year's first Thursday)."""
    return to_date(value).isocalendar()[1]


def normalize_payment_type(payment_type) -> str:
    return payment_type if payment_type in PAYMENT_TYPES else DEFAULT_PAYMENT_TYPE


def normalize_payment_day(payment_day, fallback: int = 1) -> int:
    if payment_day is None or isinstance(payment_day, bool):
        return fallback
    try:
        day = int(payment_day)
    except (TypeError, ValueError):
        return fallback
    return min(max(day, 1), 31)


def clamp_day(year: int, month: int, day: int) -> date:
    last = _calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last))


def _shift_month(year: int, month: int, delta: int):
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def _range_label(start: date, end: date) -> str:
    return f"{start:%d %b} - {end:%d %b}"


def period_label(payment_type: str, start: date, end: date, payment_day=None) -> str:
    payment_type = normalize_payment_type(payment_type)
    if payment_type == DAILY:
        return f"{start:%d %b %Y}"
    if payment_type == MONTHLY and normalize_payment_day(payment_day) == 1 and start.day == 1:
        return f"{start:%B %Y}"
    return _range_label(start, end)


# ---------- per-frequency periods ----------
def _monthly(d: date, payment_day) -> Period:
    pd = normalize_payment_day(payment_day)
    start = clamp_day(d.year, d.month, pd)
    if d < start:
        y, m = _shift_month(d.year, d.month, -1)
        start = clamp_day(y, m, pd)
    ny, nm = _shift_month(start.year, start.month, 1)
    end = clamp_day(ny, nm, pd) - timedelta(days=1)
    return Period(
        period_key=f"{start.year:04d}-{start.month:02d}",
        label=period_label(MONTHLY, start, end, pd),
        start=start,
        end=end,
    )


def _weekly(d: date) -> Period:
    start = d - timedelta(days=d.weekday())
    end = start + timedelta(days=6)
    iso_year, iso_week, _ = start.isocalendar()
    return Period(f"{iso_year:04d}-W{iso_week:02d}", _range_label(start, end), start, end)


def _biweekly(d: date) -> Period:
    if d.day <= 15:
        start, end, half = d.replace(day=1), d.replace(day=15), 1
    else:
        last = _calendar.monthrange(d.year, d.month)[1]
        start, end, half = d.replace(day=16), d.replace(day=last), 2
    return Period(f"{d.year:04d}-{d.month:02d}-Q{half}", _range_label(start, end), start, end)


def _daily(d: date) -> Period:
    return Period(d.isoformat(), period_label(DAILY, d, d), d, d)


def period_for_date(payment_type, payment_day, value) -> Period:
    """The period of `payment_type` whose [start, end] contains `value`.
    paymentDay only moves the monthly cutoff; other frequencies ignore it."""
    d = to_date(value)
    if d is None:
        raise ValueError(f"invalid date: {value!r}")
    payment_type = normalize_payment_type(payment_type)
    if payment_type == DAILY:
        return _daily(d)
    if payment_type == WEEKLY:
        return _weekly(d)
    if payment_type == BIWEEKLY:
        return _biweekly(d)
    return _monthly(d, payment_day)


def period_key_for(payment_type, payment_day, value) -> str:
    return period_for_date(payment_type, payment_day, value).period_key


def period_from_key(payment_type, period_key: str, payment_day=None) -> Optional[Period]:
    """Reverse of the key encoding. None when the key does not belong to `payment_type`."""
    payment_type = normalize_payment_type(payment_type)
    key = (period_key or "").strip()
    try:
        if payment_type == MONTHLY:
            m = _MONTH_KEY.match(key)
            if not m:
                return None
            anchor = clamp_day(int(m.group(1)), int(m.group(2)), normalize_payment_day(payment_day))
        elif payment_type == WEEKLY:
            m = _WEEK_KEY.match(key)
            if not m:
                return None
            anchor = date.fromisocalendar(int(m.group(1)), int(m.group(2)), 1)
        elif payment_type == BIWEEKLY:
            m = _HALF_KEY.match(key)
            if not m:
                return None
            anchor = date(int(m.group(1)), int(m.group(2)), 1 if m.group(3) == "1" else 16)
        else:
            if not _DAY_KEY.match(key):
                return None
            anchor = date.fromisoformat(key)
    except ValueError:
        # month 13, week 54, Feb 30 ...
        return None
    return period_for_date(payment_type, payment_day, anchor)


def periods_between(payment_type, payment_day, start, end) -> List[Period]:
    """Contiguous periods overlapping [start, end], oldest first."""
    lo, hi = to_date(start), to_date(end)
    if lo is None or hi is None or hi < lo:
        return []
    out: List[Period] = []
    cursor = lo
    while cursor <= hi:
        p = period_for_date(payment_type, payment_day, cursor)
        out.append(p)
        cursor = p.end + timedelta(days=1)
    return out


def build_period_context(
    payment_type,
    payment_day=None,
    reference_date=None,
    allow_future_start: bool = False,
    cycle_start=None,
) -> Optional[PeriodContext]:
    """
    Current/next periods around `reference_date` (default: today).

    `cycle_start` is where the open part of the schedule begins (periods that
    end before it are already settled). When it lies after the reference date
    nothing open contains the reference date; with `allow_future_start` the
    current period becomes the one holding `cycle_start`, otherwise the
    calendar period holding the reference date is kept.

    Returns None when no payment type is configured.
    """
    if not payment_type:
        return None
    ref = to_date(reference_date) or date.today()
    payment_type = normalize_payment_type(payment_type)
    day = normalize_payment_day(payment_day) if payment_day is not None else None

    current = period_for_date(payment_type, day, ref)
    anchor = to_date(cycle_start)
    if allow_future_start and anchor is not None and anchor > current.end:
        current = period_for_date(payment_type, day, anchor)

    nxt = period_for_date(payment_type, day, current.end + timedelta(days=1))
    return PeriodContext(
        payment_type=payment_type,
        payment_day=day,
        current=current,
        next=nxt,
        interval_days=interval_days(current.start, current.end),
        next_cycle_start=nxt.start,
        next_cycle_end=nxt.end,
    )

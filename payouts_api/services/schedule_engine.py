# payouts_api/services/schedule_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional

from .calendar_store import CalendarStore, EventStore
from .payout_ledger import (
    DEFAULT_PAYMENT_METHOD,
    PENDING,
    PayoutRecord,
    get_latest_paid_record,
    get_latest_payment_record,
    get_record,
)
from .period_calculator import (
    DEFAULT_PAYMENT_TYPE,
    Period,
    PeriodContext,
    build_period_context,
    iso,
    period_for_date,
    period_from_key,
    period_label,
    to_date,
)

log = logging.getLogger(__name__)


@dataclass
class SchedulePeriod:
    period_key: str
    label: str
    start: date
    end: date
    status: str = PENDING
    scheduled_payment_date: Optional[date] = None
    actual_payment_date: Optional[date] = None
    amount_paid: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "periodKey": self.period_key,
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "status": self.status,
            "scheduledPaymentDate": iso(self.scheduled_payment_date),
            "actualPaymentDate": iso(self.actual_payment_date),
            "amountPaid": self.amount_paid,
        }


@dataclass
class ScheduleSummary:
    current: Optional[SchedulePeriod]
    next: Optional[SchedulePeriod]
    previous: Optional[SchedulePeriod]
    payment_type: str
    payment_day: Optional[int]
    preferred_method: str
    interval_days: int
    next_cycle_start: Optional[date] = None
    next_cycle_end: Optional[date] = None
    current_record: Optional[PayoutRecord] = None
    latest_record: Optional[PayoutRecord] = None
    latest_paid_record: Optional[PayoutRecord] = None
    payout_records: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        def _p(p):
            return p.to_dict() if p else None

        return {
            "current": _p(self.current),
            "next": _p(self.next),
            "previous": _p(self.previous),
            "paymentType": self.payment_type,
            "paymentDay": self.payment_day,
            "preferredMethod": self.preferred_method,
            "intervalDays": self.interval_days,
            "nextCycleStart": iso(self.next_cycle_start),
            "nextCycleEnd": iso(self.next_cycle_end),
            "currentRecord": _p(self.current_record),
            "latestRecord": _p(self.latest_record),
            "latestPaidRecord": _p(self.latest_paid_record),
            "payoutRecords": self.payout_records,
        }


# ---------- calendar settings ----------
def payout_settings(calendar):
    """(paymentType or None, paymentDay or None, preferred method) from a calendar."""
    details = getattr(calendar, "payout_details", None) or {}
    payment_type = details.get("paymentType") or None
    day = details.get("paymentDay")
    payment_day = day if isinstance(day, int) and not isinstance(day, bool) else None
    method = details.get("paymentMethod") or DEFAULT_PAYMENT_METHOD
    return payment_type, payment_day, method


def build_calendar_context(calendar, reference_date=None, allow_future_start: bool = False) -> Optional[PeriodContext]:
    """Live period context for a calendar; None when it has no payment type configured."""
    payment_type, payment_day, _ = payout_settings(calendar)
    if not payment_type:
        return None
    latest_paid = get_latest_paid_record(getattr(calendar, "payout_records", None))
    return build_period_context(
        payment_type,
        payment_day,
        reference_date,
        allow_future_start=allow_future_start,
        cycle_start=latest_paid.next_cycle_start if latest_paid else None,
    )


def resolve_record_period(period_key: str, record: Optional[PayoutRecord], payment_type, payment_day) -> Optional[Period]:
    """
    Boundaries of a stored period as they were written (cycleStart/cycleEnd),
    so a later frequency change does not move history. Missing pieces come
    from the key, then from the record's scheduled date.
    """
    start = record.cycle_start if record else None
    end = record.cycle_end if record else None
    if start is None or end is None:
        keyed = period_from_key(payment_type, period_key, payment_day)
        if keyed is None and record and record.scheduled_payment_date:
            keyed = period_for_date(payment_type, payment_day, record.scheduled_payment_date)
        if keyed is not None:
            start = start or keyed.start
            end = end or keyed.end
    if start is None and end is None:
        return None
    start = start or end
    end = end or start
    if end < start:
        end = start
    return Period(period_key, period_label(payment_type, start, end, payment_day), start, end)


def _merge(period: Period, record: Optional[PayoutRecord]) -> SchedulePeriod:
    return SchedulePeriod(
        period_key=period.period_key,
        label=period.label,
        start=period.start,
        end=period.end,
        status=record.status if record else PENDING,
        scheduled_payment_date=record.scheduled_payment_date if record else None,
        actual_payment_date=record.actual_payment_date if record else None,
        amount_paid=record.amount_paid if record else None,
    )


# ---------- read path ----------
def compute_schedule_from_calendar(calendar, reference_date=None, allow_future_start: bool = False) -> ScheduleSummary:
    records = dict(getattr(calendar, "payout_records", None) or {})
    payment_type, payment_day, preferred = payout_settings(calendar)
    latest = get_latest_payment_record(records)
    latest_paid = get_latest_paid_record(records)

    ctx = build_calendar_context(calendar, reference_date, allow_future_start)
    if ctx is None:
        log.debug("calendar %s has no payout configuration", getattr(calendar, "id", None))
        return ScheduleSummary(
            current=None,
            next=None,
            previous=None,
            payment_type=payment_type or DEFAULT_PAYMENT_TYPE,
            payment_day=payment_day,
            preferred_method=preferred,
            interval_days=0,
            latest_record=latest,
            latest_paid_record=latest_paid,
            payout_records=records,
        )

    current_record = get_record(records, ctx.current.period_key)
    next_record = get_record(records, ctx.next.period_key)

    previous = None
    if latest_paid:
        prev_period = resolve_record_period(latest_paid.period_key, latest_paid, ctx.payment_type, ctx.payment_day)
        if prev_period:
            previous = _merge(prev_period, latest_paid)

    return ScheduleSummary(
        current=_merge(ctx.current, current_record),
        next=_merge(ctx.next, next_record),
        previous=previous,
        payment_type=ctx.payment_type,
        payment_day=ctx.payment_day,
        preferred_method=preferred,
        interval_days=ctx.interval_days,
        next_cycle_start=ctx.next_cycle_start,
        next_cycle_end=ctx.next_cycle_end,
        current_record=current_record,
        latest_record=latest,
        latest_paid_record=latest_paid,
        payout_records=records,
    )


def get_schedule(calendar_id, reference_date=None, allow_future_start: bool = False,
                 store: Optional[CalendarStore] = None) -> Optional[ScheduleSummary]:
    store = store or CalendarStore()
    calendar = store.get_calendar_by_id(calendar_id)
    if calendar is None:
        return None
    return compute_schedule_from_calendar(calendar, reference_date, allow_future_start)


def aggregate_hours_for_period(calendar_id, period, only_completed: bool = True,
                               events: Optional[EventStore] = None) -> float:
    """Worked hours inside a period's inclusive bounds."""
    events = events or EventStore()
    return events.calculate_work_hours(calendar_id, to_date(period.start), to_date(period.end), only_completed)

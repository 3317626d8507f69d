# payouts_api/services/payment_transition.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, Mapping, Optional

from .calendar_store import CalendarStore
from .payout_ledger import DEFAULT_PAYMENT_METHOD, PAID, PAYMENT_METHODS, PENDING, get_record
from .period_calculator import interval_days, period_for_date, period_key_for, to_date
from .schedule_engine import ScheduleSummary, build_calendar_context, get_schedule, resolve_record_period

log = logging.getLogger(__name__)


def _resolve_method(payment_method, payout_details, calendar) -> str:
    stored = (getattr(calendar, "payout_details", None) or {}).get("paymentMethod")
    for candidate in (payment_method, (payout_details or {}).get("paymentMethod"), stored):
        if candidate:
            return candidate
    return DEFAULT_PAYMENT_METHOD


def _validate(period_key, amount, payment_method):
    if not period_key or not str(period_key).strip():
        raise ValueError("period_key is required")
    if amount is not None:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError("amount must be a number")
        if amount < 0:
            raise ValueError("amount must be >= 0")
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValueError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")


def mark_payment_paid(
    calendar_id,
    period_key: str,
    amount: Optional[float] = None,
    payment_method: Optional[str] = None,
    maintain_schedule: bool = False,
    note: Optional[str] = None,
    payout_details: Optional[Mapping[str, Any]] = None,
    today=None,
    store: Optional[CalendarStore] = None,
) -> Optional[ScheduleSummary]:
    """
    Settle one period and roll the schedule forward.

    With `maintain_schedule` the next cycle stays calendar-aligned; otherwise
    it starts the day after `today`. Two separate writes are issued: the paid
    record (with any payout_details override), then a pending seed for the
    upcoming period. A lost seed is harmless since the schedule recomputes
    the next period live.

    Returns the recomputed schedule, or None when the calendar or its payout
    configuration is missing.
    """
    _validate(period_key, amount, payment_method)
    store = store or CalendarStore()
    today = to_date(today) or date.today()

    calendar = store.get_calendar_by_id(calendar_id)
    if calendar is None:
        return None
    ctx = build_calendar_context(calendar, today, allow_future_start=maintain_schedule)
    if ctx is None:
        return None

    if period_key == ctx.current.period_key:
        cycle_start, cycle_end = ctx.current.start, ctx.current.end
    else:
        existing = get_record(calendar.payout_records, period_key)
        target = resolve_record_period(period_key, existing, ctx.payment_type, ctx.payment_day)
        cycle_start = target.start if target else today
        cycle_end = target.end if target else today
    span = interval_days(cycle_start, cycle_end)

    if maintain_schedule:
        # calendar-aligned successor of the paid period, not of today's context
        # (which an earlier paid record may already have moved forward)
        following = period_for_date(ctx.payment_type, ctx.payment_day, cycle_end + timedelta(days=1))
        next_start, next_end = following.start, following.end
    else:
        next_start = today + timedelta(days=1)
        next_end = ctx.next_cycle_end
    if next_end is None or next_end < next_start:
        next_end = next_start + timedelta(days=span - 1)

    method = _resolve_method(payment_method, payout_details, calendar)
    payload: Dict[str, Any] = {
        "status": PAID,
        "actualPaymentDate": today,
        "lastPaymentDate": today,
        "scheduledPaymentDate": cycle_end,
        "cycleStart": cycle_start,
        "cycleEnd": cycle_end,
        "nextCycleStart": next_start,
        "nextCycleEnd": next_end,
        "paymentMethod": method,
    }
    if calendar.owner_id:
        payload["lastPaymentBy"] = calendar.owner_id
    if amount is not None:
        payload["amountPaid"] = round(float(amount), 2)
    if note and note.strip():
        payload["note"] = note.strip()

    details_patch = {**dict(payout_details or {}), "paymentMethod": method}
    store.update_payout_details_and_record(calendar.id, period_key, details_patch, payload)
    log.info("calendar %s: period %s marked paid on %s (method=%s)", calendar.id, period_key, today, method)

    seed_key = period_key_for(ctx.payment_type, ctx.payment_day, next_end)
    seeded = store.seed_payout_record(
        calendar.id,
        seed_key,
        {
            "status": PENDING,
            "scheduledPaymentDate": next_end,
            "cycleStart": next_start,
            "cycleEnd": next_end,
            "paymentMethod": method,
        },
    )
    if seeded:
        log.info("calendar %s: seeded pending period %s (%s..%s)", calendar.id, seed_key, next_start, next_end)
    else:
        log.info("calendar %s: period %s already paid, seed skipped", calendar.id, seed_key)

    return get_schedule(calendar.id, reference_date=today, store=store)

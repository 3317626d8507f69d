from __future__ import annotations
from datetime import date
from flask import Blueprint, request, current_app, g

from payouts_api.common.auth import requires_calendar_owner, current_owner_id
from payouts_api.common.errors import APIError
from payouts_api.common.http import ok, fail, parse_date, parse_bool, parse_amount
from payouts_api.services.payout_ledger import LedgerError, PAYMENT_METHODS, get_record
from payouts_api.services.period_calculator import periods_between
from payouts_api.services.schedule_engine import (
    compute_schedule_from_calendar,
    payout_settings,
    resolve_record_period,
    aggregate_hours_for_period,
)
from payouts_api.services.payment_transition import mark_payment_paid
from payouts_api.services.payout_migration import run_owner_migration
from flask_jwt_extended import jwt_required

bp = Blueprint("payouts", __name__, url_prefix="/api/v1")

MAX_RANGE_DAYS = 366


# -------- helpers ----------
def _date_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    d = parse_date(raw)
    if d is None:
        raise APIError("VALIDATION_ERROR", f"{name} must be YYYY-MM-DD", 422)
    return d

def _period_row(p, records):
    rec = get_record(records, p.period_key)
    return {
        "periodKey": p.period_key,
        "label": p.label,
        "start": p.start.isoformat(),
        "end": p.end.isoformat(),
        "status": rec.status if rec else "pending",
        "amountPaid": rec.amount_paid if rec else None,
    }


# -------- routes ----------
@bp.get("/calendars/<int:calendar_id>/payout-schedule")
@requires_calendar_owner
def payout_schedule(calendar_id: int):
    ref = _date_arg("date")
    allow_future = parse_bool(request.args.get("allow_future_start"))
    summary = compute_schedule_from_calendar(g.calendar, ref, allow_future_start=allow_future)
    return ok(summary.to_dict())


@bp.post("/calendars/<int:calendar_id>/payouts/<period_key>/paid")
@requires_calendar_owner
def mark_paid(calendar_id: int, period_key: str):
    j = request.get_json(silent=True) or {}

    try:
        amount = parse_amount(j.get("amount"))
    except ValueError as e:
        return fail(str(e), 422)
    method = j.get("payment_method") or None
    if method is not None and method not in PAYMENT_METHODS:
        return fail(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}", 422)
    details = j.get("payout_details")
    if details is not None and not isinstance(details, dict):
        return fail("payout_details must be an object", 422)
    note = j.get("note")
    if note is not None and not isinstance(note, str):
        return fail("note must be a string", 422)

    try:
        summary = mark_payment_paid(
            calendar_id,
            period_key,
            amount=amount,
            payment_method=method,
            maintain_schedule=parse_bool(j.get("maintain_schedule")),
            note=note,
            payout_details=details,
        )
    except (LedgerError, ValueError) as e:
        raise APIError("VALIDATION_ERROR", str(e), 422)

    if summary is None:
        return fail("Calendar has no payout configuration", 422, code="NO_PAYOUT_CONFIG")
    current_app.logger.info("calendar %s: %s marked paid by %s", calendar_id, period_key, current_owner_id())
    return ok(summary.to_dict())


@bp.get("/calendars/<int:calendar_id>/payouts/<period_key>/hours")
@requires_calendar_owner
def period_hours(calendar_id: int, period_key: str):
    cal = g.calendar
    payment_type, payment_day, _ = payout_settings(cal)
    if not payment_type:
        return fail("Calendar has no payout configuration", 422, code="NO_PAYOUT_CONFIG")

    period = resolve_record_period(period_key, get_record(cal.payout_records, period_key), payment_type, payment_day)
    if period is None:
        return fail(f"Unknown period key {period_key!r} for {payment_type} payouts", 422)

    only_completed = parse_bool(request.args.get("only_completed"), default=True)
    hours = aggregate_hours_for_period(calendar_id, period, only_completed=only_completed)
    return ok({
        "periodKey": period.period_key,
        "start": period.start.isoformat(),
        "end": period.end.isoformat(),
        "onlyCompleted": only_completed,
        "hours": round(hours, 2),
    })


@bp.get("/calendars/<int:calendar_id>/payout-periods")
@requires_calendar_owner
def payout_periods(calendar_id: int):
    cal = g.calendar
    payment_type, payment_day, _ = payout_settings(cal)
    if not payment_type:
        return fail("Calendar has no payout configuration", 422, code="NO_PAYOUT_CONFIG")

    today = date.today()
    lo = _date_arg("from") or date(today.year, 1, 1)
    hi = _date_arg("to") or date(today.year, 12, 31)
    if hi < lo:
        return fail("'to' must be on or after 'from'", 422)
    if (hi - lo).days > MAX_RANGE_DAYS:
        return fail(f"range too large (max {MAX_RANGE_DAYS} days)", 422)

    rows = [_period_row(p, cal.payout_records) for p in periods_between(payment_type, payment_day, lo, hi)]
    return ok(rows, count=len(rows), paymentType=payment_type)


@bp.post("/payouts/migrate")
@jwt_required()
def migrate_payouts():
    owner = current_owner_id()
    if owner is None:
        return fail("Unauthorized", status=401)
    j = request.get_json(silent=True) or {}
    result = run_owner_migration(owner, force=parse_bool(j.get("force")))
    current_app.logger.info("payout migration for %s: %s", owner, result.to_dict())
    return ok(result.to_dict())

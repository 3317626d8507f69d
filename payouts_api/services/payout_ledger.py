# payouts_api/services/payout_ledger.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Mapping, Optional

from .period_calculator import iso, to_date

PENDING = "pending"
PAID = "paid"
RECORD_STATUSES = (PENDING, PAID)

PAYMENT_METHODS = ("transfer", "paypal", "other")
DEFAULT_PAYMENT_METHOD = "transfer"

# camelCase date fields as stored on the calendar document
DATE_FIELDS = (
    "scheduledPaymentDate",
    "actualPaymentDate",
    "lastPaymentDate",
    "cycleStart",
    "cycleEnd",
    "nextCycleStart",
    "nextCycleEnd",
)

# order used to place a record on the timeline
_REFERENCE_FIELDS = (
    "actualPaymentDate",
    "lastPaymentDate",
    "scheduledPaymentDate",
    "cycleEnd",
    "cycleStart",
)
# tie-break between records paid on the same day
_PERIOD_FIELDS = ("cycleEnd", "scheduledPaymentDate", "cycleStart")

_LEGACY_MONTH_KEY = re.compile(r"^(\d{4})-(\d{1,2})$")

Records = Mapping[str, Dict[str, Any]]


class LedgerError(ValueError):
    """A write that would break the ledger rules (negative amount, paid -> pending)."""


@dataclass
class PayoutRecord:
    period_key: str
    status: str = PENDING
    scheduled_payment_date: Optional[date] = None
    actual_payment_date: Optional[date] = None
    amount_paid: Optional[float] = None
    payment_method: Optional[str] = None
    note: Optional[str] = None
    cycle_start: Optional[date] = None
    cycle_end: Optional[date] = None
    next_cycle_start: Optional[date] = None
    next_cycle_end: Optional[date] = None
    last_payment_date: Optional[date] = None
    last_payment_by: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.status == PAID

    @classmethod
    def from_dict(cls, period_key: str, raw: Optional[Mapping[str, Any]]) -> "PayoutRecord":
        raw = raw or {}
        amount = raw.get("amountPaid")
        return cls(
            period_key=period_key,
            status=raw.get("status") if raw.get("status") in RECORD_STATUSES else PENDING,
            scheduled_payment_date=to_date(raw.get("scheduledPaymentDate")),
            actual_payment_date=to_date(raw.get("actualPaymentDate")),
            amount_paid=float(amount) if isinstance(amount, (int, float)) and not isinstance(amount, bool) else None,
            payment_method=raw.get("paymentMethod"),
            note=raw.get("note"),
            cycle_start=to_date(raw.get("cycleStart")),
            cycle_end=to_date(raw.get("cycleEnd")),
            next_cycle_start=to_date(raw.get("nextCycleStart")),
            next_cycle_end=to_date(raw.get("nextCycleEnd")),
            last_payment_date=to_date(raw.get("lastPaymentDate")),
            last_payment_by=raw.get("lastPaymentBy"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "periodKey": self.period_key,
            "status": self.status,
            "scheduledPaymentDate": iso(self.scheduled_payment_date),
            "actualPaymentDate": iso(self.actual_payment_date),
            "amountPaid": self.amount_paid,
            "paymentMethod": self.payment_method,
            "note": self.note,
            "cycleStart": iso(self.cycle_start),
            "cycleEnd": iso(self.cycle_end),
            "nextCycleStart": iso(self.next_cycle_start),
            "nextCycleEnd": iso(self.next_cycle_end),
            "lastPaymentDate": iso(self.last_payment_date),
            "lastPaymentBy": self.last_payment_by,
        }
        return {k: v for k, v in out.items() if v is not None}


def _serialize_patch(partial: Mapping[str, Any]) -> Dict[str, Any]:
    patch = dict(partial or {})
    for field in DATE_FIELDS:
        if isinstance(patch.get(field), date):
            patch[field] = patch[field].isoformat()
    return patch


def get_record(records: Optional[Records], period_key: str) -> Optional[PayoutRecord]:
    raw = (records or {}).get(period_key)
    if not isinstance(raw, Mapping):
        return None
    return PayoutRecord.from_dict(period_key, raw)


def upsert_record(records: Optional[Records], period_key: str, partial: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Shallow-merge `partial` into the record at `period_key` (creating it if
    needed) and return a new record map. The input map is left untouched.
    """
    if not period_key:
        raise LedgerError("period key is required")
    patch = _serialize_patch(partial)
    existing = dict((records or {}).get(period_key) or {})

    status = patch.get("status")
    if status is not None and status not in RECORD_STATUSES:
        raise LedgerError(f"unknown payout status {status!r}")
    if existing.get("status") == PAID and status == PENDING:
        raise LedgerError(f"period {period_key} is already paid")
    amount = patch.get("amountPaid")
    if amount is not None and amount < 0:
        raise LedgerError("amountPaid must be >= 0")

    out = {k: dict(v) if isinstance(v, Mapping) else v for k, v in (records or {}).items()}
    out[period_key] = {**existing, **patch}
    return out


def record_reference_date(raw: Optional[Mapping[str, Any]], period_key: str) -> Optional[date]:
    """First usable date of a record, falling back to the key itself ("2025-10" -> 2025-10-01)."""
    if not raw:
        return None
    for field in _REFERENCE_FIELDS:
        d = to_date(raw.get(field))
        if d:
            return d
    d = to_date(period_key)
    if d:
        return d
    m = _LEGACY_MONTH_KEY.match(period_key or "")
    if m and 1 <= int(m.group(2)) <= 12:
        return date(int(m.group(1)), int(m.group(2)), 1)
    return None


def _period_end(raw: Mapping[str, Any]) -> date:
    for field in _PERIOD_FIELDS:
        d = to_date(raw.get(field))
        if d:
            return d
    return date.min


def _latest(records: Optional[Records], keep: Callable[[Mapping[str, Any]], bool]) -> Optional[PayoutRecord]:
    # several periods settled on one day: the later period wins, then the larger key
    best_key, best_raw, best_rank = None, None, None
    for key, raw in (records or {}).items():
        if not isinstance(raw, Mapping) or not keep(raw):
            continue
        ref = record_reference_date(raw, key)
        if ref is None:
            continue
        rank = (ref, _period_end(raw), key)
        if best_rank is None or rank > best_rank:
            best_key, best_raw, best_rank = key, raw, rank
    return PayoutRecord.from_dict(best_key, best_raw) if best_key is not None else None


def get_latest_payment_record(records: Optional[Records]) -> Optional[PayoutRecord]:
    return _latest(records, lambda raw: True)


def get_latest_paid_record(records: Optional[Records]) -> Optional[PayoutRecord]:
    return _latest(records, lambda raw: raw.get("status") == PAID)


def seed_pending_record(records: Optional[Records], period_key: str, partial: Mapping[str, Any]):
    """
    Upsert a pending record for an upcoming period. Returns (records, seeded);
    when the period is already paid the map comes back unchanged.
    """
    existing = (records or {}).get(period_key)
    if isinstance(existing, Mapping) and existing.get("status") == PAID:
        return dict(records or {}), False
    return upsert_record(records, period_key, {**partial, "status": PENDING}), True

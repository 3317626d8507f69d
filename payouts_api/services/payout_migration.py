# payouts_api/services/payout_migration.py
"""
One-off rewrite of legacy payout keys ("YYYY-MM" for every frequency) into the
frequency-correct encoding. Calendars are processed one at a time; a failing
calendar is logged and counted, the rest continue.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .calendar_store import CalendarStore
from .period_calculator import (
    DAILY,
    clamp_day,
    normalize_payment_day,
    normalize_payment_type,
    period_key_for,
    to_date,
)

log = logging.getLogger(__name__)

PAYOUT_KEYS_VERSION = 2

_LEGACY_KEY = re.compile(r"^(\d{4})-(\d{1,2})")


@dataclass
class MigrationResult:
    succeeded: int = 0
    failed: int = 0
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"succeeded": self.succeeded, "failed": self.failed, "skipped": self.skipped}


def _already_converted(key: str, payment_type: str) -> bool:
    if "-W" in key or "-Q" in key:
        return True
    return payment_type == DAILY and len(key.split("-")) == 3


def convert_period_key(old_key, payment_type, payment_date=None, payment_day=None) -> str:
    """
    Re-derive `old_key` for `payment_type`. Anchors on `payment_date` when
    given, else on the legacy "YYYY-MM" month (at the payment day, default 1).
    Never raises; anything unparseable comes back as-is.
    """
    try:
        key = str(old_key).strip()
        if _already_converted(key, payment_type):
            return old_key
        if payment_date is not None:
            anchor = to_date(payment_date)
            if anchor is None:
                return old_key
        else:
            m = _LEGACY_KEY.match(key)
            if not m:
                return old_key
            anchor = clamp_day(int(m.group(1)), int(m.group(2)), normalize_payment_day(payment_day))
        return period_key_for(normalize_payment_type(payment_type), payment_day, anchor)
    except (TypeError, ValueError, AttributeError):
        return old_key


def migrate_calendar_payout_records(calendar, store: Optional[CalendarStore] = None) -> bool:
    store = store or CalendarStore()
    try:
        details = calendar.payout_details or {}
        payment_type = details.get("paymentType")
        payment_day = details.get("paymentDay")
        records = calendar.payout_records or {}

        migrated: Dict[str, Any] = {}
        changed = 0
        for old_key, record in records.items():
            scheduled = record.get("scheduledPaymentDate") if isinstance(record, dict) else None
            if scheduled:
                new_key = convert_period_key(old_key, payment_type, scheduled, payment_day)
            else:
                log.warning("calendar %s: record %s has no scheduledPaymentDate, key kept", calendar.id, old_key)
                new_key = old_key
            if new_key != old_key:
                changed += 1
                log.debug("calendar %s: %s -> %s", calendar.id, old_key, new_key)
            if new_key in migrated:
                log.warning("calendar %s: key collision on %s, keeping %s", calendar.id, new_key, old_key)
            migrated[new_key] = record

        if changed == 0:
            log.info("calendar %s: payout keys already current", calendar.id)
            return True

        store.replace_payout_records(calendar.id, migrated)
        log.info("calendar %s: migrated %d payout key(s)", calendar.id, changed)
        return True
    except Exception:
        log.exception("calendar %s: payout key migration failed", getattr(calendar, "id", None))
        store.rollback()
        return False


def migrate_all_payout_records(owner_id, store: Optional[CalendarStore] = None) -> MigrationResult:
    store = store or CalendarStore()
    result = MigrationResult()
    for calendar in store.list_calendars_by_owner(owner_id):
        if migrate_calendar_payout_records(calendar, store=store):
            result.succeeded += 1
        else:
            result.failed += 1
    log.info("owner %s: payout migration done, %d ok / %d failed", owner_id, result.succeeded, result.failed)
    return result


def run_owner_migration(owner_id, force: bool = False, store: Optional[CalendarStore] = None) -> MigrationResult:
    """Run once per owner. The marker is only written when every calendar succeeded."""
    store = store or CalendarStore()
    marker = store.get_migration_marker(owner_id)
    if not force and marker is not None and marker.version >= PAYOUT_KEYS_VERSION:
        log.info("owner %s: payout keys already at v%s, skipping", owner_id, marker.version)
        return MigrationResult(succeeded=marker.succeeded, failed=marker.failed, skipped=True)

    result = migrate_all_payout_records(owner_id, store=store)
    if result.failed == 0:
        store.save_migration_marker(owner_id, PAYOUT_KEYS_VERSION, result.succeeded, result.failed)
    return result

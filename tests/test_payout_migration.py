import os

import pytest

from payouts_api import create_app
from payouts_api.extensions import db
from payouts_api.models.calendar import SharedCalendar
from payouts_api.services.calendar_store import CalendarStore
from payouts_api.services.payout_migration import (
    PAYOUT_KEYS_VERSION,
    convert_period_key,
    migrate_all_payout_records,
    migrate_calendar_payout_records,
    run_owner_migration,
)


def _mk_app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    return app


class CountingStore(CalendarStore):
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.replaced = []

    def replace_payout_records(self, calendar_id, records):
        if calendar_id in self.fail_for:
            raise RuntimeError("store unavailable")
        self.replaced.append(calendar_id)
        super().replace_payout_records(calendar_id, records)


@pytest.mark.parametrize("old,ptype,when,expected", [
    ("2025-10", "weekly", "2025-10-20", "2025-W43"),
    ("2025-10", "biweekly", "2025-10-20", "2025-10-Q2"),
    ("2025-10", "daily", "2025-10-20", "2025-10-20"),
    ("2025-10", "monthly", "2025-10-20", "2025-10"),
    ("2025-10", "biweekly", None, "2025-10-Q1"),
    ("2025-10", "daily", None, "2025-10-01"),
    ("2025-W43", "weekly", "2025-11-30", "2025-W43"),
    ("2025-10-Q2", "biweekly", None, "2025-10-Q2"),
    ("garbage", "weekly", None, "garbage"),
    ("2025-10", "weekly", "not-a-date", "2025-10"),
])
def test_convert_period_key(old, ptype, when, expected):
    assert convert_period_key(old, ptype, when) == expected


@pytest.mark.parametrize("ptype", ["daily", "weekly", "biweekly", "monthly"])
@pytest.mark.parametrize("key,when", [
    ("2025-10", "2025-10-20"), ("2025-10", None), ("2024-12", "2024-12-30"), ("2025-01", None),
])
def test_convert_period_key_is_idempotent(ptype, key, when):
    once = convert_period_key(key, ptype, when)
    assert convert_period_key(once, ptype, when) == once


def test_weekly_legacy_record_moves_to_iso_week():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        legacy = {"status": "paid", "scheduledPaymentDate": "2025-10-20", "amountPaid": 120.0, "note": "ok"}
        cal = SharedCalendar(owner_id="u1", payout_details={"paymentType": "weekly"}, payout_records={"2025-10": legacy})
        db.session.add(cal); db.session.commit()

        assert migrate_calendar_payout_records(cal) is True
        got = db.session.get(SharedCalendar, cal.id)
        assert "2025-10" not in got.payout_records
        assert got.payout_records["2025-W43"] == legacy


def test_second_run_changes_nothing():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        cal = SharedCalendar(owner_id="u1", payout_details={"paymentType": "biweekly"}, payout_records={
            "2025-09": {"status": "paid", "scheduledPaymentDate": "2025-09-30"},
            "2025-10": {"status": "pending"},
        })
        db.session.add(cal); db.session.commit()

        store = CountingStore()
        assert migrate_calendar_payout_records(cal, store=store)
        after_first = dict(db.session.get(SharedCalendar, cal.id).payout_records)
        # no scheduled date: key kept as-is
        assert set(after_first) == {"2025-09-Q2", "2025-10"}

        assert migrate_calendar_payout_records(db.session.get(SharedCalendar, cal.id), store=store)
        assert db.session.get(SharedCalendar, cal.id).payout_records == after_first
        assert store.replaced == [cal.id]


def test_collision_later_entry_wins():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        cal = SharedCalendar(owner_id="u1", payout_details={"paymentType": "weekly"}, payout_records={
            "2025-W43": {"status": "pending", "scheduledPaymentDate": "2025-10-26"},
            "2025-10": {"status": "paid", "scheduledPaymentDate": "2025-10-20"},
        })
        db.session.add(cal); db.session.commit()
        assert migrate_calendar_payout_records(cal)
        got = db.session.get(SharedCalendar, cal.id).payout_records
        assert got == {"2025-W43": {"status": "paid", "scheduledPaymentDate": "2025-10-20"}}


def test_batch_isolates_failures():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        bad = SharedCalendar(owner_id="u1", payout_details={"paymentType": "weekly"},
                             payout_records={"2025-10": {"scheduledPaymentDate": "2025-10-20"}})
        good = SharedCalendar(owner_id="u1", payout_details={"paymentType": "weekly"},
                              payout_records={"2025-09": {"scheduledPaymentDate": "2025-09-22"}})
        other = SharedCalendar(owner_id="u2", payout_details={"paymentType": "weekly"},
                               payout_records={"2025-08": {"scheduledPaymentDate": "2025-08-04"}})
        db.session.add_all([bad, good, other]); db.session.commit()
        bad_id, good_id, other_id = bad.id, good.id, other.id

        result = migrate_all_payout_records("u1", store=CountingStore(fail_for={bad_id}))
        assert (result.succeeded, result.failed) == (1, 1)
        assert "2025-10" in db.session.get(SharedCalendar, bad_id).payout_records
        assert "2025-W39" in db.session.get(SharedCalendar, good_id).payout_records
        assert "2025-08" in db.session.get(SharedCalendar, other_id).payout_records


def test_marker_skips_reruns_unless_forced():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        db.session.add(SharedCalendar(owner_id="u1", payout_details={"paymentType": "weekly"},
                                      payout_records={"2025-10": {"scheduledPaymentDate": "2025-10-20"}}))
        db.session.commit()

        first = run_owner_migration("u1")
        assert (first.succeeded, first.failed, first.skipped) == (1, 0, False)
        assert CalendarStore.get_migration_marker("u1").version == PAYOUT_KEYS_VERSION

        assert run_owner_migration("u1").skipped is True
        assert run_owner_migration("u1", force=True).skipped is False


def test_marker_not_written_when_a_calendar_fails():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        cal = SharedCalendar(owner_id="u1", payout_details={"paymentType": "weekly"},
                             payout_records={"2025-10": {"scheduledPaymentDate": "2025-10-20"}})
        db.session.add(cal); db.session.commit()

        result = run_owner_migration("u1", store=CountingStore(fail_for={cal.id}))
        assert result.failed == 1
        assert CalendarStore.get_migration_marker("u1") is None

import os

import pytest
from sqlalchemy import text
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm.exc import StaleDataError

from payouts_api import create_app
from payouts_api.extensions import db
from payouts_api.models.calendar import SharedCalendar
from payouts_api.services.calendar_store import CalendarStore


def _mk_app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    return app


def test_details_and_record_written_together():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        cal = SharedCalendar(owner_id="u1", payout_details={"paymentType": "monthly", "iban": "DE00"}, payout_records={})
        db.session.add(cal); db.session.commit()

        store = CalendarStore()
        store.update_payout_details_and_record(cal.id, "2025-09", {"paymentMethod": "paypal", "iban": None},
                                               {"status": "paid"})
        got = store.get_calendar_by_id(cal.id)
        assert got.payout_details == {"paymentType": "monthly", "iban": "DE00", "paymentMethod": "paypal"}
        assert got.payout_records == {"2025-09": {"status": "paid"}}
        assert got.version == 2


def test_seed_writes_pending_or_skips_paid():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        cal = SharedCalendar(owner_id="u1", payout_records={
            "2025-10": {"status": "pending", "note": "kept"},
            "2025-11": {"status": "paid", "amountPaid": 10.0},
        })
        db.session.add(cal); db.session.commit()

        store = CalendarStore()
        assert store.seed_payout_record(cal.id, "2025-10", {"cycleStart": "2025-10-01"}) is True
        got = store.get_calendar_by_id(cal.id)
        assert got.payout_records["2025-10"] == {"status": "pending", "note": "kept", "cycleStart": "2025-10-01"}
        assert got.version == 2

        assert store.seed_payout_record(cal.id, "2025-11", {"cycleStart": "2025-11-01"}) is False
        got = store.get_calendar_by_id(cal.id)
        assert got.payout_records["2025-11"] == {"status": "paid", "amountPaid": 10.0}
        assert got.version == 2


def test_missing_calendar():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        store = CalendarStore()
        assert store.get_calendar_by_id(42) is None
        assert store.get_calendar_by_id("nope") is None
        with pytest.raises(NoResultFound):
            store.update_payout_record(42, "2025-09", {"status": "paid"})


def test_list_by_owner_is_ordered():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        db.session.add_all([
            SharedCalendar(owner_id="u1", name="a", payout_records={}),
            SharedCalendar(owner_id="u2", name="b", payout_records={}),
            SharedCalendar(owner_id="u1", name="c", payout_records={}),
        ])
        db.session.commit()
        assert [c.name for c in CalendarStore.list_calendars_by_owner("u1")] == ["a", "c"]


def test_concurrent_write_is_rejected():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        cal = SharedCalendar(owner_id="u1", payout_records={})
        db.session.add(cal); db.session.commit()

        loaded = db.session.get(SharedCalendar, cal.id)
        assert loaded.version == 1
        # another writer bumps the version behind our back
        db.session.execute(text("UPDATE shared_calendars SET version = version + 1 WHERE id = :id"), {"id": cal.id})
        loaded.name = "renamed"
        with pytest.raises(StaleDataError):
            db.session.commit()
        db.session.rollback()


def test_migration_marker_upsert():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        store = CalendarStore()
        assert store.get_migration_marker("u1") is None
        store.save_migration_marker("u1", 2, 3, 0)
        store.save_migration_marker("u1", 2, 4, 0)
        m = store.get_migration_marker("u1")
        assert (m.version, m.succeeded, m.failed) == (2, 4, 0)

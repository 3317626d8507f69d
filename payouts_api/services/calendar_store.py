# payouts_api/services/calendar_store.py
from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm.attributes import flag_modified

from payouts_api.extensions import db
from payouts_api.models.calendar import SharedCalendar
from payouts_api.models.calendar_event import CalendarEvent
from payouts_api.models.migration_marker import PayoutMigrationMarker
from .payout_ledger import seed_pending_record, upsert_record
from .period_calculator import to_date


class CalendarStore:
    """Calendar document access. Each write method is one commit; errors propagate."""

    @staticmethod
    def get_calendar_by_id(calendar_id) -> Optional[SharedCalendar]:
        try:
            cid = int(calendar_id)
        except (TypeError, ValueError):
            return None
        return db.session.get(SharedCalendar, cid)

    @staticmethod
    def list_calendars_by_owner(owner_id: str) -> List[SharedCalendar]:
        return (
            SharedCalendar.query
            .filter(SharedCalendar.owner_id == str(owner_id))
            .order_by(SharedCalendar.id.asc())
            .all()
        )

    def _require(self, calendar_id) -> SharedCalendar:
        cal = self.get_calendar_by_id(calendar_id)
        if cal is None:
            raise NoResultFound(f"calendar {calendar_id} not found")
        return cal

    @staticmethod
    def _set_records(cal: SharedCalendar, records: Dict[str, Any]):
        cal.payout_records = records
        flag_modified(cal, "payout_records")

    def update_payout_details_and_record(
        self,
        calendar_id,
        period_key: str,
        payout_details_patch: Optional[Mapping[str, Any]],
        record_patch: Mapping[str, Any],
    ) -> None:
        cal = self._require(calendar_id)
        if payout_details_patch:
            details = dict(cal.payout_details or {})
            details.update({k: v for k, v in payout_details_patch.items() if v is not None})
            cal.payout_details = details
            flag_modified(cal, "payout_details")
        self._set_records(cal, upsert_record(cal.payout_records, period_key, record_patch))
        db.session.commit()

    def update_payout_record(self, calendar_id, period_key: str, record_patch: Mapping[str, Any]) -> None:
        cal = self._require(calendar_id)
        self._set_records(cal, upsert_record(cal.payout_records, period_key, record_patch))
        db.session.commit()

    def seed_payout_record(self, calendar_id, period_key: str, record_patch: Mapping[str, Any]) -> bool:
        """
        Conditional update_payout_record for the pending pre-seed of an upcoming
        period. Returns False without writing when that period is already paid.
        """
        cal = self._require(calendar_id)
        records, seeded = seed_pending_record(cal.payout_records, period_key, record_patch)
        if not seeded:
            return False
        self.update_payout_record(calendar_id, period_key, records[period_key])
        return True

    def replace_payout_records(self, calendar_id, records: Mapping[str, Any]) -> None:
        cal = self._require(calendar_id)
        self._set_records(cal, dict(records))
        db.session.commit()

    # ---- per-owner migration marker ----
    @staticmethod
    def get_migration_marker(owner_id: str) -> Optional[PayoutMigrationMarker]:
        return db.session.get(PayoutMigrationMarker, str(owner_id))

    def save_migration_marker(self, owner_id: str, version: int, succeeded: int, failed: int) -> PayoutMigrationMarker:
        marker = self.get_migration_marker(owner_id)
        if marker is None:
            marker = PayoutMigrationMarker(owner_id=str(owner_id))
            db.session.add(marker)
        marker.version = version
        marker.succeeded = succeeded
        marker.failed = failed
        marker.migrated_at = datetime.utcnow()
        db.session.commit()
        return marker

    @staticmethod
    def rollback() -> None:
        db.session.rollback()


class EventStore:
    """Read side of calendar events, used to total worked hours for a period."""

    @staticmethod
    def calculate_work_hours(calendar_id, start_date, end_date, only_completed: bool = True) -> float:
        start, end = to_date(start_date), to_date(end_date)
        if start is None or end is None or end < start:
            return 0.0
        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end + timedelta(days=1), time.min)

        q = (
            db.session.query(func.coalesce(func.sum(CalendarEvent.duration_minutes), 0))
            .filter(CalendarEvent.calendar_id == int(calendar_id))
            .filter(CalendarEvent.start_at >= window_start)
            .filter(CalendarEvent.start_at < window_end)
            .filter(CalendarEvent.duration_minutes > 0)
        )
        if only_completed:
            q = q.filter(CalendarEvent.service_status == "completed")
        minutes = q.scalar() or 0
        return float(minutes) / 60.0

from datetime import datetime
from payouts_api.extensions import db


class CalendarEvent(db.Model):
    """Booked service on a calendar. Only read here, to total worked hours per period."""

    __tablename__ = "calendar_events"

    id = db.Column(db.Integer, primary_key=True)
    calendar_id = db.Column(
        db.Integer, db.ForeignKey("shared_calendars.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(255))
    start_at = db.Column(db.DateTime, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=0)
    # scheduled | completed | cancelled
    service_status = db.Column(db.String(20), nullable=False, default="scheduled")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_calendar_events_window", "calendar_id", "start_at"),
    )

from datetime import datetime
from payouts_api.extensions import db


class SharedCalendar(db.Model):
    """
    A professional's calendar. The payout configuration and the payout ledger
    live on the calendar row itself as JSON documents:

      payout_details  -> {"paymentType": "monthly", "paymentDay": 1,
                          "paymentMethod": "transfer", "iban": ..., ...}
      payout_records  -> {"<periodKey>": {"status": "paid", "cycleStart": "2025-09-01", ...}}

    `version` is SQLAlchemy's optimistic-concurrency counter: a flush that
    races another writer raises StaleDataError instead of silently winning.
    """

    __tablename__ = "shared_calendars"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(128), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default="Calendar")
    payout_details = db.Column(db.JSON, nullable=True)
    payout_records = db.Column(db.JSON, nullable=False, default=dict)
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    events = db.relationship(
        "CalendarEvent", backref="calendar", lazy="dynamic", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<SharedCalendar id={self.id} owner={self.owner_id!r}>"

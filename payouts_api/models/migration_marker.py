from datetime import datetime
from payouts_api.extensions import db


class PayoutMigrationMarker(db.Model):
    """Per-owner record of the last payout-key migration that completed cleanly."""

    __tablename__ = "payout_migration_markers"

    owner_id = db.Column(db.String(128), primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=0)
    succeeded = db.Column(db.Integer, nullable=False, default=0)
    failed = db.Column(db.Integer, nullable=False, default=0)
    migrated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

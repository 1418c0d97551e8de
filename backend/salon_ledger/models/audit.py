from __future__ import annotations

from ..extensions import db
from salon_ledger.time_utils import to_utc_z


class ReconciliationEvent(db.Model):
    """
    Append-only trail of every mutation the reconciliation engine performs.

    Written inside the same transaction as the change it records, so a
    rolled-back settlement or override leaves no event behind.
    """
    __tablename__ = "reconciliation_events"
    __table_args__ = (
        db.Index("ix_reconciliation_events_location_occurred", "location_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    location_id = db.Column(db.Integer, nullable=True, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "location_id": self.location_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "note": self.note,
            "payload": self.payload,
        }

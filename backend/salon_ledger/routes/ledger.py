# Overview: Flask API routes for reviewing reconciliation events; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..extensions import db
from ..models import ReconciliationEvent
from ..time_utils import parse_iso_datetime

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- as_of filtering is inclusive: occurred_at <= as_of.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("/events")
def list_reconciliation_events_route():
    location_id = request.args.get("location_id", type=int)
    event_type = request.args.get("event_type")

    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))

    try:
        as_of = parse_iso_datetime(request.args.get("as_of"))
        since = parse_iso_datetime(request.args.get("since"))
    except ValueError:
        return jsonify({"error": "as_of/since must be ISO-8601 datetimes"}), 400

    q = db.session.query(ReconciliationEvent)
    if location_id is not None:
        q = q.filter(ReconciliationEvent.location_id == location_id)
    if event_type:
        q = q.filter(ReconciliationEvent.event_type == event_type)
    if since is not None:
        q = q.filter(ReconciliationEvent.occurred_at >= since)
    if as_of is not None:
        q = q.filter(ReconciliationEvent.occurred_at <= as_of)

    events = q.order_by(ReconciliationEvent.occurred_at.desc(), ReconciliationEvent.id.desc()).limit(limit).all()
    return jsonify({"events": [e.to_dict() for e in events]}), 200

# Overview: Flask API routes for live cash and cash cuts; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import cash_service
from ..store import TransactionAbortedError, get_store
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError

"""
Time semantics:
- as_of is inclusive: events stamped <= as_of are counted.
- Events stamped exactly at a cash cut belong to the period before it.
"""

cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


@cash_bp.get("/live")
def live_cash_route():
    location_id = request.args.get("location_id", type=int)
    try:
        as_of = parse_iso_datetime(request.args.get("as_of"))
    except ValueError:
        return jsonify({"error": "as_of must be an ISO-8601 datetime"}), 400

    try:
        result = cash_service.live_cash(get_store(), location_id, as_of=as_of)
        return jsonify(result.to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to compute live cash")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/cuts")
def record_cash_cut_route():
    payload = request.get_json(silent=True)
    try:
        cut = cash_service.record_cash_cut(get_store(), payload)
        return jsonify(cut.to_dict()), 201
    except (ValidationError, cash_service.CashError) as e:
        return jsonify({"error": str(e)}), 400
    except TransactionAbortedError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record cash cut")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for commission summaries, settlement and payout deletion.

from flask import Blueprint, current_app, jsonify, request

from ..services import commission_service, settlement_service
from ..store import RecordKind, TransactionAbortedError, get_store
from ..time_utils import parse_iso_datetime
from ..validation import NotFoundError, ValidationError

commissions_bp = Blueprint("commissions", __name__, url_prefix="/api")


def _parse_range():
    start = parse_iso_datetime(request.args.get("start"))
    end = parse_iso_datetime(request.args.get("end"))
    if start and end and start > end:
        raise ValidationError("start must be before end")
    return start, end


@commissions_bp.get("/commissions/summary")
def commission_summary_route():
    location_id = request.args.get("location_id", type=int)
    try:
        start, end = _parse_range()
    except ValueError as e:
        return jsonify({"error": str(e) or "start/end must be ISO-8601 datetimes"}), 400

    try:
        store = get_store()
        expenses = store.query(RecordKind.EXPENSE, location_id, date_from=start, date_to=end)
        summary = commission_service.summarize(expenses, store.professionals())
        return jsonify({
            "location_id": location_id,
            "recipients": {name: breakdown.to_dict() for name, breakdown in sorted(summary.items())},
        }), 200
    except Exception:
        current_app.logger.exception("Failed to summarize commissions")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.get("/commissions/pending")
def pending_commissions_route():
    location_id = request.args.get("location_id", type=int)
    professional_id = request.args.get("professional_id", type=int)
    try:
        start, end = _parse_range()
    except ValueError as e:
        return jsonify({"error": str(e) or "start/end must be ISO-8601 datetimes"}), 400

    try:
        pending = commission_service.pending_commissions(
            get_store(), start, end, location_id=location_id, professional_id=professional_id,
        )
        return jsonify({"professionals": [p.to_dict() for p in pending]}), 200
    except Exception:
        current_app.logger.exception("Failed to compute pending commissions")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.post("/commissions/settle")
def settle_commissions_route():
    payload = request.get_json(silent=True) or {}
    if payload.get("professional_id") is None:
        return jsonify({"error": "professional_id is required"}), 400

    try:
        paid_at = parse_iso_datetime(payload.get("paid_at"))
    except ValueError:
        return jsonify({"error": "paid_at must be an ISO-8601 datetime"}), 400

    try:
        expense = settlement_service.settle_commissions(
            get_store(),
            professional_id=payload["professional_id"],
            item_refs=payload.get("item_refs") or [],
            tip_sale_ids=payload.get("tip_sale_ids") or [],
            location_id=payload.get("location_id"),
            paid_at=paid_at,
        )
        return jsonify(expense.to_dict()), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, settlement_service.SettlementError) as e:
        return jsonify({"error": str(e)}), 400
    except TransactionAbortedError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to settle commissions")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.delete("/expenses/<int:expense_id>")
def delete_expense_route(expense_id: int):
    try:
        reversal = settlement_service.delete_expense(get_store(), expense_id)
        return jsonify({
            "deleted": expense_id,
            "reversal": reversal.to_dict() if reversal is not None else None,
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except TransactionAbortedError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500

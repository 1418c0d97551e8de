# Overview: Flask API routes for recording sales, expenses and manual incomes.

from flask import Blueprint, current_app, jsonify, request

from ..services import records_service
from ..store import TransactionAbortedError, get_store
from ..validation import ValidationError

records_bp = Blueprint("records", __name__, url_prefix="/api")


def _record(fn, what: str):
    payload = request.get_json(silent=True)
    try:
        record = fn(get_store(), payload)
        return jsonify(record.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TransactionAbortedError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record %s", what)
        return jsonify({"error": "Internal server error"}), 500


@records_bp.post("/sales")
def record_sale_route():
    return _record(records_service.record_sale, "sale")


@records_bp.post("/expenses")
def record_expense_route():
    return _record(records_service.record_expense, "expense")


@records_bp.post("/incomes")
def record_manual_income_route():
    return _record(records_service.record_manual_income, "manual income")

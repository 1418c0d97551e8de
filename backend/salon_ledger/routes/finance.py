# Overview: Flask API routes for monthly finance reports, overrides and admin adjustments.

from flask import Blueprint, current_app, jsonify, request

from ..services import override_service, reporting_service
from ..store import TransactionAbortedError, get_store
from ..validation import NotFoundError, ValidationError

finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


@finance_bp.get("/<int:year>/<int:month>")
def monthly_report_route(year: int, month: int):
    location_id = request.args.get("location_id", type=int)
    try:
        report = reporting_service.monthly_report(get_store(), month, year, location_id=location_id)
        return jsonify(report.to_dict()), 200
    except (ValidationError, reporting_service.ReportError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build monthly report")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/<int:year>/summary")
def annual_summary_route(year: int):
    location_id = request.args.get("location_id", type=int)
    try:
        summary = reporting_service.annual_summary(get_store(), year, location_id=location_id)
        return jsonify(summary), 200
    except (ValidationError, reporting_service.ReportError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build annual summary")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/<int:year>/<int:month>/override")
def get_override_route(year: int, month: int):
    location_id = request.args.get("location_id", type=int)
    try:
        override = override_service.get_override(get_store(), year, month, location_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    if override is None:
        return jsonify({"error": "Override not found"}), 404
    return jsonify(override.to_dict()), 200


@finance_bp.put("/<int:year>/<int:month>/override")
def save_override_route(year: int, month: int):
    location_id = request.args.get("location_id", type=int)
    payload = request.get_json(silent=True)
    try:
        override = override_service.save_override(get_store(), year, month, payload, location_id=location_id)
        return jsonify(override.to_dict()), 200
    except (ValidationError, override_service.OverrideError) as e:
        return jsonify({"error": str(e)}), 400
    except TransactionAbortedError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to save override")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.delete("/<int:year>/<int:month>/override")
def delete_override_route(year: int, month: int):
    location_id = request.args.get("location_id", type=int)
    try:
        override_service.delete_override(get_store(), year, month, location_id)
        return jsonify({"deleted": True}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except TransactionAbortedError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete override")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.put("/<int:year>/<int:month>/admin-adjustments/<int:admin_id>")
def set_admin_adjustment_route(year: int, month: int, admin_id: int):
    payload = request.get_json(silent=True)
    try:
        rows = override_service.set_admin_adjustment(get_store(), admin_id, year, month, payload)
        return jsonify({"adjustments": [row.to_dict() for row in rows]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except TransactionAbortedError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to set admin adjustment")
        return jsonify({"error": "Internal server error"}), 500

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from teacher_pay import Caller, InMemoryStore, PaymentService
from teacher_pay.errors import (
    ClassNotFound,
    ConfirmationNotFound,
    DuplicateConfirmation,
    NoPeriodForDate,
    PaymentEngineError,
    PermissionDenied,
)
from teacher_pay.models import parse_day
from teacher_pay.output import OutputBuilder
import json
import os
import logging

# Environment configuration
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
DATA_FILE = os.environ.get("PAYMENTS_DATA_FILE")

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

output = OutputBuilder()


def load_store(path):
    """Seed the in-memory store from a JSON snapshot, or start empty."""
    if not path:
        return InMemoryStore()
    with open(path) as f:
        return InMemoryStore.from_dict(json.load(f))


def current_caller():
    """Identity forwarded by the upstream auth layer."""
    roles = request.headers.get("X-User-Roles", "")
    return Caller(
        user_id=request.headers.get("X-User-Id"),
        roles=frozenset(r.strip().upper() for r in roles.split(",") if r.strip()),
    )


def _bounds_from_args(service):
    return service.resolve_bounds(request.args.get("start"), request.args.get("end"))


def _bounds_from_body(service, data):
    return service.resolve_bounds(data.get("period_start"), data.get("period_end"))


def create_app(service=None):
    app = Flask(__name__)

    # Enable CORS for all routes (admin dashboard calls the API from the browser)
    CORS(app)

    if service is None:
        service = PaymentService(load_store(DATA_FILE))
    app.config["PAYMENT_SERVICE"] = service

    @app.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return e
        if isinstance(e, DuplicateConfirmation):
            logger.info(f"Duplicate confirmation: {str(e)}")
            return jsonify({
                "error": str(e),
                "status": "already_confirmed",
                "confirmation": output.confirmation(e.existing),
            }), 409
        if isinstance(e, PermissionDenied):
            return jsonify({"error": str(e), "status": "forbidden"}), 403
        if isinstance(e, (ClassNotFound, ConfirmationNotFound, NoPeriodForDate)):
            return jsonify({"error": str(e), "status": "not_found"}), 404
        if isinstance(e, (PaymentEngineError, ValueError, KeyError)):
            logger.error(f"Validation error: {str(e)}")
            return jsonify({"error": str(e), "status": "validation_failed"}), 400
        # Unexpected errors - log details but return a generic message
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return jsonify({"error": "An unexpected error occurred during processing", "status": "failed"}), 500

    @app.route("/api", methods=["GET"])
    def api_info():
        """API information endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Teacher Payments Engine API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "endpoints": {
                "summary": "/payments/summary [GET]",
                "teacher_payments": "/payments/teachers [GET]",
                "payable_report": "/payments/report [GET]",
                "class_payability": "/classes/<id>/payable [POST]",
                "retention_incentives": "/incentives/retention [POST]",
                "perfect_attendance_incentives": "/incentives/perfect-attendance [POST]",
                "manual_incentive": "/incentives [POST]",
                "mark_paid": "/incentives/mark-paid [POST]",
                "confirmations": "/confirmations [GET, POST]",
                "health": "/health [GET]"
            }
        }), 200

    @app.route("/health", methods=["GET"])
    def health():
        """Health check for monitoring"""
        return jsonify({"status": "healthy", "environment": ENVIRONMENT}), 200

    # -- payments -------------------------------------------------------------

    @app.route("/payments/summary", methods=["GET"])
    def payment_summary():
        bounds = _bounds_from_args(service)
        summary = service.get_period_summary(bounds)
        return jsonify(output.period_summary(summary, bounds)), 200

    @app.route("/payments/teachers", methods=["GET"])
    def teacher_payments():
        bounds = _bounds_from_args(service)
        totals = service.get_teacher_payment_details(bounds, request.args.get("teacher_id"))
        return jsonify({
            "period": output.bounds(bounds),
            "teachers": [output.teacher_payment(t) for t in totals],
        }), 200

    @app.route("/payments/report", methods=["GET"])
    def payable_report():
        bounds = _bounds_from_args(service)
        totals, excluded = service.get_payable_classes_report(bounds, request.args.get("teacher_id"))
        return jsonify({
            "period": output.bounds(bounds),
            "teachers": [output.teacher_payment(t) for t in totals],
            "excluded_classes": [output.excluded_class(e) for e in excluded],
        }), 200

    @app.route("/classes/<class_id>/payable", methods=["POST"])
    def set_class_payable(class_id):
        data = request.get_json(silent=True) or {}
        if "is_payable" not in data:
            return jsonify({"error": "is_payable is required", "status": "validation_failed"}), 400
        record = service.set_class_manual_payability(current_caller(), class_id, data["is_payable"])
        return jsonify({"success": True, "class_id": record.id, "is_payable": record.is_payable}), 200

    @app.route("/teachers", methods=["GET"])
    def active_teachers():
        return jsonify({"teachers": [output.teacher(t) for t in service.get_active_teachers()]}), 200

    @app.route("/periods/lookup", methods=["GET"])
    def period_lookup():
        day = parse_day(request.args.get("date") or service.clock().date())
        period = service.get_period_for_date(day)
        return jsonify({"date": day.isoformat(), "period_id": period.id, "period_name": period.name}), 200

    # -- incentives -----------------------------------------------------------

    @app.route("/incentives/retention", methods=["POST"])
    def retention_incentives():
        data = request.get_json(silent=True) or {}
        created = service.run_retention_incentives(
            current_caller(), data["period_id"], data.get("previous_period_id")
        )
        logger.info(f"Retention run for {data['period_id']}: {len(created)} incentives")
        return jsonify({
            "success": True,
            "count": len(created),
            "incentives": [output.incentive(i) for i in created],
        }), 200

    @app.route("/incentives/perfect-attendance", methods=["POST"])
    def perfect_attendance_incentives():
        data = request.get_json(silent=True) or {}
        created = service.run_perfect_attendance_incentives(current_caller(), data["period_id"])
        return jsonify({
            "success": True,
            "count": len(created),
            "incentives": [output.incentive(i) for i in created],
        }), 200

    @app.route("/incentives", methods=["POST"])
    def manual_incentive():
        data = request.get_json(silent=True) or {}
        incentive = service.create_manual_incentive(
            current_caller(),
            teacher_id=data.get("teacher_id"),
            period_id=data.get("period_id"),
            incentive_type=data.get("type", "MANUAL"),
            percentage=data.get("percentage"),
            base_amount=data.get("base_amount"),
        )
        return jsonify({"success": True, "incentive": output.incentive(incentive)}), 201

    @app.route("/incentives/mark-paid", methods=["POST"])
    def mark_incentives_paid():
        data = request.get_json(silent=True) or {}
        count = service.mark_incentives_paid(current_caller(), data.get("incentive_ids", []))
        return jsonify({"success": True, "count": count}), 200

    @app.route("/teachers/<teacher_id>/incentives", methods=["GET"])
    def teacher_incentives(teacher_id):
        incentives = service.get_teacher_incentives(teacher_id)
        return jsonify({"incentives": [output.incentive(i) for i in incentives]}), 200

    # -- confirmations --------------------------------------------------------

    @app.route("/confirmations", methods=["POST"])
    def create_confirmation():
        data = request.get_json(silent=True) or {}
        confirmation = service.create_confirmation(
            current_caller(),
            teacher_id=data["teacher_id"],
            amount=data["amount"],
            bounds=_bounds_from_body(service, data),
            proof_url=data.get("proof_url"),
            has_proof=data.get("has_proof"),
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "confirmation": output.confirmation(confirmation)}), 201

    @app.route("/confirmations", methods=["GET"])
    def list_confirmations():
        start = request.args.get("start")
        end = request.args.get("end")
        confirmations = service.get_confirmations(
            teacher_id=request.args.get("teacher_id"),
            period_start=parse_day(start) if start else None,
            period_end=parse_day(end) if end else None,
            status=request.args.get("status"),
        )
        return jsonify({"confirmations": [output.confirmation(c) for c in confirmations]}), 200

    @app.route("/confirmations/exists", methods=["GET"])
    def confirmation_exists():
        bounds = _bounds_from_args(service)
        existing = service.check_confirmation_exists(request.args["teacher_id"], bounds)
        if existing is None:
            return jsonify({"exists": False}), 200
        return jsonify({"exists": True, "confirmation": output.confirmation(existing)}), 200

    @app.route("/confirmations/stats", methods=["GET"])
    def confirmation_stats():
        return jsonify(output.confirmation_stats(service.get_confirmation_stats())), 200

    @app.route("/confirmations/<confirmation_id>", methods=["GET"])
    def get_confirmation(confirmation_id):
        return jsonify(output.confirmation(service.get_confirmation(confirmation_id))), 200

    @app.route("/confirmations/<confirmation_id>/status", methods=["POST"])
    def update_confirmation_status(confirmation_id):
        data = request.get_json(silent=True) or {}
        confirmation = service.update_confirmation_status(
            current_caller(), confirmation_id, data.get("status"), data.get("notes")
        )
        return jsonify({"success": True, "confirmation": output.confirmation(confirmation)}), 200

    @app.route("/teachers/<teacher_id>/confirmations", methods=["GET"])
    def teacher_payment_history(teacher_id):
        history = service.get_teacher_payment_history(teacher_id)
        return jsonify({"confirmations": [output.confirmation(c) for c in history]}), 200

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)

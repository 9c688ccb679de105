from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import current_auth, json_body, login_required
from ..container import Container
from .ingestor import parse_batch_payload, parse_manual_payload


def register(app: Flask, container: Container) -> None:
    ingestor = container.event_ingestor

    @app.route("/api/attendance/bulk", methods=["POST"], endpoint="api_attendance_bulk")
    @login_required
    def api_attendance_bulk():
        batch = parse_batch_payload(json_body())
        result = ingestor.ingest_batch(current_auth(), batch)
        return jsonify(result.to_dict())

    @app.route("/api/attendance/manual", methods=["POST"], endpoint="api_attendance_manual")
    @login_required
    def api_attendance_manual():
        entry = parse_manual_payload(json_body())
        event = ingestor.record_manual(current_auth(), entry)
        return jsonify({"success": True, "attendance": event.to_dict()}), 201

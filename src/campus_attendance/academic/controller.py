from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import current_auth, json_body, login_required
from ..core.exceptions import ValidationError
from ..container import Container
from .service import parse_semesters_payload, parse_year


def register(app: Flask, container: Container) -> None:
    calendar = container.calendar_service

    @app.route("/api/academic-years", methods=["GET"], endpoint="api_academic_years")
    @login_required
    def api_academic_years():
        years = calendar.list_years(current_auth())
        return jsonify([y.to_dict() for y in years])

    @app.route("/api/academic-years/<int:year>", methods=["GET"], endpoint="api_academic_year")
    @login_required
    def api_academic_year(year: int):
        return jsonify(calendar.get_year(current_auth(), year).to_dict())

    @app.route("/api/academic-years", methods=["POST"], endpoint="api_academic_years_create")
    @login_required
    def api_academic_years_create():
        payload = json_body()
        if not payload.get("year"):
            raise ValidationError("Missing required fields: year, semesters array")
        year = calendar.create_year(
            current_auth(),
            parse_year(payload.get("year")),
            parse_semesters_payload(payload.get("semesters")),
            notes=payload.get("notes"),
        )
        return jsonify(year.to_dict()), 201

    @app.route("/api/academic-years/<int:year>", methods=["PUT"], endpoint="api_academic_years_update")
    @login_required
    def api_academic_years_update(year: int):
        payload = json_body()
        declared = payload.get("year")
        result = calendar.apply_update(
            current_auth(),
            year,
            parse_semesters_payload(payload.get("semesters")),
            declared_year=parse_year(declared) if declared not in (None, "") else None,
        )
        return jsonify(result.to_dict())

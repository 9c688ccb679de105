"""Flask helpers shared by the JSON controllers."""

from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import Flask, g, jsonify, request, session

from ..core.auth import AuthContext
from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .app_logger import get_logger
from .datetime_utils import coerce_date
from .validators import optional_positive_int

logger = get_logger(__name__)

# Most specific first: ConflictError is also a ValidationError.
STATUS_BY_ERROR = (
    (ConflictError, 409),
    (ValidationError, 400),
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (PersistenceError, 500),
)


def status_for(exc: DomainError) -> int:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 500


def error_response(exc: DomainError):
    return jsonify({"error": str(exc), "kind": exc.kind}), status_for(exc)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        if isinstance(exc, PersistenceError):
            logger.error("%s %s failed: %s", request.method, request.path, exc)
        return error_response(exc)


def login_required(view):
    """Resolve the session actor into g.auth; 401 when there is none."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        user_id = session.get("user_id")
        role = session.get("role")
        if user_id is None or not role:
            return jsonify({"error": "Authentication required", "kind": "UNAUTHENTICATED"}), 401
        try:
            g.auth = AuthContext(user_id=int(user_id), role=Role(str(role).upper()))
        except ValueError:
            return jsonify({"error": "Authentication required", "kind": "UNAUTHENTICATED"}), 401
        return view(*args, **kwargs)

    return wrapper


def current_auth() -> AuthContext:
    return g.auth


def arg_int(name: str) -> Optional[int]:
    return optional_positive_int(request.args.get(name), name)


def arg_date(name: str):
    value = request.args.get(name)
    return coerce_date(value, name) if value else None


def arg_bool(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload

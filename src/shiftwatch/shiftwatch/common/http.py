from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from flask import Flask, jsonify, request

from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    CollaboratorError,
    ConcurrencyConflict,
    DomainError,
    IllegalTransitionError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from ..payments.model import Actor
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400, "validation"),
    (AuthorizationError, 403, "authorization"),
    (NotFoundError, 404, "not_found"),
    (IllegalTransitionError, 409, "illegal_transition"),
    (ConcurrencyConflict, 409, "concurrency_conflict"),
    (InsufficientFundsError, 402, "insufficient_funds"),
    (CollaboratorError, 502, "collaborator"),
)


def error_response(exc: DomainError):
    status, kind = 400, "domain"
    for error_type, code, name in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status, kind = code, name
            break
    body: dict[str, Any] = {"success": False, "error": kind, "message": str(exc)}
    current = getattr(exc, "current_status", None)
    if current is not None:
        body["current_status"] = getattr(current, "value", current)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        logger.info("%s %s rejected: %s", request.method, request.path, exc)
        return error_response(exc)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def int_field(data: dict, name: str, *, default: int = 0) -> int:
    value = data.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"'{name}' must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be a whole number")


def date_arg(name: str = "date", *, default: Optional[date] = None) -> date:
    value = request.args.get(name)
    if not value:
        if default is None:
            raise ValidationError(f"Query parameter '{name}' is required")
        return default
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"'{name}' must be YYYY-MM-DD")


def current_actor() -> Actor:
    """Actor from the X-Actor-Role / X-Actor-Id headers set by the gateway."""
    raw_role = (request.headers.get("X-Actor-Role") or "").strip().lower()
    try:
        role = Role(raw_role)
    except ValueError:
        raise AuthorizationError("X-Actor-Role header is missing or unknown")
    if role == Role.SYSTEM:
        raise AuthorizationError("The system actor cannot be claimed over HTTP")

    raw_id = (request.headers.get("X-Actor-Id") or "").strip()
    if not raw_id.isdigit():
        raise AuthorizationError("X-Actor-Id header is missing or invalid")
    return Actor(role=role, actor_id=int(raw_id))

"""Flask boundary helpers: the session actor, JSON envelopes and error mapping."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import AuthenticationError, DomainError, ValidationError
from ..users.model import Actor
from .pagination import Page

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "validation": 400,
    "conflict": 400,
    "unauthenticated": 401,
    "forbidden": 403,
    "not_found": 404,
}


def current_actor() -> Actor:
    """Actor placed in the Flask session by the authentication layer."""
    user_id = session.get("user_id")
    role = session.get("role")
    if user_id is None or role is None:
        raise AuthenticationError("Please log in to continue")
    try:
        return Actor(user_id=int(user_id), role=Role(role))
    except ValueError:
        raise AuthenticationError("Session is invalid, please log in again")


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def query_int(name: str) -> Optional[int]:
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


def ok(data: Any = None, *, status: int = 200, **extra):
    body = {"success": True, **{k: to_jsonable(v) for k, v in extra.items()}}
    if data is not None:
        body["data"] = to_jsonable(data)
    return jsonify(body), status


def ok_page(page: Page, serialize: Callable[[Any], dict]):
    return ok(
        [serialize(item) for item in page.items],
        count=len(page.items),
        total=page.total,
        page=page.page,
        pages=page.pages,
    )


def _failure(kind: str, message: str, status: int):
    return jsonify({"success": False, "kind": kind, "message": message}), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        status = STATUS_BY_KIND.get(exc.kind, 500)
        logger.info("%s %s rejected (%s): %s", request.method, request.path, exc.kind, exc)
        return _failure(exc.kind, str(exc), status)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return _failure("http", exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _failure("internal", "Internal server error", 500)

"""Helpers shared by the JSON blueprints.

Request bodies arrive as JSON but validation is done with WTForms, so the
payload is flattened into a MultiDict the forms can consume.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

from dateutil.parser import isoparse
from flask import abort, g, jsonify, request
from werkzeug.datastructures import MultiDict


def _as_form_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "y" if value else ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


TRUE_STRINGS = frozenset({"1", "true", "yes", "y", "on"})
FALSE_STRINGS = frozenset({"0", "false", "no", "n", "off", ""})


def json_body() -> dict[str, Any]:
    """Request JSON as a dict; 400 when the body is JSON but not an object."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        abort(400, description="JSON body must be an object")
    return body


def parse_bool(value: Any, field: str = "value") -> bool:
    """Strict boolean for JSON flags: "false", "0" and "no" stay False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    raise ValueError(f"{field} must be a boolean")


def form_from_json(form_cls, payload: Mapping[str, Any] | None = None):
    """Instantiate a FlaskForm from a JSON payload (CSRF disabled)."""
    if payload is None:
        payload = json_body()
    formdata: MultiDict = MultiDict()
    for key, value in payload.items():
        if isinstance(value, (list, tuple)):
            for item in value:
                formdata.add(key, _as_form_value(item))
        elif value is not None:
            formdata.add(key, _as_form_value(value))
    return form_cls(formdata=formdata, meta={"csrf": False})


def present_data(form, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Validated field values, limited to keys the client actually sent.

    Lets PATCH-style updates tell "omitted" apart from "false"/"empty".
    """
    return {name: field.data for name, field in form._fields.items() if name in payload}


def form_errors(form) -> str:
    parts = []
    for field, errors in form.errors.items():
        parts.append(f"{field}: {'; '.join(str(e) for e in errors)}")
    return ", ".join(parts)


def error_response(message: str, status: int = 400):
    return jsonify({"status": "error", "message": message}), status


def parse_date_arg(raw: str | None, *, required: bool = False) -> date | None:
    """Parse a YYYY-MM-DD query/body value, aborting with 400 when invalid."""
    raw = (raw or "").strip()
    if not raw:
        if required:
            abort(400, description="date is required")
        return None
    try:
        return isoparse(raw).date()
    except ValueError:
        abort(400, description=f"invalid date: {raw}")


def resolve_org_id(raw: Any = None) -> int:
    """Return the org the request acts on.

    Members are pinned to their own org; platform admins (and unauthenticated
    calls when REQUIRE_AUTH is off) must name it explicitly.
    """
    member = getattr(g, "member", None)
    if raw is None:
        raw = request.args.get("org_id")
        if raw is None:
            body = json_body()
            raw = body.get("org_id")
    org_id = None
    if raw not in (None, ""):
        try:
            org_id = int(raw)
        except (TypeError, ValueError):
            abort(400, description="org_id must be an integer")
    if member is not None and member.role != "admin":
        if org_id is not None and org_id != member.org_id:
            abort(403, description="org_id does not match the authenticated member")
        return member.org_id
    if org_id is None:
        abort(400, description="org_id is required")
    return org_id


def scope_org_id() -> int | None:
    """Tenant filter for row lookups: None for admins / auth disabled."""
    member = getattr(g, "member", None)
    if member is None or member.role == "admin":
        return None
    return member.org_id

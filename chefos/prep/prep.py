from flask import Blueprint, current_app, g, jsonify, request

from ..auth.auth import require_roles
from ..gating.gating import feature_required
from ..utils_api import (
    error_response,
    form_errors,
    form_from_json,
    json_body,
    parse_date_arg,
    resolve_org_id,
    scope_org_id,
)
from ..utils_db import get_or_404, get_scoped_or_404
from . import services
from .forms import PrepItemForm, PrepListForm
from .models import PrepItem, PrepList

prep_bp = Blueprint("prep", __name__)


def _list_in_scope(list_id: int) -> PrepList:
    return get_scoped_or_404(PrepList, list_id, scope_org_id())


@prep_bp.route("/lists", methods=["GET"])
@require_roles()
@feature_required("prep")
def lists_for_date():
    org_id = resolve_org_id()
    day = parse_date_arg(request.args.get("date"), required=True)
    return jsonify([p.to_dict() for p in services.lists_for_date(org_id, day)])


@prep_bp.route("/lists", methods=["POST"])
@require_roles()
@feature_required("prep")
def create_list():
    payload = json_body()
    org_id = resolve_org_id()
    form = form_from_json(PrepListForm, {k: v for k, v in payload.items() if k != "items"})
    if not form.validate():
        return error_response(form_errors(form))
    items = payload.get("items") or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        return error_response("items must be a list of objects")
    data = dict(form.data, items=items)
    member = getattr(g, "member", None)
    try:
        plist = services.create_list(org_id, data, created_by=member.id if member else None)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "prep_list": plist.to_dict()}), 201


@prep_bp.route("/lists/<int:list_id>")
@require_roles()
@feature_required("prep")
def get_list(list_id: int):
    return jsonify(_list_in_scope(list_id).to_dict())


@prep_bp.route("/lists/<int:list_id>/items", methods=["POST"])
@require_roles()
@feature_required("prep")
def add_item(list_id: int):
    plist = _list_in_scope(list_id)
    form = form_from_json(PrepItemForm)
    if not form.validate():
        return error_response(form_errors(form))
    try:
        item = services.add_item(plist, form.data)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "item": item.to_dict(), "list_status": plist.status}), 201


@prep_bp.route("/items/<int:item_id>/complete", methods=["POST"])
@require_roles()
@feature_required("prep")
def complete_item(item_id: int):
    item = get_or_404(PrepItem, item_id)
    scoped = scope_org_id()
    if scoped is not None and item.prep_list.org_id != scoped:
        return error_response(f"PrepItem {item_id} not found", 404)
    payload = json_body()
    services.complete_item(item, bool(payload.get("completed", True)))
    return jsonify(
        {"status": "success", "item": item.to_dict(), "list_status": item.prep_list.status}
    )


@prep_bp.route("/suggestions")
@require_roles()
@feature_required("prep")
def suggestions():
    cfg = current_app.config
    org_id = resolve_org_id()
    target = parse_date_arg(request.args.get("date"), required=True)
    lookback = request.args.get("lookback_days", cfg["PREP_LOOKBACK_DAYS"], type=int)
    min_occ = request.args.get("min_occurrences", cfg["PREP_MIN_OCCURRENCES"], type=int)
    limit = request.args.get("limit", cfg["PREP_MAX_SUGGESTIONS"], type=int)
    try:
        found = services.suggest_prep_items(org_id, target, lookback, min_occ, limit)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify(
        {
            "org_id": org_id,
            "date": target.isoformat(),
            "suggestions": [s.to_dict() for s in found],
        }
    )

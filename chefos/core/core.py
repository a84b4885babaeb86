from flask import Blueprint, abort, jsonify

from ..auth.auth import require_roles
from ..utils_api import error_response, json_body, scope_org_id
from ..utils_db import get_or_404
from . import services
from .models import Organization, Venue

core_bp = Blueprint("core", __name__)


def _org_or_404(org_id: int) -> Organization:
    scoped = scope_org_id()
    if scoped is not None and scoped != org_id:
        abort(404, description=f"Organization {org_id} not found")
    return get_or_404(Organization, org_id)


@core_bp.route("/")
def index():
    return jsonify({"service": "chefos", "status": "ok"})


@core_bp.route("/orgs", methods=["POST"])
@require_roles("admin")
def create_org():
    data = json_body()
    try:
        org = services.create_org(data)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "org": org.to_dict()}), 201


@core_bp.route("/orgs/<int:org_id>")
@require_roles()
def get_org(org_id: int):
    return jsonify(_org_or_404(org_id).to_dict())


@core_bp.route("/orgs/<int:org_id>", methods=["PATCH"])
@require_roles("management")
def update_org(org_id: int):
    org = _org_or_404(org_id)
    data = json_body()
    try:
        services.update_org(org, data)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "org": org.to_dict()})


@core_bp.route("/orgs/<int:org_id>/venues")
@require_roles()
def list_venues(org_id: int):
    org = _org_or_404(org_id)
    return jsonify([v.to_dict() for v in org.venues.order_by(Venue.name).all()])


@core_bp.route("/orgs/<int:org_id>/venues", methods=["POST"])
@require_roles("management")
def add_venue(org_id: int):
    org = _org_or_404(org_id)
    data = json_body()
    try:
        venue = services.add_venue(org, data.get("name", ""), data.get("timezone"))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "venue": venue.to_dict()}), 201

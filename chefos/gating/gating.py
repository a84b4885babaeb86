from functools import wraps
from typing import Any

from flask import Blueprint, abort, g, jsonify, request

from ..auth.auth import require_roles
from ..core.models import Organization
from ..utils_api import error_response, json_body, resolve_org_id
from ..utils_db import get_or_404
from . import services
from .models import FeatureRelease

gating_bp = Blueprint("gating", __name__)


def feature_required(feature: str):
    """403 when the requesting member's org cannot use `feature`.

    Requests without a member (auth disabled in dev/tests) pass through.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            member = getattr(g, "member", None)
            if member is not None and member.role != "admin":
                org = get_or_404(Organization, member.org_id)
                decision = services.check_feature(org, feature)
                if not decision.allowed:
                    abort(403, description=f"Feature '{feature}' unavailable: {decision.reason}")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def _org_from_request(org_id: int | None = None) -> Organization:
    return get_or_404(Organization, resolve_org_id(org_id))


@gating_bp.route("/check")
@require_roles()
def check():
    org = _org_from_request()
    try:
        decision = services.check_feature(org, request.args.get("feature", ""))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify(decision.to_dict())


@gating_bp.route("/features")
@require_roles()
def features():
    org = _org_from_request()
    decisions = services.accessible_features(org)
    return jsonify(
        {
            "org_id": org.id,
            "stream": org.stream,
            "tier": org.subscription_tier,
            "allowed": [d.feature for d in decisions if d.allowed],
            "denied": {d.feature: d.reason for d in decisions if not d.allowed},
        }
    )


@gating_bp.route("/orgs/<int:org_id>/addons", methods=["POST"])
@require_roles("admin")
def set_addon(org_id: int):
    org = get_or_404(Organization, org_id)
    data: dict[str, Any] = json_body()
    try:
        rec = services.set_addon(org, str(data.get("addon_key") or ""), data.get("active", True))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "addon": rec.to_dict()})


@gating_bp.route("/orgs/<int:org_id>/modules", methods=["POST"])
@require_roles("admin")
def release_module(org_id: int):
    org = get_or_404(Organization, org_id)
    data: dict[str, Any] = json_body()
    slug = str(data.get("module_slug") or "").strip().lower()
    try:
        services.release_module_for_org(org, slug)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "module_slug": slug}), 201


@gating_bp.route("/orgs/<int:org_id>/modules/<slug>", methods=["DELETE"])
@require_roles("admin")
def revoke_module(org_id: int, slug: str):
    org = get_or_404(Organization, org_id)
    if not services.revoke_module_for_org(org, slug):
        abort(404, description=f"Module {slug} not released for org {org_id}")
    return jsonify({"status": "success"})


@gating_bp.route("/releases")
@require_roles()
def list_releases():
    rows = FeatureRelease.query.order_by(FeatureRelease.sort_order, FeatureRelease.id).all()
    return jsonify([r.to_dict() for r in rows])


@gating_bp.route("/releases/<slug>/toggle", methods=["POST"])
@require_roles("admin")
def toggle_release(slug: str):
    data: dict[str, Any] = json_body()
    try:
        rec = services.toggle_release(slug, data.get("module_name"))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "release": rec.to_dict()})


@gating_bp.route("/releases/<slug>", methods=["PUT"])
@require_roles("admin")
def set_release(slug: str):
    data: dict[str, Any] = json_body()
    try:
        rec = services.set_release_status(slug, str(data.get("status") or ""))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "release": rec.to_dict()})


@gating_bp.route("/tiers/<tier>", methods=["PUT"])
@require_roles("admin")
def set_tier(tier: str):
    data: dict[str, Any] = json_body()
    try:
        slugs = services.set_tier_features(tier, data.get("features") or [])
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "tier": tier, "features": slugs})


@gating_bp.route("/addons/<addon_key>", methods=["PUT"])
@require_roles("admin")
def set_addon_features(addon_key: str):
    data: dict[str, Any] = json_body()
    try:
        slugs = services.set_addon_features(addon_key, data.get("features") or [])
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "addon_key": addon_key, "features": slugs})

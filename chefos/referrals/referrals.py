from flask import Blueprint, jsonify, request

from ..auth.auth import cron_required, require_roles
from ..core.models import Organization
from ..utils_api import error_response, json_body, resolve_org_id
from ..utils_db import get_or_404
from . import services
from .fraud import scan_referral_fraud
from .models import Referral, ReferralFraudFlag

referrals_bp = Blueprint("referrals", __name__)


@referrals_bp.route("/code")
@require_roles()
def get_code():
    org = get_or_404(Organization, resolve_org_id())
    return jsonify(services.get_or_create_code(org).to_dict())


@referrals_bp.route("", methods=["GET"])
@require_roles()
def list_referrals():
    org_id = resolve_org_id()
    rows = services.list_referrals(org_id, request.args.get("status") or None)
    return jsonify([r.to_dict() for r in rows])


@referrals_bp.route("", methods=["POST"])
@require_roles()
def record_referral():
    data = json_body()
    referred_org_id = data.get("referred_org_id")
    try:
        ref = services.record_referral(
            str(data.get("code") or ""),
            str(data.get("email") or ""),
            int(referred_org_id) if referred_org_id not in (None, "") else None,
        )
    except services.DuplicateReferral as exc:
        return error_response(str(exc), 409)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "referral": ref.to_dict()}), 201


@referrals_bp.route("/<int:referral_id>/qualify", methods=["POST"])
@require_roles("admin")
def qualify(referral_id: int):
    referral = get_or_404(Referral, referral_id)
    data = json_body()
    if data.get("plan_price") in (None, ""):
        return error_response("plan_price is required")
    try:
        breakdown = services.qualify_referral(referral, data["plan_price"])
    except (ValueError, ArithmeticError) as exc:
        return error_response(str(exc))
    return jsonify(
        {"status": "success", "referral": referral.to_dict(), "reward": breakdown.to_dict()}
    )


@referrals_bp.route("/settings")
@require_roles("admin")
def list_settings():
    return jsonify([s.to_dict() for s in services.list_settings()])


@referrals_bp.route("/settings/<tier>", methods=["PUT"])
@require_roles("admin")
def put_settings(tier: str):
    data = json_body()
    try:
        settings = services.upsert_settings(tier, data)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "settings": settings.to_dict()})


@referrals_bp.route("/flags")
@require_roles("admin")
def list_flags():
    status = request.args.get("status", "open")
    if status == "all":
        status = None
    return jsonify([f.to_dict() for f in services.list_flags(status)])


@referrals_bp.route("/flags/<int:flag_id>", methods=["POST"])
@require_roles("admin")
def review_flag(flag_id: int):
    flag = get_or_404(ReferralFraudFlag, flag_id)
    data = json_body()
    try:
        services.review_flag(flag, str(data.get("status") or ""))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "flag": flag.to_dict()})


@referrals_bp.route("/cron/scan-fraud", methods=["POST"])
@cron_required
def cron_scan_fraud():
    summary = scan_referral_fraud()
    return jsonify({"status": "success", **summary})

from datetime import date, timedelta

from flask import Blueprint, jsonify, request

from ..auth.auth import cron_required, require_roles
from ..utils_api import error_response, json_body, parse_date_arg, resolve_org_id
from ..utils_db import get_or_404
from . import services
from .models import Vendor, VendorInvoice

vendors_bp = Blueprint("vendors", __name__)


def last_full_week_start(today: date | None = None) -> date:
    """Monday of the last complete Monday-Sunday week before `today`."""
    today = today or date.today()
    return today - timedelta(days=today.weekday() + 7)


@vendors_bp.route("", methods=["POST"])
@require_roles("admin")
def create_vendor():
    data = json_body()
    try:
        vendor = services.create_vendor(data)
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "vendor": vendor.to_dict()}), 201


@vendors_bp.route("/<int:vendor_id>")
@require_roles()
def get_vendor(vendor_id: int):
    return jsonify(get_or_404(Vendor, vendor_id).to_dict())


@vendors_bp.route("/<int:vendor_id>/codes", methods=["POST"])
@require_roles()
def claim_code(vendor_id: int):
    vendor = get_or_404(Vendor, vendor_id)
    org_id = resolve_org_id()
    data = json_body()
    try:
        deal = services.claim_code(vendor, org_id, data.get("deal_title"))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "deal_code": deal.to_dict()}), 201


@vendors_bp.route("/codes/redeem", methods=["POST"])
@require_roles()
def redeem_code():
    data = json_body()
    if data.get("amount") in (None, ""):
        return error_response("amount is required")
    vendor_id = data.get("vendor_id")
    try:
        deal = services.redeem_code(
            str(data.get("code") or ""),
            data["amount"],
            vendor_id=int(vendor_id) if vendor_id not in (None, "") else None,
        )
    except LookupError as exc:
        return error_response(str(exc), 404)
    except (ValueError, ArithmeticError) as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "deal_code": deal.to_dict()})


@vendors_bp.route("/<int:vendor_id>/invoices")
@require_roles("admin")
def list_invoices(vendor_id: int):
    get_or_404(Vendor, vendor_id)
    return jsonify([i.to_dict() for i in services.list_invoices(vendor_id)])


@vendors_bp.route("/invoices/<int:invoice_id>", methods=["POST"])
@require_roles("admin")
def update_invoice(invoice_id: int):
    invoice = get_or_404(VendorInvoice, invoice_id)
    data = json_body()
    try:
        services.set_invoice_status(invoice, str(data.get("status") or ""))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "invoice": invoice.to_dict()})


# ===================== Cron =====================
@vendors_bp.route("/cron/expire-codes", methods=["POST"])
@cron_required
def cron_expire_codes():
    return jsonify({"status": "success", **services.mark_expired_codes()})


@vendors_bp.route("/cron/generate-invoices", methods=["POST"])
@cron_required
def cron_generate_invoices():
    data = json_body()
    week_start = parse_date_arg(data.get("week_start") or request.args.get("week_start"))
    try:
        summary = services.generate_vendor_invoices(week_start or last_full_week_start())
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", **summary})

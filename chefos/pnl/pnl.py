from flask import Blueprint, jsonify, request, send_file

from ..auth.auth import cron_required, require_roles
from ..core.models import Organization
from ..gating.gating import feature_required
from ..utils_api import (
    error_response,
    json_body,
    parse_date_arg,
    resolve_org_id,
    scope_org_id,
)
from ..utils_db import get_or_404, get_scoped_or_404
from . import services
from .models import PnlSnapshot
from .report import render_pnl_pdf

pnl_bp = Blueprint("pnl", __name__)


def _snapshot_from_payload(data: dict):
    if not data.get("org_id") or not data.get("period_start") or not data.get("period_end"):
        return None, error_response("org_id, period_start, period_end required")
    start = parse_date_arg(str(data["period_start"]), required=True)
    end = parse_date_arg(str(data["period_end"]), required=True)
    try:
        org_id = int(data["org_id"])
    except (TypeError, ValueError):
        return None, error_response("org_id must be an integer")
    org = get_or_404(Organization, org_id)
    try:
        snap = services.compute_pnl_snapshot(
            org.id, start, end, str(data.get("period_type") or "daily")
        )
    except ValueError as exc:
        return None, error_response(str(exc))
    return snap, None


@pnl_bp.route("/snapshots", methods=["POST"])
@require_roles("management")
@feature_required("money")
def create_snapshot():
    data = dict(json_body())
    if data.get("org_id") not in (None, ""):
        data["org_id"] = resolve_org_id(data["org_id"])
    snap, err = _snapshot_from_payload(data)
    if err is not None:
        return err
    return jsonify({"status": "success", "snapshot": snap.to_dict()})


@pnl_bp.route("/snapshots", methods=["GET"])
@require_roles("management")
@feature_required("money")
def list_snapshots():
    org_id = resolve_org_id()
    rows = services.list_snapshots(org_id, request.args.get("period_type") or None)
    return jsonify([s.to_dict() for s in rows])


@pnl_bp.route("/snapshots/<int:snapshot_id>")
@require_roles("management")
@feature_required("money")
def get_snapshot(snapshot_id: int):
    return jsonify(get_scoped_or_404(PnlSnapshot, snapshot_id, scope_org_id()).to_dict())


@pnl_bp.route("/snapshots/<int:snapshot_id>/pdf")
@require_roles("management")
@feature_required("money")
def snapshot_pdf(snapshot_id: int):
    snap = get_scoped_or_404(PnlSnapshot, snapshot_id, scope_org_id())
    org = get_or_404(Organization, snap.org_id)
    buffer = render_pnl_pdf(snap, org)
    filename = f"pnl_{org.slug}_{snap.period_start.isoformat()}_{snap.period_end.isoformat()}.pdf"
    return send_file(
        buffer,
        as_attachment=True,
        download_name=filename,
        mimetype="application/pdf",
    )


@pnl_bp.route("/cron/generate-snapshot", methods=["POST"])
@cron_required
def cron_generate_snapshot():
    snap, err = _snapshot_from_payload(json_body())
    if err is not None:
        return err
    return jsonify({"status": "success", "snapshot": snap.to_dict()})

import json

from chefos.todos import services as todo_services
from chefos.vendors import services as vendor_services

from conftest import make_org


def _run(runner, *args):
    result = runner.invoke(args=list(args))
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_generate_recurring_todos_command(app, runner):
    with app.app_context():
        org = make_org()
        todo_services.create_rule(org.id, {"title": "Check fridge temps", "recurrence_type": "daily"})
    summary = _run(runner, "generate-recurring-todos", "--date", "2025-03-03")
    assert summary["date"] == "2025-03-03" and summary["created"] == 1


def test_scan_and_expire_commands(app, runner, monkeypatch):
    monkeypatch.setattr("chefos.referrals.fraud.send_admin_alert", lambda subject, html: True)
    scan = _run(runner, "scan-referral-fraud")
    assert scan["new_flags"] == 0 and scan["alert_sent"] is False
    assert _run(runner, "expire-deal-codes")["expired"] == 0


def test_generate_vendor_invoices_command(app, runner, monkeypatch):
    monkeypatch.setattr("chefos.vendors.services.send_email", lambda *a: False)
    with app.app_context():
        vendor_services.create_vendor({"business_name": "Fresh Fish Co"})
    summary = _run(runner, "generate-vendor-invoices", "--week-start", "2025-03-03")
    assert summary["week_start"] == "2025-03-03" and summary["created"] == 0

    result = runner.invoke(args=["generate-vendor-invoices", "--week-start", "2025-03-04"])
    assert result.exit_code != 0 and "Monday" in result.output


def test_generate_pnl_snapshot_command(app, runner):
    with app.app_context():
        org_id = make_org().id
    snap = _run(
        runner, "generate-pnl-snapshot", "--org-id", str(org_id), "--start", "2025-03-01", "--end", "2025-03-31",
        "--period-type", "monthly",
    )
    assert snap["period_type"] == "monthly" and snap["revenue_total"] == 0.0

    missing = runner.invoke(args=["generate-pnl-snapshot", "--org-id", "999", "--start", "2025-03-01", "--end", "2025-03-31"])
    assert missing.exit_code != 0 and "not found" in missing.output
    backwards = runner.invoke(
        args=["generate-pnl-snapshot", "--org-id", str(org_id), "--start", "2025-03-31", "--end", "2025-03-01"]
    )
    assert backwards.exit_code != 0

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from chefos import db
from chefos.vendors import services
from chefos.vendors.models import DealCode, VendorInvoice
from chefos.vendors.vendors import last_full_week_start

from conftest import make_org

WEEK = date(2025, 3, 3)


def _redeemed(vendor, org_id, amount, at):
    deal = services.claim_code(vendor, org_id, "10% off", now=at - timedelta(hours=1))
    return services.redeem_code(deal.code, amount, now=at)


def test_last_full_week_start():
    assert last_full_week_start(date(2025, 3, 12)) == WEEK  # quarta
    assert last_full_week_start(date(2025, 3, 10)) == WEEK  # segunda


def test_claim_and_redeem(app):
    with app.app_context():
        org = make_org()
        vendor = services.create_vendor({"business_name": "Fresh Fish Co", "email": "Orders@FreshFish.com"})
        assert vendor.email == "orders@freshfish.com"
        claimed_at = datetime(2025, 3, 5, 9, 0)
        deal = services.claim_code(vendor, org.id, "Free delivery", now=claimed_at)
        assert deal.status == "active" and len(deal.code) == 8
        assert deal.expires_at == claimed_at + timedelta(hours=24)

        with pytest.raises(LookupError):
            services.redeem_code("ZZZZZZZZ", 10)
        with pytest.raises(LookupError):
            services.redeem_code(deal.code, 10, vendor_id=vendor.id + 1)
        with pytest.raises(ValueError):
            services.redeem_code(deal.code, -5, now=claimed_at)

        done = services.redeem_code(deal.code.lower(), "120.456", now=claimed_at + timedelta(hours=2))
        assert done.status == "redeemed" and float(done.transaction_amount) == 120.46
        with pytest.raises(ValueError):
            services.redeem_code(deal.code, 10, now=claimed_at + timedelta(hours=3))


def test_suspended_vendor_cannot_issue_codes(app):
    with app.app_context():
        org = make_org()
        vendor = services.create_vendor({"business_name": "Late Payer", "payment_status": "suspended"})
        with pytest.raises(ValueError):
            services.claim_code(vendor, org.id)
        with pytest.raises(ValueError):
            services.create_vendor({"business_name": "X", "payment_status": "vip"})


def test_expiry(app):
    with app.app_context():
        org = make_org()
        vendor = services.create_vendor({"business_name": "Bakery"})
        claimed_at = datetime(2025, 3, 5, 9, 0)
        deal = services.claim_code(vendor, org.id, now=claimed_at)
        fresh = services.claim_code(vendor, org.id, now=claimed_at + timedelta(hours=20))

        with pytest.raises(ValueError):
            services.redeem_code(deal.code, 10, now=claimed_at + timedelta(hours=25))

        result = services.mark_expired_codes(claimed_at + timedelta(hours=25))
        assert result["expired"] == 1
        assert DealCode.query.filter_by(code=deal.code).one().status == "expired"
        assert DealCode.query.filter_by(code=fresh.code).one().status == "active"


def test_generate_vendor_invoices(app, monkeypatch):
    sent = []
    monkeypatch.setattr(
        "chefos.vendors.services.send_email",
        lambda to, subject, html: sent.append((to, subject)) or True,
    )
    with app.app_context():
        org = make_org()
        fish = services.create_vendor({"business_name": "Fresh Fish Co", "email": "orders@freshfish.com"})
        veg = services.create_vendor({"business_name": "Veg Direct"})
        _redeemed(fish, org.id, 150, datetime(2025, 3, 5, 12, 0))
        _redeemed(fish, org.id, 49.99, datetime(2025, 3, 9, 23, 0))
        # fora da semana
        _redeemed(fish, org.id, 1000, datetime(2025, 3, 10, 0, 30))
        _redeemed(veg, org.id, 80, datetime(2025, 3, 4, 8, 0))

        summary = services.generate_vendor_invoices(WEEK)
        assert summary["vendors"] == 2 and summary["created"] == 2
        assert summary["emailed"] == 1
        assert sent == [("orders@freshfish.com", "ChefOS usage invoice 2025-03-03")]

        invoice = VendorInvoice.query.filter_by(vendor_id=fish.id).one()
        assert invoice.period_end == date(2025, 3, 9)
        assert invoice.redemption_count == 2
        assert float(invoice.tracked_sales_total) == 199.99
        # 2% de 199.99 = 4.00; GST 10% = 0.40
        assert float(invoice.usage_fee) == 4.0
        assert float(invoice.gst_amount) == 0.4
        assert float(invoice.total_amount) == 4.4
        assert (invoice.due_at - invoice.issued_at).days == 14

        again = services.generate_vendor_invoices(WEEK)
        assert again["created"] == 0 and again["skipped"] == 2
        assert len(sent) == 1


def test_invoice_week_must_start_on_monday(app, monkeypatch):
    monkeypatch.setattr("chefos.vendors.services.send_email", lambda *a: False)
    with app.app_context():
        org = make_org()
        vendor = services.create_vendor({"business_name": "Oyster Bar Supply"})
        _redeemed(vendor, org.id, 100, datetime(2025, 3, 5, 12, 0))

        assert services.generate_vendor_invoices(WEEK)["created"] == 1
        with pytest.raises(ValueError):
            services.generate_vendor_invoices(date(2025, 3, 4))
        assert VendorInvoice.query.filter_by(vendor_id=vendor.id).count() == 1


def test_overlapping_invoice_is_not_billed_twice(app, monkeypatch):
    monkeypatch.setattr("chefos.vendors.services.send_email", lambda *a: False)
    with app.app_context():
        org = make_org()
        vendor = services.create_vendor({"business_name": "Cheese Cellar"})
        _redeemed(vendor, org.id, 100, datetime(2025, 3, 5, 12, 0))
        # fatura antiga emitida com semana de terça a segunda
        legacy = VendorInvoice()
        legacy.vendor_id = vendor.id
        legacy.period_start = date(2025, 3, 4)
        legacy.period_end = date(2025, 3, 10)
        legacy.redemption_count = 1
        legacy.tracked_sales_total = Decimal("100.00")
        legacy.usage_fee = Decimal("2.00")
        legacy.gst_amount = Decimal("0.20")
        legacy.total_amount = Decimal("2.20")
        legacy.status = "issued"
        db.session.add(legacy)
        db.session.commit()

        summary = services.generate_vendor_invoices(WEEK)
        assert summary["created"] == 0 and summary["skipped"] == 1
        assert VendorInvoice.query.filter_by(vendor_id=vendor.id).count() == 1


def test_invoice_status(app):
    with app.app_context():
        org = make_org()
        vendor = services.create_vendor({"business_name": "Dairy"})
        _redeemed(vendor, org.id, 10, datetime(2025, 3, 4, 8, 0))
        services.generate_vendor_invoices(WEEK)
        invoice = services.list_invoices(vendor.id)[0]
        services.set_invoice_status(invoice, "paid")
        assert invoice.paid_at is not None
        with pytest.raises(ValueError):
            services.set_invoice_status(invoice, "forgiven")


def test_vendor_routes(client, app, monkeypatch):
    monkeypatch.setattr("chefos.vendors.services.send_email", lambda *a: False)
    with app.app_context():
        org_id = make_org().id

    resp = client.post("/vendors", json={"business_name": "Meat Hub", "email": "hi@meathub.com"})
    assert resp.status_code == 201
    vendor_id = resp.get_json()["vendor"]["id"]
    assert client.post("/vendors", json={}).status_code == 400

    resp = client.post(f"/vendors/{vendor_id}/codes", json={"org_id": org_id, "deal_title": "5% off"})
    assert resp.status_code == 201
    code = resp.get_json()["deal_code"]["code"]

    assert client.post("/vendors/codes/redeem", json={"code": code}).status_code == 400
    assert client.post("/vendors/codes/redeem", json={"code": "NOPE2345", "amount": 5}).status_code == 404
    resp = client.post("/vendors/codes/redeem", json={"code": code, "amount": 42.5, "vendor_id": vendor_id})
    assert resp.status_code == 200
    assert resp.get_json()["deal_code"]["transaction_amount"] == 42.5

    resp = client.post("/vendors/cron/expire-codes")
    assert resp.status_code == 200 and resp.get_json()["expired"] == 0

    resp = client.post("/vendors/cron/generate-invoices", json={"week_start": "2025-03-03"})
    assert resp.status_code == 200 and resp.get_json()["created"] == 0
    assert client.get(f"/vendors/{vendor_id}/invoices").get_json() == []
    resp = client.post("/vendors/cron/generate-invoices", json={"week_start": "2025-03-04"})
    assert resp.status_code == 400

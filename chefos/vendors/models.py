from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import CheckConstraint, UniqueConstraint

from .. import db

CODE_STATUSES = ("active", "redeemed", "expired")
INVOICE_STATUSES = ("issued", "paid", "overdue", "disputed")
PAYMENT_STATUSES = ("current", "overdue", "suspended")


def _money(value) -> float | None:
    if value is None:
        return None
    return float(Decimal(value).quantize(Decimal("0.01")))


class Vendor(db.Model):  # type: ignore[misc]
    __tablename__ = "vendors"
    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(254))
    payment_status = db.Column(db.String(12), nullable=False, default="current")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "email": self.email,
            "payment_status": self.payment_status,
        }


class DealCode(db.Model):  # type: ignore[misc]
    __tablename__ = "deal_codes"
    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    deal_title = db.Column(db.String(200))
    code = db.Column(db.String(16), nullable=False, unique=True, index=True)
    status = db.Column(db.String(10), nullable=False, default="active")
    transaction_amount = db.Column(db.Numeric(12, 2))
    claimed_at = db.Column(db.DateTime, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    redeemed_at = db.Column(db.DateTime, index=True)

    vendor = db.relationship("Vendor")

    __table_args__ = (
        CheckConstraint(
            "status in ('active','redeemed','expired')", name="ck_deal_code_status"
        ),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "org_id": self.org_id,
            "deal_title": self.deal_title,
            "code": self.code,
            "status": self.status,
            "transaction_amount": _money(self.transaction_amount),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "redeemed_at": self.redeemed_at.isoformat() if self.redeemed_at else None,
        }


class VendorInvoice(db.Model):  # type: ignore[misc]
    __tablename__ = "vendor_invoices"
    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    redemption_count = db.Column(db.Integer, nullable=False, default=0)
    tracked_sales_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    usage_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    gst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.String(10), nullable=False, default="issued")
    issued_at = db.Column(db.DateTime, default=datetime.utcnow)
    due_at = db.Column(db.DateTime)
    paid_at = db.Column(db.DateTime)

    vendor = db.relationship("Vendor")

    __table_args__ = (
        UniqueConstraint("vendor_id", "period_start", "period_end", name="uq_vendor_invoice_period"),
        CheckConstraint(
            "status in ('issued','paid','overdue','disputed')", name="ck_vendor_invoice_status"
        ),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "redemption_count": self.redemption_count,
            "tracked_sales_total": _money(self.tracked_sales_total),
            "usage_fee": _money(self.usage_fee),
            "gst_amount": _money(self.gst_amount),
            "total_amount": _money(self.total_amount),
            "status": self.status,
            "due_at": self.due_at.isoformat() if self.due_at else None,
        }

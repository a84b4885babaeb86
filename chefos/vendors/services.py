"""Vendor deal codes and weekly usage invoicing.

Consumers claim a short-lived code, the vendor redeems it at the till with
the transaction amount, and a weekly job bills each vendor a usage fee on the
tracked sales.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from flask import current_app
from sqlalchemy import func

from .. import db
from ..notifications.mailer import send_email
from .models import PAYMENT_STATUSES, DealCode, Vendor, VendorInvoice

logger = logging.getLogger("chefos.vendors")

CODE_ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "0O1I")
CENT = Decimal("0.01")


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def create_vendor(data: dict[str, Any]) -> Vendor:
    name = str(data.get("business_name") or "").strip()
    if not name:
        raise ValueError("business_name is required")
    status = data.get("payment_status") or "current"
    if status not in PAYMENT_STATUSES:
        raise ValueError(f"invalid payment_status: {status}")
    vendor = Vendor()
    vendor.business_name = name
    vendor.email = (str(data.get("email") or "").strip().lower()) or None
    vendor.payment_status = status
    db.session.add(vendor)
    db.session.commit()
    return vendor


# ===================== Códigos =====================
def claim_code(
    vendor: Vendor, org_id: int, deal_title: str | None = None, now: datetime | None = None
) -> DealCode:
    if vendor.payment_status == "suspended":
        raise ValueError(f"vendor {vendor.id} is suspended")
    now = now or datetime.utcnow()
    code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(8))
    while DealCode.query.filter_by(code=code).first() is not None:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(8))
    deal = DealCode()
    deal.vendor_id = vendor.id
    deal.org_id = org_id
    deal.deal_title = deal_title
    deal.code = code
    deal.status = "active"
    deal.claimed_at = now
    deal.expires_at = now + timedelta(hours=current_app.config.get("DEAL_CODE_TTL_HOURS", 24))
    db.session.add(deal)
    db.session.commit()
    return deal


def redeem_code(
    code: str, amount: float | Decimal, vendor_id: int | None = None, now: datetime | None = None
) -> DealCode:
    now = now or datetime.utcnow()
    deal = DealCode.query.filter_by(code=(code or "").strip().upper()).first()
    if deal is None or (vendor_id is not None and deal.vendor_id != vendor_id):
        raise LookupError(f"unknown deal code: {code}")
    if deal.status != "active":
        raise ValueError(f"deal code {deal.code} is {deal.status}")
    if deal.expires_at <= now:
        raise ValueError(f"deal code {deal.code} expired at {deal.expires_at.isoformat()}")
    value = Decimal(str(amount))
    if value < 0:
        raise ValueError("transaction amount must be >= 0")
    deal.status = "redeemed"
    deal.transaction_amount = _cents(value)
    deal.redeemed_at = now
    db.session.commit()
    return deal


def mark_expired_codes(now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.utcnow()
    expired = DealCode.query.filter(
        DealCode.status == "active", DealCode.expires_at <= now
    ).update({"status": "expired"}, synchronize_session=False)
    db.session.commit()
    logger.info("Expired %s deal code(s) at %s", expired, now.isoformat())
    return {"expired": expired, "at": now.isoformat()}


# ===================== Faturas =====================
def _invoice_html(vendor: Vendor, invoice: VendorInvoice) -> str:
    return (
        f"<p>Hi {vendor.business_name},</p>"
        f"<p>Your usage invoice for {invoice.period_start.isoformat()} to "
        f"{invoice.period_end.isoformat()} has been issued.</p>"
        f"<ul><li>Redemptions: {invoice.redemption_count}</li>"
        f"<li>Tracked sales: ${invoice.tracked_sales_total:.2f}</li>"
        f"<li>Usage fee: ${invoice.usage_fee:.2f}</li>"
        f"<li>GST: ${invoice.gst_amount:.2f}</li>"
        f"<li>Total due: ${invoice.total_amount:.2f}</li></ul>"
    )


def generate_vendor_invoices(week_start: date) -> dict[str, Any]:
    """Bill one usage invoice per vendor for redemptions in the week.

    `week_start` must be a Monday. The window is [week_start, week_start +
    7 days); period_end is stored as the last day inside it. A vendor with
    an invoice overlapping the period is skipped.
    """
    if week_start.weekday() != 0:
        raise ValueError(f"week_start must be a Monday, got {week_start.isoformat()}")
    cfg = current_app.config
    fee_rate = Decimal(str(cfg.get("VENDOR_USAGE_FEE_RATE", 0.02)))
    gst_rate = Decimal(str(cfg.get("VENDOR_GST_RATE", 0.10)))
    start = datetime.combine(week_start, time.min)
    end = start + timedelta(days=7)
    period_end = week_start + timedelta(days=6)

    rows = (
        db.session.query(
            DealCode.vendor_id,
            func.count(DealCode.id),
            func.coalesce(func.sum(DealCode.transaction_amount), 0),
        )
        .filter(
            DealCode.status == "redeemed",
            DealCode.redeemed_at >= start,
            DealCode.redeemed_at < end,
        )
        .group_by(DealCode.vendor_id)
        .order_by(DealCode.vendor_id)
        .all()
    )

    summary: dict[str, Any] = {
        "week_start": week_start.isoformat(),
        "vendors": len(rows),
        "created": 0,
        "skipped": 0,
        "emailed": 0,
        "invoices": [],
    }
    issued: list[VendorInvoice] = []
    for vendor_id, count, sales in rows:
        exists = VendorInvoice.query.filter(
            VendorInvoice.vendor_id == vendor_id,
            VendorInvoice.period_start <= period_end,
            VendorInvoice.period_end >= week_start,
        ).first()
        if exists is not None:
            summary["skipped"] += 1
            continue
        sales_total = _cents(Decimal(str(sales)))
        fee = _cents(sales_total * fee_rate)
        gst = _cents(fee * gst_rate)
        invoice = VendorInvoice()
        invoice.vendor_id = vendor_id
        invoice.period_start = week_start
        invoice.period_end = period_end
        invoice.redemption_count = int(count)
        invoice.tracked_sales_total = sales_total
        invoice.usage_fee = fee
        invoice.gst_amount = gst
        invoice.total_amount = fee + gst
        invoice.status = "issued"
        invoice.issued_at = datetime.utcnow()
        invoice.due_at = invoice.issued_at + timedelta(days=cfg.get("VENDOR_INVOICE_DUE_DAYS", 14))
        db.session.add(invoice)
        issued.append(invoice)
    db.session.commit()

    for invoice in issued:
        summary["created"] += 1
        summary["invoices"].append(invoice.to_dict())
        vendor = invoice.vendor
        if vendor is not None and vendor.email:
            subject = f"ChefOS usage invoice {invoice.period_start.isoformat()}"
            if send_email(vendor.email, subject, _invoice_html(vendor, invoice)):
                summary["emailed"] += 1
    logger.info(
        "Vendor invoices for week %s: %s created, %s skipped, %s emailed",
        summary["week_start"],
        summary["created"],
        summary["skipped"],
        summary["emailed"],
    )
    return summary


def set_invoice_status(invoice: VendorInvoice, status: str) -> VendorInvoice:
    if status not in ("issued", "paid", "overdue", "disputed"):
        raise ValueError(f"invalid invoice status: {status}")
    invoice.status = status
    invoice.paid_at = datetime.utcnow() if status == "paid" else None
    db.session.commit()
    return invoice


def list_invoices(vendor_id: int):
    return (
        VendorInvoice.query.filter_by(vendor_id=vendor_id)
        .order_by(VendorInvoice.period_start.desc())
        .all()
    )

"""P&L source tables (fed by POS sync, rostering and imports) and the
computed snapshot table."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import UniqueConstraint

from .. import db

PERIOD_TYPES = ("daily", "weekly", "monthly", "quarterly", "yearly", "custom")
IMPORT_DATA_TYPES = (
    "revenue",
    "food_cost",
    "bev_cost",
    "food_waste",
    "bev_waste",
    "labour",
    "overhead",
    "ops_supplies",
)


class PosPayment(db.Model):  # type: ignore[misc]
    __tablename__ = "pos_payments"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_refund = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)


class LabourShift(db.Model):  # type: ignore[misc]
    __tablename__ = "labour_shifts"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"))
    hours = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    clock_in = db.Column(db.DateTime, nullable=False, index=True)


class OverheadEntry(db.Model):  # type: ignore[misc]
    __tablename__ = "overhead_entries"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    category = db.Column(db.String(80), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    date = db.Column(db.Date, nullable=False, index=True)


class WasteLog(db.Model):  # type: ignore[misc]
    __tablename__ = "waste_logs"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    module = db.Column(db.String(10), nullable=False, default="food")  # food | beverage
    status = db.Column(db.String(10), nullable=False, default="pending")
    cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shift_date = db.Column(db.Date, nullable=False, index=True)


class BevPourEvent(db.Model):  # type: ignore[misc]
    __tablename__ = "bev_pour_events"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_name = db.Column(db.String(120))
    cost_per_pour = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shift_date = db.Column(db.Date, nullable=False, index=True)


class DataImport(db.Model):  # type: ignore[misc]
    __tablename__ = "data_imports"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    data_type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.String(12), nullable=False, default="pending")
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    source = db.Column(db.String(40))


class PnlSnapshot(db.Model):  # type: ignore[misc]
    __tablename__ = "pnl_snapshots"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    period_type = db.Column(db.String(10), nullable=False, default="daily")

    revenue_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cogs_food = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cogs_bev = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cogs_waste_food = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cogs_waste_bev = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    gross_profit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    gross_margin_pct = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    labour_wages = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    labour_super = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    labour_overtime = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    labour_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    labour_pct = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    overhead_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    overhead_pct = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    ops_supplies_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    ops_supplies_pct = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    net_profit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_profit_pct = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    prime_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    prime_cost_pct = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    break_even_revenue = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    data_completeness_pct = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    generated_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint(
            "org_id", "period_start", "period_end", "period_type", name="uq_pnl_snapshot_period"
        ),
    )

    MONEY_FIELDS = (
        "revenue_total",
        "cogs_food",
        "cogs_bev",
        "cogs_waste_food",
        "cogs_waste_bev",
        "gross_profit",
        "gross_margin_pct",
        "labour_wages",
        "labour_super",
        "labour_overtime",
        "labour_total",
        "labour_pct",
        "overhead_total",
        "overhead_pct",
        "ops_supplies_total",
        "ops_supplies_pct",
        "net_profit",
        "net_profit_pct",
        "prime_cost",
        "prime_cost_pct",
        "break_even_revenue",
        "data_completeness_pct",
    )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "org_id": self.org_id,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "period_type": self.period_type,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
        for name in self.MONEY_FIELDS:
            value = getattr(self, name)
            data[name] = float(Decimal(value or 0).quantize(Decimal("0.01")))
        return data

"""P&L snapshot aggregation.

Each cost centre is summed from the org's own operational tables first
(food COGS has no direct source and always comes from imports); a centre
with no direct data falls back to processed imports (accounting
exports, e-mailed reports) for the same period. Snapshots are upserted on
(org, period_start, period_end, period_type).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import case, func

from .. import db
from .models import (
    PERIOD_TYPES,
    BevPourEvent,
    DataImport,
    LabourShift,
    OverheadEntry,
    PnlSnapshot,
    PosPayment,
    WasteLog,
)

logger = logging.getLogger("chefos.pnl")

OPS_SUPPLY_CATEGORIES = frozenset(
    {
        "Cleaning Chemicals",
        "Cleaning Materials",
        "Packaging & Takeaway",
        "Office Supplies",
        "Hospitality Supplies",
        "Smallwares & Utensils",
        "Plates & Glassware",
        "Miscellaneous Supplies",
    }
)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _dec(value) -> Decimal:
    return Decimal(str(value or 0))


def _pct(part: Decimal, revenue: Decimal) -> Decimal:
    return part / revenue * 100 if revenue > 0 else ZERO


def _bounds(start: date, end: date) -> tuple[datetime, datetime]:
    # período inclui o dia final inteiro
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


def _direct_revenue(org_id: int, start: date, end: date) -> Decimal:
    lo, hi = _bounds(start, end)
    signed = case((PosPayment.is_refund.is_(True), -PosPayment.amount), else_=PosPayment.amount)
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(PosPayment.org_id == org_id, PosPayment.created_at >= lo, PosPayment.created_at < hi)
        .scalar()
    )
    return _dec(total)


def _direct_labour_hours(org_id: int, start: date, end: date) -> Decimal:
    lo, hi = _bounds(start, end)
    total = (
        db.session.query(func.coalesce(func.sum(LabourShift.hours), 0))
        .filter(LabourShift.org_id == org_id, LabourShift.clock_in >= lo, LabourShift.clock_in < hi)
        .scalar()
    )
    return _dec(total)


def _direct_overheads(org_id: int, start: date, end: date) -> tuple[Decimal, Decimal]:
    """(overheads, ops supplies) for the period."""
    rows = (
        db.session.query(OverheadEntry.category, func.coalesce(func.sum(OverheadEntry.amount), 0))
        .filter(
            OverheadEntry.org_id == org_id,
            OverheadEntry.date >= start,
            OverheadEntry.date <= end,
        )
        .group_by(OverheadEntry.category)
        .all()
    )
    overhead = ops = ZERO
    for category, amount in rows:
        if category in OPS_SUPPLY_CATEGORIES:
            ops += _dec(amount)
        else:
            overhead += _dec(amount)
    return overhead, ops


def _direct_waste(org_id: int, start: date, end: date, module: str) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(WasteLog.cost), 0))
        .filter(
            WasteLog.org_id == org_id,
            WasteLog.module == module,
            WasteLog.status == "approved",
            WasteLog.shift_date >= start,
            WasteLog.shift_date <= end,
        )
        .scalar()
    )
    return _dec(total)


def _direct_bev_cogs(org_id: int, start: date, end: date) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(BevPourEvent.cost_per_pour), 0))
        .filter(
            BevPourEvent.org_id == org_id,
            BevPourEvent.shift_date >= start,
            BevPourEvent.shift_date <= end,
        )
        .scalar()
    )
    return _dec(total)


def _import_sums(org_id: int, start: date, end: date) -> dict[str, Decimal]:
    rows = (
        db.session.query(DataImport.data_type, func.coalesce(func.sum(DataImport.amount), 0))
        .filter(
            DataImport.org_id == org_id,
            DataImport.status == "processed",
            DataImport.period_start >= start,
            DataImport.period_end <= end,
        )
        .group_by(DataImport.data_type)
        .all()
    )
    return {data_type: _dec(amount) for data_type, amount in rows}


def compute_pnl_snapshot(
    org_id: int, period_start: date, period_end: date, period_type: str = "daily"
) -> PnlSnapshot:
    if period_end < period_start:
        raise ValueError("period_end must be on or after period_start")
    if period_type not in PERIOD_TYPES:
        raise ValueError(f"invalid period_type: {period_type}")
    cfg = current_app.config
    hourly = _dec(cfg.get("PNL_AVG_HOURLY_RATE", 30))
    super_rate = _dec(cfg.get("PNL_SUPER_RATE", 0.115))

    imports = _import_sums(org_id, period_start, period_end)

    def pick(direct: Decimal, import_key: str) -> Decimal:
        return direct if direct else imports.get(import_key, ZERO)

    labour_wages = _direct_labour_hours(org_id, period_start, period_end) * hourly
    labour_super = labour_wages * super_rate
    labour_overtime = ZERO
    direct_overhead, direct_ops = _direct_overheads(org_id, period_start, period_end)

    revenue = pick(_direct_revenue(org_id, period_start, period_end), "revenue")
    cogs_food = imports.get("food_cost", ZERO)
    cogs_bev = pick(_direct_bev_cogs(org_id, period_start, period_end), "bev_cost")
    waste_food = pick(_direct_waste(org_id, period_start, period_end, "food"), "food_waste")
    waste_bev = pick(_direct_waste(org_id, period_start, period_end, "beverage"), "bev_waste")
    labour_total = pick(labour_wages + labour_super + labour_overtime, "labour")
    overhead_total = pick(direct_overhead, "overhead")
    ops_total = pick(direct_ops, "ops_supplies")

    gross_profit = revenue - cogs_food - cogs_bev - waste_food - waste_bev
    prime_cost = cogs_food + cogs_bev + labour_total + ops_total
    net_profit = gross_profit - labour_total - ops_total - overhead_total
    fixed_costs = overhead_total + labour_total + ops_total
    cm_ratio = gross_profit / revenue if revenue > 0 else ZERO
    break_even = fixed_costs / cm_ratio if cm_ratio > 0 else ZERO
    centres = (revenue, cogs_food, cogs_bev, labour_total, overhead_total, ops_total)
    completeness = Decimal(sum(1 for v in centres if v > 0)) / len(centres) * 100

    values = {
        "revenue_total": revenue,
        "cogs_food": cogs_food,
        "cogs_bev": cogs_bev,
        "cogs_waste_food": waste_food,
        "cogs_waste_bev": waste_bev,
        "gross_profit": gross_profit,
        "gross_margin_pct": _pct(gross_profit, revenue),
        "labour_wages": labour_wages,
        "labour_super": labour_super,
        "labour_overtime": labour_overtime,
        "labour_total": labour_total,
        "labour_pct": _pct(labour_total, revenue),
        "overhead_total": overhead_total,
        "overhead_pct": _pct(overhead_total, revenue),
        "ops_supplies_total": ops_total,
        "ops_supplies_pct": _pct(ops_total, revenue),
        "net_profit": net_profit,
        "net_profit_pct": _pct(net_profit, revenue),
        "prime_cost": prime_cost,
        "prime_cost_pct": _pct(prime_cost, revenue),
        "break_even_revenue": break_even,
        "data_completeness_pct": completeness,
    }

    snapshot = PnlSnapshot.query.filter_by(
        org_id=org_id,
        period_start=period_start,
        period_end=period_end,
        period_type=period_type,
    ).first()
    if snapshot is None:
        snapshot = PnlSnapshot()
        snapshot.org_id = org_id
        snapshot.period_start = period_start
        snapshot.period_end = period_end
        snapshot.period_type = period_type
        db.session.add(snapshot)
    for name, value in values.items():
        setattr(snapshot, name, _cents(value))
    snapshot.generated_at = datetime.utcnow()
    db.session.commit()
    logger.info(
        "P&L snapshot org=%s %s..%s (%s): revenue %s, net %s, completeness %s%%",
        org_id,
        period_start.isoformat(),
        period_end.isoformat(),
        period_type,
        snapshot.revenue_total,
        snapshot.net_profit,
        snapshot.data_completeness_pct,
    )
    return snapshot


def list_snapshots(org_id: int, period_type: str | None = None):
    q = PnlSnapshot.query.filter_by(org_id=org_id)
    if period_type:
        q = q.filter(PnlSnapshot.period_type == period_type)
    return q.order_by(PnlSnapshot.period_start.desc()).all()

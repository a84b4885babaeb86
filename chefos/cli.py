"""Comandos `flask ...` chamados pelo agendador (cron).

Cada comando tem uma rota gêmea em /<módulo>/cron/... para agendadores
que só fazem HTTP.

Exemplos:
  flask --app chefos generate-recurring-todos --date 2025-03-03
  flask --app chefos generate-vendor-invoices --week-start 2025-02-24
  flask --app chefos generate-pnl-snapshot --org-id 1 --start 2025-02-01 --end 2025-02-28
"""

from __future__ import annotations

import json
from datetime import datetime

import click


def _echo(summary) -> None:
    click.echo(json.dumps(summary, indent=2, default=str))


def register_commands(app) -> None:
    @app.cli.command("generate-recurring-todos")
    @click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
    def generate_recurring_todos_cmd(day: datetime | None):
        """Expand today's recurring todo rules."""
        from .todos.services import generate_recurring_todos

        _echo(generate_recurring_todos(day.date() if day else None))

    @app.cli.command("scan-referral-fraud")
    def scan_referral_fraud_cmd():
        """Flag suspicious referral patterns and alert the admin."""
        from .referrals.fraud import scan_referral_fraud

        _echo(scan_referral_fraud())

    @app.cli.command("expire-deal-codes")
    def expire_deal_codes_cmd():
        """Mark active deal codes past their expiry as expired."""
        from .vendors.services import mark_expired_codes

        _echo(mark_expired_codes())

    @app.cli.command("generate-vendor-invoices")
    @click.option(
        "--week-start", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
        help="Monday of the week to bill (default: last complete week).",
    )
    def generate_vendor_invoices_cmd(week_start: datetime | None):
        """Issue weekly usage invoices to vendors."""
        from .vendors.services import generate_vendor_invoices
        from .vendors.vendors import last_full_week_start

        start = week_start.date() if week_start else last_full_week_start()
        try:
            _echo(generate_vendor_invoices(start))
        except ValueError as exc:
            raise click.ClickException(str(exc))

    @app.cli.command("generate-pnl-snapshot")
    @click.option("--org-id", type=int, required=True)
    @click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), required=True)
    @click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), required=True)
    @click.option("--period-type", default="daily", show_default=True)
    def generate_pnl_snapshot_cmd(org_id: int, start: datetime, end: datetime, period_type: str):
        """Compute (or refresh) a P&L snapshot for one org and period."""
        from .core.models import Organization
        from .pnl.services import compute_pnl_snapshot
        from . import db

        if db.session.get(Organization, org_id) is None:
            raise click.ClickException(f"organization {org_id} not found")
        try:
            snap = compute_pnl_snapshot(org_id, start.date(), end.date(), period_type)
        except ValueError as exc:
            raise click.ClickException(str(exc))
        _echo(snap.to_dict())

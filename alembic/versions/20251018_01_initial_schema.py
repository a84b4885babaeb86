"""Initial schema.

Cria as tabelas de tenants, auth, gating, todos, referrals, prep, vendors
e P&L, com valores monetários em Numeric(12, 2) e constraints de enum.

Revision ID: 20251018_01
Revises:
Create Date: 2025-10-18
"""

from __future__ import annotations

from typing import Any

import sqlalchemy as sa

from alembic import op as _op  # type: ignore[attr-defined]

op: Any = _op

# revision identifiers, used by Alembic.
revision = "20251018_01"
down_revision = None
branch_labels = None
depends_on = None

# Ordem de criação (FKs); o downgrade remove na ordem inversa
TABLES = (
    "organizations",
    "venues",
    "members",
    "tier_features",
    "addon_features",
    "org_addons",
    "feature_releases",
    "org_released_modules",
    "recurring_rules",
    "todo_items",
    "task_delegations",
    "referral_codes",
    "referrals",
    "referral_settings",
    "referral_fraud_flags",
    "prep_lists",
    "prep_items",
    "vendors",
    "deal_codes",
    "vendor_invoices",
    "pos_payments",
    "labour_shifts",
    "overhead_entries",
    "waste_logs",
    "bev_pour_events",
    "data_imports",
    "pnl_snapshots",
)


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True)


def _org_fk(name: str = "org_id", nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("organizations.id"), nullable=nullable)


def _member_fk(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("members.id"), nullable=nullable)


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def _pct(name: str, precision: int = 8) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision, 2), nullable=False)


def _index(table: str, *columns: str, unique: bool = False) -> None:
    op.create_index(f"ix_{table}_{'_'.join(columns)}", table, list(columns), unique=unique)


def _core() -> None:
    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False),
        sa.Column("stream", sa.String(20), nullable=False),
        sa.Column("subscription_tier", sa.String(20), nullable=False),
        sa.Column("store_mode", sa.String(20), nullable=False),
        sa.Column("region", sa.String(5)),
        sa.Column("is_beta", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    _index("organizations", "slug", unique=True)

    op.create_table(
        "venues",
        _id(),
        _org_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime()),
    )
    _index("venues", "org_id")

    op.create_table(
        "members",
        _id(),
        _org_fk(),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("full_name", sa.String(128), nullable=False),
        sa.Column("email", sa.String(254)),
        sa.Column("password_hash", sa.String(256)),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("failed_login_count", sa.Integer()),
        sa.Column("locked_until", sa.DateTime()),
        sa.Column("api_token_hash", sa.String(64)),
        sa.Column("api_token_expires_at", sa.DateTime()),
    )
    _index("members", "org_id")
    _index("members", "username", unique=True)
    _index("members", "api_token_hash", unique=True)


def _gating() -> None:
    op.create_table(
        "tier_features",
        _id(),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("feature_slug", sa.String(60), nullable=False),
        sa.UniqueConstraint("tier", "feature_slug", name="uq_tier_feature"),
    )
    _index("tier_features", "tier")
    _index("tier_features", "feature_slug")

    op.create_table(
        "addon_features",
        _id(),
        sa.Column("addon_key", sa.String(40), nullable=False),
        sa.Column("feature_slug", sa.String(60), nullable=False),
        sa.UniqueConstraint("addon_key", "feature_slug", name="uq_addon_feature"),
    )
    _index("addon_features", "addon_key")
    _index("addon_features", "feature_slug")

    op.create_table(
        "org_addons",
        _id(),
        _org_fk(),
        sa.Column("addon_key", sa.String(40), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime()),
        sa.UniqueConstraint("org_id", "addon_key", name="uq_org_addon"),
    )
    _index("org_addons", "org_id")

    op.create_table(
        "feature_releases",
        _id(),
        sa.Column("module_slug", sa.String(60), nullable=False),
        sa.Column("module_name", sa.String(120), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("release_type", sa.String(20), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("released_at", sa.DateTime()),
        sa.CheckConstraint(
            "status in ('development','beta','released')", name="ck_feature_release_status"
        ),
    )
    _index("feature_releases", "module_slug", unique=True)

    op.create_table(
        "org_released_modules",
        _id(),
        _org_fk(),
        sa.Column("module_slug", sa.String(60), nullable=False),
        sa.Column("released_at", sa.DateTime()),
        sa.UniqueConstraint("org_id", "module_slug", name="uq_org_released_module"),
    )
    _index("org_released_modules", "org_id")


def _todos() -> None:
    op.create_table(
        "recurring_rules",
        _id(),
        _org_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("recurrence_type", sa.String(10), nullable=False),
        sa.Column("days_of_week", sa.String(20)),
        sa.Column("day_of_month", sa.Integer()),
        _member_fk("delegate_to"),
        _member_fk("created_by"),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("last_generated_on", sa.Date()),
        sa.Column("created_at", sa.DateTime()),
        sa.CheckConstraint(
            "recurrence_type in ('daily','weekly','monthly')", name="ck_rule_recurrence_type"
        ),
    )
    _index("recurring_rules", "org_id")

    op.create_table(
        "todo_items",
        _id(),
        _org_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("due_date", sa.Date()),
        sa.Column("recurring_rule_id", sa.Integer(), sa.ForeignKey("recurring_rules.id")),
        _member_fk("created_by"),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
        sa.CheckConstraint("status in ('pending','done')", name="ck_todo_status"),
        sa.CheckConstraint("priority in ('low','medium','high')", name="ck_todo_priority"),
    )
    _index("todo_items", "org_id")
    _index("todo_items", "due_date")

    op.create_table(
        "task_delegations",
        _id(),
        _org_fk(),
        sa.Column("todo_id", sa.Integer(), sa.ForeignKey("todo_items.id"), nullable=False),
        _member_fk("delegated_by"),
        _member_fk("delegated_to", nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("due_date", sa.Date()),
        sa.Column("created_at", sa.DateTime()),
        sa.CheckConstraint("status in ('pending','accepted','done')", name="ck_delegation_status"),
    )
    _index("task_delegations", "org_id")
    _index("task_delegations", "delegated_to")


def _referrals() -> None:
    op.create_table(
        "referral_codes",
        _id(),
        _org_fk(),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime()),
    )
    _index("referral_codes", "org_id", unique=True)
    _index("referral_codes", "code", unique=True)

    op.create_table(
        "referrals",
        _id(),
        _org_fk("referrer_org_id"),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("referred_email", sa.String(254), nullable=False),
        _org_fk("referred_org_id", nullable=True),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("qualified_at", sa.DateTime()),
        _money("reward_amount", nullable=True),
        sa.UniqueConstraint("referrer_org_id", "referred_email", name="uq_referral_referrer_email"),
        sa.CheckConstraint(
            "status in ('pending','qualified','rewarded','rejected')", name="ck_referral_status"
        ),
    )
    _index("referrals", "referrer_org_id")
    _index("referrals", "created_at")

    op.create_table(
        "referral_settings",
        _id(),
        sa.Column("plan_tier", sa.String(20), nullable=False, unique=True),
        sa.Column("reward_type", sa.String(10), nullable=False),
        _pct("reward_value_percent", 6),
        _money("reward_value_credit"),
        _pct("referred_reward_value_percent", 6),
        _money("referred_reward_value_credit"),
        sa.Column("milestone_thresholds", sa.JSON(), nullable=False),
        _money("reward_cap", nullable=True),
        sa.Column("qualification_event", sa.String(40), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.CheckConstraint(
            "reward_type in ('percent','credit','hybrid')", name="ck_referral_reward_type"
        ),
    )

    op.create_table(
        "referral_fraud_flags",
        _id(),
        _org_fk("referrer_org_id"),
        sa.Column("flag_type", sa.String(20), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("referral_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("reviewed_at", sa.DateTime()),
        sa.CheckConstraint(
            "flag_type in ('rapid_signups','domain_cluster','prefix_similarity')",
            name="ck_fraud_flag_type",
        ),
        sa.CheckConstraint("status in ('open','dismissed','confirmed')", name="ck_fraud_status"),
    )
    _index("referral_fraud_flags", "referrer_org_id")


def _prep() -> None:
    op.create_table(
        "prep_lists",
        _id(),
        _org_fk(),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venues.id")),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("prep_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(12), nullable=False),
        sa.Column("notes", sa.Text()),
        _member_fk("created_by"),
        sa.Column("created_at", sa.DateTime()),
        sa.CheckConstraint(
            "status in ('pending','in_progress','completed')", name="ck_prep_list_status"
        ),
    )
    _index("prep_lists", "org_id")
    _index("prep_lists", "prep_date")

    op.create_table(
        "prep_items",
        _id(),
        sa.Column(
            "prep_list_id",
            sa.Integer(),
            sa.ForeignKey("prep_lists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("task", sa.String(200), nullable=False),
        sa.Column("quantity", sa.String(50)),
        sa.Column("station", sa.String(50)),
        sa.Column("urgency", sa.String(12), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime()),
    )
    _index("prep_items", "prep_list_id")


def _vendors() -> None:
    op.create_table(
        "vendors",
        _id(),
        sa.Column("business_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(254)),
        sa.Column("payment_status", sa.String(12), nullable=False),
        sa.Column("created_at", sa.DateTime()),
    )

    op.create_table(
        "deal_codes",
        _id(),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        _org_fk(),
        sa.Column("deal_title", sa.String(200)),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        _money("transaction_amount", nullable=True),
        sa.Column("claimed_at", sa.DateTime()),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime()),
        sa.CheckConstraint("status in ('active','redeemed','expired')", name="ck_deal_code_status"),
    )
    _index("deal_codes", "vendor_id")
    _index("deal_codes", "org_id")
    _index("deal_codes", "code", unique=True)
    _index("deal_codes", "redeemed_at")

    op.create_table(
        "vendor_invoices",
        _id(),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("redemption_count", sa.Integer(), nullable=False),
        _money("tracked_sales_total"),
        _money("usage_fee"),
        _money("gst_amount"),
        _money("total_amount"),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("issued_at", sa.DateTime()),
        sa.Column("due_at", sa.DateTime()),
        sa.Column("paid_at", sa.DateTime()),
        sa.UniqueConstraint(
            "vendor_id", "period_start", "period_end", name="uq_vendor_invoice_period"
        ),
        sa.CheckConstraint(
            "status in ('issued','paid','overdue','disputed')", name="ck_vendor_invoice_status"
        ),
    )
    _index("vendor_invoices", "vendor_id")


def _pnl() -> None:
    op.create_table(
        "pos_payments",
        _id(),
        _org_fk(),
        _money("amount"),
        sa.Column("is_refund", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime()),
    )
    _index("pos_payments", "org_id")
    _index("pos_payments", "created_at")

    op.create_table(
        "labour_shifts",
        _id(),
        _org_fk(),
        _member_fk("member_id"),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("clock_in", sa.DateTime(), nullable=False),
    )
    _index("labour_shifts", "org_id")
    _index("labour_shifts", "clock_in")

    op.create_table(
        "overhead_entries",
        _id(),
        _org_fk(),
        sa.Column("category", sa.String(80), nullable=False),
        _money("amount"),
        sa.Column("date", sa.Date(), nullable=False),
    )
    _index("overhead_entries", "org_id")
    _index("overhead_entries", "date")

    op.create_table(
        "waste_logs",
        _id(),
        _org_fk(),
        sa.Column("module", sa.String(10), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        _money("cost"),
        sa.Column("shift_date", sa.Date(), nullable=False),
    )
    _index("waste_logs", "org_id")
    _index("waste_logs", "shift_date")

    op.create_table(
        "bev_pour_events",
        _id(),
        _org_fk(),
        sa.Column("product_name", sa.String(120)),
        _money("cost_per_pour"),
        sa.Column("shift_date", sa.Date(), nullable=False),
    )
    _index("bev_pour_events", "org_id")
    _index("bev_pour_events", "shift_date")

    op.create_table(
        "data_imports",
        _id(),
        _org_fk(),
        sa.Column("data_type", sa.String(20), nullable=False),
        _money("amount"),
        sa.Column("status", sa.String(12), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("source", sa.String(40)),
    )
    _index("data_imports", "org_id")

    op.create_table(
        "pnl_snapshots",
        _id(),
        _org_fk(),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("period_type", sa.String(10), nullable=False),
        _money("revenue_total"),
        _money("cogs_food"),
        _money("cogs_bev"),
        _money("cogs_waste_food"),
        _money("cogs_waste_bev"),
        _money("gross_profit"),
        _pct("gross_margin_pct"),
        _money("labour_wages"),
        _money("labour_super"),
        _money("labour_overtime"),
        _money("labour_total"),
        _pct("labour_pct"),
        _money("overhead_total"),
        _pct("overhead_pct"),
        _money("ops_supplies_total"),
        _pct("ops_supplies_pct"),
        _money("net_profit"),
        _pct("net_profit_pct"),
        _money("prime_cost"),
        _pct("prime_cost_pct"),
        _money("break_even_revenue"),
        _pct("data_completeness_pct", 6),
        sa.Column("generated_at", sa.DateTime()),
        sa.UniqueConstraint(
            "org_id", "period_start", "period_end", "period_type", name="uq_pnl_snapshot_period"
        ),
    )
    _index("pnl_snapshots", "org_id")


def upgrade() -> None:
    _core()
    _gating()
    _todos()
    _referrals()
    _prep()
    _vendors()
    _pnl()


def downgrade() -> None:
    # drop_table leva junto os índices da tabela
    for table in reversed(TABLES):
        op.drop_table(table)

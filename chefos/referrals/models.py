"""Referral program: codes, referral rows, per-tier reward settings and
fraud flags raised by the periodic scan."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import CheckConstraint, UniqueConstraint

from .. import db

REFERRAL_STATUSES = ("pending", "qualified", "rewarded", "rejected")
REWARD_TYPES = ("percent", "credit", "hybrid")
FLAG_TYPES = ("rapid_signups", "domain_cluster", "prefix_similarity")
FLAG_STATUSES = ("open", "dismissed", "confirmed")


def _money(value) -> float | None:
    if value is None:
        return None
    return float(Decimal(value).quantize(Decimal("0.01")))


class ReferralCode(db.Model):  # type: ignore[misc]
    __tablename__ = "referral_codes"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id"), nullable=False, unique=True, index=True
    )
    code = db.Column(db.String(16), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {"org_id": self.org_id, "code": self.code}


class Referral(db.Model):  # type: ignore[misc]
    __tablename__ = "referrals"
    id = db.Column(db.Integer, primary_key=True)
    referrer_org_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True
    )
    code = db.Column(db.String(16), nullable=False)
    referred_email = db.Column(db.String(254), nullable=False)
    referred_org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"))
    status = db.Column(db.String(10), nullable=False, default="pending")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    qualified_at = db.Column(db.DateTime)
    reward_amount = db.Column(db.Numeric(12, 2))

    __table_args__ = (
        UniqueConstraint("referrer_org_id", "referred_email", name="uq_referral_referrer_email"),
        CheckConstraint(
            "status in ('pending','qualified','rewarded','rejected')", name="ck_referral_status"
        ),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "referrer_org_id": self.referrer_org_id,
            "code": self.code,
            "referred_email": self.referred_email,
            "referred_org_id": self.referred_org_id,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "qualified_at": self.qualified_at.isoformat() if self.qualified_at else None,
            "reward_amount": _money(self.reward_amount),
        }


class ReferralSettings(db.Model):  # type: ignore[misc]
    __tablename__ = "referral_settings"
    id = db.Column(db.Integer, primary_key=True)
    plan_tier = db.Column(db.String(20), nullable=False, unique=True)
    reward_type = db.Column(db.String(10), nullable=False, default="percent")
    reward_value_percent = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    reward_value_credit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    referred_reward_value_percent = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    referred_reward_value_credit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    # [{"threshold": 5, "bonus": 50}, ...]
    milestone_thresholds = db.Column(db.JSON, nullable=False, default=list)
    reward_cap = db.Column(db.Numeric(12, 2))
    qualification_event = db.Column(db.String(40), nullable=False, default="first_payment")
    active = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "reward_type in ('percent','credit','hybrid')", name="ck_referral_reward_type"
        ),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan_tier": self.plan_tier,
            "reward_type": self.reward_type,
            "reward_value_percent": _money(self.reward_value_percent),
            "reward_value_credit": _money(self.reward_value_credit),
            "referred_reward_value_percent": _money(self.referred_reward_value_percent),
            "referred_reward_value_credit": _money(self.referred_reward_value_credit),
            "milestone_thresholds": list(self.milestone_thresholds or []),
            "reward_cap": _money(self.reward_cap),
            "qualification_event": self.qualification_event,
            "active": self.active,
        }


class ReferralFraudFlag(db.Model):  # type: ignore[misc]
    __tablename__ = "referral_fraud_flags"
    id = db.Column(db.Integer, primary_key=True)
    referrer_org_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True
    )
    flag_type = db.Column(db.String(20), nullable=False)
    detail = db.Column(db.JSON, nullable=False, default=dict)
    referral_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(10), nullable=False, default="open")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    reviewed_at = db.Column(db.DateTime)

    __table_args__ = (
        CheckConstraint(
            "flag_type in ('rapid_signups','domain_cluster','prefix_similarity')",
            name="ck_fraud_flag_type",
        ),
        CheckConstraint("status in ('open','dismissed','confirmed')", name="ck_fraud_status"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "referrer_org_id": self.referrer_org_id,
            "flag_type": self.flag_type,
            "detail": self.detail,
            "referral_count": self.referral_count,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

"""Serviços do programa de indicação: códigos, registro e recompensas."""

from __future__ import annotations

import secrets
import string
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import func

from .. import db
from ..auth.models import Member
from ..core.models import SUBSCRIPTION_TIERS, Organization
from ..utils_api import parse_bool
from .models import (
    FLAG_STATUSES,
    REWARD_TYPES,
    Referral,
    ReferralCode,
    ReferralFraudFlag,
    ReferralSettings,
)

# Sem 0/O/1/I para códigos ditados por telefone
CODE_ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "0O1I")
CODE_LENGTH = 8
CENT = Decimal("0.01")


class DuplicateReferral(ValueError):
    pass


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or "." not in domain:
        raise ValueError(f"invalid email: {email or '(empty)'}")
    return email


# ===================== Códigos =====================
def _new_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def get_or_create_code(org: Organization) -> ReferralCode:
    existing = ReferralCode.query.filter_by(org_id=org.id).first()
    if existing is not None:
        return existing
    code = _new_code()
    while ReferralCode.query.filter_by(code=code).first() is not None:
        code = _new_code()
    rec = ReferralCode()
    rec.org_id = org.id
    rec.code = code
    db.session.add(rec)
    db.session.commit()
    return rec


# ===================== Indicações =====================
def record_referral(code: str, email: str, referred_org_id: int | None = None) -> Referral:
    code = (code or "").strip().upper()
    owner = ReferralCode.query.filter_by(code=code).first()
    if owner is None:
        raise ValueError(f"unknown referral code: {code or '(empty)'}")
    email = normalize_email(email)
    if referred_org_id is not None and referred_org_id == owner.org_id:
        raise ValueError("an organization cannot refer itself")
    own_member = (
        Member.query.filter(Member.org_id == owner.org_id, func.lower(Member.email) == email).first()
    )
    if own_member is not None:
        raise ValueError("an organization cannot refer its own members")
    dup = Referral.query.filter_by(referrer_org_id=owner.org_id, referred_email=email).first()
    if dup is not None:
        raise DuplicateReferral(f"{email} was already referred by this organization")
    ref = Referral()
    ref.referrer_org_id = owner.org_id
    ref.code = code
    ref.referred_email = email
    ref.referred_org_id = referred_org_id
    db.session.add(ref)
    db.session.commit()
    return ref


@dataclass
class RewardBreakdown:
    base: float
    milestone_bonus: float
    total: float
    capped: bool
    referred_reward: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _base_reward(settings: ReferralSettings, price: Decimal) -> Decimal:
    pct = Decimal(settings.reward_value_percent or 0)
    credit = Decimal(settings.reward_value_credit or 0)
    if settings.reward_type == "percent":
        return price * pct / 100
    if settings.reward_type == "credit":
        return credit
    return price * pct / 100 + credit


def _referred_reward(settings: ReferralSettings, price: Decimal) -> Decimal:
    pct = Decimal(settings.referred_reward_value_percent or 0)
    credit = Decimal(settings.referred_reward_value_credit or 0)
    return price * pct / 100 + credit


def _milestone_bonus(settings: ReferralSettings, qualified_count: int) -> Decimal:
    bonus = Decimal("0")
    for milestone in settings.milestone_thresholds or []:
        if int(milestone.get("threshold", 0)) == qualified_count:
            bonus += Decimal(str(milestone.get("bonus", 0)))
    return bonus


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def qualify_referral(
    referral: Referral, plan_price: float | Decimal, now: datetime | None = None
) -> RewardBreakdown:
    """Mark a pending referral qualified and compute the referrer's reward.

    Uses the referrer's current tier settings; a milestone bonus applies
    when this qualification makes the qualified count hit a threshold
    exactly, and the monthly `reward_cap` bounds the total paid in the
    calendar month of `now`.
    """
    if referral.status != "pending":
        raise ValueError(f"referral {referral.id} is {referral.status}, not pending")
    now = now or datetime.utcnow()
    price = Decimal(str(plan_price))
    if price < 0:
        raise ValueError("plan_price must be >= 0")

    referrer = db.session.get(Organization, referral.referrer_org_id)
    settings = ReferralSettings.query.filter_by(
        plan_tier=referrer.subscription_tier if referrer else None, active=True
    ).first()

    base = bonus = referred = Decimal("0")
    capped = False
    if settings is not None:
        base = _base_reward(settings, price)
        referred = _referred_reward(settings, price)
        qualified = (
            Referral.query.filter(
                Referral.referrer_org_id == referral.referrer_org_id,
                Referral.status.in_(("qualified", "rewarded")),
            ).count()
            + 1
        )
        bonus = _milestone_bonus(settings, qualified)
        if settings.reward_cap is not None:
            paid = (
                db.session.query(func.coalesce(func.sum(Referral.reward_amount), 0))
                .filter(
                    Referral.referrer_org_id == referral.referrer_org_id,
                    Referral.qualified_at >= _month_start(now),
                    Referral.qualified_at <= now,
                )
                .scalar()
            )
            room = max(Decimal(settings.reward_cap) - Decimal(str(paid)), Decimal("0"))
            if base + bonus > room:
                capped = True
                # o bônus é cortado antes da recompensa base
                bonus = max(min(bonus, room - min(base, room)), Decimal("0"))
                base = min(base, room)

    total = _cents(base + bonus)
    referral.status = "qualified"
    referral.qualified_at = now
    referral.reward_amount = total
    db.session.commit()
    return RewardBreakdown(
        base=float(_cents(base)),
        milestone_bonus=float(_cents(bonus)),
        total=float(total),
        capped=capped,
        referred_reward=float(_cents(referred)),
    )


def list_referrals(org_id: int, status: str | None = None):
    q = Referral.query.filter_by(referrer_org_id=org_id)
    if status:
        q = q.filter(Referral.status == status)
    return q.order_by(Referral.created_at.desc()).all()


# ===================== Configuração =====================
def list_settings():
    return ReferralSettings.query.order_by(ReferralSettings.plan_tier).all()


def _validate_milestones(raw) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        raise ValueError("milestone_thresholds must be a list")
    out = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError("each milestone must be an object with threshold and bonus")
        try:
            threshold = int(item.get("threshold"))
            bonus = float(item.get("bonus"))
        except (TypeError, ValueError):
            raise ValueError("milestone threshold/bonus must be numeric")
        if threshold < 1 or bonus < 0:
            raise ValueError("milestone threshold must be >= 1 and bonus >= 0")
        out.append({"threshold": threshold, "bonus": bonus})
    return sorted(out, key=lambda m: m["threshold"])


def _non_negative(data: dict[str, Any], key: str) -> Decimal:
    try:
        value = Decimal(str(data[key]))
    except (ArithmeticError, ValueError):
        raise ValueError(f"{key} must be numeric")
    if value < 0:
        raise ValueError(f"{key} must be >= 0")
    return value


def upsert_settings(tier: str, data: dict[str, Any]) -> ReferralSettings:
    if tier not in SUBSCRIPTION_TIERS:
        raise ValueError(f"unknown tier: {tier}")
    settings = ReferralSettings.query.filter_by(plan_tier=tier).first()
    if settings is None:
        settings = ReferralSettings()
        settings.plan_tier = tier
        settings.milestone_thresholds = []
        db.session.add(settings)
    try:
        if "reward_type" in data:
            if data["reward_type"] not in REWARD_TYPES:
                raise ValueError(f"invalid reward_type: {data['reward_type']}")
            settings.reward_type = data["reward_type"]
        for key in (
            "reward_value_percent",
            "reward_value_credit",
            "referred_reward_value_percent",
            "referred_reward_value_credit",
        ):
            if key in data:
                setattr(settings, key, _non_negative(data, key))
        if "milestone_thresholds" in data:
            settings.milestone_thresholds = _validate_milestones(data["milestone_thresholds"])
        if "reward_cap" in data:
            settings.reward_cap = (
                None if data["reward_cap"] is None else _non_negative(data, "reward_cap")
            )
        if "qualification_event" in data:
            settings.qualification_event = str(data["qualification_event"] or "first_payment")
        if "active" in data:
            settings.active = parse_bool(data["active"], "active")
    except ValueError:
        db.session.rollback()
        raise
    db.session.commit()
    return settings


# ===================== Revisão de flags =====================
def list_flags(status: str | None = "open"):
    q = ReferralFraudFlag.query
    if status:
        q = q.filter(ReferralFraudFlag.status == status)
    return q.order_by(ReferralFraudFlag.created_at.desc()).all()


def review_flag(flag: ReferralFraudFlag, status: str) -> ReferralFraudFlag:
    if status not in FLAG_STATUSES or status == "open":
        raise ValueError("status must be 'dismissed' or 'confirmed'")
    flag.status = status
    flag.reviewed_at = datetime.utcnow()
    if status == "confirmed":
        # indicações pendentes do referrer deixam de ser elegíveis
        Referral.query.filter_by(
            referrer_org_id=flag.referrer_org_id, status="pending"
        ).update({"status": "rejected"})
    db.session.commit()
    return flag

"""Resolução do feature gate.

A decisão combina, nesta ordem: app ligado/desligado, status de release do
módulo, lista base do stream (com módulos liberados por tenant), tier da
assinatura e add-ons ativos. As regras são carregadas uma vez por chamada
(`load_rules`) e avaliadas em memória, então listar todas as features de
um tenant custa um punhado de queries, não uma por feature.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from .. import db
from ..core.models import SUBSCRIPTION_TIERS, Organization
from ..utils_api import parse_bool
from .models import AddonFeature, FeatureRelease, OrgAddon, OrgReleasedModule, TierFeature
from .streams import ALL_FEATURES, STREAMS, app_slug

logger = logging.getLogger("chefos.gating")

ALLOWED = "allowed"
APP_DISABLED = "app_disabled"
COMING_SOON = "coming_soon"
BETA_ONLY = "beta_only"
NOT_IN_VARIANT = "not_in_variant"
TIER_REQUIRED = "tier_required"
ADDON_REQUIRED = "addon_required"


@dataclass(frozen=True)
class GateDecision:
    feature: str
    allowed: bool
    reason: str

    def to_dict(self) -> dict:
        return {"feature": self.feature, "allowed": self.allowed, "reason": self.reason}


@dataclass
class GateRules:
    releases: dict[str, str] = field(default_factory=dict)
    tier_map: dict[str, set[str]] = field(default_factory=dict)
    addon_map: dict[str, set[str]] = field(default_factory=dict)
    active_addons: set[str] = field(default_factory=set)
    org_modules: set[str] = field(default_factory=set)


def load_rules(org: Organization) -> GateRules:
    rules = GateRules()
    for rel in FeatureRelease.query.all():
        rules.releases[rel.module_slug] = rel.status
    for tf in TierFeature.query.all():
        rules.tier_map.setdefault(tf.feature_slug, set()).add(tf.tier)
    for af in AddonFeature.query.all():
        rules.addon_map.setdefault(af.feature_slug, set()).add(af.addon_key)
    rules.active_addons = {
        a.addon_key for a in OrgAddon.query.filter_by(org_id=org.id, active=True).all()
    }
    rules.org_modules = {
        m.module_slug for m in OrgReleasedModule.query.filter_by(org_id=org.id).all()
    }
    return rules


def evaluate(org: Organization, feature: str, rules: GateRules) -> GateDecision:
    stream = STREAMS.get(org.stream) or STREAMS["chefos"]

    app_status = rules.releases.get(app_slug(stream.key))
    if app_status is not None and app_status != "released":
        return GateDecision(feature, False, APP_DISABLED)

    module_status = rules.releases.get(feature)
    if module_status == "development":
        return GateDecision(feature, False, COMING_SOON)
    if module_status == "beta" and not org.is_beta:
        return GateDecision(feature, False, BETA_ONLY)

    if not stream.full_access and feature not in (stream.base_features or ()):
        if feature not in stream.release_modules or feature not in rules.org_modules:
            return GateDecision(feature, False, NOT_IN_VARIANT)

    tiers = rules.tier_map.get(feature)
    if tiers and org.subscription_tier not in tiers:
        return GateDecision(feature, False, TIER_REQUIRED)

    addons = rules.addon_map.get(feature)
    if addons and not (addons & rules.active_addons):
        return GateDecision(feature, False, ADDON_REQUIRED)

    return GateDecision(feature, True, ALLOWED)


def check_feature(org: Organization, feature: str) -> GateDecision:
    feature = (feature or "").strip().lower()
    if not feature:
        raise ValueError("feature is required")
    return evaluate(org, feature, load_rules(org))


def accessible_features(
    org: Organization, candidates: Iterable[str] | None = None
) -> list[GateDecision]:
    rules = load_rules(org)
    slugs = list(candidates) if candidates is not None else list(ALL_FEATURES)
    return [evaluate(org, slug, rules) for slug in slugs]


# ===================== Administração das regras =====================
def set_addon(org: Organization, addon_key: str, active: bool) -> OrgAddon:
    addon_key = (addon_key or "").strip().lower()
    if not addon_key:
        raise ValueError("addon_key is required")
    active = parse_bool(active, "active")
    rec = OrgAddon.query.filter_by(org_id=org.id, addon_key=addon_key).first()
    if rec is None:
        rec = OrgAddon()
        rec.org_id = org.id
        rec.addon_key = addon_key
        db.session.add(rec)
    rec.active = active
    db.session.commit()
    logger.info("Org %s add-on %s -> %s", org.id, addon_key, rec.active)
    return rec


def release_module_for_org(org: Organization, module_slug: str) -> OrgReleasedModule:
    stream = STREAMS.get(org.stream) or STREAMS["chefos"]
    if module_slug not in stream.release_modules:
        raise ValueError(f"{module_slug} is not a releasable module for stream {stream.key}")
    rec = OrgReleasedModule.query.filter_by(org_id=org.id, module_slug=module_slug).first()
    if rec is None:
        rec = OrgReleasedModule()
        rec.org_id = org.id
        rec.module_slug = module_slug
        db.session.add(rec)
        db.session.commit()
    return rec


def revoke_module_for_org(org: Organization, module_slug: str) -> bool:
    rec = OrgReleasedModule.query.filter_by(org_id=org.id, module_slug=module_slug).first()
    if rec is None:
        return False
    db.session.delete(rec)
    db.session.commit()
    return True


def toggle_release(module_slug: str, module_name: str | None = None) -> FeatureRelease:
    """Flip a module between released and development.

    Without a row an app slug counts as enabled, so its first toggle creates
    the row already disabled; any other module is created released.
    """
    module_slug = (module_slug or "").strip().lower()
    if not module_slug:
        raise ValueError("module_slug is required")
    rec = FeatureRelease.query.filter_by(module_slug=module_slug).first()
    if rec is None:
        rec = FeatureRelease()
        rec.module_slug = module_slug
        rec.module_name = module_name or module_slug
        rec.release_type = "new"
        rec.sort_order = FeatureRelease.query.count() + 1
        rec.status = "development" if module_slug.startswith("app-") else "released"
        db.session.add(rec)
    else:
        rec.status = "development" if rec.status == "released" else "released"
        if module_name:
            rec.module_name = module_name
    rec.released_at = datetime.utcnow() if rec.status == "released" else None
    db.session.commit()
    logger.info("Release %s -> %s", rec.module_slug, rec.status)
    return rec


def set_release_status(module_slug: str, status: str) -> FeatureRelease:
    if status not in ("development", "beta", "released"):
        raise ValueError(f"invalid release status: {status}")
    rec = FeatureRelease.query.filter_by(module_slug=module_slug).first()
    if rec is None:
        rec = FeatureRelease()
        rec.module_slug = module_slug
        rec.module_name = module_slug
        rec.sort_order = FeatureRelease.query.count() + 1
        db.session.add(rec)
    rec.status = status
    rec.released_at = datetime.utcnow() if status == "released" else None
    db.session.commit()
    return rec


def set_tier_features(tier: str, feature_slugs: Iterable[str]) -> list[str]:
    """Replace the features a tier unlocks."""
    if tier not in SUBSCRIPTION_TIERS:
        raise ValueError(f"unknown subscription tier: {tier}")
    slugs = sorted({s.strip().lower() for s in feature_slugs if s and s.strip()})
    TierFeature.query.filter_by(tier=tier).delete()
    for slug in slugs:
        tf = TierFeature()
        tf.tier = tier
        tf.feature_slug = slug
        db.session.add(tf)
    db.session.commit()
    return slugs


def set_addon_features(addon_key: str, feature_slugs: Iterable[str]) -> list[str]:
    addon_key = (addon_key or "").strip().lower()
    if not addon_key:
        raise ValueError("addon_key is required")
    slugs = sorted({s.strip().lower() for s in feature_slugs if s and s.strip()})
    AddonFeature.query.filter_by(addon_key=addon_key).delete()
    for slug in slugs:
        af = AddonFeature()
        af.addon_key = addon_key
        af.feature_slug = slug
        db.session.add(af)
    db.session.commit()
    return slugs

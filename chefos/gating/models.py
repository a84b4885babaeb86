"""Tabelas de regras do feature gate.

Três tabelas planas (tier, add-on, release por tenant) mais o estado
global de release dos módulos. Nenhuma regra vive em código além do
registro de streams.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import CheckConstraint, UniqueConstraint

from .. import db

RELEASE_STATUSES = ("development", "beta", "released")


class TierFeature(db.Model):  # type: ignore[misc]
    __tablename__ = "tier_features"
    id = db.Column(db.Integer, primary_key=True)
    tier = db.Column(db.String(20), nullable=False, index=True)
    feature_slug = db.Column(db.String(60), nullable=False, index=True)

    __table_args__ = (UniqueConstraint("tier", "feature_slug", name="uq_tier_feature"),)


class AddonFeature(db.Model):  # type: ignore[misc]
    __tablename__ = "addon_features"
    id = db.Column(db.Integer, primary_key=True)
    addon_key = db.Column(db.String(40), nullable=False, index=True)
    feature_slug = db.Column(db.String(60), nullable=False, index=True)

    __table_args__ = (UniqueConstraint("addon_key", "feature_slug", name="uq_addon_feature"),)


class OrgAddon(db.Model):  # type: ignore[misc]
    __tablename__ = "org_addons"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    addon_key = db.Column(db.String(40), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint("org_id", "addon_key", name="uq_org_addon"),)

    def to_dict(self) -> dict[str, Any]:
        return {"org_id": self.org_id, "addon_key": self.addon_key, "active": self.active}


class FeatureRelease(db.Model):  # type: ignore[misc]
    __tablename__ = "feature_releases"
    id = db.Column(db.Integer, primary_key=True)
    module_slug = db.Column(db.String(60), nullable=False, unique=True, index=True)
    module_name = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="development")
    release_type = db.Column(db.String(20), nullable=False, default="new")
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    released_at = db.Column(db.DateTime)

    __table_args__ = (
        CheckConstraint(
            "status in ('development','beta','released')", name="ck_feature_release_status"
        ),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "module_slug": self.module_slug,
            "module_name": self.module_name,
            "status": self.status,
            "release_type": self.release_type,
            "sort_order": self.sort_order,
            "released_at": self.released_at.isoformat() if self.released_at else None,
        }


class OrgReleasedModule(db.Model):  # type: ignore[misc]
    __tablename__ = "org_released_modules"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    module_slug = db.Column(db.String(60), nullable=False)
    released_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("org_id", "module_slug", name="uq_org_released_module"),)

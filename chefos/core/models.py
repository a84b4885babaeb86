"""Modelos centrais: tenants (organizações) e seus locais (venues).

Toda tabela de domínio referencia `organizations.id`; o escopo por tenant
é aplicado nas rotas (ver utils_api.resolve_org_id).
"""

from datetime import datetime

from .. import db

SUBSCRIPTION_TIERS = ("free", "home_cook", "pro", "business")
STORE_MODES = ("restaurant", "cafe", "bar", "hotel", "catering", "home_cook")


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(120), nullable=False, unique=True, index=True)
    stream = db.Column(db.String(20), nullable=False, default="chefos")
    subscription_tier = db.Column(db.String(20), nullable=False, default="free")
    store_mode = db.Column(db.String(20), nullable=False, default="restaurant")
    region = db.Column(db.String(5), default="au")
    is_beta = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    venues = db.relationship("Venue", backref="organization", lazy="dynamic")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "stream": self.stream,
            "subscription_tier": self.subscription_tier,
            "store_mode": self.store_mode,
            "region": self.region,
            "is_beta": self.is_beta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):  # pragma: no cover
        return f"<Organization {self.slug}>"


class Venue(db.Model):
    __tablename__ = "venues"

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    timezone = db.Column(db.String(64), nullable=False, default="Australia/Brisbane")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "timezone": self.timezone,
        }

"""Serviços de tenants (organizações e venues)."""

from __future__ import annotations

import re
import unicodedata
from typing import Any

from .. import db
from ..gating.streams import STREAMS
from ..utils_api import parse_bool
from .models import STORE_MODES, SUBSCRIPTION_TIERS, Organization, Venue


def slugify(name: str) -> str:
    text = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text).strip("-").lower()
    return text or "org"


def unique_slug(name: str) -> str:
    base = slugify(name)
    slug = base
    n = 1
    while Organization.query.filter_by(slug=slug).first() is not None:
        n += 1
        slug = f"{base}-{n}"
    return slug


def _validate_choices(data: dict[str, Any]) -> None:
    if "stream" in data and data["stream"] not in STREAMS:
        raise ValueError(f"unknown stream: {data['stream']}")
    if "subscription_tier" in data and data["subscription_tier"] not in SUBSCRIPTION_TIERS:
        raise ValueError(f"unknown subscription tier: {data['subscription_tier']}")
    if "store_mode" in data and data["store_mode"] not in STORE_MODES:
        raise ValueError(f"unknown store mode: {data['store_mode']}")


def create_org(data: dict[str, Any]) -> Organization:
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValueError("name is required")
    clean = {k: v for k, v in data.items() if v not in (None, "")}
    _validate_choices(clean)
    org = Organization()
    org.name = name
    org.slug = unique_slug(name)
    org.stream = clean.get("stream", "chefos")
    org.subscription_tier = clean.get("subscription_tier", "free")
    org.store_mode = clean.get("store_mode", STREAMS[org.stream].store_mode)
    org.region = clean.get("region", "au")
    org.is_beta = parse_bool(clean.get("is_beta", False), "is_beta")
    db.session.add(org)
    db.session.commit()
    return org


def update_org(org: Organization, data: dict[str, Any]) -> Organization:
    clean = {k: v for k, v in data.items() if v not in (None, "")}
    _validate_choices(clean)
    is_beta = parse_bool(clean["is_beta"], "is_beta") if "is_beta" in clean else None
    if "name" in clean:
        org.name = str(clean["name"]).strip()
    for field in ("stream", "subscription_tier", "store_mode", "region"):
        if field in clean:
            setattr(org, field, clean[field])
    if is_beta is not None:
        org.is_beta = is_beta
    db.session.commit()
    return org


def add_venue(org: Organization, name: str, timezone: str | None = None) -> Venue:
    name = (name or "").strip()
    if not name:
        raise ValueError("venue name is required")
    venue = Venue()
    venue.org_id = org.id
    venue.name = name
    if timezone:
        venue.timezone = timezone
    db.session.add(venue)
    db.session.commit()
    return venue

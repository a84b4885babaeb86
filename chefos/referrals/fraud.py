"""Periodic referral fraud scan.

Referral rows from the lookback window are grouped per referrer and checked
for three patterns. Each detector is a pure function over the referrer's
rows so it can be tested without the database.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Iterable, Sequence

from flask import current_app

from .. import db
from ..notifications.mailer import send_admin_alert
from .models import Referral, ReferralFraudFlag

logger = logging.getLogger("chefos.referrals.fraud")

RAPID_WINDOW = timedelta(hours=24)

PUBLIC_EMAIL_DOMAINS = frozenset(
    {
        "gmail.com",
        "googlemail.com",
        "outlook.com",
        "hotmail.com",
        "live.com",
        "yahoo.com",
        "yahoo.com.au",
        "icloud.com",
        "me.com",
        "aol.com",
        "proton.me",
        "protonmail.com",
        "bigpond.com",
        "optusnet.com.au",
    }
)

_TRAILING_DIGITS = re.compile(r"\d+$")


def normalized_local_part(email: str) -> str:
    local = email.lower().split("@", 1)[0]
    local = local.split("+", 1)[0]
    local = local.replace(".", "")
    return _TRAILING_DIGITS.sub("", local)


def max_in_window(timestamps: Iterable[datetime], window: timedelta = RAPID_WINDOW) -> int:
    """Largest number of timestamps inside any window of length `window`."""
    times = sorted(timestamps)
    best = 0
    start = 0
    for end, ts in enumerate(times):
        while ts - times[start] >= window:
            start += 1
        best = max(best, end - start + 1)
    return best


def detect_rapid_signups(rows: Sequence[Referral], threshold: int) -> dict[str, Any] | None:
    peak = max_in_window(r.created_at for r in rows if r.created_at is not None)
    if peak >= threshold:
        return {"count": peak, "detail": {"max_in_24h": peak, "threshold": threshold}}
    return None


def detect_domain_cluster(rows: Sequence[Referral], threshold: int) -> dict[str, Any] | None:
    domains = Counter(
        r.referred_email.split("@", 1)[1]
        for r in rows
        if "@" in r.referred_email
        and r.referred_email.split("@", 1)[1] not in PUBLIC_EMAIL_DOMAINS
    )
    clusters = {d: n for d, n in domains.items() if n >= threshold}
    if clusters:
        return {
            "count": max(clusters.values()),
            "detail": {"domains": dict(sorted(clusters.items())), "threshold": threshold},
        }
    return None


def detect_prefix_similarity(rows: Sequence[Referral], threshold: int) -> dict[str, Any] | None:
    prefixes = Counter(normalized_local_part(r.referred_email) for r in rows)
    prefixes.pop("", None)
    groups = {p: n for p, n in prefixes.items() if n >= threshold}
    if groups:
        return {
            "count": max(groups.values()),
            "detail": {"prefixes": dict(sorted(groups.items())), "threshold": threshold},
        }
    return None


def _has_open_flag(referrer_org_id: int, flag_type: str) -> bool:
    return (
        ReferralFraudFlag.query.filter_by(
            referrer_org_id=referrer_org_id, flag_type=flag_type, status="open"
        ).first()
        is not None
    )


def _alert_html(flags: list[ReferralFraudFlag]) -> str:
    items = "".join(
        f"<li>org {f.referrer_org_id}: {f.flag_type} ({f.referral_count} referrals)</li>"
        for f in flags
    )
    return f"<p>Referral fraud scan raised {len(flags)} new flag(s):</p><ul>{items}</ul>"


def scan_referral_fraud(now: datetime | None = None) -> dict[str, Any]:
    cfg = current_app.config
    now = now or datetime.utcnow()
    since = now - timedelta(days=cfg.get("FRAUD_LOOKBACK_DAYS", 30))
    detectors = (
        ("rapid_signups", detect_rapid_signups, cfg.get("FRAUD_WINDOW_THRESHOLD", 5)),
        ("domain_cluster", detect_domain_cluster, cfg.get("FRAUD_DOMAIN_THRESHOLD", 3)),
        ("prefix_similarity", detect_prefix_similarity, cfg.get("FRAUD_PREFIX_THRESHOLD", 3)),
    )

    rows = (
        Referral.query.filter(
            Referral.created_at >= since,
            Referral.created_at <= now,
            Referral.status != "rejected",
        )
        .order_by(Referral.referrer_org_id, Referral.created_at)
        .all()
    )
    by_referrer: dict[int, list[Referral]] = {}
    for row in rows:
        by_referrer.setdefault(row.referrer_org_id, []).append(row)

    new_flags: list[ReferralFraudFlag] = []
    already_open = 0
    for referrer_id, referrer_rows in by_referrer.items():
        for flag_type, detect, threshold in detectors:
            hit = detect(referrer_rows, threshold)
            if hit is None:
                continue
            if _has_open_flag(referrer_id, flag_type):
                already_open += 1
                continue
            flag = ReferralFraudFlag()
            flag.referrer_org_id = referrer_id
            flag.flag_type = flag_type
            flag.detail = hit["detail"]
            flag.referral_count = hit["count"]
            db.session.add(flag)
            new_flags.append(flag)
    db.session.commit()

    alerted = False
    if new_flags:
        logger.warning("Referral fraud scan raised %s new flag(s)", len(new_flags))
        alerted = send_admin_alert("Referral fraud flags", _alert_html(new_flags))
    summary = {
        "scanned_referrals": len(rows),
        "referrers": len(by_referrer),
        "new_flags": len(new_flags),
        "already_open": already_open,
        "alert_sent": alerted,
        "flags": [f.to_dict() for f in new_flags],
    }
    logger.info(
        "Referral fraud scan: %s referrals, %s referrers, %s new flags",
        summary["scanned_referrals"],
        summary["referrers"],
        summary["new_flags"],
    )
    return summary

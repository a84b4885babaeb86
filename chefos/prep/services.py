"""Prep lists and the prep suggestion engine.

Suggestions are learned from the org's own history: a task that shows up on
most Mondays of the lookback window is suggested for the next Monday.
"""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Any

from .. import db
from ..core.models import Venue
from .models import URGENCY_LEVELS, PrepItem, PrepList

_WS = re.compile(r"\s+")


def normalize_task(text: str | None) -> str:
    return _WS.sub(" ", (text or "").strip()).lower()


# ===================== Listas =====================
def create_list(org_id: int, data: dict[str, Any], created_by: int | None = None) -> PrepList:
    prep_date = data.get("prep_date")
    if not isinstance(prep_date, date):
        raise ValueError("prep_date is required")
    venue_id = data.get("venue_id")
    if venue_id is not None:
        venue = db.session.get(Venue, venue_id)
        if venue is None or venue.org_id != org_id:
            raise ValueError(f"venue {venue_id} does not belong to org {org_id}")
    plist = PrepList()
    plist.org_id = org_id
    plist.venue_id = venue_id
    plist.name = (data.get("name") or "").strip() or f"Prep {prep_date.isoformat()}"
    plist.prep_date = prep_date
    plist.notes = data.get("notes") or None
    plist.created_by = created_by
    db.session.add(plist)
    try:
        for raw in data.get("items") or []:
            _new_item(plist, raw)
    except ValueError:
        db.session.rollback()
        raise
    plist.refresh_status()
    db.session.commit()
    return plist


def _new_item(plist: PrepList, data: dict[str, Any]) -> PrepItem:
    if not isinstance(data, dict):
        raise ValueError("each item must be an object")
    task = _WS.sub(" ", str(data.get("task") or "").strip())
    if not task:
        raise ValueError("task is required")
    urgency = data.get("urgency") or "within_48h"
    if urgency not in URGENCY_LEVELS:
        raise ValueError(f"invalid urgency: {urgency}")
    item = PrepItem()
    item.task = task
    item.quantity = (str(data.get("quantity") or "").strip()) or None
    item.station = (str(data.get("station") or "").strip()) or None
    item.urgency = urgency
    item.completed = False
    plist.items.append(item)
    return item


def add_item(plist: PrepList, data: dict[str, Any]) -> PrepItem:
    try:
        item = _new_item(plist, data)
    except ValueError:
        db.session.rollback()
        raise
    plist.refresh_status()
    db.session.commit()
    return item


def complete_item(item: PrepItem, completed: bool = True) -> PrepItem:
    item.completed = completed
    item.completed_at = datetime.utcnow() if completed else None
    item.prep_list.refresh_status()
    db.session.commit()
    return item


def lists_for_date(org_id: int, prep_date: date):
    return (
        PrepList.query.filter_by(org_id=org_id, prep_date=prep_date).order_by(PrepList.id).all()
    )


# ===================== Sugestões =====================
@dataclass
class PrepSuggestion:
    task: str
    typical_quantity: str | None
    station: str | None
    weekday_hits: int
    total_hits: int
    score: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def count_weekdays(start: date, end: date, weekday: int) -> int:
    """Number of days in [start, end] whose date.weekday() equals `weekday`."""
    if end < start:
        return 0
    first = start + timedelta(days=(weekday - start.weekday()) % 7)
    if first > end:
        return 0
    return (end - first).days // 7 + 1


def _most_common(values: list[str | None]) -> str | None:
    present = [v for v in values if v]
    if not present:
        return None
    counts = Counter(present)
    # empate: o valor mais recente vence
    best = max(counts.values())
    for value in reversed(present):
        if counts[value] == best:
            return value
    return None


def suggest_prep_items(
    org_id: int,
    target_date: date,
    lookback_days: int = 56,
    min_occurrences: int = 3,
    limit: int = 10,
) -> list[PrepSuggestion]:
    """Rank historical prep tasks for `target_date`.

    The window is the `lookback_days` days before the target date. Score is
    the share of target weekdays in the window on which the task was
    prepped; ties break on total frequency and then on task name.
    """
    if lookback_days < 1:
        raise ValueError("lookback_days must be >= 1")
    window_start = target_date - timedelta(days=lookback_days)
    window_end = target_date - timedelta(days=1)

    rows = (
        db.session.query(PrepItem, PrepList.prep_date)
        .join(PrepList, PrepItem.prep_list_id == PrepList.id)
        .filter(
            PrepList.org_id == org_id,
            PrepList.prep_date >= window_start,
            PrepList.prep_date <= window_end,
        )
        .order_by(PrepList.prep_date, PrepItem.id)
        .all()
    )

    days_seen: dict[str, set[date]] = defaultdict(set)
    labels: dict[str, str] = {}
    quantities: dict[str, list[str | None]] = defaultdict(list)
    stations: dict[str, list[str | None]] = defaultdict(list)
    for item, prep_date in rows:
        key = normalize_task(item.task)
        if not key:
            continue
        days_seen[key].add(prep_date)
        labels[key] = item.task
        quantities[key].append(item.quantity)
        stations[key].append(item.station)

    already_planned = {
        normalize_task(item.task)
        for plist in lists_for_date(org_id, target_date)
        for item in plist.items
    }
    weekday = target_date.weekday()
    weekdays_in_window = count_weekdays(window_start, window_end, weekday)

    suggestions = []
    for key, days in days_seen.items():
        total = len(days)
        if total < min_occurrences or key in already_planned:
            continue
        hits = sum(1 for d in days if d.weekday() == weekday)
        score = hits / weekdays_in_window if weekdays_in_window else 0.0
        suggestions.append(
            PrepSuggestion(
                task=labels[key],
                typical_quantity=_most_common(quantities[key]),
                station=_most_common(stations[key]),
                weekday_hits=hits,
                total_hits=total,
                score=round(score, 4),
            )
        )
    suggestions.sort(key=lambda s: (-s.score, -s.total_hits, normalize_task(s.task)))
    return suggestions[: max(limit, 0)]

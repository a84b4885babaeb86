"""Recurrence descriptors for recurring todo rules.

A rule row is turned into one of three small value types; each answers
`occurs_on(day)`. Weekdays use 0 = Sunday ... 6 = Saturday, the numbering the
clients store.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Union


def sunday_based_weekday(day: date) -> int:
    # date.weekday(): 0 = segunda; convertemos para 0 = domingo
    return (day.weekday() + 1) % 7


@dataclass(frozen=True)
class Daily:
    def occurs_on(self, day: date) -> bool:
        return True


@dataclass(frozen=True)
class Weekly:
    days: frozenset[int]

    def occurs_on(self, day: date) -> bool:
        return sunday_based_weekday(day) in self.days


@dataclass(frozen=True)
class Monthly:
    day: int

    def occurs_on(self, day: date) -> bool:
        # Dia 31 em mês de 30 dias dispara no último dia do mês
        last = calendar.monthrange(day.year, day.month)[1]
        return day.day == min(self.day, last)


Recurrence = Union[Daily, Weekly, Monthly]


def build_recurrence(
    recurrence_type: str, days_of_week: list[int] | None = None, day_of_month: int | None = None
) -> Recurrence:
    if recurrence_type == "daily":
        return Daily()
    if recurrence_type == "weekly":
        days = frozenset(d for d in (days_of_week or []) if 0 <= d <= 6)
        if not days:
            raise ValueError("weekly recurrence needs at least one day of week (0-6)")
        return Weekly(days)
    if recurrence_type == "monthly":
        if day_of_month is None or not 1 <= int(day_of_month) <= 31:
            raise ValueError("monthly recurrence needs day_of_month between 1 and 31")
        return Monthly(int(day_of_month))
    raise ValueError(f"unknown recurrence type: {recurrence_type}")


def recurrence_from_rule(rule) -> Recurrence:
    return build_recurrence(rule.recurrence_type, rule.weekdays(), rule.day_of_month)

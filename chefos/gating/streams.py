"""Registro de streams (verticais) do produto.

Um stream com `base_features=None` tem acesso ao conjunto completo; os
demais só enxergam sua lista base mais os `release_modules` liberados
individualmente para o tenant (org_released_modules).
"""

from __future__ import annotations

from dataclasses import dataclass, field

ALL_FEATURES: tuple[str, ...] = (
    "dashboard",
    "recipes",
    "ingredients",
    "costing",
    "inventory",
    "prep",
    "kitchen",
    "kitchen-sections",
    "todo",
    "production",
    "menu-engineering",
    "roster",
    "team",
    "calendar",
    "food-safety",
    "scanner",
    "reports",
    "invoices",
    "marketplace",
    "ai-chat",
    "companion",
    "money-lite",
    "money",
    "overhead",
    "bev",
    "reservations",
    "growth",
    "clock",
    "referrals",
    "training",
    "cheatsheets",
    "games",
    "feedback",
    "demands",
    "deals",
    "settings",
)


@dataclass(frozen=True)
class StreamConfig:
    key: str
    label: str
    store_mode: str
    layout: str
    base_features: frozenset[str] | None
    release_modules: frozenset[str] = field(default_factory=frozenset)

    @property
    def full_access(self) -> bool:
        return self.base_features is None


STREAMS: dict[str, StreamConfig] = {
    "chefos": StreamConfig(
        key="chefos",
        label="ChefOS",
        store_mode="restaurant",
        layout="full",
        base_features=None,
    ),
    "homechef": StreamConfig(
        key="homechef",
        label="HomeChef",
        store_mode="home_cook",
        layout="full",
        base_features=frozenset(
            {
                "dashboard",
                "recipes",
                "kitchen",
                "todo",
                "food-safety",
                "cheatsheets",
                "money-lite",
                "settings",
                "feedback",
                "games",
                "companion",
            }
        ),
    ),
    "eatsafe": StreamConfig(
        key="eatsafe",
        label="EatSafe",
        store_mode="restaurant",
        layout="compliance",
        base_features=frozenset(
            {"dashboard", "food-safety", "scanner", "reports", "settings", "games"}
        ),
        release_modules=frozenset(
            {
                "recipes",
                "ingredients",
                "prep",
                "kitchen-sections",
                "inventory",
                "menu-engineering",
                "production",
                "team",
                "roster",
                "calendar",
                "invoices",
                "marketplace",
                "ai-chat",
                "money-lite",
                "training",
            }
        ),
    ),
    "vendor": StreamConfig(
        key="vendor",
        label="VendorOS",
        store_mode="restaurant",
        layout="full",
        base_features=frozenset({"dashboard", "demands", "deals", "settings"}),
    ),
}


def app_slug(stream_key: str) -> str:
    """Slug of the feature_releases row that switches a whole app on/off."""
    return f"app-{stream_key}"

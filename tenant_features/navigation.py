from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List

from .catalog import FeatureCatalog
from .guard import Entitlement, has_access
from .models import FeatureCategory, NavigationItem

DEFAULT_LOCALE = "en"


def _nav_key(feature_id: str) -> str:
    # BOOKING_ENGINE -> sidebar.bookingengine
    return f"sidebar.{feature_id.lower().replace('_', '')}"


def build_navigation(catalog: FeatureCatalog, locale: str, tenant_slug: str) -> List[NavigationItem]:
    """
    Sidebar tree for every routed feature, engines before modules.

    Labels come from the feature's ``labels`` for ``locale``, then English,
    then the catalog name (or child route name).
    """
    items: List[NavigationItem] = []
    ordered = catalog.features_by_category(FeatureCategory.ENGINE) + catalog.features_by_category(
        FeatureCategory.MODULE
    )
    for feature in ordered:
        if not feature.main_route:
            continue
        base = f"/{locale}/{tenant_slug}{feature.main_route}"
        children = tuple(
            NavigationItem(
                name=f"sidebar.{child.name}",
                href=f"{base}{child.path}",
                icon=child.icon,
                label=feature.label(locale, child.name, DEFAULT_LOCALE) or child.name,
                features=(feature.id,),
            )
            for child in feature.child_routes
        )
        items.append(
            NavigationItem(
                name=_nav_key(feature.id),
                href=base,
                icon=feature.icon,
                label=feature.label(locale, "title", DEFAULT_LOCALE) or feature.name,
                features=(feature.id,),
                children=children,
            )
        )
    return items


def filter_navigation(items: Iterable[NavigationItem], entitlement: Entitlement) -> List[NavigationItem]:
    """Drop entries (and children) the tenant is not entitled to see."""
    visible: List[NavigationItem] = []
    for item in items:
        if not has_access(entitlement, item.features, item.mode):
            continue
        if item.children:
            item = replace(item, children=tuple(filter_navigation(item.children, entitlement)))
        visible.append(item)
    return visible

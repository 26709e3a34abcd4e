"""
Monthly cost of an entitlement set: a flat sum of per-feature catalog prices.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Tuple

from .catalog import FeatureCatalog
from .models import EntitlementSet, Feature

CENTS = Decimal("0.01")


def compute_cost(catalog: FeatureCatalog, entitlement: EntitlementSet) -> Decimal:
    """
    Sum of ``pricing`` for every enabled feature, to two decimal places.

    Zero-priced features are summed like any other. Ids the catalog does
    not know contribute nothing.
    """
    total = Decimal("0")
    for feature_id in entitlement.features:
        feature = catalog.get_by_id(feature_id)
        if feature is not None:
            total += feature.pricing
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def cost_breakdown(catalog: FeatureCatalog, entitlement: EntitlementSet) -> List[Tuple[str, Decimal]]:
    """(feature_id, price) for each enabled feature in catalog order."""
    return [
        (feature.id, feature.pricing.quantize(CENTS, rounding=ROUND_HALF_UP))
        for feature in catalog.all_features()
        if feature.id in entitlement
    ]


def available_upgrades(catalog: FeatureCatalog, entitlement: EntitlementSet) -> List[Feature]:
    """Catalog features the tenant could still enable, never the baseline."""
    return [
        feature
        for feature in catalog.all_features()
        if feature.id not in entitlement and not feature.required
    ]

"""
Entitlement resolution: pure add/remove transforms over an EntitlementSet.

Every function takes the catalog and a set and returns a new value. Nothing
here raises for a rejected edit; the typed reason travels inside the
returned EntitlementDecision and the caller's set is returned unchanged.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from .catalog import FeatureCatalog
from .errors import DependencyConflictError, RequiredFeatureViolation, UnknownFeatureError
from .models import DependencyValidation, EntitlementDecision, EntitlementSet, NormalizationResult

logger = logging.getLogger(__name__)


def baseline_set(catalog: FeatureCatalog) -> EntitlementSet:
    """The set a freshly provisioned tenant starts with."""
    return EntitlementSet(catalog.required_feature_ids())


def add_feature(catalog: FeatureCatalog, entitlement: EntitlementSet, feature_id: str) -> EntitlementDecision:
    if feature_id not in catalog:
        return EntitlementDecision(entitlement_set=entitlement, error=UnknownFeatureError(feature_id))

    if feature_id in entitlement:
        return EntitlementDecision(entitlement_set=entitlement)

    added = catalog.dependency_closure(feature_id, present=entitlement.features)
    result = entitlement.with_features((feature_id, *added))
    logger.debug("Feature added", extra={"feature_id": feature_id, "added": list(added)})
    return EntitlementDecision(entitlement_set=result, added=added)


def remove_feature(catalog: FeatureCatalog, entitlement: EntitlementSet, feature_id: str) -> EntitlementDecision:
    if feature_id not in catalog:
        return EntitlementDecision(entitlement_set=entitlement, error=UnknownFeatureError(feature_id))

    if feature_id == catalog.required_feature_id:
        return EntitlementDecision(entitlement_set=entitlement, error=RequiredFeatureViolation(feature_id))

    if feature_id not in entitlement:
        return EntitlementDecision(entitlement_set=entitlement)

    blockers = tuple(f for f in catalog.dependents_of(feature_id) if f in entitlement)
    if blockers:
        return EntitlementDecision(
            entitlement_set=entitlement,
            error=DependencyConflictError(feature_id, blockers),
            blockers=blockers,
        )

    return EntitlementDecision(entitlement_set=entitlement.without(feature_id))


def provision_entitlements(catalog: FeatureCatalog, selected: Iterable[str]) -> EntitlementDecision:
    """
    Build a new tenant's set: baseline first, then each selection in order.

    ``added`` accumulates every dependency pulled in along the way that the
    caller did not select. Any rejection aborts the whole seed and returns
    the baseline.
    """
    selected = [str(feature_id).strip() for feature_id in selected]
    start = baseline_set(catalog)
    current = start
    added: Dict[str, None] = {}
    for feature_id in selected:
        decision = add_feature(catalog, current, feature_id)
        if not decision.ok:
            return EntitlementDecision(entitlement_set=start, error=decision.error)
        current = decision.entitlement_set
        added.update(dict.fromkeys(decision.added))
    chosen = set(selected)
    return EntitlementDecision(
        entitlement_set=current,
        added=tuple(f for f in added if f not in chosen),
    )


def validate_dependencies(catalog: FeatureCatalog, feature_ids: Iterable[str]) -> DependencyValidation:
    """Report direct prerequisites absent from an arbitrary id list."""
    present = set(feature_ids)
    missing: Dict[str, None] = {}
    for feature_id in present:
        feature = catalog.get_by_id(feature_id)
        if feature is None:
            continue
        for dep in feature.dependencies:
            if dep not in present:
                missing[dep] = None
    ordered = tuple(f for f in catalog.feature_ids() if f in missing)
    return DependencyValidation(valid=not ordered, missing=ordered)


def normalize_entitlements(catalog: FeatureCatalog, feature_ids: Iterable[str]) -> NormalizationResult:
    """
    Repair a persisted id list so it satisfies closure and baseline again.

    Unknown ids are dropped, the required feature is restored and every
    remaining feature's dependencies are added.
    """
    raw = [str(feature_id).strip() for feature_id in feature_ids]
    dropped = tuple(dict.fromkeys(f for f in raw if f not in catalog))
    known = {f for f in raw if f in catalog}

    required = catalog.required_feature_id
    added: List[str] = [] if required in known else [required]
    closed = set(known) | {required}
    for feature_id in catalog.feature_ids():
        if feature_id not in known:
            continue
        for dep in catalog.dependency_closure(feature_id):
            if dep not in closed:
                closed.add(dep)
                added.append(dep)

    return NormalizationResult(
        entitlement_set=EntitlementSet(closed),
        added=tuple(added),
        dropped=dropped,
    )


def is_consistent(catalog: FeatureCatalog, entitlement: EntitlementSet) -> bool:
    """True when the set only holds catalog ids, includes the baseline and is closed."""
    if not all(f in catalog for f in entitlement.features):
        return False
    if catalog.required_feature_id not in entitlement:
        return False
    return validate_dependencies(catalog, entitlement.features).valid

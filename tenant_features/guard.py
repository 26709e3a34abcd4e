"""
Access guard: the one predicate every navigation filter, route dependency and
in-page panel calls to decide whether a tenant may see a feature-gated area.

It never raises. A False answer means "render the fallback", not an error.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List, Optional, Union

from .models import AccessMode, EntitlementSet

logger = logging.getLogger(__name__)

Entitlement = Union[EntitlementSet, AbstractSet[str], Iterable[str], None]


def _as_frozenset(entitlement: Entitlement) -> frozenset:
    if entitlement is None:
        return frozenset()
    if isinstance(entitlement, EntitlementSet):
        return entitlement.features
    if isinstance(entitlement, str):
        return frozenset({entitlement})
    try:
        return frozenset(entitlement)
    except TypeError:
        return frozenset()


def _as_list(required: Optional[Iterable[str]]) -> List[str]:
    if required is None:
        return []
    if isinstance(required, str):
        return [required]
    try:
        return list(required)
    except TypeError:
        return []


def _resolve_mode(mode: object) -> AccessMode:
    if isinstance(mode, AccessMode):
        return mode
    if isinstance(mode, str):
        try:
            return AccessMode(mode.strip().lower())
        except ValueError:
            pass
    logger.debug("Unrecognised access mode, evaluating as ALL", extra={"mode_type": type(mode).__name__})
    return AccessMode.ALL


def _enabled(enabled: frozenset, feature_id: object) -> bool:
    try:
        return feature_id in enabled
    except TypeError:
        return False


def has_access(
    entitlement: Entitlement,
    required: Optional[Iterable[str]],
    mode: Union[AccessMode, str] = AccessMode.ALL,
) -> bool:
    """
    ALL: every required id is enabled. ANY: at least one is.

    An empty ``required`` list always grants access. Mode strings match
    case-insensitively; an unrecognised mode is treated as ALL.
    """
    required_ids = _as_list(required)
    if not required_ids:
        return True

    enabled = _as_frozenset(entitlement)
    if _resolve_mode(mode) is AccessMode.ANY:
        return any(_enabled(enabled, feature_id) for feature_id in required_ids)
    return all(_enabled(enabled, feature_id) for feature_id in required_ids)


def missing_features(entitlement: Entitlement, required: Optional[Iterable[str]]) -> List[str]:
    """Required ids the tenant lacks, in the order they were asked for."""
    enabled = _as_frozenset(entitlement)
    return list(dict.fromkeys(f for f in _as_list(required) if not _enabled(enabled, f)))

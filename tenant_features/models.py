from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from .errors import FeatureEntitlementError


class FeatureCategory(str, Enum):
    """Kind of purchasable capability unit."""

    ENGINE = "Engine"
    MODULE = "Module"


class AccessMode(str, Enum):
    """How a list of required feature ids is evaluated by the access guard."""

    ALL = "all"
    ANY = "any"


@dataclass(frozen=True)
class FeatureRoute:
    """A child navigation entry of a feature's main route."""

    name: str
    path: str
    icon: Optional[str] = None


@dataclass(frozen=True)
class Feature:
    """Immutable catalog entry for an engine or module."""

    id: str
    name: str
    category: FeatureCategory
    pricing: Decimal = Decimal("0")
    description: str = ""
    dependencies: Tuple[str, ...] = ()
    required: bool = False
    icon: Optional[str] = None
    main_route: Optional[str] = None
    child_routes: Tuple[FeatureRoute, ...] = ()
    # locale -> {"title" or child route name -> display label}
    labels: Mapping[str, Mapping[str, str]] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        feature_id = str(self.id).strip()
        if not feature_id:
            raise ValueError("feature id is required")
        pricing = Decimal(str(self.pricing))
        if pricing < 0:
            raise ValueError(f"feature '{feature_id}' pricing must be non-negative")
        object.__setattr__(self, "id", feature_id)
        object.__setattr__(self, "category", FeatureCategory(self.category))
        object.__setattr__(self, "pricing", pricing)
        # keep declared order, drop duplicate edges
        object.__setattr__(self, "dependencies", tuple(dict.fromkeys(d.strip() for d in self.dependencies)))
        object.__setattr__(self, "child_routes", tuple(self.child_routes))
        object.__setattr__(self, "labels", {locale: dict(names) for locale, names in self.labels.items()})

    def label(self, locale: str, key: str = "title", fallback_locale: str = "en") -> Optional[str]:
        """Display label for the feature (or one of its child routes) in ``locale``."""
        for candidate in (locale, fallback_locale):
            value = self.labels.get(candidate, {}).get(key)
            if value:
                return value
        return None


@dataclass(frozen=True)
class EntitlementSet:
    """The set of feature ids enabled for one tenant."""

    features: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", frozenset(self.features))

    @classmethod
    def of(cls, feature_ids: Iterable[str]) -> "EntitlementSet":
        return cls(frozenset(feature_ids))

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self.features

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.features))

    def __len__(self) -> int:
        return len(self.features)

    def with_features(self, feature_ids: Iterable[str]) -> "EntitlementSet":
        return EntitlementSet(self.features | frozenset(feature_ids))

    def without(self, feature_id: str) -> "EntitlementSet":
        return EntitlementSet(self.features - {feature_id})

    def issubset(self, other: "EntitlementSet") -> bool:
        return self.features <= other.features

    def to_list(self) -> List[str]:
        return sorted(self.features)


@dataclass(frozen=True)
class EntitlementDecision:
    """Outcome of a resolver operation.

    On success ``error`` is None and ``entitlement_set`` is the new consistent
    set. On rejection ``error`` holds the typed reason and ``entitlement_set``
    is the caller's original set, untouched.
    """

    entitlement_set: EntitlementSet
    added: Tuple[str, ...] = ()
    error: Optional[FeatureEntitlementError] = None
    blockers: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        payload: dict = {
            "ok": self.ok,
            "features": self.entitlement_set.to_list(),
            "added": list(self.added),
        }
        if self.error is not None:
            payload["error"] = self.error.to_dict()
            payload["blockers"] = list(self.blockers)
        return payload


@dataclass(frozen=True)
class DependencyValidation:
    valid: bool
    missing: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NormalizationResult:
    """A repaired entitlement set plus what the repair changed."""

    entitlement_set: EntitlementSet
    added: Tuple[str, ...] = ()
    dropped: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.added or self.dropped)


@dataclass(frozen=True)
class NavigationItem:
    """Sidebar entry gated by one or more feature ids."""

    name: str
    href: str
    icon: Optional[str] = None
    label: Optional[str] = None
    features: Tuple[str, ...] = ()
    mode: AccessMode = AccessMode.ALL
    children: Tuple["NavigationItem", ...] = field(default_factory=tuple)

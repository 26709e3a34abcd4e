"""
Feature catalog: immutable registry of every engine/module and its dependency edges.

The catalog validates itself once on construction (unique ids, known
dependency targets, a single dependency-free required feature, no cycles);
every later lookup trusts that validation.
"""

from __future__ import annotations

from collections import deque
from types import MappingProxyType
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .errors import CatalogValidationError, CyclicDependencyError, UnknownFeatureError
from .models import Feature, FeatureCategory

_WHITE, _GREY, _BLACK = 0, 1, 2


class FeatureCatalog:
    """Ordered, read-only mapping of feature id -> Feature."""

    def __init__(self, features: Iterable[Feature]) -> None:
        ordered: Dict[str, Feature] = {}
        for feature in features:
            if feature.id in ordered:
                raise CatalogValidationError(f"duplicate feature id: {feature.id}", field="id")
            ordered[feature.id] = feature
        if not ordered:
            raise CatalogValidationError("feature catalog must define at least one feature")

        self._features: Mapping[str, Feature] = MappingProxyType(ordered)
        self._check_dependency_targets()
        self._required_id = self._check_required()
        self.validate_acyclic()

        dependents: Dict[str, List[str]] = {feature_id: [] for feature_id in ordered}
        for feature in ordered.values():
            for dep in feature.dependencies:
                dependents[dep].append(feature.id)
        self._dependents: Mapping[str, Tuple[str, ...]] = MappingProxyType(
            {key: tuple(value) for key, value in dependents.items()}
        )

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._features

    def __len__(self) -> int:
        return len(self._features)

    def __iter__(self):
        return iter(self._features.values())

    def get_by_id(self, feature_id: str) -> Optional[Feature]:
        return self._features.get(feature_id)

    def require(self, feature_id: str) -> Feature:
        feature = self._features.get(feature_id)
        if feature is None:
            raise UnknownFeatureError(feature_id)
        return feature

    def all_features(self) -> Tuple[Feature, ...]:
        return tuple(self._features.values())

    def feature_ids(self) -> Tuple[str, ...]:
        return tuple(self._features)

    def features_by_category(self, category: FeatureCategory) -> Tuple[Feature, ...]:
        category = FeatureCategory(category)
        return tuple(f for f in self._features.values() if f.category is category)

    def required_feature_ids(self) -> FrozenSet[str]:
        return frozenset({self._required_id})

    @property
    def required_feature_id(self) -> str:
        return self._required_id

    def dependents_of(self, feature_id: str) -> Tuple[str, ...]:
        """Catalog features that declare ``feature_id`` as a direct dependency."""
        self.require(feature_id)
        return self._dependents[feature_id]

    def dependency_closure(
        self,
        feature_id: str,
        present: AbstractSet[str] = frozenset(),
    ) -> Tuple[str, ...]:
        """
        Transitive dependencies of ``feature_id`` not already in ``present``.

        Breadth-first over dependency edges in declared order. Ids already in
        ``present`` are not expanded: a consistent set already holds their
        own dependencies. The feature itself is never part of the result.
        """
        root = self.require(feature_id)
        seen = {feature_id}
        discovered: List[str] = []
        queue = deque(root.dependencies)
        while queue:
            dep = queue.popleft()
            if dep in seen or dep in present:
                continue
            seen.add(dep)
            discovered.append(dep)
            queue.extend(self._features[dep].dependencies)
        return tuple(discovered)

    def validate_acyclic(self) -> None:
        """Depth-first walk of the dependency graph; raise on the first back-edge."""
        state = {feature_id: _WHITE for feature_id in self._features}
        for root in self._features:
            if state[root] != _WHITE:
                continue
            state[root] = _GREY
            path = [root]
            stack = [iter(self._features[root].dependencies)]
            while stack:
                for dep in stack[-1]:
                    if state[dep] == _GREY:
                        raise CyclicDependencyError(path[path.index(dep):] + [dep])
                    if state[dep] == _WHITE:
                        state[dep] = _GREY
                        path.append(dep)
                        stack.append(iter(self._features[dep].dependencies))
                        break
                else:
                    state[path.pop()] = _BLACK
                    stack.pop()

    def _check_dependency_targets(self) -> None:
        for feature in self._features.values():
            for dep in feature.dependencies:
                if dep not in self._features:
                    raise CatalogValidationError(
                        f"feature '{feature.id}' depends on unknown feature '{dep}'",
                        field="dependencies",
                    )

    def _check_required(self) -> str:
        required = [f for f in self._features.values() if f.required]
        if len(required) != 1:
            raise CatalogValidationError(
                f"exactly one feature must be required, found {len(required)}",
                field="required",
            )
        baseline = required[0]
        if baseline.dependencies:
            raise CatalogValidationError(
                f"required feature '{baseline.id}' must not have dependencies",
                field="dependencies",
            )
        return baseline.id

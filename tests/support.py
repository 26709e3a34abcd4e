from __future__ import annotations

import fnmatch
from itertools import combinations

from redis.exceptions import WatchError

from tenant_features.catalog import FeatureCatalog
from tenant_features.models import EntitlementSet, Feature, FeatureCategory
from tenant_features.resolver import is_consistent


def make_catalog(*rows) -> FeatureCatalog:
    """rows: (id, pricing, dependencies[, required[, category]])"""
    features = []
    for row in rows:
        feature_id, pricing, deps = row[0], row[1], row[2]
        required = row[3] if len(row) > 3 else False
        category = row[4] if len(row) > 4 else FeatureCategory.ENGINE
        features.append(
            Feature(
                id=feature_id,
                name=feature_id.replace("_", " ").title(),
                category=category,
                pricing=pricing,
                dependencies=tuple(deps),
                required=required,
            )
        )
    return FeatureCatalog(features)


def all_subsets(catalog: FeatureCatalog):
    ids = catalog.feature_ids()
    for size in range(len(ids) + 1):
        for combo in combinations(ids, size):
            yield EntitlementSet.of(combo)


def consistent_sets(catalog: FeatureCatalog):
    """Every set reachable from the baseline through resolver calls."""
    return [s for s in all_subsets(catalog) if is_consistent(catalog, s)]


class _FakePipeline:
    def __init__(self, redis):
        self._redis = redis
        self._queued = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def watch(self, key):
        pass

    def get(self, key):
        return self._redis.get(key)

    def multi(self):
        self._queued = []

    def set(self, key, value):
        self._queued.append((key, value))

    def execute(self):
        if self._redis.fail_next_exec:
            self._redis.fail_next_exec = False
            raise WatchError("watched key changed")
        for key, value in self._queued:
            self._redis.store[key] = value
        return [True] * len(self._queued)


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.fail_next_exec = False

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    def scan_iter(self, match=None):
        return [k for k in list(self.store) if match is None or fnmatch.fnmatch(k, match)]

    def pipeline(self):
        return _FakePipeline(self)

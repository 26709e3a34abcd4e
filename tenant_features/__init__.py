"""
Tenant feature entitlement engine.

This package provides:
- FeatureCatalog: immutable registry of engines/modules and their dependencies
- load_catalog / get_catalog: catalog loading from config/features.json
- add_feature / remove_feature: pure dependency-closed edits of an EntitlementSet
- compute_cost: flat monthly price of an EntitlementSet
- has_access: the single access predicate used by every guard
- TenantFeatureStore / TenantFeatureService: persisted, revision-guarded tenant records

UI and HTTP bindings live in tenant_features.api.
"""

from tenant_features.catalog import FeatureCatalog
from tenant_features.errors import (
    CatalogValidationError,
    ConcurrentModificationError,
    CyclicDependencyError,
    DependencyConflictError,
    FeatureEntitlementError,
    RequiredFeatureViolation,
    TenantAlreadyExistsError,
    TenantNotFoundError,
    UnknownFeatureError,
)
from tenant_features.guard import has_access, missing_features
from tenant_features.loader import get_catalog, load_catalog, reload_catalog
from tenant_features.models import (
    AccessMode,
    DependencyValidation,
    EntitlementDecision,
    EntitlementSet,
    Feature,
    FeatureCategory,
    FeatureRoute,
    NavigationItem,
    NormalizationResult,
)
from tenant_features.pricing import available_upgrades, compute_cost, cost_breakdown
from tenant_features.resolver import (
    add_feature,
    baseline_set,
    normalize_entitlements,
    provision_entitlements,
    remove_feature,
    validate_dependencies,
)
from tenant_features.service import TenantFeatureService
from tenant_features.store import TenantFeatureRecord, TenantFeatureStore

__all__ = [
    # Catalog
    "FeatureCatalog",
    "load_catalog",
    "get_catalog",
    "reload_catalog",
    # Models
    "AccessMode",
    "DependencyValidation",
    "EntitlementDecision",
    "EntitlementSet",
    "Feature",
    "FeatureCategory",
    "FeatureRoute",
    "NavigationItem",
    "NormalizationResult",
    # Resolver
    "add_feature",
    "remove_feature",
    "baseline_set",
    "provision_entitlements",
    "normalize_entitlements",
    "validate_dependencies",
    # Pricing
    "compute_cost",
    "cost_breakdown",
    "available_upgrades",
    # Guard
    "has_access",
    "missing_features",
    # Persistence
    "TenantFeatureRecord",
    "TenantFeatureStore",
    "TenantFeatureService",
    # Errors
    "FeatureEntitlementError",
    "UnknownFeatureError",
    "RequiredFeatureViolation",
    "DependencyConflictError",
    "CyclicDependencyError",
    "CatalogValidationError",
    "TenantNotFoundError",
    "TenantAlreadyExistsError",
    "ConcurrentModificationError",
]

"""FastAPI bindings for tenant feature entitlements."""

from tenant_features.api.dependencies import get_feature_service, get_tenant_id, require_features
from tenant_features.api.routes import catalog_router, router

__all__ = [
    "catalog_router",
    "get_feature_service",
    "get_tenant_id",
    "require_features",
    "router",
]

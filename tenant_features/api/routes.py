"""
Admin routes for tenant engine/module entitlements. Super Admin only.

Edits go through TenantFeatureService so every write is dependency-checked
and revision-guarded; rejected edits come back as 404/409/422 with the
typed error payload.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from tenant_features.api.dependencies import get_feature_service, get_tenant_id
from tenant_features.errors import (
    ConcurrentModificationError,
    DependencyConflictError,
    FeatureEntitlementError,
    RequiredFeatureViolation,
    TenantAlreadyExistsError,
    TenantNotFoundError,
    UnknownFeatureError,
)
from tenant_features.models import EntitlementDecision, Feature, NavigationItem
from tenant_features.service import TenantFeatureService

router = APIRouter(prefix="/admin/tenants", tags=["admin", "tenant-features"])
catalog_router = APIRouter(prefix="/features", tags=["tenant-features"])

ALLOWED_ADMIN_ROLES = frozenset({"super_admin"})

_ERROR_STATUS = {
    UnknownFeatureError: status.HTTP_404_NOT_FOUND,
    TenantNotFoundError: status.HTTP_404_NOT_FOUND,
    RequiredFeatureViolation: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DependencyConflictError: status.HTTP_409_CONFLICT,
    TenantAlreadyExistsError: status.HTTP_409_CONFLICT,
    ConcurrentModificationError: status.HTTP_409_CONFLICT,
}


class ProvisionBody(BaseModel):
    features: List[str] = Field(default_factory=list, description="Selected engines and modules")


def _require_admin(request: Request) -> None:
    roles = getattr(request.state, "roles", None) or []
    if not ALLOWED_ADMIN_ROLES.intersection(roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")


def _http_error(error: FeatureEntitlementError) -> HTTPException:
    code = _ERROR_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=error.to_dict())


def _feature_dict(feature: Feature) -> dict:
    return {
        "id": feature.id,
        "name": feature.name,
        "description": feature.description,
        "category": feature.category.value,
        "pricing": str(feature.pricing),
        "dependencies": list(feature.dependencies),
        "required": feature.required,
        "icon": feature.icon,
    }


def _nav_dict(item: NavigationItem) -> dict:
    return {
        "name": item.name,
        "href": item.href,
        "icon": item.icon,
        "label": item.label,
        "features": list(item.features),
        "children": [_nav_dict(child) for child in item.children],
    }


def _decision_response(tenant_id: str, decision: EntitlementDecision) -> dict:
    if not decision.ok:
        raise _http_error(decision.error)
    return {"tenant_id": tenant_id, **decision.to_dict()}


@catalog_router.get("/catalog")
def get_catalog_route(service: TenantFeatureService = Depends(get_feature_service)) -> dict:
    """Every engine and module the platform sells, in catalog order."""
    return {
        "required_feature": service.catalog.required_feature_id,
        "features": [_feature_dict(f) for f in service.catalog.all_features()],
    }


@catalog_router.get("/navigation")
def get_navigation_route(
    request: Request,
    locale: str = Query("en", min_length=2),
    tenant_slug: Optional[str] = Query(None),
    service: TenantFeatureService = Depends(get_feature_service),
) -> dict:
    """Sidebar entries for the current tenant, filtered by its entitlements."""
    tenant_id = get_tenant_id(request)
    try:
        items = service.navigation(tenant_id, locale, tenant_slug or tenant_id)
    except FeatureEntitlementError as e:
        raise _http_error(e) from e
    return {"tenant_id": tenant_id, "items": [_nav_dict(i) for i in items]}


@router.post("/{target_tenant_id}/features", status_code=status.HTTP_201_CREATED)
def provision_tenant_route(
    request: Request,
    target_tenant_id: str,
    body: ProvisionBody,
    service: TenantFeatureService = Depends(get_feature_service),
) -> dict:
    """Create the feature record for a new tenant from its selected features."""
    _require_admin(request)
    try:
        decision = service.provision_tenant(target_tenant_id, body.features)
    except FeatureEntitlementError as e:
        raise _http_error(e) from e
    response = _decision_response(target_tenant_id, decision)
    response["monthly_cost"] = str(service.monthly_cost(target_tenant_id))
    return response


@router.get("/{target_tenant_id}/features")
def get_tenant_features_route(
    request: Request,
    target_tenant_id: str,
    service: TenantFeatureService = Depends(get_feature_service),
) -> dict:
    _require_admin(request)
    try:
        summary = service.summary(target_tenant_id)
    except FeatureEntitlementError as e:
        raise _http_error(e) from e
    return {
        "tenant_id": summary.tenant_id,
        "features": list(summary.features),
        "monthly_cost": str(summary.monthly_cost),
        "available_upgrades": [_feature_dict(f) for f in summary.available_upgrades],
        "is_active": summary.is_active,
        "revision": summary.revision,
    }


@router.post("/{target_tenant_id}/features/{feature_id}")
def enable_feature_route(
    request: Request,
    target_tenant_id: str,
    feature_id: str,
    service: TenantFeatureService = Depends(get_feature_service),
) -> dict:
    """Enable a feature, pulling in its prerequisites."""
    _require_admin(request)
    try:
        decision = service.enable_feature(target_tenant_id, feature_id)
    except FeatureEntitlementError as e:
        raise _http_error(e) from e
    return _decision_response(target_tenant_id, decision)


@router.delete("/{target_tenant_id}/features/{feature_id}")
def disable_feature_route(
    request: Request,
    target_tenant_id: str,
    feature_id: str,
    service: TenantFeatureService = Depends(get_feature_service),
) -> dict:
    """Disable a single feature. Blocked while enabled features depend on it."""
    _require_admin(request)
    try:
        decision = service.disable_feature(target_tenant_id, feature_id)
    except FeatureEntitlementError as e:
        raise _http_error(e) from e
    return _decision_response(target_tenant_id, decision)

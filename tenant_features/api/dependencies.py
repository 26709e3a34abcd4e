"""
Feature access dependencies.

FastAPI dependencies that block a route when the tenant lacks the engine or
module that gates it. The decision itself is TenantFeatureService.check_access;
this module only turns a False into an HTTP 402 with an upgrade hint.
"""

import logging
from typing import Callable, List, Optional, Union

from fastapi import Depends, HTTPException, Request, status

from tenant_features.errors import FeatureEntitlementError
from tenant_features.guard import missing_features
from tenant_features.models import AccessMode
from tenant_features.service import TenantFeatureService

logger = logging.getLogger(__name__)

_default_service: Optional[TenantFeatureService] = None


def get_feature_service() -> TenantFeatureService:
    """Process-wide service; override with app.dependency_overrides in tests."""
    global _default_service
    if _default_service is None:
        _default_service = TenantFeatureService()
    return _default_service


def get_tenant_id(request: Request) -> str:
    if hasattr(request.state, "tenant_id") and request.state.tenant_id:
        return request.state.tenant_id
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing tenant context")


def _missing_for(service: TenantFeatureService, tenant_id: str, feature_ids: List[str]) -> List[str]:
    # the store may be the reason access was denied; every id counts as missing then
    try:
        return missing_features(service.get_entitlements(tenant_id), feature_ids)
    except FeatureEntitlementError:
        return list(feature_ids)
    except Exception:
        logger.warning(
            "Tenant feature lookup failed while building denial",
            exc_info=True,
            extra={"tenant_id": tenant_id},
        )
        return list(feature_ids)


def require_features(*feature_ids: str, mode: Union[AccessMode, str] = AccessMode.ALL) -> Callable:
    """
    Dependency that requires the tenant to hold the given feature ids.

    Use on a route: Depends(require_features("BOOKING_ENGINE"))
    or Depends(require_features("BLOG_MODULE", "FORMS_MODULE", mode=AccessMode.ANY)).
    Raises 402 when the tenant is not entitled; returns the tenant id otherwise.
    """
    required = list(feature_ids)

    def _check(
        request: Request,
        service: TenantFeatureService = Depends(get_feature_service),
    ) -> str:
        tenant_id = get_tenant_id(request)
        if service.check_access(tenant_id, required, mode):
            return tenant_id

        missing = _missing_for(service, tenant_id, required)
        logger.warning(
            "Feature access denied: [%s] not entitled",
            ",".join(required),
            extra={"tenant_id": tenant_id, "missing": missing},
        )
        upgrade_feature = missing[0] if missing else required[0]
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "FEATURE_DENIED",
                "message": "This section requires an additional engine or module",
                "feature_ids": required,
                "missing": missing,
                "upgrade_path": f"{service.settings.upgrade_path}?feature={upgrade_feature}",
            },
        )

    return _check

"""
Tenant feature entitlement error hierarchy.

Provides:
- FeatureEntitlementError: base for all entitlement failures
- UnknownFeatureError: id absent from the catalog (caller bug)
- RequiredFeatureViolation: attempt to disable the baseline feature
- DependencyConflictError: removal blocked by enabled dependents
- CyclicDependencyError / CatalogValidationError: fatal catalog load failures
- TenantNotFoundError / TenantAlreadyExistsError / ConcurrentModificationError:
  persistence boundary failures

Resolver rejections are carried inside EntitlementDecision rather than raised.
"""

from typing import Optional, Sequence


class FeatureEntitlementError(Exception):
    """Base exception for tenant feature entitlement failures."""

    error_code = "FEATURE_ENTITLEMENT_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class UnknownFeatureError(FeatureEntitlementError):
    error_code = "UNKNOWN_FEATURE"

    def __init__(self, feature_id: str):
        self.feature_id = feature_id
        super().__init__(f"Unknown feature: {feature_id}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "feature_id": self.feature_id}


class RequiredFeatureViolation(FeatureEntitlementError):
    error_code = "REQUIRED_FEATURE"

    def __init__(self, feature_id: str):
        self.feature_id = feature_id
        super().__init__(f"{feature_id} is required for every tenant and cannot be disabled")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "feature_id": self.feature_id}


class DependencyConflictError(FeatureEntitlementError):
    """Removal blocked because enabled features still depend on the target."""

    error_code = "DEPENDENCY_CONFLICT"

    def __init__(self, feature_id: str, blockers: Sequence[str]):
        self.feature_id = feature_id
        self.blockers = tuple(blockers)
        super().__init__(
            f"Cannot disable {feature_id}: required by {', '.join(self.blockers)}"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "feature_id": self.feature_id,
            "blockers": list(self.blockers),
        }


class CyclicDependencyError(FeatureEntitlementError):
    error_code = "CYCLIC_DEPENDENCY"

    def __init__(self, path: Sequence[str]):
        self.path = tuple(path)
        super().__init__(f"Cyclic feature dependency: {' -> '.join(self.path)}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "path": list(self.path)}


class CatalogValidationError(FeatureEntitlementError):
    """Raised when the feature catalog config is malformed."""

    error_code = "CATALOG_INVALID"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.field is not None:
            d["field"] = self.field
        return d


class TenantNotFoundError(FeatureEntitlementError):
    error_code = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"No feature record for tenant {tenant_id}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "tenant_id": self.tenant_id}


class TenantAlreadyExistsError(FeatureEntitlementError):
    error_code = "TENANT_EXISTS"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Feature record already exists for tenant {tenant_id}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "tenant_id": self.tenant_id}


class ConcurrentModificationError(FeatureEntitlementError):
    """Compare-and-swap on the tenant record revision failed."""

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, tenant_id: str, expected_revision: int, actual_revision: Optional[int]):
        self.tenant_id = tenant_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        super().__init__(
            f"Feature record for {tenant_id} changed concurrently "
            f"(expected revision {expected_revision}, found {actual_revision})"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "tenant_id": self.tenant_id,
            "expected_revision": self.expected_revision,
            "actual_revision": self.actual_revision,
        }

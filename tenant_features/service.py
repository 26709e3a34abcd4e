"""
Tenant feature service: fetch the persisted set, run the resolver, persist the result.

The resolver stays pure; this layer owns the read-resolve-write cycle against
the store (optimistic, revision-checked, retried on conflict), audit events,
and the fail-closed access check used by request guards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from itertools import count
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .catalog import FeatureCatalog
from .config import FeatureSettings, load_settings
from .errors import ConcurrentModificationError, TenantNotFoundError
from .guard import has_access
from .loader import get_catalog
from .models import AccessMode, EntitlementDecision, EntitlementSet, Feature, NavigationItem
from .navigation import build_navigation, filter_navigation
from .pricing import available_upgrades, compute_cost
from .resolver import add_feature, normalize_entitlements, provision_entitlements, remove_feature
from .store import TenantFeatureRecord, TenantFeatureStore

logger = logging.getLogger(__name__)

Resolution = Callable[[FeatureCatalog, EntitlementSet, str], EntitlementDecision]


@dataclass(frozen=True)
class TenantFeatureSummary:
    tenant_id: str
    features: Tuple[str, ...]
    monthly_cost: Decimal
    available_upgrades: Tuple[Feature, ...]
    is_active: bool
    revision: int


class TenantFeatureService:
    """Entitlement edits and checks for persisted tenants."""

    def __init__(
        self,
        *,
        catalog: Optional[FeatureCatalog] = None,
        store: Optional[TenantFeatureStore] = None,
        settings: Optional[FeatureSettings] = None,
        audit_sink: Optional[Callable[[str, dict], None]] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.catalog = catalog or get_catalog(self.settings.catalog_path)
        self.store = store or TenantFeatureStore(
            redis_url=self.settings.redis_url,
            key_prefix=self.settings.key_prefix,
        )
        self._audit_sink = audit_sink or (lambda event, payload: None)

    def provision_tenant(self, tenant_id: str, selected: Iterable[str] = ()) -> EntitlementDecision:
        """Seed a new tenant from the baseline plus its selected features."""
        decision = provision_entitlements(self.catalog, selected)
        if not decision.ok:
            logger.warning(
                "Tenant provisioning rejected",
                extra={"tenant_id": tenant_id, "error": decision.error.error_code},
            )
            return decision

        record = self.store.create(tenant_id, decision.entitlement_set)
        self._audit(
            "tenant_features.provisioned",
            tenant_id=record.tenant_id,
            features=record.entitlement_set.to_list(),
            added=list(decision.added),
        )
        return decision

    def get_record(self, tenant_id: str) -> TenantFeatureRecord:
        """
        Load a tenant record, repaired against the current catalog.

        Repairs are not written back here; the reconcile worker persists them.
        """
        record = self.store.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(tenant_id)

        normalized = normalize_entitlements(self.catalog, record.entitlement_set.features)
        if normalized.changed:
            logger.warning(
                "Persisted tenant features drifted from catalog",
                extra={
                    "tenant_id": record.tenant_id,
                    "added": list(normalized.added),
                    "dropped": list(normalized.dropped),
                    "revision": record.revision,
                },
            )
            record = replace(record, entitlement_set=normalized.entitlement_set)
        return record

    def get_entitlements(self, tenant_id: str) -> EntitlementSet:
        return self.get_record(tenant_id).entitlement_set

    def enable_feature(self, tenant_id: str, feature_id: str) -> EntitlementDecision:
        return self._apply(tenant_id, feature_id, add_feature, "tenant_features.enabled")

    def disable_feature(self, tenant_id: str, feature_id: str) -> EntitlementDecision:
        return self._apply(tenant_id, feature_id, remove_feature, "tenant_features.disabled")

    def set_active(self, tenant_id: str, is_active: bool) -> TenantFeatureRecord:
        record = self.get_record(tenant_id)
        updated = self.store.compare_and_set(
            tenant_id,
            record.entitlement_set,
            expected_revision=record.revision,
            is_active=is_active,
        )
        self._audit("tenant_features.activation_changed", tenant_id=updated.tenant_id, is_active=is_active)
        return updated

    def delete_tenant(self, tenant_id: str) -> bool:
        deleted = self.store.delete(tenant_id)
        if deleted:
            self._audit("tenant_features.deleted", tenant_id=tenant_id)
        return deleted

    def monthly_cost(self, tenant_id: str) -> Decimal:
        return compute_cost(self.catalog, self.get_entitlements(tenant_id))

    def check_access(
        self,
        tenant_id: str,
        required: Iterable[str],
        mode: Union[AccessMode, str] = AccessMode.ALL,
    ) -> bool:
        """
        Fail-closed access check for request guards.

        Unknown or inactive tenants and store failures all deny; only the
        empty requirement list is granted unconditionally.
        """
        required = list(required)
        if not required:
            return True
        try:
            record = self.get_record(tenant_id)
        except TenantNotFoundError:
            logger.warning("Access check for unknown tenant", extra={"tenant_id": tenant_id})
            return False
        except Exception:
            logger.exception("Tenant feature lookup failed, denying access", extra={"tenant_id": tenant_id})
            return False

        if not record.is_active:
            return False
        return has_access(record.entitlement_set, required, mode)

    def summary(self, tenant_id: str) -> TenantFeatureSummary:
        record = self.get_record(tenant_id)
        return TenantFeatureSummary(
            tenant_id=record.tenant_id,
            features=tuple(record.entitlement_set.to_list()),
            monthly_cost=compute_cost(self.catalog, record.entitlement_set),
            available_upgrades=tuple(available_upgrades(self.catalog, record.entitlement_set)),
            is_active=record.is_active,
            revision=record.revision,
        )

    def navigation(self, tenant_id: str, locale: str, tenant_slug: str) -> List[NavigationItem]:
        record = self.get_record(tenant_id)
        if not record.is_active:
            return []
        items = build_navigation(self.catalog, locale, tenant_slug)
        return filter_navigation(items, record.entitlement_set)

    def _apply(
        self,
        tenant_id: str,
        feature_id: str,
        operation: Resolution,
        event: str,
    ) -> EntitlementDecision:
        attempts = self.settings.max_write_retries
        for attempt in count(1):
            record = self.get_record(tenant_id)
            decision = operation(self.catalog, record.entitlement_set, feature_id)

            if not decision.ok:
                logger.warning(
                    "Tenant feature change rejected",
                    extra={
                        "tenant_id": record.tenant_id,
                        "feature_id": feature_id,
                        "error": decision.error.error_code,
                        "blockers": list(decision.blockers),
                    },
                )
                self._audit(
                    "tenant_features.change_rejected",
                    tenant_id=record.tenant_id,
                    feature_id=feature_id,
                    error=decision.error.to_dict(),
                )
                return decision

            if decision.entitlement_set == record.entitlement_set:
                return decision

            try:
                updated = self.store.compare_and_set(
                    record.tenant_id,
                    decision.entitlement_set,
                    expected_revision=record.revision,
                )
            except ConcurrentModificationError:
                if attempt >= attempts:
                    logger.error(
                        "Tenant feature change lost every write race",
                        extra={"tenant_id": record.tenant_id, "feature_id": feature_id, "attempts": attempt},
                    )
                    raise
                logger.info(
                    "Tenant feature record changed concurrently, retrying",
                    extra={"tenant_id": record.tenant_id, "feature_id": feature_id, "attempt": attempt},
                )
                continue

            self._audit(
                event,
                tenant_id=updated.tenant_id,
                feature_id=feature_id,
                added=list(decision.added),
                features=updated.entitlement_set.to_list(),
                revision=updated.revision,
            )
            return decision

    def _audit(self, event: str, **payload) -> None:
        payload["occurred_at"] = datetime.now(timezone.utc).isoformat()
        try:
            self._audit_sink(event, payload)
        except Exception:
            logger.exception("Failed to emit tenant feature audit event", extra={"event": event})

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from tenant_features.errors import ConcurrentModificationError
from tenant_features.resolver import normalize_entitlements
from tenant_features.service import TenantFeatureService

logger = logging.getLogger(__name__)


@dataclass
class ReconcileStats:
    started_at: str
    completed_at: Optional[str] = None
    tenants_checked: int = 0
    tenants_repaired: int = 0
    conflicts: int = 0
    errors: int = 0
    repaired_tenant_ids: List[str] = field(default_factory=list)


def run_feature_reconcile_cycle(service: Optional[TenantFeatureService] = None) -> ReconcileStats:
    """Background drift reconciliation job.

    Responsibilities:
    - re-close persisted tenant sets after catalog changes (new dependencies)
    - drop ids the catalog no longer knows and restore the baseline feature
    - leave tenants that changed mid-cycle for the next run
    """

    svc = service or TenantFeatureService()
    stats = ReconcileStats(started_at=datetime.now(timezone.utc).isoformat())

    for tenant_id in svc.store.tenant_ids():
        stats.tenants_checked += 1
        try:
            record = svc.store.get(tenant_id)
            if record is None:
                continue
            normalized = normalize_entitlements(svc.catalog, record.entitlement_set.features)
            if not normalized.changed:
                continue
            svc.store.compare_and_set(
                tenant_id,
                normalized.entitlement_set,
                expected_revision=record.revision,
            )
            stats.tenants_repaired += 1
            stats.repaired_tenant_ids.append(tenant_id)
            logger.info(
                "Repaired tenant feature set",
                extra={
                    "tenant_id": tenant_id,
                    "added": list(normalized.added),
                    "dropped": list(normalized.dropped),
                },
            )
        except ConcurrentModificationError:
            stats.conflicts += 1
        except Exception:
            logger.exception("Tenant feature reconcile failed", extra={"tenant_id": tenant_id})
            stats.errors += 1

    stats.completed_at = datetime.now(timezone.utc).isoformat()
    return stats


def run_forever(interval_seconds: int = 300) -> None:
    import time

    while True:
        run_feature_reconcile_cycle()
        time.sleep(interval_seconds)

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Dict, List, Optional

from .config import DEFAULT_KEY_PREFIX
from .errors import ConcurrentModificationError, TenantAlreadyExistsError
from .models import EntitlementSet

logger = logging.getLogger(__name__)

STORE_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class TenantFeatureRecord:
    """Persisted entitlement set for one tenant, versioned for compare-and-swap."""

    tenant_id: str
    entitlement_set: EntitlementSet
    revision: int
    is_active: bool = True
    updated_at: Optional[datetime] = None


class TenantFeatureStore:
    """Redis-backed tenant feature records with in-memory fallback.

    Writes are optimistic: callers pass the revision they read and the
    write only lands if the stored revision still matches.
    """

    def __init__(self, redis_url: Optional[str] = None, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self._prefix = key_prefix
        self._redis = None
        self._lock = RLock()
        self._mem: Dict[str, dict] = {}

        if redis_url:
            try:
                import redis

                self._redis = redis.from_url(redis_url, decode_responses=True)
                self._redis.ping()
            except Exception as exc:
                logger.warning(
                    "Redis unavailable for tenant feature store, using in-memory records",
                    extra={"error": str(exc)},
                )
                self._redis = None

    @staticmethod
    def _require_tenant_id(tenant_id: str) -> str:
        normalized = str(tenant_id).strip()
        if not normalized:
            raise ValueError("tenant_id is required")
        return normalized

    def _key(self, tenant_id: str) -> str:
        return f"{self._prefix}:{tenant_id}"

    def get(self, tenant_id: str) -> Optional[TenantFeatureRecord]:
        key = self._key(self._require_tenant_id(tenant_id))
        if self._redis is not None:
            raw = self._redis.get(key)
            return _decode_record(json.loads(raw)) if raw else None

        with self._lock:
            payload = self._mem.get(key)
        return _decode_record(payload) if payload else None

    def create(
        self,
        tenant_id: str,
        entitlement: EntitlementSet,
        *,
        is_active: bool = True,
    ) -> TenantFeatureRecord:
        normalized_tenant_id = self._require_tenant_id(tenant_id)
        key = self._key(normalized_tenant_id)
        record = TenantFeatureRecord(
            tenant_id=normalized_tenant_id,
            entitlement_set=entitlement,
            revision=1,
            is_active=is_active,
            updated_at=datetime.now(timezone.utc),
        )
        payload = _encode_record(record)

        if self._redis is not None:
            if not self._redis.set(key, json.dumps(payload), nx=True):
                raise TenantAlreadyExistsError(normalized_tenant_id)
            return record

        with self._lock:
            if key in self._mem:
                raise TenantAlreadyExistsError(normalized_tenant_id)
            self._mem[key] = payload
        return record

    def compare_and_set(
        self,
        tenant_id: str,
        entitlement: EntitlementSet,
        *,
        expected_revision: int,
        is_active: Optional[bool] = None,
    ) -> TenantFeatureRecord:
        """Replace the record only if its revision is still ``expected_revision``."""
        normalized_tenant_id = self._require_tenant_id(tenant_id)
        key = self._key(normalized_tenant_id)

        if self._redis is not None:
            return self._redis_compare_and_set(
                key, normalized_tenant_id, entitlement, expected_revision, is_active
            )

        with self._lock:
            current = self._mem.get(key)
            actual = int(current["revision"]) if current else None
            if actual != expected_revision:
                raise ConcurrentModificationError(normalized_tenant_id, expected_revision, actual)
            record = self._next_record(normalized_tenant_id, entitlement, current, is_active)
            self._mem[key] = _encode_record(record)
        return record

    def delete(self, tenant_id: str) -> bool:
        key = self._key(self._require_tenant_id(tenant_id))
        if self._redis is not None:
            return bool(self._redis.delete(key))
        with self._lock:
            return self._mem.pop(key, None) is not None

    def tenant_ids(self) -> List[str]:
        prefix = f"{self._prefix}:"
        if self._redis is not None:
            keys = self._redis.scan_iter(match=f"{prefix}*")
        else:
            with self._lock:
                keys = list(self._mem)
        return sorted(key[len(prefix):] for key in keys)

    def _redis_compare_and_set(
        self,
        key: str,
        tenant_id: str,
        entitlement: EntitlementSet,
        expected_revision: int,
        is_active: Optional[bool],
    ) -> TenantFeatureRecord:
        from redis.exceptions import WatchError

        with self._redis.pipeline() as pipe:
            try:
                pipe.watch(key)
                raw = pipe.get(key)
                current = json.loads(raw) if raw else None
                actual = int(current["revision"]) if current else None
                if actual != expected_revision:
                    raise ConcurrentModificationError(tenant_id, expected_revision, actual)
                record = self._next_record(tenant_id, entitlement, current, is_active)
                pipe.multi()
                pipe.set(key, json.dumps(_encode_record(record)))
                pipe.execute()
            except WatchError:
                raise ConcurrentModificationError(tenant_id, expected_revision, None) from None
        return record

    @staticmethod
    def _next_record(
        tenant_id: str,
        entitlement: EntitlementSet,
        current: dict,
        is_active: Optional[bool],
    ) -> TenantFeatureRecord:
        return TenantFeatureRecord(
            tenant_id=tenant_id,
            entitlement_set=entitlement,
            revision=int(current["revision"]) + 1,
            is_active=bool(current["is_active"]) if is_active is None else is_active,
            updated_at=datetime.now(timezone.utc),
        )


def _encode_record(record: TenantFeatureRecord) -> dict:
    return {
        "schema_version": STORE_SCHEMA_VERSION,
        "tenant_id": record.tenant_id,
        "features": record.entitlement_set.to_list(),
        "revision": record.revision,
        "is_active": record.is_active,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def _decode_record(raw: dict) -> TenantFeatureRecord:
    if int(raw.get("schema_version", STORE_SCHEMA_VERSION)) != STORE_SCHEMA_VERSION:
        raise ValueError("Unsupported tenant feature record schema version")

    updated_at = raw.get("updated_at")
    return TenantFeatureRecord(
        tenant_id=raw["tenant_id"],
        entitlement_set=EntitlementSet.of(raw.get("features", [])),
        revision=int(raw["revision"]),
        is_active=bool(raw.get("is_active", True)),
        updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
    )

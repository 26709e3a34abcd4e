from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tenant_features.catalog import FeatureCatalog
from tenant_features.config import FeatureSettings
from tenant_features.models import FeatureCategory
from tenant_features.service import TenantFeatureService
from tenant_features.store import TenantFeatureStore

from tests.support import FakeRedis, make_catalog


@pytest.fixture
def scenario_catalog() -> FeatureCatalog:
    return make_catalog(
        ("CMS_ENGINE", 0, [], True),
        ("BOOKING_ENGINE", 99, []),
        ("ECOMMERCE_ENGINE", 199, ["BOOKING_ENGINE"]),
        ("FORMS_MODULE", 49, ["CMS_ENGINE"], False, FeatureCategory.MODULE),
    )


@pytest.fixture
def layered_catalog() -> FeatureCatalog:
    # diamond: LEGAL -> {BOOKING, FORMS} -> CMS, plus a chain HRMS -> PAYROLL -> LEGAL
    return make_catalog(
        ("CMS_ENGINE", 0, [], True),
        ("BOOKING_ENGINE", 25, ["CMS_ENGINE"]),
        ("FORMS_MODULE", 15, ["CMS_ENGINE"], False, FeatureCategory.MODULE),
        ("LEGAL_ENGINE", 30, ["BOOKING_ENGINE", "FORMS_MODULE"]),
        ("PAYROLL_MODULE", "12.50", ["LEGAL_ENGINE"], False, FeatureCategory.MODULE),
        ("HRMS_ENGINE", 40, ["PAYROLL_MODULE"]),
        ("BLOG_MODULE", 10, [], False, FeatureCategory.MODULE),
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store() -> TenantFeatureStore:
    return TenantFeatureStore(redis_url="")


@pytest.fixture
def audit_sink() -> MagicMock:
    return MagicMock()


@pytest.fixture
def service(scenario_catalog, store, audit_sink) -> TenantFeatureService:
    return TenantFeatureService(
        catalog=scenario_catalog,
        store=store,
        settings=FeatureSettings(max_write_retries=2),
        audit_sink=audit_sink,
    )

"""
Resolver: add/remove scenarios, closure, idempotence, baseline permanence,
removal atomicity, provisioning and repair of persisted sets.
"""

from __future__ import annotations

import pytest

from tenant_features.errors import DependencyConflictError, RequiredFeatureViolation, UnknownFeatureError
from tenant_features.models import EntitlementSet
from tenant_features.resolver import (
    add_feature,
    baseline_set,
    is_consistent,
    normalize_entitlements,
    provision_entitlements,
    remove_feature,
    validate_dependencies,
)

from tests.support import all_subsets, consistent_sets


# ----- Walkthrough against the four-feature catalog -----

def test_new_tenant_starts_with_baseline(scenario_catalog):
    assert baseline_set(scenario_catalog) == EntitlementSet.of(["CMS_ENGINE"])


def test_add_pulls_in_dependencies(scenario_catalog):
    decision = add_feature(scenario_catalog, baseline_set(scenario_catalog), "ECOMMERCE_ENGINE")

    assert decision.ok
    assert decision.entitlement_set == EntitlementSet.of(
        ["CMS_ENGINE", "BOOKING_ENGINE", "ECOMMERCE_ENGINE"]
    )
    assert decision.added == ("BOOKING_ENGINE",)


def test_remove_blocked_by_dependent(scenario_catalog):
    current = EntitlementSet.of(["CMS_ENGINE", "BOOKING_ENGINE", "ECOMMERCE_ENGINE"])

    decision = remove_feature(scenario_catalog, current, "BOOKING_ENGINE")

    assert not decision.ok
    assert isinstance(decision.error, DependencyConflictError)
    assert decision.blockers == ("ECOMMERCE_ENGINE",)
    assert decision.error.blockers == ("ECOMMERCE_ENGINE",)
    assert decision.entitlement_set is current


def test_remove_dependents_first_then_prerequisite(scenario_catalog):
    current = EntitlementSet.of(["CMS_ENGINE", "BOOKING_ENGINE", "ECOMMERCE_ENGINE"])

    first = remove_feature(scenario_catalog, current, "ECOMMERCE_ENGINE")
    assert first.ok
    second = remove_feature(scenario_catalog, first.entitlement_set, "BOOKING_ENGINE")
    assert second.ok
    assert second.entitlement_set == EntitlementSet.of(["CMS_ENGINE"])


def test_remove_required_feature_rejected(scenario_catalog):
    current = EntitlementSet.of(["CMS_ENGINE"])

    decision = remove_feature(scenario_catalog, current, "CMS_ENGINE")

    assert isinstance(decision.error, RequiredFeatureViolation)
    assert decision.entitlement_set is current
    assert "cannot be disabled" in decision.error.message


def test_required_violation_takes_precedence_over_dependents(scenario_catalog):
    current = EntitlementSet.of(["CMS_ENGINE", "FORMS_MODULE"])

    decision = remove_feature(scenario_catalog, current, "CMS_ENGINE")

    assert isinstance(decision.error, RequiredFeatureViolation)


# ----- Edge cases -----

def test_add_unknown_feature(scenario_catalog):
    current = baseline_set(scenario_catalog)

    decision = add_feature(scenario_catalog, current, "HRMS_ENGINE")

    assert isinstance(decision.error, UnknownFeatureError)
    assert decision.entitlement_set is current
    assert decision.to_dict()["error"]["feature_id"] == "HRMS_ENGINE"


def test_remove_unknown_feature(scenario_catalog):
    decision = remove_feature(scenario_catalog, baseline_set(scenario_catalog), "HRMS_ENGINE")
    assert isinstance(decision.error, UnknownFeatureError)


def test_remove_absent_feature_is_noop(scenario_catalog):
    current = EntitlementSet.of(["CMS_ENGINE", "FORMS_MODULE"])

    decision = remove_feature(scenario_catalog, current, "BOOKING_ENGINE")

    assert decision.ok
    assert decision.entitlement_set == current


def test_add_present_feature_is_noop(scenario_catalog):
    current = EntitlementSet.of(["CMS_ENGINE", "FORMS_MODULE"])

    decision = add_feature(scenario_catalog, current, "FORMS_MODULE")

    assert decision.ok
    assert decision.entitlement_set == current
    assert decision.added == ()


def test_add_reports_only_newly_introduced_dependencies(layered_catalog):
    current = EntitlementSet.of(["CMS_ENGINE", "BOOKING_ENGINE"])

    decision = add_feature(layered_catalog, current, "LEGAL_ENGINE")

    assert decision.added == ("FORMS_MODULE",)
    assert "LEGAL_ENGINE" not in decision.added


def test_blockers_listed_in_catalog_order(layered_catalog):
    current = EntitlementSet.of(["CMS_ENGINE", "BOOKING_ENGINE", "FORMS_MODULE"])

    decision = remove_feature(layered_catalog, current, "CMS_ENGINE")
    assert isinstance(decision.error, RequiredFeatureViolation)

    full = add_feature(layered_catalog, current, "HRMS_ENGINE").entitlement_set
    decision = remove_feature(layered_catalog, full, "FORMS_MODULE")
    assert decision.blockers == ("LEGAL_ENGINE",)


# ----- Properties over every reachable set -----

@pytest.mark.parametrize("catalog_name", ["scenario_catalog", "layered_catalog"])
def test_add_always_yields_closed_set(request, catalog_name):
    catalog = request.getfixturevalue(catalog_name)
    for current in consistent_sets(catalog):
        for feature_id in catalog.feature_ids():
            decision = add_feature(catalog, current, feature_id)
            assert decision.ok
            assert is_consistent(catalog, decision.entitlement_set)
            assert feature_id in decision.entitlement_set
            assert current.issubset(decision.entitlement_set)


@pytest.mark.parametrize("catalog_name", ["scenario_catalog", "layered_catalog"])
def test_add_is_idempotent(request, catalog_name):
    catalog = request.getfixturevalue(catalog_name)
    for current in consistent_sets(catalog):
        for feature_id in catalog.feature_ids():
            once = add_feature(catalog, current, feature_id)
            twice = add_feature(catalog, once.entitlement_set, feature_id)
            assert twice.entitlement_set == once.entitlement_set
            assert twice.added == ()


@pytest.mark.parametrize("catalog_name", ["scenario_catalog", "layered_catalog"])
def test_removal_is_all_or_nothing(request, catalog_name):
    catalog = request.getfixturevalue(catalog_name)
    for current in consistent_sets(catalog):
        for feature_id in catalog.feature_ids():
            decision = remove_feature(catalog, current, feature_id)
            result = decision.entitlement_set
            assert result == current or result == current.without(feature_id)
            if not decision.ok:
                assert result == current
            assert catalog.required_feature_id in result
            assert is_consistent(catalog, result)


def test_required_feature_can_never_be_removed(layered_catalog):
    for current in consistent_sets(layered_catalog):
        decision = remove_feature(layered_catalog, current, "CMS_ENGINE")
        assert isinstance(decision.error, RequiredFeatureViolation)
        assert decision.entitlement_set == current


# ----- Provisioning -----

def test_provision_applies_selection_in_order(layered_catalog):
    decision = provision_entitlements(layered_catalog, ["BLOG_MODULE", "LEGAL_ENGINE"])

    assert decision.ok
    assert decision.entitlement_set == EntitlementSet.of(
        ["CMS_ENGINE", "BLOG_MODULE", "LEGAL_ENGINE", "BOOKING_ENGINE", "FORMS_MODULE"]
    )
    assert decision.added == ("BOOKING_ENGINE", "FORMS_MODULE")


def test_provision_does_not_report_selected_ids_as_added(layered_catalog):
    decision = provision_entitlements(layered_catalog, ["LEGAL_ENGINE", "BOOKING_ENGINE"])
    assert decision.added == ("FORMS_MODULE",)


def test_provision_with_nothing_selected(scenario_catalog):
    decision = provision_entitlements(scenario_catalog, [])
    assert decision.entitlement_set == EntitlementSet.of(["CMS_ENGINE"])


def test_provision_rejects_unknown_selection(scenario_catalog):
    decision = provision_entitlements(scenario_catalog, ["FORMS_MODULE", "GHOST"])

    assert isinstance(decision.error, UnknownFeatureError)
    assert decision.entitlement_set == EntitlementSet.of(["CMS_ENGINE"])


# ----- Validation and repair -----

def test_validate_dependencies_reports_missing(layered_catalog):
    result = validate_dependencies(layered_catalog, ["LEGAL_ENGINE", "HRMS_ENGINE"])

    assert not result.valid
    assert result.missing == ("BOOKING_ENGINE", "FORMS_MODULE", "PAYROLL_MODULE")


def test_validate_dependencies_accepts_closed_list(layered_catalog):
    assert validate_dependencies(layered_catalog, ["CMS_ENGINE", "BOOKING_ENGINE"]).valid


def test_normalize_repairs_persisted_list(layered_catalog):
    result = normalize_entitlements(layered_catalog, ["LEGAL_ENGINE", "RETIRED_MODULE"])

    assert result.changed
    assert result.dropped == ("RETIRED_MODULE",)
    assert set(result.added) == {"CMS_ENGINE", "BOOKING_ENGINE", "FORMS_MODULE"}
    assert result.added[0] == "CMS_ENGINE"
    assert is_consistent(layered_catalog, result.entitlement_set)


def test_normalize_leaves_consistent_sets_alone(layered_catalog):
    for current in consistent_sets(layered_catalog):
        result = normalize_entitlements(layered_catalog, current.features)
        assert not result.changed
        assert result.entitlement_set == current


def test_normalize_always_produces_consistent_set(layered_catalog):
    for current in all_subsets(layered_catalog):
        result = normalize_entitlements(layered_catalog, current.features)
        assert is_consistent(layered_catalog, result.entitlement_set)
        assert current.issubset(result.entitlement_set)

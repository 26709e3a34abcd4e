from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .catalog import FeatureCatalog
from .errors import CatalogValidationError
from .models import Feature, FeatureCategory, FeatureRoute

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "config" / "features.json"

_lock = RLock()
_catalog_cache: Optional[FeatureCatalog] = None


def load_catalog(path: Union[str, Path, None] = None) -> FeatureCatalog:
    """Read, validate and build a catalog from a JSON config file."""
    config_path = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    with config_path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if not isinstance(raw, dict):
        raise CatalogValidationError(f"{config_path} must contain a top-level object")

    catalog = parse_catalog(raw)
    logger.info(
        "Loaded feature catalog",
        extra={
            "path": str(config_path),
            "feature_count": len(catalog),
            "required_feature": catalog.required_feature_id,
        },
    )
    return catalog


def get_catalog(path: Union[str, Path, None] = None) -> FeatureCatalog:
    """Process-wide catalog, loaded once on first use."""
    global _catalog_cache
    with _lock:
        if _catalog_cache is None:
            _catalog_cache = load_catalog(path)
        return _catalog_cache


def reload_catalog(path: Union[str, Path, None] = None) -> FeatureCatalog:
    global _catalog_cache
    with _lock:
        _catalog_cache = load_catalog(path)
        return _catalog_cache


def parse_catalog(raw: Mapping[str, Any]) -> FeatureCatalog:
    records = raw.get("features")
    if not isinstance(records, list):
        raise CatalogValidationError(
            "feature catalog must include a list field named 'features'", field="features"
        )
    return catalog_from_records(records)


def catalog_from_records(records: Iterable[Mapping[str, Any]]) -> FeatureCatalog:
    return FeatureCatalog(_parse_feature(index, record) for index, record in enumerate(records))


def _parse_feature(index: int, record: Any) -> Feature:
    if not isinstance(record, dict):
        raise CatalogValidationError(f"feature #{index} must be an object")

    feature_id = record.get("id")
    if not isinstance(feature_id, str) or not feature_id.strip():
        raise CatalogValidationError(f"feature #{index} has invalid id: {feature_id!r}", field="id")
    feature_id = feature_id.strip()

    name = record.get("name", feature_id)
    if not isinstance(name, str) or not name.strip():
        raise CatalogValidationError(f"feature '{feature_id}' has invalid name", field="name")

    description = record.get("description", "")
    if not isinstance(description, str):
        raise CatalogValidationError(
            f"feature '{feature_id}' description must be a string", field="description"
        )

    try:
        category = FeatureCategory(record.get("category"))
    except ValueError:
        raise CatalogValidationError(
            f"feature '{feature_id}' category must be one of: "
            + ", ".join(c.value for c in FeatureCategory),
            field="category",
        ) from None

    pricing_raw = record.get("pricing", 0)
    if isinstance(pricing_raw, bool):
        raise CatalogValidationError(f"feature '{feature_id}' has invalid pricing", field="pricing")
    try:
        pricing = Decimal(str(pricing_raw))
    except InvalidOperation:
        raise CatalogValidationError(
            f"feature '{feature_id}' has invalid pricing: {pricing_raw!r}", field="pricing"
        ) from None
    if not pricing.is_finite() or pricing < 0:
        raise CatalogValidationError(
            f"feature '{feature_id}' pricing must be a non-negative amount", field="pricing"
        )

    dependencies = record.get("dependencies", [])
    if not isinstance(dependencies, list):
        raise CatalogValidationError(
            f"feature '{feature_id}' dependencies must be a list of feature ids",
            field="dependencies",
        )
    normalized_deps: List[str] = []
    for dep in dependencies:
        if not isinstance(dep, str) or not dep.strip():
            raise CatalogValidationError(
                f"feature '{feature_id}' has invalid dependency: {dep!r}", field="dependencies"
            )
        normalized_deps.append(dep.strip())

    required = record.get("required", False)
    if not isinstance(required, bool):
        raise CatalogValidationError(
            f"feature '{feature_id}' required must be a boolean", field="required"
        )

    icon = record.get("icon")
    if icon is not None and not isinstance(icon, str):
        raise CatalogValidationError(f"feature '{feature_id}' icon must be a string", field="icon")

    main_route, child_routes = _parse_routes(feature_id, record.get("routes"))
    labels = _parse_labels(feature_id, record.get("labels"))

    return Feature(
        id=feature_id,
        name=name.strip(),
        description=description,
        category=category,
        pricing=pricing,
        dependencies=tuple(normalized_deps),
        required=required,
        icon=icon,
        main_route=main_route,
        child_routes=child_routes,
        labels=labels,
    )


def _parse_routes(feature_id: str, routes: Any):
    if routes is None:
        return None, ()
    if not isinstance(routes, dict):
        raise CatalogValidationError(f"feature '{feature_id}' routes must be an object", field="routes")

    main = routes.get("main")
    if not isinstance(main, str) or not main.startswith("/"):
        raise CatalogValidationError(
            f"feature '{feature_id}' routes.main must be an absolute path", field="routes.main"
        )

    children = routes.get("children", [])
    if not isinstance(children, list):
        raise CatalogValidationError(
            f"feature '{feature_id}' routes.children must be a list", field="routes.children"
        )

    parsed: List[FeatureRoute] = []
    for child in children:
        if (
            not isinstance(child, dict)
            or not isinstance(child.get("name"), str)
            or not isinstance(child.get("path"), str)
            or not child["path"].startswith("/")
        ):
            raise CatalogValidationError(
                f"feature '{feature_id}' has invalid child route: {child!r}",
                field="routes.children",
            )
        parsed.append(FeatureRoute(name=child["name"], path=child["path"], icon=child.get("icon")))
    return main, tuple(parsed)


def _parse_labels(feature_id: str, labels: Any) -> Dict[str, Dict[str, str]]:
    if labels is None:
        return {}
    if not isinstance(labels, dict):
        raise CatalogValidationError(f"feature '{feature_id}' labels must be an object", field="labels")

    parsed: Dict[str, Dict[str, str]] = {}
    for locale, names in labels.items():
        if not isinstance(names, dict) or not all(
            isinstance(key, str) and isinstance(value, str) for key, value in names.items()
        ):
            raise CatalogValidationError(
                f"feature '{feature_id}' labels for locale {locale!r} must map names to strings",
                field="labels",
            )
        parsed[locale] = dict(names)
    return parsed

"""
Environment-driven settings for the tenant feature service.

Read once per process via load_settings(); callers pass the resulting value
object around instead of reading os.environ themselves.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .loader import DEFAULT_CATALOG_PATH

DEFAULT_KEY_PREFIX = "tenant_features:v1"
DEFAULT_MAX_WRITE_RETRIES = 3
DEFAULT_UPGRADE_PATH = "/admin/billing/upgrade"


@dataclass(frozen=True)
class FeatureSettings:
    catalog_path: Path = DEFAULT_CATALOG_PATH
    redis_url: Optional[str] = None
    key_prefix: str = DEFAULT_KEY_PREFIX
    max_write_retries: int = DEFAULT_MAX_WRITE_RETRIES
    upgrade_path: str = DEFAULT_UPGRADE_PATH

    def __post_init__(self) -> None:
        if self.max_write_retries < 1:
            raise ValueError("max_write_retries must be at least 1")


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be at least 1")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> FeatureSettings:
    """Build settings from environment variables (or an explicit mapping in tests)."""
    env = os.environ if env is None else env
    catalog_path = env.get("TENANT_FEATURES_CATALOG_PATH")
    redis_url = (env.get("REDIS_URL") or "").strip() or None
    return FeatureSettings(
        catalog_path=Path(catalog_path) if catalog_path else DEFAULT_CATALOG_PATH,
        redis_url=redis_url,
        key_prefix=(env.get("TENANT_FEATURES_KEY_PREFIX") or DEFAULT_KEY_PREFIX).strip(),
        max_write_retries=_int_env(env, "TENANT_FEATURES_MAX_WRITE_RETRIES", DEFAULT_MAX_WRITE_RETRIES),
        upgrade_path=env.get("TENANT_FEATURES_UPGRADE_PATH") or DEFAULT_UPGRADE_PATH,
    )

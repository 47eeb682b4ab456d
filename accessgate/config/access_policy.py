"""
Access policy configuration loader.

Loads engine policy from config/access_policy.yml:
  - tenant_switch: header / query parameter honored for super admins
  - entitling_statuses: subscription statuses that grant plan features
  - audit.redacted_fields: keys scrubbed from audit change details

Usage:
    from accessgate.config.access_policy import get_access_policy

    policy = get_access_policy()
    header = policy.tenant_switch_header  # "X-Tenant-Id"
"""

import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, FrozenSet, Optional

import yaml

from accessgate.constants.roles import (
    ENTITLING_SUBSCRIPTION_STATUSES,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

_DEFAULT_TENANT_HEADER = "X-Tenant-Id"
_DEFAULT_TENANT_QUERY_PARAM = "tenant_id"
_DEFAULT_REDACTED_FIELDS = frozenset({
    "password",
    "password_hash",
    "token",
    "secret",
    "api_key",
})


class AccessPolicyLoader:
    """
    Thread-safe singleton loader for config/access_policy.yml.

    A missing file is not an error: built-in defaults match the shipped YAML.
    """

    _instance: Optional["AccessPolicyLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path or os.getenv("ACCESS_POLICY_PATH")
        self._raw: Dict[str, Any] = {}
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    def _resolve_path(self) -> Path:
        if self._config_path:
            return Path(self._config_path)

        candidates = [
            Path(__file__).parent.parent.parent / "config" / "access_policy.yml",
            Path(os.getcwd()) / "config" / "access_policy.yml",
        ]

        for p in candidates:
            resolved = p.resolve()
            if resolved.exists():
                return resolved

        raise FileNotFoundError(
            f"access_policy.yml not found in: {[str(p) for p in candidates]}"
        )

    def _load(self) -> None:
        with self._load_lock:
            try:
                path = self._resolve_path()
                logger.info("Loading access policy from %s", path)

                with open(path, "r") as f:
                    raw = yaml.safe_load(f) or {}
                self._validate(raw)
                self._raw = raw
            except FileNotFoundError:
                logger.warning("access_policy.yml not found, using built-in defaults")
                self._raw = {}

    @staticmethod
    def _validate(raw: Dict[str, Any]) -> None:
        for status in raw.get("entitling_statuses", []):
            # Raises ValueError for unknown statuses
            if SubscriptionStatus(status) not in ENTITLING_SUBSCRIPTION_STATUSES:
                raise ValueError(
                    f"Subscription status '{status}' cannot entitle plan features"
                )

    def reload(self) -> None:
        """Re-read the YAML from disk."""
        self._load()

    @property
    def tenant_switch_header(self) -> str:
        return self._raw.get("tenant_switch", {}).get("header", _DEFAULT_TENANT_HEADER)

    @property
    def tenant_switch_query_param(self) -> str:
        return self._raw.get("tenant_switch", {}).get("query_param", _DEFAULT_TENANT_QUERY_PARAM)

    @property
    def entitling_statuses(self) -> FrozenSet[SubscriptionStatus]:
        statuses = self._raw.get("entitling_statuses")
        if not statuses:
            return ENTITLING_SUBSCRIPTION_STATUSES
        return frozenset(SubscriptionStatus(s) for s in statuses)

    @property
    def redacted_fields(self) -> FrozenSet[str]:
        fields = self._raw.get("audit", {}).get("redacted_fields")
        if not fields:
            return _DEFAULT_REDACTED_FIELDS
        return frozenset(f.lower() for f in fields)


def get_access_policy(config_path: Optional[str] = None) -> AccessPolicyLoader:
    """Return the singleton AccessPolicyLoader."""
    return AccessPolicyLoader(config_path)


def reset_access_policy() -> None:
    """Reset singleton (for tests only)."""
    AccessPolicyLoader._instance = None

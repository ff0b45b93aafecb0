"""Declarative status derivation for listed resources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

UNKNOWN_STATUS = "Unknown"


@dataclass(frozen=True)
class StatusRule:
    """Which condition to read and how to label its outcome."""

    condition_type: str
    true_label: str
    false_label: str


SYNCED_RULE = StatusRule("Synced", "Synced", "NotSynced")
HEALTHY_RULE = StatusRule("Healthy", "Healthy", "Unhealthy")

STATUS_RULES: dict[str, StatusRule] = {
    "providers": HEALTHY_RULE,
    "functions": HEALTHY_RULE,
    "functions.pkg.crossplane.io": HEALTHY_RULE,
}

# Types whose status column is the definition scope rather than a condition.
SCOPE_STATUS_TYPES = frozenset({"crds", "crd"})


def resolve_status(resource_type: str, obj: dict[str, Any]) -> str:
    """Derive the display status of ``obj`` listed under ``resource_type``."""
    if resource_type in SCOPE_STATUS_TYPES:
        return str((obj.get("spec") or {}).get("scope") or UNKNOWN_STATUS)

    rule = STATUS_RULES.get(resource_type, SYNCED_RULE)
    conditions = (obj.get("status") or {}).get("conditions") or []
    for condition in conditions:
        if condition.get("type") == rule.condition_type:
            return rule.true_label if condition.get("status") == "True" else rule.false_label
    return UNKNOWN_STATUS

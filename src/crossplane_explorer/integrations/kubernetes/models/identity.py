"""Resource identity and kind classification.

A ResourceIdentity is the canonical key used by the session and watch
maps; KindClass records how a kind token must be addressed on the
kubectl command line, computed once and carried on tree nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any

LIST_KIND = "List"

# Kind tokens that kubectl accepts only in the bare ``kind name`` form.
SPECIAL_KINDS = frozenset({
    "crd",
    "compositions",
    "providers",
    "functions.pkg.crossplane.io",
})

KIND_ALIASES = {
    "functions": "functions.pkg.crossplane.io",
}


class SessionMode(StrEnum):
    """How a resource is opened in a local document."""

    NONE = "none"
    VIEW = "view"
    EDIT = "edit"


@dataclass(frozen=True)
class ResourceIdentity:
    """Canonical key for a cluster object.

    Identities that differ only by ``mode`` are distinct sessions.
    """

    kind: str
    name: str
    namespace: str = ""
    mode: SessionMode = SessionMode.NONE

    def with_mode(self, mode: SessionMode) -> ResourceIdentity:
        """Return a copy of this identity with a different mode."""
        return replace(self, mode=mode)

    @property
    def watch_key(self) -> str:
        """Mode-independent key, ``kind:namespace:name``."""
        return f"{self.kind}:{self.namespace}:{self.name}"

    @property
    def display(self) -> str:
        """Short human-readable form for messages."""
        if self.namespace:
            return f"{self.kind} {self.name} -n {self.namespace}"
        return f"{self.kind} {self.name}"

    @classmethod
    def from_object(
        cls,
        obj: dict[str, Any],
        kind: str | None = None,
        mode: SessionMode = SessionMode.NONE,
    ) -> ResourceIdentity:
        """Build an identity from a raw API object."""
        metadata = obj.get("metadata") or {}
        return cls(
            kind=kind or resource_type_for(obj.get("kind", ""), obj.get("apiVersion", "")),
            name=str(metadata.get("name", "")),
            namespace=str(metadata.get("namespace") or ""),
            mode=mode,
        )


def api_group(api_version: str) -> str:
    """Return the group of an ``apiVersion`` (empty for the core group)."""
    group, sep, _ = api_version.partition("/")
    return group if sep else ""


def resource_type_for(kind: str, api_version: str = "") -> str:
    """Return the kubectl type token ``kind.lower()[.group]``."""
    group = api_group(api_version)
    return f"{kind.lower()}.{group}" if group else kind.lower()


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class KindCategory(StrEnum):
    """Closed set of addressing categories for kind tokens."""

    STANDARD = "standard"
    SPECIAL = "special"
    DOTTED = "dotted"
    COMPOSITE = "composite"
    CLAIM = "claim"
    MANAGED = "managed"


@dataclass(frozen=True)
class KindClass:
    """Result of :func:`classify_kind`."""

    category: KindCategory
    resource_type: str
    group: str = ""

    @property
    def qualified(self) -> bool:
        """True when the type token carries an API group."""
        return "." in self.resource_type

    def target_args(self, name: str | None = None) -> list[str]:
        """Return the ``get``/``delete`` target arguments for ``name``.

        Special kinds and unqualified kinds use ``kind name``; group
        qualified kinds use the combined ``kind/name`` token.
        """
        if not name:
            return [self.resource_type]
        if self.category is KindCategory.SPECIAL or not self.qualified:
            return [self.resource_type, name]
        return [f"{self.resource_type}/{name}"]


def classify_kind(kind: str, api_version: str = "", *, is_claim: bool = False) -> KindClass:
    """Classify a kind token or API kind.

    With an ``api_version`` the input is an API kind (``XNetwork``,
    ``Bucket``) and the group comes from the version; without one it is a
    kubectl type token (``providers``, ``buckets.s3.aws.upbound.io``).

    Args:
        kind: API kind or type token.
        api_version: ``apiVersion`` of the object, when known.
        is_claim: Mark a grouped API kind as a claim.

    Returns:
        The KindClass describing how to address the kind.
    """
    token = KIND_ALIASES.get(kind, kind)
    if token in SPECIAL_KINDS:
        _, _, group = token.partition(".")
        return KindClass(KindCategory.SPECIAL, token, group)

    if api_version:
        group = api_group(api_version)
        resource_type = resource_type_for(kind, api_version)
        if not group:
            return KindClass(KindCategory.STANDARD, resource_type)
        if is_claim:
            return KindClass(KindCategory.CLAIM, resource_type, group)
        if kind.startswith("X"):
            return KindClass(KindCategory.COMPOSITE, resource_type, group)
        return KindClass(KindCategory.MANAGED, resource_type, group)

    head, sep, group = token.partition(".")
    if sep:
        category = KindCategory.COMPOSITE if head.startswith("x") else KindCategory.DOTTED
        return KindClass(category, token, group)
    return KindClass(KindCategory.STANDARD, token)

"""Data models for the composition development workflow.

``providers-metadata.json`` names the provider packages whose CRDs are
downloaded for schema validation, and ``crossplane beta validate``
prints a one-line summary that is parsed into a ValidationSummary.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")
SUMMARY_RE = re.compile(
    r"Total (\d+) resources: (\d+) missing schemas, (\d+) success cases, (\d+) failure cases"
)
RESULT_MARKERS = {"[✓]": "[OK]", "[!]": "[WARN]", "[x]": "[FAIL]", "[X]": "[FAIL]"}


def strip_ansi(text: str) -> str:
    """Remove terminal colour codes."""
    return ANSI_ESCAPE_RE.sub("", text)


def crd_filename(kind: str) -> str:
    """Return the file a provider package publishes the CRD of ``kind`` under.

    Kinds are given as ``<plural>.<group>``; a kind already containing an
    underscore is taken to be the file stem.

    >>> crd_filename("buckets.s3.aws.upbound.io")
    's3.aws.upbound.io_buckets.yaml'
    >>> crd_filename("s3.aws.upbound.io_buckets")
    's3.aws.upbound.io_buckets.yaml'
    """
    if "_" in kind:
        return f"{kind}.yaml"
    plural, _, group = kind.partition(".")
    return f"{group}_{plural}.yaml"


@dataclass(frozen=True)
class ProviderPackage:
    """One provider repository and the kinds to fetch from it."""

    name: str
    version: str
    kinds: list[str] = field(default_factory=list)

    def crd_url(self, github_org: str, kind: str) -> str:
        """Raw URL of the CRD file for ``kind`` at this provider's version."""
        return f"{github_org}/{self.name}/{self.version}/package/crds/{crd_filename(kind)}"


@dataclass(frozen=True)
class ProvidersMetadata:
    """Parsed ``providers-metadata.json``."""

    github_org: str
    providers: list[ProviderPackage]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvidersMetadata:
        """Build from the decoded JSON document.

        Raises:
            ValueError: If ``githubOrg`` or a provider's name/version is missing.
        """
        org = data.get("githubOrg")
        if not isinstance(org, str) or not org.strip():
            raise ValueError("githubOrg is required")
        providers = []
        for entry in data.get("providers") or []:
            if not isinstance(entry, dict) or not entry.get("name") or not entry.get("version"):
                raise ValueError("every provider needs a name and a version")
            providers.append(
                ProviderPackage(
                    name=str(entry["name"]),
                    version=str(entry["version"]),
                    kinds=[str(kind) for kind in entry.get("kinds") or []],
                )
            )
        return cls(github_org=org.strip().rstrip("/"), providers=providers)

    @classmethod
    def from_json(cls, text: str) -> ProvidersMetadata:
        """Parse the file contents.

        Raises:
            ValueError: If the text is not a JSON object or is incomplete.
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        return cls.from_dict(data)


class ValidationOutcome(StrEnum):
    """Overall result of a schema validation run."""

    PASSED = "passed"
    MISSING_SCHEMAS = "missing-schemas"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ValidationSummary:
    """Counts from the ``Total N resources: ...`` line."""

    total: int
    missing: int
    success: int
    failure: int

    @classmethod
    def parse(cls, line: str) -> ValidationSummary | None:
        match = SUMMARY_RE.search(strip_ansi(line))
        if not match:
            return None
        total, missing, success, failure = (int(value) for value in match.groups())
        return cls(total, missing, success, failure)

    @property
    def outcome(self) -> ValidationOutcome:
        if self.failure > 0:
            return ValidationOutcome.FAILED
        if self.missing > 0:
            return ValidationOutcome.MISSING_SCHEMAS
        if self.total == self.success:
            return ValidationOutcome.PASSED
        return ValidationOutcome.UNKNOWN


SUMMARY_PREFIXES = {
    ValidationOutcome.PASSED: "[OK] ",
    ValidationOutcome.MISSING_SCHEMAS: "[WARN] ",
    ValidationOutcome.FAILED: "[FAIL] ",
    ValidationOutcome.UNKNOWN: "",
}


def format_validation_line(line: str) -> str | None:
    """Rewrite one line of ``crossplane beta validate`` output for display.

    Colour codes are stripped, result markers are replaced with text
    markers and indented, and the summary line is prefixed with its
    outcome. Blank lines yield None.
    """
    clean = strip_ansi(line).rstrip()
    if not clean.strip():
        return None
    summary = ValidationSummary.parse(clean)
    if summary is not None:
        return f"{SUMMARY_PREFIXES[summary.outcome]}{clean}"
    for marker, replacement in RESULT_MARKERS.items():
        if marker in clean:
            replaced = clean.replace(marker, replacement)
            return f"\t{replaced}" if replaced.startswith(replacement) else replaced
    return clean

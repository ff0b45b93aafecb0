"""Unit tests for composition workflow models."""

from __future__ import annotations

import pytest

from crossplane_explorer.integrations.kubernetes.models.composition import (
    ProviderPackage,
    ProvidersMetadata,
    ValidationOutcome,
    ValidationSummary,
    crd_filename,
    format_validation_line,
    strip_ansi,
)

# ===========================================================================
# TestProvidersMetadata
# ===========================================================================


@pytest.mark.unit
class TestProvidersMetadata:
    """Tests for providers-metadata.json parsing."""

    @pytest.mark.parametrize(
        ("kind", "filename"),
        [
            ("buckets.s3.aws.upbound.io", "s3.aws.upbound.io_buckets.yaml"),
            ("vpcs.ec2.aws.upbound.io", "ec2.aws.upbound.io_vpcs.yaml"),
            ("s3.aws.upbound.io_buckets", "s3.aws.upbound.io_buckets.yaml"),
        ],
    )
    def test_crd_filename(self, kind: str, filename: str) -> None:
        """Kinds map to the <group>_<plural>.yaml files providers publish."""
        assert crd_filename(kind) == filename

    def test_from_json(self) -> None:
        """Providers, versions and kinds are read and the org slash is trimmed."""
        metadata = ProvidersMetadata.from_json(
            """
            {
              "githubOrg": "https://raw.githubusercontent.com/crossplane-contrib/",
              "providers": [
                {"name": "provider-upjet-aws", "version": "v1.14.0",
                 "kinds": ["buckets.s3.aws.upbound.io"]},
                {"name": "provider-kubernetes", "version": "v0.13.0"}
              ]
            }
            """
        )

        assert metadata.github_org == "https://raw.githubusercontent.com/crossplane-contrib"
        assert metadata.providers == [
            ProviderPackage("provider-upjet-aws", "v1.14.0", ["buckets.s3.aws.upbound.io"]),
            ProviderPackage("provider-kubernetes", "v0.13.0", []),
        ]

    def test_crd_url(self) -> None:
        """The raw URL points into the provider's package/crds directory."""
        provider = ProviderPackage("provider-upjet-aws", "v1.14.0")

        url = provider.crd_url("https://example.org/org", "buckets.s3.aws.upbound.io")

        assert url == (
            "https://example.org/org/provider-upjet-aws/v1.14.0"
            "/package/crds/s3.aws.upbound.io_buckets.yaml"
        )

    @pytest.mark.parametrize(
        "text",
        [
            "[]",
            '{"providers": []}',
            '{"githubOrg": "https://x", "providers": [{"name": "p"}]}',
            "not json",
        ],
    )
    def test_invalid_documents(self, text: str) -> None:
        """Incomplete or malformed documents raise ValueError."""
        with pytest.raises(ValueError):
            ProvidersMetadata.from_json(text)


# ===========================================================================
# TestValidationOutput
# ===========================================================================


@pytest.mark.unit
class TestValidationOutput:
    """Tests for crossplane beta validate output handling."""

    @pytest.mark.parametrize(
        ("counts", "outcome"),
        [
            ((3, 0, 3, 0), ValidationOutcome.PASSED),
            ((3, 1, 2, 0), ValidationOutcome.MISSING_SCHEMAS),
            ((3, 1, 1, 1), ValidationOutcome.FAILED),
            ((3, 0, 2, 0), ValidationOutcome.UNKNOWN),
        ],
    )
    def test_summary_outcome(
        self, counts: tuple[int, int, int, int], outcome: ValidationOutcome
    ) -> None:
        """Failures win over missing schemas, and all successes mean passed."""
        total, missing, success, failure = counts
        line = (
            f"Total {total} resources: {missing} missing schemas, "
            f"{success} success cases, {failure} failure cases"
        )

        summary = ValidationSummary.parse(line)

        assert summary == ValidationSummary(total, missing, success, failure)
        assert summary.outcome is outcome

    def test_summary_absent(self) -> None:
        """Lines without the summary parse to None."""
        assert ValidationSummary.parse("[✓] s3.aws.upbound.io/v1beta1, Kind=Bucket") is None

    def test_format_summary_line(self) -> None:
        """The summary line is prefixed with its outcome and colour codes are removed."""
        line = (
            "\x1b[32mTotal 2 resources: 0 missing schemas, 2 success cases, "
            "0 failure cases\x1b[0m"
        )

        assert format_validation_line(line) == (
            "[OK] Total 2 resources: 0 missing schemas, 2 success cases, 0 failure cases"
        )

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            (
                "[✓] s3.aws.upbound.io/v1beta1, Kind=Bucket, my-bucket validated successfully",
                "\t[OK] s3.aws.upbound.io/v1beta1, Kind=Bucket, my-bucket validated successfully",
            ),
            (
                "[!] could not find CRD/XRD for: example.org/v1, Kind=XThing",
                "\t[WARN] could not find CRD/XRD for: example.org/v1, Kind=XThing",
            ),
            (
                "[x] schema validation error example.org/v1, Kind=XBucket : spec.region",
                "\t[FAIL] schema validation error example.org/v1, Kind=XBucket : spec.region",
            ),
            ("plain output line", "plain output line"),
        ],
    )
    def test_format_result_markers(self, line: str, expected: str) -> None:
        """Result markers become text markers indented under the report."""
        assert format_validation_line(line) == expected

    def test_blank_lines_dropped(self) -> None:
        """Whitespace-only lines are skipped."""
        assert format_validation_line("   \x1b[0m") is None

    def test_strip_ansi(self) -> None:
        """Colour escape sequences are removed."""
        assert strip_ansi("\x1b[1;31merror\x1b[0m") == "error"

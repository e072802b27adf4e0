"""Tests for rtxspec.pipeline: single-command generation and batch fan-out."""

from __future__ import annotations

from pathlib import Path

import pytest

from rtxspec.cache import ArtifactCache
from rtxspec.exceptions import CoverageGapError, SpecificationDefectError
from rtxspec.models import (
    BoundarySource,
    CacheConfig,
    CapabilityCatalog,
    CommandSpec,
    RoundTripStatus,
)
from rtxspec.parser import extract_command, load_command
from rtxspec.pipeline import generate_artifacts, generate_batch


def _unscoped_command() -> CommandSpec:
    return extract_command({"command": {
        "name": "ipsec ike retry",
        "syntax": "ipsec ike retry <count>",
        "parameters": {"count": {"type": "int", "range": [1, 50]}},
    }})


def _gap_command() -> CommandSpec:
    return extract_command({"command": {
        "name": "ipsec ike queue length",
        "syntax": "ipsec ike queue length <length>",
        "parameters": {"length": {"type": "int"}},
    }})


class TestGenerateArtifacts:
    def test_encryption(self, encryption_command: CommandSpec) -> None:
        artifacts = generate_artifacts(encryption_command)
        assert artifacts.command == "ipsec ike encryption"
        assert {c.parameter for c in artifacts.boundary_cases} == {"gateway_id", "algorithm"}
        assert artifacts.combinations == []
        assert artifacts.coverage is None
        assert [r.status for r in artifacts.roundtrip] == [RoundTripStatus.PASSED] * 3
        assert [m.field_name for m in artifacts.field_mappings] == ["gateway_id", "encryption"]
        assert artifacts.warnings == []

    def test_license_context_adds_cases(self, encryption_command: CommandSpec) -> None:
        artifacts = generate_artifacts(encryption_command, license_context={"YSL-VPN-EX2": 2})
        licensed = [
            c for c in artifacts.boundary_cases
            if c.model == "RTX1210" and c.license_context == {"YSL-VPN-EX2": 2}
        ]
        assert {c.value: c.expected_valid for c in licensed}[501] is False

    def test_pairwise(self, pfs_command: CommandSpec) -> None:
        artifacts = generate_artifacts(pfs_command)
        assert artifacts.combinations
        assert artifacts.coverage is not None
        assert artifacts.coverage.coverage == 1.0

    def test_with_catalog(
        self, sa_policy_command: CommandSpec, catalog: CapabilityCatalog
    ) -> None:
        artifacts = generate_artifacts(sa_policy_command, catalog)
        license_cases = [
            c for c in artifacts.boundary_cases if c.source == BoundarySource.LICENSE
        ]
        assert {c.value for c in license_cases} >= {199, 200, 201, 299, 300, 301}

    def test_missing_catalog_is_defect(self, sa_policy_command: CommandSpec) -> None:
        with pytest.raises(SpecificationDefectError):
            generate_artifacts(sa_policy_command)

    def test_models_fill_in_when_undeclared(self) -> None:
        artifacts = generate_artifacts(_unscoped_command(), models=["RTX830"])
        assert {c.model for c in artifacts.boundary_cases} == {"RTX830"}

    def test_declared_models_win(self, encryption_command: CommandSpec) -> None:
        artifacts = generate_artifacts(encryption_command, models=["RTX3500"])
        assert "RTX3500" not in {c.model for c in artifacts.boundary_cases}

    def test_gaps(self) -> None:
        with pytest.raises(CoverageGapError):
            generate_artifacts(_gap_command())
        artifacts = generate_artifacts(_gap_command(), allow_gaps=True)
        assert artifacts.warnings == ["'length' is a range parameter without bounds"]


class TestCache:
    def test_hit_skips_generation(
        self,
        tmp_path: Path,
        encryption_command: CommandSpec,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        cache = ArtifactCache(tmp_path, CacheConfig())
        try:
            first = generate_artifacts(encryption_command, cache=cache)

            def _fail(*args, **kwargs):
                raise AssertionError("generation ran on a cache hit")

            monkeypatch.setattr("rtxspec.pipeline.validate_command", _fail)
            second = generate_artifacts(encryption_command, cache=cache)
        finally:
            cache.close()
        assert second.model_dump(mode="json") == first.model_dump(mode="json")

    def test_options_miss(self, tmp_path: Path, encryption_command: CommandSpec) -> None:
        cache = ArtifactCache(tmp_path, CacheConfig())
        try:
            generate_artifacts(encryption_command, cache=cache)
            assert cache.get(
                encryption_command, None, {"license_context": {}, "allow_gaps": False}
            ) is not None
            assert cache.get(
                encryption_command, None, {"license_context": {"YSL-VPN-EX2": 1}, "allow_gaps": False}
            ) is None
        finally:
            cache.close()


class TestGenerateBatch:
    def test_failures_are_isolated(self, fixture_path, encryption_command: CommandSpec) -> None:
        defective = load_command(fixture_path("defective.yaml"))
        outcomes = generate_batch(
            [defective, encryption_command, _gap_command()], max_workers=3
        )
        assert [o.command for o in outcomes] == [
            "ipsec ike local address", "ipsec ike encryption", "ipsec ike queue length",
        ]
        bad, good, gap = outcomes
        assert not bad.ok
        assert bad.error_type == "SpecificationDefectError"
        assert bad.exit_code == 8
        assert "3 defect(s)" in bad.error
        assert good.ok
        assert good.artifacts is not None
        assert good.exit_code == 0
        assert gap.error_type == "CoverageGapError"
        assert gap.exit_code == 11

    def test_shared_options(self, catalog: CapabilityCatalog, sa_policy_command: CommandSpec) -> None:
        outcomes = generate_batch(
            [sa_policy_command, _unscoped_command()],
            catalog=catalog,
            models=["RTX1210"],
        )
        assert all(o.ok for o in outcomes)
        assert {c.model for c in outcomes[1].artifacts.boundary_cases} == {"RTX1210"}

    def test_empty(self) -> None:
        assert generate_batch([]) == []

"""Tests for rtxspec.generator.roundtrip."""

from __future__ import annotations

from typing import Any

import pytest

from rtxspec.exceptions import SpecificationDefectError
from rtxspec.generator.roundtrip import RoundTripValidator
from rtxspec.models import CommandSpec, Direction, RoundTripStatus, SyntaxTest


def _test(**data: Any) -> SyntaxTest:
    return SyntaxTest.model_validate(data)


class TestFixtures:
    @pytest.mark.parametrize(
        "fixture", ["encryption_command", "sa_policy_command", "keepalive_command", "pfs_command"]
    )
    def test_declared_tests_pass(self, fixture: str, request: pytest.FixtureRequest) -> None:
        command = request.getfixturevalue(fixture)
        results = RoundTripValidator(command).verify_command()
        assert results
        failed = [r for r in results if r.status == RoundTripStatus.FAILED]
        assert failed == []

    def test_scoped_test_runs_per_model(self, sa_policy_command: CommandSpec) -> None:
        results = RoundTripValidator(sa_policy_command).verify_command()
        scoped = [r for r in results if r.test_name == "esp sha256"]
        assert [(r.model, r.status) for r in scoped] == [
            ("RTX1210", RoundTripStatus.PASSED),
            ("RTX830", RoundTripStatus.SKIPPED),
        ]
        assert scoped[1].reason == "not applicable to RTX830"
        assert len(results) == 5

    def test_explicit_model_list(self, keepalive_command: CommandSpec) -> None:
        results = RoundTripValidator(keepalive_command).verify_command(["RTX830"])
        dpd = [r for r in results if r.test_name == "dead peer detection"]
        assert [r.status for r in dpd] == [RoundTripStatus.SKIPPED]

    def test_multiline(self, keepalive_command: CommandSpec) -> None:
        validator = RoundTripValidator(keepalive_command)
        result = validator.verify(keepalive_command.multiline_tests[0])
        assert result.passed
        assert result.test_name == "two gateways"


class TestFailures:
    def test_wrong_mapping_fails_both_directions(self, encryption_command: CommandSpec) -> None:
        test = _test(
            name="wrong gateway",
            rtx="ipsec ike encryption 1 aes-cbc",
            terraform={"gateway_id": 2, "encryption": "aes-cbc"},
        )
        result = RoundTripValidator(encryption_command).verify(test)
        assert result.status == RoundTripStatus.FAILED
        assert [f.direction for f in result.failures] == [Direction.PARSE, Direction.BUILD]
        parse_failure, build_failure = result.failures
        assert parse_failure.expected == {"gateway_id": 2}
        assert parse_failure.actual == {"gateway_id": 1}
        assert build_failure.actual == "ipsec ike encryption 2 aes-cbc"

    def test_unparseable_text(self, encryption_command: CommandSpec) -> None:
        test = _test(
            rtx="ipsec ike encryption 1 blowfish",
            terraform={"gateway_id": 1, "encryption": "blowfish"},
            parse_only=True,
        )
        result = RoundTripValidator(encryption_command).verify(test)
        assert result.test_name == "ipsec ike encryption 1 blowfish"
        assert len(result.failures) == 1
        assert result.failures[0].direction == Direction.PARSE
        assert result.failures[0].actual is None

    def test_unbuildable_fields(self, encryption_command: CommandSpec) -> None:
        test = _test(
            name="missing algorithm",
            rtx="ipsec ike encryption 1 aes-cbc",
            terraform={"gateway_id": 1},
            build_only=True,
        )
        result = RoundTripValidator(encryption_command).verify(test)
        assert [f.direction for f in result.failures] == [Direction.BUILD]
        assert "no value for 'algorithm'" in result.failures[0].message

    def test_values_compare_normalised(self, keepalive_command: CommandSpec) -> None:
        test = _test(
            rtx="ipsec ike keepalive use 1 on",
            terraform={"gateway_id": "1", "switch": True},
        )
        assert RoundTripValidator(keepalive_command).verify(test).passed


class TestDefects:
    def test_multiple_lines_single_mapping(self, keepalive_command: CommandSpec) -> None:
        test = _test(
            name="mismatched",
            rtx="ipsec ike keepalive use 1 on\nipsec ike keepalive use 2 on",
            terraform={"gateway_id": 1, "switch": "on"},
        )
        with pytest.raises(SpecificationDefectError, match="2 lines but a single mapping"):
            RoundTripValidator(keepalive_command).verify(test)

    def test_line_and_mapping_counts_differ(self, keepalive_command: CommandSpec) -> None:
        test = _test(
            name="short",
            rtx="ipsec ike keepalive use 1 on",
            terraform=[{"gateway_id": 1, "switch": "on"}, {"gateway_id": 2, "switch": "on"}],
        )
        with pytest.raises(SpecificationDefectError, match="1 lines and 2 mappings"):
            RoundTripValidator(keepalive_command).verify(test)

"""Tests for rtxspec.generator.boundary."""

from __future__ import annotations

from typing import Any, Optional

import pytest

from rtxspec.exceptions import CoverageGapError, SpecificationDefectError
from rtxspec.generator.boundary import BoundaryExpander
from rtxspec.generator.resolver import ParameterResolver
from rtxspec.models import (
    BoundaryCase,
    BoundarySource,
    BoundaryTest,
    CapabilityCatalog,
    CommandSpec,
)
from rtxspec.parser.extractor import extract_command


def _command(parameters: dict[str, Any], models: Optional[list[str]] = None,
             **extra: Any) -> CommandSpec:
    return extract_command({"command": {
        "name": "test command",
        "applicable_models": models or [],
        "parameters": parameters,
        **extra,
    }})


def _expander(command: CommandSpec, allow_gaps: bool = False) -> BoundaryExpander:
    return BoundaryExpander(ParameterResolver(command), allow_gaps=allow_gaps)


def _by_value(cases: list[BoundaryCase]) -> dict[Any, bool]:
    return {c.value: c.expected_valid for c in cases}


# ---------------------------------------------------------------------------
# License-extended ranges
# ---------------------------------------------------------------------------


class TestLicenseBoundaries:
    def test_gateway_at_quantity_two(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand(
            "gateway_id", license_context={"YSL-VPN-EX2": 2}
        )
        on_1210 = [
            c for c in cases
            if c.model == "RTX1210" and c.license_context == {"YSL-VPN-EX2": 2}
        ]
        values = _by_value(on_1210)
        assert values[499] is True
        assert values[500] is True
        assert values[501] is False
        assert values[1] is True
        assert values[0] is False

    def test_gateway_at_quantity_three(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand(
            "gateway_id", license_context={"YSL-VPN-EX2": 3}
        )
        values = _by_value(
            c for c in cases
            if c.model == "RTX1210" and c.license_context == {"YSL-VPN-EX2": 3}
        )
        assert values[700] is True
        assert values[701] is False

    def test_every_tier_gets_a_triple(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand("gateway_id")
        license_cases = [c for c in cases if c.source == BoundarySource.LICENSE]
        assert len(license_cases) == 15
        top = [c for c in license_cases if c.license_context == {"YSL-VPN-EX2": 5}]
        assert _by_value(top) == {1099: True, 1100: True, 1101: False}
        assert top[0].description == "YSL-VPN-EX2 x5"

    def test_unlicensed_range_per_model(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand("gateway_id")
        base_1210 = [c for c in cases if c.model == "RTX1210" and c.source == BoundarySource.RANGE]
        assert _by_value(base_1210) == {0: False, 1: True, 1000: True, 1001: False}
        base_830 = [c for c in cases if c.model == "RTX830" and c.source == BoundarySource.RANGE]
        # 20 is covered by the uniform declared case, 21 by the scoped one.
        assert _by_value(base_830) == {0: False, 1: True}

    def test_malformed_license_rows_are_gaps(self) -> None:
        command = _command({"gw": {"type": "int", "range": [1, 100], "model_constraints": {
            "RTX1210": {"license_limits": {"A": [200, "n/a"], "B": []}},
        }}}, ["RTX1210"])
        expander = _expander(command, allow_gaps=True)
        cases = expander.expand("gw")
        assert any("tier 2" in g and "malformed" in g for g in expander.gaps)
        assert any("license B" in g and "no tiers" in g for g in expander.gaps)
        assert _by_value(c for c in cases if c.source == BoundarySource.LICENSE) == {
            199: True, 200: True, 201: False,
        }


# ---------------------------------------------------------------------------
# Declared cases
# ---------------------------------------------------------------------------


class TestDeclaredCases:
    def test_declared_first_and_scoped_per_model(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand("gateway_id")
        declared = [c for c in cases if c.source == BoundarySource.DECLARED]
        assert cases[: len(declared)] == declared
        assert [(c.value, c.model, c.expected_valid) for c in declared] == [
            (20, None, True),
            (21, "RTX1210", True),
            (21, "RTX830", False),
        ]
        assert declared[2].error_contains == "above maximum"

    def test_declared_overrides_auto_case(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand("gateway_id")
        twenty_one = [c for c in cases if c.value == 21 and c.model == "RTX830"]
        assert len(twenty_one) == 1
        assert twenty_one[0].source == BoundarySource.DECLARED

    def test_explicit_declared_list(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand(
            "gateway_id", declared_boundaries=[BoundaryTest(value=1000, valid=True)]
        )
        assert cases[0].value == 1000
        assert cases[0].source == BoundarySource.DECLARED
        assert not any(c.value == 21 and c.source == BoundarySource.DECLARED for c in cases)

    def test_declared_valid_outside_every_domain(self, encryption_command: CommandSpec) -> None:
        with pytest.raises(SpecificationDefectError) as exc_info:
            _expander(encryption_command).expand(
                "gateway_id", declared_boundaries=[BoundaryTest(value=5000, valid=True)]
            )
        assert "outside every effective domain" in exc_info.value.defects[0]

    def test_scoped_valid_outside_model_domain(self, encryption_command: CommandSpec) -> None:
        with pytest.raises(SpecificationDefectError, match="Invalid boundary tests"):
            _expander(encryption_command).expand(
                "gateway_id",
                declared_boundaries=[BoundaryTest(value=50, valid_for=["RTX830"])],
            )

    def test_scoped_valid_on_unsupported_model(self) -> None:
        command = _command(
            {"gw": {"type": "int", "range": [1, 10], "model_constraints": {"RTX830": False}}},
            ["RTX1210", "RTX830"],
        )
        with pytest.raises(SpecificationDefectError) as exc_info:
            _expander(command).expand(
                "gw", declared_boundaries=[BoundaryTest(value=5, valid_for=["RTX830"])]
            )
        assert "unsupported" in exc_info.value.defects[0]

    def test_scoped_case_naming_unknown_model(self) -> None:
        command = _command({"a": {"type": "enum", "enum_values": ["x", "y"]}},
                           ["RTX1210", "RTX830"])
        with pytest.raises(SpecificationDefectError) as exc_info:
            _expander(command).expand(
                "a", declared_boundaries=[BoundaryTest(value="x", valid_for=["RTX9999"])]
            )
        assert exc_info.value.defects == ["boundary test 'x' of 'a' names unknown model 'RTX9999'"]

    def test_scoped_case_over_catalog_models(self, catalog: CapabilityCatalog) -> None:
        command = _command({"mode": {"type": "enum", "enum_values": ["ikev1", "ikev2"]}})
        expander = BoundaryExpander(ParameterResolver(command, catalog))
        cases = expander.expand(
            "mode", declared_boundaries=[BoundaryTest(value="ikev2", invalid_for=["RTX830"])]
        )
        declared = {c.model: c.expected_valid for c in cases if c.source == BoundarySource.DECLARED}
        assert declared == {"RTX1210": True, "RTX830": False}

    def test_declared_invalid_needs_no_domain_check(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand(
            "gateway_id", declared_boundaries=[BoundaryTest(value=-7, valid=False)]
        )
        assert cases[0].expected_valid is False

    def test_unknown_parameter(self, encryption_command: CommandSpec) -> None:
        with pytest.raises(SpecificationDefectError, match="undeclared parameter 'peer'"):
            _expander(encryption_command).expand("peer")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TestEnumBoundaries:
    def test_each_member_plus_out_of_set(self, encryption_command: CommandSpec) -> None:
        cases = _expander(encryption_command).expand("algorithm")
        on_830 = [c for c in cases if c.model == "RTX830"]
        assert _by_value(on_830) == {
            "3des-cbc": True, "des-cbc": True, "aes-cbc": True, "aes256-cbc": True,
            "invalid": False,
        }
        assert all(c.source == BoundarySource.ENUM for c in on_830)

    def test_deferred_member_described(self, keepalive_command: CommandSpec) -> None:
        cases = _expander(keepalive_command).expand("switch")
        auto = [c for c in cases if c.value == "auto"]
        assert len(auto) == 2
        assert all(c.expected_valid for c in auto)
        assert auto[0].description == "deferred to on, off"

    def test_per_model_enum_restriction(self, keepalive_command: CommandSpec) -> None:
        cases = _expander(keepalive_command).expand("method")
        dpd = {c.model: c for c in cases if c.value == "dpd"}
        assert dpd["RTX1210"].expected_valid is True
        assert dpd["RTX830"].expected_valid is False
        assert dpd["RTX830"].source == BoundarySource.DECLARED

    def test_out_of_set_token_avoids_members(self) -> None:
        command = _command({"x": {"type": "enum", "enum_values": ["invalid", "invalid1"]}})
        cases = _expander(command).expand("x")
        assert cases[-1].value == "invalid2"
        assert cases[-1].expected_valid is False

    def test_enum_without_values_is_gap(self) -> None:
        command = _command({"x": {"type": "enum"}})
        with pytest.raises(CoverageGapError, match="enum without values"):
            _expander(command).expand("x")


# ---------------------------------------------------------------------------
# Other shapes
# ---------------------------------------------------------------------------


class TestOtherShapes:
    def test_no_models_uses_base_domain(self) -> None:
        command = _command({"gw": {"type": "int", "range": [1, 10]}})
        cases = _expander(command).expand("gw")
        assert {c.model for c in cases} == {None}
        assert _by_value(cases) == {0: False, 1: True, 10: True, 11: False}

    def test_single_point_range(self) -> None:
        command = _command({"gw": {"type": "int", "range": [1, 1]}})
        assert _by_value(_expander(command).expand("gw")) == {0: False, 1: True, 2: False}

    def test_unsupported_model_skipped(self) -> None:
        command = _command(
            {"gw": {"type": "int", "range": [1, 10], "model_constraints": {"RTX830": "unavailable"}}},
            ["RTX1210", "RTX830"],
        )
        cases = _expander(command).expand("gw")
        assert {c.model for c in cases} == {"RTX1210"}

    def test_string_length(self) -> None:
        command = _command({"name": {"type": "string", "range": [1, 8]}})
        cases = _expander(command).expand("name")
        assert [(len(c.value), c.expected_valid) for c in cases] == [
            (0, False), (1, True), (8, True), (9, False),
        ]
        assert all(c.source == BoundarySource.LENGTH for c in cases)

    def test_unbounded_string_has_no_cases(self) -> None:
        command = _command({"name": {"type": "string"}})
        assert _expander(command).expand("name") == []

    def test_boundaries_override(self) -> None:
        command = _command({"mtu": {"type": "int", "range": [64, 1500],
                                    "boundaries": [63, 576, 1501]}})
        cases = _expander(command).expand("mtu")
        assert _by_value(cases) == {63: False, 576: True, 1501: False}
        assert all(c.source == BoundarySource.OVERRIDE for c in cases)

    def test_variant_ranges_keep_keyword(self) -> None:
        command = _command({"lifetime": {"variants": [
            {"value": "time", "type": "int", "range": [300, 691200]},
            {"value": "bytes", "type": "int", "range": [100, 2147483647]},
        ]}})
        cases = _expander(command).expand("lifetime")
        time_cases = [c for c in cases if c.variant == "time"]
        assert _by_value(time_cases) == {
            "time 299": False, "time 300": True, "time 691200": True, "time 691201": False,
        }
        assert all(c.source == BoundarySource.RANGE for c in cases)


# ---------------------------------------------------------------------------
# Coverage gaps
# ---------------------------------------------------------------------------


class TestCoverageGaps:
    def test_int_without_range_raises(self) -> None:
        command = _command({"gw": {"type": "int"}})
        with pytest.raises(CoverageGapError) as exc_info:
            _expander(command).expand("gw")
        assert exc_info.value.gaps == ["'gw' is a range parameter without bounds"]

    def test_allow_gaps_collects(self) -> None:
        command = _command({"gw": {"type": "int"}})
        expander = _expander(command, allow_gaps=True)
        assert expander.expand("gw") == []
        assert expander.gaps == ["'gw' is a range parameter without bounds"]

    def test_expand_command_reports_all_gaps_together(self) -> None:
        command = _command(
            {"a": {"type": "int"}, "b": {"type": "enum"}},
            ["RTX1210"],
        )
        with pytest.raises(CoverageGapError) as exc_info:
            _expander(command).expand_command()
        assert exc_info.value.gaps == [
            "'a' on RTX1210 is a range parameter without bounds",
            "'b' on RTX1210 is an enum without values",
        ]

    def test_expand_command_full_fixture(self, keepalive_command: CommandSpec) -> None:
        cases = _expander(keepalive_command).expand_command()
        assert {c.parameter for c in cases} == {"gateway_id", "switch", "method"}

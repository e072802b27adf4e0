"""Tests for rtxspec.generator.constraints."""

from __future__ import annotations

import pytest

from rtxspec.exceptions import ConstraintPrecedenceError, SpecificationDefectError
from rtxspec.generator.constraints import ConstraintSet, parse_expression
from rtxspec.models import PairwiseConstraint

DOMAINS = {
    "pfs": ["on", "off"],
    "negotiate_strictly": ["on", "off"],
    "peer_pfs": ["on", "off"],
    "mode": ["ikev1", "ikev2"],
}


# ---------------------------------------------------------------------------
# Expression parsing and evaluation
# ---------------------------------------------------------------------------


class TestParseExpression:
    def test_equality_conjunction(self) -> None:
        expr = parse_expression("negotiate_strictly == on and mode == IKEv1")
        assert len(expr.clauses) == 2
        assert expr.clauses[1].values == ("ikev1",)
        assert expr.parameters == {"negotiate_strictly", "mode"}

    def test_reference(self) -> None:
        expr = parse_expression("pfs == $peer_pfs")
        assert expr.parameters == {"pfs", "peer_pfs"}
        assert expr.evaluate({"pfs": "on", "peer_pfs": "on"}) is True
        assert expr.evaluate({"pfs": "on", "peer_pfs": "off"}) is False

    def test_membership(self) -> None:
        expr = parse_expression("mode in [ikev1, ikev2] and pfs not in ['off']")
        assert expr.evaluate({"mode": "ikev2", "pfs": "on"}) is True
        assert expr.evaluate({"mode": "ikev2", "pfs": "off"}) is False

    def test_inequality(self) -> None:
        expr = parse_expression("pfs != off")
        assert expr.evaluate({"pfs": "on"}) is True

    def test_booleans_compare_as_tokens(self) -> None:
        expr = parse_expression("pfs == on")
        assert expr.evaluate({"pfs": True}) is True
        assert expr.evaluate({"pfs": False}) is False

    def test_partial_assignment_is_undecided(self) -> None:
        expr = parse_expression("negotiate_strictly == on and mode == ikev1")
        assert expr.evaluate({"negotiate_strictly": "on"}) is None
        assert expr.evaluate({"negotiate_strictly": "off"}) is False
        assert parse_expression("pfs == $peer_pfs").evaluate({"pfs": "on"}) is None

    @pytest.mark.parametrize("source", ["pfs", "pfs >= on", "mode in ikev1", "mode in []"])
    def test_malformed(self, source: str) -> None:
        with pytest.raises(SpecificationDefectError):
            parse_expression(source)


# ---------------------------------------------------------------------------
# Rules and constraint sets
# ---------------------------------------------------------------------------


STRICT_PFS = PairwiseConstraint(
    condition="negotiate_strictly == on and mode == ikev1",
    requires="pfs == $peer_pfs",
)
NO_IKEV2_ON_830 = PairwiseConstraint(condition="mode == ikev2", invalid_for=["RTX830"])


class TestConstraintSet:
    def test_requires_rule(self) -> None:
        constraints = ConstraintSet([STRICT_PFS], DOMAINS)
        bad = {"pfs": "on", "negotiate_strictly": "on", "peer_pfs": "off", "mode": "ikev1"}
        assert constraints.violated(bad) is True
        assert constraints.is_valid({**bad, "peer_pfs": "on"})
        assert constraints.is_valid({**bad, "mode": "ikev2"})
        assert constraints.rules[0].kind == "requires"

    def test_requires_rule_undecided_on_partial(self) -> None:
        constraints = ConstraintSet([STRICT_PFS], DOMAINS)
        assert constraints.violated({"pfs": "on", "peer_pfs": "off"}) is None
        assert constraints.violated(
            {"pfs": "on", "peer_pfs": "off", "negotiate_strictly": "off"}
        ) is False

    def test_invalid_for_rule_is_model_scoped(self) -> None:
        constraints = ConstraintSet([NO_IKEV2_ON_830], DOMAINS)
        assert constraints.violated({"mode": "ikev2"}, "RTX830") is True
        assert constraints.violated({"mode": "ikev2"}, "RTX1210") is False
        assert constraints.violated({"mode": "ikev2"}) is False
        assert constraints.has_model_rules
        assert constraints.models == ["RTX830"]

    def test_bare_condition_forbids_everywhere(self) -> None:
        constraints = ConstraintSet(
            [PairwiseConstraint(condition="pfs == off and peer_pfs == on")], DOMAINS
        )
        assert constraints.rules[0].kind == "forbid"
        assert constraints.violated({"pfs": "off", "peer_pfs": "on"}, "RTX1210") is True
        assert constraints.violated({"pfs": "off", "peer_pfs": "off"}) is False

    def test_unknown_parameter_is_defect(self) -> None:
        with pytest.raises(SpecificationDefectError, match="non-participating parameter"):
            ConstraintSet([PairwiseConstraint(condition="tunnel == 1")], DOMAINS)

    def test_requires_and_invalid_for_together_is_defect(self) -> None:
        both = PairwiseConstraint(
            condition="mode == ikev1", requires="pfs == on", invalid_for=["RTX830"]
        )
        with pytest.raises(SpecificationDefectError, match="both 'requires' and 'invalid_for'"):
            ConstraintSet([both], DOMAINS)


class TestPrecedence:
    def _overlapping(self, req_priority, inv_priority) -> list[PairwiseConstraint]:
        return [
            PairwiseConstraint(
                condition="mode == ikev1", requires="pfs == on", priority=req_priority
            ),
            PairwiseConstraint(
                condition="pfs == on", invalid_for=["RTX830"], priority=inv_priority
            ),
        ]

    def test_overlap_without_priorities_is_defect(self) -> None:
        with pytest.raises(ConstraintPrecedenceError) as exc_info:
            ConstraintSet(self._overlapping(None, None), DOMAINS)
        assert "distinct priorities" in exc_info.value.defects[0]

    def test_equal_priorities_is_defect(self) -> None:
        with pytest.raises(ConstraintPrecedenceError):
            ConstraintSet(self._overlapping(1, 1), DOMAINS)

    def test_disjoint_rules_need_no_priority(self) -> None:
        ConstraintSet([STRICT_PFS, NO_IKEV2_ON_830], DOMAINS)

    def test_higher_priority_requires_exempts(self) -> None:
        constraints = ConstraintSet(self._overlapping(2, 1), DOMAINS)
        assert constraints.is_valid({"mode": "ikev1", "pfs": "on"}, "RTX830")
        assert not constraints.is_valid({"mode": "ikev2", "pfs": "on"}, "RTX830")
        assert not constraints.is_valid({"mode": "ikev1", "pfs": "off"}, "RTX830")

    def test_higher_priority_invalid_for_wins(self) -> None:
        constraints = ConstraintSet(self._overlapping(1, 2), DOMAINS)
        assert not constraints.is_valid({"mode": "ikev1", "pfs": "on"}, "RTX830")
        assert constraints.is_valid({"mode": "ikev1", "pfs": "on"}, "RTX1210")

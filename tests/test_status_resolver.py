"""
Status resolver tests: pure function, no database.

Covers:
    - determinism (same input, same output)
    - BLOCKED dominance over any proof state
    - count + type coverage for GREEN
    - superseded / rejected / invalid proofs never count
    - reviewer-approval waiver, reference-number and expiry-date filters
    - vacuous units (zero proofs, no types) resolve GREEN
"""

from datetime import date
from itertools import product

import pytest

from readiness.models.proof import Proof
from readiness.models.unit import Unit
from readiness.services.status_resolver import BLOCKED, GREEN, RED, counting_proofs, resolve


def _unit(**kw):
    defaults = dict(
        required_proof_count=1,
        required_proof_types=[],
        requires_reviewer_approval=True,
        requires_reference_number=False,
        requires_expiry_date=False,
        is_blocked=False,
    )
    defaults.update(kw)
    return Unit(**defaults)


def _proof(type_="photo", status="approved", **kw):
    defaults = dict(
        type=type_,
        approval_status=status,
        is_superseded=False,
        is_valid=True,
        reference_number=None,
        expiry_date=None,
        uploaded_by="field-1",
    )
    defaults.update(kw)
    return Proof(**defaults)


class TestResolve:
    def test_no_proofs_is_red(self):
        assert resolve(_unit(), []) == RED

    def test_one_approved_proof_satisfies_single_requirement(self):
        assert resolve(_unit(), [_proof()]) == GREEN

    def test_count_met_but_type_missing_is_red(self):
        unit = _unit(required_proof_count=2, required_proof_types=["photo", "document"])
        assert resolve(unit, [_proof("photo"), _proof("photo")]) == RED

    def test_count_and_types_met_is_green(self):
        unit = _unit(required_proof_count=2, required_proof_types=["photo", "document"])
        assert resolve(unit, [_proof("photo"), _proof("document")]) == GREEN

    def test_types_met_but_count_short_is_red(self):
        unit = _unit(required_proof_count=3, required_proof_types=["photo", "document"])
        assert resolve(unit, [_proof("photo"), _proof("document")]) == RED

    @pytest.mark.parametrize("status", ["pending", "rejected"])
    def test_undecided_or_rejected_proofs_do_not_count(self, status):
        assert resolve(_unit(), [_proof(status=status)]) == RED

    def test_superseded_proof_does_not_count(self):
        assert resolve(_unit(), [_proof(is_superseded=True)]) == RED

    def test_invalid_proof_does_not_count(self):
        assert resolve(_unit(), [_proof(is_valid=False)]) == RED

    def test_pending_counts_when_reviewer_approval_waived(self):
        unit = _unit(requires_reviewer_approval=False)
        assert resolve(unit, [_proof(status="pending")]) == GREEN

    def test_rejected_never_counts_even_when_approval_waived(self):
        unit = _unit(requires_reviewer_approval=False)
        assert resolve(unit, [_proof(status="rejected")]) == RED

    def test_reference_number_requirement_filters_proofs(self):
        unit = _unit(requires_reference_number=True)
        assert resolve(unit, [_proof(reference_number="  ")]) == RED
        assert resolve(unit, [_proof(reference_number="PRM-2201")]) == GREEN

    def test_expiry_date_requirement_filters_proofs(self):
        unit = _unit(requires_expiry_date=True)
        assert resolve(unit, [_proof()]) == RED
        assert resolve(unit, [_proof(expiry_date=date(2030, 1, 1))]) == GREEN

    def test_zero_requirement_unit_is_vacuously_green(self):
        unit = _unit(required_proof_count=0, required_proof_types=[])
        assert resolve(unit, []) == GREEN

    def test_counting_proofs_returns_only_live_ones(self):
        live = _proof("photo")
        proofs = [live, _proof("photo", is_superseded=True), _proof("video", status="rejected")]
        assert counting_proofs(_unit(), proofs) == [live]


class TestBlockedDominance:
    @pytest.mark.parametrize(
        "specs",
        [[], [("photo", "approved")], [("photo", "approved"), ("document", "approved")],
         [("photo", "pending")]],
    )
    def test_blocked_unit_always_resolves_blocked(self, specs):
        unit = _unit(is_blocked=True, blocked_reason="permit pending")
        proofs = [_proof(t, s) for t, s in specs]
        assert resolve(unit, proofs) == BLOCKED

    def test_blocked_overrides_vacuous_green(self):
        unit = _unit(required_proof_count=0, is_blocked=True, blocked_reason="site closed")
        assert resolve(unit, []) == BLOCKED


class TestDeterminism:
    def test_same_inputs_same_output(self):
        statuses = ["approved", "pending", "rejected"]
        types = ["photo", "document"]
        for (s1, t1), (s2, t2) in product(product(statuses, types), repeat=2):
            unit = _unit(required_proof_count=2, required_proof_types=["photo", "document"])
            proofs = [_proof(t1, s1), _proof(t2, s2)]
            assert resolve(unit, proofs) == resolve(unit, proofs)

    def test_resolve_does_not_mutate_inputs(self):
        unit = _unit(required_proof_count=1, required_proof_types=["photo"])
        proofs = [_proof()]
        resolve(unit, proofs)
        assert unit.required_proof_types == ["photo"]
        assert proofs[0].approval_status == "approved"
        assert proofs[0].is_superseded is False

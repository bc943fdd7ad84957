"""Aggregator tests: BLOCKED > RED > GREEN, EMPTY never reported as GREEN."""

from itertools import combinations_with_replacement

import pytest

from readiness.services.aggregator import EMPTY, aggregate, aggregate_rollup


def test_empty_input_is_empty_not_green():
    assert aggregate([]) == EMPTY
    assert aggregate([]) != "GREEN"


def test_all_green_is_green():
    assert aggregate(["GREEN", "GREEN"]) == "GREEN"


def test_red_dominates_green():
    assert aggregate(["GREEN", "RED", "GREEN"]) == "RED"


def test_blocked_dominates_red_and_green():
    assert aggregate(["GREEN", "RED", "BLOCKED"]) == "BLOCKED"


@pytest.mark.parametrize("size", [1, 2, 3, 4])
def test_dominance_order_over_all_multisets(size):
    for combo in combinations_with_replacement(["RED", "GREEN", "BLOCKED"], size):
        result = aggregate(combo)
        if "BLOCKED" in combo:
            assert result == "BLOCKED"
        elif "RED" in combo:
            assert result == "RED"
        else:
            assert result == "GREEN"


def test_accepts_generators():
    assert aggregate(s for s in ["GREEN"]) == "GREEN"


def test_rollup_ignores_empty_children():
    assert aggregate_rollup(["EMPTY", "GREEN"]) == "GREEN"
    assert aggregate_rollup(["EMPTY", "EMPTY"]) == EMPTY
    assert aggregate_rollup(["EMPTY", "RED", "BLOCKED"]) == "BLOCKED"

"""
Aggregator: roll unit statuses up the hierarchy.

Dominance order: BLOCKED > RED > GREEN.  An empty input is EMPTY, which
is never reported as GREEN.
"""

from __future__ import annotations

from collections.abc import Iterable

EMPTY = "EMPTY"


def aggregate(statuses: Iterable[str]) -> str:
    """Collapse a multiset of RED/GREEN/BLOCKED into one status."""
    seen = set(statuses)
    if not seen:
        return EMPTY
    if "BLOCKED" in seen:
        return "BLOCKED"
    if "RED" in seen:
        return "RED"
    return "GREEN"


def aggregate_rollup(child_statuses: Iterable[str]) -> str:
    """Aggregate child containers that may themselves be EMPTY.

    EMPTY children carry no signal and are dropped; if nothing remains the
    parent is EMPTY too.
    """
    return aggregate(s for s in child_statuses if s != EMPTY)

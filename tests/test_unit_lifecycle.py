"""
Unit lifecycle tests (SQLite).

Blocking overrides, block proposals, unblocking, scope confirmation,
archival and the workstream / program roll-ups built on cached statuses.
"""

from datetime import timedelta

import pytest

from conftest import T0
from readiness.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from readiness.models import db
from readiness.models.escalation import EscalationEvent
from readiness.models.hierarchy import Workstream
from readiness.models.unit import Unit
from readiness.services import workstream_service
from readiness.services.escalation_service import escalate
from readiness.services.proof_service import decide_proof, submit_proof
from readiness.services.unit_service import (
    archive_unit,
    block_unit,
    confirm_unit,
    create_unit,
    unblock_unit,
    unit_history,
)


def _make_green(unit, actors):
    proof = submit_proof(unit.id, actors["contributor"], {"type": "photo"})
    decide_proof(proof.id, actors["lead"], True)


class TestCreate:
    def test_lead_creates_confirmed_unit(self, make_unit):
        unit = make_unit()
        assert unit.is_confirmed is True
        assert unit.confirmed_by == "lead-1"
        assert unit.computed_status == "RED"
        assert unit.current_escalation_level == 0

    def test_contributor_creates_unconfirmed_unit(self, make_unit, actors):
        unit = make_unit(actor=actors["contributor"])
        assert unit.is_confirmed is False
        assert unit.confirmed_by is None

    def test_viewer_cannot_create(self, make_unit, actors):
        with pytest.raises(AuthorizationError):
            make_unit(actor=actors["viewer"])

    def test_zero_requirement_unit_is_green(self, make_unit):
        unit = make_unit(required_proof_count=0, required_proof_types=[])
        assert unit.computed_status == "GREEN"

    @pytest.mark.parametrize("field,value", [
        ("title", ""),
        ("deadline", "not-a-date"),
        ("required_proof_count", -1),
        ("required_proof_types", "photo"),
        ("alert_profile", "LOUD"),
    ])
    def test_invalid_input_rejected(self, make_unit, field, value):
        with pytest.raises(ValidationError):
            make_unit(**{field: value})

    def test_custom_profile_requires_thresholds(self, make_unit):
        with pytest.raises(ValidationError):
            make_unit(alert_profile="CUSTOM")
        unit = make_unit(alert_profile="CUSTOM", alert_thresholds=[20, 40, 60])
        assert unit.thresholds == (20, 40, 60)

    def test_unknown_workstream(self, actors):
        with pytest.raises(NotFoundError):
            create_unit(9999, actors["lead"], {"title": "x", "deadline": T0.isoformat()})


class TestBlockOverride:
    """GREEN unit blocked by a lead becomes BLOCKED regardless of proofs."""

    def test_block_overrides_green(self, make_unit, actors):
        unit = make_unit()
        _make_green(unit, actors)

        result = block_unit(unit.id, actors["lead"], "Permit pending")

        assert result["blocked_applied"] is True
        assert result["event"] is None
        unit = db.session.get(Unit, unit.id)
        assert unit.is_blocked is True
        assert unit.computed_status == "BLOCKED"
        assert unit.blocked_reason == "Permit pending"
        assert db.session.get(Workstream, unit.workstream_id).overall_status == "BLOCKED"

    def test_block_requires_reason(self, make_unit, actors):
        unit = make_unit()
        with pytest.raises(ValidationError):
            block_unit(unit.id, actors["lead"], "  ")

    def test_block_twice_conflicts(self, make_unit, actors):
        unit = make_unit()
        block_unit(unit.id, actors["lead"], "Permit pending")
        with pytest.raises(ConflictError):
            block_unit(unit.id, actors["owner"], "Still pending")


class TestBlockProposal:
    """Viewer escalation with mark_as_blocked only proposes a block."""

    def test_viewer_proposal(self, make_unit, actors):
        unit = make_unit()

        result = escalate(unit.id, actors["viewer"], 1, "Water damage on site", mark_as_blocked=True)

        assert result["blocked_applied"] is False
        event = result["event"]
        assert event["proposed_blocked"] is True
        assert event["proposed_by_role"] == "CLIENT_VIEWER"
        unit = db.session.get(Unit, unit.id)
        assert unit.is_blocked is False
        assert unit.computed_status == "RED"

    def test_contributor_block_becomes_proposal(self, make_unit, actors):
        unit = make_unit()
        result = block_unit(unit.id, actors["contributor"], "Supplier delay")
        assert result["blocked_applied"] is False
        assert result["event"]["proposed_blocked"] is True
        assert result["event"]["level"] == 1
        assert db.session.get(Unit, unit.id).is_blocked is False

    def test_proposal_raises_unit_level_to_event_level(self, make_unit, actors):
        unit = make_unit()
        result = block_unit(unit.id, actors["viewer"], "permit pending")
        assert result["event"]["level"] == 1
        assert result["event"]["state"] == "active"
        assert db.session.get(Unit, unit.id).current_escalation_level == 1

    def test_proposal_on_green_unit_is_resolved_at_once(self, make_unit, actors):
        unit = make_unit()
        _make_green(unit, actors)
        result = block_unit(unit.id, actors["contributor"], "Scaffold moved")
        assert result["event"]["resolution"] == "unit_green"
        unit = db.session.get(Unit, unit.id)
        assert (unit.computed_status, unit.current_escalation_level) == ("GREEN", 0)

    def test_lead_escalation_with_block_applies(self, make_unit, actors):
        unit = make_unit()
        result = escalate(unit.id, actors["lead"], 2, "Crane unavailable", mark_as_blocked=True)
        assert result["blocked_applied"] is True
        assert result["event"]["proposed_blocked"] is False
        unit = db.session.get(Unit, unit.id)
        assert unit.computed_status == "BLOCKED"
        assert unit.current_escalation_level == 2


class TestUnblock:
    def test_owner_unblocks_and_status_rederived(self, make_unit, actors):
        unit = make_unit()
        _make_green(unit, actors)
        block_unit(unit.id, actors["lead"], "Permit pending")

        result = unblock_unit(unit.id, actors["owner"], reason="Permit granted")

        assert result["new_unit_status"] == "GREEN"
        unit = db.session.get(Unit, unit.id)
        assert unit.is_blocked is False
        assert unit.blocked_reason is None

    def test_lead_cannot_unblock(self, make_unit, actors):
        unit = make_unit()
        block_unit(unit.id, actors["lead"], "Permit pending")
        with pytest.raises(AuthorizationError) as exc:
            unblock_unit(unit.id, actors["lead"])
        assert exc.value.rule == "unblock_tier"

    def test_unblock_not_blocked_conflicts(self, make_unit, actors):
        unit = make_unit()
        with pytest.raises(ConflictError):
            unblock_unit(unit.id, actors["owner"])

    def test_block_resolves_active_escalations(self, make_unit, actors):
        unit = make_unit()
        escalate(unit.id, actors["lead"], 1, "Behind schedule")
        block_unit(unit.id, actors["lead"], "Permit pending")
        esc = EscalationEvent.query.filter_by(unit_id=unit.id).one()
        assert esc.state == "resolved"
        assert esc.resolution == "unit_blocked"


class TestConfirm:
    def test_unconfirmed_unit_excluded_until_confirmed(self, make_unit, workstream, actors):
        unit = make_unit(actor=actors["contributor"])
        status = workstream_service.workstream_status(workstream.id)
        assert status["status"] == "EMPTY"
        assert status["unit_count"] == 0

        confirm_unit(unit.id, actors["lead"])

        status = workstream_service.workstream_status(workstream.id)
        assert status["status"] == "RED"
        assert status["unit_count"] == 1
        assert db.session.get(Workstream, workstream.id).overall_status == "RED"

    def test_contributor_cannot_confirm(self, make_unit, actors):
        unit = make_unit(actor=actors["contributor"])
        with pytest.raises(AuthorizationError):
            confirm_unit(unit.id, actors["contributor2"])

    def test_confirm_twice_conflicts(self, make_unit, actors):
        unit = make_unit()
        with pytest.raises(ConflictError):
            confirm_unit(unit.id, actors["lead"])


class TestArchive:
    def test_archived_unit_hidden_from_mutation_but_history_kept(self, make_unit, actors):
        unit = make_unit()
        archive_unit(unit.id, actors["owner"], reason="Descoped")

        with pytest.raises(NotFoundError):
            block_unit(unit.id, actors["lead"], "Permit pending")
        with pytest.raises(NotFoundError):
            submit_proof(unit.id, actors["contributor"], {"type": "photo"})

        history = unit_history(unit.id)
        assert history["unit"]["is_archived"] is True
        types = [e["event_type"] for e in history["status_events"]]
        assert types[0] == "unit_created"
        assert types[-1] == "unit_archived"

    def test_lead_cannot_archive(self, make_unit, actors):
        unit = make_unit()
        with pytest.raises(AuthorizationError) as exc:
            archive_unit(unit.id, actors["lead"])
        assert exc.value.rule == "archive_tier"

    def test_archived_unit_leaves_aggregate(self, make_unit, workstream, actors):
        red = make_unit(title="Red one")
        green = make_unit(title="Green one")
        _make_green(green, actors)
        assert workstream_service.workstream_status(workstream.id)["status"] == "RED"

        archive_unit(red.id, actors["owner"])

        assert workstream_service.workstream_status(workstream.id)["status"] == "GREEN"

    def test_archive_workstream_cascades(self, make_unit, workstream, actors):
        make_unit(title="One")
        make_unit(title="Two")

        result = workstream_service.archive_workstream(workstream.id, actors["owner"])

        assert result["units_archived"] == 2
        assert Unit.query.filter_by(workstream_id=workstream.id, is_archived=False).count() == 0
        with pytest.raises(NotFoundError):
            workstream_service.get_workstream(workstream.id)


class TestRollups:
    def test_blocked_dominates_workstream(self, make_unit, workstream, actors):
        make_unit(title="Red")
        blocked = make_unit(title="Blocked")
        block_unit(blocked.id, actors["lead"], "Permit pending")
        status = workstream_service.workstream_status(workstream.id)
        assert status["status"] == "BLOCKED"
        assert status["counts"] == {"RED": 1, "GREEN": 0, "BLOCKED": 1}

    def test_program_ignores_empty_workstreams(self, make_unit, org, actors):
        _, program = org
        ws_a = workstream_service.create_workstream(program.id, actors["owner"], name="Civil")
        workstream_service.create_workstream(program.id, actors["owner"], name="Mechanical")
        unit = make_unit(workstream_id=ws_a.id)
        _make_green(unit, actors)

        result = workstream_service.program_status(program.id)

        assert result["status"] == "GREEN"
        assert sorted(set(result["workstreams"].values())) == ["EMPTY", "GREEN"]

    def test_program_of_only_empty_workstreams_is_empty(self, org, actors):
        _, program = org
        workstream_service.create_workstream(program.id, actors["owner"], name="Civil")
        assert workstream_service.program_status(program.id)["status"] == "EMPTY"

    def test_hierarchy_creation_requires_owner(self, org, actors):
        _, program = org
        with pytest.raises(AuthorizationError) as exc:
            workstream_service.create_workstream(program.id, actors["lead"], name="Civil")
        assert exc.value.rule == "hierarchy_tier"

    def test_attention_queue_orders_by_level_then_deadline(self, make_unit, org, actors):
        client, _ = org
        blocked = make_unit(title="Blocked", deadline=(T0 + timedelta(days=3)).isoformat())
        block_unit(blocked.id, actors["lead"], "Permit pending")
        hot = make_unit(title="Escalated", deadline=(T0 + timedelta(days=20)).isoformat())
        escalate(hot.id, actors["lead"], 2, "Behind schedule")
        make_unit(title="Quiet")

        queue = workstream_service.attention_queue(client.id)

        assert [item["id"] for item in queue] == [hot.id, blocked.id]
        assert len(queue[0]["active_escalations"]) == 1
        assert queue[1]["active_escalations"] == []

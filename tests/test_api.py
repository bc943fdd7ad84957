"""
HTTP surface tests via the Flask test client.

Identity travels in X-Actor-Id / X-Actor-Role headers; cron endpoints use
the bearer secret from TestingConfig.
"""

import pytest

CRON = {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture()
def api_workstream(client, headers, actors):
    """Client → Program → Workstream created through the API."""
    owner = headers(actors["owner"])
    res = client.post("/api/v1/clients", json={"name": "Acme Build", "slug": "acme"}, headers=owner)
    assert res.status_code == 201
    client_id = res.get_json()["id"]
    res = client.post(f"/api/v1/clients/{client_id}/programs", json={"name": "Tower A"}, headers=owner)
    assert res.status_code == 201
    program_id = res.get_json()["id"]
    res = client.post(f"/api/v1/programs/{program_id}/workstreams", json={"name": "Electrical"},
                      headers=owner)
    assert res.status_code == 201
    return {"client_id": client_id, "program_id": program_id, "workstream_id": res.get_json()["id"]}


@pytest.fixture()
def api_unit(client, headers, actors, api_workstream):
    res = client.post(
        f"/api/v1/workstreams/{api_workstream['workstream_id']}/units",
        json={
            "title": "Install distribution board",
            "deadline": "2030-01-01T00:00:00Z",
            "required_proof_count": 1,
            "required_proof_types": ["photo"],
        },
        headers=headers(actors["lead"]),
    )
    assert res.status_code == 201
    return res.get_json()


def _submit(client, headers, actor, unit_id, **body):
    return client.post(f"/api/v1/units/{unit_id}/proofs", json={"type": "photo", **body},
                       headers=headers(actor))


class TestIdentity:
    def test_missing_headers_on_write(self, client, api_workstream):
        res = client.post(f"/api/v1/workstreams/{api_workstream['workstream_id']}/units",
                          json={"title": "x", "deadline": "2030-01-01T00:00:00Z"})
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_unknown_role(self, client, api_unit):
        res = client.get(f"/api/v1/units/{api_unit['id']}",
                         headers={"X-Actor-Id": "x", "X-Actor-Role": "SUPERUSER"})
        assert res.status_code == 400

    def test_anonymous_read_allowed(self, client, api_unit):
        res = client.get(f"/api/v1/units/{api_unit['id']}")
        assert res.status_code == 200
        assert res.get_json()["computed_status"] == "RED"

    def test_personalised_read_needs_identity(self, client):
        assert client.get("/api/v1/notifications").status_code == 401


class TestUnitsAndProofs:
    def test_end_to_end_green(self, client, headers, actors, api_workstream, api_unit):
        res = _submit(client, headers, actors["contributor"], api_unit["id"])
        assert res.status_code == 201
        proof_id = res.get_json()["id"]

        res = client.post(f"/api/v1/units/{api_unit['id']}/proofs/{proof_id}/decision",
                          json={"decision": "approve"}, headers=headers(actors["lead"]))
        assert res.status_code == 200
        assert res.get_json()["new_unit_status"] == "GREEN"

        res = client.get(f"/api/v1/workstreams/{api_workstream['workstream_id']}/status")
        assert res.get_json()["status"] == "GREEN"
        res = client.get(f"/api/v1/programs/{api_workstream['program_id']}/status")
        assert res.get_json()["status"] == "GREEN"

    def test_self_approval_forbidden(self, client, headers, actors, api_unit):
        proof_id = _submit(client, headers, actors["lead"], api_unit["id"]).get_json()["id"]
        res = client.post(f"/api/v1/units/{api_unit['id']}/proofs/{proof_id}/decision",
                          json={"decision": "approve"}, headers=headers(actors["lead"]))
        assert res.status_code == 403
        assert res.get_json()["code"] == "self_approval"

    def test_reject_without_reason(self, client, headers, actors, api_unit):
        proof_id = _submit(client, headers, actors["contributor"], api_unit["id"]).get_json()["id"]
        res = client.post(f"/api/v1/units/{api_unit['id']}/proofs/{proof_id}/decision",
                          json={"decision": "reject"}, headers=headers(actors["lead"]))
        assert res.status_code == 422

    def test_bad_decision_value(self, client, headers, actors, api_unit):
        proof_id = _submit(client, headers, actors["contributor"], api_unit["id"]).get_json()["id"]
        res = client.post(f"/api/v1/units/{api_unit['id']}/proofs/{proof_id}/decision",
                          json={"decision": "maybe"}, headers=headers(actors["lead"]))
        assert res.status_code == 400

    def test_double_decision_conflicts(self, client, headers, actors, api_unit):
        proof_id = _submit(client, headers, actors["contributor"], api_unit["id"]).get_json()["id"]
        url = f"/api/v1/units/{api_unit['id']}/proofs/{proof_id}/decision"
        client.post(url, json={"decision": "approve"}, headers=headers(actors["lead"]))
        res = client.post(url, json={"decision": "approve"}, headers=headers(actors["lead2"]))
        assert res.status_code == 409

    def test_unknown_unit(self, client):
        assert client.get("/api/v1/units/9999").status_code == 404

    def test_invalid_unit_payload(self, client, headers, actors, api_workstream):
        res = client.post(f"/api/v1/workstreams/{api_workstream['workstream_id']}/units",
                          json={"title": "x", "deadline": "2030-01-01T00:00:00Z",
                                "alert_profile": "CUSTOM", "alert_thresholds": [90, 50]},
                          headers=headers(actors["lead"]))
        assert res.status_code == 422

    def test_history(self, client, api_unit):
        res = client.get(f"/api/v1/units/{api_unit['id']}/history")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status_events"][0]["event_type"] == "unit_created"
        assert body["proofs"] == []


class TestEscalationAndBlocking:
    def test_viewer_escalation_is_proposal(self, client, headers, actors, api_unit):
        res = client.post(f"/api/v1/units/{api_unit['id']}/escalate",
                          json={"reason": "Water damage", "level": 1, "mark_as_blocked": True},
                          headers=headers(actors["viewer"]))
        assert res.status_code == 201
        body = res.get_json()
        assert body["blocked_applied"] is False
        assert body["event"]["proposed_blocked"] is True
        assert body["unit"]["is_blocked"] is False

    def test_block_by_contributor_accepted_as_proposal(self, client, headers, actors, api_unit):
        res = client.post(f"/api/v1/units/{api_unit['id']}/block", json={"reason": "Supplier delay"},
                          headers=headers(actors["contributor"]))
        assert res.status_code == 202

    def test_block_and_unblock(self, client, headers, actors, api_unit):
        res = client.post(f"/api/v1/units/{api_unit['id']}/block", json={"reason": "Permit pending"},
                          headers=headers(actors["lead"]))
        assert res.status_code == 200
        assert res.get_json()["unit"]["computed_status"] == "BLOCKED"

        res = client.post(f"/api/v1/units/{api_unit['id']}/unblock", json={},
                          headers=headers(actors["lead"]))
        assert res.status_code == 403
        assert res.get_json()["code"] == "unblock_tier"

        res = client.post(f"/api/v1/units/{api_unit['id']}/unblock", json={"reason": "Granted"},
                          headers=headers(actors["owner"]))
        assert res.status_code == 200
        assert res.get_json()["new_unit_status"] == "RED"

    def test_attention_queue(self, client, headers, actors, api_workstream, api_unit):
        client.post(f"/api/v1/units/{api_unit['id']}/block", json={"reason": "Permit pending"},
                    headers=headers(actors["lead"]))
        res = client.get(f"/api/v1/clients/{api_workstream['client_id']}/attention-queue")
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["id"] == api_unit["id"]

    def test_archive_then_mutation_is_not_found(self, client, headers, actors, api_unit):
        res = client.post(f"/api/v1/units/{api_unit['id']}/archive", json={},
                          headers=headers(actors["owner"]))
        assert res.status_code == 200
        res = client.post(f"/api/v1/units/{api_unit['id']}/block", json={"reason": "x"},
                          headers=headers(actors["lead"]))
        assert res.status_code == 404
        assert client.get(f"/api/v1/units/{api_unit['id']}/history").status_code == 200


class TestAuditAndNotifications:
    def test_audit_filters(self, client, headers, actors, api_unit):
        _submit(client, headers, actors["contributor"], api_unit["id"])
        res = client.get(f"/api/v1/audit?unit_id={api_unit['id']}&event_type=proof_submitted")
        body = res.get_json()
        assert body["total"] == 1
        assert body["events"][0]["triggered_by"] == "field-1"

        res = client.get("/api/v1/audit?actor=lead-1")
        assert {e["event_type"] for e in res.get_json()["events"]} == {"unit_created"}

    def test_audit_bad_since(self, client):
        assert client.get("/api/v1/audit?since=yesterday").status_code == 400

    def test_notifications_list_and_read(self, client, headers, actors, api_unit):
        _submit(client, headers, actors["contributor"], api_unit["id"])
        res = client.get("/api/v1/notifications", headers=headers(actors["lead2"]))
        body = res.get_json()
        assert body["total"] == 1
        notif_id = body["items"][0]["id"]

        res = client.post(f"/api/v1/notifications/{notif_id}/read", headers=headers(actors["lead2"]))
        assert res.status_code == 200
        assert res.get_json()["is_read"] is True

        res = client.get("/api/v1/notifications?unread_only=true", headers=headers(actors["lead2"]))
        assert res.get_json()["total"] == 0


class TestCronAndHealth:
    def test_cron_requires_secret(self, client):
        assert client.post("/api/v1/cron/escalations").status_code == 401

    def test_cron_runs_tick(self, client, api_unit):
        res = client.post("/api/v1/cron/escalations", headers=CRON)
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "success"
        assert body["result"]["evaluated"] == 1
        assert body["result"]["escalated"] == 0

    def test_cron_proof_expiry(self, client):
        res = client.get("/api/v1/cron/proof-expiry", headers=CRON)
        assert res.status_code == 200
        assert res.get_json()["result"]["expired"] == 0

    def test_health(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_request_id_header(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
        assert res.headers.get("X-Request-ID") == "abc123"

    def test_cron_jobs_listing(self, client):
        res = client.get("/api/v1/cron/jobs", headers=CRON)
        assert res.status_code == 200
        names = [j["job_name"] for j in res.get_json()["jobs"]]
        assert names == ["escalation_tick", "proof_expiry_check"]

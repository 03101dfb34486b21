"""HTTP API tests."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

UPDATE = {
    "id": "req-api",
    "requester": "ci",
    "updates": [{"package": "fastapi", "currentVersion": "0.110.0", "targetVersion": "0.111.0", "updateType": "minor"}],
    "compatibilityTest": {"compatibility": 97, "totalTests": 10, "passedTests": 10},
    "performanceTest": {"responseTimeImpact": 1},
    "backup": True,
    "rollbackPlan": "pin fastapi==0.110.0",
}


async def _submit(client: AsyncClient) -> dict:
    resp = await client.post("/api/updates/submit", json=UPDATE)
    assert resp.status_code == 201
    return resp.json()["approvalRequest"]


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["pending"] == 0


@pytest.mark.asyncio
async def test_evaluate(client: AsyncClient):
    resp = await client.post("/api/updates/evaluate", json=UPDATE)
    assert resp.status_code == 200
    data = resp.json()
    assert data["policy"] == "minor"
    assert data["approvalRequired"] is True
    assert data["conditions"]["compatibilityScore"]["status"] == "excellent"
    assert data["conditions"]["maintenanceWindow"]["available"] is False


@pytest.mark.asyncio
async def test_evaluate_rejects_bad_payload(client: AsyncClient):
    resp = await client.post("/api/updates/evaluate", json={"vulnerabilities": [{"severity": "dire"}]})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_approval_lifecycle(client: AsyncClient):
    approval = await _submit(client)
    assert approval["status"] == "pending"

    resp = await client.get("/api/approvals/", params={"status": "pending"})
    assert [a["id"] for a in resp.json()] == [approval["id"]]

    resp = await client.post(f"/api/approvals/{approval['id']}/approve", json={"approver": "alice"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"

    resp = await client.post(
        f"/api/approvals/{approval['id']}/approve", json={"approver": "bob", "comment": "ship it"}
    )
    assert resp.json()["status"] == "executed"

    resp = await client.get(f"/api/approvals/{approval['id']}")
    assert resp.json()["execution"]["status"] == "completed"

    stats = (await client.get("/api/approvals/stats")).json()
    assert stats["total"] == 1
    assert stats["byStatus"]["executed"] == 1
    assert stats["approverStats"]["bob"]["approvals"] == 1


@pytest.mark.asyncio
async def test_error_status_codes(client: AsyncClient):
    approval = await _submit(client)
    approve = f"/api/approvals/{approval['id']}/approve"

    resp = await client.get("/api/approvals/nope")
    assert resp.status_code == 404

    resp = await client.post(approve, json={"approver": "mallory"})
    assert resp.status_code == 403

    await client.post(approve, json={"approver": "alice"})
    resp = await client.post(approve, json={"approver": "alice"})
    assert resp.status_code == 409

    resp = await client.post(
        f"/api/approvals/{approval['id']}/reject", json={"approver": "carol", "reason": "flaky tests"}
    )
    assert resp.json()["status"] == "rejected"
    resp = await client.post(approve, json={"approver": "bob"})
    assert resp.status_code == 409
    assert "not pending" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_execution_failure_is_502(client: AsyncClient, engine, executor):
    executor.fail_at = "verify"
    approval = await _submit(client)
    await client.post(f"/api/approvals/{approval['id']}/approve", json={"approver": "alice"})
    resp = await client.post(f"/api/approvals/{approval['id']}/approve", json={"approver": "bob"})
    assert resp.status_code == 502
    assert engine.get_approval(approval["id"]).status == "execution_failed"


@pytest.mark.asyncio
async def test_cancel_and_expire(client: AsyncClient, clock):
    approval = await _submit(client)
    resp = await client.post(f"/api/approvals/{approval['id']}/cancel", json={"actor": "ci"})
    assert resp.json()["status"] == "cancelled"

    await client.post("/api/updates/submit", json={**UPDATE, "id": "req-later"})
    clock.advance(days=2)
    resp = await client.post("/api/approvals/expire")
    assert resp.json() == {"expired": 1}


@pytest.mark.asyncio
async def test_maintenance_windows(client: AsyncClient, clock):
    body = {
        "start": (clock() + timedelta(hours=1)).isoformat(),
        "end": (clock() + timedelta(hours=3)).isoformat(),
        "description": "db upgrade",
    }
    resp = await client.post("/api/maintenance/windows", json=body)
    assert resp.status_code == 201
    window = resp.json()

    resp = await client.get("/api/maintenance/next")
    assert resp.json()["id"] == window["id"]

    resp = await client.post("/api/maintenance/windows", json={**body, "end": body["start"]})
    assert resp.status_code == 422

    resp = await client.delete(f"/api/maintenance/windows/{window['id']}")
    assert resp.status_code == 204
    assert (await client.get("/api/maintenance/windows")).json() == []
    resp = await client.delete(f"/api/maintenance/windows/{window['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_audit_history(client: AsyncClient):
    await client.post("/api/updates/evaluate", json=UPDATE)
    await _submit(client)

    resp = await client.get("/api/audit/", params={"type": "evaluation"})
    page = resp.json()
    assert page["total"] == 2
    assert page["limit"] == 100
    assert all(e["action"] == "update_request_evaluated" for e in page["entries"])

    resp = await client.get("/api/audit/", params={"limit": 1, "offset": 0})
    assert resp.json()["entries"][0]["action"] == "created"

    resp = await client.get("/api/audit/verify")
    assert resp.json() == {"signed": False, "invalid": []}


@pytest.mark.asyncio
async def test_policies_endpoints(client: AsyncClient):
    resp = await client.get("/api/policies/")
    assert set(resp.json()) == {"security", "patch", "minor", "major", "dependency"}

    policy = (await client.get("/api/policies/minor")).json()
    policy["rules"]["requireMaintenanceWindow"] = False
    resp = await client.put("/api/policies/minor", json=policy)
    assert resp.status_code == 200

    resp = await client.post("/api/updates/evaluate", json=UPDATE)
    assert resp.json()["conditions"]["maintenanceWindow"]["required"] is False

    resp = await client.get("/api/policies/unknown")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_policy_export_import(client: AsyncClient):
    exported = (await client.get("/api/policies/export")).json()
    assert exported["configuration"]["approvalRequired"] is True

    resp = await client.post(
        "/api/policies/import", json={"configuration": {"approvalRequired": False}}
    )
    assert resp.status_code == 200
    assert resp.json()["configuration"]["approvalRequired"] is False
    assert resp.json()["policies"] == exported["policies"]


@pytest.mark.asyncio
async def test_health_reports_queued_audit_lines(client: AsyncClient, engine, monkeypatch):
    async def broken(entry, line):
        raise OSError("disk full")

    monkeypatch.setattr(engine.persistence.store, "append_line", broken)
    await client.post("/api/updates/evaluate", json=UPDATE)
    resp = await client.get("/health")
    assert resp.json()["unsaved"] == ["audit-log"]


@pytest.mark.asyncio
async def test_invalid_import_is_a_domain_error(client: AsyncClient):
    resp = await client.post(
        "/api/policies/import", json={"configuration": {"maxApprovalTime": "soon"}}
    )
    assert resp.status_code == 500
    assert "Invalid configuration" in resp.json()["detail"]
    resp = await client.get("/api/audit/", params={"type": "error"})
    assert resp.json()["entries"][0]["action"] == "policies_import_failed"

import pytest

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_create_and_get_agent(client):
    resp = await client.post("/api/v1/sales-agents", json={
        "name": "Meera Nair",
        "agent_code": "AG-101",
        "email": "meera@salesdesk.co",
    })

    assert resp.status_code == 201
    agent = resp.json()
    assert agent["is_active"] is True

    fetched = await client.get(f"/api/v1/sales-agents/{agent['id']}")
    assert fetched.json()["agent_code"] == "AG-101"


@pytest.mark.asyncio
async def test_duplicate_agent_code(client):
    payload = {"name": "Meera Nair", "agent_code": "AG-101"}
    assert (await client.post("/api/v1/sales-agents", json=payload)).status_code == 201

    resp = await client.post("/api/v1/sales-agents", json={**payload, "name": "Someone Else"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_invalid_email_rejected(client):
    resp = await client.post("/api/v1/sales-agents", json={
        "name": "Meera Nair", "agent_code": "AG-101", "email": "not-an-email",
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_update_and_search(client, agents):
    resp = await client.put(f"/api/v1/sales-agents/{agents[0].id}", json={"phone": "555-0101"})
    assert resp.status_code == 200
    assert resp.json()["phone"] == "555-0101"

    found = await client.get("/api/v1/sales-agents", params={"search": "karan"})
    assert [a["name"] for a in found.json()["items"]] == ["Karan Shah"]


@pytest.mark.asyncio
async def test_deactivated_agent_cannot_receive_shares(client, agents, commission_payload):
    assert (await client.delete(f"/api/v1/sales-agents/{agents[1].id}")).status_code == 204

    active = await client.get("/api/v1/sales-agents", params={"is_active": True})
    assert active.json()["total"] == 1

    resp = await client.post("/api/v1/commissions", json=commission_payload())
    assert resp.status_code == 422
    assert "not active" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_agent(client):
    resp = await client.get("/api/v1/sales-agents/00000000-0000-0000-0000-000000000001")
    assert resp.status_code == 404

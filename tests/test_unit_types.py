import pytest

from app.models.agent_listing import AgentUnitType


@pytest.fixture
def project(client, auth):
    auth.login("dev-1", "developer")
    r = client.post("/projects", json={
        "title": "Creek Vista",
        "location": "Dubai Creek Harbour",
        "payment_plan": "70/30",
        "handover_date": "2028-06-30",
    })
    assert r.status_code == 201
    return r.json()


def _unit(client, project_id, **extra):
    payload = {"project_id": project_id, "name": "2 Bedroom", "size_range": "1100-1400",
               "price_range": "2100000-2600000", "units_available": 12}
    payload.update(extra)
    return client.post("/unit-types", json=payload)


def test_create_list_and_update(client, project):
    r = _unit(client, project["id"])
    assert r.status_code == 201
    unit = r.json()
    assert unit["developer_id"] == "dev-1"
    assert unit["status"] == "available"

    _unit(client, project["id"], name="Penthouse", status="sold_out")
    listed = client.get("/unit-types", params={"project_id": project["id"]}).json()
    assert {u["name"] for u in listed} == {"2 Bedroom", "Penthouse"}
    sold = client.get("/unit-types", params={"project_id": project["id"], "status": "sold_out"}).json()
    assert [u["name"] for u in sold] == ["Penthouse"]

    r = client.patch(f"/unit-types/{unit['id']}", json={"status": "reserved", "units_available": 0})
    assert r.status_code == 200
    assert r.json()["status"] == "reserved"
    assert r.json()["units_available"] == 0

    assert client.get(f"/unit-types/{unit['id']}").json()["status"] == "reserved"


def test_only_project_creator_manages_unit_types(client, auth, project):
    unit = _unit(client, project["id"]).json()

    auth.login("dev-2", "developer")
    assert _unit(client, project["id"]).status_code == 403
    assert client.patch(f"/unit-types/{unit['id']}", json={"name": "x"}).status_code == 403
    assert client.delete(f"/unit-types/{unit['id']}").status_code == 403

    assert _unit(client, "missing").status_code == 404
    assert client.get("/unit-types/missing").status_code == 404


def test_invalid_unit_type_payloads(client, project):
    assert _unit(client, project["id"], name=" ").status_code == 422
    assert _unit(client, project["id"], status="gone").status_code == 422
    assert _unit(client, project["id"], units_available=-1).status_code == 422

    unit = _unit(client, project["id"]).json()
    for field in ("name", "status", "images"):
        assert client.patch(f"/unit-types/{unit['id']}", json={field: None}).status_code == 422
    assert client.patch(f"/unit-types/{unit['id']}", json={"name": "  "}).status_code == 422


def test_delete_removes_agent_display_links(client, db, project):
    unit = _unit(client, project["id"]).json()
    db.add(AgentUnitType(agent_id="agent-1", unit_type_id=unit["id"]))
    db.commit()

    assert client.delete(f"/unit-types/{unit['id']}").status_code == 204

    db.expire_all()
    assert db.query(AgentUnitType).count() == 0
    assert client.get(f"/unit-types/{unit['id']}").status_code == 404


def test_unit_type_pdf(client, project):
    unit = _unit(client, project["id"], notes="Sea view from floor 20").json()

    r = client.get(f"/unit-types/{unit['id']}/pdf")

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert 'filename="creek-vista-2-bedroom.pdf"' in r.headers["content-disposition"]
    assert r.content.startswith(b"%PDF")

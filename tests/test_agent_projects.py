from datetime import datetime, timezone

import pytest

from app.models.agent_listing import AgentProject, AgentUnitType
from app.models.contract import DeveloperAgencyContract
from app.models.project import Project
from app.models.unit_type import UnitType
from app.services.agent_projects import build_agent_projects, parse_range

from helpers import make_profile

NOW = datetime(2026, 10, 19, tzinfo=timezone.utc)


@pytest.mark.parametrize("text,expected", [
    ("650-1800", (650, 1800)),
    ("900", (900, 900)),
    ("1,200 - 2,400 sqft", (1200, 2400)),
    ("abc-500", (0, 500)),
    ("", (0, 0)),
    (None, (0, 0)),
])
def test_parse_range(text, expected):
    assert parse_range(text) == expected


def _project(db, developer_id, title, **kwargs):
    project = Project(
        title=title,
        location="Dubai Marina",
        creator_id=developer_id,
        creator_type="developer",
        status="published",
        **kwargs,
    )
    db.add(project)
    db.commit()
    return project


def _contract(db, developer_id, agency_id, status="active"):
    db.add(DeveloperAgencyContract(developer_id=developer_id, agency_id=agency_id, status=status))
    db.commit()


@pytest.fixture
def network(db):
    """An agency with one active developer (two projects) and one pending developer."""
    make_profile(db, "agency-1", "agency", full_name="Prime Realty")
    make_profile(db, "agent-1", "agent", full_name="Sara", agency_id="agency-1")
    make_profile(db, "dev-1", "developer", full_name="Emaar")
    make_profile(db, "dev-2", "developer", full_name="Pending Builders")
    _contract(db, "dev-1", "agency-1", "active")
    _contract(db, "dev-2", "agency-1", "pending")

    tower = _project(db, "dev-1", "Marina Tower", price=900000, payment_plan="60/40", handover_date="2027-12-31")
    db.add_all([
        UnitType(project_id=tower.id, developer_id="dev-1", name="1BR",
                 price_range="1000000-2000000", size_range="650-900"),
        UnitType(project_id=tower.id, developer_id="dev-1", name="3BR",
                 price_range="1500000-3000000", size_range="1200-1800"),
    ])
    villas = _project(db, "dev-1", "Palm Villas", price=5000000)
    _project(db, "dev-2", "Hidden Gardens", price=100)
    db.add(AgentProject(agent_id="agent-1", project_id=villas.id))
    db.commit()
    return {"tower": tower.id, "villas": villas.id}


def test_agent_without_agency_sees_nothing(db):
    make_profile(db, "agent-x", "agent")
    assert build_agent_projects(db, "agent-x") == []


def test_agency_without_active_contracts_sees_nothing(db):
    make_profile(db, "agency-2", "agency")
    make_profile(db, "agent-2", "agent", agency_id="agency-2")
    _contract(db, "dev-9", "agency-2", "pending")
    assert build_agent_projects(db, "agent-2") == []


def test_projects_of_active_developers_with_bounds(db, network):
    views = {v.title: v for v in build_agent_projects(db, "agent-1", now=NOW)}

    assert set(views) == {"Marina Tower", "Palm Villas"}

    tower = views["Marina Tower"]
    assert tower.developer_name == "Emaar"
    assert (tower.min_price, tower.max_price) == (1000000, 3000000)
    assert (tower.min_size, tower.max_size) == (650, 1800)
    assert tower.payment_plan == "60/40"
    assert tower.handover_date == "2027-12-31"
    assert len(tower.unit_types) == 2
    assert tower.added_to_agent_page is False


def test_defaults_without_unit_types(db, network):
    villas = next(v for v in build_agent_projects(db, "agent-1", now=NOW) if v.title == "Palm Villas")

    assert (villas.min_price, villas.max_price) == (5000000, 5000000)
    assert (villas.min_size, villas.max_size) == (0, 0)
    assert villas.payment_plan == "40/60"
    assert villas.handover_date.startswith("2027-10-19")
    assert villas.added_to_agent_page is True


def test_endpoint_is_cached_until_refresh(client, auth, db, network):
    auth.login("agent-1", "agent")

    first = client.get("/agent/projects")
    assert first.status_code == 200
    assert len(first.json()) == 2

    _project(db, "dev-1", "Creek Residences")

    assert len(client.get("/agent/projects").json()) == 2
    refreshed = client.get("/agent/projects", params={"refresh": "true"})
    assert len(refreshed.json()) == 3


def test_add_project_to_page_is_idempotent(client, auth, db, network):
    auth.login("agent-1", "agent")
    client.get("/agent/projects")

    r1 = client.post(f"/agent/projects/{network['tower']}")
    r2 = client.post(f"/agent/projects/{network['tower']}")
    assert r1.status_code == 200
    assert r1.json()["id"] == r2.json()["id"]

    # the cached list was invalidated
    tower = next(p for p in client.get("/agent/projects").json() if p["title"] == "Marina Tower")
    assert tower["added_to_agent_page"] is True


def test_projects_of_other_developers_cannot_be_added(client, auth, db, network):
    auth.login("agent-1", "agent")
    hidden = db.query(Project).filter(Project.title == "Hidden Gardens").one()

    assert client.post(f"/agent/projects/{hidden.id}").status_code == 403
    assert client.post("/agent/projects/missing").status_code == 404


def test_display_and_hide_unit_types(client, auth, db, network):
    auth.login("agent-1", "agent")
    unit = db.query(UnitType).filter(UnitType.name == "1BR").one()

    r = client.post(f"/agent/unit-types/{unit.id}")
    assert r.status_code == 200
    assert client.post(f"/agent/unit-types/{unit.id}").json()["id"] == r.json()["id"]

    listed = client.get("/agent/unit-types").json()
    assert [u["unit_type_id"] for u in listed] == [unit.id]

    # displaying a unit type also adds its project
    db.expire_all()
    assert db.query(AgentProject).filter_by(agent_id="agent-1", project_id=network["tower"]).count() == 1

    assert client.delete(f"/agent/unit-types/{unit.id}").status_code == 204
    assert client.delete(f"/agent/unit-types/{unit.id}").status_code == 404
    db.expire_all()
    assert db.query(AgentUnitType).count() == 0


def test_agent_routes_require_agent_role(client, auth, network):
    auth.login("dev-1", "developer")
    assert client.get("/agent/projects").status_code == 403

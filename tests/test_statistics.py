from datetime import datetime, timedelta, timezone

import pytest

from app.models.agent_listing import AgentProject, AgentUnitType
from app.models.contract import DeveloperAgencyContract
from app.models.page_view import PageView
from app.models.project import Project
from app.models.unit_type import UnitType
from app.services.statistics import agent_statistics, developer_statistics, growth_rate

from helpers import make_profile

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("current,previous,expected", [
    (5, 0, 500.0),
    (0, 0, 0.0),
    (15, 10, 50.0),
    (5, 10, -50.0),
])
def test_growth_rate(current, previous, expected):
    assert growth_rate(current, previous) == expected


@pytest.fixture
def dashboard(db):
    make_profile(db, "dev-1", "developer", full_name="Emaar")
    make_profile(db, "agency-1", "agency")
    make_profile(db, "agency-2", "agency")
    make_profile(db, "agent-1", "agent", agency_id="agency-1")
    make_profile(db, "agent-2", "agent", agency_id="agency-1")
    make_profile(db, "agent-3", "agent", agency_id="agency-2")
    db.add_all([
        DeveloperAgencyContract(developer_id="dev-1", agency_id="agency-1", status="active"),
        DeveloperAgencyContract(developer_id="dev-1", agency_id="agency-2", status="pending"),
    ])

    projects = [
        Project(title="A", location="X", creator_id="dev-1", creator_type="developer", status="published"),
        Project(title="B", location="X", creator_id="dev-1", creator_type="developer", status="validated"),
        Project(title="C", location="X", creator_id="dev-1", creator_type="developer", status="draft"),
        Project(title="Other", location="X", creator_id="dev-9", creator_type="developer", status="published"),
    ]
    db.add_all(projects)
    db.flush()
    a, b, c, other = projects

    db.add_all([
        UnitType(project_id=a.id, developer_id="dev-1", name="1BR", status="available"),
        UnitType(project_id=a.id, developer_id="dev-1", name="2BR", status="sold_out"),
        UnitType(project_id=b.id, developer_id="dev-1", name="Villa", status="available"),
        UnitType(project_id=other.id, developer_id="dev-9", name="Studio", status="available"),
    ])
    db.add_all([
        # this month: 2 additions, last month: 1
        AgentProject(agent_id="agent-1", project_id=a.id, created_at=NOW - timedelta(days=2)),
        AgentProject(agent_id="agent-1", project_id=b.id, created_at=NOW - timedelta(days=10)),
        AgentProject(agent_id="agent-2", project_id=a.id, created_at=NOW - timedelta(days=25)),
    ])
    db.add_all([
        # last 30 days: 3 views, 30-60 days ago: 2 views
        PageView(property_id=a.id, viewer_id="agent-1", profile_id="agent-1", viewed_at=NOW - timedelta(days=1)),
        PageView(property_id=a.id, viewer_id=None, profile_id="agent-1", viewed_at=NOW - timedelta(days=1, hours=2)),
        PageView(property_id=b.id, viewer_id=None, viewed_at=NOW - timedelta(days=5)),
        PageView(property_id=b.id, viewer_id="agent-2", viewed_at=NOW - timedelta(days=40)),
        PageView(property_id=c.id, viewer_id=None, profile_id="agent-1", viewed_at=NOW - timedelta(days=45)),
        PageView(property_id=other.id, viewer_id=None, viewed_at=NOW - timedelta(days=1)),
    ])
    db.add(AgentUnitType(agent_id="agent-1", unit_type_id=db.query(UnitType).filter_by(name="1BR").one().id))
    db.commit()


def test_developer_statistics(db, dashboard):
    stats = developer_statistics(db, "dev-1", now=NOW)

    assert stats.agency_count == 2
    assert stats.active_agency_count == 1
    assert stats.agent_count == 2
    assert stats.agents_showcasing_count == 2
    assert stats.project_count == 3
    assert stats.active_project_count == 2
    assert stats.unit_count == 2
    assert stats.property_views == 5
    assert stats.agent_page_views == 2
    assert stats.buyer_page_views == 3
    assert stats.views_growth_rate == 50.0
    # Oct 2026: days 2 and 10 back are this month, 25 back is September
    assert stats.agent_growth_rate == 100.0


def test_developer_without_anything(db):
    stats = developer_statistics(db, "dev-new", now=NOW)
    assert stats.project_count == 0
    assert stats.property_views == 0
    assert stats.agent_growth_rate == 0.0


def test_agent_statistics(db, dashboard):
    stats = agent_statistics(db, "agent-1", now=NOW)

    assert stats.total_projects == 2
    assert stats.total_unit_types == 1
    assert stats.new_projects_30d == 2
    assert stats.total_views == 3
    assert stats.views_30d == 2
    assert stats.unique_viewing_days == 2


def test_developer_statistics_endpoint_and_export(client, auth, dashboard):
    auth.login("dev-1", "developer")

    r = client.get("/statistics/developer")
    assert r.status_code == 200
    assert r.json()["project_count"] == 3

    export = client.get("/statistics/developer/export")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    lines = export.text.splitlines()
    assert lines[0].startswith("Developer Statistics,")
    assert "Total Agencies,2" in lines
    assert "Total Property Views,5" in lines


def test_statistics_are_cached_until_refresh(client, auth, db, dashboard):
    auth.login("dev-1", "developer")
    assert client.get("/statistics/developer").json()["project_count"] == 3

    db.add(Project(title="D", location="X", creator_id="dev-1", creator_type="developer"))
    db.commit()

    assert client.get("/statistics/developer").json()["project_count"] == 3
    assert client.get("/statistics/developer", params={"refresh": "true"}).json()["project_count"] == 4


def test_agent_statistics_endpoint(client, auth, dashboard):
    auth.login("agent-1", "agent")
    r = client.get("/statistics/agent")
    assert r.status_code == 200
    assert r.json()["total_projects"] == 2

    assert client.get("/statistics/developer").status_code == 403

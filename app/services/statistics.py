"""
Dashboard statistics for developers and agents.

Counts are computed from the raw rows in Python, one query per table, so the
same code runs on Postgres and on SQLite.
"""
import csv
import io
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.models.agent_listing import AgentProject, AgentUnitType
from app.models.contract import DeveloperAgencyContract
from app.models.page_view import PageView
from app.models.profile import Profile
from app.models.project import Project
from app.models.unit_type import UnitType
from app.schemas.statistics import AgentStatisticsOut, DeveloperStatisticsOut

ACTIVE_PROJECT_STATUSES = ("published", "validated")


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def growth_rate(current: int, previous: int) -> float:
    """Percent change; with no previous activity every new item counts as 100%."""
    if previous == 0:
        return float(current * 100)
    return (current - previous) / previous * 100


def _month_start(now: datetime, months_back: int = 0) -> datetime:
    year, month = now.year, now.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


def _between(dt: datetime, start: datetime, end: Optional[datetime] = None) -> bool:
    dt = _aware(dt)
    return dt >= start and (end is None or dt < end)


def developer_statistics(db: Session, developer_id: str, now: Optional[datetime] = None) -> DeveloperStatisticsOut:
    now = now or datetime.now(timezone.utc)

    contracts = (
        db.query(DeveloperAgencyContract)
        .filter(DeveloperAgencyContract.developer_id == developer_id)
        .all()
    )
    active_agency_ids = [c.agency_id for c in contracts if c.status == "active"]

    projects = (
        db.query(Project)
        .filter(Project.creator_type == "developer")
        .filter(Project.creator_id == developer_id)
        .all()
    )
    project_ids = [p.id for p in projects]

    agent_links = []
    unit_types = []
    views = []
    if project_ids:
        agent_links = db.query(AgentProject).filter(AgentProject.project_id.in_(project_ids)).all()
        unit_types = db.query(UnitType).filter(UnitType.project_id.in_(project_ids)).all()
        views = db.query(PageView).filter(PageView.property_id.in_(project_ids)).all()

    agent_count = 0
    if active_agency_ids:
        agent_count = (
            db.query(Profile)
            .filter(Profile.role == "agent")
            .filter(Profile.agency_id.in_(active_agency_ids))
            .count()
        )

    thirty_days_ago = now - timedelta(days=30)
    sixty_days_ago = now - timedelta(days=60)
    current_views = sum(1 for v in views if _between(v.viewed_at, thirty_days_ago))
    previous_views = sum(1 for v in views if _between(v.viewed_at, sixty_days_ago, thirty_days_ago))

    this_month = _month_start(now)
    last_month = _month_start(now, 1)
    current_agents = sum(1 for a in agent_links if _between(a.created_at, this_month))
    previous_agents = sum(1 for a in agent_links if _between(a.created_at, last_month, this_month))

    return DeveloperStatisticsOut(
        agency_count=len(contracts),
        active_agency_count=len(active_agency_ids),
        agent_count=agent_count,
        agents_showcasing_count=len({a.agent_id for a in agent_links}),
        project_count=len(projects),
        active_project_count=sum(1 for p in projects if p.status in ACTIVE_PROJECT_STATUSES),
        unit_count=sum(1 for u in unit_types if u.status == "available"),
        agent_page_views=sum(1 for v in views if v.viewer_id is not None),
        buyer_page_views=sum(1 for v in views if v.viewer_id is None),
        property_views=len(views),
        agent_growth_rate=growth_rate(current_agents, previous_agents),
        views_growth_rate=growth_rate(current_views, previous_views),
        last_updated=now,
    )


def agent_statistics(db: Session, agent_id: str, now: Optional[datetime] = None) -> AgentStatisticsOut:
    now = now or datetime.now(timezone.utc)
    thirty_days_ago = now - timedelta(days=30)

    links = db.query(AgentProject).filter(AgentProject.agent_id == agent_id).all()
    unit_type_count = db.query(AgentUnitType).filter(AgentUnitType.agent_id == agent_id).count()
    views = db.query(PageView).filter(PageView.profile_id == agent_id).all()

    return AgentStatisticsOut(
        total_projects=len(links),
        total_unit_types=unit_type_count,
        new_projects_30d=sum(1 for link in links if _between(link.created_at, thirty_days_ago)),
        total_views=len(views),
        views_30d=sum(1 for v in views if _between(v.viewed_at, thirty_days_ago)),
        unique_viewing_days=len({_aware(v.viewed_at).date() for v in views}),
        refreshed_at=now,
    )


def developer_statistics_csv(stats: DeveloperStatisticsOut) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["Developer Statistics", f"Generated on {stats.last_updated.isoformat()}"])
    writer.writerow([])
    writer.writerow(["Metric", "Value"])
    writer.writerows([
        ["Total Agencies", stats.agency_count],
        ["Active Agencies", stats.active_agency_count],
        ["Total Agents", stats.agent_count],
        ["Agents Showcasing Projects", stats.agents_showcasing_count],
        ["Total Projects", stats.project_count],
        ["Active Projects", stats.active_project_count],
        ["Total Units for Sale", stats.unit_count],
        ["Agent Page Views", stats.agent_page_views],
        ["Buyer Page Views", stats.buyer_page_views],
        ["Total Property Views", stats.property_views],
        ["Agent Growth Rate (%)", round(stats.agent_growth_rate, 1)],
        ["Views Growth Rate (%)", round(stats.views_growth_rate, 1)],
    ])
    return buf.getvalue()

"""
Projects visible to an agent.

An agent sees every project created by a developer that has an active
collaboration contract with the agent's agency. The chain is:

    agent profile -> agency id -> active contracts -> developer ids
    -> developer projects -> agent's existing links -> unit types
    -> developer profiles

Any failing query aborts the whole chain; callers surface one error message.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.agent_listing import AgentProject
from app.models.contract import DeveloperAgencyContract
from app.models.profile import Profile
from app.models.project import Project
from app.models.unit_type import UnitType
from app.schemas.agent_project import AgentProjectView
from app.schemas.unit_type import UnitTypeOut

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_PLAN = "40/60"


def _to_number(part: str) -> float:
    cleaned = "".join(ch for ch in part if ch.isdigit() or ch == ".")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def parse_range(text: Optional[str]) -> Tuple[float, float]:
    """
    Parse a free-text range like "650-1800" into (low, high).

    A single value gives (value, value); thousands separators and units are
    ignored ("1,200 sqft"); anything unparseable becomes 0.
    """
    if not text:
        return 0.0, 0.0
    parts = str(text).replace(",", "").split("-")
    low = _to_number(parts[0])
    high = _to_number(parts[1]) if len(parts) > 1 else low
    return low, high


def _bounds(ranges: List[Tuple[float, float]]) -> Tuple[Optional[float], Optional[float]]:
    values = [v for pair in ranges for v in pair if v > 0]
    if not values:
        return None, None
    return min(values), max(values)


def agent_agency_id(db: Session, agent_id: str) -> Optional[str]:
    profile = db.query(Profile).filter(Profile.id == agent_id).first()
    return profile.agency_id if profile else None


def active_developer_ids(db: Session, agency_id: str) -> List[str]:
    rows = (
        db.query(DeveloperAgencyContract.developer_id)
        .filter(DeveloperAgencyContract.agency_id == agency_id)
        .filter(DeveloperAgencyContract.status == "active")
        .all()
    )
    # keep first-seen order, drop duplicates
    return list(dict.fromkeys(r.developer_id for r in rows))


def build_agent_projects(db: Session, agent_id: str, now: Optional[datetime] = None) -> List[AgentProjectView]:
    now = now or datetime.now(timezone.utc)

    agency_id = agent_agency_id(db, agent_id)
    if not agency_id:
        logger.info("Agent %s has no agency; no projects visible", agent_id)
        return []

    developer_ids = active_developer_ids(db, agency_id)
    if not developer_ids:
        return []

    projects = (
        db.query(Project)
        .filter(Project.creator_id.in_(developer_ids))
        .filter(Project.creator_type == "developer")
        .order_by(Project.created_at.desc())
        .all()
    )
    if not projects:
        return []

    added_ids = {
        row.project_id
        for row in db.query(AgentProject.project_id).filter(AgentProject.agent_id == agent_id).all()
    }

    unit_types_by_project: Dict[str, List[UnitType]] = {}
    for unit in db.query(UnitType).filter(UnitType.project_id.in_([p.id for p in projects])).all():
        unit_types_by_project.setdefault(unit.project_id, []).append(unit)

    developers = {
        d.id: d for d in db.query(Profile).filter(Profile.id.in_(developer_ids)).all()
    }

    default_handover = (now + timedelta(days=365)).isoformat()

    views = []
    for project in projects:
        developer = developers.get(project.creator_id)
        units = unit_types_by_project.get(project.id, [])

        min_price, max_price = _bounds([parse_range(u.price_range) for u in units])
        min_size, max_size = _bounds([parse_range(u.size_range) for u in units])

        views.append(AgentProjectView(
            id=project.id,
            title=project.title,
            description=project.description,
            location=project.location,
            developer_id=project.creator_id,
            developer_name=(developer.full_name if developer and developer.full_name else "Unknown Developer"),
            developer_logo=developer.avatar_url if developer else None,
            min_price=min_price if min_price is not None else (project.price or 0),
            max_price=max_price if max_price is not None else (project.price or 0),
            min_size=min_size or 0,
            max_size=max_size or 0,
            handover_date=project.handover_date or default_handover,
            payment_plan=project.payment_plan or DEFAULT_PAYMENT_PLAN,
            images=project.images or [],
            videos=project.videos or [],
            brochure_url=project.brochure_url,
            is_prelaunch=bool(project.is_prelaunch),
            lat=project.lat,
            lng=project.lng,
            unit_types=[UnitTypeOut.model_validate(u) for u in units],
            added_to_agent_page=project.id in added_ids,
        ))
    return views

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import agent_projects_key, get_db, get_query_cache, run_in_session
from app.core.auth import User, require_role
from app.core.cache import QueryCache
from app.models.agent_listing import AgentProject, AgentUnitType
from app.models.project import Project
from app.models.unit_type import UnitType
from app.schemas.agent_project import AgentProjectLinkOut, AgentProjectView, AgentUnitTypeOut
from app.services.agent_projects import active_developer_ids, agent_agency_id, build_agent_projects

router = APIRouter(prefix="/agent", tags=["agent"])


def _ensure_visible(db: Session, agent_id: str, project: Project) -> None:
    agency_id = agent_agency_id(db, agent_id)
    if not agency_id or project.creator_id not in active_developer_ids(db, agency_id):
        raise HTTPException(status_code=403, detail="This project is not available to your agency")


def _link_project(db: Session, agent_id: str, project_id: str) -> AgentProject:
    link = (
        db.query(AgentProject)
        .filter(AgentProject.agent_id == agent_id)
        .filter(AgentProject.project_id == project_id)
        .first()
    )
    if link is None:
        link = AgentProject(agent_id=agent_id, project_id=project_id)
        db.add(link)
        db.flush()
    return link


@router.get("/projects", response_model=List[AgentProjectView])
async def list_agent_projects(
    refresh: bool = Query(False, description="bypass the cache"),
    current_user: User = Depends(require_role("agent")),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Projects of every developer with an active contract with the agent's
    agency, with price and size bounds taken from their unit types.
    """
    query = cache.query(
        agent_projects_key(current_user.id),
        lambda: run_in_session(build_agent_projects, current_user.id),
    )
    state = await (query.refetch() if refresh else query.load())
    if not state.ok:
        raise HTTPException(status_code=500, detail="Failed to load projects. Please try again later.")
    return state.data


@router.post("/projects/{project_id}", response_model=AgentProjectLinkOut)
async def add_project_to_page(
    project_id: str,
    current_user: User = Depends(require_role("agent")),
    cache: QueryCache = Depends(get_query_cache),
):
    """Show a project on the agent's page. Adding it twice is a no-op."""
    def add(db: Session) -> AgentProjectLinkOut:
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        _ensure_visible(db, current_user.id, project)
        link = _link_project(db, current_user.id, project.id)
        db.commit()
        db.refresh(link)
        return AgentProjectLinkOut.model_validate(link)

    result = await run_in_session(add)
    cache.invalidate(agent_projects_key(current_user.id))
    return result


@router.get("/unit-types", response_model=List[AgentUnitTypeOut])
def list_displayed_unit_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role("agent")),
):
    return (
        db.query(AgentUnitType)
        .filter(AgentUnitType.agent_id == current_user.id)
        .order_by(AgentUnitType.created_at.desc())
        .all()
    )


@router.post("/unit-types/{unit_type_id}", response_model=AgentUnitTypeOut)
async def display_unit_type(
    unit_type_id: str,
    current_user: User = Depends(require_role("agent")),
    cache: QueryCache = Depends(get_query_cache),
):
    """Display a unit type among the agent's properties; its project is added too."""
    def add(db: Session) -> AgentUnitTypeOut:
        unit = db.query(UnitType).filter(UnitType.id == unit_type_id).first()
        if not unit:
            raise HTTPException(status_code=404, detail="Unit type not found")
        _ensure_visible(db, current_user.id, unit.project)

        _link_project(db, current_user.id, unit.project_id)
        link = (
            db.query(AgentUnitType)
            .filter(AgentUnitType.agent_id == current_user.id)
            .filter(AgentUnitType.unit_type_id == unit.id)
            .first()
        )
        if link is None:
            link = AgentUnitType(agent_id=current_user.id, unit_type_id=unit.id)
            db.add(link)
        db.commit()
        db.refresh(link)
        return AgentUnitTypeOut.model_validate(link)

    result = await run_in_session(add)
    cache.invalidate(agent_projects_key(current_user.id))
    return result


@router.delete("/unit-types/{unit_type_id}", status_code=204)
async def hide_unit_type(
    unit_type_id: str,
    current_user: User = Depends(require_role("agent")),
    cache: QueryCache = Depends(get_query_cache),
):
    def remove(db: Session) -> None:
        link = (
            db.query(AgentUnitType)
            .filter(AgentUnitType.agent_id == current_user.id)
            .filter(AgentUnitType.unit_type_id == unit_type_id)
            .first()
        )
        if not link:
            raise HTTPException(status_code=404, detail="Unit type is not displayed on your page")
        db.delete(link)
        db.commit()

    await run_in_session(remove)
    cache.invalidate(agent_projects_key(current_user.id))
    return None

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from sqlalchemy import func, or_
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool

from app.api.deps import (
    get_query_cache,
    get_storage,
    invalidate_project_views,
    marketplace_key,
    run_in_session,
)
from app.core.audit import log_audit
from app.core.auth import User, get_optional_user, require_role
from app.core.cache import QueryCache
from app.core.config import settings
from app.core.retry import fetch_with_retry
from app.core.storage import PROPERTIES_BUCKET, StorageClient, StorageError, object_path
from app.core.uploads import guess_content_type, read_image
from app.models.agent_listing import AgentProject, AgentUnitType
from app.models.page_view import PageView
from app.models.project import Project
from app.models.unit_type import UnitType
from app.schemas.project import (
    PageViewCreate,
    ProjectCreate,
    ProjectDetailOut,
    ProjectOut,
    ProjectUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])

ProjectFilter = Literal["all", "regular", "prelaunch", "imported"]
SortKey = Literal["created_at", "updated_at", "launch_date", "title", "price", "location", "status"]

PUBLIC_STATUSES = ("published", "validated")
CREATOR_ROLES = ("developer", "agent")


def apply_project_filters(q, filter_type: str, search: Optional[str]):
    if filter_type == "prelaunch":
        q = q.filter(Project.is_prelaunch.is_(True))
    elif filter_type == "imported":
        q = q.filter(Project.entry_type == "imported")
    elif filter_type == "regular":
        q = q.filter(Project.is_prelaunch.is_(False), Project.entry_type != "imported")

    # search: title/location/description
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(
            Project.title.ilike(like)
            | Project.location.ilike(like)
            | Project.description.ilike(like)
        )
    return q


def apply_project_sort(q, sort: str, direction: str):
    column = getattr(Project, sort)
    if sort in ("title", "location"):
        column = func.lower(column)
    return q.order_by(column.asc() if direction == "asc" else column.desc(), Project.id)


def _get_own_project(db: Session, project_id: str, user: User) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.creator_id != user.id:
        raise HTTPException(status_code=403, detail="Only the project creator can modify this project")
    return project


# ---- reads ----

@router.get("", response_model=List[ProjectOut])
async def list_my_projects(
    current_user: User = Depends(require_role(*CREATOR_ROLES)),
    filter: ProjectFilter = Query("all", description="all|regular|prelaunch|imported"),
    search: Optional[str] = Query(None, description="search by title/location/description"),
    sort: SortKey = Query("created_at"),
    direction: Literal["asc", "desc"] = Query("desc"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """
    The caller's own projects. Reads are retried with backoff on transient
    database errors.
    """
    def load(db: Session) -> List[ProjectOut]:
        q = db.query(Project).filter(Project.creator_id == current_user.id)
        q = apply_project_filters(q, filter, search)
        q = apply_project_sort(q, sort, direction)
        return [ProjectOut.model_validate(p) for p in q.offset(offset).limit(limit).all()]

    return await fetch_with_retry(
        lambda: run_in_session(load),
        max_retries=settings.RETRY_MAX_RETRIES,
        base_delay=settings.RETRY_BASE_DELAY_SECONDS,
        retry_on=(OperationalError,),
    )


@router.get("/marketplace", response_model=List[ProjectOut])
async def marketplace(
    cache: QueryCache = Depends(get_query_cache),
    search: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    contract_type: Optional[Literal["Sale", "Rent"]] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    prelaunch: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Published and validated projects, public. Results are cached per filter set."""
    def load(db: Session) -> List[ProjectOut]:
        q = db.query(Project).filter(Project.status.in_(PUBLIC_STATUSES))
        q = apply_project_filters(q, "all", search)
        if location:
            q = q.filter(Project.location.ilike(f"%{location.strip()}%"))
        if contract_type:
            q = q.filter(Project.contract_type == contract_type)
        if min_price is not None:
            q = q.filter(Project.price >= min_price)
        if max_price is not None:
            q = q.filter(Project.price <= max_price)
        if prelaunch is not None:
            q = q.filter(Project.is_prelaunch.is_(prelaunch))
        q = q.order_by(Project.created_at.desc(), Project.id)
        return [ProjectOut.model_validate(p) for p in q.offset(offset).limit(limit).all()]

    key = marketplace_key(search, location, contract_type, min_price, max_price, prelaunch, limit, offset)
    state = await cache.load(key, lambda: run_in_session(load))
    if not state.ok:
        raise HTTPException(status_code=500, detail="Failed to load marketplace. Please try again later.")
    return state.data


@router.get("/{project_id}", response_model=ProjectDetailOut)
async def get_project(
    project_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Public projects are visible to everyone; drafts only to their creator."""
    def load(db: Session) -> ProjectDetailOut:
        project = (
            db.query(Project)
            .options(selectinload(Project.unit_types))
            .filter(Project.id == project_id)
            .first()
        )
        is_creator = current_user is not None and project is not None and project.creator_id == current_user.id
        if not project or (project.status not in PUBLIC_STATUSES and not is_creator):
            raise HTTPException(status_code=404, detail="Project not found")
        return ProjectDetailOut.model_validate(project)

    return await run_in_session(load)


# ---- writes ----

@router.post("", response_model=ProjectDetailOut, status_code=201)
async def create_project(
    payload: ProjectCreate,
    current_user: User = Depends(require_role(*CREATOR_ROLES)),
    cache: QueryCache = Depends(get_query_cache),
):
    """Create a project, together with its unit types when given, in one transaction."""
    def create(db: Session) -> ProjectDetailOut:
        data = payload.model_dump(exclude={"unit_types"})
        project = Project(
            **data,
            entry_type="prelaunch" if payload.is_prelaunch else "manual",
            creator_id=current_user.id,
            creator_type=current_user.role,
        )
        for unit in payload.unit_types:
            project.unit_types.append(UnitType(**unit.model_dump(), developer_id=current_user.id))
        db.add(project)
        db.flush()

        log_audit(
            db,
            actor=current_user,
            action="created",
            entity_type="project",
            entity_id=project.id,
            project_id=project.id,
            description=f"Created project {project.title} with {len(payload.unit_types)} unit types",
            commit=False,
        )
        db.commit()
        db.refresh(project)
        return ProjectDetailOut.model_validate(project)

    result = await run_in_session(create)
    invalidate_project_views(cache, current_user.id)
    return result


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: str,
    payload: ProjectUpdate,
    current_user: User = Depends(require_role(*CREATOR_ROLES)),
    cache: QueryCache = Depends(get_query_cache),
):
    def update(db: Session) -> ProjectOut:
        project = _get_own_project(db, project_id, current_user)

        data = payload.model_dump(exclude_unset=True)
        for k, v in data.items():
            setattr(project, k, v)

        if project.is_prelaunch and project.launch_date is None:
            raise HTTPException(status_code=400, detail="launch_date is required for prelaunch projects")
        if "is_prelaunch" in data and project.entry_type != "imported":
            project.entry_type = "prelaunch" if project.is_prelaunch else "manual"

        log_audit(
            db,
            actor=current_user,
            action="updated",
            entity_type="project",
            entity_id=project.id,
            project_id=project.id,
            status=project.status,
            description=f"Updated fields: {', '.join(sorted(data)) or 'none'}",
            commit=False,
        )
        db.commit()
        db.refresh(project)
        return ProjectOut.model_validate(project)

    result = await run_in_session(update)
    invalidate_project_views(cache, current_user.id)
    return result


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    current_user: User = Depends(require_role(*CREATOR_ROLES)),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Delete a project with its unit types and every agent link to them.
    Everything happens in one transaction: a failure leaves nothing half-deleted.
    """
    def delete(db: Session) -> None:
        project = _get_own_project(db, project_id, current_user)
        title = project.title
        try:
            unit_ids = [u.id for u in db.query(UnitType.id).filter(UnitType.project_id == project.id).all()]
            if unit_ids:
                db.query(AgentUnitType).filter(AgentUnitType.unit_type_id.in_(unit_ids)).delete(synchronize_session=False)
            db.query(UnitType).filter(UnitType.project_id == project.id).delete(synchronize_session=False)
            db.query(AgentProject).filter(AgentProject.project_id == project.id).delete(synchronize_session=False)
            db.delete(project)
            log_audit(
                db,
                actor=current_user,
                action="deleted",
                entity_type="project",
                entity_id=project_id,
                project_id=project_id,
                description=f"Deleted project {title} and {len(unit_ids)} unit types",
                commit=False,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to delete project %s", project_id)
            raise HTTPException(status_code=500, detail="Failed to delete project")

    await run_in_session(delete)
    invalidate_project_views(cache, current_user.id)
    return None


# ---- media ----

@router.post("/{project_id}/images", response_model=ProjectOut)
async def upload_project_images(
    project_id: str,
    files: List[UploadFile] = File(...),
    current_user: User = Depends(require_role(*CREATOR_ROLES)),
    cache: QueryCache = Depends(get_query_cache),
    storage: StorageClient = Depends(get_storage),
):
    """
    Upload images to the properties bucket and append their URLs to the project.
    All files are validated before anything is uploaded; if a later step fails
    the files uploaded so far are removed again.
    """
    await run_in_session(_get_own_project, project_id, current_user)

    images = [(f, await read_image(f)) for f in files]

    uploaded: List[str] = []
    urls: List[str] = []
    try:
        for f, data in images:
            path = object_path(current_user.id, project_id, filename=f.filename)
            url = await run_in_threadpool(
                storage.upload, PROPERTIES_BUCKET, path, data, guess_content_type(f.filename, f.content_type)
            )
            uploaded.append(path)
            urls.append(url)

        def attach(db: Session) -> ProjectOut:
            project = _get_own_project(db, project_id, current_user)
            project.images = list(project.images or []) + urls
            db.commit()
            db.refresh(project)
            return ProjectOut.model_validate(project)

        result = await run_in_session(attach)
    except StorageError as e:
        await _remove_uploads(storage, uploaded)
        raise HTTPException(status_code=502, detail=f"Image upload failed: {e.message}")
    except Exception:
        await _remove_uploads(storage, uploaded)
        raise

    invalidate_project_views(cache, current_user.id)
    return result


async def _remove_uploads(storage: StorageClient, paths: List[str]) -> None:
    if not paths:
        return
    try:
        await run_in_threadpool(storage.delete, PROPERTIES_BUCKET, paths)
    except StorageError as e:
        logger.error("Could not remove orphaned uploads %s: %s", paths, e.message)


@router.delete("/{project_id}/images", response_model=ProjectOut)
async def remove_project_image(
    project_id: str,
    url: str = Query(..., description="public URL of the image to remove"),
    current_user: User = Depends(require_role(*CREATOR_ROLES)),
    cache: QueryCache = Depends(get_query_cache),
    storage: StorageClient = Depends(get_storage),
):
    project = await run_in_session(
        lambda db: ProjectOut.model_validate(_get_own_project(db, project_id, current_user))
    )
    if url not in project.images:
        raise HTTPException(status_code=404, detail="Image not found on this project")

    path = storage.path_from_url(PROPERTIES_BUCKET, url)
    if path:
        try:
            await run_in_threadpool(storage.delete, PROPERTIES_BUCKET, [path])
        except StorageError as e:
            raise HTTPException(status_code=502, detail=f"Image removal failed: {e.message}")

    def detach(db: Session) -> ProjectOut:
        row = _get_own_project(db, project_id, current_user)
        row.images = [i for i in (row.images or []) if i != url]
        db.commit()
        db.refresh(row)
        return ProjectOut.model_validate(row)

    result = await run_in_session(detach)
    invalidate_project_views(cache, current_user.id)
    return result


@router.post("/{project_id}/views", status_code=201)
async def track_view(
    project_id: str,
    request: Request,
    payload: Optional[PageViewCreate] = None,
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Record a page view; anonymous viewers count as buyers."""
    def record(db: Session) -> str:
        exists = db.query(Project.id).filter(Project.id == project_id).first()
        if not exists:
            raise HTTPException(status_code=404, detail="Project not found")
        view = PageView(
            property_id=project_id,
            profile_id=payload.profile_id if payload else None,
            viewer_id=current_user.id if current_user else None,
            user_agent=request.headers.get("user-agent"),
        )
        db.add(view)
        db.commit()
        return view.id

    view_id = await run_in_session(record)
    return {"ok": True, "id": view_id}

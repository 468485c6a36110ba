import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_query_cache, invalidate_project_views, run_in_session
from app.core.audit import log_audit
from app.core.auth import User, get_current_user
from app.core.cache import QueryCache
from app.core.pdf import unit_type_sheet
from app.models.project import Project
from app.models.unit_type import UnitType
from app.schemas.unit_type import UnitTypeCreateForProject, UnitTypeOut, UnitTypeUpdate

router = APIRouter(prefix="/unit-types", tags=["unit-types"])


def _get_unit_type(db: Session, unit_type_id: str) -> UnitType:
    unit = db.query(UnitType).filter(UnitType.id == unit_type_id).first()
    if not unit:
        raise HTTPException(status_code=404, detail="Unit type not found")
    return unit


def _require_project_creator(db: Session, project_id: str, user: User) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.creator_id != user.id:
        raise HTTPException(status_code=403, detail="Only the project creator can manage its unit types")
    return project


@router.get("", response_model=List[UnitTypeOut])
def list_unit_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    project_id: Optional[str] = Query(None, description="Filter by project ID"),
    status: Optional[str] = Query(None, description="available|reserved|sold_out"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    q = db.query(UnitType)
    if project_id is not None:
        q = q.filter(UnitType.project_id == project_id)
    else:
        q = q.filter(UnitType.developer_id == current_user.id)
    if status:
        q = q.filter(UnitType.status == status)

    q = q.order_by(UnitType.created_at, UnitType.name)
    return q.offset(offset).limit(limit).all()


@router.get("/{unit_type_id}", response_model=UnitTypeOut)
def get_unit_type(
    unit_type_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_unit_type(db, unit_type_id)


@router.post("", response_model=UnitTypeOut, status_code=201)
async def create_unit_type(
    payload: UnitTypeCreateForProject,
    current_user: User = Depends(get_current_user),
    cache: QueryCache = Depends(get_query_cache),
):
    def create(db: Session) -> UnitTypeOut:
        project = _require_project_creator(db, payload.project_id, current_user)
        unit = UnitType(**payload.model_dump(), developer_id=current_user.id)
        db.add(unit)
        db.flush()

        log_audit(
            db,
            actor=current_user,
            action="created",
            entity_type="unit_type",
            entity_id=unit.id,
            project_id=project.id,
            status=unit.status,
            description=f"Added unit type {unit.name}",
            commit=False,
        )
        db.commit()
        db.refresh(unit)
        return UnitTypeOut.model_validate(unit)

    result = await run_in_session(create)
    invalidate_project_views(cache, current_user.id)
    return result


@router.patch("/{unit_type_id}", response_model=UnitTypeOut)
async def update_unit_type(
    unit_type_id: str,
    payload: UnitTypeUpdate,
    current_user: User = Depends(get_current_user),
    cache: QueryCache = Depends(get_query_cache),
):
    def update(db: Session) -> UnitTypeOut:
        unit = _get_unit_type(db, unit_type_id)
        _require_project_creator(db, unit.project_id, current_user)

        data = payload.model_dump(exclude_unset=True)
        if "name" in data and not (data["name"] or "").strip():
            raise HTTPException(status_code=400, detail="name must not be empty")
        for k, v in data.items():
            setattr(unit, k, v)

        log_audit(
            db,
            actor=current_user,
            action="updated",
            entity_type="unit_type",
            entity_id=unit.id,
            project_id=unit.project_id,
            status=unit.status,
            commit=False,
        )
        db.commit()
        db.refresh(unit)
        return UnitTypeOut.model_validate(unit)

    result = await run_in_session(update)
    invalidate_project_views(cache, current_user.id)
    return result


@router.delete("/{unit_type_id}", status_code=204)
async def delete_unit_type(
    unit_type_id: str,
    current_user: User = Depends(get_current_user),
    cache: QueryCache = Depends(get_query_cache),
):
    def delete(db: Session) -> None:
        unit = _get_unit_type(db, unit_type_id)
        _require_project_creator(db, unit.project_id, current_user)

        # agent display links go with it (relationship cascade)
        db.delete(unit)
        log_audit(
            db,
            actor=current_user,
            action="deleted",
            entity_type="unit_type",
            entity_id=unit_type_id,
            project_id=unit.project_id,
            description=f"Deleted unit type {unit.name}",
            commit=False,
        )
        db.commit()

    await run_in_session(delete)
    invalidate_project_views(cache, current_user.id)
    return None


@router.get("/{unit_type_id}/pdf")
def unit_type_pdf(
    unit_type_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """One-page PDF sheet for sharing a unit type with buyers."""
    unit = _get_unit_type(db, unit_type_id)
    project = unit.project

    rows = [
        ("Size range (sqft)", unit.size_range),
        ("Price range", unit.price_range),
        ("Floors", unit.floor_range),
        ("Status", unit.status.replace("_", " ").title()),
        ("Units available", str(unit.units_available) if unit.units_available is not None else None),
        ("Payment plan", project.payment_plan),
        ("Handover", project.handover_date),
    ]
    content = unit_type_sheet(project.title, project.location, unit.name, rows, unit.notes)

    slug = re.sub(r"[^a-z0-9]+", "-", f"{project.title} {unit.name}".lower()).strip("-") or "unit-type"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{slug}.pdf"'},
    )

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.auth import get_current_user, User
from app.models.audit_log import AuditLog
from app.schemas.audit_log import AuditLogOut

router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])


def _parse_dt(value: str) -> datetime:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date-time: {value}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@router.get("", response_model=List[AuditLogOut])
def list_audit_logs(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    start_date: Optional[str] = Query(None, description="ISO date-time"),
    end_date: Optional[str] = Query(None, description="ISO date-time"),
    entity_type: Optional[str] = Query(None, description="project|unit_type|contract|import_token|api_token"),
    action: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    risk_level: Optional[str] = Query(None, description="low|medium|high"),
    project_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """The caller's own audit trail, newest first."""
    q = db.query(AuditLog).filter(AuditLog.actor_id == current_user.id)

    if start_date:
        q = q.filter(AuditLog.created_at >= _parse_dt(start_date))
    if end_date:
        q = q.filter(AuditLog.created_at <= _parse_dt(end_date))
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if action:
        q = q.filter(AuditLog.action == action)
    if source:
        q = q.filter(AuditLog.source == source)
    if risk_level:
        q = q.filter(AuditLog.risk_level == risk_level)
    if project_id:
        q = q.filter(AuditLog.project_id == project_id)

    return q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()


@router.get("/stats")
def audit_log_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    now = datetime.now(timezone.utc)
    start_today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    q = db.query(AuditLog).filter(AuditLog.actor_id == current_user.id)
    return {
        "total": q.count(),
        "today": q.filter(AuditLog.created_at >= start_today).count(),
        "high_risk": q.filter(AuditLog.risk_level == "high").count(),
        "deletions": q.filter(AuditLog.action == "deleted").count(),
    }

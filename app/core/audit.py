from typing import Optional

from app.core.auth import User
from app.models.audit_log import AuditLog
from sqlalchemy.orm import Session


def _compute_risk_level(
    action: str,
    entity_type: str,
    status: Optional[str],
    explicit: Optional[str] = None,
) -> str:
    if explicit:
        return explicit
    if action == "deleted" and entity_type in ("project", "contract"):
        return "high"
    if entity_type == "contract" and (status or "").lower() in ("active", "rejected"):
        return "medium"
    if entity_type == "import_token" and action == "consumed":
        return "medium"
    return "low"


def log_audit(
    db: Session,
    *,
    actor: User,
    action: str,
    entity_type: str,
    entity_id: str,
    source: str = "api",
    status: Optional[str] = None,
    project_id: Optional[str] = None,
    description: Optional[str] = None,
    risk_level: Optional[str] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Record a state change. With commit=False the row joins the caller's
    transaction and is written when the caller commits.
    """
    log = AuditLog(
        actor_id=actor.id,
        actor_email=actor.email,
        actor_role=actor.role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        source=source,
        status=status,
        project_id=project_id,
        description=description,
        risk_level=_compute_risk_level(action, entity_type, status, risk_level),
    )
    db.add(log)
    if commit:
        db.commit()
        db.refresh(log)
    return log

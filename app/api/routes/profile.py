import logging
import secrets

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db, get_storage, run_in_session
from app.core.audit import log_audit
from app.core.auth import User, get_current_user, require_role
from app.core.storage import AVATARS_BUCKET, StorageClient, StorageError, object_path
from app.core.uploads import guess_content_type, read_image
from app.models.profile import Profile
from app.schemas.profile import ApiTokenOut, ProfileOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


def get_or_create_profile(db: Session, user: User) -> Profile:
    """The caller's profile; created from the token claims on first access."""
    profile = db.query(Profile).filter(Profile.id == user.id).first()
    if profile is None:
        profile = Profile(id=user.id, email=user.email or "", role=user.role)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        logger.info("Created profile for %s", user.id)
    return profile


@router.get("/me", response_model=ProfileOut)
def me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_or_create_profile(db, current_user)


@router.post("/avatar", response_model=ProfileOut)
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage),
):
    data = await read_image(file)
    path = object_path(current_user.id, filename=file.filename, prefix="avatar")
    try:
        url = await run_in_threadpool(
            storage.upload, AVATARS_BUCKET, path, data, guess_content_type(file.filename, file.content_type)
        )
    except StorageError as e:
        raise HTTPException(status_code=502, detail=f"Avatar upload failed: {e.message}")

    def save(db: Session):
        profile = get_or_create_profile(db, current_user)
        previous = profile.avatar_url
        profile.avatar_url = url
        db.commit()
        db.refresh(profile)
        return ProfileOut.model_validate(profile), previous

    result, previous = await run_in_session(save)

    old_path = storage.path_from_url(AVATARS_BUCKET, previous) if previous else None
    if old_path:
        try:
            await run_in_threadpool(storage.delete, AVATARS_BUCKET, [old_path])
        except StorageError as e:
            logger.warning("Could not remove old avatar %s: %s", old_path, e.message)
    return result


@router.post("/api-token", response_model=ApiTokenOut)
def generate_api_token(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role("developer")),
):
    """Issue a new API token for integrations; the previous one stops working."""
    profile = get_or_create_profile(db, current_user)
    profile.api_token = secrets.token_urlsafe(32)
    log_audit(
        db,
        actor=current_user,
        action="updated",
        entity_type="api_token",
        entity_id=profile.id,
        description="Generated a new API token",
        commit=False,
    )
    db.commit()
    return ApiTokenOut(api_token=profile.api_token)

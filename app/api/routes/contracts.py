"""
Developer/agency collaboration contracts.

An agency requests a collaboration by uploading its signed contract, business
license and business registration. The developer uploads their signed copy and
then approves or rejects. Approval is only possible once all four documents
are present; the check and the status change happen under a row lock.
"""
import logging
from typing import Dict, List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import (
    AGENT_PROJECTS_PREFIX,
    developer_statistics_key,
    get_db,
    get_query_cache,
    get_storage,
    run_in_session,
)
from app.core.audit import log_audit
from app.core.auth import User, require_role
from app.core.cache import QueryCache
from app.core.storage import (
    AGENCY_CONTRACTS_BUCKET,
    DEVELOPER_FILES_BUCKET,
    StorageClient,
    StorageError,
    object_path,
)
from app.core.uploads import guess_content_type, read_contract_document
from app.models.contract import DeveloperAgencyContract
from app.models.profile import Profile
from app.schemas.contract import ContractOut, ContractStatusUpdate, ContractWithPartyOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["contracts"])

DUPLICATE_REQUEST = (
    "You already have a collaboration request with this developer. "
    "Please check your existing requests."
)


async def _delete_quietly(storage: StorageClient, bucket: str, paths: List[str]) -> None:
    if not paths:
        return
    try:
        await run_in_threadpool(storage.delete, bucket, paths)
    except StorageError as e:
        logger.error("Could not remove %s from %s: %s", paths, bucket, e.message)


def _existing_contract(db: Session, developer_id: str, agency_id: str) -> Optional[DeveloperAgencyContract]:
    return (
        db.query(DeveloperAgencyContract)
        .filter(DeveloperAgencyContract.developer_id == developer_id)
        .filter(DeveloperAgencyContract.agency_id == agency_id)
        .first()
    )


@router.post("", response_model=ContractOut, status_code=201)
async def request_collaboration(
    developer_id: str = Form(...),
    notes: Optional[str] = Form(None),
    signed_contract: UploadFile = File(...),
    business_license: UploadFile = File(...),
    business_registration: UploadFile = File(...),
    current_user: User = Depends(require_role("agency")),
    storage: StorageClient = Depends(get_storage),
):
    """Agency side: open a collaboration request with its three documents."""
    def check(db: Session) -> None:
        developer = db.query(Profile).filter(Profile.id == developer_id).first()
        if not developer or developer.role != "developer":
            raise HTTPException(status_code=404, detail="Developer not found")
        if _existing_contract(db, developer_id, current_user.id):
            raise HTTPException(status_code=409, detail=DUPLICATE_REQUEST)

    await run_in_session(check)

    documents: List[Tuple[str, UploadFile, bytes]] = []
    for field, label, upload in (
        ("agency_signed_contract_url", "Signed contract", signed_contract),
        ("agency_license_url", "Business license", business_license),
        ("agency_registration_url", "Business registration", business_registration),
    ):
        documents.append((field, upload, await read_contract_document(upload, label)))

    urls: Dict[str, str] = {}
    uploaded: List[str] = []
    try:
        for field, upload, data in documents:
            path = object_path(
                current_user.id, developer_id,
                filename=upload.filename,
                prefix=field.replace("_url", "").replace("_", "-"),
            )
            urls[field] = await run_in_threadpool(
                storage.upload, AGENCY_CONTRACTS_BUCKET, path, data,
                guess_content_type(upload.filename, upload.content_type),
            )
            uploaded.append(path)
    except StorageError as e:
        await _delete_quietly(storage, AGENCY_CONTRACTS_BUCKET, uploaded)
        raise HTTPException(status_code=502, detail=f"Document upload failed: {e.message}")

    def insert(db: Session) -> ContractOut:
        contract = DeveloperAgencyContract(
            developer_id=developer_id,
            agency_id=current_user.id,
            status="pending",
            notes=notes,
            **urls,
        )
        db.add(contract)
        try:
            db.flush()
        except IntegrityError:
            # lost a race against a concurrent request for the same pair
            db.rollback()
            raise HTTPException(status_code=409, detail=DUPLICATE_REQUEST)
        log_audit(
            db,
            actor=current_user,
            action="created",
            entity_type="contract",
            entity_id=contract.id,
            status="pending",
            description=f"Collaboration request to developer {developer_id}",
            commit=False,
        )
        db.commit()
        db.refresh(contract)
        return ContractOut.model_validate(contract)

    try:
        return await run_in_session(insert)
    except Exception:
        await _delete_quietly(storage, AGENCY_CONTRACTS_BUCKET, uploaded)
        raise


@router.get("", response_model=List[ContractWithPartyOut])
def list_contracts(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role("developer", "agency")),
    status: Optional[Literal["pending", "active", "rejected"]] = Query(None),
    search: Optional[str] = Query(None, description="search by the other party's name/email"),
    sort: Literal["created_at", "updated_at", "status", "party_name"] = Query("created_at"),
    direction: Literal["asc", "desc"] = Query("desc"),
):
    """
    Developers see the agencies that contacted them; agencies see the
    developers they contacted.
    """
    q = db.query(DeveloperAgencyContract)
    if current_user.role == "developer":
        q = q.filter(DeveloperAgencyContract.developer_id == current_user.id)
        party_attr = "agency_id"
    else:
        q = q.filter(DeveloperAgencyContract.agency_id == current_user.id)
        party_attr = "developer_id"
    if status:
        q = q.filter(DeveloperAgencyContract.status == status)
    contracts = q.all()

    party_ids = {getattr(c, party_attr) for c in contracts}
    parties = {p.id: p for p in db.query(Profile).filter(Profile.id.in_(party_ids)).all()} if party_ids else {}

    items: List[ContractWithPartyOut] = []
    for c in contracts:
        party = parties.get(getattr(c, party_attr))
        item = ContractWithPartyOut.model_validate(c)
        item.party_name = party.full_name if party else None
        item.party_email = party.email if party else None
        item.party_avatar_url = party.avatar_url if party else None
        items.append(item)

    if search and search.strip():
        term = search.strip().lower()
        items = [
            i for i in items
            if term in (i.party_name or "").lower() or term in (i.party_email or "").lower()
        ]

    if sort == "party_name":
        items.sort(key=lambda i: (i.party_name or "").lower(), reverse=direction == "desc")
    else:
        items.sort(key=lambda i: getattr(i, sort), reverse=direction == "desc")
    return items


def _get_developer_contract(db: Session, contract_id: str, user: User, lock: bool = False) -> DeveloperAgencyContract:
    q = db.query(DeveloperAgencyContract).filter(DeveloperAgencyContract.id == contract_id)
    if lock:
        q = q.with_for_update()
    contract = q.first()
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    if contract.developer_id != user.id:
        raise HTTPException(status_code=403, detail="This contract belongs to another developer")
    return contract


@router.post("/{contract_id}/developer-contract", response_model=ContractOut)
async def upload_developer_contract(
    contract_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(require_role("developer")),
    storage: StorageClient = Depends(get_storage),
):
    """Developer side: upload the signed contract; replaces an earlier upload."""
    await run_in_session(_get_developer_contract, contract_id, current_user)

    data = await read_contract_document(file, "Contract")
    path = object_path(current_user.id, contract_id, filename=file.filename, prefix="contract")
    try:
        url = await run_in_threadpool(
            storage.upload, DEVELOPER_FILES_BUCKET, path, data,
            guess_content_type(file.filename, file.content_type),
        )
    except StorageError as e:
        raise HTTPException(status_code=502, detail=f"Contract upload failed: {e.message}")

    def attach(db: Session):
        contract = _get_developer_contract(db, contract_id, current_user, lock=True)
        previous = contract.developer_contract_url
        contract.developer_contract_url = url
        log_audit(
            db,
            actor=current_user,
            action="updated",
            entity_type="contract",
            entity_id=contract.id,
            status=contract.status,
            description="Uploaded signed developer contract",
            commit=False,
        )
        db.commit()
        db.refresh(contract)
        return ContractOut.model_validate(contract), previous

    try:
        result, previous = await run_in_session(attach)
    except Exception:
        await _delete_quietly(storage, DEVELOPER_FILES_BUCKET, [path])
        raise

    old_path = storage.path_from_url(DEVELOPER_FILES_BUCKET, previous) if previous else None
    if old_path:
        await _delete_quietly(storage, DEVELOPER_FILES_BUCKET, [old_path])
    return result


@router.patch("/{contract_id}/status", response_model=ContractOut)
async def update_contract_status(
    contract_id: str,
    payload: ContractStatusUpdate,
    current_user: User = Depends(require_role("developer")),
    cache: QueryCache = Depends(get_query_cache),
):
    """
    Approve or reject a collaboration request. Approval requires the agency's
    three documents and the developer's signed contract.
    """
    def decide(db: Session) -> ContractOut:
        contract = _get_developer_contract(db, contract_id, current_user, lock=True)

        if payload.status == "active":
            if contract.missing_agency_documents():
                raise HTTPException(
                    status_code=400,
                    detail="Cannot approve: Agency has not uploaded all required documents",
                )
            if not contract.developer_contract_url:
                raise HTTPException(
                    status_code=400,
                    detail="Cannot approve: You must download, sign and upload the contract first",
                )

        contract.status = payload.status
        log_audit(
            db,
            actor=current_user,
            action="updated",
            entity_type="contract",
            entity_id=contract.id,
            status=payload.status,
            description=f"Contract with agency {contract.agency_id} set to {payload.status}",
            commit=False,
        )
        db.commit()
        db.refresh(contract)
        return ContractOut.model_validate(contract)

    result = await run_in_session(decide)
    # agents of the agency gain or lose this developer's projects
    cache.invalidate_prefix(AGENT_PROJECTS_PREFIX)
    cache.invalidate(developer_statistics_key(current_user.id))
    return result

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import AccessTokenClaims, require_roles
from app.routers.listings import get_listing_workflow
from app.schemas.expertise import DocumentRequest, ExpertiseOut, ExpertiseReportUpdate, RejectRequest
from app.services.listings import ListingWorkflow

router = APIRouter(prefix="/expertise", tags=["expertise"])
authorize_expert_admin = require_roles({"expert", "admin"})


@router.get("/pending", response_model=list[ExpertiseOut])
def list_pending_reviews(
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
    _=Depends(authorize_expert_admin),
) -> list[ExpertiseOut]:
    return workflow.list_pending_reviews(db)


@router.post("/{expertise_id}/approve", response_model=ExpertiseOut)
def approve(
    expertise_id: str,
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
    principal: AccessTokenClaims = Depends(authorize_expert_admin),
) -> ExpertiseOut:
    return workflow.approve(db, expertise_id, principal.subject_id)


@router.post("/{expertise_id}/reject", response_model=ExpertiseOut)
def reject(
    expertise_id: str,
    payload: RejectRequest,
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
    principal: AccessTokenClaims = Depends(authorize_expert_admin),
) -> ExpertiseOut:
    return workflow.reject(db, expertise_id, principal.subject_id, payload.reason, payload.feedback)


@router.patch("/{expertise_id}", response_model=ExpertiseOut)
def update_report(
    expertise_id: str,
    changes: ExpertiseReportUpdate,
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
    principal: AccessTokenClaims = Depends(authorize_expert_admin),
) -> ExpertiseOut:
    return workflow.update_report(db, expertise_id, principal.subject_id, changes)


@router.put("/{expertise_id}/document", response_model=ExpertiseOut)
def attach_document(
    expertise_id: str,
    payload: DocumentRequest,
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
    principal: AccessTokenClaims = Depends(authorize_expert_admin),
) -> ExpertiseOut:
    return workflow.set_document(db, expertise_id, principal.subject_id, payload.document_url)


@router.delete("/{expertise_id}/document", response_model=ExpertiseOut)
def remove_document(
    expertise_id: str,
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
    principal: AccessTokenClaims = Depends(authorize_expert_admin),
) -> ExpertiseOut:
    return workflow.set_document(db, expertise_id, principal.subject_id, None)

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional
from ..database import get_db
from ..dependencies.permissions import get_current_user
from ..services.approval_service import ApprovalService
from ..schemas.approvals import (
    ApprovalActionRequest,
    EventRequestCreate,
    RejectionRequest,
    RevisionRequest,
    RevisionResponseRequest,
)
from ..models.user import User
from ..utils.constants import ResponseMessages
from ..utils.router_helpers import handle_service_errors, RouterResponse

router = APIRouter(tags=["events"])


@router.post("/", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
@handle_service_errors
async def create_event(
    event_data: EventRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Request a new event for a community you lead"""
    workflow = ApprovalService(db).create_event_request(event_data, current_user)

    return RouterResponse.created(data=workflow, message=ResponseMessages.EVENT_SUBMITTED)


@router.get("/pending-approval", response_model=Dict[str, Any])
@handle_service_errors
async def get_pending_approvals(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Events waiting on you: approvals for your office, revisions for your events"""
    events = ApprovalService(db).get_pending_approvals(current_user)

    return RouterResponse.success(data={"events": events, "total_count": len(events)})


@router.get("/{event_id}/workflow", response_model=Dict[str, Any])
@handle_service_errors
async def get_event_workflow(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    workflow = ApprovalService(db).get_workflow(event_id)
    return RouterResponse.success(data=workflow)


@router.post("/{event_id}/approve", response_model=Dict[str, Any])
@handle_service_errors
async def approve_event(
    event_id: int,
    body: Optional[ApprovalActionRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Approve the event at the stage it is waiting in"""
    workflow = ApprovalService(db).approve(
        event_id, current_user, expected_version=body.expected_version if body else None
    )

    return RouterResponse.success(data=workflow, message=ResponseMessages.EVENT_APPROVED)


@router.post("/{event_id}/request-revision", response_model=Dict[str, Any])
@handle_service_errors
async def request_event_revision(
    event_id: int,
    body: RevisionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    workflow = ApprovalService(db).request_revision(
        event_id, current_user, body.reason, expected_version=body.expected_version
    )

    return RouterResponse.success(
        data=workflow, message=ResponseMessages.EVENT_REVISION_REQUESTED
    )


@router.post("/{event_id}/reject", response_model=Dict[str, Any])
@handle_service_errors
async def reject_event(
    event_id: int,
    body: RejectionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    workflow = ApprovalService(db).reject(
        event_id, current_user, body.reason, expected_version=body.expected_version
    )

    return RouterResponse.success(data=workflow, message=ResponseMessages.EVENT_REJECTED)


@router.post("/{event_id}/respond-revision", response_model=Dict[str, Any])
@handle_service_errors
async def respond_to_event_revision(
    event_id: int,
    body: RevisionResponseRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Answer a revision request; the event returns to the stage that asked"""
    workflow = ApprovalService(db).respond_to_revision(
        event_id, current_user, body.response, expected_version=body.expected_version
    )

    return RouterResponse.success(
        data=workflow, message=ResponseMessages.EVENT_RESUBMITTED
    )

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from ..models.enums import ApprovalDecision, EventStatus
from ..utils.constants import AppConstants


class EventRequestCreate(BaseModel):
    """A club leader's request to hold an event"""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=200)
    start_date: datetime
    end_date: Optional[datetime] = None
    capacity: Optional[int] = Field(None, gt=0)
    community_id: int


class ApprovalActionRequest(BaseModel):
    """Body for approve; expected_version guards against stale screens"""

    expected_version: Optional[int] = Field(None, ge=1)


class RevisionRequest(ApprovalActionRequest):
    reason: str = Field(..., max_length=AppConstants.MAX_REASON_LENGTH)


class RejectionRequest(ApprovalActionRequest):
    reason: str = Field(..., max_length=AppConstants.MAX_REASON_LENGTH)


class RevisionResponseRequest(ApprovalActionRequest):
    response: str = Field(..., max_length=AppConstants.MAX_REASON_LENGTH)


class StageApproval(BaseModel):
    decision: ApprovalDecision
    decided_by: Optional[int] = None
    decided_at: Optional[datetime] = None


class WorkflowResponse(BaseModel):
    """Where an event stands in the approval chain"""

    event_id: int
    title: str
    status: EventStatus
    version: int
    last_transition_at: datetime
    faculty_leader: StageApproval
    dean_of_faculty: StageApproval
    deanship: StageApproval
    dean_of_faculty_revision_message: Optional[str] = None
    faculty_leader_revision_response: Optional[str] = None
    deanship_revision_message: Optional[str] = None
    dean_of_faculty_revision_response: Optional[str] = None
    rejection_reason: Optional[str] = None
    allowed_actions: List[str] = []


class PendingApprovalItem(BaseModel):
    id: int
    title: str
    status: EventStatus
    version: int
    start_date: datetime
    community_id: int
    community_name: Optional[str] = None
    created_by: Optional[int] = None
    last_transition_at: datetime

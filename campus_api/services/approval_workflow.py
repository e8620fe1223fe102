"""
Event approval state machine.

Pure decision logic: given the current status, the action being attempted and
the offices the actor holds for that event, compute the next status, the field
updates to persist and the notifications to fan out. Nothing here touches the
database; ApprovalService does the reading, the compare-and-swap write and the
fan-out.

    PENDING_FACULTY_APPROVAL -> PENDING_DEAN_APPROVAL -> PENDING_DEANSHIP_APPROVAL -> APPROVED
                                  |        ^                 |          ^
                                  v        |                 v          |
                              NEEDS_REVISION_DEAN      NEEDS_REVISION_DEANSHIP

REJECTED is reachable from the dean and deanship stages only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..models.enums import (
    ApprovalDecision,
    ApprovalStage,
    EventStatus,
    NotificationType,
)
from ..utils.date_helpers import DateHelpers
from ..utils.validation import ValidationHelpers


class WorkflowError(Exception):
    """Base exception for approval workflow errors. str(e) is safe to show users."""

    pass


class EventNotFoundError(WorkflowError):
    """Event not found"""

    pass


class ApprovalPermissionError(WorkflowError):
    """Actor does not hold the office required for this event and stage"""

    pass


class ApprovalValidationError(WorkflowError):
    """Missing or invalid reason/response text"""

    pass


class InvalidTransitionError(WorkflowError):
    """Action is not defined for the event's current status"""

    pass


class TransitionConflictError(WorkflowError):
    """A concurrent transition committed first"""

    pass


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REQUEST_REVISION = "request_revision"
    REJECT = "reject"
    RESPOND_TO_REVISION = "respond_to_revision"


class Office(str, Enum):
    """An office an actor holds with respect to one specific event"""

    FACULTY_LEADER = "faculty_leader"
    DEAN_OF_FACULTY = "dean_of_faculty"
    DEANSHIP = "deanship"
    CREATOR = "creator"


OFFICE_LABELS = {
    Office.FACULTY_LEADER: "the Faculty Leader of the event's college",
    Office.DEAN_OF_FACULTY: "the Dean of Faculty of the event's college",
    Office.DEANSHIP: "the Deanship of Student Affairs",
    Office.CREATOR: "the event's creator",
}


class Audience(str, Enum):
    FACULTY_LEADERS = "faculty_leaders"
    DEANS_OF_FACULTY = "deans_of_faculty"
    DEANSHIP_HOLDERS = "deanship_holders"
    CREATOR = "creator"
    REGISTRANTS_AND_SAVERS = "registrants_and_savers"


TEXT_REQUIRED_ACTIONS = frozenset(
    {
        ApprovalAction.REQUEST_REVISION,
        ApprovalAction.REJECT,
        ApprovalAction.RESPOND_TO_REVISION,
    }
)


@dataclass(frozen=True)
class SideEffect:
    """A notification to fan out once the transition has committed"""

    kind: NotificationType
    audience: Audience
    template: str
    # set on notices that belong to one stage's revision exchange
    stage: Optional[ApprovalStage] = None

    def render(self, context: Dict[str, Any]) -> str:
        return self.template.format(**context)


@dataclass(frozen=True)
class TransitionRule:
    office: Office
    next_status: EventStatus
    side_effect: SideEffect


@dataclass(frozen=True)
class TransitionPlan:
    from_status: EventStatus
    action: ApprovalAction
    next_status: EventStatus
    updates: Dict[str, Any] = field(default_factory=dict)
    side_effects: Tuple[SideEffect, ...] = ()
    text: Optional[str] = None


SUBMITTED = SideEffect(
    NotificationType.EVENT_PENDING_APPROVAL,
    Audience.FACULTY_LEADERS,
    'New event "{title}" is pending your approval from {community}',
)
FORWARDED_TO_DEAN = SideEffect(
    NotificationType.EVENT_PENDING_APPROVAL,
    Audience.DEANS_OF_FACULTY,
    'Event "{title}" has been approved by Faculty Leader and is pending your approval',
)
FORWARDED_TO_DEANSHIP = SideEffect(
    NotificationType.EVENT_PENDING_APPROVAL,
    Audience.DEANSHIP_HOLDERS,
    'Event "{title}" from {college} is pending your final approval',
)
DEAN_REVISION = SideEffect(
    NotificationType.EVENT_NEEDS_REVISION,
    Audience.CREATOR,
    'The Dean of Faculty requests revision for event "{title}": {text}',
    ApprovalStage.DEAN_OF_FACULTY,
)
DEANSHIP_REVISION = SideEffect(
    NotificationType.EVENT_NEEDS_REVISION,
    Audience.CREATOR,
    'The Deanship of Student Affairs requests revision for event "{title}": {text}',
    ApprovalStage.DEANSHIP,
)
DEAN_REJECTED = SideEffect(
    NotificationType.EVENT_REJECTED,
    Audience.CREATOR,
    'Your event "{title}" was rejected by the Dean of Faculty: {text}',
)
DEANSHIP_REJECTED = SideEffect(
    NotificationType.EVENT_REJECTED,
    Audience.CREATOR,
    'Your event "{title}" was rejected by the Deanship of Student Affairs: {text}',
)
RESUBMITTED_TO_DEAN = SideEffect(
    NotificationType.EVENT_PENDING_APPROVAL,
    Audience.DEANS_OF_FACULTY,
    'Event "{title}" was revised and resubmitted for your review. Response: {text}',
    ApprovalStage.DEAN_OF_FACULTY,
)
RESUBMITTED_TO_DEANSHIP = SideEffect(
    NotificationType.EVENT_PENDING_APPROVAL,
    Audience.DEANSHIP_HOLDERS,
    'Event "{title}" was revised and resubmitted for your final review. Response: {text}',
    ApprovalStage.DEANSHIP,
)
FULLY_APPROVED = SideEffect(
    NotificationType.EVENT_APPROVED,
    Audience.CREATOR,
    'Congratulations! Your event "{title}" has been fully approved and is now published',
)


TRANSITIONS: Dict[Tuple[EventStatus, ApprovalAction], TransitionRule] = {
    # Faculty stage: approve only (no faculty revision state exists)
    (EventStatus.PENDING_FACULTY_APPROVAL, ApprovalAction.APPROVE): TransitionRule(
        Office.FACULTY_LEADER, EventStatus.PENDING_DEAN_APPROVAL, FORWARDED_TO_DEAN
    ),
    # Dean of Faculty stage
    (EventStatus.PENDING_DEAN_APPROVAL, ApprovalAction.APPROVE): TransitionRule(
        Office.DEAN_OF_FACULTY,
        EventStatus.PENDING_DEANSHIP_APPROVAL,
        FORWARDED_TO_DEANSHIP,
    ),
    (EventStatus.PENDING_DEAN_APPROVAL, ApprovalAction.REQUEST_REVISION): TransitionRule(
        Office.DEAN_OF_FACULTY, EventStatus.NEEDS_REVISION_DEAN, DEAN_REVISION
    ),
    (EventStatus.PENDING_DEAN_APPROVAL, ApprovalAction.REJECT): TransitionRule(
        Office.DEAN_OF_FACULTY, EventStatus.REJECTED, DEAN_REJECTED
    ),
    (EventStatus.NEEDS_REVISION_DEAN, ApprovalAction.RESPOND_TO_REVISION): TransitionRule(
        Office.CREATOR, EventStatus.PENDING_DEAN_APPROVAL, RESUBMITTED_TO_DEAN
    ),
    # Deanship stage
    (EventStatus.PENDING_DEANSHIP_APPROVAL, ApprovalAction.APPROVE): TransitionRule(
        Office.DEANSHIP, EventStatus.APPROVED, FULLY_APPROVED
    ),
    (
        EventStatus.PENDING_DEANSHIP_APPROVAL,
        ApprovalAction.REQUEST_REVISION,
    ): TransitionRule(
        Office.DEANSHIP, EventStatus.NEEDS_REVISION_DEANSHIP, DEANSHIP_REVISION
    ),
    (EventStatus.PENDING_DEANSHIP_APPROVAL, ApprovalAction.REJECT): TransitionRule(
        Office.DEANSHIP, EventStatus.REJECTED, DEANSHIP_REJECTED
    ),
    (
        EventStatus.NEEDS_REVISION_DEANSHIP,
        ApprovalAction.RESPOND_TO_REVISION,
    ): TransitionRule(
        Office.CREATOR, EventStatus.PENDING_DEANSHIP_APPROVAL, RESUBMITTED_TO_DEANSHIP
    ),
}

TERMINAL_STATUSES = frozenset({EventStatus.APPROVED, EventStatus.REJECTED})


def allowed_actions(status: EventStatus) -> List[ApprovalAction]:
    """Actions defined for an event resting in status"""
    return [action for (state, action) in TRANSITIONS if state == status]


def required_office(status: EventStatus, action: ApprovalAction) -> Optional[Office]:
    rule = TRANSITIONS.get((status, action))
    return rule.office if rule else None


def statuses_awaiting(offices: Iterable[Office]) -> List[EventStatus]:
    """Statuses in which one of the given offices is expected to act next"""
    held = set(offices)
    return sorted(
        {state for (state, _), rule in TRANSITIONS.items() if rule.office in held},
        key=lambda s: list(EventStatus).index(s),
    )


def _stage_updates(
    status: EventStatus,
    action: ApprovalAction,
    actor_id: int,
    text: Optional[str],
    now: datetime,
) -> Dict[str, Any]:
    if status == EventStatus.PENDING_FACULTY_APPROVAL:
        return {
            "faculty_leader_approval": ApprovalDecision.APPROVED,
            "faculty_leader_approved_by": actor_id,
            "faculty_leader_approved_at": now,
        }

    if status == EventStatus.PENDING_DEAN_APPROVAL:
        if action == ApprovalAction.APPROVE:
            return {
                "dean_of_faculty_approval": ApprovalDecision.APPROVED,
                "dean_of_faculty_approved_by": actor_id,
                "dean_of_faculty_approved_at": now,
            }
        if action == ApprovalAction.REQUEST_REVISION:
            # A new request clears the answer to the previous one
            return {
                "dean_of_faculty_approval": ApprovalDecision.PENDING,
                "dean_of_faculty_revision_message": text,
                "faculty_leader_revision_response": None,
            }
        return {
            "dean_of_faculty_approval": ApprovalDecision.REJECTED,
            "dean_of_faculty_approved_by": actor_id,
            "dean_of_faculty_approved_at": now,
            "rejection_reason": text,
        }

    if status == EventStatus.PENDING_DEANSHIP_APPROVAL:
        if action == ApprovalAction.APPROVE:
            return {
                "deanship_approval": ApprovalDecision.APPROVED,
                "deanship_approved_by": actor_id,
                "deanship_approved_at": now,
            }
        if action == ApprovalAction.REQUEST_REVISION:
            return {
                "deanship_approval": ApprovalDecision.PENDING,
                "deanship_revision_message": text,
                "dean_of_faculty_revision_response": None,
            }
        return {
            "deanship_approval": ApprovalDecision.REJECTED,
            "deanship_approved_by": actor_id,
            "deanship_approved_at": now,
            "rejection_reason": text,
        }

    if status == EventStatus.NEEDS_REVISION_DEAN:
        return {"faculty_leader_revision_response": text}

    # NEEDS_REVISION_DEANSHIP
    return {"dean_of_faculty_revision_response": text}


def plan_transition(
    status: EventStatus,
    action: ApprovalAction,
    offices: FrozenSet[Office],
    actor_id: int,
    text: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionPlan:
    """
    Decide the outcome of an approval action.

    Checks run in a fixed order so the same bad request always yields the
    same error: blank text, then undefined (status, action), then office.

    Raises:
        ApprovalValidationError: reason/response required but blank
        InvalidTransitionError: action not defined for status
        ApprovalPermissionError: actor lacks the office the rule requires
    """
    status = EventStatus(status)
    action = ApprovalAction(action)

    if action in TEXT_REQUIRED_ACTIONS:
        if ValidationHelpers.is_blank(text):
            noun = "response" if action == ApprovalAction.RESPOND_TO_REVISION else "reason"
            raise ApprovalValidationError(f"Please provide a {noun}")
        text = ValidationHelpers.sanitize_text(text)
    else:
        text = None

    rule = TRANSITIONS.get((status, action))
    if rule is None:
        raise InvalidTransitionError(
            f"Cannot {action.value.replace('_', ' ')} an event that is "
            f"{status.value.replace('_', ' ').lower()}"
        )

    if rule.office not in offices:
        raise ApprovalPermissionError(
            f"Only {OFFICE_LABELS[rule.office]} can "
            f"{action.value.replace('_', ' ')} at this stage"
        )

    now = now or DateHelpers.utc_now()
    updates = _stage_updates(status, action, actor_id, text, now)
    updates["status"] = rule.next_status
    updates["last_transition_at"] = now

    return TransitionPlan(
        from_status=status,
        action=action,
        next_status=rule.next_status,
        updates=updates,
        side_effects=(rule.side_effect,),
        text=text,
    )


def expected_notice(event) -> Optional[Tuple[SideEffect, Optional[str]]]:
    """
    The notification an event resting in its current status should have
    produced, with the text it carries. Reads column attributes only.
    """
    status = EventStatus(event.status)

    if status == EventStatus.PENDING_FACULTY_APPROVAL:
        return SUBMITTED, None
    if status == EventStatus.PENDING_DEAN_APPROVAL:
        if event.faculty_leader_revision_response:
            return RESUBMITTED_TO_DEAN, event.faculty_leader_revision_response
        return FORWARDED_TO_DEAN, None
    if status == EventStatus.PENDING_DEANSHIP_APPROVAL:
        if event.dean_of_faculty_revision_response:
            return RESUBMITTED_TO_DEANSHIP, event.dean_of_faculty_revision_response
        return FORWARDED_TO_DEANSHIP, None
    if status == EventStatus.NEEDS_REVISION_DEAN:
        return DEAN_REVISION, event.dean_of_faculty_revision_message
    if status == EventStatus.NEEDS_REVISION_DEANSHIP:
        return DEANSHIP_REVISION, event.deanship_revision_message
    if status == EventStatus.APPROVED:
        return FULLY_APPROVED, None
    if status == EventStatus.REJECTED:
        if event.deanship_approval == ApprovalDecision.REJECTED:
            return DEANSHIP_REJECTED, event.rejection_reason
        return DEAN_REJECTED, event.rejection_reason
    return None

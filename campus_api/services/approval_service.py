from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import OperationalError
from sqlalchemy import and_, func, or_
from typing import List, Optional, Tuple
import logging

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..models.event import Event
from ..models.college import Community
from ..models.user import User
from ..models.enums import EventStatus, UserRole
from ..schemas.approvals import (
    EventRequestCreate,
    PendingApprovalItem,
    StageApproval,
    WorkflowResponse,
)
from ..utils.constants import AppConstants, ResponseMessages
from ..utils.date_helpers import DateHelpers
from ..utils.validation import ValidationHelpers
from .approval_workflow import (
    SUBMITTED,
    TEXT_REQUIRED_ACTIONS,
    ApprovalAction,
    ApprovalPermissionError,
    ApprovalValidationError,
    EventNotFoundError,
    Office,
    TransitionConflictError,
    TransitionPlan,
    WorkflowError,
    allowed_actions,
    plan_transition,
    statuses_awaiting,
)
from .audience import offices_held
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class CommunityNotFoundError(WorkflowError):
    """Community not found"""

    pass


class ApprovalService:
    """
    Drives events through the three-tier approval chain.

    Every state change is a compare-and-swap on (id, status, version): the
    write only lands if nobody else moved the event since it was read.
    Notifications go out after the state change has committed.
    """

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService(db)

    def create_event_request(
        self, event_data: EventRequestCreate, actor: User
    ) -> WorkflowResponse:
        """Create an event for the actor's community, pending faculty approval"""

        community = (
            self.db.query(Community)
            .filter(Community.id == event_data.community_id)
            .first()
        )
        if not community:
            raise CommunityNotFoundError("Community not found")

        if not actor.is_active or community.club_leader_id != actor.id:
            raise ApprovalPermissionError(
                "Only the club leader of this community can request events"
            )

        if ValidationHelpers.is_blank(event_data.title):
            raise ApprovalValidationError("Event title is required")
        if event_data.end_date and event_data.end_date < event_data.start_date:
            raise ApprovalValidationError("Event cannot end before it starts")

        event = Event(
            title=event_data.title.strip(),
            description=event_data.description,
            location=event_data.location,
            start_date=DateHelpers.to_naive_utc(event_data.start_date),
            end_date=DateHelpers.to_naive_utc(event_data.end_date),
            capacity=event_data.capacity,
            community_id=community.id,
            college_id=community.college_id,
            created_by=actor.id,
            status=EventStatus.PENDING_FACULTY_APPROVAL,
            version=1,
            last_transition_at=DateHelpers.utc_now(),
        )

        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)

        logger.info(
            f"Event {event.id} requested by user {actor.id} "
            f"for community {community.id}"
        )

        self._fan_out(event, (SUBMITTED,), None)
        return self._workflow_snapshot(event)

    # TRANSITIONS
    def approve(
        self, event_id: int, actor: User, expected_version: Optional[int] = None
    ) -> WorkflowResponse:
        return self._transition(
            event_id, ApprovalAction.APPROVE, actor, None, expected_version
        )

    def request_revision(
        self,
        event_id: int,
        actor: User,
        reason: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResponse:
        return self._transition(
            event_id, ApprovalAction.REQUEST_REVISION, actor, reason, expected_version
        )

    def reject(
        self,
        event_id: int,
        actor: User,
        reason: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResponse:
        return self._transition(
            event_id, ApprovalAction.REJECT, actor, reason, expected_version
        )

    def respond_to_revision(
        self,
        event_id: int,
        actor: User,
        response: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResponse:
        return self._transition(
            event_id,
            ApprovalAction.RESPOND_TO_REVISION,
            actor,
            response,
            expected_version,
        )

    def _transition(
        self,
        event_id: int,
        action: ApprovalAction,
        actor: User,
        text: Optional[str],
        expected_version: Optional[int],
    ) -> WorkflowResponse:
        if action in TEXT_REQUIRED_ACTIONS and ValidationHelpers.is_blank(text):
            noun = "response" if action == ApprovalAction.RESPOND_TO_REVISION else "reason"
            raise ApprovalValidationError(f"Please provide a {noun}")

        event, plan = self._commit_transition(
            event_id, action, actor, text, expected_version
        )

        logger.info(
            f"Event {event.id} moved {plan.from_status.value} -> "
            f"{plan.next_status.value} by user {actor.id} ({action.value})"
        )

        self._fan_out(event, plan.side_effects, plan.text)
        return self._workflow_snapshot(event)

    @retry(
        stop=stop_after_attempt(AppConstants.MAX_STORAGE_ATTEMPTS),
        wait=wait_exponential(
            multiplier=AppConstants.RETRY_WAIT_MIN_SECONDS,
            min=AppConstants.RETRY_WAIT_MIN_SECONDS,
            max=AppConstants.RETRY_WAIT_MAX_SECONDS,
        ),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    def _commit_transition(
        self,
        event_id: int,
        action: ApprovalAction,
        actor: User,
        text: Optional[str],
        expected_version: Optional[int],
    ) -> Tuple[Event, TransitionPlan]:
        try:
            event = self._get_event(event_id)

            if expected_version is not None and event.version != expected_version:
                raise TransitionConflictError(ResponseMessages.STATE_CHANGED)

            plan = plan_transition(
                event.status,
                action,
                frozenset(offices_held(actor, event)),
                actor.id,
                text,
            )

            values = dict(plan.updates)
            values["version"] = event.version + 1

            updated = (
                self.db.query(Event)
                .filter(
                    Event.id == event.id,
                    Event.status == plan.from_status,
                    Event.version == event.version,
                )
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                logger.warning(
                    f"Lost race on event {event_id} ({action.value} by user {actor.id})"
                )
                raise TransitionConflictError(ResponseMessages.STATE_CHANGED)

            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"Transient failure moving event {event_id}: {e}")
            raise

        # commit expired the instance; the next access reloads the new row
        return event, plan

    def _fan_out(self, event: Event, side_effects, text: Optional[str]) -> None:
        """
        Notify after commit. A failure here leaves the transition in place;
        the reconciliation job writes whatever went missing.
        """
        for side_effect in side_effects:
            try:
                self.notifier.emit_side_effect(event, side_effect, text)
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"❌ Failed to send {side_effect.kind.value} for event {event.id}: {e}",
                    exc_info=True,
                )

    # READS
    def get_workflow(self, event_id: int) -> WorkflowResponse:
        return self._workflow_snapshot(self._get_event(event_id))

    def get_pending_approvals(self, actor: User) -> List[PendingApprovalItem]:
        """Events waiting on an office the actor holds, oldest transition first"""

        if not actor.is_active:
            return []

        event_college = func.coalesce(Event.college_id, Community.college_id)
        conditions = []

        role_office = {
            UserRole.FACULTY_LEADER: Office.FACULTY_LEADER,
            UserRole.DEAN_OF_FACULTY: Office.DEAN_OF_FACULTY,
            UserRole.DEANSHIP_OF_STUDENT_AFFAIRS: Office.DEANSHIP,
        }.get(actor.role)

        if role_office == Office.DEANSHIP:
            conditions.append(Event.status.in_(statuses_awaiting([role_office])))
        elif role_office is not None and actor.college_id is not None:
            conditions.append(
                and_(
                    Event.status.in_(statuses_awaiting([role_office])),
                    event_college == actor.college_id,
                )
            )

        # Revision requests wait on the creator
        conditions.append(
            and_(
                Event.status.in_(statuses_awaiting([Office.CREATOR])),
                Event.created_by == actor.id,
            )
        )

        events = (
            self.db.query(Event)
            .join(Community, Event.community_id == Community.id)
            .options(joinedload(Event.community))
            .filter(or_(*conditions))
            .order_by(Event.last_transition_at.asc())
            .all()
        )

        return [
            PendingApprovalItem(
                id=event.id,
                title=event.title,
                status=event.status,
                version=event.version,
                start_date=event.start_date,
                community_id=event.community_id,
                community_name=event.community.name if event.community else None,
                created_by=event.created_by,
                last_transition_at=event.last_transition_at,
            )
            for event in events
        ]

    def _get_event(self, event_id: int) -> Event:
        event = self.db.query(Event).filter(Event.id == event_id).first()
        if not event:
            raise EventNotFoundError("Event not found")
        return event

    def _workflow_snapshot(self, event: Event) -> WorkflowResponse:
        return WorkflowResponse(
            event_id=event.id,
            title=event.title,
            status=event.status,
            version=event.version,
            last_transition_at=event.last_transition_at,
            faculty_leader=StageApproval(
                decision=event.faculty_leader_approval,
                decided_by=event.faculty_leader_approved_by,
                decided_at=event.faculty_leader_approved_at,
            ),
            dean_of_faculty=StageApproval(
                decision=event.dean_of_faculty_approval,
                decided_by=event.dean_of_faculty_approved_by,
                decided_at=event.dean_of_faculty_approved_at,
            ),
            deanship=StageApproval(
                decision=event.deanship_approval,
                decided_by=event.deanship_approved_by,
                decided_at=event.deanship_approved_at,
            ),
            dean_of_faculty_revision_message=event.dean_of_faculty_revision_message,
            faculty_leader_revision_response=event.faculty_leader_revision_response,
            deanship_revision_message=event.deanship_revision_message,
            dean_of_faculty_revision_response=event.dean_of_faculty_revision_response,
            rejection_reason=event.rejection_reason,
            allowed_actions=[a.value for a in allowed_actions(event.status)],
        )

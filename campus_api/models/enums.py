from enum import Enum


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    CLUB_LEADER = "CLUB_LEADER"
    FACULTY_LEADER = "FACULTY_LEADER"
    DEAN_OF_FACULTY = "DEAN_OF_FACULTY"
    DEANSHIP_OF_STUDENT_AFFAIRS = "DEANSHIP_OF_STUDENT_AFFAIRS"
    ADMIN = "ADMIN"


class EventStatus(str, Enum):
    PENDING_FACULTY_APPROVAL = "PENDING_FACULTY_APPROVAL"
    PENDING_DEAN_APPROVAL = "PENDING_DEAN_APPROVAL"
    PENDING_DEANSHIP_APPROVAL = "PENDING_DEANSHIP_APPROVAL"
    NEEDS_REVISION_DEAN = "NEEDS_REVISION_DEAN"
    NEEDS_REVISION_DEANSHIP = "NEEDS_REVISION_DEANSHIP"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalDecision(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalStage(str, Enum):
    """Reviewing stage that can send an event back for revision"""

    DEAN_OF_FACULTY = "dean_of_faculty"
    DEANSHIP = "deanship"


class NotificationType(str, Enum):
    EVENT_PENDING_APPROVAL = "EVENT_PENDING_APPROVAL"
    EVENT_NEEDS_REVISION = "EVENT_NEEDS_REVISION"
    EVENT_APPROVED = "EVENT_APPROVED"
    EVENT_REJECTED = "EVENT_REJECTED"
    EVENT_REMINDER_1_DAY = "EVENT_REMINDER_1_DAY"
    EVENT_REMINDER_1_HOUR = "EVENT_REMINDER_1_HOUR"
    # Produced by collaborating subsystems, rendered but never emitted here
    APPLICATION_APPROVED = "APPLICATION_APPROVED"
    APPLICATION_REJECTED = "APPLICATION_REJECTED"
    STUDY_SPACE_RESERVED = "STUDY_SPACE_RESERVED"
    STUDY_SPACE_CANCELLED = "STUDY_SPACE_CANCELLED"


# Kinds that can legitimately recur for the same event across revision loops
WORKFLOW_NOTIFICATION_TYPES = frozenset(
    {
        NotificationType.EVENT_PENDING_APPROVAL,
        NotificationType.EVENT_NEEDS_REVISION,
        NotificationType.EVENT_APPROVED,
        NotificationType.EVENT_REJECTED,
    }
)


class ReservationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

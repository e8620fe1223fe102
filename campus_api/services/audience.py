"""
Audience resolution: turn an event plus an Audience tag into concrete user ids.

Read-only: resolvers follow event -> community -> college -> role holder and
never modify what they read.
"""

from typing import Callable, Dict, Set

from sqlalchemy.orm import Session

from ..models.enums import UserRole
from ..models.event import Event, EventRegistration, SavedEvent
from ..models.user import User
from .approval_workflow import Audience, Office

AudienceResolver = Callable[[Session, Event], Set[int]]


def _role_holders(db: Session, role: UserRole, college_id: int = None) -> Set[int]:
    query = db.query(User.id).filter(User.role == role, User.is_active == True)
    if college_id is not None:
        query = query.filter(User.college_id == college_id)
    return {user_id for (user_id,) in query.all()}


def event_college_id(event: Event):
    """Events carry their college; fall back to the owning community's"""
    if event.college_id is not None:
        return event.college_id
    if event.community is not None:
        return event.community.college_id
    return None


def faculty_leaders(db: Session, event: Event) -> Set[int]:
    college_id = event_college_id(event)
    if college_id is None:
        return set()
    return _role_holders(db, UserRole.FACULTY_LEADER, college_id)


def deans_of_faculty(db: Session, event: Event) -> Set[int]:
    college_id = event_college_id(event)
    if college_id is None:
        return set()
    return _role_holders(db, UserRole.DEAN_OF_FACULTY, college_id)


def deanship_holders(db: Session, event: Event) -> Set[int]:
    return _role_holders(db, UserRole.DEANSHIP_OF_STUDENT_AFFAIRS)


def event_creator(db: Session, event: Event) -> Set[int]:
    return {event.created_by} if event.created_by is not None else set()


def registrants_and_savers(db: Session, event: Event) -> Set[int]:
    registered = db.query(EventRegistration.user_id).filter(
        EventRegistration.event_id == event.id
    )
    saved = db.query(SavedEvent.user_id).filter(SavedEvent.event_id == event.id)
    return {user_id for (user_id,) in registered.union(saved).all()}


RESOLVERS: Dict[Audience, AudienceResolver] = {
    Audience.FACULTY_LEADERS: faculty_leaders,
    Audience.DEANS_OF_FACULTY: deans_of_faculty,
    Audience.DEANSHIP_HOLDERS: deanship_holders,
    Audience.CREATOR: event_creator,
    Audience.REGISTRANTS_AND_SAVERS: registrants_and_savers,
}


def resolve(db: Session, event: Event, audience: Audience) -> Set[int]:
    return RESOLVERS[Audience(audience)](db, event)


def offices_held(user: User, event: Event) -> Set[Office]:
    """
    Offices the user holds for this particular event.

    Role alone is not enough: faculty leaders and deans of faculty only
    count for events of their own college.
    """
    offices = set()
    if not user.is_active:
        return offices

    college_id = event_college_id(event)
    same_college = college_id is not None and user.college_id == college_id
    if user.role == UserRole.FACULTY_LEADER and same_college:
        offices.add(Office.FACULTY_LEADER)
    elif user.role == UserRole.DEAN_OF_FACULTY and same_college:
        offices.add(Office.DEAN_OF_FACULTY)
    elif user.role == UserRole.DEANSHIP_OF_STUDENT_AFFAIRS:
        offices.add(Office.DEANSHIP)

    if event.created_by is not None and event.created_by == user.id:
        offices.add(Office.CREATOR)

    return offices

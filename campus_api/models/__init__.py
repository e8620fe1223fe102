from .user import User
from .college import College, Community
from .event import Event, EventRegistration, SavedEvent
from .notification import Notification
from .study_space import StudySpace, StudySpaceReservation


__all__ = [
    "User",
    "College",
    "Community",
    "Event",
    "EventRegistration",
    "SavedEvent",
    "Notification",
    "StudySpace",
    "StudySpaceReservation",
]

from . import event
from . import notifications

__all__ = [
    "event",
    "notifications",
]

from fastapi import HTTPException, status
from typing import Callable, Any
from functools import wraps
import logging

from ..services.approval_workflow import (
    WorkflowError,
    EventNotFoundError,
    ApprovalPermissionError,
    ApprovalValidationError,
    InvalidTransitionError,
    TransitionConflictError,
)
from ..services.approval_service import CommunityNotFoundError
from ..services.notification_service import (
    NotificationServiceError,
    NotificationNotFoundError,
)

logger = logging.getLogger(__name__)


def handle_service_errors(func: Callable) -> Callable:
    """Decorator to standardize service error handling in routers"""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)

        # Permission/Access Errors -> 403 Forbidden
        except ApprovalPermissionError as e:
            logger.warning(f"Permission denied: {str(e)}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

        except (
            EventNotFoundError,
            CommunityNotFoundError,
            NotificationNotFoundError,
        ) as e:
            logger.warning(f"Resource not found: {str(e)}")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

        # State machine refusals -> 409 Conflict, told apart by error_code
        except InvalidTransitionError as e:
            logger.warning(f"Invalid transition: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"error_code": "invalid_transition", "message": str(e)},
            )

        except TransitionConflictError as e:
            logger.warning(f"Transition conflict: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"error_code": "conflict", "message": str(e)},
            )

        # Validation Errors -> 400 Bad Request
        except (ApprovalValidationError, ValueError) as e:
            logger.warning(f"Validation error: {str(e)}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        # General Service Errors -> 400 Bad Request
        except (WorkflowError, NotificationServiceError) as e:
            logger.warning(f"Service error: {str(e)}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        except HTTPException:
            raise

        # Unexpected errors -> 500 Internal Server Error
        except Exception as e:
            logger.error(
                f"Unexpected error in {func.__name__}: {str(e)}", exc_info=True
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="An unexpected error occurred",
            )

    return wrapper


class RouterResponse:
    """Helper class for creating standardized API responses"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> dict:
        """Create success response"""
        response = {"success": True, "message": message}
        if data is not None:
            response["data"] = data
        return response

    @staticmethod
    def created(data: Any, message: str = "Resource created successfully") -> dict:
        """Create resource creation response"""
        return {"success": True, "message": message, "data": data}

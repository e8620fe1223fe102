from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError
from typing import Optional
from datetime import datetime
import logging

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..models.study_space import StudySpaceReservation
from ..models.enums import ReservationStatus
from ..utils.constants import AppConstants
from ..utils.date_helpers import DateHelpers

logger = logging.getLogger(__name__)


class ReservationCleanupService:
    def __init__(self, db: Session):
        self.db = db

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
    def complete_past_reservations(self, now: Optional[datetime] = None) -> int:
        """
        Mark every ACTIVE reservation dated before today (UTC) as COMPLETED.

        Today's reservations stay ACTIVE. Running it twice changes nothing
        the second time.
        """
        cutoff = DateHelpers.utc_midnight(now)

        try:
            completed_count = (
                self.db.query(StudySpaceReservation)
                .filter(
                    StudySpaceReservation.status == ReservationStatus.ACTIVE,
                    StudySpaceReservation.date < cutoff,
                )
                .update(
                    {
                        "status": ReservationStatus.COMPLETED,
                        "updated_at": DateHelpers.utc_now(),
                    },
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"Transient failure completing reservations: {e}")
            raise

        logger.info(
            f"✅ Reservation cleanup completed: {completed_count} reservation(s) "
            f"before {cutoff.date().isoformat()} marked completed"
        )
        return completed_count

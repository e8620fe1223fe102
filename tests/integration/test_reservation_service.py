"""
Integration tests for ReservationCleanupService.
"""

from datetime import datetime, timedelta

from campus_api.models import StudySpace, StudySpaceReservation
from campus_api.models.enums import ReservationStatus
from campus_api.services.reservation_service import ReservationCleanupService

NOW = datetime(2026, 3, 10, 15, 30)
TODAY = datetime(2026, 3, 10)


def reserve(db, space, user, day, status=ReservationStatus.ACTIVE):
    reservation = StudySpaceReservation(
        study_space_id=space.id, user_id=user.id, date=day, status=status
    )
    db.add(reservation)
    return reservation


class TestCompletePastReservations:
    def test_only_past_active_reservations_completed(self, db, campus):
        space = StudySpace(name="Library Room 2", capacity=4)
        db.add(space)
        db.flush()

        yesterday = reserve(db, space, campus.student, TODAY - timedelta(days=1))
        last_week = reserve(db, space, campus.student, TODAY - timedelta(days=7))
        today = reserve(db, space, campus.student, TODAY)
        tomorrow = reserve(db, space, campus.student, TODAY + timedelta(days=1))
        cancelled = reserve(
            db,
            space,
            campus.second_student,
            TODAY - timedelta(days=2),
            ReservationStatus.CANCELLED,
        )
        db.commit()

        completed = ReservationCleanupService(db).complete_past_reservations(now=NOW)

        assert completed == 2
        db.expire_all()
        assert yesterday.status == ReservationStatus.COMPLETED
        assert last_week.status == ReservationStatus.COMPLETED
        assert today.status == ReservationStatus.ACTIVE
        assert tomorrow.status == ReservationStatus.ACTIVE
        assert cancelled.status == ReservationStatus.CANCELLED

    def test_second_run_changes_nothing(self, db, campus):
        space = StudySpace(name="Library Room 3")
        db.add(space)
        db.flush()
        reserve(db, space, campus.student, TODAY - timedelta(days=1))
        db.commit()

        service = ReservationCleanupService(db)
        assert service.complete_past_reservations(now=NOW) == 1
        assert service.complete_past_reservations(now=NOW) == 0

    def test_nothing_to_do(self, db, campus):
        assert ReservationCleanupService(db).complete_past_reservations(now=NOW) == 0

"""
Integration tests for ApprovalService against a real SQLite database.

Tests cover:
- Event requests by club leaders
- The full approval chain and its notifications
- Revision loops returning to the stage that asked
- Per-college office checks
- Optimistic concurrency (expected_version and lost races)
- Fan-out failures not undoing a committed transition
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import sessionmaker

from campus_api.models import Event, Notification, User
from campus_api.models.enums import ApprovalDecision, EventStatus, NotificationType
from campus_api.schemas.approvals import EventRequestCreate
from campus_api.schemas.common import PaginationParams
from campus_api.services.approval_service import ApprovalService, CommunityNotFoundError
from campus_api.services.approval_workflow import (
    ApprovalPermissionError,
    ApprovalValidationError,
    EventNotFoundError,
    InvalidTransitionError,
    TransitionConflictError,
)
from campus_api.services.notification_service import NotificationService
from campus_api.utils.date_helpers import DateHelpers

from tests.conftest import build_engine, seed_campus


def notifications_for(db, user, kind=None):
    query = db.query(Notification).filter(Notification.user_id == user.id)
    if kind is not None:
        query = query.filter(Notification.type == kind)
    return query.all()


def notifications_about(db, event):
    return db.query(Notification).filter(Notification.event_id == event.id).all()


class TestCreateEventRequest:
    def request(self, campus, **overrides):
        values = dict(
            title="Robot Wars",
            description="Annual robot battle",
            start_date=DateHelpers.utc_now() + timedelta(days=10),
            community_id=campus.community.id,
        )
        values.update(overrides)
        return EventRequestCreate(**values)

    def test_club_leader_creates_pending_event(self, db, campus):
        workflow = ApprovalService(db).create_event_request(
            self.request(campus), campus.club_leader
        )

        assert workflow.status == EventStatus.PENDING_FACULTY_APPROVAL
        assert workflow.version == 1
        assert workflow.faculty_leader.decision == ApprovalDecision.PENDING
        assert workflow.allowed_actions == ["approve"]

        event = db.get(Event, workflow.event_id)
        assert event.college_id == campus.engineering.id
        assert event.created_by == campus.club_leader.id

    def test_faculty_leaders_of_college_notified(self, db, campus):
        workflow = ApprovalService(db).create_event_request(
            self.request(campus), campus.club_leader
        )

        notified = {n.user_id for n in db.query(Notification).all()}
        assert notified == {campus.faculty_leader.id}
        notification = notifications_for(db, campus.faculty_leader)[0]
        assert notification.event_id == workflow.event_id
        assert notification.type == NotificationType.EVENT_PENDING_APPROVAL
        assert "Robotics Club" in notification.message

    def test_only_club_leader_of_community(self, db, campus):
        with pytest.raises(ApprovalPermissionError):
            ApprovalService(db).create_event_request(
                self.request(campus), campus.student
            )
        assert db.query(Event).count() == 0

    def test_unknown_community(self, db, campus):
        with pytest.raises(CommunityNotFoundError):
            ApprovalService(db).create_event_request(
                self.request(campus, community_id=9999), campus.club_leader
            )

    def test_end_before_start(self, db, campus):
        start = DateHelpers.utc_now() + timedelta(days=3)
        with pytest.raises(ApprovalValidationError):
            ApprovalService(db).create_event_request(
                self.request(campus, start_date=start, end_date=start - timedelta(hours=1)),
                campus.club_leader,
            )


class TestApprovalChain:
    def test_faculty_approval_forwards_to_dean(self, db, campus, make_event):
        """Scenario A"""
        event = make_event()

        workflow = ApprovalService(db).approve(event.id, campus.faculty_leader)

        assert workflow.status == EventStatus.PENDING_DEAN_APPROVAL
        assert workflow.version == 2
        assert workflow.faculty_leader.decision == ApprovalDecision.APPROVED
        assert workflow.faculty_leader.decided_by == campus.faculty_leader.id

        created = notifications_about(db, event)
        assert len(created) == 1
        assert created[0].user_id == campus.dean.id
        assert created[0].type == NotificationType.EVENT_PENDING_APPROVAL

    def test_full_chain_to_approved(self, db, campus, make_event):
        event = make_event()
        service = ApprovalService(db)

        service.approve(event.id, campus.faculty_leader)
        service.approve(event.id, campus.dean)
        workflow = service.approve(event.id, campus.deanship)

        assert workflow.status == EventStatus.APPROVED
        assert workflow.version == 4
        assert workflow.allowed_actions == []
        assert workflow.deanship.decision == ApprovalDecision.APPROVED

        kinds = {(n.user_id, n.type) for n in notifications_about(db, event)}
        assert kinds == {
            (campus.dean.id, NotificationType.EVENT_PENDING_APPROVAL),
            (campus.deanship.id, NotificationType.EVENT_PENDING_APPROVAL),
            (campus.club_leader.id, NotificationType.EVENT_APPROVED),
        }

    def test_dean_requests_revision(self, db, campus, make_event):
        """Scenario B"""
        event = make_event(EventStatus.PENDING_DEAN_APPROVAL)

        workflow = ApprovalService(db).request_revision(
            event.id, campus.dean, "add a risk plan"
        )

        assert workflow.status == EventStatus.NEEDS_REVISION_DEAN
        assert workflow.dean_of_faculty_revision_message == "add a risk plan"

        created = notifications_about(db, event)
        assert len(created) == 1
        assert created[0].user_id == campus.club_leader.id
        assert created[0].type == NotificationType.EVENT_NEEDS_REVISION
        assert "add a risk plan" in created[0].message

    def test_response_returns_to_dean(self, db, campus, make_event):
        """Scenario C"""
        event = make_event(
            EventStatus.NEEDS_REVISION_DEAN,
            dean_of_faculty_revision_message="add a risk plan",
        )

        workflow = ApprovalService(db).respond_to_revision(
            event.id, campus.club_leader, "added section 4"
        )

        assert workflow.status == EventStatus.PENDING_DEAN_APPROVAL
        assert workflow.faculty_leader_revision_response == "added section 4"

        created = notifications_about(db, event)
        assert len(created) == 1
        assert created[0].user_id == campus.dean.id
        assert "added section 4" in created[0].message

    def test_deanship_revision_skips_earlier_stages(self, db, campus, make_event):
        event = make_event(EventStatus.PENDING_DEANSHIP_APPROVAL)
        service = ApprovalService(db)

        service.request_revision(event.id, campus.deanship, "budget is missing")
        workflow = service.respond_to_revision(
            event.id, campus.club_leader, "budget attached"
        )

        assert workflow.status == EventStatus.PENDING_DEANSHIP_APPROVAL
        assert workflow.deanship_revision_message == "budget is missing"
        assert workflow.dean_of_faculty_revision_response == "budget attached"

    def test_revision_loop_renotifies_dean(self, db, campus, make_event):
        """Each pass through the dean stage is a new occurrence"""
        event = make_event()
        service = ApprovalService(db)

        service.approve(event.id, campus.faculty_leader)
        service.request_revision(event.id, campus.dean, "add a risk plan")
        service.respond_to_revision(event.id, campus.club_leader, "added section 4")

        pending = notifications_for(
            db, campus.dean, NotificationType.EVENT_PENDING_APPROVAL
        )
        assert len(pending) == 2

    def test_revision_notices_keep_their_own_stage(self, db, campus, make_event):
        """A dean-stage notice still shows the dean's exchange after the deanship asks"""
        event = make_event(EventStatus.PENDING_DEAN_APPROVAL)
        service = ApprovalService(db)

        service.request_revision(event.id, campus.dean, "add a risk plan")
        service.respond_to_revision(event.id, campus.club_leader, "risk plan attached")
        service.approve(event.id, campus.dean)
        service.request_revision(event.id, campus.deanship, "venue too small")

        inbox = NotificationService(db).get_user_notifications(
            campus.club_leader.id, PaginationParams()
        )
        exchanges = {
            n.event.revision.stage: (n.event.revision.message, n.event.revision.response)
            for n in inbox.notifications
            if n.type == NotificationType.EVENT_NEEDS_REVISION
        }
        assert exchanges == {
            "dean_of_faculty": ("add a risk plan", "risk plan attached"),
            "deanship": ("venue too small", None),
        }

    def test_deanship_rejection_is_terminal(self, db, campus, make_event):
        """Scenario D"""
        event = make_event(EventStatus.PENDING_DEANSHIP_APPROVAL)
        service = ApprovalService(db)

        workflow = service.reject(event.id, campus.deanship, "venue conflict")

        assert workflow.status == EventStatus.REJECTED
        assert workflow.rejection_reason == "venue conflict"

        for actor in (campus.faculty_leader, campus.dean, campus.deanship):
            with pytest.raises(InvalidTransitionError):
                service.approve(event.id, actor)
        with pytest.raises(InvalidTransitionError):
            service.respond_to_revision(event.id, campus.club_leader, "please")

        db.expire_all()
        assert db.get(Event, event.id).version == 2

    def test_dean_rejects(self, db, campus, make_event):
        event = make_event(EventStatus.PENDING_DEAN_APPROVAL)

        workflow = ApprovalService(db).reject(event.id, campus.dean, "not suitable")

        assert workflow.status == EventStatus.REJECTED
        assert workflow.dean_of_faculty.decision == ApprovalDecision.REJECTED
        rejection = notifications_for(db, campus.club_leader)[0]
        assert rejection.type == NotificationType.EVENT_REJECTED


class TestAuthorization:
    def test_faculty_leader_of_other_college(self, db, campus, make_event):
        event = make_event()

        with pytest.raises(ApprovalPermissionError):
            ApprovalService(db).approve(event.id, campus.other_faculty_leader)

        db.expire_all()
        assert db.get(Event, event.id).status == EventStatus.PENDING_FACULTY_APPROVAL

    def test_dean_of_other_college(self, db, campus, make_event):
        event = make_event(EventStatus.PENDING_DEAN_APPROVAL)
        with pytest.raises(ApprovalPermissionError):
            ApprovalService(db).approve(event.id, campus.other_dean)

    def test_student_cannot_approve(self, db, campus, make_event):
        event = make_event()
        with pytest.raises(ApprovalPermissionError):
            ApprovalService(db).approve(event.id, campus.student)

    def test_only_creator_responds(self, db, campus, make_event):
        event = make_event(EventStatus.NEEDS_REVISION_DEAN)
        with pytest.raises(ApprovalPermissionError):
            ApprovalService(db).respond_to_revision(event.id, campus.dean, "done")

    def test_inactive_office_holder(self, db, campus, make_event):
        event = make_event()
        campus.faculty_leader.is_active = False
        db.commit()

        with pytest.raises(ApprovalPermissionError):
            ApprovalService(db).approve(event.id, campus.faculty_leader)

    def test_blank_reason_before_lookup(self, db, campus):
        with pytest.raises(ApprovalValidationError):
            ApprovalService(db).reject(9999, campus.dean, "   ")

    def test_unknown_event(self, db, campus):
        with pytest.raises(EventNotFoundError):
            ApprovalService(db).approve(9999, campus.faculty_leader)


class TestConcurrency:
    def test_stale_expected_version(self, db, campus, make_event):
        event = make_event()

        with pytest.raises(TransitionConflictError) as exc_info:
            ApprovalService(db).approve(
                event.id, campus.faculty_leader, expected_version=7
            )

        assert str(exc_info.value) == "Event state changed, please refresh"
        db.expire_all()
        assert db.get(Event, event.id).version == 1
        assert db.query(Notification).count() == 0

    def test_matching_expected_version(self, db, campus, make_event):
        event = make_event()
        workflow = ApprovalService(db).approve(
            event.id, campus.faculty_leader, expected_version=1
        )
        assert workflow.version == 2

    def test_loser_of_race_gets_conflict(self, tmp_path):
        """
        Two sessions read the same event; the first commits its approval,
        the second still holds the old state and must not overwrite it.
        """
        engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = factory()
        campus = seed_campus(setup)
        event = Event(
            title="Robot Wars",
            start_date=DateHelpers.utc_now() + timedelta(days=5),
            community_id=campus.community.id,
            college_id=campus.engineering.id,
            created_by=campus.club_leader.id,
            status=EventStatus.PENDING_DEAN_APPROVAL,
            version=1,
            last_transition_at=DateHelpers.utc_now(),
        )
        setup.add(event)
        setup.commit()
        event_id, dean_id = event.id, campus.dean.id
        setup.close()

        winner_db, loser_db = factory(), factory()
        try:
            loser = ApprovalService(loser_db)
            loser_dean = loser_db.get(User, dean_id)
            stale = loser_db.get(Event, event_id)
            assert stale.status == EventStatus.PENDING_DEAN_APPROVAL

            winner = ApprovalService(winner_db)
            winner_dean = winner_db.get(User, dean_id)
            winner.approve(event_id, winner_dean)

            with pytest.raises(TransitionConflictError):
                loser.reject(event_id, loser_dean, "too late")

            check = factory()
            final = check.get(Event, event_id)
            assert final.status == EventStatus.PENDING_DEANSHIP_APPROVAL
            assert final.version == 2
            assert final.rejection_reason is None
            check.close()
        finally:
            winner_db.close()
            loser_db.close()
            engine.dispose()

    def test_reconciliation_during_fan_out_does_not_duplicate(self, tmp_path):
        """
        The sweep runs from another session after the approval committed but
        before its notices are written. It must leave that event to its own
        fan-out.
        """
        engine = build_engine(f"sqlite:///{tmp_path / 'sweep.db'}")
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = factory()
        campus = seed_campus(setup)
        event = Event(
            title="Robot Wars",
            start_date=DateHelpers.utc_now() + timedelta(days=5),
            community_id=campus.community.id,
            college_id=campus.engineering.id,
            created_by=campus.club_leader.id,
            status=EventStatus.PENDING_FACULTY_APPROVAL,
            version=1,
            last_transition_at=DateHelpers.utc_now() - timedelta(hours=1),
        )
        setup.add(event)
        setup.commit()
        event_id, faculty_leader_id, dean_id = (
            event.id,
            campus.faculty_leader.id,
            campus.dean.id,
        )
        setup.close()

        approver_db = factory()
        sweeps = []
        try:
            notifier = NotificationService(approver_db)
            write_notices = notifier._existing_recipients

            def sweep_then_write(*args, **kwargs):
                if not sweeps:
                    sweep_db = factory()
                    try:
                        sweeps.append(
                            NotificationService(sweep_db).reconcile_missing_notifications()
                        )
                    finally:
                        sweep_db.close()
                return write_notices(*args, **kwargs)

            notifier._existing_recipients = sweep_then_write
            ApprovalService(approver_db, notifier=notifier).approve(
                event_id, approver_db.get(User, faculty_leader_id)
            )

            check = factory()
            dean_notices = (
                check.query(Notification)
                .filter(
                    Notification.user_id == dean_id,
                    Notification.type == NotificationType.EVENT_PENDING_APPROVAL,
                )
                .count()
            )
            later = NotificationService(check).reconcile_missing_notifications(
                now=DateHelpers.utc_now() + timedelta(minutes=10)
            )
            check.close()

            assert sweeps == [{"checked": 0, "repaired": 0, "failed": 0}]
            assert dean_notices == 1
            # once settled the event is checked but already delivered
            assert later == {"checked": 1, "repaired": 0, "failed": 0}
        finally:
            approver_db.close()
            engine.dispose()

    def test_fan_out_failure_keeps_transition(self, db, campus, make_event):
        event = make_event()
        notifier = MagicMock()
        notifier.emit_side_effect.side_effect = RuntimeError("mail server down")

        workflow = ApprovalService(db, notifier=notifier).approve(
            event.id, campus.faculty_leader
        )

        assert workflow.status == EventStatus.PENDING_DEAN_APPROVAL
        db.expire_all()
        assert db.get(Event, event.id).status == EventStatus.PENDING_DEAN_APPROVAL
        notifier.emit_side_effect.assert_called_once()


class TestPendingApprovals:
    def test_each_office_sees_its_stage(self, db, campus, make_event):
        faculty_stage = make_event(title="Faculty stage")
        dean_stage = make_event(EventStatus.PENDING_DEAN_APPROVAL, title="Dean stage")
        deanship_stage = make_event(
            EventStatus.PENDING_DEANSHIP_APPROVAL, title="Deanship stage"
        )
        revision = make_event(EventStatus.NEEDS_REVISION_DEAN, title="Needs work")
        make_event(EventStatus.APPROVED, title="Done")

        service = ApprovalService(db)

        def ids(actor):
            return [item.id for item in service.get_pending_approvals(actor)]

        assert ids(campus.faculty_leader) == [faculty_stage.id]
        assert ids(campus.dean) == [dean_stage.id]
        assert ids(campus.deanship) == [deanship_stage.id]
        assert ids(campus.club_leader) == [revision.id]
        assert ids(campus.other_faculty_leader) == []
        assert ids(campus.student) == []

    def test_workflow_snapshot(self, db, campus, make_event):
        event = make_event(EventStatus.PENDING_DEAN_APPROVAL)
        workflow = ApprovalService(db).get_workflow(event.id)

        assert workflow.event_id == event.id
        assert workflow.allowed_actions == ["approve", "request_revision", "reject"]

"""
Mock Data Generator for the Campus Events API
Run this script to populate your development database with realistic test data.

Usage:
    python create_mock_data.py

Requirements:
    pip install -e .
"""

import random
import uuid
from datetime import timedelta
from faker import Faker
from sqlalchemy.orm import Session

from campus_api.database import SessionLocal, init_db
from campus_api.models import (
    User,
    College,
    Community,
    Event,
    EventRegistration,
    SavedEvent,
    Notification,
    StudySpace,
    StudySpaceReservation,
)
from campus_api.models.enums import EventStatus, ReservationStatus, UserRole
from campus_api.schemas.approvals import EventRequestCreate
from campus_api.services.approval_service import ApprovalService
from campus_api.utils.date_helpers import DateHelpers

# Initialize Faker
fake = Faker()

COLLEGES = [
    ("College of Engineering", "ENG"),
    ("College of Science", "SCI"),
    ("College of Arts", "ART"),
]


class MockDataGenerator:
    def __init__(self, db: Session):
        self.db = db
        self.colleges = []
        self.communities = []
        self.students = []
        self.deanship = None
        self.events = []

    def clear_existing_data(self):
        """Clear existing data (use with caution!)"""
        print("🗑️  Clearing existing data...")

        # Delete in reverse dependency order
        self.db.query(StudySpaceReservation).delete()
        self.db.query(StudySpace).delete()
        self.db.query(Notification).delete()
        self.db.query(SavedEvent).delete()
        self.db.query(EventRegistration).delete()
        self.db.query(Event).delete()
        self.db.query(Community).delete()
        self.db.query(User).delete()
        self.db.query(College).delete()

        self.db.commit()
        print("✅ Existing data cleared")

    def _user(self, role, college=None, email=None):
        user = User(
            supabase_id=str(uuid.uuid4()),
            email=email or fake.unique.email(),
            name=fake.name(),
            role=role,
            college_id=college.id if college else None,
            is_active=True,
        )
        self.db.add(user)
        return user

    def create_colleges(self):
        print(f"🏛️  Creating {len(COLLEGES)} colleges with their office holders...")

        for name, code in COLLEGES:
            college = College(name=name, code=code)
            self.db.add(college)
            self.db.flush()
            self.colleges.append(college)

            self._user(UserRole.FACULTY_LEADER, college)
            self._user(UserRole.DEAN_OF_FACULTY, college)

        self.deanship = self._user(
            UserRole.DEANSHIP_OF_STUDENT_AFFAIRS, email="deanship@campus.edu"
        )
        self._user(UserRole.ADMIN, email="admin@campus.edu")
        self.db.commit()

    def create_communities(self, count_per_college=2):
        print(f"🤝 Creating {count_per_college} communities per college...")

        for college in self.colleges:
            for _ in range(count_per_college):
                leader = self._user(UserRole.CLUB_LEADER, college)
                self.db.flush()
                community = Community(
                    name=f"{fake.word().title()} {random.choice(['Club', 'Society', 'Circle'])}",
                    college_id=college.id,
                    club_leader_id=leader.id,
                )
                self.db.add(community)
                self.communities.append(community)

        self.db.commit()

    def create_students(self, count=30):
        print(f"🎓 Creating {count} students...")

        for _ in range(count):
            self.students.append(
                self._user(UserRole.STUDENT, random.choice(self.colleges))
            )
        self.db.commit()

    def _office_holder(self, role, college_id):
        return (
            self.db.query(User)
            .filter(User.role == role, User.college_id == college_id)
            .first()
        )

    def create_events(self, count_per_community=3):
        """Request events and walk them through the approval chain"""
        print(f"📅 Creating {count_per_community} events per community...")

        service = ApprovalService(self.db)
        now = DateHelpers.utc_now()

        for community in self.communities:
            leader = self.db.get(User, community.club_leader_id)
            faculty_leader = self._office_holder(
                UserRole.FACULTY_LEADER, community.college_id
            )
            dean = self._office_holder(UserRole.DEAN_OF_FACULTY, community.college_id)

            for _ in range(count_per_community):
                start = now + timedelta(
                    hours=random.choice([1, 24, 48, 24 * 7, 24 * 21]),
                    minutes=random.randint(0, 5),
                )
                workflow = service.create_event_request(
                    EventRequestCreate(
                        title=fake.catch_phrase(),
                        description=fake.paragraph(),
                        location=f"Hall {random.choice('ABCDE')}{random.randint(1, 20)}",
                        start_date=start,
                        end_date=start + timedelta(hours=2),
                        capacity=random.choice([None, 30, 80, 200]),
                        community_id=community.id,
                    ),
                    leader,
                )
                event_id = workflow.event_id

                outcome = random.choice(
                    ["pending", "dean", "revision", "deanship", "approved", "rejected"]
                )
                if outcome == "pending":
                    continue

                service.approve(event_id, faculty_leader)
                if outcome == "dean":
                    continue
                if outcome == "revision":
                    service.request_revision(event_id, dean, fake.sentence())
                    continue

                service.approve(event_id, dean)
                if outcome == "deanship":
                    continue
                if outcome == "rejected":
                    service.reject(event_id, self.deanship, fake.sentence())
                    continue

                service.approve(event_id, self.deanship)
                self.events.append(self.db.get(Event, event_id))

    def create_registrations(self):
        """Register and bookmark students for approved events"""
        print("🙋 Creating registrations and saved events...")

        for event in self.events:
            for student in random.sample(self.students, k=min(8, len(self.students))):
                if random.random() < 0.6:
                    self.db.add(EventRegistration(event_id=event.id, user_id=student.id))
                else:
                    self.db.add(SavedEvent(event_id=event.id, user_id=student.id))
        self.db.commit()

    def create_study_spaces(self, count=4):
        print(f"📚 Creating {count} study spaces with reservations...")

        today = DateHelpers.utc_midnight()
        for i in range(count):
            space = StudySpace(name=f"Library Room {i + 1}", capacity=random.randint(2, 8))
            self.db.add(space)
            self.db.flush()

            for offset in range(-5, 6):
                student = random.choice(self.students)
                self.db.add(
                    StudySpaceReservation(
                        study_space_id=space.id,
                        user_id=student.id,
                        date=today + timedelta(days=offset),
                        status=random.choice(
                            [ReservationStatus.ACTIVE] * 4 + [ReservationStatus.CANCELLED]
                        ),
                    )
                )
        self.db.commit()

    def generate_all_data(self, clear_existing=False):
        """Generate all mock data"""
        print("🚀 Starting mock data generation...")

        if clear_existing:
            self.clear_existing_data()

        # Create data in dependency order
        self.create_colleges()
        self.create_communities(count_per_college=2)
        self.create_students(count=30)
        self.create_events(count_per_community=3)
        self.create_registrations()
        self.create_study_spaces(count=4)

        print("🎉 Mock data generation completed!")
        print("📊 Summary:")
        print(f"   - Colleges: {len(self.colleges)}")
        print(f"   - Communities: {len(self.communities)}")
        print(f"   - Students: {len(self.students)}")
        print(f"   - Events: {self.db.query(Event).count()} ({len(self.events)} approved)")
        print(f"   - Notifications: {self.db.query(Notification).count()}")


def main():
    """Main function to run the mock data generator"""
    print("🎓 Campus Events Mock Data Generator")
    print("=" * 40)

    # Initialize database
    init_db()

    # Create database session
    db = SessionLocal()

    try:
        generator = MockDataGenerator(db)

        # Ask user if they want to clear existing data
        clear_existing = input("Clear existing data? (y/N): ").lower().startswith("y")

        generator.generate_all_data(clear_existing=clear_existing)

        print("\n✅ Mock data generation successful!")
        approved = [e.id for e in generator.events if e.status == EventStatus.APPROVED]
        print(f"Approved events: {approved}")

    except Exception as e:
        print(f"\n❌ Error generating mock data: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()

"""Builders for seeding mentors, windows, calls and group sessions in unit tests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from mentorship.models.availability import AvailabilityWindow, BlockedDate
from mentorship.models.call import Call, CallStatus
from mentorship.models.catalog import Recording, RecordingSeries, RecordingSeriesItem
from mentorship.models.group_session import (
    GroupSession,
    GroupSessionParticipant,
    GroupSessionStatus,
    ParticipantStatus,
)
from mentorship.models.user import MentorProfile, User, UserRole

_counter = 0


def _next(prefix: str) -> str:
    global _counter
    _counter += 1
    return f"{prefix}{_counter}@example.com"


def create_user(db: Session, *, full_name: str = "Pat Patient", role: UserRole = UserRole.PATIENT) -> User:
    user = User(email=_next("user"), full_name=full_name, role=role.value)
    db.add(user)
    db.flush()
    return user


def create_mentor(
    db: Session,
    *,
    timezone: str = "America/New_York",
    hourly_rate: Decimal = Decimal("60.00"),
    payouts_enabled: bool = True,
    full_name: str = "Morgan Mentor",
) -> User:
    mentor = create_user(db, full_name=full_name, role=UserRole.MENTOR)
    profile = MentorProfile(
        user_id=mentor.id,
        timezone=timezone,
        hourly_rate=hourly_rate,
        stripe_account_id=f"acct_{mentor.id[-8:]}" if payouts_enabled else None,
        payouts_enabled=payouts_enabled,
    )
    db.add(profile)
    db.flush()
    db.refresh(mentor)
    return mentor


def add_window(
    db: Session,
    mentor: User,
    *,
    day_of_week: int,
    start: str,
    end: str,
    timezone: Optional[str] = None,
) -> AvailabilityWindow:
    window = AvailabilityWindow(
        mentor_id=mentor.id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        timezone=timezone or mentor.mentor_profile.timezone,
    )
    db.add(window)
    db.flush()
    return window


def block_date(db: Session, mentor: User, blocked: date) -> BlockedDate:
    row = BlockedDate(mentor_id=mentor.id, blocked_date=blocked)
    db.add(row)
    db.flush()
    return row


def create_call(
    db: Session,
    *,
    patient: User,
    mentor: User,
    scheduled_at: datetime,
    duration_minutes: int = 60,
    status: CallStatus = CallStatus.CONFIRMED,
    price: Decimal = Decimal("60.00"),
    stripe_payment_intent_id: Optional[str] = None,
) -> Call:
    mentor_share = (price * Decimal("0.75")).quantize(Decimal("0.01"))
    call = Call(
        patient_id=patient.id,
        mentor_id=mentor.id,
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        price=price,
        platform_fee=price - mentor_share,
        mentor_payout=mentor_share,
        status=status.value,
        stripe_payment_intent_id=stripe_payment_intent_id,
    )
    db.add(call)
    db.flush()
    return call


def create_group_session(
    db: Session,
    *,
    mentor: User,
    scheduled_at: datetime,
    duration_minutes: int = 60,
    capacity: int = 8,
    min_attendees: int = 3,
    price_per_person: Decimal = Decimal("20.00"),
    status: GroupSessionStatus = GroupSessionStatus.SCHEDULED,
    video_room_url: Optional[str] = None,
) -> GroupSession:
    session = GroupSession(
        mentor_id=mentor.id,
        title="Life after knee surgery",
        procedure_type="Total Knee Replacement",
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        capacity=capacity,
        min_attendees=min_attendees,
        price_per_person=price_per_person,
        status=status.value,
        video_room_url=video_room_url,
    )
    db.add(session)
    db.flush()
    return session


def register(
    db: Session,
    session: GroupSession,
    users: Iterable[User],
    *,
    amount_paid: Decimal = Decimal("20.00"),
    status: ParticipantStatus = ParticipantStatus.REGISTERED,
) -> List[GroupSessionParticipant]:
    participants = []
    for user in users:
        participant = GroupSessionParticipant(
            session_id=session.id,
            user_id=user.id,
            amount_paid=amount_paid,
            status=status.value,
            stripe_payment_intent_id=f"pi_{user.id[-10:]}" if amount_paid > 0 else None,
        )
        db.add(participant)
        participants.append(participant)
    db.flush()
    db.refresh(session)
    return participants


def create_recording(db: Session, *, contributor: User, price: Decimal = Decimal("12.00")) -> Recording:
    recording = Recording(contributor_id=contributor.id, title="Week one after ACL surgery", price=price)
    db.add(recording)
    db.flush()
    return recording


def create_series(db: Session, *, contributor: User, recordings: List[Recording]) -> RecordingSeries:
    series = RecordingSeries(contributor_id=contributor.id, title="ACL recovery", price=Decimal("30.00"))
    db.add(series)
    db.flush()
    for position, recording in enumerate(recordings):
        db.add(RecordingSeriesItem(series_id=series.id, recording_id=recording.id, position=position))
    db.flush()
    db.refresh(series)
    return series

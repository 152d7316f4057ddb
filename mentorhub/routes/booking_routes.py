import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mentorhub.auth.dependencies import get_current_user, is_admin
from mentorhub.database import get_db
from mentorhub.models.mentor import Mentor, SessionType
from mentorhub.models.session import MentorSession
from mentorhub.models.user import User
from mentorhub.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_mentor_or_404,
    get_mentor_windows,
)
from mentorhub.services.pricing import compute_session_price
from mentorhub.services.realtime import feed
from mentorhub.services.slot_generator import (
    BOOKING_WINDOW_DAYS,
    format_slot,
    generate_slots,
    is_date_selectable,
    list_selectable_dates,
)

router = APIRouter(tags=['booking'])

logger = logging.getLogger(__name__)

MAX_SESSION_NOTES_LENGTH = 600
ACTIVE_SESSION_STATUSES = ('pending', 'confirmed')
SESSION_STATUSES = ('pending', 'confirmed', 'cancelled', 'completed')
ALLOWED_STATUS_TRANSITIONS = {
    'pending': {'confirmed', 'cancelled'},
    'confirmed': {'completed', 'cancelled'},
}


class CalendarDateResponse(BaseModel):
    date: date
    day_of_week: int
    is_available: bool


class SlotListResponse(BaseModel):
    mentor_id: int
    date: date
    slots: list[str]


class BookSessionRequest(BaseModel):
    mentor_id: int
    session_type_id: int
    date: date
    time: time
    notes: str | None = None

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_SESSION_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_SESSION_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateSessionStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SESSION_STATUSES:
            raise ValueError('Invalid session status.')
        return normalized


class SessionTypeSummary(BaseModel):
    id: int
    name: str
    duration_minutes: int

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    id: int
    mentor_id: int
    student_id: int
    session_type_id: int | None = None
    scheduled_at: datetime
    duration_minutes: int
    price: int
    status: str
    notes: str | None = None
    session_type: SessionTypeSummary | None = None
    mentor_name: str | None = None
    mentor_title: str | None = None


class BookedSessionResponse(BaseModel):
    id: int
    scheduled_at: datetime
    duration_minutes: int
    status: str

    class Config:
        from_attributes = True


def serialize_session(session: MentorSession) -> SessionResponse:
    mentor = session.mentor
    return SessionResponse(
        id=session.id,
        mentor_id=session.mentor_id,
        student_id=session.student_id,
        session_type_id=session.session_type_id,
        scheduled_at=session.scheduled_at,
        duration_minutes=session.duration_minutes,
        price=session.price,
        status=session.status or 'pending',
        notes=session.notes,
        session_type=SessionTypeSummary.model_validate(session.session_type) if session.session_type else None,
        mentor_name=mentor.user.full_name if mentor and mentor.user else None,
        mentor_title=mentor.title if mentor else None,
    )


def get_active_sessions(db: Session, mentor_id: int, range_start: datetime, range_end: datetime) -> list[MentorSession]:
    # Sessions never run past a day, so one day of lookback covers any overlap.
    return db.query(MentorSession).filter(
        MentorSession.mentor_id == mentor_id,
        MentorSession.status.in_(ACTIVE_SESSION_STATUSES),
        MentorSession.scheduled_at >= range_start - timedelta(days=1),
        MentorSession.scheduled_at < range_end,
    ).all()


def session_interval(session: MentorSession) -> tuple[datetime, datetime]:
    return session.scheduled_at, session.scheduled_at + timedelta(minutes=session.duration_minutes or 0)


def find_overlapping_session(
    db: Session,
    mentor_id: int,
    start_time: datetime,
    end_time: datetime,
) -> MentorSession | None:
    for session in get_active_sessions(db, mentor_id, start_time, end_time):
        booked_start, booked_end = session_interval(session)
        if booked_start < end_time and booked_end > start_time:
            return session
    return None


def get_booked_slots(db: Session, mentor_id: int, slot_date: date, slots: list[str]) -> set[str]:
    day_start = datetime.combine(slot_date, time(0, 0))
    intervals = [
        session_interval(session)
        for session in get_active_sessions(db, mentor_id, day_start, day_start + timedelta(days=1))
    ]

    booked: set[str] = set()
    for slot in slots:
        slot_start = datetime.combine(slot_date, time.fromisoformat(slot))
        if any(booked_start <= slot_start < booked_end for booked_start, booked_end in intervals):
            booked.add(slot)
    return booked


def validate_booking_date(slot_date: date, today: date) -> None:
    if slot_date < today:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Sessions cannot be booked in the past.',
        )

    if slot_date > today + timedelta(days=BOOKING_WINDOW_DAYS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Sessions can only be booked within the next {BOOKING_WINDOW_DAYS} days.',
        )


@router.get('/mentors/{mentor_id}/calendar', response_model=list[CalendarDateResponse])
def list_mentor_calendar(mentor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_mentor_or_404(db, mentor_id)
        windows = get_mentor_windows(db, mentor_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        CalendarDateResponse(date=candidate_date, day_of_week=candidate_date.isoweekday() % 7, is_available=available)
        for candidate_date, available in list_selectable_dates(windows, date.today())
    ]


@router.get('/mentors/{mentor_id}/slots', response_model=SlotListResponse)
def list_mentor_slots(
    mentor_id: int,
    slot_date: date = Query(..., alias='date'),
    exclude_booked: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    validate_booking_date(slot_date, date.today())
    ensure_database_ready()

    try:
        get_mentor_or_404(db, mentor_id)
        slots = generate_slots(get_mentor_windows(db, mentor_id), slot_date)
        if exclude_booked:
            booked = get_booked_slots(db, mentor_id, slot_date, slots)
            slots = [slot for slot in slots if slot not in booked]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return SlotListResponse(mentor_id=mentor_id, date=slot_date, slots=slots)


@router.get('/mentors/{mentor_id}/sessions', response_model=list[BookedSessionResponse])
def list_mentor_sessions(mentor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_mentor_or_404(db, mentor_id)
        return db.query(MentorSession).filter(
            MentorSession.mentor_id == mentor_id,
            MentorSession.status.in_(ACTIVE_SESSION_STATUSES),
            MentorSession.scheduled_at >= datetime.now(),
        ).order_by(MentorSession.scheduled_at.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/sessions', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def book_session(
    data: BookSessionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    validate_booking_date(data.date, date.today())
    ensure_database_ready()

    try:
        mentor = get_mentor_or_404(db, data.mentor_id)
        if not mentor.is_available:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This mentor is not accepting bookings.',
            )

        if mentor.user_id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Mentors cannot book sessions with themselves.',
            )

        session_type = db.query(SessionType).filter(SessionType.id == data.session_type_id).first()
        if not session_type:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Session type not found.',
            )

        windows = get_mentor_windows(db, mentor.id)
        if not is_date_selectable(windows, data.date, date.today()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='The mentor is not available on this date.',
            )

        if format_slot(data.time) not in generate_slots(windows, data.date):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='The selected time is not an available slot.',
            )

        start_time = datetime.combine(data.date, data.time)
        end_time = start_time + timedelta(minutes=session_type.duration_minutes)
        if start_time <= datetime.now():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Sessions must be scheduled in the future.',
            )

        if find_overlapping_session(db, mentor.id, start_time, end_time):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This time is already booked.',
            )

        session = MentorSession(
            mentor_id=mentor.id,
            student_id=current_user.id,
            session_type_id=session_type.id,
            scheduled_at=start_time,
            duration_minutes=session_type.duration_minutes,
            price=compute_session_price(mentor.hourly_rate, session_type.duration_minutes, session_type.base_price),
            status='pending',
            notes=data.notes,
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        response = serialize_session(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('User %s booked session %s with mentor %s at %s', current_user.id, session.id, mentor.id, start_time)
    feed.publish('mentor_sessions', 'INSERT', response.model_dump(mode='json'))
    return response


@router.get('/sessions/me', response_model=list[SessionResponse])
def list_my_sessions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        sessions = db.query(MentorSession).filter(
            MentorSession.student_id == current_user.id,
        ).order_by(MentorSession.scheduled_at.asc()).all()
        return [serialize_session(session) for session in sessions]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/sessions/{session_id}/status', response_model=SessionResponse)
def update_session_status(
    session_id: int,
    data: UpdateSessionStatusRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        session = db.query(MentorSession).filter(MentorSession.id == session_id).first()
        if not session:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Session not found.',
            )

        mentor = db.query(Mentor).filter(Mentor.id == session.mentor_id).first()
        is_mentor = mentor is not None and mentor.user_id == current_user.id
        is_student = session.student_id == current_user.id

        if not (is_mentor or is_admin(current_user)):
            if not is_student:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Only the student, the mentor or an admin can update this session.',
                )
            if data.status != 'cancelled':
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Students can only cancel their own sessions.',
                )
            if session.scheduled_at <= datetime.now():
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail='Past sessions cannot be cancelled.',
                )

        current_status = session.status or 'pending'
        if data.status not in ALLOWED_STATUS_TRANSITIONS.get(current_status, set()):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot change a {current_status} session to {data.status}.',
            )

        session.status = data.status
        if data.status == 'completed' and mentor is not None:
            mentor.total_sessions = (mentor.total_sessions or 0) + 1

        db.commit()
        db.refresh(session)
        response = serialize_session(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('User %s moved session %s from %s to %s', current_user.id, session.id, current_status, data.status)
    feed.publish('mentor_sessions', 'UPDATE', response.model_dump(mode='json'))
    return response

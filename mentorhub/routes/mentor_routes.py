import logging
from datetime import time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mentorhub.auth.dependencies import (
    MENTOR_ROLE,
    ensure_can_manage_mentor,
    get_current_user,
    require_admin,
)
from mentorhub.database import get_db
from mentorhub.models.availability import MentorAvailability
from mentorhub.models.mentor import Mentor, SessionType
from mentorhub.models.user import User
from mentorhub.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_mentor_availability_rows,
    get_mentor_or_404,
)
from mentorhub.services.realtime import feed
from mentorhub.services.slot_generator import AvailabilityWindow, WindowValidationError, format_slot

router = APIRouter(tags=['mentors'])

logger = logging.getLogger(__name__)

MAX_EXPERTISE_TAGS = 20


class MentorProfileResponse(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None


class MentorResponse(BaseModel):
    id: int
    user_id: int
    title: str | None = None
    company: str | None = None
    bio: str | None = None
    expertise: list[str] = []
    hourly_rate: float | None = None
    rating: float | None = None
    total_sessions: int = 0
    is_available: bool
    profile: MentorProfileResponse | None = None


class SessionTypeResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    duration_minutes: int
    base_price: int

    class Config:
        from_attributes = True


class CreateMentorRequest(BaseModel):
    user_email: str
    title: str | None = None
    company: str | None = None
    bio: str | None = None
    expertise: list[str] = []
    hourly_rate: float | None = None

    @field_validator('user_email')
    @classmethod
    def validate_user_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('User email is required.')
        return normalized

    @field_validator('expertise')
    @classmethod
    def validate_expertise(cls, value: list[str]) -> list[str]:
        tags = [tag.strip() for tag in value if tag.strip()]
        if len(tags) > MAX_EXPERTISE_TAGS:
            raise ValueError(f'At most {MAX_EXPERTISE_TAGS} expertise tags are allowed.')
        return tags

    @field_validator('hourly_rate')
    @classmethod
    def validate_hourly_rate(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError('Hourly rate cannot be negative.')
        return value


class AvailabilityWindowRequest(BaseModel):
    day_of_week: int
    start_time: str
    end_time: str

    @model_validator(mode='after')
    def validate_window(self) -> 'AvailabilityWindowRequest':
        try:
            window = AvailabilityWindow.from_row(self.model_dump())
        except WindowValidationError as exc:
            raise ValueError(str(exc)) from exc

        self.start_time = format_slot(window.start_time)
        self.end_time = format_slot(window.end_time)
        return self

    def start(self) -> time:
        return time.fromisoformat(self.start_time)

    def end(self) -> time:
        return time.fromisoformat(self.end_time)


class AvailabilityWindowResponse(BaseModel):
    id: int
    mentor_id: int
    day_of_week: int | None = None
    start_time: str
    end_time: str


def serialize_mentor(mentor: Mentor) -> MentorResponse:
    profile = None
    if mentor.user is not None:
        profile = MentorProfileResponse(full_name=mentor.user.full_name, avatar_url=mentor.user.avatar_url)

    return MentorResponse(
        id=mentor.id,
        user_id=mentor.user_id,
        title=mentor.title,
        company=mentor.company,
        bio=mentor.bio,
        expertise=mentor.expertise or [],
        hourly_rate=mentor.hourly_rate,
        rating=mentor.rating,
        total_sessions=mentor.total_sessions or 0,
        is_available=bool(mentor.is_available),
        profile=profile,
    )


def serialize_availability(row: MentorAvailability) -> AvailabilityWindowResponse:
    return AvailabilityWindowResponse(
        id=row.id,
        mentor_id=row.mentor_id,
        day_of_week=row.day_of_week,
        start_time=format_slot(row.start_time),
        end_time=format_slot(row.end_time),
    )


def mentor_matches_search(mentor: MentorResponse, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True

    full_name = (mentor.profile.full_name or '') if mentor.profile else ''
    return (
        needle in full_name.lower()
        or needle in (mentor.company or '').lower()
        or any(needle in tag.lower() for tag in mentor.expertise)
    )


@router.get('', response_model=list[MentorResponse])
def list_mentors(
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        mentors = db.query(Mentor).filter(
            Mentor.is_available.is_(True),
        ).order_by(Mentor.rating.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    results = [serialize_mentor(mentor) for mentor in mentors]
    if search:
        results = [mentor for mentor in results if mentor_matches_search(mentor, search)]

    return results


@router.get('/session-types', response_model=list[SessionTypeResponse])
def list_session_types(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(SessionType).order_by(SessionType.duration_minutes.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=MentorResponse, status_code=status.HTTP_201_CREATED)
def create_mentor(
    data: CreateMentorRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        user = db.query(User).filter(User.email == data.user_email).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='User not found.',
            )

        existing = db.query(Mentor).filter(Mentor.user_id == user.id).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This user already has a mentor profile.',
            )

        mentor = Mentor(
            user_id=user.id,
            title=data.title,
            company=data.company,
            bio=data.bio,
            expertise=data.expertise,
            hourly_rate=data.hourly_rate,
            total_sessions=0,
            is_available=True,
        )
        user.role = MENTOR_ROLE
        db.add(mentor)
        db.commit()
        db.refresh(mentor)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s created mentor %s for %s', admin.email, mentor.id, user.email)
    response = serialize_mentor(mentor)
    feed.publish('mentors', 'INSERT', response.model_dump(mode='json'))
    return response


@router.get('/{mentor_id}', response_model=MentorResponse)
def get_mentor(mentor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return serialize_mentor(get_mentor_or_404(db, mentor_id))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{mentor_id}/availability-toggle', response_model=MentorResponse)
def toggle_mentor_availability(
    mentor_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        mentor = get_mentor_or_404(db, mentor_id)
        mentor.is_available = not mentor.is_available
        db.commit()
        db.refresh(mentor)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s set mentor %s is_available=%s', admin.email, mentor.id, mentor.is_available)
    response = serialize_mentor(mentor)
    feed.publish('mentors', 'UPDATE', response.model_dump(mode='json'))
    return response


@router.get('/{mentor_id}/availability', response_model=list[AvailabilityWindowResponse])
def list_mentor_availability(mentor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_mentor_or_404(db, mentor_id)
        return [serialize_availability(row) for row in get_mentor_availability_rows(db, mentor_id)]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post(
    '/{mentor_id}/availability',
    response_model=AvailabilityWindowResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_mentor_availability(
    mentor_id: int,
    data: AvailabilityWindowRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        mentor = get_mentor_or_404(db, mentor_id)
        ensure_can_manage_mentor(current_user, mentor)

        duplicate = db.query(MentorAvailability).filter(
            MentorAvailability.mentor_id == mentor_id,
            MentorAvailability.day_of_week == data.day_of_week,
            MentorAvailability.start_time == data.start(),
            MentorAvailability.end_time == data.end(),
        ).first()
        if duplicate:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This availability window already exists.',
            )

        row = MentorAvailability(
            mentor_id=mentor_id,
            day_of_week=data.day_of_week,
            start_time=data.start(),
            end_time=data.end(),
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    response = serialize_availability(row)
    feed.publish('mentor_availability', 'INSERT', response.model_dump(mode='json'))
    return response


@router.delete('/{mentor_id}/availability/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_mentor_availability(
    mentor_id: int,
    window_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        mentor = get_mentor_or_404(db, mentor_id)
        ensure_can_manage_mentor(current_user, mentor)

        row = db.query(MentorAvailability).filter(
            MentorAvailability.id == window_id,
            MentorAvailability.mentor_id == mentor_id,
        ).first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability window not found.',
            )

        response = serialize_availability(row)
        db.delete(row)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    feed.publish('mentor_availability', 'DELETE', response.model_dump(mode='json'))

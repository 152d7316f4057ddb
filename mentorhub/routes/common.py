from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mentorhub.database import ensure_booking_schema
from mentorhub.models.availability import MentorAvailability
from mentorhub.models.mentor import Mentor
from mentorhub.services.slot_generator import AvailabilityWindow, load_windows

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def get_mentor_or_404(db: Session, mentor_id: int) -> Mentor:
    mentor = db.query(Mentor).filter(Mentor.id == mentor_id).first()
    if not mentor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Mentor not found.',
        )
    return mentor


def get_mentor_availability_rows(db: Session, mentor_id: int) -> list[MentorAvailability]:
    return db.query(MentorAvailability).filter(
        MentorAvailability.mentor_id == mentor_id,
    ).order_by(MentorAvailability.day_of_week.asc(), MentorAvailability.start_time.asc()).all()


def get_mentor_windows(db: Session, mentor_id: int) -> list[AvailabilityWindow]:
    return load_windows(get_mentor_availability_rows(db, mentor_id))

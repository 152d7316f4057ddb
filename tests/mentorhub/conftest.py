import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from mentorhub.database import Base  # noqa: E402
from mentorhub.models.availability import MentorAvailability  # noqa: E402
from mentorhub.models.mentor import Mentor, SessionType  # noqa: E402
from mentorhub.models.session import MentorSession  # noqa: E402,F401
from mentorhub.models.user import User  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('mentorhub.routes.mentor_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('mentorhub.routes.booking_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: str = 'user', full_name: str | None = None) -> User:
        user = User(email=email, role=role, full_name=full_name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_mentor(db, make_user):
    def _make_mentor(
        email: str = 'mentor@example.com',
        full_name: str = 'Ada Lovelace',
        hourly_rate: float | None = None,
        rating: float | None = 4.5,
        company: str | None = None,
        expertise: list[str] | None = None,
        is_available: bool = True,
    ) -> Mentor:
        user = make_user(email, role='mentor', full_name=full_name)
        mentor = Mentor(
            user_id=user.id,
            hourly_rate=hourly_rate,
            rating=rating,
            company=company,
            expertise=expertise or [],
            total_sessions=0,
            is_available=is_available,
        )
        db.add(mentor)
        db.commit()
        db.refresh(mentor)
        return mentor

    return _make_mentor


@pytest.fixture
def make_session_type(db):
    def _make_session_type(name: str = 'Mock interview', duration_minutes: int = 60, base_price: int = 500) -> SessionType:
        session_type = SessionType(name=name, duration_minutes=duration_minutes, base_price=base_price)
        db.add(session_type)
        db.commit()
        db.refresh(session_type)
        return session_type

    return _make_session_type


@pytest.fixture
def add_window(db):
    def _add_window(mentor: Mentor, day_of_week: int, start: time, end: time) -> MentorAvailability:
        row = MentorAvailability(mentor_id=mentor.id, day_of_week=day_of_week, start_time=start, end_time=end)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _add_window

from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from mentorhub.core import config


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())

        index_statements = []
        if 'mentor_availability' in table_names:
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_mentor_availability_mentor_day '
                'ON mentor_availability(mentor_id, day_of_week)'
            )
        if 'mentor_sessions' in table_names:
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_mentor_sessions_mentor_scheduled '
                'ON mentor_sessions(mentor_id, scheduled_at)'
            )
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_mentor_sessions_student_scheduled '
                'ON mentor_sessions(student_id, scheduled_at)'
            )

        with engine.begin() as connection:
            for statement in index_statements:
                connection.execute(text(statement))

        _booking_schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

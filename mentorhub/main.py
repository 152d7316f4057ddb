import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from mentorhub.core import config
from mentorhub.database import Base, engine, ensure_booking_schema
from mentorhub.models import availability, mentor, session, user  # noqa: F401
from mentorhub.routes import auth_routes, booking_routes, mentor_routes, realtime_routes

logging.basicConfig(level=logging.INFO)

config.validate_runtime_config()

app = FastAPI(title='MentorHub API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'MentorHub API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(mentor_routes.router, prefix='/mentors')
app.include_router(booking_routes.router)
app.include_router(realtime_routes.router, prefix='/realtime')

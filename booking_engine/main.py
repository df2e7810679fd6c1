import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from booking_engine.core import config
from booking_engine.database import ensure_meeting_schema, init_db
from booking_engine.routes import availability_routes, meeting_routes

config.validate_runtime_config()

app = FastAPI(title='Meeting Booking Engine')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        init_db()
        ensure_meeting_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Meeting Booking Engine Running'}


app.include_router(availability_routes.router, prefix='/meetings')
app.include_router(meeting_routes.router, prefix='/meetings')

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from appointment_scheduler.core import config
from appointment_scheduler.database import engine, ensure_appointment_schema
from appointment_scheduler.models import appointment
from appointment_scheduler.routes import appointment_routes

config.validate_runtime_config()

app = FastAPI(title='Medical Appointment Scheduler')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        appointment.Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Medical Appointment Scheduler API Running'}


app.include_router(appointment_routes.router, prefix='/api/appointments')

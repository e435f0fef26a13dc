from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from appointment_scheduler.core import config
from appointment_scheduler.database import SessionLocal, ensure_appointment_schema
from appointment_scheduler.models.appointment import (
    DESCRIPTION_MAX_LENGTH,
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    PATIENT_NAME_MAX_LENGTH,
    PROFESSIONAL_NAME_MAX_LENGTH,
)
from appointment_scheduler.services.appointment_store import AppointmentDraft, SqlAppointmentStore
from appointment_scheduler.services.exceptions import AppointmentConflictError
from appointment_scheduler.services.scheduling import SchedulingEngine, SchedulingPolicy

router = APIRouter(tags=['appointments'])

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

scheduling_engine = SchedulingEngine(
    policy=SchedulingPolicy(check_conflicts_on_update=config.CHECK_CONFLICTS_ON_UPDATE),
    conflict_scope=config.CONFLICT_SCOPE,
)


def _normalize_name(value: str, label: str, max_length: int) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')
    return normalized


class AppointmentRequest(BaseModel):
    patient_name: str
    professional_name: str
    start_time: datetime
    duration_minutes: int
    description: str | None = None

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, value: str) -> str:
        return _normalize_name(value, 'Patient name', PATIENT_NAME_MAX_LENGTH)

    @field_validator('professional_name')
    @classmethod
    def validate_professional_name(cls, value: str) -> str:
        return _normalize_name(value, 'Healthcare professional name', PROFESSIONAL_NAME_MAX_LENGTH)

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime) -> datetime:
        # Stored times are naive local times; offsets cannot be compared against them.
        if value.tzinfo is not None:
            raise ValueError('Start time must not include a timezone offset.')
        return value

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration_minutes(cls, value: int) -> int:
        if not MIN_DURATION_MINUTES <= value <= MAX_DURATION_MINUTES:
            raise ValueError(
                f'Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes.'
            )
        return value

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > DESCRIPTION_MAX_LENGTH:
            raise ValueError(f'Description must be {DESCRIPTION_MAX_LENGTH} characters or fewer.')

        return normalized

    def to_draft(self) -> AppointmentDraft:
        return AppointmentDraft(
            patient_name=self.patient_name,
            professional_name=self.professional_name,
            start_time=self.start_time,
            duration_minutes=self.duration_minutes,
            description=self.description,
        )


class AppointmentResponse(BaseModel):
    id: int
    patient_name: str
    professional_name: str
    start_time: datetime
    duration_minutes: int
    end_time: datetime
    description: str | None = None

    class Config:
        from_attributes = True


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def appointment_not_found(appointment_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f'Appointment with ID {appointment_id} not found.',
    )


def scheduling_conflict(exc: AppointmentConflictError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            'message': exc.message,
            'alternative_times': [alternative.isoformat() for alternative in exc.alternative_times],
        },
    )


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return scheduling_engine.list_appointments(SqlAppointmentStore(db))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = scheduling_engine.get_appointment(SqlAppointmentStore(db), appointment_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    if appointment is None:
        raise appointment_not_found(appointment_id)

    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: AppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return scheduling_engine.create_appointment(SqlAppointmentStore(db), data.to_draft())
    except AppointmentConflictError as exc:
        raise scheduling_conflict(exc) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(appointment_id: int, data: AppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = scheduling_engine.update_appointment(SqlAppointmentStore(db), appointment_id, data.to_draft())
    except AppointmentConflictError as exc:
        raise scheduling_conflict(exc) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    if appointment is None:
        raise appointment_not_found(appointment_id)

    return appointment


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        deleted = scheduling_engine.delete_appointment(SqlAppointmentStore(db), appointment_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    if not deleted:
        raise appointment_not_found(appointment_id)

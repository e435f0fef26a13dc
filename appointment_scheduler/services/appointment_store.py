"""SQLAlchemy-backed storage for appointments."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from appointment_scheduler.models.appointment import Appointment


@dataclass(frozen=True)
class AppointmentDraft:
    """Every appointment field except the store-assigned id."""
    patient_name: str
    professional_name: str
    start_time: datetime
    duration_minutes: int
    description: str | None = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)


class SqlAppointmentStore:
    """Appointment store over a single session.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(self, draft: AppointmentDraft) -> Appointment:
        appointment = Appointment()
        self._apply(appointment, draft)
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def find_by_id(self, appointment_id: int) -> Appointment | None:
        return self.db.get(Appointment, appointment_id)

    def update(self, appointment: Appointment, draft: AppointmentDraft) -> Appointment:
        self._apply(appointment, draft)
        self.db.flush()
        return appointment

    def remove(self, appointment: Appointment) -> None:
        self.db.delete(appointment)
        self.db.flush()

    def list_all(self) -> list[Appointment]:
        return self.db.query(Appointment).order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()

    def find_overlapping(
        self,
        query_start: datetime,
        query_end: datetime,
        professional_name: str | None = None,
        exclude_id: int | None = None,
    ) -> list[Appointment]:
        query = self.db.query(Appointment).filter(
            Appointment.start_time <= query_end,
            Appointment.end_time >= query_start,
        )
        if professional_name is not None:
            query = query.filter(Appointment.professional_name == professional_name)
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)

        return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, appointment: Appointment) -> None:
        self.db.refresh(appointment)

    @staticmethod
    def _apply(appointment: Appointment, draft: AppointmentDraft) -> None:
        appointment.patient_name = draft.patient_name
        appointment.professional_name = draft.professional_name
        appointment.start_time = draft.start_time
        appointment.duration_minutes = draft.duration_minutes
        appointment.end_time = draft.end_time
        appointment.description = draft.description

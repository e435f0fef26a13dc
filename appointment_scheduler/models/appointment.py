"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, Index, Integer, String
from appointment_scheduler.database import Base

PATIENT_NAME_MAX_LENGTH = 100
PROFESSIONAL_NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 240


class Appointment(Base):
    """Represents a booked appointment with a healthcare professional."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_time_range", "start_time", "end_time"),
        Index("idx_appointments_professional_start", "professional_name", "start_time"),
    )

    id = Column(Integer, primary_key=True)
    patient_name = Column(String(PATIENT_NAME_MAX_LENGTH), nullable=False)
    professional_name = Column(String(PROFESSIONAL_NAME_MAX_LENGTH), nullable=False)
    start_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    end_time = Column(DateTime, nullable=False)  # start_time + duration_minutes
    description = Column(String(DESCRIPTION_MAX_LENGTH), nullable=True)

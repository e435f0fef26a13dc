"""Exceptions raised by the scheduling engine and caught by the routes."""

from datetime import datetime


class SchedulingError(Exception):
    """Base exception for scheduling engine errors."""


class AppointmentConflictError(SchedulingError):
    """Raised when a candidate appointment overlaps a stored one."""

    def __init__(self, message: str, alternative_times: list[datetime]):
        super().__init__(message)
        self.message = message
        self.alternative_times = list(alternative_times)

"""Conflict detection, alternative slot search and serialized appointment writes.

Every mutating operation runs its check-then-write sequence while holding the
engine's lock, so two concurrent requests can never both see a free slot and
both book it. Reads go straight to the store.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from threading import Lock
from typing import Iterable, NamedTuple

from sqlalchemy.exc import SQLAlchemyError

from appointment_scheduler.core.config import CONFLICT_SCOPE_GLOBAL, CONFLICT_SCOPE_PROFESSIONAL, CONFLICT_SCOPES
from appointment_scheduler.models.appointment import Appointment
from appointment_scheduler.services.appointment_store import AppointmentDraft, SqlAppointmentStore
from appointment_scheduler.services.exceptions import AppointmentConflictError

logger = logging.getLogger(__name__)

CREATE_CONFLICT_MESSAGE = 'Cannot create appointment due to scheduling conflict.'
UPDATE_CONFLICT_MESSAGE = 'Cannot update appointment due to scheduling conflict.'

# date.weekday(): Monday is 0, Sunday is 6.
SUNDAY_TO_THURSDAY = frozenset({6, 0, 1, 2, 3})


@dataclass(frozen=True)
class SchedulingPolicy:
    work_days: frozenset[int] = SUNDAY_TO_THURSDAY
    work_start: time = time(8, 0)
    work_end: time = time(17, 0)
    horizon_days: int = 14
    step_minutes: int = 30
    max_alternatives: int = 3
    # The conflict screen treats touching endpoints as overlapping; the alternative scan does not.
    inclusive_alternative_scan: bool = False
    # When off, the requested day is swept from the requested time even before opening.
    clamp_first_day_to_work_start: bool = True
    check_conflicts_on_update: bool = False


DEFAULT_POLICY = SchedulingPolicy()


class Interval(NamedTuple):
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ConflictResult:
    conflicting: list[Appointment] = field(default_factory=list)
    alternative_times: list[datetime] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicting)


def candidate_end(candidate) -> datetime:
    return candidate.start_time + timedelta(minutes=candidate.duration_minutes)


def intervals_overlap(first: Interval, second: Interval, inclusive: bool = True) -> bool:
    if inclusive:
        return first.start <= second.end and second.start <= first.end
    return first.start < second.end and second.start < first.end


def find_alternatives(
    candidate,
    busy_intervals: Iterable[Interval],
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> list[datetime]:
    """Return up to ``policy.max_alternatives`` free start times, earliest first.

    The sweep covers ``policy.horizon_days`` calendar days from the candidate's
    date. On the candidate's own date it starts at the requested time, raised to
    the opening time unless ``policy.clamp_first_day_to_work_start`` is off;
    every later working day starts at opening.
    A start is only offered if the whole duration fits before closing time.
    """
    busy = [Interval(start, end) for start, end in busy_intervals]
    duration = timedelta(minutes=candidate.duration_minutes)
    step = timedelta(minutes=policy.step_minutes)
    first_day: date = candidate.start_time.date()
    alternatives: list[datetime] = []

    for day_offset in range(policy.horizon_days):
        if len(alternatives) >= policy.max_alternatives:
            break

        check_date = first_day + timedelta(days=day_offset)
        if check_date.weekday() not in policy.work_days:
            continue

        current_start = datetime.combine(check_date, policy.work_start)
        if day_offset == 0 and (candidate.start_time > current_start or not policy.clamp_first_day_to_work_start):
            current_start = candidate.start_time
        day_end = datetime.combine(check_date, policy.work_end) - duration

        while current_start < day_end and len(alternatives) < policy.max_alternatives:
            slot = Interval(current_start, current_start + duration)
            if not any(
                intervals_overlap(slot, busy_interval, inclusive=policy.inclusive_alternative_scan)
                for busy_interval in busy
            ):
                alternatives.append(current_start)
            current_start += step

    return alternatives


def check_conflict(
    candidate,
    existing: Iterable[Appointment],
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> ConflictResult:
    """Screen ``candidate`` against ``existing`` with inclusive boundaries.

    ``existing`` is already scoped by the caller; the busy set for the
    alternative search is the whole of it, not only the conflicting rows.
    """
    existing = list(existing)
    requested = Interval(candidate.start_time, candidate_end(candidate))
    conflicting = [
        appointment
        for appointment in existing
        if intervals_overlap(requested, Interval(appointment.start_time, appointment.end_time))
    ]
    if not conflicting:
        return ConflictResult()

    busy_intervals = [Interval(appointment.start_time, appointment.end_time) for appointment in existing]
    return ConflictResult(
        conflicting=conflicting,
        alternative_times=find_alternatives(candidate, busy_intervals, policy),
    )


class SchedulingEngine:
    """Serializes appointment writes behind one process-wide lock.

    Build one engine per process and hand it a fresh store per request; the
    lock lives on the engine, never on the store.
    """

    def __init__(self, policy: SchedulingPolicy = DEFAULT_POLICY, conflict_scope: str = CONFLICT_SCOPE_GLOBAL):
        if conflict_scope not in CONFLICT_SCOPES:
            raise ValueError(f'Unknown conflict scope: {conflict_scope!r}.')

        self.policy = policy
        self.conflict_scope = conflict_scope
        self._lock = Lock()

    def list_appointments(self, store: SqlAppointmentStore) -> list[Appointment]:
        return store.list_all()

    def get_appointment(self, store: SqlAppointmentStore, appointment_id: int) -> Appointment | None:
        return store.find_by_id(appointment_id)

    def create_appointment(self, store: SqlAppointmentStore, draft: AppointmentDraft) -> Appointment:
        with self._lock:
            try:
                result = self._screen(store, draft)
                if result.has_conflict:
                    logger.info(
                        'Rejected appointment for %s at %s: %d conflicting, %d alternatives offered.',
                        draft.professional_name,
                        draft.start_time.isoformat(),
                        len(result.conflicting),
                        len(result.alternative_times),
                    )
                    raise AppointmentConflictError(CREATE_CONFLICT_MESSAGE, result.alternative_times)

                appointment = store.insert(draft)
                store.commit()
                store.refresh(appointment)
            except SQLAlchemyError:
                store.rollback()
                logger.exception('Failed to create appointment.')
                raise

        logger.info('Created appointment %s at %s.', appointment.id, appointment.start_time.isoformat())
        return appointment

    def update_appointment(
        self,
        store: SqlAppointmentStore,
        appointment_id: int,
        draft: AppointmentDraft,
    ) -> Appointment | None:
        with self._lock:
            try:
                appointment = store.find_by_id(appointment_id)
                if appointment is None:
                    return None

                if self.policy.check_conflicts_on_update:
                    result = self._screen(store, draft, exclude_id=appointment_id)
                    if result.has_conflict:
                        logger.info(
                            'Rejected update of appointment %s: %d alternatives offered.',
                            appointment_id,
                            len(result.alternative_times),
                        )
                        raise AppointmentConflictError(UPDATE_CONFLICT_MESSAGE, result.alternative_times)

                store.update(appointment, draft)
                store.commit()
                store.refresh(appointment)
            except SQLAlchemyError:
                store.rollback()
                logger.exception('Failed to update appointment %s.', appointment_id)
                raise

        logger.info('Updated appointment %s.', appointment_id)
        return appointment

    def delete_appointment(self, store: SqlAppointmentStore, appointment_id: int) -> bool:
        with self._lock:
            try:
                appointment = store.find_by_id(appointment_id)
                if appointment is None:
                    return False

                store.remove(appointment)
                store.commit()
            except SQLAlchemyError:
                store.rollback()
                logger.exception('Failed to delete appointment %s.', appointment_id)
                raise

        logger.info('Deleted appointment %s.', appointment_id)
        return True

    def _screen(
        self,
        store: SqlAppointmentStore,
        draft: AppointmentDraft,
        exclude_id: int | None = None,
    ) -> ConflictResult:
        # Everything the alternative sweep can reach: from the requested start to the horizon's end.
        horizon_end = datetime.combine(draft.start_time.date() + timedelta(days=self.policy.horizon_days), time.min)
        professional_name = draft.professional_name if self.conflict_scope == CONFLICT_SCOPE_PROFESSIONAL else None
        existing = store.find_overlapping(
            draft.start_time,
            max(draft.end_time, horizon_end),
            professional_name=professional_name,
            exclude_id=exclude_id,
        )
        return check_conflict(draft, existing, self.policy)

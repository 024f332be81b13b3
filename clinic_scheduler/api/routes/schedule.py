import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_now, get_session
from clinic_scheduler.api.schemas.schedule import ScheduleUpdateRequest
from clinic_scheduler.models.schedule import (
    ConflictCheckResult,
    DoctorSchedule,
    ScheduleChanges,
    ScheduleUpdateResult,
    TimeOffCreate,
    TimeOffResult,
)
from clinic_scheduler.services.conflict_resolver import apply_schedule_with_conflicts
from clinic_scheduler.services.schedule_service import (
    check_schedule_conflicts,
    create_time_off,
    delete_time_off,
    get_doctor_schedule,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/clinics/{clinic_id}/doctors/{doctor_id}", tags=["schedule"])


@router.get("/schedule", response_model=DoctorSchedule)
async def read_schedule(
    clinic_id: int,
    doctor_id: int,
    session: AsyncSession = Depends(get_session),
) -> DoctorSchedule:
    return await get_doctor_schedule(session, clinic_id, doctor_id)


@router.post("/schedule/check-conflicts", response_model=ConflictCheckResult)
async def check_conflicts(
    clinic_id: int,
    doctor_id: int,
    body: ScheduleChanges,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> ConflictCheckResult:
    """Booked appointments the proposed edit would orphan. Changes nothing."""
    return await check_schedule_conflicts(session, clinic_id, doctor_id, body, now)


@router.put("/schedule/with-conflicts", response_model=ScheduleUpdateResult)
async def update_schedule_with_conflicts(
    clinic_id: int,
    doctor_id: int,
    body: ScheduleUpdateRequest,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> ScheduleUpdateResult:
    """Apply the edit and cancel the conflicting appointments in one transaction.

    Responds 409 with the conflicts when the caller did not agree to cancel all of them.
    """
    return await apply_schedule_with_conflicts(
        session,
        clinic_id,
        doctor_id,
        body.changes(),
        cancel_conflicting=body.cancel_conflicting,
        appointment_ids_to_cancel=body.appointment_ids_to_cancel,
        now=now,
    )


@router.post("/time-off", response_model=TimeOffResult, status_code=status.HTTP_201_CREATED)
async def add_time_off(
    clinic_id: int,
    doctor_id: int,
    body: TimeOffCreate,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> TimeOffResult:
    return await create_time_off(session, clinic_id, doctor_id, body, now)


@router.delete("/time-off/{time_off_id}", response_model=TimeOffResult)
async def remove_time_off(
    clinic_id: int,
    doctor_id: int,
    time_off_id: int,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> TimeOffResult:
    return await delete_time_off(session, clinic_id, doctor_id, time_off_id, now)

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_now, get_session
from clinic_scheduler.api.schemas.slots import DaySlotsResponse, SlotRangeResponse
from clinic_scheduler.models.slot import SlotsSummary
from clinic_scheduler.services.availability import get_slots_for_date, get_slots_for_range, get_slots_summary

router = APIRouter(prefix="/clinics/{clinic_id}/doctors/{doctor_id}/slots", tags=["slots"])


@router.get("", response_model=DaySlotsResponse)
async def slots_for_date(
    clinic_id: int,
    doctor_id: int,
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> DaySlotsResponse:
    """All slots of the doctor on a clinic-local date, each marked booked / past / available."""
    day = await get_slots_for_date(session, clinic_id, doctor_id, date_param, now)
    return DaySlotsResponse.from_day(day)


@router.get("/range", response_model=SlotRangeResponse)
async def slots_for_range(
    clinic_id: int,
    doctor_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> SlotRangeResponse:
    days = await get_slots_for_range(session, clinic_id, doctor_id, start_date, end_date, now)
    return SlotRangeResponse(
        start_date=start_date,
        end_date=end_date,
        days=[DaySlotsResponse.from_day(d) for d in days],
    )


@router.get("/summary", response_model=SlotsSummary)
async def slots_summary(
    clinic_id: int,
    doctor_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> SlotsSummary:
    return await get_slots_summary(session, clinic_id, doctor_id, start_date, end_date, now)

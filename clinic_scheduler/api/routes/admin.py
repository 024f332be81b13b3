import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_scheduler.api.deps import get_now, get_session_factory
from clinic_scheduler.api.schemas.admin import RegenerateRequest, RegenerateResponse
from clinic_scheduler.services.bulk_regenerator import RegenerationScope, regenerate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/slots/regenerate", response_model=RegenerateResponse)
async def regenerate_slots(
    body: RegenerateRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    now: datetime = Depends(get_now),
) -> RegenerateResponse:
    """Delete and rebuild persisted slots for a clinic or a single doctor."""
    scope = RegenerationScope(clinic_id=body.clinic_id, doctor_id=body.doctor_id)
    report = await regenerate(session_factory, scope, body.start_date, body.end_date, now=now)
    if report.failed:
        logger.warning("Regeneration finished with %d failed doctor(s)", report.failed)
    return RegenerateResponse(
        start_date=report.start_date,
        end_date=report.end_date,
        total_created=report.total_created,
        succeeded=report.succeeded,
        skipped=report.skipped,
        failed=report.failed,
        doctors=report.doctors,
    )

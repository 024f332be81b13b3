from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_scheduler.core.db import async_session_maker, get_session
from clinic_scheduler.core.timezone import utc_now

__all__ = ["get_now", "get_session", "get_session_factory"]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that commits per unit (bulk regeneration)."""
    return async_session_maker


def get_now() -> datetime:
    """Current instant; overridden in tests to pin the clock."""
    return utc_now()

import argparse
import asyncio
import logging
from datetime import date

from clinic_scheduler.core.db import async_session_maker, engine
from clinic_scheduler.services.bulk_regenerator import RegenerationReport, RegenerationScope, regenerate, regenerate_all

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete and regenerate persisted doctor slots")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--clinic-id", type=int, help="Only this clinic")
    target.add_argument("--doctor-id", type=int, help="Only this doctor")
    parser.add_argument("--start", type=date.fromisoformat, help="First date (YYYY-MM-DD), default the clinic's local today")
    parser.add_argument("--end", type=date.fromisoformat, help="Last date (YYYY-MM-DD), default Dec 31")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> list[RegenerationReport]:
    try:
        if args.clinic_id is None and args.doctor_id is None:
            return await regenerate_all(async_session_maker)
        scope = RegenerationScope(clinic_id=args.clinic_id, doctor_id=args.doctor_id)
        return [await regenerate(async_session_maker, scope, args.start, args.end)]
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _setup_logging()

    try:
        reports = asyncio.run(_run(args))
    except Exception:
        logger.exception("Slot regeneration aborted")
        return 1

    created = sum(r.total_created for r in reports)
    failed = sum(r.failed for r in reports)
    skipped = sum(r.skipped for r in reports)
    logger.info("Done: created=%d skipped=%d failed=%d", created, skipped, failed)
    for report in reports:
        for result in report.doctors:
            if not result.success:
                logger.error("Doctor %s (%s): %s", result.doctor_id, result.doctor_name, result.error)
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())

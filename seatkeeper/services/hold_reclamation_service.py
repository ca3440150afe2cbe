import asyncio
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from seatkeeper.core.auditing import AuditSpan
from seatkeeper.core.config import SWEEP_CONCURRENCY
from seatkeeper.core.database import AsyncSessionLocal
from seatkeeper.core.utils.clock import now_ms
from seatkeeper.domain.seating import crud
from seatkeeper.domain.exceptions import PersistenceFailure

logger = logging.getLogger("seatkeeper.sweeper")


async def _reclaim_chart(session_factory: async_sessionmaker, chart_id: int, now: int) -> int:
    # the UPDATE re-checks the expiry predicate, so a hold extended after the scan is left alone
    # asyncpg connect errors (OSError) reach us unwrapped by SQLAlchemy
    try:
        async with session_factory() as db:
            async with db.begin():
                released = await crud.release_lapsed_seats(db, chart_id, now)
                if released:
                    await crud.adjust_chart_counts(db, chart_id, reserved=-len(released))
                return len(released)
    except (SQLAlchemyError, OSError) as e:
        raise PersistenceFailure("Could not reclaim lapsed holds", ctx={"chart_id": chart_id}) from e


async def release_expired_holds(
        session_factory: async_sessionmaker = AsyncSessionLocal,
        *,
        limit: int | None = None,
        concurrency: int = SWEEP_CONCURRENCY
) -> dict:
    """
    Return every lapsed hold to AVAILABLE.
    - Only charts holding at least one lapsed hold are read and written; the rest keep their updated_at
    - Each chart is reclaimed in its own transaction; a failing chart is logged, counted and skipped
    - Running it twice in a row releases nothing the second time
    """
    async with AuditSpan(scope="SEATING", action="SWEEP_LAPSED_HOLDS", object_type="seating_chart") as span:
        now = now_ms()
        stats = {"released_seats": 0, "charts_updated": 0, "charts_failed": 0}

        try:
            async with session_factory() as db:
                chart_ids = await crud.list_chart_ids_with_lapsed_holds(db, now, limit=limit)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceFailure("Could not scan for lapsed holds") from e

        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _sweep_chart(chart_id: int) -> None:
            async with semaphore:
                try:
                    released = await _reclaim_chart(session_factory, chart_id, now)
                except PersistenceFailure:
                    logger.exception("Reclaiming lapsed holds failed; skipping chart_id=%s", chart_id)
                    stats["charts_failed"] += 1
                    return
            if released:
                stats["released_seats"] += released
                stats["charts_updated"] += 1

        await asyncio.gather(*(_sweep_chart(chart_id) for chart_id in chart_ids))

        if stats["released_seats"] > 0:
            logger.info(
                "Released %d expired seat holds across %d seating charts",
                stats["released_seats"], stats["charts_updated"]
            )
        if stats["charts_failed"] > 0:
            logger.warning("Sweep finished with %d failed seating charts", stats["charts_failed"])

        span.meta.update(stats)
        return stats

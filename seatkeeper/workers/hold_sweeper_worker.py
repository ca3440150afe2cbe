import asyncio
import signal
import logging
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from seatkeeper.core.config import DATABASE_URL, SWEEP_INTERVAL_SECONDS, SWEEP_CONCURRENCY
from seatkeeper.core.ctx import REDIS_CTX
from seatkeeper.core.redis import create_redis
from seatkeeper.domain.exceptions import PersistenceFailure
from seatkeeper.services.hold_reclamation_service import release_expired_holds


logger = logging.getLogger("sweeper.worker")


async def run_once(session_factory: async_sessionmaker) -> dict | None:
    try:
        return await release_expired_holds(session_factory, concurrency=SWEEP_CONCURRENCY)
    except PersistenceFailure:
        logger.exception("Sweep failed; lapsed holds stay until the next tick")
    except Exception:
        logger.exception("Sweep crashed; retrying on the next tick")
    return None


async def run(interval_seconds: int = SWEEP_INTERVAL_SECONDS, stop: asyncio.Event | None = None) -> None:
    r = await create_redis()
    REDIS_CTX.set(r)

    engine = create_async_engine(DATABASE_URL, pool_pre_ping=True)
    session = async_sessionmaker(bind=engine, expire_on_commit=False)

    stop = stop or asyncio.Event()

    def _graceful(*_):
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _graceful)
        except NotImplementedError:
            pass

    logger.info("Hold sweeper started | interval_s=%d concurrency=%d", interval_seconds, SWEEP_CONCURRENCY)

    try:
        while not stop.is_set():
            stats = await run_once(session)
            if stats is not None:
                logger.debug("Sweep done %s", stats)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass
    finally:
        logger.info("Shutting down hold sweeper...")
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                pass
        try:
            await r.aclose()
        except Exception:
            logger.exception("Redis close failed")
        try:
            await engine.dispose()
        except Exception:
            logger.exception("Engine dispose failed")
        logger.info("Hold sweeper stopped.")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    asyncio.run(run())

from fastapi import FastAPI
from seatkeeper.api.v1.routes import seating_charts, seat_holds, admin_maintenance
from seatkeeper.api.exceptions import register_error_handler
from seatkeeper.core.middleware.http_ctx import HttpContextMiddleware
from seatkeeper.core.middleware.request_id import RequestIdMiddleware
from seatkeeper.core.redis import create_redis


async def lifespan(app: FastAPI):
    r = await create_redis()
    app.state.redis = r
    try:
        yield
    finally:
        await r.aclose()


app = FastAPI(lifespan=lifespan)
app.add_middleware(HttpContextMiddleware)
app.add_middleware(RequestIdMiddleware, header_name="X-Request-ID")
register_error_handler(app)
app.include_router(seating_charts.router)
app.include_router(seat_holds.router)
app.include_router(admin_maintenance.router)

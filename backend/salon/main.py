# backend/salon/main.py

import logging

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from redis import Redis
from redis.exceptions import RedisError

from .config import settings
from .errors import BookingError
from .redis_client import get_redis
from .routers import (
    admin_reservations,
    availability,
    internal,
    reservations,
    settings as settings_router,
    stores,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Salon Reservation API")


@app.exception_handler(BookingError)
def booking_error_handler(request, exc: BookingError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(stores.router)
app.include_router(availability.router)
app.include_router(reservations.router)
app.include_router(admin_reservations.router)
app.include_router(settings_router.router)
app.include_router(internal.router)


@app.get("/health")
def health(redis: Redis = Depends(get_redis)):
    try:
        redis_ok = bool(redis.ping())
    except RedisError:
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}

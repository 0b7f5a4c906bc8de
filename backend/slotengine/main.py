# backend/slotengine/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .database import SessionLocal
from .redis_client import redis_client
from .routers import rules, slot_locks, slots
from .services.slots import SlotError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Slot Scheduling API")

app.include_router(rules.router)
app.include_router(slots.router)
app.include_router(slot_locks.router)


@app.exception_handler(SlotError)
async def slot_error_handler(request: Request, exc: SlotError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
def health():
    db_ok = True
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check: database unavailable: {e}")
        db_ok = False

    redis_ok = None
    if redis_client is not None:
        try:
            redis_ok = bool(redis_client.ping())
        except RedisError as e:
            logger.error(f"Health check: redis unavailable: {e}")
            redis_ok = False

    return {"database": db_ok, "redis": redis_ok}

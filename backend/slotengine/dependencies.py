# backend/slotengine/dependencies.py
"""
FastAPI dependencies.

Provider identity comes from the gateway, which authenticates the
caller and forwards it as the X-Provider-Id header.
"""

from fastapi import Depends, Header, HTTPException
from redis import Redis
from sqlalchemy.orm import Session

from .database import get_db
from .redis_client import redis_client
from .services.slots import SlotService


def get_redis() -> Redis | None:
    return redis_client


def get_provider_id(x_provider_id: str | None = Header(None, alias="X-Provider-Id")) -> int:
    if not x_provider_id:
        raise HTTPException(status_code=401, detail="X-Provider-Id header required")
    try:
        provider_id = int(x_provider_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-Provider-Id header")
    if provider_id <= 0:
        raise HTTPException(status_code=400, detail="Invalid X-Provider-Id header")
    return provider_id


def get_slot_service(
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
) -> SlotService:
    return SlotService(db, redis)

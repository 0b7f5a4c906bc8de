# backend/slotengine/routers/slots.py
"""
Slots API endpoints.

GET /slots?year&month   month preview for calendar rendering (cached)
GET /slots/date?date    authoritative slots of one date (never cached)
"""

from datetime import date
from fastapi import APIRouter, Depends, Query

from ..dependencies import get_provider_id, get_slot_service
from ..schemas.slots import DaySlotsResponse, MonthSlotsResponse
from ..services.slots import SlotService


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=MonthSlotsResponse)
def get_month_slots(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    """Flattened month grid without cancelled slots."""
    return MonthSlotsResponse(slots=service.preview_month(provider_id, year, month))


@router.get("/date", response_model=DaySlotsResponse)
def get_date_slots(
    target_date: date = Query(..., alias="date"),
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    slots = service.slots_for_date(provider_id, target_date)
    message = f"{len(slots)} slot(s)" if slots else "No slots available for this date"
    return DaySlotsResponse(slots=slots, message=message)

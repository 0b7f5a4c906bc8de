# backend/slotengine/routers/slot_locks.py
"""
Slot lock / release for the booking flow.

Called by the appointment service when a booking is created or
cancelled. Exactly one concurrent lock on a slot succeeds; losers
get 409 and should refresh.
"""

from fastapi import APIRouter, Depends

from ..dependencies import get_slot_service
from ..schemas.slots import SlotActionResponse, SlotLockRequest, SlotState
from ..services.slots import SlotService

router = APIRouter(prefix="/slot", tags=["slot-lock"])


@router.post("/lock", response_model=SlotActionResponse)
def lock_slot(data: SlotLockRequest, service: SlotService = Depends(get_slot_service)):
    slot = service.reconciler.lock(data.provider_id, data.date, data.start, data.appointment_id)
    return SlotActionResponse(message="Slot locked", slot=SlotState.model_validate(slot))


@router.post("/release", response_model=SlotActionResponse)
def release_slot(data: SlotLockRequest, service: SlotService = Depends(get_slot_service)):
    slot = service.reconciler.release(data.provider_id, data.date, data.start, data.appointment_id)
    return SlotActionResponse(message="Slot released", slot=SlotState.model_validate(slot))

# backend/slotengine/routers/rules.py
"""
Availability rule management (provider side).

GET    /slot-rule                      current rule
POST   /slot-rule                      validate + save, rebuild future dates
PATCH  /slot-rule/custom-slot          add / resize a custom slot
PATCH  /slot-rule/custom-slot/cancel   cancel an available slot
POST   /slot-rule/leave                full or partial day leave
DELETE /slot-rule/leave/{date}         remove a day override
"""

from datetime import date

from fastapi import APIRouter, Depends

from ..dependencies import get_provider_id, get_slot_service
from ..schemas.rules import SlotRuleIn, SlotRuleRead, SlotRuleResponse
from ..schemas.slots import (
    CustomSlotCancel,
    CustomSlotUpdate,
    LeaveCreate,
    LeaveResponse,
    SlotActionResponse,
    SlotState,
)
from ..services.slots import SlotService

router = APIRouter(prefix="/slot-rule", tags=["slot-rule"])


@router.get("", response_model=SlotRuleResponse)
def get_slot_rule(
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    rule = service.get_rule(provider_id)
    if rule is None:
        return SlotRuleResponse(rule=None, message="No availability rule set")
    return SlotRuleResponse(rule=SlotRuleRead.from_rule(rule))


@router.post("", response_model=SlotRuleResponse)
def save_slot_rule(
    data: SlotRuleIn,
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    rule = service.set_rule(provider_id, data.to_rule())
    return SlotRuleResponse(rule=SlotRuleRead.from_rule(rule), message="Availability rule saved")


@router.patch("/custom-slot", response_model=SlotActionResponse)
def update_custom_slot(
    data: CustomSlotUpdate,
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    slot = service.reconciler.add_custom_slot(provider_id, data.date, data.start, data.duration)
    return SlotActionResponse(message="Custom slot saved", slot=SlotState.model_validate(slot))


@router.patch("/custom-slot/cancel", response_model=SlotActionResponse)
def cancel_custom_slot(
    data: CustomSlotCancel,
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    slot = service.reconciler.cancel_custom_slot(provider_id, data.date, data.start)
    return SlotActionResponse(message="Slot cancelled", slot=SlotState.model_validate(slot))


@router.post("/leave", response_model=LeaveResponse)
def set_leave(
    data: LeaveCreate,
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    slots = service.reconciler.set_leave(
        provider_id,
        data.date,
        data.leave_type,
        [w.model_dump() for w in data.slots],
        data.reason,
    )
    return LeaveResponse(
        message=f"Leave ({data.leave_type}) set for {data.date.isoformat()}",
        slots=[SlotState.model_validate(s) for s in slots],
    )


@router.delete("/leave/{leave_date}", response_model=LeaveResponse)
def remove_leave(
    leave_date: date,
    provider_id: int = Depends(get_provider_id),
    service: SlotService = Depends(get_slot_service),
):
    slots = service.reconciler.remove_leave(provider_id, leave_date)
    return LeaveResponse(
        message=f"Leave removed for {leave_date.isoformat()}",
        slots=[SlotState.model_validate(s) for s in slots],
    )

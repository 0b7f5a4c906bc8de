from .tables import AvailabilityRules, Base, CustomDays, SlotDays, Slots, metadata

__all__ = [
    "Base",
    "metadata",
    "AvailabilityRules",
    "CustomDays",
    "SlotDays",
    "Slots",
]

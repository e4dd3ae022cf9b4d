from planner.models.event import CalendarItem, Draft, Event, EventFields
from planner.models.identity import Identity

__all__ = ["Event", "Draft", "EventFields", "CalendarItem", "Identity"]

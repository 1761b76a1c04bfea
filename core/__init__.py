"""
Core utilities and modules.

Public API:
    - EventBus: Synchronous publish/subscribe hub

Usage:
    from core.event_bus import EventBus

    bus = EventBus()
    bus.subscribe("item_updated", callback)
"""

from core.event_bus import ALL_EVENTS, EventBus

__all__ = [
    "ALL_EVENTS",
    "EventBus",
]

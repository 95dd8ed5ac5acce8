from platebot.bot.router import (
    EventKind,
    EventRouter,
    InboundEvent,
    RouteAction,
    RouteCategory,
    RoutingResult,
)

__all__ = [
    "EventKind",
    "EventRouter",
    "InboundEvent",
    "RouteAction",
    "RouteCategory",
    "RoutingResult",
]

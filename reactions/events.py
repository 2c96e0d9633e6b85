"""
Feed and Membership Events
Typed event records and an explicit subscription registry
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Tuple, Type

logger = logging.getLogger(__name__)

# ============================================================================
# EVENTS
# ============================================================================


@dataclass(frozen=True)
class MembershipEvent:
    feed_id: uuid.UUID
    member_address: str
    key_generation: int
    block_height: int


@dataclass(frozen=True)
class MemberJoinedEvent(MembershipEvent):
    pass


@dataclass(frozen=True)
class MemberLeftEvent(MembershipEvent):
    pass


@dataclass(frozen=True)
class MemberBannedEvent(MembershipEvent):
    pass


@dataclass(frozen=True)
class MemberUnbannedEvent(MembershipEvent):
    pass


@dataclass(frozen=True)
class FeedCreatedEvent:
    feed_id: uuid.UUID
    participant_addresses: Tuple[str, ...]
    block_height: int

    def __post_init__(self):
        object.__setattr__(self, 'participant_addresses', tuple(self.participant_addresses))


@dataclass(frozen=True)
class MessagePostedEvent:
    feed_id: uuid.UUID
    message_id: uuid.UUID
    author_commitment: int


# ============================================================================
# EVENT BUS
# ============================================================================

EventHandler = Callable[[object], Awaitable[None]]


class EventBus:
    """Delivers each event to the handlers subscribed to its exact type"""

    def __init__(self):
        self._handlers: Dict[type, List[EventHandler]] = {}

    def subscribe(self, event_type: Type, handler: EventHandler):
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed {getattr(handler, '__qualname__', handler)} to {event_type.__name__}")

    def unsubscribe(self, event_type: Type, handler: EventHandler):
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_type: Type) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event) -> int:
        """Await every handler in subscription order; returns the number that failed"""
        failures = 0
        for handler in list(self._handlers.get(type(event), [])):
            try:
                await handler(event)
            except Exception as e:
                failures += 1
                logger.error(
                    f"Handler {getattr(handler, '__qualname__', handler)} failed for "
                    f"{type(event).__name__}: {e}", exc_info=True)
        return failures

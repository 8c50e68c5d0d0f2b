"""Workflow events.

Services emit one event per entity after a transition has committed.
Handlers subscribe per event type, or to every event with ``"*"``; who gets
notified about what is up to the handler. Emission is fire-and-forget: a
failing handler is logged and never undoes the transition or stops the
remaining handlers.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from uniflow.models.workflow import WorkflowEntity

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"


class WorkflowEventType(str, Enum):
    """Canonical events shared by every workflow entity."""

    SUBMITTED = "submitted"
    APPROVED_AT_STAGE = "approved_at_stage"
    APPROVED = "approved"
    REJECTED = "rejected"
    PO_CREATED = "po_created"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"


@dataclass
class WorkflowEvent:
    """Payload handed to every subscribed handler."""

    event_type: WorkflowEventType
    entity_type: WorkflowEntity
    entity_id: int
    company_id: Optional[int] = None
    actor_id: Optional[int] = None
    actor_role: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    stage: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[WorkflowEvent], None]


def _value(value) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


class WorkflowEventDispatcher:
    """In-process registry of workflow event handlers."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type, handler: EventHandler) -> None:
        self._handlers[_value(event_type)].append(handler)

    def unsubscribe(self, event_type, handler: EventHandler) -> None:
        handlers = self._handlers.get(_value(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    def emit(self, event: WorkflowEvent) -> None:
        handlers = list(self._handlers.get(event.event_type.value, []))
        handlers += self._handlers.get(ALL_EVENTS, [])
        logger.debug(
            f"Event {event.event_type.value} {event.entity_type.value}:{event.entity_id} "
            f"-> {len(handlers)} handler(s)"
        )
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Handler {getattr(handler, '__name__', handler)!r} failed for event "
                    f"{event.event_type.value} {event.entity_type.value}:{event.entity_id}: {e}",
                    exc_info=True,
                )


events = WorkflowEventDispatcher()


def emit(
    event_type: WorkflowEventType,
    entity_type: WorkflowEntity,
    entity_id: int,
    company_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    actor_role=None,
    previous_status=None,
    new_status=None,
    stage=None,
    **details,
) -> WorkflowEvent:
    """Build an event and hand it to the process-wide dispatcher."""
    event = WorkflowEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        company_id=company_id,
        actor_id=actor_id,
        actor_role=_value(actor_role),
        previous_status=_value(previous_status),
        new_status=_value(new_status),
        stage=_value(stage),
        details=details,
    )
    events.emit(event)
    return event

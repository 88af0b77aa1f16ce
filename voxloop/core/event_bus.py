"""
Event bus for voice session progress.
Supports pub/sub with async handlers, one-time subscriptions,
priorities, filters, event history and basic metrics.

The session publishes every state change and stage result here; the CLI
and tests subscribe to observe a run without coupling to the orchestrator.
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types published during a voice session."""

    SESSION_STARTED = "session_started"
    STATE_CHANGED = "state_changed"
    RECORDING_COMPLETED = "recording_completed"
    SPEECH_DETECTED = "speech_detected"
    RESPONSE_GENERATED = "response_generated"
    TTS_COMPLETED = "tts_completed"
    ERROR_OCCURRED = "error_occurred"
    SESSION_COMPLETED = "session_completed"


@dataclass
class Event:
    """Something that happened during a session."""
    type: EventType
    data: Dict[str, Any]
    timestamp: float
    source: str
    correlation_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict form, e.g. for JSON logging."""
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
            "source": self.source,
            "correlation_id": self.correlation_id,
            "metadata": self.metadata,
        }


class EventHandler:
    """A subscribed callable, sync or async, with its matching rules."""

    def __init__(self, handler_func: Callable, event_types: List[EventType],
                 priority: int = 0, filter_func: Optional[Callable] = None,
                 once: bool = False):
        self.handler_func = handler_func
        self.event_types = event_types
        self.priority = priority  # Higher priority = processed first
        self.filter_func = filter_func
        self.is_async = asyncio.iscoroutinefunction(handler_func)
        self.once = once
        self.call_count = 0

    def matches(self, event: Event) -> bool:
        if event.type not in self.event_types:
            return False
        if self.filter_func and not self.filter_func(event):
            return False
        return True

    async def handle(self, event: Event) -> Optional[Any]:
        """Handle an event. Exceptions are logged, never raised."""
        try:
            if not self.matches(event):
                return None

            self.call_count += 1
            if self.is_async:
                return await self.handler_func(event)
            return self.handler_func(event)

        except Exception as e:
            logger.error(f"Error in event handler {self.handler_func.__name__}: {e}", exc_info=True)
            return None


class EventBus:
    """Central event bus for pub/sub communication."""

    _instance: Optional["EventBus"] = None

    def __init__(self, max_queue_size: int = 1000, history_size: int = 100):
        self.handlers: Dict[EventType, List[EventHandler]] = defaultdict(list)
        self.event_queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self.is_running = False
        self._task: Optional[asyncio.Task] = None
        self.event_history: deque = deque(maxlen=history_size)
        self.metrics = {
            "total_events": 0,
            "events_by_type": defaultdict(int),
            "queue_overflows": 0,
        }

    @classmethod
    def get_instance(cls) -> "EventBus":
        """Process-wide bus shared by the CLI and the session."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    async def start(self) -> None:
        """Start dispatching queued events in a background task."""
        if self.is_running:
            return

        self.is_running = True
        self._task = asyncio.create_task(self._process_events())
        logger.debug("Event bus started")

    async def stop(self) -> None:
        """Deliver queued events, then stop the processing loop."""
        if not self.is_running:
            return
        await self.flush()
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Event bus stopped")

    async def flush(self) -> None:
        """Wait until every queued event has been dispatched."""
        if self.is_running:
            await self.event_queue.join()

    async def _process_events(self) -> None:
        while True:
            event = await self.event_queue.get()
            try:
                await self._dispatch_event(event)
            except Exception as e:
                logger.error(f"Dispatch of {event.type.value} failed: {e}")
            finally:
                self.event_queue.task_done()

    async def _dispatch_event(self, event: Event) -> None:
        """Dispatch event to all registered handlers in priority order."""
        handlers = sorted(self.handlers.get(event.type, []), key=lambda h: h.priority, reverse=True)

        for handler in handlers:
            if handler.once and handler.matches(event):
                # Registered under each of its types; drop it from all of them.
                for event_type in handler.event_types:
                    if handler in self.handlers[event_type]:
                        self.handlers[event_type].remove(handler)
            await handler.handle(event)

    async def emit(self, event_type: EventType, data: Dict[str, Any],
                   source: str = "system", correlation_id: Optional[str] = None,
                   metadata: Optional[Dict[str, Any]] = None) -> None:
        """Queue an event for dispatch and record it in the history."""
        event = Event(
            type=event_type,
            data=data,
            timestamp=time.time(),
            source=source,
            correlation_id=correlation_id,
            metadata=metadata or {},
        )

        try:
            self.event_queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropped {event_type.value} from {source}")
            self.metrics["queue_overflows"] += 1
            return

        self.event_history.append(event)
        self.metrics["total_events"] += 1
        self.metrics["events_by_type"][event_type.value] += 1

    def subscribe(self, event_types: Union[EventType, List[EventType]],
                  handler: Callable, priority: int = 0,
                  filter_func: Optional[Callable] = None) -> None:
        """Subscribe a handler to one or more event types."""
        self._register(event_types, handler, priority, filter_func, once=False)

    def once(self, event_types: Union[EventType, List[EventType]],
             handler: Callable, priority: int = 0,
             filter_func: Optional[Callable] = None) -> None:
        """Subscribe a handler that is removed after its first call."""
        self._register(event_types, handler, priority, filter_func, once=True)

    def _register(self, event_types, handler, priority, filter_func, once) -> None:
        if isinstance(event_types, EventType):
            event_types = [event_types]

        event_handler = EventHandler(handler, event_types, priority, filter_func, once=once)
        for event_type in event_types:
            self.handlers[event_type].append(event_handler)
        logger.debug(f"Subscribed {handler.__name__} to {[t.value for t in event_types]}")

    def unsubscribe(self, handler: Callable) -> None:
        """Remove a handler from all event types."""
        for event_type in list(self.handlers):
            self.handlers[event_type] = [
                h for h in self.handlers[event_type] if h.handler_func != handler
            ]

    def get_event_history(self, event_type: Optional[EventType] = None,
                          limit: Optional[int] = None) -> List[Event]:
        """Get recorded events, optionally filtered by type."""
        history = list(self.event_history)
        if event_type:
            history = [e for e in history if e.type == event_type]
        if limit:
            history = history[-limit:]
        return history

    def clear_history(self) -> None:
        self.event_history.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "queue_size": self.event_queue.qsize(),
            "total_handlers": sum(len(h) for h in self.handlers.values()),
            "event_history_size": len(self.event_history),
            "metrics": {
                "total_events": self.metrics["total_events"],
                "events_by_type": dict(self.metrics["events_by_type"]),
                "queue_overflows": self.metrics["queue_overflows"],
            },
        }

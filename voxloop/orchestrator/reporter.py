"""
Console output for a voice session.

Subscribes to the session's events and prints the conversation for the
person at the terminal: where it is listening, what was heard, the answer
and any error. Logging stays on stderr; these lines go to stdout.
"""

import logging
from typing import Any, Dict

from voxloop.core.event_bus import Event, EventBus, EventType

logger = logging.getLogger(__name__)

STATE_MESSAGES = {
    "transcribing": "Transcribing...",
    "generating": "Generating response...",
}


class ConsoleReporter:
    """Prints session progress as the session publishes it."""

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self.stats = {
            "speech_detected": 0,
            "responses_generated": 0,
            "speech_synthesized": 0,
            "errors": 0,
        }
        self._handlers = [
            (EventType.STATE_CHANGED, self._on_state_changed, _announced_state),
            (EventType.SPEECH_DETECTED, self._on_speech_detected, None),
            (EventType.RESPONSE_GENERATED, self._on_response_generated, None),
            (EventType.TTS_COMPLETED, self._on_tts_completed, None),
            (EventType.ERROR_OCCURRED, self._on_error, None),
        ]

    def attach(self) -> "ConsoleReporter":
        for event_type, handler, filter_func in self._handlers:
            self.event_bus.subscribe(event_type, handler, filter_func=filter_func)
        self.event_bus.once(EventType.SESSION_COMPLETED, self._on_session_completed)
        return self

    def detach(self) -> None:
        for _, handler, _ in self._handlers:
            self.event_bus.unsubscribe(handler)
        self.event_bus.unsubscribe(self._on_session_completed)

    async def _on_state_changed(self, event: Event):
        state = event.data["to"]
        if state == "listening":
            device = event.data.get("device")
            if device:
                print(f"Listening with {device!r}, Say something!")
            else:
                print("Listening, Say something!")
        else:
            print(STATE_MESSAGES[state])

    async def _on_speech_detected(self, event: Event):
        self.stats["speech_detected"] += 1
        print(f"You said: {event.data['text']}")

    async def _on_response_generated(self, event: Event):
        self.stats["responses_generated"] += 1
        elapsed = event.data.get("elapsed_time", 0)
        logger.info(f"Response from {event.data.get('model')} in {elapsed:.2f}s")
        print(f"Response: {event.data['response']}")

    async def _on_tts_completed(self, event: Event):
        self.stats["speech_synthesized"] += 1

    async def _on_error(self, event: Event):
        self.stats["errors"] += 1
        print(f"Error: {event.data['error']}")

    async def _on_session_completed(self, event: Event):
        summary: Dict[str, Any] = {
            "state": event.data.get("state"),
            "degraded": event.data.get("degraded"),
            **self.stats,
        }
        logger.info(f"Session {event.correlation_id} summary: {summary}")


def _announced_state(event: Event) -> bool:
    return event.data.get("to") == "listening" or event.data.get("to") in STATE_MESSAGES

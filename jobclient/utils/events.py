from typing import Callable, Dict, List
import inspect
import logging
logger = logging.getLogger(__name__)


async def invoke(callback: Callable, *args, **kwargs):
    """Call a plain or coroutine callback and await it if needed."""
    result = callback(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class EventEmitter:
    """Simple event emitter for job state events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners.

        A failing listener is logged and does not stop delivery to the others
        or abort the flow that emitted the event.
        """
        if event_name not in self._listeners:
            return

        # Listeners may re-enter emit, e.g. by submitting the next job.
        for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
            try:
                await invoke(callback, *args, **kwargs)
            except Exception:
                logger.exception(f"Error in event listener for {event_name}")

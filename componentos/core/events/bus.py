"""
Event Bus - observer registration and event delivery

Architecture:
- One bus per service graph, passed explicitly (no process-wide instance)
- Subscriber pattern (callback-based), optionally filtered by event type
- Sync subscribers run inline, so they observe already-committed state
- Async subscribers are scheduled on the running loop (emit) or awaited (emit_async)
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, FrozenSet, Iterable, List, Optional, Set, Tuple

from componentos.core.events.types import Event, EventType


logger = logging.getLogger(__name__)

SyncCallback = Callable[[Event], None]
AsyncCallback = Callable[[Event], Coroutine[Any, Any, None]]


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__name__", repr(callback))


class EventBus:
    """
    Event bus for the component core

    Zero coupling: the registry and version control emit events,
    debug panels and chat UIs subscribe.
    """

    def __init__(self):
        self._subscribers: List[Tuple[SyncCallback, Optional[FrozenSet[EventType]]]] = []
        self._async_subscribers: List[Tuple[AsyncCallback, Optional[FrozenSet[EventType]]]] = []
        self._pending_tasks: Set["asyncio.Task[None]"] = set()

    @staticmethod
    def _normalize_types(
        event_types: Optional[Iterable[EventType]],
    ) -> Optional[FrozenSet[EventType]]:
        if event_types is None:
            return None
        if isinstance(event_types, str):
            return frozenset([EventType(event_types)])
        return frozenset(EventType(t) for t in event_types)

    def subscribe(
        self,
        callback: SyncCallback,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> None:
        """
        Subscribe to events (sync callback)

        Args:
            callback: Invoked with the Event on every matching emission
            event_types: Only deliver these types (None = all events)
        """
        if any(cb == callback for cb, _ in self._subscribers):
            return
        self._subscribers.append((callback, self._normalize_types(event_types)))
        logger.debug(f"Subscriber registered: {_callback_name(callback)}")

    def subscribe_async(
        self,
        callback: AsyncCallback,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> None:
        """
        Subscribe to events (async callback)

        Callback should be an async function.
        """
        if any(cb == callback for cb, _ in self._async_subscribers):
            return
        self._async_subscribers.append((callback, self._normalize_types(event_types)))
        logger.debug(f"Async subscriber registered: {_callback_name(callback)}")

    def unsubscribe(self, callback: Callable) -> None:
        """Unsubscribe from events"""
        before = self.subscriber_count()
        self._subscribers = [(cb, t) for cb, t in self._subscribers if cb != callback]
        self._async_subscribers = [
            (cb, t) for cb, t in self._async_subscribers if cb != callback
        ]
        if self.subscriber_count() < before:
            logger.debug(f"Subscriber unregistered: {_callback_name(callback)}")

    def clear(self) -> None:
        """Remove every subscriber"""
        self._subscribers.clear()
        self._async_subscribers.clear()

    @staticmethod
    def _matches(event: Event, event_types: Optional[FrozenSet[EventType]]) -> bool:
        return event_types is None or event.type in event_types

    def _notify_sync(self, event: Event) -> None:
        for callback, event_types in list(self._subscribers):
            if not self._matches(event, event_types):
                continue
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    f"Subscriber error ({_callback_name(callback)}): {e}", exc_info=True
                )

    def emit(self, event: Event) -> None:
        """
        Emit event to all subscribers (sync)

        Sync subscribers are called before this returns. Async subscribers
        are scheduled on the running loop; without one they are skipped.
        """
        logger.debug(f"Event emitted: {event.type.value} (entity: {event.entity_id or 'N/A'})")

        self._notify_sync(event)

        pending = [
            callback
            for callback, event_types in self._async_subscribers
            if self._matches(event, event_types)
        ]
        if not pending:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"No running event loop, skipped {len(pending)} async subscriber(s) "
                f"for {event.type.value}"
            )
            return

        for callback in pending:
            task = loop.create_task(self._safe_async_call(callback, event))
            self._pending_tasks.add(task)
            task.add_done_callback(self._pending_tasks.discard)

    async def emit_async(self, event: Event) -> None:
        """
        Emit event to all subscribers (async)

        Waits for async subscribers to complete.
        """
        logger.debug(f"Event emitted (async): {event.type.value}")

        self._notify_sync(event)

        tasks = [
            self._safe_async_call(callback, event)
            for callback, event_types in self._async_subscribers
            if self._matches(event, event_types)
        ]
        if tasks:
            await asyncio.gather(*tasks)

    async def _safe_async_call(self, callback: AsyncCallback, event: Event) -> None:
        """Call async callback, logging instead of raising"""
        try:
            await callback(event)
        except Exception as e:
            logger.error(f"Async callback error ({_callback_name(callback)}): {e}", exc_info=True)

    def subscriber_count(self) -> int:
        """Get total subscriber count (for monitoring)"""
        return len(self._subscribers) + len(self._async_subscribers)

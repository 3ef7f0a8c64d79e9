"""Event system module: the notification sink of the intake pipeline."""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from contextlib import suppress
from typing import Any, Literal

from ..utils.log import log

EventLevel = Literal["success", "info", "warning", "error"]

FILE_REJECTED = "FILE_REJECTED"
BATCH_GROUP_START = "BATCH_GROUP_START"
BATCH_GROUP_COMPLETE = "BATCH_GROUP_COMPLETE"
COMPRESSION_APPLIED = "COMPRESSION_APPLIED"
ATTACHMENT_FAILED = "ATTACHMENT_FAILED"
BATCH_SUMMARY = "BATCH_SUMMARY"
ATTACHMENT_REMOVED = "ATTACHMENT_REMOVED"
ATTACHMENTS_CLEARED = "ATTACHMENTS_CLEARED"

ALL_EVENTS = (
    FILE_REJECTED,
    BATCH_GROUP_START,
    BATCH_GROUP_COMPLETE,
    COMPRESSION_APPLIED,
    ATTACHMENT_FAILED,
    BATCH_SUMMARY,
    ATTACHMENT_REMOVED,
    ATTACHMENTS_CLEARED,
)


class Event:
    """Base class for all events."""

    def __init__(self, name: str, data: dict[str, Any] | None = None, level: EventLevel = "info") -> None:
        self.name = name
        self.data = data or {}
        self.level = level
        self.timestamp = asyncio.get_event_loop().time()


class FileRejectedEvent(Event):
    """Emitted once per file refused by the validator."""

    def __init__(self, file_name: str, reason: str, message: str) -> None:
        super().__init__(FILE_REJECTED, {"file_name": file_name, "reason": reason, "message": message}, "error")


class BatchGroupStartEvent(Event):
    """Emitted before a concurrency group starts processing."""

    def __init__(self, group_index: int, total_groups: int, group_size: int) -> None:
        super().__init__(
            BATCH_GROUP_START,
            {"group_index": group_index, "total_groups": total_groups, "group_size": group_size},
        )


class BatchGroupCompleteEvent(Event):
    """Emitted after every member of a concurrency group has settled."""

    def __init__(self, group_index: int, total_groups: int, group_size: int) -> None:
        super().__init__(
            BATCH_GROUP_COMPLETE,
            {"group_index": group_index, "total_groups": total_groups, "group_size": group_size},
        )


class CompressionAppliedEvent(Event):
    """Emitted when compression saved a noticeable amount of space."""

    def __init__(self, file_name: str, kind: str, saved_bytes: int, saved_percent: int) -> None:
        super().__init__(
            COMPRESSION_APPLIED,
            {"file_name": file_name, "kind": kind, "saved_bytes": saved_bytes, "saved_percent": saved_percent},
            "success",
        )


class AttachmentFailedEvent(Event):
    """Emitted once per attachment that reaches the error state."""

    def __init__(self, attachment_id: str, file_name: str, error: str) -> None:
        super().__init__(
            ATTACHMENT_FAILED, {"attachment_id": attachment_id, "file_name": file_name, "error": error}, "error"
        )


class BatchSummaryEvent(Event):
    """Emitted once at the end of every batch."""

    def __init__(self, ready: int, failed: int, rejected: int, saved_bytes: int, statistics: dict[str, Any]) -> None:
        if failed == 0 and rejected == 0:
            level: EventLevel = "success"
        elif ready == 0:
            level = "error"
        else:
            level = "warning"
        super().__init__(
            BATCH_SUMMARY,
            {
                "ready": ready,
                "failed": failed,
                "rejected": rejected,
                "saved_bytes": saved_bytes,
                "statistics": statistics,
            },
            level,
        )


class AttachmentRemovedEvent(Event):
    def __init__(self, attachment_id: str, file_name: str) -> None:
        super().__init__(ATTACHMENT_REMOVED, {"attachment_id": attachment_id, "file_name": file_name})


class AttachmentsClearedEvent(Event):
    def __init__(self, count: int) -> None:
        super().__init__(ATTACHMENTS_CLEARED, {"count": count})


class EventManager:
    """Manages event subscription and dispatch."""

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[Callable[[Event], None]]] = defaultdict(list)
        self._async_handlers: defaultdict[str, list[Callable[[Event], Any]]] = defaultdict(list)
        self._running = True

    def subscribe(self, event_name: str, handler: Callable[[Event], Any]) -> None:
        """Subscribe to an event.

        Automatically detects if the handler is async or not.
        """
        if asyncio.iscoroutinefunction(handler):
            self._async_handlers[event_name].append(handler)
        else:
            self._handlers[event_name].append(handler)

    def subscribe_all(self, handler: Callable[[Event], Any]) -> None:
        """Subscribe one handler to every event the pipeline emits."""
        for event_name in ALL_EVENTS:
            self.subscribe(event_name, handler)

    def unsubscribe(self, event_name: str, handler: Callable[[Event], Any]) -> None:
        """Unsubscribe from an event."""
        if event_name in self._handlers:
            with suppress(ValueError):
                self._handlers[event_name].remove(handler)

        if event_name in self._async_handlers:
            with suppress(ValueError):
                self._async_handlers[event_name].remove(handler)

    async def emit(self, event: Event) -> None:
        """Emit an event to all subscribed handlers."""
        if not self._running:
            return

        for handler in self._handlers.get(event.name, []):
            try:
                handler(event)
            except Exception as e:
                log(f"❌ Ошибка в обработчике события {event.name}: {e}", err=True)

        tasks: list[Any] = []
        for handler in self._async_handlers.get(event.name, []):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    tasks.append(result)
            except Exception as e:
                log(f"❌ Ошибка в асинхронном обработчике события {event.name}: {e}", err=True)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def stop(self) -> None:
        """Stop the event manager."""
        self._running = False

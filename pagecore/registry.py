"""Registry of disposable resources released together on teardown."""

from __future__ import annotations

import enum
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

import structlog


logger = structlog.get_logger(__name__)


class DisposableKind(str, enum.Enum):
    OBSERVER = "observer"
    LISTENER = "listener"
    INTERVAL = "interval"
    TIMEOUT = "timeout"
    ANIMATION_FRAME = "animation_frame"


TIMER_KINDS = frozenset({DisposableKind.INTERVAL, DisposableKind.TIMEOUT, DisposableKind.ANIMATION_FRAME})


class Observer(Protocol):
    def disconnect(self) -> Any: ...


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class EventTarget(Protocol):
    def add_event_listener(self, event: str, handler: Callable[..., Any], options: Any = None) -> Any: ...

    def remove_event_listener(self, event: str, handler: Callable[..., Any], options: Any = None) -> Any: ...


@dataclass
class Disposable:
    id: int
    kind: DisposableKind
    dispose: Callable[[], Any] = field(repr=False)
    target: Any = field(default=None, repr=False)


@dataclass
class CleanupReport:
    released: int = 0
    errors: list[tuple[Disposable, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ResourceRegistry:
    """Tracks observers, listeners and timers so one call releases all of them.

    Release is best-effort: a disposer that raises is logged and collected in
    the :class:`CleanupReport`, and the remaining resources are still released.
    Disposers must not register new resources.
    """

    def __init__(self) -> None:
        self._items: Dict[int, Disposable] = {}
        self._ids = itertools.count(1)

    def register(self, dispose: Callable[[], Any], kind: DisposableKind, target: Any = None) -> int:
        item = Disposable(next(self._ids), DisposableKind(kind), dispose, target)
        self._items[item.id] = item
        return item.id

    def register_observer(self, observer: Observer) -> int:
        return self.register(observer.disconnect, DisposableKind.OBSERVER, observer)

    def register_listener(
        self,
        target: EventTarget,
        event: str,
        handler: Callable[..., Any],
        options: Any = None,
    ) -> int:
        target.add_event_listener(event, handler, options)

        def _remove() -> None:
            target.remove_event_listener(event, handler, options)

        return self.register(_remove, DisposableKind.LISTENER, target)

    def register_timer(self, handle: Cancellable, kind: DisposableKind = DisposableKind.TIMEOUT) -> int:
        kind = DisposableKind(kind)
        if kind not in TIMER_KINDS:
            raise ValueError(f"{kind.value} is not a timer kind")
        return self.register(handle.cancel, kind, handle)

    def remove(self, resource_id: int) -> bool:
        """Release one resource now. False when the id is unknown or its disposer failed."""
        item = self._items.pop(resource_id, None)
        if item is None:
            return False
        error = self._release(item)
        return error is None

    def cleanup(self) -> CleanupReport:
        items = list(self._items.values())
        self._items.clear()

        report = CleanupReport()
        for item in items:
            error = self._release(item)
            if error is None:
                report.released += 1
            else:
                report.errors.append((item, error))

        if items:
            logger.info("registry.cleanup", released=report.released, failed=len(report.errors))
        return report

    def _release(self, item: Disposable) -> Optional[Exception]:
        try:
            item.dispose()
        except Exception as exc:
            logger.warning(
                "registry.dispose_failed",
                resource_id=item.id,
                kind=item.kind.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return exc
        return None

    def stats(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in DisposableKind}
        for item in self._items.values():
            counts[item.kind.value] += 1
        return counts

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._items

    def __enter__(self) -> "ResourceRegistry":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

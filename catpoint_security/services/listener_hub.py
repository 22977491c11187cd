"""Registry of status listeners with synchronous broadcast."""

import threading
from typing import Dict, List

from ..models.status import AlarmSeverity
from ..logging_config import get_logger
from .interfaces import StatusListener

logger = get_logger("listener_hub")


class ListenerHub:
    """Holds status listeners keyed by identity and broadcasts to them.

    Broadcasts iterate over a snapshot, so listeners may register or
    unregister (themselves or others) while being notified.
    """

    def __init__(self):
        self._listeners: Dict[int, StatusListener] = {}
        self._lock = threading.Lock()

    def register(self, listener: StatusListener) -> None:
        with self._lock:
            self._listeners[id(listener)] = listener

    def unregister(self, listener: StatusListener) -> None:
        with self._lock:
            self._listeners.pop(id(listener), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def __contains__(self, listener: object) -> bool:
        with self._lock:
            return self._listeners.get(id(listener)) is listener

    def snapshot(self) -> List[StatusListener]:
        with self._lock:
            return list(self._listeners.values())

    def notify_severity_changed(self, severity: AlarmSeverity) -> None:
        logger.debug(f"Broadcasting severity {severity.name}")
        self._broadcast("severity_changed", severity)

    def notify_detection_changed(self, detected: bool) -> None:
        logger.debug(f"Broadcasting detection result {detected}")
        self._broadcast("detection_changed", detected)

    def notify_sensors_changed(self) -> None:
        self._broadcast("sensors_changed")

    def _broadcast(self, method_name: str, *args) -> None:
        for listener in self.snapshot():
            # Skip listeners removed earlier in this broadcast
            if listener not in self:
                continue
            callback = getattr(listener, method_name, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Listener {listener!r} failed in {method_name}: {e}", exc_info=True)

"""Alarm controller: the only writer of alarm severity and arming mode.

Sensor events, image evaluations and arming changes all pass through
:class:`AlarmController`, which applies the transition policy, persists the
result through the status repository and notifies registered listeners.
"""

import functools
import threading
from typing import Any, Callable, FrozenSet, List, Optional

from ..models.config import SystemConfig
from ..models.sensor import Sensor
from ..models.status import ArmingMode, AlarmSeverity
from ..logging_config import get_logger
from .interfaces import AnimalDetectorInterface, StatusListener, StatusRepositoryInterface
from .listener_hub import ListenerHub
from .error_handler import (
    InvalidArgumentError, ErrorSeverity, global_error_handler, with_error_handling
)

logger = get_logger("alarm_controller")

COMPONENT_NAME = "alarm_controller"


class _Rollback:
    """Collects undo steps and runs them in reverse if the block raises."""

    def __init__(self):
        self._steps: List[Callable[[], None]] = []

    def push(self, step: Callable[[], None]) -> None:
        self._steps.append(step)

    def __enter__(self) -> "_Rollback":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            for step in reversed(self._steps):
                try:
                    step()
                except Exception as undo_error:
                    logger.error(f"Rollback step failed: {undo_error}", exc_info=True)
        return False


class AlarmController:
    """Derives alarm severity from sensors, arming mode and animal detection."""

    def __init__(self,
                 repository: StatusRepositoryInterface,
                 detector: AnimalDetectorInterface,
                 confidence_threshold: float = 0.5,
                 listener_hub: Optional[ListenerHub] = None):
        self._repository = repository
        self._detector = detector
        self._listeners = listener_hub if listener_hub is not None else ListenerHub()
        self._lock = threading.RLock()
        self._cat_detected = False
        self.confidence_threshold = confidence_threshold

        global_error_handler.register_component(COMPONENT_NAME)

    # Tunables

    @property
    def confidence_threshold(self) -> float:
        return self._confidence_threshold

    @confidence_threshold.setter
    def confidence_threshold(self, threshold: float) -> None:
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) \
                or not 0.0 <= threshold <= 1.0:
            raise InvalidArgumentError(f"Confidence threshold must be in [0, 1], got {threshold!r}")
        self._confidence_threshold = float(threshold)

    def apply_config(self, config: SystemConfig) -> None:
        """Pick up tunables from a (re)loaded configuration."""
        self.confidence_threshold = config.confidence_threshold
        logger.info(f"Confidence threshold set to {self._confidence_threshold}")

    # Listeners

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.register(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        self._listeners.unregister(listener)

    # Read accessors

    def get_alarm_severity(self) -> AlarmSeverity:
        with self._lock:
            return self._repository.get_alarm_severity()

    def get_arming_mode(self) -> ArmingMode:
        with self._lock:
            return self._repository.get_arming_mode()

    def get_sensors(self) -> FrozenSet[Sensor]:
        with self._lock:
            return self._repository.get_sensors()

    @property
    def cat_detected(self) -> bool:
        """Result of the most recent image evaluation."""
        with self._lock:
            return self._cat_detected

    # Sensor registry

    @with_error_handling(COMPONENT_NAME, ErrorSeverity.MEDIUM)
    def add_sensor(self, sensor: Sensor) -> None:
        self._check_sensor(sensor)
        with self._lock:
            if sensor in self._repository.get_sensors():
                raise InvalidArgumentError(f"Sensor already registered: {sensor.sensor_id}")
            self._repository.add_sensor(sensor)
            logger.info(f"Added {sensor.sensor_type.value} sensor '{sensor.name}' ({sensor.sensor_id})")
            self._listeners.notify_sensors_changed()

    @with_error_handling(COMPONENT_NAME, ErrorSeverity.MEDIUM)
    def remove_sensor(self, sensor: Sensor) -> None:
        with self._lock:
            self._require_registered(sensor)
            self._repository.remove_sensor(sensor)
            logger.info(f"Removed sensor '{sensor.name}' ({sensor.sensor_id})")
            self._listeners.notify_sensors_changed()

    # Transitions

    @with_error_handling(COMPONENT_NAME, ErrorSeverity.HIGH)
    def set_sensor_active(self, sensor: Sensor, active: bool) -> None:
        """Set a sensor's active flag and escalate or resolve the alarm."""
        if not isinstance(active, bool):
            raise InvalidArgumentError(f"Active flag must be a bool, got {active!r}")

        with self._lock:
            stored = self._require_registered(sensor)
            if stored.active == active:
                logger.debug(f"Sensor '{stored.name}' already {'active' if active else 'inactive'}")
                return

            current = self._repository.get_alarm_severity()
            mode = self._repository.get_arming_mode()
            target = self._next_severity_for_change(current, active, mode)

            with _Rollback() as rollback:
                self._write_sensor(stored, active, rollback)
                changed = self._write_severity(current, target, rollback)

            # Caller may hold a separate copy of the stored record
            sensor.active = active
            self._listeners.notify_sensors_changed()
            if changed:
                self._announce(current, target, f"sensor '{stored.name}' "
                                                f"{'activated' if active else 'deactivated'}")

    @with_error_handling(COMPONENT_NAME, ErrorSeverity.HIGH)
    def notify_sensor_event(self, sensor: Sensor) -> None:
        """Reconcile the alarm with a sensor whose flag was set out of band."""
        with self._lock:
            self._require_registered(sensor)

            current = self._repository.get_alarm_severity()
            target = current
            if current is AlarmSeverity.TRIGGERED and sensor.active:
                target = AlarmSeverity.PENDING
            elif current is AlarmSeverity.PENDING and not sensor.active:
                target = AlarmSeverity.NONE

            with _Rollback() as rollback:
                self._repository.update_sensor(sensor)
                changed = self._write_severity(current, target, rollback)

            self._listeners.notify_sensors_changed()
            if changed:
                self._announce(current, target, f"sensor event from '{sensor.name}'")

    @with_error_handling(COMPONENT_NAME, ErrorSeverity.HIGH)
    def evaluate_image(self, image: Any) -> bool:
        """Classify an image and update the alarm from the result."""
        if image is None:
            raise InvalidArgumentError("Image must not be None")

        with self._lock:
            detected = bool(self._detector.detect(image, self._confidence_threshold))

            current = self._repository.get_alarm_severity()
            target = current
            if detected and self._repository.get_arming_mode() is ArmingMode.ARMED_HOME:
                target = AlarmSeverity.TRIGGERED
            elif not detected and not any(s.active for s in self._repository.get_sensors()):
                target = AlarmSeverity.NONE

            with _Rollback() as rollback:
                changed = self._write_severity(current, target, rollback)

            self._cat_detected = detected
            logger.info(f"Image evaluated: cat {'detected' if detected else 'not detected'}")
            # Sent for every evaluation, including a repeat of the previous result
            self._listeners.notify_detection_changed(detected)
            if changed:
                self._announce(current, target, "image evaluation")
            return detected

    @with_error_handling(COMPONENT_NAME, ErrorSeverity.HIGH)
    def set_arming_mode(self, mode: ArmingMode) -> None:
        """Change the arming mode.

        Disarming clears the alarm. Arming resets every sensor to inactive
        and, for ARMED_HOME, re-applies the last detection result.
        """
        if not isinstance(mode, ArmingMode):
            raise InvalidArgumentError(f"Unknown arming mode: {mode!r}")

        with self._lock:
            current = self._repository.get_alarm_severity()
            previous_mode = self._repository.get_arming_mode()
            target = current
            reset_count = 0

            with _Rollback() as rollback:
                if mode is ArmingMode.DISARMED:
                    target = AlarmSeverity.NONE
                else:
                    for sensor in sorted(self._repository.get_sensors()):
                        if sensor.active:
                            self._write_sensor(sensor, False, rollback)
                            reset_count += 1
                    if self._cat_detected and mode is ArmingMode.ARMED_HOME:
                        target = AlarmSeverity.TRIGGERED

                changed = self._write_severity(current, target, rollback)
                self._repository.set_arming_mode(mode)

            logger.info(f"Arming mode {previous_mode.name} -> {mode.name}")
            if reset_count:
                logger.info(f"Reset {reset_count} active sensor(s) on arming")
                self._listeners.notify_sensors_changed()
            if changed:
                self._announce(current, target, f"arming mode set to {mode.name}")

    # Internals

    @staticmethod
    def _next_severity_for_change(current: AlarmSeverity, active: bool,
                                  mode: ArmingMode) -> AlarmSeverity:
        if current is AlarmSeverity.TRIGGERED:
            return current
        if current is AlarmSeverity.PENDING:
            return AlarmSeverity.TRIGGERED if active else AlarmSeverity.NONE
        if active and mode.is_armed:
            return AlarmSeverity.PENDING
        return current

    @staticmethod
    def _check_sensor(sensor: Sensor) -> None:
        if not isinstance(sensor, Sensor):
            raise InvalidArgumentError(f"Expected a Sensor, got {type(sensor).__name__}")

    def _require_registered(self, sensor: Sensor) -> Sensor:
        """Return the repository's own record for ``sensor``."""
        self._check_sensor(sensor)
        for stored in self._repository.get_sensors():
            if stored == sensor:
                return stored
        raise InvalidArgumentError(f"Sensor is not registered: {sensor.sensor_id}")

    def _write_sensor(self, sensor: Sensor, active: bool, rollback: _Rollback) -> None:
        previous = sensor.active
        sensor.active = active
        try:
            self._repository.update_sensor(sensor)
        except Exception:
            sensor.active = previous
            raise
        rollback.push(functools.partial(self._restore_sensor, sensor, previous))

    def _restore_sensor(self, sensor: Sensor, active: bool) -> None:
        sensor.active = active
        self._repository.update_sensor(sensor)

    def _write_severity(self, current: AlarmSeverity, target: AlarmSeverity,
                        rollback: _Rollback) -> bool:
        if target is current:
            return False
        self._repository.set_alarm_severity(target)
        rollback.push(functools.partial(self._repository.set_alarm_severity, current))
        return True

    def _announce(self, previous: AlarmSeverity, severity: AlarmSeverity, reason: str) -> None:
        logger.info(f"Alarm severity {previous.name} -> {severity.name} ({reason})")
        self._listeners.notify_severity_changed(severity)

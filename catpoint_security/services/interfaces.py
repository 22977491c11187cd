"""Service interfaces and abstract base classes."""

from abc import ABC, abstractmethod
from typing import Any, FrozenSet

from ..models.sensor import Sensor
from ..models.status import ArmingMode, AlarmSeverity


class StatusRepositoryInterface(ABC):
    """Durable store for the sensor set, arming mode and alarm severity."""

    @abstractmethod
    def get_arming_mode(self) -> ArmingMode:
        """Get the current arming mode."""
        pass

    @abstractmethod
    def set_arming_mode(self, mode: ArmingMode) -> None:
        """Persist the arming mode."""
        pass

    @abstractmethod
    def get_alarm_severity(self) -> AlarmSeverity:
        """Get the current alarm severity."""
        pass

    @abstractmethod
    def set_alarm_severity(self, severity: AlarmSeverity) -> None:
        """Persist the alarm severity."""
        pass

    @abstractmethod
    def get_sensors(self) -> FrozenSet[Sensor]:
        """Get every registered sensor."""
        pass

    @abstractmethod
    def add_sensor(self, sensor: Sensor) -> None:
        """Register a new sensor."""
        pass

    @abstractmethod
    def remove_sensor(self, sensor: Sensor) -> None:
        """Remove a registered sensor."""
        pass

    @abstractmethod
    def update_sensor(self, sensor: Sensor) -> None:
        """Persist changes to a registered sensor."""
        pass


class AnimalDetectorInterface(ABC):
    """Image classifier answering whether the target animal is present."""

    @abstractmethod
    def detect(self, image: Any, confidence_threshold: float) -> bool:
        """Return True if the image contains the animal at or above the threshold."""
        pass


class StatusListener:
    """Observer of alarm state changes.

    Every callback is a no-op by default so a listener only overrides what
    it cares about.
    """

    def severity_changed(self, severity: AlarmSeverity) -> None:
        """Called once for every change of alarm severity."""

    def detection_changed(self, detected: bool) -> None:
        """Called after every image evaluation with its result."""

    def sensors_changed(self) -> None:
        """Called when sensors are added, removed or change state."""

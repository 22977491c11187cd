"""Sensor data models."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class SensorType(Enum):
    """Kinds of sensor that can be attached to the system."""
    DOOR = "door"
    WINDOW = "window"
    MOTION = "motion"


@dataclass(eq=False)
class Sensor:
    """A named, typed, binary-state device record.

    Identity is the ``sensor_id``: two records with the same id are the same
    sensor even if their names or flags differ.
    """
    name: str
    sensor_type: SensorType
    active: bool = False
    sensor_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sensor):
            return NotImplemented
        return self.sensor_id == other.sensor_id

    def __hash__(self) -> int:
        return hash(self.sensor_id)

    def __lt__(self, other: "Sensor") -> bool:
        if not isinstance(other, Sensor):
            return NotImplemented
        return (self.name, self.sensor_id) < (other.name, other.sensor_id)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the sensor for storage."""
        return {
            "sensor_id": self.sensor_id,
            "name": self.name,
            "sensor_type": self.sensor_type.value,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sensor":
        """Build a sensor from a stored dictionary."""
        return cls(
            name=data["name"],
            sensor_type=SensorType(data["sensor_type"]),
            active=bool(data.get("active", False)),
            sensor_id=data["sensor_id"],
        )

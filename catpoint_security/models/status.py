"""Arming mode and alarm severity models."""

from enum import Enum


class ArmingMode(Enum):
    """Operator-selected posture of the system."""
    DISARMED = "disarmed"
    ARMED_HOME = "armed_home"
    ARMED_AWAY = "armed_away"

    @property
    def is_armed(self) -> bool:
        return self is not ArmingMode.DISARMED

    @property
    def description(self) -> str:
        return _ARMING_DESCRIPTIONS[self]


_ARMING_DESCRIPTIONS = {
    ArmingMode.DISARMED: "Disarmed",
    ArmingMode.ARMED_HOME: "Armed - At Home",
    ArmingMode.ARMED_AWAY: "Armed - Away",
}


class AlarmSeverity(Enum):
    """Escalation level of the alarm, ordered NONE < PENDING < TRIGGERED."""
    NONE = 0
    PENDING = 1
    TRIGGERED = 2

    def __lt__(self, other):
        if not isinstance(other, AlarmSeverity):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other):
        if not isinstance(other, AlarmSeverity):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other):
        if not isinstance(other, AlarmSeverity):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other):
        if not isinstance(other, AlarmSeverity):
            return NotImplemented
        return self.value >= other.value

    @property
    def description(self) -> str:
        return _SEVERITY_DESCRIPTIONS[self]


_SEVERITY_DESCRIPTIONS = {
    AlarmSeverity.NONE: "Cool and Good",
    AlarmSeverity.PENDING: "I'm in Danger...",
    AlarmSeverity.TRIGGERED: "Awooga!",
}

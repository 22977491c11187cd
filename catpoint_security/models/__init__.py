"""Data models for the catpoint security system."""

from .sensor import Sensor, SensorType
from .status import ArmingMode, AlarmSeverity
from .config import SystemConfig

__all__ = ['Sensor', 'SensorType', 'ArmingMode', 'AlarmSeverity', 'SystemConfig']

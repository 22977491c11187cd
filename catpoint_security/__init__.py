"""
Catpoint Security

Home-monitoring alarm controller combining door, window and motion sensors,
an operator-set arming mode and camera-based cat detection into a single
alarm severity.
"""

__version__ = "1.0.0"
__author__ = "Catpoint Security"

# Import core components
from .config_manager import ConfigManager
from .models import (
    Sensor,
    SensorType,
    ArmingMode,
    AlarmSeverity,
    SystemConfig
)
from .services import (
    StatusRepositoryInterface,
    AnimalDetectorInterface,
    StatusListener,
    ListenerHub,
    AlarmController,
    InMemoryStatusRepository,
    SqliteStatusRepository,
    SecurityError,
    InvalidArgumentError,
    ConfigurationError
)

__all__ = [
    # Core management
    'ConfigManager',
    'AlarmController',
    'ListenerHub',

    # Data models
    'Sensor',
    'SensorType',
    'ArmingMode',
    'AlarmSeverity',
    'SystemConfig',

    # Service interfaces
    'StatusRepositoryInterface',
    'AnimalDetectorInterface',
    'StatusListener',

    # Repositories
    'InMemoryStatusRepository',
    'SqliteStatusRepository',

    # Errors
    'SecurityError',
    'InvalidArgumentError',
    'ConfigurationError'
]

"""Services for the catpoint security system."""

from .interfaces import (
    StatusRepositoryInterface,
    AnimalDetectorInterface,
    StatusListener
)
from .listener_hub import ListenerHub
from .alarm_controller import AlarmController
from .status_repository import InMemoryStatusRepository, SqliteStatusRepository
from .error_handler import SecurityError, InvalidArgumentError, ConfigurationError

__all__ = [
    'StatusRepositoryInterface',
    'AnimalDetectorInterface',
    'StatusListener',
    'ListenerHub',
    'AlarmController',
    'InMemoryStatusRepository',
    'SqliteStatusRepository',
    'SecurityError',
    'InvalidArgumentError',
    'ConfigurationError'
]

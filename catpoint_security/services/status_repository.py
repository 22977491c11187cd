"""Status repository implementations: in-memory and SQLite-backed."""

import os
import sqlite3
import threading
from typing import Dict, FrozenSet

from ..models.sensor import Sensor, SensorType
from ..models.status import ArmingMode, AlarmSeverity
from ..logging_config import get_logger
from .interfaces import StatusRepositoryInterface
from .error_handler import InvalidArgumentError

logger = get_logger("status_repository")


class InMemoryStatusRepository(StatusRepositoryInterface):
    """Repository that keeps everything in process memory."""

    def __init__(self):
        self._arming_mode = ArmingMode.DISARMED
        self._alarm_severity = AlarmSeverity.NONE
        self._sensors: Dict[str, Sensor] = {}

    def get_arming_mode(self) -> ArmingMode:
        return self._arming_mode

    def set_arming_mode(self, mode: ArmingMode) -> None:
        self._arming_mode = mode

    def get_alarm_severity(self) -> AlarmSeverity:
        return self._alarm_severity

    def set_alarm_severity(self, severity: AlarmSeverity) -> None:
        self._alarm_severity = severity

    def get_sensors(self) -> FrozenSet[Sensor]:
        return frozenset(self._sensors.values())

    def add_sensor(self, sensor: Sensor) -> None:
        self._sensors[sensor.sensor_id] = sensor

    def remove_sensor(self, sensor: Sensor) -> None:
        self._sensors.pop(sensor.sensor_id, None)

    def update_sensor(self, sensor: Sensor) -> None:
        if sensor.sensor_id not in self._sensors:
            raise InvalidArgumentError(f"Unknown sensor: {sensor.sensor_id}")
        self._sensors[sensor.sensor_id] = sensor


class SqliteStatusRepository(StatusRepositoryInterface):
    """Repository persisting sensors and status values to a SQLite file.

    Sensor objects handed out are cached so that repeated reads return the
    same instances the controller mutates.
    """

    _ARMING_KEY = "arming_mode"
    _SEVERITY_KEY = "alarm_severity"

    def __init__(self, database_path: str = "data/catpoint.db"):
        self.database_path = database_path
        self._lock = threading.Lock()
        self._sensors: Dict[str, Sensor] = {}
        self._initialize_storage()

    def _initialize_storage(self) -> None:
        """Create the database file and tables if needed."""
        directory = os.path.dirname(self.database_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with sqlite3.connect(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sensors (
                    sensor_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    sensor_type TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 0
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS status (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()

            cursor.execute("SELECT sensor_id, name, sensor_type, active FROM sensors")
            for sensor_id, name, sensor_type, active in cursor.fetchall():
                self._sensors[sensor_id] = Sensor(
                    name=name,
                    sensor_type=SensorType(sensor_type),
                    active=bool(active),
                    sensor_id=sensor_id
                )

        logger.info(f"Status database ready at {self.database_path} "
                    f"with {len(self._sensors)} sensors")

    def _get_status(self, key: str):
        with sqlite3.connect(self.database_path) as conn:
            row = conn.execute("SELECT value FROM status WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _set_status(self, key: str, value: str) -> None:
        with sqlite3.connect(self.database_path) as conn:
            conn.execute("""
                INSERT INTO status (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (key, value))
            conn.commit()

    def get_arming_mode(self) -> ArmingMode:
        value = self._get_status(self._ARMING_KEY)
        return ArmingMode(value) if value else ArmingMode.DISARMED

    def set_arming_mode(self, mode: ArmingMode) -> None:
        self._set_status(self._ARMING_KEY, mode.value)

    def get_alarm_severity(self) -> AlarmSeverity:
        value = self._get_status(self._SEVERITY_KEY)
        return AlarmSeverity[value] if value else AlarmSeverity.NONE

    def set_alarm_severity(self, severity: AlarmSeverity) -> None:
        self._set_status(self._SEVERITY_KEY, severity.name)

    def get_sensors(self) -> FrozenSet[Sensor]:
        with self._lock:
            return frozenset(self._sensors.values())

    def add_sensor(self, sensor: Sensor) -> None:
        with self._lock:
            with sqlite3.connect(self.database_path) as conn:
                conn.execute("""
                    INSERT OR REPLACE INTO sensors (sensor_id, name, sensor_type, active)
                    VALUES (?, ?, ?, ?)
                """, (sensor.sensor_id, sensor.name, sensor.sensor_type.value, int(sensor.active)))
                conn.commit()
            self._sensors[sensor.sensor_id] = sensor

    def remove_sensor(self, sensor: Sensor) -> None:
        with self._lock:
            with sqlite3.connect(self.database_path) as conn:
                conn.execute("DELETE FROM sensors WHERE sensor_id = ?", (sensor.sensor_id,))
                conn.commit()
            self._sensors.pop(sensor.sensor_id, None)

    def update_sensor(self, sensor: Sensor) -> None:
        with self._lock:
            if sensor.sensor_id not in self._sensors:
                raise InvalidArgumentError(f"Unknown sensor: {sensor.sensor_id}")
            with sqlite3.connect(self.database_path) as conn:
                conn.execute("""
                    UPDATE sensors SET name = ?, sensor_type = ?, active = ?
                    WHERE sensor_id = ?
                """, (sensor.name, sensor.sensor_type.value, int(sensor.active), sensor.sensor_id))
                conn.commit()
            self._sensors[sensor.sensor_id] = sensor

"""Operator console for the catpoint security system."""

import argparse
import sys
from typing import List, Optional

from .config_manager import ConfigManager
from .logging_config import get_logger, setup_logging
from .models.sensor import Sensor, SensorType
from .models.status import ArmingMode, AlarmSeverity
from .services.alarm_controller import AlarmController
from .services.error_handler import ConfigurationError, SecurityError
from .services.image_service import OpenCVAnimalDetector, RandomAnimalDetector
from .services.interfaces import StatusListener
from .services.status_repository import SqliteStatusRepository

logger = get_logger("cli")

ARMING_CHOICES = {
    "disarmed": ArmingMode.DISARMED,
    "home": ArmingMode.ARMED_HOME,
    "away": ArmingMode.ARMED_AWAY,
}


class ConsoleStatusListener(StatusListener):
    """Prints alarm changes to the console."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    def severity_changed(self, severity: AlarmSeverity) -> None:
        print(f"Alarm status: {severity.name} - {severity.description}", file=self.stream)

    def detection_changed(self, detected: bool) -> None:
        print("DANGER - CAT DETECTED" if detected else "Cat not detected", file=self.stream)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="catpoint-security",
                                     description="Catpoint home security console")
    parser.add_argument("--config", default=None, help="Path to the JSON config file")
    parser.add_argument("--database", default=None, help="Override the status database path")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("status", help="Show arming mode, alarm status and sensors")

    arm = commands.add_parser("arm", help="Change the arming mode")
    arm.add_argument("mode", choices=sorted(ARMING_CHOICES))

    sensor = commands.add_parser("sensor", help="Manage sensors")
    sensor_commands = sensor.add_subparsers(dest="sensor_command", required=True)
    add = sensor_commands.add_parser("add", help="Add a sensor")
    add.add_argument("name")
    add.add_argument("type", choices=[t.value for t in SensorType])
    remove = sensor_commands.add_parser("remove", help="Remove a sensor")
    remove.add_argument("sensor_id")
    set_state = sensor_commands.add_parser("set", help="Activate or deactivate a sensor")
    set_state.add_argument("sensor_id")
    set_state.add_argument("state", choices=["on", "off"])
    event = sensor_commands.add_parser("event", help="Reconcile the alarm with a sensor's stored state")
    event.add_argument("sensor_id")

    scan = commands.add_parser("scan", help="Evaluate a camera image for cats")
    scan.add_argument("image")
    scan.add_argument("--random", action="store_true",
                      help="Use the random detector instead of OpenCV")
    scan.add_argument("--seed", type=int, default=None)
    scan.add_argument("--arm-home", action="store_true",
                      help="Arm the system at home right after the scan")

    return parser


def _find_sensor(controller: AlarmController, sensor_id: str) -> Sensor:
    """Resolve a full sensor id or a prefix shared by exactly one sensor."""
    sensor_id = sensor_id.strip()
    if not sensor_id:
        raise SecurityError("A sensor id is required")

    sensors = controller.get_sensors()
    for sensor in sensors:
        if sensor.sensor_id == sensor_id:
            return sensor

    matches = [s for s in sensors if s.sensor_id.startswith(sensor_id)]
    if len(matches) > 1:
        raise SecurityError(f"Sensor id '{sensor_id}' is ambiguous ({len(matches)} matches)")
    if not matches:
        raise SecurityError(f"No sensor matching '{sensor_id}'")
    return matches[0]


def _print_status(controller: AlarmController) -> None:
    severity = controller.get_alarm_severity()
    print(f"Arming mode:  {controller.get_arming_mode().description}")
    print(f"Alarm status: {severity.name} - {severity.description}")
    sensors = sorted(controller.get_sensors())
    if not sensors:
        print("No sensors")
    for sensor in sensors:
        state = "Active" if sensor.active else "Inactive"
        print(f"  {sensor.sensor_id[:8]}  {sensor.name:<20} {sensor.sensor_type.value:<7} {state}")


def run(args: argparse.Namespace) -> int:
    config_manager = ConfigManager(args.config)
    if args.database:
        config_manager.get_config().database_path = args.database
    if not config_manager.validate_config():
        raise ConfigurationError(f"Invalid configuration in {config_manager.config_path}")
    config = config_manager.get_config()

    setup_logging(args.log_level or config.log_level, config.log_dir or None)

    repository = SqliteStatusRepository(config.database_path)

    if args.command == "scan" and args.random:
        detector = RandomAnimalDetector(args.seed)
    elif args.command == "scan":
        detector = OpenCVAnimalDetector(
            cascade_path=config.cascade_path,
            scale_factor=config.scale_factor,
            min_neighbors=config.min_neighbors,
            min_detection_size=config.min_detection_size,
            max_detection_size=config.max_detection_size
        )
    else:
        detector = RandomAnimalDetector()

    controller = AlarmController(repository, detector, config.confidence_threshold)
    config_manager.register_change_callback(controller.apply_config)
    controller.add_status_listener(ConsoleStatusListener())

    if args.command == "status":
        _print_status(controller)
    elif args.command == "arm":
        controller.set_arming_mode(ARMING_CHOICES[args.mode])
        _print_status(controller)
    elif args.command == "sensor":
        if args.sensor_command == "add":
            sensor = Sensor(name=args.name, sensor_type=SensorType(args.type))
            controller.add_sensor(sensor)
            print(f"Added sensor {sensor.sensor_id}")
        elif args.sensor_command == "remove":
            controller.remove_sensor(_find_sensor(controller, args.sensor_id))
        elif args.sensor_command == "set":
            controller.set_sensor_active(_find_sensor(controller, args.sensor_id), args.state == "on")
        elif args.sensor_command == "event":
            controller.notify_sensor_event(_find_sensor(controller, args.sensor_id))
        _print_status(controller)
    elif args.command == "scan":
        if args.random:
            image = args.image
        else:
            image = OpenCVAnimalDetector.load_image(args.image)
        controller.evaluate_image(image)
        if args.arm_home:
            controller.set_arming_mode(ArmingMode.ARMED_HOME)
        _print_status(controller)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except SecurityError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

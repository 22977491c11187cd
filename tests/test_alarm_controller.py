"""Unit tests for the alarm controller."""

import threading
import unittest
from unittest.mock import Mock, call
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from catpoint_security.models import Sensor, SensorType, ArmingMode, AlarmSeverity, SystemConfig
from catpoint_security.services.alarm_controller import AlarmController
from catpoint_security.services.error_handler import InvalidArgumentError, global_error_handler
from catpoint_security.services.interfaces import (
    AnimalDetectorInterface, StatusListener, StatusRepositoryInterface
)
from catpoint_security.services.status_repository import InMemoryStatusRepository

ARMED_MODES = (ArmingMode.ARMED_HOME, ArmingMode.ARMED_AWAY)


def make_sensors(active: bool, number: int):
    return [Sensor(name=f"sensor_{i}", sensor_type=SensorType.DOOR, active=active)
            for i in range(number)]


class TestAlarmControllerPolicy(unittest.TestCase):
    """Transition policy checked against a mocked repository."""

    def setUp(self):
        """Set up test fixtures."""
        self.repository = Mock(spec=StatusRepositoryInterface)
        self.detector = Mock(spec=AnimalDetectorInterface)
        self.controller = AlarmController(self.repository, self.detector)
        self.sensor = Sensor(name="Front door", sensor_type=SensorType.DOOR)
        self.register(self.sensor)
        self.repository.get_arming_mode.return_value = ArmingMode.DISARMED
        self.repository.get_alarm_severity.return_value = AlarmSeverity.NONE
        self.image = np.zeros((100, 100, 3), dtype=np.uint8)

    def register(self, *sensors):
        self.repository.get_sensors.return_value = frozenset(sensors)

    def test_armed_activation_moves_to_pending(self):
        """Armed system with a newly active sensor goes to pending."""
        for mode in ARMED_MODES:
            with self.subTest(mode=mode):
                self.repository.reset_mock()
                self.sensor.active = False
                self.repository.get_arming_mode.return_value = mode

                self.controller.set_sensor_active(self.sensor, True)

                self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.PENDING)

    def test_activation_while_pending_triggers_alarm(self):
        """A second activation while pending always escalates."""
        for mode in ArmingMode:
            with self.subTest(mode=mode):
                self.repository.reset_mock()
                self.sensor.active = False
                self.repository.get_arming_mode.return_value = mode
                self.repository.get_alarm_severity.return_value = AlarmSeverity.PENDING

                self.controller.set_sensor_active(self.sensor, True)

                self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.TRIGGERED)

    def test_activation_while_disarmed_is_informational(self):
        """Activation while disarmed persists the sensor but keeps the alarm quiet."""
        self.controller.set_sensor_active(self.sensor, True)

        self.repository.update_sensor.assert_called_once_with(self.sensor)
        self.repository.set_alarm_severity.assert_not_called()

    def test_deactivation_while_pending_clears_alarm(self):
        """Each deactivation while pending resolves to no alarm."""
        sensors = make_sensors(True, 5)
        self.register(*sensors)
        self.repository.get_alarm_severity.return_value = AlarmSeverity.PENDING

        for sensor in sensors:
            self.controller.set_sensor_active(sensor, False)

        self.assertEqual(self.repository.set_alarm_severity.call_args_list,
                         [call(AlarmSeverity.NONE)] * 5)

    def test_triggered_alarm_ignores_sensor_changes(self):
        """Once triggered, explicit sensor changes are persisted but inert."""
        self.repository.get_alarm_severity.return_value = AlarmSeverity.TRIGGERED

        for initial, requested in ((True, False), (False, True)):
            with self.subTest(initial=initial, requested=requested):
                self.repository.reset_mock()
                self.sensor.active = initial

                self.controller.set_sensor_active(self.sensor, requested)

                self.repository.update_sensor.assert_called_once_with(self.sensor)
                self.repository.set_alarm_severity.assert_not_called()
                self.assertEqual(self.sensor.active, requested)

    def test_setting_current_value_is_a_no_op(self):
        """Setting a sensor to the value it already has does nothing."""
        listener = Mock(spec=StatusListener)
        self.controller.add_status_listener(listener)
        self.repository.get_arming_mode.return_value = ArmingMode.ARMED_AWAY

        for active in (False, True):
            with self.subTest(active=active):
                self.sensor.active = active
                self.controller.set_sensor_active(self.sensor, active)

        self.repository.update_sensor.assert_not_called()
        self.repository.set_alarm_severity.assert_not_called()
        listener.severity_changed.assert_not_called()
        listener.sensors_changed.assert_not_called()

    def test_stale_copy_is_checked_against_stored_sensor(self):
        """A copy with an outdated flag does not re-activate a stored active sensor."""
        listener = Mock(spec=StatusListener)
        self.controller.add_status_listener(listener)
        self.repository.get_arming_mode.return_value = ArmingMode.ARMED_AWAY
        self.sensor.active = True
        stale = Sensor(name=self.sensor.name, sensor_type=self.sensor.sensor_type,
                       active=False, sensor_id=self.sensor.sensor_id)

        self.controller.set_sensor_active(stale, True)

        self.repository.update_sensor.assert_not_called()
        self.repository.set_alarm_severity.assert_not_called()
        listener.sensors_changed.assert_not_called()
        listener.severity_changed.assert_not_called()

    def test_copy_updates_stored_sensor(self):
        """Changing a sensor through a copy writes the stored record and syncs the copy."""
        self.repository.get_arming_mode.return_value = ArmingMode.ARMED_AWAY
        copy = Sensor(name=self.sensor.name, sensor_type=self.sensor.sensor_type,
                      sensor_id=self.sensor.sensor_id)

        self.controller.set_sensor_active(copy, True)

        self.assertTrue(self.sensor.active)
        self.assertTrue(copy.active)
        self.assertIs(self.repository.update_sensor.call_args[0][0], self.sensor)
        self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.PENDING)

    def test_sensor_event_deescalates_triggered_alarm(self):
        """An active sensor event while triggered drops back to pending."""
        sensors = make_sensors(True, 3)
        self.register(*sensors)
        self.repository.get_alarm_severity.return_value = AlarmSeverity.TRIGGERED

        for sensor in sensors:
            self.controller.notify_sensor_event(sensor)

        self.assertEqual(self.repository.set_alarm_severity.call_args_list,
                         [call(AlarmSeverity.PENDING)] * 3)

    def test_inactive_sensor_event_while_pending_clears_alarm(self):
        """An inactive sensor event while pending resolves to no alarm."""
        self.repository.get_alarm_severity.return_value = AlarmSeverity.PENDING
        self.sensor.active = False

        self.controller.notify_sensor_event(self.sensor)

        self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.NONE)
        self.repository.update_sensor.assert_called_once_with(self.sensor)

    def test_sensor_event_other_combinations_leave_alarm_alone(self):
        """Sensor events outside the two defined rules change nothing."""
        cases = [
            (AlarmSeverity.NONE, True),
            (AlarmSeverity.NONE, False),
            (AlarmSeverity.PENDING, True),
            (AlarmSeverity.TRIGGERED, False),
        ]
        for severity, active in cases:
            with self.subTest(severity=severity, active=active):
                self.repository.reset_mock()
                self.repository.get_alarm_severity.return_value = severity
                self.sensor.active = active

                self.controller.notify_sensor_event(self.sensor)

                self.repository.set_alarm_severity.assert_not_called()

    def test_arming_does_not_change_alarm_without_detection(self):
        """Arming alone leaves the alarm untouched."""
        for mode in ARMED_MODES:
            with self.subTest(mode=mode):
                self.controller.set_arming_mode(mode)
                self.repository.set_alarm_severity.assert_not_called()
                self.repository.set_arming_mode.assert_called_with(mode)

    def test_cat_detected_while_armed_home_triggers_alarm(self):
        """A cat in the image while armed at home triggers the alarm."""
        self.repository.get_arming_mode.return_value = ArmingMode.ARMED_HOME
        self.detector.detect.return_value = True

        result = self.controller.evaluate_image(self.image)

        self.assertTrue(result)
        self.detector.detect.assert_called_once_with(self.image, 0.5)
        self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.TRIGGERED)

    def test_no_cat_and_no_active_sensors_clears_alarm(self):
        """No cat and no active sensors resolves to no alarm."""
        self.repository.get_alarm_severity.return_value = AlarmSeverity.PENDING
        self.detector.detect.return_value = False

        self.controller.evaluate_image(self.image)

        self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.NONE)

    def test_no_cat_with_active_sensor_keeps_alarm(self):
        """No cat does not clear the alarm while a sensor is still active."""
        self.sensor.active = True
        self.repository.get_alarm_severity.return_value = AlarmSeverity.PENDING
        self.detector.detect.return_value = False

        self.controller.evaluate_image(self.image)

        self.repository.set_alarm_severity.assert_not_called()

    def test_disarming_clears_alarm(self):
        """Disarming always resets the alarm to none."""
        for severity in (AlarmSeverity.PENDING, AlarmSeverity.TRIGGERED):
            with self.subTest(severity=severity):
                self.repository.reset_mock()
                self.repository.get_alarm_severity.return_value = severity

                self.controller.set_arming_mode(ArmingMode.DISARMED)

                self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.NONE)

    def test_arming_resets_all_sensors(self):
        """Arming sets every sensor inactive and persists each reset."""
        for mode in ARMED_MODES:
            with self.subTest(mode=mode):
                self.repository.reset_mock()
                sensors = make_sensors(True, 3)
                self.register(*sensors)
                self.repository.get_alarm_severity.return_value = AlarmSeverity.PENDING

                self.controller.set_arming_mode(mode)

                self.assertFalse(any(s.active for s in sensors))
                self.assertEqual(self.repository.update_sensor.call_count, 3)

    def test_cat_seen_while_disarmed_triggers_on_arming_home(self):
        """A cat detected while disarmed triggers the alarm once armed at home."""
        self.detector.detect.return_value = True

        self.controller.evaluate_image(self.image)
        self.repository.set_alarm_severity.assert_not_called()

        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)

        self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.TRIGGERED)

    def test_add_and_remove_status_listener(self):
        """Listeners can be added and removed."""
        listener = Mock(spec=StatusListener)
        self.controller.add_status_listener(listener)
        self.controller.remove_status_listener(listener)
        self.controller.remove_status_listener(listener)
        self.repository.get_alarm_severity.return_value = AlarmSeverity.TRIGGERED

        self.controller.set_arming_mode(ArmingMode.DISARMED)

        self.repository.set_alarm_severity.assert_called_once_with(AlarmSeverity.NONE)
        listener.severity_changed.assert_not_called()

    def test_add_and_remove_sensor(self):
        """Sensors are added and removed through the repository."""
        new_sensor = Sensor(name="Hall", sensor_type=SensorType.MOTION)

        self.controller.add_sensor(new_sensor)
        self.repository.add_sensor.assert_called_once_with(new_sensor)

        self.register(self.sensor, new_sensor)
        self.controller.remove_sensor(new_sensor)
        self.repository.remove_sensor.assert_called_once_with(new_sensor)


class TestAlarmControllerValidation(unittest.TestCase):
    """Invalid input and collaborator failures."""

    def setUp(self):
        """Set up test fixtures."""
        self.repository = InMemoryStatusRepository()
        self.detector = Mock(spec=AnimalDetectorInterface)
        self.controller = AlarmController(self.repository, self.detector)
        self.sensor = Sensor(name="Window", sensor_type=SensorType.WINDOW)
        self.controller.add_sensor(self.sensor)
        global_error_handler.clear_error_history()

    def test_unregistered_sensor_is_rejected(self):
        """Mutations on unknown sensors raise without touching state."""
        stranger = Sensor(name="Stranger", sensor_type=SensorType.DOOR)
        self.controller.set_arming_mode(ArmingMode.ARMED_AWAY)

        with self.assertRaises(InvalidArgumentError):
            self.controller.set_sensor_active(stranger, True)
        with self.assertRaises(InvalidArgumentError):
            self.controller.notify_sensor_event(stranger)
        with self.assertRaises(InvalidArgumentError):
            self.controller.remove_sensor(stranger)

        self.assertFalse(stranger.active)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)

    def test_duplicate_sensor_is_rejected(self):
        """Adding the same sensor twice raises."""
        with self.assertRaises(InvalidArgumentError):
            self.controller.add_sensor(self.sensor)

    def test_invalid_arguments_are_rejected(self):
        """Wrongly typed arguments raise an invalid argument error."""
        with self.assertRaises(InvalidArgumentError):
            self.controller.set_sensor_active(self.sensor, "yes")
        with self.assertRaises(InvalidArgumentError):
            self.controller.set_arming_mode("ARMED_HOME")
        with self.assertRaises(InvalidArgumentError):
            self.controller.evaluate_image(None)
        with self.assertRaises(InvalidArgumentError):
            self.controller.add_sensor("not a sensor")
        self.detector.detect.assert_not_called()

    def test_invalid_arguments_are_not_counted_as_component_errors(self):
        """Caller mistakes do not degrade the controller's health."""
        with self.assertRaises(InvalidArgumentError):
            self.controller.evaluate_image(None)
        self.assertEqual(len(global_error_handler.error_history), 0)

    def test_detector_failure_propagates_without_state_change(self):
        """Detector exceptions reach the caller and leave state untouched."""
        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)
        self.detector.detect.side_effect = RuntimeError("model crashed")

        with self.assertRaises(RuntimeError):
            self.controller.evaluate_image(object())

        self.assertFalse(self.controller.cat_detected)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)
        record = global_error_handler.error_history[-1]
        self.assertEqual(record.component_name, "alarm_controller")
        self.assertEqual(record.error_type, "RuntimeError")

    def test_failed_severity_write_rolls_back_sensor(self):
        """A failing severity write restores the sensor flag and store."""
        repository = Mock(spec=StatusRepositoryInterface)
        repository.get_sensors.return_value = frozenset({self.sensor})
        repository.get_alarm_severity.return_value = AlarmSeverity.NONE
        repository.get_arming_mode.return_value = ArmingMode.ARMED_AWAY
        repository.set_alarm_severity.side_effect = IOError("disk full")
        controller = AlarmController(repository, self.detector)
        listener = Mock(spec=StatusListener)
        controller.add_status_listener(listener)

        with self.assertRaises(IOError):
            controller.set_sensor_active(self.sensor, True)

        self.assertFalse(self.sensor.active)
        self.assertEqual(repository.update_sensor.call_count, 2)
        listener.severity_changed.assert_not_called()
        listener.sensors_changed.assert_not_called()

    def test_failed_sensor_write_leaves_flag_unchanged(self):
        """A failing sensor write keeps the old in-memory flag."""
        repository = Mock(spec=StatusRepositoryInterface)
        repository.get_sensors.return_value = frozenset({self.sensor})
        repository.get_alarm_severity.return_value = AlarmSeverity.NONE
        repository.get_arming_mode.return_value = ArmingMode.ARMED_AWAY
        repository.update_sensor.side_effect = IOError("disk full")
        controller = AlarmController(repository, self.detector)

        with self.assertRaises(IOError):
            controller.set_sensor_active(self.sensor, True)

        self.assertFalse(self.sensor.active)
        repository.set_alarm_severity.assert_not_called()

    def test_failed_arming_write_restores_reset_sensors(self):
        """A failing arming-mode write undoes the sensor resets."""
        repository = Mock(spec=StatusRepositoryInterface)
        sensors = make_sensors(True, 2)
        repository.get_sensors.return_value = frozenset(sensors)
        repository.get_alarm_severity.return_value = AlarmSeverity.NONE
        repository.get_arming_mode.return_value = ArmingMode.DISARMED
        repository.set_arming_mode.side_effect = IOError("disk full")
        controller = AlarmController(repository, self.detector)

        with self.assertRaises(IOError):
            controller.set_arming_mode(ArmingMode.ARMED_AWAY)

        self.assertTrue(all(s.active for s in sensors))

    def test_confidence_threshold_validation(self):
        """Threshold must lie within [0, 1]."""
        self.controller.confidence_threshold = 0.8
        self.assertEqual(self.controller.confidence_threshold, 0.8)

        for bad in (-0.1, 1.5, "high", True):
            with self.subTest(threshold=bad):
                with self.assertRaises(InvalidArgumentError):
                    self.controller.confidence_threshold = bad

    def test_apply_config_updates_threshold(self):
        """Config reloads change the threshold passed to the detector."""
        self.controller.apply_config(SystemConfig(confidence_threshold=0.9))
        self.detector.detect.return_value = False

        self.controller.evaluate_image(object())

        self.detector.detect.assert_called_once()
        self.assertEqual(self.detector.detect.call_args[0][1], 0.9)


class TestAlarmControllerScenarios(unittest.TestCase):
    """End-to-end scenarios against the in-memory repository."""

    def setUp(self):
        """Set up test fixtures."""
        self.repository = InMemoryStatusRepository()
        self.detector = Mock(spec=AnimalDetectorInterface)
        self.detector.detect.return_value = False
        self.controller = AlarmController(self.repository, self.detector)
        self.listener = Mock(spec=StatusListener)
        self.controller.add_status_listener(self.listener)
        self.door = Sensor(name="Door", sensor_type=SensorType.DOOR)
        self.window = Sensor(name="Window", sensor_type=SensorType.WINDOW)
        self.controller.add_sensor(self.door)
        self.controller.add_sensor(self.window)
        self.listener.reset_mock()

    def test_initial_state(self):
        """A fresh system is disarmed and quiet."""
        self.assertEqual(self.controller.get_arming_mode(), ArmingMode.DISARMED)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)
        self.assertFalse(self.controller.cat_detected)
        self.assertEqual(self.controller.get_sensors(), frozenset({self.door, self.window}))

    def test_escalation_through_pending_to_triggered(self):
        """Two activations while armed away trigger the alarm."""
        self.controller.set_arming_mode(ArmingMode.ARMED_AWAY)

        self.controller.set_sensor_active(self.door, True)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.PENDING)

        self.controller.set_sensor_active(self.window, True)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.TRIGGERED)

        self.assertEqual(self.listener.severity_changed.call_args_list,
                         [call(AlarmSeverity.PENDING), call(AlarmSeverity.TRIGGERED)])

    def test_pending_resolves_on_single_deactivation(self):
        """Deactivating the sensor resolves a pending alarm."""
        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)
        self.controller.set_sensor_active(self.door, True)
        self.controller.set_sensor_active(self.door, False)

        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)

    def test_cat_then_arm_home_notifies_once(self):
        """Cat seen while disarmed, then armed at home: exactly one TRIGGERED notification."""
        self.detector.detect.return_value = True

        self.controller.evaluate_image(object())
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)
        self.assertTrue(self.controller.cat_detected)

        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)

        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.TRIGGERED)
        self.listener.severity_changed.assert_called_once_with(AlarmSeverity.TRIGGERED)
        self.listener.detection_changed.assert_called_once_with(True)

    def test_cat_while_armed_home_triggers_immediately(self):
        """Armed at home, a cat image triggers in the same call."""
        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)
        self.detector.detect.return_value = True

        self.controller.evaluate_image(object())

        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.TRIGGERED)

    def test_detection_memory_survives_away_and_disarm(self):
        """The last detection is re-applied when armed at home later."""
        self.detector.detect.return_value = True
        self.controller.evaluate_image(object())

        self.controller.set_arming_mode(ArmingMode.ARMED_AWAY)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)

        self.controller.set_arming_mode(ArmingMode.DISARMED)
        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.TRIGGERED)

    def test_clear_image_overwrites_detection_memory(self):
        """A later image without a cat clears the memory."""
        self.detector.detect.return_value = True
        self.controller.evaluate_image(object())
        self.detector.detect.return_value = False
        self.controller.evaluate_image(object())

        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)

        self.assertFalse(self.controller.cat_detected)
        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)

    def test_disarm_clears_triggered_alarm(self):
        """Disarming a triggered alarm returns to none."""
        self.controller.set_arming_mode(ArmingMode.ARMED_HOME)
        self.controller.set_sensor_active(self.door, True)
        self.controller.set_sensor_active(self.window, True)

        self.controller.set_arming_mode(ArmingMode.DISARMED)

        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.NONE)
        self.assertEqual(self.listener.severity_changed.call_args_list[-1], call(AlarmSeverity.NONE))

    def test_arming_resets_stale_activations(self):
        """Sensors active while disarmed are reset on arming."""
        self.controller.set_sensor_active(self.door, True)

        self.controller.set_arming_mode(ArmingMode.ARMED_AWAY)

        self.assertFalse(self.door.active)
        self.assertFalse(any(s.active for s in self.repository.get_sensors()))
        self.listener.severity_changed.assert_not_called()

    def test_detection_notified_on_every_evaluation(self):
        """Each evaluated image reports its result to listeners."""
        self.controller.evaluate_image(object())
        self.controller.evaluate_image(object())

        self.assertEqual(self.listener.detection_changed.call_args_list, [call(False), call(False)])
        self.listener.severity_changed.assert_not_called()

    def test_concurrent_activations_are_serialized(self):
        """Activations from many threads escalate consistently."""
        sensors = make_sensors(False, 20)
        for sensor in sensors:
            self.controller.add_sensor(sensor)
        self.controller.set_arming_mode(ArmingMode.ARMED_AWAY)
        self.listener.reset_mock()

        threads = [threading.Thread(target=self.controller.set_sensor_active, args=(s, True))
                   for s in sensors]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(self.controller.get_alarm_severity(), AlarmSeverity.TRIGGERED)
        self.assertEqual(self.listener.severity_changed.call_args_list,
                         [call(AlarmSeverity.PENDING), call(AlarmSeverity.TRIGGERED)])


if __name__ == '__main__':
    unittest.main()

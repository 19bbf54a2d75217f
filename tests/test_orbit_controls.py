from __future__ import annotations

import math
import unittest

import numpy as np
from numpy.testing import assert_allclose
from PySide6.QtCore import QCoreApplication

from geoorbit.camera import Camera, orthographic_camera, perspective_camera
from geoorbit.config import ControlsConfig
from geoorbit.coord_utils import lonlat_to_ecef
from geoorbit.ellipsoid import WGS84
from geoorbit.orbit_controls import (
    CameraTargetPose,
    InteractionState,
    OrbitCameraController,
    clamp_azimuth,
)

_app = None


def setUpModule() -> None:
    global _app
    _app = QCoreApplication.instance() or QCoreApplication([])


def make_controls(config: ControlsConfig | None = None, lon: float = 0.0, lat: float = 0.0,
                  camera: Camera | None = None) -> OrbitCameraController:
    camera = camera or perspective_camera(fov=45.0, aspect=1.5, near=1.0, far=1.0e8)
    return OrbitCameraController(camera, target=lonlat_to_ecef(lon, lat), config=config)


def heading_delta(before: float, after: float) -> float:
    return (after - before + 180.0) % 360.0 - 180.0


class ClampAzimuthTests(unittest.TestCase):
    def test_in_range_is_unchanged(self) -> None:
        low, high = math.radians(-60.0), math.radians(60.0)
        for theta in (low, 0.0, 0.5, high):
            self.assertEqual(clamp_azimuth(theta, low, high), theta)
            self.assertEqual(clamp_azimuth(clamp_azimuth(theta, low, high), low, high), theta)

    def test_out_of_range_clamps(self) -> None:
        low, high = math.radians(-60.0), math.radians(60.0)
        self.assertEqual(clamp_azimuth(2.0, low, high), high)
        self.assertEqual(clamp_azimuth(-2.0, low, high), low)

    def test_wrapped_range_picks_nearer_bound(self) -> None:
        low, high = math.radians(170.0), math.radians(-170.0)
        self.assertEqual(clamp_azimuth(math.radians(175.0), low, high), math.radians(175.0))
        self.assertEqual(clamp_azimuth(math.radians(-175.0), low, high), math.radians(-175.0))
        self.assertEqual(clamp_azimuth(math.radians(100.0), low, high), low)
        self.assertEqual(clamp_azimuth(math.radians(-100.0), low, high), high)

    def test_limits_beyond_pi_are_wrapped(self) -> None:
        low, high = math.radians(170.0), math.radians(190.0)
        self.assertAlmostEqual(clamp_azimuth(math.radians(120.0), low, high), low)
        self.assertAlmostEqual(clamp_azimuth(math.radians(-120.0), low, high), math.radians(-170.0))

    def test_non_finite_limits_are_unconstrained(self) -> None:
        self.assertEqual(clamp_azimuth(3.0, -math.inf, math.inf), 3.0)
        self.assertEqual(clamp_azimuth(3.0, 0.0, math.nan), 3.0)


class ConstructionTests(unittest.TestCase):
    def test_invalid_config_fails_at_construction(self) -> None:
        with self.assertRaises(ValueError):
            make_controls(ControlsConfig(min_distance=10.0, max_distance=1.0))
        with self.assertRaises(ValueError):
            make_controls(ControlsConfig(enable_damping=True, damping_factor=1.0))

    def test_target_up_defaults_to_surface_normal(self) -> None:
        controls = make_controls(lon=30.0, lat=45.0)
        assert_allclose(controls.target_up, WGS84.surface_normal(controls.target), atol=1e-12)
        assert_allclose(controls.camera.up, controls.target_up)

    def test_controllers_do_not_share_state(self) -> None:
        first = make_controls()
        second = make_controls()
        first.set_camera_position(CameraTargetPose(0.0, 30.0, 1.0e6))
        second.set_camera_position(CameraTargetPose(0.0, 30.0, 1.0e6))
        first.rotate_left(0.3)
        first.pan_left(100.0)
        self.assertNotEqual(second.state.delta_theta, first.state.delta_theta)
        assert_allclose(second.state.pan_offset, np.zeros(3))


class CameraPoseTests(unittest.TestCase):
    def test_pose_scenario_at_equator(self) -> None:
        controls = make_controls()
        controls.set_camera_position(CameraTargetPose(heading=0.0, pitch=0.0, distance=1.0e7))
        assert_allclose(controls.camera.position, [WGS84.a, -1.0e7, 0.0], atol=1e-3)

        pose = controls.invert_camera_hpd()
        self.assertAlmostEqual(pose.heading, 0.0, places=6)
        self.assertAlmostEqual(pose.pitch, 0.0, places=6)
        self.assertAlmostEqual(pose.distance, 1.0e7, delta=1e-3)

    def test_looking_straight_down(self) -> None:
        controls = make_controls()
        controls.set_camera_position(CameraTargetPose(heading=0.0, pitch=90.0, distance=1.0e7))
        assert_allclose(controls.camera.position, [16378137.0, 0.0, 0.0], atol=1e-3)
        self.assertAlmostEqual(controls.invert_camera_hpd().pitch, 90.0, places=6)

    def test_pose_round_trip_with_pan(self) -> None:
        controls = make_controls(lon=10.0, lat=45.0)
        pose = CameraTargetPose(heading=30.0, pitch=40.0, distance=5.0e5, x=1000.0, y=-2000.0)
        controls.set_camera_position(pose)

        recovered = controls.invert_camera_hpd()
        self.assertAlmostEqual(recovered.heading, pose.heading, places=6)
        self.assertAlmostEqual(recovered.pitch, pose.pitch, places=6)
        self.assertAlmostEqual(recovered.distance, pose.distance, delta=1e-4)
        self.assertAlmostEqual(recovered.x, pose.x, delta=1e-4)
        self.assertAlmostEqual(recovered.y, pose.y, delta=1e-4)

    def test_distance_is_measured_to_panned_target(self) -> None:
        controls = make_controls(lon=-70.0, lat=-20.0)
        controls.set_camera_position(CameraTargetPose(10.0, 50.0, 2.0e5, x=-300.0, y=800.0))
        controls.rotate_left(0.2)
        controls.update()
        distance = np.linalg.norm(controls.camera.position - controls.get_target())
        self.assertAlmostEqual(controls.target_pose.distance, distance, delta=1e-6)

    def test_get_target_without_offset_is_raw_target(self) -> None:
        controls = make_controls(lon=5.0, lat=5.0)
        assert_allclose(controls.get_target(), controls.target)

    def test_update_up_keeps_pose(self) -> None:
        controls = make_controls(lon=20.0, lat=10.0)
        pose = CameraTargetPose(heading=15.0, pitch=35.0, distance=8.0e5)
        controls.set_camera_position(pose)
        normal = WGS84.surface_normal(controls.target)
        controls.update_up(normal)
        assert_allclose(controls.camera.up, normal, atol=1e-12)
        recovered = controls.invert_camera_hpd()
        self.assertAlmostEqual(recovered.heading, 15.0, places=6)
        self.assertAlmostEqual(recovered.pitch, 35.0, places=6)

    def test_pose_serialization(self) -> None:
        pose = CameraTargetPose(heading=1.0, pitch=2.0, distance=3.0, x=4.0, y=5.0)
        self.assertEqual(CameraTargetPose.from_dict(pose.as_dict()), pose)
        self.assertEqual(
            CameraTargetPose.from_dict({"heading": 1, "pitch": 2, "distance": 3}),
            CameraTargetPose(1.0, 2.0, 3.0),
        )


class UpdateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.controls = make_controls(lon=10.0, lat=45.0)
        self.controls.set_camera_position(CameraTargetPose(heading=30.0, pitch=40.0, distance=5.0e5))
        self.changes = []
        self.poses = []
        self.controls.sigChange.connect(lambda: self.changes.append(True))
        self.controls.sigTargetChange.connect(self.poses.append)

    def test_no_input_reports_no_change(self) -> None:
        self.controls.update()
        self.assertFalse(self.controls.update())

    def test_rotate_left_changes_heading(self) -> None:
        self.controls.update()
        self.changes.clear()
        self.poses.clear()

        self.controls.rotate_left(0.1)
        self.assertTrue(self.controls.update())
        self.assertEqual(len(self.changes), 1)
        self.assertEqual(len(self.poses), 1)

        pose = self.poses[0]
        self.assertAlmostEqual(abs(heading_delta(30.0, pose.heading)), math.degrees(0.1), places=6)
        self.assertAlmostEqual(pose.pitch, 40.0, places=6)
        self.assertAlmostEqual(pose.distance, 5.0e5, delta=1e-4)
        self.assertEqual(self.controls.target_pose, pose)

    def test_rotate_up_changes_pitch(self) -> None:
        self.controls.rotate_up(math.radians(10.0))
        self.controls.update()
        self.assertAlmostEqual(abs(self.controls.target_pose.pitch - 40.0), 10.0, places=6)

    def test_pixel_drag_rotates(self) -> None:
        self.controls.rotate(10.0, 0.0, viewport_height=600.0)
        self.assertAlmostEqual(self.controls.state.delta_theta, -2 * math.pi * 10.0 / 600.0)

    def test_pan_accumulates_into_persistent_offset(self) -> None:
        self.controls.pan_left(100.0)
        self.controls.pan_up(50.0)
        self.assertTrue(self.controls.update())
        pose = self.controls.target_pose
        self.assertAlmostEqual(pose.x, 100.0, delta=1e-6)
        self.assertAlmostEqual(pose.y, 50.0, delta=1e-6)
        self.assertAlmostEqual(np.linalg.norm(self.controls.persistent_pan_offset), math.hypot(100.0, 50.0), delta=1e-6)
        assert_allclose(self.controls.state.pan_offset, np.zeros(3))

    def test_persistent_offset_survives_updates(self) -> None:
        self.controls.set_camera_position(CameraTargetPose(30.0, 40.0, 5.0e5, x=500.0))
        offset = self.controls.persistent_pan_offset.copy()
        for _ in range(3):
            self.controls.update()
        assert_allclose(self.controls.persistent_pan_offset, offset)

    def test_reset_pan_offset_restores_raw_target(self) -> None:
        self.controls.set_camera_position(CameraTargetPose(30.0, 40.0, 5.0e5, x=500.0, y=-700.0))
        self.assertGreater(np.linalg.norm(self.controls.get_target() - self.controls.target), 1.0)
        self.controls.reset_pan_offset()
        self.controls.update()
        assert_allclose(self.controls.get_target(), self.controls.target)

    def test_pixel_pan_scales_with_distance(self) -> None:
        self.controls.pan(10.0, 0.0, viewport_width=900.0, viewport_height=600.0)
        expected = 2.0 * 10.0 * 5.0e5 * math.tan(math.radians(22.5)) / 600.0
        self.assertAlmostEqual(np.linalg.norm(self.controls.state.pan_offset), expected, delta=1e-6)

    def test_interaction_signals(self) -> None:
        events = []
        self.controls.sigStart.connect(lambda: events.append("start"))
        self.controls.sigEnd.connect(lambda: events.append("end"))
        self.controls.begin_interaction(InteractionState.ROTATE)
        self.assertIs(self.controls.state.interaction, InteractionState.ROTATE)
        self.controls.end_interaction()
        self.assertEqual(events, ["start", "end"])
        self.assertIs(self.controls.state.interaction, InteractionState.NONE)


class DampingTests(unittest.TestCase):
    def test_damped_deltas_decay(self) -> None:
        controls = make_controls(ControlsConfig(enable_damping=True, damping_factor=0.25))
        controls.set_camera_position(CameraTargetPose(0.0, 30.0, 1.0e6))
        controls.rotate_left(0.4)
        controls.pan_left(100.0)
        controls.update()
        self.assertAlmostEqual(controls.state.delta_theta, -0.3)
        self.assertAlmostEqual(np.linalg.norm(controls.state.pan_offset), 75.0)
        self.assertAlmostEqual(np.linalg.norm(controls.persistent_pan_offset), 25.0)

    def test_damping_can_be_switched_off(self) -> None:
        controls = make_controls(ControlsConfig(enable_damping=True, damping_factor=0.25))
        controls.set_camera_position(CameraTargetPose(0.0, 30.0, 1.0e6))
        controls.enable_damping = False
        controls.rotate_left(0.4)
        controls.update()
        self.assertEqual(controls.state.delta_theta, 0.0)


class LimitTests(unittest.TestCase):
    def test_distance_is_clamped(self) -> None:
        controls = make_controls(ControlsConfig(min_distance=1.0e6, max_distance=2.0e7))
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 5.0e5))
        self.assertTrue(controls.update())
        self.assertAlmostEqual(controls.target_pose.distance, 1.0e6, delta=1e-3)

        controls.dolly_out(0.5)
        controls.update()
        self.assertAlmostEqual(controls.target_pose.distance, 2.0e6, delta=1e-3)

        controls.dolly_out(0.01)
        controls.update()
        self.assertAlmostEqual(controls.target_pose.distance, 2.0e7, delta=1e-2)

    def test_pan_offset_length_is_clamped(self) -> None:
        controls = make_controls(ControlsConfig(max_target_radius=1000.0))
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.pan_left(5000.0)
        self.assertTrue(controls.update())
        self.assertAlmostEqual(np.linalg.norm(controls.persistent_pan_offset), 1000.0, delta=1e-6)
        self.assertAlmostEqual(controls.target_pose.x, 1000.0, delta=1e-6)

    def test_polar_angle_is_clamped(self) -> None:
        controls = make_controls(ControlsConfig(max_polar_angle=math.pi / 4))
        controls.set_camera_position(CameraTargetPose(0.0, 10.0, 1.0e6))
        controls.update()
        self.assertAlmostEqual(controls.target_pose.pitch, 45.0, places=6)

    def test_azimuth_limits_hold_during_rotation(self) -> None:
        config = ControlsConfig(min_azimuth_angle=-0.2, max_azimuth_angle=0.2)
        controls = make_controls(config)
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.update()
        start = controls.target_pose.heading
        controls.rotate_left(2.0)
        controls.update()
        self.assertLessEqual(abs(heading_delta(start, controls.target_pose.heading)), math.degrees(0.4) + 1e-6)

    def test_auto_rotate_when_idle(self) -> None:
        controls = make_controls(ControlsConfig(auto_rotate=True, auto_rotate_speed=2.0))
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.update(delta_time=1.0)
        expected = math.degrees(2 * math.pi / 60.0 * 2.0)
        self.assertAlmostEqual(abs(heading_delta(0.0, controls.target_pose.heading)), expected, places=6)

    def test_auto_rotate_paused_during_interaction(self) -> None:
        controls = make_controls(ControlsConfig(auto_rotate=True))
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.update()
        controls.begin_interaction(InteractionState.ROTATE)
        self.assertFalse(controls.update(delta_time=1.0))


class ZoomTests(unittest.TestCase):
    def test_wheel_zoom_toward_target(self) -> None:
        controls = make_controls()
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.handle_wheel(-100.0)
        self.assertTrue(controls.update())
        self.assertAlmostEqual(controls.target_pose.distance, 0.95e6, delta=1e-3)

    def test_zoom_to_cursor_at_screen_center(self) -> None:
        controls = make_controls(ControlsConfig(zoom_to_cursor=True), lon=10.0, lat=45.0)
        controls.set_camera_position(CameraTargetPose(0.0, 60.0, 1.0e6))
        target = controls.get_target().copy()

        controls.handle_wheel(-100.0, (0.0, 0.0))
        self.assertTrue(controls.state.perform_cursor_zoom)
        self.assertTrue(controls.update())
        self.assertFalse(controls.state.perform_cursor_zoom)

        assert_allclose(controls.get_target(), target, atol=0.1)
        self.assertAlmostEqual(controls.target_pose.distance, 0.95e6, delta=1.0)

    def test_zoom_to_cursor_keeps_target_near_horizon(self) -> None:
        controls = make_controls(ControlsConfig(zoom_to_cursor=True))
        controls.set_camera_position(CameraTargetPose(0.0, 5.0, 1.0e5))
        target = controls.get_target().copy()
        controls.handle_wheel(-100.0, (0.3, 0.2))
        controls.update()
        assert_allclose(controls.get_target(), target)

    def test_screen_space_cursor_zoom_targets_point_ahead(self) -> None:
        config = ControlsConfig(zoom_to_cursor=True, screen_space_panning=True)
        controls = make_controls(config, lon=10.0, lat=45.0)
        controls.set_camera_position(CameraTargetPose(0.0, 60.0, 1.0e6))

        controls.handle_wheel(-100.0, (0.2, 0.1))
        self.assertTrue(controls.update())

        camera = controls.camera
        ahead = camera.position + camera.forward_vector() * 0.95e6
        assert_allclose(controls.get_target(), ahead, atol=1e-3)
        self.assertAlmostEqual(controls.target_pose.distance, 0.95e6, delta=1e-2)

    def test_orthographic_cursor_zoom_keeps_point_under_cursor(self) -> None:
        camera = orthographic_camera(-1.0e6, 1.0e6, 1.0e6, -1.0e6)
        controls = make_controls(ControlsConfig(zoom_to_cursor=True), camera=camera)
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.update()

        ndc = np.array([0.3, 0.2, 0.0])
        before = camera.unproject(ndc)
        controls.handle_wheel(-100.0, (0.3, 0.2))
        self.assertTrue(controls.update())

        self.assertAlmostEqual(camera.projection.zoom, 1.0 / 0.95, places=9)
        assert_allclose(camera.unproject(ndc), before, atol=1e-3)

    def test_orthographic_zoom_changes_zoom_factor(self) -> None:
        camera = orthographic_camera(-1.0e6, 1.0e6, 1.0e6, -1.0e6)
        controls = make_controls(camera=camera)
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.update()
        controls.dolly_in(0.5)
        self.assertTrue(controls.update())
        self.assertEqual(camera.projection.zoom, 2.0)
        self.assertAlmostEqual(controls.target_pose.distance, 1.0e6, delta=1e-3)

    def test_orthographic_zoom_respects_limits(self) -> None:
        camera = orthographic_camera(-1.0e6, 1.0e6, 1.0e6, -1.0e6)
        controls = make_controls(ControlsConfig(max_zoom=1.5), camera=camera)
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.dolly_in(0.1)
        controls.update()
        self.assertEqual(camera.projection.zoom, 1.5)

    def test_unsupported_camera_disables_cursor_zoom(self) -> None:
        camera = Camera(projection="fisheye")
        controls = make_controls(ControlsConfig(zoom_to_cursor=True), camera=camera)
        controls.set_camera_position(CameraTargetPose(0.0, 45.0, 1.0e6))
        controls.handle_wheel(-100.0, (0.1, 0.1))
        with self.assertLogs("geoorbit", level="WARNING"):
            self.assertTrue(controls.update())
        self.assertFalse(controls.zoom_to_cursor)
        self.assertAlmostEqual(controls.target_pose.distance, 0.95e6, delta=1e-3)


if __name__ == "__main__":
    unittest.main()

"""
Shared pytest fixtures for the pose fusion tests.

Cameras are replaced by scripted fakes; camera-to-target transforms are
synthesized from a ground-truth robot pose so every fused result can be
checked against the pose that generated it.
"""

import math
from typing import List, Optional, Sequence

import numpy as np
import pytest

from posefusion import (
    CameraRigEntry,
    DetectionResult,
    FieldTagLayout,
    Pose3d,
    Rotation3d,
    TrackedTarget,
    Transform3d,
    Translation3d,
)
from posefusion.geometry import inv_se3


class FakeCamera:
    """Returns scripted results in order, repeating the last one once exhausted."""

    def __init__(self, *results: DetectionResult):
        self._results: List[DetectionResult] = list(results) or [DetectionResult()]
        self.calls = 0

    def latest_result(self) -> DetectionResult:
        idx = min(self.calls, len(self._results) - 1)
        self.calls += 1
        return self._results[idx]


class RecordingSink:
    """Diagnostic sink that keeps every message for assertions."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def report_error(self, message: str, is_serious: bool = False) -> None:
        self.errors.append(message)

    def report_warning(self, message: str, is_serious: bool = False) -> None:
        self.warnings.append(message)


def camera_to_target_for(robot_pose: Pose3d, robot_to_camera: Transform3d, tag_pose: Pose3d) -> Transform3d:
    """T_cam_tag = (T_field_robot · T_robot_cam)^-1 · T_field_tag"""
    field_to_camera = robot_pose.matrix() @ robot_to_camera.matrix()
    return Transform3d.from_matrix(inv_se3(field_to_camera) @ tag_pose.matrix())


def make_target(tag_id: int, ambiguity: float, best: Transform3d,
                alternate: Optional[Transform3d] = None) -> TrackedTarget:
    return TrackedTarget(tag_id, ambiguity, best, alternate if alternate is not None else best)


def rig_of(*pairs) -> List[CameraRigEntry]:
    return [CameraRigEntry(camera, transform) for camera, transform in pairs]


def assert_pose_close(actual: Optional[Pose3d], expected: Pose3d, atol: float = 1e-9) -> None:
    assert actual is not None, "expected a pose, got None"
    np.testing.assert_allclose(actual.matrix(), expected.matrix(), atol=atol)


TAG_POSES = {
    1: Pose3d.from_xyzrpy(5.0, 0.0, 1.0, yaw=math.pi),
    2: Pose3d.from_xyzrpy(5.0, 2.0, 1.0, yaw=math.pi),
    3: Pose3d.from_xyzrpy(0.0, 4.0, 0.5, yaw=-math.pi / 2),
}


@pytest.fixture
def layout() -> FieldTagLayout:
    return FieldTagLayout(dict(TAG_POSES), field_length=16.54, field_width=8.21)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def front_camera_mount() -> Transform3d:
    """Camera 0.3 m ahead of robot center, 0.5 m up, pitched up 10 degrees."""
    return Transform3d(Translation3d(0.3, 0.0, 0.5), Rotation3d.from_rpy(0.0, -math.radians(10), 0.0))


@pytest.fixture
def side_camera_mount() -> Transform3d:
    """Camera on the left side, looking left."""
    return Transform3d(Translation3d(0.0, 0.25, 0.4), Rotation3d.from_rpy(0.0, 0.0, math.pi / 2))


@pytest.fixture
def robot_pose() -> Pose3d:
    return Pose3d.from_xyzrpy(1.5, 0.5, 0.0, yaw=0.2)

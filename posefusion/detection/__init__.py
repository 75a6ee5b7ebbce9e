from .types import CameraIntrinsics
from .apriltag import (
    TagDetectionConfig, AprilTagDetector,
    solve_tag_pose, tag_object_points, opencv_to_camera_to_target,
    reprojection_error,
)


__all__ = [
    'CameraIntrinsics',
    'TagDetectionConfig',
    'AprilTagDetector',
    'solve_tag_pose',
    'tag_object_points',
    'opencv_to_camera_to_target',
    'reprojection_error',
]

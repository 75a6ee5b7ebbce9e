# posefusion/__init__.py
"""
多相机 AprilTag 机器人位姿融合

公开 API:
- PoseFusionEngine, PoseStrategy, EstimatedPose
- TrackedTarget, DetectionResult, CameraRigEntry
- FieldTagLayout
- Pose3d, Pose2d, Transform3d, Translation3d, Rotation3d
"""
from .geometry import Pose2d, Pose3d, Rotation3d, Transform3d, Translation3d
from .types import CameraRigEntry, DetectionResult, EstimatedPose, PoseStrategy, TrackedTarget
from .layout import FieldLayoutError, FieldTagLayout
from .diagnostics import DiagnosticSink, LoggerDiagnostics
from .estimator import PoseFusionEngine, robot_pose_from_target

__all__ = [
    "PoseFusionEngine",
    "PoseStrategy",
    "EstimatedPose",
    "TrackedTarget",
    "DetectionResult",
    "CameraRigEntry",
    "FieldTagLayout",
    "FieldLayoutError",
    "DiagnosticSink",
    "LoggerDiagnostics",
    "robot_pose_from_target",
    "Pose3d",
    "Pose2d",
    "Transform3d",
    "Translation3d",
    "Rotation3d",
]

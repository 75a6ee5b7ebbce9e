"""三维位姿/变换类型与 SE(3) 工具函数"""

from .types import Translation3d, Rotation3d, Transform3d, Pose3d, Pose2d
from .se3 import se3, inv_se3, rpy_to_R, R_to_rpy_zyx, project_to_so3

__all__ = [
    "Translation3d",
    "Rotation3d",
    "Transform3d",
    "Pose3d",
    "Pose2d",
    "se3",
    "inv_se3",
    "rpy_to_R",
    "R_to_rpy_zyx",
    "project_to_so3",
]

"""
位姿融合的输入/输出数据结构。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Protocol

from .geometry import Pose3d, Transform3d


class PoseStrategy(Enum):
    """多相机多标签观测 -> 单一机器人位姿 的选择/融合策略"""
    LOWEST_AMBIGUITY = "lowest_ambiguity"                    # 全局歧义度最低的单个标签
    CLOSEST_TO_CAMERA_HEIGHT = "closest_to_camera_height"    # 解算出的相机高度最接近安装高度
    CLOSEST_TO_REFERENCE_POSE = "closest_to_reference_pose"  # 最接近参考位姿
    CLOSEST_TO_LAST_POSE = "closest_to_last_pose"            # 最接近上一次输出的位姿
    AVERAGE_BEST_TARGETS = "average_best_targets"            # 以 1/ambiguity 为权重加权平均


@dataclass(frozen=True, slots=True)
class TrackedTarget:
    """单个 AprilTag 观测

    - fiducial_id: 标签 ID
    - ambiguity: 歧义度 [0, 1]，0 表示无歧义
    - best_camera_to_target / alternate_camera_to_target:
        平面标签位姿的两个解 T_cam_tag : cam ← tag，best 为检测器优先的解
    """
    fiducial_id: int
    ambiguity: float
    best_camera_to_target: Transform3d
    alternate_camera_to_target: Transform3d

    def __post_init__(self) -> None:
        if self.ambiguity < 0.0:
            raise ValueError(f"ambiguity must be non-negative, got {self.ambiguity}")


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """单个相机某一帧的检测快照"""
    latency_ms: float = 0.0
    targets: List[TrackedTarget] = field(default_factory=list)

    @property
    def has_targets(self) -> bool:
        return bool(self.targets)


class TagCameraLike(Protocol):
    """相机句柄：只需提供最新检测结果"""

    def latest_result(self) -> DetectionResult: ...


@dataclass(frozen=True, slots=True)
class CameraRigEntry:
    """相机及其安装外参 T_robot_cam : robot ← cam"""
    camera: TagCameraLike
    robot_to_camera: Transform3d


class EstimatedPose(NamedTuple):
    """update() 的输出：pose 为 None 表示本周期没有可用观测"""
    pose: Optional[Pose3d]
    latency_ms: float

    @property
    def has_pose(self) -> bool:
        return self.pose is not None

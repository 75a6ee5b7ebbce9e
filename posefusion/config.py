"""
位姿估计器配置：策略、场地布局文件、相机安装外参与内参。
使用 core.config 的宽松 JSON 加载/原子保存。
"""
from dataclasses import dataclass, field
from typing import List, Optional

from core.config import ESTIMATOR_CONFIG_PATH, FIELD_LAYOUT_PATH, load_config, save_config
from core.logger import logger
from .detection import CameraIntrinsics, TagDetectionConfig
from .geometry import Transform3d


@dataclass
class CameraMountConfig:
    """单个相机的配置；x..yaw 为机器人中心 -> 相机的安装外参 (T_robot_cam)"""
    alias: str = "未命名"
    device_index: int = -1
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    intrinsics: Optional[CameraIntrinsics] = None
    tag_size: float = 0.1651  # 标签边长（米）

    def robot_to_camera(self) -> Transform3d:
        return Transform3d.from_xyzrpy(self.x, self.y, self.z, self.roll, self.pitch, self.yaw)


@dataclass
class EstimatorConfig:
    strategy: str = "LOWEST_AMBIGUITY"      # PoseStrategy 成员名
    field_layout_path: str = FIELD_LAYOUT_PATH
    retain_last_pose: bool = False          # True: 无观测时保留上一帧位姿
    detector: TagDetectionConfig = field(default_factory=TagDetectionConfig)
    cameras: List[CameraMountConfig] = field(default_factory=list)


def load_estimator_config(path: str = ESTIMATOR_CONFIG_PATH) -> EstimatorConfig:
    """加载估计器配置；文件缺失/损坏时使用默认配置"""
    config = load_config(path, EstimatorConfig)
    if config is None:
        logger.warning("未能加载位姿估计器配置，使用默认配置")
        config = EstimatorConfig()
    return config


def save_estimator_config(config: EstimatorConfig, path: str = ESTIMATOR_CONFIG_PATH) -> bool:
    return save_config(path, config)

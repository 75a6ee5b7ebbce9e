# posefusion/runtime.py
"""
根据 EstimatorConfig 组装相机阵列与 PoseFusionEngine。
引擎实例由调用方（控制循环）持有，这里不保存全局单例。
"""
from typing import List, Optional, Sequence

from core.logger import logger
from .camera import TagCamera
from .config import EstimatorConfig
from .detection import AprilTagDetector
from .diagnostics import DiagnosticSink
from .estimator import PoseFusionEngine
from .layout import FieldTagLayout
from .types import CameraRigEntry, PoseStrategy, TagCameraLike


def parse_strategy(name: str) -> PoseStrategy:
    """按成员名（不区分大小写）或取值解析策略"""
    key = str(name).strip()
    try:
        return PoseStrategy[key.upper()]
    except KeyError:
        pass
    try:
        return PoseStrategy(key.lower())
    except ValueError:
        valid = ", ".join(s.name for s in PoseStrategy)
        raise ValueError(f"未知的位姿策略: {name!r}（可选: {valid}）") from None


def open_cameras(config: EstimatorConfig) -> List[TagCamera]:
    """为每个相机配置打开一个 TagCamera，所有相机共用同一检测器配置"""
    cameras: List[TagCamera] = []
    for i, mount in enumerate(config.cameras):
        if mount.intrinsics is None:
            raise ValueError(f"相机 {i} ({mount.alias}) 缺少内参，无法估计标签位姿")
        detector = AprilTagDetector(config.detector)
        cameras.append(TagCamera.open(mount.alias, mount.device_index, detector,
                                      mount.intrinsics, mount.tag_size))
    return cameras


def build_rig(config: EstimatorConfig, cameras: Sequence[TagCameraLike]) -> List[CameraRigEntry]:
    """按索引把相机句柄与安装外参配对"""
    if len(cameras) != len(config.cameras):
        raise ValueError(f"相机数量 ({len(cameras)}) 与配置 ({len(config.cameras)}) 不一致")
    return [CameraRigEntry(camera, mount.robot_to_camera())
            for camera, mount in zip(cameras, config.cameras)]


def build_engine(
    config: EstimatorConfig,
    cameras: Optional[Sequence[TagCameraLike]] = None,
    layout: Optional[FieldTagLayout] = None,
    diagnostics: Optional[DiagnosticSink] = None,
) -> PoseFusionEngine:
    """
    组装引擎：
      - layout 为空时从 config.field_layout_path 加载
      - cameras 为空时按配置打开 OpenCV 相机
    """
    strategy = parse_strategy(config.strategy)
    if layout is None:
        layout = FieldTagLayout.load(config.field_layout_path)
    if cameras is None:
        cameras = open_cameras(config)

    rig = build_rig(config, cameras)
    engine = PoseFusionEngine(layout, strategy, rig,
                              diagnostics=diagnostics,
                              retain_last_pose=config.retain_last_pose)
    logger.info(f"[PoseEstimator] 已初始化: 策略 {strategy.name}，{len(rig)} 个相机，{len(layout)} 个标签")
    return engine

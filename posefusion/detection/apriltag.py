from dataclasses import dataclass
from typing import List, Optional, Sequence

import cv2
import numpy as np
from pyapriltags import Detector

from core.logger import logger
from ..geometry import Rotation3d, Transform3d, Translation3d
from ..types import TrackedTarget
from .types import CameraIntrinsics


@dataclass(slots=True)
class TagDetectionConfig:
    families: str = 'tag36h11'
    nthreads: int = 1
    quad_decimate: float = 2.0
    quad_sigma: float = 0.0
    refine_edges: int = 1
    decode_sharpening: float = 0.25
    debug: int = 0
    # 结果过滤
    max_hamming: int = 0
    min_decision_margin: float = 0.0


# OpenCV 坐标系 -> 机器人坐标系
#   相机: OpenCV (x 右, y 下, z 前)  ->  (x 前, y 左, z 上)
#   标签: OpenCV (x 右, y 上, z 出纸面) -> (x 出纸面, y 沿 OpenCV x, z 上)
# p_cv = A @ p_robot（相机），p_cv = B @ p_robot（标签）
_CAMERA_AXES = np.array([[0.0, -1.0, 0.0],
                         [0.0, 0.0, -1.0],
                         [1.0, 0.0, 0.0]])
_TAG_AXES = np.array([[0.0, 1.0, 0.0],
                      [0.0, 0.0, 1.0],
                      [1.0, 0.0, 0.0]])

# pyapriltags 角点顺序: 左下, 右下, 右上, 左上（图像中逆时针）
# SOLVEPNP_IPPE_SQUARE 要求: 左上, 右上, 右下, 左下
_IPPE_CORNER_ORDER = [3, 2, 1, 0]


def tag_object_points(tag_size: float) -> np.ndarray:
    """IPPE_SQUARE 约定的标签角点（OpenCV 标签坐标系，单位米）"""
    h = float(tag_size) / 2.0
    return np.array([[-h,  h, 0.0],
                     [ h,  h, 0.0],
                     [ h, -h, 0.0],
                     [-h, -h, 0.0]], dtype=np.float64)


def reprojection_error(object_points, image_points, rvec, tvec, camera_matrix, dist_coeffs) -> float:
    """平均角点重投影误差（像素）"""
    projected, _ = cv2.projectPoints(object_points, rvec, tvec, camera_matrix, dist_coeffs)
    residual = np.asarray(image_points, dtype=np.float64).reshape(-1, 2) - projected.reshape(-1, 2)
    return float(np.mean(np.linalg.norm(residual, axis=1)))


def opencv_to_camera_to_target(rvec, tvec) -> Transform3d:
    """OpenCV 的 (rvec, tvec)（cam ← tag）换算为机器人坐标约定下的 T_cam_tag"""
    R_cv, _ = cv2.Rodrigues(np.asarray(rvec, dtype=float).reshape(3, 1))
    t_cv = np.asarray(tvec, dtype=float).reshape(3)
    R = _CAMERA_AXES.T @ R_cv @ _TAG_AXES
    t = _CAMERA_AXES.T @ t_cv
    return Transform3d(Translation3d.from_array(t), Rotation3d(R))


def solve_tag_pose(
    tag_id: int,
    corners: Sequence[Sequence[float]],
    intrinsics: CameraIntrinsics,
    tag_size: float,
) -> Optional[TrackedTarget]:
    """
    单标签 PnP：IPPE 给出平面标签的两个位姿解，各自经 LM 细化后按重投影误差排序。
    误差小的为 best，另一个为 alternate；ambiguity = err_best / err_alt。
    求解失败返回 None。
    """
    # IPPE_SQUARE 需要 float32 输入
    object_points = tag_object_points(tag_size).astype(np.float32)
    image_points = np.asarray(corners, dtype=np.float32).reshape(4, 2)[_IPPE_CORNER_ORDER]
    camera_matrix = intrinsics.camera_matrix()
    dist_coeffs = intrinsics.dist_coeffs()

    try:
        n, rvecs, tvecs, _ = cv2.solvePnPGeneric(
            object_points, image_points, camera_matrix, dist_coeffs,
            flags=cv2.SOLVEPNP_IPPE_SQUARE,
        )
        solutions = []
        for rvec, tvec in zip(rvecs[:n], tvecs[:n]):
            rvec, tvec = cv2.solvePnPRefineLM(
                object_points, image_points, camera_matrix, dist_coeffs,
                np.array(rvec, dtype=np.float64).reshape(3, 1),
                np.array(tvec, dtype=np.float64).reshape(3, 1),
            )
            err = reprojection_error(object_points, image_points, rvec, tvec, camera_matrix, dist_coeffs)
            solutions.append((err, rvec, tvec))
    except cv2.error as e:
        logger.warning(f"[AprilTagDetector] 标签 {tag_id} PnP 求解失败: {e}")
        return None
    if not solutions:
        return None

    solutions.sort(key=lambda s: s[0])
    err_best, rvec, tvec = solutions[0]
    best = opencv_to_camera_to_target(rvec, tvec)

    if len(solutions) < 2:
        return TrackedTarget(int(tag_id), 0.0, best, best)

    err_alt, rvec, tvec = solutions[1]
    alternate = opencv_to_camera_to_target(rvec, tvec)
    ambiguity = err_best / err_alt if err_alt > 0.0 else 0.0
    return TrackedTarget(int(tag_id), ambiguity, best, alternate)


class AprilTagDetector:
    """AprilTag 检测 + 单标签双解位姿估计，输出 TrackedTarget 列表"""

    def __init__(self, config: Optional[TagDetectionConfig] = None):
        self.config = config if config is not None else TagDetectionConfig()
        self.detector = self._build_detector(self.config)

    @staticmethod
    def _build_detector(config: TagDetectionConfig) -> Detector:
        return Detector(
            families=config.families,
            nthreads=config.nthreads,
            quad_decimate=config.quad_decimate,
            quad_sigma=config.quad_sigma,
            refine_edges=config.refine_edges,
            decode_sharpening=config.decode_sharpening,
            debug=config.debug,
        )

    def detect(self, image: np.ndarray, intrinsics: CameraIntrinsics, tag_size: float) -> List[TrackedTarget]:
        """检测失败时记录错误并返回空列表"""
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        image = np.ascontiguousarray(image, dtype=np.uint8)

        try:
            detections = self.detector.detect(image)
        except Exception as e:
            logger.error(f"[AprilTagDetector] 检测失败: {e}")
            return []

        targets: List[TrackedTarget] = []
        for det in detections:
            if det.hamming > self.config.max_hamming:
                continue
            if det.decision_margin < self.config.min_decision_margin:
                continue
            target = solve_tag_pose(det.tag_id, det.corners, intrinsics, tag_size)
            if target is not None:
                targets.append(target)
        return targets

    def get_config(self) -> TagDetectionConfig:
        """获取检测器的配置"""
        return self.config

    def update_config(self, config: TagDetectionConfig) -> None:
        """更新检测器配置（重建底层 Detector）"""
        self.config = config
        self.detector = self._build_detector(config)
        logger.info(f"[AprilTagDetector] 配置已更新: {self.config}")

import math
import numbers
from dataclasses import dataclass

import numpy as np

_POSITIVE_FIELDS = ("width", "height", "fx", "fy")
_FINITE_FIELDS = ("cx", "cy", "k1", "k2", "p1", "p2", "k3")


@dataclass(slots=True)
class CameraIntrinsics:
    """摄像头内参类

    代表摄像头的内部参数，包括:
    - 焦距 (fx, fy)
    - 光学中心点 (cx, cy)
    - 畸变系数 (k1, k2, p1, p2, k3)
    - 图像尺寸
    """
    width: int
    height: int

    fx: float  # 焦距x
    fy: float  # 焦距y
    cx: float  # 光学中心x
    cy: float  # 光学中心y
    # 畸变系数
    k1: float = 0.0
    k2: float = 0.0
    p1: float = 0.0
    p2: float = 0.0
    k3: float = 0.0

    def __post_init__(self) -> None:
        # 缺项或非正焦距会让位姿解算得到 NaN
        for name in _POSITIVE_FIELDS + _FINITE_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
                raise ValueError(f"相机内参 {name} 无效: {value!r}")
        for name in _POSITIVE_FIELDS:
            if getattr(self, name) <= 0:
                raise ValueError(f"相机内参 {name} 必须为正数: {getattr(self, name)!r}")

    def camera_matrix(self) -> np.ndarray:
        return np.array([[self.fx, 0.0, self.cx],
                         [0.0, self.fy, self.cy],
                         [0.0, 0.0, 1.0]], dtype=float)

    def dist_coeffs(self) -> np.ndarray:
        # OpenCV 顺序: k1, k2, p1, p2, k3
        return np.array([self.k1, self.k2, self.p1, self.p2, self.k3], dtype=float)

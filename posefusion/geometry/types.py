# posefusion/geometry/types.py
"""
三维刚体变换的值类型。

坐标约定（机器人/场地坐标系）：x 向前，y 向左，z 向上；角度单位为弧度。
- Pose3d      : 场地（field）坐标系中的位姿，T_field_obj : field ← obj
- Transform3d : 两个坐标系之间的相对变换，T_a_b : a ← b
两者底层都是 4x4 齐次矩阵，组合即矩阵乘法。
"""
import math
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from .se3 import (
    rpy_to_R, R_to_rpy_zyx, rvec_to_R, R_to_rvec,
    quat_to_R, R_to_quat, se3, inv_se3,
)


@dataclass(frozen=True, slots=True)
class Translation3d:
    """三维平移 (x, y, z)，单位米"""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_array(cls, v) -> "Translation3d":
        v = np.asarray(v, dtype=float).reshape(3)
        return cls(float(v[0]), float(v[1]), float(v[2]))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def distance(self, other: "Translation3d") -> float:
        """两点间欧氏距离"""
        return self.minus(other).norm()

    def plus(self, other: "Translation3d") -> "Translation3d":
        return Translation3d(self.x + other.x, self.y + other.y, self.z + other.z)

    def minus(self, other: "Translation3d") -> "Translation3d":
        return Translation3d(self.x - other.x, self.y - other.y, self.z - other.z)

    def times(self, scalar: float) -> "Translation3d":
        return Translation3d(self.x * scalar, self.y * scalar, self.z * scalar)

    def rotate_by(self, rotation: "Rotation3d") -> "Translation3d":
        return Translation3d.from_array(rotation.matrix @ self.as_array())


@dataclass(frozen=True, slots=True, eq=False)
class Rotation3d:
    """三维旋转，内部保存 3x3 旋转矩阵"""
    matrix: np.ndarray = field(default_factory=lambda: np.eye(3, dtype=float))

    def __post_init__(self) -> None:
        R = np.array(self.matrix, dtype=float).reshape(3, 3)
        R.setflags(write=False)
        object.__setattr__(self, "matrix", R)

    # ---------- 构造 ----------
    @classmethod
    def from_rpy(cls, roll: float = 0.0, pitch: float = 0.0, yaw: float = 0.0) -> "Rotation3d":
        return cls(rpy_to_R(roll, pitch, yaw))

    @classmethod
    def from_quaternion(cls, w: float, x: float, y: float, z: float) -> "Rotation3d":
        return cls(quat_to_R(w, x, y, z))

    @classmethod
    def from_rotation_vector(cls, rvec) -> "Rotation3d":
        """轴角向量：方向为旋转轴，模长为旋转角"""
        return cls(rvec_to_R(rvec))

    # ---------- 读取 ----------
    @property
    def roll(self) -> float:
        return R_to_rpy_zyx(self.matrix)[0]

    @property
    def pitch(self) -> float:
        return R_to_rpy_zyx(self.matrix)[1]

    @property
    def yaw(self) -> float:
        return R_to_rpy_zyx(self.matrix)[2]

    @property
    def quaternion(self) -> Tuple[float, float, float, float]:
        return R_to_quat(self.matrix)

    @property
    def rotation_vector(self) -> np.ndarray:
        return R_to_rvec(self.matrix)

    @property
    def angle(self) -> float:
        return float(np.linalg.norm(self.rotation_vector))

    # ---------- 运算 ----------
    def times(self, scalar: float) -> "Rotation3d":
        """旋转角乘以 scalar（旋转轴不变）"""
        return Rotation3d.from_rotation_vector(self.rotation_vector * float(scalar))

    def plus(self, other: "Rotation3d") -> "Rotation3d":
        """先做 self，再绕固定轴做 other：R = R_other @ R_self"""
        return Rotation3d(other.matrix @ self.matrix)

    def inverse(self) -> "Rotation3d":
        return Rotation3d(self.matrix.T)

    def isclose(self, other: "Rotation3d", atol: float = 1e-9) -> bool:
        return bool(np.allclose(self.matrix, other.matrix, atol=atol))

    def __repr__(self) -> str:
        return f"Rotation3d(roll={self.roll:.4f}, pitch={self.pitch:.4f}, yaw={self.yaw:.4f})"


class _RigidTransform:
    """Transform3d / Pose3d 的共同部分：平移 + 旋转 <-> 4x4 齐次矩阵"""
    __slots__ = ()

    translation: Translation3d
    rotation: Rotation3d

    @classmethod
    def from_matrix(cls, T):
        T = np.asarray(T, dtype=float)
        return cls(Translation3d.from_array(T[:3, 3]), Rotation3d(T[:3, :3]))

    @classmethod
    def from_xyzrpy(cls, x: float = 0.0, y: float = 0.0, z: float = 0.0,
                    roll: float = 0.0, pitch: float = 0.0, yaw: float = 0.0):
        return cls(Translation3d(x, y, z), Rotation3d.from_rpy(roll, pitch, yaw))

    @property
    def x(self) -> float:
        return self.translation.x

    @property
    def y(self) -> float:
        return self.translation.y

    @property
    def z(self) -> float:
        return self.translation.z

    def matrix(self) -> np.ndarray:
        return se3(self.rotation.matrix, self.translation.as_array())

    def isclose(self, other, atol: float = 1e-9) -> bool:
        return bool(np.allclose(self.matrix(), other.matrix(), atol=atol))

    def __repr__(self) -> str:
        r = self.rotation
        return (f"{type(self).__name__}(x={self.x:.4f}, y={self.y:.4f}, z={self.z:.4f}, "
                f"roll={r.roll:.4f}, pitch={r.pitch:.4f}, yaw={r.yaw:.4f})")


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class Transform3d(_RigidTransform):
    """坐标系间相对变换 T_a_b : a ← b"""
    translation: Translation3d = field(default_factory=Translation3d)
    rotation: Rotation3d = field(default_factory=Rotation3d)

    def inverse(self) -> "Transform3d":
        return Transform3d.from_matrix(inv_se3(self.matrix()))


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class Pose3d(_RigidTransform):
    """场地坐标系中的三维位姿 T_field_obj : field ← obj"""
    translation: Translation3d = field(default_factory=Translation3d)
    rotation: Rotation3d = field(default_factory=Rotation3d)

    @classmethod
    def from_pose2d(cls, pose: "Pose2d") -> "Pose3d":
        """平面位姿抬升到三维：z = roll = pitch = 0"""
        return cls(Translation3d(pose.x, pose.y, 0.0), Rotation3d.from_rpy(0.0, 0.0, pose.yaw))

    def transform_by(self, transform: Transform3d) -> "Pose3d":
        """T_field_b = T_field_a @ T_a_b"""
        return Pose3d.from_matrix(self.matrix() @ transform.matrix())

    def to_pose2d(self) -> "Pose2d":
        return Pose2d(self.x, self.y, self.rotation.yaw)


@dataclass(slots=True)
class Pose2d:
    """平面位姿 (x, y, yaw)，单位米/弧度"""
    x: float
    y: float
    yaw: float

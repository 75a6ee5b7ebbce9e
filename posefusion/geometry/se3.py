# posefusion/geometry/se3.py
import math
from typing import Tuple

import cv2
import numpy as np

ArrayLike = np.ndarray


# ---------- 旋转 ----------
def rpy_to_R(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """ZYX欧拉：R = Rz(yaw) @ Ry(pitch) @ Rx(roll)"""
    cr, sr = math.cos(roll),  math.sin(roll)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw),   math.sin(yaw)
    Rx = np.array([[1, 0, 0],
                   [0, cr, -sr],
                   [0, sr,  cr]], dtype=float)
    Ry = np.array([[cp, 0, sp],
                   [0,  1, 0 ],
                   [-sp,0, cp]], dtype=float)
    Rz = np.array([[cy, -sy, 0],
                   [sy,  cy, 0],
                   [0,    0, 1]], dtype=float)
    return Rz @ Ry @ Rx


def R_to_rpy_zyx(R: ArrayLike) -> Tuple[float, float, float]:
    """返回 (roll, pitch, yaw)；ZYX"""
    R = np.asarray(R, float)
    sy = -R[2, 0]
    sy = max(min(sy, 1.0), -1.0)
    pitch = math.asin(sy)
    if abs(abs(pitch) - math.pi/2) < 1e-6:
        # 万向锁：roll 与 yaw 耦合，约定 roll = 0
        roll = 0.0
        yaw  = math.atan2(-R[0, 1], R[1, 1])
    else:
        roll = math.atan2(R[2, 1], R[2, 2])
        yaw  = math.atan2(R[1, 0], R[0, 0])
    return roll, pitch, yaw


def project_to_so3(R: ArrayLike) -> np.ndarray:
    """SVD 正交化到最近的旋转矩阵（det = +1）"""
    U, _, Vt = np.linalg.svd(np.asarray(R, float))
    D = np.diag([1.0, 1.0, np.sign(np.linalg.det(U @ Vt))])
    return U @ D @ Vt


def rvec_to_R(rvec) -> np.ndarray:
    """Rodrigues 旋转向量 (3,) -> 3x3 旋转矩阵"""
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=float).reshape(3, 1))
    return R


def R_to_rvec(R: ArrayLike) -> np.ndarray:
    """3x3 旋转矩阵 -> Rodrigues 旋转向量 (3,)"""
    rvec, _ = cv2.Rodrigues(np.asarray(R, dtype=float))
    return rvec.reshape(3)


def quat_to_R(w: float, x: float, y: float, z: float) -> np.ndarray:
    """单位四元数 (w, x, y, z) -> 3x3 旋转矩阵；输入会先归一化"""
    q = np.array([w, x, y, z], dtype=float)
    n = float(np.linalg.norm(q))
    if n < 1e-12:
        raise ValueError("quaternion norm is zero")
    w, x, y, z = q / n
    return np.array([
        [1 - 2*(y*y + z*z), 2*(x*y - z*w),     2*(x*z + y*w)],
        [2*(x*y + z*w),     1 - 2*(x*x + z*z), 2*(y*z - x*w)],
        [2*(x*z - y*w),     2*(y*z + x*w),     1 - 2*(x*x + y*y)],
    ], dtype=float)


def R_to_quat(R: ArrayLike) -> Tuple[float, float, float, float]:
    """3x3 旋转矩阵 -> 单位四元数 (w, x, y, z)，w >= 0"""
    R = np.asarray(R, float)
    tr = float(np.trace(R))
    if tr > 0.0:
        s = 2.0 * math.sqrt(tr + 1.0)
        w = 0.25 * s
        x = (R[2, 1] - R[1, 2]) / s
        y = (R[0, 2] - R[2, 0]) / s
        z = (R[1, 0] - R[0, 1]) / s
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * math.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        w = (R[2, 1] - R[1, 2]) / s
        x = 0.25 * s
        y = (R[0, 1] + R[1, 0]) / s
        z = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * math.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        w = (R[0, 2] - R[2, 0]) / s
        x = (R[0, 1] + R[1, 0]) / s
        y = 0.25 * s
        z = (R[1, 2] + R[2, 1]) / s
    else:
        s = 2.0 * math.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        w = (R[1, 0] - R[0, 1]) / s
        x = (R[0, 2] + R[2, 0]) / s
        y = (R[1, 2] + R[2, 1]) / s
        z = 0.25 * s
    if w < 0.0:
        w, x, y, z = -w, -x, -y, -z
    return float(w), float(x), float(y), float(z)


# ---------- 齐次变换 ----------
def se3(R: ArrayLike, t) -> np.ndarray:
    """组装 4x4 齐次矩阵。"""
    T = np.eye(4, dtype=float)
    T[:3, :3] = R
    T[:3, 3]  = np.asarray(t, float).reshape(3)
    return T


def inv_se3(T: ArrayLike) -> np.ndarray:
    """4x4 齐次矩阵求逆。"""
    R = T[:3, :3]
    t = T[:3, 3]
    Ti = np.eye(4, dtype=float)
    Rt = R.T
    Ti[:3, :3] = Rt
    Ti[:3, 3]  = -Rt @ t
    return Ti


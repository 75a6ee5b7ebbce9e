import time
from typing import Any, Optional, Protocol, Tuple

import cv2
import numpy as np

from core.logger import logger
from .detection import AprilTagDetector, CameraIntrinsics
from .types import DetectionResult


class FrameSource(Protocol):
    """OpenCV VideoCapture 风格的取帧接口"""

    def read(self) -> Tuple[bool, Optional[np.ndarray]]: ...


class TagCamera:
    """
    相机句柄：取一帧 -> AprilTag 检测 -> DetectionResult。
    latency_ms 为取帧与检测的总耗时；取帧失败时返回空结果，不抛异常。
    """

    def __init__(
        self,
        name: str,
        source: FrameSource,
        detector: AprilTagDetector,
        intrinsics: CameraIntrinsics,
        tag_size: float,
    ) -> None:
        self.name = name
        self.source = source
        self.detector = detector
        self.intrinsics = intrinsics
        self.tag_size = float(tag_size)
        self._latest: DetectionResult = DetectionResult()

    @classmethod
    def open(cls, name: str, device_index: int, detector: AprilTagDetector,
             intrinsics: CameraIntrinsics, tag_size: float) -> "TagCamera":
        """按设备索引打开 OpenCV 相机"""
        cap: Any = cv2.VideoCapture(device_index)
        if not cap.isOpened():
            logger.error(f"TagCamera[{name}] 无法打开摄像头 index={device_index}")
        else:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, intrinsics.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, intrinsics.height)
            logger.info(f"TagCamera[{name}] 已打开摄像头 index={device_index}")
        return cls(name, cap, detector, intrinsics, tag_size)

    def latest_result(self) -> DetectionResult:
        t0 = time.perf_counter()
        try:
            ok, frame = self.source.read()
        except Exception as e:
            logger.warning(f"TagCamera[{self.name}] 取帧异常: {e}")
            self._latest = DetectionResult()
            return self._latest
        if not ok or frame is None:
            logger.warning(f"TagCamera[{self.name}] 取帧失败")
            self._latest = DetectionResult()
            return self._latest

        targets = self.detector.detect(frame, self.intrinsics, self.tag_size)
        latency_ms = (time.perf_counter() - t0) * 1000.0
        self._latest = DetectionResult(latency_ms=latency_ms, targets=targets)
        return self._latest

    @property
    def last_result(self) -> DetectionResult:
        """上一次 latest_result() 的结果快照（不触发取帧）"""
        return self._latest

    def close(self) -> None:
        release = getattr(self.source, "release", None)
        if callable(release):
            release()

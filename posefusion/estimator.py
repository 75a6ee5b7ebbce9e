# posefusion/estimator.py
import math
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from .diagnostics import DiagnosticSink, LoggerDiagnostics
from .geometry import Pose2d, Pose3d, Rotation3d, Transform3d, Translation3d, project_to_so3
from .layout import FieldTagLayout
from .types import CameraRigEntry, DetectionResult, EstimatedPose, PoseStrategy, TrackedTarget

_PREFIX = "[PoseEstimator]"

# (相机安装, 该相机的检测结果, 标签观测, 标签场地位姿)
_KnownTarget = Tuple[CameraRigEntry, DetectionResult, TrackedTarget, Pose3d]


def robot_pose_from_target(tag_pose: Pose3d,
                           camera_to_target: Transform3d,
                           robot_to_camera: Transform3d) -> Pose3d:
    """
    由单个标签观测反推机器人位姿：
      T_field_robot = T_field_tag · (T_cam_tag)^{-1} · (T_robot_cam)^{-1}
    """
    return tag_pose.transform_by(camera_to_target.inverse()).transform_by(robot_to_camera.inverse())


class PoseFusionEngine:
    """
    多相机 AprilTag 位姿融合器。

    每次 update() 依次读取所有相机的最新检测结果（即使策略只用到其中一个相机），
    再按当前策略从全部 (相机, 标签) 观测中选择/融合出一个机器人场地位姿。

    状态：
      - last_pose:      上一次 update() 的输出（初始为原点位姿）
      - reference_pose: CLOSEST_TO_REFERENCE_POSE 使用的参考位姿（初始未设置）
      - 已上报过的未知标签 ID 集合：每个未知 ID 在引擎生命周期内只上报一次

    错误处理：update() 不抛异常；配置错误写入 DiagnosticSink，并返回降级结果。
    调用方需检查返回的 pose 是否为 None。

    线程：引擎不加锁，update() 与各 setter 需由调用方串行调用。
    """

    def __init__(
        self,
        field_layout: FieldTagLayout,
        strategy: PoseStrategy,
        rig: Sequence[CameraRigEntry],
        diagnostics: Optional[DiagnosticSink] = None,
        retain_last_pose: bool = False,
    ) -> None:
        self._field_layout = field_layout
        self._strategy = strategy
        self._rig: List[CameraRigEntry] = list(rig)
        self._diagnostics: DiagnosticSink = diagnostics if diagnostics is not None else LoggerDiagnostics()
        # False: 无观测时 last_pose 也被覆盖为 None
        self.retain_last_pose = bool(retain_last_pose)

        self._last_pose: Optional[Pose3d] = Pose3d()
        self._reference_pose: Optional[Pose3d] = None
        self._reported_tag_ids: Set[int] = set()

        self._strategies: Dict[PoseStrategy, Callable[[List[DetectionResult]], EstimatedPose]] = {
            PoseStrategy.LOWEST_AMBIGUITY: self._lowest_ambiguity,
            PoseStrategy.CLOSEST_TO_CAMERA_HEIGHT: self._closest_to_camera_height,
            PoseStrategy.CLOSEST_TO_REFERENCE_POSE: self._closest_to_reference_pose,
            PoseStrategy.CLOSEST_TO_LAST_POSE: self._closest_to_last_pose,
            PoseStrategy.AVERAGE_BEST_TARGETS: self._average_best_targets,
        }

    # ---------- public API ----------

    def update(self) -> EstimatedPose:
        """读取所有相机并按当前策略估计机器人位姿，返回 (pose | None, latency_ms)"""
        if not self._rig:
            self._diagnostics.report_error(f"{_PREFIX} Missing any camera!", False)
            return EstimatedPose(self._last_pose, 0.0)

        strategy_fn = self._strategies.get(self._strategy) if isinstance(self._strategy, PoseStrategy) else None
        if strategy_fn is None:
            self._diagnostics.report_error(f"{_PREFIX} Invalid pose strategy: {self._strategy!r}", False)
            return EstimatedPose(None, 0.0)

        results = self._sample_results()
        estimate = strategy_fn(results)

        if estimate.has_pose or not self.retain_last_pose:
            self._last_pose = estimate.pose
        return estimate

    @property
    def field_layout(self) -> FieldTagLayout:
        return self._field_layout

    @field_layout.setter
    def field_layout(self, layout: FieldTagLayout) -> None:
        self._field_layout = layout

    @property
    def strategy(self) -> PoseStrategy:
        return self._strategy

    @strategy.setter
    def strategy(self, strategy: PoseStrategy) -> None:
        # 不校验，非法值在 update() 时上报
        self._strategy = strategy

    @property
    def reference_pose(self) -> Optional[Pose3d]:
        return self._reference_pose

    @reference_pose.setter
    def reference_pose(self, pose: Union[Pose3d, Pose2d, None]) -> None:
        if isinstance(pose, Pose2d):
            pose = Pose3d.from_pose2d(pose)
        self._reference_pose = pose

    @property
    def last_pose(self) -> Optional[Pose3d]:
        return self._last_pose

    @last_pose.setter
    def last_pose(self, pose: Optional[Pose3d]) -> None:
        """可在首次 update() 前为 CLOSEST_TO_LAST_POSE 提供初值"""
        self._last_pose = pose

    @property
    def rig(self) -> Tuple[CameraRigEntry, ...]:
        return tuple(self._rig)

    @property
    def reported_tag_ids(self) -> frozenset:
        return frozenset(self._reported_tag_ids)

    # ---------- helpers ----------

    def _sample_results(self) -> List[DetectionResult]:
        """每个相机取一次最新结果，顺序与 rig 对齐"""
        return [entry.camera.latest_result() for entry in self._rig]

    def _lookup_tag(self, tag_id: int, as_error: bool = False) -> Optional[Pose3d]:
        tag_pose = self._field_layout.pose_of(tag_id)
        if tag_pose is None and tag_id not in self._reported_tag_ids:
            message = f"{_PREFIX} Tried to get pose of unknown April Tag: {tag_id}"
            if as_error:
                self._diagnostics.report_error(message, False)
            else:
                self._diagnostics.report_warning(message, False)
            self._reported_tag_ids.add(tag_id)
        return tag_pose

    def _known_targets(self, results: List[DetectionResult]) -> Iterator[_KnownTarget]:
        """遍历所有相机的所有观测，跳过布局中不存在的标签"""
        for entry, result in zip(self._rig, results):
            for target in result.targets:
                tag_pose = self._lookup_tag(target.fiducial_id)
                if tag_pose is None:
                    continue
                yield entry, result, target, tag_pose

    def _closest_solution(
        self,
        results: List[DetectionResult],
        distance: Callable[[CameraRigEntry, Pose3d, Pose3d], float],
        alternate_first: bool,
    ) -> EstimatedPose:
        """
        对每个已知标签的 best/alternate 两个解分别反推机器人位姿，
        取 distance(entry, camera_pose, robot_pose) 最小者；严格 <，先出现者优先。
        """
        smallest = math.inf
        pose: Optional[Pose3d] = None
        latency = 0.0

        for entry, result, target, tag_pose in self._known_targets(results):
            solutions = (target.best_camera_to_target, target.alternate_camera_to_target)
            if alternate_first:
                solutions = solutions[::-1]
            for camera_to_target in solutions:
                camera_pose = tag_pose.transform_by(camera_to_target.inverse())
                robot_pose = camera_pose.transform_by(entry.robot_to_camera.inverse())
                d = distance(entry, camera_pose, robot_pose)
                if d < smallest:
                    smallest = d
                    pose = robot_pose
                    latency = result.latency_ms

        return EstimatedPose(pose, latency)

    # ---------- strategies ----------

    def _lowest_ambiguity(self, results: List[DetectionResult]) -> EstimatedPose:
        best: Optional[Tuple[int, TrackedTarget]] = None
        lowest = math.inf
        for cam_idx, result in enumerate(results):
            for target in result.targets:
                if target.ambiguity < lowest:
                    lowest = target.ambiguity
                    best = (cam_idx, target)

        if best is None:
            return EstimatedPose(None, 0.0)

        cam_idx, target = best
        tag_pose = self._lookup_tag(target.fiducial_id, as_error=True)
        if tag_pose is None:
            return EstimatedPose(self._last_pose, 0.0)

        pose = robot_pose_from_target(tag_pose, target.best_camera_to_target,
                                      self._rig[cam_idx].robot_to_camera)
        return EstimatedPose(pose, results[cam_idx].latency_ms)

    def _closest_to_camera_height(self, results: List[DetectionResult]) -> EstimatedPose:
        return self._closest_solution(
            results,
            lambda entry, camera_pose, _robot_pose: abs(entry.robot_to_camera.z - camera_pose.z),
            alternate_first=True,
        )

    def _closest_to_reference_pose(self, results: List[DetectionResult]) -> EstimatedPose:
        reference = self._reference_pose
        if reference is None:
            self._diagnostics.report_error(
                f"{_PREFIX} Tried to use reference pose strategy without setting the reference!", False)
            return EstimatedPose(None, 0.0)
        return self._closest_solution(
            results,
            lambda _entry, _camera_pose, robot_pose: reference.translation.distance(robot_pose.translation),
            alternate_first=False,
        )

    def _closest_to_last_pose(self, results: List[DetectionResult]) -> EstimatedPose:
        self._reference_pose = self._last_pose
        return self._closest_to_reference_pose(results)

    def _average_best_targets(self, results: List[DetectionResult]) -> EstimatedPose:
        """以 1/ambiguity 为权重对 best 解做加权平均；ambiguity == 0 的观测直接胜出"""
        candidates: List[Tuple[Pose3d, float, float]] = []  # (pose, 1/ambiguity, latency)
        total_weight = 0.0

        for entry, result, target, tag_pose in self._known_targets(results):
            pose = robot_pose_from_target(tag_pose, target.best_camera_to_target, entry.robot_to_camera)
            if target.ambiguity == 0.0:
                return EstimatedPose(pose, result.latency_ms)
            inv_ambiguity = 1.0 / target.ambiguity
            total_weight += inv_ambiguity
            candidates.append((pose, inv_ambiguity, result.latency_ms))

        if not candidates:
            return EstimatedPose(None, -1.0)

        translation = Translation3d()
        rotation = Rotation3d()
        latency = 0.0
        for pose, inv_ambiguity, latency_ms in candidates:
            weight = inv_ambiguity / total_weight
            translation = translation.plus(pose.translation.times(weight))
            rotation = rotation.plus(pose.rotation.times(weight))
            latency += latency_ms * weight

        # 保证输出为正交旋转矩阵
        rotation = Rotation3d(project_to_so3(rotation.matrix))
        return EstimatedPose(Pose3d(translation, rotation), latency)

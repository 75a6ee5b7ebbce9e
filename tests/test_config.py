"""
Unit tests for estimator configuration loading/saving and engine assembly.
"""

import json
import math

import pytest

from conftest import FakeCamera, RecordingSink, assert_pose_close
from core.config import load_config, save_config
from posefusion import PoseFusionEngine, PoseStrategy, Transform3d
from posefusion.config import (
    CameraMountConfig,
    EstimatorConfig,
    load_estimator_config,
    save_estimator_config,
)
from posefusion.detection import CameraIntrinsics, TagDetectionConfig
from posefusion.runtime import build_engine, build_rig, open_cameras, parse_strategy


def _config_with_cameras(n: int = 2) -> EstimatorConfig:
    cameras = [
        CameraMountConfig(alias=f"cam{i}", device_index=i, x=0.1 * i, z=0.5, pitch=-0.2, yaw=0.3 * i,
                          intrinsics=CameraIntrinsics(640, 480, 600.0, 600.0, 320.0, 240.0))
        for i in range(n)
    ]
    return EstimatorConfig(strategy="AVERAGE_BEST_TARGETS", retain_last_pose=True, cameras=cameras)


# ---------------------------------------------------------------------------
# §1 – JSON config files
# ---------------------------------------------------------------------------
class TestConfigFiles:

    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "estimator.json")
        config = _config_with_cameras()
        config.detector = TagDetectionConfig(quad_decimate=1.0, max_hamming=1)

        assert save_estimator_config(config, path)
        loaded = load_estimator_config(path)

        assert loaded == config
        assert isinstance(loaded.cameras[0].intrinsics, CameraIntrinsics)
        assert isinstance(loaded.detector, TagDetectionConfig)

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_estimator_config(str(tmp_path / "absent.json"))
        assert config == EstimatorConfig()

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / "estimator.json"
        path.write_text("[1, 2", encoding="utf-8")
        assert load_estimator_config(str(path)) == EstimatorConfig()

    def test_non_object_root_rejected(self, tmp_path):
        path = tmp_path / "estimator.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert load_config(str(path), EstimatorConfig) is None

    def test_forgiving_field_conversion(self, tmp_path):
        path = tmp_path / "estimator.json"
        path.write_text(json.dumps({
            "strategy": "CLOSEST_TO_LAST_POSE",
            "retain_last_pose": "yes",
            "unknown_key": 1,
            "cameras": [{"alias": "front", "x": 1, "z": 0.4}],
        }), encoding="utf-8")

        config = load_estimator_config(str(path))

        assert config.strategy == "CLOSEST_TO_LAST_POSE"
        assert config.retain_last_pose is False
        assert config.cameras[0].alias == "front"
        assert config.cameras[0].x == 1.0 and isinstance(config.cameras[0].x, float)
        assert config.cameras[0].intrinsics is None
        assert config.detector == TagDetectionConfig()

    def test_save_writes_enum_names(self, tmp_path):
        path = tmp_path / "out.json"
        assert save_config(str(path), {"strategy": PoseStrategy.CLOSEST_TO_REFERENCE_POSE})
        assert json.loads(path.read_text(encoding="utf-8")) == {"strategy": "CLOSEST_TO_REFERENCE_POSE"}

    def test_mount_transform(self):
        mount = CameraMountConfig(x=0.2, y=-0.1, z=0.6, yaw=math.pi / 2)
        t = mount.robot_to_camera()
        assert (t.x, t.y, t.z) == (0.2, -0.1, 0.6)
        assert t.rotation.yaw == pytest.approx(math.pi / 2)


# ---------------------------------------------------------------------------
# §2 – Engine assembly
# ---------------------------------------------------------------------------
class TestRuntime:

    @pytest.mark.parametrize("name, expected", [
        ("LOWEST_AMBIGUITY", PoseStrategy.LOWEST_AMBIGUITY),
        ("closest_to_camera_height", PoseStrategy.CLOSEST_TO_CAMERA_HEIGHT),
        ("  Average_Best_Targets ", PoseStrategy.AVERAGE_BEST_TARGETS),
    ])
    def test_parse_strategy(self, name, expected):
        assert parse_strategy(name) is expected

    def test_parse_unknown_strategy(self):
        with pytest.raises(ValueError, match="MULTI_TAG"):
            parse_strategy("MULTI_TAG")

    def test_build_engine_with_injected_cameras(self, layout):
        config = _config_with_cameras(2)
        cameras = [FakeCamera(), FakeCamera()]
        sink = RecordingSink()

        engine = build_engine(config, cameras=cameras, layout=layout, diagnostics=sink)

        assert isinstance(engine, PoseFusionEngine)
        assert engine.strategy is PoseStrategy.AVERAGE_BEST_TARGETS
        assert engine.field_layout is layout
        assert engine.retain_last_pose is True
        assert [entry.camera for entry in engine.rig] == cameras
        assert_pose_close(engine.rig[1].robot_to_camera, config.cameras[1].robot_to_camera())

        assert engine.update() == (None, -1.0)
        assert [c.calls for c in cameras] == [1, 1]

    def test_build_engine_loads_layout_from_path(self, tmp_path, layout):
        path = str(tmp_path / "layout.json")
        layout.save(path)
        config = _config_with_cameras(1)
        config.field_layout_path = path

        engine = build_engine(config, cameras=[FakeCamera()])

        assert engine.field_layout.tag_ids == layout.tag_ids

    def test_build_engine_rejects_unknown_strategy(self, layout):
        config = _config_with_cameras(1)
        config.strategy = "BEST_GUESS"
        with pytest.raises(ValueError):
            build_engine(config, cameras=[FakeCamera()], layout=layout)

    def test_camera_count_mismatch(self):
        with pytest.raises(ValueError):
            build_rig(_config_with_cameras(2), [FakeCamera()])

    def test_empty_rig_is_allowed(self, layout):
        engine = build_engine(EstimatorConfig(), cameras=[], layout=layout, diagnostics=RecordingSink())
        assert engine.rig == ()

    def test_open_cameras_requires_intrinsics(self):
        config = EstimatorConfig(cameras=[CameraMountConfig(alias="bare")])
        with pytest.raises(ValueError, match="bare"):
            open_cameras(config)

    def test_partial_intrinsics_rejected_before_opening(self, tmp_path):
        path = tmp_path / "estimator.json"
        path.write_text(json.dumps({
            "cameras": [{"alias": "front", "intrinsics": {"width": 640, "height": 480, "fx": 600.0}}],
        }), encoding="utf-8")

        config = load_estimator_config(str(path))

        assert config.cameras[0].alias == "front"
        assert config.cameras[0].intrinsics is None
        with pytest.raises(ValueError, match="front"):
            open_cameras(config)


# ---------------------------------------------------------------------------
# §3 – Camera intrinsics validation
# ---------------------------------------------------------------------------
class TestCameraIntrinsics:

    @pytest.mark.parametrize("override", [
        {"fx": 0.0},
        {"fy": None},
        {"cx": float("nan")},
        {"width": -1},
        {"k1": float("inf")},
        {"height": True},
    ])
    def test_invalid_values_rejected(self, override):
        values = dict(width=640, height=480, fx=600.0, fy=600.0, cx=320.0, cy=240.0)
        values.update(override)
        with pytest.raises(ValueError):
            CameraIntrinsics(**values)

    def test_valid_intrinsics_build_camera_matrix(self):
        intrinsics = CameraIntrinsics(640, 480, 600.0, 610.0, 320.0, 240.0, k1=-0.1)
        assert intrinsics.camera_matrix().tolist() == [[600.0, 0.0, 320.0], [0.0, 610.0, 240.0], [0.0, 0.0, 1.0]]
        assert intrinsics.dist_coeffs().tolist() == [-0.1, 0.0, 0.0, 0.0, 0.0]

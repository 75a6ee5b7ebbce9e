"""
场地 AprilTag 布局：标签 ID -> 场地坐标系位姿 (T_field_tag)。

JSON 格式与 FRC 官方场地布局文件一致：
{
  "tags": [{"ID": 1, "pose": {"translation": {"x": .., "y": .., "z": ..},
            "rotation": {"quaternion": {"W": .., "X": .., "Y": .., "Z": ..}}}}],
  "field": {"length": 16.54, "width": 8.21}
}
"""
import json
import os
from typing import Dict, Iterator, Mapping, Optional

from core.logger import logger
from .geometry import Pose3d, Rotation3d, Translation3d


class FieldLayoutError(ValueError):
    """布局文件缺失或格式错误"""


class FieldTagLayout:
    """已知标签位姿表；查询未知 ID 返回 None"""

    def __init__(self, tags: Optional[Mapping[int, Pose3d]] = None,
                 field_length: float = 0.0, field_width: float = 0.0) -> None:
        self._tags: Dict[int, Pose3d] = {int(k): v for k, v in (tags or {}).items()}
        self.field_length = float(field_length)
        self.field_width = float(field_width)

    def pose_of(self, tag_id: int) -> Optional[Pose3d]:
        return self._tags.get(int(tag_id))

    @property
    def tag_ids(self) -> list:
        return sorted(self._tags)

    def __contains__(self, tag_id: object) -> bool:
        return tag_id in self._tags

    def __len__(self) -> int:
        return len(self._tags)

    def __iter__(self) -> Iterator[int]:
        return iter(self._tags)

    # ---------- 序列化 ----------
    @classmethod
    def from_dict(cls, data: dict) -> "FieldTagLayout":
        if not isinstance(data, dict) or not isinstance(data.get("tags"), list):
            raise FieldLayoutError("布局根对象必须包含 'tags' 列表")

        tags: Dict[int, Pose3d] = {}
        for i, entry in enumerate(data["tags"]):
            try:
                tag_id = int(entry["ID"])
                t = entry["pose"]["translation"]
                q = entry["pose"]["rotation"]["quaternion"]
                pose = Pose3d(
                    Translation3d(float(t["x"]), float(t["y"]), float(t["z"])),
                    Rotation3d.from_quaternion(float(q["W"]), float(q["X"]), float(q["Y"]), float(q["Z"])),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise FieldLayoutError(f"第 {i} 个标签解析失败: {e}") from e
            if tag_id in tags:
                logger.warning(f"[FieldTagLayout] 标签 {tag_id} 重复定义，使用后出现的位姿")
            tags[tag_id] = pose

        field_info = data.get("field") or {}
        return cls(tags,
                   field_length=float(field_info.get("length", 0.0)),
                   field_width=float(field_info.get("width", 0.0)))

    def to_dict(self) -> dict:
        tags = []
        for tag_id in self.tag_ids:
            pose = self._tags[tag_id]
            w, x, y, z = pose.rotation.quaternion
            tags.append({
                "ID": tag_id,
                "pose": {
                    "translation": {"x": pose.x, "y": pose.y, "z": pose.z},
                    "rotation": {"quaternion": {"W": w, "X": x, "Y": y, "Z": z}},
                },
            })
        return {"tags": tags, "field": {"length": self.field_length, "width": self.field_width}}

    @classmethod
    def load(cls, path: str) -> "FieldTagLayout":
        """从 JSON 文件加载；文件缺失或格式错误时抛 FieldLayoutError"""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            logger.error(f"[FieldTagLayout] 布局文件不存在: {path}")
            raise FieldLayoutError(f"布局文件不存在: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[FieldTagLayout] 读取布局文件失败: {e}")
            raise FieldLayoutError(str(e)) from e

        layout = cls.from_dict(data)
        logger.info(f"[FieldTagLayout] 已加载 {len(layout)} 个标签: {os.path.abspath(path)}")
        return layout

    def save(self, path: str) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info(f"[FieldTagLayout] 布局已保存到 {os.path.abspath(path)}")

import json
import os
import tempfile
from dataclasses import asdict, fields, is_dataclass, MISSING
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar, Union, get_args, get_origin

from core.logger import logger

T = TypeVar('T')


# ---------- JSON 序列化 ----------
def _to_jsonable(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        return {k: _to_jsonable(v) for k, v in asdict(obj).items()}
    if isinstance(obj, Enum):
        return obj.name
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    return obj


def save_config(config_file: str, config: Any) -> bool:
    """原子写入：先写临时文件，再 os.replace 覆盖目标文件。"""
    try:
        data = _to_jsonable(config)
        directory = os.path.dirname(os.path.abspath(config_file))
        os.makedirs(directory, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=directory, prefix='.cfg.', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, config_file)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)
        logger.info(f'配置已保存到 {config_file}')
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.error(f'保存配置时出现错误: {e}')
        return False


# ---------- 类型工具 ----------
def _is_dataclass_type(tp: Any) -> bool:
    return isinstance(tp, type) and is_dataclass(tp)


def _non_none_args(ann: Any) -> Tuple[Any, ...]:
    return tuple(a for a in get_args(ann) if a is not type(None))


def _empty_value_for(ann: Any) -> Any:
    """
    缺失字段的留空值：
    - Optional[...]  -> None
    - 容器类型        -> 空容器
    - 嵌套 dataclass  -> 递归构造
    - 其他            -> None
    """
    origin = get_origin(ann)
    if origin is Union:
        return None
    if origin in (list, List, Sequence):
        return []
    if origin in (dict, Dict):
        return {}
    if origin in (tuple, Tuple):
        return tuple()
    if _is_dataclass_type(ann):
        return _build_dataclass_forgiving(ann, {})
    return None


def _convert_value(ann: Any, value: Any) -> Any:
    if ann is Any or value is None:
        return value
    origin = get_origin(ann)
    args = get_args(ann)

    if origin is None:
        if _is_dataclass_type(ann):
            if not isinstance(value, dict):
                raise TypeError(f'期望对象(dict)，实际是 {type(value).__name__}')
            return _build_dataclass_forgiving(ann, value)
        if isinstance(ann, type) and issubclass(ann, Enum):
            return ann[value] if isinstance(value, str) else ann(value)
        if ann is float and isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(ann, type) and not isinstance(value, ann):
            raise TypeError(f'期望 {ann.__name__}，实际是 {type(value).__name__}')
        return value
    if origin is Union:
        inner = _non_none_args(ann)
        return _convert_value(inner[0], value) if len(inner) == 1 else value
    if origin in (list, List, Sequence):
        inner = args[0] if args else Any
        return [_convert_value(inner, v) for v in value]
    if origin in (dict, Dict):
        kt, vt = args if len(args) == 2 else (Any, Any)
        return {_convert_value(kt, k): _convert_value(vt, v) for k, v in value.items()}
    if origin in (tuple, Tuple):
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(_convert_value(args[0], v) for v in value)
        return tuple(_convert_value(a, v) for a, v in zip(args, value))
    return value


# ---------- 宽松构造 ----------
def _build_dataclass_forgiving(cls: Type[T], data: dict) -> T:
    """
    宽松构造 dataclass：
    - 忽略 data 中的多余键
    - 缺失字段使用 default/default_factory，否则留空
    - 单个字段转换失败时记录警告并留空，不影响其他字段
    """
    known = {f.name for f in fields(cls)}
    for key in data:
        if key not in known:
            logger.debug(f'忽略未知字段: {cls.__name__}.{key}')

    kwargs = {}
    for f in fields(cls):
        if f.name in data:
            try:
                kwargs[f.name] = _convert_value(f.type, data[f.name])
                continue
            except (TypeError, ValueError, KeyError) as e:
                logger.warning(f'字段 {cls.__name__}.{f.name} 转换失败，使用默认值: {e}')
        if f.default is not MISSING:
            kwargs[f.name] = f.default
        elif f.default_factory is not MISSING:  # type: ignore
            kwargs[f.name] = f.default_factory()  # type: ignore
        else:
            kwargs[f.name] = _empty_value_for(f.type)
    return cls(**kwargs)


# ---------- 读取 ----------
def load_config(config_file: str, config_class: Type[T]) -> Optional[T]:
    """从 JSON 文件加载配置到指定 dataclass；文件缺失或格式错误时返回 None。"""
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except FileNotFoundError:
        logger.error(f'配置文件不存在: {config_file}')
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f'配置加载时出现错误: {e}')
        return None

    if not isinstance(config_data, dict):
        logger.error(f'配置根类型必须是对象(dict)，实际是 {type(config_data).__name__}')
        return None
    return _build_dataclass_forgiving(config_class, config_data)

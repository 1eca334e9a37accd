"""阈值与运行参数配置，支持从 JSON 文件覆盖默认值"""

import json
import logging
import math

from models.data_models import ModelOptions, Thresholds
from models.errors import ConfigError

logger = logging.getLogger(__name__)

# 默认配置
_DEFAULTS = {
    "ear_threshold": 0.23,
    "eye_dwell_ms": 1500,
    "yawn_threshold": 0.6,
    "yawn_dwell_ms": 1200,
    "head_drop_threshold": 0.08,
    "head_dwell_ms": 1200,
    "max_num_faces": 1,
    "refine_landmarks": True,
    "min_detection_confidence": 0.5,
    "min_tracking_confidence": 0.5,
    "camera_index": 0,
    "frame_interval_ms": 16,
    "alarm_frequency_hz": 850.0,
    "alarm_volume": 0.5,
}

_THRESHOLD_KEYS = (
    "ear_threshold", "eye_dwell_ms",
    "yawn_threshold", "yawn_dwell_ms",
    "head_drop_threshold", "head_dwell_ms",
)

_MODEL_KEYS = (
    "max_num_faces", "refine_landmarks",
    "min_detection_confidence", "min_tracking_confidence",
)

# 只接受整数的字段，其余数值字段接受 int / float
_INT_KEYS = ("max_num_faces", "camera_index")


def load_config(config_path=None) -> dict:
    """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
    config = dict(_DEFAULTS)

    if config_path is None:
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning("配置文件不存在 %s，使用默认配置", config_path)
        return config
    except json.JSONDecodeError:
        logger.warning("配置文件格式错误 %s，使用默认配置", config_path)
        return config

    try:
        return merge_config(config, data)
    except ConfigError as e:
        logger.warning("配置文件字段不合法 %s: %s，使用默认配置", config_path, e)
        return config


def _validate(key, value):
    """检查字段类型，bool 不能当作数值使用"""
    if isinstance(_DEFAULTS[key], bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{key} 必须是布尔值，收到 {value!r}")
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} 必须是数值，收到 {value!r}")
    if key in _INT_KEYS and not isinstance(value, int):
        raise ConfigError(f"{key} 必须是整数，收到 {value!r}")
    if not math.isfinite(value):
        raise ConfigError(f"{key} 必须是有限数值，收到 {value!r}")


def merge_config(config: dict, overrides: dict) -> dict:
    """
    用 overrides 中的已知字段覆盖 config，None 值和未知字段忽略。

    Raises:
        ConfigError: overrides 不是字典，或已知字段类型不合法（此时不做任何覆盖）
    """
    if not isinstance(overrides, dict):
        raise ConfigError(f"配置必须是 JSON 对象，收到 {type(overrides).__name__}")

    updates = {}
    for key in _DEFAULTS:
        if key in overrides and overrides[key] is not None:
            _validate(key, overrides[key])
            updates[key] = overrides[key]

    merged = dict(config)
    merged.update(updates)
    return merged


def build_thresholds(config: dict) -> Thresholds:
    return Thresholds(**{key: config[key] for key in _THRESHOLD_KEYS})


def build_model_options(config: dict) -> ModelOptions:
    return ModelOptions(**{key: config[key] for key in _MODEL_KEYS})

"""几何指标提取模块，将单帧关键点转换为 EAR、嘴部比例、鼻尖下移量和头部倾斜角"""

import logging
import math
from typing import List, Optional

from models.data_models import Baseline, LandmarkFrame, LandmarkPoint, MetricSample

logger = logging.getLogger(__name__)

# 关键点索引常量（FaceMesh 468/478 点方案）
# 顺序为 p1..p6：p1/p4 为眼角，(p2, p6) 与 (p3, p5) 为上下眼睑配对
LEFT_EYE_INDICES = [33, 160, 158, 133, 153, 144]
RIGHT_EYE_INDICES = [362, 385, 387, 263, 373, 380]

MOUTH_INDICES = {
    "upper_inner": 13,
    "lower_inner": 14,
    "left": 78,
    "right": 308,
}

NOSE_TIP_INDEX = 1

# 左右外眼角，用于计算头部倾斜角
LEFT_EYE_OUTER_INDEX = 33
RIGHT_EYE_OUTER_INDEX = 263

REQUIRED_LANDMARKS = max(
    LEFT_EYE_INDICES + RIGHT_EYE_INDICES + list(MOUTH_INDICES.values())
    + [NOSE_TIP_INDEX, LEFT_EYE_OUTER_INDEX, RIGHT_EYE_OUTER_INDEX]
) + 1


def calculate_ear(eye_points: List[LandmarkPoint]) -> float:
    """
    计算单只眼睛的 EAR 值。

    公式: EAR = (|p2-p6| + |p3-p5|) / (2 * |p1-p4|)

    Args:
        eye_points: 6 个眼睛轮廓关键点 [(x,y), ...]

    Returns:
        EAR 值，分母为零时返回 0.0
    """
    p1, p2, p3, p4, p5, p6 = eye_points

    vertical_1 = math.dist(p2, p6)
    vertical_2 = math.dist(p3, p5)
    horizontal = math.dist(p1, p4)

    if horizontal == 0.0:
        return 0.0

    return (vertical_1 + vertical_2) / (2.0 * horizontal)


def calculate_mouth_ratio(mouth_points: dict) -> float:
    """
    计算嘴部张开比例。

    公式: ratio = |upper_inner-lower_inner| / |left-right|

    Returns:
        比例值，嘴宽为零时返回 0.0
    """
    horizontal = math.dist(mouth_points["left"], mouth_points["right"])

    if horizontal == 0.0:
        return 0.0

    return math.dist(mouth_points["upper_inner"], mouth_points["lower_inner"]) / horizontal


def calculate_tilt_angle(left_outer: LandmarkPoint, right_outer: LandmarkPoint) -> float:
    """两外眼角连线相对水平方向的倾斜角（度）"""
    delta_y = right_outer[1] - left_outer[1]
    delta_x = right_outer[0] - left_outer[0]
    return math.degrees(math.atan2(delta_y, delta_x))


def extract(frame: LandmarkFrame, baseline: Baseline) -> Optional[MetricSample]:
    """
    从单帧关键点计算几何指标。

    基准未设定时，以当前鼻尖 y 坐标作为基准，本帧 nose_drop 为 0。
    基准一旦设定，直到 baseline.reset() 之前不会再更新。

    Args:
        frame: 单帧归一化关键点
        baseline: 当前会话的鼻尖基准（可能被本函数设定）

    Returns:
        MetricSample；frame 为空（未检测到人脸）时返回 None

    Raises:
        ValueError: 关键点数量不足
    """
    if not frame:
        return None

    if len(frame) < REQUIRED_LANDMARKS:
        raise ValueError(
            f"关键点数量不足: 需要 {REQUIRED_LANDMARKS} 个，实际 {len(frame)} 个"
        )

    left_ear = calculate_ear([frame[i] for i in LEFT_EYE_INDICES])
    right_ear = calculate_ear([frame[i] for i in RIGHT_EYE_INDICES])
    ear_avg = (left_ear + right_ear) / 2.0

    mouth = {key: frame[idx] for key, idx in MOUTH_INDICES.items()}
    mouth_ratio = calculate_mouth_ratio(mouth)

    nose_y = frame[NOSE_TIP_INDEX][1]
    if not baseline.is_set:
        baseline.nose_y = nose_y
        logger.info("鼻尖基准已设定: %.4f", nose_y)
    nose_drop = nose_y - baseline.nose_y

    tilt_angle_deg = calculate_tilt_angle(
        frame[LEFT_EYE_OUTER_INDEX], frame[RIGHT_EYE_OUTER_INDEX]
    )

    return MetricSample(
        ear_avg=ear_avg,
        mouth_ratio=mouth_ratio,
        nose_drop=nose_drop,
        tilt_angle_deg=tilt_angle_deg,
    )

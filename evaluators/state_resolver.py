"""状态判定模块，按优先级合并各通道持续信号，输出分类器状态"""

from typing import Optional

from models.data_models import ClassifierState, MetricSample, Thresholds


def is_within_normal_range(sample: MetricSample, thresholds: Thresholds) -> bool:
    """瞬时指标是否全部处于正常范围"""
    return (
        sample.ear_avg >= thresholds.ear_threshold
        and sample.mouth_ratio <= thresholds.yawn_threshold
        and sample.nose_drop <= thresholds.head_drop_threshold
    )


def resolve(
    sample: Optional[MetricSample],
    sustained_eyes: bool,
    sustained_yawn: bool,
    sustained_head: bool,
    thresholds: Thresholds,
    previous: ClassifierState,
) -> ClassifierState:
    """
    综合判断当前帧状态，按顺序匹配，先匹配者生效：

    1. 未检测到人脸 -> no_face_detected
    2. 闭眼或低头持续 -> drowsy
    3. 哈欠持续 -> yawn
    4. 瞬时指标全部正常 -> awake
    5. 其余情况（有异常但尚未持续）-> 保持上一状态

    Args:
        sample: 本帧指标，None 表示未检测到人脸
        sustained_eyes: 闭眼通道持续信号
        sustained_yawn: 哈欠通道持续信号
        sustained_head: 低头通道持续信号
        thresholds: 阈值配置
        previous: 上一帧状态

    Returns:
        ClassifierState
    """
    if sample is None:
        return ClassifierState.NO_FACE_DETECTED

    # 闭眼/低头优先于哈欠
    if sustained_eyes or sustained_head:
        return ClassifierState.DROWSY

    if sustained_yawn:
        return ClassifierState.YAWN

    if is_within_normal_range(sample, thresholds):
        return ClassifierState.AWAKE

    return previous

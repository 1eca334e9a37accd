"""时间去抖模块，条件连续成立超过驻留时间后才输出持续信号"""

from typing import Callable

from models.data_models import ChannelTimer, DebounceResult


def update(timer: ChannelTimer, condition_true: bool, now: float, dwell_ms: float) -> DebounceResult:
    """
    更新单通道计时器。

    - 条件不成立：计时器清空，sustained=False
    - 条件成立且计时器未启动：从 now 开始计时，sustained=False
    - 条件成立且计时器已启动：sustained = (now - started_at) > dwell_ms

    Args:
        timer: 当前计时器
        condition_true: 本帧瞬时条件是否成立
        now: 当前时间戳（毫秒）
        dwell_ms: 驻留时间阈值（毫秒）

    Returns:
        DebounceResult(sustained, timer)
    """
    if not condition_true:
        return DebounceResult(sustained=False, timer=ChannelTimer())

    if not timer.running:
        return DebounceResult(sustained=False, timer=ChannelTimer(started_at=now))

    return DebounceResult(sustained=(now - timer.started_at) > dwell_ms, timer=timer)


class ChannelDebouncer:
    """维护一个监测通道的计时器，输出去抖后的持续信号"""

    def __init__(self, name: str, condition: Callable[[float], bool], dwell_ms: float):
        """
        Args:
            name: 通道名称（eyes / yawn / head）
            condition: 判断瞬时指标是否异常的函数
            dwell_ms: 驻留时间阈值（毫秒）
        """
        self.name = name
        self.condition = condition
        self.dwell_ms = dwell_ms
        self.timer = ChannelTimer()

    def feed(self, value: float, now: float) -> bool:
        """输入本帧指标值，返回是否已持续异常"""
        result = update(self.timer, self.condition(value), now, self.dwell_ms)
        self.timer = result.timer
        return result.sustained

    def reset(self):
        """清空计时器"""
        self.timer = ChannelTimer()

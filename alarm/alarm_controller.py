"""报警控制模块，根据分类器状态切换报警器开关"""

import logging

from models.data_models import ALARM_STATES, ClassifierState
from models.errors import ActuatorFailure

logger = logging.getLogger(__name__)


class AlarmController:
    """drowsy / yawn 时打开报警器，其余状态关闭；重复的相同指令不会下发到报警器"""

    def __init__(self, actuator):
        """
        Args:
            actuator: 提供 turn_on() / turn_off() 的报警器
        """
        self._actuator = actuator
        self._is_on = False

    @property
    def is_on(self) -> bool:
        return self._is_on

    def on_state_change(self, new_state: ClassifierState):
        """每帧状态判定后调用一次"""
        self._switch(new_state in ALARM_STATES)

    def force_off(self):
        """会话停止时关闭报警器"""
        self._switch(False)

    def _switch(self, turn_on: bool):
        if turn_on == self._is_on:
            return

        try:
            if turn_on:
                self._actuator.turn_on()
            else:
                self._actuator.turn_off()
        except ActuatorFailure as e:
            # 报警失败不影响检测，下一帧会重试
            logger.error("报警器切换失败: %s", e)
            return
        except Exception:
            logger.exception("报警器切换时发生未知错误")
            return

        self._is_on = turn_on
        logger.info("报警已%s", "开启" if turn_on else "关闭")

"""疲劳驾驶检测系统入口文件"""

import argparse
import logging
import sys
import threading

from alarm.tone_alarm import NullAlarm, ToneAlarm
from capture.frame_source import CameraFrameSource
from config import build_model_options, build_thresholds, load_config
from detectors.face_detector import FaceDetector
from models.data_models import ClassifierState
from models.errors import ActuatorFailure, DrowsinessError
from session.session_controller import SessionController

logger = logging.getLogger(__name__)

_STATUS_TEXT = {
    ClassifierState.IDLE: "就绪",
    ClassifierState.AWAKE: "清醒",
    ClassifierState.DROWSY: "疲劳！",
    ClassifierState.YAWN: "打哈欠！",
    ClassifierState.NO_FACE_DETECTED: "未检测到人脸",
    ClassifierState.STOPPED: "检测已停止",
}


class DrowsinessApp:
    """命令行版检测程序，组装各模块并在状态变化时输出日志。"""

    def __init__(self, config: dict, use_alarm: bool = True):
        self.config = config
        self.actuator = self._create_actuator(config) if use_alarm else NullAlarm()
        self.controller = SessionController(
            frame_source=CameraFrameSource(config["camera_index"]),
            model_factory=FaceDetector,
            actuator=self.actuator,
            thresholds=build_thresholds(config),
            model_options=build_model_options(config),
            frame_interval=config["frame_interval_ms"] / 1000.0,
        )
        self._last_state = None
        self._finished = threading.Event()
        self.controller.subscribe(self._on_state)

    @staticmethod
    def _create_actuator(config):
        """创建提示音报警器，音频设备不可用时回退到静音报警器。"""
        try:
            return ToneAlarm(
                frequency=config["alarm_frequency_hz"],
                volume=config["alarm_volume"],
            )
        except ActuatorFailure as e:
            logger.warning("报警器不可用，使用静音模式: %s", e)
            return NullAlarm()

    def _on_state(self, state: ClassifierState):
        if state == self._last_state:
            return
        self._last_state = state
        logger.info("当前状态: %s", _STATUS_TEXT.get(state, state.value))

    def run(self) -> int:
        """启动检测直到 Ctrl+C，返回进程退出码。"""
        try:
            self.controller.start()
        except DrowsinessError as e:
            logger.error("检测启动失败: %s", e)
            self.actuator.close()
            return 1

        try:
            self._finished.wait()
        except KeyboardInterrupt:
            logger.info("收到中断信号，正在停止")
        finally:
            self.stop()
        return 0

    def stop(self):
        self.controller.stop()
        self.actuator.close()
        self._finished.set()


def main(argv=None):
    parser = argparse.ArgumentParser(description="疲劳驾驶检测系统")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 配置文件路径",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=None,
        help="摄像头编号，覆盖配置文件中的 camera_index",
    )
    parser.add_argument(
        "--no-alarm",
        action="store_true",
        help="关闭提示音",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    if args.camera is not None:
        config["camera_index"] = args.camera

    app = DrowsinessApp(config, use_alarm=not args.no_alarm)
    return app.run()


if __name__ == "__main__":
    sys.exit(main())

"""Flask Web 接口 - 疲劳驾驶检测系统"""

import datetime
import logging
import threading

from flask import Flask, jsonify, request

from alarm.tone_alarm import NullAlarm, ToneAlarm
from capture.frame_source import CameraFrameSource
from config import build_model_options, build_thresholds, load_config, merge_config
from detectors.face_detector import FaceDetector
from models.data_models import ClassifierState
from models.errors import ActuatorFailure, ConfigError, DrowsinessError
from session.session_controller import SessionController

logger = logging.getLogger(__name__)

_STATUS_TEXT = {
    ClassifierState.IDLE: "就绪",
    ClassifierState.AWAKE: "清醒",
    ClassifierState.DROWSY: "疲劳",
    ClassifierState.YAWN: "打哈欠",
    ClassifierState.NO_FACE_DETECTED: "未检测到人脸",
    ClassifierState.STOPPED: "检测已停止",
}


class WebDetectionSystem:
    """Web 版检测系统，提供启动/停止、实时数据和事件日志。"""

    MAX_LOG_ENTRIES = 200

    def __init__(self, config=None, frame_source=None, model_factory=FaceDetector, actuator=None):
        self.config = dict(config or load_config())
        self._frame_source = frame_source
        self._model_factory = model_factory
        self._actuator = actuator
        self._logs = []
        self._log_seq = 0
        self._log_lock = threading.Lock()
        self._prev_state = None
        self.controller = None

    def _build_controller(self):
        """按当前配置创建会话控制器。"""
        if self._actuator is None:
            try:
                self._actuator = ToneAlarm(
                    frequency=self.config["alarm_frequency_hz"],
                    volume=self.config["alarm_volume"],
                )
            except ActuatorFailure as e:
                self._add_log("warning", f"报警器不可用: {e}")
                self._actuator = NullAlarm()

        controller = SessionController(
            frame_source=self._frame_source or CameraFrameSource(self.config["camera_index"]),
            model_factory=self._model_factory,
            actuator=self._actuator,
            thresholds=build_thresholds(self.config),
            model_options=build_model_options(self.config),
            frame_interval=self.config["frame_interval_ms"] / 1000.0,
        )
        controller.subscribe(self._check_state_change)
        return controller

    def start(self):
        """启动检测，返回 (是否成功, 提示信息)。"""
        if self.controller is not None and self.controller.is_running:
            return True, "检测已在运行"

        self.controller = self._build_controller()
        try:
            self.controller.start()
        except DrowsinessError as e:
            self._add_log("danger", f"检测启动失败: {e}")
            return False, str(e)

        self._add_log("info", "系统启动，摄像头已开启")
        return True, "检测已启动"

    def stop(self):
        """停止检测。"""
        if self.controller is None or not self.controller.is_running:
            return
        self.controller.stop()

    def get_data(self):
        """最新状态和指标。"""
        if self.controller is None:
            state = ClassifierState.IDLE
            result = None
        else:
            state = self.controller.state
            result = self.controller.latest_result

        data = {
            "state": state.value,
            "status": _STATUS_TEXT.get(state, state.value),
            "running": self.controller is not None and self.controller.is_running,
            "alarm_on": self.controller is not None and self.controller.alarm.is_on,
            "face_detected": False,
            "ear": 0.0, "mouth_ratio": 0.0,
            "nose_drop": 0.0, "tilt_angle": 0.0,
            "eyes_sustained": False, "yawn_sustained": False,
            "head_sustained": False,
        }

        if result is not None and result.sample is not None:
            data.update({
                "face_detected": True,
                "ear": round(result.sample.ear_avg, 4),
                "mouth_ratio": round(result.sample.mouth_ratio, 4),
                "nose_drop": round(result.sample.nose_drop, 4),
                "tilt_angle": round(result.sample.tilt_angle_deg, 2),
                "eyes_sustained": result.eyes_sustained,
                "yawn_sustained": result.yawn_sustained,
                "head_sustained": result.head_sustained,
            })
        return data

    def update_config(self, overrides):
        """
        更新配置，下次启动检测时生效。

        Raises:
            ConfigError: 字段类型不合法，配置保持不变
        """
        self.config = merge_config(self.config, overrides or {})
        self._add_log("info", "配置已更新，将在下次启动时生效")

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._log_seq += 1
            entry["seq"] = self._log_seq
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def _check_state_change(self, state):
        """状态变化时记录日志。"""
        if state == self._prev_state:
            return
        self._prev_state = state

        if state in (ClassifierState.DROWSY, ClassifierState.YAWN):
            self._add_log("danger", f"⚠️ {_STATUS_TEXT[state]}警告！")
        elif state == ClassifierState.NO_FACE_DETECTED:
            self._add_log("warning", "人脸丢失")
        elif state == ClassifierState.STOPPED:
            self._add_log("info", "系统已停止")
        else:
            self._add_log("info", f"当前状态: {_STATUS_TEXT.get(state, state.value)}")

    def get_logs(self, since=0):
        """获取序号大于 since 的日志，返回 (日志列表, 最新序号)。"""
        with self._log_lock:
            return [entry for entry in self._logs if entry["seq"] > since], self._log_seq


def create_app(system=None):
    """创建 Flask 应用。"""
    app = Flask(__name__)
    app.config["SYSTEM"] = system or WebDetectionSystem()

    @app.route("/api/start", methods=["POST"])
    def api_start():
        ok, message = app.config["SYSTEM"].start()
        return jsonify({"success": ok, "message": message})

    @app.route("/api/stop", methods=["POST"])
    def api_stop():
        app.config["SYSTEM"].stop()
        return jsonify({"success": True, "message": "检测已停止"})

    @app.route("/api/data")
    def api_data():
        return jsonify(app.config["SYSTEM"].get_data())

    @app.route("/api/config", methods=["POST"])
    def api_config():
        data = request.get_json(force=True, silent=True)
        if not isinstance(data, dict):
            return jsonify({"success": False, "message": "请求体必须是 JSON 对象"}), 400
        try:
            app.config["SYSTEM"].update_config(data)
        except ConfigError as e:
            return jsonify({"success": False, "message": str(e)}), 400
        return jsonify({"success": True, "message": "配置已更新"})

    @app.route("/api/logs")
    def api_logs():
        since = request.args.get("since", 0, type=int)
        logs, total = app.config["SYSTEM"].get_logs(since)
        return jsonify({"logs": logs, "total": total})

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    create_app().run(host="0.0.0.0", port=5000, debug=False, threaded=True)

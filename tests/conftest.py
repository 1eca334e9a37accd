import sys
import os
import threading

# Add project root to sys.path so tests can import from all modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest  # noqa: E402
from hypothesis import settings  # noqa: E402

from models.data_models import ModelOptions  # noqa: E402

# CI profile: more examples for thorough testing
settings.register_profile("ci", max_examples=200)
# Dev profile: fewer examples for faster iteration
settings.register_profile("dev", max_examples=100)
# Default to dev profile
settings.load_profile("dev")

NUM_LANDMARKS = 478


def build_frame(ear=0.30, mouth_ratio=0.30, nose_y=0.50, tilt_dy=0.0):
    """构造一帧归一化关键点，使其 EAR、嘴部比例和鼻尖 y 坐标等于给定值"""
    points = [(0.0, 0.0)] * NUM_LANDMARKS
    half_eye = ear * 0.1 / 2.0

    # 左眼: 眼角 33/133 水平距离 0.1
    points[33] = (0.30, 0.40)
    points[133] = (0.40, 0.40)
    points[160] = (0.33, 0.40 - half_eye)
    points[144] = (0.33, 0.40 + half_eye)
    points[158] = (0.37, 0.40 - half_eye)
    points[153] = (0.37, 0.40 + half_eye)

    # 右眼: 眼角 362/263 水平距离 0.1，263 的 y 偏移用于倾斜角
    points[362] = (0.60, 0.40)
    points[263] = (0.70, 0.40 + tilt_dy)
    points[385] = (0.63, 0.40 - half_eye)
    points[380] = (0.63, 0.40 + half_eye)
    points[387] = (0.67, 0.40 - half_eye)
    points[373] = (0.67, 0.40 + half_eye)

    # 嘴部: 嘴角 78/308 水平距离 0.2
    half_mouth = mouth_ratio * 0.2 / 2.0
    points[78] = (0.40, 0.70)
    points[308] = (0.60, 0.70)
    points[13] = (0.50, 0.70 - half_mouth)
    points[14] = (0.50, 0.70 + half_mouth)

    points[1] = (0.50, nose_y)
    return points


@pytest.fixture
def make_frame():
    return build_frame


class FakeFrameSource:
    """可控的视频帧来源；frames 为 None 时 read() 总是返回 None"""

    def __init__(self, frames=None, available=True):
        self.frames = frames
        self.available = available
        self.opened = 0
        self.closed = 0

    def open(self):
        from models.errors import NoFrameSource
        if not self.available:
            raise NoFrameSource("fake camera unavailable")
        self.opened += 1

    def read(self):
        if self.frames is None:
            return None
        return self.frames

    def close(self):
        self.closed += 1


class FakeModel:
    """返回预设关键点的关键点模型"""

    def __init__(self, landmarks=None, error=None):
        self.landmarks = landmarks if landmarks is not None else []
        self.error = error
        self.calls = 0
        self.closed = False

    def submit_frame(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.landmarks

    def close(self):
        self.closed = True


class RecordingActuator:
    """记录每次开关调用的报警器"""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on
        self.is_on = False

    def turn_on(self):
        if self.fail_on == "on":
            from models.errors import ActuatorFailure
            raise ActuatorFailure("speaker missing")
        self.calls.append("on")
        self.is_on = True

    def turn_off(self):
        self.calls.append("off")
        self.is_on = False

    def close(self):
        pass


class StateRecorder:
    """收集控制器发布的状态"""

    def __init__(self):
        self.states = []
        self.changed = threading.Condition()

    def __call__(self, state):
        with self.changed:
            self.states.append(state)
            self.changed.notify_all()

    def wait_for(self, predicate, timeout=2.0):
        with self.changed:
            return self.changed.wait_for(lambda: predicate(self.states), timeout)


@pytest.fixture
def frame_source():
    return FakeFrameSource()


@pytest.fixture
def actuator():
    return RecordingActuator()


@pytest.fixture
def make_actuator():
    return RecordingActuator


@pytest.fixture
def make_source():
    return FakeFrameSource


@pytest.fixture
def make_model():
    return FakeModel


@pytest.fixture
def recorder():
    return StateRecorder()


@pytest.fixture
def model_factory():
    """返回 (factory, holder)，holder["model"] 为最近一次构建的模型"""
    holder = {"model": FakeModel(), "options": None}

    def factory(options: ModelOptions):
        holder["options"] = options
        return holder["model"]

    return factory, holder

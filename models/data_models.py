"""核心数据模型定义"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

# 归一化坐标 (x, y)，取值范围 [0, 1]
LandmarkPoint = Tuple[float, float]

# 单帧人脸关键点，按 FaceMesh 索引排列；空列表表示未检测到人脸
LandmarkFrame = List[LandmarkPoint]


class ClassifierState(str, Enum):
    """分类器输出状态"""
    IDLE = "idle"
    AWAKE = "awake"
    DROWSY = "drowsy"
    YAWN = "yawn"
    NO_FACE_DETECTED = "no_face_detected"
    STOPPED = "stopped"


# 需要报警的状态
ALARM_STATES = frozenset({ClassifierState.DROWSY, ClassifierState.YAWN})


@dataclass
class Baseline:
    """鼻尖基准位置，每次会话仅在首次成功检测时设定一次"""
    nose_y: Optional[float] = None

    @property
    def is_set(self) -> bool:
        return self.nose_y is not None

    def reset(self):
        self.nose_y = None


@dataclass
class MetricSample:
    """单帧几何指标"""
    ear_avg: float
    mouth_ratio: float
    nose_drop: float
    tilt_angle_deg: float


@dataclass(frozen=True)
class ChannelTimer:
    """单通道计时器，started_at 为条件连续成立的起始时间（毫秒）"""
    started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self.started_at is not None


@dataclass(frozen=True)
class DebounceResult:
    """去抖更新结果"""
    sustained: bool
    timer: ChannelTimer


@dataclass
class Thresholds:
    """各通道阈值和持续时间（毫秒）"""
    ear_threshold: float = 0.23
    eye_dwell_ms: int = 1500
    yawn_threshold: float = 0.6
    yawn_dwell_ms: int = 1200
    head_drop_threshold: float = 0.08
    head_dwell_ms: int = 1200


@dataclass
class ModelOptions:
    """人脸关键点模型配置"""
    max_num_faces: int = 1
    refine_landmarks: bool = True
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5


@dataclass
class FrameResult:
    """单帧处理结果"""
    state: ClassifierState
    sample: Optional[MetricSample]
    eyes_sustained: bool
    yawn_sustained: bool
    head_sustained: bool
    timestamp: float

    @property
    def face_detected(self) -> bool:
        return self.sample is not None

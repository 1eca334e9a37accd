"""会话控制模块，负责启动/停止检测、驱动逐帧处理循环并向观察者发布状态"""

import logging
import threading
import time
from typing import Callable, List, Optional

from alarm.alarm_controller import AlarmController
from detectors.metric_extractor import extract
from evaluators.state_resolver import resolve
from evaluators.temporal_debouncer import ChannelDebouncer
from models.data_models import (
    Baseline,
    ClassifierState,
    FrameResult,
    LandmarkFrame,
    ModelOptions,
    Thresholds,
)
from models.errors import ModelUnavailable, NoFrameSource

logger = logging.getLogger(__name__)

StateObserver = Callable[[ClassifierState], None]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class Session:
    """单次检测会话，持有鼻尖基准、三个通道计时器和当前状态"""

    def __init__(self, thresholds: Thresholds):
        self.thresholds = thresholds
        self.baseline = Baseline()
        self.eyes = ChannelDebouncer(
            "eyes", lambda ear: ear < thresholds.ear_threshold, thresholds.eye_dwell_ms,
        )
        self.yawn = ChannelDebouncer(
            "yawn", lambda ratio: ratio > thresholds.yawn_threshold, thresholds.yawn_dwell_ms,
        )
        self.head = ChannelDebouncer(
            "head", lambda drop: drop > thresholds.head_drop_threshold, thresholds.head_dwell_ms,
        )
        self.state = ClassifierState.AWAKE
        self.cancelled = threading.Event()

    @property
    def channels(self):
        return (self.eyes, self.yawn, self.head)

    def process(self, frame: LandmarkFrame, now: float) -> FrameResult:
        """
        处理一帧关键点：指标提取 -> 三通道去抖 -> 状态判定。

        未检测到人脸时三个通道计时器全部清空。

        Args:
            frame: 单帧关键点，空列表表示未检测到人脸
            now: 当前时间戳（毫秒）

        Returns:
            FrameResult
        """
        sample = extract(frame, self.baseline)

        if sample is None:
            for channel in self.channels:
                channel.reset()
            eyes = yawn = head = False
        else:
            eyes = self.eyes.feed(sample.ear_avg, now)
            yawn = self.yawn.feed(sample.mouth_ratio, now)
            head = self.head.feed(sample.nose_drop, now)

        self.state = resolve(sample, eyes, yawn, head, self.thresholds, self.state)

        return FrameResult(
            state=self.state,
            sample=sample,
            eyes_sustained=eyes,
            yawn_sustained=yawn,
            head_sustained=head,
            timestamp=now,
        )

    def reset(self):
        """清空基准和所有计时器"""
        self.baseline.reset()
        for channel in self.channels:
            channel.reset()
        self.state = ClassifierState.AWAKE


class SessionController:
    """Idle -> Running -> Stopped，停止后可再次 start() 开启新会话"""

    def __init__(
        self,
        frame_source,
        model_factory: Callable,
        actuator,
        thresholds: Thresholds = None,
        model_options: ModelOptions = None,
        clock: Callable[[], float] = _monotonic_ms,
        frame_interval: float = 0.016,
        stop_timeout: float = 2.0,
    ):
        """
        Args:
            frame_source: 提供 open() / read() / close() 的视频帧来源
            model_factory: 接收 ModelOptions，返回提供 submit_frame() / close() 的关键点模型
            actuator: 提供 turn_on() / turn_off() 的报警器
            thresholds: 阈值配置
            model_options: 关键点模型配置
            clock: 返回毫秒时间戳的时钟
            frame_interval: 两帧之间的等待时间（秒）
            stop_timeout: stop() 等待处理线程退出的最长时间（秒）
        """
        self._frame_source = frame_source
        self._model_factory = model_factory
        self.alarm = AlarmController(actuator)
        self.thresholds = thresholds or Thresholds()
        self.model_options = model_options or ModelOptions()
        self._clock = clock
        self.frame_interval = frame_interval
        self.stop_timeout = stop_timeout

        # _lock 串行化逐帧处理、状态发布与 stop()；_lifecycle_lock 串行化 start() 与资源释放
        self._lock = threading.RLock()
        self._lifecycle_lock = threading.RLock()
        self._observers: List[StateObserver] = []
        self._session: Optional[Session] = None
        self._model = None
        self._thread: Optional[threading.Thread] = None
        self._state = ClassifierState.IDLE
        self._latest_result: Optional[FrameResult] = None
        self._publishing_thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ClassifierState:
        return self._state

    @property
    def latest_result(self) -> Optional[FrameResult]:
        return self._latest_result

    @property
    def is_running(self) -> bool:
        return self._session is not None

    def subscribe(self, observer: StateObserver):
        """注册状态观察者，每处理一帧调用一次"""
        self._observers.append(observer)

    def unsubscribe(self, observer: StateObserver):
        if observer in self._observers:
            self._observers.remove(observer)

    def start(self):
        """
        打开视频帧来源、构建关键点模型并启动处理循环。

        Raises:
            NoFrameSource: 没有可用的视频帧来源
            ModelUnavailable: 关键点模型无法构建
        """
        with self._lifecycle_lock:
            if self._session is not None:
                return

            if self._frame_source is None:
                raise NoFrameSource("未提供视频帧来源")
            self._frame_source.open()

            try:
                model = self._model_factory(self.model_options)
            except ModelUnavailable:
                self._frame_source.close()
                raise
            except Exception as e:
                self._frame_source.close()
                raise ModelUnavailable(f"关键点模型构建失败: {e}") from e

            with self._lock:
                session = Session(self.thresholds)
                self._model = model
                self._session = session
                self._latest_result = None
                self._thread = threading.Thread(
                    target=self._run_loop,
                    args=(session, model),
                    name="drowsiness-session",
                    daemon=True,
                )
                self._publish(ClassifierState.AWAKE)

            self._thread.start()
            logger.info("检测已启动")

    def stop(self):
        """
        停止处理循环、关闭报警、清空基准和计时器；未运行时调用无效果。

        在状态观察者回调中调用时只标记取消，当前帧发布给所有观察者后再完成清理。
        """
        with self._lock:
            session = self._session
            if session is None:
                return
            session.cancelled.set()
            if self._publishing_thread is threading.current_thread():
                return
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(self.stop_timeout)
            if thread.is_alive():
                logger.warning("处理线程未在 %.1f 秒内退出，其结果将被丢弃", self.stop_timeout)

        self._finish(session)

    def _finish(self, session: Session):
        """释放会话资源并发布 STOPPED；同一会话只执行一次"""
        with self._lifecycle_lock:
            with self._lock:
                if self._session is not session:
                    return
                self._session = None
                self._thread = None
                model, self._model = self._model, None
                self.alarm.force_off()
                session.reset()

            if model is not None:
                model.close()
            self._frame_source.close()

            with self._lock:
                self._publish(ClassifierState.STOPPED)
            logger.info("检测已停止")

    def process_frame(self, frame: LandmarkFrame, now: float = None) -> FrameResult:
        """
        同步处理一帧关键点。

        Raises:
            RuntimeError: 会话未运行
        """
        with self._lock:
            session = self._session
            if session is None:
                raise RuntimeError("会话未运行")
            result = self._handle(session, frame, self._clock() if now is None else now)

        if session.cancelled.is_set():
            # 观察者在本帧中请求了停止
            self.stop()
        return result

    def _run_loop(self, session: Session, model):
        """处理循环，每次迭代结束在取消事件上等待，stop() 在此生效"""
        while not session.cancelled.is_set():
            image = self._frame_source.read()
            if image is None:
                session.cancelled.wait(self.frame_interval)
                continue

            landmarks = self._detect(model, image)

            with self._lock:
                if session.cancelled.is_set():
                    # 停止后返回的推理结果直接丢弃
                    break
                try:
                    self._handle(session, landmarks, self._clock())
                except Exception:
                    logger.exception("本帧处理失败，已跳过")

            session.cancelled.wait(self.frame_interval)

        logger.debug("处理循环已退出")
        self._finish(session)

    @staticmethod
    def _detect(model, image) -> LandmarkFrame:
        """调用关键点模型，任何异常都按本帧未检测到人脸处理"""
        try:
            return model.submit_frame(image)
        except Exception:
            logger.exception("关键点模型处理失败，本帧按未检测到人脸处理")
            return []

    def _handle(self, session: Session, frame: LandmarkFrame, now: float) -> FrameResult:
        previous = self._state
        result = session.process(frame, now)
        self._latest_result = result

        if result.state != previous:
            logger.info("状态变化: %s -> %s", previous.value, result.state.value)

        self.alarm.on_state_change(result.state)
        self._publish(result.state)
        return result

    def _publish(self, state: ClassifierState):
        # 调用方持有 _lock
        self._state = state
        outer, self._publishing_thread = self._publishing_thread, threading.current_thread()
        try:
            for observer in list(self._observers):
                try:
                    observer(state)
                except Exception:
                    logger.exception("状态观察者处理失败")
        finally:
            self._publishing_thread = outer

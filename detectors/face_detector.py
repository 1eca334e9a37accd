"""人脸关键点检测模块，基于 MediaPipe FaceMesh"""

import logging
import math

import cv2
import mediapipe as mp
import numpy as np

from detectors.metric_extractor import REQUIRED_LANDMARKS
from models.data_models import LandmarkFrame, ModelOptions
from models.errors import ModelUnavailable

logger = logging.getLogger(__name__)


class LandmarkPayloadError(ValueError):
    """模型输出的关键点数据格式不符合预期"""


class FaceDetector:
    """使用 MediaPipe FaceMesh 检测人脸关键点，输出归一化坐标"""

    def __init__(self, options: ModelOptions = None):
        """初始化 MediaPipe FaceMesh，失败时抛出 ModelUnavailable"""
        self._face_mesh = None
        self.configure(options or ModelOptions())

    def configure(self, options: ModelOptions):
        """按新配置重建 FaceMesh"""
        try:
            face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=options.max_num_faces,
                refine_landmarks=options.refine_landmarks,
                min_detection_confidence=options.min_detection_confidence,
                min_tracking_confidence=options.min_tracking_confidence,
            )
        except Exception as e:
            raise ModelUnavailable(f"无法创建 FaceMesh: {e}") from e

        self.close()
        self._face_mesh = face_mesh
        self.options = options

    def submit_frame(self, frame: np.ndarray) -> LandmarkFrame:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            第一张人脸的归一化关键点列表；未检测到人脸时返回空列表

        Raises:
            LandmarkPayloadError: 模型输出缺少关键点或坐标无效
        """
        # BGR -> RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return []

        face = results.multi_face_landmarks[0]
        return self._validate([(lm.x, lm.y) for lm in face.landmark])

    @staticmethod
    def _validate(points) -> LandmarkFrame:
        """校验模型输出并转换为 float 坐标"""
        if len(points) < REQUIRED_LANDMARKS:
            raise LandmarkPayloadError(
                f"关键点数量不足: 需要 {REQUIRED_LANDMARKS} 个，实际 {len(points)} 个"
            )

        landmarks = []
        for x, y in points:
            x, y = float(x), float(y)
            if not (math.isfinite(x) and math.isfinite(y)):
                raise LandmarkPayloadError("关键点坐标不是有限数值")
            landmarks.append((x, y))
        return landmarks

    def close(self):
        """释放 MediaPipe 资源"""
        if self._face_mesh is not None:
            self._face_mesh.close()
            self._face_mesh = None

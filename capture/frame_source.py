"""视频帧来源模块，封装 OpenCV 摄像头"""

import logging
from typing import Optional

import cv2
import numpy as np

from models.errors import NoFrameSource

logger = logging.getLogger(__name__)


class CameraFrameSource:
    """按需读取摄像头帧"""

    def __init__(self, camera_index: int = 0):
        self.camera_index = camera_index
        self._cap = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self):
        """打开摄像头，失败时抛出 NoFrameSource"""
        if self.is_open:
            return

        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise NoFrameSource(f"无法打开摄像头 {self.camera_index}")

        self._cap = cap
        logger.info("摄像头 %d 已打开", self.camera_index)

    def read(self) -> Optional[np.ndarray]:
        """读取一帧，读取失败或摄像头未打开时返回 None"""
        if not self.is_open:
            return None

        ret, frame = self._cap.read()
        if not ret:
            return None
        return frame

    def close(self):
        """释放摄像头"""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("摄像头 %d 已释放", self.camera_index)

"""报警器实现：基于 pygame mixer 循环播放方波提示音"""

import logging

import numpy as np
import pygame

from models.errors import ActuatorFailure

logger = logging.getLogger(__name__)


def make_square_wave(frequency: float, sample_rate: int, volume: float = 1.0,
                     duration: float = 1.0, channels: int = 1) -> np.ndarray:
    """
    生成 16 位方波采样。

    duration 为 1 秒时，整数频率的波形首尾相接，循环播放无断点。

    Returns:
        mono 为一维数组，多声道为 (n, channels) 数组，dtype=int16
    """
    n_samples = int(sample_rate * duration)
    t = np.arange(n_samples) / sample_rate
    wave = np.where(np.sin(2.0 * np.pi * frequency * t) >= 0.0, 1.0, -1.0)
    samples = (wave * volume * 32767).astype(np.int16)

    if channels > 1:
        samples = np.repeat(samples[:, np.newaxis], channels, axis=1)

    return samples


class ToneAlarm:
    """循环播放方波提示音的报警器，turn_on / turn_off 均可重复调用"""

    def __init__(self, frequency: float = 850.0, volume: float = 0.5):
        try:
            pygame.mixer.init(frequency=44100, size=-16, channels=1, buffer=512)
            sample_rate, _, channels = pygame.mixer.get_init()
            samples = make_square_wave(frequency, sample_rate, channels=channels)
            self._sound = pygame.sndarray.make_sound(samples)
        except pygame.error as e:
            raise ActuatorFailure(f"音频设备初始化失败: {e}") from e

        self._sound.set_volume(volume)
        self._channel = None

    @property
    def is_on(self) -> bool:
        return self._channel is not None

    def turn_on(self):
        if self._channel is not None:
            return

        channel = self._sound.play(loops=-1)
        if channel is None:
            raise ActuatorFailure("没有可用的音频通道")

        self._channel = channel
        logger.debug("提示音开始播放")

    def turn_off(self):
        if self._channel is None:
            return

        self._sound.stop()
        self._channel = None
        logger.debug("提示音停止")

    def close(self):
        """停止播放并释放音频设备"""
        self.turn_off()
        pygame.mixer.quit()


class NullAlarm:
    """静音报警器，仅记录开关状态"""

    def __init__(self):
        self.is_on = False

    def turn_on(self):
        self.is_on = True

    def turn_off(self):
        self.is_on = False

    def close(self):
        self.is_on = False

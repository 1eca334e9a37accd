"""指标提取模块单元测试"""

import math

import pytest

from detectors.metric_extractor import (
    LEFT_EYE_INDICES,
    MOUTH_INDICES,
    NOSE_TIP_INDEX,
    REQUIRED_LANDMARKS,
    RIGHT_EYE_INDICES,
    calculate_ear,
    calculate_mouth_ratio,
    calculate_tilt_angle,
    extract,
)
from models.data_models import Baseline, MetricSample


class TestCalculateEar:
    def test_open_eye(self):
        # 水平 0.1，两组垂直距离均为 0.03
        points = [(0.0, 0.0), (0.03, -0.015), (0.07, -0.015), (0.1, 0.0), (0.07, 0.015), (0.03, 0.015)]
        assert calculate_ear(points) == pytest.approx(0.3)

    def test_zero_horizontal_returns_zero(self):
        points = [(0.5, 0.5)] * 6
        assert calculate_ear(points) == 0.0


class TestCalculateMouthRatio:
    def test_ratio(self):
        mouth = {
            "upper_inner": (0.5, 0.6),
            "lower_inner": (0.5, 0.72),
            "left": (0.4, 0.66),
            "right": (0.6, 0.66),
        }
        assert calculate_mouth_ratio(mouth) == pytest.approx(0.6)

    def test_zero_width_returns_zero(self):
        mouth = {
            "upper_inner": (0.5, 0.6),
            "lower_inner": (0.5, 0.7),
            "left": (0.5, 0.65),
            "right": (0.5, 0.65),
        }
        assert calculate_mouth_ratio(mouth) == 0.0


class TestCalculateTiltAngle:
    def test_level_eyes(self):
        assert calculate_tilt_angle((0.3, 0.4), (0.7, 0.4)) == pytest.approx(0.0)

    def test_diagonal(self):
        assert calculate_tilt_angle((0.3, 0.4), (0.5, 0.6)) == pytest.approx(45.0)

    def test_negative_tilt(self):
        assert calculate_tilt_angle((0.3, 0.4), (0.5, 0.2)) == pytest.approx(-45.0)


class TestExtract:
    def test_empty_frame_returns_none(self):
        baseline = Baseline()
        assert extract([], baseline) is None
        assert baseline.nose_y is None

    def test_returns_metric_sample(self, make_frame):
        sample = extract(make_frame(ear=0.3, mouth_ratio=0.4), Baseline())
        assert isinstance(sample, MetricSample)
        assert sample.ear_avg == pytest.approx(0.3)
        assert sample.mouth_ratio == pytest.approx(0.4)
        assert sample.tilt_angle_deg == pytest.approx(0.0)

    def test_first_extraction_sets_baseline(self, make_frame):
        baseline = Baseline()
        sample = extract(make_frame(nose_y=0.5), baseline)
        assert baseline.nose_y == pytest.approx(0.5)
        assert sample.nose_drop == 0.0

    def test_nose_drop_relative_to_baseline(self, make_frame):
        baseline = Baseline(nose_y=0.5)
        sample = extract(make_frame(nose_y=0.62), baseline)
        assert sample.nose_drop == pytest.approx(0.12)
        assert baseline.nose_y == pytest.approx(0.5)

    def test_baseline_does_not_relatch(self, make_frame):
        """鼻尖回到基准位置后，下移量归零，但基准不会重新设定"""
        baseline = Baseline()
        extract(make_frame(nose_y=0.50), baseline)
        assert extract(make_frame(nose_y=0.60), baseline).nose_drop == pytest.approx(0.10)
        assert extract(make_frame(nose_y=0.50), baseline).nose_drop == pytest.approx(0.0)
        assert extract(make_frame(nose_y=0.55), baseline).nose_drop == pytest.approx(0.05)
        assert baseline.nose_y == pytest.approx(0.50)

    def test_baseline_reset_relatches(self, make_frame):
        baseline = Baseline()
        extract(make_frame(nose_y=0.50), baseline)
        baseline.reset()
        sample = extract(make_frame(nose_y=0.70), baseline)
        assert baseline.nose_y == pytest.approx(0.70)
        assert sample.nose_drop == 0.0

    def test_tilt_angle_reported(self, make_frame):
        sample = extract(make_frame(tilt_dy=0.4), Baseline())
        assert sample.tilt_angle_deg == pytest.approx(math.degrees(math.atan2(0.4, 0.4)))

    def test_too_few_landmarks_raises(self):
        with pytest.raises(ValueError):
            extract([(0.5, 0.5)] * 10, Baseline())


class TestLandmarkIndices:
    def test_left_eye_indices(self):
        assert LEFT_EYE_INDICES == [33, 160, 158, 133, 153, 144]

    def test_right_eye_indices(self):
        assert RIGHT_EYE_INDICES == [362, 385, 387, 263, 373, 380]

    def test_mouth_indices(self):
        assert MOUTH_INDICES == {
            "upper_inner": 13,
            "lower_inner": 14,
            "left": 78,
            "right": 308,
        }

    def test_nose_tip_index(self):
        assert NOSE_TIP_INDEX == 1

    def test_required_landmarks(self):
        assert REQUIRED_LANDMARKS == 388

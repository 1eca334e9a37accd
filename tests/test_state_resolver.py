"""StateResolver 单元测试"""

import pytest

from evaluators.state_resolver import is_within_normal_range, resolve
from models.data_models import ClassifierState, MetricSample, Thresholds


@pytest.fixture
def thresholds():
    return Thresholds()


def _sample(ear=0.3, mouth_ratio=0.3, nose_drop=0.0):
    return MetricSample(ear_avg=ear, mouth_ratio=mouth_ratio, nose_drop=nose_drop, tilt_angle_deg=0.0)


class TestPriority:
    def test_no_face_overrides_all(self, thresholds):
        state = resolve(None, True, True, True, thresholds, ClassifierState.DROWSY)
        assert state == ClassifierState.NO_FACE_DETECTED

    def test_eyes_sustained_is_drowsy(self, thresholds):
        state = resolve(_sample(ear=0.1), True, False, False, thresholds, ClassifierState.AWAKE)
        assert state == ClassifierState.DROWSY

    def test_head_sustained_is_drowsy(self, thresholds):
        state = resolve(_sample(nose_drop=0.2), False, False, True, thresholds, ClassifierState.AWAKE)
        assert state == ClassifierState.DROWSY

    def test_yawn_sustained(self, thresholds):
        state = resolve(_sample(mouth_ratio=0.9), False, True, False, thresholds, ClassifierState.AWAKE)
        assert state == ClassifierState.YAWN

    def test_drowsy_beats_yawn(self, thresholds):
        state = resolve(_sample(ear=0.1, mouth_ratio=0.9), True, True, False, thresholds, ClassifierState.YAWN)
        assert state == ClassifierState.DROWSY

    def test_head_beats_yawn(self, thresholds):
        state = resolve(_sample(mouth_ratio=0.9, nose_drop=0.2), False, True, True, thresholds, ClassifierState.AWAKE)
        assert state == ClassifierState.DROWSY


class TestAwake:
    def test_all_normal_is_awake(self, thresholds):
        state = resolve(_sample(), False, False, False, thresholds, ClassifierState.DROWSY)
        assert state == ClassifierState.AWAKE

    def test_boundary_values_are_normal(self, thresholds):
        sample = _sample(ear=0.23, mouth_ratio=0.6, nose_drop=0.08)
        assert is_within_normal_range(sample, thresholds)

    @pytest.mark.parametrize("sample", [
        _sample(ear=0.22),
        _sample(mouth_ratio=0.61),
        _sample(nose_drop=0.09),
    ])
    def test_abnormal_not_sustained_keeps_previous(self, thresholds, sample):
        for previous in (ClassifierState.AWAKE, ClassifierState.DROWSY, ClassifierState.YAWN):
            assert resolve(sample, False, False, False, thresholds, previous) == previous

    def test_uses_configured_thresholds(self):
        strict = Thresholds(ear_threshold=0.35)
        state = resolve(_sample(ear=0.3), False, False, False, strict, ClassifierState.NO_FACE_DETECTED)
        assert state == ClassifierState.NO_FACE_DETECTED

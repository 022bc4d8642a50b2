"""
Tests for the stability gate and face-position guidance.
"""

from __future__ import annotations

import pytest

from bookingflow.application.exceptions import DeviceError
from bookingflow.application.use_cases.frame_analyzer import FrameAnalyzer
from bookingflow.application.utils.guidance import evaluate_guidance
from bookingflow.domain.entities.detection import Detection, FaceGuidance, Frame
from bookingflow.infrastructure.vision.mock_vision import ScriptedFaceDetector


FRAME = Frame(pixels=None, width=640, height=480)


def _analyzer(face_counts, threshold: int = 15) -> FrameAnalyzer:
    analyzer = FrameAnalyzer(ScriptedFaceDetector(face_counts), threshold=threshold)
    analyzer.prepare()
    return analyzer


def test_counter_resets_whenever_face_count_is_not_one():
    script = [1, 1, 1, 0, 1, 1, 2, 1, 3, 0]
    analyzer = _analyzer(script)

    for count in script:
        tick = analyzer.analyze(FRAME)
        assert tick.face_count == count
        if count != 1:
            assert analyzer.stability == 0
            assert tick.stability == 0
            assert tick.detected is False
            assert tick.progress == 0.0
        else:
            assert tick.detected is True


def test_capture_fires_exactly_at_threshold():
    """Single stable face from tick 1 with threshold 15 triggers on tick 15 only."""
    analyzer = _analyzer([1], threshold=15)

    ticks = [analyzer.analyze(FRAME) for _ in range(15)]

    assert [t.capture for t in ticks] == [False] * 14 + [True]
    assert ticks[13].progress == pytest.approx(14 / 15)
    assert ticks[14].progress == 1.0
    # Counter resets once the trigger fires.
    assert analyzer.stability == 0
    assert analyzer.capture_in_flight is True


def test_no_second_trigger_while_capture_in_flight():
    analyzer = _analyzer([1], threshold=5)

    triggers = sum(analyzer.analyze(FRAME).capture for _ in range(40))
    assert triggers == 1

    analyzer.release()
    ticks = [analyzer.analyze(FRAME) for _ in range(5)]
    assert ticks[-1].capture is True


def test_progress_is_capped():
    analyzer = _analyzer([1], threshold=3)
    analyzer.capture_in_flight = True

    ticks = [analyzer.analyze(FRAME) for _ in range(6)]

    assert max(t.progress for t in ticks) == 1.0
    assert not any(t.capture for t in ticks)


def test_multiple_faces_reports_guidance():
    analyzer = _analyzer([2])

    tick = analyzer.analyze(FRAME)

    assert tick.guidance is FaceGuidance.MULTIPLE_FACES
    assert len(tick.bounding_boxes) == 2


def test_detector_load_failure_is_device_error():
    analyzer = FrameAnalyzer(ScriptedFaceDetector([1], fail_load=True))

    with pytest.raises(DeviceError):
        analyzer.prepare()


def test_detector_crash_is_device_error():
    class BrokenDetector(ScriptedFaceDetector):
        def detect(self, frame):
            raise RuntimeError("model crashed")

    analyzer = FrameAnalyzer(BrokenDetector())
    analyzer.prepare()

    with pytest.raises(DeviceError):
        analyzer.analyze(FRAME)


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        FrameAnalyzer(ScriptedFaceDetector(), threshold=0)


def test_guidance_classification():
    def guide(*boxes):
        return evaluate_guidance([Detection(box=box) for box in boxes], FRAME)

    assert guide() is FaceGuidance.NO_FACE
    assert guide((212, 132, 216, 216), (0, 0, 50, 50)) is FaceGuidance.MULTIPLE_FACES
    assert guide((212, 132, 216, 216)) is FaceGuidance.GOOD
    assert guide((0, 0, 216, 216)) is FaceGuidance.OFF_CENTER
    assert guide((120, 40, 400, 400)) is FaceGuidance.TOO_CLOSE
    assert guide((300, 220, 40, 40)) is FaceGuidance.TOO_FAR

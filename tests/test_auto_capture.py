"""
Tests for the cancellable auto-capture polling loop.
"""

from __future__ import annotations

import asyncio

import pytest

from bookingflow.application.exceptions import DeviceError
from bookingflow.application.use_cases.auto_capture import AutoCaptureLoop
from bookingflow.application.use_cases.capture_sequencer import CaptureSequencer
from bookingflow.application.use_cases.frame_analyzer import FrameAnalyzer
from bookingflow.domain.entities.capture_session import build_session
from bookingflow.infrastructure.vision.mock_vision import MockCamera, ScriptedFaceDetector


def _loop(face_counts=(1,), camera: MockCamera | None = None, detector=None, on_tick=None, sleep=None, interval=0.1):
    sequencer = CaptureSequencer(build_session())
    camera = camera or MockCamera()
    analyzer = FrameAnalyzer(detector or ScriptedFaceDetector(face_counts), threshold=15)
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    loop = AutoCaptureLoop(
        camera,
        analyzer,
        sequencer,
        interval_seconds=interval,
        sleep=sleep or fake_sleep,
        on_tick=on_tick,
    )
    return loop, sequencer, camera, analyzer, sleeps


def test_stable_face_captures_first_slot_and_advances():
    """Threshold 15, one face from tick 1: capture on tick 15, pointer 0 -> 1."""
    ticks = []
    loop, sequencer, camera, analyzer, sleeps = _loop(on_tick=lambda slot, tick: ticks.append(tick))

    slot = asyncio.run(loop.run())

    assert slot.id == "face_front"
    assert slot.image.startswith(b"\xff\xd8")
    assert len(ticks) == 15
    assert [t.capture for t in ticks].count(True) == 1
    assert ticks[-1].capture is True
    assert sequencer.pointer == 1
    assert len(sleeps) == 14
    assert analyzer.capture_in_flight is False


def test_unstable_frames_delay_capture():
    ticks = []
    loop, sequencer, _, _, _ = _loop(face_counts=[0, 0, 2, 1], on_tick=lambda slot, tick: ticks.append(tick))

    asyncio.run(loop.run())

    # Three unstable ticks, then fifteen stable ones.
    assert len(ticks) == 18
    assert sequencer.pointer == 1


def test_loop_stops_when_slot_filled_elsewhere():
    sequencer_holder = {}

    def fill_on_first_tick(slot, tick):
        if not slot.is_filled:
            sequencer_holder["sequencer"].capture(b"manual", slot_id=slot.id)

    loop, sequencer, _, _, sleeps = _loop(face_counts=[0], on_tick=fill_on_first_tick)
    sequencer_holder["sequencer"] = sequencer

    result = asyncio.run(loop.run())

    assert result is None
    assert len(sleeps) == 1
    assert sequencer.session.slots[0].image == b"manual"


def test_document_slot_is_not_auto_captured():
    loop, sequencer, camera, _, _ = _loop()
    for _ in range(3):
        sequencer.capture(b"face")

    assert asyncio.run(loop.run()) is None
    assert camera.open_count == 0


def test_camera_denied_is_device_error_and_loop_never_starts():
    camera = MockCamera(fail_open=True)
    ticks = []
    loop, sequencer, _, _, _ = _loop(camera=camera, on_tick=lambda slot, tick: ticks.append(tick))

    with pytest.raises(DeviceError):
        asyncio.run(loop.run())

    assert ticks == []
    assert camera.close_count == 1
    assert sequencer.pointer == 0


def test_detector_unavailable_is_device_error():
    camera = MockCamera()
    loop, _, _, _, _ = _loop(camera=camera, detector=ScriptedFaceDetector([1], fail_load=True))

    with pytest.raises(DeviceError):
        asyncio.run(loop.run())

    assert camera.opened is False


def test_cancel_stops_running_task():
    async def scenario():
        loop, sequencer, _, analyzer, _ = _loop(face_counts=[0], sleep=asyncio.sleep, interval=0.001)
        task = loop.start()
        await asyncio.sleep(0.02)
        assert loop.running

        loop.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not loop.running
        assert analyzer.stability == 0
        assert sequencer.pointer == 0

    asyncio.run(scenario())


def test_start_replaces_previous_task():
    async def scenario():
        loop, _, camera, _, _ = _loop(face_counts=[0], sleep=asyncio.sleep, interval=0.001)
        first = loop.start()
        await asyncio.sleep(0)
        second = loop.restart()

        assert first is not second
        with pytest.raises(asyncio.CancelledError):
            await first
        assert loop.running

        loop.close()
        with pytest.raises(asyncio.CancelledError):
            await second
        assert camera.close_count == 1

    asyncio.run(scenario())


def test_restart_only_for_the_slot_next_in_line():
    async def scenario():
        loop, sequencer, _, _, _ = _loop(face_counts=[0], sleep=asyncio.sleep, interval=0.001)
        later_slot = sequencer.session.slots[1]

        assert loop.restart(later_slot) is None
        assert not loop.running

        task = loop.restart(sequencer.current_slot)
        await asyncio.sleep(0)
        assert loop.running
        assert loop.restart(later_slot) is task

        loop.close()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

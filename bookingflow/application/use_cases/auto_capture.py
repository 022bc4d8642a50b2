from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from bookingflow.application.exceptions import DeviceError
from bookingflow.application.ports.camera import CameraPort
from bookingflow.application.use_cases.capture_sequencer import CaptureSequencer
from bookingflow.application.use_cases.frame_analyzer import FrameAnalyzer
from bookingflow.domain.entities.capture_session import CaptureSlot
from bookingflow.domain.entities.detection import DetectionTick


TickListener = Callable[[CaptureSlot, DetectionTick], None]


class AutoCaptureLoop:
    """
    Fixed-interval polling loop that auto-captures the active biometric slot.

    One loop serves one slot: it ends when that slot is filled, when the task
    is cancelled, or when the camera or detector fails.
    """

    def __init__(
        self,
        camera: CameraPort,
        analyzer: FrameAnalyzer,
        sequencer: CaptureSequencer,
        interval_seconds: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_tick: TickListener | None = None,
    ) -> None:
        self._camera = camera
        self._analyzer = analyzer
        self._sequencer = sequencer
        self._interval = interval_seconds
        self._sleep = sleep
        self._on_tick = on_tick
        self._devices_ready = False
        self._task: asyncio.Task[CaptureSlot | None] | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def task(self) -> asyncio.Task[CaptureSlot | None] | None:
        return self._task

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def open_devices(self) -> None:
        if self._devices_ready:
            return
        try:
            self._camera.open()
            self._analyzer.prepare()
        except DeviceError as e:
            self._logger.error("Capture devices unavailable", extra={"error": str(e)})
            self._camera.close()
            raise
        self._devices_ready = True

    async def run(self) -> CaptureSlot | None:
        """Analyze frames until the current biometric slot is filled. Returns that slot."""
        slot = self._sequencer.current_slot
        if slot is None or not slot.is_biometric:
            return None

        self.open_devices()
        self._analyzer.reset()
        self._logger.info("Auto-capture started", extra={"slot_id": slot.id})
        try:
            while True:
                if slot.is_filled or self._sequencer.current_slot is not slot:
                    self._logger.info("Auto-capture stopped, slot no longer active", extra={"slot_id": slot.id})
                    return None

                frame = self._camera.read_frame()
                if frame is not None:
                    tick = self._analyzer.analyze(frame)
                    if self._on_tick is not None:
                        self._on_tick(slot, tick)
                    if tick.capture:
                        try:
                            image = self._camera.encode(frame)
                            self._sequencer.capture(image, slot_id=slot.id)
                        finally:
                            self._analyzer.release()
                        return slot

                await self._sleep(self._interval)
        except DeviceError as e:
            self._logger.error("Auto-capture aborted", extra={"slot_id": slot.id, "error": str(e)})
            raise

    def start(self) -> asyncio.Task[CaptureSlot | None]:
        """Schedule the loop on the running event loop, replacing any previous one."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def restart(self, slot: CaptureSlot | None = None) -> asyncio.Task[CaptureSlot | None] | None:
        """Restart for a reopened slot. A slot that is not next in line leaves the loop as it is."""
        if slot is not None and self._sequencer.current_slot is not slot:
            self._logger.info("Reopened slot is not next, capture continues", extra={"slot_id": slot.id})
            return self._task
        return self.start()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._analyzer.reset()

    def close(self) -> None:
        self.cancel()
        if self._devices_ready:
            self._camera.close()
            self._devices_ready = False

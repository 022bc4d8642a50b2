from __future__ import annotations

#!/usr/bin/env python3
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

"""
Interactive local enrollment harness (no HTTP server).

Usage:
  python3 scripts/capture_local.py [--mock] [--reservation-id ID] [--room-id ID] [--recapture]

What it does:
- Opens the camera (or a scripted mock with --mock) and the face detector
- Auto-captures each face slot once the face has been held still long enough
- Waits for Enter on the ID card slots
- Lets you retake any slot, then submits the enrollment
"""

import argparse
import asyncio
import logging
from datetime import datetime, timedelta

from dotenv import load_dotenv

load_dotenv()

from bookingflow.application.exceptions import BookingFlowError, DeviceError
from bookingflow.application.utils.guidance import GUIDANCE_TEXT
from bookingflow.domain.entities.capture_session import CaptureSlot
from bookingflow.domain.entities.detection import DetectionTick
from bookingflow.domain.entities.reservation import DateRange, ReservationRequest
from bookingflow.infrastructure.vision.mock_vision import MockCamera, ScriptedFaceDetector
from bookingflow.wiring.dependencies import get_camera, get_capture_loop, get_face_detector, new_flow


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Capture and submit a face enrollment locally")
    parser.add_argument("--mock", action="store_true", help="use a scripted camera and detector")
    parser.add_argument("--reservation-id", type=int, default=None, help="attach an existing reservation")
    parser.add_argument("--room-id", type=int, default=1, help="room to reserve when no reservation is given")
    parser.add_argument("--recapture", action="store_true", help="replace an existing enrollment")
    return parser.parse_args()


def _print_tick(slot: CaptureSlot, tick: DetectionTick) -> None:
    filled = int(tick.progress * 20)
    bar = "#" * filled + "." * (20 - filled)
    print(f"\r[{slot.id:<10}] [{bar}] {GUIDANCE_TEXT[tick.guidance]:<70}", end="", flush=True)


async def _prompt(text: str) -> str:
    return (await asyncio.to_thread(input, text)).strip()


async def _capture_all(flow, loop, camera) -> None:
    sequencer = flow.sequencer
    while True:
        slot = sequencer.current_slot
        if slot is None:
            answer = await _prompt("\nAll slots captured. Enter to submit, or 'r <slot_id>' to retake: ")
            if answer.startswith("r "):
                try:
                    sequencer.retake(answer[2:].strip())
                except BookingFlowError as e:
                    print(f"Cannot retake: {e}")
                continue
            return

        print(f"\n{slot.label}")
        if slot.is_biometric:
            task = loop.task if loop.running else loop.start()
            try:
                await task
            except asyncio.CancelledError:
                # Cancelled by a retake that restarted the loop for another slot.
                continue
            continue

        answer = await _prompt("Hold the card up and press Enter to capture ('r <slot_id>' to retake): ")
        if answer.startswith("r "):
            try:
                sequencer.retake(answer[2:].strip())
            except BookingFlowError as e:
                print(f"Cannot retake: {e}")
            continue
        frame = camera.read_frame()
        if frame is None:
            print("No frame available, try again.")
            continue
        sequencer.capture(camera.encode(frame), slot_id=slot.id)


async def main() -> int:
    args = _parse_args()
    logging.basicConfig(level=logging.WARNING)

    flow = new_flow()
    try:
        if args.reservation_id is not None:
            flow.use_reservation(args.reservation_id)
        else:
            check_in = datetime.now() + timedelta(days=1)
            reservation_id = flow.reserve(
                ReservationRequest(
                    room_id=args.room_id,
                    date_range=DateRange(check_in=check_in, check_out=check_in + timedelta(days=30)),
                )
            )
            print(f"Reservation created: {reservation_id}")
    except BookingFlowError as e:
        print(f"Reservation failed: {e}")
        return 1

    if not flow.needs_capture and not args.recapture:
        print("A face enrollment already exists for this reservation. Use --recapture to replace it.")
        return 0

    if args.mock:
        camera = MockCamera()
        detector = ScriptedFaceDetector([0, 0, 2, 1])
    else:
        camera = get_camera()
        detector = get_face_detector()

    loop = get_capture_loop(flow.sequencer, camera=camera, detector=detector, on_tick=_print_tick)
    flow.attach_capture_loop(loop)
    try:
        loop.open_devices()
        await _capture_all(flow, loop, camera)
        result = flow.submit_enrollment(recapture=args.recapture)
        print(
            f"\nEnrollment submitted for reservation {result.reservation_id}: "
            f"{result.attachment_count} images ({result.padded_count} padded)"
        )
        return 0
    except DeviceError as e:
        print(f"\nCamera or detector unavailable: {e}")
        return 1
    except BookingFlowError as e:
        print(f"\nEnrollment failed: {e}")
        return 1
    except (EOFError, KeyboardInterrupt):
        print("\nBye!")
        return 130
    finally:
        flow.dismiss()


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))

from __future__ import annotations

from collections.abc import Sequence

from bookingflow.domain.entities.detection import Detection, FaceGuidance, Frame


def evaluate_guidance(
    detections: Sequence[Detection],
    frame: Frame,
    *,
    center_tolerance: float = 0.15,
    min_face_area: float = 0.08,
    max_face_area: float = 0.35,
) -> FaceGuidance:
    """
    Classify how well the subject is positioned in the frame.

    Offsets and areas are measured relative to the frame size so the same
    thresholds hold for any camera resolution.
    """
    if not detections:
        return FaceGuidance.NO_FACE
    if len(detections) > 1:
        return FaceGuidance.MULTIPLE_FACES

    x, y, width, height = detections[0].box
    frame_w = frame.width or 1
    frame_h = frame.height or 1

    center_x = (x + width / 2) / frame_w
    center_y = (y + height / 2) / frame_h
    area_ratio = (width * height) / (frame_w * frame_h)

    if abs(center_x - 0.5) > center_tolerance or abs(center_y - 0.5) > center_tolerance:
        return FaceGuidance.OFF_CENTER
    if area_ratio > max_face_area:
        return FaceGuidance.TOO_CLOSE
    if area_ratio < min_face_area:
        return FaceGuidance.TOO_FAR
    return FaceGuidance.GOOD


GUIDANCE_TEXT: dict[FaceGuidance, str] = {
    FaceGuidance.NO_FACE: "No face found, move your face into the frame.",
    FaceGuidance.MULTIPLE_FACES: "More than one person is visible, only the guest should be in frame.",
    FaceGuidance.OFF_CENTER: "Your face is off center, move to the middle.",
    FaceGuidance.TOO_CLOSE: "You are too close, move back a little.",
    FaceGuidance.TOO_FAR: "You are too far, move closer to the camera.",
    FaceGuidance.GOOD: "Good position, hold still.",
}

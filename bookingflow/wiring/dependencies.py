from functools import lru_cache
import logging

from bookingflow.core.config import settings
from bookingflow.application.ports.camera import CameraPort
from bookingflow.application.ports.face_detector import FaceDetectorPort
from bookingflow.application.ports.order_backend import OrderBackendPort
from bookingflow.application.ports.reservation_backend import ReservationBackendPort
from bookingflow.application.use_cases.auto_capture import AutoCaptureLoop, TickListener
from bookingflow.application.use_cases.booking_flow import GuidedBookingFlow
from bookingflow.application.use_cases.capture_sequencer import CaptureSequencer
from bookingflow.application.use_cases.enrollment import EnrollmentSubmitter
from bookingflow.application.use_cases.frame_analyzer import FrameAnalyzer
from bookingflow.application.use_cases.order_workflow import OrderWorkflowOrchestrator
from bookingflow.infrastructure.backend.http_client import BackendHttpClient
from bookingflow.infrastructure.backend.mock_backend import InMemoryOrderBackend, MockReservationBackend
from bookingflow.infrastructure.backend.order_api import HttpOrderBackend
from bookingflow.infrastructure.backend.reservation_api import HttpReservationBackend
from bookingflow.infrastructure.store.flow_store import MemoryFlowStore


def _use_mock_backend() -> bool:
    return not settings.BACKEND_ACCESS_TOKEN or settings.ENV.lower() in {"dev", "local"}


@lru_cache
def get_backend_client() -> BackendHttpClient:
    return BackendHttpClient(
        base_url=settings.BACKEND_BASE_URL,
        token_provider=lambda: settings.BACKEND_ACCESS_TOKEN,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


@lru_cache
def _mock_order_backend() -> InMemoryOrderBackend:
    return InMemoryOrderBackend()


@lru_cache
def _mock_reservation_backend() -> MockReservationBackend:
    return MockReservationBackend()


def get_order_backend() -> OrderBackendPort:
    if _use_mock_backend():
        return _mock_order_backend()
    return HttpOrderBackend(get_backend_client())


def get_reservation_backend() -> ReservationBackendPort:
    if _use_mock_backend():
        return _mock_reservation_backend()
    return HttpReservationBackend(get_backend_client())


@lru_cache
def get_flow_store() -> MemoryFlowStore:
    return MemoryFlowStore()


def new_flow() -> GuidedBookingFlow:
    logger = logging.getLogger(__name__)
    logger.debug("ENV=%s mock_backend=%s", settings.ENV, _use_mock_backend())
    reservations = get_reservation_backend()
    return GuidedBookingFlow(
        reservations=reservations,
        submitter=EnrollmentSubmitter(reservations, min_biometric_samples=settings.MIN_BIOMETRIC_SAMPLES),
        orchestrator=OrderWorkflowOrchestrator(
            get_order_backend(),
            consistency_delay_seconds=settings.CONSISTENCY_DELAY_MS / 1000,
        ),
        require_enrollment=settings.REQUIRE_ENROLLMENT_BEFORE_ORDER,
    )


def get_frame_analyzer(detector: FaceDetectorPort) -> FrameAnalyzer:
    return FrameAnalyzer(
        detector,
        threshold=settings.STABILITY_THRESHOLD,
        center_tolerance=settings.GUIDANCE_CENTER_TOLERANCE,
        min_face_area=settings.GUIDANCE_MIN_FACE_AREA,
        max_face_area=settings.GUIDANCE_MAX_FACE_AREA,
    )


def get_camera() -> CameraPort:
    # Imported here so the API process never needs OpenCV.
    from bookingflow.infrastructure.vision.opencv_camera import OpenCVCamera

    return OpenCVCamera(
        index=settings.CAMERA_INDEX,
        width=settings.CAMERA_WIDTH,
        height=settings.CAMERA_HEIGHT,
        jpeg_quality=settings.JPEG_QUALITY,
    )


def get_face_detector() -> FaceDetectorPort:
    from bookingflow.infrastructure.vision.haar_detector import HaarFaceDetector

    return HaarFaceDetector()


def get_capture_loop(
    sequencer: CaptureSequencer,
    camera: CameraPort | None = None,
    detector: FaceDetectorPort | None = None,
    on_tick: TickListener | None = None,
) -> AutoCaptureLoop:
    return AutoCaptureLoop(
        camera=camera or get_camera(),
        analyzer=get_frame_analyzer(detector or get_face_detector()),
        sequencer=sequencer,
        interval_seconds=settings.ANALYZER_INTERVAL_MS / 1000,
        on_tick=on_tick,
    )

import logging

from fastapi import FastAPI

from bookingflow.api.flows import router as flows_router
from bookingflow.core.config import settings

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"

# Order in which `extra` fields are appended to a log line.
CONTEXT_KEYS = (
    "flow_id",
    "booking_id",
    "reservation_id",
    "resource_id",
    "phase",
    "previous_phase",
    "slot_id",
    "service_id",
    "handler_id",
    "status",
    "response_code",
    "error",
)


class ContextFormatter(logging.Formatter):
    """Appends the flow context carried in `extra` as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        pairs = [
            f"{key}={getattr(record, key)}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None) not in (None, "")
        ]
        return f"{base} | {' '.join(pairs)}" if pairs else base


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter(LOG_FORMAT))
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)


configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Guided Booking Flow", version="1.0.0")

app.include_router(flows_router, tags=["flows"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

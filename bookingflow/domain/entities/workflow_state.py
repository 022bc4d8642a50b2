from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from bookingflow.domain.entities.order import OrderRequest


class WorkflowPhase(str, Enum):
    CREATE = "CREATE"
    ADD_ITEM = "ADD_ITEM"
    ASSIGN = "ASSIGN"
    CONFIRM = "CONFIRM"


@dataclass
class WorkflowState:
    request: OrderRequest
    phase: WorkflowPhase = WorkflowPhase.CREATE
    resource_id: int | None = None
    retry_count: dict[WorkflowPhase, int] = field(default_factory=lambda: {phase: 0 for phase in WorkflowPhase})
    submitting: set[WorkflowPhase] = field(default_factory=set)  # per-phase in-flight guards
    last_error: str | None = None
    completed: bool = False
    dismissed: bool = False

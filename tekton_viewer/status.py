"""
Status display helpers: phase mapping, node colours and icon descriptors.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .document import Task


class NodePhase(str, Enum):
    CACHED = "Cached"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    CONDITIONCHECKFAILED = "ConditionCheckFailed"
    ERROR = "Error"
    FAILED = "Failed"
    OMITTED = "Omitted"
    PENDING = "Pending"
    RUNNING = "Running"
    SKIPPED = "Skipped"
    SUCCEEDED = "Succeeded"
    TERMINATED = "Terminated"
    UNKNOWN = "Unknown"


# Tekton condition reasons that do not share a name with a NodePhase
_REASON_TO_PHASE: dict[str, NodePhase] = {
    "Started": NodePhase.RUNNING,
    "PodInitializing": NodePhase.PENDING,
    "TaskRunTimeout": NodePhase.FAILED,
    "PipelineRunTimeout": NodePhase.FAILED,
    "TaskRunImagePullFailed": NodePhase.FAILED,
    "CreateContainerConfigError": NodePhase.FAILED,
    "TaskRunCancelled": NodePhase.CANCELLED,
    "PipelineRunCancelled": NodePhase.CANCELLED,
    "StoppedRunFinally": NodePhase.CANCELLED,
    "CancelledRunFinally": NodePhase.CANCELLED,
    "PipelineRunStopping": NodePhase.TERMINATED,
}

_PHASE_VALUES = {phase.value: phase for phase in NodePhase}

STATUS_BG_COLORS = {
    "error": "#fce8e6",
    "not_started": "#fff",
    "running": "#e8f0fe",
    "stopped_or_skipped": "#f1f3f4",
    "succeeded": "#e6f4ea",
    "warning": "#fef7f0",
}

_PHASE_ICONS: dict[NodePhase, str] = {
    NodePhase.CACHED: "cached",
    NodePhase.CANCELLED: "stop",
    NodePhase.COMPLETED: "check_circle",
    NodePhase.CONDITIONCHECKFAILED: "skip_next",
    NodePhase.ERROR: "error",
    NodePhase.FAILED: "error",
    NodePhase.OMITTED: "skip_next",
    NodePhase.PENDING: "schedule",
    NodePhase.RUNNING: "running",
    NodePhase.SKIPPED: "skip_next",
    NodePhase.SUCCEEDED: "check_circle",
    NodePhase.TERMINATED: "stop",
    NodePhase.UNKNOWN: "help",
}


def status_to_phase(status: str | None) -> NodePhase:
    """Map a Tekton condition reason to a display phase."""
    if not status:
        return NodePhase.UNKNOWN
    if status in _PHASE_VALUES:
        return _PHASE_VALUES[status]
    return _REASON_TO_PHASE.get(status, NodePhase.UNKNOWN)


def status_to_bg_color(phase: NodePhase) -> str:
    if phase in (NodePhase.ERROR, NodePhase.FAILED):
        return STATUS_BG_COLORS["error"]
    if phase == NodePhase.RUNNING:
        return STATUS_BG_COLORS["running"]
    if phase in (NodePhase.SUCCEEDED, NodePhase.COMPLETED, NodePhase.CACHED):
        return STATUS_BG_COLORS["succeeded"]
    if phase in (
        NodePhase.CANCELLED,
        NodePhase.CONDITIONCHECKFAILED,
        NodePhase.OMITTED,
        NodePhase.SKIPPED,
        NodePhase.TERMINATED,
    ):
        return STATUS_BG_COLORS["stopped_or_skipped"]
    return STATUS_BG_COLORS["not_started"]


def status_to_icon(
    status: str | None,
    start_time: str = "",
    completion_time: str = "",
    node_message: str = "",
    execution_state: str | None = None,
) -> dict[str, Any]:
    """Icon descriptor for a node.

    A recorded execution state of ``CACHED`` turns a successful status into
    the cached phase.
    """
    phase = status_to_phase(status)
    if execution_state and execution_state.upper() == "CACHED" and phase in (
        NodePhase.SUCCEEDED,
        NodePhase.COMPLETED,
    ):
        phase = NodePhase.CACHED
    tooltip = phase.value
    if node_message:
        tooltip = f"{tooltip}: {node_message}"
    return {
        "icon": _PHASE_ICONS[phase],
        "phase": phase.value,
        "tooltip": tooltip,
        "startTime": start_time,
        "completionTime": completion_time,
        "executionState": execution_state,
    }


def parse_task_display_name(task: Task) -> str | None:
    """Display name annotated on the task spec, if any."""
    return task.display_name or None

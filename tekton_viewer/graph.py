"""
Runtime graph assembly.

Builds the run-time DAG of a PipelineRun: one node per task that has started
(or per when-guarded task whose guard input has started), with edges inferred
by :mod:`tekton_viewer.dependencies` and a computed status per node.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .dependencies import Edge, extract_edges
from .document import PipelineRun, RunRecord, Task
from .references import decode_param
from .status import (
    STATUS_BG_COLORS,
    NodePhase,
    parse_task_display_name,
    status_to_bg_color,
    status_to_icon,
    status_to_phase,
)
from .status_index import StatusIndex, build_status_index

logger = logging.getLogger("tekton_viewer.graph")

NODE_HEIGHT = 64
NODE_WIDTH = 172

# Finally (exit handler) tasks are always drawn with this colour
EXIT_HANDLER_COLOR = STATUS_BG_COLORS["warning"]

V2_PIPELINE_ANNOTATION = "pipelines.kubeflow.org/v2_pipeline"


@dataclass
class GraphNode:
    """A task node in the runtime graph."""

    id: str
    label: str
    status: str = NodePhase.PENDING.value  # raw condition reason
    phase: str = NodePhase.PENDING.value
    status_coloring: str = STATUS_BG_COLORS["not_started"]
    icon: dict[str, Any] = field(default_factory=dict)
    task_name: str = ""
    height: int = NODE_HEIGHT
    width: int = NODE_WIDTH


@dataclass
class RuntimeGraph:
    """Nodes keyed by identity plus a set of (parent, child) edges."""

    nodes: dict[str, GraphNode] = field(default_factory=dict)
    edges: set[Edge] = field(default_factory=set)

    def set_node(self, node: GraphNode) -> None:
        self.nodes[node.id] = node

    def set_edge(self, parent: str, child: str) -> None:
        self.edges.add((parent, child))


def get_status(record: RunRecord | None) -> str:
    """The first condition's reason of a run record, or Pending."""
    if record is not None and record.first_condition and record.first_condition.reason:
        return record.first_condition.reason
    return NodePhase.PENDING.value


def is_v2_pipeline(run: PipelineRun) -> bool:
    return run.annotations.get(V2_PIPELINE_ANNOTATION, "").lower() == "true"


def find_condition_tasks(tasks: list[Task], index: StatusIndex) -> set[str]:
    """Tasks without a run record whose when-guard input has one.

    These still get a node so that skipped branches are drawn.
    """
    condition_tasks: set[str] = set()
    for task in tasks:
        if task.name in index:
            continue
        for expression in task.when:
            ref = decode_param(expression.input)
            if ref.is_task_result and ref.task in index:
                condition_tasks.add(task.name)
                break
    return condition_tasks


def build_runtime_graph(
    run: PipelineRun,
    execution_states: dict[str, str] | None = None,
) -> RuntimeGraph:
    """Build the runtime graph of a parsed PipelineRun.

    *execution_states* maps pod names to externally recorded execution
    states; it is only consulted for v2 pipelines. Resolved parameter values
    are written back onto the run's task run records.
    """
    graph = RuntimeGraph()

    # Run exists but nothing has started yet
    if not run.has_status or not (run.task_runs or run.runs):
        return graph

    tasks = run.all_tasks
    index = build_status_index(run.task_runs.values(), run.runs.values())
    skipped = set(run.skipped_tasks)
    condition_tasks = find_condition_tasks(tasks, index)
    v2 = is_v2_pipeline(run)
    execution_states = execution_states or {}

    for task in tasks:
        if task.name not in index and task.name not in condition_tasks:
            continue

        task_id = index.node_id(task.name)
        for parent, child in extract_edges(task, index, run.params):
            graph.set_edge(parent, child)

        record = index.get(task.name)
        status = NodePhase.PENDING.value
        if task.name not in condition_tasks:
            status = get_status(record)
        elif task.name in skipped:
            status = NodePhase.CONDITIONCHECKFAILED.value

        phase = status_to_phase(status)
        coloring = EXIT_HANDLER_COLOR if task.is_finally else status_to_bg_color(phase)
        execution_state = execution_states.get(task_id) if v2 else None
        start_time = record.status.start_time if record is not None and record.status else ""
        completion_time = record.status.completion_time if record is not None and record.status else ""

        graph.set_node(
            GraphNode(
                id=task_id,
                label=parse_task_display_name(task) or task.name,
                status=status,
                phase=phase.value,
                status_coloring=coloring,
                icon=status_to_icon(status, start_time, completion_time, "", execution_state),
                task_name=task.name,
            )
        )

    logger.debug(f"Runtime graph for '{run.name}': {len(graph.nodes)} nodes, {len(graph.edges)} edges")
    return graph


def graph_to_dict(graph: RuntimeGraph) -> dict[str, Any]:
    """Convert a RuntimeGraph to a JSON-serializable dict for the API."""
    nodes = [
        {
            "id": node.id,
            "taskName": node.task_name,
            "label": node.label,
            "status": node.status,
            "phase": node.phase,
            "statusColoring": node.status_coloring,
            "icon": node.icon,
            "height": node.height,
            "width": node.width,
        }
        for node in sorted(graph.nodes.values(), key=lambda n: n.id)
    ]
    edges = [{"source": parent, "target": child} for parent, child in sorted(graph.edges)]
    return {"nodes": nodes, "edges": edges}

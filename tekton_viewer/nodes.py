"""
Per-node details for the side panel: parameters, volume mounts, outbound
nodes and the run-level error message.
"""

from __future__ import annotations

from .document import Param, PipelineRun, StandardRun, WorkflowNodeStatus

KeyValue = tuple[str, str]

MAIN_STEP = "main"

# Node types Argo uses for orchestration only
_VIRTUAL_NODE_TYPES = {"StepGroup", "DAG", "TaskGroup", "Retry"}

_ERROR_REASONS = {"Error", "Failed", "PipelineRunTimeout", "CouldntGetTask", "CouldntGetPipeline"}


class CyclicGraphError(ValueError):
    """Raised when outbound node resolution revisits a node."""


def get_parameters(run: PipelineRun | None) -> list[Param]:
    """Pipeline-level parameters of the run."""
    if run is None:
        return []
    return list(run.params)


def get_task_run_from_pod_name(run: PipelineRun, pod_name: str) -> StandardRun | None:
    for task_run in run.task_runs.values():
        if task_run.status and task_run.status.pod_name == pod_name:
            return task_run
    return None


def get_node_input_output_params(
    run: PipelineRun | None,
    node_id: str | None,
) -> tuple[list[KeyValue], list[KeyValue]]:
    """Input and output parameters of the node drawn as *node_id*.

    Inputs are the task run's recorded parameters, which carry resolved
    values once the runtime graph has been built.
    """
    inputs: list[KeyValue] = []
    outputs: list[KeyValue] = []
    if not node_id or run is None or not run.task_runs:
        return inputs, outputs

    for task_run in run.task_runs.values():
        status = task_run.status
        if status is None or status.pod_name != node_id:
            continue
        if status.task_spec is not None and status.task_spec.params:
            inputs = [(p.name, p.value) for p in status.task_spec.params]
        if status.results:
            outputs = [(r.name, r.value) for r in status.results]

    # Custom runs have no pod and are drawn under their task name
    for custom_run in run.runs.values():
        if custom_run.status and custom_run.pipeline_task_name == node_id and custom_run.status.results:
            outputs = [(r.name, r.value) for r in custom_run.status.results]

    return inputs, outputs


def get_node_volume_mounts(run: PipelineRun | None, node_id: str) -> list[KeyValue]:
    """``(mount_path, volume_name)`` pairs of the node's main step."""
    if run is None or not run.task_runs:
        return []
    task_run = get_task_run_from_pod_name(run, node_id)
    if task_run is None or task_run.status.task_spec is None:
        return []
    for step in task_run.status.task_spec.steps:
        if step.name == MAIN_STEP:
            return [(mount.mount_path, mount.name) for mount in step.volume_mounts]
    return []


def get_outbound_nodes(run: PipelineRun, node_id: str) -> list[str]:
    """Pod nodes that finish the execution of *node_id*.

    Follows ``outboundNodes`` through non-pod nodes. Raises
    :class:`CyclicGraphError` if a node is reached twice on one path.
    """
    return _outbound(run.nodes, node_id, set())


def _outbound(nodes: dict[str, WorkflowNodeStatus], node_id: str, visiting: set[str]) -> list[str]:
    node = nodes.get(node_id)
    if node is None:
        return []
    if node.type == "Pod":
        return [node.id]
    if node_id in visiting:
        raise CyclicGraphError(f"Cycle in outbound nodes at '{node_id}'")
    visiting.add(node_id)

    outbound: list[str] = []
    for outbound_id in node.outbound_nodes:
        out_node = nodes.get(outbound_id)
        if out_node is not None and out_node.type == "Pod":
            outbound.append(outbound_id)
        else:
            outbound.extend(_outbound(nodes, outbound_id, visiting))

    visiting.discard(node_id)
    return outbound


def is_virtual(node: WorkflowNodeStatus) -> bool:
    """True for orchestration-only nodes nested inside another node."""
    return node.type in _VIRTUAL_NODE_TYPES and bool(node.boundary_id)


def get_workflow_error(run: PipelineRun | None) -> str:
    """The run's failure message, or an empty string."""
    if run is None or not run.conditions:
        return ""
    condition = run.conditions[0]
    if condition.reason in _ERROR_REASONS and condition.message:
        return condition.message
    return ""

"""
PipelineRun status document model.

Reads a Tekton PipelineRun (JSON or YAML) and turns the raw mapping into
typed dataclasses: declared tasks, pipeline parameters, and the two kinds of
run records (task runs and custom runs) found under ``status``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .references import parse_aggregator_args

logger = logging.getLogger("tekton_viewer.document")

# First command token of the "any-task" aggregator step
ANY_TASK_COMMAND = "any-task"

DISPLAY_NAME_ANNOTATION = "pipelines.kubeflow.org/task_display_name"


@dataclass
class Param:
    """A name/value pair (parameter binding, pipeline parameter or result)."""

    name: str
    value: Any = ""


@dataclass
class WhenExpression:
    input: str | None = None
    operator: str = ""
    values: list[str] = field(default_factory=list)


@dataclass
class ConditionCheck:
    """A condition guard attached to a task."""

    condition_ref: str = ""
    params: list[Param] = field(default_factory=list)


@dataclass
class RegularStepSpec:
    name: str = ""
    command: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)


@dataclass
class AggregatorStepSpec:
    """The ``any-task`` step: waits on any of a dynamic set of upstream tasks."""

    args: list[str] = field(default_factory=list)
    upstream_tasks: list[str] = field(default_factory=list)


StepSpec = RegularStepSpec | AggregatorStepSpec


@dataclass
class Task:
    """A task declared in ``spec.pipelineSpec``."""

    name: str
    params: list[Param] = field(default_factory=list)
    when: list[WhenExpression] = field(default_factory=list)
    conditions: list[ConditionCheck] = field(default_factory=list)
    run_after: list[str] = field(default_factory=list)
    step: StepSpec | None = None
    task_ref: str | None = None
    display_name: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    is_finally: bool = False


@dataclass
class Condition:
    type: str = ""
    status: str | None = None
    reason: str = ""
    message: str = ""


@dataclass
class VolumeMount:
    name: str = ""
    mount_path: str = ""


@dataclass
class Step:
    name: str = ""
    volume_mounts: list[VolumeMount] = field(default_factory=list)


@dataclass
class TaskRunSpec:
    """The resolved task spec recorded on a run's status."""

    params: list[Param] = field(default_factory=list)
    steps: list[Step] = field(default_factory=list)


@dataclass
class RunStatus:
    pod_name: str | None = None
    conditions: list[Condition] = field(default_factory=list)
    results: list[Param] = field(default_factory=list)
    task_spec: TaskRunSpec | None = None
    start_time: str = ""
    completion_time: str = ""


@dataclass
class RunRecord:
    """Runtime state of a task, present once the task has started."""

    run_id: str
    pipeline_task_name: str
    status: RunStatus | None = None

    @property
    def pod_name(self) -> str | None:
        if self.status and self.status.pod_name:
            return self.status.pod_name
        return None

    @property
    def first_condition(self) -> Condition | None:
        if self.status and self.status.conditions:
            return self.status.conditions[0]
        return None


@dataclass
class StandardRun(RunRecord):
    """Entry of ``status.taskRuns``."""


@dataclass
class AggregatorRun(RunRecord):
    """Entry of ``status.runs`` (custom tasks such as any-task)."""


@dataclass
class WorkflowNodeStatus:
    """Entry of the Argo-style ``status.nodes`` map."""

    id: str
    type: str = ""
    boundary_id: str | None = None
    outbound_nodes: list[str] = field(default_factory=list)


@dataclass
class PipelineRun:
    """Complete parsed PipelineRun document."""

    name: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    params: list[Param] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    finally_tasks: list[Task] = field(default_factory=list)
    task_runs: dict[str, StandardRun] = field(default_factory=dict)
    runs: dict[str, AggregatorRun] = field(default_factory=dict)
    skipped_tasks: list[str] = field(default_factory=list)
    conditions: list[Condition] = field(default_factory=list)
    nodes: dict[str, WorkflowNodeStatus] = field(default_factory=dict)
    has_status: bool = False

    @property
    def all_tasks(self) -> list[Task]:
        return self.tasks + self.finally_tasks


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _parse_params(items: Any) -> list[Param]:
    params = []
    for entry in _as_list(items):
        if isinstance(entry, dict) and "name" in entry:
            params.append(Param(name=str(entry["name"]), value=entry.get("value", "")))
    return params


def _parse_step_spec(task_spec: dict) -> StepSpec | None:
    """Decode the first step, recognizing the any-task aggregator convention."""
    steps = _as_list(task_spec.get("steps"))
    if not steps or not isinstance(steps[0], dict):
        return None
    first = steps[0]
    command = [str(c) for c in _as_list(first.get("command"))]
    args = [str(a) for a in _as_list(first.get("args"))]
    if command and command[0] == ANY_TASK_COMMAND and args:
        return AggregatorStepSpec(args=args, upstream_tasks=parse_aggregator_args(args))
    return RegularStepSpec(name=str(first.get("name", "")), command=command, args=args)


def _parse_task(data: dict, is_finally: bool) -> Task:
    task_spec = _as_dict(data.get("taskSpec"))
    task_ref = _as_dict(data.get("taskRef"))
    metadata = _as_dict(task_spec.get("metadata"))
    # The display name annotation may live on either the inline spec or the ref
    annotations = _as_dict(metadata.get("annotations")) or _as_dict(
        _as_dict(task_ref.get("metadata")).get("annotations")
    )
    return Task(
        name=str(data.get("name", "")),
        params=_parse_params(data.get("params")),
        when=[
            WhenExpression(
                input=w.get("input"),
                operator=str(w.get("operator", "")),
                values=[str(v) for v in _as_list(w.get("values"))],
            )
            for w in _as_list(data.get("when"))
            if isinstance(w, dict)
        ],
        conditions=[
            ConditionCheck(
                condition_ref=str(c.get("conditionRef", "")),
                params=_parse_params(c.get("params")),
            )
            for c in _as_list(data.get("conditions"))
            if isinstance(c, dict)
        ],
        run_after=[str(n) for n in _as_list(data.get("runAfter"))],
        step=_parse_step_spec(task_spec),
        task_ref=task_ref.get("name"),
        display_name=annotations.get(DISPLAY_NAME_ANNOTATION),
        labels={str(k): str(v) for k, v in _as_dict(metadata.get("labels")).items()},
        is_finally=is_finally,
    )


def _parse_run_status(data: Any, results_key: str) -> RunStatus | None:
    if not isinstance(data, dict):
        return None
    task_spec = None
    raw_spec = data.get("taskSpec")
    if isinstance(raw_spec, dict):
        task_spec = TaskRunSpec(
            params=_parse_params(raw_spec.get("params")),
            steps=[
                Step(
                    name=str(s.get("name", "")),
                    volume_mounts=[
                        VolumeMount(name=str(v.get("name", "")), mount_path=str(v.get("mountPath", "")))
                        for v in _as_list(s.get("volumeMounts"))
                        if isinstance(v, dict)
                    ],
                )
                for s in _as_list(raw_spec.get("steps"))
                if isinstance(s, dict)
            ],
        )
    return RunStatus(
        pod_name=data.get("podName") or None,
        conditions=_parse_conditions(data.get("conditions")),
        results=_parse_params(data.get(results_key)),
        task_spec=task_spec,
        start_time=str(data.get("startTime") or ""),
        completion_time=str(data.get("completionTime") or ""),
    )


def _parse_conditions(items: Any) -> list[Condition]:
    return [
        Condition(
            type=str(c.get("type", "")),
            status=c.get("status"),
            reason=str(c.get("reason", "")),
            message=str(c.get("message", "")),
        )
        for c in _as_list(items)
        if isinstance(c, dict)
    ]


def _parse_workflow_nodes(items: Any) -> dict[str, WorkflowNodeStatus]:
    nodes: dict[str, WorkflowNodeStatus] = {}
    for node_id, node in _as_dict(items).items():
        if not isinstance(node, dict):
            continue
        nodes[str(node_id)] = WorkflowNodeStatus(
            id=str(node.get("id", node_id)),
            type=str(node.get("type", "")),
            boundary_id=node.get("boundaryID"),
            outbound_nodes=[str(n) for n in _as_list(node.get("outboundNodes"))],
        )
    return nodes


def parse_pipeline_run(data: dict | None) -> PipelineRun:
    """Parse a raw PipelineRun mapping into a :class:`PipelineRun`.

    The input mapping is never modified. Missing sections become empty
    collections; the run record map keys are copied into ``run_id``.
    """
    data = _as_dict(data)
    metadata = _as_dict(data.get("metadata"))
    spec = _as_dict(data.get("spec"))
    pipeline_spec = _as_dict(spec.get("pipelineSpec"))
    status = data.get("status")

    run = PipelineRun(
        name=str(metadata.get("name") or ""),
        annotations={str(k): str(v) for k, v in _as_dict(metadata.get("annotations")).items()},
        params=_parse_params(spec.get("params")),
        tasks=[_parse_task(t, False) for t in _as_list(pipeline_spec.get("tasks")) if isinstance(t, dict)],
        finally_tasks=[
            _parse_task(t, True) for t in _as_list(pipeline_spec.get("finally")) if isinstance(t, dict)
        ],
    )

    if not isinstance(status, dict):
        return run

    run.has_status = bool(status)
    for run_id, record in _as_dict(status.get("taskRuns")).items():
        if not isinstance(record, dict):
            continue
        run.task_runs[str(run_id)] = StandardRun(
            run_id=str(run_id),
            pipeline_task_name=str(record.get("pipelineTaskName", "")),
            status=_parse_run_status(record.get("status"), "taskResults"),
        )
    for run_id, record in _as_dict(status.get("runs")).items():
        if not isinstance(record, dict):
            continue
        run_status = _parse_run_status(record.get("status"), "results")
        if run_status is not None:
            # Custom runs never own a pod
            run_status.pod_name = None
        run.runs[str(run_id)] = AggregatorRun(
            run_id=str(run_id),
            pipeline_task_name=str(record.get("pipelineTaskName", "")),
            status=run_status,
        )
    run.skipped_tasks = [
        str(s.get("name")) for s in _as_list(status.get("skippedTasks")) if isinstance(s, dict) and s.get("name")
    ]
    run.conditions = _parse_conditions(status.get("conditions"))
    run.nodes = _parse_workflow_nodes(status.get("nodes"))
    return run


def load_document(path: str | Path) -> dict:
    """Read a PipelineRun document from disk (YAML or JSON)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No PipelineRun document found at {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is not None and not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a PipelineRun mapping")
    return data or {}


def load_pipeline_run(path: str | Path) -> PipelineRun:
    """Read and parse a PipelineRun document from disk."""
    return parse_pipeline_run(load_document(path))


def load_execution_states(path: str | Path | None) -> dict[str, str]:
    """Read a pod name → execution state map, if one was provided."""
    if not path:
        return {}
    path = Path(path)
    if not path.exists():
        logger.warning(f"Execution state file {path} not found, ignoring")
        return {}
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        logger.warning(f"Execution state file {path} is not a mapping, ignoring")
        return {}
    return {str(k): str(v) for k, v in data.items()}

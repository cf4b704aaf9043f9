"""
Dependency inference for a single pipeline task.

A task's inbound edges are not declared in one place: they come from result
references in its parameters, from its condition guards, from when
expressions, from the any-task aggregator step and from ``runAfter``. Each
source is cross-referenced against the status index, since only tasks that
have started running can be the parent of an edge.
"""

from __future__ import annotations

import logging
from typing import Any

from .document import AggregatorStepSpec, ConditionCheck, Param, Task
from .references import decode_param
from .status_index import StatusIndex

logger = logging.getLogger("tekton_viewer.dependencies")

Edge = tuple[str, str]


def check_params(
    component: Task | ConditionCheck,
    index: StatusIndex,
    pipeline_params: list[Param],
    owner_id: str | None = None,
) -> set[Edge]:
    """Edges implied by the result references in *component*'s parameters.

    When *owner_id* is given (condition guards) the edges are attributed to
    that node. Resolved values are written back onto the consuming task's
    recorded parameters, if the task has a run record.
    """
    edges: set[Edge] = set()
    if owner_id is None:
        child_id = index.node_id(component.name) if isinstance(component, Task) else ""
    else:
        child_id = owner_id

    record = index.get(component.name) if isinstance(component, Task) else None
    recorded_params = (
        record.status.task_spec.params
        if record is not None and record.status is not None and record.status.task_spec is not None
        else []
    )

    for binding in component.params:
        value: Any = binding.value if binding.value is not None else ""
        ref = decode_param(binding.value)

        if ref.is_pipeline_param:
            for pipeline_param in pipeline_params:
                if pipeline_param.name == ref.param:
                    value = pipeline_param.value
        elif ref.is_task_result:
            if index.succeeded(ref.task):
                edges.add((index.node_id(ref.task), child_id))
                parent = index.get(ref.task)
                for result in parent.status.results:
                    if result.name == ref.param:
                        value = result.value
            else:
                logger.debug(
                    f"'{child_id}' references '{ref.task}' which has not succeeded, no edge"
                )

        for recorded in recorded_params:
            if recorded.name == binding.name:
                recorded.value = value

    return edges


def _when_edges(task: Task, task_id: str, index: StatusIndex) -> set[Edge]:
    edges: set[Edge] = set()
    for expression in task.when:
        ref = decode_param(expression.input)
        if ref.is_task_result and ref.task in index:
            edges.add((index.node_id(ref.task), task_id))
    return edges


def _aggregator_edges(task: Task, task_id: str, index: StatusIndex) -> set[Edge]:
    if not isinstance(task.step, AggregatorStepSpec):
        return set()
    edges: set[Edge] = set()
    for parent in task.step.upstream_tasks:
        if parent in index:
            edges.add((index.node_id(parent), task_id))
        else:
            logger.debug(f"any-task '{task.name}' waits on '{parent}' which has not started")
    return edges


def _run_after_edges(task: Task, task_id: str, index: StatusIndex) -> set[Edge]:
    return {
        (index.node_id(parent), task_id)
        for parent in task.run_after
        if index.succeeded(parent)
    }


def extract_edges(task: Task, index: StatusIndex, pipeline_params: list[Param]) -> set[Edge]:
    """All inbound edges of *task* as ``(parent_id, child_id)`` pairs.

    Result references and ``runAfter`` only link parents that succeeded;
    when expressions and the any-task step link any parent that has started.
    """
    task_id = index.node_id(task.name)
    edges = check_params(task, index, pipeline_params)
    for condition in task.conditions:
        edges |= check_params(condition, index, pipeline_params, owner_id=task_id)
    edges |= _when_edges(task, task_id, index)
    edges |= _aggregator_edges(task, task_id, index)
    edges |= _run_after_edges(task, task_id, index)
    return edges

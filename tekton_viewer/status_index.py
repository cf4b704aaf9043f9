"""
Lookup from pipeline task name to its run record.
"""

from __future__ import annotations

from collections.abc import Iterable

from .document import AggregatorRun, RunRecord, StandardRun

SUCCEEDED_CONDITION = "Succeeded"

# Condition statuses that mean the task has not (yet) succeeded
_NOT_SUCCEEDED_STATUSES = {"False", "Unknown"}


class StatusIndex:
    """Run records keyed by their owning pipeline task name.

    Only records that already carry a status are indexed. Task runs are
    indexed before custom runs, so when both name the same task the custom
    run takes precedence.
    """

    def __init__(self) -> None:
        self._records: dict[str, RunRecord] = {}

    def add(self, record: RunRecord) -> None:
        if record.status is None:
            return
        self._records[record.pipeline_task_name] = record

    def get(self, task_name: str | None) -> RunRecord | None:
        if not task_name:
            return None
        return self._records.get(task_name)

    def __contains__(self, task_name: object) -> bool:
        return task_name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def node_id(self, task_name: str) -> str:
        """Graph identity of a task: its pod name, else the task name."""
        record = self.get(task_name)
        if record is not None and record.pod_name:
            return record.pod_name
        return task_name

    def succeeded(self, task_name: str | None) -> bool:
        """True if the task's first recorded condition is a success condition."""
        record = self.get(task_name)
        if record is None:
            return False
        condition = record.first_condition
        if condition is None or condition.type != SUCCEEDED_CONDITION:
            return False
        return condition.status not in _NOT_SUCCEEDED_STATUSES


def build_status_index(
    task_runs: Iterable[StandardRun],
    runs: Iterable[AggregatorRun] = (),
) -> StatusIndex:
    """Index task runs, then custom runs (last write wins)."""
    index = StatusIndex()
    for record in task_runs:
        index.add(record)
    for record in runs:
        index.add(record)
    return index

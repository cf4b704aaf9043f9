"""Tests for per-task dependency inference."""

from tekton_viewer.document import (
    AggregatorRun,
    AggregatorStepSpec,
    Condition,
    ConditionCheck,
    Param,
    RunStatus,
    StandardRun,
    Task,
    TaskRunSpec,
    WhenExpression,
)
from tekton_viewer.dependencies import check_params, extract_edges
from tekton_viewer.references import parse_aggregator_args
from tekton_viewer.status_index import build_status_index


def _run(task, succeeded=True, results=None, params=None, pod=True):
    condition = Condition(
        type="Succeeded",
        status="True" if succeeded else "False",
        reason="Succeeded" if succeeded else "Failed",
    )
    return StandardRun(
        run_id=f"tr-{task}",
        pipeline_task_name=task,
        status=RunStatus(
            pod_name=f"{task}-pod" if pod else None,
            conditions=[condition],
            results=[Param(k, v) for k, v in (results or {}).items()],
            task_spec=TaskRunSpec(params=[Param(k, v) for k, v in (params or {}).items()]),
        ),
    )


def _index(*records):
    return build_status_index(records)


# ---------------------------------------------------------------------------
# Gated sources: result references and runAfter
# ---------------------------------------------------------------------------


def test_result_reference_from_succeeded_parent():
    """A succeeded parent gives an edge and resolves the value."""
    task = Task(name="b", params=[Param("x", "$(tasks.a.results.out)")])
    index = _index(_run("a", results={"out": "42"}), _run("b", params={"x": ""}))
    assert extract_edges(task, index, []) == {("a-pod", "b-pod")}
    assert index.get("b").status.task_spec.params[0].value == "42"


def test_result_reference_from_failed_parent():
    """No edge and no resolution when the parent did not succeed."""
    task = Task(name="b", params=[Param("x", "$(tasks.a.results.out)")])
    index = _index(_run("a", succeeded=False, results={"out": "42"}), _run("b", params={"x": ""}))
    assert extract_edges(task, index, []) == set()
    assert index.get("b").status.task_spec.params[0].value == "$(tasks.a.results.out)"


def test_result_reference_to_unstarted_parent():
    """A reference to a task with no record gives no edge."""
    task = Task(name="b", params=[Param("x", "$(tasks.a.results.out)")])
    assert extract_edges(task, _index(_run("b")), []) == set()


def test_run_after_gating():
    """runAfter only links started, succeeded parents."""
    task = Task(name="c", run_after=["a", "b", "missing"])
    index = _index(_run("a"), _run("b", succeeded=False), _run("c"))
    assert extract_edges(task, index, []) == {("a-pod", "c-pod")}


def test_parent_without_pod_uses_task_name():
    """A parent without a pod is named by its task name."""
    task = Task(name="b", run_after=["a"])
    index = _index(_run("a", pod=False), _run("b"))
    assert extract_edges(task, index, []) == {("a", "b-pod")}


# ---------------------------------------------------------------------------
# Ungated sources: when expressions and any-task
# ---------------------------------------------------------------------------


def test_when_edge_ignores_parent_outcome():
    """When-guard edges are drawn even from a failed parent."""
    task = Task(name="b", when=[WhenExpression(input="$(tasks.a.results.flag)", operator="in", values=["x"])])
    index = _index(_run("a", succeeded=False))
    assert extract_edges(task, index, []) == {("a-pod", "b")}


def test_when_edge_requires_started_parent():
    """When-guard edges need the parent to have a record."""
    task = Task(name="b", when=[WhenExpression(input="$(tasks.a.results.flag)")])
    assert extract_edges(task, _index(_run("z")), []) == set()


def test_when_with_literal_or_missing_input():
    """Literal or missing when inputs give no edge."""
    task = Task(name="b", when=[WhenExpression(input=None), WhenExpression(input="literal")])
    assert extract_edges(task, _index(_run("a")), []) == set()


def test_aggregator_edges_ignore_parent_outcome():
    """any-task links every started upstream task regardless of outcome."""
    args = ["--taskList", "a,b,missing", "-c", "$(results_c_output) == 1"]
    task = Task(name="wait", step=AggregatorStepSpec(args=args, upstream_tasks=parse_aggregator_args(args)))
    wait = AggregatorRun(run_id="r-wait", pipeline_task_name="wait", status=RunStatus())
    index = build_status_index([_run("a"), _run("b", succeeded=False), _run("c", succeeded=False)], [wait])
    assert extract_edges(task, index, []) == {("a-pod", "wait"), ("b-pod", "wait"), ("c-pod", "wait")}


# ---------------------------------------------------------------------------
# Condition guards and pipeline parameters
# ---------------------------------------------------------------------------


def test_condition_guard_edges_attributed_to_owner():
    """Condition parameters link the parent to the owning task."""
    condition = ConditionCheck(condition_ref="check", params=[Param("v", "$(tasks.a.results.out)")])
    task = Task(name="b", conditions=[condition])
    index = _index(_run("a", results={"out": "1"}), _run("b"))
    assert extract_edges(task, index, []) == {("a-pod", "b-pod")}


def test_check_params_with_owner():
    """check_params uses the owner id as the child."""
    condition = ConditionCheck(condition_ref="check", params=[Param("v", "$(tasks.a.results.out)")])
    edges = check_params(condition, _index(_run("a")), [], owner_id="owner")
    assert edges == {("a-pod", "owner")}


def test_pipeline_param_resolution_produces_no_edge():
    """Pipeline and literal parameters resolve without edges."""
    task = Task(name="b", params=[Param("msg", "$(params.greeting)"), Param("lit", "plain")])
    index = _index(_run("b", params={"msg": "", "lit": ""}))
    edges = extract_edges(task, index, [Param("greeting", "hi")])
    assert edges == set()
    recorded = {p.name: p.value for p in index.get("b").status.task_spec.params}
    assert recorded == {"msg": "hi", "lit": "plain"}


def test_duplicate_sources_collapse():
    """The same parent reached through several sources yields one edge."""
    task = Task(
        name="b",
        params=[Param("x", "$(tasks.a.results.out)"), Param("y", "$(tasks.a.results.other)")],
        when=[WhenExpression(input="$(tasks.a.results.out)")],
        run_after=["a"],
    )
    index = _index(_run("a", results={"out": "1"}), _run("b"))
    assert extract_edges(task, index, []) == {("a-pod", "b-pod")}

"""
Parameter reference decoding.

Tekton parameter values and when-expression inputs may reference a pipeline
parameter (``$(params.name)``) or a result of another task
(``$(tasks.<task>.results.<name>)``). Anything else is a literal.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("tekton_viewer.references")

_PARAMS_PREFIX = "$(params."
_REF_OPEN = "$("
_REF_CLOSE = ")"

# Options of the any-task aggregator step
TASK_LIST_FLAG = "--taskList"
CONDITION_FLAG = "-c"

# Condition args embed the upstream task as e.g. "$(results_flip-coin_output) == heads"
_RE_RESULTS_MARKER = re.compile(r"results_(.*?)_output")


@dataclass(frozen=True)
class ParamReference:
    """Decoded value expression. Both fields unset means a literal."""

    task: str | None = None
    param: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.task is None and self.param is None

    @property
    def is_pipeline_param(self) -> bool:
        return not self.task and self.param is not None

    @property
    def is_task_result(self) -> bool:
        return bool(self.task)


def decode_param(expr: Any) -> ParamReference:
    """Decode a parameter value expression.

    ``$(params.lr)`` → ``ParamReference(param="lr")``;
    ``$(tasks.train.results.model)`` → ``ParamReference(task="train", param="model")``.
    Strings matching neither shape, and non-strings, decode to an empty
    reference.
    """
    if not isinstance(expr, str):
        return ParamReference()

    if expr.startswith(_PARAMS_PREFIX) and expr.endswith(_REF_CLOSE):
        return ParamReference(param=expr[len(_PARAMS_PREFIX):-1])

    if _REF_OPEN in expr and _REF_CLOSE in expr:
        parts = expr.split(".")
        if len(parts) < 2:
            return ParamReference()
        last = parts[-1]
        return ParamReference(task=parts[1], param=last[:-1] if last.endswith(_REF_CLOSE) else last)

    return ParamReference()


def parse_aggregator_args(args: list[str]) -> list[str]:
    """Extract upstream task names from the any-task step arguments.

    ``--taskList a,b`` names tasks directly; ``-c <expr>`` names one task via
    the ``results_<task>_output`` marker embedded in the condition.
    """
    upstream: list[str] = []
    next_is_task_list = False
    next_is_condition = False
    for arg in args:
        if arg == TASK_LIST_FLAG:
            next_is_task_list = True
        elif arg == CONDITION_FLAG:
            next_is_condition = True
        elif next_is_task_list:
            upstream.extend(name for name in arg.split(",") if name)
            next_is_task_list = False
        elif next_is_condition:
            m = _RE_RESULTS_MARKER.search(arg)
            if m and m.group(1):
                upstream.append(m.group(1))
            else:
                logger.debug(f"any-task condition {arg!r} has no results marker")
            next_is_condition = False
    return upstream

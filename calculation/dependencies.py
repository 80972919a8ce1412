"""
calculation/dependencies.py

Metric-to-metric dependency extraction and evaluation ordering.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from calculation.formula import FormulaConfig, MetricReferenceFormula, iter_children

logger = logging.getLogger(__name__)

_VISITING = 1
_DONE = 2


def extract_dependencies(config: FormulaConfig) -> set[str]:
    """Every metric code referenced through a ``metric`` node anywhere in *config*."""

    found: set[str] = set()
    stack: list[FormulaConfig] = [config]
    while stack:
        node = stack.pop()
        if isinstance(node, MetricReferenceFormula):
            found.add(node.metric_code)
        stack.extend(iter_children(node))
    return found


def topological_sort(dependencies: Mapping[str, Iterable[str]]) -> list[str]:
    """
    Order metric codes so that every code follows the codes it depends on.

    Depth-first postorder over *dependencies* in insertion order. A back edge
    (cycle) is logged and skipped, so the result always contains every key and
    every referenced code exactly once.

    Parameters
    ----------
    dependencies:
        Metric code -> codes it references. Referenced codes need not be keys.

    Returns
    -------
    list[str]
        Dependencies first, dependents after.
    """

    state: dict[str, int] = {}
    ordered: list[str] = []

    def _visit(code: str) -> None:
        state[code] = _VISITING
        for dependency in sorted(dependencies.get(code, ())):
            current = state.get(dependency)
            if current == _VISITING:
                logger.warning(
                    "Circular metric dependency %s -> %s; edge skipped",
                    code,
                    dependency,
                )
                continue
            if current is None:
                _visit(dependency)
        state[code] = _DONE
        ordered.append(code)

    for code in dependencies:
        if code not in state:
            _visit(code)
    return ordered

"""Dependency graph for formula cells with topological ordering."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from sheetcalc.calc._parser import all_references


class DependencyGraph:
    """Tracks formula cell dependencies for evaluation ordering.

    Ordering is deterministic: ties are broken by the order in which
    formulas were added.
    """

    __slots__ = ("dependencies", "dependents", "formulas", "marker")

    def __init__(self, marker: str = "=") -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[str, set[str]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}
        # cell -> formula string, in insertion order
        self.formulas: dict[str, str] = {}
        self.marker = marker

    def add_formula(self, label: str, formula: str) -> None:
        """Register a formula cell and its dependencies."""
        self.formulas[label] = formula
        refs = all_references(formula, self.marker)

        self.dependencies[label] = set(refs)

        for ref in refs:
            if ref not in self.dependents:
                self.dependents[ref] = set()
            self.dependents[ref].add(label)

    def partition(self) -> tuple[list[str], list[str]]:
        """Split formula cells into ``(evaluation order, unresolvable cells)``.

        Uses Kahn's algorithm. Unresolvable cells sit on a cycle (a cell
        referencing itself counts) or depend on one.
        """
        rank = {cell: i for i, cell in enumerate(self.formulas)}
        if not rank:
            return [], []

        # Only count deps that are themselves formula cells
        in_degree: dict[str, int] = {
            cell: sum(1 for dep in self.dependencies.get(cell, ()) if dep in rank)
            for cell in rank
        }

        # Start with formula cells that have no formula-cell dependencies
        queue: deque[str] = deque(cell for cell in rank if in_degree[cell] == 0)

        order: list[str] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            # Reduce in-degree for dependent formula cells
            for dep in sorted(self.dependents.get(cell, ()), key=lambda c: rank.get(c, -1)):
                if dep in rank:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        resolved = set(order)
        unresolved = [cell for cell in rank if cell not in resolved]
        return order, unresolved

    @classmethod
    def from_formulas(
        cls, formulas: Iterable[tuple[str, str]], marker: str = "="
    ) -> DependencyGraph:
        """Build a dependency graph from ``(label, formula)`` pairs."""
        graph = cls(marker)
        for label, formula in formulas:
            graph.add_formula(label, formula)
        return graph

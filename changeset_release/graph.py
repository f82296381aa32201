"""Dependency graph utilities.

Builds an immutable graph of internal dependencies for a package set and
answers the questions release planning needs: who depends on a package
(directly or transitively), what a package needs built first, whether the
workspace has cycles, and a dependency-first order for the whole set.

Packages are mapped to dense integer indices and every traversal runs over
an explicit stack, so deep graphs never hit the interpreter recursion limit.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from pydantic import BaseModel

from .errors import DuplicatePackageError, UnknownPackageError
from .models import Package

# Colours for cycle detection
_WHITE, _GRAY, _BLACK = 0, 1, 2


class GraphStats(BaseModel):
    """Aggregate counts for a dependency graph."""

    total_packages: int
    internal_packages: int
    external_packages: int
    has_circular_dependencies: bool
    circular_dependency_count: int


class DependencyGraph:
    """Directed graph of package → internal dependency edges.

    Only edges whose target is another package in the same set are
    recorded; third-party requirements are invisible to the graph. The
    forward adjacency (dependencies) and reverse adjacency (dependents)
    are exact inverses of each other.

    Instances are built with build_graph() and never change afterwards.
    """

    def __init__(
        self,
        packages: tuple[Package, ...],
        forward: tuple[tuple[int, ...], ...],
        reverse: tuple[tuple[int, ...], ...],
        internal_prefix: str = "",
    ) -> None:
        self._packages = packages
        self._index = {pkg.name: i for i, pkg in enumerate(packages)}
        self._forward = forward
        self._reverse = reverse
        self.internal_prefix = internal_prefix

    # -- lookup ---------------------------------------------------------

    @property
    def packages(self) -> list[Package]:
        return list(self._packages)

    @property
    def package_count(self) -> int:
        return len(self._packages)

    def get_package(self, name: str) -> Package | None:
        idx = self._index.get(name)
        return None if idx is None else self._packages[idx]

    def has_package(self, name: str) -> bool:
        return name in self._index

    def internal_packages(self) -> list[Package]:
        return [p for p in self._packages if p.is_internal(self.internal_prefix)]

    def external_packages(self) -> list[Package]:
        return [p for p in self._packages if not p.is_internal(self.internal_prefix)]

    def _require(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise UnknownPackageError(name) from None

    def _names(self, indices: Iterable[int]) -> list[str]:
        return [self._packages[i].name for i in indices]

    # -- edges ----------------------------------------------------------

    def dependencies(self, name: str) -> dict[str, str]:
        """Internal dependencies of `name` as {dependency: constraint}."""
        idx = self._require(name)
        pkg = self._packages[idx]
        return {
            self._packages[dep].name: pkg.dependencies[self._packages[dep].name]
            for dep in self._forward[idx]
        }

    def dependents(self, name: str) -> dict[str, str]:
        """Direct dependents of `name` as {dependent: its constraint on name}."""
        idx = self._require(name)
        return {
            self._packages[d].name: self._packages[d].dependencies[name]
            for d in self._reverse[idx]
        }

    def dependency_count(self, name: str) -> int:
        return len(self._forward[self._require(name)])

    def dependent_count(self, name: str) -> int:
        return len(self._reverse[self._require(name)])

    # -- traversals -----------------------------------------------------

    def direct_dependents(self, name: str) -> list[str]:
        """Names of packages that declare a dependency on `name`."""
        return self._names(self._reverse[self._require(name)])

    def all_dependents(self, name: str) -> list[str]:
        """Every package that depends on `name`, directly or transitively.

        Depth-first from the direct dependents; each name appears once, in
        the order it is first discovered. In a cycle the starting package
        can be reached again and is then listed like any other dependent.
        """
        start = self._require(name)
        found: list[int] = []
        emitted: set[int] = set()
        expanded = {start}
        stack: list[Iterator[int]] = [iter(self._reverse[start])]

        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                continue
            if nxt not in emitted:
                emitted.add(nxt)
                found.append(nxt)
            if nxt not in expanded:
                expanded.add(nxt)
                stack.append(iter(self._reverse[nxt]))

        return self._names(found)

    def _post_order(self, roots: Iterable[int], visited: set[int]) -> list[int]:
        """Depth-first post-order over forward edges, skipping `visited`."""
        order: list[int] = []
        for root in roots:
            if root in visited:
                continue
            visited.add(root)
            stack: list[tuple[int, Iterator[int]]] = [(root, iter(self._forward[root]))]
            while stack:
                node, pending = stack[-1]
                for dep in pending:
                    if dep not in visited:
                        visited.add(dep)
                        stack.append((dep, iter(self._forward[dep])))
                        break
                else:
                    stack.pop()
                    order.append(node)
        return order

    def dependency_chain(self, name: str) -> list[str]:
        """Transitive dependencies of `name` followed by `name` itself.

        Every dependency comes before anything that depends on it, so the
        result is a build order for `name`.

        Example:
            If A depends on B, and B depends on C:
            dependency_chain("A") → ["C", "B", "A"]
        """
        start = self._require(name)
        return self._names(self._post_order([start], set()))

    def topological_order(self) -> list[str]:
        """Every package exactly once, dependencies before dependents.

        Always terminates. With cycles the result is not a valid
        topological order; check has_circular_dependencies() first.
        """
        return self._names(self._post_order(range(len(self._packages)), set()))

    def circular_dependencies(self) -> list[tuple[str, str]]:
        """Back-edges found by a three-colour DFS over forward edges.

        Each pair is (package, dependency) where following the dependency
        leads back into the path currently being explored. Runs in
        O(packages + edges).
        """
        colour = [_WHITE] * len(self._packages)
        back_edges: list[tuple[int, int]] = []

        for root in range(len(self._packages)):
            if colour[root] != _WHITE:
                continue
            colour[root] = _GRAY
            stack: list[tuple[int, Iterator[int]]] = [(root, iter(self._forward[root]))]
            while stack:
                node, pending = stack[-1]
                for dep in pending:
                    if colour[dep] == _WHITE:
                        colour[dep] = _GRAY
                        stack.append((dep, iter(self._forward[dep])))
                        break
                    if colour[dep] == _GRAY:
                        back_edges.append((node, dep))
                else:
                    colour[node] = _BLACK
                    stack.pop()

        return [
            (self._packages[a].name, self._packages[b].name) for a, b in back_edges
        ]

    def has_circular_dependencies(self) -> bool:
        return bool(self.circular_dependencies())

    def stats(self) -> GraphStats:
        internal = self.internal_packages()
        cycles = self.circular_dependencies()
        return GraphStats(
            total_packages=len(self._packages),
            internal_packages=len(internal),
            external_packages=len(self._packages) - len(internal),
            has_circular_dependencies=bool(cycles),
            circular_dependency_count=len(cycles),
        )


def build_graph(
    packages: Iterable[Package], internal_prefix: str = ""
) -> DependencyGraph:
    """Build a dependency graph from a package set.

    Pure: the same input always yields an equivalent graph, and the
    packages themselves are not modified.

    Args:
        packages: The full workspace package set, names unique.
        internal_prefix: Name prefix that marks internal packages (used by
            internal_packages()/external_packages() and stats()).

    Raises:
        DuplicatePackageError: If two packages share a name.
    """
    ordered = tuple(packages)
    index: dict[str, int] = {}
    for i, pkg in enumerate(ordered):
        if pkg.name in index:
            raise DuplicatePackageError(pkg.name)
        index[pkg.name] = i

    forward: list[list[int]] = [[] for _ in ordered]
    reverse: list[list[int]] = [[] for _ in ordered]
    for i, pkg in enumerate(ordered):
        for dep_name in pkg.dependencies:
            # External requirements are not part of the graph
            dep = index.get(dep_name)
            if dep is None:
                continue
            forward[i].append(dep)
            reverse[dep].append(i)

    return DependencyGraph(
        ordered,
        tuple(tuple(edges) for edges in forward),
        tuple(tuple(edges) for edges in reverse),
        internal_prefix,
    )

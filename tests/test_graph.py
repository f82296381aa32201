"""Tests for changeset_release.graph."""

from __future__ import annotations

import pytest

from changeset_release.errors import DuplicatePackageError, UnknownPackageError
from changeset_release.graph import DependencyGraph, build_graph
from changeset_release.models import Package


def _pkg(name: str, version: str = "1.0.0", **deps: str) -> Package:
    """Package with dependency constraints given as keyword args (_ → -)."""
    return Package(
        name=name,
        version=version,
        dependencies={k.replace("_", "-"): v for k, v in deps.items()},
    )


def _linear() -> DependencyGraph:
    # a → b → c
    return build_graph(
        [
            _pkg("a", b="^1.0.0"),
            _pkg("b", c="^1.0.0"),
            _pkg("c"),
        ]
    )


def _diamond() -> DependencyGraph:
    return build_graph(
        [
            _pkg("top", left="^1.0.0", right="^1.0.0"),
            _pkg("left", bottom="^1.0.0"),
            _pkg("right", bottom="~1.0.0"),
            _pkg("bottom"),
        ]
    )


class TestBuildGraph:
    def test_external_deps_ignored(self) -> None:
        graph = build_graph(
            [
                _pkg("a", b="^1.0.0", requests=">=2.0"),
                _pkg("b"),
            ]
        )
        assert graph.dependencies("a") == {"b": "^1.0.0"}
        assert graph.dependency_count("a") == 1

    def test_duplicate_names_raise(self) -> None:
        with pytest.raises(DuplicatePackageError, match="'a'"):
            build_graph([_pkg("a"), _pkg("a", version="2.0.0")])

    def test_empty(self) -> None:
        graph = build_graph([])
        assert graph.package_count == 0
        assert graph.topological_order() == []
        assert graph.circular_dependencies() == []

    def test_adjacency_is_inverse(self) -> None:
        graph = _diamond()
        for pkg in graph.packages:
            for dep in graph.dependencies(pkg.name):
                assert pkg.name in graph.direct_dependents(dep)
            for dependent in graph.direct_dependents(pkg.name):
                assert pkg.name in graph.dependencies(dependent)

    def test_input_packages_unchanged(self) -> None:
        packages = [_pkg("a", b="^1.0.0"), _pkg("b")]
        build_graph(packages)
        assert packages[0].dependencies == {"b": "^1.0.0"}


class TestLookup:
    def test_get_package(self) -> None:
        graph = _linear()
        pkg = graph.get_package("b")
        assert pkg is not None
        assert pkg.name == "b"
        assert graph.get_package("missing") is None

    def test_has_package(self) -> None:
        graph = _linear()
        assert graph.has_package("a")
        assert not graph.has_package("z")

    def test_unknown_name_raises(self) -> None:
        graph = _linear()
        with pytest.raises(UnknownPackageError, match="'z'"):
            graph.all_dependents("z")
        with pytest.raises(UnknownPackageError):
            graph.dependency_chain("z")
        with pytest.raises(UnknownPackageError):
            graph.dependencies("z")

    def test_dependents_with_constraints(self) -> None:
        graph = _diamond()
        assert graph.dependents("bottom") == {"left": "^1.0.0", "right": "~1.0.0"}
        assert graph.dependent_count("bottom") == 2


class TestDependents:
    def test_isolated_package_has_none(self) -> None:
        graph = build_graph([_pkg("solo"), _pkg("other")])
        assert graph.direct_dependents("solo") == []
        assert graph.all_dependents("solo") == []

    def test_direct(self) -> None:
        assert _linear().direct_dependents("c") == ["b"]

    def test_transitive(self) -> None:
        assert _linear().all_dependents("c") == ["b", "a"]

    def test_discovery_order_without_duplicates(self) -> None:
        # left is explored before right; top is reached first through left
        assert _diamond().all_dependents("bottom") == ["left", "top", "right"]

    def test_top_of_graph_has_none(self) -> None:
        assert _linear().all_dependents("a") == []

    def test_cycle_terminates(self) -> None:
        graph = build_graph(
            [_pkg("a", b="^1.0.0"), _pkg("b", a="^1.0.0")]
        )
        result = graph.all_dependents("a")
        assert result == ["b", "a"]
        assert len(result) == len(set(result))


class TestOrdering:
    def test_dependency_chain(self) -> None:
        assert _linear().dependency_chain("a") == ["c", "b", "a"]

    def test_dependency_chain_leaf(self) -> None:
        assert _linear().dependency_chain("c") == ["c"]

    def test_dependency_chain_diamond_visits_once(self) -> None:
        chain = _diamond().dependency_chain("top")
        assert chain == ["bottom", "left", "right", "top"]

    def test_topological_order_linear(self) -> None:
        assert _linear().topological_order() == ["c", "b", "a"]

    def test_topological_order_diamond(self) -> None:
        result = _diamond().topological_order()
        assert result.index("bottom") < result.index("left")
        assert result.index("bottom") < result.index("right")
        assert result.index("left") < result.index("top")
        assert result.index("right") < result.index("top")

    def test_topological_order_no_deps_keeps_input_order(self) -> None:
        graph = build_graph([_pkg(n) for n in ("x", "a", "m")])
        assert graph.topological_order() == ["x", "a", "m"]

    def test_topological_order_with_cycle_lists_everything_once(self) -> None:
        graph = build_graph(
            [_pkg("a", b="^1.0.0"), _pkg("b", a="^1.0.0")]
        )
        result = graph.topological_order()
        assert len(result) == 2
        assert set(result) == {"a", "b"}

    def test_deep_chain_does_not_recurse(self) -> None:
        depth = 5000
        packages = [
            _pkg(f"p{i}", **{f"p{i + 1}": "^1.0.0"}) for i in range(depth)
        ]
        packages.append(_pkg(f"p{depth}"))
        graph = build_graph(packages)

        assert graph.topological_order()[0] == f"p{depth}"
        assert len(graph.all_dependents(f"p{depth}")) == depth
        assert graph.dependency_chain("p0")[-1] == "p0"
        assert not graph.has_circular_dependencies()


class TestCycles:
    def test_acyclic(self) -> None:
        graph = _diamond()
        assert graph.circular_dependencies() == []
        assert not graph.has_circular_dependencies()

    def test_two_node_cycle(self) -> None:
        graph = build_graph(
            [_pkg("a", b="^1.0.0"), _pkg("b", a="^1.0.0")]
        )
        assert graph.circular_dependencies() == [("b", "a")]
        assert graph.has_circular_dependencies()

    def test_three_node_cycle(self) -> None:
        graph = build_graph(
            [
                _pkg("a", b="^1.0.0"),
                _pkg("b", c="^1.0.0"),
                _pkg("c", a="^1.0.0"),
            ]
        )
        assert graph.circular_dependencies() == [("c", "a")]

    def test_self_dependency(self) -> None:
        graph = build_graph([_pkg("a", a="^1.0.0")])
        assert graph.circular_dependencies() == [("a", "a")]


class TestStats:
    def test_counts(self) -> None:
        graph = build_graph(
            [
                _pkg("acme-core"),
                _pkg("acme-cli", acme_core="^1.0.0"),
                _pkg("vendored-lib"),
            ],
            internal_prefix="acme-",
        )
        stats = graph.stats()
        assert stats.total_packages == 3
        assert stats.internal_packages == 2
        assert stats.external_packages == 1
        assert not stats.has_circular_dependencies
        assert stats.circular_dependency_count == 0
        assert [p.name for p in graph.external_packages()] == ["vendored-lib"]

    def test_cycle_counts(self) -> None:
        graph = build_graph(
            [_pkg("a", b="^1.0.0"), _pkg("b", a="^1.0.0")]
        )
        stats = graph.stats()
        assert stats.has_circular_dependencies
        assert stats.circular_dependency_count == 1

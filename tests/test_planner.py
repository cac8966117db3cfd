"""Tests for the sequential dependency planner, slot bookkeeping and hoisting."""

import pytest
import semantic_version

from common.errors import FetchError, UnsatisfiableRangeError
from conftest import DIAMOND, NAMED_ROOT, SCENARIO_SHARED_CHILD, SCENARIO_SINGLE
from metadata.cache import MetadataCache
from planner.hoist import hoist_to_root
from planner.planner import DependencyPlanner, as_dependencies, child_location
from planner.state import PlanState
from versioning.models import Dependency, InstallationPlanEntry as Entry, ResolutionKey
from versioning.resolvers.npm import NpmVersionResolver


def _planner(registry):
    return DependencyPlanner(MetadataCache(registry))


class TestScenarios:

    def test_single_package(self, fake_registry):
        plan = _planner(fake_registry(SCENARIO_SINGLE)).plan({"a": "^1.0.0"})

        assert list(plan) == [Entry("a", "1.2.0", None)]

    def test_shared_child_is_nested_then_hoisted(self, fake_registry):
        plan = _planner(fake_registry(SCENARIO_SHARED_CHILD)).plan({"a": "^1.0.0", "b": "^1.0.0"})

        assert list(plan) == [
            Entry("a", "1.0.0", None),
            Entry("c", "1.0.0", "a"),
            Entry("b", "1.0.0", None),
            Entry("c", "1.0.0", "b"),
            Entry("c", "1.0.0", "root", hoisted=True),
        ]
        assert [e.install_path for e in plan if e.name == "c"] == [
            "a/node_modules/c",
            "b/node_modules/c",
            "c",
        ]

    def test_unsatisfiable_dependency_aborts(self, fake_registry):
        registry = fake_registry({
            "a": {"1.0.0": {"b": "^2.0.0"}},
            "b": {"1.0.0": {}},
        })

        with pytest.raises(UnsatisfiableRangeError) as exc_info:
            _planner(registry).plan({"a": "^1.0.0"})

        assert exc_info.value.package_name == "b"

    def test_repeated_declaration_merges_into_one_slot(self, fake_registry):
        registry = fake_registry(SCENARIO_SINGLE)

        plan = _planner(registry).plan([
            Dependency("a", "^1.0.0"),
            Dependency("a", "~1.0.0"),
        ])

        assert list(plan) == [Entry("a", "1.2.0", None)]
        assert registry.calls == ["a"]


class TestPlannerBehaviour:

    def test_nested_locations(self, fake_registry):
        registry = fake_registry({
            "a": {"1.0.0": {"b": "*"}},
            "b": {"1.0.0": {"c": "*"}},
            "c": {"1.0.0": {}},
        })

        plan = _planner(registry).plan({"a": "*"})

        assert [(e.name, e.install_location) for e in plan] == [
            ("a", None),
            ("b", "a"),
            ("c", "a/node_modules/b"),
            ("b", "root"),
            ("c", "root"),
        ]

    def test_children_follow_manifest_order(self, fake_registry):
        registry = fake_registry({
            "a": {"1.0.0": {"z": "*", "m": "*", "b": "*"}},
            "z": {"1.0.0": {}},
            "m": {"1.0.0": {}},
            "b": {"1.0.0": {}},
        })

        plan = _planner(registry).plan({"a": "*"})

        assert [e.name for e in plan if e.install_location == "a"] == ["z", "m", "b"]
        assert registry.calls == ["a", "z", "m", "b"]

    def test_registry_queried_once_per_name(self, fake_registry):
        registry = fake_registry(DIAMOND)

        plan = _planner(registry).plan({"app": "^1.0.0", "shared": "^1.0.0"})

        assert sorted(registry.calls) == sorted(set(registry.calls))
        assert [e for e in plan if e.name == "shared" and e.is_root] == [Entry("shared", "1.1.0", None)]

    def test_entries_satisfy_first_sighting_range(self, fake_registry):
        registry = fake_registry(DIAMOND)
        plan = _planner(registry).plan({"app": "^1.0.0"})

        # Each non-hoisted entry is the resolution of the range its parent declared.
        for entry in plan:
            if entry.is_root:
                continue
            parent_name = entry.install_location.rsplit("/", 1)[-1]
            parent = next(
                e for e in plan
                if e.name == parent_name and e.install_path == entry.install_location
            )
            declared = DIAMOND[parent_name][parent.version][entry.name]
            assert semantic_version.Version(entry.version) in semantic_version.NpmSpec(declared)

    def test_entries_unique(self, fake_registry):
        plan = _planner(fake_registry(DIAMOND)).plan({"app": "^1.0.0", "left": "1.0.0"})
        keys = [(e.name, e.version, e.install_location, e.hoisted) for e in plan]
        assert len(keys) == len(set(keys))

    def test_diamond_layout(self, fake_registry):
        plan = _planner(fake_registry(DIAMOND)).plan({"app": "^1.0.0"})

        assert list(plan) == [
            Entry("app", "1.0.0", None),
            Entry("left", "1.1.0", "app"),
            Entry("shared", "1.1.0", "app/node_modules/left"),
            Entry("leaf", "2.0.3", "app/node_modules/left"),
            Entry("right", "1.0.0", "app"),
            Entry("shared", "1.1.0", "app/node_modules/right"),
            Entry("leaf", "2.0.3", "app/node_modules/right"),
            Entry("shared", "1.1.0", "app"),
            Entry("left", "1.1.0", "root", hoisted=True),
            Entry("shared", "1.1.0", "root", hoisted=True),
            Entry("leaf", "2.0.3", "root", hoisted=True),
            Entry("right", "1.0.0", "root", hoisted=True),
        ]

    def test_conflicting_versions_both_hoisted(self, fake_registry):
        """Hoisting picks no winner: two versions of c end up at root."""
        registry = fake_registry({
            "a": {"1.0.0": {"c": "^1.0.0"}},
            "b": {"1.0.0": {"c": "^2.0.0"}},
            "c": {"1.0.0": {}, "2.0.0": {}},
        })

        plan = _planner(registry).plan({"a": "*", "b": "*"})

        assert [e for e in plan if e.name == "c" and e.is_root] == [
            Entry("c", "1.0.0", "root", hoisted=True),
            Entry("c", "2.0.0", "root", hoisted=True),
        ]

    def test_top_level_package_named_root(self, fake_registry):
        """Children of a package called ``root`` do not share slots with the root itself."""
        plan = _planner(fake_registry(NAMED_ROOT)).plan({"root": "*", "x": "^1.0.0"})

        assert list(plan) == [
            Entry("root", "1.0.0", None),
            Entry("x", "2.0.0", "root"),
            Entry("x", "1.0.0", None),
            Entry("x", "2.0.0", "root", hoisted=True),
        ]
        nested = plan[1]
        assert not nested.is_root
        assert nested.install_path == "root/node_modules/x"
        assert [e.version for e in plan.at_root() if e.name == "x"] == ["1.0.0", "2.0.0"]

    def test_cycle_terminates(self, fake_registry):
        registry = fake_registry({
            "a": {"1.0.0": {"b": "^1.0.0"}},
            "b": {"1.0.0": {"a": "^1.0.0"}},
        })

        plan = _planner(registry).plan({"a": "^1.0.0"})

        assert list(plan) == [
            Entry("a", "1.0.0", None),
            Entry("b", "1.0.0", "a"),
            Entry("a", "1.0.0", "a/node_modules/b"),
            Entry("b", "1.0.0", "root", hoisted=True),
        ]

    def test_fetch_error_aborts(self, fake_registry):
        registry = fake_registry({"a": {"1.0.0": {"ghost": "*"}}})

        with pytest.raises(FetchError) as exc_info:
            _planner(registry).plan({"a": "*"})

        assert exc_info.value.package_name == "ghost"

    def test_state_not_shared_between_calls(self, fake_registry):
        planner = _planner(fake_registry(SCENARIO_SINGLE))
        assert planner.plan({"a": "^1.0.0"}) == planner.plan({"a": "^1.0.0"})

    def test_empty_manifest(self, fake_registry):
        assert len(_planner(fake_registry({})).plan({})) == 0


class TestPlanState:

    def test_claim_then_merge(self):
        state = PlanState(NpmVersionResolver())

        assert state.claim(Dependency("a", "^1.0.0"), None) is True
        assert state.claim(Dependency("a", "^2.0.0"), None) is False
        assert state.claim(Dependency("a", "^1.0.0"), "x") is True

        pending = state.pending[ResolutionKey(None, "a")]
        assert pending.merged_version_range == "^1.0.0 || ^2.0.0"
        assert pending.install_location is None

    def test_merge_does_not_change_resolution(self, fake_registry):
        """A later, wider range at the same slot leaves the resolved version alone."""
        registry = fake_registry(SCENARIO_SINGLE)

        plan = _planner(registry).plan([Dependency("a", "~1.0.0"), Dependency("a", "^2.0.0")])

        assert list(plan) == [Entry("a", "1.0.0", None)]

    def test_ledger_and_order(self):
        state = PlanState(NpmVersionResolver())
        state.place("c", "1.0.0", "b", (2,))
        state.place("a", "1.0.0", None, (0,))
        state.place("c", "1.0.0", "a", (1,))

        assert [e.install_location for e in state.entries()] == [None, "a", "b"]
        ledger = state.usage_ledger()
        assert list(ledger) == [("a", "1.0.0"), ("c", "1.0.0")]
        assert ledger[("c", "1.0.0")].count == 2
        assert ledger[("c", "1.0.0")].install_locations == ["a", "b"]
        assert ledger[("a", "1.0.0")].install_locations == ["root"]


class TestHoist:

    def _state(self):
        state = PlanState(NpmVersionResolver())
        state.place("a", "1.0.0", None, (0,))
        state.place("c", "1.0.0", "a", (1,))
        state.place("c", "2.0.0", "b", (2,))
        return state

    def test_adds_missing_root_entries(self):
        state = self._state()
        hoisted = hoist_to_root(state.entries(), state.usage_ledger())

        assert hoisted[:3] == state.entries()
        assert hoisted[3:] == [Entry("c", "1.0.0", "root", hoisted=True), Entry("c", "2.0.0", "root", hoisted=True)]

    def test_idempotent(self):
        state = self._state()
        ledger = state.usage_ledger()
        once = hoist_to_root(state.entries(), ledger)
        assert hoist_to_root(once, ledger) == once

    def test_top_level_counts_as_root(self):
        state = self._state()
        hoisted = hoist_to_root(state.entries(), state.usage_ledger())
        assert [e for e in hoisted if e.name == "a"] == [Entry("a", "1.0.0", None)]


def test_as_dependencies_accepts_mapping_and_sequence():
    assert as_dependencies({"a": "^1"}) == [Dependency("a", "^1")]
    deps = [Dependency("a", "^1"), Dependency("a", "^2")]
    assert as_dependencies(deps) == deps
    assert as_dependencies(iter(deps)) == deps


def test_child_location():
    assert child_location(None, "a") == "a"
    assert child_location("a", "b") == "a/node_modules/b"

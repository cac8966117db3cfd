"""Installation planning: dependency walk, slot bookkeeping and hoisting."""

from .async_planner import AsyncDependencyPlanner
from .hoist import hoist_to_root
from .planner import DependencyPlanner, as_dependencies, child_location
from .state import PlanState

__all__ = [
    "AsyncDependencyPlanner",
    "DependencyPlanner",
    "PlanState",
    "as_dependencies",
    "child_location",
    "hoist_to_root",
]

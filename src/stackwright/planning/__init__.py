"""Plan engine: apply/destroy ordering and configuration diffing."""

from stackwright.planning.models import ORPHAN_MARK, RETIRE_SUFFIX, Action, Plan, PlanMode, PlanStep
from stackwright.planning.planner import diff_config, plan, plan_destroy, topological_order

__all__ = [
    "Action",
    "Plan",
    "PlanMode",
    "PlanStep",
    "ORPHAN_MARK",
    "RETIRE_SUFFIX",
    "diff_config",
    "plan",
    "plan_destroy",
    "topological_order",
]

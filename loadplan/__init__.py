from .exceptions import PlanningError, PlanningInputError
from .model.constraints import ConstraintsEngine, ValidationResult, Violation
from .model.distribution import (
    FleetSuggestion,
    VehicleDistributor,
    calculate_order_totals,
    calculate_utilization,
    estimate_costs,
    generate_drop_points,
    group_by_route,
    suggest_fleet,
)
from .model.entities import (
    ContainerInstance,
    ContainerType,
    FleetEntry,
    Item,
    LoadPlan,
    Placement,
    PlanningOptions,
    PlanWarning,
    Unit,
    expand_units,
)
from .model.optimizer import LoadOptimizer
from .model.rules import DEFAULT_RULES, ConstraintRules

__all__ = [
    "PlanningError",
    "PlanningInputError",
    "ConstraintsEngine",
    "ValidationResult",
    "Violation",
    "FleetSuggestion",
    "VehicleDistributor",
    "calculate_order_totals",
    "calculate_utilization",
    "estimate_costs",
    "generate_drop_points",
    "group_by_route",
    "suggest_fleet",
    "ContainerInstance",
    "ContainerType",
    "FleetEntry",
    "Item",
    "LoadPlan",
    "Placement",
    "PlanningOptions",
    "PlanWarning",
    "Unit",
    "expand_units",
    "LoadOptimizer",
    "DEFAULT_RULES",
    "ConstraintRules",
]

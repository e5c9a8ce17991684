from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from ..exceptions import PlanningInputError


@dataclass(frozen=True)
class ConstraintRules:
    """
    Tunable thresholds used by the constraints engine, the packers and the
    plan-level checks. All lengths are millimetres, weights kilograms.
    """

    # cuboidal stacking
    support_ratio: float = 0.8
    stacking_weight_ratio: float = 1.5
    max_stack_height: float = 2500.0
    ground_epsilon: float = 1.0

    # weight distribution
    cog_tolerance: float = 0.1

    # cylindrical stacking / nesting
    min_horizontal_supports: int = 2
    max_nesting_depth: int = 3
    nesting_clearance: float = 50.0
    nesting_margin: float = 10.0
    nesting_offset_fraction: float = 0.8
    ring_spacing: float = 1.1
    horizontal_spacing: float = 1.1
    cylinder_grid_fallback: bool = True
    wedge_height_fraction: float = 0.3

    # mixed material
    separate_types: bool = True
    buffer_zone: float = 50.0

    # safety
    hazardous_separation: float = 1000.0
    temperature_tolerance: float = 5.0

    # free-space bookkeeping
    min_free_space: float = 10.0

    # axle model, positions as fractions of container length, limits in percent
    front_axle_position: float = 0.2
    rear_axle_position: float = 0.8
    front_axle_min: float = 20.0
    front_axle_max: float = 40.0

    # heavy-item-high advisory
    heavy_item_weight: float = 50.0
    heavy_item_height: float = 1000.0

    def with_overrides(self, overrides: Optional[Mapping[str, Any]] = None) -> "ConstraintRules":
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        unknown = sorted(k for k in overrides if k not in known)
        if unknown:
            raise PlanningInputError(
                f"Unknown stacking rule(s): {', '.join(unknown)}",
                [f"unknown rule '{k}'" for k in unknown],
            )
        return replace(self, **dict(overrides))


DEFAULT_RULES = ConstraintRules()

"""
Aggregate load metrics for one container.

- Weighted center of gravity over placement centroids
- Plan-wide center-of-gravity tolerance check
- Two-axle load model (front share of total)
- Weight / volume utilization against the container type
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from .entities import AxleLoads, ContainerType, Placement
from .rules import DEFAULT_RULES, ConstraintRules


def totals(placements: Sequence[Placement]) -> Tuple[float, float]:
    """(weight kg, volume m^3) of the placed units."""
    weight = sum(p.weight for p in placements)
    volume = sum(p.unit.volume for p in placements)
    return weight, volume


def center_of_gravity(placements: Sequence[Placement]) -> Tuple[float, float, float]:
    total = sum(p.weight for p in placements)
    if total <= 0:
        return (0.0, 0.0, 0.0)
    mx = my = mz = 0.0
    for p in placements:
        cx, cy, cz = p.center
        mx += p.weight * cx
        my += p.weight * cy
        mz += p.weight * cz
    return (mx / total, my / total, mz / total)


def check_center_of_gravity(
    cog: Tuple[float, float, float],
    container_type: ContainerType,
    rules: ConstraintRules = DEFAULT_RULES,
) -> Optional[str]:
    """Returns a message when the horizontal CoG offset exceeds the tolerance on either axis."""
    tol = rules.cog_tolerance
    offset_x = abs(cog[0] - container_type.length / 2.0)
    offset_z = abs(cog[2] - container_type.width / 2.0)
    max_x = container_type.length * tol
    max_z = container_type.width * tol
    if offset_x > max_x or offset_z > max_z:
        return (
            f"Center of gravity offset exceeds limits. X: {offset_x:.2f}mm (max: {max_x:.2f}mm), "
            f"Z: {offset_z:.2f}mm (max: {max_z:.2f}mm)"
        )
    return None


def axle_loads(
    placements: Sequence[Placement],
    container_type: ContainerType,
    rules: ConstraintRules = DEFAULT_RULES,
) -> AxleLoads:
    """
    Each unit contributes w * max(0, 1 - |x_c - axle| / L) to each axle, with
    the axles at fixed fractions of the bay length.
    """
    length = container_type.length
    front_axle = length * rules.front_axle_position
    rear_axle = length * rules.rear_axle_position
    front = rear = 0.0
    for p in placements:
        cx = p.center[0]
        front += p.weight * max(0.0, 1.0 - abs(cx - front_axle) / length)
        rear += p.weight * max(0.0, 1.0 - abs(cx - rear_axle) / length)
    both = front + rear
    share = front / both * 100.0 if both > 0 else 0.0
    return AxleLoads(front=front, rear=rear, front_share=share)


def check_axle_loads(loads: AxleLoads, rules: ConstraintRules = DEFAULT_RULES) -> Optional[str]:
    if loads.front + loads.rear <= 0:
        return None
    if loads.front_share < rules.front_axle_min or loads.front_share > rules.front_axle_max:
        return (
            f"Front axle load {loads.front_share:.1f}% is outside acceptable range "
            f"({rules.front_axle_min:.0f}-{rules.front_axle_max:.0f}%)"
        )
    return None


def utilization(weight: float, volume: float, container_type: ContainerType) -> Tuple[float, float]:
    """(weight %, volume %) of the container type's capacity."""
    return (
        weight / container_type.max_weight * 100.0,
        volume / container_type.volume * 100.0,
    )

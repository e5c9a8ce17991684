from __future__ import annotations

from dataclasses import dataclass
from math import hypot
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .entities import ContainerType, Placement, Severity, Unit
from .geometry import (
    GEOM_EPS,
    boxes_to_array,
    check_bounds_within_container,
    count_supporters_numba,
    min_gap_numba,
    support_area_numba,
)
from .rules import DEFAULT_RULES, ConstraintRules

Position = Tuple[float, float, float]


@dataclass(frozen=True)
class Violation:
    kind: str
    severity: Severity
    message: str
    hard: bool = True


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    violations: Tuple[Violation, ...]
    score: float

    @property
    def hard_violations(self) -> Tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.hard)

    @property
    def kinds(self) -> Tuple[str, ...]:
        return tuple(v.kind for v in self.violations)


class ConstraintsEngine:
    """
    Stateless validator and scorer for a single candidate placement.

    `validate` looks only at its arguments and the rules/container given at
    construction, so calling it twice with the same inputs gives the same
    violations and score. Hard violations make the result invalid; soft ones
    (center of gravity, buffer zone) are advisories that only lower the score.
    """

    def __init__(self, container_type: ContainerType, rules: ConstraintRules = DEFAULT_RULES):
        self.container_type = container_type
        self.rules = rules

    def validate(
        self,
        unit: Unit,
        position: Position,
        existing: Sequence[Placement],
        nesting_depth: int = 0,
    ) -> ValidationResult:
        dims = unit.dims
        pos = np.array(position, dtype=np.float64)
        dims_arr = np.array(dims, dtype=np.float64)
        placed = boxes_to_array([p.box for p in existing])
        supporters = self.supporters_of(position, dims, existing)

        violations: List[Violation] = []
        violations.extend(self.check_boundary(position, dims))
        violations.extend(self.check_weight(unit, position, existing))
        if unit.is_cylinder:
            violations.extend(self.check_cylindrical_stacking(unit, position, pos, dims_arr, placed, nesting_depth))
        violations.extend(self.check_stacking(unit, position, supporters, placed))
        violations.extend(self.check_material(unit, pos, dims_arr, existing))
        violations.extend(self.check_safety(unit, pos, dims_arr, existing))

        score = self.score(unit, position, pos, dims_arr, placed, len(violations))
        valid = not any(v.hard for v in violations)
        return ValidationResult(valid=valid, violations=tuple(violations), score=score)

    def audit(self, placements: Sequence[Placement]) -> Dict[str, ValidationResult]:
        """Re-validate every placement of a finished plan against all the others."""
        results: Dict[str, ValidationResult] = {}
        for i, p in enumerate(placements):
            others = [q for j, q in enumerate(placements) if j != i]
            results[p.uid] = self.validate(p.unit, (p.x, p.y, p.z), others, nesting_depth=p.nesting_depth)
        return results

    # ----- helpers -----

    def is_elevated(self, y: float) -> bool:
        return y > self.rules.ground_epsilon

    def supporters_of(
        self,
        position: Position,
        dims: Tuple[float, float, float],
        existing: Sequence[Placement],
    ) -> List[Placement]:
        """Placements whose top face touches the candidate's base with positive footprint overlap."""
        x, y, z = position
        out: List[Placement] = []
        for p in existing:
            if abs(p.top - y) > self.rules.ground_epsilon:
                continue
            if min(x + dims[0], p.x + p.dims[0]) - max(x, p.x) <= GEOM_EPS:
                continue
            if min(z + dims[2], p.z + p.dims[2]) - max(z, p.z) <= GEOM_EPS:
                continue
            out.append(p)
        return out

    def support_ratio(self, position: Position, dims: Tuple[float, float, float], placed: np.ndarray) -> float:
        if not self.is_elevated(position[1]):
            return 1.0
        area = dims[0] * dims[2]
        if area <= 0 or placed.shape[0] == 0:
            return 0.0
        covered = support_area_numba(
            np.array(position, dtype=np.float64),
            np.array(dims, dtype=np.float64),
            placed,
            self.rules.ground_epsilon,
        )
        return min(1.0, covered / area)

    # ----- checks -----

    def check_boundary(self, position: Position, dims: Tuple[float, float, float]) -> List[Violation]:
        L, H, W = self.container_type.bounds
        x, y, z = position
        if check_bounds_within_container(x, y, z, dims[0], dims[1], dims[2], L, H, W, GEOM_EPS):
            return []
        return [
            Violation(
                "boundary_violation",
                "high",
                f"Unit exceeds container bounds at ({x:.0f}, {y:.0f}, {z:.0f}) "
                f"with extents {dims[0]:.0f}x{dims[1]:.0f}x{dims[2]:.0f}",
            )
        ]

    def weight_limit_violation(self, unit: Unit, loaded_weight: float) -> Optional[Violation]:
        """Position-independent payload check for adding unit on top of loaded_weight kg."""
        ct = self.container_type
        total = loaded_weight + unit.weight
        if total <= ct.max_weight + 1e-9:
            return None
        return Violation(
            "weight_limit_exceeded",
            "high",
            f"Total weight {total:.1f}kg exceeds container limit {ct.max_weight:.1f}kg",
        )

    def check_weight(self, unit: Unit, position: Position, existing: Sequence[Placement]) -> List[Violation]:
        ct = self.container_type
        out: List[Violation] = []
        loaded = sum(p.weight for p in existing)
        total = loaded + unit.weight
        over = self.weight_limit_violation(unit, loaded)
        if over is not None:
            out.append(over)

        dims = unit.dims
        cx = position[0] + dims[0] / 2.0
        cz = position[2] + dims[2] / 2.0
        mx = sum(p.weight * p.center[0] for p in existing) + unit.weight * cx
        mz = sum(p.weight * p.center[2] for p in existing) + unit.weight * cz
        cog_x, cog_z = mx / total, mz / total
        tol = self.rules.cog_tolerance
        if abs(cog_x - ct.length / 2.0) > tol * ct.length or abs(cog_z - ct.width / 2.0) > tol * ct.width:
            out.append(
                Violation(
                    "center_of_gravity_violation",
                    "high",
                    f"Center of gravity ({cog_x:.0f}, {cog_z:.0f}) outside {tol:.0%} of container center",
                    hard=False,
                )
            )
        return out

    def check_stacking(
        self,
        unit: Unit,
        position: Position,
        supporters: Sequence[Placement],
        placed: np.ndarray,
    ) -> List[Violation]:
        rules = self.rules
        item = unit.item
        y = position[1]
        out: List[Violation] = []

        if self.is_elevated(y):
            if not item.stackable:
                out.append(
                    Violation(
                        "non_stackable_violation",
                        "high",
                        f"Non-stackable unit {unit.uid} cannot be placed above the floor",
                    )
                )
            below_blocked = [p.uid for p in supporters if not p.item.stackable]
            if below_blocked:
                out.append(
                    Violation(
                        "non_stackable_violation",
                        "high",
                        f"Unit {unit.uid} rests on non-stackable unit(s) {', '.join(below_blocked)}",
                    )
                )

        for p in supporters:
            if p.weight < unit.weight / rules.stacking_weight_ratio:
                out.append(
                    Violation(
                        "heavy_above_light",
                        "medium",
                        f"Unit {unit.uid} ({unit.weight:.1f}kg) rests on lighter unit {p.uid} ({p.weight:.1f}kg)",
                    )
                )
                break

        if not unit.is_cylinder and self.is_elevated(y):
            ratio = self.support_ratio(position, unit.dims, placed)
            if ratio < rules.support_ratio - 1e-9:
                out.append(
                    Violation(
                        "insufficient_support",
                        "high",
                        f"Unit {unit.uid} has only {ratio * 100:.1f}% base support "
                        f"(minimum {rules.support_ratio * 100:.0f}% required)",
                    )
                )

        top = y + unit.dims[1]
        if top > rules.max_stack_height + GEOM_EPS:
            out.append(
                Violation(
                    "stack_height_exceeded",
                    "medium",
                    f"Stack height {top:.0f}mm exceeds limit {rules.max_stack_height:.0f}mm",
                )
            )
        return out

    def check_cylindrical_stacking(
        self,
        unit: Unit,
        position: Position,
        pos: np.ndarray,
        dims_arr: np.ndarray,
        placed: np.ndarray,
        nesting_depth: int,
    ) -> List[Violation]:
        rules = self.rules
        out: List[Violation] = []
        if unit.is_horizontal and self.is_elevated(position[1]):
            supports = int(count_supporters_numba(pos, dims_arr, placed, rules.ground_epsilon))
            if supports < rules.min_horizontal_supports:
                out.append(
                    Violation(
                        "rolling_risk",
                        "high",
                        f"Horizontal cylinder {unit.uid} at height {position[1]:.0f}mm has "
                        f"{supports} support(s), {rules.min_horizontal_supports} required",
                    )
                )
        if unit.is_horizontal and unit.item.fragile:
            out.append(
                Violation(
                    "fragile_horizontal",
                    "high",
                    f"Fragile cylinder {unit.uid} must not be placed horizontally",
                )
            )
        if nesting_depth > rules.max_nesting_depth:
            out.append(
                Violation(
                    "nesting_depth_exceeded",
                    "medium",
                    f"Nesting depth {nesting_depth} exceeds limit {rules.max_nesting_depth}",
                )
            )
        return out

    def check_material(
        self,
        unit: Unit,
        pos: np.ndarray,
        dims_arr: np.ndarray,
        existing: Sequence[Placement],
    ) -> List[Violation]:
        rules = self.rules
        if not rules.separate_types or rules.buffer_zone <= 0:
            return []
        others = [p.box for p in existing if p.unit.shape != unit.shape]
        if not others:
            return []
        gap = min_gap_numba(pos, dims_arr, boxes_to_array(others))
        if gap < rules.buffer_zone - GEOM_EPS:
            return [
                Violation(
                    "buffer_zone_violation",
                    "low",
                    f"Unit {unit.uid} is {gap:.0f}mm from a different material type "
                    f"(buffer {rules.buffer_zone:.0f}mm)",
                    hard=False,
                )
            ]
        return []

    def check_safety(
        self,
        unit: Unit,
        pos: np.ndarray,
        dims_arr: np.ndarray,
        existing: Sequence[Placement],
    ) -> List[Violation]:
        rules = self.rules
        item = unit.item
        out: List[Violation] = []
        if item.hazardous:
            hazardous = [p.box for p in existing if p.item.hazardous]
            if hazardous:
                gap = min_gap_numba(pos, dims_arr, boxes_to_array(hazardous))
                if gap < rules.hazardous_separation - GEOM_EPS:
                    out.append(
                        Violation(
                            "hazardous_separation",
                            "critical",
                            f"Hazardous unit {unit.uid} is {gap:.0f}mm from another hazardous unit "
                            f"(minimum {rules.hazardous_separation:.0f}mm)",
                        )
                    )
        if item.temperature_controlled:
            clashes = sorted(
                {
                    p.item.id
                    for p in existing
                    if p.item.temperature_controlled
                    and abs(p.item.target_temperature - item.target_temperature) > rules.temperature_tolerance
                }
            )
            if clashes:
                out.append(
                    Violation(
                        "temperature_incompatibility",
                        "high",
                        f"Unit {unit.uid} ({item.target_temperature}°) cannot share a container with "
                        f"{', '.join(clashes)}",
                    )
                )
        return out

    # ----- scoring -----

    def score(
        self,
        unit: Unit,
        position: Position,
        pos: np.ndarray,
        dims_arr: np.ndarray,
        placed: np.ndarray,
        violation_count: int,
    ) -> float:
        ct = self.container_type
        cx = position[0] + dims_arr[0] / 2.0
        cz = position[2] + dims_arr[2] / 2.0
        center_distance = hypot(cx - ct.length / 2.0, cz - ct.width / 2.0)
        value = 100.0 - position[1] / 100.0 - center_distance / 10.0
        if not unit.is_cylinder:
            value += self.support_ratio(position, unit.dims, placed) * 20.0
        value -= violation_count * 10.0
        return max(0.0, float(value))

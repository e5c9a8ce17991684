from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .constraints import ConstraintsEngine, ValidationResult, Violation
from .entities import Box, ContainerType, Placement, Unit
from .geometry import GEOM_EPS, FreeSpaceSet, Occupancy, check_bounds_within_container
from .rules import DEFAULT_RULES, ConstraintRules


class PlanningSession:
    """
    Per-container, per-run state shared by the cuboidal and cylindrical packers.

    Holds one Occupancy arena, the free-space set and the committed placements,
    so both packers see each other's volumes. Rejected candidates and notices
    are kept per unit uid for the optimizer's warnings.
    """

    def __init__(
        self,
        container_type: ContainerType,
        rules: ConstraintRules = DEFAULT_RULES,
        engine: Optional[ConstraintsEngine] = None,
    ):
        self.container_type = container_type
        self.rules = rules
        self.engine = engine or ConstraintsEngine(container_type, rules)
        self.occupancy = Occupancy()
        L, H, W = container_type.bounds
        self.free_spaces = FreeSpaceSet(L, H, W, min_size=rules.min_free_space)
        self.placements: List[Placement] = []
        self.rejections: Dict[str, List[Violation]] = {}
        self.notices: List[Tuple[Unit, Violation]] = []
        self.advisories: List[Tuple[Placement, Violation]] = []

    @property
    def total_weight(self) -> float:
        return sum(p.weight for p in self.placements)

    def over_weight_limit(self, unit: Unit) -> bool:
        """True, with the rejection logged, when the unit's weight alone no longer fits the payload."""
        violation = self.engine.weight_limit_violation(unit, self.total_weight)
        if violation is None:
            return False
        self.reject(unit, [violation])
        return True

    def is_free(self, box: Box) -> bool:
        """Inside the bay and clear of every committed volume."""
        L, H, W = self.container_type.bounds
        x, y, z, dx, dy, dz = box
        if not check_bounds_within_container(x, y, z, dx, dy, dz, L, H, W, GEOM_EPS):
            return False
        return not self.occupancy.intersects(box)

    def evaluate(self, unit: Unit, position: Tuple[float, float, float], nesting_depth: int = 0) -> ValidationResult:
        return self.engine.validate(unit, position, self.placements, nesting_depth=nesting_depth)

    def commit(self, placement: Placement, result: Optional[ValidationResult] = None) -> int:
        index = self.occupancy.insert(placement.box)
        self.free_spaces.subtract(placement.box)
        self.placements.append(placement)
        self.rejections.pop(placement.uid, None)
        if result is not None:
            self.advisories.extend((placement, v) for v in result.violations if not v.hard)
        return index

    def reject(self, unit: Unit, violations) -> None:
        log = self.rejections.setdefault(unit.uid, [])
        for v in violations:
            if v.hard and all(v.kind != seen.kind for seen in log):
                log.append(v)

    def notice(self, unit: Unit, violation: Violation) -> None:
        self.notices.append((unit, violation))

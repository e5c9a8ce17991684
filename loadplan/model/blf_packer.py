from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from .constraints import ValidationResult
from .entities import Placement, Unit
from .session import PlanningSession

logger = logging.getLogger(__name__)


def blf_order(units: Sequence[Unit]) -> List[Unit]:
    """Largest volume first, then heavier line (unit weight x quantity); stable for ties."""
    return sorted(units, key=lambda u: (-u.volume, -u.item.total_weight))


class BottomLeftFill:
    """Bottom-Left Fill packer for box units over the session's free-space set."""

    def __init__(self, session: PlanningSession):
        self.session = session

    def find_best_position_for_item(self, unit: Unit) -> Optional[Tuple[float, float, float, ValidationResult]]:
        """
        Scan the free spaces in (y, x, z) order and return the first min corner
        that is clear of the shared occupancy and passes the constraints engine.

        Returns:
            (x, y, z, validation) or None if no free space accepts the unit
        """
        session = self.session
        if session.over_weight_limit(unit):
            return None
        dims = unit.dims
        for space in session.free_spaces.candidates(dims):
            x, y, z = space.corner
            box = (x, y, z, dims[0], dims[1], dims[2])
            if not session.is_free(box):
                continue
            result = session.evaluate(unit, (x, y, z))
            if not result.valid:
                session.reject(unit, result.violations)
                logger.debug(
                    f"{unit.uid} rejected at ({x:.0f}, {y:.0f}, {z:.0f}): "
                    f"{', '.join(v.kind for v in result.hard_violations)}"
                )
                continue
            return x, y, z, result
        return None

    def pack(self, units: Sequence[Unit]) -> Tuple[List[Placement], List[Unit]]:
        placed: List[Placement] = []
        unused: List[Unit] = []

        for unit in blf_order(units):
            if unit.is_cylinder:
                unused.append(unit)
                continue
            found = self.find_best_position_for_item(unit)
            if found is None:
                unused.append(unit)
                continue
            x, y, z, result = found
            placement = Placement(unit=unit, x=x, y=y, z=z, dims=unit.dims)
            self.session.commit(placement, result)
            placed.append(placement)

        logger.info(f"BLF packing complete: {len(placed)} placed, {len(unused)} unused")
        return placed, unused

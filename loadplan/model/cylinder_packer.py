from __future__ import annotations

import logging
from math import cos, floor, pi, sin
from typing import Iterator, List, Optional, Sequence, Tuple

from .constraints import ValidationResult, Violation
from .entities import Placement, SupportWedge, Unit
from .session import PlanningSession

logger = logging.getLogger(__name__)

WEDGE_LENGTH = 100.0
WEDGE_WIDTH = 200.0
MAX_RINGS = 50


class CylinderPacker:
    """
    Places circular-footprint units: vertical units by nesting, then
    concentric rings around the bay center, then (optionally) a floor grid;
    horizontal units row-major on the floor and on top of existing loads.
    """

    def __init__(self, session: PlanningSession):
        self.session = session
        self.rules = session.rules

    # ----- public -----

    def pack(self, units: Sequence[Unit]) -> Tuple[List[Placement], List[Unit]]:
        vertical: List[Unit] = []
        horizontal: List[Unit] = []
        for unit in units:
            if not unit.is_cylinder:
                continue
            if unit.is_horizontal and unit.item.fragile:
                self.session.notice(
                    unit,
                    Violation(
                        "fragile_horizontal",
                        "high",
                        f"Fragile cylinder {unit.uid} requested horizontal; loaded upright instead",
                    ),
                )
                unit = unit.reoriented("vertical")
            (horizontal if unit.is_horizontal else vertical).append(unit)

        placed: List[Placement] = []
        unused: List[Unit] = []

        vertical.sort(key=lambda u: -u.item.diameter)
        for unit in vertical:
            placement = self.place_vertical(unit)
            if placement is None:
                unused.append(unit)
            else:
                placed.append(placement)

        for unit in horizontal:
            placement = self.place_horizontal(unit)
            if placement is None:
                unused.append(unit)
            else:
                placed.append(placement)

        logger.info(f"Cylinder packing complete: {len(placed)} placed, {len(unused)} unused")
        return placed, unused

    def place_vertical(self, unit: Unit) -> Optional[Placement]:
        if self.session.over_weight_limit(unit):
            return None
        if unit.item.nesting:
            nested = self.find_nesting_position(unit)
            if nested is not None:
                placement, result = nested
                logger.debug(f"{unit.uid} nested in {placement.nested_in} at depth {placement.nesting_depth}")
                return self._commit(placement, result)

        found = self.find_ring_position(unit)
        if found is None and self.rules.cylinder_grid_fallback:
            found = self.find_grid_position(unit)
        if found is None:
            return None
        x, y, z, result = found
        return self._commit(Placement(unit=unit, x=x, y=y, z=z, dims=unit.dims), result)

    def place_horizontal(self, unit: Unit) -> Optional[Placement]:
        if self.session.over_weight_limit(unit):
            return None
        found = self.find_horizontal_position(unit)
        if found is None:
            return None
        x, y, z, result = found
        placement = Placement(unit=unit, x=x, y=y, z=z, dims=unit.dims)
        if not unit.item.fragile and self.session.engine.is_elevated(y):
            placement.supports = self.support_wedges(placement)
        return self._commit(placement, result)

    # ----- nesting -----

    def nesting_hosts(self, unit: Unit) -> Iterator[Placement]:
        rules = self.rules
        d = unit.item.diameter
        for host in self.session.placements:
            if not host.unit.is_cylinder or host.unit.is_horizontal:
                continue
            if host.item.diameter < d + rules.nesting_margin:
                continue
            if host.item.height - unit.item.height < rules.nesting_clearance:
                continue
            yield host

    def find_nesting_position(self, unit: Unit) -> Optional[Tuple[Placement, ValidationResult]]:
        """First host in placement order that accepts the unit concentrically on its top plane."""
        session = self.session
        r = unit.item.diameter / 2.0
        for host in self.nesting_hosts(unit):
            cx, _, cz = host.center
            x, y, z = cx - r, host.top, cz - r
            dims = unit.dims
            if not session.is_free((x, y, z, dims[0], dims[1], dims[2])):
                continue
            depth = host.nesting_depth + 1
            result = session.evaluate(unit, (x, y, z), nesting_depth=depth)
            if not result.valid:
                session.reject(unit, result.violations)
                continue
            radius_diff = (host.item.diameter - unit.item.diameter) / 2.0
            placement = Placement(
                unit=unit,
                x=x,
                y=y,
                z=z,
                dims=dims,
                nested_in=host.uid,
                nesting_depth=depth,
                nesting_offset_limit=radius_diff * self.rules.nesting_offset_fraction,
            )
            return placement, result
        return None

    # ----- rings / grid -----

    def ring_positions(self, unit: Unit) -> Iterator[List[Tuple[float, float, float]]]:
        """Yields, ring by ring, the min corners of every slot on that ring."""
        ct = self.session.container_type
        d = unit.item.diameter
        r = d / 2.0
        cx, cz = ct.length / 2.0, ct.width / 2.0
        usable = min(ct.length, ct.width) / 2.0
        spacing = d * self.rules.ring_spacing

        for ring in range(MAX_RINGS):
            ring_radius = ring * spacing
            if ring_radius + r > usable + 1e-9:
                break
            if ring == 0:
                yield [(cx - r, 0.0, cz - r)]
                continue
            count = int(floor(2.0 * pi * ring_radius / spacing))
            slots = []
            for i in range(count):
                angle = 2.0 * pi * i / count
                px = cx + ring_radius * cos(angle)
                pz = cz + ring_radius * sin(angle)
                slots.append((px - r, 0.0, pz - r))
            yield slots

    def find_ring_position(self, unit: Unit) -> Optional[Tuple[float, float, float, ValidationResult]]:
        session = self.session
        dims = unit.dims
        for slots in self.ring_positions(unit):
            best: Optional[Tuple[float, float, float, ValidationResult]] = None
            for x, y, z in slots:
                if not session.is_free((x, y, z, dims[0], dims[1], dims[2])):
                    continue
                result = session.evaluate(unit, (x, y, z))
                if not result.valid:
                    session.reject(unit, result.violations)
                    continue
                if best is None or result.score > best[3].score:
                    best = (x, y, z, result)
            if best is not None:
                return best
        return None

    def find_grid_position(self, unit: Unit) -> Optional[Tuple[float, float, float, ValidationResult]]:
        ct = self.session.container_type
        pitch = unit.item.diameter * self.rules.ring_spacing
        return self._scan_rows(unit, [0.0], pitch, pitch, ct.length, ct.width)

    # ----- horizontal -----

    def horizontal_levels(self, unit: Unit) -> List[float]:
        ct = self.session.container_type
        tops = {0.0}
        tops.update(round(p.top, 6) for p in self.session.placements)
        return sorted(t for t in tops if t + unit.dims[1] <= ct.height + 1e-9)

    def find_horizontal_position(self, unit: Unit) -> Optional[Tuple[float, float, float, ValidationResult]]:
        ct = self.session.container_type
        pitch = unit.item.diameter * self.rules.horizontal_spacing
        return self._scan_rows(unit, self.horizontal_levels(unit), pitch, pitch, ct.length, ct.width, cradles=True)

    def cradle_offsets(self, y: float, dz: float) -> List[float]:
        """Min-corner z offsets that center a unit of width dz between adjacent tops at level y."""
        eps = self.rules.ground_epsilon
        centers = sorted({round(p.center[2], 6) for p in self.session.placements if abs(p.top - y) <= eps})
        return [(a + b) / 2.0 - dz / 2.0 for a, b in zip(centers, centers[1:])]

    def _scan_rows(
        self,
        unit: Unit,
        levels: Sequence[float],
        step_x: float,
        step_z: float,
        length: float,
        width: float,
        cradles: bool = False,
    ) -> Optional[Tuple[float, float, float, ValidationResult]]:
        session = self.session
        dx, dy, dz = unit.dims
        grid_z = []
        z = 0.0
        while z + dz <= width + 1e-9:
            grid_z.append(z)
            z += step_z
        for y in levels:
            offsets = grid_z
            if cradles and session.engine.is_elevated(y):
                offsets = sorted(set(grid_z).union(self.cradle_offsets(y, dz)))
            x = 0.0
            while x + dx <= length + 1e-9:
                for z in offsets:
                    if session.is_free((x, y, z, dx, dy, dz)):
                        result = session.evaluate(unit, (x, y, z))
                        if result.valid:
                            return x, y, z, result
                        session.reject(unit, result.violations)
                x += step_x
        return None

    # ----- support / scoring -----

    def support_wedges(self, placement: Placement) -> List[SupportWedge]:
        """Two chocks, one at each end of a horizontal cylinder, under its axis."""
        d = placement.item.diameter
        length = placement.dims[0]
        z = placement.z + placement.dims[2] / 2.0 - WEDGE_WIDTH / 2.0
        height = d * self.rules.wedge_height_fraction
        return [
            SupportWedge(x=placement.x, y=placement.y, z=z, length=WEDGE_LENGTH, width=WEDGE_WIDTH, height=height),
            SupportWedge(
                x=placement.x + length - WEDGE_LENGTH,
                y=placement.y,
                z=z,
                length=WEDGE_LENGTH,
                width=WEDGE_WIDTH,
                height=height,
            ),
        ]

    def stability(self, placement: Placement) -> float:
        score = 100.0
        if placement.unit.is_horizontal and self.session.engine.is_elevated(placement.y):
            score -= 30.0
        if placement.item.fragile:
            score -= 20.0
        if placement.nested_in is not None:
            score += 20.0
        return max(0.0, min(100.0, score))

    def _commit(self, placement: Placement, result: Optional[ValidationResult] = None) -> Placement:
        placement.stability = self.stability(placement)
        self.session.commit(placement, result)
        return placement

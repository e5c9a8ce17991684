from __future__ import annotations

from collections import OrderedDict
from typing import Iterable, List, Optional, Sequence, Tuple

from ..exceptions import PlanningInputError
from ..logger import logger
from .blf_packer import BottomLeftFill
from .constraints import ConstraintsEngine, Violation
from .cylinder_packer import CylinderPacker
from .entities import (
    ContainerType,
    Item,
    LoadPlan,
    Placement,
    PlanningOptions,
    PlanWarning,
    Unit,
    expand_units,
)
from .metrics import (
    axle_loads,
    center_of_gravity,
    check_axle_loads,
    check_center_of_gravity,
    totals,
    utilization,
)
from .rules import ConstraintRules
from .sequencing import delivery_proxy, order_placements
from .session import PlanningSession

# partial-load CoG advisories are superseded by the plan-wide weight_distribution check
_PLAN_WIDE_ADVISORIES = {"center_of_gravity_violation"}


def ensure_unique_ids(items: Sequence[Item]) -> None:
    seen = set()
    dupes: List[str] = []
    for item in items:
        if item.id in seen and item.id not in dupes:
            dupes.append(item.id)
        seen.add(item.id)
    if dupes:
        raise PlanningInputError(
            f"Duplicate item id(s): {', '.join(dupes)}",
            [f"duplicate item id '{d}'" for d in dupes],
        )


def items_of(units: Iterable[Unit]) -> List[Item]:
    """Distinct items of a unit list in first-appearance order."""
    out: "OrderedDict[str, Item]" = OrderedDict()
    for u in units:
        out.setdefault(u.item.id, u.item)
    return list(out.values())


def _ids(uids: Iterable[str]) -> Tuple[str, ...]:
    return tuple(OrderedDict((uid, None) for uid in uids).keys())


class LoadOptimizer:
    """
    Packs one container: boxes first (BLF), then cylinders against the same
    occupied volume, then plan-level checks and loading-sequence ordering.
    """

    def __init__(
        self,
        container_type: ContainerType,
        options: Optional[PlanningOptions] = None,
        rules: Optional[ConstraintRules] = None,
    ):
        self.container_type = container_type
        self.options = options or PlanningOptions()
        self.rules = rules or self.options.rules()
        self.engine = ConstraintsEngine(container_type, self.rules)

    def optimize(self, items: Sequence[Item]) -> LoadPlan:
        items = list(items)
        ensure_unique_ids(items)
        return self.optimize_units(expand_units(items), order_items=items)

    def optimize_units(self, units: Sequence[Unit], order_items: Optional[Sequence[Item]] = None) -> LoadPlan:
        ct = self.container_type
        logger.info(f"Optimizing {len(units)} units into container {ct.label} ({ct.length}x{ct.width}x{ct.height})")

        session = PlanningSession(ct, self.rules, self.engine)
        boxes = [u for u in units if not u.is_cylinder]
        cylinders = [u for u in units if u.is_cylinder]
        if boxes:
            BottomLeftFill(session).pack(boxes)
        if cylinders:
            CylinderPacker(session).pack(cylinders)

        placed_uids = {p.uid for p in session.placements}
        unplaced = [u for u in units if u.uid not in placed_uids]

        weight, volume = totals(session.placements)
        weight_pct, volume_pct = utilization(weight, volume, ct)
        cog = center_of_gravity(session.placements)
        axles = axle_loads(session.placements, ct, self.rules)

        proxy = delivery_proxy(order_items if order_items is not None else items_of(units))
        ordered = order_placements(session.placements, self.options.loading_sequence, proxy)

        plan = LoadPlan(
            container_type=ct,
            placements=ordered,
            unplaced=unplaced,
            total_weight=weight,
            total_volume=volume,
            center_of_gravity=cog,
            weight_utilization=weight_pct,
            volume_utilization=volume_pct,
            axle_loads=axles,
            loading_sequence=self.options.loading_sequence,
        )
        plan.warnings = self.collect_warnings(session, plan, units)

        logger.info(
            f"Container {ct.label}: {plan.placed_count}/{len(units)} units placed, "
            f"weight {weight_pct:.1f}%, volume {volume_pct:.1f}%"
        )
        for w in plan.warnings:
            logger.warning(f"[{w.severity}] {w.kind}: {w.message}")
        return plan

    # ----- warnings -----

    def collect_warnings(self, session: PlanningSession, plan: LoadPlan, units: Sequence[Unit]) -> List[PlanWarning]:
        ct = self.container_type
        rules = self.rules
        warnings: List[PlanWarning] = []

        demand_weight = sum(u.weight for u in units)
        demand_volume = sum(u.volume for u in units)
        if demand_weight > ct.max_weight + 1e-9 or demand_volume > ct.volume + 1e-9:
            warnings.append(
                PlanWarning(
                    "over_capacity",
                    "high",
                    f"Assigned load {demand_weight:.1f}kg / {demand_volume:.2f}m3 exceeds container "
                    f"{ct.label} capacity {ct.max_weight:.1f}kg / {ct.volume:.2f}m3",
                    _ids(u.item.id for u in units),
                )
            )

        if plan.unplaced:
            item_ids = _ids(u.item.id for u in plan.unplaced)
            warnings.append(
                PlanWarning(
                    "unplaced_items",
                    "high",
                    f"{len(plan.unplaced)} unit(s) could not be placed: {', '.join(item_ids)}",
                    item_ids,
                )
            )
            blocking: "OrderedDict[str, Tuple[Violation, List[str]]]" = OrderedDict()
            for u in plan.unplaced:
                for v in session.rejections.get(u.uid, []):
                    entry = blocking.setdefault(v.kind, (v, []))
                    entry[1].append(u.uid)
            for kind, (v, uids) in blocking.items():
                warnings.append(
                    PlanWarning(kind, v.severity, f"{v.message} (blocked {', '.join(uids)})", _ids(uids))
                )

        warnings.extend(self._grouped(session.notices))
        advisories = [(p.unit, v) for p, v in session.advisories if v.kind not in _PLAN_WIDE_ADVISORIES]
        warnings.extend(self._grouped(advisories))

        if plan.placements:
            message = check_center_of_gravity(plan.center_of_gravity, ct, rules)
            if message:
                warnings.append(PlanWarning("weight_distribution", "high", message))
            message = check_axle_loads(plan.axle_loads, rules)
            if message:
                warnings.append(PlanWarning("axle_load", "medium", message))

        issues = self.stacking_compliance(plan.placements)
        if issues:
            warnings.append(
                PlanWarning(
                    "stacking_violation",
                    "high",
                    "; ".join(msg for _, msg in issues),
                    _ids(uid for uid, _ in issues),
                )
            )

        high = [
            p
            for p in plan.placements
            if p.weight > rules.heavy_item_weight and p.y > rules.heavy_item_height
        ]
        if high:
            warnings.append(
                PlanWarning(
                    "heavy_item_high",
                    "medium",
                    ", ".join(f"Heavy unit {p.uid} ({p.weight:.1f}kg) placed at {p.y:.0f}mm" for p in high),
                    _ids(p.uid for p in high),
                )
            )
        return warnings

    @staticmethod
    def _grouped(entries: Sequence[Tuple[Unit, Violation]]) -> List[PlanWarning]:
        grouped: "OrderedDict[str, Tuple[Violation, List[str]]]" = OrderedDict()
        for unit, v in entries:
            entry = grouped.setdefault(v.kind, (v, []))
            entry[1].append(unit.uid)
        out: List[PlanWarning] = []
        for kind, (v, uids) in grouped.items():
            message = v.message if len(uids) == 1 else f"{len(uids)} units: {v.message}"
            out.append(PlanWarning(kind, v.severity, message, _ids(uids)))
        return out

    def stacking_compliance(self, placements: Sequence[Placement]) -> List[Tuple[str, str]]:
        """
        Re-checks each placement's support and stacking order from the recorded
        positions: stackable flags, base support ratio, heavy-above-light,
        horizontal supporters and nesting depth.
        """
        engine = self.engine
        rules = self.rules
        issues: List[Tuple[str, str]] = []
        for p in placements:
            if p.nesting_depth > rules.max_nesting_depth:
                issues.append((p.uid, f"{p.uid} nested {p.nesting_depth} levels deep"))
            if not engine.is_elevated(p.y):
                continue
            others = [q for q in placements if q is not p]
            supporters = engine.supporters_of((p.x, p.y, p.z), p.dims, others)
            if not p.item.stackable:
                issues.append((p.uid, f"Non-stackable unit {p.uid} is placed above ground level"))
            for q in supporters:
                if not q.item.stackable:
                    issues.append((p.uid, f"{p.uid} rests on non-stackable unit {q.uid}"))
                if q.weight < p.weight / rules.stacking_weight_ratio:
                    issues.append((p.uid, f"{p.uid} ({p.weight:.1f}kg) rests on lighter unit {q.uid} ({q.weight:.1f}kg)"))
            if p.unit.is_horizontal:
                if len(supporters) < rules.min_horizontal_supports:
                    issues.append((p.uid, f"Horizontal cylinder {p.uid} has {len(supporters)} support(s)"))
            elif not p.unit.is_cylinder:
                area = p.dims[0] * p.dims[2]
                covered = sum(
                    max(0.0, min(p.x + p.dims[0], q.x + q.dims[0]) - max(p.x, q.x))
                    * max(0.0, min(p.z + p.dims[2], q.z + q.dims[2]) - max(p.z, q.z))
                    for q in supporters
                )
                if area > 0 and covered / area < rules.support_ratio - 1e-9:
                    issues.append((p.uid, f"{p.uid} has only {covered / area * 100:.1f}% base support"))
        return issues

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from itertools import combinations
from math import ceil
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import PlanningInputError
from ..logger import logger
from .entities import (
    ContainerInstance,
    ContainerType,
    DropPoint,
    FleetEntry,
    Item,
    PlanningOptions,
    Unit,
    expand_units,
)
from .optimizer import LoadOptimizer, ensure_unique_ids
from .rules import ConstraintRules
from .sequencing import delivery_proxy, order_units

MAX_COMBINATION_QTY = 3
EFFICIENCY_BUCKET = 5.0


@dataclass(frozen=True)
class FleetSuggestion:
    entries: Tuple[FleetEntry, ...]
    total_cost: float
    weight_utilization: float
    volume_utilization: float
    strategy: str
    description: str
    rank: int = 0

    @property
    def efficiency(self) -> float:
        return max(self.weight_utilization, self.volume_utilization)

    @property
    def container_count(self) -> int:
        return sum(e.quantity for e in self.entries)


@dataclass(frozen=True)
class FleetUtilization:
    weight: float
    volume: float
    total_weight: float
    total_volume: float
    capacity_weight: float
    capacity_volume: float


def calculate_order_totals(items: Sequence[Item]) -> Tuple[float, float]:
    """(total weight kg, total volume m^3) over every unit of the items."""
    weight = sum(it.total_weight for it in items)
    volume = sum(it.total_volume for it in items)
    return weight, volume


def _catalog_index(catalog: Sequence[ContainerType]) -> Dict[str, ContainerType]:
    if not catalog:
        raise PlanningInputError("Container catalog is empty", ["at least one container type is required"])
    index: Dict[str, ContainerType] = {}
    for ct in catalog:
        if ct.id in index:
            raise PlanningInputError(f"Duplicate container type id: {ct.id}", [f"duplicate container type '{ct.id}'"])
        index[ct.id] = ct
    return index


def _resolve_fleet(fleet: Sequence[FleetEntry], index: Mapping[str, ContainerType]) -> List[Tuple[ContainerType, int]]:
    unknown = [e.type_id for e in fleet if e.type_id not in index]
    if unknown:
        raise PlanningInputError(
            f"Unknown container type id(s) in fleet: {', '.join(unknown)}",
            [f"unknown container type '{t}'" for t in unknown],
        )
    return [(index[e.type_id], e.quantity) for e in fleet]


def calculate_utilization(
    fleet: Sequence[FleetEntry],
    items: Sequence[Item],
    catalog: Sequence[ContainerType],
) -> FleetUtilization:
    weight, volume = calculate_order_totals(items)
    resolved = _resolve_fleet(fleet, _catalog_index(catalog))
    cap_w = sum(ct.max_weight * qty for ct, qty in resolved)
    cap_v = sum(ct.volume * qty for ct, qty in resolved)
    return FleetUtilization(
        weight=weight / cap_w * 100.0 if cap_w > 0 else 0.0,
        volume=volume / cap_v * 100.0 if cap_v > 0 else 0.0,
        total_weight=weight,
        total_volume=volume,
        capacity_weight=cap_w,
        capacity_volume=cap_v,
    )


def group_by_route(items: Sequence[Item]) -> "OrderedDict[str, List[Item]]":
    grouped: "OrderedDict[str, List[Item]]" = OrderedDict()
    for it in items:
        grouped.setdefault(it.route, []).append(it)
    return grouped


def cost_efficiency(ct: ContainerType) -> float:
    """Cost per unit of the limiting capacity (tonnes or m^3); lower is better."""
    return ct.cost_per_km / min(ct.max_weight / 1000.0, ct.volume)


def suggest_fleet_for(weight: float, volume: float, catalog: Sequence[ContainerType]) -> List[FleetSuggestion]:
    """
    Ranked container combinations covering (weight, volume): one option per
    single type, plus two-type combinations of 1..3 containers each.
    """
    _catalog_index(catalog)
    if weight <= 0 and volume <= 0:
        return []
    ordered = sorted(catalog, key=cost_efficiency)
    rank = {ct.id: i for i, ct in enumerate(ordered)}

    def build(parts: Sequence[Tuple[ContainerType, int]], strategy: str) -> FleetSuggestion:
        cap_w = sum(ct.max_weight * q for ct, q in parts)
        cap_v = sum(ct.volume * q for ct, q in parts)
        entries = tuple(FleetEntry(ct.id, q) for ct, q in parts)
        weight_pct = weight / cap_w * 100.0
        volume_pct = volume / cap_v * 100.0
        label = " + ".join(f"{q}x {ct.label}" for ct, q in parts)
        return FleetSuggestion(
            entries=entries,
            total_cost=sum(ct.cost_per_km * q for ct, q in parts),
            weight_utilization=weight_pct,
            volume_utilization=volume_pct,
            strategy=strategy,
            description=f"{label} - {round(max(weight_pct, volume_pct))}% utilization",
            rank=min(rank[ct.id] for ct, _ in parts),
        )

    suggestions: List[FleetSuggestion] = []
    for ct in ordered:
        qty = max(1, int(ceil(max(weight / ct.max_weight, volume / ct.volume) - 1e-9)))
        suggestions.append(build([(ct, qty)], "single" if qty == 1 else "multi-same"))

    for a, b in combinations(ordered, 2):
        for qa in range(1, MAX_COMBINATION_QTY + 1):
            for qb in range(1, MAX_COMBINATION_QTY + 1):
                cap_w = a.max_weight * qa + b.max_weight * qb
                cap_v = a.volume * qa + b.volume * qb
                if cap_w + 1e-9 >= weight and cap_v + 1e-9 >= volume:
                    suggestions.append(build([(a, qa), (b, qb)], "mixed"))

    suggestions.sort(
        key=lambda s: (
            s.container_count,
            -int(s.efficiency // EFFICIENCY_BUCKET),
            len(s.entries),
            s.total_cost,
            s.rank,
        )
    )
    return suggestions


def suggest_fleet(items: Sequence[Item], catalog: Sequence[ContainerType]) -> List[FleetSuggestion]:
    weight, volume = calculate_order_totals(items)
    return suggest_fleet_for(weight, volume, catalog)


def generate_drop_points(units: Sequence[Unit], max_drop_points: int = 1) -> List[DropPoint]:
    """
    One drop point per route when max_drop_points is 1; otherwise one per
    (route, delivery) pair, merging the smallest into a same-route point
    until the limit is met.
    """
    if max_drop_points <= 1:
        by_route: "OrderedDict[str, DropPoint]" = OrderedDict()
        for u in units:
            item = u.item
            dp = by_route.get(item.route)
            if dp is None:
                dp = DropPoint(id=f"DP_{item.route}", location=item.delivery or "Unknown", route=item.route)
                by_route[item.route] = dp
            if item.id not in dp.item_ids:
                dp.item_ids.append(item.id)
        return list(by_route.values())

    by_key: "OrderedDict[Tuple[str, str], DropPoint]" = OrderedDict()
    for u in units:
        item = u.item
        location = item.delivery or "Unknown"
        key = (item.route, location)
        dp = by_key.get(key)
        if dp is None:
            dp = DropPoint(id=f"DP{len(by_key) + 1:03d}", location=location, route=item.route)
            by_key[key] = dp
        if item.id not in dp.item_ids:
            dp.item_ids.append(item.id)

    points = list(by_key.values())
    if len(points) > max_drop_points:
        points.sort(key=lambda dp: len(dp.item_ids))
        while len(points) > max_drop_points:
            smallest = points.pop(0)
            target = next((dp for dp in points if dp.route == smallest.route), points[0])
            target.item_ids.extend(i for i in smallest.item_ids if i not in target.item_ids)
            target.location = f"{target.location} & {smallest.location}"
    return points


def estimate_costs(
    instances: Sequence[ContainerInstance],
    route_distances: Mapping[str, float],
) -> Dict[str, Optional[float]]:
    """Cost per instance from its type's cost per km and the route distance; None when unknown."""
    out: Dict[str, Optional[float]] = {}
    for inst in instances:
        distance = route_distances.get(inst.route) if inst.route is not None else None
        out[inst.id] = None if distance is None else inst.container_type.cost_per_km * distance
    return out


class VehicleDistributor:
    """Assigns an order set across container instances, then plans each instance."""

    def __init__(
        self,
        catalog: Sequence[ContainerType],
        options: Optional[PlanningOptions] = None,
        rules: Optional[ConstraintRules] = None,
    ):
        self.catalog = list(catalog)
        self.index = _catalog_index(self.catalog)
        self.options = options or PlanningOptions()
        self.rules = rules or self.options.rules()
        self.fixed_fleet = (
            _resolve_fleet(self.options.fleet, self.index) if self.options.fleet else None
        )
        self._counter = 0

    # ----- public -----

    def distribute(self, items: Sequence[Item]) -> List[ContainerInstance]:
        items = list(items)
        ensure_unique_ids(items)
        if not items:
            return []
        self._counter = 0
        proxy = delivery_proxy(items)
        sequence = self.options.loading_sequence

        logger.info(
            f"Distributing {len(items)} items ({sum(it.quantity for it in items)} units) "
            f"with strategy '{self.options.route_strategy}'"
        )

        if self.options.route_strategy == "separate":
            pool: List[ContainerInstance] = []
            for route, route_items in group_by_route(items).items():
                units = order_units(expand_units(route_items), sequence, proxy)
                instances = self.instantiate(self.fleet_for(units))
                self.best_fit(units, instances, restrict_routes=False)
                pool.extend(instances)
        else:
            units = order_units(expand_units(items), sequence, proxy)
            pool = self.instantiate(self.fixed_fleet or self.suggested(units))
            self.best_fit(units, pool, restrict_routes=not self.options.allow_mixed_routes)

        used = [inst for inst in pool if inst.units]
        drop_points = generate_drop_points(expand_units(items), self.options.max_drop_points)
        for inst in used:
            optimizer = LoadOptimizer(inst.container_type, self.options, self.rules)
            inst.plan = optimizer.optimize_units(inst.units, order_items=items)
            carried = {u.item.id for u in inst.units}
            inst.drop_points = [dp for dp in drop_points if carried.intersection(dp.item_ids)]

        logger.info(f"Distribution complete: {len(used)} container instance(s) in use")
        return used

    # ----- fleet -----

    def suggested(self, units: Sequence[Unit]) -> List[Tuple[ContainerType, int]]:
        weight = sum(u.weight for u in units)
        volume = sum(u.volume for u in units)
        suggestions = suggest_fleet_for(weight, volume, self.catalog)
        best = suggestions[0]
        logger.info(f"Selected fleet: {best.description}")
        return [(self.index[e.type_id], e.quantity) for e in best.entries]

    def fleet_for(self, units: Sequence[Unit]) -> List[Tuple[ContainerType, int]]:
        return self.fixed_fleet or self.suggested(units)

    def instantiate(self, fleet: Sequence[Tuple[ContainerType, int]]) -> List[ContainerInstance]:
        out: List[ContainerInstance] = []
        for ct, qty in fleet:
            for _ in range(qty):
                self._counter += 1
                out.append(ContainerInstance(id=f"V{self._counter:03d}", container_type=ct))
        return out

    # ----- assignment -----

    def best_fit(self, units: Sequence[Unit], pool: List[ContainerInstance], restrict_routes: bool) -> None:
        """
        Each unit joins the eligible instance with the highest utilization that
        still has room; with no room anywhere it overflows into the eligible
        instance with the most remaining capacity. Under route restriction an
        instance is eligible only while empty or already on the unit's route,
        and the pool grows when a route has no eligible instance left.
        """
        for i, unit in enumerate(units):
            eligible = self._eligible(unit, pool, restrict_routes)
            if not eligible:
                remaining = [u for u in units[i:] if u.item.route == unit.item.route]
                pool.extend(self.instantiate(self.suggested(remaining)))
                eligible = self._eligible(unit, pool, restrict_routes)

            best: Optional[ContainerInstance] = None
            for inst in eligible:
                if inst.can_fit(unit) and (best is None or inst.utilization > best.utilization):
                    best = inst
            if best is None:
                for inst in eligible:
                    if best is None or inst.remaining_fraction > best.remaining_fraction:
                        best = inst
                logger.warning(f"No capacity left for {unit.uid}; overflowing into {best.id}")
            best.assign(unit)

    @staticmethod
    def _eligible(unit: Unit, pool: Sequence[ContainerInstance], restrict_routes: bool) -> List[ContainerInstance]:
        if not restrict_routes:
            return list(pool)
        return [inst for inst in pool if not inst.units or inst.route == unit.item.route]

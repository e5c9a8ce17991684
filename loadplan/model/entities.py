from __future__ import annotations

from dataclasses import dataclass, field, replace
from math import pi
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

from ..exceptions import PlanningInputError
from .rules import DEFAULT_RULES, ConstraintRules

ShapeKind = Literal["box", "cylinder"]
Orientation = Literal["vertical", "horizontal"]
Priority = Literal["high", "medium", "low"]
Severity = Literal["low", "medium", "high", "critical"]
RouteStrategy = Literal["separate", "consolidate"]
LoadingSequence = Literal["lifo", "fifo", "route", "weight", "priority"]

SHAPES = ("box", "cylinder")
ORIENTATIONS = ("vertical", "horizontal")
PRIORITIES = ("high", "medium", "low")
SEVERITIES = ("low", "medium", "high", "critical")
ROUTE_STRATEGIES = ("separate", "consolidate")
LOADING_SEQUENCES = ("lifo", "fifo", "route", "weight", "priority")

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}

EPS = 1e-6
MM3_PER_M3 = 1e9

# (x, y, z, dx, dy, dz): min corner plus extents, x=length, y=height, z=width
Box = Tuple[float, float, float, float, float, float]


def _positive(errors: List[str], name: str, value: Optional[float]) -> None:
    if value is None:
        errors.append(f"{name} is required")
    elif not value > 0:
        errors.append(f"{name} must be > 0 (got {value})")


@dataclass(frozen=True)
class Item:
    """One logical cargo entry; expands into `quantity` physical units."""

    id: str
    shape: ShapeKind
    weight: float
    height: float
    length: Optional[float] = None
    width: Optional[float] = None
    diameter: Optional[float] = None
    quantity: int = 1
    stackable: bool = True
    fragile: bool = False
    hazardous: bool = False
    temperature_controlled: bool = False
    target_temperature: Optional[float] = None
    nesting: bool = False
    orientation: Orientation = "vertical"
    priority: Priority = "medium"
    route: str = ""
    pickup: str = ""
    delivery: str = ""
    delivery_order: Optional[int] = None
    color: Optional[str] = None

    def __post_init__(self) -> None:
        errors: List[str] = []
        if not str(self.id).strip():
            errors.append("id must be a non-empty string")
        if self.shape not in SHAPES:
            errors.append(f"shape must be one of {SHAPES} (got {self.shape!r})")
        _positive(errors, "weight", self.weight)
        _positive(errors, "height", self.height)
        if self.shape == "box":
            _positive(errors, "length", self.length)
            _positive(errors, "width", self.width)
        elif self.shape == "cylinder":
            _positive(errors, "diameter", self.diameter)
        if not isinstance(self.quantity, int) or self.quantity < 1:
            errors.append(f"quantity must be an integer >= 1 (got {self.quantity!r})")
        if self.orientation not in ORIENTATIONS:
            errors.append(f"orientation must be one of {ORIENTATIONS} (got {self.orientation!r})")
        if self.priority not in PRIORITIES:
            errors.append(f"priority must be one of {PRIORITIES} (got {self.priority!r})")
        if self.temperature_controlled and self.target_temperature is None:
            errors.append("target_temperature is required for temperature-controlled items")
        if errors:
            raise PlanningInputError(f"Invalid item {self.id!r}: {'; '.join(errors)}", errors)

    @property
    def is_cylinder(self) -> bool:
        return self.shape == "cylinder"

    @property
    def unit_volume(self) -> float:
        """True shape volume of one unit in m^3."""
        if self.is_cylinder:
            r = self.diameter / 2.0
            return pi * r * r * self.height / MM3_PER_M3
        return self.length * self.width * self.height / MM3_PER_M3

    @property
    def total_weight(self) -> float:
        return self.weight * self.quantity

    @property
    def total_volume(self) -> float:
        return self.unit_volume * self.quantity

    def bounding_dims(self, orientation: Optional[str] = None) -> Tuple[float, float, float]:
        """Returns (dx, dy, dz) where x=length, y=height, z=width."""
        if not self.is_cylinder:
            return self.length, self.height, self.width
        o = orientation or self.orientation
        if o == "horizontal":
            return self.height, self.diameter, self.diameter
        return self.diameter, self.height, self.diameter


@dataclass(frozen=True)
class Unit:
    """A single physical unit of an Item."""

    item: Item
    index: int
    orientation: Orientation = "vertical"

    @property
    def uid(self) -> str:
        return f"{self.item.id}#{self.index}"

    @property
    def shape(self) -> ShapeKind:
        return self.item.shape

    @property
    def is_cylinder(self) -> bool:
        return self.item.is_cylinder

    @property
    def is_horizontal(self) -> bool:
        return self.item.is_cylinder and self.orientation == "horizontal"

    @property
    def weight(self) -> float:
        return self.item.weight

    @property
    def volume(self) -> float:
        return self.item.unit_volume

    @property
    def dims(self) -> Tuple[float, float, float]:
        return self.item.bounding_dims(self.orientation)

    def reoriented(self, orientation: Orientation) -> "Unit":
        return replace(self, orientation=orientation)


def expand_units(items: Iterable[Item]) -> List[Unit]:
    """Expand quantity into unique units (stable order)."""
    out: List[Unit] = []
    for it in items:
        orientation = it.orientation if it.is_cylinder else "vertical"
        for k in range(1, it.quantity + 1):
            out.append(Unit(item=it, index=k, orientation=orientation))
    return out


@dataclass(frozen=True)
class ContainerType:
    """Read-only cargo bay type with its weight/volume limits."""

    id: str
    length: float
    width: float
    height: float
    max_weight: float
    max_volume: Optional[float] = None  # m^3, computed from the bay when not declared
    cost_per_km: float = 0.0
    name: str = ""

    def __post_init__(self) -> None:
        errors: List[str] = []
        if not str(self.id).strip():
            errors.append("id must be a non-empty string")
        for name in ("length", "width", "height", "max_weight"):
            _positive(errors, name, getattr(self, name))
        if self.max_volume is not None and not self.max_volume > 0:
            errors.append(f"max_volume must be > 0 (got {self.max_volume})")
        if self.cost_per_km < 0:
            errors.append(f"cost_per_km must be >= 0 (got {self.cost_per_km})")
        if errors:
            raise PlanningInputError(f"Invalid container type {self.id!r}: {'; '.join(errors)}", errors)

    @property
    def label(self) -> str:
        return self.name or self.id

    @property
    def volume(self) -> float:
        if self.max_volume is not None:
            return self.max_volume
        return self.length * self.width * self.height / MM3_PER_M3

    @property
    def bounds(self) -> Tuple[float, float, float]:
        return self.length, self.height, self.width


@dataclass(frozen=True)
class SupportWedge:
    """Chock descriptor placed at one end of a horizontal cylinder."""

    x: float
    y: float
    z: float
    length: float
    width: float
    height: float
    kind: str = "wedge"


@dataclass
class Placement:
    unit: Unit
    x: float
    y: float
    z: float
    dims: Tuple[float, float, float]
    nested_in: Optional[str] = None
    nesting_depth: int = 0
    nesting_offset_limit: float = 0.0
    supports: List[SupportWedge] = field(default_factory=list)
    stability: float = 100.0
    sequence: int = -1

    @property
    def item(self) -> Item:
        return self.unit.item

    @property
    def uid(self) -> str:
        return self.unit.uid

    @property
    def weight(self) -> float:
        return self.unit.weight

    @property
    def orientation(self) -> str:
        return self.unit.orientation

    @property
    def box(self) -> Box:
        return (self.x, self.y, self.z, self.dims[0], self.dims[1], self.dims[2])

    @property
    def bounds(self) -> Tuple[float, float, float, float, float, float]:
        return (
            self.x,
            self.y,
            self.z,
            self.x + self.dims[0],
            self.y + self.dims[1],
            self.z + self.dims[2],
        )

    @property
    def top(self) -> float:
        return self.y + self.dims[1]

    @property
    def center(self) -> Tuple[float, float, float]:
        return (
            self.x + self.dims[0] / 2.0,
            self.y + self.dims[1] / 2.0,
            self.z + self.dims[2] / 2.0,
        )


@dataclass(frozen=True)
class PlanWarning:
    kind: str
    severity: Severity
    message: str
    item_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AxleLoads:
    front: float
    rear: float
    front_share: float  # percent


@dataclass
class LoadPlan:
    container_type: ContainerType
    placements: List[Placement] = field(default_factory=list)
    unplaced: List[Unit] = field(default_factory=list)
    total_weight: float = 0.0
    total_volume: float = 0.0
    center_of_gravity: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    weight_utilization: float = 0.0
    volume_utilization: float = 0.0
    axle_loads: Optional[AxleLoads] = None
    loading_sequence: str = "lifo"
    warnings: List[PlanWarning] = field(default_factory=list)

    @property
    def placed_count(self) -> int:
        return len(self.placements)

    def warnings_of(self, kind: str) -> List[PlanWarning]:
        return [w for w in self.warnings if w.kind == kind]


@dataclass(frozen=True)
class FleetEntry:
    type_id: str
    quantity: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise PlanningInputError(
                f"Invalid fleet entry {self.type_id!r}: quantity must be an integer >= 1"
            )


@dataclass
class DropPoint:
    id: str
    location: str
    route: str
    item_ids: List[str] = field(default_factory=list)


@dataclass
class ContainerInstance:
    """Mutable run-time container holding its assigned units and running totals."""

    id: str
    container_type: ContainerType
    route: Optional[str] = None
    units: List[Unit] = field(default_factory=list)
    current_weight: float = 0.0
    current_volume: float = 0.0
    plan: Optional[LoadPlan] = None
    drop_points: List[DropPoint] = field(default_factory=list)

    def can_fit(self, unit: Unit) -> bool:
        ct = self.container_type
        return (
            self.current_weight + unit.weight <= ct.max_weight + EPS
            and self.current_volume + unit.volume <= ct.volume + EPS
        )

    @property
    def utilization(self) -> float:
        """Fraction of the limiting capacity already used."""
        ct = self.container_type
        return max(self.current_weight / ct.max_weight, self.current_volume / ct.volume)

    @property
    def remaining_fraction(self) -> float:
        ct = self.container_type
        return min(1.0 - self.current_weight / ct.max_weight, 1.0 - self.current_volume / ct.volume)

    @property
    def weight_utilization(self) -> float:
        return self.current_weight / self.container_type.max_weight * 100.0

    @property
    def volume_utilization(self) -> float:
        return self.current_volume / self.container_type.volume * 100.0

    def assign(self, unit: Unit) -> None:
        self.units.append(unit)
        self.current_weight += unit.weight
        self.current_volume += unit.volume
        if self.route is None:
            self.route = unit.item.route


@dataclass
class PlanningOptions:
    route_strategy: RouteStrategy = "separate"
    loading_sequence: LoadingSequence = "lifo"
    allow_mixed_routes: bool = False
    max_stack_height: Optional[float] = None
    weight_distribution_tolerance: Optional[float] = None
    stacking_rules: Dict[str, Any] = field(default_factory=dict)
    fleet: Optional[List[FleetEntry]] = None
    max_drop_points: int = 1

    def __post_init__(self) -> None:
        errors: List[str] = []
        if self.route_strategy not in ROUTE_STRATEGIES:
            errors.append(f"route_strategy must be one of {ROUTE_STRATEGIES} (got {self.route_strategy!r})")
        if self.loading_sequence not in LOADING_SEQUENCES:
            errors.append(f"loading_sequence must be one of {LOADING_SEQUENCES} (got {self.loading_sequence!r})")
        if self.max_stack_height is not None and not self.max_stack_height > 0:
            errors.append("max_stack_height must be > 0")
        if self.weight_distribution_tolerance is not None and not self.weight_distribution_tolerance > 0:
            errors.append("weight_distribution_tolerance must be > 0")
        if self.max_drop_points < 1:
            errors.append("max_drop_points must be >= 1")
        if errors:
            raise PlanningInputError(f"Invalid planning options: {'; '.join(errors)}", errors)

    def rules(self, base: ConstraintRules = DEFAULT_RULES) -> ConstraintRules:
        overrides: Dict[str, Any] = dict(self.stacking_rules or {})
        if self.max_stack_height is not None:
            overrides["max_stack_height"] = self.max_stack_height
        if self.weight_distribution_tolerance is not None:
            overrides["cog_tolerance"] = self.weight_distribution_tolerance
        return base.with_overrides(overrides)

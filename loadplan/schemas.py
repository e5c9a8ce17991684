from __future__ import annotations

from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .exceptions import PlanningInputError
from .model.entities import (
    ContainerInstance,
    ContainerType,
    FleetEntry,
    Item,
    LoadPlan,
    Placement,
    PlanningOptions,
)

SHAPE_NAMES = {
    "box": "box",
    "cuboidal": "box",
    "cuboid": "box",
    "cylinder": "cylinder",
    "cylindrical": "cylinder",
}


def to_camel(string: str) -> str:
    """Helper function to convert snake_case to camelCase"""
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


def _flatten_dimensions(data: Any) -> Any:
    """Accepts the nested `dimensions: {length, width, height, diameter}` form."""
    if isinstance(data, Mapping) and isinstance(data.get("dimensions"), Mapping):
        flat = {k: v for k, v in data.items() if k != "dimensions"}
        for key, value in data["dimensions"].items():
            flat.setdefault(key, value)
        return flat
    return data


# ----Input-----
class ItemIn(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "item_id", "itemId"))
    shape: Literal["box", "cylinder"] = Field(
        validation_alias=AliasChoices("shape", "material_type", "materialType")
    )
    weight: float = Field(gt=0)
    height: float = Field(gt=0)
    length: Optional[float] = Field(default=None, gt=0)
    width: Optional[float] = Field(default=None, gt=0)
    diameter: Optional[float] = Field(default=None, gt=0)
    quantity: int = Field(default=1, ge=1)
    stackable: bool = True
    fragile: bool = False
    hazardous: bool = False
    temperature_controlled: bool = False
    target_temperature: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices(
            "target_temperature",
            "targetTemperature",
            "required_temperature",
            "requiredTemperature",
        ),
    )
    nesting: bool = False
    orientation: Literal["vertical", "horizontal"] = "vertical"
    priority: Literal["high", "medium", "low"] = "medium"
    route: str = ""
    pickup: str = ""
    delivery: str = ""
    delivery_order: Optional[int] = Field(default=None, ge=0)
    color: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        coerce_numbers_to_str = True
        str_strip_whitespace = True

    @model_validator(mode="before")
    @classmethod
    def _nested_dimensions(cls, data: Any) -> Any:
        return _flatten_dimensions(data)

    @field_validator("shape", mode="before")
    @classmethod
    def _shape_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return SHAPE_NAMES.get(value.strip().lower(), value)
        return value

    @field_validator("orientation", "priority", mode="before")
    @classmethod
    def _lower(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or value == "":
            return "vertical" if info.field_name == "orientation" else "medium"
        return value.strip().lower() if isinstance(value, str) else value

    def to_entity(self) -> Item:
        return Item(**self.model_dump())


class ContainerTypeIn(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "type_id", "typeId"))
    length: float = Field(gt=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    max_weight: float = Field(gt=0)
    max_volume: Optional[float] = Field(
        default=None, gt=0, validation_alias=AliasChoices("max_volume", "maxVolume", "volume")
    )
    cost_per_km: float = Field(default=0.0, ge=0)
    name: str = ""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        coerce_numbers_to_str = True

    @model_validator(mode="before")
    @classmethod
    def _nested_dimensions(cls, data: Any) -> Any:
        return _flatten_dimensions(data)

    def to_entity(self) -> ContainerType:
        return ContainerType(**self.model_dump())


class FleetEntryIn(BaseModel):
    type_id: str = Field(validation_alias=AliasChoices("type_id", "typeId", "type"))
    quantity: int = Field(default=1, ge=1)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        coerce_numbers_to_str = True


class PlanningOptionsIn(BaseModel):
    route_strategy: Literal["separate", "consolidate"] = "separate"
    loading_sequence: Literal["lifo", "fifo", "route", "weight", "priority"] = "lifo"
    allow_mixed_routes: bool = False
    max_stack_height: Optional[float] = Field(default=None, gt=0)
    weight_distribution_tolerance: Optional[float] = Field(default=None, gt=0)
    stacking_rules: Dict[str, Any] = Field(default_factory=dict)
    fleet: Optional[List[FleetEntryIn]] = None
    max_drop_points: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("max_drop_points", "maxDropPoints", "drop_points", "dropPoints"),
    )

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_entity(self) -> PlanningOptions:
        data = self.model_dump(exclude={"fleet"})
        fleet = [FleetEntry(e.type_id, e.quantity) for e in self.fleet] if self.fleet else None
        return PlanningOptions(fleet=fleet, **data)


def _describe(prefix: str, exc: ValidationError) -> List[str]:
    out = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        out.append(f"{prefix}.{loc}: {err.get('msg')}" if loc else f"{prefix}: {err.get('msg')}")
    return out


def parse_items(raw: Iterable[Mapping[str, Any]]) -> List[Item]:
    items: List[Item] = []
    errors: List[str] = []
    for i, entry in enumerate(raw):
        try:
            items.append(ItemIn.model_validate(entry).to_entity())
        except ValidationError as exc:
            errors.extend(_describe(f"items[{i}]", exc))
        except PlanningInputError as exc:
            errors.extend(f"items[{i}]: {e}" for e in exc.errors)
    if errors:
        raise PlanningInputError(f"{len(errors)} invalid item field(s)", errors)
    return items


def parse_container_types(raw: Iterable[Mapping[str, Any]]) -> List[ContainerType]:
    types: List[ContainerType] = []
    errors: List[str] = []
    for i, entry in enumerate(raw):
        try:
            types.append(ContainerTypeIn.model_validate(entry).to_entity())
        except ValidationError as exc:
            errors.extend(_describe(f"containers[{i}]", exc))
        except PlanningInputError as exc:
            errors.extend(f"containers[{i}]: {e}" for e in exc.errors)
    if errors:
        raise PlanningInputError(f"{len(errors)} invalid container field(s)", errors)
    return types


def parse_options(raw: Optional[Mapping[str, Any]] = None) -> PlanningOptions:
    try:
        return PlanningOptionsIn.model_validate(raw or {}).to_entity()
    except ValidationError as exc:
        raise PlanningInputError("Invalid planning options", _describe("options", exc)) from exc


# ----Output-----
class SupportWedgeOut(BaseModel):
    kind: str
    x: float
    y: float
    z: float
    length: float
    width: float
    height: float

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class PlacementOut(BaseModel):
    uid: str
    item_id: str
    shape: str
    x: float
    y: float
    z: float
    size_x: float
    size_y: float
    size_z: float
    diameter: Optional[float] = None
    orientation: str
    weight: float
    route: str
    priority: str
    fragile: bool
    hazardous: bool
    color: Optional[str] = None
    nested_in: Optional[str] = None
    nesting_depth: int = 0
    nesting_offset_limit: float = 0.0
    stability: float
    sequence: int
    supports: List[SupportWedgeOut] = Field(default_factory=list)

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_placement(cls, p: Placement) -> "PlacementOut":
        item = p.item
        return cls(
            uid=p.uid,
            item_id=item.id,
            shape=item.shape,
            x=p.x,
            y=p.y,
            z=p.z,
            size_x=p.dims[0],
            size_y=p.dims[1],
            size_z=p.dims[2],
            diameter=item.diameter,
            orientation=p.orientation,
            weight=p.weight,
            route=item.route,
            priority=item.priority,
            fragile=item.fragile,
            hazardous=item.hazardous,
            color=item.color,
            nested_in=p.nested_in,
            nesting_depth=p.nesting_depth,
            nesting_offset_limit=p.nesting_offset_limit,
            stability=p.stability,
            sequence=p.sequence,
            supports=[SupportWedgeOut.model_validate(w) for w in p.supports],
        )


class WarningOut(BaseModel):
    kind: str
    severity: str
    message: str
    item_ids: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class AxleLoadsOut(BaseModel):
    front: float
    rear: float
    front_share: float

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class LoadPlanOut(BaseModel):
    container_type_id: str
    placements: List[PlacementOut]
    unplaced: List[str]
    total_weight: float
    total_volume: float
    center_of_gravity: Tuple[float, float, float]
    weight_utilization: float
    volume_utilization: float
    axle_loads: Optional[AxleLoadsOut] = None
    loading_sequence: str
    warnings: List[WarningOut]

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_plan(cls, plan: LoadPlan) -> "LoadPlanOut":
        return cls(
            container_type_id=plan.container_type.id,
            placements=[PlacementOut.from_placement(p) for p in plan.placements],
            unplaced=[u.uid for u in plan.unplaced],
            total_weight=plan.total_weight,
            total_volume=plan.total_volume,
            center_of_gravity=plan.center_of_gravity,
            weight_utilization=plan.weight_utilization,
            volume_utilization=plan.volume_utilization,
            axle_loads=AxleLoadsOut.model_validate(plan.axle_loads) if plan.axle_loads else None,
            loading_sequence=plan.loading_sequence,
            warnings=[WarningOut.model_validate(w) for w in plan.warnings],
        )


class DropPointOut(BaseModel):
    id: str
    location: str
    route: str
    item_ids: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class ContainerInstanceOut(BaseModel):
    id: str
    type_id: str
    name: str
    route: Optional[str] = None
    current_weight: float
    current_volume: float
    weight_utilization: float
    volume_utilization: float
    unit_ids: List[str]
    drop_points: List[DropPointOut] = Field(default_factory=list)
    plan: Optional[LoadPlanOut] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_instance(cls, inst: ContainerInstance) -> "ContainerInstanceOut":
        return cls(
            id=inst.id,
            type_id=inst.container_type.id,
            name=inst.container_type.label,
            route=inst.route,
            current_weight=inst.current_weight,
            current_volume=inst.current_volume,
            weight_utilization=inst.weight_utilization,
            volume_utilization=inst.volume_utilization,
            unit_ids=[u.uid for u in inst.units],
            drop_points=[DropPointOut.model_validate(dp) for dp in inst.drop_points],
            plan=LoadPlanOut.from_plan(inst.plan) if inst.plan is not None else None,
        )


def dump_plan(plan: LoadPlan) -> Dict[str, Any]:
    return LoadPlanOut.from_plan(plan).model_dump(by_alias=True)


def dump_instances(instances: Sequence[ContainerInstance]) -> List[Dict[str, Any]]:
    return [ContainerInstanceOut.from_instance(inst).model_dump(by_alias=True) for inst in instances]

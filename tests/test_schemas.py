import pytest

from loadplan.exceptions import PlanningInputError
from loadplan.model.distribution import VehicleDistributor
from loadplan.model.optimizer import LoadOptimizer
from loadplan.schemas import (
    dump_instances,
    dump_plan,
    parse_container_types,
    parse_items,
    parse_options,
)


def test_parse_items_accepts_camel_case_and_nested_dimensions():
    (drum, crate) = parse_items([
        {
            "itemId": "D1",
            "materialType": "Cylindrical",
            "dimensions": {"diameter": 600, "height": 900},
            "weight": 120,
            "quantity": 2,
            "temperatureControlled": True,
            "requiredTemperature": 4,
            "orientation": "Horizontal",
        },
        {
            "id": 42,
            "shape": "box",
            "length": 1200,
            "width": 800,
            "height": 1000,
            "weight": 300,
            "deliveryOrder": 2,
            "priority": "",
        },
    ])
    assert drum.id == "D1"
    assert drum.shape == "cylinder"
    assert drum.diameter == 600
    assert drum.target_temperature == 4
    assert drum.orientation == "horizontal"
    assert crate.id == "42"
    assert crate.delivery_order == 2
    assert crate.priority == "medium"


def test_parse_items_collects_every_error():
    with pytest.raises(PlanningInputError) as exc:
        parse_items([
            {"id": "ok", "shape": "box", "length": 1, "width": 1, "height": 1, "weight": 1},
            {"id": "bad", "shape": "sphere", "height": 1, "weight": 1},
            {"id": "flat", "shape": "box", "width": 1, "height": 1, "weight": 1},
        ])
    errors = exc.value.errors
    assert any(e.startswith("items[1]") for e in errors)
    assert any(e.startswith("items[2]") and "length" in e for e in errors)
    assert not any(e.startswith("items[0]") for e in errors)


def test_parse_container_types_volume_alias():
    (ct,) = parse_container_types([
        {"typeId": "T1", "length": 6000, "width": 2400, "height": 2400, "maxWeight": 8000, "volume": 30, "costPerKm": 2.5}
    ])
    assert ct.id == "T1"
    assert ct.volume == 30
    assert ct.cost_per_km == 2.5


def test_parse_container_types_rejects_non_positive():
    with pytest.raises(PlanningInputError) as exc:
        parse_container_types([{"id": "T", "length": 0, "width": 1, "height": 1, "maxWeight": 1}])
    assert exc.value.errors[0].startswith("containers[0]")


def test_parse_options():
    options = parse_options({
        "routeStrategy": "consolidate",
        "loadingSequence": "weight",
        "allowMixedRoutes": True,
        "fleet": [{"type": "T1", "quantity": 2}],
        "dropPoints": 3,
    })
    assert options.route_strategy == "consolidate"
    assert options.loading_sequence == "weight"
    assert options.allow_mixed_routes is True
    assert options.fleet[0].type_id == "T1"
    assert options.fleet[0].quantity == 2
    assert options.max_drop_points == 3
    assert parse_options().route_strategy == "separate"


def test_parse_options_rejects_unknown_strategy():
    with pytest.raises(PlanningInputError):
        parse_options({"routeStrategy": "scatter"})


def test_dump_plan_uses_camel_case():
    (ct,) = parse_container_types([{"id": "T", "length": 6000, "width": 2400, "height": 2400, "maxWeight": 8000}])
    items = parse_items([
        {"id": "B", "shape": "box", "length": 1000, "width": 800, "height": 600, "weight": 50, "quantity": 2},
    ])
    data = dump_plan(LoadOptimizer(ct).optimize(items))
    assert data["containerTypeId"] == "T"
    assert data["totalWeight"] == pytest.approx(100.0)
    first = data["placements"][0]
    assert first["itemId"] == "B"
    assert first["sizeX"] == 1000
    assert first["sequence"] == 1
    assert isinstance(data["warnings"], list)


def test_dump_instances():
    types = parse_container_types([{"id": "T", "length": 6000, "width": 2400, "height": 2400, "maxWeight": 8000}])
    items = parse_items([
        {"id": "B", "shape": "box", "length": 1000, "width": 800, "height": 600, "weight": 50, "route": "R1"},
    ])
    (data,) = dump_instances(VehicleDistributor(types).distribute(items))
    assert data["id"] == "V001"
    assert data["typeId"] == "T"
    assert data["unitIds"] == ["B#1"]
    assert data["dropPoints"][0]["id"] == "DP_R1"
    assert data["plan"]["placements"][0]["uid"] == "B#1"

import pytest

from conftest import assert_layout_valid, box_item, cylinder_item

from loadplan.exceptions import PlanningInputError
from loadplan.model.constraints import ConstraintsEngine
from loadplan.model.entities import ContainerType, PlanningOptions
from loadplan.model.optimizer import LoadOptimizer, ensure_unique_ids


@pytest.fixture
def pallet_order():
    return [box_item(f"I{i}", 1000, 600, 800, weight=50, quantity=10) for i in range(3)]


def test_thirty_boxes_in_a_truck(truck, pallet_order):
    plan = LoadOptimizer(truck).optimize(pallet_order)

    assert plan.placed_count == 30
    assert plan.unplaced == []
    assert plan.total_weight == pytest.approx(1500.0)
    assert plan.weight_utilization == pytest.approx(6.0)
    assert plan.volume_utilization == pytest.approx(14.4 / 38.5 * 100.0)
    assert_layout_valid(plan.placements, truck)
    assert LoadOptimizer(truck).stacking_compliance(plan.placements) == []
    assert not plan.warnings_of("stacking_violation")


def test_every_unit_is_placed_or_reported(truck):
    items = [
        box_item("A", 4000, 2000, 1800, weight=500, quantity=3),
        cylinder_item("C", 600, 1200, weight=80, quantity=4),
    ]
    plan = LoadOptimizer(truck).optimize(items)
    reported = {p.uid for p in plan.placements} | {u.uid for u in plan.unplaced}
    assert reported == {"A#1", "A#2", "A#3", "C#1", "C#2", "C#3", "C#4"}
    assert plan.total_weight == pytest.approx(sum(p.weight for p in plan.placements))
    assert_layout_valid(plan.placements, truck)


def test_hazardous_units_kept_apart():
    ct = ContainerType(id="short", length=3000, width=1000, height=1000, max_weight=10000)
    items = [
        box_item("H1", 1100, 1000, 1000, hazardous=True),
        box_item("H2", 1100, 1000, 1000, hazardous=True),
    ]
    plan = LoadOptimizer(ct).optimize(items)

    assert [p.uid for p in plan.placements] == ["H1#1"]
    assert [u.uid for u in plan.unplaced] == ["H2#1"]
    (unplaced,) = plan.warnings_of("unplaced_items")
    assert unplaced.severity == "high"
    assert unplaced.item_ids == ("H2",)
    (hazard,) = plan.warnings_of("hazardous_separation")
    assert hazard.severity == "critical"


def test_fragile_horizontal_cylinder_warns_and_stands_upright():
    ct = ContainerType(id="bay", length=6000, width=2400, height=2400, max_weight=10000)
    item = cylinder_item("F", 500, 800, fragile=True, orientation="horizontal")
    plan = LoadOptimizer(ct).optimize([item])

    (warning,) = plan.warnings_of("fragile_horizontal")
    assert warning.severity == "high"
    assert warning.item_ids == ("F#1",)
    (p,) = plan.placements
    assert p.orientation == "vertical"
    assert p.y == 0.0


def test_non_stackable_second_unit_is_unplaced():
    ct = ContainerType(id="van", length=1000, width=800, height=2000, max_weight=1000)
    plan = LoadOptimizer(ct).optimize([box_item("N", 1000, 600, 800, stackable=False, quantity=2)])
    assert [u.uid for u in plan.unplaced] == ["N#2"]
    (blocking,) = plan.warnings_of("non_stackable_violation")
    assert blocking.severity == "high"


def test_heavy_item_high_advisory():
    ct = ContainerType(id="tall", length=1000, width=800, height=3000, max_weight=1000)
    plan = LoadOptimizer(ct).optimize([box_item("K", 1000, 1100, 800, weight=60, quantity=2)])
    assert plan.placed_count == 2
    (warning,) = plan.warnings_of("heavy_item_high")
    assert warning.severity == "medium"
    assert warning.item_ids == ("K#2",)


def test_over_capacity_warning():
    ct = ContainerType(id="van", length=2000, width=1000, height=1000, max_weight=100)
    plan = LoadOptimizer(ct).optimize([box_item("A", 500, 500, 500, weight=60, quantity=2)])
    (warning,) = plan.warnings_of("over_capacity")
    assert warning.severity == "high"
    assert plan.placed_count == 1
    assert plan.warnings_of("weight_limit_exceeded")


def test_weight_distribution_warning_for_lopsided_load(truck):
    plan = LoadOptimizer(truck).optimize([box_item("A", 500, 500, 500, weight=400)])
    (warning,) = plan.warnings_of("weight_distribution")
    assert warning.severity == "high"
    # partial-load advisories do not duplicate the plan-wide check
    assert not plan.warnings_of("center_of_gravity_violation")


def test_loading_sequence_numbers(truck):
    items = [
        box_item("near", 500, 500, 500, delivery="Stop A"),
        box_item("far", 500, 500, 500, delivery="Stop B"),
    ]
    plan = LoadOptimizer(truck, PlanningOptions(loading_sequence="fifo")).optimize(items)
    assert plan.loading_sequence == "fifo"
    assert [p.sequence for p in plan.placements] == [1, 2]
    assert [p.item.id for p in plan.placements] == ["far", "near"]

    plan = LoadOptimizer(truck, PlanningOptions(loading_sequence="lifo")).optimize(items)
    assert [p.item.id for p in plan.placements] == ["near", "far"]


def test_stack_height_option_limits_layers(truck, pallet_order):
    plan = LoadOptimizer(truck, PlanningOptions(max_stack_height=1000)).optimize(pallet_order)
    assert all(p.top <= 1000 for p in plan.placements)
    assert plan.placed_count == 20
    assert len(plan.unplaced) == 10
    assert plan.warnings_of("stack_height_exceeded")


def test_duplicate_item_ids_rejected(truck):
    with pytest.raises(PlanningInputError) as exc:
        LoadOptimizer(truck).optimize([box_item("A", 1, 1, 1), box_item("A", 2, 2, 2)])
    assert exc.value.errors == ["duplicate item id 'A'"]


def test_unknown_stacking_rule_rejected():
    with pytest.raises(PlanningInputError):
        PlanningOptions(stacking_rules={"bogus": 1}).rules()


def test_ensure_unique_ids_accepts_distinct():
    ensure_unique_ids([box_item("A", 1, 1, 1), box_item("B", 1, 1, 1)])


def test_units_past_the_payload_skip_the_position_scan(monkeypatch):
    ct = ContainerType(id="trailer", length=13600, width=2400, height=2700, max_weight=2000)
    validated = []
    original = ConstraintsEngine.validate

    def recording_validate(self, unit, position, existing, nesting_depth=0):
        validated.append(unit.uid)
        return original(self, unit, position, existing, nesting_depth=nesting_depth)

    monkeypatch.setattr(ConstraintsEngine, "validate", recording_validate)
    plan = LoadOptimizer(ct).optimize([box_item("P", 300, 300, 300, weight=10, quantity=400)])

    assert plan.placed_count == 200
    assert len(plan.unplaced) == 200
    assert plan.total_weight == pytest.approx(2000.0)
    assert not {u.uid for u in plan.unplaced} & set(validated)
    (blocked,) = plan.warnings_of("weight_limit_exceeded")
    assert len(blocked.item_ids) == 200
    assert not plan.warnings_of("insufficient_support")


def snapshot(plan):
    return (
        [(p.uid, p.x, p.y, p.z, p.sequence) for p in plan.placements],
        [u.uid for u in plan.unplaced],
        [w.kind for w in plan.warnings],
    )


def test_repeated_runs_give_identical_plans(truck):
    def order():
        return [
            box_item("crate", 1200, 800, 1000, weight=200, quantity=6, delivery="Stop A"),
            box_item("carton", 600, 400, 500, weight=30, quantity=12, delivery="Stop B"),
            cylinder_item("drum", 800, 1000, weight=150, quantity=3),
            cylinder_item("pail", 400, 500, weight=20, quantity=3, nesting=True),
            cylinder_item("roll", 500, 1500, weight=80, quantity=4, orientation="horizontal"),
        ]

    first = LoadOptimizer(truck).optimize(order())
    second = LoadOptimizer(truck).optimize(order())

    assert first.placed_count > 0
    assert snapshot(first) == snapshot(second)
    assert first.center_of_gravity == second.center_of_gravity
    assert_layout_valid(first.placements, truck)

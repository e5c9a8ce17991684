from conftest import assert_layout_valid, box_item, cylinder_item

from loadplan.model.entities import ContainerType, expand_units
from loadplan.model.packers import BottomLeftFill, PlanningSession, blf_order


def test_blf_order_largest_first_then_heavier_line():
    small = box_item("S", 100, 100, 100)
    big = box_item("B", 500, 500, 500)
    light = box_item("L", 200, 200, 200, weight=10, quantity=1)
    heavy = box_item("H", 200, 200, 200, weight=10, quantity=3)
    ordered = blf_order(expand_units([small, light, heavy, big]))
    assert [u.uid for u in ordered] == ["B#1", "H#1", "H#2", "H#3", "L#1", "S#1"]


def test_fills_floor_before_stacking(truck):
    session = PlanningSession(truck)
    units = expand_units([box_item(f"I{i}", 1000, 600, 800, quantity=10) for i in range(3)])
    placed, unused = BottomLeftFill(session).pack(units)

    assert len(placed) == 30
    assert unused == []
    assert sum(1 for p in placed if p.y == 0) == 20
    assert sum(1 for p in placed if p.y == 600) == 10
    assert_layout_valid(placed, truck)
    assert placed[0].x == 0 and placed[0].y == 0 and placed[0].z == 0


def test_cylinders_are_left_for_the_cylinder_packer(truck):
    session = PlanningSession(truck)
    units = expand_units([box_item("B", 500, 500, 500), cylinder_item("C", 400, 800)])
    placed, unused = BottomLeftFill(session).pack(units)
    assert [p.uid for p in placed] == ["B#1"]
    assert [u.uid for u in unused] == ["C#1"]


def test_unit_larger_than_bay_is_unused():
    ct = ContainerType(id="van", length=1000, width=1000, height=1000, max_weight=1000)
    session = PlanningSession(ct)
    placed, unused = BottomLeftFill(session).pack(expand_units([box_item("X", 1200, 500, 500)]))
    assert placed == []
    assert [u.uid for u in unused] == ["X#1"]


def test_rejections_recorded_for_blocked_units():
    ct = ContainerType(id="van", length=1000, width=800, height=2000, max_weight=1000)
    session = PlanningSession(ct)
    units = expand_units([box_item("N", 1000, 600, 800, stackable=False, quantity=2)])
    placed, unused = BottomLeftFill(session).pack(units)
    assert len(placed) == 1
    assert [u.uid for u in unused] == ["N#2"]
    assert [v.kind for v in session.rejections["N#2"]] == ["non_stackable_violation"]


def test_session_free_space_shrinks_with_each_commit(truck):
    session = PlanningSession(truck)
    before = session.free_spaces.total_volume()
    BottomLeftFill(session).pack(expand_units([box_item("A", 1000, 600, 800, quantity=2)]))
    after = session.free_spaces.total_volume()
    assert after < before
    assert len(session.occupancy) == 2

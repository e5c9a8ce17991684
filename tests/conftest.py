import pytest

from loadplan.model.entities import ContainerType, Item, Placement, Unit
from loadplan.model.geometry import GEOM_EPS


def box_item(item_id, length, height, width, weight=50.0, quantity=1, **kwargs):
    return Item(
        id=item_id,
        shape="box",
        length=length,
        height=height,
        width=width,
        weight=weight,
        quantity=quantity,
        **kwargs,
    )


def cylinder_item(item_id, diameter, height, weight=50.0, quantity=1, **kwargs):
    return Item(
        id=item_id,
        shape="cylinder",
        diameter=diameter,
        height=height,
        weight=weight,
        quantity=quantity,
        **kwargs,
    )


def place(item, x, y, z, index=1, orientation="vertical"):
    unit = Unit(item=item, index=index, orientation=orientation)
    return Placement(unit=unit, x=x, y=y, z=z, dims=unit.dims)


def overlaps(a, b, eps=GEOM_EPS):
    ax0, ay0, az0, ax1, ay1, az1 = a.bounds
    bx0, by0, bz0, bx1, by1, bz1 = b.bounds
    return (
        ax0 < bx1 - eps
        and bx0 < ax1 - eps
        and ay0 < by1 - eps
        and by0 < ay1 - eps
        and az0 < bz1 - eps
        and bz0 < az1 - eps
    )


def assert_layout_valid(placements, container_type):
    """Every placement inside the bay and no two placements sharing volume."""
    L, H, W = container_type.bounds
    for p in placements:
        x0, y0, z0, x1, y1, z1 = p.bounds
        assert x0 >= -GEOM_EPS and y0 >= -GEOM_EPS and z0 >= -GEOM_EPS, p.uid
        assert x1 <= L + GEOM_EPS and y1 <= H + GEOM_EPS and z1 <= W + GEOM_EPS, p.uid
    for i, a in enumerate(placements):
        for b in placements[i + 1:]:
            assert not overlaps(a, b), f"{a.uid} overlaps {b.uid}"


@pytest.fixture
def container():
    return ContainerType(id="T", length=4000, width=2000, height=2000, max_weight=1000)


@pytest.fixture
def truck():
    return ContainerType(
        id="truck",
        length=10000,
        width=1800,
        height=2400,
        max_weight=25000,
        max_volume=38.5,
        cost_per_km=30.0,
        name="10m truck",
    )


@pytest.fixture
def catalog():
    return [
        ContainerType(id="small", length=3000, width=1500, height=1500, max_weight=1000, cost_per_km=12.0),
        ContainerType(id="big", length=4000, width=2000, height=2000, max_weight=1200, cost_per_km=25.0),
    ]

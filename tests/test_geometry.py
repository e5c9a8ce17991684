import numpy as np
import pytest

from loadplan.model.geometry import (
    FreeSpace,
    FreeSpaceSet,
    Occupancy,
    boxes_to_array,
    check_bounds_within_container,
    check_collision_numba,
    count_supporters_numba,
    min_gap_numba,
    support_area_numba,
)


def test_bounds_check():
    assert check_bounds_within_container(0.0, 0.0, 0.0, 100.0, 100.0, 100.0, 100.0, 100.0, 100.0, 1e-5)
    assert not check_bounds_within_container(50.0, 0.0, 0.0, 100.0, 100.0, 100.0, 100.0, 100.0, 100.0, 1e-5)
    assert not check_bounds_within_container(-1.0, 0.0, 0.0, 10.0, 10.0, 10.0, 100.0, 100.0, 100.0, 1e-5)


def test_collision_ignores_touching_faces():
    placed = boxes_to_array([(0, 0, 0, 100, 100, 100)])
    dims = np.array([100.0, 100.0, 100.0])
    assert not check_collision_numba(np.array([100.0, 0.0, 0.0]), dims, placed, 1e-5)
    assert check_collision_numba(np.array([99.0, 0.0, 0.0]), dims, placed, 1e-5)


def test_support_area_and_supporters():
    placed = boxes_to_array([(0, 0, 0, 100, 50, 100), (100, 0, 0, 100, 50, 100)])
    pos = np.array([50.0, 50.0, 0.0])
    dims = np.array([100.0, 50.0, 100.0])
    assert support_area_numba(pos, dims, placed, 1.0) == pytest.approx(100.0 * 100.0)
    assert count_supporters_numba(pos, dims, placed, 1.0) == 2
    # not resting on the tops
    assert count_supporters_numba(np.array([50.0, 80.0, 0.0]), dims, placed, 1.0) == 0


def test_min_gap():
    dims = np.array([100.0, 100.0, 100.0])
    assert min_gap_numba(np.array([0.0, 0.0, 0.0]), dims, boxes_to_array([])) == np.inf
    placed = boxes_to_array([(400, 0, 0, 100, 100, 100)])
    assert min_gap_numba(np.array([0.0, 0.0, 0.0]), dims, placed) == pytest.approx(300.0)
    placed = boxes_to_array([(400, 0, 500, 100, 100, 100)])
    assert min_gap_numba(np.array([0.0, 0.0, 0.0]), dims, placed) == pytest.approx(500.0)


def test_occupancy_grows_past_capacity():
    occ = Occupancy(capacity=2)
    for i in range(5):
        occ.insert((i * 10.0, 0.0, 0.0, 10.0, 10.0, 10.0))
    assert len(occ) == 5
    assert occ.data.shape == (5, 6)
    assert occ.intersects((45.0, 0.0, 0.0, 10.0, 10.0, 10.0))
    assert not occ.intersects((50.0, 0.0, 0.0, 10.0, 10.0, 10.0))


def test_empty_occupancy_never_intersects():
    assert not Occupancy().intersects((0.0, 0.0, 0.0, 1.0, 1.0, 1.0))


def test_free_space_split_keeps_set_disjoint_and_ordered():
    spaces = FreeSpaceSet(1000, 1000, 1000)
    spaces.subtract((0, 0, 0, 500, 500, 500))

    corners = [s.corner for s in spaces]
    assert corners == [(0, 0, 500), (500, 0, 0), (0, 500, 0)]
    assert spaces.total_volume() == pytest.approx(1000 ** 3 - 500 ** 3)

    items = list(spaces)
    for i, a in enumerate(items):
        for b in items[i + 1:]:
            assert not a.intersects((b.x, b.y, b.z, b.dx, b.dy, b.dz))


def test_free_space_volume_tracks_successive_subtractions():
    spaces = FreeSpaceSet(1000, 1000, 1000)
    spaces.subtract((0, 0, 0, 500, 500, 500))
    spaces.subtract((500, 0, 0, 500, 500, 500))
    assert spaces.total_volume() == pytest.approx(1000 ** 3 - 2 * 500 ** 3)
    assert all(s.y >= 0 for s in spaces)


def test_thin_residuals_are_pruned():
    spaces = FreeSpaceSet(1000, 1000, 1000, min_size=10.0)
    spaces.subtract((0, 0, 0, 995, 1000, 1000))
    assert len(spaces) == 0


def test_first_fit_in_bottom_left_order():
    spaces = FreeSpaceSet(1000, 1000, 1000)
    spaces.subtract((0, 0, 0, 500, 500, 500))
    assert spaces.first_fit((500, 500, 500)).corner == (0, 0, 500)
    assert spaces.first_fit((1000, 600, 1000)) is None


def test_free_space_fits_and_intersects():
    space = FreeSpace(0, 0, 0, 100, 100, 100)
    assert space.fits((100, 100, 100))
    assert not space.fits((101, 10, 10))
    assert space.intersects((50, 50, 50, 100, 100, 100))
    assert not space.intersects((100, 0, 0, 10, 10, 10))
    assert space.volume == 1e6

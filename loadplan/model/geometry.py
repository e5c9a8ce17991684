from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
import numba

from .entities import Box

GEOM_EPS = 1e-5


@numba.njit(cache=True)
def check_bounds_within_container(x: float, y: float, z: float,
                                  dx: float, dy: float, dz: float,
                                  xmax: float, ymax: float, zmax: float,
                                  epsilon: float) -> bool:
    """Check if a box at (x,y,z) with extents (dx,dy,dz) fits within [0, max] on every axis."""
    if x < -epsilon or y < -epsilon or z < -epsilon:
        return False
    if x + dx > xmax + epsilon:
        return False
    if y + dy > ymax + epsilon:
        return False
    if z + dz > zmax + epsilon:
        return False
    return True


@numba.njit(cache=True)
def check_collision_numba(
    item_pos: np.ndarray,
    item_dims: np.ndarray,
    placed_items_data: np.ndarray,
    epsilon: float,
) -> bool:
    """Checks for collisions between a new box and already placed boxes (rows: x,y,z,dx,dy,dz)."""
    x1, y1, z1 = item_pos[0], item_pos[1], item_pos[2]
    l1, h1, w1 = item_dims[0], item_dims[1], item_dims[2]

    for i in range(placed_items_data.shape[0]):
        x2, y2, z2 = placed_items_data[i, 0], placed_items_data[i, 1], placed_items_data[i, 2]
        l2, h2, w2 = placed_items_data[i, 3], placed_items_data[i, 4], placed_items_data[i, 5]
        if (
            x1 < x2 + l2 - epsilon
            and x1 + l1 > x2 + epsilon
            and y1 < y2 + h2 - epsilon
            and y1 + h1 > y2 + epsilon
            and z1 < z2 + w2 - epsilon
            and z1 + w1 > z2 + epsilon
        ):
            return True
    return False


@numba.njit(cache=True)
def support_area_numba(
    item_pos: np.ndarray,
    item_dims: np.ndarray,
    placed_items_data: np.ndarray,
    epsilon: float,
) -> float:
    """Footprint area (x-z plane) of the candidate covered by boxes whose top touches its base."""
    x, y, z = item_pos[0], item_pos[1], item_pos[2]
    dx, dz = item_dims[0], item_dims[2]
    total = 0.0
    for i in range(placed_items_data.shape[0]):
        px, py, pz = placed_items_data[i, 0], placed_items_data[i, 1], placed_items_data[i, 2]
        pdx, pdy, pdz = placed_items_data[i, 3], placed_items_data[i, 4], placed_items_data[i, 5]
        if abs((py + pdy) - y) > epsilon:
            continue
        overlap_x = min(x + dx, px + pdx) - max(x, px)
        if overlap_x <= 0.0:
            continue
        overlap_z = min(z + dz, pz + pdz) - max(z, pz)
        if overlap_z <= 0.0:
            continue
        total += overlap_x * overlap_z
    return total


@numba.njit(cache=True)
def count_supporters_numba(
    item_pos: np.ndarray,
    item_dims: np.ndarray,
    placed_items_data: np.ndarray,
    epsilon: float,
) -> int:
    """Number of distinct boxes whose top touches the candidate's base with positive overlap."""
    x, y, z = item_pos[0], item_pos[1], item_pos[2]
    dx, dz = item_dims[0], item_dims[2]
    count = 0
    for i in range(placed_items_data.shape[0]):
        px, py, pz = placed_items_data[i, 0], placed_items_data[i, 1], placed_items_data[i, 2]
        pdx, pdy, pdz = placed_items_data[i, 3], placed_items_data[i, 4], placed_items_data[i, 5]
        if abs((py + pdy) - y) > epsilon:
            continue
        if min(x + dx, px + pdx) - max(x, px) <= epsilon:
            continue
        if min(z + dz, pz + pdz) - max(z, pz) <= epsilon:
            continue
        count += 1
    return count


@numba.njit(cache=True)
def min_gap_numba(
    item_pos: np.ndarray,
    item_dims: np.ndarray,
    placed_items_data: np.ndarray,
) -> float:
    """Smallest clear (edge-to-edge) distance from the candidate to any placed box; inf if none."""
    best = np.inf
    for i in range(placed_items_data.shape[0]):
        acc = 0.0
        for a in range(3):
            lo = max(item_pos[a], placed_items_data[i, a])
            hi = min(item_pos[a] + item_dims[a], placed_items_data[i, a] + placed_items_data[i, 3 + a])
            gap = lo - hi
            if gap > 0.0:
                acc += gap * gap
        d = np.sqrt(acc)
        if d < best:
            best = d
    return best


def boxes_to_array(boxes: Sequence[Box]) -> np.ndarray:
    if not boxes:
        return np.zeros((0, 6), dtype=np.float64)
    return np.ascontiguousarray(np.array(boxes, dtype=np.float64).reshape(-1, 6))


def split_box(box: Box) -> Tuple[np.ndarray, np.ndarray]:
    return (
        np.array(box[0:3], dtype=np.float64),
        np.array(box[3:6], dtype=np.float64),
    )


class Occupancy:
    """
    Arena of occupied bounding volumes shared by every packer working on one
    container. Entries are referenced by their row index.
    """

    def __init__(self, capacity: int = 64, epsilon: float = GEOM_EPS) -> None:
        self._boxes = np.zeros((max(1, capacity), 6), dtype=np.float64)
        self._count = 0
        self.epsilon = epsilon

    def __len__(self) -> int:
        return self._count

    @property
    def data(self) -> np.ndarray:
        return self._boxes[: self._count]

    def intersects(self, box: Box) -> bool:
        if self._count == 0:
            return False
        pos, dims = split_box(box)
        return bool(check_collision_numba(pos, dims, self.data, self.epsilon))

    def insert(self, box: Box) -> int:
        if self._count == self._boxes.shape[0]:
            grown = np.zeros((self._boxes.shape[0] * 2, 6), dtype=np.float64)
            grown[: self._count] = self._boxes[: self._count]
            self._boxes = grown
        self._boxes[self._count] = box
        self._count += 1
        return self._count - 1


@dataclass
class FreeSpace:
    x: float
    y: float
    z: float
    dx: float
    dy: float
    dz: float

    @property
    def corner(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    @property
    def volume(self) -> float:
        return self.dx * self.dy * self.dz

    def fits(self, dims: Tuple[float, float, float], eps: float = GEOM_EPS) -> bool:
        return dims[0] <= self.dx + eps and dims[1] <= self.dy + eps and dims[2] <= self.dz + eps

    def intersects(self, box: Box, eps: float = GEOM_EPS) -> bool:
        bx, by, bz, bdx, bdy, bdz = box
        return not (
            self.x + self.dx <= bx + eps
            or bx + bdx <= self.x + eps
            or self.y + self.dy <= by + eps
            or by + bdy <= self.y + eps
            or self.z + self.dz <= bz + eps
            or bz + bdz <= self.z + eps
        )


class FreeSpaceSet:
    """
    Explicit set of disjoint empty boxes covering the container minus every
    occupied volume. Ordered bottom-left-fill style: lowest y, then x, then z.
    """

    def __init__(self, length: float, height: float, width: float, min_size: float = 10.0) -> None:
        self.min_size = min_size
        self.spaces: List[FreeSpace] = [FreeSpace(0.0, 0.0, 0.0, length, height, width)]

    def __len__(self) -> int:
        return len(self.spaces)

    def __iter__(self) -> Iterator[FreeSpace]:
        return iter(self.spaces)

    def candidates(self, dims: Tuple[float, float, float]) -> Iterator[FreeSpace]:
        for space in list(self.spaces):
            if space.fits(dims):
                yield space

    def first_fit(self, dims: Tuple[float, float, float]) -> Optional[FreeSpace]:
        return next(self.candidates(dims), None)

    def total_volume(self) -> float:
        return sum(s.volume for s in self.spaces)

    def subtract(self, box: Box) -> None:
        updated: List[FreeSpace] = []
        for space in self.spaces:
            if not space.intersects(box):
                updated.append(space)
                continue
            updated.extend(r for r in self._split(space, box) if self._keep(r))
        updated.sort(key=lambda s: (round(s.y, 6), round(s.x, 6), round(s.z, 6)))
        self.spaces = updated

    def _keep(self, space: FreeSpace) -> bool:
        return space.dx >= self.min_size and space.dy >= self.min_size and space.dz >= self.min_size

    @staticmethod
    def _split(space: FreeSpace, box: Box) -> List[FreeSpace]:
        bx, by, bz, bdx, bdy, bdz = box
        sx1, sy1, sz1 = space.x + space.dx, space.y + space.dy, space.z + space.dz
        # intersection of the occupied box with this space
        ix0, iy0, iz0 = max(space.x, bx), max(space.y, by), max(space.z, bz)
        ix1, iy1, iz1 = min(sx1, bx + bdx), min(sy1, by + bdy), min(sz1, bz + bdz)

        out: List[FreeSpace] = []
        # left / right: full extent of the space in y and z
        if ix0 > space.x:
            out.append(FreeSpace(space.x, space.y, space.z, ix0 - space.x, space.dy, space.dz))
        if ix1 < sx1:
            out.append(FreeSpace(ix1, space.y, space.z, sx1 - ix1, space.dy, space.dz))
        # front / back: clamped to the intersection in x
        if iz0 > space.z:
            out.append(FreeSpace(ix0, space.y, space.z, ix1 - ix0, space.dy, iz0 - space.z))
        if iz1 < sz1:
            out.append(FreeSpace(ix0, space.y, iz1, ix1 - ix0, space.dy, sz1 - iz1))
        # bottom / top: clamped to the intersection in x and z
        if iy0 > space.y:
            out.append(FreeSpace(ix0, space.y, iz0, ix1 - ix0, iy0 - space.y, iz1 - iz0))
        if iy1 < sy1:
            out.append(FreeSpace(ix0, iy1, iz0, ix1 - ix0, sy1 - iy1, iz1 - iz0))
        return [s for s in out if s.dx > 0 and s.dy > 0 and s.dz > 0]

"""
Packers module - provides the placement algorithms for one container.

This module re-exports the packer classes and the shared state they work on:
- blf_packer: BottomLeftFill for box units
- cylinder_packer: CylinderPacker for circular-footprint units (rings, nesting, horizontal rows)
- session: PlanningSession, the occupancy / free-space arena both packers share
- geometry: numba kernels and arena classes
"""

from __future__ import annotations

# Re-export from blf_packer
from .blf_packer import BottomLeftFill, blf_order

# Re-export from cylinder_packer
from .cylinder_packer import CylinderPacker

# Re-export shared session state
from .session import PlanningSession

# Re-export geometry helpers and numba kernels
from .geometry import (
    FreeSpace,
    FreeSpaceSet,
    Occupancy,
    check_bounds_within_container,
    check_collision_numba,
    count_supporters_numba,
    min_gap_numba,
    support_area_numba,
)

__all__ = [
    # BLF algorithm
    "BottomLeftFill",
    "blf_order",
    # Cylinders
    "CylinderPacker",
    # Shared state
    "PlanningSession",
    "FreeSpace",
    "FreeSpaceSet",
    "Occupancy",
    # Numba functions
    "check_bounds_within_container",
    "check_collision_numba",
    "count_supporters_numba",
    "min_gap_numba",
    "support_area_numba",
]

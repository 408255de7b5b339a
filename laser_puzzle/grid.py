"""Geometry helpers for square puzzle grids."""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from .materials import GridPosition

SIDES = ("top", "bottom", "left", "right")
QUADRANTS = (0, 1, 2, 3)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_within_bounds(position: Sequence[int], grid_size: int) -> bool:
    row, col = position[0], position[1]
    return 0 <= row < grid_size and 0 <= col < grid_size


def is_boundary_position(position: Sequence[int], grid_size: int) -> bool:
    if not is_within_bounds(position, grid_size):
        return False
    row, col = position[0], position[1]
    last = grid_size - 1
    return row in (0, last) or col in (0, last)


# Exits and entries share the same rule: any boundary cell.
is_exit_point = is_boundary_position


def is_corner(position: Sequence[int], grid_size: int) -> bool:
    last = grid_size - 1
    return position[0] in (0, last) and position[1] in (0, last)


def get_side(position: Sequence[int], grid_size: int) -> str:
    """Name the edge a boundary cell sits on; corners resolve by row first."""

    row, col = position[0], position[1]
    last = grid_size - 1
    if row == 0:
        return "top"
    if row == last:
        return "bottom"
    if col == 0:
        return "left"
    if col == last:
        return "right"
    raise ValueError(f"{tuple(position)} is not on the boundary of a {grid_size}x{grid_size} grid")


def boundary_positions(grid_size: int) -> List[GridPosition]:
    """Every boundary cell once, clockwise from the top-left corner."""

    if grid_size < 1:
        return []
    if grid_size == 1:
        return [(0, 0)]
    last = grid_size - 1
    positions: List[GridPosition] = [(0, col) for col in range(grid_size)]
    positions.extend((row, last) for row in range(1, grid_size))
    positions.extend((last, col) for col in range(last - 1, -1, -1))
    positions.extend((row, 0) for row in range(last - 1, 0, -1))
    return positions


def manhattan_distance(a: Sequence[int], b: Sequence[int]) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def euclidean_distance(a: Sequence[int], b: Sequence[int]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def max_diagonal_distance(grid_size: int) -> float:
    return math.sqrt(2) * (grid_size - 1)


def clamp_to_grid(position: Sequence[int], grid_size: int) -> GridPosition:
    last = grid_size - 1
    return (max(0, min(last, position[0])), max(0, min(last, position[1])))


def step(position: Sequence[int], direction: float) -> GridPosition:
    """Advance one cell from *position* along *direction* degrees."""

    radians = math.radians(direction)
    return (
        position[0] + _round_half_up(math.sin(radians)),
        position[1] + _round_half_up(math.cos(radians)),
    )


def quadrant_bounds(quadrant: int, grid_size: int) -> Tuple[int, int, int, int]:
    """Return ``(row_start, row_end, col_start, col_end)`` with exclusive ends."""

    if quadrant not in QUADRANTS:
        raise ValueError(f"Quadrant must be 0-3, got {quadrant}")
    half = grid_size // 2
    rows = (0, half) if quadrant in (0, 1) else (half, grid_size)
    cols = (0, half) if quadrant in (0, 2) else (half, grid_size)
    return rows[0], rows[1], cols[0], cols[1]


def quadrant_of(position: Sequence[int], grid_size: int) -> int:
    half = grid_size // 2
    return (2 if position[0] >= half else 0) + (1 if position[1] >= half else 0)

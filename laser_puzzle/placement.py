"""Ranking of entry/exit boundary pairs by spacing and strategic value."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .config import (
    CORNER_BASE_SCORE,
    DEFAULT_CONFIG,
    EDGE_BASE_SCORE,
    Difficulty,
    GenerationConfig,
)
from .grid import (
    boundary_positions,
    euclidean_distance,
    get_side,
    is_boundary_position,
    is_corner,
    manhattan_distance,
)
from .materials import GridPosition

logger = logging.getLogger(__name__)

PLACEMENT_CORNER = "corner"
PLACEMENT_EDGE = "edge"
PLACEMENT_OPTIMAL = "optimal"

OPPOSITE_SIDES = {("top", "bottom"), ("bottom", "top"), ("left", "right"), ("right", "left")}


@dataclass(frozen=True)
class EntryExitPair:
    entry: GridPosition
    exit: GridPosition
    distance: int
    validation_score: float
    placement_type: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "entry": list(self.entry),
            "exit": list(self.exit),
            "distance": self.distance,
            "validation_score": self.validation_score,
            "placement_type": self.placement_type,
        }


class CacheLookup(Protocol):
    """Anything able to memoise a computed value under a string key."""

    def get_or_compute(self, key: str, compute: Callable[[], object]) -> object:
        ...


class InMemoryCache:
    """Dictionary backed :class:`CacheLookup`."""

    def __init__(self) -> None:
        self._values: Dict[str, object] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: str, compute: Callable[[], object]) -> object:
        if key in self._values:
            self.hits += 1
            return self._values[key]
        self.misses += 1
        value = compute()
        self._values[key] = value
        return value

    def clear(self) -> None:
        self._values.clear()


class PointPlacementService:
    """Enumerates and scores candidate entry/exit pairs for a difficulty."""

    def __init__(
        self,
        config: GenerationConfig = DEFAULT_CONFIG,
        cache: Optional[CacheLookup] = None,
    ):
        self.config = config
        self.cache = cache

    def select_entry_exit_pairs(
        self,
        difficulty: Difficulty,
        grid_size: Optional[int] = None,
        search_multiplier: int = 1,
    ) -> List[EntryExitPair]:
        """Best-first candidates, capped at the difficulty's search budget.

        ``search_multiplier`` widens the cap when a generator needs to look
        further down the ranking; the minimum distance never relaxes.
        """

        difficulty = Difficulty.from_name(difficulty)
        if grid_size is None:
            grid_size = self.config.grid_size_for(difficulty)
        if search_multiplier < 1:
            raise ValueError("search_multiplier must be at least 1")

        def compute() -> Tuple[EntryExitPair, ...]:
            return tuple(self._rank_pairs(difficulty, grid_size, search_multiplier))

        if self.cache is None:
            return list(compute())
        key = f"placement:{difficulty.value}:{grid_size}:{search_multiplier}"
        return list(self.cache.get_or_compute(key, compute))

    def _rank_pairs(
        self, difficulty: Difficulty, grid_size: int, search_multiplier: int
    ) -> List[EntryExitPair]:
        spacing = self.config.spacing_for(difficulty)
        boundary = boundary_positions(grid_size)
        candidates: List[EntryExitPair] = []
        for entry in boundary:
            for exit_cell in boundary:
                if entry == exit_cell:
                    continue
                distance = manhattan_distance(entry, exit_cell)
                if distance < spacing.min_distance:
                    continue
                candidates.append(
                    EntryExitPair(
                        entry=entry,
                        exit=exit_cell,
                        distance=distance,
                        validation_score=self.score_pair(entry, exit_cell, difficulty, grid_size),
                        placement_type=self.placement_type(entry, exit_cell, grid_size),
                    )
                )
        candidates.sort(key=lambda pair: pair.validation_score, reverse=True)
        limit = spacing.max_search_attempts * search_multiplier
        logger.debug(
            "Ranked %d entry/exit pairs for %s on a %dx%d grid, keeping %d",
            len(candidates),
            difficulty.value,
            grid_size,
            grid_size,
            min(limit, len(candidates)),
        )
        return candidates[:limit]

    def score_pair(
        self,
        entry: Sequence[int],
        exit_cell: Sequence[int],
        difficulty: Difficulty,
        grid_size: int,
    ) -> float:
        spacing = self.config.spacing_for(difficulty)
        distance = manhattan_distance(entry, exit_cell)

        deviation = abs(distance - spacing.preferred_distance)
        max_deviation = max(
            spacing.preferred_distance - spacing.min_distance,
            grid_size * 2 - spacing.preferred_distance,
        )
        score = (1 - deviation / max_deviation) * 40

        score += (
            self.position_score(entry, difficulty, grid_size)
            + self.position_score(exit_cell, difficulty, grid_size)
        ) * 20

        if distance > 0:
            score += euclidean_distance(entry, exit_cell) / distance * 10

        score += self.side_bonus(entry, exit_cell, grid_size) * 10
        return round(score, 2)

    def position_score(self, position: Sequence[int], difficulty: Difficulty, grid_size: int) -> float:
        spacing = self.config.spacing_for(difficulty)
        if is_corner(position, grid_size):
            return CORNER_BASE_SCORE * spacing.corner_bonus
        if is_boundary_position(position, grid_size):
            return EDGE_BASE_SCORE * spacing.edge_bonus
        return 0.0

    @staticmethod
    def side_bonus(entry: Sequence[int], exit_cell: Sequence[int], grid_size: int) -> float:
        entry_side = get_side(entry, grid_size)
        exit_side = get_side(exit_cell, grid_size)
        if entry_side == exit_side:
            return 0.0
        if (entry_side, exit_side) in OPPOSITE_SIDES:
            return 1.0
        return 0.5

    @staticmethod
    def placement_type(entry: Sequence[int], exit_cell: Sequence[int], grid_size: int) -> str:
        entry_corner = is_corner(entry, grid_size)
        exit_corner = is_corner(exit_cell, grid_size)
        if entry_corner and exit_corner:
            return PLACEMENT_CORNER
        if entry_corner or exit_corner:
            return PLACEMENT_OPTIMAL
        return PLACEMENT_EDGE

    def validate_spacing(
        self, entry: Sequence[int], exit_cell: Sequence[int], difficulty: Difficulty
    ) -> bool:
        spacing = self.config.spacing_for(difficulty)
        return manhattan_distance(entry, exit_cell) >= spacing.min_distance

    @staticmethod
    def validate_position(position: Sequence[int], grid_size: int) -> bool:
        return is_boundary_position(position, grid_size)

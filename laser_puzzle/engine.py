"""Ray tracing of a laser beam through a grid of materials."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .grid import clamp_to_grid, get_side, is_boundary_position, is_within_bounds, step
from .materials import (
    GridPosition,
    Material,
    MaterialType,
    default_outcome,
    interact,
    normalize_angle,
    possible_outcomes,
)

MAX_BOUNCES = 1000
MIN_INTENSITY = 0.01
DEFAULT_EXPLORATION_BUDGET = 64

# Heading for a beam that enters from each edge of the grid.
ENTRY_DIRECTIONS: Dict[str, float] = {
    "top": 90.0,
    "bottom": 270.0,
    "left": 0.0,
    "right": 180.0,
}

# (options, chosen) recorded for every probabilistic interaction of a trace.
Choice = Tuple[int, int]
Chooser = Callable[[Material, int, int], int]


class TerminationReason(str, Enum):
    EXIT = "exit"
    ABSORBED = "absorbed"
    MAX_BOUNCES = "max_bounces"
    MIN_INTENSITY = "min_intensity"


@dataclass(frozen=True)
class PathSegment:
    """One hop of the beam between neighbouring cells."""

    start: GridPosition
    end: GridPosition
    direction: float
    material: Optional[Material] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "start": list(self.start),
            "end": list(self.end),
            "direction": self.direction,
        }
        if self.material is not None:
            payload["material"] = self.material.to_dict()
        return payload


@dataclass(frozen=True)
class LaserPath:
    segments: Tuple[PathSegment, ...]
    exit: Optional[GridPosition]
    terminated: bool
    termination_reason: TerminationReason
    bounces: int = 0
    intensity: float = 1.0
    choices: Tuple[Choice, ...] = field(default=(), repr=False, compare=False)

    @property
    def reached_exit(self) -> bool:
        return not self.terminated and self.exit is not None

    @property
    def cells(self) -> List[GridPosition]:
        """Cells in visiting order, starting with the entry."""

        if not self.segments:
            return []
        visited = [self.segments[0].start]
        visited.extend(segment.end for segment in self.segments)
        return visited

    @property
    def interactions(self) -> List[Material]:
        return [segment.material for segment in self.segments if segment.material is not None]

    def to_dict(self) -> Dict[str, object]:
        return {
            "segments": [segment.to_dict() for segment in self.segments],
            "exit": list(self.exit) if self.exit is not None else None,
            "terminated": self.terminated,
            "termination_reason": self.termination_reason.value,
            "bounces": self.bounces,
            "intensity": round(self.intensity, 6),
        }


@dataclass(frozen=True)
class Exploration:
    """Every trace reachable by varying glass and water outcomes."""

    paths: Tuple[LaserPath, ...]
    truncated: bool = False

    @property
    def deterministic(self) -> LaserPath:
        return self.paths[0]

    @property
    def exits(self) -> List[GridPosition]:
        found: List[GridPosition] = []
        for path in self.paths:
            if path.reached_exit and path.exit not in found:
                found.append(path.exit)
        return found


def infer_direction(entry: Sequence[int], grid_size: int) -> float:
    """Heading that carries a beam from a boundary cell into the grid."""

    if not is_boundary_position(entry, grid_size):
        raise ValueError(f"Entry {tuple(entry)} is not on the grid boundary")
    return ENTRY_DIRECTIONS[get_side(entry, grid_size)]


def _index_materials(materials: Iterable[Material]) -> Dict[GridPosition, Material]:
    return {tuple(material.position): material for material in materials}


def _default_chooser(material: Material, options: int, index: int) -> int:
    return default_outcome(material)


class ReflectionEngine:
    """Stateless beam tracer; instances only carry their guard limits."""

    def __init__(
        self,
        max_bounces: int = MAX_BOUNCES,
        min_intensity: float = MIN_INTENSITY,
    ):
        self.max_bounces = max_bounces
        self.min_intensity = min_intensity

    def trace(
        self,
        materials: Iterable[Material],
        entry: Sequence[int],
        grid_size: int,
        initial_direction: Optional[float] = None,
    ) -> LaserPath:
        return self._run(_index_materials(materials), entry, grid_size, initial_direction, _default_chooser)

    def trace_with_choices(
        self,
        materials: Iterable[Material],
        entry: Sequence[int],
        grid_size: int,
        choices: Sequence[int],
        initial_direction: Optional[float] = None,
    ) -> LaserPath:
        """Trace with explicit outcomes for the first probabilistic interactions.

        Interactions beyond ``choices`` fall back to the deterministic outcome.
        """

        return self._run(
            _index_materials(materials),
            entry,
            grid_size,
            initial_direction,
            self._prefix_chooser(choices),
        )

    def explore(
        self,
        materials: Iterable[Material],
        entry: Sequence[int],
        grid_size: int,
        initial_direction: Optional[float] = None,
        budget: int = DEFAULT_EXPLORATION_BUDGET,
    ) -> Exploration:
        """Enumerate traces over every glass/water outcome, up to *budget* traces."""

        lookup = _index_materials(materials)
        pending: List[Tuple[int, ...]] = [()]
        paths: List[LaserPath] = []
        truncated = False
        while pending:
            if len(paths) >= budget:
                truncated = True
                break
            prefix = pending.pop()
            path = self._run(lookup, entry, grid_size, initial_direction, self._prefix_chooser(prefix))
            paths.append(path)
            taken = [chosen for _, chosen in path.choices]
            alternatives: List[Tuple[int, ...]] = []
            for index in range(len(prefix), len(path.choices)):
                options, chosen = path.choices[index]
                for outcome in range(options):
                    if outcome != chosen:
                        alternatives.append(tuple(taken[:index]) + (outcome,))
            # Reversed so the earliest branch point is explored first.
            pending.extend(reversed(alternatives))
        return Exploration(paths=tuple(paths), truncated=truncated)

    @staticmethod
    def _prefix_chooser(prefix: Sequence[int]) -> Chooser:
        def choose(material: Material, options: int, index: int) -> int:
            if index < len(prefix):
                return prefix[index]
            return default_outcome(material)

        return choose

    def _run(
        self,
        lookup: Mapping[GridPosition, Material],
        entry: Sequence[int],
        grid_size: int,
        initial_direction: Optional[float],
        chooser: Chooser,
    ) -> LaserPath:
        if not is_within_bounds(entry, grid_size):
            raise ValueError(f"Entry {tuple(entry)} is outside a {grid_size}x{grid_size} grid")
        if initial_direction is None:
            direction = infer_direction(entry, grid_size)
        else:
            direction = normalize_angle(initial_direction)

        position: GridPosition = (int(entry[0]), int(entry[1]))
        intensity = 1.0
        bounces = 0
        segments: List[PathSegment] = []
        choices: List[Choice] = []

        def finish(
            exit_cell: Optional[GridPosition],
            terminated: bool,
            reason: TerminationReason,
        ) -> LaserPath:
            return LaserPath(
                segments=tuple(segments),
                exit=exit_cell,
                terminated=terminated,
                termination_reason=reason,
                bounces=bounces,
                intensity=intensity,
                choices=tuple(choices),
            )

        for _ in range(self.max_bounces):
            next_cell = step(position, direction)
            if not is_within_bounds(next_cell, grid_size):
                return finish(clamp_to_grid(next_cell, grid_size), False, TerminationReason.EXIT)

            material = lookup.get(next_cell)
            if material is None:
                segments.append(PathSegment(position, next_cell, direction))
                position = next_cell
                continue

            options = possible_outcomes(material)
            outcome = None
            if options > 1:
                outcome = chooser(material, options, len(choices))
                choices.append((options, outcome))
            result = interact(material, direction, intensity, outcome)
            segments.append(PathSegment(position, next_cell, direction, material))
            position = next_cell

            if material.type is MaterialType.ABSORBER or material.properties.absorption:
                intensity = 0.0
                return finish(None, True, TerminationReason.ABSORBED)
            if result.new_direction != direction:
                bounces += 1
            direction = result.new_direction
            intensity = result.intensity
            if intensity < self.min_intensity:
                return finish(None, True, TerminationReason.MIN_INTENSITY)

        return finish(None, True, TerminationReason.MAX_BOUNCES)


_DEFAULT_ENGINE = ReflectionEngine()


def trace_path(
    materials: Iterable[Material],
    entry: Sequence[int],
    grid_size: int,
    initial_direction: Optional[float] = None,
) -> LaserPath:
    return _DEFAULT_ENGINE.trace(materials, entry, grid_size, initial_direction)

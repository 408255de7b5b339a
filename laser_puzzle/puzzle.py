"""Puzzle artifacts plus hint slicing and answer checking."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import Difficulty
from .engine import LaserPath, PathSegment, ReflectionEngine, TerminationReason
from .grid import euclidean_distance, max_diagonal_distance, quadrant_bounds
from .materials import GridPosition, Material

HINT_PERCENTAGES = (25, 50, 75, 100)


@dataclass(frozen=True)
class HintPath:
    level: int
    segments: Tuple[PathSegment, ...]
    revealed_cells: Tuple[GridPosition, ...]
    percentage: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "level": self.level,
            "segments": [segment.to_dict() for segment in self.segments],
            "revealed_cells": [list(cell) for cell in self.revealed_cells],
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class Puzzle:
    """A validated puzzle; never mutated once built."""

    id: str
    difficulty: Difficulty
    grid_size: int
    materials: Tuple[Material, ...]
    entry: GridPosition
    solution: GridPosition
    solution_path: LaserPath
    hints: Tuple[HintPath, ...]
    material_density: float
    created_at: str = ""

    def material_at(self, position: Sequence[int]) -> Optional[Material]:
        for material in self.materials:
            if tuple(material.position) == tuple(position):
                return material
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "difficulty": Difficulty.from_name(self.difficulty).value,
            "grid_size": self.grid_size,
            "materials": [material.to_dict() for material in self.materials],
            "entry": list(self.entry),
            "solution": list(self.solution),
            "solution_path": self.solution_path.to_dict(),
            "hints": [hint.to_dict() for hint in self.hints],
            "material_density": self.material_density,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class AnswerResult:
    is_correct: bool
    correct_exit: GridPosition
    accuracy: int


@dataclass(frozen=True)
class DailyPuzzleSet:
    date: str
    puzzles: Mapping[Difficulty, Puzzle]
    created_at: str = field(default_factory=lambda: _utc_now())

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date,
            "puzzles": {
                Difficulty.from_name(difficulty).value: puzzle.to_dict()
                for difficulty, puzzle in self.puzzles.items()
            },
            "created_at": self.created_at,
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def material_density(materials: Sequence[Material], grid_size: int) -> float:
    return len(materials) / float(grid_size * grid_size) if grid_size > 0 else 0.0


def _cells_of(segments: Sequence[PathSegment]) -> Tuple[GridPosition, ...]:
    if not segments:
        return ()
    cells: List[GridPosition] = [segments[0].start]
    cells.extend(segment.end for segment in segments)
    return tuple(cells)


def build_hints(path: LaserPath) -> Tuple[HintPath, ...]:
    """Four progressive reveals of *path* at 25, 50, 75 and 100 percent."""

    total = len(path.segments)
    hints = []
    for level, percentage in enumerate(HINT_PERCENTAGES, start=1):
        count = int(math.ceil(total * percentage / 100.0))
        segments = tuple(path.segments[:count])
        hints.append(HintPath(level, segments, _cells_of(segments), percentage))
    return tuple(hints)


def create_puzzle(
    difficulty: Difficulty,
    grid_size: int,
    materials: Iterable[Material],
    entry: Sequence[int],
    solution: Sequence[int],
    puzzle_id: Optional[str] = None,
    created_at: Optional[str] = None,
    engine: Optional[ReflectionEngine] = None,
) -> Puzzle:
    """Trace the layout once and bundle it with its hints."""

    difficulty = Difficulty.from_name(difficulty)
    materials = tuple(materials)
    entry = (int(entry[0]), int(entry[1]))
    engine = engine or ReflectionEngine()
    path = engine.trace(materials, entry, grid_size)
    return Puzzle(
        id=puzzle_id or f"puzzle-{difficulty.value.lower()}-{uuid.uuid4().hex[:12]}",
        difficulty=difficulty,
        grid_size=grid_size,
        materials=materials,
        entry=entry,
        solution=(int(solution[0]), int(solution[1])),
        solution_path=path,
        hints=build_hints(path),
        material_density=round(material_density(materials, grid_size), 4),
        created_at=created_at or _utc_now(),
    )


def _coordinate(value: object) -> GridPosition:
    try:
        row, col = value
        return (int(row), int(col))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected a (row, col) coordinate, got {value!r}") from exc


def validate_answer(
    puzzle: Puzzle,
    coordinate: Sequence[int],
    engine: Optional[ReflectionEngine] = None,
) -> AnswerResult:
    """Compare a player's exit guess with a fresh trace of *puzzle*."""

    guess = _coordinate(coordinate)
    engine = engine or ReflectionEngine()
    path = engine.trace(puzzle.materials, puzzle.entry, puzzle.grid_size)
    correct = path.exit if path.reached_exit else puzzle.solution
    if guess == correct:
        return AnswerResult(True, correct, 100)

    max_distance = max_diagonal_distance(puzzle.grid_size)
    if max_distance <= 0:
        return AnswerResult(False, correct, 0)
    ratio = 1 - euclidean_distance(guess, correct) / max_distance
    accuracy = _round_half_up(100 * max(0.0, ratio))
    return AnswerResult(False, correct, accuracy)


def _segment_hits_quadrant(segment: PathSegment, bounds: Tuple[int, int, int, int]) -> bool:
    row_start, row_end, col_start, col_end = bounds
    rows = sorted((segment.start[0], segment.end[0]))
    cols = sorted((segment.start[1], segment.end[1]))
    return rows[0] < row_end and rows[1] >= row_start and cols[0] < col_end and cols[1] >= col_start


def get_hint_path(puzzle: Puzzle, quadrant: int) -> LaserPath:
    """The solution segments touching one quadrant, with the exit withheld."""

    bounds = quadrant_bounds(quadrant, puzzle.grid_size)
    full = puzzle.solution_path
    selected = []
    turns = 0
    for index, segment in enumerate(full.segments):
        if not _segment_hits_quadrant(segment, bounds):
            continue
        selected.append(segment)
        following = full.segments[index + 1] if index + 1 < len(full.segments) else None
        if following is not None and following.direction != segment.direction:
            turns += 1
    return LaserPath(
        segments=tuple(selected),
        exit=None,
        terminated=False,
        termination_reason=full.termination_reason,
        bounces=turns,
        intensity=full.intensity,
    )


def path_from_dict(data: Mapping[str, object]) -> LaserPath:
    segments = tuple(_segment_from_dict(item) for item in data.get("segments", []))
    exit_cell = data.get("exit")
    return LaserPath(
        segments=segments,
        exit=_coordinate(exit_cell) if exit_cell is not None else None,
        terminated=bool(data.get("terminated", False)),
        termination_reason=TerminationReason(data.get("termination_reason", "exit")),
        bounces=int(data.get("bounces", 0)),
        intensity=float(data.get("intensity", 1.0)),
    )


def _segment_from_dict(data: Mapping[str, object]) -> PathSegment:
    material = data.get("material")
    return PathSegment(
        start=_coordinate(data["start"]),
        end=_coordinate(data["end"]),
        direction=float(data["direction"]),
        material=Material.from_dict(material) if isinstance(material, Mapping) else None,
    )


def puzzle_from_dict(data: Mapping[str, object]) -> Puzzle:
    """Rebuild a :class:`Puzzle` from the payload produced by ``to_dict``."""

    hints = []
    for item in data.get("hints", []):
        segments = tuple(_segment_from_dict(segment) for segment in item.get("segments", []))
        hints.append(
            HintPath(
                level=int(item["level"]),
                segments=segments,
                revealed_cells=tuple(_coordinate(cell) for cell in item.get("revealed_cells", [])),
                percentage=int(item.get("percentage", 0)),
            )
        )
    grid_size = int(data["grid_size"])
    materials = tuple(Material.from_dict(item) for item in data.get("materials", []))
    return Puzzle(
        id=str(data["id"]),
        difficulty=Difficulty.from_name(data["difficulty"]),
        grid_size=grid_size,
        materials=materials,
        entry=_coordinate(data["entry"]),
        solution=_coordinate(data["solution"]),
        solution_path=path_from_dict(data["solution_path"]),
        hints=tuple(hints),
        material_density=float(
            data.get("material_density", material_density(materials, grid_size))
        ),
        created_at=str(data.get("created_at", "")),
    )


def render_board(puzzle: Puzzle, show_path: bool = False) -> str:
    """ASCII picture of the board; ``E`` marks the entry, ``X`` the solution."""

    symbols = {
        "water": "W",
        "glass": "G",
        "metal": "M",
        "absorber": "A",
    }
    path_cells = set(puzzle.solution_path.cells) if show_path else set()
    rows = []
    for row in range(puzzle.grid_size):
        tokens = []
        for col in range(puzzle.grid_size):
            cell = (row, col)
            material = puzzle.material_at(cell)
            if cell == puzzle.entry:
                token = "E"
            elif cell == puzzle.solution:
                token = "X"
            elif material is not None:
                token = symbols.get(material.type.value) or _mirror_symbol(material)
            elif cell in path_cells:
                token = "*"
            else:
                token = "."
            tokens.append(token)
        rows.append(" ".join(tokens))
    return "\n".join(rows)


def _mirror_symbol(material: Material) -> str:
    angle = (material.angle or 0.0) % 180
    if angle == 45:
        return "\\"
    if angle == 135:
        return "/"
    if angle in (0, 90):
        return "-" if angle == 0 else "|"
    return "m"


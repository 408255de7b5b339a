"""Structural, physical and uniqueness checks for puzzles."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .config import DEFAULT_CONFIG, MATERIAL_VARIETY_FLOOR, Difficulty, GenerationConfig
from .engine import DEFAULT_EXPLORATION_BUDGET, LaserPath, ReflectionEngine
from .grid import is_boundary_position, is_within_bounds, manhattan_distance
from .materials import GridPosition, MaterialType, UnknownMaterialError
from .puzzle import DailyPuzzleSet, Puzzle

BASE_CONFIDENCE = 70
HINT_LEVELS = 4


class IssueKind(str, Enum):
    STRUCTURE = "structure"
    GRID = "grid"
    MATERIAL = "material"
    DENSITY = "density"
    DIFFICULTY = "difficulty"
    NO_SOLUTION = "no_solution"
    SOLUTION_MISMATCH = "solution_mismatch"
    MULTIPLE_SOLUTIONS = "multiple_solutions"
    COMPLEXITY = "complexity"
    EXPLORATION_TRUNCATED = "exploration_truncated"


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

PHYSICS_KINDS = {IssueKind.NO_SOLUTION, IssueKind.SOLUTION_MISMATCH, IssueKind.MULTIPLE_SOLUTIONS}


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    message: str
    severity: str = SEVERITY_ERROR

    @property
    def is_error(self) -> bool:
        return self.severity == SEVERITY_ERROR


@dataclass
class ValidationResult:
    issues: List[ValidationIssue] = field(default_factory=list)
    solution_path: Optional[LaserPath] = None
    alternative_exits: List[GridPosition] = field(default_factory=list)
    confidence_score: int = 0

    @property
    def valid(self) -> bool:
        return not any(issue.is_error for issue in self.issues)

    @property
    def errors(self) -> List[str]:
        return [issue.message for issue in self.issues if issue.is_error]

    @property
    def warnings(self) -> List[str]:
        return [issue.message for issue in self.issues if not issue.is_error]

    @property
    def error_kinds(self) -> Set[IssueKind]:
        return {issue.kind for issue in self.issues if issue.is_error}

    def error(self, kind: IssueKind, message: str) -> None:
        self.issues.append(ValidationIssue(kind, message, SEVERITY_ERROR))

    def warn(self, kind: IssueKind, message: str) -> None:
        self.issues.append(ValidationIssue(kind, message, SEVERITY_WARNING))

    def to_dict(self) -> Dict[str, object]:
        return {
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "alternative_exits": [list(cell) for cell in self.alternative_exits],
            "confidence_score": self.confidence_score,
        }


def _is_pair(value: object) -> bool:
    if not isinstance(value, (tuple, list)) or len(value) != 2:
        return False
    return all(isinstance(item, int) and not isinstance(item, bool) for item in value)


def _in_unit_range(value: object) -> bool:
    return isinstance(value, (int, float)) and 0.0 <= value <= 1.0


class PuzzleValidator:
    """Runs every puzzle check and rates how trustworthy a puzzle is."""

    def __init__(
        self,
        config: GenerationConfig = DEFAULT_CONFIG,
        engine: Optional[ReflectionEngine] = None,
        exploration_budget: int = DEFAULT_EXPLORATION_BUDGET,
    ):
        self.config = config
        self.engine = engine or ReflectionEngine()
        self.exploration_budget = exploration_budget

    def validate_puzzle(self, puzzle: Puzzle) -> ValidationResult:
        result = ValidationResult()
        self._check_structure(puzzle, result)
        if result.valid:
            self._check_grid(puzzle, result)
        if result.valid:
            traceable = self._check_materials(puzzle, result)
            self._check_density(puzzle, result)
            if traceable:
                self._check_difficulty(puzzle, result)
                self._check_solution(puzzle, result)
        result.confidence_score = self._confidence(puzzle, result)
        return result

    def validate_daily_set(self, puzzle_set: DailyPuzzleSet) -> ValidationResult:
        """Validate the three puzzles of a day, prefixing findings by difficulty."""

        result = ValidationResult()
        if not puzzle_set.date or not puzzle_set.puzzles:
            result.error(IssueKind.STRUCTURE, "Daily puzzle set must have date and puzzles")
            return result
        scores = []
        for difficulty in Difficulty:
            puzzle = puzzle_set.puzzles.get(difficulty)
            if puzzle is None:
                result.error(IssueKind.STRUCTURE, f"Missing {difficulty.value} puzzle in daily set")
                continue
            single = self.validate_puzzle(puzzle)
            scores.append(single.confidence_score)
            for issue in single.issues:
                result.issues.append(
                    ValidationIssue(issue.kind, f"{difficulty.value}: {issue.message}", issue.severity)
                )
        if result.valid and scores:
            result.confidence_score = min(scores)
        return result

    def _check_structure(self, puzzle: Puzzle, result: ValidationResult) -> None:
        if not isinstance(puzzle.id, str) or not puzzle.id:
            result.error(IssueKind.STRUCTURE, "Puzzle must have a valid ID")
        try:
            difficulty = Difficulty.from_name(puzzle.difficulty)
        except ValueError:
            result.error(IssueKind.STRUCTURE, "Puzzle difficulty must be Easy, Medium, or Hard")
            difficulty = None
        sizes = {config.grid_size for config in self.config.difficulties.values()}
        if puzzle.grid_size not in sizes:
            listed = ", ".join(str(size) for size in sorted(sizes))
            result.error(IssueKind.STRUCTURE, f"Grid size must be one of {listed}")
        elif difficulty is not None and puzzle.grid_size != self.config.grid_size_for(difficulty):
            expected = self.config.grid_size_for(difficulty)
            result.error(
                IssueKind.DIFFICULTY,
                f"{difficulty.value} puzzles must have {expected}x{expected} grid",
            )
        if not isinstance(puzzle.materials, (tuple, list)):
            result.error(IssueKind.STRUCTURE, "Puzzle must have a materials list")
        if not _is_pair(puzzle.entry):
            result.error(IssueKind.STRUCTURE, "Puzzle must have a valid entry point (row, col)")
        if not _is_pair(puzzle.solution):
            result.error(IssueKind.STRUCTURE, "Puzzle must have a valid solution point (row, col)")
        if not isinstance(puzzle.hints, (tuple, list)) or len(puzzle.hints) != HINT_LEVELS:
            result.error(IssueKind.STRUCTURE, f"Puzzle must have exactly {HINT_LEVELS} hint paths")

    def _check_grid(self, puzzle: Puzzle, result: ValidationResult) -> None:
        size = puzzle.grid_size
        for label, point in (("Entry", puzzle.entry), ("Solution", puzzle.solution)):
            if not is_within_bounds(point, size):
                result.error(IssueKind.GRID, f"{label} point must be within grid bounds")
            elif not is_boundary_position(point, size):
                result.error(IssueKind.GRID, f"{label} point must be on grid boundary")
        if tuple(puzzle.entry) == tuple(puzzle.solution):
            result.error(IssueKind.GRID, "Entry and solution points must be different")

    def _check_materials(self, puzzle: Puzzle, result: ValidationResult) -> bool:
        """Returns False when a material is too broken to trace."""

        traceable = True
        seen: Set[Tuple[int, int]] = set()
        for index, material in enumerate(puzzle.materials):
            try:
                kind = MaterialType.from_name(material.type)
            except UnknownMaterialError:
                result.error(IssueKind.MATERIAL, f"Material {index} has invalid type: {material.type}")
                traceable = False
                continue
            position = material.position
            if not _is_pair(position):
                result.error(IssueKind.MATERIAL, f"Material {index} has invalid structure")
                traceable = False
                continue
            position = tuple(position)
            if not is_within_bounds(position, puzzle.grid_size):
                result.error(IssueKind.MATERIAL, f"Material {index} position is out of bounds")
            if position in seen:
                result.error(IssueKind.MATERIAL, f"Multiple materials at position {position}")
            seen.add(position)
            if position == tuple(puzzle.entry):
                result.error(IssueKind.MATERIAL, "Material cannot be placed at entry point")
            if position == tuple(puzzle.solution):
                result.error(IssueKind.MATERIAL, "Material cannot be placed at solution point")

            if kind is MaterialType.MIRROR:
                angle = material.angle
                if not isinstance(angle, (int, float)) or not 0 <= angle < 360:
                    result.error(
                        IssueKind.MATERIAL,
                        f"Mirror material {index} must have valid angle (0-359)",
                    )
            props = material.properties
            for name in ("reflectivity", "transparency", "diffusion"):
                if not _in_unit_range(getattr(props, name)):
                    result.error(IssueKind.MATERIAL, f"Material {index} {name} must be between 0 and 1")
        return traceable

    def _density_target(self, puzzle: Puzzle) -> float:
        return self.config.materials_for(puzzle.difficulty).target_density

    def _density_within_tolerance(self, puzzle: Puzzle) -> bool:
        actual = len(puzzle.materials) / float(puzzle.grid_size * puzzle.grid_size)
        # Epsilon keeps exact boundary densities such as 0.6 vs 0.7 inside the band.
        return abs(actual - self._density_target(puzzle)) <= self.config.density_tolerance + 1e-9

    def _check_density(self, puzzle: Puzzle, result: ValidationResult) -> None:
        if self._density_within_tolerance(puzzle):
            return
        actual = len(puzzle.materials) / float(puzzle.grid_size * puzzle.grid_size)
        result.warn(
            IssueKind.DENSITY,
            f"Material density {actual * 100:.1f}% differs from target "
            f"{self._density_target(puzzle) * 100:.1f}%",
        )

    def _material_types(self, puzzle: Puzzle) -> Set[str]:
        return {MaterialType.from_name(material.type).value for material in puzzle.materials}

    def _variety_target(self, difficulty: Difficulty) -> int:
        allowed = self.config.difficulty(difficulty).allowed_materials
        return min(len(allowed), max(MATERIAL_VARIETY_FLOOR[difficulty], 2))

    def _check_difficulty(self, puzzle: Puzzle, result: ValidationResult) -> None:
        difficulty = Difficulty.from_name(puzzle.difficulty)
        allowed = set(self.config.difficulty(difficulty).allowed_materials)
        for material in puzzle.materials:
            kind = MaterialType.from_name(material.type).value
            if kind not in allowed:
                result.error(
                    IssueKind.DIFFICULTY,
                    f"Material type '{kind}' not allowed in {difficulty.value} difficulty",
                )
        floor = MATERIAL_VARIETY_FLOOR[difficulty]
        if floor and len(self._material_types(puzzle)) < floor:
            result.warn(
                IssueKind.DIFFICULTY,
                f"{difficulty.value} puzzles should use at least {floor} different material types",
            )

    def _check_solution(self, puzzle: Puzzle, result: ValidationResult) -> None:
        exploration = self.engine.explore(
            puzzle.materials,
            puzzle.entry,
            puzzle.grid_size,
            budget=self.exploration_budget,
        )
        path = exploration.deterministic
        result.solution_path = path
        if not path.reached_exit:
            result.error(
                IssueKind.NO_SOLUTION,
                "Puzzle has no valid exit point - laser beam is "
                f"{path.termination_reason.value.replace('_', ' ')}",
            )
            return
        if tuple(path.exit) != tuple(puzzle.solution):
            result.error(
                IssueKind.SOLUTION_MISMATCH,
                f"Solution mismatch: expected {tuple(puzzle.solution)}, calculated {path.exit}",
            )
            return

        alternatives = [cell for cell in exploration.exits if cell != tuple(puzzle.solution)]
        result.alternative_exits = alternatives
        if alternatives:
            result.error(
                IssueKind.MULTIPLE_SOLUTIONS,
                "Puzzle has multiple possible solutions: "
                + ", ".join(str(cell) for cell in alternatives),
            )
            return
        if exploration.truncated:
            result.warn(
                IssueKind.EXPLORATION_TRUNCATED,
                f"Uniqueness only checked across {len(exploration.paths)} traces",
            )

        complexity = self.config.complexity_for(puzzle.difficulty)
        if not complexity.min_reflections <= path.bounces <= complexity.max_reflections:
            result.warn(
                IssueKind.COMPLEXITY,
                f"Path has {path.bounces} reflections, expected "
                f"{complexity.min_reflections}-{complexity.max_reflections}",
            )

    def _confidence(self, puzzle: Puzzle, result: ValidationResult) -> int:
        if not result.valid:
            return 0
        difficulty = Difficulty.from_name(puzzle.difficulty)
        score = BASE_CONFIDENCE + 10
        path = result.solution_path
        complexity = self.config.complexity_for(difficulty)
        if path is not None and complexity.min_reflections <= path.bounces <= complexity.max_reflections:
            score += 5
        if len(self._material_types(puzzle)) >= self._variety_target(difficulty):
            score += 5
        if self._density_within_tolerance(puzzle):
            score += 5
        spacing = self.config.spacing_for(difficulty)
        if manhattan_distance(puzzle.entry, puzzle.solution) >= spacing.min_distance:
            score += 5
        score -= 5 * len(result.warnings)
        return max(0, min(100, score))


def validate_puzzle(puzzle: Puzzle, config: GenerationConfig = DEFAULT_CONFIG) -> ValidationResult:
    return PuzzleValidator(config).validate_puzzle(puzzle)
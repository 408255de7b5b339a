"""Puzzle generation pipeline with bounded recovery and backup fallback."""

from __future__ import annotations

import logging
import math
import random
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from .backups import BackupLoader
from .config import (
    DEFAULT_CONFIG,
    Difficulty,
    FailureKind,
    GenerationConfig,
    RecoveryPolicy,
    RecoveryStrategy,
)
from .engine import infer_direction
from .grid import is_within_bounds, step
from .materials import GridPosition, Material, MaterialType, reflect
from .placement import EntryExitPair, PointPlacementService
from .puzzle import DailyPuzzleSet, Puzzle, create_puzzle
from .validator import PHYSICS_KINDS, PuzzleValidator, ValidationResult

logger = logging.getLogger(__name__)

TURN_ANGLES = (45.0, 135.0)
DECOY_MIRROR_ANGLES = tuple(float(angle) for angle in range(0, 180, 15))
PAIRS_PER_ATTEMPT = 20
PATH_SEARCH_BUDGET = 4000
MAX_EMBELLISHMENTS = 2
MIN_RELAXED_CONFIDENCE = 50


class GenerationError(RuntimeError):
    """Raised when no puzzle could be produced and fallback is disabled."""


@dataclass(frozen=True)
class GenerationFailure:
    kind: FailureKind
    message: str
    attempt: int


@dataclass
class GenerationReport:
    puzzle: Optional[Puzzle]
    attempts: int
    fallback_used: bool
    failures: List[GenerationFailure] = field(default_factory=list)
    elapsed_ms: float = 0.0
    validation: Optional[ValidationResult] = None

    @property
    def confidence_score(self) -> int:
        return self.validation.confidence_score if self.validation is not None else 0


@dataclass(frozen=True)
class AttemptSettings:
    """Constraints for one attempt; recovery hands out relaxed copies."""

    min_confidence: int
    min_reflections: int
    max_reflections: int
    preferred_reflections: int
    min_critical: int
    min_path_cells: int
    search_multiplier: int = 1


@dataclass
class PlannedPath:
    cells: List[GridPosition]
    mirrors: Dict[GridPosition, float]
    directions: Dict[GridPosition, float]


class _AttemptFailed(Exception):
    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class PuzzleGenerator:
    """Builds validated puzzles by planning a beam path and dressing it with decoys."""

    def __init__(
        self,
        config: GenerationConfig = DEFAULT_CONFIG,
        placement: Optional[PointPlacementService] = None,
        validator: Optional[PuzzleValidator] = None,
        backups: Optional[BackupLoader] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.placement = placement or PointPlacementService(config)
        self.validator = validator or PuzzleValidator(config)
        self.backups = backups or BackupLoader()
        self.clock = clock

    def initial_settings(self, difficulty: Difficulty) -> AttemptSettings:
        complexity = self.config.complexity_for(difficulty)
        grid_size = self.config.grid_size_for(difficulty)
        return AttemptSettings(
            min_confidence=self.config.min_confidence_score,
            min_reflections=complexity.min_reflections,
            max_reflections=complexity.max_reflections,
            preferred_reflections=complexity.preferred_reflections,
            min_critical=self.config.materials_for(difficulty).min_critical_materials,
            min_path_cells=int(round(grid_size * complexity.path_length_multiplier)),
        )

    def generate(
        self,
        difficulty: Difficulty,
        date: Optional[str] = None,
        seed: Optional[object] = None,
    ) -> GenerationReport:
        difficulty = Difficulty.from_name(difficulty)
        if seed is None and date is not None:
            seed = daily_seed(date, difficulty)
        rng = random.Random(seed)
        start = self.clock()

        def elapsed_ms() -> float:
            return (self.clock() - start) * 1000.0

        settings = self.initial_settings(difficulty)
        failures: List[GenerationFailure] = []
        retries: Counter = Counter()
        tried: Set[Tuple[GridPosition, GridPosition]] = set()
        attempt = 0

        while attempt < self.config.max_generation_attempts:
            if elapsed_ms() > self.config.timeout_ms:
                failures.append(
                    GenerationFailure(
                        FailureKind.TIMEOUT,
                        f"Generation exceeded {self.config.timeout_ms} ms",
                        attempt,
                    )
                )
                break
            attempt += 1
            try:
                puzzle, validation = self._attempt(
                    difficulty, settings, rng, tried, date, elapsed_ms
                )
            except _AttemptFailed as failure:
                failures.append(GenerationFailure(failure.kind, failure.message, attempt))
                logger.debug(
                    "%s attempt %d failed (%s): %s",
                    difficulty.value,
                    attempt,
                    failure.kind.value,
                    failure.message,
                )
                policy = self.config.recovery[failure.kind]
                retries[failure.kind] += 1
                if (
                    policy.strategy is RecoveryStrategy.FALLBACK_TO_TEMPLATE
                    or retries[failure.kind] > policy.max_retries
                ):
                    break
                settings = self._recover(policy, settings)
                continue

            logger.info(
                "Generated %s puzzle %s in %d attempt(s), confidence %d",
                difficulty.value,
                puzzle.id,
                attempt,
                validation.confidence_score,
            )
            return GenerationReport(
                puzzle=puzzle,
                attempts=attempt,
                fallback_used=False,
                failures=failures,
                elapsed_ms=elapsed_ms(),
                validation=validation,
            )

        if not self.config.enable_fallback:
            logger.warning("Generation of %s puzzle failed after %d attempt(s)", difficulty.value, attempt)
            return GenerationReport(
                puzzle=None,
                attempts=attempt,
                fallback_used=False,
                failures=failures,
                elapsed_ms=elapsed_ms(),
            )

        logger.warning(
            "Falling back to the %s backup puzzle after %d attempt(s)",
            difficulty.value,
            attempt,
        )
        backup = self.backups.load(difficulty, date)
        return GenerationReport(
            puzzle=backup,
            attempts=attempt,
            fallback_used=True,
            failures=failures,
            elapsed_ms=elapsed_ms(),
            validation=self.validator.validate_puzzle(backup),
        )

    def _recover(self, policy: RecoveryPolicy, settings: AttemptSettings) -> AttemptSettings:
        if not policy.relax_constraints:
            return settings
        strategy = policy.strategy
        confidence = max(MIN_RELAXED_CONFIDENCE, settings.min_confidence - policy.confidence_reduction)
        if strategy is RecoveryStrategy.RETRY_WITH_RELAXED_CONSTRAINTS:
            return replace(
                settings,
                min_confidence=confidence,
                min_reflections=max(1, settings.min_reflections - 1),
            )
        if strategy is RecoveryStrategy.EXPAND_SEARCH_SPACE:
            # The minimum spacing is never relaxed; only the search widens.
            return replace(
                settings,
                min_confidence=confidence,
                search_multiplier=settings.search_multiplier * 2,
            )
        if strategy is RecoveryStrategy.SIMPLIFY_PATH_REQUIREMENTS:
            return replace(
                settings,
                min_confidence=confidence,
                min_reflections=max(1, settings.min_reflections - 1),
                preferred_reflections=max(1, settings.preferred_reflections - 1),
                min_critical=max(1, settings.min_critical - 1),
                min_path_cells=0,
            )
        return settings

    def _ranked_pairs(self, difficulty: Difficulty, settings: AttemptSettings, rng: random.Random) -> List[EntryExitPair]:
        pairs = self.placement.select_entry_exit_pairs(
            difficulty,
            self.config.grid_size_for(difficulty),
            search_multiplier=settings.search_multiplier,
        )
        # Shuffle within equal scores so each seed explores a different layout.
        keyed = [(-pair.validation_score, rng.random(), index) for index, pair in enumerate(pairs)]
        keyed.sort()
        return [pairs[index] for _, _, index in keyed]

    def _attempt(
        self,
        difficulty: Difficulty,
        settings: AttemptSettings,
        rng: random.Random,
        tried: Set[Tuple[GridPosition, GridPosition]],
        date: Optional[str],
        elapsed_ms: Callable[[], float],
    ) -> Tuple[Puzzle, ValidationResult]:
        grid_size = self.config.grid_size_for(difficulty)
        planned: Optional[PlannedPath] = None
        chosen: Optional[EntryExitPair] = None
        considered = 0
        for pair in self._ranked_pairs(difficulty, settings, rng):
            key = (pair.entry, pair.exit)
            if key in tried:
                continue
            if considered >= PAIRS_PER_ATTEMPT:
                break
            if elapsed_ms() > self.config.timeout_ms:
                raise _AttemptFailed(FailureKind.TIMEOUT, "Timed out while planning a beam path")
            considered += 1
            tried.add(key)
            planned = self.plan_path(pair.entry, pair.exit, grid_size, settings, difficulty, rng)
            if planned is not None:
                chosen = pair
                break
        if planned is None or chosen is None:
            raise _AttemptFailed(
                FailureKind.SPACING_FAILURE,
                f"No routable entry/exit pair among {considered} candidate(s)",
            )

        materials = self._lay_out(difficulty, planned, grid_size, settings, rng)
        puzzle_id = f"{date}-{difficulty.value.lower()}" if date else None
        puzzle = create_puzzle(
            difficulty,
            grid_size,
            materials,
            chosen.entry,
            chosen.exit,
            puzzle_id=puzzle_id,
            engine=self.validator.engine,
        )
        validation = self.validator.validate_puzzle(puzzle)
        if not validation.valid:
            kind = (
                FailureKind.PHYSICS_VIOLATION
                if validation.error_kinds & PHYSICS_KINDS
                else FailureKind.VALIDATION_FAILURE
            )
            raise _AttemptFailed(kind, "; ".join(validation.errors))
        if validation.confidence_score < settings.min_confidence:
            raise _AttemptFailed(
                FailureKind.VALIDATION_FAILURE,
                f"Confidence {validation.confidence_score} below {settings.min_confidence}",
            )

        puzzle, validation = self._embellish(puzzle, validation, planned, rng)
        return puzzle, validation

    def open_cell_budget(self, difficulty: Difficulty, grid_size: int) -> int:
        """How many cells may stay empty while density remains in tolerance."""

        target = self.config.materials_for(difficulty).target_density
        return int(grid_size * grid_size * (1 - target + 0.05))

    def plan_path(
        self,
        entry: GridPosition,
        exit_cell: GridPosition,
        grid_size: int,
        settings: AttemptSettings,
        difficulty: Difficulty,
        rng: random.Random,
    ) -> Optional[PlannedPath]:
        """Randomised depth-first search for a mirror path from *entry* to *exit_cell*.

        The path never revisits a cell, turns only on 45/135 degree mirrors and
        leaves the grid at the exit cell. Returns ``None`` when the node budget
        runs out first.
        """

        open_budget = self.open_cell_budget(difficulty, grid_size)
        remaining = [PATH_SEARCH_BUDGET]
        cells: List[GridPosition] = [entry]
        visited: Set[GridPosition] = {entry}
        mirrors: Dict[GridPosition, float] = {}
        directions: Dict[GridPosition, float] = {}

        def empty_cells() -> int:
            return len(cells) - len(mirrors)

        def search(position: GridPosition, direction: float) -> bool:
            remaining[0] -= 1
            if remaining[0] < 0:
                return False
            following = step(position, direction)
            if not is_within_bounds(following, grid_size) or following in visited:
                return False
            if following == exit_cell:
                turns = len(mirrors)
                if is_within_bounds(step(following, direction), grid_size):
                    return False
                if not settings.min_reflections <= turns <= settings.max_reflections:
                    return False
                if len(cells) + 1 < settings.min_path_cells or empty_cells() + 1 > open_budget:
                    return False
                cells.append(following)
                directions[following] = direction
                return True

            options: List[Optional[float]] = [None, *TURN_ANGLES]
            rng.shuffle(options)
            if len(mirrors) < settings.preferred_reflections and rng.random() < 0.6:
                options.sort(key=lambda angle: angle is None)
            for angle in options:
                if angle is None:
                    # Keep one open cell in reserve for the exit.
                    if empty_cells() + 2 > open_budget:
                        continue
                    heading = direction
                else:
                    if len(mirrors) >= settings.max_reflections:
                        continue
                    heading = reflect(direction, angle)
                cells.append(following)
                visited.add(following)
                directions[following] = direction
                if angle is not None:
                    mirrors[following] = angle
                if search(following, heading):
                    return True
                cells.pop()
                visited.discard(following)
                directions.pop(following, None)
                mirrors.pop(following, None)
            return False

        directions[entry] = infer_direction(entry, grid_size)
        if not search(entry, directions[entry]):
            return None
        return PlannedPath(cells=cells, mirrors=dict(mirrors), directions=directions)

    def _lay_out(
        self,
        difficulty: Difficulty,
        planned: PlannedPath,
        grid_size: int,
        settings: AttemptSettings,
        rng: random.Random,
    ) -> List[Material]:
        material_config = self.config.materials_for(difficulty)
        allowed = [MaterialType.from_name(name) for name in material_config.allowed_materials]
        if MaterialType.MIRROR not in allowed:
            raise _AttemptFailed(
                FailureKind.MATERIAL_PLACEMENT_FAILURE,
                f"{difficulty.value} does not allow mirrors",
            )
        materials = [
            Material.create(MaterialType.MIRROR, position, angle=angle)
            for position, angle in planned.mirrors.items()
        ]
        if len(materials) < settings.min_critical:
            raise _AttemptFailed(
                FailureKind.MATERIAL_PLACEMENT_FAILURE,
                f"Path uses {len(materials)} critical material(s), needs {settings.min_critical}",
            )

        total = grid_size * grid_size
        target_count = int(round(total * material_config.target_density))
        path_cells = set(planned.cells)
        free = [
            (row, col)
            for row in range(grid_size)
            for col in range(grid_size)
            if (row, col) not in path_cells
        ]
        rng.shuffle(free)
        wanted = max(0, min(target_count - len(materials), len(free)))
        low = total * (material_config.target_density - self.config.density_tolerance)
        if len(materials) + wanted < low:
            raise _AttemptFailed(
                FailureKind.MATERIAL_PLACEMENT_FAILURE,
                f"Only {len(materials) + wanted} material(s) fit, density needs {math.ceil(low)}",
            )

        kinds: List[MaterialType] = list(allowed)
        rng.shuffle(kinds)
        kinds = kinds[:wanted]
        weights = [float(material_config.material_weights.get(kind.value, 0.0)) for kind in allowed]
        if wanted > len(kinds):
            kinds.extend(rng.choices(allowed, weights=weights, k=wanted - len(kinds)))
        for position, kind in zip(free, kinds):
            angle = rng.choice(DECOY_MIRROR_ANGLES) if kind is MaterialType.MIRROR else None
            materials.append(Material.create(kind, position, angle=angle))
        return materials

    def _embellish(
        self,
        puzzle: Puzzle,
        validation: ValidationResult,
        planned: PlannedPath,
        rng: random.Random,
    ) -> Tuple[Puzzle, ValidationResult]:
        """Swap a few straight horizontal path cells for glass or water.

        A swap survives only if the puzzle still validates without warnings.
        """

        allowed = {
            MaterialType.from_name(name)
            for name in self.config.difficulty(puzzle.difficulty).allowed_materials
        }
        choices = [kind for kind in (MaterialType.GLASS, MaterialType.WATER) if kind in allowed]
        if not choices:
            return puzzle, validation
        endpoints = {puzzle.entry, puzzle.solution}
        candidates = [
            cell
            for cell in planned.cells
            if cell not in endpoints
            and cell not in planned.mirrors
            and planned.directions.get(cell) in (0.0, 180.0)
        ]
        rng.shuffle(candidates)
        added = 0
        for cell in candidates:
            if added >= MAX_EMBELLISHMENTS:
                break
            kind = rng.choice(choices)
            materials = list(puzzle.materials) + [Material.create(kind, cell)]
            candidate = create_puzzle(
                puzzle.difficulty,
                puzzle.grid_size,
                materials,
                puzzle.entry,
                puzzle.solution,
                puzzle_id=puzzle.id,
                created_at=puzzle.created_at,
                engine=self.validator.engine,
            )
            result = self.validator.validate_puzzle(candidate)
            if result.valid and not result.warnings:
                puzzle, validation = candidate, result
                added += 1
        return puzzle, validation


def daily_seed(date: str, difficulty: Difficulty) -> str:
    return f"{date}:{Difficulty.from_name(difficulty).value}"


def generate_puzzle(
    difficulty: Difficulty,
    config: GenerationConfig = DEFAULT_CONFIG,
    date: Optional[str] = None,
    seed: Optional[object] = None,
) -> Puzzle:
    report = PuzzleGenerator(config).generate(difficulty, date=date, seed=seed)
    if report.puzzle is None:
        kinds = ", ".join(sorted({failure.kind.value for failure in report.failures}))
        raise GenerationError(f"Could not generate a {Difficulty.from_name(difficulty).value} puzzle ({kinds})")
    return report.puzzle


def generate_daily_reports(
    date: str,
    config: GenerationConfig = DEFAULT_CONFIG,
    workers: int = 1,
    difficulties: Sequence[Difficulty] = tuple(Difficulty),
) -> Dict[Difficulty, GenerationReport]:
    """Generate one puzzle per difficulty; with ``workers > 1`` they run in threads."""

    generator = PuzzleGenerator(config)
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                difficulty: pool.submit(generator.generate, difficulty, date)
                for difficulty in difficulties
            }
            return {difficulty: future.result() for difficulty, future in futures.items()}
    return {difficulty: generator.generate(difficulty, date) for difficulty in difficulties}


def generate_daily_puzzles(
    date: str,
    config: GenerationConfig = DEFAULT_CONFIG,
    workers: int = 1,
) -> DailyPuzzleSet:
    reports = generate_daily_reports(date, config, workers)
    puzzles = {}
    for difficulty, report in reports.items():
        if report.puzzle is None:
            raise GenerationError(f"Could not generate the {difficulty.value} puzzle for {date}")
        puzzles[difficulty] = report.puzzle
    return DailyPuzzleSet(date=date, puzzles=puzzles)

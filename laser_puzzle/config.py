"""Per-difficulty tunables for puzzle generation and validation."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

CONFIG_ENV_VAR = "LASER_PUZZLE_CONFIG"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @staticmethod
    def from_name(name: object) -> "Difficulty":
        if isinstance(name, Difficulty):
            return name
        text = str(name).strip().lower()
        for difficulty in Difficulty:
            if difficulty.value.lower() == text:
                return difficulty
        raise ValueError(f"Unknown difficulty: {name}")


class FailureKind(str, Enum):
    """Reasons a single generation attempt can fail."""

    TIMEOUT = "timeout"
    VALIDATION_FAILURE = "validation_failure"
    SPACING_FAILURE = "spacing_failure"
    MATERIAL_PLACEMENT_FAILURE = "material_placement_failure"
    PHYSICS_VIOLATION = "physics_violation"


class RecoveryStrategy(str, Enum):
    FALLBACK_TO_TEMPLATE = "fallback_to_template"
    RETRY_WITH_RELAXED_CONSTRAINTS = "retry_with_relaxed_constraints"
    EXPAND_SEARCH_SPACE = "expand_search_space"
    SIMPLIFY_PATH_REQUIREMENTS = "simplify_path_requirements"
    RETRY = "retry"


@dataclass(frozen=True)
class DifficultyConfig:
    grid_size: int
    material_density: float
    allowed_materials: Tuple[str, ...]
    base_score: int
    max_time: int


@dataclass(frozen=True)
class SpacingConstraints:
    """Entry/exit spacing rules; bonuses double as position-score multipliers."""

    min_distance: int
    preferred_distance: int
    corner_bonus: float
    edge_bonus: float
    max_search_attempts: int


@dataclass(frozen=True)
class MaterialGenerationConfig:
    target_density: float
    allowed_materials: Tuple[str, ...]
    material_weights: Mapping[str, float]
    min_critical_materials: int


@dataclass(frozen=True)
class ComplexityConfig:
    min_reflections: int
    max_reflections: int
    preferred_reflections: int
    path_length_multiplier: float = 1.0


@dataclass(frozen=True)
class RecoveryPolicy:
    strategy: RecoveryStrategy
    max_retries: int
    relax_constraints: bool
    confidence_reduction: int = 0


CORNER_BASE_SCORE = 1.0
EDGE_BASE_SCORE = 0.8

# Medium wants at least 3 distinct material types, Hard at least 4.
MATERIAL_VARIETY_FLOOR: Dict[Difficulty, int] = {
    Difficulty.EASY: 0,
    Difficulty.MEDIUM: 3,
    Difficulty.HARD: 4,
}

DIFFICULTY_CONFIGS: Dict[Difficulty, DifficultyConfig] = {
    Difficulty.EASY: DifficultyConfig(
        grid_size=6,
        material_density=0.7,
        allowed_materials=("mirror", "absorber"),
        base_score=150,
        max_time=300,
    ),
    Difficulty.MEDIUM: DifficultyConfig(
        grid_size=8,
        material_density=0.8,
        allowed_materials=("mirror", "water", "glass", "absorber"),
        base_score=400,
        max_time=600,
    ),
    Difficulty.HARD: DifficultyConfig(
        grid_size=10,
        material_density=0.85,
        allowed_materials=("mirror", "water", "glass", "metal", "absorber"),
        base_score=800,
        max_time=900,
    ),
}

SPACING_CONSTRAINTS: Dict[Difficulty, SpacingConstraints] = {
    Difficulty.EASY: SpacingConstraints(3, 4, 1.2, 1.1, 50),
    Difficulty.MEDIUM: SpacingConstraints(4, 6, 1.3, 1.15, 75),
    Difficulty.HARD: SpacingConstraints(5, 8, 1.4, 1.2, 100),
}

MATERIAL_GENERATION_CONFIGS: Dict[Difficulty, MaterialGenerationConfig] = {
    Difficulty.EASY: MaterialGenerationConfig(
        target_density=0.7,
        allowed_materials=("mirror", "absorber"),
        material_weights={"mirror": 0.7, "absorber": 0.3},
        min_critical_materials=2,
    ),
    Difficulty.MEDIUM: MaterialGenerationConfig(
        target_density=0.8,
        allowed_materials=("mirror", "water", "glass", "absorber"),
        material_weights={"mirror": 0.4, "water": 0.2, "glass": 0.2, "absorber": 0.2},
        min_critical_materials=3,
    ),
    Difficulty.HARD: MaterialGenerationConfig(
        target_density=0.85,
        allowed_materials=("mirror", "water", "glass", "metal", "absorber"),
        material_weights={
            "mirror": 0.3,
            "water": 0.2,
            "glass": 0.2,
            "metal": 0.15,
            "absorber": 0.15,
        },
        min_critical_materials=4,
    ),
}

COMPLEXITY_CONFIGS: Dict[Difficulty, ComplexityConfig] = {
    Difficulty.EASY: ComplexityConfig(2, 4, 3, 1.0),
    Difficulty.MEDIUM: ComplexityConfig(3, 6, 4, 1.2),
    Difficulty.HARD: ComplexityConfig(4, 8, 6, 1.5),
}

RECOVERY_POLICIES: Dict[FailureKind, RecoveryPolicy] = {
    FailureKind.TIMEOUT: RecoveryPolicy(RecoveryStrategy.FALLBACK_TO_TEMPLATE, 0, False),
    FailureKind.VALIDATION_FAILURE: RecoveryPolicy(
        RecoveryStrategy.RETRY_WITH_RELAXED_CONSTRAINTS, 3, True, 15
    ),
    FailureKind.SPACING_FAILURE: RecoveryPolicy(RecoveryStrategy.EXPAND_SEARCH_SPACE, 2, True, 5),
    FailureKind.MATERIAL_PLACEMENT_FAILURE: RecoveryPolicy(
        RecoveryStrategy.SIMPLIFY_PATH_REQUIREMENTS, 3, True, 20
    ),
    FailureKind.PHYSICS_VIOLATION: RecoveryPolicy(RecoveryStrategy.RETRY, 2, False),
}


@dataclass(frozen=True)
class GenerationConfig:
    """Immutable bundle of every tunable the core consumes."""

    max_generation_attempts: int = 10
    timeout_ms: int = 5000
    enable_fallback: bool = True
    min_confidence_score: int = 85
    density_tolerance: float = 0.1
    difficulties: Mapping[Difficulty, DifficultyConfig] = field(
        default_factory=lambda: dict(DIFFICULTY_CONFIGS)
    )
    spacing: Mapping[Difficulty, SpacingConstraints] = field(
        default_factory=lambda: dict(SPACING_CONSTRAINTS)
    )
    materials: Mapping[Difficulty, MaterialGenerationConfig] = field(
        default_factory=lambda: dict(MATERIAL_GENERATION_CONFIGS)
    )
    complexity: Mapping[Difficulty, ComplexityConfig] = field(
        default_factory=lambda: dict(COMPLEXITY_CONFIGS)
    )
    recovery: Mapping[FailureKind, RecoveryPolicy] = field(
        default_factory=lambda: dict(RECOVERY_POLICIES)
    )

    def difficulty(self, difficulty: Difficulty) -> DifficultyConfig:
        return self.difficulties[Difficulty.from_name(difficulty)]

    def spacing_for(self, difficulty: Difficulty) -> SpacingConstraints:
        return self.spacing[Difficulty.from_name(difficulty)]

    def materials_for(self, difficulty: Difficulty) -> MaterialGenerationConfig:
        return self.materials[Difficulty.from_name(difficulty)]

    def complexity_for(self, difficulty: Difficulty) -> ComplexityConfig:
        return self.complexity[Difficulty.from_name(difficulty)]

    def grid_size_for(self, difficulty: Difficulty) -> int:
        return self.difficulty(difficulty).grid_size


DEFAULT_CONFIG = GenerationConfig()

_SCALAR_KEYS = {
    "max_generation_attempts": int,
    "timeout_ms": int,
    "enable_fallback": bool,
    "min_confidence_score": int,
    "density_tolerance": float,
}
_TABLE_KEYS = ("difficulties", "spacing", "materials", "complexity")


def _override_record(record: object, overrides: Mapping[str, object]) -> object:
    known = set(record.__dataclass_fields__)
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    values = {}
    for key, value in overrides.items():
        if key == "allowed_materials":
            value = tuple(str(item) for item in value)
        elif key == "material_weights":
            value = {str(name): float(weight) for name, weight in dict(value).items()}
        values[key] = value
    return replace(record, **values)


def apply_overrides(config: GenerationConfig, data: Mapping[str, object]) -> GenerationConfig:
    """Return a copy of *config* with the JSON-style *data* merged in.

    Scalars replace the defaults directly; tables are keyed by difficulty
    name and only the listed fields of each record change.
    """

    unknown = set(data) - set(_SCALAR_KEYS) - set(_TABLE_KEYS)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    values: Dict[str, object] = {}
    for key, cast in _SCALAR_KEYS.items():
        if key in data:
            values[key] = cast(data[key])
    for key in _TABLE_KEYS:
        if key not in data:
            continue
        table = dict(getattr(config, key))
        for name, overrides in dict(data[key]).items():
            difficulty = Difficulty.from_name(name)
            table[difficulty] = _override_record(table[difficulty], overrides)
        values[key] = table
    return replace(config, **values)


def load_generation_config(path: Optional[Path] = None) -> GenerationConfig:
    """Load the generation config, applying JSON overrides when available.

    The override file is taken from *path* or the ``LASER_PUZZLE_CONFIG``
    environment variable. Without either the defaults are returned.
    """

    if path is None:
        value = os.environ.get(CONFIG_ENV_VAR)
        if not value:
            return DEFAULT_CONFIG
        path = Path(value).expanduser()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Generation config overrides must be a JSON object")
    return apply_overrides(DEFAULT_CONFIG, data)

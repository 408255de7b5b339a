"""Laser Puzzle package."""

from .config import Difficulty, GenerationConfig, load_generation_config
from .engine import LaserPath, ReflectionEngine, trace_path
from .generator import PuzzleGenerator, generate_daily_puzzles, generate_puzzle
from .materials import Material, MaterialType, UnknownMaterialError
from .placement import PointPlacementService
from .puzzle import Puzzle, get_hint_path, validate_answer
from .validator import PuzzleValidator, validate_puzzle

__all__ = [
    "Difficulty",
    "GenerationConfig",
    "LaserPath",
    "Material",
    "MaterialType",
    "PointPlacementService",
    "Puzzle",
    "PuzzleGenerator",
    "PuzzleValidator",
    "ReflectionEngine",
    "UnknownMaterialError",
    "generate_daily_puzzles",
    "generate_puzzle",
    "get_hint_path",
    "load_generation_config",
    "trace_path",
    "validate_answer",
    "validate_puzzle",
]

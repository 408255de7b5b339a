"""Shared fixtures for the puzzle tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, List, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from laser_puzzle.backups import BackupLoader
from laser_puzzle.config import Difficulty
from laser_puzzle.materials import Material
from laser_puzzle.puzzle import Puzzle, create_puzzle


def make_puzzle(
    materials: Iterable[Material],
    entry: Tuple[int, int],
    solution: Tuple[int, int],
    difficulty: Difficulty = Difficulty.EASY,
    grid_size: int = 6,
) -> Puzzle:
    return create_puzzle(difficulty, grid_size, list(materials), entry, solution, puzzle_id="test-puzzle")


def absorber_fill(grid_size: int, keep: Iterable[Tuple[int, int]], count: int) -> List[Material]:
    """Absorbers on the first *count* cells not listed in *keep*, row by row."""

    skip = set(keep)
    cells = [
        (row, col)
        for row in range(grid_size)
        for col in range(grid_size)
        if (row, col) not in skip
    ]
    return [Material.create("absorber", cell) for cell in cells[:count]]


@pytest.fixture
def backup_loader() -> BackupLoader:
    return BackupLoader()


@pytest.fixture
def easy_backup(backup_loader: BackupLoader) -> Puzzle:
    return backup_loader.load(Difficulty.EASY)


@pytest.fixture
def medium_backup(backup_loader: BackupLoader) -> Puzzle:
    return backup_loader.load(Difficulty.MEDIUM)

"""Hand-authored backup puzzles used when generation gives up."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Optional

from .config import Difficulty
from .engine import ReflectionEngine
from .materials import Material, MaterialType
from .puzzle import Puzzle, create_puzzle

BACKUP_ENV_VAR = "LASER_PUZZLE_BACKUP_ROOT"

# Layout tokens; backslash and slash are the 45 and 135 degree mirrors.
LAYOUT_TOKENS: Dict[str, Optional[Dict[str, object]]] = {
    ".": None,
    "\\": {"type": MaterialType.MIRROR, "angle": 45.0},
    "/": {"type": MaterialType.MIRROR, "angle": 135.0},
    "A": {"type": MaterialType.ABSORBER},
    "W": {"type": MaterialType.WATER},
    "G": {"type": MaterialType.GLASS},
    "M": {"type": MaterialType.METAL},
}


def _default_backup_root() -> Path:
    return Path(__file__).resolve().parent / "backups"


def _read_directory(env_var: str, fallback: Path) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value).expanduser()
    return fallback


def resolve_backup_root(check_exists: bool = True) -> Path:
    """Directory holding the backup files, honouring ``LASER_PUZZLE_BACKUP_ROOT``."""

    root = _read_directory(BACKUP_ENV_VAR, _default_backup_root())
    if check_exists and not root.exists():
        raise FileNotFoundError(f"Backup puzzle directory does not exist: {root}")
    return root


def parse_layout(rows: List[str]) -> List[Material]:
    size = len(rows)
    materials: List[Material] = []
    for row, line in enumerate(rows):
        tokens = line.split()
        if len(tokens) != size:
            raise ValueError(f"Layout row {row} has {len(tokens)} cells, expected {size}")
        for col, token in enumerate(tokens):
            if token not in LAYOUT_TOKENS:
                raise ValueError(f"Unknown layout token {token!r} at ({row}, {col})")
            template = LAYOUT_TOKENS[token]
            if template is None:
                continue
            materials.append(Material.create(template["type"], (row, col), angle=template.get("angle")))
    return materials


class BackupLoader:
    """Load backup puzzles stored as JSON, one file per difficulty."""

    def __init__(self, root: Optional[Path] = None, engine: Optional[ReflectionEngine] = None):
        self.root = Path(root) if root is not None else resolve_backup_root(check_exists=False)
        self.engine = engine or ReflectionEngine()

    def path_for(self, difficulty: Difficulty) -> Path:
        return self.root / f"{Difficulty.from_name(difficulty).value.lower()}.json"

    def load(self, difficulty: Difficulty, date: Optional[str] = None) -> Puzzle:
        difficulty = Difficulty.from_name(difficulty)
        path = self.path_for(difficulty)
        if not path.exists():
            raise FileNotFoundError(path)
        data = json.loads(path.read_text(encoding="utf-8"))
        return self._parse_backup(difficulty, data, date)

    def _parse_backup(self, difficulty: Difficulty, data: Dict, date: Optional[str]) -> Puzzle:
        declared = data.get("difficulty")
        if declared is not None and Difficulty.from_name(declared) is not difficulty:
            raise ValueError(f"Backup file declares {declared}, expected {difficulty.value}")
        layout = list(data["layout"])
        materials = parse_layout(layout)
        suffix = date or "template"
        return create_puzzle(
            difficulty,
            len(layout),
            materials,
            tuple(data["entry"]),
            tuple(data["solution"]),
            puzzle_id=f"backup-{difficulty.value.lower()}-{suffix}",
            engine=self.engine,
        )

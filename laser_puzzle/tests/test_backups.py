import json

import pytest

from laser_puzzle.backups import BACKUP_ENV_VAR, BackupLoader, parse_layout, resolve_backup_root
from laser_puzzle.config import DEFAULT_CONFIG, Difficulty
from laser_puzzle.materials import MaterialType


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_backup_matches_difficulty_tables(backup_loader, difficulty):
    puzzle = backup_loader.load(difficulty)
    config = DEFAULT_CONFIG.difficulty(difficulty)

    assert puzzle.grid_size == config.grid_size
    assert puzzle.solution_path.exit == puzzle.solution
    assert len(puzzle.hints) == 4
    assert abs(puzzle.material_density - config.material_density) <= DEFAULT_CONFIG.density_tolerance
    assert {material.type.value for material in puzzle.materials} <= set(config.allowed_materials)


def test_backup_id_uses_date(backup_loader):
    assert backup_loader.load(Difficulty.HARD, "2026-10-19").id == "backup-hard-2026-10-19"
    assert backup_loader.load("easy").id == "backup-easy-template"


def test_parse_layout_tokens():
    materials = parse_layout(["\\ . /", "A W G", "M . ."])
    by_position = {material.position: material for material in materials}

    assert by_position[(0, 0)].angle == 45
    assert by_position[(0, 2)].angle == 135
    assert by_position[(1, 0)].type is MaterialType.ABSORBER
    assert by_position[(1, 1)].type is MaterialType.WATER
    assert by_position[(1, 2)].type is MaterialType.GLASS
    assert by_position[(2, 0)].type is MaterialType.METAL
    assert len(materials) == 6


def test_parse_layout_rejects_bad_rows():
    with pytest.raises(ValueError):
        parse_layout([". .", "."])
    with pytest.raises(ValueError):
        parse_layout(["? .", ". ."])


def test_missing_backup_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        BackupLoader(tmp_path).load(Difficulty.EASY)


def test_backup_root_from_environment(tmp_path, monkeypatch):
    (tmp_path / "easy.json").write_text(
        json.dumps(
            {
                "difficulty": "Easy",
                "entry": [0, 0],
                "solution": [5, 0],
                "layout": [". . . . . ."] * 6,
            }
        )
    )
    monkeypatch.setenv(BACKUP_ENV_VAR, str(tmp_path))

    assert resolve_backup_root() == tmp_path
    puzzle = BackupLoader().load(Difficulty.EASY)
    assert puzzle.solution_path.exit == (5, 0)


def test_missing_backup_root_raises(tmp_path, monkeypatch):
    monkeypatch.setenv(BACKUP_ENV_VAR, str(tmp_path / "nowhere"))
    with pytest.raises(FileNotFoundError):
        resolve_backup_root()


def test_declared_difficulty_must_match(tmp_path):
    (tmp_path / "medium.json").write_text(
        json.dumps({"difficulty": "Hard", "entry": [0, 0], "solution": [7, 0], "layout": [". " * 8] * 8})
    )
    with pytest.raises(ValueError):
        BackupLoader(tmp_path).load(Difficulty.MEDIUM)

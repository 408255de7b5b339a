from dataclasses import replace

import pytest
from conftest import absorber_fill, make_puzzle

from laser_puzzle.config import Difficulty
from laser_puzzle.materials import Material
from laser_puzzle.puzzle import DailyPuzzleSet, puzzle_from_dict
from laser_puzzle.validator import IssueKind, PuzzleValidator, validate_puzzle


def test_backup_puzzles_validate_cleanly(backup_loader):
    validator = PuzzleValidator()
    for difficulty in Difficulty:
        result = validator.validate_puzzle(backup_loader.load(difficulty))
        assert result.valid, result.errors
        assert result.warnings == []
        assert result.alternative_exits == []
        assert result.confidence_score == 100


def test_absorbed_beam_reports_no_valid_exit():
    absorber = Material.create("absorber", (2, 2))
    puzzle = make_puzzle([absorber], (0, 2), (5, 2))

    result = validate_puzzle(puzzle)

    assert not result.valid
    assert any("no valid exit point" in error for error in result.errors)
    assert IssueKind.NO_SOLUTION in result.error_kinds
    assert result.confidence_score == 0


def test_solution_mismatch_is_an_error():
    puzzle = make_puzzle([], (0, 2), (5, 3))
    result = validate_puzzle(puzzle)

    assert IssueKind.SOLUTION_MISMATCH in result.error_kinds


def test_glass_alternative_exit_breaks_uniqueness():
    # The glass transmits by default; its reflected branch heads back out through the entry.
    glass = Material.create("glass", (2, 2))
    puzzle = make_puzzle(
        [glass, Material.create("mirror", (3, 2), angle=45)],
        (0, 2),
        (7, 2),
        difficulty=Difficulty.MEDIUM,
        grid_size=8,
    )
    result = validate_puzzle(puzzle)

    assert result.solution_path is not None
    assert result.solution_path.exit == (3, 7)
    assert IssueKind.SOLUTION_MISMATCH in result.error_kinds

    puzzle = replace(puzzle, solution=(3, 7))
    result = validate_puzzle(puzzle)
    assert IssueKind.MULTIPLE_SOLUTIONS in result.error_kinds
    assert (0, 2) in result.alternative_exits


def test_structural_errors_are_collected():
    puzzle = make_puzzle([], (0, 2), (5, 2))
    broken = replace(puzzle, id="", grid_size=7, hints=puzzle.hints[:3])

    result = validate_puzzle(broken)

    assert not result.valid
    assert result.error_kinds == {IssueKind.STRUCTURE}
    assert len(result.errors) == 3


def test_entry_must_be_on_boundary_and_distinct():
    puzzle = make_puzzle([], (0, 2), (5, 2))

    inner = validate_puzzle(replace(puzzle, entry=(2, 2)))
    assert "Entry point must be on grid boundary" in inner.errors

    same = validate_puzzle(replace(puzzle, solution=(0, 2)))
    assert "Entry and solution points must be different" in same.errors


def test_material_placement_errors():
    materials = [
        Material.create("mirror", (0, 2)),
        Material.create("absorber", (3, 3)),
        Material.create("absorber", (3, 3)),
        replace(Material.create("mirror", (4, 4)), angle=400.0),
    ]
    result = validate_puzzle(make_puzzle(materials, (0, 2), (5, 2)))

    assert "Material cannot be placed at entry point" in result.errors
    assert "Multiple materials at position (3, 3)" in result.errors
    assert "Mirror material 3 must have valid angle (0-359)" in result.errors


def test_material_property_and_position_errors():
    tinted = Material.create("absorber", (3, 0))
    broken = replace(
        tinted,
        properties=replace(tinted.properties, reflectivity=1.5, transparency=-0.5, diffusion=-0.1),
    )
    materials = [broken, Material.create("absorber", (5, 2)), Material.create("absorber", (6, 0))]

    result = validate_puzzle(make_puzzle(materials, (0, 2), (5, 2)))

    assert "Material 0 reflectivity must be between 0 and 1" in result.errors
    assert "Material 0 transparency must be between 0 and 1" in result.errors
    assert "Material 0 diffusion must be between 0 and 1" in result.errors
    assert "Material cannot be placed at solution point" in result.errors
    assert "Material 2 position is out of bounds" in result.errors


def test_loaded_mirror_without_angle_is_rejected(easy_backup):
    payload = easy_backup.to_dict()
    index = next(i for i, item in enumerate(payload["materials"]) if item["type"] == "mirror")
    del payload["materials"][index]["angle"]

    result = validate_puzzle(puzzle_from_dict(payload))

    assert not result.valid
    assert f"Mirror material {index} must have valid angle (0-359)" in result.errors


def test_disallowed_material_for_difficulty():
    puzzle = make_puzzle([Material.create("glass", (3, 0))], (0, 2), (5, 2))
    result = validate_puzzle(puzzle)

    assert "Material type 'glass' not allowed in Easy difficulty" in result.errors


def test_density_outside_tolerance_is_only_a_warning():
    sparse = make_puzzle([Material.create("absorber", (3, 0))], (0, 2), (5, 2))
    result = validate_puzzle(sparse)

    assert any(issue.kind is IssueKind.DENSITY for issue in result.issues)
    assert "Material density" in result.warnings[0]
    assert all(issue.kind is not IssueKind.DENSITY for issue in result.issues if issue.is_error)


def test_straight_dense_puzzle_warns_about_complexity():
    keep = [(row, 2) for row in range(6)]
    puzzle = make_puzzle(absorber_fill(6, keep, 25), (0, 2), (5, 2))

    result = validate_puzzle(puzzle)

    assert result.valid
    assert [issue.kind for issue in result.issues] == [IssueKind.COMPLEXITY]
    # 70 + 10 exit + 5 density + 5 spacing - 5 for the warning; no variety or complexity bonus.
    assert result.confidence_score == 85


def test_unknown_material_type_is_reported_not_traced():
    bogus = Material(type="plasma", position=(2, 2))
    puzzle = replace(make_puzzle([], (0, 2), (5, 2)), materials=(bogus,))
    result = validate_puzzle(puzzle)
    assert "Material 0 has invalid type: plasma" in result.errors
    assert result.solution_path is None


def test_daily_set_prefixes_findings(backup_loader):
    puzzles = {difficulty: backup_loader.load(difficulty) for difficulty in Difficulty}
    broken = replace(puzzles[Difficulty.HARD], solution=(9, 0))
    puzzles[Difficulty.HARD] = broken

    result = PuzzleValidator().validate_daily_set(DailyPuzzleSet("2026-10-19", puzzles))

    assert not result.valid
    assert all(error.startswith("Hard: ") for error in result.errors)


def test_daily_set_requires_every_difficulty(backup_loader):
    puzzles = {Difficulty.EASY: backup_loader.load(Difficulty.EASY)}
    result = PuzzleValidator().validate_daily_set(DailyPuzzleSet("2026-10-19", puzzles))

    assert "Missing Medium puzzle in daily set" in result.errors
    assert "Missing Hard puzzle in daily set" in result.errors


@pytest.mark.parametrize("budget", [1, 2])
def test_truncated_exploration_warns(budget):
    glass = Material.create("glass", (2, 3))
    validator = PuzzleValidator(exploration_budget=budget)
    puzzle = make_puzzle(
        [glass],
        (2, 0),
        (2, 7),
        difficulty=Difficulty.MEDIUM,
        grid_size=8,
    )
    result = validator.validate_puzzle(puzzle)

    truncated = any(issue.kind is IssueKind.EXPLORATION_TRUNCATED for issue in result.issues)
    assert truncated == (budget == 1)

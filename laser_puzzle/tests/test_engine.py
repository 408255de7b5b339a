import pytest

from laser_puzzle.engine import (
    MAX_BOUNCES,
    ReflectionEngine,
    TerminationReason,
    infer_direction,
    trace_path,
)
from laser_puzzle.materials import Material, UnknownMaterialError


def test_empty_grid_beam_travels_straight_south():
    path = trace_path([], (0, 2), 6)

    assert not path.terminated
    assert path.termination_reason is TerminationReason.EXIT
    assert path.exit == (5, 2)
    assert path.bounces == 0
    assert [segment.end for segment in path.segments] == [(1, 2), (2, 2), (3, 2), (4, 2), (5, 2)]


def test_mirror_turns_beam_east():
    mirror = Material.create("mirror", (1, 2), angle=45)
    path = trace_path([mirror], (0, 2), 6)

    assert path.reached_exit
    assert path.exit == (1, 5)
    assert path.bounces == 1
    assert path.segments[0].material == mirror
    assert path.segments[1].direction == 0


def test_absorber_in_path_terminates_beam():
    absorber = Material.create("absorber", (3, 2))
    path = trace_path([absorber], (0, 2), 6)

    assert path.terminated
    assert path.termination_reason is TerminationReason.ABSORBED
    assert path.exit is None
    assert path.segments[-1].material == absorber
    assert path.intensity == 0


def test_metal_reverses_beam_heading_east():
    metal = Material.create("metal", (3, 3))
    path = trace_path([metal], (3, 0), 6)

    hit = [index for index, segment in enumerate(path.segments) if segment.material == metal]
    assert hit
    after = path.segments[hit[0] + 1]
    assert after.direction == 180
    assert path.exit == (3, 0)
    assert path.intensity == pytest.approx(1.0)
    assert path.bounces == 1


@pytest.mark.parametrize(
    "entry, expected",
    [((0, 3), 90), ((5, 3), 270), ((3, 0), 0), ((3, 5), 180), ((0, 0), 90), ((5, 5), 270)],
)
def test_direction_inferred_from_entry_edge(entry, expected):
    assert infer_direction(entry, 6) == expected


def test_explicit_direction_overrides_inference():
    path = trace_path([], (0, 2), 6, initial_direction=0)
    assert path.exit == (0, 5)


def test_trace_is_deterministic():
    materials = [
        Material.create("mirror", (2, 1), angle=45),
        Material.create("glass", (2, 3)),
        Material.create("water", (2, 4)),
        Material.create("metal", (4, 4)),
    ]
    engine = ReflectionEngine()
    first = engine.trace(materials, (0, 1), 6)
    second = engine.trace(list(reversed(materials)), (0, 1), 6)

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_mirror_loop_stops_at_bounce_ceiling():
    # Four mirrors trap a beam entering the box at (1, 1) heading east.
    materials = [
        Material.create("mirror", (1, 3), angle=45),
        Material.create("mirror", (3, 3), angle=135),
        Material.create("mirror", (3, 1), angle=45),
        Material.create("mirror", (1, 1), angle=135),
    ]
    path = trace_path(materials, (1, 2), 6, initial_direction=0)

    assert path.terminated
    assert path.termination_reason is TerminationReason.MAX_BOUNCES
    assert len(path.segments) == MAX_BOUNCES


def test_glass_chain_drops_below_minimum_intensity():
    # A horizontal beam keeps its heading through glass either way, halving each time.
    glass = [Material.create("glass", (3, col)) for col in range(1, 9)]
    path = trace_path(glass, (3, 0), 10)

    assert path.terminated
    assert path.termination_reason is TerminationReason.MIN_INTENSITY
    assert len(path.interactions) == 7


def test_unknown_material_is_a_defect():
    bogus = Material(type="plasma", position=(2, 2))  # bypasses the factory
    with pytest.raises(UnknownMaterialError):
        trace_path([bogus], (0, 2), 6)


def test_entry_outside_grid_is_rejected():
    with pytest.raises(ValueError):
        trace_path([], (7, 2), 6)


def test_explore_enumerates_glass_outcomes():
    glass = Material.create("glass", (2, 2))
    exploration = ReflectionEngine().explore([glass], (0, 2), 6)

    assert len(exploration.paths) == 2
    assert exploration.deterministic.exit == (5, 2)
    assert set(exploration.exits) == {(5, 2), (0, 2)}
    assert not exploration.truncated


def test_explore_respects_budget():
    waters = [Material.create("water", (2, col)) for col in range(1, 5)]
    exploration = ReflectionEngine().explore(waters, (2, 0), 6, budget=5)

    assert len(exploration.paths) == 5
    assert exploration.truncated


def test_trace_with_choices_forces_outcome():
    glass = Material.create("glass", (2, 2))
    engine = ReflectionEngine()

    assert engine.trace_with_choices([glass], (0, 2), 6, [1]).exit == (0, 2)
    assert engine.trace_with_choices([glass], (0, 2), 6, []).exit == (5, 2)

import pytest

from laser_puzzle.materials import (
    GLASS_REFLECT,
    GLASS_TRANSMIT,
    MATERIAL_PROPERTIES,
    Material,
    MaterialType,
    UnknownMaterialError,
    default_outcome,
    interact,
    normalize_angle,
    possible_outcomes,
    reflect,
)


@pytest.mark.parametrize(
    "incident, expected",
    [(90, 0), (0, 90), (270, 180), (180, 270)],
)
def test_mirror_45_reflection_map(incident, expected):
    mirror = Material.create("mirror", (2, 2), angle=45)
    result = interact(mirror, incident, 1.0)

    assert result.reflected
    assert result.new_direction == expected
    assert result.intensity == 1.0


@pytest.mark.parametrize(
    "incident, expected",
    [(90, 180), (180, 90), (0, 270), (270, 0)],
)
def test_mirror_135_reflection_map(incident, expected):
    mirror = Material.create("mirror", (2, 2), angle=135)
    assert interact(mirror, incident, 1.0).new_direction == expected


def test_mirror_defaults_to_45_degrees():
    assert Material.create("mirror", (0, 0)).angle == 45.0


def test_metal_reverses_direction():
    metal = Material.create(MaterialType.METAL, (3, 3))
    result = interact(metal, 0, 0.75)

    assert result.new_direction == 180
    assert result.intensity == pytest.approx(0.75)


def test_absorber_stops_beam():
    absorber = Material.create("absorber", (1, 1))
    result = interact(absorber, 90, 1.0)

    assert not result.reflected
    assert result.intensity == 0


def test_glass_outcome_depends_on_cell_parity():
    even = Material.create("glass", (2, 4))
    odd = Material.create("glass", (2, 3))

    assert default_outcome(even) == GLASS_TRANSMIT
    assert default_outcome(odd) == GLASS_REFLECT

    passed = interact(even, 90, 1.0)
    assert not passed.reflected
    assert passed.new_direction == 90
    assert passed.intensity == pytest.approx(0.5)

    bounced = interact(odd, 90, 1.0)
    assert bounced.reflected
    assert bounced.new_direction == 270
    assert bounced.intensity == pytest.approx(0.5)


def test_water_perturbation_is_bounded_and_repeatable():
    water = Material.create("water", (3, 4))
    assert possible_outcomes(water) == 3

    first = interact(water, 0, 1.0)
    second = interact(water, 0, 1.0)
    assert first == second
    assert first.intensity == pytest.approx(0.8)

    directions = {interact(water, 90, 1.0, outcome).new_direction for outcome in range(3)}
    assert directions == {261.0, 270.0, 279.0}


def test_reflect_normalizes_into_range():
    assert reflect(270, 45) == 180
    assert normalize_angle(-90) == 270
    assert normalize_angle(720) == 0


def test_unknown_material_type_raises():
    with pytest.raises(UnknownMaterialError):
        Material.create("crystal", (0, 0))
    with pytest.raises(ValueError):
        MaterialType.from_name("plasma")


def test_material_dict_round_trip_keeps_properties():
    mirror = Material.create("mirror", (4, 1), angle=135)
    restored = Material.from_dict(mirror.to_dict())

    assert restored == mirror


def test_only_glass_and_water_branch():
    assert {kind for kind in MaterialType if kind.probabilistic} == {MaterialType.GLASS, MaterialType.WATER}
    assert possible_outcomes(Material.create("metal", (1, 1))) == 1
    assert possible_outcomes(Material.create("glass", (1, 1))) == 2
    assert possible_outcomes(Material.create("water", (1, 1))) == 3


@pytest.mark.parametrize("kind", list(MaterialType))
def test_direct_construction_uses_type_properties(kind):
    material = Material(kind, (2, 2))
    assert material.properties == MATERIAL_PROPERTIES[kind]


def test_stored_mirror_without_angle_keeps_it_unset():
    payload = Material.create("mirror", (1, 1)).to_dict()
    del payload["angle"]

    assert Material.from_dict(payload).angle is None
    assert Material.create("mirror", (1, 1)).angle == 45

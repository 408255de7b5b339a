"""Material physics for the laser puzzle grid."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

GridPosition = Tuple[int, int]

DEFAULT_MIRROR_ANGLE = 45.0
WATER_PERTURBATION = 30.0
# Surface line shared by water and glass; reflecting off it flips the vertical heading.
HORIZONTAL_SURFACE = 0.0


class UnknownMaterialError(ValueError):
    """Raised for a material type the physics model does not know."""


def normalize_angle(angle: float) -> float:
    value = float(angle) % 360.0
    # -0.0 and float noise such as 359.9999999 collapse onto 0.
    if abs(value - 360.0) < 1e-9 or abs(value) < 1e-9:
        return 0.0
    return round(value, 6)


def reflect(incident: float, surface: float) -> float:
    """Reflect *incident* off a surface line running at *surface* degrees."""

    return normalize_angle(2 * surface - incident)


class MaterialType(str, Enum):
    MIRROR = "mirror"
    WATER = "water"
    GLASS = "glass"
    METAL = "metal"
    ABSORBER = "absorber"

    @staticmethod
    def from_name(name: object) -> "MaterialType":
        if isinstance(name, MaterialType):
            return name
        try:
            return MaterialType(str(name).lower())
        except ValueError as exc:
            raise UnknownMaterialError(f"Unknown material type: {name}") from exc

    @property
    def probabilistic(self) -> bool:
        return self in (MaterialType.WATER, MaterialType.GLASS)


@dataclass(frozen=True)
class MaterialProperties:
    reflectivity: float
    transparency: float
    diffusion: float
    absorption: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "reflectivity": self.reflectivity,
            "transparency": self.transparency,
            "diffusion": self.diffusion,
            "absorption": self.absorption,
        }


MATERIAL_PROPERTIES: Mapping[MaterialType, MaterialProperties] = {
    MaterialType.MIRROR: MaterialProperties(1.0, 0.0, 0.0, False),
    MaterialType.WATER: MaterialProperties(0.8, 0.0, 0.3, False),
    MaterialType.GLASS: MaterialProperties(0.5, 0.5, 0.0, False),
    MaterialType.METAL: MaterialProperties(1.0, 0.0, 0.0, False),
    MaterialType.ABSORBER: MaterialProperties(0.0, 0.0, 0.0, True),
}


@dataclass(frozen=True)
class Material:
    """A single occupant of a grid cell."""

    type: MaterialType
    position: GridPosition
    angle: Optional[float] = None
    properties: Optional[MaterialProperties] = None

    def __post_init__(self) -> None:
        if self.properties is not None:
            return
        try:
            kind = MaterialType.from_name(self.type)
        except UnknownMaterialError:
            # Left unset; the validator reports the type.
            return
        object.__setattr__(self, "properties", MATERIAL_PROPERTIES[kind])

    @classmethod
    def create(
        cls,
        material_type: object,
        position: GridPosition,
        angle: Optional[float] = None,
        properties: Optional[MaterialProperties] = None,
    ) -> "Material":
        kind = MaterialType.from_name(material_type)
        if kind is MaterialType.MIRROR and angle is None:
            angle = DEFAULT_MIRROR_ANGLE
        return cls(
            type=kind,
            position=(int(position[0]), int(position[1])),
            angle=float(angle) if angle is not None else None,
            properties=properties or MATERIAL_PROPERTIES[kind],
        )

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "type": self.type.value,
            "position": list(self.position),
            "properties": self.properties.to_dict(),
        }
        if self.angle is not None:
            payload["angle"] = self.angle
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Material":
        kind = MaterialType.from_name(data["type"])
        properties = None
        raw = data.get("properties")
        if isinstance(raw, Mapping):
            defaults = MATERIAL_PROPERTIES[kind]
            properties = MaterialProperties(
                reflectivity=float(raw.get("reflectivity", defaults.reflectivity)),
                transparency=float(raw.get("transparency", defaults.transparency)),
                diffusion=float(raw.get("diffusion", defaults.diffusion)),
                absorption=bool(raw.get("absorption", defaults.absorption)),
            )
        angle = data.get("angle")
        position = data["position"]
        # No mirror default: a stored mirror without an angle is left for the validator to reject.
        return cls(
            type=kind,
            position=(int(position[0]), int(position[1])),
            angle=float(angle) if angle is not None else None,
            properties=properties,
        )


@dataclass(frozen=True)
class Interaction:
    """Outcome of a beam meeting a material."""

    reflected: bool
    new_direction: float
    intensity: float
    position: GridPosition
    material: Material


# Outcome labels for the probabilistic materials.
GLASS_TRANSMIT = 0
GLASS_REFLECT = 1


def _water_offsets(material: Material) -> List[float]:
    spread = WATER_PERTURBATION * material.properties.diffusion
    return [-spread, 0.0, spread]


def possible_outcomes(material: Material) -> int:
    """Number of distinct outcomes *material* can produce for one beam."""

    kind = MaterialType.from_name(material.type)
    if not kind.probabilistic:
        return 1
    if kind is MaterialType.GLASS:
        return 2
    return len(set(_water_offsets(material)))


def default_outcome(material: Material) -> int:
    """Pick the outcome a probabilistic material takes from its cell position.

    The choice only depends on the cell so that a trace is repeatable.
    """

    row, col = material.position
    if material.type is MaterialType.GLASS:
        return GLASS_TRANSMIT if (row + col) % 2 == 0 else GLASS_REFLECT
    if material.type is MaterialType.WATER:
        if possible_outcomes(material) == 1:
            return 0
        return ((3 * row + 7 * col) % 8) % 3
    return 0


def interact(
    material: Material,
    incident: float,
    intensity: float,
    outcome: Optional[int] = None,
) -> Interaction:
    """Apply *material* to a beam travelling along *incident* degrees.

    ``outcome`` selects a branch for glass and water; when omitted the
    position-derived default is used.
    """

    kind = MaterialType.from_name(material.type)
    props = material.properties
    if outcome is None:
        outcome = default_outcome(material)
    if not 0 <= outcome < possible_outcomes(material):
        raise ValueError(f"Outcome {outcome} out of range for {kind.value}")

    if kind is MaterialType.MIRROR:
        surface = material.angle if material.angle is not None else DEFAULT_MIRROR_ANGLE
        direction = reflect(incident, surface)
        return Interaction(True, direction, intensity * props.reflectivity, material.position, material)
    if kind is MaterialType.METAL:
        direction = normalize_angle(incident + 180)
        return Interaction(True, direction, intensity * props.reflectivity, material.position, material)
    if kind is MaterialType.WATER:
        offsets = sorted(set(_water_offsets(material)))
        direction = normalize_angle(reflect(incident, HORIZONTAL_SURFACE) + offsets[outcome])
        return Interaction(True, direction, intensity * props.reflectivity, material.position, material)
    if kind is MaterialType.GLASS:
        if outcome == GLASS_TRANSMIT:
            return Interaction(
                False,
                normalize_angle(incident),
                intensity * props.transparency,
                material.position,
                material,
            )
        direction = reflect(incident, HORIZONTAL_SURFACE)
        return Interaction(True, direction, intensity * props.reflectivity, material.position, material)
    if kind is MaterialType.ABSORBER:
        return Interaction(False, normalize_angle(incident), 0.0, material.position, material)
    raise UnknownMaterialError(f"Unknown material type: {material.type}")

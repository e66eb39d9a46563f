"""
Ground and vegetation composition, and Whittaker biome classification.

Compositions are simplexes: named tuples of non-negative fractions summing
to 1.
"""

from enum import IntEnum
from typing import NamedTuple, Sequence, Tuple

import structlog

from .compute import CellData
from .poly_map import PolyMap

logger = structlog.get_logger()


class Ground(NamedTuple):
    water: float = 0.0
    sand: float = 0.0
    soil: float = 1.0
    rock: float = 0.0


class Vegetation(NamedTuple):
    none: float = 1.0
    deciduous: float = 0.0
    boreal: float = 0.0


class BiomeType(IntEnum):
    """Whittaker biome classes."""

    UNDERWATER = 0
    TUNDRA = 1
    BOREAL_FOREST = 2
    COLD_DESERT = 3
    TEMPERATE_RAINFOREST = 4
    TEMPERATE_DECIDUOUS_FOREST = 5
    SHRUBLAND = 6
    TEMPERATE_GRASSLAND = 7
    TROPICAL_RAINFOREST = 8
    SAVANNA = 9
    SUBTROPICAL_DESERT = 10


# Biome names for display
BIOME_NAMES = {
    BiomeType.UNDERWATER: "Underwater",
    BiomeType.TUNDRA: "Tundra",
    BiomeType.BOREAL_FOREST: "Boreal Forest",
    BiomeType.COLD_DESERT: "Cold Desert",
    BiomeType.TEMPERATE_RAINFOREST: "Temperate Rainforest",
    BiomeType.TEMPERATE_DECIDUOUS_FOREST: "Temperate Deciduous Forest",
    BiomeType.SHRUBLAND: "Shrubland",
    BiomeType.TEMPERATE_GRASSLAND: "Temperate Grassland",
    BiomeType.TROPICAL_RAINFOREST: "Tropical Rainforest",
    BiomeType.SAVANNA: "Savanna",
    BiomeType.SUBTROPICAL_DESERT: "Subtropical Desert",
}

# Temperature and precipitation thresholds of the Whittaker diagram
T_VLOW, T_LOW, T_HIGH = 0.1, 0.3, 0.8
P_VLOW, P_LOW, P_HIGH = 0.1, 0.3, 0.8


def whittaker(temperature: float, rain: float) -> BiomeType:
    if temperature < T_VLOW:
        return BiomeType.TUNDRA
    if temperature < T_LOW:
        return BiomeType.COLD_DESERT if rain < P_VLOW else BiomeType.BOREAL_FOREST
    if temperature < T_HIGH:
        if rain < P_VLOW:
            return BiomeType.TEMPERATE_GRASSLAND
        if rain < P_LOW:
            return BiomeType.SHRUBLAND
        if rain < P_HIGH:
            return BiomeType.TEMPERATE_DECIDUOUS_FOREST
        return BiomeType.TEMPERATE_RAINFOREST
    if rain < P_VLOW:
        return BiomeType.SUBTROPICAL_DESERT
    if rain < P_HIGH:
        return BiomeType.SAVANNA
    return BiomeType.TROPICAL_RAINFOREST


def _clamp01(x: float) -> float:
    return min(max(x, 0.0), 1.0)


def normalize_simplex(components: Sequence[float], previous: Tuple) -> Tuple[float, ...]:
    """Scale components to sum to 1; keep ``previous`` when they sum to 0."""
    total = sum(components)
    if total <= 0.0:
        return previous
    return tuple(c / total for c in components)


def ground_composition(is_water: bool, rain: float, drainage: float, height: float, previous: Ground) -> Ground:
    """
    Fractions of water, sand, soil and rock of a cell.

    Args:
        is_water: Whether the cell's terrain is water
        rain: Normalized rainfall
        drainage: Normalized drainage
        height: Elevation in [0, 1]
        previous: Value returned when every component vanishes

    Returns:
        Composition summing to 1
    """
    rain = _clamp01(rain)
    drainage = _clamp01(drainage)
    height = _clamp01(height)

    if is_water:
        components = (1.0, 0.2 * (1.0 - height), 0.0, 0.0)
    else:
        components = (
            0.3 * drainage,
            0.6 * (1.0 - rain) * (1.0 - height),
            rain * (1.0 - height),
            height * height,
        )

    result = normalize_simplex(components, previous)
    return result if isinstance(result, Ground) else Ground(*result)


def vegetation_composition(
    is_water: bool, rain: float, temperature: float, height: float, previous: Vegetation
) -> Vegetation:
    """Fractions of bare, deciduous and boreal cover of a cell."""
    rain = _clamp01(rain)
    temperature = _clamp01(temperature)
    height = _clamp01(height)

    if is_water:
        components = (1.0, 0.0, 0.0)
    else:
        growth = rain * (1.0 - height)
        components = (
            0.5 * (1.0 - rain) + 0.5 * height,
            growth * temperature,
            0.8 * growth * (1.0 - temperature),
        )

    result = normalize_simplex(components, previous)
    return result if isinstance(result, Vegetation) else Vegetation(*result)


def smooth_ground(mesh: PolyMap, ground: CellData, passes: int) -> None:
    """Jacobi-average ground with its neighbors; averages of simplexes stay simplexes."""

    def average(value: Ground, neighborhood):
        group = [value] + list(neighborhood)
        n = len(group)
        return Ground(*(sum(g[i] for g in group) / n for i in range(len(value))))

    for _ in range(passes):
        ground.update_with_neighbors(mesh, average)
    logger.debug("Ground smoothed", passes=passes)

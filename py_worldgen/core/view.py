"""
Per-entity colors of a world for each view mode.

Colors are RGBA tuples of floats in [0, 1]. Nothing is drawn here; a
renderer reads the colors through ``WorldMapView``.
"""

from enum import Enum
from typing import List, Optional, Tuple

from .poly_map import CellId, EdgeId, VertexId

Color = Tuple[float, float, float, float]

BLACK: Color = (0.0, 0.0, 0.0, 1.0)
RED: Color = (1.0, 0.0, 0.0, 1.0)
GREEN: Color = (0.0, 1.0, 0.0, 1.0)
YELLOW: Color = (1.0, 1.0, 0.0, 1.0)
DARKBLUE: Color = (0.0, 0.0, 0.55, 1.0)


class ViewMode(Enum):
    TERRAIN = "Geology"
    HEIGHTMAP = "Heightmap"
    HYDROLOGY = "Hydrology"
    THERMOLOGY = "Temperatures"

    @property
    def display_name(self) -> str:
        return self.value


def _clamp01(x: float) -> float:
    return min(max(x, 0.0), 1.0)


def interpolate_colors(c1: Color, c2: Color, t: float) -> Color:
    return tuple((1.0 - t) * a + t * b for a, b in zip(c1, c2))


def interpolate_three_colors(c1: Color, c2: Color, c3: Color, t: float) -> Color:
    if t <= 0.5:
        return interpolate_colors(c1, c2, 2.0 * t)
    return interpolate_colors(c2, c3, 2.0 * (t - 0.5))


def rgb_to_color(rgb: Tuple[int, int, int]) -> Color:
    r, g, b = rgb
    return (r / 255.0, g / 255.0, b / 255.0, 1.0)


class WorldMapView:
    """Colors of a ``WorldMap`` under one ``ViewMode``."""

    def __init__(self, world, mode: ViewMode):
        self.world = world
        self.mode = mode

    def cell_color(self, cell_id: CellId) -> Color:
        world = self.world
        if self.mode is ViewMode.HEIGHTMAP:
            intensity = _clamp01(world.cell_height(cell_id))
            return (intensity, intensity, intensity, 1.0)

        if self.mode is ViewMode.TERRAIN:
            low, high, t = world.table.from_level_range(world.cell_height(cell_id))
            return interpolate_colors(
                rgb_to_color(world.table[low].color), rgb_to_color(world.table[high].color), t
            )

        if self.mode is ViewMode.HYDROLOGY:
            rainfall = world.cell_rainfall(cell_id)
            return (0.0, 0.0, 1.0, _clamp01(rainfall))

        temperature = _clamp01(world.cell_temperature(cell_id))
        return interpolate_three_colors(DARKBLUE, YELLOW, RED, temperature)

    def edge_color(self, edge_id: EdgeId) -> Optional[Color]:
        world = self.world
        if self.mode is ViewMode.HEIGHTMAP:
            return BLACK

        if self.mode is ViewMode.TERRAIN:
            if not world.hydrology.rivers.is_segment(edge_id):
                return None
            return (0.0, 0.0, 1.0, _clamp01(world.edge_flux(edge_id)))

        if self.mode is ViewMode.HYDROLOGY:
            return (0.0, 0.0, 0.0, _clamp01(world.edge_flux(edge_id)))

        return None

    def draws_vertices(self) -> bool:
        return self.mode in (ViewMode.HEIGHTMAP, ViewMode.HYDROLOGY)

    def vertex_color(self, vertex_id: VertexId) -> Optional[Color]:
        world = self.world
        if self.mode is ViewMode.HEIGHTMAP:
            # Interior local minima
            if not world.has_descent(vertex_id) and not world.mesh.vertex(vertex_id).is_border:
                return RED
            return None

        if self.mode is ViewMode.HYDROLOGY:
            if world.is_river_source(vertex_id):
                return GREEN
            if world.is_river_sink(vertex_id):
                return RED
            return None

        return None

    def cell_colors(self) -> List[Color]:
        return [self.cell_color(cell_id) for cell_id, _ in self.world.mesh.cells()]

"""
Temperature model.

Innate temperature comes from a latitude band plus noise; water and altitude
then moderate it.
"""

import structlog

from .alea_prng import AleaPRNG
from .compute import CellData, VertexData
from .fields import Band, GridGenerator, NoiseField
from .heightmap import HeightMap
from .poly_map import PolyMap, VertexId
from .terrain import TerrainTable, water_vertices

logger = structlog.get_logger()


def adjust_temperature(
    mesh: PolyMap,
    innate: VertexData,
    heightmap: HeightMap,
    is_water: VertexData,
    water_scale: float,
    water_cap: float,
    altitude_comfort: float,
) -> VertexData:
    """
    Apply water moderation and altitude cooling to innate temperatures.

    Water vertices become ``min(t * water_scale, water_cap)``; land vertices
    are multiplied by ``min(altitude_comfort - height, 1.0)``.
    """

    def adjust(idx, _, t):
        if is_water[idx]:
            return min(t * water_scale, water_cap)
        return t * min(altitude_comfort - heightmap.vertex_height(idx), 1.0)

    adjusted = innate.copy()
    adjusted.update_each(mesh, adjust)
    return adjusted


class Thermology:
    """Frozen temperature fields; ``innate`` is kept for recomputation."""

    def __init__(
        self,
        mesh: PolyMap,
        innate: VertexData,
        vertex_temperature: VertexData,
        water_scale: float,
        water_cap: float,
        altitude_comfort: float,
    ):
        self.mesh = mesh
        self.innate = innate
        self.vertex_temperature = vertex_temperature
        self.cell_temperature = CellData.corner_average(mesh, vertex_temperature)
        self.water_scale = water_scale
        self.water_cap = water_cap
        self.altitude_comfort = altitude_comfort

    def temperature_at_vertex(self, vertex_id: VertexId) -> float:
        return self.vertex_temperature[vertex_id]

    def temperature_at_cell(self, cell_id) -> float:
        return self.cell_temperature[cell_id]

    def recompute(self, heightmap: HeightMap, terrain: CellData, table: TerrainTable) -> "Thermology":
        is_water = water_vertices(self.mesh, terrain, table)
        adjusted = adjust_temperature(
            self.mesh,
            self.innate,
            heightmap,
            is_water,
            self.water_scale,
            self.water_cap,
            self.altitude_comfort,
        )
        return Thermology(
            self.mesh, self.innate, adjusted, self.water_scale, self.water_cap, self.altitude_comfort
        )


class ThermologyBuilder(GridGenerator):
    """Accumulates the innate per-vertex temperature."""

    def __init__(self, mesh: PolyMap):
        self.mesh = mesh
        self.grid = VertexData.uniform(mesh, 0.0)

    def latitude_band(self, intensity: float) -> None:
        """Warm equator along the horizontal midline, cold at top and bottom."""
        band = Band(cx=self.mesh.width / 2.0, cy=self.mesh.height / 2.0, m=0.0, radius=self.mesh.height / 2.0)
        self.add_field(band.scale(intensity))

    def noise(self, frequency: float, intensity: float, prng: AleaPRNG) -> None:
        self.add_field(NoiseField.with_prng(frequency, prng), intensity)

    def build(
        self,
        heightmap: HeightMap,
        terrain: CellData,
        table: TerrainTable,
        water_scale: float = 0.5,
        water_cap: float = 40.0,
        altitude_comfort: float = 1.5,
    ) -> Thermology:
        logger.info("Building thermology")

        innate = self.grid.copy()
        is_water = water_vertices(self.mesh, terrain, table)
        adjusted = adjust_temperature(
            self.mesh, innate, heightmap, is_water, water_scale, water_cap, altitude_comfort
        )
        thermology = Thermology(self.mesh, innate, adjusted, water_scale, water_cap, altitude_comfort)

        logger.info(
            "Thermology built",
            min_temperature=thermology.cell_temperature.min(),
            max_temperature=thermology.cell_temperature.max(),
        )
        return thermology

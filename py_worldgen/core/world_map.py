"""
World generation pipeline.

``WorldGenerator.generate`` runs every stage in a fixed order from a single
seeded PRNG, so the same mesh and seed always produce the same world.
``WorldMap.reflow`` perturbs an existing heightmap and recomputes every layer
that depends on it.
"""

from collections import Counter
from typing import Dict, List, Optional

import structlog

from ..config.worldgen import ReflowConf, WorldGenConf
from .alea_prng import AleaPRNG
from .biomes import (
    BIOME_NAMES,
    BiomeType,
    Ground,
    Vegetation,
    ground_composition,
    smooth_ground,
    vegetation_composition,
    whittaker,
)
from .compute import CellData
from .fields import NoiseField
from .heightmap import HeightMap, HeightMapBuilder
from .hydrology import Hydrology, HydrologyBuilder, wind_speed
from .poly_map import CellId, EdgeId, PolyMap, VertexId
from .terrain import TerrainTable, TerrainTypeData, remove_land_stragglers
from .thermology import Thermology, ThermologyBuilder

logger = structlog.get_logger()


def classify_terrain(
    mesh: PolyMap, heightmap: HeightMap, table: TerrainTable, remove_stragglers: bool
) -> CellData:
    terrain = table.classify(heightmap.cells)
    if remove_stragglers:
        remove_land_stragglers(mesh, terrain, table)
    return terrain


class WorldMap:
    """
    A generated world.

    Layers are rebuilt as a whole by ``reflow``; readers must not access the
    map while a reflow is running.
    """

    def __init__(
        self,
        mesh: PolyMap,
        seed,
        conf: WorldGenConf,
        table: TerrainTable,
        heightmap: HeightMap,
        terrain: CellData,
        hydrology: Hydrology,
        thermology: Thermology,
    ):
        self.mesh = mesh
        self.seed = seed
        self.conf = conf
        self.table = table
        self.heightmap = heightmap
        self.terrain = terrain
        self.hydrology = hydrology
        self.thermology = thermology
        self.reflows = 0

        self.ground: Optional[CellData] = None
        self.vegetation: Optional[CellData] = None
        self.biome: Optional[CellData] = None
        self._derive_biomes()

    def _derive_biomes(self) -> None:
        mesh = self.mesh
        biome_conf = self.conf.biome
        previous_ground = self.ground
        previous_vegetation = self.vegetation

        rain = CellData.for_each(mesh, lambda idx, _: biome_conf.rain.normalize(self.hydrology.cell_rainfall[idx]))
        drainage = CellData.for_each(
            mesh, lambda idx, _: biome_conf.drainage.normalize(self.hydrology.cell_drainage[idx])
        )
        is_water = self.terrain.transform(lambda _, t: self.table.is_water(t))

        self.ground = CellData.for_each(
            mesh,
            lambda idx, _: ground_composition(
                is_water[idx],
                rain[idx],
                drainage[idx],
                self.heightmap.cell_height(idx),
                previous_ground[idx] if previous_ground is not None else Ground(),
            ),
        )
        smooth_ground(mesh, self.ground, biome_conf.ground_smoothing)

        self.vegetation = CellData.for_each(
            mesh,
            lambda idx, _: vegetation_composition(
                is_water[idx],
                rain[idx],
                self.thermology.cell_temperature[idx],
                self.heightmap.cell_height(idx),
                previous_vegetation[idx] if previous_vegetation is not None else Vegetation(),
            ),
        )

        self.biome = CellData.for_each(
            mesh,
            lambda idx, _: BiomeType.UNDERWATER
            if is_water[idx]
            else whittaker(self.thermology.cell_temperature[idx], rain[idx]),
        )

    def reflow(self, params: ReflowConf) -> None:
        """
        Perturb the heightmap and recompute every dependent layer in place.

        Randomness comes from a PRNG derived from the world seed and the
        reflow count, so a sequence of reflows is reproducible.
        """
        self.reflows += 1
        prng = AleaPRNG([self.seed, "reflow", self.reflows])
        logger.info(
            "Reflowing world",
            reflow=self.reflows,
            frequency=params.frequency,
            intensity=params.intensity,
            clumps=params.clumps.number,
        )

        builder = self.heightmap.make_builder()
        builder.add_field(NoiseField(params.frequency, x_shift=0.0, y_shift=0.0), params.intensity)
        for _ in range(params.clumps.number):
            builder.clump(params.clumps.amount, params.clumps.decay, params.clumps.end, prng)

        self.heightmap = builder.build(fill_depressions=self.conf.heightmap.planchon_darboux)
        self.terrain = classify_terrain(
            self.mesh, self.heightmap, self.table, self.conf.terrain.remove_land_stragglers
        )
        self.hydrology = self.hydrology.recompute(
            self.heightmap, self.terrain, self.table, self.conf.hydrology, prng
        )
        self.thermology = self.thermology.recompute(self.heightmap, self.terrain, self.table)
        self._derive_biomes()

        logger.info("Reflow completed", reflow=self.reflows, rivers=len(self.hydrology.rivers))

    # Cell accessors
    def cell_height(self, cell_id: CellId) -> float:
        return self.heightmap.cell_height(cell_id)

    def cell_terrain(self, cell_id: CellId) -> TerrainTypeData:
        return self.table[self.terrain[cell_id]]

    def cell_rainfall(self, cell_id: CellId) -> float:
        return self.hydrology.cell_rainfall[cell_id]

    def cell_drainage(self, cell_id: CellId) -> float:
        return self.hydrology.cell_drainage[cell_id]

    def cell_temperature(self, cell_id: CellId) -> float:
        return self.thermology.cell_temperature[cell_id]

    def cell_ground(self, cell_id: CellId) -> Ground:
        return self.ground[cell_id]

    def cell_vegetation(self, cell_id: CellId) -> Vegetation:
        return self.vegetation[cell_id]

    def cell_biome(self, cell_id: CellId) -> BiomeType:
        return self.biome[cell_id]

    # Edge accessors
    def edge_flux(self, edge_id: EdgeId) -> float:
        return self.hydrology.edge_flux[edge_id]

    def is_river(self, edge_id: EdgeId) -> bool:
        return self.hydrology.is_river[edge_id]

    # Vertex accessors
    def has_descent(self, vertex_id: VertexId) -> bool:
        return self.heightmap.descent_vector(vertex_id) is not None

    def is_river_source(self, vertex_id: VertexId) -> bool:
        return self.hydrology.rivers.is_source(vertex_id)

    def is_river_sink(self, vertex_id: VertexId) -> bool:
        return self.hydrology.rivers.is_sink(vertex_id)

    def river_paths(self, min_length: int = 2) -> List[List[VertexId]]:
        return [path for path in self.hydrology.rivers if len(path) >= min_length]

    def summary(self) -> Dict:
        """Statistics about the world, for reporting."""
        water_cells = sum(1 for t in self.terrain if self.table.is_water(t))
        speeds = [s for s in (wind_speed(w) for w in self.hydrology.wind) if s is not None]
        biomes = Counter(BIOME_NAMES[b] for b in self.biome)

        return {
            "seed": self.seed,
            "reflows": self.reflows,
            "cells": self.mesh.num_cells,
            "vertices": self.mesh.num_vertices,
            "edges": self.mesh.num_edges,
            "water_cells": water_cells,
            "land_cells": self.mesh.num_cells - water_cells,
            "river_edges": sum(1 for r in self.hydrology.is_river if r),
            "rivers": len(self.river_paths()),
            "mean_wind_speed": sum(speeds) / len(speeds) if speeds else 0.0,
            "temperature_range": (self.thermology.cell_temperature.min(), self.thermology.cell_temperature.max()),
            "biomes": dict(biomes.most_common()),
        }


class WorldGenerator:
    """
    Seeded world generation pipeline.

    PRNG draws happen in this order: slopes, both noise octaves, clumps,
    depressions, rainfall noise, wind, temperature noise.
    """

    def __init__(self, conf: Optional[WorldGenConf] = None, table: Optional[TerrainTable] = None):
        self.conf = conf or WorldGenConf()
        self.table = table or TerrainTable.default()

    def generate(self, mesh: PolyMap, seed) -> WorldMap:
        """
        Generate a world on ``mesh``.

        Args:
            mesh: Poly map to generate on
            seed: Generation seed (string, number or sequence)

        Returns:
            The generated world
        """
        logger.info("Generating world", seed=seed, cells=mesh.num_cells)
        prng = AleaPRNG(seed)
        conf = self.conf

        heightmap = self._generate_heightmap(mesh, prng)
        terrain = classify_terrain(mesh, heightmap, self.table, conf.terrain.remove_land_stragglers)

        hydrology_builder = HydrologyBuilder(mesh)
        hydrology_builder.height_rain(heightmap, conf.hydrology.rain.height_coeff)
        hydrology_builder.noise_rain(
            conf.hydrology.rain.perlin.frequency, conf.hydrology.rain.perlin.intensity, prng
        )
        if conf.hydrology.wind.enabled:
            hydrology_builder.wind_rain(heightmap, terrain, self.table, conf.hydrology.wind, prng)
            hydrology_builder.smooth_rain(conf.hydrology.rain_smoothing)
        hydrology = hydrology_builder.build(heightmap, terrain, self.table, conf.hydrology.min_river_flux)

        thermo_conf = conf.thermology
        thermology_builder = ThermologyBuilder(mesh)
        thermology_builder.latitude_band(thermo_conf.band_intensity)
        thermology_builder.noise(thermo_conf.perlin.frequency, thermo_conf.perlin.intensity, prng)
        thermology = thermology_builder.build(
            heightmap,
            terrain,
            self.table,
            water_scale=thermo_conf.water_scale,
            water_cap=thermo_conf.water_cap,
            altitude_comfort=thermo_conf.altitude_comfort,
        )

        world = WorldMap(mesh, seed, conf, self.table, heightmap, terrain, hydrology, thermology)
        logger.info("World generated", seed=seed, prng_calls=prng.call_count, rivers=len(world.river_paths()))
        return world

    def _generate_heightmap(self, mesh: PolyMap, prng: AleaPRNG) -> HeightMap:
        hm_conf = self.conf.heightmap
        builder = HeightMapBuilder(mesh, hm_conf.base)

        for _ in range(hm_conf.slopes.number):
            builder.random_slope(hm_conf.slopes.intensity, prng)

        builder.noise(hm_conf.perlin1.frequency, hm_conf.perlin1.intensity, prng)
        builder.noise(hm_conf.perlin2.frequency, hm_conf.perlin2.intensity, prng)

        for clumps in (hm_conf.clumps, hm_conf.depressions):
            for _ in range(clumps.number):
                builder.clump(clumps.amount, clumps.decay, clumps.end, prng)

        for _ in range(hm_conf.relax_passes):
            builder.relax(hm_conf.relax_strength)

        return builder.build(fill_depressions=hm_conf.planchon_darboux)

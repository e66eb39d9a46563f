"""
Hydrology: rainfall, flow accumulation and river extraction.

This module implements:
- Rainfall from elevation, gradient noise and wind-driven vapor transport
- Flux accumulation over the downhill flow schedule
- Edge flux and river edge flags
- River paths from sources to sinks
"""

import math
from typing import List, Optional, Set, Tuple

import structlog

from ..config.worldgen import HydrologyConf, WindConf
from .alea_prng import AleaPRNG
from .compute import CellData, EdgeData, VertexData
from .fields import Constant, GridGenerator, NoiseField
from .heightmap import HeightMap
from .poly_map import EdgeId, PolyMap, VertexId
from .terrain import TerrainTable, water_vertices

logger = structlog.get_logger()


class Rivers:
    """River paths, each an ordered list of vertices from source to sink."""

    def __init__(self, mesh: PolyMap, paths: List[List[VertexId]]):
        self.paths = paths
        self.sources: Set[VertexId] = {path[0] for path in paths}
        self.sinks: Set[VertexId] = {path[-1] for path in paths}
        self.segments: Set[EdgeId] = set()
        for path in paths:
            for a, b in zip(path, path[1:]):
                edge_id = mesh.edge_between(a, b)
                if edge_id is not None:
                    self.segments.add(edge_id)

    def __len__(self) -> int:
        return len(self.paths)

    def __iter__(self):
        return iter(self.paths)

    def is_source(self, vertex_id: VertexId) -> bool:
        return vertex_id in self.sources

    def is_sink(self, vertex_id: VertexId) -> bool:
        return vertex_id in self.sinks

    def is_segment(self, edge_id: EdgeId) -> bool:
        return edge_id in self.segments


def extract_rivers(mesh: PolyMap, heightmap: HeightMap, is_river: EdgeData) -> Rivers:
    """
    Trace every river from its source down to its sink.

    A source is the higher endpoint of a river edge having no other river
    edge. From each source (ascending id) the descent chain is followed while
    the step taken is itself a river edge.
    """
    river_edges_at = [0] * mesh.num_vertices
    for edge_id, edge in mesh.edges():
        if is_river[edge_id]:
            river_edges_at[edge.start] += 1
            river_edges_at[edge.end] += 1

    sources = set()
    for edge_id, edge in mesh.edges():
        if not is_river[edge_id]:
            continue
        high = heightmap.edge_high_vertex(edge)
        if high is not None and river_edges_at[high] == 1:
            sources.add(high)

    paths = []
    for source in sorted(sources):
        path = [source]
        current = source
        while True:
            descent = heightmap.descent_vector(current)
            if descent is None:
                break
            edge_id = mesh.edge_between(current, descent.towards)
            if edge_id is None or not is_river[edge_id]:
                break
            current = descent.towards
            path.append(current)
        paths.append(path)

    return Rivers(mesh, paths)


class Hydrology:
    """
    Frozen hydrology of a world.

    Attributes:
        rain_noise: Noise component of the rainfall, kept for recomputation
        rainfall: Per-vertex innate rainfall
        wind: Per-vertex accumulated cloud vectors (x, y)
        flux: Per-vertex accumulated rainfall
        edge_flux: Per-edge flux
        is_river: Per-edge river flag
        rivers: Extracted river paths
        cell_rainfall: Per-cell rainfall, corner average
        cell_drainage: Per-cell flux, corner average
    """

    def __init__(
        self,
        mesh: PolyMap,
        rain_noise: VertexData,
        rainfall: VertexData,
        wind: VertexData,
        flux: VertexData,
        edge_flux: EdgeData,
        is_river: EdgeData,
        rivers: Rivers,
    ):
        self.mesh = mesh
        self.rain_noise = rain_noise
        self.rainfall = rainfall
        self.wind = wind
        self.flux = flux
        self.edge_flux = edge_flux
        self.is_river = is_river
        self.rivers = rivers
        self.cell_rainfall = CellData.corner_average(mesh, rainfall)
        self.cell_drainage = CellData.corner_average(mesh, flux)

    def vertex_rainfall(self, vertex_id: VertexId) -> float:
        return self.rainfall[vertex_id]

    def vertex_flux(self, vertex_id: VertexId) -> float:
        return self.flux[vertex_id]

    def recompute(
        self,
        heightmap: HeightMap,
        terrain: CellData,
        table: TerrainTable,
        conf: HydrologyConf,
        prng: AleaPRNG,
    ) -> "Hydrology":
        """
        Rebuild on a new heightmap, reusing the stored rainfall noise.

        The height term is recomputed and, when enabled, wind is simulated
        again with ``prng``.
        """
        builder = HydrologyBuilder(self.mesh)
        builder.add_rain_noise(self.rain_noise)
        builder.height_rain(heightmap, conf.rain.height_coeff)
        if conf.wind.enabled:
            builder.wind_rain(heightmap, terrain, table, conf.wind, prng)
            builder.smooth_rain(conf.rain_smoothing)
        return builder.build(heightmap, terrain, table, conf.min_river_flux)


class HydrologyBuilder(GridGenerator):
    """Accumulates per-vertex rainfall, then derives flux and rivers."""

    def __init__(self, mesh: PolyMap, base: float = 0.0):
        self.mesh = mesh
        self.grid = VertexData.uniform(mesh, float(base))
        self.rain_noise = VertexData.uniform(mesh, 0.0)
        self.wind = VertexData.uniform(mesh, (0.0, 0.0))

    def height_rain(self, heightmap: HeightMap, coeff: float) -> None:
        """Add ``coeff`` rain per unit of elevation."""
        self.add_field_scaled(Constant(1.0), heightmap.vertices, coeff)

    def add_rain_noise(self, rain_noise: VertexData) -> None:
        rain_noise.check_length(self.mesh)
        self.rain_noise.update_each(self.mesh, lambda idx, _, r: r + rain_noise[idx])
        self.grid.update_each(self.mesh, lambda idx, _, r: r + rain_noise[idx])

    def noise_rain(self, frequency: float, intensity: float, prng: AleaPRNG) -> None:
        field = NoiseField.with_prng(frequency, prng)
        noise = VertexData.for_each(self.mesh, lambda _, vertex: field.value(vertex.x, vertex.y) * intensity)
        self.add_rain_noise(noise)

    def wind_rain(
        self,
        heightmap: HeightMap,
        terrain: CellData,
        table: TerrainTable,
        conf: WindConf,
        prng: AleaPRNG,
    ) -> int:
        """
        Blow clouds from every border vertex across the map.

        A cloud picks up vapor over water and rains a fraction of it over
        land, everything above ``conf.peak``. Its heading drifts randomly at
        every step and it stops on an already visited vertex or when no
        neighbor lies within the heading tolerance.

        Returns:
            Total number of cloud steps
        """
        is_water = water_vertices(self.mesh, terrain, table)
        wind_direction = math.radians(prng.randint(0, 359))
        logger.info("Simulating wind", direction_degrees=round(math.degrees(wind_direction)))

        rainfall = self.grid
        wind = self.wind
        steps = 0

        for start, _ in self.mesh.borders():
            vapor = conf.initial_vapor
            direction = wind_direction
            visited = set()
            current = start

            while True:
                visited.add(current)
                steps += 1
                stop = False

                if is_water[current]:
                    vapor += conf.water_pickup
                else:
                    height = heightmap.vertex_height(current)
                    if height >= conf.peak:
                        rain = vapor
                        stop = True
                    else:
                        rate = conf.low_rain_rate if height < conf.high_ground else conf.high_rain_rate
                        rain = vapor * rate
                    vapor -= rain
                    rainfall[current] += rain

                if stop:
                    break

                direction += math.radians(prng.uniform(-conf.drift_degrees, conf.drift_degrees))
                wx, wy = wind[current]
                wind[current] = (wx + vapor * math.cos(direction), wy + vapor * math.sin(direction))

                following = self.mesh.neighbor_in_direction(current, direction, conf.tolerance_degrees)
                if following is None or following in visited:
                    break
                current = following

        logger.debug("Wind simulated", steps=steps)
        return steps

    def smooth_rain(self, passes: int) -> None:
        """Average each vertex with its neighbors, ``passes`` times."""

        def average(rain, neighborhood):
            return (rain + sum(neighborhood)) / (1 + len(neighborhood))

        for _ in range(passes):
            self.grid.update_with_neighbors(self.mesh, average)
        logger.debug("Rainfall smoothed", passes=passes)

    def build(
        self,
        heightmap: HeightMap,
        terrain: CellData,
        table: TerrainTable,
        min_river_flux: float,
    ) -> Hydrology:
        """
        Accumulate rainfall downhill and extract the river network.

        Args:
            heightmap: Heightmap providing the descent graph and its order
            terrain: Per-cell terrain type ids
            table: Terrain table deciding which types are water
            min_river_flux: Edge flux an edge must exceed to be a river

        Returns:
            The frozen hydrology
        """
        logger.info("Building hydrology", min_river_flux=min_river_flux)

        rainfall = self.grid.copy()
        flux = rainfall.copy()
        flux.flow(heightmap.downhill_flow(), lambda _, source: source)

        def edge_flux_of(_, edge):
            total = 0.0
            if heightmap.is_descent(edge.start, edge.end):
                total += flux[edge.start]
            if heightmap.is_descent(edge.end, edge.start):
                total += flux[edge.end]
            return total

        edge_flux = EdgeData.for_each(self.mesh, edge_flux_of)

        is_river = EdgeData.from_cell_data(
            self.mesh,
            terrain,
            lambda idx, _, owners: edge_flux[idx] > min_river_flux
            and not all(table.is_water(t) for t in owners),
        )

        rivers = extract_rivers(self.mesh, heightmap, is_river)

        logger.info(
            "Hydrology built",
            total_rainfall=sum(rainfall),
            river_edges=sum(1 for r in is_river if r),
            rivers=len(rivers),
        )

        return Hydrology(
            self.mesh,
            rain_noise=self.rain_noise.copy(),
            rainfall=rainfall,
            wind=self.wind.copy(),
            flux=flux,
            edge_flux=edge_flux,
            is_river=is_river,
            rivers=rivers,
        )


def wind_speed(wind: Tuple[float, float]) -> Optional[float]:
    """Magnitude of a wind vector, None for a calm vertex."""
    x, y = wind
    if x == 0.0 and y == 0.0:
        return None
    return math.hypot(x, y)

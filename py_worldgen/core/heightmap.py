"""
Heightmap generation on poly map vertices.

This module implements:
- Composition of slope, gradient noise and clump perturbations
- Jacobi relaxation
- Planchon-Darboux depression filling
- Steepest descent selection and the downhill flow schedule
"""

from typing import Iterator, List, NamedTuple, Optional, Tuple

import structlog

from .alea_prng import AleaPRNG
from .compute import CellData, VertexData
from .fields import GridGenerator, NoiseField, Slope
from .poly_map import Edge, PolyMap, VertexId

logger = structlog.get_logger()

DEPRESSION_EPSILON = 0.001


class Descent(NamedTuple):
    """Steepest downhill step out of a vertex."""

    towards: VertexId
    intensity: float  # height difference


def planchon_darboux(
    mesh: PolyMap, heights: VertexData, epsilon: float = DEPRESSION_EPSILON
) -> Tuple[VertexData, int]:
    """
    Fill closed depressions so every vertex drains to the border.

    The working surface starts at the true height on the border and at a
    sentinel above every height elsewhere, then is lowered sweep by sweep
    until it rests on the terrain or ``epsilon`` above a lower neighbor.

    Args:
        mesh: Poly map the heights live on
        heights: Per-vertex heights
        epsilon: Minimum drop between a filled vertex and its outlet

    Returns:
        Filled heights and the number of sweeps performed
    """
    h = heights.values
    sentinel = max(100.0, max(h) + 1.0)
    w = [h[idx] if vertex.is_border else sentinel for idx, vertex in mesh.vertices()]
    vertices = list(mesh.vertices())

    sweeps = 0
    changed = True
    while changed:
        changed = False
        sweeps += 1
        for idx, vertex in vertices:
            if w[idx] == h[idx]:
                continue
            for neighbor in vertex.neighbors:
                if h[idx] >= w[neighbor] + epsilon:
                    w[idx] = h[idx]
                    changed = True
                    break
                outlet = w[neighbor] + epsilon
                if w[idx] > outlet > h[idx]:
                    w[idx] = outlet
                    changed = True

    return VertexData(w), sweeps


class HeightMap:
    """
    Frozen elevation model of a poly map.

    Attributes:
        vertices: Per-vertex elevation in [0, 1]
        cells: Per-cell elevation, the average of the cell's corners
        descent: Per-vertex ``Descent`` or None for local minima
        downhill: Vertex ids by descending elevation, ties by ascending id
    """

    def __init__(
        self,
        mesh: PolyMap,
        vertices: VertexData,
        cells: CellData,
        descent: VertexData,
        downhill: List[VertexId],
    ):
        self._mesh = mesh
        self._vertices = vertices
        self._cells = cells
        self._descent = descent
        self._downhill = downhill

    @property
    def mesh(self) -> PolyMap:
        return self._mesh

    @property
    def vertices(self) -> VertexData:
        return self._vertices.copy()

    @property
    def cells(self) -> CellData:
        return self._cells.copy()

    @property
    def downhill(self) -> List[VertexId]:
        return list(self._downhill)

    def vertex_height(self, vertex_id: VertexId) -> float:
        return self._vertices[vertex_id]

    def cell_height(self, cell_id) -> float:
        return self._cells[cell_id]

    def descent_vector(self, vertex_id: VertexId) -> Optional[Descent]:
        return self._descent[vertex_id]

    def is_descent(self, top: VertexId, bottom: VertexId) -> bool:
        descent = self._descent[top]
        return descent is not None and descent.towards == bottom

    def edge_high_vertex(self, edge: Edge) -> Optional[VertexId]:
        """Higher endpoint of an edge, None when both are level."""
        s = self._vertices[edge.start]
        e = self._vertices[edge.end]
        if s > e:
            return edge.start
        if e > s:
            return edge.end
        return None

    def edge_low_vertex(self, edge: Edge) -> Optional[VertexId]:
        s = self._vertices[edge.start]
        e = self._vertices[edge.end]
        if s < e:
            return edge.start
        if e < s:
            return edge.end
        return None

    def downhill_flow(self) -> Iterator[Tuple[VertexId, VertexId]]:
        """(vertex, descent target) pairs in downhill order."""
        for vertex_id in self._downhill:
            descent = self._descent[vertex_id]
            if descent is not None:
                yield vertex_id, descent.towards

    def downhill_path(self, vertex_id: VertexId) -> Iterator[VertexId]:
        """Descent chain from ``vertex_id``, both ends included."""
        yield vertex_id
        descent = self._descent[vertex_id]
        while descent is not None:
            vertex_id = descent.towards
            yield vertex_id
            descent = self._descent[vertex_id]

    def make_builder(self) -> "HeightMapBuilder":
        return HeightMapBuilder.from_heights(self._mesh, self._vertices)


class HeightMapBuilder(GridGenerator):
    """Mutable per-vertex height grid, frozen into a ``HeightMap`` by ``build``."""

    def __init__(self, mesh: PolyMap, base: float = 0.0):
        self.mesh = mesh
        self.grid = VertexData.uniform(mesh, float(base))

    @classmethod
    def from_heights(cls, mesh: PolyMap, heights: VertexData) -> "HeightMapBuilder":
        heights.check_length(mesh)
        builder = cls(mesh)
        builder.grid = heights.copy()
        return builder

    def random_slope(self, intensity: float, prng: AleaPRNG) -> None:
        slope = Slope.with_prng(self.mesh.width, self.mesh.height, prng)
        logger.debug("Adding slope", m=slope.m, intensity=intensity)
        self.add_field(slope, intensity)

    def noise(self, frequency: float, intensity: float, prng: AleaPRNG) -> None:
        """Add one gradient noise octave ranging over [0, intensity]."""
        field = NoiseField.with_prng(frequency, prng)
        logger.debug("Adding noise octave", field=repr(field), intensity=intensity)
        self.add_field(field, intensity)

    def clump(self, amount: float, decay: float, end: float, prng: AleaPRNG) -> int:
        """
        Raise (or with a negative amount, sink) terrain around a random vertex.

        The first ring receives ``amount`` and every following ring the
        previous contribution times ``decay``, until a contribution at or
        below ``|end|`` has been applied.

        Returns:
            Number of rings touched
        """
        start = VertexId(prng.randint(0, self.mesh.num_vertices - 1))

        def step(accum):
            if abs(accum) > abs(end):
                return accum * decay
            return None

        return self.grid.spread(self.mesh, start, amount, step, lambda _, h, x: h + x)

    def planchon_darboux(self, epsilon: float = DEPRESSION_EPSILON) -> int:
        self.grid, sweeps = planchon_darboux(self.mesh, self.grid, epsilon)
        return sweeps

    def build(self, fill_depressions: bool = True) -> HeightMap:
        """
        Freeze the grid into a ``HeightMap``.

        Args:
            fill_depressions: Run Planchon-Darboux before normalizing

        Returns:
            The finished heightmap
        """
        logger.info("Building heightmap", vertices=self.mesh.num_vertices, fill_depressions=fill_depressions)

        if fill_depressions:
            sweeps = self.planchon_darboux()
            logger.info("Depressions filled", sweeps=sweeps)

        self.normalize()
        heights = self.grid.copy()
        h = heights.values

        def steepest(idx, vertex):
            best = None
            lowest = h[idx]
            for neighbor in vertex.neighbors:
                if h[neighbor] < lowest:
                    lowest = h[neighbor]
                    best = neighbor
            if best is None:
                return None
            return Descent(towards=best, intensity=h[idx] - lowest)

        descent = VertexData.for_each(self.mesh, steepest)
        downhill = heights.descending_order()
        cells = CellData.corner_average(self.mesh, heights)

        sinks = sum(1 for d in descent if d is None)
        logger.info("Heightmap built", sinks=sinks, min_cell=cells.min(), max_cell=cells.max())

        return HeightMap(self.mesh, heights, cells, descent, downhill)

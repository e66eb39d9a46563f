"""Planar polygon mesh ("poly map") for world generation.

The map rectangle is split into convex Voronoi cells built with scipy. Shared
polygon corners and sides are deduplicated into Vertex and Edge records so
that every field computed on top of the mesh can walk a proper planar graph.
"""

import math
import struct
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NewType, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy.spatial import QhullError, Voronoi
from scipy.stats import qmc
from shapely import STRtree
from shapely.geometry import Point, Polygon

from .alea_prng import AleaPRNG

logger = structlog.get_logger()

CellId = NewType("CellId", int)
VertexId = NewType("VertexId", int)
EdgeId = NewType("EdgeId", int)

# Relative distance under which a Voronoi vertex is pulled onto the map outline
SNAP_TOLERANCE = 1e-9


class MeshConstructionError(RuntimeError):
    """Raised when a poly map cannot be built from its input."""


def _location_key(x: float, y: float) -> bytes:
    """Exact IEEE-754 bit pattern of a coordinate pair."""
    return struct.pack("<2d", x, y)


def _angle_difference(a: float, b: float) -> float:
    """Signed difference between two angles, in (-pi, pi]."""
    return (a - b + math.pi) % (2.0 * math.pi) - math.pi


@dataclass
class Cell:
    """A convex polygon of the map."""

    site: Tuple[float, float]
    polygon: Polygon
    edges: List[EdgeId]
    vertices: List[VertexId]  # winding order
    neighbors: List[CellId] = field(default_factory=list)
    is_border: bool = False

    def center(self) -> Tuple[float, float]:
        centroid = self.polygon.centroid
        return (centroid.x, centroid.y)


@dataclass
class Vertex:
    """A polygon corner shared by up to a handful of cells."""

    x: float
    y: float
    edges: List[EdgeId] = field(default_factory=list)
    neighbors: List[VertexId] = field(default_factory=list)
    cells: List[CellId] = field(default_factory=list)
    is_border: bool = False

    @property
    def coords(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class Edge:
    """A polygon side; ``start < end`` so a side is stored only once."""

    start: VertexId
    end: VertexId
    cells: List[CellId] = field(default_factory=list)

    def other(self, vertex: VertexId) -> VertexId:
        return self.end if vertex == self.start else self.start

    def touches(self, vertex: VertexId) -> bool:
        return vertex == self.start or vertex == self.end


def sample_sites(width: float, height: float, min_spacing: float, prng: AleaPRNG) -> np.ndarray:
    """
    Poisson-disk sample cell sites inside the map rectangle.

    scipy samples the unit square, so the square of side ``max(width, height)``
    is sampled and cropped; the uniform rescale preserves the minimum spacing.

    Args:
        width: Map width
        height: Map height
        min_spacing: Minimum distance between two sites
        prng: Seeded generator, one draw seeds the sampler

    Returns:
        Array of [x, y] site coordinates strictly inside the map
    """
    side = float(max(width, height))
    engine = qmc.PoissonDisk(
        d=2, radius=min_spacing / side, seed=np.random.default_rng(prng.seed32())
    )
    points = engine.fill_space() * side

    inside = (
        (points[:, 0] > 0.0)
        & (points[:, 0] < width)
        & (points[:, 1] > 0.0)
        & (points[:, 1] < height)
    )
    return points[inside]


def _snap_to_rectangle(points: np.ndarray, width: float, height: float) -> np.ndarray:
    """Pull coordinates lying within tolerance of the outline onto it."""
    tolerance = SNAP_TOLERANCE * max(width, height)
    snapped = np.array(points, dtype=float, copy=True)
    xs = snapped[:, 0]
    ys = snapped[:, 1]

    xs[np.abs(xs) <= tolerance] = 0.0
    xs[np.abs(xs - width) <= tolerance] = width
    ys[np.abs(ys) <= tolerance] = 0.0
    ys[np.abs(ys - height) <= tolerance] = height

    np.clip(xs, 0.0, width, out=xs)
    np.clip(ys, 0.0, height, out=ys)
    # Normalizes -0.0 so it keys like 0.0
    snapped += 0.0
    return snapped


def clipped_voronoi_polygons(
    sites: np.ndarray, width: float, height: float
) -> List[List[Tuple[float, float]]]:
    """
    Voronoi cells of ``sites`` clipped to the map rectangle.

    Every site is mirrored across the four sides of the rectangle: the
    bisectors between a site and its mirrors are the sides themselves, so the
    regions of the original sites come out bounded and already clipped.

    Args:
        sites: Array of [x, y] coordinates strictly inside the map
        width: Map width
        height: Map height

    Returns:
        One counter-clockwise ring of corner coordinates per site
    """
    xs = sites[:, 0]
    ys = sites[:, 1]
    all_points = np.vstack(
        [
            sites,
            np.column_stack([-xs, ys]),
            np.column_stack([2.0 * width - xs, ys]),
            np.column_stack([xs, -ys]),
            np.column_stack([xs, 2.0 * height - ys]),
        ]
    )

    try:
        vor = Voronoi(all_points)
    except QhullError as e:
        raise MeshConstructionError(f"Voronoi construction failed: {e}") from e

    logger.debug("Voronoi diagram calculated", vertices=len(vor.vertices), ridges=len(vor.ridge_points))

    vertices = _snap_to_rectangle(vor.vertices, width, height)

    polygons = []
    for site_idx, (sx, sy) in enumerate(sites):
        region = vor.regions[vor.point_region[site_idx]]
        if not region or -1 in region:
            raise MeshConstructionError(f"Unbounded Voronoi region for site {site_idx}")

        corners = vertices[region]
        angles = np.arctan2(corners[:, 1] - sy, corners[:, 0] - sx)
        corners = corners[np.argsort(angles, kind="stable")]
        polygons.append([(float(x), float(y)) for x, y in corners])

    return polygons


def _open_ring(ring: Sequence[Sequence[float]]) -> List[Tuple[float, float]]:
    """Drop the closing point and consecutive repeats of a coordinate ring."""
    points: List[Tuple[float, float]] = []
    for x, y in ring:
        point = (float(x), float(y))
        if points and _location_key(*points[-1]) == _location_key(*point):
            continue
        points.append(point)
    while len(points) > 1 and _location_key(*points[0]) == _location_key(*points[-1]):
        points.pop()
    return points


class PolyMap:
    """
    Immutable planar subdivision of a ``width`` x ``height`` rectangle.

    Cells, vertices and edges are stored in dense lists and addressed by
    their ``CellId``, ``VertexId`` and ``EdgeId`` indices.
    """

    def __init__(
        self,
        width: float,
        height: float,
        cells: List[Cell],
        vertices: List[Vertex],
        edges: List[Edge],
        vertex_lookup: Dict[bytes, VertexId],
    ):
        self.width = width
        self.height = height
        self._cells = cells
        self._vertices = vertices
        self._edges = edges
        self._vertex_lookup = vertex_lookup
        self._cell_tree = STRtree([cell.polygon for cell in cells])
        self.vertex_coordinates = np.array(
            [vertex.coords for vertex in vertices], dtype=float
        ).reshape(-1, 2)

    @classmethod
    def build(cls, width: float, height: float, min_spacing: float, seed=None) -> "PolyMap":
        """
        Build a poly map from Poisson-disk sampled sites.

        Args:
            width: Map width
            height: Map height
            min_spacing: Minimum distance between cell sites
            seed: Seed for the site sampling

        Returns:
            The constructed poly map

        Raises:
            MeshConstructionError: On degenerate input or Voronoi failure
        """
        logger.info("Building poly map", width=width, height=height, min_spacing=min_spacing, seed=seed)

        if width <= 0 or height <= 0 or min_spacing <= 0:
            logger.error("Invalid poly map dimensions", width=width, height=height, min_spacing=min_spacing)
            raise MeshConstructionError(
                f"Invalid poly map dimensions {width}x{height} with spacing {min_spacing}"
            )

        prng = AleaPRNG(seed if seed is not None else "default")
        sites = sample_sites(width, height, min_spacing, prng)
        if len(sites) == 0:
            logger.error("No sites sampled", width=width, height=height, min_spacing=min_spacing)
            raise MeshConstructionError("Poisson sampling produced no sites")

        logger.info("Sites sampled", sites=len(sites))

        try:
            polygons = clipped_voronoi_polygons(sites, width, height)
        except MeshConstructionError as e:
            logger.error("Voronoi construction failed", error=str(e))
            raise

        poly_map = cls.from_polygons(width, height, polygons, sites=sites)
        logger.info(
            "Poly map built",
            cells=poly_map.num_cells,
            vertices=poly_map.num_vertices,
            edges=poly_map.num_edges,
        )
        return poly_map

    @classmethod
    def from_polygons(
        cls,
        width: float,
        height: float,
        polygons: Sequence[Sequence[Sequence[float]]],
        sites: Optional[np.ndarray] = None,
    ) -> "PolyMap":
        """
        Build a poly map from explicit cell rings.

        Corners and sides are deduplicated through lookup tables keyed on the
        exact bit pattern of their coordinates, so rings sharing a geometric
        corner resolve to the same vertex.

        Args:
            width: Map width, border vertices are those on or outside it
            height: Map height
            polygons: One ring of [x, y] corners per cell
            sites: Optional generating point per cell, defaults to centroids

        Returns:
            The constructed poly map
        """
        cells: List[Cell] = []
        vertices: List[Vertex] = []
        edges: List[Edge] = []
        vertex_lookup: Dict[bytes, VertexId] = {}
        edge_lookup: Dict[Tuple[bytes, bytes], EdgeId] = {}

        def add_vertex(point: Tuple[float, float], edge_id: EdgeId) -> VertexId:
            key = _location_key(*point)
            vertex_id = vertex_lookup.get(key)
            if vertex_id is None:
                vertex_id = VertexId(len(vertices))
                vertex_lookup[key] = vertex_id
                vertices.append(Vertex(point[0], point[1]))
            vertices[vertex_id].edges.append(edge_id)
            return vertex_id

        for cell_idx, ring in enumerate(polygons):
            points = _open_ring(ring)
            if len(points) < 3:
                logger.error("Degenerate cell polygon", cell=cell_idx, corners=len(points))
                raise MeshConstructionError(f"Cell {cell_idx} has fewer than 3 corners")

            cell_id = CellId(cell_idx)
            cell_edges = []
            for i, point in enumerate(points):
                following = points[(i + 1) % len(points)]
                low, high = (point, following) if point <= following else (following, point)
                key = (_location_key(*low), _location_key(*high))

                edge_id = edge_lookup.get(key)
                if edge_id is None:
                    edge_id = EdgeId(len(edges))
                    edge_lookup[key] = edge_id
                    v1 = add_vertex(low, edge_id)
                    v2 = add_vertex(high, edge_id)
                    edges.append(Edge(VertexId(min(v1, v2)), VertexId(max(v1, v2))))

                edge = edges[edge_id]
                if len(edge.cells) >= 2:
                    logger.error("Edge shared by more than two cells", edge=edge_id, cell=cell_idx)
                    raise MeshConstructionError(f"Edge {edge_id} shared by more than two cells")
                edge.cells.append(cell_id)
                cell_edges.append(edge_id)

            polygon = Polygon(points)
            if sites is not None:
                site = (float(sites[cell_idx][0]), float(sites[cell_idx][1]))
            else:
                site = (polygon.centroid.x, polygon.centroid.y)

            cells.append(
                Cell(
                    site=site,
                    polygon=polygon,
                    edges=cell_edges,
                    vertices=[vertex_lookup[_location_key(*p)] for p in points],
                )
            )

        for edge in edges:
            if len(edge.cells) == 2:
                a, b = edge.cells
                cells[a].neighbors.append(b)
                cells[b].neighbors.append(a)

        for vertex_idx, vertex in enumerate(vertices):
            vertex.neighbors = [edges[e].other(VertexId(vertex_idx)) for e in vertex.edges]
            vertex.cells = sorted({c for e in vertex.edges for c in edges[e].cells})
            vertex.is_border = (
                vertex.x <= 0.0 or vertex.y <= 0.0 or vertex.x >= width or vertex.y >= height
            )

        for cell in cells:
            cell.neighbors = sorted(set(cell.neighbors))
            cell.is_border = any(vertices[v].is_border for v in cell.vertices)

        return cls(width, height, cells, vertices, edges, vertex_lookup)

    @property
    def num_cells(self) -> int:
        return len(self._cells)

    @property
    def num_vertices(self) -> int:
        return len(self._vertices)

    @property
    def num_edges(self) -> int:
        return len(self._edges)

    def cell(self, cell_id: CellId) -> Cell:
        if cell_id < 0:
            raise IndexError(f"Negative cell id {cell_id}")
        return self._cells[cell_id]

    def vertex(self, vertex_id: VertexId) -> Vertex:
        if vertex_id < 0:
            raise IndexError(f"Negative vertex id {vertex_id}")
        return self._vertices[vertex_id]

    def edge(self, edge_id: EdgeId) -> Edge:
        if edge_id < 0:
            raise IndexError(f"Negative edge id {edge_id}")
        return self._edges[edge_id]

    def cells(self) -> Iterator[Tuple[CellId, Cell]]:
        return ((CellId(idx), cell) for idx, cell in enumerate(self._cells))

    def vertices(self) -> Iterator[Tuple[VertexId, Vertex]]:
        return ((VertexId(idx), vertex) for idx, vertex in enumerate(self._vertices))

    def edges(self) -> Iterator[Tuple[EdgeId, Edge]]:
        return ((EdgeId(idx), edge) for idx, edge in enumerate(self._edges))

    def borders(self) -> Iterator[Tuple[VertexId, Vertex]]:
        return ((idx, vertex) for idx, vertex in self.vertices() if vertex.is_border)

    def vertex_at(self, x: float, y: float) -> Optional[VertexId]:
        """Vertex sitting exactly at (x, y), if any."""
        return self._vertex_lookup.get(_location_key(float(x), float(y)))

    def edge_between(self, a: VertexId, b: VertexId) -> Optional[EdgeId]:
        for edge_id in self.vertex(a).edges:
            if self._edges[edge_id].other(a) == b:
                return edge_id
        return None

    def neighbor_in_direction(
        self, vertex_id: VertexId, angle: float, tolerance_degrees: float
    ) -> Optional[VertexId]:
        """
        Neighbor of a vertex best aligned with a heading.

        Args:
            vertex_id: Starting vertex
            angle: Heading in radians
            tolerance_degrees: Largest accepted deviation from the heading

        Returns:
            The best aligned neighbor, or None if none is within tolerance
        """
        vertex = self.vertex(vertex_id)
        tolerance = math.radians(tolerance_degrees)

        best = None
        best_diff = tolerance
        for neighbor_id in vertex.neighbors:
            neighbor = self._vertices[neighbor_id]
            dx = neighbor.x - vertex.x
            dy = neighbor.y - vertex.y
            if dx == 0.0 and dy == 0.0:
                continue
            diff = abs(_angle_difference(math.atan2(dy, dx), angle))
            if diff <= tolerance and (best is None or diff < best_diff):
                best = neighbor_id
                best_diff = diff
        return best

    def point_to_cell(self, x: float, y: float) -> Optional[CellId]:
        """
        Cell containing the point (x, y).

        Points on a shared side resolve to the lowest cell id.

        Returns:
            The containing cell, or None outside the map
        """
        if not (0.0 <= x <= self.width and 0.0 <= y <= self.height):
            return None

        hits = self._cell_tree.query(Point(x, y), predicate="intersects")
        if len(hits) == 0:
            return None
        return CellId(int(min(hits)))

"""
Terrain classification by height thresholds.
"""

from bisect import bisect_right
from typing import List, NamedTuple, NewType, Optional, Sequence, Tuple

import structlog

from .compute import CellData, VertexData
from .poly_map import PolyMap

logger = structlog.get_logger()

TerrainTypeId = NewType("TerrainTypeId", int)


class TerrainTypeData(NamedTuple):
    """One terrain category: heights below ``height_level`` fall into it."""

    name: str
    height_level: float
    color: Tuple[int, int, int]
    is_water: bool


DEFAULT_TERRAIN_TYPES = (
    TerrainTypeData("deep water", 0.3, (24, 56, 128), True),
    TerrainTypeData("water", 0.5, (52, 104, 186), True),
    TerrainTypeData("land", 0.7, (92, 156, 72), False),
    TerrainTypeData("hill", 0.85, (140, 128, 84), False),
    TerrainTypeData("mountain", 1.0001, (120, 96, 80), False),
)


class TerrainTable:
    """
    Ordered terrain categories.

    The lookup contract is "smallest index i such that height < level[i]";
    levels must therefore be non-decreasing.
    """

    def __init__(self, types: Sequence[TerrainTypeData]):
        if not types:
            raise ValueError("Terrain table needs at least one category")
        levels = [t.height_level for t in types]
        if any(b < a for a, b in zip(levels, levels[1:])):
            raise ValueError(f"Terrain levels must be non-decreasing: {levels}")
        self._types = list(types)
        self._levels = levels

    @classmethod
    def default(cls) -> "TerrainTable":
        return cls(DEFAULT_TERRAIN_TYPES)

    @classmethod
    def from_levels(cls, levels: Sequence[float], water_count: int = 0) -> "TerrainTable":
        """Table with generated names, the first ``water_count`` levels being water."""
        return cls(
            [
                TerrainTypeData(f"level {i}", level, (0, 0, 0), i < water_count)
                for i, level in enumerate(levels)
            ]
        )

    def __len__(self) -> int:
        return len(self._types)

    def __getitem__(self, terrain_id: TerrainTypeId) -> TerrainTypeData:
        if terrain_id < 0:
            raise IndexError(f"Negative terrain id {terrain_id}")
        return self._types[terrain_id]

    def __iter__(self):
        return iter(self._types)

    @property
    def levels(self) -> List[float]:
        return list(self._levels)

    def idx_from_level(self, height: float) -> TerrainTypeId:
        idx = bisect_right(self._levels, height)
        if idx == len(self._levels):
            raise ValueError(f"Height {height} above the highest terrain level {self._levels[-1]}")
        return TerrainTypeId(idx)

    def from_level(self, height: float) -> TerrainTypeData:
        return self._types[self.idx_from_level(height)]

    def from_level_range(self, height: float) -> Tuple[TerrainTypeId, TerrainTypeId, float]:
        """
        Bracketing categories of a height for color interpolation.

        Returns:
            (low, high, t) where ``t`` is the position of ``height`` between
            the two levels; 1.0 for a zero-width range or when the pair
            crosses the coastline
        """
        high = self.idx_from_level(height)
        low = TerrainTypeId(max(high - 1, 0))

        low_level = self._levels[low]
        high_level = self._levels[high]
        span = high_level - low_level
        t = 1.0 if span == 0 else (height - low_level) / span

        if self._types[low].is_water != self._types[high].is_water:
            t = 1.0

        return low, high, t

    def is_water(self, terrain_id: TerrainTypeId) -> bool:
        return self[terrain_id].is_water

    def highest_water(self) -> Optional[TerrainTypeId]:
        water = [i for i, t in enumerate(self._types) if t.is_water]
        return TerrainTypeId(water[-1]) if water else None

    def classify(self, cell_heights: CellData) -> CellData:
        return cell_heights.transform(lambda _, h: self.idx_from_level(h))


def remove_land_stragglers(mesh: PolyMap, terrain: CellData, table: TerrainTable) -> int:
    """
    Turn land cells surrounded only by water into the highest water category.

    Returns:
        Number of cells changed
    """
    water_type = table.highest_water()
    if water_type is None:
        return 0

    found = terrain.find_with_all_neighbors(mesh, lambda _, t: table.is_water(t))
    changed = 0
    for cell_id in found:
        if not table.is_water(terrain[cell_id]) and mesh.cell(cell_id).neighbors:
            terrain[cell_id] = water_type
            changed += 1

    logger.debug("Land stragglers removed", cells=changed)
    return changed


def water_vertices(mesh: PolyMap, terrain: CellData, table: TerrainTable) -> VertexData:
    """Per-vertex flag: every cell owning the vertex is water."""
    return VertexData.from_cell_data(
        mesh, terrain, lambda _, __, owners: all(table.is_water(t) for t in owners)
    )

"""
Core world generation functionality.
"""

from .alea_prng import AleaPRNG
from .poly_map import CellId, EdgeId, MeshConstructionError, PolyMap, VertexId
from .compute import CellData, EdgeData, VertexData
from .heightmap import Descent, HeightMap, HeightMapBuilder
from .terrain import TerrainTable, TerrainTypeData, TerrainTypeId
from .hydrology import Hydrology, HydrologyBuilder, Rivers
from .thermology import Thermology, ThermologyBuilder
from .biomes import BIOME_NAMES, BiomeType, Ground, Vegetation, whittaker
from .world_map import WorldGenerator, WorldMap
from .view import ViewMode, WorldMapView

__all__ = ['AleaPRNG', 'CellId', 'EdgeId', 'MeshConstructionError', 'PolyMap', 'VertexId',
           'CellData', 'EdgeData', 'VertexData', 'Descent', 'HeightMap', 'HeightMapBuilder',
           'TerrainTable', 'TerrainTypeData', 'TerrainTypeId', 'Hydrology', 'HydrologyBuilder',
           'Rivers', 'Thermology', 'ThermologyBuilder', 'BIOME_NAMES', 'BiomeType', 'Ground',
           'Vegetation', 'whittaker', 'WorldGenerator', 'WorldMap', 'ViewMode', 'WorldMapView']

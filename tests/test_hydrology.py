"""Tests for rainfall, flux accumulation and river extraction."""

import pytest

from py_worldgen.config.worldgen import HydrologyConf, WindConf
from py_worldgen.core.alea_prng import AleaPRNG
from py_worldgen.core.compute import CellData, VertexData
from py_worldgen.core.heightmap import HeightMapBuilder
from py_worldgen.core.hydrology import HydrologyBuilder
from py_worldgen.core.terrain import TerrainTable

LAND = 2
WATER = 1

# Two unit squares; corner heights chosen so one channel runs B -> E -> F
CHANNEL_HEIGHTS = {
    "A": ((0.0, 0.0), 0.9),
    "B": ((1.0, 0.0), 0.8),
    "C": ((2.0, 0.0), 0.7),
    "D": ((0.0, 1.0), 1.0),
    "E": ((1.0, 1.0), 0.6),
    "F": ((2.0, 1.0), 0.1),
}


@pytest.fixture
def table():
    return TerrainTable.default()


@pytest.fixture
def channel(two_squares):
    """(mesh, heightmap, vertex ids by letter)."""
    ids = {name: two_squares.vertex_at(*coords) for name, (coords, _) in CHANNEL_HEIGHTS.items()}
    heights = VertexData.uniform(two_squares, 0.0)
    for name, (_, h) in CHANNEL_HEIGHTS.items():
        heights[ids[name]] = h
    heightmap = HeightMapBuilder.from_heights(two_squares, heights).build(fill_depressions=False)
    return two_squares, heightmap, ids


def edge_id(mesh, ids, a, b):
    return mesh.edge_between(ids[a], ids[b])


class TestFluxAccumulation:
    """Test flow accumulation on the hand-built channel."""

    def test_descents(self, channel):
        """Test that each channel vertex descends to its expected neighbor."""
        _, heightmap, ids = channel
        expected = {"D": "E", "E": "F", "A": "B", "B": "E", "C": "F"}
        for source, target in expected.items():
            assert heightmap.descent_vector(ids[source]).towards == ids[target]
        assert heightmap.descent_vector(ids["F"]) is None

    def test_vertex_flux(self, channel, table):
        """Test that vertex flux sums upstream rainfall."""
        mesh, heightmap, ids = channel
        hydrology = HydrologyBuilder(mesh, 1.0).build(heightmap, CellData([LAND, LAND]), table, 1.5)
        expected = {"D": 1.0, "A": 1.0, "B": 2.0, "C": 1.0, "E": 4.0, "F": 6.0}
        for name, flux in expected.items():
            assert hydrology.vertex_flux(ids[name]) == flux

    def test_flux_is_conserved(self, channel, table):
        """Test that all rainfall reaches the sinks."""
        mesh, heightmap, ids = channel
        hydrology = HydrologyBuilder(mesh, 1.0).build(heightmap, CellData([LAND, LAND]), table, 1.5)
        total_rain = sum(hydrology.rainfall)
        sinks = [v for v, _ in mesh.vertices() if heightmap.descent_vector(v) is None]
        assert sinks == [ids["F"]]
        assert sum(hydrology.vertex_flux(v) for v in sinks) == pytest.approx(total_rain)

    def test_edge_flux(self, channel, table):
        """Test that edge flux carries the upstream vertex flux."""
        mesh, heightmap, ids = channel
        hydrology = HydrologyBuilder(mesh, 1.0).build(heightmap, CellData([LAND, LAND]), table, 1.5)
        expected = {"DE": 1.0, "EF": 4.0, "BE": 2.0, "AB": 1.0, "CF": 1.0, "BC": 0.0, "AD": 0.0}
        for pair, flux in expected.items():
            assert hydrology.edge_flux[edge_id(mesh, ids, pair[0], pair[1])] == flux

    def test_cell_drainage_is_corner_average(self, channel, table):
        """Test that cell drainage and rainfall average their corners."""
        mesh, heightmap, ids = channel
        hydrology = HydrologyBuilder(mesh, 1.0).build(heightmap, CellData([LAND, LAND]), table, 1.5)
        assert hydrology.cell_drainage[1] == pytest.approx((2.0 + 1.0 + 6.0 + 4.0) / 4)
        assert hydrology.cell_rainfall[0] == pytest.approx(1.0)


class TestRivers:
    """Test river flags and path extraction."""

    def test_single_river_path(self, channel, table):
        """Test that high-flux edges form one river path."""
        mesh, heightmap, ids = channel
        hydrology = HydrologyBuilder(mesh, 1.0).build(heightmap, CellData([LAND, LAND]), table, 1.5)

        river_edges = {e for e, _ in mesh.edges() if hydrology.is_river[e]}
        assert river_edges == {edge_id(mesh, ids, "B", "E"), edge_id(mesh, ids, "E", "F")}

        rivers = hydrology.rivers
        assert rivers.paths == [[ids["B"], ids["E"], ids["F"]]]
        assert rivers.is_source(ids["B"])
        assert rivers.is_sink(ids["F"])
        assert not rivers.is_source(ids["E"])
        assert rivers.is_segment(edge_id(mesh, ids, "E", "F"))
        assert not rivers.is_segment(edge_id(mesh, ids, "C", "F"))

    def test_water_edges_are_not_rivers(self, channel, table):
        """Test that a river stops where it meets water."""
        mesh, heightmap, ids = channel
        hydrology = HydrologyBuilder(mesh, 1.0).build(heightmap, CellData([LAND, WATER]), table, 1.5)

        assert not hydrology.is_river[edge_id(mesh, ids, "E", "F")]
        assert hydrology.is_river[edge_id(mesh, ids, "B", "E")]
        assert hydrology.rivers.paths == [[ids["B"], ids["E"]]]

    def test_high_cutoff_means_no_rivers(self, channel, table):
        """Test that a high cutoff yields no rivers."""
        mesh, heightmap, _ = channel
        hydrology = HydrologyBuilder(mesh, 1.0).build(heightmap, CellData([LAND, LAND]), table, 100.0)
        assert not any(hydrology.is_river)
        assert len(hydrology.rivers) == 0


class TestRainfall:
    """Test rainfall terms."""

    def test_height_rain(self, channel):
        """Test that height rain scales with altitude."""
        mesh, heightmap, ids = channel
        builder = HydrologyBuilder(mesh)
        builder.height_rain(heightmap, 2.0)
        assert builder.grid[ids["D"]] == pytest.approx(2.0)
        assert builder.grid[ids["F"]] == pytest.approx(0.0)

    def test_noise_rain_is_stored(self, small_mesh):
        """Test that noise rain is kept for recomputation."""
        builder = HydrologyBuilder(small_mesh)
        builder.noise_rain(0.05, 0.5, AleaPRNG("rain"))
        assert builder.rain_noise == builder.grid
        assert builder.grid.max() <= 0.5
        assert builder.grid.min() >= 0.0

    def test_wind_over_water_only_picks_up(self, small_mesh, table):
        """Test that wind over water never drops rain."""
        builder = HydrologyBuilder(small_mesh)
        heightmap = HeightMapBuilder(small_mesh).build()
        terrain = CellData.uniform(small_mesh, WATER)
        steps = builder.wind_rain(heightmap, terrain, table, WindConf(), AleaPRNG("wind"))
        assert steps > 0
        assert builder.grid.max() == 0.0
        assert any(w != (0.0, 0.0) for w in builder.wind)

    def test_wind_rains_over_land(self, small_mesh, table):
        """Test that wind drops rain over land."""
        builder = HydrologyBuilder(small_mesh)
        heightmap = HeightMapBuilder(small_mesh).build()
        terrain = CellData.uniform(small_mesh, LAND)
        builder.wind_rain(heightmap, terrain, table, WindConf(), AleaPRNG("wind"))
        assert builder.grid.min() >= 0.0
        assert builder.grid.max() > 0.0

    def test_wind_reproducible(self, small_mesh, table):
        """Test that wind rain is reproducible."""
        heightmap = HeightMapBuilder(small_mesh).build()
        terrain = CellData.uniform(small_mesh, LAND)

        def run():
            builder = HydrologyBuilder(small_mesh)
            builder.wind_rain(heightmap, terrain, table, WindConf(), AleaPRNG("wind"))
            return builder.grid

        assert run() == run()

    def test_smoothing_widens_wind_tracks(self, small_mesh, table):
        """Test that after smoothing every wet vertex has a wet neighbor."""
        builder = HydrologyBuilder(small_mesh)
        heightmap = HeightMapBuilder(small_mesh).build()
        terrain = CellData.uniform(small_mesh, LAND)
        builder.wind_rain(heightmap, terrain, table, WindConf(), AleaPRNG("wind"))
        builder.smooth_rain(HydrologyConf().rain_smoothing)

        wet = [v for v, _ in small_mesh.vertices() if builder.grid[v] > 0.0]
        assert wet
        for vertex_id in wet:
            neighbors = small_mesh.vertex(vertex_id).neighbors
            assert any(builder.grid[n] > 0.0 for n in neighbors)

    def test_smooth_rain_averages_neighborhood(self, grid3):
        """Test that one pass replaces a value by the mean of itself and its neighbors."""
        builder = HydrologyBuilder(grid3)
        center = grid3.vertex_at(1.0, 1.0)
        builder.grid[center] = 5.0
        builder.smooth_rain(1)
        assert builder.grid[center] == pytest.approx(1.0)
        assert builder.grid[grid3.vertex_at(2.0, 1.0)] == pytest.approx(1.0)
        assert builder.grid[grid3.vertex_at(0.0, 0.0)] == 0.0

    def test_zero_smoothing_passes(self, grid3):
        """Test that zero passes leave the rainfall untouched."""
        builder = HydrologyBuilder(grid3, 1.0)
        builder.grid[0] = 3.0
        before = builder.grid.copy()
        builder.smooth_rain(0)
        assert builder.grid == before


class TestRecompute:
    """Test rebuilding on a new heightmap."""

    def test_recompute_keeps_noise(self, small_mesh, table):
        """Test that recomputing keeps the stored noise rain."""
        prng = AleaPRNG("recompute")
        heightmap = HeightMapBuilder(small_mesh).build()
        terrain = CellData.uniform(small_mesh, LAND)
        conf = HydrologyConf(min_river_flux=5.0, wind=WindConf(enabled=False))

        builder = HydrologyBuilder(small_mesh)
        builder.height_rain(heightmap, conf.rain.height_coeff)
        builder.noise_rain(conf.rain.perlin.frequency, conf.rain.perlin.intensity, prng)
        hydrology = builder.build(heightmap, terrain, table, conf.min_river_flux)

        recomputed = hydrology.recompute(heightmap, terrain, table, conf, AleaPRNG("other"))
        assert recomputed.rain_noise == hydrology.rain_noise
        for v, _ in small_mesh.vertices():
            assert recomputed.vertex_rainfall(v) == pytest.approx(hydrology.vertex_rainfall(v))

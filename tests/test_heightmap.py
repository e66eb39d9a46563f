"""Tests for heightmap generation and depression filling."""

import pytest

from py_worldgen.core.alea_prng import AleaPRNG
from py_worldgen.core.compute import VertexData
from py_worldgen.core.fields import NoiseField
from py_worldgen.core.heightmap import HeightMapBuilder, planchon_darboux


def pit_heights(mesh):
    """Border at 0.5, interior at 1.0 with a pit at the center."""

    def height(_, vertex):
        if vertex.is_border:
            return 0.5
        if vertex.coords == (2.0, 2.0):
            return 0.0
        return 1.0

    return VertexData.for_each(mesh, height)


@pytest.fixture
def grid4(grid_factory):
    return grid_factory(4, 4)


@pytest.fixture
def noisy_heightmap(small_mesh):
    prng = AleaPRNG("heights")
    builder = HeightMapBuilder(small_mesh)
    builder.random_slope(0.001, prng)
    builder.noise(0.02, 1.0, prng)
    builder.noise(0.1, 0.3, prng)
    builder.clump(0.5, 0.7, 0.05, prng)
    builder.clump(-0.5, 0.7, 0.05, prng)
    return builder.build()


class TestPlanchonDarboux:
    """Test depression filling."""

    def test_pit_is_filled(self, grid4):
        """Test that a pit is raised while borders stay fixed."""
        heights = pit_heights(grid4)
        filled, sweeps = planchon_darboux(grid4, heights)
        assert sweeps >= 1

        center = grid4.vertex_at(2.0, 2.0)
        assert filled[center] > heights[center]
        for idx, vertex in grid4.vertices():
            assert filled[idx] >= heights[idx]
            if vertex.is_border:
                assert filled[idx] == heights[idx]

    def test_every_interior_vertex_drains(self, grid4):
        """Test that every interior vertex has a lower neighbor after filling."""
        filled, _ = planchon_darboux(grid4, pit_heights(grid4))
        for idx, vertex in grid4.vertices():
            if vertex.is_border:
                continue
            lowest = min(filled[n] for n in vertex.neighbors)
            assert filled[idx] >= lowest + 0.001 - 1e-12

    def test_without_filling_pit_is_a_sink(self, grid4):
        """Test that an unfilled pit has no descent."""
        heightmap = HeightMapBuilder.from_heights(grid4, pit_heights(grid4)).build(fill_depressions=False)
        assert heightmap.descent_vector(grid4.vertex_at(2.0, 2.0)) is None

    def test_filled_pit_has_descent(self, grid4):
        """Test that every interior vertex of a filled map has a descent."""
        heightmap = HeightMapBuilder.from_heights(grid4, pit_heights(grid4)).build()
        for idx, vertex in grid4.vertices():
            if not vertex.is_border:
                assert heightmap.descent_vector(idx) is not None


class TestHeightMap:
    """Test the frozen heightmap."""

    def test_heights_normalized(self, noisy_heightmap):
        """Test that heights span exactly [0, 1]."""
        heights = noisy_heightmap.vertices
        assert heights.min() == 0.0
        assert heights.max() == 1.0

    def test_downhill_is_topological(self, noisy_heightmap):
        """Test that the downhill order visits sources before targets."""
        position = {v: i for i, v in enumerate(noisy_heightmap.downhill)}
        for source, target in noisy_heightmap.downhill_flow():
            assert noisy_heightmap.vertex_height(source) > noisy_heightmap.vertex_height(target)
            assert position[source] < position[target]

    def test_interior_chains_reach_border(self, small_mesh, noisy_heightmap):
        """Test that descent chains end on the border."""
        for idx, vertex in small_mesh.vertices():
            if vertex.is_border:
                continue
            path = list(noisy_heightmap.downhill_path(idx))
            assert len(path) <= small_mesh.num_vertices
            assert small_mesh.vertex(path[-1]).is_border

    def test_descent_is_steepest(self, small_mesh, noisy_heightmap):
        """Test that each descent points to the lowest neighbor."""
        for idx, vertex in small_mesh.vertices():
            descent = noisy_heightmap.descent_vector(idx)
            if descent is None:
                continue
            lowest = min(noisy_heightmap.vertex_height(n) for n in vertex.neighbors)
            assert noisy_heightmap.vertex_height(descent.towards) == lowest
            assert descent.intensity == pytest.approx(noisy_heightmap.vertex_height(idx) - lowest)
            assert noisy_heightmap.is_descent(idx, descent.towards)

    def test_cell_height_is_corner_average(self, small_mesh, noisy_heightmap):
        """Test that cell height is the mean of its corners."""
        cell = small_mesh.cell(0)
        expected = sum(noisy_heightmap.vertex_height(v) for v in cell.vertices) / len(cell.vertices)
        assert noisy_heightmap.cell_height(0) == pytest.approx(expected)

    def test_flat_field(self, grid3):
        """Test that a flat field normalizes to zero and has no descents."""
        heightmap = HeightMapBuilder(grid3, 0.7).build(fill_depressions=False)
        assert all(heightmap.vertex_height(v) == 0.0 for v, _ in grid3.vertices())
        assert all(heightmap.descent_vector(v) is None for v, _ in grid3.vertices())
        assert heightmap.downhill == list(range(grid3.num_vertices))

    def test_descent_tie_takes_first_neighbor(self, grid_factory):
        """Test that ties go to the first lowest neighbor."""
        mesh = grid_factory(1, 1)
        heights = VertexData.for_each(mesh, lambda _, vertex: 1.0 if vertex.coords == (1.0, 1.0) else 0.0)
        heights[mesh.vertex_at(0.0, 0.0)] = 0.5
        heightmap = HeightMapBuilder.from_heights(mesh, heights).build(fill_depressions=False)

        top = mesh.vertex_at(1.0, 1.0)
        first_lowest = next(n for n in mesh.vertex(top).neighbors if heightmap.vertex_height(n) == 0.0)
        assert heightmap.descent_vector(top).towards == first_lowest

    def test_edge_high_and_low(self, grid_factory):
        """Test that sloped edges report their high and low ends and flat edges neither."""
        mesh = grid_factory(1, 1)
        heights = VertexData.for_each(mesh, lambda _, vertex: vertex.x)
        heightmap = HeightMapBuilder.from_heights(mesh, heights).build(fill_depressions=False)

        bottom = mesh.edge(mesh.edge_between(mesh.vertex_at(0.0, 0.0), mesh.vertex_at(1.0, 0.0)))
        assert heightmap.edge_high_vertex(bottom) == mesh.vertex_at(1.0, 0.0)
        assert heightmap.edge_low_vertex(bottom) == mesh.vertex_at(0.0, 0.0)

        left = mesh.edge(mesh.edge_between(mesh.vertex_at(0.0, 0.0), mesh.vertex_at(0.0, 1.0)))
        assert heightmap.edge_high_vertex(left) is None
        assert heightmap.edge_low_vertex(left) is None

    def test_make_builder_snapshot(self, noisy_heightmap):
        """Test that a builder edits a copy of the heights."""
        before = noisy_heightmap.vertices
        builder = noisy_heightmap.make_builder()
        builder.grid[0] += 10.0
        assert noisy_heightmap.vertices == before


class TestHeightMapBuilder:
    """Test height composition."""

    def test_from_heights_length_mismatch(self, grid3):
        """Test that heights sized for another mesh are rejected."""
        with pytest.raises(ValueError):
            HeightMapBuilder.from_heights(grid3, VertexData([0.0]))

    def test_noise_range(self, small_mesh):
        """Test that noise stays within its intensity."""
        builder = HeightMapBuilder(small_mesh)
        builder.noise(0.05, 0.5, AleaPRNG("noise"))
        assert builder.grid.min() >= 0.0
        assert builder.grid.max() <= 0.5

    def test_reproducible(self, small_mesh):
        """Test that the same seed builds the same grid."""
        def build(seed):
            prng = AleaPRNG(seed)
            builder = HeightMapBuilder(small_mesh)
            builder.random_slope(0.001, prng)
            builder.noise(0.02, 1.0, prng)
            return builder.grid

        assert build("a") == build("a")
        assert build("a") != build("b")

    def test_clump_single_ring(self, grid3):
        """Test that a high threshold keeps a clump on its start vertex."""
        builder = HeightMapBuilder(grid3)
        rings = builder.clump(0.5, 0.5, 1.0, AleaPRNG("clump"))
        assert rings == 1
        assert sum(builder.grid) == pytest.approx(0.5)

    def test_clump_spreads(self, grid3):
        """Test that a clump spreads over several rings."""
        builder = HeightMapBuilder(grid3)
        rings = builder.clump(1.0, 0.5, 0.1, AleaPRNG("clump"))
        assert rings > 1
        assert builder.grid.max() == 1.0
        assert builder.grid.min() >= 0.0

    def test_depression_lowers(self, grid3):
        """Test that a negative clump lowers heights."""
        builder = HeightMapBuilder(grid3, 1.0)
        builder.clump(-0.5, 0.5, 0.1, AleaPRNG("pit"))
        assert builder.grid.min() == 0.5

    def test_relax_smooths_spike(self, grid3):
        """Test that relaxation pulls a spike toward its neighbors."""
        builder = HeightMapBuilder(grid3)
        center = grid3.vertex_at(1.0, 1.0)
        builder.grid[center] = 1.0
        builder.relax(0.5)
        assert builder.grid[center] == pytest.approx(0.5)
        assert builder.grid[grid3.vertex_at(2.0, 1.0)] > 0.0

    def test_noise_values_are_plain_floats(self, small_mesh):
        """Test that gradient noise fills the grid with built-in floats."""
        field = NoiseField(0.05, seed=3)
        assert type(field.value(10.0, 20.0)) is float

        builder = HeightMapBuilder(small_mesh)
        builder.noise(0.05, 1.0, AleaPRNG("floats"))
        heightmap = builder.build()
        assert all(type(h) is float for h in heightmap.vertices)
        assert all(type(h) is float for h in heightmap.cells)

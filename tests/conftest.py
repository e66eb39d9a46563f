"""Shared fixtures: hand-built meshes and a small generated poly map."""

import pytest

from py_worldgen.core.poly_map import PolyMap


def square_grid(columns: int, rows: int, size: float = 1.0) -> PolyMap:
    """Poly map of ``columns`` x ``rows`` square cells; cell id = row * columns + column."""
    polygons = []
    for j in range(rows):
        for i in range(columns):
            x0, y0 = float(i * size), float(j * size)
            x1, y1 = float((i + 1) * size), float((j + 1) * size)
            polygons.append([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])
    return PolyMap.from_polygons(columns * size, rows * size, polygons)


@pytest.fixture
def grid_factory():
    return square_grid


@pytest.fixture
def grid3():
    return square_grid(3, 3)


@pytest.fixture
def two_squares():
    """Two unit squares side by side: width 2, height 1."""
    return square_grid(2, 1)


@pytest.fixture(scope="session")
def small_mesh():
    return PolyMap.build(200, 150, 12.0, "test_seed")

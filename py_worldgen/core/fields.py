"""
Spatial scalar functions and the grid generator base.

A spatial function maps a point of the plane to a float. Builders compose
them onto per-vertex grids through ``GridGenerator``.
"""

from dataclasses import dataclass
from typing import Optional

from opensimplex import OpenSimplex

from .alea_prng import AleaPRNG
from .compute import VertexData


class SpatialFunction:
    """Scalar function of the plane."""

    def value(self, x: float, y: float) -> float:
        raise NotImplementedError

    def scale(self, intensity: float) -> "Scaled":
        return Scaled(self, intensity)


@dataclass
class Scaled(SpatialFunction):
    inner: SpatialFunction
    intensity: float

    def value(self, x: float, y: float) -> float:
        return self.intensity * self.inner.value(x, y)


@dataclass
class Constant(SpatialFunction):
    amount: float

    def value(self, x: float, y: float) -> float:
        return self.amount


@dataclass
class Slope(SpatialFunction):
    """Tilted plane through (cx, cy): ``(x - cx) * m - (y - cy)``."""

    cx: float
    cy: float
    m: float

    @classmethod
    def with_prng(cls, width: float, height: float, prng: AleaPRNG) -> "Slope":
        m = prng.randint(-100, 199) / 100.0
        return cls(cx=width / 2.0, cy=height / 2.0, m=m)

    def value(self, x: float, y: float) -> float:
        return (x - self.cx) * self.m - (y - self.cy)


@dataclass
class Band(SpatialFunction):
    """Ridge of height 1 along a line, fading linearly to 0 at ``radius``."""

    cx: float
    cy: float
    m: float
    radius: float

    def value(self, x: float, y: float) -> float:
        if self.radius <= 0:
            return 0.0
        distance = abs((x - self.cx) * self.m - (y - self.cy))
        return max(1.0 - distance / self.radius, 0.0)


class NoiseField(SpatialFunction):
    """
    OpenSimplex gradient noise remapped to [0, 1].

    Attributes:
        frequency: Spatial frequency applied to the coordinates
        x_shift: Offset added to the scaled x coordinate
        y_shift: Offset added to the scaled y coordinate
        seed: OpenSimplex permutation seed
    """

    def __init__(self, frequency: float, x_shift: float = 0.0, y_shift: float = 0.0, seed: int = 0):
        self.frequency = frequency
        self.x_shift = x_shift
        self.y_shift = y_shift
        self.seed = seed
        self._noise = OpenSimplex(seed=seed)

    @classmethod
    def with_prng(cls, frequency: float, prng: AleaPRNG) -> "NoiseField":
        x_shift = float(prng.randint(0, 99))
        y_shift = float(prng.randint(0, 99))
        seed = prng.seed32()
        return cls(frequency, x_shift=x_shift, y_shift=y_shift, seed=seed)

    def value(self, x: float, y: float) -> float:
        px = self.x_shift + x * self.frequency
        py = self.y_shift + y * self.frequency
        return float((self._noise.noise2(px, py) + 1.0) / 2.0)

    def __repr__(self) -> str:
        return (
            f"NoiseField(frequency={self.frequency}, x_shift={self.x_shift}, "
            f"y_shift={self.y_shift}, seed={self.seed})"
        )


class GridGenerator:
    """
    Base for builders that accumulate a per-vertex float grid.

    Subclasses set ``self.mesh`` and ``self.grid`` (a ``VertexData``).
    """

    mesh = None
    grid: Optional[VertexData] = None

    def add_field(self, field: SpatialFunction, intensity: float = 1.0) -> None:
        self.grid.update_each(
            self.mesh, lambda _, vertex, h: h + field.value(vertex.x, vertex.y) * intensity
        )

    def add_field_scaled(self, field: SpatialFunction, coefficients: VertexData, intensity: float = 1.0) -> None:
        """Add ``field`` weighted per vertex by ``coefficients``."""
        coefficients.check_length(self.mesh)
        self.grid.update_each(
            self.mesh,
            lambda idx, vertex, h: h + field.value(vertex.x, vertex.y) * coefficients[idx] * intensity,
        )

    def normalize(self) -> None:
        self.grid.normalize()

    def relax(self, t: float) -> None:
        """Jacobi pass ``x <- t * mean(neighbors) + (1 - t) * x``."""

        def blend(x, neighborhood):
            if not neighborhood:
                return x
            return t * (sum(neighborhood) / len(neighborhood)) + (1.0 - t) * x

        self.grid.update_with_neighbors(self.mesh, blend)

"""
Indexed field containers over a poly map.

A field is a dense list holding one value per cell, vertex or edge, indexed
by the entity id. Fields never own topology: every operation that needs the
mesh takes it as an argument.
"""

from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

import numpy as np


class IndexedData:
    """Base for values indexed 1:1 with one kind of mesh entity."""

    def __init__(self, values: Iterable[Any]):
        self.values = list(values)

    @staticmethod
    def _elements(mesh) -> Iterator[Tuple[int, Any]]:
        raise NotImplementedError

    @staticmethod
    def _count(mesh) -> int:
        raise NotImplementedError

    @staticmethod
    def _element(mesh, idx: int):
        raise NotImplementedError

    @classmethod
    def for_each(cls, mesh, f: Callable[[int, Any], Any]):
        """Build a field by evaluating ``f(id, element)`` on every entity."""
        return cls(f(idx, element) for idx, element in cls._elements(mesh))

    @classmethod
    def uniform(cls, mesh, value):
        return cls([value] * cls._count(mesh))

    @classmethod
    def from_array(cls, mesh, array):
        values = [float(v) for v in array]
        if len(values) != cls._count(mesh):
            raise ValueError(f"Expected {cls._count(mesh)} values, got {len(values)}")
        return cls(values)

    def check_length(self, mesh) -> None:
        expected = self._count(mesh)
        if len(self.values) != expected:
            raise ValueError(
                f"{type(self).__name__} holds {len(self.values)} values, mesh has {expected}"
            )

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, idx: int):
        if idx < 0:
            raise IndexError(f"Negative id {idx}")
        return self.values[idx]

    def __setitem__(self, idx: int, value) -> None:
        if idx < 0:
            raise IndexError(f"Negative id {idx}")
        self.values[idx] = value

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.values == other.values

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.values!r})"

    def update_each(self, mesh, f: Callable[[int, Any, Any], Any]) -> None:
        """Replace every value with ``f(id, element, value)`` in place."""
        self.check_length(mesh)
        for idx, element in self._elements(mesh):
            self.values[idx] = f(idx, element, self.values[idx])

    def transform(self, f: Callable[[int, Any], Any]):
        return type(self)(f(idx, value) for idx, value in enumerate(self.values))

    def copy(self):
        return type(self)(self.values)

    def min(self):
        if not self.values:
            raise ValueError(f"min() of empty {type(self).__name__}")
        return min(self.values)

    def max(self):
        if not self.values:
            raise ValueError(f"max() of empty {type(self).__name__}")
        return max(self.values)

    def normalize(self) -> None:
        """Rescale values to [0, 1] in place; a flat field becomes all zeros."""
        low = self.min()
        high = self.max()
        span = high - low
        if span == 0:
            self.values = [0.0] * len(self.values)
            return
        self.values = [(v - low) / span for v in self.values]

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)

    def ordered_by(self, key: Optional[Callable[[Any], Any]] = None, reverse: bool = False) -> List[int]:
        """
        Entity ids sorted by value.

        The sort is stable in both directions, so equal values keep ascending
        id order.
        """
        values = self.values
        if key is None:
            return sorted(range(len(values)), key=values.__getitem__, reverse=reverse)
        return sorted(range(len(values)), key=lambda idx: key(values[idx]), reverse=reverse)

    def descending_order(self) -> List[int]:
        return self.ordered_by(reverse=True)

    def flow(self, pairs: Iterable[Tuple[int, int]], update: Callable[[Any, Any], Any]) -> None:
        """
        Propagate values along directed pairs.

        For each ``(source, target)`` in the given order,
        ``data[target] += update(data[target], data[source])``. The order must
        be topological for the result to be a full accumulation.
        """
        values = self.values
        for source, target in pairs:
            values[target] += update(values[target], values[source])


class _NeighborData(IndexedData):
    """Fields over entities that have a ``neighbors`` list."""

    def update_with_neighbors(self, mesh, f: Callable[[Any, List[Any]], Any]) -> None:
        """One Jacobi sweep: every new value reads the previous snapshot only."""
        self.check_length(mesh)
        snapshot = list(self.values)
        for idx, element in self._elements(mesh):
            self.values[idx] = f(snapshot[idx], [snapshot[n] for n in element.neighbors])

    def spread(
        self,
        mesh,
        start: int,
        amount,
        step: Callable[[Any], Any],
        apply: Callable[[int, Any, Any], Any],
    ) -> int:
        """
        Breadth-first ring spreading from ``start``.

        Every entity of the current ring gets ``apply(id, value, accum)``,
        then ``accum = step(accum)``. Spreading stops when ``step`` returns
        None or no unvisited neighbor remains.

        Returns:
            Number of rings applied
        """
        self.check_length(mesh)
        visited = {start}
        ring = [start]
        accum = amount
        rings = 0

        while ring:
            for idx in ring:
                self.values[idx] = apply(idx, self.values[idx], accum)
            rings += 1

            accum = step(accum)
            if accum is None:
                break

            next_ring = []
            for idx in ring:
                for neighbor in self._element(mesh, idx).neighbors:
                    if neighbor not in visited:
                        visited.add(neighbor)
                        next_ring.append(neighbor)
            ring = next_ring

        return rings


class CellData(_NeighborData):
    @staticmethod
    def _elements(mesh):
        return mesh.cells()

    @staticmethod
    def _count(mesh) -> int:
        return mesh.num_cells

    @staticmethod
    def _element(mesh, idx):
        return mesh.cell(idx)

    @classmethod
    def from_vertex_data(cls, mesh, vertex_data: "VertexData", f: Callable[[int, Any, List[Any]], Any]):
        """Build from ``f(id, cell, corner_values)``."""
        vertex_data.check_length(mesh)
        return cls(
            f(idx, cell, [vertex_data[v] for v in cell.vertices]) for idx, cell in mesh.cells()
        )

    @classmethod
    def corner_average(cls, mesh, vertex_data: "VertexData") -> "CellData":
        return cls.from_vertex_data(mesh, vertex_data, lambda _, __, corners: sum(corners) / len(corners))

    def find_with_all_neighbors(self, mesh, predicate: Callable[[int, Any], bool]) -> List[int]:
        """Cells whose every neighbor satisfies ``predicate(neighbor_id, value)``."""
        return [
            idx
            for idx, cell in mesh.cells()
            if all(predicate(n, self.values[n]) for n in cell.neighbors)
        ]


class VertexData(_NeighborData):
    @staticmethod
    def _elements(mesh):
        return mesh.vertices()

    @staticmethod
    def _count(mesh) -> int:
        return mesh.num_vertices

    @staticmethod
    def _element(mesh, idx):
        return mesh.vertex(idx)

    @classmethod
    def from_cell_data(cls, mesh, cell_data: CellData, f: Callable[[int, Any, List[Any]], Any]):
        """Build from ``f(id, vertex, owner_cell_values)``."""
        cell_data.check_length(mesh)
        return cls(
            f(idx, vertex, [cell_data[c] for c in vertex.cells]) for idx, vertex in mesh.vertices()
        )


class EdgeData(IndexedData):
    @staticmethod
    def _elements(mesh):
        return mesh.edges()

    @staticmethod
    def _count(mesh) -> int:
        return mesh.num_edges

    @staticmethod
    def _element(mesh, idx):
        return mesh.edge(idx)

    @classmethod
    def from_cell_data(cls, mesh, cell_data: CellData, f: Callable[[int, Any, List[Any]], Any]):
        """Build from ``f(id, edge, owner_cell_values)``."""
        cell_data.check_length(mesh)
        return cls(f(idx, edge, [cell_data[c] for c in edge.cells]) for idx, edge in mesh.edges())


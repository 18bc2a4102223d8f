"""
Cubic cell grid over a region's local space.

Cells are sized so each holds about one expected child. Populating around a
point fills only the 3x3x3 block of cells surrounding it, and every cell
remembers whether it has been filled, so exploring a dense region
neighbourhood by neighbourhood never generates a cell twice.

Cell coordinates are 1-based signed integers with no zero index: the cell
``i > 0`` covers ``((i-1)·s, i·s]`` on its axis and ``i < 0`` covers
``(i·s, (i+1)·s]``.
"""

from itertools import product
from typing import List, Set, Tuple, TYPE_CHECKING

import numpy as np

from .config import config
from .errors import PlacementExhausted
from .shapes import Sphere
from .utils import as_vector

if TYPE_CHECKING:
    from .node import Node
    from .population import PopulationEngine

Cell = Tuple[int, int, int]


def _axis_coord(x: float, cell_size: float) -> int:
    c = int(np.sign(x) * np.ceil(abs(x) / cell_size))
    # the origin has no cell of its own
    return c if c != 0 else 1


def _axis_neighbours(c: int) -> Tuple[int, int, int]:
    below = c - 1 if c - 1 != 0 else c - 2
    above = c + 1 if c + 1 != 0 else c + 2
    return below, c, above


class SpaceGrid:
    """
    Cell grid of one region, driven by a population engine.

    Parameters
    ----------
    region : Node
        Region whose local space is partitioned
    engine : PopulationEngine
        Supplies child definitions, placement and the random source
    """

    def __init__(self, region: "Node", engine: "PopulationEngine"):
        self._region = region
        self._engine = engine
        self._populated: Set[Cell] = set()

    # ========== PROPERTY ACCESS ==========
    @property
    def region(self) -> "Node":
        return self._region

    @property
    def total_density(self) -> float:
        return sum(d.density for d in self._engine.child_definitions(self._region))

    @property
    def cell_size(self) -> float:
        """Cell edge in local units, sized for one expected child per cell."""
        density = self.total_density
        if density <= 0:
            return config.LOCAL_SPACE_SCALE
        return float(np.cbrt(1.0 / density) / self._region.local_scale)

    @property
    def grid_range(self) -> int:
        """Largest cell index magnitude on each axis."""
        return int(np.ceil(config.LOCAL_SPACE_SCALE / self.cell_size))

    @property
    def populated_count(self) -> int:
        return len(self._populated)

    # ========== CELL GEOMETRY ==========
    def cell_of(self, position) -> Cell:
        """Cell containing a local position."""
        p = as_vector(position, "position")
        size = self.cell_size
        return tuple(_axis_coord(x, size) for x in p)

    def cell_bounds(self, coords: Cell) -> Tuple[np.ndarray, np.ndarray]:
        """Minimum and maximum corners of a cell."""
        size = self.cell_size
        c = np.array(coords, dtype=float)
        low = np.where(c > 0, (c - 1) * size, c * size)
        return low, low + size

    def cell_center(self, coords: Cell) -> np.ndarray:
        low, high = self.cell_bounds(coords)
        return (low + high) / 2

    def cell_in_bounds(self, coords: Cell) -> bool:
        """True if the cell's corner nearest the origin lies within local space."""
        low, high = self.cell_bounds(coords)
        nearest = np.where(np.abs(low) < np.abs(high), low, high)
        return bool(np.linalg.norm(nearest) <= config.LOCAL_SPACE_SCALE)

    def neighborhood(self, coords: Cell) -> List[Cell]:
        """The 3x3x3 block of cells around coords, skipping index 0."""
        return list(product(*(_axis_neighbours(c) for c in coords)))

    # ========== POPULATED FLAGS ==========
    def is_populated(self, coords: Cell) -> bool:
        return tuple(coords) in self._populated

    def mark_populated(self, coords: Cell):
        self._populated.add(tuple(coords))

    def mark_region_populated(self, position, radius: float):
        """Mark every cell overlapped by a sphere given in local units."""
        p = as_vector(position, "position")
        low = self.cell_of(p - radius)
        high = self.cell_of(p + radius)
        axes = [[c for c in range(lo, hi + 1) if c != 0] for lo, hi in zip(low, high)]
        for coords in product(*axes):
            self._populated.add(coords)

    # ========== POPULATION ==========
    def populate(self, position) -> List["Node"]:
        """
        Generate children in every unpopulated cell around a local position.

        Each cell is marked before it is filled, so a second call for the
        same neighbourhood returns an empty list.

        Returns
        -------
        list of Node
            Children generated by this call
        """
        definitions = [d for d in self._engine.child_definitions(self._region)
                       if d.density > 0]
        rng = self._engine.rng
        size = self.cell_size
        expected = self.total_density * (size * self._region.local_scale)**3
        bounds = self._region.local_shape

        targets = [c for c in self.neighborhood(self.cell_of(position))
                   if c not in self._populated and self.cell_in_bounds(c)]
        # placements mark the cells they overlap
        self._populated.update(targets)
        if not definitions:
            return []

        generated = []
        for coords in targets:
            low, high = self.cell_bounds(coords)
            corners = product(*zip(low, high))
            if not any(bounds.contains_point(c) for c in corners) \
                    and not bounds.contains_point((low + high) / 2):
                continue
            if not rng.bernoulli(expected):
                continue
            index = rng.weighted_index([d.density for d in definitions])
            child = self._generate(definitions[index], Sphere(size / 2, (low + high) / 2))
            if child is not None:
                generated.append(child)
        return generated

    def _generate(self, definition, within):
        try:
            position = self._engine.find_open_space(self._region, definition.footprint, within)
        except PlacementExhausted:
            return None
        return self._engine.generate_child(self._region, definition, position=position)

    def nearby_children(self, position) -> List["Node"]:
        """Materialized children whose cell lies in the neighbourhood of position."""
        cells = set(self.neighborhood(self.cell_of(position)))
        return [c for c in self._region.children if self.cell_of(c.position) in cells]

    def __repr__(self):
        return (f"SpaceGrid(region={self._region.designation}, "
                f"cell_size={self.cell_size:.4e}, populated={self.populated_count})")

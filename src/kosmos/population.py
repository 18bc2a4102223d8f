"""
Density-driven lazy population of regions.

Regions never enumerate their contents up front. Given a region's child
definitions, the engine works out how many children of each kind are
expected in a volume (``volume * density``), subtracts what is already
materialized, and produces the deficit one child at a time through a
weighted lottery.

Population passes are generators: nothing happens until the first item is
pulled, and a consumer can stop at any time. Densities describing whole
galaxies produce deficits far beyond what can be materialized, so callers
must bound how many children they take.

Examples
--------
>>> from itertools import islice
>>> engine = PopulationEngine(default_registry(), Randomizer(42))
>>> galaxy = engine.registry.create('galaxy', None, None, engine.rng)
>>> systems = list(islice(engine.populate_region(galaxy, 'star_system'), 5))
"""

import weakref
from itertools import islice
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np

from .config import config
from .definitions import ChildDefinition, KindRegistry
from .errors import NotInSameHierarchy, PlacementExhausted
from .grid import SpaceGrid
from .node import Node, find_common_ancestor, translate
from .randomizer import Randomizer
from .shapes import Shape, Sphere
from .store import DataStore
from .utils import as_vector

# Relative size below which a remaining deficit counts as exhausted
_DEFICIT_EPSILON = 1e-9

Location = Union[Node, Shape]


class _Occupancy:
    """
    Shapes of a region's children in its local units, for overlap tests.

    Keeps center and radius arrays alongside the shapes so most candidates
    are rejected or accepted by one vectorized bounding-sphere test.
    """

    def __init__(self, region: Node, host: Optional[Node] = None):
        self._shapes: List[Shape] = []
        self._centers = np.empty((0, 3))
        self._radii = np.empty(0)
        for child in region.children:
            if child is host:
                continue
            self.add(child.parent_frame_shape())

    def add(self, shape: Shape):
        self._shapes.append(shape)
        self._centers = np.vstack([self._centers, shape.position])
        self._radii = np.append(self._radii, shape.containing_radius)

    def is_free(self, candidate: Sphere) -> bool:
        if not self._shapes:
            return True
        dists = np.linalg.norm(self._centers - candidate.position, axis=1)
        near = np.nonzero(dists <= self._radii + candidate.radius)[0]
        return not any(self._shapes[i].intersects(candidate) for i in near)

    def __len__(self):
        return len(self._shapes)


class PopulationEngine:
    """
    Generates the children of regions on demand.

    Parameters
    ----------
    registry : KindRegistry, optional
        Kind table supplying child definitions and constructors
        (default: an empty registry)
    rng : Randomizer, optional
        Random-variate source (default: unseeded)
    store : DataStore, optional
        Every generated child is saved here.
    """

    # ========== CONSTRUCTION ==========
    def __init__(self, registry: Optional[KindRegistry] = None,
                 rng: Optional[Randomizer] = None,
                 store: Optional[DataStore] = None):
        self._registry = registry if registry is not None else KindRegistry()
        self._rng = rng if rng is not None else Randomizer()
        self._store = store
        self._grids: "weakref.WeakKeyDictionary[Node, SpaceGrid]" = weakref.WeakKeyDictionary()

    # ========== PROPERTY ACCESS ==========
    @property
    def registry(self) -> KindRegistry:
        return self._registry

    @property
    def rng(self) -> Randomizer:
        return self._rng

    @property
    def store(self) -> Optional[DataStore]:
        return self._store

    # ========== DEFINITIONS AND TOTALS ==========
    def child_definitions(self, region: Node,
                          kind: Optional[str] = None) -> List[ChildDefinition]:
        """Definitions for region's kind, optionally limited to one child kind."""
        definitions = self._registry.child_definitions(region.kind)
        if kind is None:
            return list(definitions)
        return [d for d in definitions if d.kind == kind]

    def child_totals(self, region: Node, location: Optional[Location] = None,
                     kind: Optional[str] = None) -> List[Tuple[ChildDefinition, float]]:
        """
        Expected number of children per definition.

        Parameters
        ----------
        region : Node
            Region whose definitions apply
        location : Node or Shape, optional
            Sub-volume to count within (default: the whole region)
        kind : str, optional
            Limit to definitions of one child kind

        Returns
        -------
        list of (ChildDefinition, float)
            Expected counts ``volume * density``; not necessarily integers.
        """
        resolved = self._resolve_location(region, location)
        volume = 0.0 if resolved is None else resolved[0].volume
        return [(d, d.expected_count(volume)) for d in self.child_definitions(region, kind)]

    def totals_dataframe(self, region: Node, location: Optional[Location] = None):
        """
        Export expected and materialized child counts to a pandas DataFrame.

        Returns
        -------
        pd.DataFrame
            Columns: kind, density, footprint, expected, existing
        """
        import pandas as pd
        resolved = self._resolve_location(region, location)
        existing = self._existing_children(region, resolved)
        rows = []
        for definition, expected in self.child_totals(region, location):
            rows.append({
                'kind': definition.kind,
                'density': definition.density,
                'footprint': definition.footprint,
                'expected': expected,
                'existing': sum(1 for c in existing if definition.is_satisfied_by(c)),
            })
        return pd.DataFrame(rows, columns=['kind', 'density', 'footprint',
                                           'expected', 'existing'])

    def radius_with_children(self, region: Node, max_amount: float,
                             kind: Optional[str] = None) -> float:
        """
        Radius, m, of a sphere expected to hold at most max_amount children.

        Returns 0 when no definition has a positive density.
        """
        total_density = sum(d.density for d in self.child_definitions(region, kind))
        if total_density <= 0:
            return 0.0
        volume = max_amount / total_density
        return float(np.cbrt(3 * volume / (4 * np.pi)))

    # ========== POPULATION ==========
    def populate_region(self, region: Node, kind: Optional[str] = None) -> Iterator[Node]:
        """
        Lazily generate the children region is missing.

        Each pull yields one newly attached child. The pass ends when every
        definition's deficit is filled or after config.MAX_PLACEMENT_MISSES
        consecutive failed placements. The sequence is effectively unbounded
        for dense regions; callers must limit how many items they take.
        """
        return self._lottery(region, (region.shape, None, None), kind)

    def populate_region_within(self, region: Node, location: Location,
                               kind: Optional[str] = None) -> Iterator[Node]:
        """
        Lazily generate the children missing from a sub-volume of region.

        Expected counts use the sub-volume's volume, existing children are
        counted only if their centers lie in it, and new children are placed
        inside it.

        Parameters
        ----------
        location : Node or Shape
            A node of region's tree (its shape at its center), or a shape
            whose position is in region's local units and whose size is in
            metres. A node outside region yields nothing.

        Raises
        ------
        NotInSameHierarchy
            If location is a node of a different tree.
        """
        return self._lottery(region, self._resolve_location(region, location), kind)

    def get_children(self, region: Node, kind: Optional[str] = None) -> Iterator[Node]:
        """Existing matching children, followed by newly generated ones."""
        for child in region.children:
            if kind is None or child.kind == kind:
                yield child
        yield from self.populate_region(region, kind)

    def _lottery(self, region: Node, resolved, kind: Optional[str]) -> Iterator[Node]:
        rng = self._rng
        self._prepopulate(region)
        if resolved is None:
            return
        volume_shape, within, host = resolved
        definitions = self.child_definitions(region, kind)
        if not definitions:
            return

        volume = volume_shape.volume
        existing = self._existing_children(region, resolved)
        remaining = []
        for definition in definitions:
            expected = definition.expected_count(volume)
            count = sum(1 for c in existing if definition.is_satisfied_by(c))
            if expected < 1:
                # a fractional count is the probability of one instance
                expected = 1.0 if count == 0 and rng.bernoulli(expected) else 0.0
            remaining.append(max(0.0, expected - count))
        exhausted_below = [r * _DEFICIT_EPSILON for r in remaining]

        occupancy = _Occupancy(region, host)
        misses = 0
        while misses < config.MAX_PLACEMENT_MISSES:
            weights = [r if r > floor else 0.0
                       for r, floor in zip(remaining, exhausted_below)]
            if sum(weights) <= 0:
                return
            index = rng.weighted_index(weights)
            child = self._place(region, definitions[index], within, occupancy)
            if child is None:
                misses += 1
                continue
            misses = 0
            remaining[index] -= 1
            yield child

    def _prepopulate(self, region: Node):
        if region.prepopulated:
            return
        region.prepopulated = True
        if region.kind not in self._registry:
            return
        spec = self._registry.get(region.kind)
        if spec.prepopulate is None:
            return
        before = {id(c) for c in region.children}
        spec.prepopulate(region, self._rng, self._registry)
        if self._store is not None:
            for child in region.children:
                if id(child) not in before:
                    self._store.save(child)

    # ========== PLACEMENT ==========
    def generate_child(self, region: Node, definition: ChildDefinition,
                       position=None, within: Optional[Shape] = None) -> Optional[Node]:
        """
        Place and construct a single child of region.

        Parameters
        ----------
        position : array-like, optional
            Placement in region's local units. Found by open-space search
            when omitted.
        within : Shape, optional
            Sub-volume in region's local units to search in

        Returns
        -------
        Node or None
            The attached child, or None if no space was found or the
            constructor declined.
        """
        return self._place(region, definition, within, _Occupancy(region), position)

    def generate_child_near(self, region: Node, position,
                            kind: Optional[str] = None) -> Optional[Node]:
        """
        Place one child of the densest matching definition near a point.

        The offset is drawn around the mean nearest-neighbour spacing
        implied by the definition's density.
        """
        definitions = [d for d in self.child_definitions(region, kind) if d.density > 0]
        if not definitions:
            return None
        definition = max(definitions, key=lambda d: d.density)
        spacing = 2 * np.cbrt(3 / (4 * np.pi * definition.density)) / region.local_scale
        center = as_vector(position, "position")
        footprint = definition.footprint / region.local_scale
        occupancy = _Occupancy(region)
        for _ in range(config.MAX_PLACEMENT_MISSES):
            offset = abs(self._rng.normal(spacing, spacing / 3))
            candidate = center + self._rng.unit_vector() * offset
            if self._fits(region, candidate, footprint, occupancy):
                return self._place(region, definition, None, occupancy, candidate)
        return None

    def find_open_space(self, region: Node, radius: float,
                        within: Optional[Shape] = None) -> np.ndarray:
        """
        Find a position for a sphere of radius metres inside region.

        Parameters
        ----------
        within : Shape, optional
            Sub-volume in region's local units the position must lie in

        Returns
        -------
        np.ndarray
            Center in region's local units, clear of every materialized child

        Raises
        ------
        PlacementExhausted
            If config.OPEN_SPACE_ATTEMPTS candidates all failed.
        """
        return self._open_space(region, radius, within, _Occupancy(region))

    def _open_space(self, region: Node, radius: float, within: Optional[Shape],
                    occupancy: _Occupancy) -> np.ndarray:
        footprint = radius / region.local_scale
        search = within if within is not None else region.local_shape
        for _ in range(config.OPEN_SPACE_ATTEMPTS):
            candidate = self._rng.point_in_shape(search, attempts=1)
            if candidate is not None and self._fits(region, candidate, footprint, occupancy):
                return candidate
        raise PlacementExhausted(
            f"No open space of radius {radius:.3e} m in {region.designation} "
            f"after {config.OPEN_SPACE_ATTEMPTS} attempts")

    @staticmethod
    def _fits(region: Node, candidate: np.ndarray, footprint: float,
              occupancy: _Occupancy) -> bool:
        bounds = region.local_shape
        if np.linalg.norm(candidate) + footprint > bounds.containing_radius:
            return False
        if not bounds.contains_point(candidate):
            return False
        return occupancy.is_free(Sphere(footprint, candidate))

    def _place(self, region: Node, definition: ChildDefinition,
               within: Optional[Shape], occupancy: _Occupancy,
               position=None) -> Optional[Node]:
        if position is None:
            try:
                position = self._open_space(region, definition.footprint, within, occupancy)
            except PlacementExhausted:
                return None
        child = definition.build(region, as_vector(position, "position"),
                                 self._rng, self._registry)
        if child is None:
            return None
        if child.parent is not region:
            region.add_child(child)
        occupancy.add(child.parent_frame_shape())
        self._assign_orbit(region, child)
        if self._store is not None:
            self._store.save(child)
        grid = self._grids.get(region)
        if grid is not None:
            grid.mark_region_populated(
                child.position, child.shape.containing_radius / region.local_scale)
        return child

    def _assign_orbit(self, region: Node, child: Node):
        if region.kind not in self._registry:
            return
        spec = self._registry.get(region.kind)
        if spec.orbited is None:
            return
        orbited = spec.orbited(region)
        if orbited is None or orbited is child:
            return
        from .orbit import Orbit
        Orbit.from_eccentricity(child, orbited, spec.eccentricity(self._rng), self._rng)

    # ========== GRID ==========
    def grid_for(self, region: Node) -> SpaceGrid:
        """The cell grid partitioning region's local space (created once per region)."""
        grid = self._grids.get(region)
        if grid is None:
            grid = SpaceGrid(region, self)
            self._grids[region] = grid
        return grid

    def populate_near(self, region: Node, position) -> List[Node]:
        """Populate the grid neighbourhood around a local position."""
        self._prepopulate(region)
        return self.grid_for(region).populate(position)

    # ========== HELPERS ==========
    def _resolve_location(self, region: Node, location: Optional[Location]):
        """
        Turn a location into (shape in metres, sub-volume in local units, host).

        The sub-volume is None for the whole region. host is the child of
        region holding a location node, which new children may overlap.
        Returns None when a location node lies outside region.
        """
        if location is None:
            return region.shape, None, None
        if isinstance(location, Shape):
            center = location.position
            metres = location.at_position(None)
            host = None
        else:
            ancestor = find_common_ancestor(region, location)
            if ancestor is None:
                raise NotInSameHierarchy(
                    f"{location.designation} is not in the tree of {region.designation}")
            if ancestor is not region:
                return None
            center = translate(location, region, np.zeros(3))
            metres = location.shape
            path = location.path_from_root()
            host = path[path.index(region) + 1] if location is not region else None
        within = metres.scaled(1.0 / region.local_scale).at_position(center)
        return metres, within, host

    @staticmethod
    def _existing_children(region: Node, resolved) -> List[Node]:
        if resolved is None:
            return []
        within = resolved[1]
        if within is None:
            return list(region.children)
        return [c for c in region.children if within.contains_point(c.position)]

    def take(self, region: Node, count: int, kind: Optional[str] = None) -> List[Node]:
        """Generate at most count new children of region."""
        return list(islice(self.populate_region(region, kind), count))

    def __repr__(self):
        return f"PopulationEngine(registry={self._registry!r})"

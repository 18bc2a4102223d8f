"""
Child definitions and the kind registry.

A region's contents are described by data, not by subclasses: each kind of
node has a ``KindSpec`` listing the ``ChildDefinition`` recipes for what it
may contain and the generators that give a new node of that kind its shape
and composition. New kinds of body are new registry entries.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Optional, Tuple, TYPE_CHECKING

import numpy as np

from .randomizer import Randomizer
from .shapes import Shape
from .utils import validation_error

if TYPE_CHECKING:
    from .node import Node

# (parent, position in parent's local units, rng) -> new node or None
Constructor = Callable[["Node", np.ndarray, Randomizer], Optional["Node"]]


@dataclass(frozen=True)
class ChildDefinition:
    """
    Recipe for one kind of content a region may contain.

    Attributes
    ----------
    kind : str
        Kind of node produced, also used to recognise existing children
    footprint : float
        Radius of open space, m, the child needs when placed
    density : float
        Expected number of children per m³ of the region's volume
    constructor : callable, optional
        ``(parent, position, rng) -> Node | None``. When omitted the kind
        registry builds the child from its KindSpec.
    predicate : callable, optional
        Extra test an existing child must pass to count as an instance of
        this definition (e.g. a particular spectral class).
    """
    kind: str
    footprint: float
    density: float
    constructor: Optional[Constructor] = None
    predicate: Optional[Callable[["Node"], bool]] = None

    def __post_init__(self):
        """Validate definition parameters"""
        if self.footprint < 0:
            validation_error(f"Footprint must be non-negative, got {self.footprint}")
        if self.density < 0:
            validation_error(f"Density must be non-negative, got {self.density}")

    def is_satisfied_by(self, node: "Node") -> bool:
        """True if node counts as an instance of this definition."""
        if node.kind != self.kind:
            return False
        return self.predicate is None or bool(self.predicate(node))

    def expected_count(self, volume: float) -> float:
        """Expected number of children in a volume of m³."""
        return volume * self.density

    def build(self, parent: "Node", position: np.ndarray, rng: Randomizer,
              registry: Optional["KindRegistry"] = None) -> Optional["Node"]:
        """Construct a child at position through the constructor or the registry."""
        if self.constructor is not None:
            return self.constructor(parent, position, rng)
        if registry is None or self.kind not in registry:
            # Nothing describes this kind: a bare node of the footprint's size
            from .node import Node
            from .shapes import Sphere
            return Node(self.kind, Sphere(self.footprint), parent=parent, position=position)
        return registry.create(self.kind, parent, position, rng)


def _circular(rng: Randomizer) -> float:
    return 0.0


@dataclass(frozen=True)
class KindSpec:
    """
    Everything needed to generate and populate nodes of one kind.

    Attributes
    ----------
    kind : str
        Discriminator stored on the node
    shape_generator : callable
        ``rng -> Shape`` in metres
    child_definitions : tuple of ChildDefinition
        What a region of this kind contains
    composition_generator : callable, optional
        ``(rng, shape) -> dict`` of node attributes: mass, temperature,
        albedo, luminosity, name
    prepopulate : callable, optional
        ``(region, rng, registry) -> None``. Creates the fixed children a
        region always has, run once before its first population pass.
    orbited : callable, optional
        ``region -> Node | None``. The body generated children orbit.
    eccentricity : callable
        ``rng -> float`` for generated orbits (default: circular)
    """
    kind: str
    shape_generator: Callable[[Randomizer], Shape]
    child_definitions: Tuple[ChildDefinition, ...] = ()
    composition_generator: Optional[Callable[[Randomizer, Shape], dict]] = None
    prepopulate: Optional[Callable[["Node", Randomizer, "KindRegistry"], None]] = None
    orbited: Optional[Callable[["Node"], Optional["Node"]]] = None
    eccentricity: Callable[[Randomizer], float] = field(default=_circular)


class KindRegistry:
    """Lookup table from kind to KindSpec."""

    def __init__(self, specs=()):
        self._specs: Dict[str, KindSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: KindSpec) -> KindSpec:
        self._specs[spec.kind] = spec
        return spec

    def get(self, kind: str) -> KindSpec:
        try:
            return self._specs[kind]
        except KeyError:
            raise KeyError(f"Unknown kind '{kind}'. "
                           f"Registered kinds: {sorted(self._specs)}") from None

    def child_definitions(self, kind: str) -> Tuple[ChildDefinition, ...]:
        """Definitions for a region kind (empty for unregistered kinds)."""
        spec = self._specs.get(kind)
        return spec.child_definitions if spec is not None else ()

    def create(self, kind: str, parent: Optional["Node"], position,
               rng: Randomizer) -> "Node":
        """Build a node of kind from its spec's generators."""
        from .node import Node
        spec = self.get(kind)
        shape = spec.shape_generator(rng)
        composition = spec.composition_generator(rng, shape) if spec.composition_generator else {}
        return Node(kind, shape, parent=parent, position=position, **composition)

    def __contains__(self, kind) -> bool:
        return kind in self._specs

    def __iter__(self) -> Iterator[KindSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def __repr__(self):
        return f"KindRegistry({sorted(self._specs)})"

"""
Spatial hierarchy nodes and frame translation.

Every ``Node`` defines a normalized local frame for its children: a child's
``position`` is measured in units of its parent's ``local_scale`` (metres per
local unit), and ``local_scale`` is the node's containing radius divided by
``config.LOCAL_SPACE_SCALE``. Positions therefore stay within about ±1e6 of
the origin at every depth, from a universe down to a planet.

Units
-----
- ``position``: parent's local units
- ``shape``: metres, about the node's own center
- ``mass``: kg, ``velocity``: m/s, ``temperature``: K, ``luminosity``: W
- ``velocity`` is relative to the orbited body when the node has an orbit,
  otherwise relative to the parent frame. All frames share one axis
  orientation and differ only in offset and scale.

Precision
---------
Translation between two nodes passes through their common ancestor's frame
in float64. A position carries about 16 significant digits relative to the
largest frame on that path, so a round trip between deep nodes of very
different scales is accurate only to about
``1e-16 * ancestor_scale / leaf_scale`` of the leaf's local units. Under a
1e20 m root, a point in a 1e3 m leaf comes back several local units off.
Translate between nearby frames when sub-unit accuracy matters.
"""

import uuid
import warnings
import weakref
from typing import Iterator, List, Optional, TYPE_CHECKING

import numpy as np

from .config import config
from .errors import NotInSameHierarchy, UnresolvedReference
from .shapes import Shape, SinglePoint
from .utils import G, STEFAN_BOLTZMANN, as_vector, readonly, validation_error

if TYPE_CHECKING:
    from .orbit import Orbit
    from .store import DataStore


class Node:
    """
    A region or body in the spatial hierarchy.

    Parameters
    ----------
    kind : str, optional
        Discriminator used by the kind registry (default: 'location')
    shape : Shape, optional
        Bounding volume in metres. Its position is ignored; the node is
        centered at ``position`` (default: a single point)
    parent : Node, optional
        Containing node. The new node is attached to its children.
    position : array-like, optional
        Center in the parent's local units (default: origin)
    mass : float, optional
        Mass in kg (default: 0)
    velocity : array-like, optional
        Velocity in m/s (default: zero)
    temperature : float, optional
        Intrinsic temperature in K
    albedo : float, optional
        Bond albedo in [0, 1] (default: 0)
    luminosity : float, optional
        Radiated power in W (default: 0)
    name : str, optional
        Human-readable name
    node_id : str, optional
        Stable identity (default: a new uuid4 hex string)
    store : DataStore, optional
        Lookup used to resolve parent and orbited references that are no
        longer held in memory. Inherited from the parent when omitted.
    """

    # ========== CONSTRUCTION ==========
    def __init__(self, kind: str = "location", shape: Optional[Shape] = None,
                 parent: Optional["Node"] = None, position=None,
                 mass: float = 0.0, velocity=None,
                 temperature: Optional[float] = None, albedo: float = 0.0,
                 luminosity: float = 0.0, name: Optional[str] = None,
                 node_id: Optional[str] = None,
                 store: Optional["DataStore"] = None):
        if mass < 0:
            validation_error(f"Mass must be non-negative, got {mass}")
        self._check_albedo(albedo)

        self._id = node_id if node_id is not None else uuid.uuid4().hex
        self._kind = kind
        self._name = name
        self._shape = (shape if shape is not None else SinglePoint()).at_position(None)
        self._position = as_vector(position, "position")
        self._velocity = as_vector(velocity, "velocity")
        self._mass = float(mass)
        self._temperature = None if temperature is None else float(temperature)
        self._albedo = float(albedo)
        self._luminosity = float(luminosity)

        self._parent_ref: Optional[weakref.ref] = None
        self._parent_id: Optional[str] = None
        self._children: List["Node"] = []
        self._orbit: Optional["Orbit"] = None
        self._orbiters: "weakref.WeakSet[Node]" = weakref.WeakSet()
        self._store = store
        self.prepopulated = False

        # Derived quantities, cleared by the mutation entry points below
        self._local_scale: Optional[float] = None
        self._density: Optional[float] = None
        self._surface_gravity: Optional[float] = None
        self._average_temperature: Optional[float] = None

        if parent is not None:
            if self._store is None:
                self._store = parent.store
            parent.add_child(self)

    # ========== PROPERTY ACCESS ==========
    @property
    def id(self) -> str:
        return self._id

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def name(self) -> Optional[str]:
        return self._name

    @name.setter
    def name(self, value: Optional[str]):
        self._name = value

    @property
    def designation(self) -> str:
        """Display title: the name if set, else kind and short id."""
        if self._name:
            return self._name
        return f"{self._kind} {self._id[:8]}"

    @property
    def store(self) -> Optional["DataStore"]:
        return self._store

    @store.setter
    def store(self, value: Optional["DataStore"]):
        self._store = value

    @property
    def parent_id(self) -> Optional[str]:
        return self._parent_id

    @property
    def parent(self) -> Optional["Node"]:
        """
        Containing node, or None for a root.

        Falls back to the store when the in-memory reference is gone. If the
        parent id cannot be resolved an UnresolvedReference warning is issued
        and None is returned.
        """
        if self._parent_ref is not None:
            parent = self._parent_ref()
            if parent is not None:
                return parent
        if self._parent_id is None:
            return None
        if self._store is not None:
            parent = self._store.get(self._parent_id)
            if parent is not None:
                self._parent_ref = weakref.ref(parent)
                return parent
        warnings.warn(f"Parent '{self._parent_id}' of {self.designation} "
                      f"could not be resolved", UnresolvedReference, stacklevel=2)
        return None

    @property
    def children(self) -> tuple:
        """Materialized children. May be incomplete pending population."""
        return tuple(self._children)

    @property
    def position(self) -> np.ndarray:
        return readonly(self._position)

    @position.setter
    def position(self, value):
        """Move the node. Treated as a perturbation: orbits are re-derived."""
        self._position = as_vector(value, "position")
        self._invalidate_temperature()
        self._rederive_orbits(include_orbiters=True)

    @property
    def velocity(self) -> np.ndarray:
        return readonly(self._velocity)

    @velocity.setter
    def velocity(self, value):
        """Change the velocity. Treated as a perturbation: the orbit is re-derived."""
        self._velocity = as_vector(value, "velocity")
        self._rederive_orbits(include_orbiters=False)

    @property
    def shape(self) -> Shape:
        return self._shape

    @shape.setter
    def shape(self, value: Shape):
        self.set_shape(value)

    def set_shape(self, shape: Shape):
        """Replace the bounding volume. Rescales the frame children live in."""
        self._shape = shape.at_position(None)
        self._local_scale = None
        self._density = None
        self._surface_gravity = None
        self._invalidate_temperature()

    @property
    def mass(self) -> float:
        return self._mass

    @mass.setter
    def mass(self, value: float):
        if value < 0:
            validation_error(f"Mass must be non-negative, got {value}")
        self._mass = float(value)
        self._density = None
        self._surface_gravity = None
        # μ depends on both masses
        self._rederive_orbits(include_orbiters=True)

    @property
    def temperature(self) -> Optional[float]:
        """Intrinsic temperature in K, or None."""
        return self._temperature

    @temperature.setter
    def temperature(self, value: Optional[float]):
        self._temperature = None if value is None else float(value)
        self._invalidate_temperature()

    @property
    def albedo(self) -> float:
        return self._albedo

    @albedo.setter
    def albedo(self, value: float):
        self._check_albedo(value)
        self._albedo = float(value)
        self._invalidate_temperature()

    @property
    def luminosity(self) -> float:
        return self._luminosity

    @luminosity.setter
    def luminosity(self, value: float):
        self._luminosity = float(value)
        # Bodies orbiting this one are heated by it
        for orbiter in list(self._orbiters):
            orbiter._invalidate_temperature()

    @property
    def orbit(self) -> Optional["Orbit"]:
        return self._orbit

    @orbit.setter
    def orbit(self, value: Optional["Orbit"]):
        if value is not None and value.orbiting is not None and value.orbiting is not self:
            raise ValueError(f"Orbit belongs to {value.orbiting.designation}, "
                             f"not {self.designation}")
        if self._orbit is not None:
            old_orbited = self._orbit.orbited
            if old_orbited is not None:
                old_orbited._orbiters.discard(self)
        self._orbit = value
        if value is not None:
            orbited = value.orbited
            if orbited is not None:
                orbited._orbiters.add(self)
        self._invalidate_temperature()

    # ========== DERIVED QUANTITIES ==========
    @property
    def local_scale(self) -> float:
        """Metres per local unit of this node's frame."""
        if self._local_scale is None:
            radius = self._shape.containing_radius
            # Point bodies express their children in metres
            self._local_scale = radius / config.LOCAL_SPACE_SCALE if radius > 0 else 1.0
        return self._local_scale

    @property
    def local_shape(self) -> Shape:
        """This node's shape in its own local units, centered at the origin."""
        return self._shape.scaled(1.0 / self.local_scale)

    @property
    def density(self) -> float:
        """Mean density in kg/m³ (0 for zero-volume shapes)."""
        if self._density is None:
            volume = self._shape.volume
            self._density = self._mass / volume if volume > 0 else 0.0
        return self._density

    @property
    def surface_gravity(self) -> float:
        """Gravitational acceleration at the containing radius, m/s²."""
        if self._surface_gravity is None:
            radius = self._shape.containing_radius
            self._surface_gravity = G * self._mass / radius**2 if radius > 0 else 0.0
        return self._surface_gravity

    @property
    def average_temperature(self) -> float:
        """
        Temperature in K: the hottest of the node's own temperature, its
        parent's average temperature, and radiative equilibrium with the
        body it orbits.
        """
        if self._average_temperature is None:
            candidates = [self._temperature or 0.0]
            parent = self.parent
            if parent is not None:
                candidates.append(parent.average_temperature)
            candidates.append(self._equilibrium_temperature())
            self._average_temperature = max(candidates)
        return self._average_temperature

    def _equilibrium_temperature(self) -> float:
        if self._orbit is None:
            return 0.0
        orbited = self._orbit.orbited
        if orbited is None or orbited.luminosity <= 0:
            return 0.0
        d = np.linalg.norm(self.relative_position(orbited))
        if d == 0:
            return 0.0
        flux = orbited.luminosity * (1.0 - self._albedo) / (16 * np.pi * STEFAN_BOLTZMANN * d**2)
        return float(flux**0.25)

    # ========== INVALIDATION ==========
    def _invalidate_temperature(self):
        stack = [self]
        while stack:
            node = stack.pop()
            node._average_temperature = None
            stack.extend(node._children)

    def _rederive_orbits(self, include_orbiters: bool):
        if self._orbit is not None:
            self._orbit = self._orbit.rederived()
        if include_orbiters:
            for orbiter in list(self._orbiters):
                if orbiter._orbit is not None and orbiter._orbit.orbited is self:
                    orbiter._orbit = orbiter._orbit.rederived()
                    orbiter._invalidate_temperature()

    def _assign_state(self, position, velocity):
        """Write propagated state without treating it as a perturbation."""
        self._position = as_vector(position, "position")
        self._velocity = as_vector(velocity, "velocity")
        self._invalidate_temperature()

    # ========== TREE STRUCTURE ==========
    def add_child(self, child: "Node") -> "Node":
        """
        Attach child to this node, detaching it from any previous parent.

        The child's position is kept as given and is interpreted in this
        node's frame. Use ``reparent`` to preserve physical location.
        """
        if child is self or any(n is child for n in self.path_from_root()):
            raise ValueError(f"Cannot add {child.designation} beneath itself")
        current = child._parent_ref() if child._parent_ref is not None else None
        if current is self:
            return child
        if current is not None:
            current._children.remove(child)
        child._parent_ref = weakref.ref(self)
        child._parent_id = self._id
        if child._store is None:
            child._store = self._store
        self._children.append(child)
        child._invalidate_temperature()
        return child

    def remove_child(self, child: "Node") -> "Node":
        """Detach child, leaving it as the root of its own tree at the origin."""
        if not any(c is child for c in self._children):
            raise ValueError(f"{child.designation} is not a child of {self.designation}")
        reparent(child, None)
        return child

    def children_of_kind(self, kind: str) -> List["Node"]:
        return [c for c in self._children if c.kind == kind]

    def all_children(self) -> Iterator["Node"]:
        """Depth-first iteration over all materialized descendants."""
        for child in self._children:
            yield child
            yield from child.all_children()

    def path_from_root(self) -> List["Node"]:
        """Ancestors of this node, root first, ending with the node itself."""
        path = [self]
        node = self.parent
        while node is not None:
            path.append(node)
            node = node.parent
        path.reverse()
        return path

    @property
    def root(self) -> "Node":
        return self.path_from_root()[0]

    @property
    def depth(self) -> int:
        return len(self.path_from_root()) - 1

    # ========== FRAME OPERATIONS ==========
    def translate_to(self, other: "Node", position=None) -> np.ndarray:
        """Express a position in this node's frame (default: its origin) in other's frame."""
        return translate(self, other, np.zeros(3) if position is None else position)

    def common_ancestor(self, other: "Node") -> Optional["Node"]:
        return find_common_ancestor(self, other)

    def reparent(self, new_parent: Optional["Node"]) -> "Node":
        reparent(self, new_parent)
        return self

    def distance_to(self, other: "Node") -> float:
        return distance(self, other)

    def relative_position(self, other: "Node") -> np.ndarray:
        """
        Displacement of this node's center from other's center, in metres.

        Raises
        ------
        NotInSameHierarchy
            If the nodes share no common ancestor.
        """
        if other is self:
            return np.zeros(3)
        return np.asarray(translate(self, other, np.zeros(3))) * other.local_scale

    def contains_position(self, local_position) -> bool:
        """Test whether a point in this node's local units lies inside its shape."""
        return self.local_shape.contains_point(local_position)

    def contains(self, other: "Node") -> bool:
        """
        Test whether other's center lies inside this node's shape.

        Works for any node of the same tree, not only descendants.
        """
        return self.contains_position(translate(other, self, np.zeros(3)))

    def parent_frame_shape(self) -> Shape:
        """This node's shape in its parent's local units, centered at position."""
        parent = self.parent
        scale = parent.local_scale if parent is not None else 1.0
        return self._shape.scaled(1.0 / scale).at_position(self._position)

    def get_containing_child(self, local_position) -> Optional["Node"]:
        """
        Deepest materialized descendant whose shape contains a point.

        Parameters
        ----------
        local_position : array-like
            Point in this node's local units.
        """
        p = as_vector(local_position, "local_position")
        for child in self._children:
            child_local = (p - child._position) * (self.local_scale / child.local_scale)
            if child.contains_position(child_local):
                return child.get_containing_child(child_local) or child
        return None

    # ========== GRAVITY ==========
    def gravity_from(self, other: "Node") -> np.ndarray:
        """Acceleration on this node due to other's mass, m/s²."""
        if other is self:
            return np.zeros(3)
        d_vec = other.relative_position(self)
        d = np.linalg.norm(d_vec)
        if d == 0 or other.mass == 0:
            return np.zeros(3)
        return G * other.mass / d**2 * (d_vec / d)

    def total_local_gravity(self) -> np.ndarray:
        """Summed acceleration from all materialized siblings, m/s²."""
        parent = self.parent
        if parent is None:
            return np.zeros(3)
        total = np.zeros(3)
        for sibling in parent.children:
            if sibling is not self:
                total += self.gravity_from(sibling)
        return total

    # ========== ORBITAL QUANTITIES ==========
    def hill_sphere_radius(self) -> float:
        """Hill sphere radius in m (0 without a resolvable orbit)."""
        from .orbit import hill_sphere_radius
        orbited = self._orbit.orbited if self._orbit is not None else None
        if orbited is None:
            return 0.0
        return hill_sphere_radius(self._orbit, self._mass, orbited.mass)

    def sphere_of_influence_radius(self) -> float:
        """Laplace sphere of influence radius in m (0 without a resolvable orbit)."""
        from .orbit import sphere_of_influence_radius
        orbited = self._orbit.orbited if self._orbit is not None else None
        if orbited is None:
            return 0.0
        return sphere_of_influence_radius(self._orbit, self._mass, orbited.mass)

    def roche_limit(self, satellite_density: float) -> float:
        """Fluid Roche limit for a satellite of the given density, m."""
        from .orbit import roche_limit
        return roche_limit(self._mass, satellite_density)

    # ========== STATIC METHODS ==========
    @staticmethod
    def _check_albedo(albedo: float):
        if not 0.0 <= albedo <= 1.0:
            validation_error(f"Albedo must be within [0, 1], got {albedo}")

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"Node(kind='{self._kind}', id='{self._id[:8]}', "
                f"children={len(self._children)})")

    def __str__(self):
        return (f"{self.designation}:\n"
                f"  kind     = {self._kind}\n"
                f"  position = {self._position.tolist()}\n"
                f"  radius   = {self._shape.containing_radius:.4e} m\n"
                f"  mass     = {self._mass:.4e} kg\n"
                f"  children = {len(self._children)}")


# ========== HIERARCHY FUNCTIONS ==========
def find_common_ancestor(a: Node, b: Node) -> Optional[Node]:
    """
    Lowest node that is an ancestor of (or equal to) both a and b.

    Returns None when the nodes belong to different trees.
    """
    common = None
    for x, y in zip(a.path_from_root(), b.path_from_root()):
        if x is not y:
            break
        common = x
    return common


def _to_ancestor(node: Node, ancestor: Node, position: np.ndarray) -> np.ndarray:
    """Map a position in node's frame up into ancestor's frame."""
    pos = position
    while node is not ancestor:
        parent = node.parent
        pos = node._position + pos * (node.local_scale / parent.local_scale)
        node = parent
    return pos


def translate(from_node: Node, to_node: Node, position):
    """
    Re-express a position given in from_node's frame in to_node's frame.

    Walks from_node up to the lowest common ancestor, then back down to
    to_node by inverting the same composition.

    Returns
    -------
    np.ndarray
        The translated position. When from_node is to_node the input is
        returned unchanged.

    Raises
    ------
    NotInSameHierarchy
        If the nodes share no common ancestor.
    """
    if from_node is to_node:
        return position
    ancestor = find_common_ancestor(from_node, to_node)
    if ancestor is None:
        raise NotInSameHierarchy(
            f"{from_node.designation} and {to_node.designation} "
            f"share no common ancestor")
    up = _to_ancestor(from_node, ancestor, as_vector(position, "position"))
    origin = _to_ancestor(to_node, ancestor, np.zeros(3))
    return (up - origin) * (ancestor.local_scale / to_node.local_scale)


def reparent(node: Node, new_parent: Optional[Node]):
    """
    Move node beneath new_parent.

    If new_parent is an ancestor of node the position is re-expressed in
    the new frame, so the node stays where it physically is. Otherwise the
    position is reset to the new parent's origin: this is the only operation
    that moves a node without a physical cause. A None parent detaches the
    node as a new root at the origin.

    Raises
    ------
    ValueError
        If new_parent is node itself or one of its descendants.
    """
    if new_parent is not None and any(n is node for n in new_parent.path_from_root()):
        raise ValueError(f"Cannot reparent {node.designation} beneath itself")

    old_parent = node.parent
    if new_parent is not None and old_parent is not None and any(
            n is new_parent for n in old_parent.path_from_root()):
        new_position = translate(old_parent, new_parent, node._position)
    else:
        new_position = np.zeros(3)

    if old_parent is not None:
        old_parent._children = [c for c in old_parent._children if c is not node]
    if new_parent is None:
        node._parent_ref = None
        node._parent_id = None
    else:
        new_parent._children.append(node)
        node._parent_ref = weakref.ref(new_parent)
        node._parent_id = new_parent.id
        if node._store is None:
            node._store = new_parent.store

    node._position = as_vector(new_position, "position")
    node._invalidate_temperature()
    node._rederive_orbits(include_orbiters=True)


def distance(a: Node, b: Node) -> float:
    """
    Distance between the centers of two nodes, in metres.

    Raises
    ------
    NotInSameHierarchy
        If the nodes share no common ancestor.
    """
    if a is b:
        return 0.0
    ancestor = find_common_ancestor(a, b)
    if ancestor is None:
        raise NotInSameHierarchy(
            f"{a.designation} and {b.designation} share no common ancestor")
    pa = _to_ancestor(a, ancestor, np.zeros(3))
    pb = _to_ancestor(b, ancestor, np.zeros(3))
    return float(np.linalg.norm(pa - pb) * ancestor.local_scale)

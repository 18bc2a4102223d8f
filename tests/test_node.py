"""
Test suite for Node and the frame-translation functions.

Tests cover:
- Local scale and local shape
- translate round trips across several levels and differing scales
- find_common_ancestor, distance and NotInSameHierarchy for disjoint trees
- reparent semantics (ancestor keeps physical location, otherwise origin)
- Tree operations and containment
- Cached derived quantities and their invalidation
- Gravity and temperature
"""

import numpy as np
import pytest

from kosmos import (Node, NotInSameHierarchy, Orbit, SinglePoint, Sphere,
                    config, distance, find_common_ancestor, reparent, translate)
from kosmos.utils import G

RTOL = 1e-9


@pytest.fixture
def tree():
    """
    Three-level tree with differing scales.

    root (r=1e20) -> a (r=1e15) -> a1 (r=1e9)
                  -> b (r=1e12) -> b1 (r=1e6)
    """
    root = Node('universe', Sphere(1e20), name='root')
    a = Node('galaxy', Sphere(1e15), parent=root, position=[1e5, 2e5, -3e5], name='a')
    a1 = Node('star_system', Sphere(1e9), parent=a, position=[-4e5, 0, 1e5], name='a1')
    b = Node('galaxy', Sphere(1e12), parent=root, position=[-2e5, 5e5, 0], name='b')
    b1 = Node('planet', Sphere(1e6), parent=b, position=[0, 7e5, 7e5], name='b1')
    return {'root': root, 'a': a, 'a1': a1, 'b': b, 'b1': b1}


class TestLocalFrame:
    """local_scale and local_shape."""

    def test_local_scale(self):
        """Local scale is containing radius over the local space constant."""
        node = Node(shape=Sphere(2e9))
        assert node.local_scale == pytest.approx(2e9 / config.LOCAL_SPACE_SCALE)

    def test_point_local_scale(self):
        """Point bodies use metres for their children."""
        assert Node(shape=SinglePoint()).local_scale == 1.0

    def test_local_shape_radius(self):
        """The local shape always spans the local space constant."""
        node = Node(shape=Sphere(123.0))
        assert node.local_shape.containing_radius == pytest.approx(config.LOCAL_SPACE_SCALE)

    def test_shape_position_ignored(self):
        """A node's shape is kept about its own center."""
        node = Node(shape=Sphere(1.0, [5, 5, 5]), position=[1, 2, 3])
        assert np.allclose(node.shape.position, 0)
        assert np.allclose(node.parent_frame_shape().position, [1, 2, 3])


class TestTranslate:
    """Frame translation."""

    def test_identity(self, tree):
        """Translating into the same node returns the input object."""
        p = np.array([1.0, 2.0, 3.0])
        assert translate(tree['a'], tree['a'], p) is p

    def test_child_to_parent(self, tree):
        """One step up applies offset and scale ratio."""
        a, a1 = tree['a'], tree['a1']
        p = translate(a1, a, [1e6, 0, 0])
        expected = a1.position + np.array([1e6, 0, 0]) * (a1.local_scale / a.local_scale)
        assert np.allclose(p, expected)

    def test_parent_to_child(self, tree):
        """The parent's view of the child's center is the child's origin."""
        a, a1 = tree['a'], tree['a1']
        assert np.allclose(translate(a, a1, a1.position), 0, atol=1e-6)

    def test_translate_to(self, tree):
        """A node's origin seen from its parent is its position."""
        a, a1 = tree['a'], tree['a1']
        assert np.allclose(a1.translate_to(a), a1.position)
        assert np.allclose(a1.translate_to(a, [1e6, 0, 0]), translate(a1, a, [1e6, 0, 0]))

    @pytest.mark.parametrize("src,dst", [
        ('a1', 'b1'), ('b1', 'a1'), ('a1', 'root'), ('root', 'b1'), ('a', 'b'),
    ])
    def test_round_trip(self, tree, src, dst):
        """translate(B, A, translate(A, B, p)) recovers p."""
        p = np.array([3e5, -2e5, 1e5])
        there = translate(tree[src], tree[dst], p)
        back = translate(tree[dst], tree[src], there)
        assert np.allclose(back, p, rtol=RTOL, atol=1e-3)

    @pytest.mark.parametrize("root_radius", [1e9, 1e20])
    def test_round_trip_precision_follows_scale_spread(self, root_radius):
        """Round-trip error grows with the ancestor-to-leaf scale ratio."""
        root = Node('universe', Sphere(root_radius))
        a = Node('satellite', Sphere(1e3), parent=root, position=[1.0, 2.0, 0.0])
        b = Node('satellite', Sphere(1e3), parent=root, position=[1.0, 2.0, 3.0])
        p = np.array([123.0, -45.0, 6.0])
        back = translate(b, a, translate(a, b, p))
        spread = root.local_scale / a.local_scale
        assert np.allclose(back, p, rtol=0, atol=1e-14 * spread * 4)

    def test_disjoint_trees(self, tree):
        """Nodes without a common ancestor cannot be related."""
        other = Node('universe', Sphere(1e20))
        with pytest.raises(NotInSameHierarchy):
            translate(tree['a1'], other, np.zeros(3))


class TestCommonAncestor:
    """find_common_ancestor."""

    def test_siblings(self, tree):
        """Cousins meet at the root."""
        assert find_common_ancestor(tree['a1'], tree['b1']) is tree['root']

    def test_ancestor_of_self(self, tree):
        """An ancestor is its own common ancestor with a descendant."""
        assert find_common_ancestor(tree['a'], tree['a1']) is tree['a']
        assert tree['a1'].common_ancestor(tree['a1']) is tree['a1']

    def test_disjoint(self, tree):
        """Separate trees have no common ancestor."""
        assert find_common_ancestor(tree['a'], Node()) is None


class TestDistance:
    """distance and relative_position."""

    def test_siblings(self):
        """Distance between siblings is scaled by the parent's local scale."""
        root = Node(shape=Sphere(1e6))
        a = Node(parent=root, position=[0, 0, 0])
        b = Node(parent=root, position=[3, 4, 0])
        assert distance(a, b) == pytest.approx(5.0)
        assert a.distance_to(b) == pytest.approx(5.0)

    def test_self(self, tree):
        """A node is at zero distance from itself."""
        assert distance(tree['a1'], tree['a1']) == 0.0

    def test_across_levels(self, tree):
        """Distance matches the norm of the relative position in metres."""
        a1, b1 = tree['a1'], tree['b1']
        rel = a1.relative_position(b1)
        assert distance(a1, b1) == pytest.approx(np.linalg.norm(rel), rel=RTOL)
        assert distance(a1, b1) == pytest.approx(distance(b1, a1), rel=RTOL)

    def test_disjoint_trees(self):
        """Disjoint trees raise rather than return a number."""
        root_a = Node('universe', Sphere(10.0))
        root_b = Node('universe', Sphere(10.0))
        a = Node('galaxy', Sphere(1.0), parent=root_a)
        b = Node('galaxy', Sphere(1.0), parent=root_b)
        with pytest.raises(NotInSameHierarchy):
            distance(a, b)


class TestReparent:
    """reparent semantics."""

    def test_to_ancestor_keeps_location(self, tree):
        """Moving under an ancestor keeps the physical location."""
        root, a1, b1 = tree['root'], tree['a1'], tree['b1']
        before = distance(a1, b1)
        reparent(a1, root)
        assert a1.parent is root
        assert a1 not in tree['a'].children
        assert distance(a1, b1) == pytest.approx(before, rel=1e-6)

    def test_to_non_ancestor_resets(self, tree):
        """Moving elsewhere resets to the new parent's origin."""
        a1, b = tree['a1'], tree['b']
        a1.reparent(b)
        assert a1.parent is b
        assert np.allclose(a1.position, 0)

    def test_detach(self, tree):
        """A None parent detaches the node as a new root."""
        a = tree['a']
        reparent(a, None)
        assert a.parent is None
        assert find_common_ancestor(a, tree['b']) is None

    def test_beneath_itself(self, tree):
        """A node cannot become its own descendant."""
        with pytest.raises(ValueError):
            reparent(tree['a'], tree['a1'])
        with pytest.raises(ValueError):
            reparent(tree['a'], tree['a'])


class TestTreeOperations:
    """Children, paths and containment."""

    def test_path_and_depth(self, tree):
        """Paths run root first."""
        a1 = tree['a1']
        assert [n.name for n in a1.path_from_root()] == ['root', 'a', 'a1']
        assert a1.depth == 2
        assert a1.root is tree['root']

    def test_all_children(self, tree):
        """Descendants are visited depth first."""
        names = [n.name for n in tree['root'].all_children()]
        assert names == ['a', 'a1', 'b', 'b1']

    def test_children_of_kind(self, tree):
        """children_of_kind filters direct children."""
        assert len(tree['root'].children_of_kind('galaxy')) == 2

    def test_add_child_moves(self, tree):
        """add_child detaches from the previous parent."""
        a, b, a1 = tree['a'], tree['b'], tree['a1']
        b.add_child(a1)
        assert a1 not in a.children
        assert a1.parent is b

    def test_remove_child(self, tree):
        """remove_child detaches the child."""
        a, a1 = tree['a'], tree['a1']
        a.remove_child(a1)
        assert a1.parent is None
        with pytest.raises(ValueError):
            a.remove_child(a1)

    def test_contains(self, tree):
        """Containment tests centers, for any node of the tree."""
        assert tree['a'].contains(tree['a1'])
        assert not tree['a1'].contains(tree['a'])
        assert not tree['a'].contains(tree['b1'])

    def test_get_containing_child(self, tree):
        """The deepest materialized containing node is found."""
        root, a, a1 = tree['root'], tree['a'], tree['a1']
        point = translate(a1, root, np.zeros(3))
        assert root.get_containing_child(point) is a1
        assert root.get_containing_child(translate(a, root, [9e5, 0, 0])) is a
        assert root.get_containing_child([9e5, -9e5, 0]) is None

    def test_designation(self):
        """Unnamed nodes are titled by kind and short id."""
        node = Node('nebula', node_id='abcdef0123456789')
        assert node.designation == 'nebula abcdef01'
        node.name = 'Crab'
        assert node.designation == 'Crab'


class TestDerivedQuantities:
    """Cached values and invalidation."""

    def test_density(self):
        """Density is mass over volume."""
        node = Node(shape=Sphere(1.0), mass=4 / 3 * np.pi)
        assert node.density == pytest.approx(1.0)

    def test_density_invalidated_by_mass(self):
        """Changing mass refreshes density."""
        node = Node(shape=Sphere(1.0), mass=1.0)
        _ = node.density
        node.mass = 2.0
        assert node.density == pytest.approx(2.0 / (4 / 3 * np.pi))

    def test_shape_change(self):
        """Changing shape refreshes local scale and surface gravity."""
        node = Node(shape=Sphere(1e6), mass=1e20)
        g_before = node.surface_gravity
        node.shape = Sphere(2e6)
        assert node.local_scale == pytest.approx(2.0)
        assert node.surface_gravity == pytest.approx(g_before / 4)

    def test_surface_gravity(self):
        """Surface gravity is GM/R²."""
        node = Node(shape=Sphere(6.371e6), mass=5.972e24)
        assert node.surface_gravity == pytest.approx(9.82, rel=1e-2)

    def test_zero_volume(self):
        """Point bodies report zero density and gravity."""
        node = Node(shape=SinglePoint(), mass=1e30)
        assert node.density == 0.0
        assert node.surface_gravity == 0.0

    def test_invalid_albedo(self):
        """Albedo outside [0, 1] is rejected."""
        with pytest.raises(ValueError):
            Node(albedo=1.5)
        node = Node()
        with pytest.raises(ValueError):
            node.albedo = -0.1

    def test_position_readonly(self):
        """Positions are changed through the setter only."""
        node = Node(position=[1, 2, 3])
        with pytest.raises(ValueError):
            node.position[0] = 0.0


class TestTemperature:
    """average_temperature."""

    def test_inherits_parent(self):
        """A cold child takes its parent's temperature."""
        root = Node(shape=Sphere(1.0), temperature=2.725)
        child = Node(parent=root)
        assert child.average_temperature == pytest.approx(2.725)

    def test_own_temperature_wins(self):
        """A hot child keeps its own temperature."""
        root = Node(shape=Sphere(1.0), temperature=2.725)
        child = Node(parent=root, temperature=5778.0)
        assert child.average_temperature == 5778.0

    def test_parent_change_propagates(self):
        """Changing an ancestor's temperature refreshes descendants."""
        root = Node(shape=Sphere(1.0), temperature=3.0)
        mid = Node(shape=Sphere(0.1), parent=root)
        leaf = Node(parent=mid)
        assert leaf.average_temperature == pytest.approx(3.0)
        root.temperature = 10.0
        assert leaf.average_temperature == pytest.approx(10.0)

    def test_radiative_equilibrium(self):
        """An orbiting body is heated by its luminous primary."""
        system = Node('star_system', Sphere(1.5e13))
        star = Node('star', Sphere(6.957e8), parent=system, mass=1.989e30,
                    luminosity=3.828e26)
        earth = Node('planet', Sphere(6.371e6), parent=system,
                     position=[1.496e11 / system.local_scale, 0, 0], mass=5.972e24)
        Orbit.circular(earth, star)
        # ~278 K for a black body at 1 AU
        assert earth.average_temperature == pytest.approx(278.6, rel=1e-2)
        star.luminosity = 0.0
        assert earth.average_temperature == 0.0


class TestGravity:
    """gravity_from and total_local_gravity."""

    def test_points_toward_source(self):
        """Acceleration is GM/d² toward the other node."""
        root = Node(shape=Sphere(1e6))
        a = Node(parent=root)
        b = Node(parent=root, position=[10, 0, 0], mass=1e10)
        acc = a.gravity_from(b)
        assert acc[0] == pytest.approx(G * 1e10 / 100)
        assert acc[1] == 0 and acc[2] == 0

    def test_self_and_massless(self):
        """Self and massless sources exert nothing."""
        root = Node(shape=Sphere(1e6))
        a = Node(parent=root, mass=1.0)
        b = Node(parent=root, position=[1, 0, 0])
        assert np.allclose(a.gravity_from(a), 0)
        assert np.allclose(a.gravity_from(b), 0)

    def test_total_local_gravity(self):
        """Opposite siblings of equal mass cancel."""
        root = Node(shape=Sphere(1e6))
        center = Node(parent=root)
        Node(parent=root, position=[5, 0, 0], mass=1e9)
        Node(parent=root, position=[-5, 0, 0], mass=1e9)
        assert np.allclose(center.total_local_gravity(), 0)
        assert np.allclose(Node().total_local_gravity(), 0)

    def test_disjoint_trees(self):
        """Gravity across disjoint trees raises."""
        root_a, root_b = Node(shape=Sphere(1.0)), Node(shape=Sphere(1.0))
        a = Node(parent=root_a)
        b = Node(parent=root_b, mass=1.0)
        with pytest.raises(NotInSameHierarchy):
            a.gravity_from(b)

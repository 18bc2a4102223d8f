"""
Test suite for bounding shapes.

Tests cover:
- Volumes and containing radii
- Point containment, including degenerate ellipsoids and shells
- Intersection in both operand orders
- at_position / scaled immutability
"""

import numpy as np
import pytest

from kosmos import Ellipsoid, HollowSphere, SinglePoint, Sphere


class TestVolumes:
    """Volume and containing radius."""

    def test_sphere(self):
        """Sphere volume is 4/3 π r³."""
        s = Sphere(2.0)
        assert s.volume == pytest.approx(4 / 3 * np.pi * 8)
        assert s.containing_radius == 2.0

    def test_ellipsoid(self):
        """Ellipsoid volume uses the product of semi-axes."""
        e = Ellipsoid(1.0, 2.0, 3.0)
        assert e.volume == pytest.approx(4 / 3 * np.pi * 6)
        assert e.containing_radius == 3.0

    def test_hollow_sphere(self):
        """Shell volume excludes the cavity."""
        h = HollowSphere(1.0, 2.0)
        assert h.volume == pytest.approx(4 / 3 * np.pi * 7)
        assert h.containing_radius == 2.0

    def test_point(self):
        """A point has no extent."""
        p = SinglePoint()
        assert p.volume == 0.0
        assert p.containing_radius == 0.0


class TestContainment:
    """contains_point."""

    def test_sphere_boundary(self):
        """The surface counts as inside."""
        s = Sphere(1.0, [1, 0, 0])
        assert s.contains_point([2, 0, 0])
        assert not s.contains_point([2.1, 0, 0])

    def test_ellipsoid_axes(self):
        """Points are scaled by the semi-axes."""
        e = Ellipsoid(1.0, 2.0, 3.0)
        assert e.contains_point([0, 0, 2.9])
        assert not e.contains_point([1.1, 0, 0])

    def test_flat_ellipsoid(self):
        """A zero axis confines points to the plane."""
        e = Ellipsoid(1.0, 1.0, 0.0)
        assert e.contains_point([0.5, 0, 0])
        assert not e.contains_point([0.5, 0, 0.1])

    def test_hollow_sphere_cavity(self):
        """The cavity is not part of the shell."""
        h = HollowSphere(1.0, 2.0)
        assert not h.contains_point([0.5, 0, 0])
        assert h.contains_point([1.5, 0, 0])

    def test_point(self):
        """A point contains only itself."""
        p = SinglePoint([1, 2, 3])
        assert p.contains_point([1, 2, 3])
        assert not p.contains_point([1, 2, 3.001])


class TestIntersection:
    """intersects in both orders."""

    def test_spheres(self):
        """Spheres touching at one point intersect."""
        a = Sphere(1.0)
        assert a.intersects(Sphere(1.0, [2, 0, 0]))
        assert not a.intersects(Sphere(1.0, [2.5, 0, 0]))

    def test_point_and_sphere(self):
        """Point tests are symmetric."""
        s = Sphere(1.0)
        p = SinglePoint([0.5, 0, 0])
        assert s.intersects(p)
        assert p.intersects(s)
        assert not Sphere(0.1).intersects(p)

    def test_sphere_in_cavity(self):
        """A sphere inside the cavity misses the shell."""
        h = HollowSphere(10.0, 20.0)
        inner = Sphere(1.0, [2, 0, 0])
        assert not h.intersects(inner)
        assert not inner.intersects(h)
        assert h.intersects(Sphere(1.0, [9.5, 0, 0]))

    def test_nested_shells(self):
        """A shell inside another's cavity misses it."""
        outer = HollowSphere(10.0, 20.0)
        assert not outer.intersects(HollowSphere(1.0, 5.0))
        assert outer.intersects(HollowSphere(5.0, 12.0))

    def test_ellipsoid_and_sphere(self):
        """A sphere beside a flat disc misses it."""
        disc = Ellipsoid(10.0, 10.0, 0.5)
        assert not disc.intersects(Sphere(1.0, [0, 0, 5]))
        assert not Sphere(1.0, [0, 0, 5]).intersects(disc)
        assert disc.intersects(Sphere(1.0, [9, 0, 0]))


class TestTransforms:
    """at_position and scaled."""

    def test_at_position_returns_new(self):
        """Moving a shape leaves the original untouched."""
        s = Sphere(1.0)
        moved = s.at_position([1, 1, 1])
        assert np.allclose(s.position, 0)
        assert np.allclose(moved.position, [1, 1, 1])
        assert moved.radius == 1.0

    def test_scaled(self):
        """Scaling multiplies lengths and center."""
        h = HollowSphere(1.0, 2.0, [1, 0, 0]).scaled(10.0)
        assert h.inner_radius == 10.0
        assert h.outer_radius == 20.0
        assert np.allclose(h.position, [10, 0, 0])

    def test_equality(self):
        """Equal type, dimensions and position compare equal."""
        assert Ellipsoid(1, 2, 3) == Ellipsoid(1, 2, 3)
        assert Ellipsoid(1, 2, 3) != Sphere(3)

    def test_position_readonly(self):
        """Positions cannot be written through."""
        s = Sphere(1.0)
        with pytest.raises(ValueError):
            s.position[0] = 1.0


class TestValidation:
    """Constructor checks."""

    def test_negative_radius(self):
        """Negative radii are rejected."""
        with pytest.raises(ValueError):
            Sphere(-1.0)

    def test_inverted_shell(self):
        """Inner radius above outer radius is rejected."""
        with pytest.raises(ValueError):
            HollowSphere(2.0, 1.0)

    def test_negative_axis(self):
        """Negative ellipsoid axes are rejected."""
        with pytest.raises(ValueError):
            Ellipsoid(1.0, -1.0, 1.0)

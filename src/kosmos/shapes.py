"""
Bounding volumes for nodes of the spatial hierarchy.

Every shape carries a center ``position`` and answers the same questions:
its volume, the radius of the smallest sphere about its center that contains
it, whether it contains a point, and whether it intersects another shape.
Shapes are immutable; ``at_position`` and ``scaled`` return new instances.
"""

import numpy as np

from .utils import as_vector, readonly


class Shape:
    """Base class for bounding volumes."""

    def __init__(self, position=None):
        self._position = readonly(as_vector(position, "position"))

    # ========== PROPERTY ACCESS ==========
    @property
    def position(self) -> np.ndarray:
        return self._position

    @property
    def volume(self) -> float:
        raise NotImplementedError

    @property
    def containing_radius(self) -> float:
        raise NotImplementedError

    # ========== GEOMETRY ==========
    def contains_point(self, point) -> bool:
        raise NotImplementedError

    def intersects(self, other: "Shape") -> bool:
        """
        Test for overlap with another shape.

        The general case compares containing spheres. Subclasses with an
        exact test override this, and point-like or hollow shapes are
        delegated to so either operand order gives the same answer.
        """
        if isinstance(other, (SinglePoint, HollowSphere)):
            return other.intersects(self)
        d = np.linalg.norm(other.position - self.position)
        return bool(d <= self.containing_radius + other.containing_radius)

    def at_position(self, position) -> "Shape":
        raise NotImplementedError

    def scaled(self, factor: float) -> "Shape":
        """Return this shape with all lengths and its center multiplied by factor."""
        raise NotImplementedError

    # ========== SPECIAL METHODS ==========
    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return (np.allclose(self.position, other.position)
                and np.allclose(self._dimensions(), other._dimensions()))

    def __hash__(self):
        # Equality is tolerance based, so only the type is hashed
        return hash(type(self).__name__)

    def _dimensions(self) -> tuple:
        return ()


class SinglePoint(Shape):
    """A dimensionless point. Used for point masses such as black holes."""

    @property
    def volume(self) -> float:
        return 0.0

    @property
    def containing_radius(self) -> float:
        return 0.0

    def contains_point(self, point) -> bool:
        return bool(np.array_equal(as_vector(point), self.position))

    def intersects(self, other: Shape) -> bool:
        return other.contains_point(self.position)

    def at_position(self, position) -> "SinglePoint":
        return SinglePoint(position)

    def scaled(self, factor: float) -> "SinglePoint":
        return SinglePoint(self.position * factor)

    def __repr__(self):
        return f"SinglePoint(position={self.position.tolist()})"


class Sphere(Shape):
    """A solid sphere."""

    def __init__(self, radius: float, position=None):
        if radius < 0:
            raise ValueError(f"Sphere radius must be non-negative, got {radius}")
        super().__init__(position)
        self._radius = float(radius)

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def volume(self) -> float:
        return 4.0 / 3.0 * np.pi * self._radius**3

    @property
    def containing_radius(self) -> float:
        return self._radius

    def contains_point(self, point) -> bool:
        d = np.linalg.norm(as_vector(point) - self.position)
        return bool(d <= self._radius)

    def intersects(self, other: Shape) -> bool:
        if isinstance(other, Ellipsoid):
            return other.intersects(self)
        return super().intersects(other)

    def at_position(self, position) -> "Sphere":
        return Sphere(self._radius, position)

    def scaled(self, factor: float) -> "Sphere":
        return Sphere(self._radius * factor, self.position * factor)

    def _dimensions(self) -> tuple:
        return (self._radius,)

    def __repr__(self):
        return f"Sphere(radius={self._radius}, position={self.position.tolist()})"


class Ellipsoid(Shape):
    """
    An axis-aligned solid ellipsoid.

    Parameters
    ----------
    axis_x, axis_y, axis_z : float
        Semi-axis lengths along the frame axes.
    position : array-like, optional
        Center of the ellipsoid.
    """

    def __init__(self, axis_x: float, axis_y: float, axis_z: float, position=None):
        axes = np.array([axis_x, axis_y, axis_z], dtype=float)
        if np.any(axes < 0):
            raise ValueError(f"Ellipsoid axes must be non-negative, got {axes.tolist()}")
        super().__init__(position)
        self._axes = readonly(axes)

    @property
    def axes(self) -> np.ndarray:
        return self._axes

    @property
    def volume(self) -> float:
        return 4.0 / 3.0 * np.pi * float(np.prod(self._axes))

    @property
    def containing_radius(self) -> float:
        return float(np.max(self._axes))

    def contains_point(self, point) -> bool:
        d = as_vector(point) - self.position
        if np.any(self._axes == 0):
            # Degenerate axes collapse the ellipsoid onto a plane or line
            mask = self._axes == 0
            if np.any(d[mask] != 0):
                return False
            return bool(np.sum((d[~mask] / self._axes[~mask])**2) <= 1.0)
        return bool(np.sum((d / self._axes)**2) <= 1.0)

    def intersects(self, other: Shape) -> bool:
        if isinstance(other, (SinglePoint, HollowSphere)):
            return other.intersects(self)
        d = np.linalg.norm(other.position - self.position)
        if d > self.containing_radius + other.containing_radius:
            return False
        # Inside the bounding spheres: accept when the other center is inside
        # the ellipsoid grown by the other's radius along every axis
        grown = Ellipsoid(*(self._axes + other.containing_radius), position=self.position)
        return grown.contains_point(other.position)

    def at_position(self, position) -> "Ellipsoid":
        return Ellipsoid(*self._axes, position=position)

    def scaled(self, factor: float) -> "Ellipsoid":
        return Ellipsoid(*(self._axes * factor), position=self.position * factor)

    def _dimensions(self) -> tuple:
        return tuple(self._axes)

    def __repr__(self):
        return (f"Ellipsoid(axes={self._axes.tolist()}, "
                f"position={self.position.tolist()})")


class HollowSphere(Shape):
    """
    A spherical shell between an inner and an outer radius.

    Used for diffuse belts and clouds that surround, but do not fill, the
    center of a region.
    """

    def __init__(self, inner_radius: float, outer_radius: float, position=None):
        if inner_radius < 0 or outer_radius < 0:
            raise ValueError("HollowSphere radii must be non-negative")
        if inner_radius > outer_radius:
            raise ValueError(
                f"inner_radius ({inner_radius}) must not exceed "
                f"outer_radius ({outer_radius})")
        super().__init__(position)
        self._inner = float(inner_radius)
        self._outer = float(outer_radius)

    @property
    def inner_radius(self) -> float:
        return self._inner

    @property
    def outer_radius(self) -> float:
        return self._outer

    @property
    def volume(self) -> float:
        return 4.0 / 3.0 * np.pi * (self._outer**3 - self._inner**3)

    @property
    def containing_radius(self) -> float:
        return self._outer

    def contains_point(self, point) -> bool:
        d = np.linalg.norm(as_vector(point) - self.position)
        return bool(self._inner <= d <= self._outer)

    def intersects(self, other: Shape) -> bool:
        if isinstance(other, SinglePoint):
            return self.contains_point(other.position)
        d = np.linalg.norm(other.position - self.position)
        r = other.containing_radius
        if isinstance(other, HollowSphere):
            # Two shells miss only when one sits entirely in the other's cavity
            if d + other.outer_radius < self._inner:
                return False
            if d + self._outer < other.inner_radius:
                return False
            return bool(d <= self._outer + other.outer_radius)
        return bool(d + r >= self._inner and d - r <= self._outer)

    def at_position(self, position) -> "HollowSphere":
        return HollowSphere(self._inner, self._outer, position)

    def scaled(self, factor: float) -> "HollowSphere":
        return HollowSphere(self._inner * factor, self._outer * factor,
                            self.position * factor)

    def _dimensions(self) -> tuple:
        return (self._inner, self._outer)

    def __repr__(self):
        return (f"HollowSphere(inner_radius={self._inner}, "
                f"outer_radius={self._outer}, position={self.position.tolist()})")

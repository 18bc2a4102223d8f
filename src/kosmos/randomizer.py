"""
Injectable source of random variates.

A ``Randomizer`` is passed explicitly to everything that samples (the
population engine, the kind catalog, orbit construction), so a fixed seed
reproduces a generated hierarchy exactly.
"""

from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .shapes import Shape


class Randomizer:
    """
    Random-variate capability backed by ``numpy.random.Generator``.

    Parameters
    ----------
    seed : int or numpy.random.Generator, optional
        Seed for a new PCG64 generator, or an existing generator to wrap.
    """

    def __init__(self, seed=None):
        if isinstance(seed, np.random.Generator):
            self._gen = seed
        else:
            self._gen = np.random.default_rng(seed)

    @property
    def generator(self) -> np.random.Generator:
        return self._gen

    # ========== SCALAR VARIATES ==========
    def uniform(self, low: float = 0.0, high: float = 1.0) -> float:
        return float(self._gen.uniform(low, high))

    def normal(self, mean: float = 0.0, sd: float = 1.0) -> float:
        return float(self._gen.normal(mean, sd))

    def lognormal(self, mean: float = 0.0, sigma: float = 1.0) -> float:
        """Sample whose natural logarithm is normal with the given mean and sigma."""
        return float(self._gen.lognormal(mean, sigma))

    def bernoulli(self, p: float) -> bool:
        """Single trial succeeding with probability p (clipped to [0, 1])."""
        if p <= 0:
            return False
        if p >= 1:
            return True
        return bool(self._gen.random() < p)

    def angle(self) -> float:
        """Uniform angle in [0, 2π)."""
        return float(self._gen.uniform(0.0, 2 * np.pi))

    # ========== CHOICE ==========
    def weighted_index(self, weights: Sequence[float]) -> int:
        """
        Draw an index with probability proportional to its weight.

        Raises
        ------
        ValueError
            If weights is empty, contains negative values, or sums to zero.
        """
        w = np.asarray(weights, dtype=float)
        if w.size == 0:
            raise ValueError("weights must not be empty")
        if np.any(w < 0):
            raise ValueError("weights must be non-negative")
        total = w.sum()
        if not total > 0:
            raise ValueError("weights must have a positive sum")
        # Inverse-CDF draw keeps a single uniform per choice
        cdf = np.cumsum(w / total)
        idx = int(np.searchsorted(cdf, self._gen.random(), side='right'))
        return min(idx, w.size - 1)

    def choice(self, items: Sequence, weights: Optional[Sequence[float]] = None):
        """Pick one element of items, uniformly or by weight."""
        if len(items) == 0:
            raise ValueError("items must not be empty")
        if weights is None:
            return items[int(self._gen.integers(len(items)))]
        if len(weights) != len(items):
            raise ValueError("weights and items must have the same length")
        return items[self.weighted_index(weights)]

    # ========== VECTORS ==========
    def unit_vector(self) -> np.ndarray:
        """Direction uniformly distributed over the unit sphere."""
        while True:
            v = self._gen.normal(size=3)
            n = np.linalg.norm(v)
            if n > 0:
                return v / n

    def vector_in_sphere(self, radius: float) -> np.ndarray:
        """Point uniformly distributed in a ball of the given radius about the origin."""
        if radius <= 0:
            return np.zeros(3)
        return self.unit_vector() * radius * self._gen.random()**(1.0 / 3.0)

    def point_in_shape(self, shape: "Shape", attempts: int = 100) -> Optional[np.ndarray]:
        """
        Rejection-sample a point inside shape.

        Returns
        -------
        np.ndarray or None
            A point in the shape's frame, or None if every attempt fell
            outside (possible for thin shells).
        """
        from .shapes import Ellipsoid
        radius = shape.containing_radius
        if radius == 0:
            return np.array(shape.position, dtype=float)
        for _ in range(attempts):
            if isinstance(shape, Ellipsoid):
                # a stretched unit ball is uniform in the ellipsoid
                p = shape.position + self.vector_in_sphere(1.0) * shape.axes
            else:
                p = shape.position + self.vector_in_sphere(radius)
            if shape.contains_point(p):
                return p
        return None

    def __repr__(self):
        return f"Randomizer({self._gen.bit_generator.__class__.__name__})"

"""
Two-body Keplerian orbits.

An ``Orbit`` holds two views of one physical configuration: the classical
elements (periapsis, eccentricity, inclination, longitude of the ascending
node, argument of periapsis, true anomaly) and the epoch state vectors of
the orbiting body relative to the orbited body, in metres and m/s. Either
view is derived from the other on construction.

Propagation uses the universal-variable formulation (Curtis, Orbital
Mechanics for Engineering Students, Algorithms 3.3 and 3.4), which covers
elliptical, parabolic and hyperbolic orbits with one code path.
"""

import warnings
import weakref
from typing import Optional, Tuple, TYPE_CHECKING

import numpy as np

from .config import config
from .errors import (ConvergenceWarning, InvalidOrbitalParameter,
                     NotInSameHierarchy, UnresolvedReference)
from .node import translate
from .randomizer import Randomizer
from .utils import G, as_vector, readonly, wrap_angle

if TYPE_CHECKING:
    from .node import Node


# Coefficient of the fluid-body Roche limit, d = k·(M/ρ)^(1/3)
ROCHE_LIMIT_CONSTANT = 0.8947


# ========== STUMPFF FUNCTIONS ==========
def stumpff_c(z: float) -> float:
    """
    Stumpff function C(z).

    Uses the trigonometric form for z > 0 (elliptical), the hyperbolic form
    for z < 0 (hyperbolic) and the series about zero near the parabolic
    boundary, where both closed forms lose precision.
    """
    if abs(z) < config.SNAP_TO_ZERO_THRESHOLD:
        return 0.5 - z / 24.0 + z * z / 720.0
    if z > 0:
        return (1.0 - np.cos(np.sqrt(z))) / z
    return (np.cosh(np.sqrt(-z)) - 1.0) / (-z)


def stumpff_s(z: float) -> float:
    """Stumpff function S(z). Branches as for ``stumpff_c``."""
    if abs(z) < config.SNAP_TO_ZERO_THRESHOLD:
        return 1.0 / 6.0 - z / 120.0 + z * z / 5040.0
    if z > 0:
        sz = np.sqrt(z)
        return (sz - np.sin(sz)) / sz**3
    sz = np.sqrt(-z)
    return (np.sinh(sz) - sz) / sz**3


# ========== ORBIT ==========
class Orbit:
    """
    A two-body orbit of one node about another.

    Orbit is immutable. Construct it with ``from_elements``,
    ``from_state_vectors``, ``from_eccentricity``, ``from_period`` or
    ``circular``; the plain constructor is internal.

    Frames
    ------
    State vectors are relative to the orbited body's center, in metres and
    m/s, in the axis orientation shared by every frame of the hierarchy.
    """

    # ========== CONSTRUCTION ==========
    def __init__(self, r0, v0, mu: float, elements: Tuple[float, ...],
                 orbiting: Optional["Node"] = None,
                 orbited: Optional["Node"] = None,
                 explicit_mu: bool = False):
        self._r0 = readonly(as_vector(r0, "r0"))
        self._v0 = readonly(as_vector(v0, "v0"))
        self._mu = float(mu)
        (self._periapsis, self._e, self._i,
         self._raan, self._w, self._nu) = (float(x) for x in elements)
        self._explicit_mu = explicit_mu

        self._orbiting_ref = weakref.ref(orbiting) if orbiting is not None else None
        self._orbiting_id = orbiting.id if orbiting is not None else None
        self._orbited_ref = weakref.ref(orbited) if orbited is not None else None
        self._orbited_id = orbited.id if orbited is not None else None
        self._store = None
        for node in (orbiting, orbited):
            if node is not None and node.store is not None:
                self._store = node.store
                break

    @classmethod
    def from_elements(cls, periapsis: float, eccentricity: float,
                      inclination: float, angle_ascending: float,
                      argument_periapsis: float, true_anomaly: float,
                      orbiting: Optional["Node"] = None,
                      orbited: Optional["Node"] = None,
                      mu: Optional[float] = None) -> "Orbit":
        """
        Create an orbit from classical elements.

        Parameters
        ----------
        periapsis : float
            Periapsis distance, m (> 0)
        eccentricity : float
            Eccentricity (>= 0)
        inclination : float
            Inclination, rad, in [0, π)
        angle_ascending : float
            Longitude of the ascending node, rad, in [0, 2π)
        argument_periapsis : float
            Argument of periapsis, rad, in [0, 2π)
        true_anomaly : float
            True anomaly at epoch, rad, in [0, 2π)
        orbiting, orbited : Node, optional
            Bodies of the orbit. Required for applying the orbit to the tree.
        mu : float, optional
            Standard gravitational parameter, m³/s². Defaults to
            G·(m_orbited + m_orbiting).

        Raises
        ------
        InvalidOrbitalParameter
            If any element lies outside its valid range, or mu is not positive.
        """
        cls._validate_elements(periapsis, eccentricity, inclination,
                               angle_ascending, argument_periapsis, true_anomaly)
        mu_value = cls._resolve_mu(mu, orbiting, orbited)
        elements = (periapsis, eccentricity, inclination,
                    angle_ascending, argument_periapsis, true_anomaly)
        r0, v0 = _state_from_elements(*elements, mu_value)
        return cls(r0, v0, mu_value, elements, orbiting, orbited,
                   explicit_mu=mu is not None)

    @classmethod
    def from_state_vectors(cls, r, v, orbiting: Optional["Node"] = None,
                           orbited: Optional["Node"] = None,
                           mu: Optional[float] = None) -> "Orbit":
        """
        Create an orbit from a relative position (m) and velocity (m/s).

        Elements follow from the angular momentum and eccentricity vectors,
        measured in the orbital plane against the line of nodes
        (Flores & Fantino, Advances in Space Research, v.75, pp.4910).
        The given vectors are kept as the epoch state, so re-deriving them
        is exact.

        Raises
        ------
        InvalidOrbitalParameter
            If r is zero, r and v are parallel (no orbital plane), or mu is
            not positive.
        """
        mu_value = cls._resolve_mu(mu, orbiting, orbited)
        rvec = as_vector(r, "r")
        vvec = as_vector(v, "v")
        r_mag = np.linalg.norm(rvec)
        if r_mag == 0:
            raise InvalidOrbitalParameter("Relative position must be non-zero")
        # angular momentum h = r × v
        hvec = np.cross(rvec, vvec)
        h_mag = np.linalg.norm(hvec)
        if h_mag == 0:
            raise InvalidOrbitalParameter(
                "Position and velocity are parallel; rectilinear motion has no orbital plane")
        hhat = hvec / h_mag
        i = float(np.arctan2(np.hypot(hvec[0], hvec[1]), hvec[2]))
        if i < config.SNAP_TO_EQUATORIAL or np.pi - i < config.SNAP_TO_EQUATORIAL:
            # line of nodes undefined, measure from the x axis
            raan = 0.0
        else:
            raan = float(np.arctan2(hvec[0], -hvec[1]))
        nhat = np.array([np.cos(raan), np.sin(raan), 0.0])
        bhat = np.cross(hhat, nhat)
        evec = np.cross(vvec, hvec) / mu_value - rvec / r_mag
        e = float(np.linalg.norm(evec))
        p = h_mag**2 / mu_value
        if e < config.SNAP_TO_CIRCULAR:
            e = 0.0
            w = 0.0
        else:
            w = float(np.arctan2(np.dot(evec, bhat), np.dot(evec, nhat)))
        # argument of latitude, split into ω + ν
        u = float(np.arctan2(np.dot(rvec, bhat), np.dot(rvec, nhat)))
        nu = u - w
        elements = (p / (1.0 + e), e, i, wrap_angle(raan), wrap_angle(w), wrap_angle(nu))
        return cls(rvec, vvec, mu_value, elements, orbiting, orbited,
                   explicit_mu=mu is not None)

    @classmethod
    def from_eccentricity(cls, orbiting: "Node", orbited: "Node",
                          eccentricity: float,
                          rng: Optional[Randomizer] = None) -> "Orbit":
        """
        Put orbiting into an orbit of the given eccentricity about orbited,
        passing through its current position.

        The orbital plane is the least-inclined plane containing the current
        relative position, so inclination and ascending node follow from that
        position's geometry. The true anomaly is drawn uniformly (restricted
        to the open branch for e >= 1) and the remaining elements are solved
        so that the epoch state reproduces the current position.

        The orbiting node's velocity is set to the orbital velocity and the
        orbit is attached to it.

        Raises
        ------
        InvalidOrbitalParameter
            If eccentricity is negative or the bodies coincide.
        NotInSameHierarchy
            If the bodies share no common ancestor.
        """
        if not eccentricity >= 0:
            raise InvalidOrbitalParameter(
                f"Eccentricity must be non-negative, got {eccentricity}")
        rng = rng if rng is not None else Randomizer()
        rvec = cls._separation(orbiting, orbited)
        nu = cls._draw_true_anomaly(eccentricity, rng)
        return cls._fit_through(orbiting, orbited, rvec, eccentricity, nu)

    @classmethod
    def from_period(cls, orbiting: "Node", orbited: "Node",
                    eccentricity: float, period: float,
                    rng: Optional[Randomizer] = None) -> "Orbit":
        """
        Put orbiting into a closed orbit with the given eccentricity and period.

        The orbiting node is moved in or out along its current direction from
        orbited until it lies on the orbit at a uniformly drawn true anomaly.
        The plane then follows as in ``from_eccentricity``.

        Parameters
        ----------
        orbiting, orbited : Node
        eccentricity : float
            Eccentricity, in [0, 1)
        period : float
            Orbital period, s (> 0)
        rng : Randomizer, optional

        Raises
        ------
        InvalidOrbitalParameter
            If the orbit would not be closed, the period is not positive or
            the bodies coincide.
        NotInSameHierarchy
            If the bodies share no common ancestor.
        """
        if not 0 <= eccentricity < 1:
            raise InvalidOrbitalParameter(
                f"A periodic orbit needs eccentricity in [0, 1), got {eccentricity}")
        if not period > 0 or not np.isfinite(period):
            raise InvalidOrbitalParameter(f"Period must be positive, got {period}")
        parent = orbiting.parent
        if parent is None:
            raise InvalidOrbitalParameter(
                f"{orbiting.designation} has no parent frame to move in")
        rng = rng if rng is not None else Randomizer()
        rvec = cls._separation(orbiting, orbited)
        mu = cls._resolve_mu(None, orbiting, orbited)
        a = semi_major_axis_for_period(period, mu)
        nu = cls._draw_true_anomaly(eccentricity, rng)
        radius = a * (1 - eccentricity**2) / (1 + eccentricity * np.cos(nu))

        center = np.asarray(translate(orbited, parent, np.zeros(3)))
        direction = rvec / np.linalg.norm(rvec)
        orbiting.position = center + direction * radius / parent.local_scale
        rvec = cls._separation(orbiting, orbited)
        return cls._fit_through(orbiting, orbited, rvec, eccentricity, nu)

    @staticmethod
    def _separation(orbiting, orbited) -> np.ndarray:
        rvec = orbiting.relative_position(orbited)
        if not np.any(rvec):
            raise InvalidOrbitalParameter(
                f"{orbiting.designation} coincides with {orbited.designation}")
        return rvec

    @staticmethod
    def _draw_true_anomaly(eccentricity: float, rng: Randomizer) -> float:
        if eccentricity < 1:
            return rng.angle()
        nu_limit = np.arccos(-1.0 / eccentricity)
        nu = rng.uniform(-nu_limit, nu_limit)
        while 1 + eccentricity * np.cos(nu) <= 0:
            nu = rng.uniform(-nu_limit, nu_limit)
        return nu

    @classmethod
    def _fit_through(cls, orbiting, orbited, rvec, eccentricity, nu) -> "Orbit":
        """Solve the remaining elements so the epoch state sits at rvec."""
        r = float(np.linalg.norm(rvec))
        latitude = np.arctan2(rvec[2], np.hypot(rvec[0], rvec[1]))
        longitude = np.arctan2(rvec[1], rvec[0])
        inclination = float(abs(latitude))
        if inclination < config.SNAP_TO_EQUATORIAL:
            inclination, raan, u = 0.0, 0.0, float(longitude)
        elif latitude > 0:
            # the position is the plane's northernmost point
            raan, u = longitude - np.pi / 2, np.pi / 2
        else:
            raan, u = longitude + np.pi / 2, 3 * np.pi / 2

        p = r * (1 + eccentricity * np.cos(nu))
        periapsis = p / (1 + eccentricity)

        orbit = cls.from_elements(periapsis, eccentricity, inclination,
                                  wrap_angle(raan), wrap_angle(u - nu),
                                  wrap_angle(nu), orbiting, orbited)
        orbiting._velocity = np.array(orbit.v0)
        orbiting.orbit = orbit
        return orbit

    @classmethod
    def circular(cls, orbiting: "Node", orbited: "Node",
                 rng: Optional[Randomizer] = None) -> "Orbit":
        """Circular orbit through the current position. See ``from_eccentricity``."""
        return cls.from_eccentricity(orbiting, orbited, 0.0, rng)

    def rederived(self) -> Optional["Orbit"]:
        """
        Re-derive this orbit from the bodies' current state.

        Returns a new Orbit, this orbit unchanged if either body cannot be
        resolved, or None if the bodies no longer define an orbit (detached
        into separate trees or coincident).
        """
        orbiting = self.orbiting
        orbited = self.orbited
        if orbiting is None or orbited is None:
            return self
        try:
            r = orbiting.relative_position(orbited)
            return Orbit.from_state_vectors(
                r, orbiting.velocity, orbiting, orbited,
                mu=self._mu if self._explicit_mu else None)
        except (NotInSameHierarchy, InvalidOrbitalParameter):
            return None

    # ========== VALIDATION ==========
    @staticmethod
    def _validate_elements(periapsis, e, i, raan, w, nu):
        """Check classical element ranges."""
        if not periapsis > 0:
            raise InvalidOrbitalParameter(f"Periapsis must be positive, got {periapsis}")
        if not e >= 0 or not np.isfinite(e):
            raise InvalidOrbitalParameter(f"Eccentricity must be non-negative, got {e}")
        if not 0 <= i < np.pi:
            raise InvalidOrbitalParameter(f"Inclination must be within [0, π), got {i}")
        for name, angle in (("Ascending node angle", raan),
                            ("Argument of periapsis", w),
                            ("True anomaly", nu)):
            if not 0 <= angle < 2 * np.pi:
                raise InvalidOrbitalParameter(
                    f"{name} must be within [0, 2π), got {angle}")
        if e >= 1 and 1 + e * np.cos(nu) <= 0:
            raise InvalidOrbitalParameter(
                f"True anomaly {nu} is beyond the asymptote of an orbit with e={e}")

    @staticmethod
    def _resolve_mu(mu, orbiting, orbited) -> float:
        if mu is None:
            total = sum(n.mass for n in (orbiting, orbited) if n is not None)
            mu = G * total
        if not mu > 0:
            raise InvalidOrbitalParameter(
                f"Standard gravitational parameter must be positive, got {mu}")
        return float(mu)

    # ========== PROPERTY ACCESS ==========
    @property
    def orbiting(self) -> Optional["Node"]:
        return self._resolve(self._orbiting_ref, self._orbiting_id)

    @property
    def orbited(self) -> Optional["Node"]:
        return self._resolve(self._orbited_ref, self._orbited_id)

    def _resolve(self, ref, node_id) -> Optional["Node"]:
        if ref is not None:
            node = ref()
            if node is not None:
                return node
        if node_id is None:
            return None
        if self._store is not None:
            node = self._store.get(node_id)
            if node is not None:
                return node
        warnings.warn(f"Orbit body '{node_id}' could not be resolved",
                      UnresolvedReference, stacklevel=3)
        return None

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def r0(self) -> np.ndarray:
        """Epoch position relative to the orbited body, m."""
        return self._r0

    @property
    def v0(self) -> np.ndarray:
        """Epoch velocity relative to the orbited body, m/s."""
        return self._v0

    @property
    def eccentricity(self) -> float:
        return self._e

    @property
    def inclination(self) -> float:
        return self._i

    @property
    def angle_ascending(self) -> float:
        return self._raan

    @property
    def argument_periapsis(self) -> float:
        return self._w

    @property
    def true_anomaly(self) -> float:
        return self._nu

    @property
    def periapsis(self) -> float:
        return self._periapsis

    @property
    def semi_latus_rectum(self) -> float:
        return self._periapsis * (1 + self._e)

    @property
    def semi_major_axis(self) -> float:
        """Semi-major axis, m. Equal to periapsis for parabolic orbits."""
        if self.is_parabolic:
            return self._periapsis
        return self.semi_latus_rectum / (1 - self._e**2)

    @property
    def apoapsis(self) -> float:
        if self._e >= 1:
            return np.inf
        return self.semi_major_axis * (1 + self._e)

    @property
    def is_parabolic(self) -> bool:
        return abs(self._e - 1.0) < config.SNAP_TO_CIRCULAR

    @property
    def period(self) -> float:
        """Orbital period, s (inf for open orbits)."""
        if self._e >= 1:
            return np.inf
        return 2 * np.pi * np.sqrt(self.semi_major_axis**3 / self._mu)

    @property
    def alpha(self) -> float:
        """Reciprocal semi-major axis from the epoch state, 1/m (0 when parabolic)."""
        return 2.0 / np.linalg.norm(self._r0) - np.dot(self._v0, self._v0) / self._mu

    @property
    def mean_motion(self) -> float:
        """Mean motion n = √(μ/|a|³), rad/s."""
        return np.sqrt(self._mu / abs(self.semi_major_axis)**3)

    @property
    def specific_energy(self) -> float:
        return np.dot(self._v0, self._v0) / 2 - self._mu / np.linalg.norm(self._r0)

    @property
    def specific_angular_momentum(self) -> float:
        return float(np.linalg.norm(np.cross(self._r0, self._v0)))

    # ========== PROPAGATION ==========
    def state_at_true_anomaly(self, true_anomaly: float) -> Tuple[np.ndarray, np.ndarray]:
        """Position and velocity at a true anomaly on this orbit."""
        return _state_from_elements(self._periapsis, self._e, self._i, self._raan,
                                    self._w, true_anomaly, self._mu)

    def state_at(self, elapsed: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Propagate the epoch state by elapsed seconds.

        Parameters
        ----------
        elapsed : float
            Time since epoch, s (may be negative)

        Returns
        -------
        (np.ndarray, np.ndarray)
            Position (m) and velocity (m/s) relative to the orbited body.

        Warns
        -----
        ConvergenceWarning
            If the Newton iteration reaches config.MAX_NEWTON_ITERATIONS; the
            last estimate is used.
        """
        elapsed = float(elapsed)
        if elapsed == 0:
            return np.array(self._r0), np.array(self._v0)

        sqrt_mu = np.sqrt(self._mu)
        r0 = np.linalg.norm(self._r0)
        alpha = self.alpha
        x = self._universal_anomaly(elapsed)
        z = alpha * x**2
        c = stumpff_c(z)
        s = stumpff_s(z)

        # Lagrange coefficients
        f = 1 - x**2 / r0 * c
        g = elapsed - x**3 * s / sqrt_mu
        r_vec = f * self._r0 + g * self._v0
        r = np.linalg.norm(r_vec)
        fdot = sqrt_mu / (r * r0) * (alpha * x**3 * s - x)
        gdot = 1 - x**2 / r * c
        v_vec = fdot * self._r0 + gdot * self._v0
        return r_vec, v_vec

    def _universal_anomaly(self, elapsed: float) -> float:
        """Solve the universal Kepler equation for x by Newton's method."""
        sqrt_mu = np.sqrt(self._mu)
        r0 = np.linalg.norm(self._r0)
        vr0 = np.dot(self._r0, self._v0) / r0
        alpha = self.alpha

        x = sqrt_mu * abs(alpha) * elapsed
        if alpha < 0 and not self.is_parabolic:
            # The linear seed grows with the mean anomaly while the root grows
            # with its logarithm (Vallado, Algorithm 8)
            a = 1.0 / alpha
            sign = np.sign(elapsed)
            arg = (-2.0 * self._mu * alpha * elapsed
                   / (np.dot(self._r0, self._v0)
                      + sign * np.sqrt(-self._mu * a) * (1 - r0 * alpha)))
            if arg > 1:
                x_hyp = sign * np.sqrt(-a) * np.log(arg)
                if abs(x_hyp) < abs(x):
                    x = x_hyp
        ratio = np.nan
        for _ in range(config.MAX_NEWTON_ITERATIONS):
            z = alpha * x**2
            c = stumpff_c(z)
            s = stumpff_s(z)
            fx = (r0 * vr0 / sqrt_mu * x**2 * c
                  + (1 - alpha * r0) * x**3 * s
                  + r0 * x - sqrt_mu * elapsed)
            dfx = (r0 * vr0 / sqrt_mu * x * (1 - z * s)
                   + (1 - alpha * r0) * x**2 * c
                   + r0)
            ratio = fx / dfx
            x -= ratio
            if abs(ratio) <= config.ORBIT_TOLERANCE * max(1.0, abs(x)):
                return x
        warnings.warn(
            f"Universal anomaly did not converge in {config.MAX_NEWTON_ITERATIONS} "
            f"iterations (last step {ratio:.3e}); using best estimate",
            ConvergenceWarning, stacklevel=3)
        return x

    # ========== ANOMALIES ==========
    def eccentric_anomaly(self, true_anomaly: float) -> float:
        """
        Eccentric anomaly at a true anomaly on this orbit.

        Closed orbits give E in [0, 2π). Open orbits give the hyperbolic
        anomaly F (signed, negative before periapsis) or, when parabolic,
        the parabolic anomaly D = tan(ν/2).
        """
        e = self._e
        if self.is_parabolic:
            return float(np.tan(true_anomaly / 2))
        if e > 1:
            return float(np.arcsinh(np.sqrt(e**2 - 1) * np.sin(true_anomaly)
                                    / (1 + e * np.cos(true_anomaly))))
        return wrap_angle(np.arctan2(np.sqrt(1 - e**2) * np.sin(true_anomaly),
                                     e + np.cos(true_anomaly)))

    def mean_anomaly(self, true_anomaly: float) -> float:
        """
        Mean anomaly at a true anomaly on this orbit.

        M = E - e·sin E for closed orbits (in [0, 2π)), M = e·sinh F - F for
        hyperbolic orbits and Barker's M = D + D³/3 for parabolic ones.
        """
        anomaly = self.eccentric_anomaly(true_anomaly)
        if self.is_parabolic:
            return anomaly + anomaly**3 / 3
        if self._e > 1:
            return float(self._e * np.sinh(anomaly) - anomaly)
        return wrap_angle(anomaly - self._e * np.sin(anomaly))

    def _mean_anomaly_rate(self) -> float:
        if self.is_parabolic:
            return np.sqrt(self._mu / (2 * self._periapsis**3))
        return self.mean_motion

    def mean_anomaly_at(self, elapsed: float) -> float:
        """Mean anomaly elapsed seconds after epoch (wrapped to [0, 2π) on closed orbits)."""
        mean = self.mean_anomaly(self._nu) + self._mean_anomaly_rate() * float(elapsed)
        if self._e < 1:
            return wrap_angle(mean)
        return float(mean)

    def mean_longitude_at(self, elapsed: float) -> float:
        """Mean longitude Ω + ω + M elapsed seconds after epoch, in [0, 2π)."""
        return wrap_angle(self._raan + self._w + self.mean_anomaly_at(elapsed))

    def true_anomaly_at(self, elapsed: float) -> float:
        """
        True anomaly elapsed seconds after epoch, in [0, 2π).

        Measured in the orbital plane from the periapsis direction to the
        propagated position.
        """
        r, _ = self.state_at(elapsed)
        P, Q = _perifocal_basis(self._i, self._raan, self._w)
        return wrap_angle(np.arctan2(np.dot(r, Q), np.dot(r, P)))

    def eccentric_anomaly_at(self, elapsed: float) -> float:
        """Eccentric (hyperbolic, parabolic) anomaly elapsed seconds after epoch."""
        return self.eccentric_anomaly(self.true_anomaly_at(elapsed))

    def apply_to_orbiting_body(self, elapsed: float) -> Optional[np.ndarray]:
        """
        Move the orbiting node to its state elapsed seconds after epoch.

        The propagated state is relative to the orbited body; it is
        translated into the orbiting node's parent frame before being
        written. Repeated calls always propagate from the epoch state.

        Returns
        -------
        np.ndarray or None
            The new position in the parent frame, or None (position
            unchanged) if a body or the orbiting node's parent cannot be
            resolved.

        Raises
        ------
        NotInSameHierarchy
            If the bodies share no common ancestor.
        """
        orbiting = self.orbiting
        orbited = self.orbited
        if orbiting is None or orbited is None:
            warnings.warn("Orbit has no resolvable orbiting or orbited body; "
                          "position unchanged", UnresolvedReference, stacklevel=2)
            return None
        parent = orbiting.parent
        if parent is None:
            warnings.warn(f"{orbiting.designation} has no parent frame; "
                          f"position unchanged", UnresolvedReference, stacklevel=2)
            return None
        r, v = self.state_at(elapsed)
        center = np.asarray(translate(orbited, parent, np.zeros(3)))
        position = center + r / parent.local_scale
        orbiting._assign_state(position, v)
        return position

    # ========== UTILITY METHODS ==========
    def to_dict(self) -> dict:
        return {
            'periapsis': self._periapsis,
            'eccentricity': self._e,
            'inclination': self._i,
            'angle_ascending': self._raan,
            'argument_periapsis': self._w,
            'true_anomaly': self._nu,
            'semi_major_axis': self.semi_major_axis,
            'apoapsis': self.apoapsis,
            'period': self.period,
            'mu': self._mu,
        }

    # ========== BATCH OPERATIONS ==========
    class Batch:
        """Operations on collections of Orbits."""

        @staticmethod
        def period(orbits):
            """Get orbital periods for multiple orbits"""
            return np.array([o.period for o in orbits])

        @staticmethod
        def state_at(orbits, elapsed):
            """Propagate multiple orbits by the same elapsed time"""
            return [o.state_at(elapsed) for o in orbits]

        @staticmethod
        def to_dataframe(orbits, index=None):
            """
            Convert a list of Orbits to a pandas DataFrame of elements.

            Parameters
            ----------
            orbits : list of Orbit
            index : array-like, optional
                Index for the DataFrame. If None, uses integer index.

            Raises
            ------
            ValueError
                If index length doesn't match number of orbits
            """
            import pandas as pd
            if not orbits:
                return pd.DataFrame()
            if index is not None and len(index) != len(orbits):
                raise ValueError(
                    f"Index length ({len(index)}) must match "
                    f"number of orbits ({len(orbits)})")
            return pd.DataFrame([o.to_dict() for o in orbits], index=index)

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"Orbit(periapsis={self._periapsis}, e={self._e}, i={self._i}, "
                f"raan={self._raan}, w={self._w}, nu={self._nu}, mu={self._mu})")

    def __str__(self):
        return (f"Orbit:\n"
                f"  rp    = {self._periapsis:14.6e} m\n"
                f"  a     = {self.semi_major_axis:14.6e} m\n"
                f"  e     = {self._e:14.6f}\n"
                f"  i     = {np.degrees(self._i):14.4f}°\n"
                f"  RAAN  = {np.degrees(self._raan):14.4f}°\n"
                f"  ω     = {np.degrees(self._w):14.4f}°\n"
                f"  ν     = {np.degrees(self._nu):14.4f}°")

    def __eq__(self, other):
        if not isinstance(other, Orbit):
            return False
        state = np.concatenate([self._r0, self._v0, [self._mu]])
        other_state = np.concatenate([other._r0, other._v0, [other._mu]])
        return np.allclose(state, other_state,
                           rtol=config.EQUALITY_RTOL, atol=config.EQUALITY_ATOL)

    def __hash__(self):
        # Equality is relative, so hash on the non-dimensional shape only
        decimals = config.HASH_DECIMALS
        return hash((round(self._e, decimals), round(self._i, decimals)))


# ========== ELEMENT CONVERSION ==========
def _perifocal_basis(i, raan, w):
    """Unit vectors P toward periapsis and Q 90° ahead in the orbit plane."""
    cos_raan, sin_raan = np.cos(raan), np.sin(raan)
    cos_w, sin_w = np.cos(w), np.sin(w)
    cos_i, sin_i = np.cos(i), np.sin(i)
    P = np.array([cos_raan * cos_w - sin_raan * cos_i * sin_w,
                  sin_raan * cos_w + cos_raan * cos_i * sin_w,
                  sin_i * sin_w])
    Q = np.array([-cos_raan * sin_w - sin_raan * cos_i * cos_w,
                  -sin_raan * sin_w + cos_raan * cos_i * cos_w,
                  sin_i * cos_w])
    return P, Q


def _state_from_elements(periapsis, e, i, raan, w, nu, mu):
    """Perifocal evaluation of classical elements into state vectors."""
    p = periapsis * (1 + e)
    P, Q = _perifocal_basis(i, raan, w)
    r = p / (1 + e * np.cos(nu))
    r_vec = r * np.cos(nu) * P + r * np.sin(nu) * Q
    v_vec = np.sqrt(mu / p) * (-np.sin(nu) * P + (e + np.cos(nu)) * Q)
    return r_vec, v_vec


# ========== PHYSICAL RADII ==========
def hill_sphere_radius(orbit: Orbit, orbiting_mass: float, orbited_mass: float) -> float:
    """Hill sphere radius a(1-e)·(m/3M)^(1/3), m."""
    if orbited_mass <= 0:
        return np.inf
    return orbit.periapsis * np.cbrt(orbiting_mass / (3 * orbited_mass))


def mutual_hill_sphere_radius(orbit: Orbit, orbiting_mass: float,
                              other_mass: float, orbited_mass: float) -> float:
    """Mutual Hill radius of two bodies sharing an orbit about the same primary, m."""
    if orbited_mass <= 0:
        return np.inf
    return np.cbrt((orbiting_mass + other_mass) / (3 * orbited_mass)) * orbit.semi_major_axis


def sphere_of_influence_radius(orbit: Orbit, orbiting_mass: float,
                               orbited_mass: float) -> float:
    """Laplace sphere of influence a·(m/M)^(2/5), m."""
    if orbited_mass <= 0:
        return np.inf
    return orbit.semi_major_axis * (orbiting_mass / orbited_mass)**0.4


def roche_limit(primary_mass: float, satellite_density: float) -> float:
    """Fluid Roche limit k·(M/ρ)^(1/3), m."""
    if satellite_density <= 0:
        raise ValueError(f"Satellite density must be positive, got {satellite_density}")
    return ROCHE_LIMIT_CONSTANT * np.cbrt(primary_mass / satellite_density)


def semi_major_axis_for_period(period: float, mu: float) -> float:
    """Semi-major axis of an orbit with the given period, m."""
    return np.cbrt(mu * (period / (2 * np.pi))**2)


def circular_velocity(mu: float, radius: float) -> float:
    """Speed of a circular orbit at radius, m/s."""
    return np.sqrt(mu / radius)


def delta_v_for_circular_orbit(orbiting: "Node", orbited: "Node") -> np.ndarray:
    """
    Velocity change that puts orbiting on a circular orbit about orbited.

    The orbit keeps the plane of the current relative motion. When orbiting
    is at rest relative to orbited, or moving straight toward or away from
    it, the least-inclined plane through the current position is used and
    the orbit is prograde.

    Parameters
    ----------
    orbiting, orbited : Node
        ``orbiting.velocity`` is taken as relative to orbited.

    Returns
    -------
    np.ndarray
        Change of velocity, m/s.

    Raises
    ------
    InvalidOrbitalParameter
        If the bodies coincide or have no mass between them.
    NotInSameHierarchy
        If the bodies share no common ancestor.
    """
    rvec = Orbit._separation(orbiting, orbited)
    mu = Orbit._resolve_mu(None, orbiting, orbited)
    r = np.linalg.norm(rvec)
    rhat = rvec / r
    velocity = np.asarray(orbiting.velocity, dtype=float)

    normal = np.cross(rvec, velocity)
    if np.linalg.norm(normal) <= 1e-12 * r * max(np.linalg.norm(velocity), 1.0):
        z = np.array([0.0, 0.0, 1.0])
        normal = z - np.dot(z, rhat) * rhat
        if np.linalg.norm(normal) == 0:
            # polar position, any plane through the pole is equally inclined
            normal = np.array([1.0, 0.0, 0.0])
    normal = normal / np.linalg.norm(normal)
    direction = np.cross(normal, rhat)
    return circular_velocity(mu, r) * direction - velocity

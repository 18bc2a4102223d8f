"""
Global Configuration for Kosmos Package
=======================================

This module provides package-wide configuration settings that users can modify
to control numerical tolerances, population limits, validation behavior, and
default plotting options.

Examples
--------
View current configuration:

>>> import kosmos
>>> print(kosmos.config)

Modify settings:

>>> kosmos.config.MAX_PLACEMENT_MISSES = 25  # More patient population passes
>>> kosmos.config.DEFAULT_PLOT_POINTS = 2000  # More detailed plots

Reset to defaults:

>>> kosmos.config.reset()

Temporarily modify settings:

>>> with kosmos.temp_config(ORBIT_TOLERANCE=1e-6):
...     # Relaxed Newton tolerance for this block only
...     r, v = orbit.state_at(3600.0)

Notes
-----
These settings affect package-wide behavior. Modifying them will impact
all subsequent operations until changed again or reset.
"""

from dataclasses import dataclass
from contextlib import contextmanager
import math


@dataclass
class KosmosConfig:
    """
    Global configuration for Kosmos package.

    Attributes
    ----------
    EQUALITY_RTOL : float
        Relative tolerance for Orbit equality comparisons.
        Default: 1e-12
    EQUALITY_ATOL : float
        Absolute tolerance for Orbit equality comparisons.
        Default: 1e-14
    ORBIT_TOLERANCE : float
        Convergence tolerance of the universal-variable Newton iteration,
        relative to the magnitude of the universal anomaly.
        Default: 1e-8
    MAX_NEWTON_ITERATIONS : int
        Iteration cap for the universal-variable solve. When reached the
        last estimate is returned and a ConvergenceWarning is issued.
        Default: 100
    SNAP_TO_ZERO_THRESHOLD : float
        Stumpff arguments with magnitude below this are evaluated with the
        series expansion about zero.
        Default: 1e-10
    SNAP_TO_CIRCULAR : float
        Eccentricity below this threshold treated as circular orbit (e=0).
        Default: 1e-8
    SNAP_TO_EQUATORIAL : float
        Inclination below this threshold treated as equatorial (i=0).
        Default: 1e-8
    LOCAL_SPACE_SCALE : float
        Half-width of the normalized local frame every node defines for its
        children. A node's local scale is its containing radius divided by
        this value.
        Default: 1e6
    MAX_PLACEMENT_MISSES : int
        Consecutive placement failures after which a population pass treats
        the region as saturated and stops.
        Default: 10
    OPEN_SPACE_ATTEMPTS : int
        Random candidate positions tried by one open-space search.
        Default: 100
    STRICT_VALIDATION : bool
        If True, validation failures raise exceptions.
        If False, validation failures issue warnings.
        Default: True
    DEFAULT_PLOT_POINTS : int
        Default number of points for trajectory plotting.
        Default: 1000
    DEFAULT_BODY_COLOR : str
        Default color for celestial bodies in plots.
        Default: 'lightblue'
    DEFAULT_TRAJ_COLOR : str
        Default color for trajectory lines in plots.
        Default: 'red'
    DEFAULT_TRAJ_COLOR_ADD : str
        Default color for trajectories added to an existing figure.
        Default: 'blue'
    DEFAULT_BODY_OPACITY : float
        Default opacity for celestial body spheres (0.0 to 1.0).
        Default: 0.6
    """

    # Numerical tolerance for equality comparisons
    EQUALITY_RTOL: float = 1e-12
    EQUALITY_ATOL: float = 1e-14

    # Orbit solver
    ORBIT_TOLERANCE: float = 1e-8
    MAX_NEWTON_ITERATIONS: int = 100

    # Snapping behavior thresholds
    SNAP_TO_ZERO_THRESHOLD: float = 1e-10
    SNAP_TO_CIRCULAR: float = 1e-8
    SNAP_TO_EQUATORIAL: float = 1e-8

    # Spatial hierarchy and population
    LOCAL_SPACE_SCALE: float = 1e6
    MAX_PLACEMENT_MISSES: int = 10
    OPEN_SPACE_ATTEMPTS: int = 100

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # Plotting defaults
    DEFAULT_PLOT_POINTS: int = 1000
    DEFAULT_BODY_COLOR: str = 'lightblue'
    DEFAULT_TRAJ_COLOR: str = 'red'
    DEFAULT_TRAJ_COLOR_ADD: str = 'blue'
    DEFAULT_BODY_OPACITY: float = 0.6

    @property
    def HASH_DECIMALS(self) -> int:
        """
        Compute hash rounding decimals from equality tolerance.

        The hash rounding must be coarse enough that if two values
        are equal (within EQUALITY_ATOL), they hash to the same value.

        Formula: HASH_DECIMALS = -floor(log10(ATOL)) - 2

        Returns
        -------
        int
            Number of decimal places for hash rounding
        """
        magnitude = -math.floor(math.log10(self.EQUALITY_ATOL))
        return max(magnitude - 2, 0)

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import kosmos
        >>> kosmos.config.MAX_PLACEMENT_MISSES = 50  # Modify
        >>> kosmos.config.reset()  # Back to defaults
        >>> kosmos.config.MAX_PLACEMENT_MISSES
        10
        """
        defaults = KosmosConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["KosmosConfig:"]
        lines.append("  Numerical Tolerances:")
        lines.append(f"    EQUALITY_RTOL = {self.EQUALITY_RTOL}")
        lines.append(f"    EQUALITY_ATOL = {self.EQUALITY_ATOL}")
        lines.append(f"    HASH_DECIMALS = {self.HASH_DECIMALS}")
        lines.append("  Orbit Solver:")
        lines.append(f"    ORBIT_TOLERANCE = {self.ORBIT_TOLERANCE}")
        lines.append(f"    MAX_NEWTON_ITERATIONS = {self.MAX_NEWTON_ITERATIONS}")
        lines.append("  Snapping Thresholds:")
        lines.append(f"    SNAP_TO_ZERO_THRESHOLD = {self.SNAP_TO_ZERO_THRESHOLD}")
        lines.append(f"    SNAP_TO_CIRCULAR = {self.SNAP_TO_CIRCULAR}")
        lines.append(f"    SNAP_TO_EQUATORIAL = {self.SNAP_TO_EQUATORIAL}")
        lines.append("  Population:")
        lines.append(f"    LOCAL_SPACE_SCALE = {self.LOCAL_SPACE_SCALE}")
        lines.append(f"    MAX_PLACEMENT_MISSES = {self.MAX_PLACEMENT_MISSES}")
        lines.append(f"    OPEN_SPACE_ATTEMPTS = {self.OPEN_SPACE_ATTEMPTS}")
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append("  Plotting:")
        lines.append(f"    DEFAULT_PLOT_POINTS = {self.DEFAULT_PLOT_POINTS}")
        lines.append(f"    DEFAULT_BODY_COLOR = '{self.DEFAULT_BODY_COLOR}'")
        lines.append(f"    DEFAULT_TRAJ_COLOR = '{self.DEFAULT_TRAJ_COLOR}'")
        lines.append(f"    DEFAULT_TRAJ_COLOR_ADD = '{self.DEFAULT_TRAJ_COLOR_ADD}'")
        lines.append(f"    DEFAULT_BODY_OPACITY = {self.DEFAULT_BODY_OPACITY}")
        return "\n".join(lines)


# Global configuration instance
config = KosmosConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import kosmos
    >>> with kosmos.temp_config(MAX_PLACEMENT_MISSES=1, STRICT_VALIDATION=False):
    ...     children = list(engine.populate_region(region))
    >>> # Original config restored here
    >>> kosmos.config.MAX_PLACEMENT_MISSES
    10

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"KosmosConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)

"""
Utility functions for the Kosmos package.
"""

import warnings
from typing import Type

import numpy as np

from .config import config

# Physical constants (SI)
G = 6.67430e-11             # m³/(kg·s²)
STEFAN_BOLTZMANN = 5.670374419e-8  # W/(m²·K⁴)


def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Raise error or warn based on config.STRICT_VALIDATION.

    This function provides consistent validation behavior across the package.
    When STRICT_VALIDATION is True (default), raises the specified exception.
    When False, issues a UserWarning instead.

    Parameters
    ----------
    message : str
        Validation error message
    error_class : Type[Exception], optional
        Exception class to raise if STRICT_VALIDATION is True.
        Default: ValueError

    Raises
    ------
    Exception (of type error_class)
        If config.STRICT_VALIDATION is True

    Warns
    -----
    UserWarning
        If config.STRICT_VALIDATION is False

    Examples
    --------
    >>> from kosmos.utils import validation_error
    >>> from kosmos import config
    >>> config.STRICT_VALIDATION = True
    >>> validation_error("Mass must be non-negative")  # Raises ValueError

    >>> config.STRICT_VALIDATION = False
    >>> validation_error("Mass must be non-negative")  # Issues warning
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    else:
        warnings.warn(message, UserWarning, stacklevel=2)


def as_vector(value, name: str = "vector") -> np.ndarray:
    """
    Coerce a 3-component sequence into a float64 numpy array.

    ``None`` gives the zero vector.

    Raises
    ------
    ValueError
        If the value does not have exactly three components.
    """
    if value is None:
        return np.zeros(3)
    vec = np.array(value, dtype=float).reshape(-1)
    if vec.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got shape {vec.shape}")
    return vec


def readonly(vec: np.ndarray) -> np.ndarray:
    """Return a copy of ``vec`` with writes disabled."""
    out = np.array(vec, dtype=float)
    out.flags.writeable = False
    return out


def wrap_angle(angle: float) -> float:
    """Wrap an angle into [0, 2π)."""
    wrapped = float(np.mod(angle, 2 * np.pi))
    # np.mod can return exactly 2π for tiny negative inputs
    if wrapped >= 2 * np.pi:
        wrapped = 0.0
    return wrapped

"""
Exception and warning types raised by the Kosmos package.

Hard failures are exceptions. Soft conditions (partially loaded hierarchies,
non-converged iterations) are reported through the ``warnings`` module so
callers can filter or escalate them.
"""


class KosmosError(Exception):
    """Base class for all Kosmos exceptions."""


class InvalidOrbitalParameter(KosmosError, ValueError):
    """An orbital construction argument lies outside its valid domain."""


class NotInSameHierarchy(KosmosError, ValueError):
    """Two nodes share no common ancestor, so no frame relates them."""


class PlacementExhausted(KosmosError):
    """
    No open space of the requested size could be found in a region.

    Raised by the open-space search and always handled by the population
    engine, which counts it as a placement miss.
    """


class UnresolvedReference(UserWarning):
    """A parent or orbited node id could not be resolved."""


class ConvergenceWarning(UserWarning):
    """An iterative solve stopped at its iteration cap before converging."""

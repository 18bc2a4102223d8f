"""
Kosmos: Procedural Universe Hierarchy

A Python package for lazily generated, nested regions of space, from a
universe down to planets, with scale-normalized frames and two-body
Keplerian orbits.
"""

# Configuration
from .config import config, temp_config

# Errors
from .errors import (KosmosError, InvalidOrbitalParameter, NotInSameHierarchy,
                     PlacementExhausted, UnresolvedReference, ConvergenceWarning)

# Geometry
from .shapes import Shape, SinglePoint, Sphere, Ellipsoid, HollowSphere

# Core classes
from .randomizer import Randomizer
from .store import DataStore, InMemoryDataStore
from .node import Node, find_common_ancestor, translate, reparent, distance
from .orbit import Orbit
from .trajectory import OrbitTrajectory, OrbitTrajectory as Traj
from .definitions import ChildDefinition, KindSpec, KindRegistry
from .population import PopulationEngine
from .grid import SpaceGrid

# Default kind table
from .catalog import default_registry, universe

# Package metadata
__version__ = "0.1.0"
__author__ = "Shane Billingsley"

# Define what gets imported with "from kosmos import *"
__all__ = [
    # Configuration
    "config",
    "temp_config",
    # Errors
    "KosmosError",
    "InvalidOrbitalParameter",
    "NotInSameHierarchy",
    "PlacementExhausted",
    "UnresolvedReference",
    "ConvergenceWarning",
    # Shapes
    "Shape",
    "SinglePoint",
    "Sphere",
    "Ellipsoid",
    "HollowSphere",
    # Classes
    "Randomizer",
    "DataStore",
    "InMemoryDataStore",
    "Node",
    "Orbit",
    "OrbitTrajectory",
    "ChildDefinition",
    "KindSpec",
    "KindRegistry",
    "PopulationEngine",
    "SpaceGrid",
    # Abbreviations
    "Traj",
    # Functions
    "find_common_ancestor",
    "translate",
    "reparent",
    "distance",
    "default_registry",
    "universe",
]

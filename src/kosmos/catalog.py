"""
Default kind table, from the universe down to planets.

Densities are expected counts per m³ of the containing region and
footprints are the radius, in metres, a child needs when placed.
"""

from typing import Optional

import numpy as np

from .definitions import ChildDefinition, KindRegistry, KindSpec
from .node import Node
from .randomizer import Randomizer
from .shapes import Ellipsoid, HollowSphere, SinglePoint, Sphere

# Solar reference values
SOLAR_MASS = 1.98847e30         # kg
SOLAR_RADIUS = 6.957e8          # m
SOLAR_LUMINOSITY = 3.828e26     # W
SOLAR_TEMPERATURE = 5778.0      # K
EARTH_RADIUS = 6.371e6          # m

# Region footprints, m
SUPERCLUSTER_SPACE = 9.4607e25
GALAXY_CLUSTER_SPACE = 1.5e24
GALAXY_GROUP_SPACE = 3.0e23
GALAXY_SPACE = 2.5e22
DWARF_GALAXY_SPACE = 2.5e18
STAR_SYSTEM_SPACE = 3.5e16
NEBULA_SPACE = 5.5e18
PLANET_SPACE = 7.0e7

# Star systems per m³ of galactic disc
GALAXY_SYSTEM_DENSITY = 4.0e-50

_COSMIC_BACKGROUND_TEMPERATURE = 2.725
_ROCKY_DENSITY = 5514.0         # kg/m³


def _central(kind: str):
    """Selector for the child of kind sitting at the region's origin."""
    def select(region: Node) -> Optional[Node]:
        for child in region.children_of_kind(kind):
            if not np.any(child.position):
                return child
        return None
    return select


def _small_eccentricity(rng: Randomizer) -> float:
    return rng.uniform(0.0, 0.1)


# ========== COMPOSITION ==========
def _star_composition(rng: Randomizer, shape) -> dict:
    mass = SOLAR_MASS * rng.lognormal(0.0, 0.5)
    luminosity = SOLAR_LUMINOSITY * (mass / SOLAR_MASS)**3.5
    # L ∝ R²T⁴
    temperature = (SOLAR_TEMPERATURE * (luminosity / SOLAR_LUMINOSITY)**0.25
                   / np.sqrt(shape.containing_radius / SOLAR_RADIUS))
    return {'mass': mass, 'luminosity': luminosity, 'temperature': temperature}


def _planet_composition(rng: Randomizer, shape) -> dict:
    return {'mass': _ROCKY_DENSITY * shape.volume, 'albedo': 0.3}


def _mass(low: float, high: float):
    def composition(rng: Randomizer, shape) -> dict:
        return {'mass': rng.uniform(low, high)}
    return composition


# ========== PREPOPULATION ==========
def _prepopulate_galaxy(region: Node, rng: Randomizer, registry: KindRegistry):
    core = registry.create('black_hole', region, None, rng)
    core.mass = 4.0e6 * SOLAR_MASS * rng.lognormal(0.0, 0.5)
    core.name = f"{region.designation} core"


def _prepopulate_star_system(region: Node, rng: Randomizer, registry: KindRegistry):
    registry.create('star', region, None, rng)
    registry.create('oort_cloud', region, None, rng)


# ========== REGISTRY ==========
def default_registry() -> KindRegistry:
    """Kind table for a universe of superclusters, galaxies and star systems."""
    galaxy_children = (
        ChildDefinition('star_system', STAR_SYSTEM_SPACE, GALAXY_SYSTEM_DENSITY),
        ChildDefinition('black_hole', 0.0, GALAXY_SYSTEM_DENSITY * 4e-4),
        ChildDefinition('nebula', NEBULA_SPACE, GALAXY_SYSTEM_DENSITY * 4e-10),
    )
    return KindRegistry([
        KindSpec(
            'universe',
            shape_generator=lambda rng: Sphere(4.4e26),
            child_definitions=(
                ChildDefinition('supercluster', SUPERCLUSTER_SPACE, 5.8e-26),
            ),
            composition_generator=lambda rng, shape: {
                'temperature': _COSMIC_BACKGROUND_TEMPERATURE},
        ),
        KindSpec(
            'supercluster',
            shape_generator=lambda rng: Sphere(rng.uniform(0.1, 1.0) * SUPERCLUSTER_SPACE),
            child_definitions=(
                ChildDefinition('galaxy_cluster', GALAXY_CLUSTER_SPACE, 2.563e-77),
                ChildDefinition('galaxy_group', GALAXY_GROUP_SPACE, 5.126e-77),
            ),
            composition_generator=_mass(1e46, 1e47),
        ),
        KindSpec(
            'galaxy_cluster',
            shape_generator=lambda rng: Sphere(rng.uniform(0.2, 1.0) * GALAXY_CLUSTER_SPACE),
            child_definitions=(
                ChildDefinition('galaxy_group', GALAXY_GROUP_SPACE, 1.415e-72),
            ),
            composition_generator=_mass(1e44, 1e45),
        ),
        KindSpec(
            'galaxy_group',
            shape_generator=lambda rng: Sphere(rng.uniform(0.3, 1.0) * GALAXY_GROUP_SPACE),
            child_definitions=(
                ChildDefinition('galaxy', GALAXY_SPACE, 5e-70),
                ChildDefinition('dwarf_galaxy', DWARF_GALAXY_SPACE, 1.25e-69),
            ),
            composition_generator=_mass(1e43, 1e44),
        ),
        KindSpec(
            'galaxy',
            shape_generator=lambda rng: _disc(rng.uniform(0.5, 1.0) * GALAXY_SPACE),
            child_definitions=galaxy_children,
            composition_generator=_mass(1e41, 1e42),
            prepopulate=_prepopulate_galaxy,
            orbited=_central('black_hole'),
            eccentricity=_small_eccentricity,
        ),
        KindSpec(
            'dwarf_galaxy',
            shape_generator=lambda rng: _disc(rng.uniform(0.5, 1.0) * DWARF_GALAXY_SPACE),
            child_definitions=galaxy_children,
            composition_generator=_mass(1e38, 1e40),
            prepopulate=_prepopulate_galaxy,
            orbited=_central('black_hole'),
            eccentricity=_small_eccentricity,
        ),
        KindSpec(
            'star_system',
            shape_generator=lambda rng: Sphere(rng.uniform(0.5, 1.0) * STAR_SYSTEM_SPACE),
            child_definitions=(
                ChildDefinition('planet', PLANET_SPACE, 2.8e-50),
            ),
            composition_generator=lambda rng, shape: {'mass': SOLAR_MASS},
            prepopulate=_prepopulate_star_system,
            orbited=_central('star'),
            eccentricity=_small_eccentricity,
        ),
        KindSpec(
            'star',
            shape_generator=lambda rng: Sphere(SOLAR_RADIUS * rng.lognormal(0.0, 0.3)),
            composition_generator=_star_composition,
        ),
        KindSpec(
            'planet',
            shape_generator=lambda rng: Sphere(
                min(EARTH_RADIUS * rng.lognormal(0.0, 0.6), PLANET_SPACE)),
            composition_generator=_planet_composition,
        ),
        KindSpec(
            'black_hole',
            shape_generator=lambda rng: SinglePoint(),
            composition_generator=_mass(5 * SOLAR_MASS, 20 * SOLAR_MASS),
        ),
        KindSpec(
            'nebula',
            shape_generator=lambda rng: Sphere(rng.uniform(0.2, 1.0) * NEBULA_SPACE),
            composition_generator=lambda rng, shape: {
                'mass': 1e4 * SOLAR_MASS * rng.uniform(0.1, 1.0), 'temperature': 10.0},
        ),
        KindSpec(
            'oort_cloud',
            shape_generator=lambda rng: HollowSphere(7.5e14, 7.5e15),
            composition_generator=_mass(1e25, 1e26),
        ),
    ])


def _disc(radius: float) -> Ellipsoid:
    return Ellipsoid(radius, radius, 0.05 * radius)


def universe(rng: Optional[Randomizer] = None,
             registry: Optional[KindRegistry] = None) -> Node:
    """Create a root universe node."""
    rng = rng if rng is not None else Randomizer()
    registry = registry if registry is not None else default_registry()
    return registry.create('universe', None, None, rng)

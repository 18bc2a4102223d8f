"""Smoke tests to verify package imports work."""

def test_package_imports():
    """Test that all main classes can be imported."""
    from kosmos import Node, Orbit, PopulationEngine, OrbitTrajectory
    assert Node is not None
    assert Orbit is not None
    assert PopulationEngine is not None
    assert OrbitTrajectory is not None

def test_version_exists():
    """Test that version is defined."""
    import kosmos
    assert hasattr(kosmos, '__version__')
    assert kosmos.__version__ == "0.1.0"

def test_all_names_resolve():
    """Every name in __all__ is an attribute of the package."""
    import kosmos
    for name in kosmos.__all__:
        assert hasattr(kosmos, name), name

def test_can_create_node():
    """Test basic Node creation."""
    from kosmos import Node, Sphere
    node = Node('planet', Sphere(6.371e6), mass=5.972e24)
    assert node.kind == 'planet'
    assert node.mass == 5.972e24

def test_can_create_orbit():
    """Test basic Orbit creation."""
    from kosmos import Orbit
    orbit = Orbit.from_elements(7e6, 0.01, 0.1, 0, 0, 0, mu=3.986004415e14)
    assert orbit.periapsis == 7e6

def test_can_create_universe():
    """Test root universe creation from the default catalog."""
    from kosmos import universe, Randomizer
    root = universe(Randomizer(1))
    assert root.kind == 'universe'
    assert root.parent is None

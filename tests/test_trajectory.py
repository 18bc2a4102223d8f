"""
Test suite for OrbitTrajectory.

Tests cover:
- Time windows (default one period, open orbits, backward windows)
- Raw array output methods
- Time grids and __call__
- DataFrame export with radius and true anomaly
- String representations
- Plotting with apsis and epoch markers (smoke tests)
"""

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from kosmos import Node, Orbit, OrbitTrajectory, Sphere, Traj

MU_EARTH = 3.986004415e14   # m³/s²


@pytest.fixture
def orbit():
    return Orbit.from_elements(7e6, 0.01, 0.5, 0.0, 0.0, 0.0, mu=MU_EARTH)


@pytest.fixture
def traj(orbit):
    return OrbitTrajectory(orbit, 0.0, 600.0)


class TestWindow:
    """Construction and time bounds."""

    def test_default_one_period(self, orbit):
        """Without tf a closed orbit spans one period."""
        traj = OrbitTrajectory(orbit)
        assert traj.t0 == 0.0
        assert traj.tf == pytest.approx(orbit.period)
        assert traj.duration == pytest.approx(orbit.period)

    def test_default_from_offset(self, orbit):
        """The default period starts at t0."""
        traj = OrbitTrajectory(orbit, 100.0)
        assert traj.tf == pytest.approx(100.0 + orbit.period)

    def test_open_orbit_requires_tf(self):
        """Open orbits have no period to default to."""
        orbit = Orbit.from_elements(7e6, 1.5, 0.0, 0.0, 0.0, 0.0, mu=MU_EARTH)
        with pytest.raises(ValueError):
            OrbitTrajectory(orbit)
        assert OrbitTrajectory(orbit, 0.0, 3600.0).duration == 3600.0

    def test_alias(self):
        """Traj is OrbitTrajectory."""
        assert Traj is OrbitTrajectory

    def test_contains_time(self, traj):
        """Bounds are inclusive."""
        assert traj.contains_time(0.0)
        assert traj.contains_time(600.0)
        assert not traj.contains_time(601.0)

    def test_backward_window(self, orbit):
        """tf may precede t0."""
        traj = OrbitTrajectory(orbit, 0.0, -600.0)
        assert traj.contains_time(-300.0)
        assert traj.state_at(-300.0).shape == (6,)


class TestRawOutput:
    """Array outputs."""

    def test_state_at_shape(self, traj):
        """state_at returns a 6-vector."""
        assert traj.state_at(300.0).shape == (6,)

    def test_state_at_matches_orbit(self, traj, orbit):
        """States come from the orbit's propagation."""
        r, v = orbit.state_at(300.0)
        assert np.allclose(traj.state_at(300.0), np.concatenate([r, v]))

    def test_state_at_start(self, traj, orbit):
        """At t0 the state is the epoch state."""
        assert np.allclose(traj.state_at(0.0)[:3], orbit.r0)

    def test_out_of_bounds(self, traj):
        """Times outside the window raise."""
        with pytest.raises(ValueError):
            traj.state_at(700.0)
        with pytest.raises(ValueError):
            traj.evaluate([0.0, 700.0])

    def test_evaluate_scalar(self, traj):
        """Scalar times give a 6-vector."""
        assert traj.evaluate(100.0).shape == (6,)

    def test_evaluate_array(self, traj):
        """Array times give one row per time."""
        assert traj.evaluate([0.0, 100.0, 200.0]).shape == (3, 6)
        assert traj.evaluate(np.linspace(0, 600, 7)).shape == (7, 6)

    def test_sample(self, traj):
        """Uniform samples span the window."""
        states = traj.sample(50)
        assert states.shape == (50, 6)
        assert np.allclose(states[-1], traj.state_at(600.0))

    def test_sample_too_few(self, traj):
        """Fewer than two samples raise."""
        with pytest.raises(ValueError):
            traj.sample(1)

    def test_call(self, traj):
        """traj(t) is state_at(t)."""
        assert np.array_equal(traj(250.0), traj.state_at(250.0))


class TestWindowTimes:
    """Time grids over the window."""

    def test_times(self, traj):
        """Times are evenly spaced from t0 to tf."""
        assert np.allclose(traj.times(7), np.linspace(0.0, 600.0, 7))

    def test_backward_times(self, orbit):
        """Backward windows run from t0 down to tf."""
        times = OrbitTrajectory(orbit, 0.0, -600.0).times(3)
        assert np.allclose(times, [0.0, -300.0, -600.0])


class TestDataFrame:
    """Pandas export."""

    def test_columns(self, traj):
        """Time, state, radius and true anomaly columns."""
        df = traj.to_dataframe(n_points=20)
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ['time', 'x', 'y', 'z', 'vx', 'vy', 'vz',
                                    'radius', 'true_anomaly']
        assert len(df) == 20

    def test_given_times(self, traj):
        """Explicit times are used as given."""
        df = traj.to_dataframe(times=[0.0, 300.0])
        assert df['time'].tolist() == [0.0, 300.0]
        assert df.loc[1, 'x'] == pytest.approx(traj.state_at(300.0)[0])

    def test_radius_and_anomaly(self, traj, orbit):
        """Radius is the distance from the orbited body, anomaly starts at epoch."""
        df = traj.to_dataframe(times=[0.0, 300.0])
        assert df.loc[0, 'radius'] == pytest.approx(np.linalg.norm(orbit.r0))
        assert df.loc[0, 'true_anomaly'] == pytest.approx(orbit.true_anomaly, abs=1e-9)
        assert df.loc[1, 'true_anomaly'] == pytest.approx(orbit.true_anomaly_at(300.0))


class TestStringRepresentations:
    """repr and str."""

    def test_repr(self, traj):
        assert repr(traj).startswith('OrbitTrajectory(e=')

    def test_str_unnamed(self, traj):
        """Orbits without bodies name no body."""
        assert 'unnamed body' in str(traj)

    def test_str_names_orbited(self):
        """The orbited body's designation appears."""
        system = Node('system', Sphere(1e9))
        earth = Node('planet', Sphere(6.371e6), parent=system, mass=5.972e24, name='Earth')
        satellite = Node('satellite', parent=system, position=[7e3, 0, 0], velocity=[0, 7.5e3, 0])
        orbit = Orbit.from_state_vectors(satellite.position * system.local_scale,
                                         satellite.velocity, satellite, earth)
        assert 'Earth' in str(OrbitTrajectory(orbit))


class TestPlotting:
    """Plotting smoke tests."""

    def test_plot_3d(self, traj):
        """plot_3d returns a Figure with the trajectory trace."""
        fig = traj.plot_3d(n_points=20)
        assert isinstance(fig, go.Figure)
        assert any(t.name == 'Trajectory' for t in fig.data)

    def test_plot_3d_with_body(self):
        """An orbited body with a radius is drawn as a surface."""
        system = Node('system', Sphere(1e9))
        earth = Node('planet', Sphere(6.371e6), parent=system, mass=5.972e24)
        satellite = Node('satellite', parent=system, position=[7e3, 0, 0], velocity=[0, 7.5e3, 0])
        orbit = Orbit.from_state_vectors(satellite.position * system.local_scale,
                                         satellite.velocity, satellite, earth)
        fig = OrbitTrajectory(orbit).plot_3d(n_points=20)
        assert any(isinstance(t, go.Surface) for t in fig.data)

    def test_add_to_plot(self, traj, orbit):
        """Added trajectories are numbered."""
        fig = traj.plot_3d(n_points=20, show_body=False)
        OrbitTrajectory(orbit, 600.0, 1200.0).add_to_plot(fig, n_points=20)
        assert fig.data[-1].name == 'Trajectory 2'
        traj.add_to_plot(fig, n_points=20, name='Custom')
        assert fig.data[-1].name == 'Custom'

    def test_apsis_markers(self, traj, orbit):
        """Closed orbits mark periapsis, apoapsis and the epoch position."""
        fig = traj.plot_3d(n_points=20)
        traces = {t.name: t for t in fig.data}
        assert {'Periapsis', 'Apoapsis', 'Epoch'} <= set(traces)
        peri = traces['Periapsis']
        assert np.linalg.norm([peri.x[0], peri.y[0], peri.z[0]]) == pytest.approx(orbit.periapsis)
        apo = traces['Apoapsis']
        assert np.linalg.norm([apo.x[0], apo.y[0], apo.z[0]]) == pytest.approx(orbit.apoapsis)

    def test_open_orbit_has_no_apoapsis(self):
        """Open orbits mark periapsis only."""
        orbit = Orbit.from_elements(7e6, 1.5, 0.0, 0.0, 0.0, 0.0, mu=MU_EARTH)
        fig = OrbitTrajectory(orbit, 0.0, 3600.0).plot_3d(n_points=20)
        names = [t.name for t in fig.data]
        assert 'Periapsis' in names
        assert 'Apoapsis' not in names

    def test_without_apsides(self, traj):
        """Markers can be turned off."""
        fig = traj.plot_3d(n_points=20, show_apsides=False)
        assert [t.name for t in fig.data] == ['Trajectory']

    def test_title_names_orbited(self):
        """The title names the orbited body."""
        system = Node('system', Sphere(1e9))
        earth = Node('planet', Sphere(6.371e6), parent=system, mass=5.972e24, name='Earth')
        satellite = Node('satellite', parent=system, position=[7e3, 0, 0], velocity=[0, 7.5e3, 0])
        orbit = Orbit.from_state_vectors(satellite.position * system.local_scale,
                                         satellite.velocity, satellite, earth)
        fig = OrbitTrajectory(orbit).plot_3d(n_points=20, show_body=False)
        assert 'Earth' in fig.layout.title.text

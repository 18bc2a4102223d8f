"""
Time-windowed view of an analytic orbit.

``OrbitTrajectory`` samples ``Orbit.state_at`` over ``[t0, tf]`` (seconds
after the orbit's epoch) for tabulation and plotting. Every state is in the
orbited body's frame: metres and m/s relative to its center.
"""

from typing import Optional, Union

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from .config import config
from .orbit import Orbit

_HOVER = 'x: %{x:.4e}<br>y: %{y:.4e}<br>z: %{z:.4e}<extra></extra>'


class OrbitTrajectory:
    """
    A window of an Orbit between two times after its epoch.

    Without ``tf`` a closed orbit is sampled for one period from ``t0``;
    open orbits need an explicit end time. ``tf`` may precede ``t0`` for a
    window that runs backward from the epoch.
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, orbit: Orbit, t0: float = 0.0, tf: Optional[float] = None):
        if tf is None:
            if not np.isfinite(orbit.period):
                raise ValueError("tf is required for open orbits (no period)")
            tf = t0 + orbit.period
        self._orbit = orbit
        self._t0 = float(t0)
        self._tf = float(tf)

    # ========== PROPERTY ACCESS ==========
    @property
    def orbit(self) -> Orbit:
        return self._orbit

    @property
    def t0(self) -> float:
        return self._t0

    @property
    def tf(self) -> float:
        return self._tf

    @property
    def duration(self) -> float:
        return self._tf - self._t0

    # ========== STATE ACCESS ==========
    def contains_time(self, t: float) -> bool:
        return min(self._t0, self._tf) <= t <= max(self._t0, self._tf)

    def _check_time(self, t: float):
        if not self.contains_time(t):
            raise ValueError(f"Time {t} outside trajectory bounds [{self._t0}, {self._tf}]")

    def state_at(self, t: float) -> np.ndarray:
        """State [x, y, z, vx, vy, vz] at t seconds after epoch (m, m/s)."""
        self._check_time(t)
        return np.concatenate(self._orbit.state_at(t))

    __call__ = state_at

    def evaluate(self, times: Union[float, np.ndarray, list]) -> np.ndarray:
        """States at one time, shape (6,), or at several, shape (n, 6)."""
        if np.ndim(times) == 0:
            return self.state_at(float(times))
        times = np.asarray(times, dtype=float)
        if times.size:
            self._check_time(times.min())
            self._check_time(times.max())
        return np.array([np.concatenate(self._orbit.state_at(t))
                         for t in times]).reshape(-1, 6)

    def times(self, n_points: int = 100) -> np.ndarray:
        """Evenly spaced times across the window."""
        return np.linspace(self._t0, self._tf, n_points)

    def sample(self, n_points: int = 100) -> np.ndarray:
        if n_points < 2:
            raise ValueError("n_points must be at least 2, use .state_at()")
        return self.evaluate(self.times(n_points))

    def to_dataframe(self, times: Optional[np.ndarray] = None,
                     n_points: int = 1000) -> pd.DataFrame:
        """
        Tabulate the window.

        Columns are the time, the state components, the distance from the
        orbited body and the true anomaly.
        """
        times = self.times(n_points) if times is None else np.asarray(times, dtype=float)
        states = self.evaluate(times)
        frame = pd.DataFrame(states, columns=['x', 'y', 'z', 'vx', 'vy', 'vz'])
        frame.insert(0, 'time', times)
        frame['radius'] = np.linalg.norm(states[:, :3], axis=1)
        frame['true_anomaly'] = [self._orbit.true_anomaly_at(t) for t in times]
        return frame

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"OrbitTrajectory(e={self._orbit.eccentricity:.6f}, "
                f"t0={self._t0}, tf={self._tf}, duration={self.duration})")

    def __str__(self):
        orbited = self._orbit.orbited
        name = orbited.designation if orbited is not None else "unnamed body"
        return f"Trajectory around {name}: t ∈ [{self._t0}, {self._tf}]"

    # ========== PLOTTING ==========
    def _apsis_markers(self):
        """Periapsis and, for closed orbits, apoapsis positions with labels."""
        markers = [('Periapsis', self._orbit.state_at_true_anomaly(0.0)[0])]
        if self._orbit.eccentricity < 1:
            markers.append(('Apoapsis', self._orbit.state_at_true_anomaly(np.pi)[0]))
        return markers

    def plot_3d(self, n_points: Optional[int] = None, show_body: bool = True,
                show_apsides: bool = True, body_color: Optional[str] = None,
                traj_color: Optional[str] = None,
                body_opacity: Optional[float] = None) -> go.Figure:
        """
        Plot the window in the orbited body's frame.

        The orbited body is drawn at the origin with its containing radius,
        the apsides of the orbit and the epoch position are marked.

        Returns
        -------
        plotly.graph_objects.Figure
        """
        n_points = n_points or config.DEFAULT_PLOT_POINTS
        body_opacity = config.DEFAULT_BODY_OPACITY if body_opacity is None else body_opacity
        fig = go.Figure()

        orbited = self._orbit.orbited
        if show_body and orbited is not None and orbited.shape.containing_radius > 0:
            radius = orbited.shape.containing_radius
            lon, colat = np.meshgrid(np.linspace(0, 2 * np.pi, 30), np.linspace(0, np.pi, 20))
            color = body_color or config.DEFAULT_BODY_COLOR
            fig.add_trace(go.Surface(
                x=radius * np.cos(lon) * np.sin(colat),
                y=radius * np.sin(lon) * np.sin(colat),
                z=radius * np.cos(colat),
                colorscale=[[0, color], [1, color]], showscale=False,
                opacity=body_opacity, name=orbited.designation, hoverinfo='name'))

        self.add_to_plot(fig, n_points, traj_color or config.DEFAULT_TRAJ_COLOR, 'Trajectory')

        if show_apsides:
            for label, position in self._apsis_markers():
                fig.add_trace(go.Scatter3d(
                    x=[position[0]], y=[position[1]], z=[position[2]],
                    mode='markers', marker=dict(size=4, symbol='diamond'),
                    name=label, hovertemplate=_HOVER))
            r0 = self._orbit.r0
            fig.add_trace(go.Scatter3d(
                x=[r0[0]], y=[r0[1]], z=[r0[2]], mode='markers',
                marker=dict(size=4, symbol='circle'), name='Epoch', hovertemplate=_HOVER))

        title = f"Orbit about {orbited.designation}" if orbited is not None else 'Orbit'
        fig.update_layout(
            scene=dict(xaxis_title='X [m]', yaxis_title='Y [m]', zaxis_title='Z [m]',
                       aspectmode='data'),
            title=title, showlegend=True)
        return fig

    def add_to_plot(self, fig: go.Figure, n_points: Optional[int] = None,
                    color: Optional[str] = None, name: Optional[str] = None,
                    **kwargs) -> go.Figure:
        """
        Draw this window's path on an existing figure, in place.

        Unnamed paths are labelled 'Trajectory N' after the paths already
        on the figure. Extra keyword arguments go to ``go.Scatter3d``.
        """
        positions = self.sample(n_points or config.DEFAULT_PLOT_POINTS)[:, :3]
        if name is None:
            paths = sum(1 for trace in fig.data
                        if isinstance(trace, go.Scatter3d) and trace.mode == 'lines')
            name = f'Trajectory {paths + 1}'
        fig.add_trace(go.Scatter3d(
            x=positions[:, 0], y=positions[:, 1], z=positions[:, 2], mode='lines',
            line=dict(color=color or config.DEFAULT_TRAJ_COLOR_ADD, width=3),
            name=name, hovertemplate=_HOVER, **kwargs))
        return fig

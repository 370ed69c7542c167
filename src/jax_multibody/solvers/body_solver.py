"""Multibody solver for unconnected rigid bodies.

Each body carries its pose and its spatial momentum about the world origin.
The momentum is integrated from the applied wrenches and converted back to a
twist through the spatial mobility whenever the rate is evaluated.
"""

from typing import List, Optional, Sequence

import jax
import jax.numpy as jnp
from jax import Array

from .. import logging
from ..core.pose import Pose
from ..core.solid import Solid
from ..core.states import BodyState
from ..spatial import screw, so3
from ..units import LENGTH, UnitSystem
from .chain_solver import default_gravity


class MbdSolver:
    """RK4 integration of free rigid bodies under gravity and applied loads.

    Attributes:
        bodies: Solids in the solver's unit system.
        gravity: (3,) gravitational acceleration.
        units: Unit system of every quantity the solver holds.
    """

    def __init__(
        self,
        bodies: Sequence[Solid],
        gravity: Optional[Array] = None,
        units: UnitSystem = UnitSystem.SI,
        jit: bool = False,
    ):
        if not bodies:
            logging.warning("Multibody solver created without bodies")
        self.units = units
        self.bodies: List[Solid] = [
            body if body.units is units else body.convert_to(units) for body in bodies
        ]
        self.gravity = default_gravity(units) if gravity is None else jnp.asarray(gravity, dtype=jnp.float64)
        self.jit = jit
        self._rate = jax.jit(self.calc_rate) if jit else self.calc_rate
        self._time = 0.0
        self._current = self._initial_states()
        logging.debug("Created multibody solver with %d bodies in %s", len(self.bodies), units.name)

    @property
    def time(self) -> float:
        return self._time

    @property
    def current(self) -> Optional[BodyState]:
        """Batched state of every body, ``None`` without bodies."""
        return self._current

    def _initial_states(self) -> Optional[BodyState]:
        if not self.bodies:
            return None
        return BodyState.stack([body.get_initial_state() for body in self.bodies])

    def reset(self) -> None:
        self._time = 0.0
        self._current = self._initial_states()

    def body_force(self, time, body: Solid, state: BodyState, motion: Array) -> Array:
        """Weight plus applied wrench on ``body``, about the world origin."""
        pose = state.pose.from_local(body.mesh_origin)
        force = body.mass_properties.weight_at(pose, self.gravity)
        if body.has_applied_force:
            force = force + body.applied_force(time, pose, motion)
        return force

    def body_rate(self, time, body: Solid, state: BodyState) -> BodyState:
        """
        Rate of one body state.

        The pose rate is the velocity of the body frame origin and the
        quaternion derivative. The momentum rate is the applied wrench, its
        moment corrected by ``r' x p`` for the moving body frame origin.
        """
        cg = state.pose.from_local_point(body.cg)
        motion = body.get_motion(state, cg)
        force = self.body_force(time, body, state, motion)
        rp = screw.twist_value_at(motion, state.pose.position)
        pose_rate = Pose(rp, so3.derivative(state.pose.orientation, screw.angular(motion)))
        momentum_rate = screw.compose(
            screw.linear(force),
            screw.angular(force) - jnp.cross(rp, screw.linear(state.momentum)),
        )
        return BodyState(pose_rate, momentum_rate)

    def calc_rate(self, time, states: BodyState) -> BodyState:
        return BodyState.stack(
            [self.body_rate(time, body, states[i]) for i, body in enumerate(self.bodies)]
        )

    def update(self, dt: float) -> None:
        """Advance every body by one RK4 step of ``dt``."""
        if self._current is None:
            self._time += dt
            return
        t, current = self._time, self._current
        k0 = self._rate(t, current)
        k1 = self._rate(t + dt / 2, current + dt / 2 * k0)
        k2 = self._rate(t + dt / 2, current + dt / 2 * k1)
        k3 = self._rate(t + dt, current + dt * k2)
        nxt = current + dt / 6 * (k0 + 2 * k1 + 2 * k2 + k3)
        self._time = t + dt
        self._current = nxt.replace(pose=nxt.pose.normalized())

    def step(self, dt: float, count: int = 1) -> Optional[BodyState]:
        for _ in range(count):
            self.update(dt)
        return self._current

    def get_poses(self) -> List[Pose]:
        """World mesh poses of every body at the current state."""
        if self._current is None:
            return []
        return [
            self._current[i].pose.from_local(body.mesh_origin)
            for i, body in enumerate(self.bodies)
        ]

    def convert_to(self, target: UnitSystem) -> "MbdSolver":
        solver = MbdSolver(
            [body.convert_to(target) for body in self.bodies],
            gravity=LENGTH.convert(self.units, target) * self.gravity,
            units=target,
            jit=self.jit,
        )
        solver._time = self._time
        if self._current is not None:
            solver._current = self._current.convert_from_to(self.units, target)
        return solver

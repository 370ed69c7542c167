"""Articulated-body solver for a tree of planar frames.

The same three passes as :class:`~jax_multibody.solvers.ChainSolver` run on
planar twists and wrenches ``[x, y, z-rotation]`` about the world origin:
kinematics from the roots, articulated inertia from the leaves, and the joint
accelerations and loads from the roots again. Joint states are integrated with
classic fourth-order Runge-Kutta.

Example:
    >>> world = PlanarWorld(UnitSystem.SI)
    >>> bar = PlanarMassProperties.rectangle(UnitSystem.SI, 1.0, 1.0, 0.1, cg=[0.5, 0.0])
    >>> world.add_revolute(-1, bar)
    0
    >>> solver = PlanarSolver(world)
    >>> solver.update(0.01)
"""

from typing import List, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
from jax import Array
from flax import struct

from .. import logging
from ..core.joint import JointInfo, Prescribed
from ..core.states import ChainStates
from ..core.topology import ChainTopology, build_topology
from ..exceptions import SingularityError
from ..spatial import planar
from ..units import UnitSystem
from .frame import Frame, PlanarWorld
from .pose import PlanarPose


@struct.dataclass
class PlanarKinematics:
    """Per-frame quantities of the planar passes.

    Before the dynamics pass ``acceleration`` and ``force`` assume the driver
    value for motion joints and zero joint acceleration for load joints. The
    dynamics pass returns copies holding the solved values.

    Attributes:
        pose: World pose of the joint frame.
        cg: (2,) world center of mass.
        axis: (3,) joint twist per unit joint rate.
        velocity: (3,) twist of the frame.
        bias_acceleration: (3,) velocity-product acceleration across the joint.
        acceleration: (3,) acceleration twist of the frame.
        inertia: (3, 3) planar inertia about the world origin.
        weight: (3,) gravity plus applied wrench.
        momentum: (3,) ``inertia @ velocity``.
        bias_force: (3,) gyroscopic wrench ``velocity x momentum``.
        force: (3,) net wrench the joint transmits into the frame.
        joint: Joint coordinate, rate, acceleration and load.
    """
    pose: PlanarPose
    cg: Array
    axis: Array
    velocity: Array
    bias_acceleration: Array
    acceleration: Array
    inertia: Array
    weight: Array
    momentum: Array
    bias_force: Array
    force: Array
    joint: JointInfo

    def velocity_at(self, point: Array) -> Array:
        return planar.twist_value_at(self.velocity, point)

    def material_acceleration_at(self, point: Array) -> Array:
        """Acceleration of the material point at ``point``: ``a(r) + ω × v(r)``."""
        spatial = planar.twist_value_at(self.acceleration, point)
        omega = planar.scalar(self.velocity)
        return spatial + omega * planar.perpendicular(self.velocity_at(point))

    def cg_acceleration(self) -> Array:
        return self.material_acceleration_at(self.cg)


@struct.dataclass
class PlanarArticulated:
    """Articulated quantities of one frame and its subtree.

    Attributes:
        inertia: (3, 3) articulated inertia ``A``.
        bias_force: (3,) articulated bias wrench ``d``.
        precussion: (3,) percussion axis ``T = A s / (s' A s)``.
        reaction_space: (3, 3) projector ``1 - T s'``.
    """
    inertia: Array
    bias_force: Array
    precussion: Array
    reaction_space: Array

    @classmethod
    def create(cls, inertia: Array, bias_force: Array, axis: Array) -> "PlanarArticulated":
        precussion = planar.mul(inertia, axis) / planar.dot(axis, planar.mul(inertia, axis))
        return cls(
            inertia=inertia,
            bias_force=bias_force,
            precussion=precussion,
            reaction_space=jnp.eye(3) - planar.outer(precussion, axis),
        )

    def effective_inertia(self, axis: Array) -> Array:
        return planar.dot(axis, planar.mul(self.inertia, axis))


class PlanarSolver:
    """Forward dynamics and time integration of the frames of a planar world.

    Attributes:
        world: The world being simulated. Frames must not be edited while a
            solver holds it.
        topology: Root-first index arrays of the frame tree.
        gravity: (2,) gravitational acceleration in world units.
    """

    def __init__(self, world: PlanarWorld, gravity: Optional[Array] = None, jit: bool = False):
        self.world = world
        self.topology: ChainTopology = build_topology(
            [frame.parent for frame in world],
            [frame.name or f"frame{i}" for i, frame in enumerate(world)],
        )
        self._frames: Tuple[Frame, ...] = tuple(world[k] for k in self.topology.order)
        self.gravity = world.gravity if gravity is None else jnp.asarray(gravity, dtype=jnp.float64)
        self._rate = jax.jit(self.calc_rate) if jit else self.calc_rate
        self._time = 0.0
        self._current: ChainStates = self._initial_states()
        logging.debug("Created planar solver with %d frames in %s", self.count, self.units.name)

    @property
    def units(self) -> UnitSystem:
        return self.world.units

    @property
    def time(self) -> float:
        return self._time

    @property
    def current(self) -> ChainStates:
        return self._current

    @property
    def frames(self) -> Tuple[Frame, ...]:
        """Frames in solver (root-first) order."""
        return self._frames

    @property
    def count(self) -> int:
        return self.topology.count

    def _initial_states(self) -> ChainStates:
        return ChainStates.from_joint_states([frame.get_initial() for frame in self._frames])

    def reset(self) -> None:
        self._time = 0.0
        self._current = self._initial_states()

    def get_kinematics(self, time, states: ChainStates) -> List[PlanarKinematics]:
        """Kinematics pass from the roots to the leaves, one entry per frame in solver order."""
        zero = jnp.zeros(3)
        kinematics: List[PlanarKinematics] = []
        for i, frame in enumerate(self._frames):
            p = self.topology.parents[i]
            if p < 0:
                base, parent_velocity, parent_acceleration = PlanarPose.origin(), zero, zero
            else:
                prev = kinematics[p]
                base, parent_velocity, parent_acceleration = prev.pose, prev.velocity, prev.acceleration

            joint = frame.joint
            pose = base.from_local(frame.location_on_parent).from_local(joint.get_local_step(states.angle[i]))
            cg = pose.from_local_point(frame.mass_properties.cg)

            info = joint.evaluate(time, states[i])
            s = joint.get_axis(pose)
            dv = s * info.speed
            v = parent_velocity + dv
            kappa = planar.cross_twist_twist(v, dv)
            a = parent_acceleration + s * info.acceleration + kappa

            mass = frame.mass_properties
            inertia = mass.spi(cg)
            weight = mass.weight(self.gravity, cg)
            if frame.has_applied_force:
                weight = weight + frame.applied_force(time, pose, v)
            momentum = planar.mul(inertia, v)
            bias_force = planar.cross_twist_wrench(v, momentum)

            kinematics.append(PlanarKinematics(
                pose=pose,
                cg=cg,
                axis=s,
                velocity=v,
                bias_acceleration=kappa,
                acceleration=a,
                inertia=inertia,
                weight=weight,
                momentum=momentum,
                bias_force=bias_force,
                force=planar.mul(inertia, a) + bias_force - weight,
                joint=info,
            ))
        return kinematics

    def get_articulated(self, kinematics: Sequence[PlanarKinematics]) -> List[PlanarArticulated]:
        """
        Articulated inertia pass from the leaves to the roots.

        Load-driven children pass on ``RU A``; motion-driven children are
        carried rigidly with their prescribed acceleration.
        """
        children = self.topology.children
        articulated: List[Optional[PlanarArticulated]] = [None] * self.count
        for i in reversed(range(self.count)):
            k = kinematics[i]
            inertia = k.inertia
            bias = k.bias_force - k.weight
            for c in children[i]:
                child, kc = articulated[c], kinematics[c]
                if self._frames[c].joint.motion is Prescribed.MOTION:
                    inertia = inertia + child.inertia
                    bias = bias + planar.mul(
                        child.inertia, kc.axis * kc.joint.acceleration + kc.bias_acceleration
                    ) + child.bias_force
                else:
                    inertia = inertia + child.reaction_space @ child.inertia
                    bias = (
                        bias
                        + planar.mul(child.reaction_space,
                                     planar.mul(child.inertia, kc.bias_acceleration) + child.bias_force)
                        + child.precussion * kc.joint.torque
                    )
            articulated[i] = PlanarArticulated.create(inertia, bias, k.axis)
        return articulated

    def calc_dynamics(
        self, time, states: ChainStates
    ) -> Tuple[List[JointInfo], List[PlanarKinematics]]:
        """
        Solve the joint accelerations and loads of every frame.

        Returns:
            Joint info and kinematics with the solved accelerations and joint
            forces, both in solver order.
        """
        kinematics = self.get_kinematics(time, states)
        articulated = self.get_articulated(kinematics)

        infos: List[JointInfo] = []
        resolved: List[PlanarKinematics] = []
        for i, frame in enumerate(self._frames):
            p = self.topology.parents[i]
            a0 = jnp.zeros(3) if p < 0 else resolved[p].acceleration
            k, art = kinematics[i], articulated[i]
            s = k.axis
            if frame.joint.motion is Prescribed.MOTION:
                qpp = k.joint.acceleration
                a = a0 + s * qpp + k.bias_acceleration
                f = planar.mul(art.inertia, a) + art.bias_force
                torque = planar.dot(s, f)
            else:
                torque = k.joint.torque
                free = planar.mul(art.inertia, a0 + k.bias_acceleration) + art.bias_force
                qpp = (torque - planar.dot(s, free)) / art.effective_inertia(s)
                a = a0 + s * qpp + k.bias_acceleration
                f = planar.mul(art.inertia, a) + art.bias_force
            info = JointInfo(k.joint.angle, k.joint.speed, qpp, torque)
            infos.append(info)
            resolved.append(k.replace(acceleration=a, force=f, joint=info))
        return infos, resolved

    def calc_rate(self, time, states: ChainStates) -> ChainStates:
        """Time derivative ``(qp, qpp)`` of the joint states."""
        infos, _ = self.calc_dynamics(time, states)
        return ChainStates(
            angle=jnp.stack([info.speed for info in infos]),
            speed=jnp.stack([info.acceleration for info in infos]),
        )

    def check_force_balance(self, time=None, states: Optional[ChainStates] = None) -> Array:
        """
        Newton-Euler residual ``F_i + W_i - sum(F_children) - (I_i a_i + p_i)`` of every frame.

        Returns:
            (num_frames, 3) residual wrenches in solver order.
        """
        time = self._time if time is None else time
        states = self._current if states is None else states
        _, resolved = self.calc_dynamics(time, states)
        residuals = []
        for i, k in enumerate(resolved):
            transmitted = sum((resolved[c].force for c in self.topology.children[i]), jnp.zeros(3))
            residuals.append(
                k.force + k.weight - transmitted - (planar.mul(k.inertia, k.acceleration) + k.bias_force)
            )
        return jnp.stack(residuals)

    def update(self, dt: float) -> None:
        """
        Advance the frames by one RK4 step of ``dt``.

        Raises:
            SingularityError: If the new joint state is not finite.
        """
        t, current = self._time, self._current
        k0 = self._rate(t, current)
        k1 = self._rate(t + dt / 2, current + dt / 2 * k0)
        k2 = self._rate(t + dt / 2, current + dt / 2 * k1)
        k3 = self._rate(t + dt, current + dt * k2)
        t += dt
        nxt = current + dt / 6 * (k0 + 2 * k1 + 2 * k2 + k3)
        if not nxt.is_finite():
            logging.error("Planar state became non-finite at t=%g", t)
            raise SingularityError(
                f"Non-finite joint state at t={t:g}; a joint has zero effective inertia"
            )
        self._time = t
        self._current = nxt

    def step(self, dt: float, count: int = 1) -> ChainStates:
        """Run ``count`` updates of ``dt`` and return the final state."""
        for _ in range(count):
            self.update(dt)
        return self._current

    def get_poses(self) -> List[PlanarPose]:
        """World joint-frame poses of every frame at the current state."""
        return [k.pose for k in self.get_kinematics(self._time, self._current)]

"""Articulated-body solver for a tree of single degree-of-freedom joints.

The solver runs three passes over the links of a :class:`~jax_multibody.core.chain.Chain`:

1. kinematics, root to leaves: poses, joint axes, velocities, velocity-product
   accelerations, spatial inertias and applied wrenches;
2. articulated inertia, leaves to root: each subtree collapsed onto its root link;
3. dynamics, root to leaves: the unknown joint accelerations of load-driven
   joints and the unknown joint loads of motion-driven joints.

All spatial quantities are expressed in world coordinates about the world
origin. Joint states are integrated with classic fourth-order Runge-Kutta, and
an optional point contact is resolved with an impulse between RK stages.

Example:
    >>> from jax_multibody import Chain, ChainSolver, MassProperties, Pose, UnitSystem
    >>> chain = Chain(UnitSystem.SI)
    >>> rod = MassProperties.box(UnitSystem.SI, 1.0, 1.0, 0.05, 0.05, cg=[0.5, 0, 0])
    >>> chain.add_revolute(-1, rod)
    0
    >>> solver = ChainSolver(chain)
    >>> solver.update(0.01)
"""

from typing import List, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
from jax import Array

from .. import logging
from ..core.chain import Chain, Link
from ..core.joint import JointInfo, Prescribed
from ..core.pose import Pose
from ..core.states import ChainStates
from ..core.topology import ChainTopology, build_topology
from ..exceptions import SingularityError
from ..spatial import screw
from ..units import ACCELERATION, LENGTH, UnitSystem
from .kinematics import FrameArticulated, PartialKinematics, ResolvedKinematics

STANDARD_GRAVITY = (0.0, -10.0, 0.0)


def default_gravity(units: UnitSystem) -> Array:
    """Gravity of ``-10 y`` m/s² expressed in ``units``."""
    return ACCELERATION.convert(UnitSystem.SI, units) * jnp.array(STANDARD_GRAVITY)


class ChainSolver:
    """Forward dynamics and time integration of one chain.

    Attributes:
        chain: The chain being simulated. Links must not be edited while a
            solver holds it; build a new solver instead.
        topology: Root-first index arrays of the chain.
        gravity: (3,) gravitational acceleration in chain units.
        enable_contacts: Whether :meth:`update` resolves the chain contact.
        restitution: Coefficient of restitution of the contact, 0 for plastic.
    """

    def __init__(
        self,
        chain: Chain,
        enable_contacts: bool = False,
        restitution: float = 0.0,
        gravity: Optional[Array] = None,
        jit: bool = False,
    ):
        self.chain = chain
        self.topology: ChainTopology = build_topology(
            [link.parent for link in chain],
            [link.name or f"link{i}" for i, link in enumerate(chain)],
        )
        self._links: Tuple[Link, ...] = tuple(chain[k] for k in self.topology.order)
        self.gravity = default_gravity(chain.units) if gravity is None else jnp.asarray(gravity, dtype=jnp.float64)
        self.enable_contacts = enable_contacts
        self.restitution = restitution
        self.jit = jit
        self._rate = jax.jit(self.calc_rate) if jit else self.calc_rate
        self._time = 0.0
        self._current: ChainStates = self._initial_states()
        logging.debug(
            "Created chain solver with %d links in %s (contacts %s)",
            self.count, self.units.name, "on" if enable_contacts else "off",
        )

    @property
    def units(self) -> UnitSystem:
        return self.chain.units

    @property
    def time(self) -> float:
        return self._time

    @property
    def current(self) -> ChainStates:
        return self._current

    @property
    def bodies(self) -> Tuple[Link, ...]:
        """Links in solver (root-first) order."""
        return self._links

    @property
    def parent(self) -> Tuple[int, ...]:
        return self.topology.parents

    @property
    def children(self) -> Tuple[Tuple[int, ...], ...]:
        return self.topology.children

    @property
    def count(self) -> int:
        return self.topology.count

    @property
    def contact_index(self) -> int:
        """Solver index of the link carrying the contact marker."""
        return self.topology.order.index(self.chain.get_contact_link())

    def _initial_states(self) -> ChainStates:
        return ChainStates.from_joint_states([link.get_initial() for link in self._links])

    def reset(self) -> None:
        self._time = 0.0
        self._current = self._initial_states()
        logging.debug("Reset chain solver with %d links", self.count)

    def get_kinematics(self, time, states: ChainStates) -> List[PartialKinematics]:
        """
        Kinematics pass from the roots to the leaves.

        Args:
            time: Simulation time passed to drivers and applied forces.
            states: Joint coordinates and rates in solver order.

        Returns:
            One :class:`PartialKinematics` per link, in solver order.
        """
        zero = screw.zero()
        kinematics: List[PartialKinematics] = []
        for i, link in enumerate(self._links):
            p = self.topology.parents[i]
            if p < 0:
                base, parent_velocity, parent_acceleration = Pose.origin(), zero, zero
            else:
                prev = kinematics[p]
                base, parent_velocity, parent_acceleration = prev.pose, prev.velocity, prev.acceleration

            joint = link.joint
            bottom = base.from_local(link.location_on_parent)
            top = bottom.from_local(joint.get_local_step(states.angle[i]))
            mesh_pose = top.from_local(link.mesh_origin)
            cg = mesh_pose.from_local_point(link.mass_properties.cg)

            info = joint.evaluate(time, states[i])
            s = joint.get_axis(top)
            dv = s * info.speed
            v = parent_velocity + dv
            kappa = screw.cross_twist_twist(v, dv)
            a = parent_acceleration + s * info.acceleration + kappa

            mass = link.mass_properties
            inertia = mass.spi(mesh_pose.orientation, cg)
            weight = mass.weight(self.gravity, cg)
            if link.has_applied_force:
                weight = weight + link.applied_force(time, mesh_pose, v)
            momentum = screw.mul(inertia, v)
            bias_force = screw.cross_twist_wrench(v, momentum)

            kinematics.append(PartialKinematics(
                pose=top,
                mesh_pose=mesh_pose,
                cg=cg,
                axis=s,
                velocity=v,
                bias_acceleration=kappa,
                acceleration=a,
                inertia=inertia,
                weight=weight,
                momentum=momentum,
                bias_force=bias_force,
                force=screw.mul(inertia, a) + bias_force - weight,
                joint=info,
            ))
        return kinematics

    def get_articulated(
        self, kinematics: Sequence[PartialKinematics]
    ) -> Tuple[List[FrameArticulated], List[Array]]:
        """
        Articulated inertia pass from the leaves to the roots.

        A load-driven child passes on only the part of its inertia its joint
        cannot relieve (``RU A``). A motion-driven child moves rigidly with its
        parent for a given parent acceleration, so it passes on its whole
        articulated inertia plus the wrench of its prescribed acceleration.

        Returns:
            The articulated quantities of every link, and the per-link forces
            of the kinematics pass summed over each subtree.
        """
        n = self.count
        children = self.topology.children

        forces = [k.force for k in kinematics]
        for i in reversed(range(n)):
            for c in children[i]:
                forces[i] = forces[i] + forces[c]

        articulated: List[Optional[FrameArticulated]] = [None] * n
        for i in reversed(range(n)):
            k = kinematics[i]
            inertia = k.inertia
            bias = k.bias_force - k.weight
            for c in children[i]:
                child, kc = articulated[c], kinematics[c]
                if self._links[c].joint.motion is Prescribed.MOTION:
                    inertia = inertia + child.inertia
                    bias = bias + screw.mul(
                        child.inertia, kc.axis * kc.joint.acceleration + kc.bias_acceleration
                    ) + child.bias_force
                else:
                    inertia = inertia + child.reaction_space @ child.inertia
                    bias = (
                        bias
                        + screw.mul(child.reaction_space,
                                    screw.mul(child.inertia, kc.bias_acceleration) + child.bias_force)
                        + child.precussion * kc.joint.torque
                    )
            articulated[i] = FrameArticulated.create(inertia, bias, k.axis)
        return articulated, forces

    def calc_dynamics(
        self, time, states: ChainStates
    ) -> Tuple[List[JointInfo], List[ResolvedKinematics], List[FrameArticulated]]:
        """
        Solve the joint accelerations and loads of every link.

        Load-driven joints take their load from the driver and get
        ``qpp = (Q - s'(A (a0 + k) + d)) / (s' A s)``. Motion-driven joints take
        their acceleration from the driver and get ``Q = s' (A a + d)``. In both
        cases the link acceleration is ``a = a0 + s qpp + k`` and the joint
        transmits ``f = A a + d``.

        Returns:
            Joint info, resolved kinematics and articulated quantities, all in
            solver order.
        """
        kinematics = self.get_kinematics(time, states)
        articulated, _ = self.get_articulated(kinematics)

        infos: List[JointInfo] = []
        resolved: List[ResolvedKinematics] = []
        for i, link in enumerate(self._links):
            p = self.topology.parents[i]
            a0 = screw.zero() if p < 0 else resolved[p].acceleration
            k, art = kinematics[i], articulated[i]
            s = k.axis
            if link.joint.motion is Prescribed.MOTION:
                qpp = k.joint.acceleration
                a = a0 + s * qpp + k.bias_acceleration
                f = screw.mul(art.inertia, a) + art.bias_force
                torque = screw.dot(s, f)
            else:
                torque = k.joint.torque
                free = screw.mul(art.inertia, a0 + k.bias_acceleration) + art.bias_force
                qpp = (torque - screw.dot(s, free)) / art.effective_inertia(s)
                a = a0 + s * qpp + k.bias_acceleration
                f = screw.mul(art.inertia, a) + art.bias_force
            info = JointInfo(k.joint.angle, k.joint.speed, qpp, torque)
            infos.append(info)
            resolved.append(ResolvedKinematics.resolve(k, a, f, info))
        return infos, resolved, articulated

    def calc_rate(self, time, states: ChainStates) -> ChainStates:
        """Time derivative ``(qp, qpp)`` of the joint states."""
        infos, _, _ = self.calc_dynamics(time, states)
        return ChainStates(
            angle=jnp.stack([info.speed for info in infos]),
            speed=jnp.stack([info.acceleration for info in infos]),
        )

    def check_force_balance(self, time=None, states: Optional[ChainStates] = None) -> Array:
        """
        Newton-Euler residual of every link after solving the dynamics.

        ``F_i + W_i - sum(F_children) - (I_i a_i + p_i)``, which vanishes when
        the passes are consistent.

        Returns:
            (num_links, 6) residual wrenches in solver order.
        """
        time = self._time if time is None else time
        states = self._current if states is None else states
        kinematics = self.get_kinematics(time, states)
        _, resolved, _ = self.calc_dynamics(time, states)
        residuals = []
        for i, (k, r) in enumerate(zip(kinematics, resolved)):
            transmitted = sum((resolved[c].force for c in self.topology.children[i]), screw.zero())
            residuals.append(
                r.force + k.weight - transmitted
                - (screw.mul(k.inertia, r.acceleration) + k.bias_force)
            )
        return jnp.stack(residuals)

    def get_index_to_root(self, index: int) -> Tuple[int, ...]:
        """Solver indices of the links from the root down to ``index``."""
        return self.topology.path_to_root(index)

    def get_constrained_inverse_inertia(
        self, index: int, articulated: Sequence[FrameArticulated]
    ) -> Optional[Tuple[Tuple[int, ...], List[Array], List[Array]]]:
        """
        Impulse response of the links between a root and ``index``.

        ``phi[j]`` carries an impulse applied at ``index`` down to the joint of
        path link ``j``; ``y[j]`` maps that impulse to the velocity change of
        path link ``j``. Motion-driven joints keep their prescribed rate under
        an impulse, so they act as rigid and get a zero joint inverse inertia.

        Returns:
            ``(path, phi, y)`` with one 6x6 matrix per path link, or ``None``
            for a negative index.
        """
        path = self.get_index_to_root(index)
        if not path:
            return None
        eye = screw.identity()
        lam = [
            jnp.zeros((6, 6)) if self._links[i].joint.motion is Prescribed.MOTION
            else articulated[i].joint_inverse_inertia
            for i in path
        ]

        phi: List[Array] = [eye] * len(path)
        phi_next = eye
        for j in reversed(range(len(path))):
            art = articulated[path[j]]
            phi[j] = (eye - art.inertia @ lam[j]) @ phi_next
            phi_next = phi[j]

        y: List[Array] = []
        y_prev = jnp.zeros((6, 6))
        for j, i in enumerate(path):
            art = articulated[i]
            phi_next = phi[j + 1] if j + 1 < len(path) else eye
            y_prev = (eye - lam[j] @ art.inertia) @ y_prev + lam[j] @ phi_next
            y.append(y_prev)
        return path, phi, y

    def handle_contact(self, time, states: ChainStates) -> Tuple[bool, ChainStates]:
        """
        Resolve the chain contact with a single impulse.

        The contact marker of the contact link is tested against the plane
        through the contact point. When it is on or behind the plane and
        approaching it, an impulse along the normal changes the rates of the
        load-driven joints on the path to the root so that the approach speed
        is reversed and scaled by the restitution. Motion-driven joints keep
        their rates. When every joint on the path is motion-driven no impulse
        can act and the states are returned unchanged.

        Returns:
            Whether an impulse was applied, and the corrected states.
        """
        normal = self.chain.contact_normal
        if not self.chain.has_contact:
            return False, states
        point = self.chain.contact_point
        index = self.contact_index

        kinematics = self.get_kinematics(time, states)
        k = kinematics[index]
        position = k.pose.from_local_point(self._links[index].local_marker)
        depth = jnp.dot(normal, position - point)
        n_hat = screw.wrench(normal, point, 0.0)
        approach = screw.dot(n_hat, k.velocity)
        if not (depth <= 0 and approach < 0):
            return False, states

        articulated, _ = self.get_articulated(kinematics)
        path, phi, y = self.get_constrained_inverse_inertia(index, articulated)
        compliance = screw.quadratic(n_hat, y[-1])
        if not compliance > 0:
            logging.debug("Contact on link %d cannot move along the normal", index)
            return False, states
        impulse = (1 + self.restitution) * approach / compliance

        speed = states.speed
        eye = screw.identity()
        y_prev = jnp.zeros((6, 6))
        for j, i in enumerate(path):
            art, s = articulated[i], kinematics[i].axis
            phi_next = phi[j + 1] if j + 1 < len(path) else eye
            if self._links[i].joint.motion is not Prescribed.MOTION:
                reaction = screw.mul(phi_next - art.inertia @ y_prev, n_hat)
                speed = speed.at[i].add(-screw.dot(s, reaction) / art.effective_inertia(s) * impulse)
            y_prev = y[j]
        logging.debug("Contact impulse %g at t=%g on link %d", float(impulse), float(time), index)
        return True, states.replace(speed=speed)

    def _contact(self, time, states: ChainStates) -> ChainStates:
        if self.enable_contacts:
            _, states = self.handle_contact(time, states)
        return states

    def update(self, dt: float) -> None:
        """
        Advance the chain by one RK4 step of ``dt``.

        Raises:
            SingularityError: If the new joint state is not finite, which
                happens when a joint has zero effective inertia.
        """
        t, current = self._time, self._current
        k0 = self._rate(t, current)
        nxt = self._contact(t + dt / 2, current + dt / 2 * k0)
        k1 = self._rate(t + dt / 2, nxt)
        nxt = self._contact(t + dt / 2, current + dt / 2 * k1)
        k2 = self._rate(t + dt / 2, nxt)
        nxt = self._contact(t + dt, current + dt * k2)
        k3 = self._rate(t + dt, nxt)
        t += dt
        nxt = self._contact(t, current + dt / 6 * (k0 + 2 * k1 + 2 * k2 + k3))
        if not nxt.is_finite():
            logging.error("Chain state became non-finite at t=%g", t)
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

    def get_poses(self) -> List[Pose]:
        """World mesh poses of every link at the current state, for renderers."""
        return [k.mesh_pose for k in self.get_kinematics(self._time, self._current)]

    def convert_to(self, target: UnitSystem) -> "ChainSolver":
        """Copy of this solver, including its time and state, in ``target`` units."""
        units = self.units
        solver = ChainSolver(
            self.chain.convert_to(target),
            enable_contacts=self.enable_contacts,
            restitution=self.restitution,
            gravity=LENGTH.convert(units, target) * self.gravity,
            jit=self.jit,
        )
        solver._time = self._time
        solver._current = self._current.convert_from_to(
            units, target, [link.joint.is_prismatic for link in self._links]
        )
        return solver

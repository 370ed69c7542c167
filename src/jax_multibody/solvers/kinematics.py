"""Per-link quantities produced by the chain solver passes.

Each type is a PyTree, so the solver passes can run under ``jax.jit``.
"""

from jax import Array
from flax import struct

from ..core.joint import JointInfo
from ..core.pose import Pose
from ..spatial import screw


@struct.dataclass
class PartialKinematics:
    """Result of the kinematics pass for one link.

    The joint acceleration is only known for motion-prescribed joints at this
    stage, so ``acceleration`` and ``force`` assume the driver value for motion
    joints and zero joint acceleration for load joints.

    Attributes:
        pose: World pose of the joint frame.
        mesh_pose: World pose of the mesh frame.
        cg: (3,) world center of mass.
        axis: (6,) joint twist per unit joint rate.
        velocity: (6,) twist of the link.
        bias_acceleration: (6,) velocity-product acceleration across the joint.
        acceleration: (6,) acceleration twist of the link.
        inertia: (6, 6) spatial inertia about the world origin.
        weight: (6,) gravity plus applied wrench.
        momentum: (6,) ``inertia @ velocity``.
        bias_force: (6,) gyroscopic wrench ``velocity x momentum``.
        force: (6,) net wrench the joint transmits into the link.
        joint: Joint coordinate, rate and driver output.
    """
    pose: Pose
    mesh_pose: Pose
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


@struct.dataclass
class ResolvedKinematics:
    """Link kinematics once the joint accelerations are solved."""
    pose: Pose
    mesh_pose: Pose
    cg: Array
    axis: Array
    velocity: Array
    acceleration: Array
    force: Array
    joint: JointInfo

    @classmethod
    def resolve(
        cls, partial: PartialKinematics, acceleration: Array, force: Array, joint: JointInfo
    ) -> "ResolvedKinematics":
        return cls(
            pose=partial.pose,
            mesh_pose=partial.mesh_pose,
            cg=partial.cg,
            axis=partial.axis,
            velocity=partial.velocity,
            acceleration=acceleration,
            force=force,
            joint=joint,
        )


@struct.dataclass
class FrameArticulated:
    """Articulated-body quantities of one link and its subtree.

    Attributes:
        inertia: (6, 6) articulated inertia ``A``.
        bias_force: (6,) articulated bias wrench ``d``.
        precussion: (6,) percussion axis ``T = A s / (s' A s)``.
        reaction_space: (6, 6) projector ``1 - T s'`` onto the joint reactions.
        joint_inverse_inertia: (6, 6) ``s s' / (s' A s)``.
    """
    inertia: Array
    bias_force: Array
    precussion: Array
    reaction_space: Array
    joint_inverse_inertia: Array

    @classmethod
    def create(cls, inertia: Array, bias_force: Array, axis: Array) -> "FrameArticulated":
        effective = screw.quadratic(axis, inertia)
        precussion = screw.mul(inertia, axis) / effective
        return cls(
            inertia=inertia,
            bias_force=bias_force,
            precussion=precussion,
            reaction_space=screw.identity() - screw.outer(precussion, axis),
            joint_inverse_inertia=screw.outer(axis, axis) / effective,
        )

    def effective_inertia(self, axis: Array) -> Array:
        return screw.quadratic(axis, self.inertia)

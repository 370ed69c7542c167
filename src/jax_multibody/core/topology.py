"""ChainTopology PyTree: the cached index arrays of a link tree.

Solvers walk the tree many times per step. This module flattens a
:class:`~jax_multibody.core.chain.Chain` once into root-first order with integer
parent and children indices, so the hot loops never chase references.
"""

from typing import Sequence, Tuple

import numpy as np
import jax.numpy as jnp
from jax import Array
from flax import struct

from ..exceptions import ConfigurationError


@struct.dataclass
class ChainTopology:
    """Immutable, root-first view of a link tree.

    Solver index ``i`` is the ``i``-th link in root-first order. Every parent
    precedes its children, so a forward loop visits parents first and a
    reverse loop visits children first.

    Attributes:
        link_names: Names of the links in solver order. Static field.
        order: ``order[i]`` is the chain index of solver link ``i``. Static field.
        parents: Solver index of each link's parent, ``-1`` for roots. Static field.
        children: Solver indices of each link's children. Static field.
        levels: Depth of each link below its root. Static field.
        parent_indices: Array of shape (num_links,) holding ``parents``.
    """
    link_names: Tuple[str, ...] = struct.field(pytree_node=False)
    order: Tuple[int, ...] = struct.field(pytree_node=False)
    parents: Tuple[int, ...] = struct.field(pytree_node=False)
    children: Tuple[Tuple[int, ...], ...] = struct.field(pytree_node=False)
    levels: Tuple[int, ...] = struct.field(pytree_node=False)
    parent_indices: Array

    @property
    def count(self) -> int:
        return len(self.order)

    def path_to_root(self, index: int) -> Tuple[int, ...]:
        """Solver indices from the root down to ``index``; empty for a negative index."""
        path = []
        while index >= 0:
            path.append(index)
            index = self.parents[index]
        return tuple(reversed(path))


def build_topology(parent_of: Sequence[int], names: Sequence[str] = None) -> ChainTopology:
    """
    Build the root-first topology of a tree from per-link parent indices.

    Args:
        parent_of: Parent index of each link in chain order, ``-1`` for roots.
        names: Optional link names in chain order.

    Returns:
        ChainTopology with links grouped by level, ties kept in chain order.

    Raises:
        ConfigurationError: If the tree is empty, a parent index is out of
            range, or the parent links form a cycle.
    """
    n = len(parent_of)
    if n == 0:
        raise ConfigurationError("Cannot build a topology for a chain with no links")
    for i, p in enumerate(parent_of):
        if p < -1 or p >= n or p == i:
            raise ConfigurationError(f"Link {i} has invalid parent index {p}")

    levels = np.full(n, -1, dtype=np.int64)
    for i in range(n):
        path = []
        j = i
        while j >= 0 and levels[j] < 0:
            if len(path) > n:
                raise ConfigurationError(f"Link {i} is part of a parent cycle")
            path.append(j)
            j = parent_of[j]
        base = -1 if j < 0 else levels[j]
        for depth, k in enumerate(reversed(path)):
            levels[k] = base + 1 + depth

    order = tuple(int(i) for i in np.argsort(levels, kind="stable"))
    solver_index = {chain_index: i for i, chain_index in enumerate(order)}
    parents = tuple(
        solver_index[parent_of[k]] if parent_of[k] >= 0 else -1 for k in order
    )
    children = tuple(
        tuple(j for j in range(n) if parents[j] == i) for i in range(n)
    )
    if names is None:
        names = [f"link{i}" for i in range(n)]
    return ChainTopology(
        link_names=tuple(names[k] for k in order),
        order=order,
        parents=parents,
        children=children,
        levels=tuple(int(levels[k]) for k in order),
        parent_indices=jnp.array(parents, dtype=jnp.int32),
    )

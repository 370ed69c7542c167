"""Exceptions raised by jax_multibody."""


class ConfigurationError(ValueError):
    """A model was built with an unsupported or inconsistent configuration.

    Raised for mixed unit systems, unsupported joint/unit combinations, empty
    chains and invalid parent indices. These are model mistakes and retrying
    the same call fails again.
    """


class SingularityError(ArithmeticError):
    """A numeric singularity was reached.

    Raised when a body ends up with non-positive mass, or when a simulation
    step produces a non-finite joint state (zero effective joint inertia).
    """

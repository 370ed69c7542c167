"""Tests for mass properties and materials."""

import jax.numpy as jnp
import numpy as np
import pytest

from jax_multibody.core.mass_properties import MassProperties
from jax_multibody.core.material import Material, MaterialSpec
from jax_multibody.core.pose import Pose
from jax_multibody.exceptions import ConfigurationError, SingularityError
from jax_multibody.spatial import screw, so3
from jax_multibody.units import LENGTH, MASS, UnitSystem

SI = UnitSystem.SI


class BoxVolume:
    """Volume properties of an axis-aligned box, for the provider protocol."""

    def __init__(self, units, width, height, thickness, center=(0.0, 0.0, 0.0)):
        self.units = units
        self.sides = (width, height, thickness)
        self.center = jnp.asarray(center, dtype=jnp.float64)

    def get_volume_properties(self):
        w, h, t = self.sides
        specific = jnp.diag(jnp.array([t**2 + h**2, w**2 + t**2, w**2 + h**2]) / 12)
        return w * h * t, self.center, specific


def test_box_split_into_halves():
    """Test that two half boxes add up to the whole box."""
    whole = MassProperties.box(SI, 2.0, 2.0, 1.0, 0.5)
    left = MassProperties.box(SI, 1.0, 1.0, 1.0, 0.5, cg=[-0.5, 0.0, 0.0])
    right = MassProperties.box(SI, 1.0, 1.0, 1.0, 0.5, cg=[0.5, 0.0, 0.0])
    total = left + right
    np.testing.assert_allclose(total.mass, whole.mass)
    np.testing.assert_allclose(total.cg, whole.cg, atol=1e-12)
    np.testing.assert_allclose(total.mmoi, whole.mmoi, rtol=1e-12, atol=1e-12)


def test_subtract_undoes_add():
    """Test removing a constituent restores the original body."""
    a = MassProperties.sphere(SI, 3.0, 0.2, cg=[0.1, 0.2, 0.0])
    b = MassProperties.cylinder(SI, 1.0, 0.1, 0.4, cg=[-0.3, 0.0, 0.5])
    back = (a + b) - b
    np.testing.assert_allclose(back.mass, a.mass)
    np.testing.assert_allclose(back.cg, a.cg, atol=1e-12)
    np.testing.assert_allclose(back.mmoi, a.mmoi, atol=1e-12)


def test_subtract_everything_raises():
    """Test that subtracting all the mass is rejected."""
    a = MassProperties.sphere(SI, 1.0, 0.2)
    with pytest.raises(SingularityError):
        a - a


def test_mixed_units_raise():
    """Test that combining different unit systems is rejected."""
    with pytest.raises(ConfigurationError):
        MassProperties.sphere(SI, 1.0, 0.2) + MassProperties.sphere(UnitSystem.IPS, 1.0, 0.2)


def test_scaling():
    """Test scalar multiplication and division keep the center of mass."""
    a = MassProperties.sphere(SI, 2.0, 0.5, cg=[1.0, 0.0, 0.0])
    half = a / 2
    np.testing.assert_allclose(half.mass, 1.0)
    np.testing.assert_allclose((2 * half).mmoi, a.mmoi)
    np.testing.assert_allclose(half.cg, a.cg)


def test_spatial_inertia_and_mobility():
    """Test that spm is the inverse of spi."""
    a = MassProperties.box(SI, 2.0, 1.0, 0.3, 0.2, cg=[0.2, -0.1, 0.4])
    q = so3.from_axis_angle(jnp.array([1.0, 1.0, 0.0]), 0.7)
    cg = jnp.array([0.5, 1.0, -2.0])
    np.testing.assert_allclose(a.spi(q, cg) @ a.spm(q, cg), jnp.eye(6), atol=1e-9)
    np.testing.assert_allclose(a.spi(q, cg), a.spi(q, cg).T, atol=1e-12)


def test_momentum_of_translation():
    """Test that a pure translation yields linear momentum m v and moment c x m v."""
    a = MassProperties.sphere(SI, 2.0, 0.1)
    cg = jnp.array([0.0, 1.0, 0.0])
    v = jnp.array([3.0, 0.0, 0.0])
    momentum = screw.mul(a.spi(so3.identity(), cg), screw.pure_twist(v))
    np.testing.assert_allclose(screw.linear(momentum), 2.0 * v)
    np.testing.assert_allclose(screw.angular(momentum), jnp.cross(cg, 2.0 * v), atol=1e-12)


def test_weight():
    """Test the gravity wrench acting through the center of mass."""
    a = MassProperties.sphere(SI, 2.0, 0.1, cg=[1.0, 0.0, 0.0])
    w = a.weight_at(Pose.origin(), jnp.array([0.0, -10.0, 0.0]))
    np.testing.assert_allclose(screw.linear(w), [0.0, -20.0, 0.0])
    np.testing.assert_allclose(screw.angular(w), [0.0, 0.0, -20.0])


def test_principal_mmoi():
    """Test principal moments and axes of a rotated box."""
    box = MassProperties.box(SI, 12.0, 3.0, 2.0, 1.0)
    r = so3.to_matrix(so3.about_z(0.3))
    rotated = MassProperties.create(SI, box.mass, r @ box.mmoi @ r.T, [1.0, 2.0, 3.0])
    values, axes = rotated.principal_mmoi()
    np.testing.assert_allclose(values, jnp.sort(jnp.diag(box.mmoi)), rtol=1e-9)
    np.testing.assert_allclose(axes.position, [1.0, 2.0, 3.0])
    rot = so3.to_matrix(axes.orientation)
    np.testing.assert_allclose(rot.T @ rotated.mmoi @ rot, jnp.diag(values), atol=1e-9)


def test_convert_to():
    """Test unit conversion of mass, inertia and center of mass."""
    a = MassProperties.sphere(SI, 1.0, 0.5, cg=[0.0, 0.0, 1.0])
    b = a.convert_to(UnitSystem.IPS)
    fm = MASS.convert(SI, UnitSystem.IPS)
    fl = LENGTH.convert(SI, UnitSystem.IPS)
    assert b.units is UnitSystem.IPS
    np.testing.assert_allclose(b.mass, fm)
    np.testing.assert_allclose(b.cg, [0.0, 0.0, fl])
    np.testing.assert_allclose(b.mmoi, a.mmoi * fm * fl**2)


def test_from_density():
    """Test mass properties of a solid from a volume provider."""
    volume = BoxVolume(SI, 1.0, 2.0, 0.5, center=[0.0, 1.0, 0.0])
    a = MassProperties.from_density(volume, 100.0)
    expected = MassProperties.box(SI, 100.0, 1.0, 2.0, 0.5, cg=[0.0, 1.0, 0.0])
    np.testing.assert_allclose(a.mass, expected.mass)
    np.testing.assert_allclose(a.mmoi, expected.mmoi)
    np.testing.assert_allclose(a.cg, expected.cg)
    np.testing.assert_allclose(MassProperties.from_mass(volume, 5.0).mass, 5.0)


def test_material_library():
    """Test library lookup and the missing custom entry."""
    steel = Material.library(MaterialSpec.STEEL)
    assert steel.units is SI
    np.testing.assert_allclose(steel.density, 7.68e3)
    np.testing.assert_allclose(Material.library(MaterialSpec.CAST_IRON).elastic, 176500e6)
    with pytest.raises(ConfigurationError):
        Material.library(MaterialSpec.CUSTOM)


def test_material_mass_properties():
    """Test that a material converts its density to the provider's units."""
    aluminum = Material.library(MaterialSpec.ALUMINUM)
    volume = BoxVolume(UnitSystem.MMKS, 100.0, 100.0, 100.0)
    a = aluminum.mass_properties(volume)
    assert a.units is UnitSystem.MMKS
    np.testing.assert_allclose(a.mass, 2.69, rtol=1e-9)


def test_material_convert_round_trip():
    """Test material conversion there and back."""
    steel = Material.library(MaterialSpec.STEEL)
    back = steel.convert_to(UnitSystem.IPS).convert_to(SI)
    np.testing.assert_allclose(back.density, steel.density, rtol=1e-12)
    np.testing.assert_allclose(back.elastic, steel.elastic, rtol=1e-12)
    np.testing.assert_allclose(back.cte, steel.cte, rtol=1e-12)
    assert back.spec is MaterialSpec.STEEL

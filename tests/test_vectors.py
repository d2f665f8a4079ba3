"""Tests for celestial_align.vectors - vector helpers and quaternions."""

from __future__ import annotations

import math

import pytest

from celestial_align.vectors import (
    WORLD_UP,
    Quaternion,
    cross,
    dot,
    is_finite,
    length,
    normalize,
)


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def _approx_tuple(a: tuple, b: tuple, tol: float = 1e-9) -> bool:
    return all(abs(ai - bi) < tol for ai, bi in zip(a, b))


# ---------------------------------------------------------------------------
# Plain vector helpers
# ---------------------------------------------------------------------------

class TestVectorHelpers:
    def test_dot_and_cross(self):
        assert dot((1.0, 2.0, 3.0), (4.0, 5.0, 6.0)) == 32.0
        assert cross((1.0, 0.0, 0.0), (0.0, 1.0, 0.0)) == (0.0, 0.0, 1.0)

    def test_normalize(self):
        v = normalize((3.0, 0.0, 4.0))
        assert _approx_tuple(v, (0.6, 0.0, 0.8))
        assert math.isclose(length(v), 1.0)

    def test_normalize_zero_vector(self):
        assert normalize((0.0, 0.0, 0.0)) == (0.0, 0.0, 0.0)

    def test_is_finite(self):
        assert is_finite((1.0, 2.0, 3.0))
        assert not is_finite((1.0, math.nan, 3.0))
        assert not is_finite((math.inf, 0.0, 0.0))


# ---------------------------------------------------------------------------
# Quaternion
# ---------------------------------------------------------------------------

class TestQuaternion:
    def test_identity_leaves_vectors(self):
        v = (0.3, -0.4, 0.5)
        assert _approx_tuple(Quaternion.identity().rotate(v), v)

    def test_positive_yaw_increases_azimuth(self):
        """+Z rotated a quarter turn about world up lands on +X."""
        q = Quaternion.from_axis_angle(WORLD_UP, math.pi / 2)
        assert _approx_tuple(q.rotate((0.0, 0.0, 1.0)), (1.0, 0.0, 0.0))

    def test_yaw_keeps_height(self):
        q = Quaternion.from_axis_angle(WORLD_UP, -1.2)
        x, y, z = q.rotate((0.2, 0.5, 0.84))
        assert y == pytest.approx(0.5)
        assert math.hypot(x, z) == pytest.approx(math.hypot(0.2, 0.84))
        assert math.atan2(x, z) == pytest.approx(math.atan2(0.2, 0.84) - 1.2)

    def test_quarter_turn_about_x(self):
        q = Quaternion.from_axis_angle((1.0, 0.0, 0.0), math.pi / 2)
        assert _approx_tuple(q.rotate((0.0, 1.0, 0.0)), (0.0, 0.0, 1.0))

    def test_small_turn_about_x(self):
        q = Quaternion.from_axis_angle((1.0, 0.0, 0.0), -0.4)
        assert _approx_tuple(q.rotate((0.0, 0.0, 1.0)), (0.0, math.sin(0.4), math.cos(0.4)))

    def test_zero_axis_is_identity(self):
        assert Quaternion.from_axis_angle((0.0, 0.0, 0.0), 1.0) == Quaternion.identity()

    def test_conjugate_inverts(self):
        q = Quaternion.from_axis_angle((1.0, 2.0, 3.0), 0.7)
        product = q * q.conjugate()
        assert _approx_tuple(product.as_tuple(), (1.0, 0.0, 0.0, 0.0))

    def test_premultiply_applies_world_rotation_after(self):
        first = Quaternion.from_axis_angle((1.0, 0.0, 0.0), 0.5)
        world = Quaternion.from_axis_angle(WORLD_UP, 1.1)
        combined = first.premultiply(world)
        v = (0.1, 0.2, 0.97)
        assert _approx_tuple(combined.rotate(v), world.rotate(first.rotate(v)))

    def test_premultiply_stays_unit(self):
        q = Quaternion.identity()
        step = Quaternion.from_axis_angle((0.3, 0.9, -0.2), 0.01)
        for _ in range(10000):
            q = q.premultiply(step)
        assert math.isclose(q.norm(), 1.0, abs_tol=1e-12)

    def test_angle_to(self):
        a = Quaternion.identity()
        b = Quaternion.from_axis_angle(WORLD_UP, 0.25)
        assert math.isclose(a.angle_to(b), 0.25, abs_tol=1e-9)
        assert a.angle_to(a) == pytest.approx(0.0, abs=1e-7)

    def test_is_finite(self):
        assert Quaternion.identity().is_finite()
        assert not Quaternion(math.nan, 0.0, 0.0, 0.0).is_finite()

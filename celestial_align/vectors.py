"""3D vector helpers and unit quaternions.

Vectors are plain ``(x, y, z)`` tuples of floats.  The world frame is
right-handed and Y-up: x = right, y = up, z = toward the viewer.

Orientation is stored as a unit quaternion (scalar-first, ``w, x, y, z``).
Rotations are always composed by *premultiplying* a world-axis quaternion
onto the current orientation, so successive steps act about fixed world axes
and never accumulate Euler-angle gimbal artifacts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

Vec3 = Tuple[float, float, float]

WORLD_UP: Vec3 = (0.0, 1.0, 0.0)

# Vectors shorter than this are treated as zero-length.
EPSILON = 1e-12


def dot(a: Vec3, b: Vec3) -> float:
    """Dot product of two 3D vectors."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    """Cross product ``a x b``."""
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length(v: Vec3) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def scale(v: Vec3, s: float) -> Vec3:
    return (v[0] * s, v[1] * s, v[2] * s)


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def normalize(v: Vec3) -> Vec3:
    """Normalize a 3D vector to unit length.

    Returns ``(0, 0, 0)`` for a (near) zero-length input; callers that must
    treat that case as an error check :func:`length` first.
    """
    n = length(v)
    if n < EPSILON:
        return (0.0, 0.0, 0.0)
    inv = 1.0 / n
    return (v[0] * inv, v[1] * inv, v[2] * inv)


def is_finite(values: Iterable[float]) -> bool:
    """Return ``True`` if every component is a finite float."""
    return all(math.isfinite(c) for c in values)


@dataclass(frozen=True)
class Quaternion:
    """Unit quaternion representing a rotation.

    Attributes:
        w: Scalar part.
        x, y, z: Vector part.
    """

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def identity(cls) -> "Quaternion":
        return cls(1.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_axis_angle(cls, axis: Vec3, angle: float) -> "Quaternion":
        """Build the rotation of *angle* radians about *axis*.

        Args:
            axis: Rotation axis; normalized internally.
            angle: Right-handed rotation angle in radians.

        Returns:
            The corresponding unit quaternion.  A zero-length axis yields
            the identity.
        """
        ax, ay, az = normalize(axis)
        if ax == 0.0 and ay == 0.0 and az == 0.0:
            return cls.identity()
        half = 0.5 * angle
        s = math.sin(half)
        return cls(math.cos(half), ax * s, ay * s, az * s)

    def __mul__(self, other: "Quaternion") -> "Quaternion":
        """Hamilton product ``self * other`` (apply *other* first)."""
        return Quaternion(
            self.w * other.w - self.x * other.x - self.y * other.y - self.z * other.z,
            self.w * other.x + self.x * other.w + self.y * other.z - self.z * other.y,
            self.w * other.y - self.x * other.z + self.y * other.w + self.z * other.x,
            self.w * other.z + self.x * other.y - self.y * other.x + self.z * other.w,
        )

    def conjugate(self) -> "Quaternion":
        return Quaternion(self.w, -self.x, -self.y, -self.z)

    def norm(self) -> float:
        return math.sqrt(self.w * self.w + self.x * self.x + self.y * self.y + self.z * self.z)

    def normalized(self) -> "Quaternion":
        n = self.norm()
        if n < EPSILON:
            return Quaternion.identity()
        inv = 1.0 / n
        return Quaternion(self.w * inv, self.x * inv, self.y * inv, self.z * inv)

    def premultiply(self, world: "Quaternion") -> "Quaternion":
        """Apply *world* after this rotation, about world axes.

        Equivalent to ``world * self``, renormalized to keep the result a
        unit quaternion across many repeated calls.
        """
        return (world * self).normalized()

    def rotate(self, v: Vec3) -> Vec3:
        """Rotate vector *v* by this quaternion.

        Uses the optimised Rodrigues form ``t = 2 (q_vec x v)``,
        ``v' = v + w t + q_vec x t``.
        """
        q_vec = (self.x, self.y, self.z)
        t = scale(cross(q_vec, v), 2.0)
        return add(add(v, scale(t, self.w)), cross(q_vec, t))

    def angle_to(self, other: "Quaternion") -> float:
        """Smallest rotation angle (radians) taking this orientation to *other*."""
        d = abs(self.w * other.w + self.x * other.x + self.y * other.y + self.z * other.z)
        return 2.0 * math.acos(min(1.0, d))

    def is_finite(self) -> bool:
        return is_finite((self.w, self.x, self.y, self.z))

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.w, self.x, self.y, self.z)

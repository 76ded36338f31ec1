"""
Transform matrix utilities for 2D part placement
Provides the Affine2D value type and helpers to build 3x3 homogeneous matrices
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np


def create_translation_matrix(x: float, y: float) -> np.ndarray:
    """
    Create a 3x3 translation matrix

    Args:
        x: Translation along X axis
        y: Translation along Y axis

    Returns:
        3x3 numpy array representing the translation matrix
    """
    return np.array([
        [1, 0, x],
        [0, 1, y],
        [0, 0, 1]
    ], dtype=np.float64)


def create_rotation_matrix(angle_degrees: float) -> np.ndarray:
    """
    Create a 3x3 rotation matrix

    Args:
        angle_degrees: Rotation angle in degrees

    Returns:
        3x3 numpy array representing the rotation matrix
    """
    angle_rad = math.radians(angle_degrees)
    cos_a = math.cos(angle_rad)
    sin_a = math.sin(angle_rad)
    return np.array([
        [cos_a, -sin_a, 0],
        [sin_a, cos_a, 0],
        [0, 0, 1]
    ], dtype=np.float64)


def create_scale_matrix(sx: float, sy: float) -> np.ndarray:
    """
    Create a 3x3 scale matrix

    Args:
        sx: Scale factor along X axis
        sy: Scale factor along Y axis

    Returns:
        3x3 numpy array representing the scale matrix
    """
    return np.array([
        [sx, 0, 0],
        [0, sy, 0],
        [0, 0, 1]
    ], dtype=np.float64)


def matrix_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Multiply two 3x3 matrices

    Args:
        a: First matrix
        b: Second matrix

    Returns:
        Result of matrix multiplication
    """
    return np.dot(a, b)


@dataclass(frozen=True)
class Affine2D:
    """
    2x3 affine matrix (the implied last row is [0, 0, 1])

    Matrix format:
    | m00  m01  tx |
    | m10  m11  ty |
    """
    m00: float = 1.0
    m01: float = 0.0
    m10: float = 0.0
    m11: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    @classmethod
    def identity(cls) -> "Affine2D":
        return cls()

    @classmethod
    def from_components(
        cls,
        x: float,
        y: float,
        angle_degrees: float,
        scale_x: float,
        scale_y: float,
    ) -> "Affine2D":
        """Build T(x, y) * R(angle) * S(scale_x, scale_y)."""
        rot_rad = math.radians(angle_degrees)
        cos_r = math.cos(rot_rad)
        sin_r = math.sin(rot_rad)
        return cls(
            m00=scale_x * cos_r,
            m01=-scale_y * sin_r,
            m10=scale_x * sin_r,
            m11=scale_y * cos_r,
            tx=x,
            ty=y,
        )

    def to_array(self) -> np.ndarray:
        return np.array([
            [self.m00, self.m01, self.tx],
            [self.m10, self.m11, self.ty],
            [0.0, 0.0, 1.0]
        ], dtype=np.float64)

    def as_flat(self) -> Tuple[float, ...]:
        """Column-major 9 scalars, the layout a GL mat3 uniform expects."""
        return (self.m00, self.m10, 0.0, self.m01, self.m11, 0.0, self.tx, self.ty, 1.0)

    def __matmul__(self, other: "Affine2D") -> "Affine2D":
        # Result = self x other
        return Affine2D(
            m00=self.m00 * other.m00 + self.m01 * other.m10,
            m01=self.m00 * other.m01 + self.m01 * other.m11,
            m10=self.m10 * other.m00 + self.m11 * other.m10,
            m11=self.m10 * other.m01 + self.m11 * other.m11,
            tx=self.m00 * other.tx + self.m01 * other.ty + self.tx,
            ty=self.m10 * other.tx + self.m11 * other.ty + self.ty,
        )

    def transform_point(self, x: float, y: float) -> Tuple[float, float]:
        return (
            self.m00 * x + self.m01 * y + self.tx,
            self.m10 * x + self.m11 * y + self.ty,
        )

    def inverse(self) -> "Affine2D":
        det = self.m00 * self.m11 - self.m01 * self.m10
        if abs(det) < 1e-12:
            raise ValueError("Affine matrix is not invertible")
        inv00 = self.m11 / det
        inv01 = -self.m01 / det
        inv10 = -self.m10 / det
        inv11 = self.m00 / det
        return Affine2D(
            m00=inv00,
            m01=inv01,
            m10=inv10,
            m11=inv11,
            tx=-(inv00 * self.tx + inv01 * self.ty),
            ty=-(inv10 * self.tx + inv11 * self.ty),
        )

    @property
    def translation(self) -> Tuple[float, float]:
        return (self.tx, self.ty)

    @property
    def scale_x(self) -> float:
        """Length of the first column."""
        return math.hypot(self.m00, self.m10)

    @property
    def scale_y(self) -> float:
        """Length of the second column."""
        return math.hypot(self.m01, self.m11)

    @property
    def max_scale(self) -> float:
        return max(self.scale_x, self.scale_y)

    @property
    def rotation(self) -> float:
        """Rotation of the first column in radians."""
        return math.atan2(self.m10, self.m00)

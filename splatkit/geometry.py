"""Shape checks and the small geometric helpers used for cameras."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray

__all__ = [
    "assert_vec",
    "assert_mat",
    "qvec_to_rotmat",
    "focal_to_fov",
    "world_to_view",
]

_NORMALIZE_EPS = 1e-12


def assert_vec(array: ArrayLike, n: int, name: str) -> NDArray:
    """Return ``array`` as an ndarray, raising ValueError unless it is a length-``n`` vector."""
    a = np.asarray(array)
    if a.ndim != 1 or a.shape[0] != n:
        raise ValueError(f"{name} must be a {n}-vector, got {list(a.shape)}")
    return a


def assert_mat(array: ArrayLike, rows: int, cols: int, name: str) -> NDArray:
    """Return ``array`` as an ndarray, raising ValueError unless it is ``rows`` x ``cols``."""
    a = np.asarray(array)
    if a.ndim != 2 or a.shape != (rows, cols):
        raise ValueError(f"{name} must be {rows}\u00d7{cols}, got {list(a.shape)}")
    return a


def qvec_to_rotmat(qvec: ArrayLike) -> NDArray[np.float32]:
    """Rotation matrix of a (w, x, y, z) quaternion; the quaternion is normalised first."""
    q = assert_vec(qvec, 4, "qvec").astype(np.float32)
    q = q / max(float(np.linalg.norm(q)), _NORMALIZE_EPS)
    w, x, y, z = q
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ],
        dtype=np.float32,
    )


def focal_to_fov(focal: float, pixels: int) -> float:
    """Field of view in radians for a focal length over ``pixels`` pixels."""
    return 2.0 * math.atan(pixels / (2.0 * focal))


def world_to_view(R: ArrayLike, t: ArrayLike) -> NDArray[np.float32]:
    """World-to-camera transform of shape (1, 4, 4) built from rotation ``R`` and translation ``t``."""
    rot = assert_mat(R, 3, 3, "R")
    trans = assert_vec(t, 3, "t")
    m = np.eye(4, dtype=np.float32)
    m[:3, :3] = rot
    m[:3, 3] = trans
    return m[np.newaxis]
"""A pinhole camera with its pose, field of view and image on disk."""

from __future__ import annotations

import math
from os import PathLike
from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike, NDArray

from splatkit.geometry import world_to_view
from splatkit.image_io import load_image

__all__ = ["Camera"]


class Camera:
    """Pose, intrinsics and image location of one training view."""

    def __init__(
        self,
        R: ArrayLike,
        T: ArrayLike,
        fov_x: float,
        fov_y: float,
        image_name: str,
        image_path: str | PathLike[str],
        width: int,
        height: int,
        uid: int,
    ) -> None:
        self.uid = uid
        self.fov_x = float(fov_x)
        self.fov_y = float(fov_y)
        self.image_name = image_name
        self.image_path = Path(image_path)
        self.image_width = int(width)
        self.image_height = int(height)
        self.world_view_transform: NDArray[np.float32] = world_to_view(R, T)

    def __repr__(self) -> str:
        return (
            f"Camera(uid={self.uid}, image_name={self.image_name!r}, "
            f"size={self.image_width}x{self.image_height})"
        )

    def K(self) -> NDArray[np.float32]:
        """Intrinsic matrix of shape (1, 3, 3) with the principal point at the image centre."""
        fx = self.image_width / (2.0 * math.tan(self.fov_x * 0.5))
        fy = self.image_height / (2.0 * math.tan(self.fov_y * 0.5))
        k = np.zeros((1, 3, 3), dtype=np.float32)
        k[0, 0, 0] = fx
        k[0, 1, 1] = fy
        k[0, 0, 2] = self.image_width / 2.0
        k[0, 1, 2] = self.image_height / 2.0
        k[0, 2, 2] = 1.0
        return k

    def load_and_get_image(self, resolution: int = -1) -> NDArray[np.float32]:
        """Load the image as a (channels, height, width) float32 array in [0, 1].

        The camera's width and height are updated to those of the loaded image.
        """
        data = load_image(self.image_path, resolution)
        height, width, _ = data.shape
        self.image_width = width
        self.image_height = height
        return np.ascontiguousarray(data.transpose(2, 0, 1), dtype=np.float32) / np.float32(255.0)
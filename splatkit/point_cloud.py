"""Point cloud holding positions, colours and optional Gaussian attributes."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

__all__ = ["PointCloud"]


@dataclass
class PointCloud:
    """Points with colours; Gaussian point clouds also carry splat attributes."""

    means: NDArray | None = None
    colors: NDArray | None = None
    normals: NDArray | None = None
    sh0: NDArray | None = None
    shN: NDArray | None = None
    opacity: NDArray | None = None
    scaling: NDArray | None = None
    rotation: NDArray | None = None
    attribute_names: list[str] = field(default_factory=list)

    def is_gaussian(self) -> bool:
        """True when the cloud carries non-empty spherical-harmonic coefficients."""
        return self.sh0 is not None and self.sh0.size > 0

    def __len__(self) -> int:
        return 0 if self.means is None else int(self.means.shape[0])

    def normalize_colors(self) -> None:
        """Convert 8-bit colours to float32 in [0, 1]; other colours are left alone."""
        if self.colors is not None and self.colors.dtype == np.uint8:
            self.colors = self.colors.astype(np.float32) / np.float32(255.0)
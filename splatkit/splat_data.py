"""Gaussian splat model: its parameters, initialisation and PLY export."""

from __future__ import annotations

from os import PathLike
from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial import cKDTree

from splatkit.colmap import read_colmap_point_cloud
from splatkit.parameters import TrainingParameters
from splatkit.point_cloud import PointCloud

__all__ = [
    "SplatData",
    "compute_mean_neighbor_distances",
    "write_ply",
    "init_from_point_cloud",
    "init_model_from_pointcloud",
]

_DEFAULT_DISTANCE = 0.01
_MIN_SQ_DISTANCE = 1e-8
_NORMALIZE_EPS = 1e-12
_INV_SH = 0.28209479177387814  # 1 / sqrt(4 pi)


def compute_mean_neighbor_distances(points: ArrayLike) -> NDArray[np.float32]:
    """Mean distance of each point to its (up to) three nearest distinct neighbours.

    Points without a neighbour at a non-zero distance get 0.01, as do all points
    of a cloud with fewer than two points.
    """
    pts = np.asarray(points)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError("Input points must have shape [N, 3]")
    if pts.dtype != np.float32:
        raise TypeError("Input points must be float32")

    count = pts.shape[0]
    if count <= 1:
        return np.full(count, _DEFAULT_DISTANCE, dtype=np.float32)

    k = min(4, count)
    dists, _ = cKDTree(pts).query(pts, k=k)
    dists = np.asarray(dists, dtype=np.float64).reshape(count, k)

    result = np.empty(count, dtype=np.float32)
    for row, neighbour_dists in enumerate(dists):
        valid = [d for d in neighbour_dists if d * d > _MIN_SQ_DISTANCE][:3]
        result[row] = sum(valid) / len(valid) if valid else _DEFAULT_DISTANCE
    return result


def _columns(array: NDArray) -> NDArray[np.float32]:
    data = np.asarray(array, dtype=np.float32)
    if data.ndim == 1:
        data = data[:, np.newaxis]
    return data.reshape(data.shape[0], -1)


def write_ply(point_cloud: PointCloud, root: str | PathLike[str], iteration: int) -> Path:
    """Write the cloud as a binary little-endian PLY file ``splat_<iteration>.ply`` in ``root``.

    Returns the path of the written file.
    """
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)

    arrays = [
        point_cloud.means,
        point_cloud.normals,
        point_cloud.sh0,
        point_cloud.shN,
        point_cloud.opacity,
        point_cloud.scaling,
        point_cloud.rotation,
    ]
    blocks = [_columns(a) for a in arrays if a is not None]
    if not blocks:
        raise ValueError("Point cloud has no positions to write")
    table = np.ascontiguousarray(np.concatenate(blocks, axis=1), dtype="<f4")

    names = list(point_cloud.attribute_names)
    if len(names) < table.shape[1]:
        raise ValueError(
            f"Point cloud has {table.shape[1]} columns but only {len(names)} attribute names"
        )
    names = names[: table.shape[1]]

    header_lines = [
        "ply",
        "format binary_little_endian 1.0",
        f"element vertex {table.shape[0]}",
        *(f"property float {name}" for name in names),
        "end_header",
    ]
    path = root / f"splat_{iteration}.ply"
    with path.open("wb") as out:
        out.write(("\n".join(header_lines) + "\n").encode("ascii"))
        out.write(table.tobytes())
    return path


class SplatData:
    """Parameters of a set of 3D Gaussians, stored in their raw (pre-activation) form."""

    def __init__(
        self,
        sh_degree: int,
        means: ArrayLike,
        sh0: ArrayLike,
        shN: ArrayLike,
        scaling: ArrayLike,
        rotation: ArrayLike,
        opacity: ArrayLike,
        scene_scale: float,
    ) -> None:
        self.max_sh_degree = int(sh_degree)
        self.active_sh_degree = 0
        self.scene_scale = float(scene_scale)
        self.means = np.asarray(means, dtype=np.float32)
        self.sh0 = np.asarray(sh0, dtype=np.float32)
        self.shN = np.asarray(shN, dtype=np.float32)
        self.scaling_raw = np.asarray(scaling, dtype=np.float32)
        self.rotation_raw = np.asarray(rotation, dtype=np.float32)
        self.opacity_raw = np.asarray(opacity, dtype=np.float32)
        self.max_radii2D = np.zeros(self.means.shape[0], dtype=np.float32)

    def __repr__(self) -> str:
        return (
            f"SplatData(n={len(self)}, sh_degree={self.active_sh_degree}/"
            f"{self.max_sh_degree}, scene_scale={self.scene_scale})"
        )

    @property
    def opacity(self) -> NDArray[np.float32]:
        """Opacities in (0, 1); a trailing axis of one is dropped."""
        values = (1.0 / (1.0 + np.exp(-self.opacity_raw))).astype(np.float32)
        if values.ndim > 0 and values.shape[-1] == 1:
            values = values[..., 0]
        return values

    @property
    def rotation(self) -> NDArray[np.float32]:
        """Unit quaternions (w, x, y, z)."""
        norms = np.linalg.norm(self.rotation_raw, axis=-1, keepdims=True)
        return (self.rotation_raw / np.maximum(norms, _NORMALIZE_EPS)).astype(np.float32)

    @property
    def scaling(self) -> NDArray[np.float32]:
        """Per-axis scales, the exponential of the stored log-scales."""
        return np.exp(self.scaling_raw).astype(np.float32)

    @property
    def shs(self) -> NDArray[np.float32]:
        """All spherical-harmonic coefficients, shape (N, K, 3)."""
        return np.concatenate([self.sh0, self.shN], axis=1)

    def __len__(self) -> int:
        return int(self.means.shape[0])

    def increment_sh_degree(self) -> None:
        """Raise the active SH degree by one, up to the maximum degree."""
        if self.active_sh_degree < self.max_sh_degree:
            self.active_sh_degree += 1

    def attribute_names(self) -> list[str]:
        """Vertex property names of the PLY export, in column order."""
        names = ["x", "y", "z", "nx", "ny", "nz"]
        names += [f"f_dc_{i}" for i in range(self.sh0.shape[1] * self.sh0.shape[2])]
        names += [f"f_rest_{i}" for i in range(self.shN.shape[1] * self.shN.shape[2])]
        names.append("opacity")
        names += [f"scale_{i}" for i in range(self.scaling_raw.shape[1])]
        names += [f"rot_{i}" for i in range(self.rotation_raw.shape[1])]
        return names

    def to_point_cloud(self) -> PointCloud:
        """Point cloud with the raw attributes laid out for PLY export."""
        count = len(self)
        means = np.ascontiguousarray(self.means, dtype=np.float32)
        return PointCloud(
            means=means,
            normals=np.zeros_like(means),
            sh0=self.sh0.transpose(0, 2, 1).reshape(count, -1).copy(),
            shN=self.shN.transpose(0, 2, 1).reshape(count, -1).copy(),
            opacity=self.opacity_raw.copy(),
            scaling=self.scaling_raw.copy(),
            rotation=self.rotation_raw.copy(),
            attribute_names=self.attribute_names(),
        )

    def save_ply(self, root: str | PathLike[str], iteration: int) -> Path:
        """Write the model to ``root/splat_<iteration>.ply`` and return that path."""
        return write_ply(self.to_point_cloud(), root, iteration)


def init_from_point_cloud(
    point_cloud: PointCloud, sh_degree: int, scene_scale: float
) -> SplatData:
    """Initial Gaussians at the cloud's points, coloured by the points' colours.

    Scales come from the distances to neighbouring points, rotations are the
    identity and all opacities are 0.5.
    """
    if point_cloud.means is None or point_cloud.colors is None:
        raise ValueError("Point cloud needs positions and colours")

    colors = point_cloud.colors
    if colors.dtype == np.uint8:
        colors = colors.astype(np.float32) / np.float32(255.0)
    colors = np.asarray(colors, dtype=np.float32)

    means = np.asarray(point_cloud.means, dtype=np.float32).copy()
    count = means.shape[0]

    nn_dist = np.maximum(compute_mean_neighbor_distances(means), np.float32(1e-7))
    scaling = np.repeat(
        np.log(np.sqrt(nn_dist) * 0.1).astype(np.float32)[:, np.newaxis], 3, axis=1
    )

    rotation = np.zeros((count, 4), dtype=np.float32)
    rotation[:, 0] = 1.0

    opacity = np.zeros((count, 1), dtype=np.float32)  # logit(0.5)

    fused_color = ((colors - 0.5) / _INV_SH).astype(np.float32)
    feature_count = (sh_degree + 1) ** 2
    shs = np.zeros((count, 3, feature_count), dtype=np.float32)
    shs[:, :, 0] = fused_color

    sh0 = np.ascontiguousarray(shs[:, :, :1].transpose(0, 2, 1))
    shN = np.ascontiguousarray(shs[:, :, 1:].transpose(0, 2, 1))

    print("Initialized SplatData with:")
    print(f"  - {count} points")
    print(f"  - Max SH degree: {sh_degree}")
    print(f"  - Total SH coefficients: {feature_count}")
    print(f"  - sh0 shape: {list(sh0.shape)}")
    print(f"  - shN shape: {list(shN.shape)}")

    return SplatData(sh_degree, means, sh0, shN, scaling, rotation, opacity, scene_scale)


def init_model_from_pointcloud(params: TrainingParameters, scene_scale: float) -> SplatData:
    """Initial model from the sparse point cloud of the dataset in ``params``."""
    pcd = read_colmap_point_cloud(params.dataset.data_path)
    return init_from_point_cloud(pcd, params.optimization.sh_degree, scene_scale)
"""Readers for COLMAP sparse reconstructions stored in the binary format."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from enum import IntEnum
from os import PathLike
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from splatkit.geometry import focal_to_fov, qvec_to_rotmat
from splatkit.point_cloud import PointCloud

__all__ = [
    "CameraModel",
    "CameraData",
    "ColmapImage",
    "read_images_binary",
    "read_cameras_binary",
    "read_points3d_binary",
    "read_colmap_cameras",
    "read_colmap_point_cloud",
    "read_colmap_cameras_and_images",
]


class CameraModel(IntEnum):
    """COLMAP camera models, numbered as in the binary files."""

    SIMPLE_PINHOLE = 0
    PINHOLE = 1
    SIMPLE_RADIAL = 2
    RADIAL = 3
    OPENCV = 4
    OPENCV_FISHEYE = 5
    FULL_OPENCV = 6
    FOV = 7
    SIMPLE_RADIAL_FISHEYE = 8
    RADIAL_FISHEYE = 9
    THIN_PRISM_FISHEYE = 10
    UNDEFINED = 11


# Model id -> (model, number of intrinsic parameters); a negative count is unsupported.
_MODEL_PARAMS: dict[int, tuple[CameraModel, int]] = {
    0: (CameraModel.SIMPLE_PINHOLE, 3),
    1: (CameraModel.PINHOLE, 4),
    2: (CameraModel.SIMPLE_RADIAL, 4),
    3: (CameraModel.RADIAL, 5),
    4: (CameraModel.OPENCV, 8),
    5: (CameraModel.OPENCV_FISHEYE, 8),
    6: (CameraModel.FULL_OPENCV, 12),
    7: (CameraModel.FOV, 5),
    8: (CameraModel.SIMPLE_RADIAL_FISHEYE, 4),
    9: (CameraModel.RADIAL_FISHEYE, 5),
    10: (CameraModel.THIN_PRISM_FISHEYE, 12),
    11: (CameraModel.UNDEFINED, -1),
}


@dataclass
class CameraData:
    """Intrinsics of a COLMAP camera, and the pose of an image taken with it."""

    camera_id: int = 0
    R: NDArray[np.float32] = field(default_factory=lambda: np.eye(3, dtype=np.float32))
    T: NDArray[np.float32] = field(default_factory=lambda: np.zeros(3, dtype=np.float32))
    fov_x: float = 0.0
    fov_y: float = 0.0
    image_name: str = ""
    image_path: Path = field(default_factory=Path)
    camera_model: CameraModel = CameraModel.UNDEFINED
    width: int = 0
    height: int = 0
    params: NDArray[np.float32] = field(default_factory=lambda: np.zeros(0, dtype=np.float32))


@dataclass
class ColmapImage:
    """One registered image: its camera, file name and world-to-camera pose."""

    image_id: int = 0
    camera_id: int = 0
    name: str = ""
    qvec: NDArray[np.float32] = field(
        default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float32)
    )
    tvec: NDArray[np.float32] = field(default_factory=lambda: np.zeros(3, dtype=np.float32))


class _Reader:
    """Sequential little-endian reader over a byte buffer."""

    def __init__(self, data: bytes, name: str) -> None:
        self._data = data
        self._pos = 0
        self._name = name

    def _need(self, size: int) -> None:
        if self._pos + size > len(self._data):
            raise ValueError(f"{self._name}: unexpected end of data")

    def read(self, fmt: str) -> tuple:
        fmt = "<" + fmt
        size = struct.calcsize(fmt)
        self._need(size)
        values = struct.unpack_from(fmt, self._data, self._pos)
        self._pos += size
        return values

    def skip(self, size: int) -> None:
        self._need(size)
        self._pos += size

    def cstring(self) -> str:
        end = self._data.find(b"\0", self._pos)
        if end < 0:
            raise ValueError(f"{self._name}: unterminated string")
        text = self._data[self._pos:end].decode("utf-8", errors="surrogateescape")
        self._pos = end + 1
        return text

    def finish(self) -> None:
        if self._pos != len(self._data):
            raise ValueError(f"{self._name}: trailing bytes")


def _read_binary(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"Failed to open {path}") from exc
    except OSError as exc:
        raise OSError(f"Failed to open {path}") from exc


def read_images_binary(path: str | PathLike[str]) -> list[ColmapImage]:
    """Read ``images.bin``; the 2-D observations of each image are skipped."""
    reader = _Reader(_read_binary(Path(path)), "images.bin")
    (count,) = reader.read("Q")
    images: list[ColmapImage] = []
    for _ in range(count):
        image_id, qw, qx, qy, qz, tx, ty, tz, camera_id = reader.read("I4d3dI")
        name = reader.cstring()
        (n_points,) = reader.read("Q")
        reader.skip(n_points * 24)
        images.append(
            ColmapImage(
                image_id=image_id,
                camera_id=camera_id,
                name=name,
                qvec=np.array([qw, qx, qy, qz], dtype=np.float32),
                tvec=np.array([tx, ty, tz], dtype=np.float32),
            )
        )
    reader.finish()
    return images


def read_cameras_binary(path: str | PathLike[str]) -> dict[int, CameraData]:
    """Read ``cameras.bin`` into a mapping from camera id to its intrinsics."""
    reader = _Reader(_read_binary(Path(path)), "cameras.bin")
    (count,) = reader.read("Q")
    cams: dict[int, CameraData] = {}
    for _ in range(count):
        camera_id, model_id, width, height = reader.read("IiQQ")
        model, n_params = _MODEL_PARAMS.get(model_id, (CameraModel.UNDEFINED, -1))
        if n_params < 0:
            raise ValueError(f"Unsupported camera-model id {model_id}")
        params = np.array(reader.read(f"{n_params}d"), dtype=np.float64).astype(np.float32)
        cams[camera_id] = CameraData(
            camera_id=camera_id,
            camera_model=model,
            width=width,
            height=height,
            params=params,
        )
    reader.finish()
    return cams


def read_points3d_binary(path: str | PathLike[str]) -> PointCloud:
    """Read ``points3D.bin`` into float32 positions and uint8 colours."""
    reader = _Reader(_read_binary(Path(path)), "points3D.bin")
    (count,) = reader.read("Q")
    positions = np.empty((count, 3), dtype=np.float32)
    colors = np.empty((count, 3), dtype=np.uint8)
    for row in range(count):
        _, x, y, z, r, g, b, _, track_length = reader.read("Q3d3BdQ")
        positions[row] = (x, y, z)
        colors[row] = (r, g, b)
        reader.skip(track_length * 8)
    reader.finish()
    return PointCloud(means=positions, colors=colors)


def read_colmap_cameras(
    base_path: str | PathLike[str],
    cams: dict[int, CameraData],
    images: list[ColmapImage],
    images_folder: str = "images",
) -> tuple[list[CameraData], float]:
    """Combine cameras and images into per-image camera data and a scene scale.

    The scene scale is 1.1 times the largest distance of a camera centre from
    the mean centre, or 1.0 when there are no images.
    """
    images_path = Path(base_path) / images_folder
    if not images_path.exists():
        raise FileNotFoundError(f"Images folder does not exist: {images_path}")

    out: list[CameraData] = []
    locations = np.zeros((len(images), 3), dtype=np.float32)
    for row, img in enumerate(images):
        cam = cams.get(img.camera_id)
        if cam is None:
            raise ValueError(f"Camera ID {img.camera_id} not found")

        rot = qvec_to_rotmat(img.qvec)
        trans = np.array(img.tvec, dtype=np.float32)
        locations[row] = -(rot.T @ trans)

        if cam.camera_model == CameraModel.SIMPLE_PINHOLE:
            fx = fy = float(cam.params[0])
        elif cam.camera_model == CameraModel.PINHOLE:
            fx, fy = float(cam.params[0]), float(cam.params[1])
        else:
            raise ValueError("Unsupported camera model")

        out.append(
            replace(
                cam,
                image_path=images_path / img.name,
                image_name=img.name,
                R=rot,
                T=trans,
                params=cam.params.copy(),
                fov_x=focal_to_fov(fx, cam.width),
                fov_y=focal_to_fov(fy, cam.height),
            )
        )

    scene_scale = 1.0
    if images:
        center = locations.mean(axis=0)
        dists = np.linalg.norm(locations - center, axis=1)
        scene_scale = float(np.float32(dists.max()) * np.float32(1.1))

    print(f"Training with {len(out)} images ")
    print(f"Scene scale: {scene_scale}")
    return out, scene_scale


def read_colmap_point_cloud(path: str | PathLike[str]) -> PointCloud:
    """Read the sparse point cloud of the reconstruction under ``path``."""
    return read_points3d_binary(Path(path) / "sparse" / "0" / "points3D.bin")


def read_colmap_cameras_and_images(
    base: str | PathLike[str], images_folder: str = "images"
) -> tuple[list[CameraData], float]:
    """Read cameras and images of the reconstruction under ``base``."""
    sparse = Path(base) / "sparse" / "0"
    cams = read_cameras_binary(sparse / "cameras.bin")
    images = read_images_binary(sparse / "images.bin")
    return read_colmap_cameras(base, cams, images, images_folder)
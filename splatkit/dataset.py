"""A dataset of training views drawn from a COLMAP reconstruction."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Iterator, Sequence

import numpy as np
from numpy.typing import NDArray

from splatkit.camera import Camera
from splatkit.colmap import read_colmap_cameras_and_images
from splatkit.parameters import DatasetConfig

__all__ = ["Split", "CameraDataset", "create_dataset_from_colmap"]


class Split(Enum):
    """Which part of the views a dataset holds; every ``test_every``-th view is a test view."""

    TRAIN = 0
    VAL = 1
    ALL = 2


class CameraDataset:
    """Cameras of one split; indexing loads the image of the selected camera."""

    def __init__(
        self,
        cameras: Sequence[Camera],
        config: DatasetConfig,
        split: Split = Split.ALL,
    ) -> None:
        self._cameras = list(cameras)
        self._config = config
        self._split = split

        def wanted(position: int) -> bool:
            is_test = position % config.test_every == 0
            if split is Split.TRAIN:
                return not is_test
            if split is Split.VAL:
                return is_test
            return True

        self._indices = tuple(i for i in range(len(self._cameras)) if wanted(i))
        print(f"Dataset created with {len(self._indices)} images (split: {split.value})")

    @property
    def cameras(self) -> list[Camera]:
        """All cameras, whichever split this dataset holds."""
        return self._cameras

    @property
    def split(self) -> Split:
        return self._split

    @property
    def indices(self) -> tuple[int, ...]:
        """Positions in ``cameras`` of the views in this split."""
        return self._indices

    def __len__(self) -> int:
        return len(self._indices)

    def __getitem__(self, index: int) -> tuple[Camera, NDArray[np.float32]]:
        """The camera at ``index`` in this split and its image, loaded from disk."""
        if not 0 <= index < len(self._indices):
            raise IndexError("Dataset index out of range")
        camera = self._cameras[self._indices[index]]
        image = camera.load_and_get_image(self._config.resolution)
        return camera, image

    def iter_random(
        self, rng: np.random.Generator | None = None
    ) -> Iterator[tuple[Camera, NDArray[np.float32]]]:
        """Yield every view of the split once, in random order."""
        generator = rng if rng is not None else np.random.default_rng()
        for index in generator.permutation(len(self._indices)):
            yield self[int(index)]


def create_dataset_from_colmap(config: DatasetConfig) -> tuple[CameraDataset, float]:
    """Build a dataset of all views in the reconstruction at ``config.data_path``.

    Returns the dataset and the scene scale.
    """
    data_path = Path(config.data_path)
    if not data_path.exists():
        raise FileNotFoundError(f"Data path does not exist: {data_path}")

    infos, scene_scale = read_colmap_cameras_and_images(data_path, config.images)
    cameras = [
        Camera(
            info.R,
            info.T,
            info.fov_x,
            info.fov_y,
            info.image_name,
            info.image_path,
            info.width,
            info.height,
            uid,
        )
        for uid, info in enumerate(infos)
    ]
    return CameraDataset(cameras, config, Split.ALL), scene_scale
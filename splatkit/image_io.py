"""Reading and writing images as numpy arrays."""

from __future__ import annotations

from os import PathLike
from pathlib import Path
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from PIL import Image

__all__ = ["load_image", "save_image", "save_images"]

_NATIVE_MODES = {"L", "LA", "RGB", "RGBA"}
_RESIZE_DIVISORS = (2, 4, 8)
_PNG_MODES = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}


def _native(im: Image.Image) -> Image.Image:
    if im.mode in _NATIVE_MODES:
        return im
    if im.mode == "P":
        return im.convert("RGBA" if "transparency" in im.info else "RGB")
    bands = im.getbands()
    if "A" in bands:
        return im.convert("RGBA")
    if len(bands) == 1:
        return im.convert("L")
    return im.convert("RGB")


def load_image(path: str | PathLike[str], res_div: int = -1) -> NDArray[np.uint8]:
    """Load an image as a (height, width, channels) uint8 array in its own channel count.

    A ``res_div`` of 2, 4 or 8 shrinks both sides by that factor; other values
    leave the size alone.
    """
    path = Path(path)
    try:
        with Image.open(path) as opened:
            opened.load()
            im = _native(opened)
            if res_div in _RESIZE_DIVISORS:
                new_w, new_h = im.width // res_div, im.height // res_div
                if new_w == 0 or new_h == 0:
                    raise OSError(f"Resize failed: {path} : image too small")
                im = im.resize((new_w, new_h), Image.Resampling.BICUBIC)
            data = np.array(im, dtype=np.uint8)
    except OSError as exc:
        if str(exc).startswith("Resize failed"):
            raise
        raise OSError(f"Load failed: {path} : {exc}") from exc
    if data.ndim == 2:
        data = data[:, :, np.newaxis]
    return data


def _to_hwc(image: ArrayLike) -> NDArray[np.float32]:
    img = np.array(image, dtype=np.float32)
    if img.ndim == 4 and img.shape[0] == 1:
        img = img[0]
    if img.ndim == 3 and img.shape[0] <= 4:
        img = img.transpose(1, 2, 0)
    return np.ascontiguousarray(img)


def _write(path: Path, image: NDArray[np.float32]) -> None:
    if image.ndim != 3:
        raise ValueError(f"Failed to save image: {path} (expected 3 dimensions, got {image.ndim})")
    height, width, channels = image.shape
    print(
        f"Saving image: {path} shape: [{height}, {width}, {channels}] "
        f"min: {image.min()} max: {image.max()}"
    )
    if channels not in _PNG_MODES:
        raise ValueError(f"Failed to save image: {path} (unsupported channel count {channels})")

    data = (np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)
    im = Image.fromarray(data[:, :, 0] if channels == 1 else data, mode=_PNG_MODES[channels])

    ext = path.suffix
    try:
        if ext == ".png":
            im.save(path, format="PNG")
        elif ext in (".jpg", ".jpeg"):
            if im.mode == "RGBA":
                im = im.convert("RGB")
            elif im.mode == "LA":
                im = im.convert("L")
            im.save(path, format="JPEG", quality=95)
        else:
            raise ValueError(f"Failed to save image: {path}")
    except OSError as exc:
        raise OSError(f"Failed to save image: {path}") from exc


def save_image(path: str | PathLike[str], image: ArrayLike) -> None:
    """Save a float image with values in [0, 1] as PNG or JPEG, chosen by extension.

    Accepts (C, H, W), (H, W, C) and a leading batch dimension of one.
    """
    _write(Path(path), _to_hwc(image))


def save_images(
    path: str | PathLike[str],
    images: Sequence[ArrayLike],
    horizontal: bool = True,
    separator_width: int = 2,
) -> None:
    """Save several images side by side (or stacked), split by white separators."""
    if not images:
        raise ValueError("No images provided")
    if len(images) == 1:
        save_image(path, images[0])
        return

    processed = [_to_hwc(img) for img in images]
    axis = 1 if horizontal else 0

    parts: list[NDArray[np.float32]] = [processed[0]]
    if separator_width > 0:
        first = processed[0]
        shape = (
            (first.shape[0], separator_width, first.shape[2])
            if horizontal
            else (separator_width, first.shape[1], first.shape[2])
        )
        separator = np.ones(shape, dtype=np.float32)
        for img in processed[1:]:
            parts.extend((separator, img))
    else:
        parts.extend(processed[1:])

    _write(Path(path), np.concatenate(parts, axis=axis))
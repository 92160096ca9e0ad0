"""Image quality metrics for evaluation, and a reporter that records them."""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from datetime import datetime
from os import PathLike
from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.signal import correlate

__all__ = [
    "gaussian",
    "create_window",
    "PSNR",
    "SSIM",
    "EvalMetrics",
    "MetricsReporter",
]

_MIN_MSE = 1e-10


def gaussian(window_size: int, sigma: float) -> NDArray[np.float32]:
    """Normalised 1-D Gaussian weights of length ``window_size``."""
    weights = np.array(
        [
            math.exp(
                -(math.floor(np.float32(x - window_size) / np.float32(2.0)) ** 2)
                / (2.0 * sigma * sigma)
            )
            for x in range(window_size)
        ],
        dtype=np.float32,
    )
    return weights / weights.sum()


def create_window(window_size: int, channel: int) -> NDArray[np.float32]:
    """A 2-D Gaussian window per channel, shape (channel, 1, window_size, window_size)."""
    one_d = gaussian(window_size, 1.5)[:, np.newaxis]
    two_d = (one_d @ one_d.T)[np.newaxis, np.newaxis]
    return np.ascontiguousarray(
        np.broadcast_to(two_d, (channel, 1, window_size, window_size)), dtype=np.float32
    )


class PSNR:
    """Peak signal-to-noise ratio, averaged over the batch."""

    def __init__(self, data_range: float = 1.0) -> None:
        self.data_range = float(data_range)

    def compute(self, pred: ArrayLike, target: ArrayLike) -> float:
        """PSNR in decibels of ``pred`` against ``target``; both have a leading batch axis."""
        p = np.asarray(pred, dtype=np.float64)
        t = np.asarray(target, dtype=np.float64)
        if p.shape != t.shape:
            raise ValueError("Prediction and target must have the same shape")
        if p.ndim == 0:
            raise ValueError("Prediction and target need a batch dimension")
        mse = ((p - t) ** 2).reshape(p.shape[0], -1).mean(axis=1)
        mse = np.maximum(mse, _MIN_MSE)
        return float(np.mean(20.0 * np.log10(self.data_range / np.sqrt(mse))))


class SSIM:
    """Structural similarity with a Gaussian window, averaged over all pixels."""

    C1 = 0.01 * 0.01
    C2 = 0.03 * 0.03

    def __init__(self, window_size: int = 11, channel: int = 3) -> None:
        self.window_size = int(window_size)
        self.channel = int(channel)
        self._window = create_window(self.window_size, self.channel).astype(np.float64)

    def _filter(self, x: NDArray[np.float64]) -> NDArray[np.float64]:
        pad = self.window_size // 2
        padded = np.pad(x, ((0, 0), (0, 0), (pad, pad), (pad, pad)))
        return np.stack(
            [
                correlate(padded[:, c], self._window[c, 0][np.newaxis], mode="valid")
                for c in range(self.channel)
            ],
            axis=1,
        )

    def compute(self, pred: ArrayLike, target: ArrayLike) -> float:
        """Mean SSIM of two (batch, channels, height, width) images."""
        p = np.asarray(pred, dtype=np.float64)
        t = np.asarray(target, dtype=np.float64)
        if p.ndim != 4:
            raise ValueError("Expected 4D tensor [B, C, H, W]")
        if p.shape != t.shape:
            raise ValueError("Prediction and target must have the same shape")
        if p.shape[1] != self.channel:
            raise ValueError(f"Expected {self.channel} channels, got {p.shape[1]}")

        mu1 = self._filter(p)
        mu2 = self._filter(t)
        mu1_sq = mu1 * mu1
        mu2_sq = mu2 * mu2
        mu1_mu2 = mu1 * mu2

        sigma1_sq = self._filter(p * p) - mu1_sq
        sigma2_sq = self._filter(t * t) - mu2_sq
        sigma12 = self._filter(p * t) - mu1_mu2

        ssim_map = ((2.0 * mu1_mu2 + self.C1) * (2.0 * sigma12 + self.C2)) / (
            (mu1_sq + mu2_sq + self.C1) * (sigma1_sq + sigma2_sq + self.C2)
        )
        return float(ssim_map.mean())


@dataclass
class EvalMetrics:
    """Averaged evaluation results at one training iteration."""

    psnr: float = 0.0
    ssim: float = 0.0
    lpips: float = 0.0
    elapsed_time: float = 0.0
    num_gaussians: int = 0
    iteration: int = 0

    def to_string(self) -> str:
        """One-line human-readable summary."""
        return (
            f"PSNR: {self.psnr:.4f}, SSIM: {self.ssim:.4f}, LPIPS: {self.lpips:.4f}, "
            f"Time: {self.elapsed_time:.4f}s/image, #GS: {self.num_gaussians}"
        )

    def __str__(self) -> str:
        return self.to_string()

    def to_csv_header(self) -> str:
        """Column names of the CSV file."""
        return "iteration,psnr,ssim,lpips,time_per_image,num_gaussians"

    def to_csv_row(self) -> str:
        """This result as one CSV line."""
        return (
            f"{self.iteration},{self.psnr:.6f},{self.ssim:.6f},{self.lpips:.6f},"
            f"{self.elapsed_time:.6f},{self.num_gaussians}"
        )


class MetricsReporter:
    """Collects evaluation results into ``metrics.csv`` and a text report."""

    def __init__(self, output_dir: str | PathLike[str]) -> None:
        self.output_dir = Path(output_dir)
        self.csv_path = self.output_dir / "metrics.csv"
        self.txt_path = self.output_dir / "metrics_report.txt"
        self._metrics: list[EvalMetrics] = []

        if not self.csv_path.exists():
            try:
                self.csv_path.write_text(EvalMetrics().to_csv_header() + "\n", encoding="utf-8")
            except OSError:
                pass

    @property
    def metrics(self) -> list[EvalMetrics]:
        """Results added so far, oldest first."""
        return list(self._metrics)

    def add_metrics(self, metrics: EvalMetrics) -> None:
        """Record a result and append it to the CSV file at once."""
        self._metrics.append(metrics)
        try:
            with self.csv_path.open("a", encoding="utf-8") as csv_file:
                csv_file.write(metrics.to_csv_row() + "\n")
        except OSError:
            pass

    def _report_lines(self) -> list[str]:
        lines = [
            "==============================================",
            "3D Gaussian Splatting Evaluation Report",
            "==============================================",
            f'Output Directory: "{self.output_dir}"',
            f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "",
        ]

        if self._metrics:
            best_psnr = max(self._metrics, key=lambda m: m.psnr)
            best_ssim = max(self._metrics, key=lambda m: m.ssim)
            # The reported "best" LPIPS is the first entry with the largest value.
            best_lpips = max(self._metrics, key=lambda m: m.lpips)
            final = self._metrics[-1]
            lines += [
                "Summary Statistics:",
                "------------------",
                f"Best PSNR:  {best_psnr.psnr:.4f} (at iteration {best_psnr.iteration})",
                f"Best SSIM:  {best_ssim.ssim:.4f} (at iteration {best_ssim.iteration})",
                f"Best LPIPS: {best_lpips.lpips:.4f} (at iteration {best_lpips.iteration})",
                "",
                f"Final Metrics (iteration {final.iteration}):",
                f"PSNR:  {final.psnr:.4f}",
                f"SSIM:  {final.ssim:.4f}",
                f"LPIPS: {final.lpips:.4f}",
                f"Time per image: {final.elapsed_time:.4f} seconds",
                f"Number of Gaussians: {final.num_gaussians}",
            ]

        lines += [
            "",
            "Detailed Results:",
            "-----------------",
            f"{'Iteration':>10}{'PSNR':>10}{'SSIM':>10}{'LPIPS':>10}"
            f"{'Time(s/img)':>15}{'#Gaussians':>15}",
            "-" * 75,
        ]
        lines += [
            f"{m.iteration:>10}{m.psnr:>10.4f}{m.ssim:>10.4f}{m.lpips:>10.4f}"
            f"{m.elapsed_time:>15.4f}{m.num_gaussians:>15}"
            for m in self._metrics
        ]
        return lines

    def save_report(self) -> bool:
        """Write the text report; returns False when the file cannot be written."""
        try:
            with self.txt_path.open("w", encoding="utf-8") as report:
                report.write("\n".join(self._report_lines()) + "\n")
        except OSError:
            print(f"Failed to open report file: {self.txt_path}", file=sys.stderr)
            return False
        print(f"Evaluation report saved to: {self.txt_path}")
        print(f"Metrics CSV saved to: {self.csv_path}")
        return True
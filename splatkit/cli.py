"""Command-line parsing for a training run."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn, Sequence

from splatkit.parameters import TrainingParameters, read_optim_params_from_json

__all__ = ["parse_arguments", "parse_args_and_params"]

_DESCRIPTION = "3D Gaussian Splatting CUDA Implementation"
_EPILOG = (
    "This program provides a lightning-fast CUDA implementation of the 3D Gaussian "
    "Splatting algorithm for real-time radiance field rendering."
)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise ValueError(message)


def _unsigned(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer: {text!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer: {text!r}")
    return value


def _build_parser(prog: str) -> _Parser:
    parser = _Parser(
        prog=prog,
        description=_DESCRIPTION,
        epilog=_EPILOG,
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("-h", "--help", action="store_true", help="Display this help menu")
    parser.add_argument("-c", "--convergence_rate", type=float, help="Set convergence rate")
    parser.add_argument("-r", "--resolution", type=int, help="Set resolution")
    parser.add_argument(
        "--enable-cr-monitoring", action="store_true", help="Enable convergence rate monitoring"
    )
    parser.add_argument("-f", "--force", action="store_true", help="Forces to overwrite output folder")
    parser.add_argument(
        "--empty-gpu-cache",
        action="store_true",
        help="Forces to reset GPU Cache. Should be lighter on VRAM",
    )
    parser.add_argument("-d", "--data-path", help="Path to the training data")
    parser.add_argument("-o", "--output-path", help="Path to the training output")
    parser.add_argument(
        "-i", "--iter", type=_unsigned, help="Number of iterations to train the model"
    )
    parser.add_argument("--max-cap", type=int, help="Maximum number of Gaussians for MCMC")
    parser.add_argument(
        "--images", help="Images folder name (e.g., images, images_2, images_4, images_8)"
    )
    parser.add_argument("--test-every", type=int, help="Every N-th image is a test image")
    parser.add_argument("--eval", action="store_true", help="Enable evaluation during training")
    return parser


def parse_arguments(args: Sequence[str], params: TrainingParameters) -> TrainingParameters:
    """Apply command-line arguments to ``params`` and return it.

    ``args[0]`` is the program name. Raises ValueError when the arguments are
    missing, malformed, lack a data or output path, or ask for help.
    """
    args = list(args)
    if not args:
        raise ValueError("No command line arguments provided!")

    parser = _build_parser(args[0])
    try:
        ns = parser.parse_args(args[1:])
    except ValueError as exc:
        print(exc, file=sys.stderr)
        print(parser.format_help(), file=sys.stderr)
        raise

    if ns.help:
        print(parser.format_help())
        raise ValueError("help requested")

    if not ns.data_path:
        raise ValueError(
            "No data path specified. Use --data-path to specify the path to the dataset."
        )
    params.dataset.data_path = Path(ns.data_path)

    if not ns.output_path:
        raise ValueError(
            "No output path specified. Use --output-path to specify the path for output files."
        )
    output_dir = Path(ns.output_path)

    if ns.iter is not None:
        params.optimization.iterations = ns.iter
    if ns.resolution is not None:
        params.dataset.resolution = ns.resolution
    if ns.max_cap is not None:
        params.optimization.max_cap = ns.max_cap

    output_dir.mkdir(parents=True, exist_ok=True)
    params.dataset.output_path = output_dir

    if ns.images is not None:
        params.dataset.images = ns.images
    if ns.test_every is not None:
        params.dataset.test_every = ns.test_every
    if ns.eval:
        params.optimization.enable_eval = True

    return params


def parse_args_and_params(
    argv: Sequence[str] | None = None,
    config_path: Path | str | None = None,
) -> TrainingParameters:
    """Load optimisation parameters from JSON, then apply the command line."""
    if argv is None:
        argv = sys.argv
    params = TrainingParameters(optimization=read_optim_params_from_json(config_path))
    try:
        parse_arguments(argv, params)
    except ValueError as exc:
        raise RuntimeError("Failed to parse arguments") from exc
    return params
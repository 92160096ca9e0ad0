"""Training configuration: optimisation and dataset parameters, read from JSON files."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

__all__ = [
    "OptimizationParameters",
    "DatasetConfig",
    "TrainingParameters",
    "verify_optimization_parameters",
    "read_optim_params_from_json",
    "read_model_params_from_json",
]


@dataclass
class OptimizationParameters:
    """Hyper-parameters of the optimisation loop."""

    iterations: int = 30_000
    means_lr: float = 0.00016
    shs_lr: float = 0.0025
    opacity_lr: float = 0.05
    scaling_lr: float = 0.005
    rotation_lr: float = 0.001
    lambda_dssim: float = 0.2
    min_opacity: float = 0.005
    growth_interval: int = 100
    reset_opacity: int = 3_000
    start_densify: int = 500
    stop_densify: int = 15_000
    grad_threshold: float = 0.0002
    sh_degree: int = 3
    opacity_reg: float = 0.01
    scale_reg: float = 0.01
    max_cap: int = 1_000_000
    eval_steps: list[int] = field(default_factory=lambda: [7000, 30000])
    save_steps: list[int] = field(default_factory=lambda: [7000, 30000])
    enable_eval: bool = False


@dataclass
class DatasetConfig:
    """Where the training data lives and how it is read."""

    data_path: Path = field(default_factory=lambda: Path(""))
    output_path: Path = field(default_factory=lambda: Path("output"))
    images: str = "images"
    resolution: int = -1
    test_every: int = 8


@dataclass
class TrainingParameters:
    """Dataset and optimisation settings of one training run."""

    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    optimization: OptimizationParameters = field(default_factory=OptimizationParameters)


# Name, value kind and description of every parameter checked against the JSON file.
_EXPECTED: tuple[tuple[str, type, str], ...] = (
    ("iterations", int, "Total number of training iterations"),
    ("means_lr", float, "Initial learning rate for position updates"),
    ("shs_lr", float, "Learning rate for spherical harmonics updates"),
    ("opacity_lr", float, "Learning rate for opacity updates"),
    ("scaling_lr", float, "Learning rate for scaling updates"),
    ("rotation_lr", float, "Learning rate for rotation updates"),
    ("lambda_dssim", float, "DSSIM loss weight"),
    ("min_opacity", float, "Minimum opacity threshold"),
    ("growth_interval", int, "Interval between densification steps"),
    ("reset_opacity", int, "Interval for opacity resets"),
    ("start_densify", int, "Starting iteration for densification"),
    ("stop_densify", int, "Ending iteration for densification"),
    ("grad_threshold", float, "Gradient threshold for densification"),
    ("opacity_reg", float, "Opacity L1 regularization weight"),
    ("scale_reg", float, "Scale L1 regularization weight"),
    ("sh_degree", int, "Gradient threshold for densification"),
    ("max_cap", int, "Maximum number of Gaussians for MCMC strategy"),
)

_KINDS = {name: kind for name, kind, _ in _EXPECTED}
_DESCRIPTIONS = {name: description for name, _, description in _EXPECTED}

_REQUIRED = (
    "iterations",
    "means_lr",
    "shs_lr",
    "opacity_lr",
    "scaling_lr",
    "rotation_lr",
    "lambda_dssim",
    "min_opacity",
    "growth_interval",
    "reset_opacity",
    "start_densify",
    "stop_densify",
    "grad_threshold",
)
_OPTIONAL = ("opacity_reg", "scale_reg", "max_cap")


def _coerce(value: Any, kind: type, name: str) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name}: type must be number, but is {type(value).__name__}")
    return kind(value)


def _config_path(filename: str) -> Path:
    executable = Path(sys.argv[0] if sys.argv and sys.argv[0] else ".").resolve()
    return executable.parent.parent / "parameter" / filename


def _read_json_file(path: Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Error: {path} does not exist!")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OSError(f"Config file could not be opened: {path}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"JSON parsing error: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"JSON parsing error: {path} does not hold an object")
    return data


def verify_optimization_parameters(
    defaults: OptimizationParameters,
    data: Mapping[str, Any],
    strict: bool = False,
) -> bool:
    """Compare a JSON configuration with the defaults and report the differences.

    Returns True when every expected parameter is present with its default value.
    Unknown keys only fail the check when ``strict`` is set.
    """
    all_match = True
    missing: list[str] = []
    mismatched: list[str] = []
    unknown: list[str] = []

    for name, kind, _ in _EXPECTED:
        if name not in data:
            missing.append(name)
            all_match = False
            continue
        if _coerce(data[name], kind, name) != getattr(defaults, name):
            mismatched.append(name)
            all_match = False

    for key in data:
        if key not in _KINDS:
            unknown.append(key)
            if strict:
                all_match = False

    if not all_match or unknown:
        err = sys.stderr
        print("\nParameter verification report:", file=err)
        if mismatched:
            print("\nMismatched values:", file=err)
            for name in mismatched:
                print(
                    f"  - {name}: JSON={json.dumps(data[name])}, "
                    f"Default={getattr(defaults, name)} ({_DESCRIPTIONS[name]})",
                    file=err,
                )
        if missing:
            print("\nParameters in struct but not in JSON:", file=err)
            for name in missing:
                print(f"  - {name} ({_DESCRIPTIONS[name]})", file=err)
        if unknown:
            print("\nUnknown parameters in JSON (will be ignored):", file=err)
            for name in unknown:
                print(f"  - {name}", file=err)
    else:
        print("Parameter verification passed successfully!")

    return all_match


def _step_list(values: Any, name: str) -> list[int]:
    if not isinstance(values, list):
        raise TypeError(f"{name}: type must be array, but is {type(values).__name__}")
    return [_coerce(step, int, name) for step in values]


def read_optim_params_from_json(path: Path | str | None = None) -> OptimizationParameters:
    """Read optimisation parameters from a JSON file.

    Without a path, ``parameter/optimization_params.json`` next to the directory
    holding the running program is used.
    """
    source = Path(path) if path is not None else _config_path("optimization_params.json")
    data = _read_json_file(source)

    verify_optimization_parameters(OptimizationParameters(), data)

    params = OptimizationParameters()
    for name in _REQUIRED:
        if name not in data:
            raise KeyError(f"Missing required parameter: {name}")
        setattr(params, name, _coerce(data[name], _KINDS[name], name))
    for name in _OPTIONAL:
        if name in data:
            setattr(params, name, _coerce(data[name], _KINDS[name], name))

    if "eval_steps" in data:
        params.eval_steps = _step_list(data["eval_steps"], "eval_steps")
    if "save_steps" in data:
        params.save_steps = _step_list(data["save_steps"], "save_steps")
    return params


def read_model_params_from_json(path: Path | str | None = None) -> DatasetConfig:
    """Read dataset settings from a JSON file; missing keys keep their defaults."""
    source = Path(path) if path is not None else _config_path("model_params.json")
    data = _read_json_file(source)

    config = DatasetConfig()
    if "source_path" in data:
        config.data_path = Path(str(data["source_path"]))
    if "output_path" in data:
        config.output_path = Path(str(data["output_path"]))
    if "images" in data:
        if not isinstance(data["images"], str):
            raise TypeError("images: type must be string")
        config.images = data["images"]
    if "resolution" in data:
        config.resolution = _coerce(data["resolution"], int, "resolution")
    return config
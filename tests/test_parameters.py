import json
from pathlib import Path

import pytest

from splatkit.parameters import (
    DatasetConfig,
    OptimizationParameters,
    TrainingParameters,
    read_model_params_from_json,
    read_optim_params_from_json,
    verify_optimization_parameters,
)


def _full_config():
    return {
        "iterations": 30000,
        "means_lr": 0.00016,
        "shs_lr": 0.0025,
        "opacity_lr": 0.05,
        "scaling_lr": 0.005,
        "rotation_lr": 0.001,
        "lambda_dssim": 0.2,
        "min_opacity": 0.005,
        "growth_interval": 100,
        "reset_opacity": 3000,
        "start_densify": 500,
        "stop_densify": 15000,
        "grad_threshold": 0.0002,
        "opacity_reg": 0.01,
        "scale_reg": 0.01,
        "sh_degree": 3,
        "max_cap": 1000000,
    }


def _write(tmp_path, data, name="optimization_params.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_defaults_match_source():
    params = OptimizationParameters()
    assert params.iterations == 30000
    assert params.sh_degree == 3
    assert params.max_cap == 1000000
    assert params.eval_steps == [7000, 30000]
    assert params.save_steps == [7000, 30000]
    assert params.enable_eval is False


def test_dataset_defaults():
    config = DatasetConfig()
    assert config.output_path == Path("output")
    assert config.images == "images"
    assert config.resolution == -1
    assert config.test_every == 8


def test_step_lists_are_independent():
    first = OptimizationParameters()
    second = OptimizationParameters()
    first.eval_steps.append(1)
    assert second.eval_steps == [7000, 30000]


def test_training_parameters_compose_defaults():
    params = TrainingParameters()
    assert params.dataset == DatasetConfig()
    assert params.optimization == OptimizationParameters()


def test_verify_passes_on_defaults(capsys):
    assert verify_optimization_parameters(OptimizationParameters(), _full_config()) is True
    assert "passed successfully" in capsys.readouterr().out


def test_verify_reports_mismatch(capsys):
    data = _full_config()
    data["shs_lr"] = 0.5
    assert verify_optimization_parameters(OptimizationParameters(), data) is False
    err = capsys.readouterr().err
    assert "Mismatched values" in err
    assert "shs_lr" in err


def test_verify_reports_missing(capsys):
    data = _full_config()
    del data["max_cap"]
    assert verify_optimization_parameters(OptimizationParameters(), data) is False
    assert "max_cap" in capsys.readouterr().err


def test_verify_unknown_only_fails_when_strict(capsys):
    data = _full_config()
    data["eval_steps"] = [1, 2]
    assert verify_optimization_parameters(OptimizationParameters(), data) is True
    assert verify_optimization_parameters(OptimizationParameters(), data, strict=True) is False
    assert "Unknown parameters" in capsys.readouterr().err


def test_verify_rejects_non_numeric():
    data = _full_config()
    data["means_lr"] = "fast"
    with pytest.raises(TypeError):
        verify_optimization_parameters(OptimizationParameters(), data)


def test_read_optim_params_round_trip(tmp_path):
    path = _write(tmp_path, _full_config())
    assert read_optim_params_from_json(path) == OptimizationParameters()


def test_read_optim_params_uses_file_values(tmp_path):
    data = _full_config()
    data["iterations"] = 1234
    data["lambda_dssim"] = 0.5
    data["max_cap"] = 777
    data["eval_steps"] = [10, 20]
    data["save_steps"] = [30]
    params = read_optim_params_from_json(_write(tmp_path, data))
    assert params.iterations == 1234
    assert params.lambda_dssim == 0.5
    assert params.max_cap == 777
    assert params.eval_steps == [10, 20]
    assert params.save_steps == [30]


def test_sh_degree_is_not_read_from_file(tmp_path):
    data = _full_config()
    data["sh_degree"] = 1
    params = read_optim_params_from_json(_write(tmp_path, data))
    assert params.sh_degree == OptimizationParameters().sh_degree


def test_optional_keys_keep_defaults(tmp_path):
    data = _full_config()
    for key in ("opacity_reg", "scale_reg", "max_cap"):
        del data[key]
    params = read_optim_params_from_json(_write(tmp_path, data))
    defaults = OptimizationParameters()
    assert params.opacity_reg == defaults.opacity_reg
    assert params.scale_reg == defaults.scale_reg
    assert params.max_cap == defaults.max_cap


def test_missing_required_key_raises(tmp_path):
    data = _full_config()
    del data["grad_threshold"]
    with pytest.raises(KeyError):
        read_optim_params_from_json(_write(tmp_path, data))


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError, match="does not exist"):
        read_optim_params_from_json(tmp_path / "absent.json")


def test_invalid_json_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="JSON parsing error"):
        read_optim_params_from_json(path)


def test_read_model_params(tmp_path):
    data = {
        "source_path": "scenes/garden",
        "output_path": "runs/garden",
        "images": "images_4",
        "resolution": 4,
    }
    config = read_model_params_from_json(_write(tmp_path, data, "model_params.json"))
    assert config.data_path == Path("scenes/garden")
    assert config.output_path == Path("runs/garden")
    assert config.images == "images_4"
    assert config.resolution == 4


def test_read_model_params_keeps_defaults(tmp_path):
    config = read_model_params_from_json(_write(tmp_path, {}, "model_params.json"))
    assert config == DatasetConfig()
# splatkit

Building blocks for 3D Gaussian Splatting pipelines in plain Python, NumPy and SciPy:

- read COLMAP sparse reconstructions (`cameras.bin`, `images.bin`, `points3D.bin`)
- build cameras with world-to-view transforms and intrinsic matrices
- split a scene into train and validation views
- initialise Gaussian splats from a point cloud, with scales taken from nearest-neighbour distances
- export splats as binary little-endian PLY files
- compute PSNR and SSIM, and write CSV and text evaluation reports
- load and save images, including side-by-side comparison images
- show a terminal progress bar for a training loop

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `splatkit.parameters` | `OptimizationParameters`, `DatasetConfig`, `TrainingParameters`, `read_optim_params_from_json`, `read_model_params_from_json`, `verify_optimization_parameters` |
| `splatkit.cli` | `parse_arguments`, `parse_args_and_params` |
| `splatkit.geometry` | `assert_vec`, `assert_mat`, `qvec_to_rotmat`, `focal_to_fov`, `world_to_view` |
| `splatkit.point_cloud` | `PointCloud` |
| `splatkit.image_io` | `load_image`, `save_image`, `save_images` |
| `splatkit.camera` | `Camera` |
| `splatkit.colmap` | `CameraModel`, `CameraData`, `ColmapImage`, `read_cameras_binary`, `read_images_binary`, `read_points3d_binary`, `read_colmap_cameras`, `read_colmap_cameras_and_images`, `read_colmap_point_cloud` |
| `splatkit.dataset` | `Split`, `CameraDataset`, `create_dataset_from_colmap` |
| `splatkit.splat_data` | `SplatData`, `compute_mean_neighbor_distances`, `write_ply`, `init_from_point_cloud`, `init_model_from_pointcloud` |
| `splatkit.metrics` | `gaussian`, `create_window`, `PSNR`, `SSIM`, `EvalMetrics`, `MetricsReporter` |
| `splatkit.progress` | `TrainingProgress` |

## Scene layout

```
scene/
  images/
  sparse/0/cameras.bin
  sparse/0/images.bin
  sparse/0/points3D.bin
```

`read_colmap_cameras` accepts only the `SIMPLE_PINHOLE` and `PINHOLE` camera models and raises `ValueError` for any other. The scene scale it returns is 1.1 times the largest distance of a camera centre from the mean camera centre (1.0 for a scene without images).

## Loading a scene and initialising splats

```python
from pathlib import Path

from splatkit.parameters import TrainingParameters
from splatkit.dataset import create_dataset_from_colmap
from splatkit.splat_data import init_model_from_pointcloud

params = TrainingParameters()
params.dataset.data_path = Path("scene")

dataset, scene_scale = create_dataset_from_colmap(params.dataset)
splats = init_model_from_pointcloud(params, scene_scale)
ply_path = splats.save_ply("output", 0)   # output/splat_0.ply
```

`CameraDataset` holds the views of one `Split` (`TRAIN`, `VAL` or `ALL`); every `test_every`-th view, starting with the first, is a validation view. Indexing a dataset returns `(camera, image)`, where the image is a `(channels, height, width)` float32 array in [0, 1] loaded from disk and shrunk by `DatasetConfig.resolution` when that is 2, 4 or 8. `iter_random(rng=None)` yields every view once in random order.

`SplatData` keeps raw parameters (`means`, `sh0`, `shN`, `scaling_raw`, `rotation_raw`, `opacity_raw`) and exposes activated values through the `opacity`, `scaling`, `rotation` and `shs` properties.

## Parameters and argument parsing

`read_optim_params_from_json(path)` reads optimisation settings from a JSON file, prints a report of values that differ from the defaults, and raises `KeyError` when a required key is missing. Without a path it reads `parameter/optimization_params.json` in the parent of the directory that holds the running script. `read_model_params_from_json(path)` reads `source_path`, `output_path`, `images` and `resolution` into a `DatasetConfig`.

`parse_args_and_params(argv=None, config_path=None)` loads the optimisation settings and applies command-line arguments on top of them; it raises `RuntimeError` when the arguments cannot be used. `parse_arguments(args, params)` does the second step alone, with `args[0]` being the program name, and raises `ValueError`. Both create the output directory if it does not exist.

| Option | Meaning |
| --- | --- |
| `-d`, `--data-path` | dataset directory (required) |
| `-o`, `--output-path` | output directory (required) |
| `-i`, `--iter` | number of iterations (non-negative) |
| `-r`, `--resolution` | image downscale factor |
| `--max-cap` | maximum number of Gaussians |
| `--images` | images folder name, such as `images_2` |
| `--test-every` | every N-th image is a validation image |
| `--eval` | enable evaluation |
| `-h`, `--help` | print help (and raise, since no run is configured) |

`-c`/`--convergence_rate`, `-f`/`--force`, `--enable-cr-monitoring` and `--empty-gpu-cache` are accepted but have no effect on the parameters.

## Metrics

```python
from splatkit.metrics import PSNR, SSIM, EvalMetrics, MetricsReporter

psnr = PSNR().compute(pred, target)   # arrays shaped [B, C, H, W]
ssim = SSIM().compute(pred, target)   # 11x11 Gaussian window, 3 channels by default

reporter = MetricsReporter("output")  # appends to output/metrics.csv
reporter.add_metrics(EvalMetrics(psnr=psnr, ssim=ssim, iteration=7000))
reporter.save_report()                # writes output/metrics_report.txt
```

## Images

`load_image(path, res_div=-1)` returns a `(height, width, channels)` uint8 array. `save_image(path, image)` writes a float image in [0, 1], given as `(C, H, W)`, `(H, W, C)` or with a leading batch axis of one, as PNG or JPEG depending on the extension (`.png`, `.jpg`, `.jpeg`). `save_images(path, images, horizontal=True, separator_width=2)` joins several images with white separators before saving.

## What this package does not do

There is no training loop, optimiser, densification strategy or rasteriser: the package loads scenes, initialises and exports splats, and measures images, but it cannot render splats or fit them to the images. LPIPS is not computed; `EvalMetrics.lpips` is a field you fill in yourself. The package installs no command; argument parsing is available as library functions only.
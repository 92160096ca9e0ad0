import struct
from pathlib import Path

import numpy as np
import pytest

from splatkit.parameters import DatasetConfig, OptimizationParameters, TrainingParameters
from splatkit.point_cloud import PointCloud
from splatkit.splat_data import (
    SplatData,
    compute_mean_neighbor_distances,
    init_from_point_cloud,
    init_model_from_pointcloud,
    write_ply,
)

C0 = 0.28209479177387814


def _cloud(n=5, seed=0):
    rng = np.random.default_rng(seed)
    means = rng.normal(size=(n, 3)).astype(np.float32)
    colors = rng.integers(0, 256, size=(n, 3), dtype=np.uint8)
    return PointCloud(means=means, colors=colors)


def _read_ply(path):
    raw = Path(path).read_bytes()
    marker = b"end_header\n"
    end = raw.index(marker) + len(marker)
    header = raw[:end].decode("ascii").splitlines()
    return header, raw[end:]


def test_single_point_gets_default_distance():
    result = compute_mean_neighbor_distances(np.zeros((1, 3), dtype=np.float32))
    assert result.tolist() == pytest.approx([0.01])


def test_two_points_distance():
    pts = np.array([[0, 0, 0], [0, 2, 0]], dtype=np.float32)
    assert compute_mean_neighbor_distances(pts) == pytest.approx([2.0, 2.0])


def test_duplicate_points_get_default_distance():
    pts = np.ones((3, 3), dtype=np.float32)
    assert compute_mean_neighbor_distances(pts) == pytest.approx([0.01] * 3)


def test_distances_scale_with_points():
    pts = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0], [3, 2, 1]], dtype=np.float32)
    base = compute_mean_neighbor_distances(pts)
    scaled = compute_mean_neighbor_distances(pts * 3)
    assert scaled == pytest.approx(base * 3, rel=1e-5)


def test_symmetric_square_equal_distances():
    pts = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], dtype=np.float32)
    result = compute_mean_neighbor_distances(pts)
    assert np.allclose(result, result[0])


def test_distance_input_checks():
    with pytest.raises(ValueError):
        compute_mean_neighbor_distances(np.zeros((3, 2), dtype=np.float32))
    with pytest.raises(TypeError):
        compute_mean_neighbor_distances(np.zeros((3, 3), dtype=np.float64))


def test_opacity_of_initial_model_is_half():
    model = init_from_point_cloud(_cloud(), 3, 1.0)
    assert model.opacity.shape == (5,)
    assert np.allclose(model.opacity, 0.5)


def test_initial_colors_round_trip():
    cloud = _cloud()
    model = init_from_point_cloud(cloud, 3, 1.0)
    recovered = model.sh0[:, 0, :] * C0 + 0.5
    assert np.allclose(recovered, cloud.colors.astype(np.float32) / 255.0, atol=1e-6)
    assert np.all(model.shN == 0)
    assert cloud.colors.dtype == np.uint8


def test_initial_shapes_and_rotation():
    model = init_from_point_cloud(_cloud(n=6), 2, 2.5)
    assert model.sh0.shape == (6, 1, 3)
    assert model.shN.shape == (6, 8, 3)
    assert model.shs.shape == (6, 9, 3)
    assert len(model) == 6
    assert model.scene_scale == 2.5
    assert np.allclose(model.rotation, [[1, 0, 0, 0]] * 6)


def test_initial_scaling_from_neighbours():
    cloud = _cloud()
    model = init_from_point_cloud(cloud, 3, 1.0)
    nn = compute_mean_neighbor_distances(cloud.means)
    expected = np.sqrt(nn) * 0.1
    assert np.allclose(model.scaling, expected[:, None].repeat(3, axis=1), rtol=1e-5)


def test_rotation_is_normalised():
    model = init_from_point_cloud(_cloud(), 3, 1.0)
    model.rotation_raw = np.array([[2, 0, 0, 0], [1, 1, 1, 1], [0, 3, 4, 0], [1, 2, 3, 4], [5, 0, 0, 0]],
                                  dtype=np.float32)
    assert np.allclose(np.linalg.norm(model.rotation, axis=1), 1.0)


def test_increment_sh_degree_is_capped():
    model = init_from_point_cloud(_cloud(), 2, 1.0)
    for _ in range(5):
        model.increment_sh_degree()
    assert model.active_sh_degree == 2


def test_attribute_names():
    model = init_from_point_cloud(_cloud(), 3, 1.0)
    names = model.attribute_names()
    assert names[:6] == ["x", "y", "z", "nx", "ny", "nz"]
    assert names[6:9] == ["f_dc_0", "f_dc_1", "f_dc_2"]
    assert names[-1] == "rot_3"
    assert "opacity" in names
    pc = model.to_point_cloud()
    columns = sum(a.reshape(a.shape[0], -1).shape[1]
                  for a in (pc.means, pc.normals, pc.sh0, pc.shN, pc.opacity, pc.scaling, pc.rotation))
    assert len(names) == columns


def test_to_point_cloud_layout():
    model = init_from_point_cloud(_cloud(), 1, 1.0)
    model.shN = np.arange(5 * 3 * 3, dtype=np.float32).reshape(5, 3, 3)
    pc = model.to_point_cloud()
    assert pc.is_gaussian()
    assert np.array_equal(pc.shN[0], model.shN[0].T.reshape(-1))
    assert np.all(pc.normals == 0)


def test_save_ply_round_trip(tmp_path):
    model = init_from_point_cloud(_cloud(n=4), 1, 1.0)
    path = model.save_ply(tmp_path / "out", 7)
    assert path.name == "splat_7.ply"
    header, body = _read_ply(path)
    assert header[0] == "ply"
    assert header[1] == "format binary_little_endian 1.0"
    assert header[2] == "element vertex 4"
    names = model.attribute_names()
    assert header[3:-1] == [f"property float {n}" for n in names]
    table = np.frombuffer(body, dtype="<f4").reshape(4, len(names))
    assert np.allclose(table[:, :3], model.means)
    assert np.allclose(table[:, names.index("opacity")], model.opacity_raw[:, 0])
    assert np.allclose(table[:, -4:], model.rotation_raw)


def test_write_ply_needs_names(tmp_path):
    pc = PointCloud(means=np.zeros((2, 3), dtype=np.float32), attribute_names=["x"])
    with pytest.raises(ValueError):
        write_ply(pc, tmp_path, 1)


def test_init_model_from_pointcloud(tmp_path):
    sparse = tmp_path / "sparse" / "0"
    sparse.mkdir(parents=True)
    points = [((0.0, 0.0, 0.0), (255, 0, 0)), ((1.0, 0.0, 0.0), (0, 255, 0)), ((0.0, 1.0, 0.0), (0, 0, 255))]
    data = struct.pack("<Q", len(points))
    for pid, (xyz, rgb) in enumerate(points):
        data += struct.pack("<Q3d3BdQ", pid, *xyz, *rgb, 0.5, 1) + struct.pack("<II", 1, 2)
    (sparse / "points3D.bin").write_bytes(data)

    params = TrainingParameters(
        dataset=DatasetConfig(data_path=tmp_path),
        optimization=OptimizationParameters(sh_degree=1),
    )
    model = init_model_from_pointcloud(params, 3.0)
    assert len(model) == 3
    assert model.max_sh_degree == 1
    assert np.allclose(model.means[1], [1, 0, 0])
    assert model.sh0[0, 0, 0] * C0 + 0.5 == pytest.approx(1.0)
    assert model.sh0[0, 0, 1] * C0 + 0.5 == pytest.approx(0.0, abs=1e-6)


def test_init_requires_colors():
    with pytest.raises(ValueError):
        init_from_point_cloud(PointCloud(means=np.zeros((2, 3), dtype=np.float32)), 3, 1.0)


def test_splat_data_constructor_keeps_raw():
    model = SplatData(
        1,
        np.zeros((2, 3)),
        np.zeros((2, 1, 3)),
        np.zeros((2, 3, 3)),
        np.zeros((2, 3)),
        np.tile([1.0, 0, 0, 0], (2, 1)),
        np.zeros((2, 1)),
        1.0,
    )
    assert model.active_sh_degree == 0
    assert np.allclose(model.scaling, 1.0)
    assert model.max_radii2D.shape == (2,)
"""Tests for rgbdgeom.io and the command line entry point."""

import json

import cv2
import numpy as np
import open3d as o3d
import pytest
import torch

import rgbdgeom.__main__ as cli
from rgbdgeom.io import (
    read_color_image,
    read_depth_image,
    read_intrinsics,
    to_open3d_point_cloud,
    write_point_cloud,
)
from rgbdgeom.utils.error_handling import ConfigurationError


@pytest.fixture
def depth_png(tmp_path, depth_image):
    path = tmp_path / "depth.png"
    cv2.imwrite(str(path), depth_image.numpy().astype(np.uint16))
    return path


@pytest.fixture
def color_png(tmp_path, depth_image):
    H, W = depth_image.shape
    rgb = np.zeros((H, W, 3), dtype=np.uint8)
    rgb[..., 0] = 200  # red channel
    path = tmp_path / "color.png"
    cv2.imwrite(str(path), cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    return path


@pytest.fixture
def intrinsics_json(tmp_path):
    path = tmp_path / "camera.json"
    path.write_text(json.dumps({"fx": 50.0, "fy": 50.0, "cx": 31.5, "cy": 23.5}))
    return path


class TestReaders:
    """Tests for depth, color and intrinsics readers."""

    def test_depth_png(self, depth_png, depth_image):
        depth = read_depth_image(depth_png)
        assert depth.dtype == torch.float32
        assert torch.equal(depth, depth_image)

    def test_depth_npy(self, tmp_path, depth_image):
        path = tmp_path / "depth.npy"
        np.save(path, depth_image.numpy())
        assert torch.equal(read_depth_image(path), depth_image)

    def test_depth_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_depth_image(tmp_path / "missing.png")

    def test_color_is_rgb(self, color_png):
        color = read_color_image(color_png)
        assert color.dtype == torch.uint8
        assert color.shape == (48, 64, 3)
        assert (color[..., 0] == 200).all()
        assert (color[..., 2] == 0).all()

    def test_intrinsics_fx_fy(self, intrinsics_json, intrinsics):
        assert torch.equal(read_intrinsics(intrinsics_json), intrinsics)

    def test_intrinsics_open3d_column_major(self, tmp_path, intrinsics):
        path = tmp_path / "camera.json"
        path.write_text(json.dumps({
            "width": 64, "height": 48,
            "intrinsic_matrix": [50.0, 0.0, 0.0, 0.0, 50.0, 0.0, 31.5, 23.5, 1.0],
        }))
        assert torch.equal(read_intrinsics(path), intrinsics)

    def test_intrinsics_yaml_nested(self, tmp_path, intrinsics):
        path = tmp_path / "camera.yaml"
        path.write_text("intrinsic_matrix:\n  - [50.0, 0.0, 31.5]\n  - [0.0, 50.0, 23.5]\n  - [0.0, 0.0, 1.0]\n")
        assert torch.equal(read_intrinsics(path), intrinsics)

    def test_intrinsics_incomplete(self, tmp_path):
        path = tmp_path / "camera.json"
        path.write_text(json.dumps({"fx": 50.0}))
        with pytest.raises(ConfigurationError):
            read_intrinsics(path)


class TestPointCloudOutput:
    """Tests for Open3D conversion and writing."""

    def test_uint8_colors_rescaled(self):
        points = torch.zeros(2, 3)
        colors = torch.tensor([[255, 0, 0], [0, 0, 255]], dtype=torch.uint8)
        pcd = to_open3d_point_cloud(points, colors)
        np.testing.assert_allclose(np.asarray(pcd.colors), [[1, 0, 0], [0, 0, 1]])

    def test_write_and_read_back(self, tmp_path):
        points = torch.rand(20, 3)
        normals = torch.nn.functional.normalize(torch.randn(20, 3), dim=1)
        path = tmp_path / "cloud.ply"
        write_point_cloud(path, points, normals=normals)

        pcd = o3d.io.read_point_cloud(str(path))
        assert len(pcd.points) == 20
        assert pcd.has_normals()
        np.testing.assert_allclose(np.asarray(pcd.points), points.numpy(), atol=1e-6)


class TestCli:
    """Tests for python -m rgbdgeom."""

    @pytest.fixture(autouse=True)
    def _quiet_logging(self, monkeypatch):
        monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)

    def test_unproject_with_color(self, tmp_path, depth_png, color_png, intrinsics_json, depth_image):
        out = tmp_path / "cloud.ply"
        code = cli.main(["unproject", "--depth", str(depth_png), "--color", str(color_png),
                         "--intrinsics", str(intrinsics_json), "--output", str(out),
                         "--depth-max", "3.0"])
        assert code == 0

        pcd = o3d.io.read_point_cloud(str(out))
        d = depth_image / 1000.0
        assert len(pcd.points) == int(((d > 0) & (d <= 3.0)).sum())
        assert pcd.has_colors()

    def test_normals_with_config(self, tmp_path, depth_png, intrinsics_json):
        config = tmp_path / "config.yaml"
        config.write_text("depth_diff: 0.05\ndepth_max: 3.0\n")
        out = tmp_path / "normals.ply"
        code = cli.main(["normals", "--depth", str(depth_png), "--intrinsics", str(intrinsics_json),
                         "--output", str(out), "--config", str(config)])
        assert code == 0

        pcd = o3d.io.read_point_cloud(str(out))
        assert len(pcd.points) > 0
        assert pcd.has_normals()

    def test_flags_override_config(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"depth_max": 2.0, "stride": 4}))
        args = cli.create_parser().parse_args([
            "unproject", "--depth", "d.png", "--intrinsics", "k.json", "--output", "o.ply",
            "--config", str(config), "--depth-max", "5.0",
        ])
        built = cli.build_config(args)
        assert built.depth_max == 5.0
        assert built.stride == 4

    def test_invalid_config_value_exits(self, tmp_path, depth_png, intrinsics_json):
        with pytest.raises(SystemExit):
            cli.main(["unproject", "--depth", str(depth_png), "--intrinsics", str(intrinsics_json),
                      "--output", str(tmp_path / "o.ply"), "--depth-scale", "-1"])

    def test_unavailable_device_returns_error_code(self, tmp_path, depth_png, intrinsics_json, monkeypatch):
        monkeypatch.setattr(torch.cuda, "is_available", lambda: False)
        code = cli.main(["unproject", "--depth", str(depth_png), "--intrinsics", str(intrinsics_json),
                         "--output", str(tmp_path / "o.ply"), "--device", "cuda"])
        assert code == 1

    def test_missing_depth_returns_error_code(self, tmp_path, intrinsics_json):
        code = cli.main(["unproject", "--depth", str(tmp_path / "missing.png"),
                         "--intrinsics", str(intrinsics_json), "--output", str(tmp_path / "o.ply")])
        assert code == 1

    def test_unwritable_output_returns_error_code(self, tmp_path, depth_png, intrinsics_json):
        out = tmp_path / "no_such_dir" / "cloud.ply"
        code = cli.main(["unproject", "--depth", str(depth_png), "--intrinsics", str(intrinsics_json),
                         "--output", str(out)])
        assert code == 1

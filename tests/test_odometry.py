"""Unit tests for rgbdgeom.odometry.maps (vertex and normal map construction)."""

import pytest
import torch

from rgbdgeom.config import KernelConfig
from rgbdgeom.odometry import (
    create_normal_map,
    create_vertex_and_normal_maps,
    create_vertex_map,
)
from rgbdgeom.utils.error_handling import (
    DeviceMismatchError,
    InvalidArgumentError,
    ShapeOrDtypeMismatchError,
    UnsupportedDeviceError,
)
from conftest import requires_cuda

FX = FY = 50.0
CX, CY = 31.5, 23.5


def _plane_depth(H=48, W=64, n=(0.2, -0.1, -1.0), offset=1.5):
    """Depth (mm) of the plane n . X = -offset seen through the test camera."""
    v, u = torch.meshgrid(torch.arange(H, dtype=torch.float64),
                          torch.arange(W, dtype=torch.float64), indexing="ij")
    rx, ry = (u - CX) / FX, (v - CY) / FY
    z = -offset / (n[0] * rx + n[1] * ry + n[2])
    return (z * 1000.0).to(torch.float32)


class TestCreateVertexMap:
    """Tests for create_vertex_map."""

    def test_shape_and_values(self, device, depth_image, intrinsics):
        vertex_map = create_vertex_map(depth_image.to(device), intrinsics.to(device),
                                       depth_scale=1000.0, depth_max=3.0)
        assert vertex_map.shape == (48, 64, 3)
        assert vertex_map.dtype == torch.float32
        assert vertex_map.device == device

        d = depth_image[20, 40].item() / 1000.0
        expected = torch.tensor([(40 - CX) * d / FX, (20 - CY) * d / FY, d])
        torch.testing.assert_close(vertex_map[20, 40].cpu(), expected)

    def test_invalid_pixels_are_zero(self, depth_image, intrinsics):
        vertex_map = create_vertex_map(depth_image, intrinsics, 1000.0, 3.0)
        assert torch.count_nonzero(vertex_map[0]) == 0           # zero depth row
        assert torch.count_nonzero(vertex_map[10:14, 20:24]) == 0  # beyond depth_max
        assert torch.count_nonzero(vertex_map[30:32, 40:42]) == 0  # hole
        assert (vertex_map[5:9, 5:9, 2] > 0).all()

    def test_nan_depth_is_invalid(self, intrinsics):
        depth = torch.full((4, 4), 1000.0)
        depth[1, 1] = float("nan")
        vertex_map = create_vertex_map(depth, intrinsics)
        assert torch.equal(vertex_map[1, 1], torch.zeros(3))
        assert torch.isfinite(vertex_map).all()

    def test_bad_intrinsics_shape(self, depth_image):
        with pytest.raises(ShapeOrDtypeMismatchError):
            create_vertex_map(depth_image, torch.eye(4))

    def test_bad_depth_scale(self, depth_image, intrinsics):
        with pytest.raises(InvalidArgumentError):
            create_vertex_map(depth_image, intrinsics, depth_scale=0.0)

    @requires_cuda
    def test_device_mismatch_names_both_devices(self, depth_image, intrinsics):
        with pytest.raises(DeviceMismatchError, match=r"cuda:0.*cpu"):
            create_vertex_map(depth_image.cuda(), intrinsics)

    def test_unsupported_device(self):
        with pytest.raises(UnsupportedDeviceError, match="Unimplemented device"):
            create_vertex_map(torch.zeros(4, 4, device="meta"), torch.eye(3, device="meta"))


class TestCreateNormalMap:
    """Tests for create_normal_map."""

    def test_fronto_parallel_plane(self, device, intrinsics):
        depth = torch.full((48, 64), 1500.0, device=device)
        vertex_map = create_vertex_map(depth, intrinsics.to(device))
        normal_map = create_normal_map(vertex_map, depth_diff=0.07)

        assert normal_map.shape == (48, 64, 3)
        inner = normal_map[:-1, :-1].cpu()
        expected = torch.tensor([0.0, 0.0, -1.0]).expand_as(inner)
        torch.testing.assert_close(inner, expected, atol=1e-5, rtol=0)

    def test_tilted_plane_matches_analytic_normal(self, intrinsics):
        n = torch.tensor([0.2, -0.1, -1.0])
        vertex_map = create_vertex_map(_plane_depth(n=tuple(n.tolist())), intrinsics)
        normal_map = create_normal_map(vertex_map, depth_diff=0.07)

        expected = n / n.norm()
        inner = normal_map[:-1, :-1].reshape(-1, 3)
        assert (inner.norm(dim=1) > 0).all()
        cos = inner @ expected
        assert cos.min().item() > 0.9999

    def test_depth_step_invalidates_boundary(self, intrinsics):
        depth = torch.full((48, 64), 1000.0)
        depth[:, 32:] = 1500.0  # 0.5 m step between columns 31 and 32
        vertex_map = create_vertex_map(depth, intrinsics)
        normal_map = create_normal_map(vertex_map, depth_diff=0.07)

        assert torch.count_nonzero(normal_map[:-1, 31]) == 0
        assert (normal_map[:-1, 30].norm(dim=1) > 0).all()
        assert (normal_map[:-1, 32].norm(dim=1) > 0).all()

    def test_small_step_within_depth_diff_kept(self, intrinsics):
        depth = torch.full((48, 64), 1000.0)
        depth[:, 32:] = 1010.0  # 1 cm step
        vertex_map = create_vertex_map(depth, intrinsics)
        normal_map = create_normal_map(vertex_map, depth_diff=0.07)
        assert (normal_map[:-1, 31].norm(dim=1) > 0).all()

    def test_invalid_vertex_neighbours(self, depth_image, intrinsics):
        vertex_map = create_vertex_map(depth_image, intrinsics)
        normal_map = create_normal_map(vertex_map)

        # Row 0 is invalid, so row 0 normals and pixels left of / above the hole are zero
        assert torch.count_nonzero(normal_map[0]) == 0
        assert torch.count_nonzero(normal_map[29, 40]) == 0
        assert torch.count_nonzero(normal_map[30, 39]) == 0

    def test_last_row_and_column_invalid(self, intrinsics):
        vertex_map = create_vertex_map(torch.full((8, 8), 1000.0), intrinsics)
        normal_map = create_normal_map(vertex_map)
        assert torch.count_nonzero(normal_map[-1]) == 0
        assert torch.count_nonzero(normal_map[:, -1]) == 0

    def test_unit_length(self, intrinsics):
        vertex_map = create_vertex_map(_plane_depth(), intrinsics)
        normal_map = create_normal_map(vertex_map)
        norms = normal_map.norm(dim=-1)
        valid = norms > 0
        torch.testing.assert_close(norms[valid], torch.ones(int(valid.sum())), atol=1e-5, rtol=0)

    def test_bad_vertex_map_shape(self):
        with pytest.raises(ShapeOrDtypeMismatchError):
            create_normal_map(torch.zeros(4, 4, 2))

    def test_bad_depth_diff(self):
        with pytest.raises(InvalidArgumentError):
            create_normal_map(torch.zeros(4, 4, 3), depth_diff=0.0)

    def test_unsupported_device(self):
        with pytest.raises(UnsupportedDeviceError, match="Unimplemented device"):
            create_normal_map(torch.zeros(4, 4, 3, device="meta"))


class TestCreateVertexAndNormalMaps:
    """Tests for the config-driven convenience builder."""

    def test_uses_config_values(self, intrinsics):
        depth = torch.full((16, 16), 2500.0)
        config = KernelConfig(depth_max=2.0)
        vertex_map, normal_map = create_vertex_and_normal_maps(depth, intrinsics, config)
        assert torch.count_nonzero(vertex_map) == 0
        assert torch.count_nonzero(normal_map) == 0

        config = KernelConfig(depth_max=3.0)
        vertex_map, normal_map = create_vertex_and_normal_maps(depth, intrinsics, config)
        assert (vertex_map[..., 2] == 2.5).all()
        assert (normal_map[:-1, :-1].norm(dim=-1) > 0).all()

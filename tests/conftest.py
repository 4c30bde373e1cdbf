"""Shared fixtures for rgbdgeom tests."""

import pytest
import torch

DEVICES = [torch.device("cpu")]
if torch.cuda.is_available():
    DEVICES.append(torch.device("cuda:0"))

DTYPES = [torch.float32, torch.float64]

requires_cuda = pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")


@pytest.fixture(params=DEVICES, ids=lambda d: str(d))
def device(request):
    return request.param


@pytest.fixture(params=DTYPES, ids=lambda d: str(d).replace("torch.", ""))
def dtype(request):
    return request.param


@pytest.fixture
def intrinsics():
    """Small pinhole camera, 64x48 image."""
    return torch.tensor([
        [50.0, 0.0, 31.5],
        [0.0, 50.0, 23.5],
        [0.0, 0.0, 1.0],
    ], dtype=torch.float64)


@pytest.fixture
def depth_image():
    """Sloped synthetic depth (mm) with an invalid border, a far patch and a hole."""
    H, W = 48, 64
    v, u = torch.meshgrid(torch.arange(H), torch.arange(W), indexing="ij")
    depth = 1000.0 + 5.0 * u + 3.0 * v
    depth[0, :] = 0.0
    depth[:, 0] = 0.0
    depth[10:14, 20:24] = 5000.0   # beyond depth_max = 3 m
    depth[30:32, 40:42] = 0.0      # hole
    return depth.to(torch.float32)


@pytest.fixture
def rigid_extrinsics():
    """World-to-camera transform: rotation about an oblique axis plus translation."""
    from rgbdgeom.geometry import pose_to_transformation
    pose = torch.tensor([0.1, -0.2, 0.05, 0.3, -0.1, 0.2], dtype=torch.float64)
    return pose_to_transformation(pose)

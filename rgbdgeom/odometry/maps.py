"""
Vertex and normal map construction for frame-to-frame RGB-D tracking.

Invalid pixels in both maps hold the zero vector. A vertex with z == 0 is
therefore never a valid surface point, which is the same convention the
depth images use.
"""

import logging
from typing import Tuple

import torch

from ..kernels import cpu, cuda
from ..kernels.dispatch import Backend, resolve_backend, synchronize
from ..utils.error_handling import InvalidArgumentError, raise_logged
from ..utils.tensor_checks import assert_same_device, assert_shape, stage_to_host

logger = logging.getLogger(__name__)


def create_vertex_map(
    depth_map: torch.Tensor,
    intrinsics: torch.Tensor,
    depth_scale: float = 1000.0,
    depth_max: float = 3.0,
) -> torch.Tensor:
    """Back-project every pixel of a depth image into the camera frame.

    Args:
        depth_map: (H, W) raw depth image
        intrinsics: (3, 3) camera intrinsic matrix on the same device
        depth_scale: Raw depth units per metre
        depth_max: Pixels with metric depth outside (0, depth_max] are invalid

    Returns:
        (H, W, 3) float32 vertex map on the depth device

    Raises:
        DeviceMismatchError: depth_map and intrinsics on different devices
    """
    op = "create_vertex_map"
    assert_same_device(depth_map, "depth_map", intrinsics, "intrinsics", op)
    assert_shape(depth_map, (None, None), "depth_map", op)
    assert_shape(intrinsics, (3, 3), "intrinsics", op)
    if depth_scale <= 0:
        raise_logged(InvalidArgumentError, op,
                     f"depth_scale must be positive, got {depth_scale}.", logger)

    device = depth_map.device
    backend = resolve_backend(device, op)
    intrinsics_d = stage_to_host(intrinsics)

    if backend is Backend.CPU:
        vertex_map = cpu.create_vertex_map_cpu(depth_map, intrinsics_d, depth_scale, depth_max)
    else:
        vertex_map = cuda.create_vertex_map_cuda(depth_map, intrinsics_d, depth_scale, depth_max)
        synchronize(device)

    return vertex_map


def create_normal_map(
    vertex_map: torch.Tensor,
    depth_scale: float = 1000.0,
    depth_max: float = 3.0,
    depth_diff: float = 0.07,
) -> torch.Tensor:
    """Estimate per-pixel surface normals from a vertex map.

    The normal at (v, u) is the normalized cross product of the differences
    to the right (v, u + 1) and lower (v + 1, u) neighbours, oriented towards
    the camera. Pixels touching an invalid vertex, or whose depth jumps by
    more than ``depth_diff`` to either neighbour, get the zero normal; so do
    the last row and column.

    Args:
        vertex_map: (H, W, 3) camera-frame vertex map in metres
        depth_scale: Scale used to build the vertex map; vertex maps are
            metric so it is only recorded for logging
        depth_max: Vertices deeper than this are treated as invalid
        depth_diff: Maximum depth discontinuity between neighbours, in metres

    Returns:
        (H, W, 3) float32 normal map on the vertex map device
    """
    op = "create_normal_map"
    assert_shape(vertex_map, (None, None, 3), "vertex_map", op)
    if depth_diff <= 0:
        raise_logged(InvalidArgumentError, op,
                     f"depth_diff must be positive, got {depth_diff}.", logger)

    device = vertex_map.device
    backend = resolve_backend(device, op)
    logger.debug(f"[{op}] depth_scale={depth_scale} depth_max={depth_max} depth_diff={depth_diff}")
    if backend is Backend.CPU:
        normal_map = cpu.create_normal_map_cpu(vertex_map, depth_max, depth_diff)
    else:
        normal_map = cuda.create_normal_map_cuda(vertex_map, depth_max, depth_diff)
        synchronize(device)

    return normal_map


def create_vertex_and_normal_maps(depth_map: torch.Tensor, intrinsics: torch.Tensor,
                                  config) -> Tuple[torch.Tensor, torch.Tensor]:
    """Build both maps for one frame using the depth settings of a KernelConfig."""
    vertex_map = create_vertex_map(depth_map, intrinsics,
                                   config.depth_scale, config.depth_max)
    normal_map = create_normal_map(vertex_map, config.depth_scale,
                                   config.depth_max, config.depth_diff)
    return vertex_map, normal_map


__all__ = [
    'create_vertex_map',
    'create_normal_map',
    'create_vertex_and_normal_maps'
]

"""
Point cloud kernel dispatchers.

Unproject depth images to world-space point clouds, project point clouds
back to depth images and apply rigid transformations to points and normals.
Each function validates its arguments, picks the CPU or CUDA backend from
where the primary tensor lives, stages the camera matrices to host float64
and hands off to the kernel. Nothing is touched until validation has passed.

Output tensors follow the torch ``out=`` convention: a caller supplied
tensor is resized, filled and returned; otherwise a fresh tensor is returned.
"""

import logging
from typing import Optional, Tuple

import torch

from ..kernels import cpu, cuda
from ..kernels.dispatch import Backend, resolve_backend, synchronize
from ..utils.error_handling import InvalidArgumentError, raise_logged
from ..utils.tensor_checks import (
    assert_device,
    assert_dtype,
    assert_float_dtype,
    assert_same_device,
    assert_shape,
    stage_to_host,
)
from .transforms import assert_rigid_transformation

logger = logging.getLogger(__name__)


def _check_color_pair(image_colors, colors, op: str) -> None:
    if (image_colors is None) != (colors is None):
        raise_logged(
            InvalidArgumentError, op,
            "Both or none of image_colors and colors must have values.",
            logger,
        )


def _check_depth_params(depth_scale: float, depth_max: float, op: str) -> None:
    if depth_scale <= 0:
        raise_logged(InvalidArgumentError, op,
                     f"depth_scale must be positive, got {depth_scale}.", logger)
    if depth_max <= 0:
        raise_logged(InvalidArgumentError, op,
                     f"depth_max must be positive, got {depth_max}.", logger)


def _write_out(result: Optional[torch.Tensor], out: Optional[torch.Tensor]) -> Optional[torch.Tensor]:
    if out is None:
        return result
    out.resize_(result.shape)
    out.copy_(result)
    return out


def unproject(
    depth: torch.Tensor,
    intrinsics: torch.Tensor,
    extrinsics: torch.Tensor,
    image_colors: Optional[torch.Tensor] = None,
    *,
    points: Optional[torch.Tensor] = None,
    colors: Optional[torch.Tensor] = None,
    depth_scale: float = 1000.0,
    depth_max: float = 3.0,
    stride: int = 1,
) -> Tuple[torch.Tensor, Optional[torch.Tensor]]:
    """Convert a depth image (and optional color image) to a world-space point cloud.

    Args:
        depth: (H, W) raw depth image; metric depth is ``depth / depth_scale``
        intrinsics: (3, 3) camera intrinsic matrix
        extrinsics: (4, 4) world-to-camera transformation
        image_colors: Optional (H, W, C) color image on the depth device
        points: Optional output tensor for the (N, 3) points
        colors: Output tensor for the (N, C) colors; required exactly when
            ``image_colors`` is given
        depth_scale: Raw depth units per metre
        depth_max: Pixels with metric depth outside (0, depth_max] are skipped
        stride: Only every stride-th row and column is sampled

    Returns:
        points: (N, 3) world points, float32 unless ``points`` was supplied
        colors: (N, C) colors in lockstep with points, or None

    Raises:
        InvalidArgumentError: Unpaired colors or bad scalar parameters
        ShapeOrDtypeMismatchError: Wrong tensor shapes
        DeviceMismatchError: Tensors on different devices
        UnsupportedDeviceError: No backend for the depth device
    """
    op = "unproject"
    _check_color_pair(image_colors, colors, op)
    assert_shape(depth, (None, None), "depth", op)
    assert_shape(intrinsics, (3, 3), "intrinsics", op)
    assert_shape(extrinsics, (4, 4), "extrinsics", op)
    H, W = depth.shape
    if image_colors is not None:
        assert_shape(image_colors, (H, W, None), "image_colors", op)
        assert_same_device(depth, "depth", image_colors, "image_colors", op)
        assert_device(colors, depth.device, "colors", op)
    if points is not None:
        assert_device(points, depth.device, "points", op)
        assert_float_dtype(points, "points", op)
    if isinstance(stride, bool) or not isinstance(stride, int) or stride < 1:
        raise_logged(InvalidArgumentError, op,
                     f"stride must be an integer >= 1, got {stride!r}.", logger)
    _check_depth_params(depth_scale, depth_max, op)

    device = depth.device
    backend = resolve_backend(device, op)
    intrinsics_d = stage_to_host(intrinsics)
    extrinsics_d = stage_to_host(extrinsics)

    if backend is Backend.CPU:
        new_points, new_colors = cpu.unproject_cpu(
            depth, image_colors, intrinsics_d, extrinsics_d, depth_scale, depth_max, stride
        )
    else:
        new_points, new_colors = cuda.unproject_cuda(
            depth, image_colors, intrinsics_d, extrinsics_d, depth_scale, depth_max, stride
        )
        synchronize(device)

    logger.debug(f"[{op}] {new_points.shape[0]} points from {H}x{W} depth image (stride {stride})")
    return _write_out(new_points, points), _write_out(new_colors, colors)


def project(
    points: torch.Tensor,
    intrinsics: torch.Tensor,
    extrinsics: torch.Tensor,
    colors: Optional[torch.Tensor] = None,
    *,
    depth: torch.Tensor,
    image_colors: Optional[torch.Tensor] = None,
    depth_scale: float = 1000.0,
    depth_max: float = 3.0,
) -> Tuple[torch.Tensor, Optional[torch.Tensor]]:
    """Render a point cloud into a depth image (and optional color image).

    Nearest point wins per pixel. Pixels that already hold a nonzero depth
    are only overwritten by nearer points, so ``depth`` should normally be
    zero-initialized. Points behind the camera, beyond ``depth_max`` or
    outside the image are skipped.

    Args:
        points: (N, 3) world points
        intrinsics: (3, 3) camera intrinsic matrix
        extrinsics: (4, 4) world-to-camera transformation
        colors: Optional (N, C) point colors
        depth: (H, W) float depth image written in place, in raw units
            (metric depth times ``depth_scale``)
        image_colors: (H, W, C) color image written in place; required
            exactly when ``colors`` is given
        depth_scale: Raw depth units per metre
        depth_max: Maximum metric depth

    Returns:
        depth, image_colors: The output tensors
    """
    op = "project"
    _check_color_pair(image_colors, colors, op)
    assert_shape(points, (None, 3), "points", op)
    assert_float_dtype(points, "points", op)
    assert_shape(depth, (None, None), "depth", op)
    assert_float_dtype(depth, "depth", op)
    assert_shape(intrinsics, (3, 3), "intrinsics", op)
    assert_shape(extrinsics, (4, 4), "extrinsics", op)
    assert_same_device(depth, "depth", points, "points", op)
    H, W = depth.shape
    if colors is not None:
        assert_shape(colors, (points.shape[0], None), "colors", op)
        assert_shape(image_colors, (H, W, colors.shape[1]), "image_colors", op)
        assert_device(colors, depth.device, "colors", op)
        assert_device(image_colors, depth.device, "image_colors", op)
    _check_depth_params(depth_scale, depth_max, op)

    device = depth.device
    backend = resolve_backend(device, op)
    intrinsics_d = stage_to_host(intrinsics)
    extrinsics_d = stage_to_host(extrinsics)

    if backend is Backend.CPU:
        cpu.project_cpu(depth, image_colors, points, colors,
                        intrinsics_d, extrinsics_d, depth_scale, depth_max)
    else:
        cuda.project_cuda(depth, image_colors, points, colors,
                          intrinsics_d, extrinsics_d, depth_scale, depth_max)
        synchronize(device)

    logger.debug(f"[{op}] projected {points.shape[0]} points into {H}x{W} depth image")
    return depth, image_colors


def transform_points(points: torch.Tensor, transformation: torch.Tensor) -> torch.Tensor:
    """Apply a rigid transformation to (N, 3) points.

    The kernel runs in place on ``points.contiguous()``, which is returned.
    For a contiguous input that is the caller's tensor itself; otherwise it
    is a new tensor and the caller must rebind its handle to it. A rejected
    transformation leaves ``points`` unchanged.

    Raises:
        InvalidArgumentError: ``transformation`` fails the rigidity guard
    """
    op = "transform_points"
    assert_shape(transformation, (4, 4), "transformation", op)
    assert_shape(points, (None, 3), "points", op)
    assert_float_dtype(points, "points", op)
    assert_dtype(transformation, points.dtype, "transformation", op)
    assert_device(transformation, points.device, "transformation", op)
    device = points.device
    backend = resolve_backend(device, op)
    assert_rigid_transformation(transformation, op)

    points_contiguous = points.contiguous()

    if backend is Backend.CPU:
        cpu.transform_cpu(points_contiguous, stage_to_host(transformation))
    else:
        cuda.transform_cuda(points_contiguous, transformation.contiguous())
        synchronize(device)

    return points_contiguous


def transform_points_and_normals(
    points: torch.Tensor,
    normals: torch.Tensor,
    transformation: torch.Tensor,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Apply a rigid transformation to points and its rotation to normals.

    Same rebinding contract as :func:`transform_points` for both tensors.
    """
    op = "transform_points_and_normals"
    assert_shape(transformation, (4, 4), "transformation", op)
    assert_shape(points, (None, 3), "points", op)
    assert_float_dtype(points, "points", op)
    assert_shape(normals, tuple(points.shape), "normals", op)
    assert_dtype(transformation, points.dtype, "transformation", op)
    assert_dtype(normals, points.dtype, "normals", op)
    assert_device(transformation, points.device, "transformation", op)
    assert_device(normals, points.device, "normals", op)
    device = points.device
    backend = resolve_backend(device, op)
    assert_rigid_transformation(transformation, op)

    points_contiguous = points.contiguous()
    normals_contiguous = normals.contiguous()

    if backend is Backend.CPU:
        cpu.transform_with_normals_cpu(points_contiguous, normals_contiguous,
                                       stage_to_host(transformation))
    else:
        cuda.transform_with_normals_cuda(points_contiguous, normals_contiguous,
                                         transformation.contiguous())
        synchronize(device)

    return points_contiguous, normals_contiguous


__all__ = [
    'unproject',
    'project',
    'transform_points',
    'transform_points_and_normals'
]

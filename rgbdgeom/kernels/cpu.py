"""
CPU kernels.

NumPy implementations operating on host tensors. Arrays obtained with
``Tensor.numpy()`` share storage with the tensor, so in-place kernels write
straight through to the caller's buffer. Intrinsics and extrinsics arrive
staged as contiguous float64 host tensors.
"""

from typing import Optional, Tuple

import numpy as np
import torch


def _as_float64(tensor: torch.Tensor) -> np.ndarray:
    return tensor.detach().to(torch.float64).numpy()


def _intrinsic_params(intrinsics: torch.Tensor) -> Tuple[float, float, float, float]:
    K = intrinsics.numpy()
    return float(K[0, 0]), float(K[1, 1]), float(K[0, 2]), float(K[1, 2])


def unproject_cpu(
    depth: torch.Tensor,
    image_colors: Optional[torch.Tensor],
    intrinsics: torch.Tensor,
    extrinsics: torch.Tensor,
    depth_scale: float,
    depth_max: float,
    stride: int,
) -> Tuple[torch.Tensor, Optional[torch.Tensor]]:
    """Back-project every stride-th valid depth pixel to world coordinates.

    Returns:
        points: (N, 3) float32 world points in row-major pixel order
        colors: (N, C) colors in lockstep with points, or None
    """
    fx, fy, cx, cy = _intrinsic_params(intrinsics)
    T_CW = np.linalg.inv(extrinsics.numpy())

    H, W = depth.shape
    d = _as_float64(depth)[::stride, ::stride] / depth_scale
    v, u = np.mgrid[0:H:stride, 0:W:stride]

    valid = (d > 0) & (d <= depth_max)
    z = d[valid]
    x = (u[valid] - cx) * z / fx
    y = (v[valid] - cy) * z / fy

    points_C = np.stack([x, y, z], axis=1)
    points_W = points_C @ T_CW[:3, :3].T + T_CW[:3, 3]
    points = torch.from_numpy(points_W.astype(np.float32))

    colors = None
    if image_colors is not None:
        img = image_colors.detach().numpy()
        colors = torch.from_numpy(np.ascontiguousarray(img[::stride, ::stride][valid]))

    return points, colors


def project_cpu(
    depth: torch.Tensor,
    image_colors: Optional[torch.Tensor],
    points: torch.Tensor,
    colors: Optional[torch.Tensor],
    intrinsics: torch.Tensor,
    extrinsics: torch.Tensor,
    depth_scale: float,
    depth_max: float,
) -> None:
    """Z-buffer points into ``depth`` (and ``image_colors``) in place."""
    fx, fy, cx, cy = _intrinsic_params(intrinsics)
    T_WC = extrinsics.numpy()
    H, W = depth.shape

    points_C = _as_float64(points) @ T_WC[:3, :3].T + T_WC[:3, 3]
    z = points_C[:, 2]
    idx = np.nonzero((z > 0) & (z <= depth_max))[0]
    if idx.size == 0:
        return

    z = z[idx]
    u = np.round(fx * points_C[idx, 0] / z + cx).astype(np.int64)
    v = np.round(fy * points_C[idx, 1] / z + cy).astype(np.int64)
    inside = (u >= 0) & (u < W) & (v >= 0) & (v < H)
    idx, z, u, v = idx[inside], z[inside], u[inside], v[inside]
    if idx.size == 0:
        return

    d = z * depth_scale
    lin = v * W + u

    # Nearest point per pixel
    zbuf = np.full(H * W, np.inf)
    np.minimum.at(zbuf, lin, d)

    depth_np = depth.detach().numpy()
    pix = np.nonzero(np.isfinite(zbuf))[0]
    pv, pu = pix // W, pix % W
    existing = depth_np[pv, pu]
    write = (existing == 0) | (zbuf[pix] < existing)
    depth_np[pv[write], pu[write]] = zbuf[pix[write]]

    if image_colors is not None:
        # Equal-depth ties go to the lowest point index
        nearest = d == zbuf[lin]
        owner = np.full(H * W, np.iinfo(np.int64).max, dtype=np.int64)
        np.minimum.at(owner, lin[nearest], idx[nearest])
        dst = pix[write]
        image_colors.detach().numpy()[dst // W, dst % W] = (
            colors.detach().numpy()[owner[dst]]
        )


def transform_cpu(points: torch.Tensor, transformation: torch.Tensor) -> None:
    """Apply a rigid transformation to contiguous (N, 3) points in place."""
    T = transformation.numpy()
    P = points.detach().numpy()
    P[:] = P.astype(np.float64) @ T[:3, :3].T + T[:3, 3]


def transform_with_normals_cpu(points: torch.Tensor, normals: torch.Tensor,
                               transformation: torch.Tensor) -> None:
    """Rotate and translate points, rotate normals, both in place."""
    transform_cpu(points, transformation)
    R = transformation.numpy()[:3, :3]
    N = normals.detach().numpy()
    N[:] = N.astype(np.float64) @ R.T


def create_vertex_map_cpu(depth_map: torch.Tensor, intrinsics: torch.Tensor,
                          depth_scale: float, depth_max: float) -> torch.Tensor:
    """Camera-frame vertex per pixel; invalid pixels are the zero vector."""
    fx, fy, cx, cy = _intrinsic_params(intrinsics)
    H, W = depth_map.shape

    d = _as_float64(depth_map) / depth_scale
    v, u = np.mgrid[0:H, 0:W]
    valid = (d > 0) & (d <= depth_max)

    vertex_map = np.zeros((H, W, 3), dtype=np.float64)
    vertex_map[..., 0] = (u - cx) * d / fx
    vertex_map[..., 1] = (v - cy) * d / fy
    vertex_map[..., 2] = d
    vertex_map[~valid] = 0.0

    return torch.from_numpy(vertex_map.astype(np.float32))


def create_normal_map_cpu(vertex_map: torch.Tensor, depth_max: float,
                          depth_diff: float) -> torch.Tensor:
    """Per-pixel normal from forward differences; invalid pixels are zero."""
    V = _as_float64(vertex_map)
    H, W, _ = V.shape
    normal_map = np.zeros((H, W, 3), dtype=np.float64)
    if H < 2 or W < 2:
        return torch.from_numpy(normal_map.astype(np.float32))

    v00 = V[:-1, :-1]
    v10 = V[:-1, 1:]
    v01 = V[1:, :-1]

    valid = np.ones(v00.shape[:2], dtype=bool)
    for vert in (v00, v10, v01):
        valid &= (vert[..., 2] > 0) & (vert[..., 2] <= depth_max)
    valid &= np.abs(v10[..., 2] - v00[..., 2]) <= depth_diff
    valid &= np.abs(v01[..., 2] - v00[..., 2]) <= depth_diff

    n = np.cross(v10 - v00, v01 - v00)
    norm = np.linalg.norm(n, axis=-1)
    valid &= norm > 0
    n = n / np.where(norm > 0, norm, 1.0)[..., None]

    # Orient towards the camera
    facing_away = np.sum(n * v00, axis=-1) > 0
    n[facing_away] *= -1.0
    n[~valid] = 0.0

    normal_map[:-1, :-1] = n
    return torch.from_numpy(normal_map.astype(np.float32))

"""
CUDA kernels.

Vectorized torch implementations executed on the device of the input
tensors. The dispatcher only routes CUDA tensors here, but the kernels are
device agnostic torch code, which is what lets tests compare them against
the CPU kernels on machines without a GPU.

Geometry is evaluated in float64 like the CPU kernels so that validity
decisions (depth range, pixel rounding, depth discontinuities) agree between
backends; stored maps and point clouds are float32.
"""

from typing import Optional, Tuple

import torch


def _intrinsic_params(intrinsics: torch.Tensor) -> Tuple[float, float, float, float]:
    K = intrinsics.tolist()
    return K[0][0], K[1][1], K[0][2], K[1][2]


def _pixel_grid(H: int, W: int, stride: int, device: torch.device):
    v, u = torch.meshgrid(
        torch.arange(0, H, stride, device=device, dtype=torch.float64),
        torch.arange(0, W, stride, device=device, dtype=torch.float64),
        indexing="ij",
    )
    return v, u


@torch.no_grad()
def unproject_cuda(
    depth: torch.Tensor,
    image_colors: Optional[torch.Tensor],
    intrinsics: torch.Tensor,
    extrinsics: torch.Tensor,
    depth_scale: float,
    depth_max: float,
    stride: int,
) -> Tuple[torch.Tensor, Optional[torch.Tensor]]:
    """Back-project every stride-th valid depth pixel to world coordinates."""
    device = depth.device
    fx, fy, cx, cy = _intrinsic_params(intrinsics)
    T_CW = torch.linalg.inv(extrinsics).to(device)

    H, W = depth.shape
    d = depth[::stride, ::stride].to(torch.float64) / depth_scale
    v, u = _pixel_grid(H, W, stride, device)

    valid = (d > 0) & (d <= depth_max)
    z = d[valid]
    x = (u[valid] - cx) * z / fx
    y = (v[valid] - cy) * z / fy

    points_C = torch.stack([x, y, z], dim=1)
    points = (points_C @ T_CW[:3, :3].T + T_CW[:3, 3]).to(torch.float32)

    colors = None
    if image_colors is not None:
        colors = image_colors[::stride, ::stride][valid].contiguous()

    return points.contiguous(), colors


@torch.no_grad()
def project_cuda(
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
    device = depth.device
    fx, fy, cx, cy = _intrinsic_params(intrinsics)
    T_WC = extrinsics.to(device)
    H, W = depth.shape

    points_C = points.to(torch.float64) @ T_WC[:3, :3].T + T_WC[:3, 3]
    z = points_C[:, 2]
    idx = torch.nonzero((z > 0) & (z <= depth_max), as_tuple=True)[0]
    if idx.numel() == 0:
        return

    z = z[idx]
    u = torch.round(fx * points_C[idx, 0] / z + cx).long()
    v = torch.round(fy * points_C[idx, 1] / z + cy).long()
    inside = (u >= 0) & (u < W) & (v >= 0) & (v < H)
    idx, z, u, v = idx[inside], z[inside], u[inside], v[inside]
    if idx.numel() == 0:
        return

    d = z * depth_scale
    lin = v * W + u

    # Nearest point per pixel
    zbuf = torch.full((H * W,), float("inf"), device=device, dtype=torch.float64)
    zbuf.scatter_reduce_(0, lin, d, reduce="amin", include_self=True)

    pix = torch.nonzero(torch.isfinite(zbuf), as_tuple=True)[0]
    pv, pu = pix // W, pix % W
    existing = depth[pv, pu].to(torch.float64)
    write = (existing == 0) | (zbuf[pix] < existing)
    depth[pv[write], pu[write]] = zbuf[pix[write]].to(depth.dtype)

    if image_colors is not None:
        # Equal-depth ties go to the lowest point index
        nearest = d == zbuf[lin]
        owner = torch.full((H * W,), torch.iinfo(torch.int64).max, device=device, dtype=torch.int64)
        owner.scatter_reduce_(0, lin[nearest], idx[nearest], reduce="amin", include_self=True)
        dst = pix[write]
        image_colors[dst // W, dst % W] = colors[owner[dst]].to(image_colors.dtype)


@torch.no_grad()
def transform_cuda(points: torch.Tensor, transformation: torch.Tensor) -> None:
    """Apply a rigid transformation to contiguous (N, 3) points in place."""
    R = transformation[:3, :3]
    t = transformation[:3, 3]
    points.copy_(points @ R.T + t)


@torch.no_grad()
def transform_with_normals_cuda(points: torch.Tensor, normals: torch.Tensor,
                                transformation: torch.Tensor) -> None:
    """Rotate and translate points, rotate normals, both in place."""
    transform_cuda(points, transformation)
    normals.copy_(normals @ transformation[:3, :3].T)


@torch.no_grad()
def create_vertex_map_cuda(depth_map: torch.Tensor, intrinsics: torch.Tensor,
                           depth_scale: float, depth_max: float) -> torch.Tensor:
    """Camera-frame vertex per pixel; invalid pixels are the zero vector."""
    device = depth_map.device
    fx, fy, cx, cy = _intrinsic_params(intrinsics)
    H, W = depth_map.shape

    d = depth_map.to(torch.float64) / depth_scale
    v, u = _pixel_grid(H, W, 1, device)
    valid = (d > 0) & (d <= depth_max)

    vertex_map = torch.stack([(u - cx) * d / fx, (v - cy) * d / fy, d], dim=-1)
    vertex_map[~valid] = 0.0
    return vertex_map.to(torch.float32)


@torch.no_grad()
def create_normal_map_cuda(vertex_map: torch.Tensor, depth_max: float,
                           depth_diff: float) -> torch.Tensor:
    """Per-pixel normal from forward differences; invalid pixels are zero."""
    V = vertex_map.to(torch.float64)
    H, W, _ = V.shape
    normal_map = torch.zeros((H, W, 3), dtype=torch.float32, device=V.device)
    if H < 2 or W < 2:
        return normal_map

    v00 = V[:-1, :-1]
    v10 = V[:-1, 1:]
    v01 = V[1:, :-1]

    valid = torch.ones(v00.shape[:2], dtype=torch.bool, device=V.device)
    for vert in (v00, v10, v01):
        valid &= (vert[..., 2] > 0) & (vert[..., 2] <= depth_max)
    valid &= (v10[..., 2] - v00[..., 2]).abs() <= depth_diff
    valid &= (v01[..., 2] - v00[..., 2]).abs() <= depth_diff

    n = torch.linalg.cross(v10 - v00, v01 - v00, dim=-1)
    norm = torch.linalg.norm(n, dim=-1)
    valid &= norm > 0
    n = n / torch.where(norm > 0, norm, torch.ones_like(norm)).unsqueeze(-1)

    # Orient towards the camera
    facing_away = (n * v00).sum(dim=-1) > 0
    n[facing_away] = -n[facing_away]
    n[~valid] = 0.0

    normal_map[:-1, :-1] = n.to(torch.float32)
    return normal_map

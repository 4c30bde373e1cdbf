# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

"""
RGB-D input and point cloud output.

Reads depth/color images and camera intrinsics from disk into tensors the
kernels accept, and writes point clouds through Open3D.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np
import open3d as o3d
import torch
import yaml

from ..utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)


def read_depth_image(path: Union[str, Path]) -> torch.Tensor:
    """Load a raw depth image (16-bit PNG/TIFF or .npy) as an (H, W) float32 tensor.

    Values are left in raw sensor units; divide by depth_scale for metres.
    """
    path = Path(path)
    if path.suffix == ".npy":
        depth = np.load(path)
    else:
        depth = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if depth is None:
            raise FileNotFoundError(f"Required depth image not found or unreadable: {path}")

    if depth.ndim != 2:
        raise ValueError(f"Depth image must be single channel, got shape {depth.shape} from {path}")
    return torch.from_numpy(depth.astype(np.float32))


def read_color_image(path: Union[str, Path]) -> torch.Tensor:
    """Load a color image as an (H, W, 3) uint8 RGB tensor."""
    img_bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img_bgr is None:
        raise FileNotFoundError(f"Required color image not found or unreadable: {path}")
    img_rgb = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2RGB)
    return torch.from_numpy(np.ascontiguousarray(img_rgb))


def read_intrinsics(path: Union[str, Path]) -> torch.Tensor:
    """Load a (3, 3) float64 intrinsic matrix from JSON or YAML.

    Accepted layouts:
        {"fx": ..., "fy": ..., "cx": ..., "cy": ...}
        {"intrinsic_matrix": [[fx, 0, cx], [0, fy, cy], [0, 0, 1]]}
        {"intrinsic_matrix": [9 values]}  (column-major, Open3D camera JSON)
    """
    path = Path(path)
    with open(path, 'r') as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif path.suffix == ".json":
            data = json.load(f)
        else:
            raise ConfigurationError(f"Unsupported intrinsics format: {path.suffix}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Intrinsics file {path} must contain a mapping")

    if all(k in data for k in ("fx", "fy", "cx", "cy")):
        K = np.array([
            [data["fx"], 0.0, data["cx"]],
            [0.0, data["fy"], data["cy"]],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)
    elif "intrinsic_matrix" in data:
        K = np.asarray(data["intrinsic_matrix"], dtype=np.float64)
        if K.shape == (9,):
            K = K.reshape(3, 3).T
        if K.shape != (3, 3):
            raise ConfigurationError(f"intrinsic_matrix must be 3x3 or 9 values, got shape {K.shape}")
    else:
        raise ConfigurationError(
            f"Intrinsics file {path} needs fx/fy/cx/cy or intrinsic_matrix"
        )

    return torch.from_numpy(K)


def to_open3d_point_cloud(points: torch.Tensor,
                          colors: Optional[torch.Tensor] = None,
                          normals: Optional[torch.Tensor] = None) -> o3d.geometry.PointCloud:
    """Convert (N, 3) tensors to an Open3D point cloud.

    uint8 colors are rescaled to [0, 1].
    """
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points.detach().cpu().numpy().astype(np.float64))

    if colors is not None:
        c = colors.detach().cpu().numpy()
        c = c.astype(np.float64) / 255.0 if c.dtype == np.uint8 else c.astype(np.float64)
        pcd.colors = o3d.utility.Vector3dVector(c[:, :3])

    if normals is not None:
        pcd.normals = o3d.utility.Vector3dVector(normals.detach().cpu().numpy().astype(np.float64))

    return pcd


def write_point_cloud(path: Union[str, Path], points: torch.Tensor,
                      colors: Optional[torch.Tensor] = None,
                      normals: Optional[torch.Tensor] = None) -> None:
    """Write a point cloud (PLY, PCD, XYZ...) via Open3D."""
    pcd = to_open3d_point_cloud(points, colors, normals)
    if not o3d.io.write_point_cloud(str(path), pcd):
        raise IOError(f"Failed to write point cloud to {path}")
    logger.info(f"Wrote {len(pcd.points)} points to {path}")


__all__ = [
    'read_depth_image',
    'read_color_image',
    'read_intrinsics',
    'to_open3d_point_cloud',
    'write_point_cloud'
]

# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

"""
Rigid transformation construction and validation.

Builds 4x4 homogeneous transformations from (rotation, translation) pairs
and from 6-vector poses ``[rx, ry, rz, tx, ty, tz]`` whose first three
entries are an axis-angle rotation vector, and guards kernels against
non-rigid matrices.
"""

import logging

import numpy as np
import torch
from scipy.spatial.transform import Rotation as R

from ..utils.error_handling import InvalidArgumentError, raise_logged
from ..utils.tensor_checks import (
    assert_dtype,
    assert_float_dtype,
    assert_same_device,
    assert_shape,
    stage_to_host,
)

logger = logging.getLogger(__name__)

# Below this rotation angle Rodrigues' formula is replaced by I + [w]x
SMALL_ANGLE = 1e-8

# Flat indices of a row-major 4x4 matrix
_ROTATION_INDICES = (0, 1, 2, 4, 5, 6, 8, 9, 10)
_BOTTOM_ROW_INDICES = (12, 13, 14)


def rt_to_transformation(rotation: torch.Tensor, translation: torch.Tensor) -> torch.Tensor:
    """Assemble a 4x4 transformation from a rotation and a translation.

    Args:
        rotation: (3, 3) rotation matrix
        translation: (3,) translation, same dtype and device as rotation

    Returns:
        (4, 4) transformation with the dtype and device of the inputs
    """
    op = "rt_to_transformation"
    assert_shape(rotation, (3, 3), "rotation", op)
    assert_shape(translation, (3,), "translation", op)
    assert_dtype(translation, rotation.dtype, "translation", op)
    assert_same_device(rotation, "rotation", translation, "translation", op)

    transformation = torch.eye(4, dtype=rotation.dtype, device=rotation.device)
    transformation[:3, :3] = rotation
    transformation[:3, 3] = translation
    return transformation


def skew(w: torch.Tensor) -> torch.Tensor:
    """Cross-product matrix [w]x of a 3-vector"""
    zero = torch.zeros((), dtype=w.dtype, device=w.device)
    wx, wy, wz = w.unbind()
    return torch.stack([
        torch.stack([zero, -wz, wy]),
        torch.stack([wz, zero, -wx]),
        torch.stack([-wy, wx, zero]),
    ])


def axis_angle_to_rotation(w: torch.Tensor) -> torch.Tensor:
    """Exponential map from an axis-angle vector to a 3x3 rotation (Rodrigues)."""
    K = skew(w)
    I = torch.eye(3, dtype=w.dtype, device=w.device)
    theta = torch.linalg.norm(w)
    if theta.item() < SMALL_ANGLE:
        return I + K
    return I + (torch.sin(theta) / theta) * K + ((1 - torch.cos(theta)) / theta ** 2) * (K @ K)


def pose_to_transformation(pose: torch.Tensor) -> torch.Tensor:
    """Convert a 6-vector pose to a 4x4 transformation.

    Args:
        pose: (6,) tensor, axis-angle rotation followed by translation

    Returns:
        (4, 4) transformation with the dtype and device of ``pose``. A zero
        pose gives the exact identity.
    """
    op = "pose_to_transformation"
    assert_shape(pose, (6,), "pose", op)
    assert_float_dtype(pose, "pose", op)

    rotation = axis_angle_to_rotation(pose[:3])
    return rt_to_transformation(rotation, pose[3:])


def is_valid_rigid_transformation(transformation: torch.Tensor) -> bool:
    """Cheap rigidity guard for a 4x4 transformation.

    Every rotation-block entry must be <= 1 and the first three entries of
    the bottom row must be exactly zero. This is a necessary condition for a
    rigid transformation, not a full SO(3) check: sheared matrices with all
    entries <= 1 pass.
    """
    assert_shape(transformation, (4, 4), "transformation", "is_valid_rigid_transformation")
    flat = stage_to_host(transformation).view(-1).tolist()

    if any(flat[i] > 1 for i in _ROTATION_INDICES):
        return False
    if any(flat[i] != 0 for i in _BOTTOM_ROW_INDICES):
        return False
    return True


def assert_rigid_transformation(transformation: torch.Tensor, op: str) -> None:
    """Raise InvalidArgumentError unless ``transformation`` passes the rigidity guard."""
    if not is_valid_rigid_transformation(transformation):
        raise_logged(
            InvalidArgumentError, op,
            "Invalid Transformation Matrix. Only Rigid Transformation is supported. "
            f"Got {stage_to_host(transformation).tolist()}.",
            logger,
        )


def transformation_to_pose(transformation: torch.Tensor) -> torch.Tensor:
    """Convert a rigid 4x4 transformation back to a 6-vector pose.

    Args:
        transformation: (4, 4) rigid transformation

    Returns:
        (6,) pose ``[rx, ry, rz, tx, ty, tz]`` with the dtype and device of
        the input; the rotation vector has angle in [0, pi]
    """
    op = "transformation_to_pose"
    assert_shape(transformation, (4, 4), "transformation", op)
    assert_float_dtype(transformation, "transformation", op)
    assert_rigid_transformation(transformation, op)

    T = stage_to_host(transformation).numpy()
    rotvec = R.from_matrix(T[:3, :3]).as_rotvec()
    pose = np.concatenate([rotvec, T[:3, 3]])
    return torch.as_tensor(pose, dtype=transformation.dtype, device=transformation.device)


__all__ = [
    'rt_to_transformation',
    'skew',
    'axis_angle_to_rotation',
    'pose_to_transformation',
    'is_valid_rigid_transformation',
    'assert_rigid_transformation',
    'transformation_to_pose'
]

"""
Geometry kernels for rgbdgeom.

Transformation construction and validation plus the point cloud
dispatchers (unproject, project, transform).
"""

from .transforms import (
    rt_to_transformation,
    pose_to_transformation,
    transformation_to_pose,
    axis_angle_to_rotation,
    is_valid_rigid_transformation,
    assert_rigid_transformation
)

from .pointcloud import (
    unproject,
    project,
    transform_points,
    transform_points_and_normals
)

__all__ = [
    # Transform functions
    'rt_to_transformation',
    'pose_to_transformation',
    'transformation_to_pose',
    'axis_angle_to_rotation',
    'is_valid_rigid_transformation',
    'assert_rigid_transformation',

    # Point cloud functions
    'unproject',
    'project',
    'transform_points',
    'transform_points_and_normals'
]

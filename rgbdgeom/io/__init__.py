"""
RGB-D file I/O for rgbdgeom.
"""

from .rgbd_io import (
    read_depth_image,
    read_color_image,
    read_intrinsics,
    to_open3d_point_cloud,
    write_point_cloud
)

__all__ = [
    'read_depth_image',
    'read_color_image',
    'read_intrinsics',
    'to_open3d_point_cloud',
    'write_point_cloud'
]

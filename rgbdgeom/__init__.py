"""
rgbdgeom: device-portable RGB-D geometry kernels

Depth unprojection, point cloud projection, rigid transformation of points
and normals, and vertex/normal map construction for RGB-D odometry, with
CPU and CUDA backends selected by tensor residency.
"""

__version__ = "0.1.0"

from .config import KernelConfig
from .geometry import (
    rt_to_transformation,
    pose_to_transformation,
    transformation_to_pose,
    is_valid_rigid_transformation,
    unproject,
    project,
    transform_points,
    transform_points_and_normals
)
from .odometry import (
    create_vertex_map,
    create_normal_map,
    create_vertex_and_normal_maps
)
from .kernels import Backend, resolve_backend
from .utils.error_handling import (
    RGBDGeomError,
    ShapeOrDtypeMismatchError,
    DeviceMismatchError,
    InvalidArgumentError,
    UnsupportedDeviceError,
    ConfigurationError
)

__all__ = [
    # Configuration
    'KernelConfig',
    # Transformations
    'rt_to_transformation', 'pose_to_transformation', 'transformation_to_pose',
    'is_valid_rigid_transformation',
    # Point clouds
    'unproject', 'project', 'transform_points', 'transform_points_and_normals',
    # Odometry maps
    'create_vertex_map', 'create_normal_map', 'create_vertex_and_normal_maps',
    # Dispatch
    'Backend', 'resolve_backend',
    # Errors
    'RGBDGeomError', 'ShapeOrDtypeMismatchError', 'DeviceMismatchError',
    'InvalidArgumentError', 'UnsupportedDeviceError', 'ConfigurationError',
    # Metadata
    '__version__'
]

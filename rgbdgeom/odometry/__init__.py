"""
Odometry map builders for rgbdgeom.
"""

from .maps import (
    create_vertex_map,
    create_normal_map,
    create_vertex_and_normal_maps
)

__all__ = [
    'create_vertex_map',
    'create_normal_map',
    'create_vertex_and_normal_maps'
]

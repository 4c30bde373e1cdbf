"""
Backend kernels for rgbdgeom.

``cpu`` holds the NumPy host kernels, ``cuda`` the torch device kernels and
``dispatch`` picks between them.
"""

from .dispatch import Backend, resolve_backend, synchronize

__all__ = ['Backend', 'resolve_backend', 'synchronize']

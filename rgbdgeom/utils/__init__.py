"""
Shared utility functions for rgbdgeom
"""

from .device_utils import cuda_compiled, get_device
from .error_handling import (
    RGBDGeomError,
    ShapeOrDtypeMismatchError,
    DeviceMismatchError,
    InvalidArgumentError,
    UnsupportedDeviceError,
    ConfigurationError,
    raise_logged,
    validate_and_raise
)
from .logging_config import setup_logging, get_logger

__all__ = [
    # Device utilities
    'cuda_compiled', 'get_device',
    # Error handling
    'RGBDGeomError', 'ShapeOrDtypeMismatchError', 'DeviceMismatchError',
    'InvalidArgumentError', 'UnsupportedDeviceError', 'ConfigurationError',
    'raise_logged', 'validate_and_raise',
    # Logging
    'setup_logging', 'get_logger'
]

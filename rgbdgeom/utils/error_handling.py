"""
Error handling utilities for rgbdgeom

Exception taxonomy shared by every kernel dispatcher. All of these are
programming-contract violations raised before any buffer is touched, so
callers should not retry with the same arguments.
"""

import logging
from typing import NoReturn, Type


class RGBDGeomError(Exception):
    """Base exception for rgbdgeom-specific errors"""
    pass


class ShapeOrDtypeMismatchError(RGBDGeomError, ValueError):
    """Tensor has the wrong rank, extent or element type"""
    pass


class DeviceMismatchError(RGBDGeomError, ValueError):
    """Tensors expected to live on the same device do not"""
    pass


class InvalidArgumentError(RGBDGeomError, ValueError):
    """Optional tensor pairing violated or non-rigid transformation supplied"""
    pass


class UnsupportedDeviceError(RGBDGeomError, RuntimeError):
    """Device type has no backend, or CUDA support is not compiled in"""
    pass


class ConfigurationError(RGBDGeomError):
    """Error in configuration or setup"""
    pass


def raise_logged(error_type: Type[Exception], op: str, message: str,
                 logger: logging.Logger = None) -> NoReturn:
    """
    Log an error for a named operation and raise it.

    Args:
        error_type: Exception class to raise
        op: Name of the operation that failed (e.g. "Unproject")
        message: Human readable description including offending values
        logger: Logger to emit on, defaults to this module's logger

    Raises:
        error_type: Always
    """
    full_message = f"[{op}] {message}"
    (logger or logging.getLogger(__name__)).error(full_message)
    raise error_type(full_message)


def validate_and_raise(condition: bool, error_message: str,
                      error_type: type = ValueError) -> None:
    """
    Validate condition and raise error with message if false.

    Args:
        condition: Condition to validate
        error_message: Error message if condition fails
        error_type: Type of error to raise

    Raises:
        error_type: If condition is False
    """
    if not condition:
        raise error_type(error_message)

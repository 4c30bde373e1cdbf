"""
Tensor assertion and staging helpers.

Thin layer over torch.Tensor giving the shape/dtype/device assertions the
kernel dispatchers need. Every helper logs and raises through
raise_logged so failures name the operation and the offending values.
"""

import logging
from typing import Optional, Sequence

import torch

from .error_handling import (
    DeviceMismatchError,
    ShapeOrDtypeMismatchError,
    raise_logged,
)

logger = logging.getLogger(__name__)

FLOAT_DTYPES = (torch.float32, torch.float64)

HOST = torch.device("cpu")


def assert_shape(tensor: torch.Tensor, shape: Sequence[Optional[int]],
                 name: str, op: str) -> None:
    """Assert tensor shape; None entries in ``shape`` match any extent."""
    expected = tuple(shape)
    actual = tuple(tensor.shape)
    if len(actual) != len(expected) or any(
        e is not None and e != a for e, a in zip(expected, actual)
    ):
        pretty = tuple("*" if e is None else e for e in expected)
        raise_logged(
            ShapeOrDtypeMismatchError, op,
            f"Tensor '{name}' has shape {actual}, expected {pretty}.",
            logger,
        )


def assert_dtype(tensor: torch.Tensor, dtype: torch.dtype, name: str, op: str) -> None:
    if tensor.dtype != dtype:
        raise_logged(
            ShapeOrDtypeMismatchError, op,
            f"Tensor '{name}' has dtype {tensor.dtype}, expected {dtype}.",
            logger,
        )


def assert_float_dtype(tensor: torch.Tensor, name: str, op: str) -> None:
    if tensor.dtype not in FLOAT_DTYPES:
        raise_logged(
            ShapeOrDtypeMismatchError, op,
            f"Tensor '{name}' has dtype {tensor.dtype}, expected one of "
            f"{[str(d) for d in FLOAT_DTYPES]}.",
            logger,
        )


def assert_device(tensor: torch.Tensor, device: torch.device, name: str, op: str) -> None:
    if tensor.device != device:
        raise_logged(
            DeviceMismatchError, op,
            f"Tensor '{name}' is on {tensor.device}, expected {device}.",
            logger,
        )


def assert_same_device(a: torch.Tensor, a_name: str,
                       b: torch.Tensor, b_name: str, op: str) -> None:
    if a.device != b.device:
        raise_logged(
            DeviceMismatchError, op,
            f"Inconsistent device between {a_name} ({a.device}) vs {b_name} ({b.device}).",
            logger,
        )


def stage_to_host(tensor: torch.Tensor) -> torch.Tensor:
    """Copy a small matrix to host memory as a contiguous float64 tensor."""
    return tensor.detach().to(HOST, torch.float64).contiguous()

"""
Backend selection for rgbdgeom kernels.

Exactly two backends exist: the NumPy CPU kernels and the torch CUDA
kernels. The backend is resolved once per call from the residency of the
primary tensor.
"""

import logging
from enum import Enum

import torch

from ..utils.device_utils import cuda_compiled
from ..utils.error_handling import UnsupportedDeviceError, raise_logged

logger = logging.getLogger(__name__)


class Backend(Enum):
    """Execution backends"""
    CPU = "cpu"
    CUDA = "cuda"


def resolve_backend(device: torch.device, op: str) -> Backend:
    """
    Map a tensor device to the backend that runs ``op``.

    Args:
        device: Device of the primary tensor
        op: Operation name used in log and error messages

    Returns:
        Backend: CPU or CUDA

    Raises:
        UnsupportedDeviceError: CUDA tensor without compiled CUDA support,
            or any other device type
    """
    if device.type == "cpu":
        backend = Backend.CPU
    elif device.type == "cuda":
        if not cuda_compiled():
            raise_logged(
                UnsupportedDeviceError, op,
                f"Not compiled with CUDA, but CUDA device is used ({device}).",
                logger,
            )
        backend = Backend.CUDA
    else:
        raise_logged(UnsupportedDeviceError, op,
                     f"Unimplemented device {device}.", logger)

    logger.debug(f"[{op}] dispatching to {backend.value} backend for {device}")
    return backend


def synchronize(device: torch.device) -> None:
    """Block until queued CUDA work on ``device`` has finished."""
    if device.type == "cuda":
        torch.cuda.synchronize(device)

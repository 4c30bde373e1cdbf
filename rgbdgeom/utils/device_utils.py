"""
Device management utilities for rgbdgeom

Resolves user facing device specifications. CPU is always available;
CUDA is only handed out when the torch build and the machine support it.
"""

import torch
from typing import Union, Optional
from .error_handling import UnsupportedDeviceError


def cuda_compiled() -> bool:
    """Whether this torch build was compiled with CUDA support."""
    return torch.backends.cuda.is_built()


def get_device(device_spec: Optional[Union[str, torch.device]] = None) -> torch.device:
    """
    Get a PyTorch device for rgbdgeom kernels.

    Args:
        device_spec: Device specification ('cpu', 'cuda', 'cuda:1', device object, or None)

    Returns:
        torch.device: Resolved device, CPU when device_spec is None

    Raises:
        UnsupportedDeviceError: If CUDA is requested but not available, or
            the device type has no backend
    """
    if device_spec is None:
        return torch.device('cpu')

    if isinstance(device_spec, str):
        device = torch.device(device_spec)
    elif isinstance(device_spec, torch.device):
        device = device_spec
    else:
        raise ValueError(f"Invalid device specification: {device_spec}")

    if device.type == 'cpu':
        return device

    if device.type == 'cuda':
        if not cuda_compiled() or not torch.cuda.is_available():
            raise UnsupportedDeviceError(
                f"CUDA device '{device}' requested but CUDA is not available. "
                "Use 'cpu' or install a CUDA-enabled PyTorch build."
            )
        return device

    raise UnsupportedDeviceError(f"Unimplemented device type: {device.type}")

"""
rgbdgeom Configuration

Depth conversion settings shared by the point cloud and odometry kernels,
loadable from YAML or JSON.
"""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union

import torch
import yaml

from .utils.device_utils import get_device
from .utils.error_handling import ConfigurationError, validate_and_raise

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class KernelConfig:
    """Depth and device settings for rgbdgeom kernels"""

    depth_scale: float = 1000.0  # raw depth units per metre (1000 for mm)
    depth_max: float = 3.0       # metres
    depth_diff: float = 0.07     # max neighbour depth jump for normals, metres
    stride: int = 1              # unprojection pixel stride

    device: str = "cpu"
    log_level: str = "INFO"

    def __post_init__(self):
        validate_and_raise(self.depth_scale > 0,
                           f"depth_scale must be positive, got {self.depth_scale}",
                           ConfigurationError)
        validate_and_raise(self.depth_max > 0,
                           f"depth_max must be positive, got {self.depth_max}",
                           ConfigurationError)
        validate_and_raise(self.depth_diff > 0,
                           f"depth_diff must be positive, got {self.depth_diff}",
                           ConfigurationError)
        validate_and_raise(isinstance(self.stride, int) and self.stride >= 1,
                           f"stride must be an integer >= 1, got {self.stride}",
                           ConfigurationError)
        self.log_level = str(self.log_level).upper()
        validate_and_raise(self.log_level in _LOG_LEVELS,
                           f"log_level must be one of {_LOG_LEVELS}, got {self.log_level}",
                           ConfigurationError)

    def torch_device(self) -> torch.device:
        """Resolve ``device`` to a torch.device"""
        return get_device(self.device)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KernelConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    def save(self, path: Union[str, Path]):
        """Save configuration to file"""
        path = Path(path)
        if path.suffix in (".yaml", ".yml"):
            with open(path, 'w') as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, indent=2)
        elif path.suffix == ".json":
            with open(path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
        else:
            raise ConfigurationError(f"Unsupported file format: {path.suffix}")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "KernelConfig":
        """Load configuration from file"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Required config file not found: {path}")

        with open(path, 'r') as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            elif path.suffix == ".json":
                data = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported file format: {path.suffix}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)

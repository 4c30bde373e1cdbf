"""
Command line entry point for rgbdgeom

    python -m rgbdgeom unproject --depth depth.png --intrinsics camera.json --output cloud.ply
    python -m rgbdgeom normals --depth depth.png --intrinsics camera.json --output normals.ply
"""

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import torch

from .config import KernelConfig
from .geometry import unproject
from .io import read_color_image, read_depth_image, read_intrinsics, write_point_cloud
from .odometry import create_vertex_and_normal_maps
from .utils.error_handling import RGBDGeomError
from .utils.logging_config import get_logger, setup_logging


def _load_extrinsics(path: Optional[str]) -> torch.Tensor:
    if path is None:
        return torch.eye(4, dtype=torch.float64)
    path = Path(path)
    T = np.load(path) if path.suffix == ".npy" else np.loadtxt(path)
    return torch.from_numpy(np.asarray(T, dtype=np.float64))


def build_config(args: argparse.Namespace) -> KernelConfig:
    """Config file values overridden by any explicit command line flags"""
    config = KernelConfig.load(args.config) if args.config else KernelConfig()
    overrides = {
        "depth_scale": args.depth_scale,
        "depth_max": args.depth_max,
        "stride": getattr(args, "stride", None),
        "depth_diff": getattr(args, "depth_diff", None),
        "device": args.device,
        "log_level": args.log_level,
    }
    return dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rgbdgeom",
                                     description="RGB-D geometry kernels")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--depth', required=True, help='Depth image (16-bit PNG or .npy)')
    common.add_argument('--intrinsics', required=True, help='Camera intrinsics JSON/YAML')
    common.add_argument('--output', required=True, help='Output point cloud path (e.g. .ply)')
    common.add_argument('--config', help='KernelConfig YAML/JSON file')
    common.add_argument('--depth-scale', type=float, help='Raw depth units per metre')
    common.add_argument('--depth-max', type=float, help='Maximum depth in metres')
    common.add_argument('--device', help='Device to use (cpu or cuda)')
    common.add_argument('--log-level', help='Logging level')

    p_unproject = subparsers.add_parser('unproject', parents=[common],
                                        help='Depth (+color) image to world point cloud')
    p_unproject.add_argument('--color', help='Optional color image aligned with depth')
    p_unproject.add_argument('--extrinsics', help='4x4 world-to-camera matrix (.npy or text)')
    p_unproject.add_argument('--stride', type=int, help='Pixel stride')

    p_normals = subparsers.add_parser('normals', parents=[common],
                                      help='Depth image to camera-frame points with normals')
    p_normals.add_argument('--depth-diff', type=float,
                           help='Maximum neighbour depth jump in metres')

    return parser


def run_unproject(args: argparse.Namespace, config: KernelConfig) -> int:
    device = config.torch_device()
    depth = read_depth_image(args.depth).to(device)
    intrinsics = read_intrinsics(args.intrinsics)
    extrinsics = _load_extrinsics(args.extrinsics)

    image_colors = colors = None
    if args.color:
        image_colors = read_color_image(args.color).to(device)
        colors = torch.empty((0, 3), dtype=torch.uint8, device=device)

    points, colors = unproject(
        depth, intrinsics, extrinsics, image_colors, colors=colors,
        depth_scale=config.depth_scale, depth_max=config.depth_max, stride=config.stride,
    )
    write_point_cloud(args.output, points, colors)
    return 0


def run_normals(args: argparse.Namespace, config: KernelConfig) -> int:
    device = config.torch_device()
    depth = read_depth_image(args.depth).to(device)
    intrinsics = read_intrinsics(args.intrinsics).to(device)

    vertex_map, normal_map = create_vertex_and_normal_maps(depth, intrinsics, config)
    valid = normal_map.norm(dim=-1) > 0
    write_point_cloud(args.output, vertex_map[valid], normals=normal_map[valid])
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except (RGBDGeomError, FileNotFoundError) as e:
        parser.error(str(e))

    setup_logging(config.log_level)
    logger = get_logger("cli")
    logger.info(f"Running '{args.command}' on {config.device}")

    try:
        if args.command == 'unproject':
            return run_unproject(args, config)
        return run_normals(args, config)
    except (RGBDGeomError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

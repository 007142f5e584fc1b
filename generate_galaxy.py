import argparse
import logging
import sys
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import open3d as o3d

from galaxy_parameters import (
    GalaxyParameters,
    ParameterError,
    field_names,
    load_parameters,
    parse_color,
    save_parameters,
    validate_parameters,
)
from logging_config import get_logger, setup_logging

logger = get_logger("generate")

SUN_SIZE = 0.08


@dataclass(frozen=True)
class Sun:
    """Galactic center marker. Its size does not follow the point size."""

    color: Tuple[float, float, float]
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    size: float = SUN_SIZE


@dataclass(frozen=True, eq=False)
class PointCloud:
    """
    Output of one generation call.

    positions / colors are flat float32 buffers of length 3*count;
    point i lives at offset 3*i. Both arrays are read-only.
    """

    positions: np.ndarray
    colors: np.ndarray
    sun: Sun

    @property
    def count(self) -> int:
        return len(self.positions) // 3

    def points(self) -> np.ndarray:
        return self.positions.reshape(-1, 3)

    def rgb(self) -> np.ndarray:
        return self.colors.reshape(-1, 3)


def _freeze(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


def generate_galaxy(params: GalaxyParameters,
                    rng: Optional[np.random.Generator] = None,
                    seed: Optional[int] = None) -> PointCloud:
    """
    Generates a spiral galaxy point cloud from ``params``.

    Every point consumes four uniform samples (u, v, s, w):
        u -> distance from center, biased by galaxy_concentration
        v -> jitter radius, biased by arm_concentration
        s -> jitter azimuth theta
        w -> jitter polar angle phi = acos(2w - 1)

    Arm membership is i % arms. The disk lies in the XZ plane.
    Colors are mixed on the parsed sRGB values as-is, with no linear
    conversion, so "#808080" stays 128/255 in the buffer.

    rng:  explicit generator, wins over seed
    seed: builds numpy.random.default_rng(seed); None means auto-seeded

    The input is not validated here; use validate_parameters first.
    """
    if rng is None:
        rng = np.random.default_rng(seed)

    count = int(params.count)
    logger.debug(
        "Generating galaxy: count=%d arms=%s radius=%s spin=%s randomness=%s",
        count, params.arms, params.radius, params.spin, params.randomness,
    )
    start = time.perf_counter()

    color_inside = np.asarray(parse_color(params.inside_color))
    color_outside = np.asarray(parse_color(params.outside_color))

    # One row of draws per point
    draws = rng.random((count, 4))
    u, v, s, w = draws[:, 0], draws[:, 1], draws[:, 2], draws[:, 3]

    # ============================================================
    # 1) Position along the arm
    # ============================================================
    radius_from_center = u ** params.galaxy_concentration * params.radius
    spin_angle = radius_from_center * params.spin
    arm_angle = (np.arange(count) % params.arms) / params.arms * 2 * np.pi
    total_angle = arm_angle + spin_angle

    # ============================================================
    # 2) Spherical jitter -> cartesian offsets
    # ============================================================
    random_radius = v ** params.arm_concentration * params.randomness
    random_theta = s * 2 * np.pi
    random_phi = np.arccos(2 * w - 1)

    sin_phi = np.sin(random_phi)
    random_x = random_radius * sin_phi * np.cos(random_theta)
    random_y = random_radius * sin_phi * np.sin(random_theta)
    random_z = random_radius * np.cos(random_phi)

    positions = np.empty((count, 3), dtype=np.float32)
    positions[:, 0] = np.cos(total_angle) * radius_from_center + random_x
    positions[:, 1] = random_y
    positions[:, 2] = np.sin(total_angle) * radius_from_center + random_z

    # ============================================================
    # 3) Color gradient inside -> outside
    # ============================================================
    # (1 - t) * a + t * b hits both endpoints exactly
    t = (radius_from_center / params.radius)[:, None]
    mixed = (1.0 - t) * color_inside + t * color_outside
    colors = np.clip(mixed, 0.0, 1.0).astype(np.float32)

    cloud = PointCloud(
        positions=_freeze(positions.reshape(-1)),
        colors=_freeze(colors.reshape(-1)),
        sun=Sun(color=tuple(float(c) for c in color_inside)),
    )

    logger.debug("Generated %d points in %.3fs", count, time.perf_counter() - start)
    return cloud


def to_open3d(cloud: PointCloud) -> o3d.geometry.PointCloud:
    """Convert to an Open3D point cloud (points + per-point colors)."""
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(cloud.points().astype(np.float64))
    pcd.colors = o3d.utility.Vector3dVector(cloud.rgb().astype(np.float64))
    return pcd


def make_sun_mesh(sun: Sun) -> o3d.geometry.TriangleMesh:
    mesh = o3d.geometry.TriangleMesh.create_sphere(radius=sun.size)
    mesh.compute_vertex_normals()
    mesh.paint_uniform_color(list(sun.color))
    mesh.translate(list(sun.position))
    return mesh


# -----------------------------
# COMMAND LINE
# -----------------------------
# parameter field -> argparse type
CLI_FIELDS = {
    "count": int,
    "size": float,
    "radius": float,
    "arms": int,
    "spin": float,
    "randomness": float,
    "arm_concentration": float,
    "galaxy_concentration": float,
    "inside_color": str,
    "outside_color": str,
    "rotation_speed": float,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Generate a procedural spiral galaxy point cloud.",
    )
    for name, kind in CLI_FIELDS.items():
        p.add_argument(
            "--" + name.replace("_", "-"),
            dest=name,
            type=kind,
            default=None,
            help=f"override {name} (default {getattr(GalaxyParameters, name)!r})",
        )
    p.add_argument("--params", help="JSON parameter file to start from")
    p.add_argument("--seed", type=int, default=None, help="seed for reproducible output")
    p.add_argument("--output", help="write the point cloud (.pcd, .ply, ...)")
    p.add_argument("--save-params", help="write the effective parameters as JSON")
    p.add_argument("--show", action="store_true", help="open an Open3D preview window")
    p.add_argument("--verbose", "-v", action="store_true")
    return p


def parameters_from_args(args: argparse.Namespace) -> GalaxyParameters:
    params = load_parameters(args.params) if args.params else GalaxyParameters()
    overrides = {
        name: getattr(args, name)
        for name in field_names()
        if getattr(args, name, None) is not None
    }
    for name, value in overrides.items():
        setattr(params, name, value)
    return validate_parameters(params)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        params = parameters_from_args(args)
    except (ParameterError, OSError) as exc:
        parser.error(str(exc))

    print(f"Generating Galaxy: count={params.count}, arms={params.arms}, radius={params.radius}")
    start = time.perf_counter()
    cloud = generate_galaxy(params, seed=args.seed)
    logger.info("Generated %d points in %.2fs", cloud.count, time.perf_counter() - start)

    if args.save_params:
        try:
            save_parameters(params, args.save_params)
        except OSError as exc:
            logger.error("Could not write %s: %s", args.save_params, exc)
            return 1

    pcd = to_open3d(cloud)
    if args.output:
        if not o3d.io.write_point_cloud(args.output, pcd):
            logger.error("Could not write %s", args.output)
            return 1
        print(f"Saved {args.output}")

    if args.show:
        o3d.visualization.draw_geometries(
            [pcd, make_sun_mesh(cloud.sun)],
            window_name="Galaxy",
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())

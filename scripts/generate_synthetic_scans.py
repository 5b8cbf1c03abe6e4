"""
Generate a synthetic scan sequence with odometry poses.

- Samples a smooth terrain surface with hills and low-amplitude noise.
- Moves a virtual sensor along a gentle curve; every stop sees the terrain
  within a fixed range, expressed in the sensor's local frame.
- Writes scanNNN.xyz (x y z per line) and scanNNN.pose
  ("x y 0 0 0 heading_deg") with slightly perturbed odometry.

Example:
    python scripts/generate_synthetic_scans.py --out data/synthetic_scans --count 5
    python scripts/run_registration.py data/synthetic_scans 0 4 --config config/default.yaml
"""

import argparse
from pathlib import Path

import numpy as np


def make_surface(extent: float = 40.0, spacing: float = 0.25, seed: int = 42) -> np.ndarray:
    rng = np.random.default_rng(seed)
    axis = np.arange(-extent / 2, extent / 2, spacing)
    X, Y = np.meshgrid(axis, axis)
    X = X + rng.uniform(-0.3, 0.3, X.shape) * spacing
    Y = Y + rng.uniform(-0.3, 0.3, Y.shape) * spacing
    # Gentle hills plus a few sharper bumps so curvature is informative
    Z = 1.2 * np.sin(0.15 * X) * np.cos(0.12 * Y) + 0.4 * np.sin(0.4 * X + 0.3)
    for cx, cy, r, h in [(-5.0, 3.0, 2.0, 1.5), (6.0, -4.0, 1.5, -1.0), (2.0, 8.0, 2.5, 2.0)]:
        Z += h * np.exp(-((X - cx) ** 2 + (Y - cy) ** 2) / (2 * r ** 2))
    Z += 0.01 * rng.standard_normal(Z.shape)
    return np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])


def sensor_poses(count: int, step: float = 1.0, turn_deg: float = 3.0):
    """Planar poses (x, y, heading_deg) along a slow left turn."""
    poses = []
    x, y, heading = -count * step / 2, 0.0, 0.0
    for _ in range(count):
        poses.append((x, y, heading))
        x += step * np.cos(np.deg2rad(heading))
        y += step * np.sin(np.deg2rad(heading))
        heading += turn_deg
    return poses


def to_local(world: np.ndarray, x: float, y: float, heading_deg: float) -> np.ndarray:
    th = np.deg2rad(heading_deg)
    basis = np.array([
        [np.cos(th), np.sin(th), 0.0],
        [-np.sin(th), np.cos(th), 0.0],
        [0.0, 0.0, 1.0],
    ])
    return (world - np.array([x, y, 0.0])) @ basis.T


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic scan sequence")
    parser.add_argument("--out", type=str, default="data/synthetic_scans", help="Output directory")
    parser.add_argument("--count", type=int, default=5, help="Number of scans")
    parser.add_argument("--range", dest="scan_range", type=float, default=10.0, help="Sensor range")
    parser.add_argument("--pose-noise", type=float, default=0.05, help="Odometry position noise (std)")
    parser.add_argument("--heading-noise-deg", type=float, default=0.5, help="Odometry heading noise (std)")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    rng = np.random.default_rng(args.seed)
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    world = make_surface(seed=args.seed)
    for i, (x, y, heading) in enumerate(sensor_poses(args.count)):
        visible = np.hypot(world[:, 0] - x, world[:, 1] - y) <= args.scan_range
        local = to_local(world[visible], x, y, heading)
        local += 0.005 * rng.standard_normal(local.shape)
        np.savetxt(out_dir / f"scan{i:03d}.xyz", local, fmt="%.6f")

        ox = x + args.pose_noise * rng.standard_normal()
        oy = y + args.pose_noise * rng.standard_normal()
        oh = heading + args.heading_noise_deg * rng.standard_normal()
        (out_dir / f"scan{i:03d}.pose").write_text(f"{ox:.6f} {oy:.6f} 0 0 0 {oh:.6f}\n", encoding="utf-8")
        print(f"scan{i:03d}: {len(local)} points, pose ({x:.2f}, {y:.2f}, {heading:.1f} deg)")

    print(f"Wrote {args.count} scans to {out_dir.resolve()}")
    print("Use paths.cloud_extension: .xyz in the config to register them.")


if __name__ == "__main__":
    main()

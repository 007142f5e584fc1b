"""
Owner of the galaxy currently on screen.

The generator hands back a fresh PointCloud on every call and keeps nothing.
This module is the other side of that boundary: it holds the displayed
cloud together with the Open3D geometry built from it, swaps them out on
regeneration, and tracks the whole-cloud rotation angle for the render loop.
"""
import threading
from dataclasses import dataclass, replace as dc_replace
from typing import Any, List, Optional

import numpy as np
import open3d as o3d

from galaxy_parameters import (
    DISPLAY_ONLY_FIELDS,
    GalaxyParameters,
    canonical_field,
    commit_parameter,
    validate_parameters,
)
from generate_galaxy import PointCloud, generate_galaxy, make_sun_mesh, to_open3d
from logging_config import get_logger

logger = get_logger("display")


@dataclass
class DisplayedGalaxy:
    """A generated cloud plus the renderer-side geometry built from it."""

    cloud: PointCloud
    geometry: o3d.geometry.PointCloud
    sun_mesh: o3d.geometry.TriangleMesh
    released: bool = False

    def release(self) -> None:
        if self.released:
            return
        self.geometry.clear()
        self.sun_mesh.clear()
        self.released = True


def replace(previous: Optional[DisplayedGalaxy], next_cloud: PointCloud) -> DisplayedGalaxy:
    """Install ``next_cloud`` and release ``previous`` (None on first call)."""
    installed = DisplayedGalaxy(
        cloud=next_cloud,
        geometry=to_open3d(next_cloud),
        sun_mesh=make_sun_mesh(next_cloud.sun),
    )
    if previous is not None:
        previous.release()
    return installed


def rotation_about_vertical(angle: float) -> np.ndarray:
    return o3d.geometry.get_rotation_matrix_from_xyz(np.array([0.0, angle, 0.0]))


class GalaxyDisplay:
    def __init__(self, params: Optional[GalaxyParameters] = None,
                 seed: Optional[int] = None):
        self.params = validate_parameters(params or GalaxyParameters())
        self.angle = 0.0
        self.current: Optional[DisplayedGalaxy] = None
        self._rng = np.random.default_rng(seed)
        self._lock = threading.RLock()

    @property
    def cloud(self) -> Optional[PointCloud]:
        return self.current.cloud if self.current is not None else None

    def regenerate(self) -> DisplayedGalaxy:
        """Rebuild every point from scratch and swap out the displayed one."""
        with self._lock:
            cloud = generate_galaxy(self.params, rng=self._rng)
            self.current = replace(self.current, cloud)
            installed = self.current
        logger.info("Regenerated galaxy with %d points", cloud.count)
        return installed

    def on_parameter_committed(self, name: str, value: Any) -> DisplayedGalaxy:
        """
        Callback for a committed edit (slider released, field confirmed...).

        Raises ParameterError and keeps the old parameters when the value is
        out of range. Edits to size or rotation_speed do not regenerate.
        """
        name = canonical_field(name)
        with self._lock:
            self.params = commit_parameter(self.params, name, value)

            if name in DISPLAY_ONLY_FIELDS and self.current is not None:
                return self.current
            return self.regenerate()

    def update_parameters(self, **changes: Any) -> DisplayedGalaxy:
        """Apply several edits at once with a single regeneration."""
        changes = {canonical_field(name): value for name, value in changes.items()}
        with self._lock:
            self.params = validate_parameters(dc_replace(self.params, **changes))
            return self.regenerate()

    def tick(self, delta_time: float) -> float:
        self.angle += self.params.rotation_speed * delta_time
        return self.angle

    def rotation_matrix(self) -> np.ndarray:
        return rotation_about_vertical(self.angle)

    def rotated_points(self) -> np.ndarray:
        if self.current is None:
            return np.empty((0, 3))
        return self.current.cloud.points() @ self.rotation_matrix().T

    def geometries(self) -> List[o3d.geometry.Geometry3D]:
        """Geometries for a renderer, rotated by the current angle."""
        if self.current is None:
            return []

        rotation = self.rotation_matrix()
        galaxy = o3d.geometry.PointCloud(self.current.geometry)
        galaxy.rotate(rotation, center=np.zeros(3))
        return [galaxy, self.current.sun_mesh]

    def close(self) -> None:
        with self._lock:
            if self.current is not None:
                self.current.release()
                self.current = None

"""Point correspondences between two frames and their alignment errors."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

PointPair = tuple[NDArray[np.float64], NDArray[np.float64]]


def transform_point(pose: ArrayLike, point: ArrayLike) -> NDArray[np.float64]:
    """Apply the rigid 4x4 transformation ``pose`` to a 3D point."""
    matrix = np.asarray(pose, dtype=np.float64)
    return matrix[:3, :3] @ np.asarray(point, dtype=np.float64) + matrix[:3, 3]


@dataclass
class Correspondence:
    """Matched 3D points between a source frame and a target frame."""

    source_id: int = -1
    target_id: int = -1
    correspondence_set: list[PointPair] = field(default_factory=list)
    average_disparity: float = 1e6

    def _arrays(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        source = np.array([p for p, _ in self.correspondence_set], dtype=np.float64).reshape(-1, 3)
        target = np.array([q for _, q in self.correspondence_set], dtype=np.float64).reshape(-1, 3)
        return source, target

    def calculate_average_disparity(self, camera_matrix: ArrayLike) -> float:
        """Set and return the mean 2D distance of the matched points' projections.

        Without any pairs nothing changes and the current value is returned.
        """
        if not self.correspondence_set:
            return self.average_disparity
        k = np.asarray(camera_matrix, dtype=np.float64)
        source, target = self._arrays()
        ref = source @ k.T
        new = target @ k.T
        ref_2d = ref[:, :2] / ref[:, 2:3]
        new_2d = new[:, :2] / new[:, 2:3]
        self.average_disparity = float(np.linalg.norm(ref_2d - new_2d, axis=1).mean())
        return self.average_disparity

    def reprojection_error_3d(self, camera_poses: Sequence[ArrayLike]) -> float:
        """Root mean squared distance of the pairs placed by their frames' poses.

        Returns NaN when there are no pairs.
        """
        if not self.correspondence_set:
            return math.nan
        source_pose = np.asarray(camera_poses[self.source_id], dtype=np.float64)
        target_pose = np.asarray(camera_poses[self.target_id], dtype=np.float64)
        source, target = self._arrays()
        placed_source = source @ source_pose[:3, :3].T + source_pose[:3, 3]
        placed_target = target @ target_pose[:3, :3].T + target_pose[:3, 3]
        return float(math.sqrt(((placed_source - placed_target) ** 2).sum(axis=1).mean()))

    def reprojection_error_for_pose(self, camera_pose: ArrayLike) -> float:
        """Root mean squared distance after moving source points by ``camera_pose``.

        ``camera_pose`` maps the source frame into the target frame.  Returns
        NaN when there are no pairs.
        """
        if not self.correspondence_set:
            return math.nan
        pose = np.asarray(camera_pose, dtype=np.float64)
        source, target = self._arrays()
        moved = source @ pose[:3, :3].T + pose[:3, 3]
        return float(math.sqrt(((moved - target) ** 2).sum(axis=1).mean()))


def mean_reprojection_error_3d(
    correspondences: Sequence[Correspondence], camera_poses: Sequence[ArrayLike]
) -> float:
    """Average of the per-correspondence 3D errors; NaN for no correspondences."""
    if not correspondences:
        return math.nan
    return sum(c.reprojection_error_3d(camera_poses) for c in correspondences) / len(correspondences)
"""Readers for RGB-D image sequences stored in TUM and ScanNet layouts."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from .strings import rsplit, split

logger = logging.getLogger(__name__)

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_SKIPPED_INFO_KEYS = frozenset(
    {
        "m_versionNumber",
        "m_sensorName",
        "m_calibrationColorExtrinsic",
        "m_calibrationDepthExtrinsic",
    }
)


class DatasetError(Exception):
    """Raised when a dataset directory cannot be read."""


@dataclass
class CameraIntrinsics:
    """Pinhole intrinsics of one camera; ``depth_scale`` is ``None`` if not given."""

    fx: float = 0.0
    fy: float = 0.0
    cx: float = 0.0
    cy: float = 0.0
    width: int = -1
    height: int = -1
    depth_scale: float | None = None

    @property
    def camera_matrix(self) -> NDArray[np.float64]:
        """The 3x3 camera matrix K."""
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass
class ImageSequence:
    """Paired colour and depth image paths, with optional poses and cameras."""

    rgb_files: list[str] = field(default_factory=list)
    depth_files: list[str] = field(default_factory=list)
    poses: list[NDArray[np.float64]] = field(default_factory=list)
    rgb_camera: CameraIntrinsics | None = None
    depth_camera: CameraIntrinsics | None = None

    def __len__(self) -> int:
        return len(self.rgb_files)


def _read_text(filename: str, what: str) -> str:
    try:
        with open(filename, encoding="utf-8") as handle:
            return handle.read()
    except OSError as exc:
        raise DatasetError(f"cannot open {what} {filename}: {exc}") from exc


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group()) if match else 0


def _atof(text: str) -> float:
    match = _FLOAT_PREFIX.match(text)
    return float(match.group()) if match else 0.0


def _parse_pose(tokens: list[str], where: str) -> NDArray[np.float64]:
    if len(tokens) < 16:
        raise DatasetError(f"{where}: a pose needs 16 values, got {len(tokens)}")
    try:
        values = [float(t) for t in tokens[:16]]
    except ValueError as exc:
        raise DatasetError(f"{where}: invalid pose value") from exc
    return np.array(values, dtype=np.float64).reshape(4, 4)


def read_image_sequence(path: str | os.PathLike[str]) -> ImageSequence:
    """Read the image pairs listed in ``associate.txt`` of a TUM-style directory.

    Each non-blank line holds ``t_rgb rgb t_depth depth``; file names are
    returned prefixed with ``path``.
    """
    root = os.fspath(path)
    text = _read_text(f"{root}/associate.txt", "association file")
    sequence = ImageSequence()
    for lineno, line in enumerate(text.splitlines(), start=1):
        tokens = line.split()
        if not tokens:
            continue
        if len(tokens) < 4:
            raise DatasetError(f"associate.txt line {lineno}: expected four fields")
        _, rgb, _, depth = tokens[:4]
        sequence.rgb_files.append(f"{root}/{rgb}")
        sequence.depth_files.append(f"{root}/{depth}")
    logger.info("Read %d images successfully.", len(sequence.rgb_files))
    return sequence


def read_image_sequence_with_pose(path: str | os.PathLike[str]) -> ImageSequence:
    """Read a TUM-style sequence and the row-major 4x4 poses in ``trajectory.txt``.

    A warning is logged when the number of poses differs from the number of
    images.
    """
    root = os.fspath(path)
    trajectory = _read_text(f"{root}/trajectory.txt", "trajectory file")
    sequence = read_image_sequence(root)
    for lineno, line in enumerate(trajectory.splitlines(), start=1):
        tokens = line.split()
        if not tokens:
            continue
        sequence.poses.append(_parse_pose(tokens, f"trajectory.txt line {lineno}"))
    if len(sequence.poses) != len(sequence.rgb_files):
        logger.warning("The number of images and poses do not match.")
    return sequence


def _parse_intrinsic(value: str, key: str) -> tuple[float, float, float, float]:
    entries = split(value, " ")
    if len(entries) < 7:
        raise DatasetError(f"_info.txt: {key} needs at least 7 values")
    return _atof(entries[0]), _atof(entries[5]), _atof(entries[2]), _atof(entries[6])


def read_scannet_sequence(path: str | os.PathLike[str]) -> ImageSequence:
    """Read the cameras and frame names of an extracted ScanNet scene.

    ``_info.txt`` is parsed until its first malformed or unknown line, which
    logs a warning and ends parsing.
    """
    root = os.fspath(path)
    text = _read_text(f"{root}/_info.txt", "info file")
    rgb_camera = CameraIntrinsics()
    depth_camera = CameraIntrinsics(depth_scale=-1)
    frames = 0
    for line in text.splitlines():
        parts = split(line, " = ")
        if len(parts) != 2:
            logger.warning("Wrong format of _info.txt")
            break
        key, value = parts
        if key in _SKIPPED_INFO_KEYS:
            continue
        if key == "m_colorWidth":
            rgb_camera.width = _atoi(value)
        elif key == "m_colorHeight":
            rgb_camera.height = _atoi(value)
        elif key == "m_depthWidth":
            depth_camera.width = _atoi(value)
        elif key == "m_depthHeight":
            depth_camera.height = _atoi(value)
        elif key == "m_depthShift":
            depth_camera.depth_scale = _atoi(value)
        elif key == "m_calibrationColorIntrinsic":
            rgb_camera.fx, rgb_camera.fy, rgb_camera.cx, rgb_camera.cy = _parse_intrinsic(value, key)
        elif key == "m_calibrationDepthIntrinsic":
            depth_camera.fx, depth_camera.fy, depth_camera.cx, depth_camera.cy = _parse_intrinsic(
                value, key
            )
        elif key == "m_frames.size":
            frames = max(_atoi(value), 0)
        else:
            logger.warning("Wrong format of _info.txt")
            break

    sequence = ImageSequence(rgb_camera=rgb_camera, depth_camera=depth_camera)
    for index in range(frames):
        sequence.rgb_files.append(f"{root}/frame-{index:06d}.color.jpg")
        sequence.depth_files.append(f"{root}/frame-{index:06d}.depth.png")
    return sequence


def read_scannet_sequence_with_pose(path: str | os.PathLike[str]) -> ImageSequence:
    """Read a ScanNet scene together with each frame's ``.pose.txt`` matrix."""
    root = os.fspath(path)
    sequence = read_scannet_sequence(root)
    for index in range(len(sequence.rgb_files)):
        pose_file = f"{root}/frame-{index:06d}.pose.txt"
        tokens = _read_text(pose_file, "pose file").split()
        sequence.poses.append(_parse_pose(tokens, pose_file))
    return sequence


def _load_json(filename: str, what: str) -> dict:
    text = _read_text(filename, what)
    try:
        root = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DatasetError(f"error in parsing json {filename}: {exc}") from exc
    if not isinstance(root, dict):
        raise DatasetError(f"{filename}: top level is not an object")
    return root


def read_scannet_instances(path: str | os.PathLike[str]) -> list[int]:
    """Return the object index of every mesh vertex of a ScanNet scene.

    The scene name is the last component of ``path``, which must contain a
    ``/`` and not end in one.  Vertices whose segment belongs to no object get
    ``-1``; a segment listed by several objects belongs to the last of them.
    """
    root = os.fspath(path)
    parts = rsplit(root, "/", 1)
    if len(parts) < 2:
        raise DatasetError(
            "Something wrong when parsing the path. If scene dir is in current dir, "
            'use "./sceneXXXX_XX". Do not add \'/\' in the end.'
        )
    scene = parts[1]
    segs = _load_json(f"{root}/{scene}_vh_clean.segs.json", "seg json file")
    groups = _load_json(f"{root}/{scene}_vh_clean.aggregation.json", "aggregation json file")

    try:
        point_segments = [int(s) for s in segs.get("segIndices", [])]
        segment_to_object: dict[int, int] = {}
        for object_index, group in enumerate(groups.get("segGroups", [])):
            for segment in group.get("segments", []):
                segment_to_object[int(segment)] = object_index
    except (TypeError, ValueError, AttributeError) as exc:
        raise DatasetError(f"unexpected content in instance files: {exc}") from exc

    return [segment_to_object.get(segment, -1) for segment in point_segments]
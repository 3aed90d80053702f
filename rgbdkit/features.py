"""Fast point feature histograms (FPFH) for oriented point clouds."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial import cKDTree

BINS_PER_ANGLE = 11
FEATURE_SIZE = 3 * BINS_PER_ANGLE


def compute_pair_descriptor(
    ps: ArrayLike, ns: ArrayLike, pt: ArrayLike, nt: ArrayLike
) -> NDArray[np.float64]:
    """Return the Darboux-frame descriptor ``(alpha, phi, theta, distance)``.

    ``alpha`` is the angle of the target normal in the source frame, ``phi``
    its projection on the frame's second axis and ``theta`` the cosine between
    the source normal and the connecting line.  A degenerate pair (coincident
    points, or a normal parallel to the connecting line) gives all zeros.
    """
    ps = np.asarray(ps, dtype=np.float64)
    ns = np.asarray(ns, dtype=np.float64)
    pt = np.asarray(pt, dtype=np.float64)
    nt = np.asarray(nt, dtype=np.float64)
    offset = pt - ps
    distance = float(np.linalg.norm(offset))
    if distance == 0.0:
        return np.zeros(4)
    direction = offset / distance
    u = ns
    v = np.cross(u, direction)
    if np.linalg.norm(v) == 0.0:
        return np.zeros(4)
    w = np.cross(u, v)
    return np.array(
        [
            math.atan2(float(w @ nt), float(u @ nt)),
            float(v @ nt),
            float(u @ direction),
            distance,
        ]
    )


def _check_cloud(points: ArrayLike, normals: ArrayLike) -> tuple[NDArray, NDArray]:
    pts = np.asarray(points, dtype=np.float64)
    nrm = np.asarray(normals, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError("points must have shape (N, 3)")
    if nrm.shape != pts.shape:
        raise ValueError("normals must have the same shape as points")
    return pts, nrm


def _bin(value: float) -> int:
    return min(max(math.floor(value), 0), BINS_PER_ANGLE - 1)


def _neighbours(tree: cKDTree, points: NDArray, index: int, knn: int, radius: float) -> list[int]:
    """Indices within ``radius`` of point ``index``, nearest first, the point itself first."""
    found = tree.query_ball_point(points[index], radius)
    dists = np.linalg.norm(points[found] - points[index], axis=1) if found else []
    ordered = sorted(zip(dists, found), key=lambda item: (item[0], item[1] != index, item[1]))
    return [idx for _, idx in ordered[:knn]]


def _spfh(
    points: NDArray, normals: NDArray, knn: int, radius: float
) -> tuple[NDArray[np.float64], list[list[int]]]:
    features = np.zeros((len(points), FEATURE_SIZE))
    neighbours: list[list[int]] = []
    if len(points) == 0:
        return features, neighbours
    tree = cKDTree(points)
    for i, (point, normal) in enumerate(zip(points, normals)):
        found = _neighbours(tree, points, i, knn, radius)
        others = found[1:]
        neighbours.append(others)
        if not others:
            continue
        # Each neighbour adds the integer share of 100.
        addition = 100 // len(others)
        for j in others:
            alpha, phi, theta, _ = compute_pair_descriptor(point, normal, points[j], normals[j])
            features[i, _bin(BINS_PER_ANGLE * (alpha + math.pi) / (2.0 * math.pi))] += addition
            features[i, BINS_PER_ANGLE + _bin(BINS_PER_ANGLE * (phi + 1) / 2.0)] += addition
            features[i, 2 * BINS_PER_ANGLE + _bin(BINS_PER_ANGLE * (theta + 1) / 2.0)] += addition
    return features, neighbours


def compute_spfh(
    points: ArrayLike, normals: ArrayLike, knn: int = 100, radius: float = 0.1
) -> tuple[NDArray[np.float64], list[list[int]]]:
    """Compute simplified point feature histograms.

    Returns an ``(N, 33)`` array of histograms and, for every point, the
    indices of the neighbours (at most ``knn - 1``, nearest first, itself
    excluded) found within ``radius``.
    """
    pts, nrm = _check_cloud(points, normals)
    return _spfh(pts, nrm, knn, radius)


def compute_fpfh(
    points: ArrayLike, normals: ArrayLike, knn: int = 100, radius: float = 0.1
) -> NDArray[np.float64]:
    """Compute the 33-bin FPFH feature of every point as an ``(N, 33)`` array.

    A block whose neighbours contribute nothing is left unscaled.
    """
    pts, nrm = _check_cloud(points, normals)
    spfh, neighbours = _spfh(pts, nrm, knn, radius)
    fpfh = np.zeros_like(spfh)
    for i, others in enumerate(neighbours):
        block_sums = np.zeros(3)
        for j in others:
            dist = float(np.linalg.norm(pts[i] - pts[j]))
            if dist != 0.0:
                fpfh[i] += spfh[j] / dist
                block_sums += spfh[j].reshape(3, BINS_PER_ANGLE).sum(axis=1)
        blocks = fpfh[i].reshape(3, BINS_PER_ANGLE)
        for b, total in enumerate(block_sums):
            if total != 0.0:
                blocks[b] *= 100.0 / total
        fpfh[i] += spfh[i]
    return fpfh
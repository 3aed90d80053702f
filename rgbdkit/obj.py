"""Reading and writing Wavefront OBJ meshes (vertices, colours, normals, triangles)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, Iterator

import numpy as np
from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

_DEFAULT_COLOR = (1.0, 1.0, 1.0)


class ObjError(Exception):
    """Raised when an OBJ file cannot be read or written."""


def _empty_points() -> NDArray[np.float64]:
    return np.empty((0, 3), dtype=np.float64)


def _empty_triangles() -> NDArray[np.int64]:
    return np.empty((0, 3), dtype=np.int64)


@dataclass
class ObjMesh:
    """A mesh read from an OBJ file.

    ``normals`` holds one normal per vertex, or is empty when not every vertex
    received one.  ``colors`` is empty when the file has no vertex colours.
    """

    points: NDArray[np.float64] = field(default_factory=_empty_points)
    normals: NDArray[np.float64] = field(default_factory=_empty_points)
    colors: NDArray[np.float64] = field(default_factory=_empty_points)
    triangles: NDArray[np.int64] = field(default_factory=_empty_triangles)


@dataclass
class _Corner:
    vertex: int
    normal: int | None


def _parse_floats(tokens: list[str], count: int, lineno: int) -> list[float]:
    try:
        return [float(t) for t in tokens[:count]]
    except ValueError as exc:
        raise ObjError(f"line {lineno}: invalid number") from exc


def _resolve_index(token: str, total: int, kind: str, lineno: int) -> int:
    try:
        index = int(token)
    except ValueError as exc:
        raise ObjError(f"line {lineno}: invalid {kind} index {token!r}") from exc
    if index > 0:
        resolved = index - 1
    elif index < 0:
        resolved = total + index
    else:
        raise ObjError(f"line {lineno}: {kind} index must not be zero")
    if not 0 <= resolved < total:
        raise ObjError(f"line {lineno}: {kind} index {index} out of range")
    return resolved


def _parse_corner(token: str, n_vertices: int, n_normals: int, lineno: int) -> _Corner:
    parts = token.split("/")
    vertex = _resolve_index(parts[0], n_vertices, "vertex", lineno)
    normal = None
    if len(parts) >= 3 and parts[2]:
        normal = _resolve_index(parts[2], n_normals, "normal", lineno)
    return _Corner(vertex, normal)


def _logical_lines(lines: Iterable[str]) -> Iterator[tuple[int, list[str]]]:
    for lineno, raw in enumerate(lines, start=1):
        line = raw.split("#", 1)[0].strip()
        if line:
            yield lineno, line.split()


def read_obj(filename: str | os.PathLike[str]) -> ObjMesh:
    """Read an OBJ file into an :class:`ObjMesh`.

    Polygons are split into triangle fans.  A vertex takes the first normal a
    face assigns to it; if any vertex is left without one, no normals are
    returned.  Raises :class:`ObjError` on any failure.
    """
    try:
        with open(filename, encoding="utf-8") as handle:
            lines = handle.readlines()
    except OSError as exc:
        raise ObjError(f"cannot open {os.fspath(filename)}: {exc}") from exc

    points: list[list[float]] = []
    colors: list[tuple[float, ...] | None] = []
    file_normals: list[list[float]] = []
    faces: list[tuple[int, list[_Corner]]] = []
    ignored: set[str] = set()

    for lineno, tokens in _logical_lines(lines):
        keyword, args = tokens[0], tokens[1:]
        if keyword == "v":
            if len(args) < 3:
                raise ObjError(f"line {lineno}: vertex needs three coordinates")
            points.append(_parse_floats(args, 3, lineno))
            colors.append(tuple(_parse_floats(args[3:], 3, lineno)) if len(args) >= 6 else None)
        elif keyword == "vn":
            if len(args) < 3:
                raise ObjError(f"line {lineno}: normal needs three components")
            file_normals.append(_parse_floats(args, 3, lineno))
        elif keyword == "f":
            corners = [
                _parse_corner(tok, len(points), len(file_normals), lineno) for tok in args
            ]
            if len(corners) < 3:
                raise ObjError(f"line {lineno}: facet with fewer than 3 vertices")
            faces.append((lineno, corners))
        else:
            ignored.add(keyword)

    if ignored - {"o", "g", "s"}:
        logger.warning(
            "Ignored OBJ statements %s (texture and material data are not supported)",
            ", ".join(sorted(ignored)),
        )

    normals = np.zeros((len(points), 3), dtype=np.float64)
    normal_set = np.zeros(len(points), dtype=bool)
    triangles: list[tuple[int, int, int]] = []
    for _, corners in faces:
        for corner in corners:
            if corner.normal is not None and not normal_set[corner.vertex]:
                normals[corner.vertex] = file_normals[corner.normal]
                normal_set[corner.vertex] = True
        first = corners[0].vertex
        for second, third in zip(corners[1:], corners[2:]):
            triangles.append((first, second.vertex, third.vertex))

    if not file_normals or not normal_set.all() or len(points) == 0:
        normals = _empty_points()

    if any(c is not None for c in colors):
        color_array = np.array(
            [c if c is not None else _DEFAULT_COLOR for c in colors], dtype=np.float64
        )
    else:
        color_array = _empty_points()

    mesh = ObjMesh(
        points=np.array(points, dtype=np.float64).reshape(-1, 3),
        normals=normals,
        colors=color_array,
        triangles=np.array(triangles, dtype=np.int64).reshape(-1, 3),
    )
    logger.info("OBJ face: %d vertex: %d", len(mesh.triangles), len(mesh.points))
    return mesh


def _as_rows(values: ArrayLike | None, dtype: type) -> NDArray:
    if values is None:
        return np.empty((0, 3), dtype=dtype)
    return np.asarray(values, dtype=dtype).reshape(-1, 3)


def _fmt(value: float) -> str:
    return f"{value:g}"


def write_obj(
    filename: str | os.PathLike[str],
    points: ArrayLike,
    normals: ArrayLike | None = None,
    colors: ArrayLike | None = None,
    triangles: ArrayLike | None = None,
) -> None:
    """Write points, optional per-vertex normals and colours, and triangles.

    Normals and colours are written only when there is one per point.  The
    triangle count line and face lines appear only when ``triangles`` is given.
    Raises :class:`ObjError` if the file cannot be written.
    """
    pts = _as_rows(points, np.float64)
    nrm = _as_rows(normals, np.float64)
    col = _as_rows(colors, np.float64)
    tri = _as_rows(triangles, np.int64)

    write_normals = len(nrm) != 0 and len(nrm) == len(pts)
    write_colors = len(col) != 0 and len(col) == len(pts)

    out = ["# Created by rgbdkit ", f"# number of vertices: {len(pts)}"]
    if triangles is not None:
        out.append(f"# number of triangles: {len(tri)}")
    for index, vertex in enumerate(pts):
        line = "v " + " ".join(_fmt(x) for x in vertex)
        if write_colors:
            line += " " + " ".join(_fmt(x) for x in col[index])
        out.append(line)
        if write_normals:
            out.append("vn " + " ".join(_fmt(x) for x in nrm[index]))
    for a, b, c in tri + 1:
        if write_normals:
            out.append(f"f {a}//{a} {b}//{b} {c}//{c}")
        else:
            out.append(f"f {a} {b} {c}")

    try:
        with open(filename, "w", encoding="utf-8", newline="\n") as handle:
            handle.write("\n".join(out) + "\n")
    except OSError as exc:
        raise ObjError(f"unable to open {os.fspath(filename)}: {exc}") from exc
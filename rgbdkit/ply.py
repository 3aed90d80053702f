"""Reading and writing PLY meshes in ASCII and binary encodings."""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

_GENERATED_COMMENT = "generated by rgbdkit"
_FORMATS = {
    "ascii": None,
    "binary_little_endian": "<",
    "binary_big_endian": ">",
}


class PlyError(Exception):
    """Raised when a PLY file cannot be read or written."""


class _MissingProperty(PlyError):
    """A requested element or property is absent or has mixed types."""


class PlyType(Enum):
    """Scalar types of PLY properties, valued by their header names."""

    INVALID = "invalid"
    INT8 = "char"
    UINT8 = "uchar"
    INT16 = "short"
    UINT16 = "ushort"
    INT32 = "int"
    UINT32 = "uint"
    FLOAT32 = "float"
    FLOAT64 = "double"

    @property
    def dtype(self) -> np.dtype:
        """The native numpy dtype holding values of this type."""
        if self is PlyType.INVALID:
            raise PlyError("the invalid type has no dtype")
        return np.dtype(_DTYPE_CODES[self])

    @property
    def is_integer(self) -> bool:
        """Whether values of this type are integers."""
        return self not in (PlyType.FLOAT32, PlyType.FLOAT64, PlyType.INVALID)

    @classmethod
    def from_name(cls, name: str) -> PlyType:
        """Look up a type by a header name such as ``uchar`` or ``float32``."""
        try:
            return _NAME_ALIASES[name]
        except KeyError:
            raise PlyError(f"unknown PLY type {name!r}") from None


_DTYPE_CODES = {
    PlyType.INT8: "i1",
    PlyType.UINT8: "u1",
    PlyType.INT16: "i2",
    PlyType.UINT16: "u2",
    PlyType.INT32: "i4",
    PlyType.UINT32: "u4",
    PlyType.FLOAT32: "f4",
    PlyType.FLOAT64: "f8",
}

_NAME_ALIASES = {
    **{t.value: t for t in PlyType if t is not PlyType.INVALID},
    "int8": PlyType.INT8,
    "uint8": PlyType.UINT8,
    "int16": PlyType.INT16,
    "uint16": PlyType.UINT16,
    "int32": PlyType.INT32,
    "uint32": PlyType.UINT32,
    "float32": PlyType.FLOAT32,
    "float64": PlyType.FLOAT64,
}


@dataclass
class AdditionalElement:
    """Extra properties of an element to read or write alongside the mesh.

    For reading, only ``element_key`` and ``element_property`` need to be set.
    ``data`` has one row per element entry and one column per property, or
    ``list_count`` columns for a single list property.
    """

    element_key: str
    element_property: list[str]
    type: PlyType = PlyType.INVALID
    list_type: PlyType = PlyType.INVALID
    list_count: int = 0
    data: NDArray | None = None

    @property
    def count(self) -> int:
        """Number of element entries held in ``data``."""
        return 0 if self.data is None else len(self.data)

    @property
    def byte_size(self) -> int:
        """Size of ``data`` in bytes."""
        return 0 if self.data is None else int(self.data.nbytes)


def _empty_points() -> NDArray[np.float64]:
    return np.empty((0, 3), dtype=np.float64)


def _empty_triangles() -> NDArray[np.int64]:
    return np.empty((0, 3), dtype=np.int64)


@dataclass
class PlyMesh:
    """A mesh read from a PLY file; absent parts are empty ``(0, 3)`` arrays."""

    points: NDArray[np.float64] = field(default_factory=_empty_points)
    normals: NDArray[np.float64] = field(default_factory=_empty_points)
    colors: NDArray[np.float64] = field(default_factory=_empty_points)
    triangles: NDArray[np.int64] = field(default_factory=_empty_triangles)
    comments: list[str] = field(default_factory=list)
    additional: list[AdditionalElement] = field(default_factory=list)


@dataclass
class _Property:
    name: str
    type: PlyType
    list_type: PlyType | None = None

    @property
    def is_list(self) -> bool:
        return self.list_type is not None


@dataclass
class _Element:
    name: str
    count: int
    properties: list[_Property] = field(default_factory=list)

    def find(self, name: str) -> _Property | None:
        return next((p for p in self.properties if p.name == name), None)


@dataclass
class _Header:
    format: str
    comments: list[str]
    info: list[str]
    elements: list[_Element]


@dataclass
class _Block:
    type: PlyType
    list_type: PlyType | None
    values: NDArray


_Columns = dict[str, dict[str, "NDArray | list[NDArray]"]]


def _parse_header(stream: io.BytesIO) -> _Header:
    if stream.readline().strip() != b"ply":
        raise PlyError("not a PLY file")
    fmt: str | None = None
    comments: list[str] = []
    info: list[str] = []
    elements: list[_Element] = []
    while True:
        raw = stream.readline()
        if not raw:
            raise PlyError("unexpected end of header")
        line = raw.decode("latin-1").strip()
        if not line:
            continue
        keyword, *remainder = line.split(None, 1)
        rest = remainder[0] if remainder else ""
        parts = rest.split()
        if keyword == "end_header":
            break
        if keyword == "format":
            if not parts or parts[0] not in _FORMATS:
                raise PlyError(f"unsupported format {rest!r}")
            fmt = parts[0]
        elif keyword == "comment":
            comments.append(rest)
        elif keyword == "obj_info":
            info.append(rest)
        elif keyword == "element":
            if len(parts) != 2:
                raise PlyError(f"malformed element line {line!r}")
            try:
                count = int(parts[1])
            except ValueError:
                raise PlyError(f"malformed element count in {line!r}") from None
            if count < 0:
                raise PlyError(f"negative element count in {line!r}")
            elements.append(_Element(parts[0], count))
        elif keyword == "property":
            if not elements:
                raise PlyError("property declared before any element")
            if parts and parts[0] == "list":
                if len(parts) != 4:
                    raise PlyError(f"malformed list property {line!r}")
                prop = _Property(parts[3], PlyType.from_name(parts[2]), PlyType.from_name(parts[1]))
                if not prop.list_type.is_integer:
                    raise PlyError(f"list count type must be an integer in {line!r}")
            else:
                if len(parts) != 2:
                    raise PlyError(f"malformed property {line!r}")
                prop = _Property(parts[1], PlyType.from_name(parts[0]))
            elements[-1].properties.append(prop)
        else:
            raise PlyError(f"unknown header keyword {keyword!r}")
    if fmt is None:
        raise PlyError("header has no format line")
    return _Header(fmt, comments, info, elements)


def _unpack(body: bytes, offset: int, ptype: PlyType, order: str, count: int) -> tuple[NDArray, int]:
    dtype = ptype.dtype.newbyteorder(order)
    end = offset + dtype.itemsize * count
    if end > len(body):
        raise PlyError("unexpected end of binary data")
    values = np.frombuffer(body, dtype=dtype, count=count, offset=offset).astype(ptype.dtype)
    return values, end


def _read_binary(body: bytes, elements: list[_Element], order: str) -> _Columns:
    data: _Columns = {}
    offset = 0
    for element in elements:
        props = element.properties
        if not any(p.is_list for p in props):
            dtype = np.dtype(
                [(f"p{i}", p.type.dtype.newbyteorder(order)) for i, p in enumerate(props)]
            )
            size = dtype.itemsize * element.count
            if offset + size > len(body):
                raise PlyError(f"unexpected end of binary data in element {element.name!r}")
            rows = np.frombuffer(body, dtype=dtype, count=element.count, offset=offset) if props else None
            offset += size
            data[element.name] = {
                p.name: rows[f"p{i}"].astype(p.type.dtype) for i, p in enumerate(props)
            }
            continue
        columns: dict[str, list] = {p.name: [] for p in props}
        for _ in range(element.count):
            for prop in props:
                if prop.is_list:
                    size, offset = _unpack(body, offset, prop.list_type, order, 1)
                    if size[0] < 0:
                        raise PlyError("negative list length")
                    values, offset = _unpack(body, offset, prop.type, order, int(size[0]))
                    columns[prop.name].append(values)
                else:
                    value, offset = _unpack(body, offset, prop.type, order, 1)
                    columns[prop.name].append(value[0])
        data[element.name] = {
            p.name: columns[p.name] if p.is_list else np.array(columns[p.name], dtype=p.type.dtype)
            for p in props
        }
    return data


def _read_ascii(body: bytes, elements: list[_Element]) -> _Columns:
    tokens = body.decode("latin-1").split()
    pos = 0

    def take(n: int) -> list[str]:
        nonlocal pos
        if pos + n > len(tokens):
            raise PlyError("unexpected end of ASCII data")
        chunk = tokens[pos:pos + n]
        pos += n
        return chunk

    data: _Columns = {}
    try:
        for element in elements:
            props = element.properties
            if not any(p.is_list for p in props):
                block = np.array(
                    take(element.count * len(props)), dtype=np.float64
                ).reshape(element.count, len(props))
                data[element.name] = {
                    p.name: block[:, i].astype(p.type.dtype) for i, p in enumerate(props)
                }
                continue
            columns: dict[str, list] = {p.name: [] for p in props}
            for _ in range(element.count):
                for prop in props:
                    if prop.is_list:
                        size = int(float(take(1)[0]))
                        if size < 0:
                            raise PlyError("negative list length")
                        values = np.array(take(size), dtype=np.float64).astype(prop.type.dtype)
                        columns[prop.name].append(values)
                    else:
                        columns[prop.name].append(float(take(1)[0]))
            data[element.name] = {
                p.name: columns[p.name]
                if p.is_list
                else np.array(columns[p.name], dtype=np.float64).astype(p.type.dtype)
                for p in props
            }
    except ValueError as exc:
        raise PlyError(f"invalid number in ASCII data: {exc}") from exc
    return data


def _request(
    data: _Columns,
    elements: list[_Element],
    element_name: str,
    names: Sequence[str],
    list_hint: int = 0,
) -> _Block:
    element = next((e for e in elements if e.name == element_name), None)
    if element is None:
        raise _MissingProperty(f"element {element_name!r} not found")
    if not names:
        raise PlyError("no properties requested")
    props = []
    for name in names:
        prop = element.find(name)
        if prop is None:
            raise _MissingProperty(f"property {name!r} not found on element {element_name!r}")
        props.append(prop)
    if len({p.type for p in props}) > 1:
        raise _MissingProperty(f"requested properties of {element_name!r} differ in type")
    ptype = props[0].type
    columns = data[element_name]
    if any(p.is_list for p in props):
        if len(props) != 1:
            raise _MissingProperty("a list property must be requested alone")
        rows = columns[props[0].name]
        if list_hint and any(len(row) != list_hint for row in rows):
            raise PlyError(f"{element_name!r} holds a list not of length {list_hint}")
        if len({len(row) for row in rows}) > 1:
            raise PlyError(f"lists of {element_name!r} differ in length")
        width = len(rows[0]) if rows else list_hint
        values = np.array(rows, dtype=ptype.dtype).reshape(len(rows), width)
        return _Block(ptype, props[0].list_type, values)
    values = np.stack([columns[p.name] for p in props], axis=1).astype(ptype.dtype)
    return _Block(ptype, None, values.reshape(element.count, len(props)))


def _optional(*args, **kwargs) -> _Block | None:
    try:
        return _request(*args, **kwargs)
    except _MissingProperty:
        return None


def _to_points(block: _Block, what: str) -> NDArray[np.float64]:
    if block.type in (PlyType.FLOAT32, PlyType.FLOAT64):
        return block.values.astype(np.float64)
    if block.type is PlyType.UINT8:
        return block.values.astype(np.float64) / 255.0
    logger.error("Unknown type %s for %s", block.type.value, what)
    return _empty_points()


def _log_header(header: _Header, size: int) -> None:
    logger.info("PLY size: %g MB, type: %s", size * 1e-6, header.format)
    for comment in header.comments:
        logger.info("PLY comment: %s", comment)
    for line in header.info:
        logger.info("PLY info: %s", line)
    for element in header.elements:
        logger.info("PLY element: %s (%d)", element.name, element.count)
        for prop in element.properties:
            if prop.is_list:
                logger.info("  property: %s (type=%s, list_type=%s)",
                            prop.name, prop.type.value, prop.list_type.value)
            else:
                logger.info("  property: %s (type=%s)", prop.name, prop.type.value)


def read_ply(
    filename: str | os.PathLike[str],
    additional_elements: Iterable[AdditionalElement] = (),
) -> PlyMesh:
    """Read a PLY file into a :class:`PlyMesh`.

    Vertex positions are required; normals, colours (``red/green/blue`` or
    ``r/g/b``) and triangles (``vertex_indices`` or ``vertex_index``) are read
    when present.  Each requested additional element is returned filled in
    ``PlyMesh.additional``.  Raises :class:`PlyError` on any failure.
    """
    try:
        with open(filename, "rb") as handle:
            raw = handle.read()
    except OSError as exc:
        raise PlyError(f"failed to open {os.fspath(filename)}: {exc}") from exc

    stream = io.BytesIO(raw)
    header = _parse_header(stream)
    _log_header(header, len(raw))
    body = raw[stream.tell():]
    order = _FORMATS[header.format]
    data = _read_ascii(body, header.elements) if order is None else _read_binary(body, header.elements, order)

    elements = header.elements
    vertices = _request(data, elements, "vertex", ("x", "y", "z"))
    normals = _optional(data, elements, "vertex", ("nx", "ny", "nz"))
    colors = _optional(data, elements, "vertex", ("red", "green", "blue")) or _optional(
        data, elements, "vertex", ("r", "g", "b")
    )
    faces = _optional(data, elements, "face", ("vertex_indices",), list_hint=3) or _optional(
        data, elements, "face", ("vertex_index",), list_hint=3
    )
    requests = list(additional_elements)
    blocks = [_request(data, elements, r.element_key, r.element_property) for r in requests]

    mesh = PlyMesh(comments=list(header.comments))
    mesh.points = _to_points(vertices, "vertices")
    if normals is not None:
        mesh.normals = _to_points(normals, "normals")
    if colors is not None:
        mesh.colors = _to_points(colors, "colors")
    if faces is not None and faces.type in (PlyType.UINT32, PlyType.INT32):
        mesh.triangles = faces.values.astype(np.int64).reshape(-1, 3)
    for request, block in zip(requests, blocks):
        is_list = block.list_type is not None
        mesh.additional.append(
            AdditionalElement(
                element_key=request.element_key,
                element_property=list(request.element_property),
                type=block.type,
                list_type=block.list_type if is_list else PlyType.INVALID,
                list_count=block.values.shape[1] if is_list else 0,
                data=block.values,
            )
        )
    logger.info(
        "PLY read %d vertices, %d normals, %d colors, %d faces",
        len(mesh.points), len(mesh.normals), len(mesh.colors), len(mesh.triangles),
    )
    return mesh


@dataclass
class _OutColumn:
    name: str
    type: PlyType
    list_type: PlyType | None
    list_count: int
    values: NDArray


@dataclass
class _OutElement:
    name: str
    count: int
    columns: list[_OutColumn] = field(default_factory=list)


def _add_properties(
    elements: dict[str, _OutElement],
    key: str,
    names: Sequence[str],
    ptype: PlyType,
    values: ArrayLike | None,
    list_type: PlyType = PlyType.INVALID,
    list_count: int = 0,
) -> None:
    if ptype is PlyType.INVALID:
        raise PlyError(f"element {key!r} has no property type")
    if values is None:
        raise PlyError(f"element {key!r} has no data")
    names = list(names)
    if not names:
        raise PlyError(f"element {key!r} names no properties")
    array = np.asarray(values)
    try:
        if list_type is not PlyType.INVALID:
            if len(names) != 1:
                raise PlyError("a list property needs exactly one name")
            if not list_type.is_integer or list_count <= 0:
                raise PlyError(f"invalid list description for {key!r}")
            rows = array.reshape(-1, list_count)
            columns = [_OutColumn(names[0], ptype, list_type, list_count, rows.astype(ptype.dtype))]
        else:
            rows = array.reshape(-1, len(names))
            columns = [
                _OutColumn(name, ptype, None, 0, rows[:, i].astype(ptype.dtype))
                for i, name in enumerate(names)
            ]
    except ValueError as exc:
        raise PlyError(f"data of {key!r} does not fit its properties: {exc}") from exc
    count = len(rows)
    element = elements.get(key)
    if element is None:
        elements[key] = _OutElement(key, count, columns)
    elif element.count != count:
        raise PlyError(f"element {key!r} has {element.count} entries, data has {count}")
    else:
        element.columns.extend(columns)


def _header_text(elements: Iterable[_OutElement], comments: Iterable[str], use_ascii: bool) -> str:
    lines = ["ply", f"format {'ascii' if use_ascii else 'binary_little_endian'} 1.0"]
    lines += [f"comment {c}" for c in comments]
    for element in elements:
        lines.append(f"element {element.name} {element.count}")
        for col in element.columns:
            if col.list_type is not None:
                lines.append(f"property list {col.list_type.value} {col.type.value} {col.name}")
            else:
                lines.append(f"property {col.type.value} {col.name}")
    lines.append("end_header")
    return "\n".join(lines) + "\n"


def _binary_body(element: _OutElement) -> bytes:
    fields = []
    for i, col in enumerate(element.columns):
        if col.list_type is not None:
            fields.append((f"n{i}", col.list_type.dtype.newbyteorder("<")))
            fields.append((f"p{i}", col.type.dtype.newbyteorder("<"), (col.list_count,)))
        else:
            fields.append((f"p{i}", col.type.dtype.newbyteorder("<")))
    rows = np.zeros(element.count, dtype=np.dtype(fields))
    for i, col in enumerate(element.columns):
        if col.list_type is not None:
            rows[f"n{i}"] = col.list_count
        rows[f"p{i}"] = col.values
    return rows.tobytes()


def _ascii_body(element: _OutElement) -> str:
    per_column = []
    for col in element.columns:
        if col.list_type is not None:
            per_column.append([" ".join(map(str, [col.list_count, *row])) for row in col.values.tolist()])
        else:
            per_column.append([str(v) for v in col.values.tolist()])
    return "".join(" ".join(row) + "\n" for row in zip(*per_column))


def write_ply(
    filename: str | os.PathLike[str],
    points: ArrayLike,
    normals: ArrayLike | None = None,
    colors: ArrayLike | None = None,
    triangles: ArrayLike | None = None,
    comments: Iterable[str] = (),
    additional_elements: Iterable[AdditionalElement] = (),
    use_ascii: bool = False,
) -> None:
    """Write a mesh as PLY, binary little-endian unless ``use_ascii`` is set.

    Normals and colours are written only when there is one per point; colours
    in ``[0, 1]`` are stored as bytes.  Raises :class:`PlyError` on failure.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    nrm = np.empty((0, 3)) if normals is None else np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    col = np.empty((0, 3)) if colors is None else np.asarray(colors, dtype=np.float64).reshape(-1, 3)
    tri = _empty_triangles() if triangles is None else np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    if (tri < 0).any():
        raise PlyError("triangle indices must not be negative")

    elements: dict[str, _OutElement] = {}
    _add_properties(elements, "vertex", ("x", "y", "z"), PlyType.FLOAT64, pts)
    if len(nrm) and len(nrm) == len(pts):
        _add_properties(elements, "vertex", ("nx", "ny", "nz"), PlyType.FLOAT64, nrm)
    if len(col) and len(col) == len(pts):
        quantised = np.clip(col * 255, 0, 255).astype(np.uint8)
        _add_properties(elements, "vertex", ("red", "green", "blue"), PlyType.UINT8, quantised)
    if len(tri):
        _add_properties(elements, "face", ("vertex_indices",), PlyType.UINT32, tri,
                        PlyType.UINT8, 3)
    for extra in additional_elements:
        _add_properties(elements, extra.element_key, extra.element_property, extra.type,
                        extra.data, extra.list_type, extra.list_count)

    all_comments = [_GENERATED_COMMENT, *comments]
    content = _header_text(elements.values(), all_comments, use_ascii).encode("latin-1")
    if use_ascii:
        content += "".join(_ascii_body(e) for e in elements.values()).encode("latin-1")
    else:
        content += b"".join(_binary_body(e) for e in elements.values())
    try:
        with open(filename, "wb") as handle:
            handle.write(content)
    except OSError as exc:
        raise PlyError(f"failed to open {os.fspath(filename)}: {exc}") from exc
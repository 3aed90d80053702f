# rgbdkit

Utilities for RGB-D data and 3D geometry in Python, built on NumPy and SciPy.

## Modules

- `rgbdkit.obj`: `read_obj` returns an `ObjMesh` (`points`, `normals`,
  `colors`, `triangles` as NumPy arrays). Polygons are split into triangle
  fans. Normals are returned only when every vertex has one. `write_obj`
  writes vertices, per-vertex colours and normals, and triangles. Failures
  raise `ObjError`.
- `rgbdkit.ply`: `read_ply` reads ASCII and binary (little- or big-endian)
  PLY files into a `PlyMesh`. Vertex positions are required. Normals, colours
  (`red/green/blue` or `r/g/b`) and triangles are read when the file has them.
  Extra element properties are requested with `AdditionalElement`. `write_ply`
  writes binary little-endian output, or ASCII when `use_ascii` is true.
  Colours are stored as bytes, and extra elements are written from
  `AdditionalElement` data. Scalar types are given by `PlyType`. Failures
  raise `PlyError`.
- `rgbdkit.dataset`: `read_image_sequence` reads a TUM-style
  `associate.txt`. `read_image_sequence_with_pose` also reads the 4x4 poses in
  `trajectory.txt`. `read_scannet_sequence` and
  `read_scannet_sequence_with_pose` read an extracted ScanNet scene:
  `_info.txt`, the frame names and the per-frame `.pose.txt` files.
  `read_scannet_instances` maps every mesh vertex to an object index, or `-1`
  if the vertex belongs to no object. Results come back as an `ImageSequence`,
  with cameras given as `CameraIntrinsics` (including `camera_matrix`).
  Failures raise `DatasetError`.
- `rgbdkit.features`: `compute_pair_descriptor`, `compute_spfh` and
  `compute_fpfh` compute 33-bin FPFH descriptors for points with normals. They
  search neighbours with a SciPy k-d tree, bounded by `knn` and `radius`.
- `rgbdkit.correspondence`: `Correspondence` holds matched 3D point pairs
  between a source and a target frame. It has three methods:
  `calculate_average_disparity`, `reprojection_error_3d` and
  `reprojection_error_for_pose`. `mean_reprojection_error_3d` averages the
  error over many correspondences, and `transform_point` applies a 4x4 pose to
  a point.
- `rgbdkit.strings`: `split` and `rsplit` take an optional split limit and
  drop empty pieces. The module also has `shuffle_list`, `dir_exists` and
  `make_dir`. `make_dir` returns `False` when the directory already exists.
- `rgbdkit.timing`: `Duration` and the named-stopwatch `Timer` (`tick`,
  `tock`, `elapsed`, `log`, `log_all`, `reset`) measure time in milliseconds.
- `rgbdkit.parallel`: `run_threaded` maps a function over inputs on up to 100
  threads and keeps the input order.

## Installation

```
pip install rgbdkit
```

## Example

```python
from rgbdkit.ply import read_ply, write_ply
from rgbdkit.features import compute_fpfh

mesh = read_ply("scene.ply")
features = compute_fpfh(mesh.points, mesh.normals, 100, 0.25)
print(features.shape)  # (number of points, 33)

write_ply("copy.ply", mesh.points, mesh.normals, mesh.colors,
          mesh.triangles, ["resaved"], [], True)
```

Reading a ScanNet scene folder:

```python
from rgbdkit.dataset import read_scannet_sequence_with_pose

sequence = read_scannet_sequence_with_pose("./scene0000_00")
print(len(sequence), sequence.depth_camera)
```

Timing sections of code:

```python
from rgbdkit.timing import Timer

timer = Timer()
timer.tick("features")
# ... work ...
timer.tock("features")
timer.log_all()
```

## What it does not do

rgbdkit reads and writes files and computes descriptors and errors. The
dataset readers return file paths and camera parameters only: it does not load
or process images, and it does not align colour to depth. It does not perform
registration (feature matching, RANSAC, ICP), pose-graph or bundle-adjustment
optimisation, or camera capture. It has no command-line tool.

## Running the tests

```
pip install -e ".[test]"
pytest
```
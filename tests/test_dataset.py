import json

import numpy as np
import pytest

from rgbdkit.dataset import (
    CameraIntrinsics,
    DatasetError,
    read_image_sequence,
    read_image_sequence_with_pose,
    read_scannet_instances,
    read_scannet_sequence,
    read_scannet_sequence_with_pose,
)

INFO = """m_versionNumber = 4
m_sensorName = StructureSensor
m_colorWidth = 1296
m_colorHeight = 968
m_depthWidth = 640
m_depthHeight = 480
m_depthShift = 1000
m_calibrationColorIntrinsic = 1169.6 0 646.3 0 0 1167.1 489.9 0 0 0 1 0 0 0 0 1
m_calibrationColorExtrinsic = 1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1
m_calibrationDepthIntrinsic = 571.6 0 319.5 0 0 570.2 239.5 0 0 0 1 0 0 0 0 1
m_calibrationDepthExtrinsic = 1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1
m_frames.size = 3
"""


def _write_associate(directory):
    (directory / "associate.txt").write_text(
        "1.0 rgb/a.png 1.1 depth/a.png\n\n2.0 rgb/b.png 2.1 depth/b.png\n"
    )


def test_read_image_sequence_prefixes_paths(tmp_path):
    _write_associate(tmp_path)
    root = tmp_path.as_posix()
    seq = read_image_sequence(root)
    assert seq.rgb_files == [f"{root}/rgb/a.png", f"{root}/rgb/b.png"]
    assert seq.depth_files == [f"{root}/depth/a.png", f"{root}/depth/b.png"]
    assert len(seq) == 2
    assert seq.poses == []


def test_read_image_sequence_missing_file(tmp_path):
    with pytest.raises(DatasetError):
        read_image_sequence(tmp_path.as_posix())


def test_read_image_sequence_malformed_line(tmp_path):
    (tmp_path / "associate.txt").write_text("1.0 rgb/a.png\n")
    with pytest.raises(DatasetError):
        read_image_sequence(tmp_path.as_posix())


def test_read_image_sequence_with_pose(tmp_path):
    _write_associate(tmp_path)
    second = np.arange(16, dtype=float).reshape(4, 4)
    lines = [
        " ".join(str(v) for v in np.eye(4).ravel()),
        " ".join(str(v) for v in second.ravel()),
    ]
    (tmp_path / "trajectory.txt").write_text("\n".join(lines) + "\n")
    seq = read_image_sequence_with_pose(tmp_path.as_posix())
    assert len(seq.poses) == len(seq.rgb_files)
    np.testing.assert_allclose(seq.poses[0], np.eye(4))
    np.testing.assert_allclose(seq.poses[1], second)


def test_read_image_sequence_with_pose_count_mismatch(tmp_path):
    _write_associate(tmp_path)
    (tmp_path / "trajectory.txt").write_text(" ".join(["1"] * 16) + "\n")
    seq = read_image_sequence_with_pose(tmp_path.as_posix())
    assert len(seq.poses) == 1
    assert len(seq.rgb_files) == 2


def test_read_image_sequence_with_pose_missing_trajectory(tmp_path):
    _write_associate(tmp_path)
    with pytest.raises(DatasetError):
        read_image_sequence_with_pose(tmp_path.as_posix())


def test_read_image_sequence_with_pose_short_pose(tmp_path):
    _write_associate(tmp_path)
    (tmp_path / "trajectory.txt").write_text("1 2 3\n")
    with pytest.raises(DatasetError):
        read_image_sequence_with_pose(tmp_path.as_posix())


def test_read_scannet_sequence(tmp_path):
    (tmp_path / "_info.txt").write_text(INFO)
    root = tmp_path.as_posix()
    seq = read_scannet_sequence(root)
    assert seq.rgb_camera == CameraIntrinsics(1169.6, 1167.1, 646.3, 489.9, 1296, 968)
    assert seq.depth_camera == CameraIntrinsics(571.6, 570.2, 319.5, 239.5, 640, 480, 1000)
    assert len(seq) == 3
    assert seq.rgb_files[0] == f"{root}/frame-000000.color.jpg"
    assert seq.depth_files[2] == f"{root}/frame-000002.depth.png"


def test_scannet_camera_matrix(tmp_path):
    (tmp_path / "_info.txt").write_text(INFO)
    seq = read_scannet_sequence(tmp_path.as_posix())
    k = seq.depth_camera.camera_matrix
    assert k[0, 0] == pytest.approx(571.6)
    assert k[1, 1] == pytest.approx(570.2)
    assert k[0, 2] == pytest.approx(319.5)
    assert k[1, 2] == pytest.approx(239.5)
    assert k[2, 2] == 1.0


def test_scannet_unknown_key_stops_parsing(tmp_path):
    (tmp_path / "_info.txt").write_text(
        "m_colorWidth = 1296\nm_bogus = 1\nm_colorHeight = 968\nm_frames.size = 3\n"
    )
    seq = read_scannet_sequence(tmp_path.as_posix())
    assert seq.rgb_camera.width == 1296
    assert seq.rgb_camera.height == -1
    assert len(seq) == 0


def test_scannet_missing_info(tmp_path):
    with pytest.raises(DatasetError):
        read_scannet_sequence(tmp_path.as_posix())


def test_read_scannet_sequence_with_pose(tmp_path):
    (tmp_path / "_info.txt").write_text(INFO)
    expected = []
    for index in range(3):
        pose = np.eye(4)
        pose[:3, 3] = [index, 2 * index, 0.5]
        expected.append(pose)
        text = "\n".join(" ".join(str(v) for v in row) for row in pose)
        (tmp_path / f"frame-{index:06d}.pose.txt").write_text(text + "\n")
    seq = read_scannet_sequence_with_pose(tmp_path.as_posix())
    assert len(seq.poses) == 3
    for got, want in zip(seq.poses, expected):
        np.testing.assert_allclose(got, want)


def test_read_scannet_sequence_with_pose_missing_file(tmp_path):
    (tmp_path / "_info.txt").write_text(INFO)
    with pytest.raises(DatasetError):
        read_scannet_sequence_with_pose(tmp_path.as_posix())


def _make_scene(tmp_path, seg_indices, groups):
    scene = tmp_path / "scene0000_00"
    scene.mkdir()
    (scene / "scene0000_00_vh_clean.segs.json").write_text(json.dumps({"segIndices": seg_indices}))
    (scene / "scene0000_00_vh_clean.aggregation.json").write_text(json.dumps({"segGroups": groups}))
    return scene.as_posix()


def test_read_scannet_instances(tmp_path):
    path = _make_scene(
        tmp_path,
        [5, 5, 7, 9, 7],
        [{"label": "chair", "segments": [5]}, {"label": "table", "segments": [7]}],
    )
    assert read_scannet_instances(path) == [0, 0, 1, -1, 1]


def test_read_scannet_instances_last_group_wins(tmp_path):
    path = _make_scene(
        tmp_path,
        [1, 1],
        [{"label": "a", "segments": [1]}, {"label": "b", "segments": [1]}],
    )
    assert read_scannet_instances(path) == [1, 1]


def test_read_scannet_instances_trailing_slash(tmp_path):
    path = _make_scene(tmp_path, [1], [])
    with pytest.raises(DatasetError):
        read_scannet_instances(path + "/")


def test_read_scannet_instances_missing_json(tmp_path):
    scene = tmp_path / "scene0001_00"
    scene.mkdir()
    with pytest.raises(DatasetError):
        read_scannet_instances(scene.as_posix())


def test_read_scannet_instances_invalid_json(tmp_path):
    path = _make_scene(tmp_path, [1], [])
    (tmp_path / "scene0000_00" / "scene0000_00_vh_clean.segs.json").write_text("{not json")
    with pytest.raises(DatasetError):
        read_scannet_instances(path)
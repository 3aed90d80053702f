import os

import pytest

from rgbdkit.strings import dir_exists, make_dir, rsplit, shuffle_list, split


def test_split_on_every_delimiter():
    assert split("a b c", " ") == ["a", "b", "c"]


def test_split_with_multichar_delimiter():
    assert split("m_colorWidth = 640", " = ") == ["m_colorWidth", "640"]


def test_split_zero_times_returns_whole_text():
    assert split("a b c", " ", 0) == ["a b c"]


def test_split_limited_times_keeps_remainder():
    assert split("a b c", " ", 1) == ["a", "b c"]


def test_split_drops_empty_pieces():
    assert split("/a//b/", "/") == ["a", "b"]


def test_split_without_delimiter_returns_text():
    assert split("abc", ",") == ["abc"]


def test_split_empty_text():
    assert split("", ",") == []


def test_split_rejects_empty_delimiter():
    with pytest.raises(ValueError):
        split("abc", "")


@pytest.mark.parametrize("text", ["x,y,z", "one,two", "alpha", "p,q,r,s,t"])
def test_split_join_round_trip(text):
    assert ",".join(split(text, ",")) == text


def test_rsplit_scene_path():
    assert rsplit("./scene0000_00", "/", 1) == [".", "scene0000_00"]


def test_rsplit_limited_keeps_left_remainder():
    assert rsplit("a/b/c", "/", 1) == ["a/b", "c"]


def test_rsplit_unlimited_matches_split():
    assert rsplit("a/b/c", "/") == split("a/b/c", "/")


def test_rsplit_drops_empty_pieces():
    assert rsplit("/a//b/", "/") == ["a", "b"]


def test_rsplit_zero_times_returns_whole_text():
    assert rsplit("a/b", "/", 0) == ["a/b"]


def test_rsplit_without_delimiter_returns_text():
    assert rsplit("abc", "/") == ["abc"]


def test_rsplit_rejects_empty_delimiter():
    with pytest.raises(ValueError):
        rsplit("abc", "")


def test_shuffle_list_is_permutation():
    items = list(range(50))
    shuffle_list(items)
    assert sorted(items) == list(range(50))


def test_shuffle_list_empty():
    items = []
    shuffle_list(items)
    assert items == []


def test_dir_exists_for_directory(tmp_path):
    assert dir_exists(tmp_path) is True


def test_dir_exists_false_for_file(tmp_path):
    path = tmp_path / "file.txt"
    path.write_text("data")
    assert dir_exists(path) is False


def test_dir_exists_false_for_missing(tmp_path):
    assert dir_exists(tmp_path / "missing") is False


def test_make_dir_creates_directory(tmp_path):
    target = tmp_path / "out"
    assert make_dir(target) is True
    assert os.path.isdir(target)


def test_make_dir_existing_returns_false(tmp_path):
    target = tmp_path / "out"
    make_dir(target)
    assert make_dir(target) is False
    assert os.path.isdir(target)


def test_make_dir_over_file_raises(tmp_path):
    path = tmp_path / "file.txt"
    path.write_text("data")
    with pytest.raises(FileExistsError):
        make_dir(path)


def test_make_dir_missing_parent_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        make_dir(tmp_path / "no" / "such")
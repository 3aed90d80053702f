"""String splitting and small filesystem helpers."""

from __future__ import annotations

import logging
import os
import random
from typing import MutableSequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DIR_MODE = 0o775


def _check_delim(delim: str) -> None:
    if not delim:
        raise ValueError("delimiter must not be empty")


def split(text: str, delim: str, split_times: int = -1) -> list[str]:
    """Split ``text`` on ``delim`` from the left, dropping empty pieces.

    At most ``split_times`` splits are made; a negative value means no limit
    and zero returns the whole text as the single element.
    """
    _check_delim(delim)
    if split_times == 0:
        return [text]
    pieces: list[str] = []
    start = 0
    splits = 0
    while start < len(text):
        found = text.find(delim, start)
        if found == -1:
            break
        splits += 1
        if found > start:
            pieces.append(text[start:found])
        start = found + len(delim)
        if 0 < split_times <= splits:
            break
    if start < len(text):
        pieces.append(text[start:])
    return pieces


def rsplit(text: str, delim: str, split_times: int = -1) -> list[str]:
    """Split ``text`` on ``delim`` from the right, dropping empty pieces.

    At most ``split_times`` splits are made; a negative value means no limit
    and zero returns the whole text as the single element.  The pieces come
    back in their left-to-right order.
    """
    _check_delim(delim)
    if split_times == 0:
        return [text]
    pieces: list[str] = []
    end = len(text)
    splits = 0
    while end > 0:
        found = text.rfind(delim, 0, end)
        if found == -1:
            break
        splits += 1
        tail_start = found + len(delim)
        if end > tail_start:
            pieces.append(text[tail_start:end])
        end = found
        if 0 < split_times <= splits:
            break
    if end > 0:
        pieces.append(text[:end])
    pieces.reverse()
    return pieces


def shuffle_list(items: MutableSequence[T]) -> None:
    """Shuffle ``items`` in place."""
    random.shuffle(items)


def dir_exists(folder_name: str | os.PathLike[str]) -> bool:
    """Return whether ``folder_name`` names an existing directory."""
    return os.path.isdir(folder_name)


def make_dir(folder_name: str | os.PathLike[str]) -> bool:
    """Create a directory with mode 0775.

    Returns ``True`` if the directory was created and ``False`` if it was
    already there.  Any other failure raises :class:`OSError`.
    """
    if dir_exists(folder_name):
        logger.warning("Directory %s exists", os.fspath(folder_name))
        return False
    os.mkdir(folder_name, _DIR_MODE)
    return True
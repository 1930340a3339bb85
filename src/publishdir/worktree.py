"""Working-tree sanitizing and directory mirroring.

Both operations skip the reserved ``.git`` metadata entry.  Any failing
file operation propagates immediately; there is no skip-and-continue.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

METADATA_DIR = ".git"


def _is_metadata(name: str) -> bool:
    return name == METADATA_DIR


def clean_working_tree(path: str | os.PathLike[str]) -> list[str]:
    """Delete every top-level entry of *path* except ``.git``.

    Directories are removed wholesale; nothing below the top level is
    inspected.  Returns the names that were removed.
    """
    removed = []
    with os.scandir(path) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if _is_metadata(entry.name):
            continue
        if entry.is_dir(follow_symlinks=False):
            shutil.rmtree(entry.path)
        else:
            os.unlink(entry.path)
        removed.append(entry.name)
    return removed


def mirror_directory(
    source: str | os.PathLike[str],
    destination: str | os.PathLike[str],
) -> int:
    """Recursively copy the contents of *source* into *destination*.

    Directories are recreated with the source mode bits; files are copied
    byte for byte and get the source permission bits.  Any directory named
    ``.git`` is skipped without descending into it.  Symlinks are read
    through, so a link to a file is copied as a regular file.

    Returns the number of files copied.
    """
    src = Path(source)
    dest = Path(destination)
    return _mirror(src, dest)


def _mirror(src: Path, dest: Path) -> int:
    copied = 0
    with os.scandir(src) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        target = dest / entry.name
        if entry.is_dir(follow_symlinks=False):
            if _is_metadata(entry.name):
                continue
            target.mkdir(exist_ok=True)
            copied += _mirror(Path(entry.path), target)
            # set after the children: the source mode may be read-only
            os.chmod(target, entry.stat(follow_symlinks=False).st_mode & 0o7777)
        else:
            _copy_file(Path(entry.path), target)
            copied += 1
    return copied


def _copy_file(src: Path, dest: Path) -> None:
    shutil.copyfile(src, dest)
    shutil.copymode(src, dest)
